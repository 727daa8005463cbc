from functools import lru_cache
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from pydantic import AnyUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _ensure_sqlalchemy_postgres_scheme(value: str) -> str:
    if not value.lower().startswith("postgres"):
        return value

    parsed = urlparse(value)
    scheme = parsed.scheme.lower()

    if scheme in {"postgres", "postgresql"}:
        scheme = "postgresql+psycopg"

    if scheme not in {"postgresql+psycopg", "postgresql+asyncpg"}:
        scheme = "postgresql+psycopg"

    query_params = dict(parse_qsl(parsed.query, keep_blank_values=True))
    query_params.setdefault("sslmode", "require")
    new_query = urlencode(query_params, doseq=True)

    return urlunparse(parsed._replace(scheme=scheme, query=new_query))


def _validate_time_of_day(value: str) -> str:
    if len(value) != 5 or value[2] != ":":
        raise ValueError("schedule entries must be formatted as HH:MM")
    hours, minutes = value.split(":", 1)
    if not (hours.isdigit() and minutes.isdigit()):
        raise ValueError("schedule entries must contain numeric hour and minute")
    if not 0 <= int(hours) < 24 or not 0 <= int(minutes) < 60:
        raise ValueError("schedule hour must be 0-23 and minute 0-59")
    return value


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    debug: bool = Field(False, description="Enable FastAPI debug mode")
    database_url: AnyUrl | str = Field(
        default="sqlite:///./data/claims.db",
        description="SQLAlchemy compatible database URL",
    )
    storage_timeout_seconds: float = Field(
        default=5.0,
        description="Upper bound on waiting for a database lock or pooled connection",
        gt=0,
    )
    admin_password: str | None = Field(
        default=None,
        description="Shared secret required by the admin endpoints",
    )
    recaptcha_secret: str | None = Field(
        default=None,
        description="reCAPTCHA secret key; captcha verification is skipped when unset",
    )
    recaptcha_verify_url: AnyUrl = Field(
        default="https://www.google.com/recaptcha/api/siteverify",
        description="reCAPTCHA siteverify endpoint",
    )
    captcha_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout applied to each captcha verification request",
        gt=0,
    )
    window_seconds: int = Field(
        default=60,
        description="Duration of scheduled windows and the admin default",
        ge=1,
    )
    window_schedule_utc: list[str] | str = Field(
        default_factory=lambda: ["18:00"],
        description="Comma-separated list or array of HH:MM (24h) UTC times to auto-open a window",
    )
    scheduler_enabled: bool = Field(
        default=True,
        description="Run the in-process daily window scheduler",
    )
    recent_winners_limit: int = Field(
        default=10,
        description="Number of recent winners reported by /state",
        ge=1,
    )
    admin_claims_limit: int = Field(
        default=100,
        description="Default page size for the admin claim listing",
        ge=1,
    )
    service_url: AnyUrl | str = Field(
        default="http://localhost:8000",
        description="Base URL of the running service, used by the admin CLI",
    )

    @field_validator("window_schedule_utc", mode="after")
    @classmethod
    def _parse_window_schedule(cls, value: Any) -> list[str]:
        if value in (None, "", []):
            return []
        if isinstance(value, str):
            entries = [part.strip() for part in value.split(",") if part.strip()]
        elif isinstance(value, (list, tuple, set)):
            entries = [str(item).strip() for item in value if str(item).strip()]
        else:
            raise ValueError(
                "WINDOW_SCHEDULE_UTC must be provided as a list or comma-separated string"
            )
        return sorted({_validate_time_of_day(entry) for entry in entries})

    @field_validator("database_url", mode="before")
    @classmethod
    def _normalize_postgres_urls(cls, value: Any) -> Any:
        if value is None or not isinstance(value, str):
            return value
        if value.startswith("postgres://"):
            return "postgresql://" + value[len("postgres://") :]
        return value

    @property
    def resolved_database_url(self) -> str:
        return _ensure_sqlalchemy_postgres_scheme(str(self.database_url))


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
