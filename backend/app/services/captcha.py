"""reCAPTCHA siteverify client."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx
from loguru import logger

from app.core.config import Settings


class CaptchaVerificationError(Exception):
    """Raised when the verification service cannot give an answer."""


@dataclass(slots=True, frozen=True)
class CaptchaResult:
    success: bool
    error_codes: tuple[str, ...] = field(default_factory=tuple)


class CaptchaVerifier:
    """Thin wrapper around the reCAPTCHA siteverify endpoint."""

    def __init__(
        self,
        *,
        secret: str,
        verify_url: str,
        timeout: float = 5.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.secret = secret
        self.verify_url = verify_url
        self.timeout = timeout
        self.client = httpx.Client(timeout=timeout, transport=transport)

    @classmethod
    def from_settings(cls, settings: Settings) -> CaptchaVerifier | None:
        if not settings.recaptcha_secret:
            return None
        return cls(
            secret=settings.recaptcha_secret,
            verify_url=str(settings.recaptcha_verify_url),
            timeout=settings.captcha_timeout_seconds,
        )

    def verify(self, token: str | None, *, remote_ip: str | None = None) -> CaptchaResult:
        if not token or not token.strip():
            return CaptchaResult(success=False, error_codes=("missing-input-response",))

        form: dict[str, Any] = {"secret": self.secret, "response": token.strip()}
        if remote_ip:
            form["remoteip"] = remote_ip

        try:
            response = self.client.post(self.verify_url, data=form)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            raise CaptchaVerificationError(f"Captcha verification request failed: {exc}") from exc
        except ValueError as exc:
            raise CaptchaVerificationError("Captcha verification returned invalid JSON") from exc

        if not isinstance(payload, dict):
            raise CaptchaVerificationError("Captcha verification returned an unexpected payload")

        error_codes = tuple(str(code) for code in payload.get("error-codes") or ())
        result = CaptchaResult(success=payload.get("success") is True, error_codes=error_codes)
        if not result.success:
            logger.info("Captcha rejected: {}", ", ".join(error_codes) or "no error codes")
        return result

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "CaptchaVerifier":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["CaptchaResult", "CaptchaVerificationError", "CaptchaVerifier"]
