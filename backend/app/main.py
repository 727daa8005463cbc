from __future__ import annotations

import secrets
from typing import Annotated

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session, sessionmaker

from . import schemas
from .core.config import Settings, get_settings, settings
from .db import SessionLocal, init_db
from .domain import ClaimWindowError, ConfigurationError, UnauthorizedError, ValidationError
from .repositories import ClaimLedger
from .services.captcha import CaptchaVerifier
from .services.window_arbiter import WindowArbiter
from .services.window_scheduler import WindowScheduler

app = FastAPI(title="Claim Window API", version="0.1.0", debug=settings.debug)


def build_arbiter(
    config: Settings,
    session_factory: sessionmaker[Session],
    *,
    verifier: CaptchaVerifier | None = None,
) -> WindowArbiter:
    """Wire the arbiter with its ledger and, when configured, the captcha verifier."""

    return WindowArbiter(
        ClaimLedger(session_factory),
        verifier=verifier,
        recent_winners_limit=config.recent_winners_limit,
    )


@app.on_event("startup")
def on_startup() -> None:
    """Initialize storage, the arbiter and the daily scheduler when the API boots."""

    config = get_settings()
    init_db()
    if not config.admin_password:
        logger.warning("ADMIN_PASSWORD not set; admin endpoints will refuse requests")

    verifier = CaptchaVerifier.from_settings(config)
    if verifier is None:
        logger.warning("RECAPTCHA_SECRET not set; captcha verification is disabled")
    app.state.verifier = verifier

    arbiter = build_arbiter(config, SessionLocal, verifier=verifier)
    app.state.arbiter = arbiter
    app.state.scheduler = None
    if config.scheduler_enabled:
        scheduler = WindowScheduler(
            arbiter,
            times=config.window_schedule_utc,
            window_seconds=config.window_seconds,
        )
        scheduler.start()
        app.state.scheduler = scheduler
    logger.info("Claim window service ready")


@app.on_event("shutdown")
def on_shutdown() -> None:
    scheduler = getattr(app.state, "scheduler", None)
    if scheduler is not None:
        scheduler.stop()
    arbiter = getattr(app.state, "arbiter", None)
    if arbiter is not None:
        arbiter.shutdown()
    verifier = getattr(app.state, "verifier", None)
    if verifier is not None:
        verifier.close()


@app.exception_handler(ClaimWindowError)
async def _claim_window_error_handler(request: Request, exc: ClaimWindowError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"ok": False, "msg": exc.message})


@app.exception_handler(RequestValidationError)
async def _request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=ValidationError.status_code,
        content={"ok": False, "msg": _describe_validation_errors(exc.errors())},
    )


_REQUEST_SOURCES = ("body", "query", "path", "header", "cookie")


def _describe_validation_errors(errors) -> str:
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(
        str(part) for part in first.get("loc", ()) if part not in _REQUEST_SOURCES
    )
    message = first.get("msg", "invalid value")
    return f"Invalid {location}: {message}" if location else f"Invalid request: {message}"


async def _claim_payload(request: Request) -> schemas.ClaimRequest:
    """Read a claim from either a JSON body or an HTML form post."""

    content_type = request.headers.get("content-type", "").lower()
    if content_type.startswith(("application/x-www-form-urlencoded", "multipart/form-data")):
        form = await request.form()
        data = {key: value for key, value in form.items() if isinstance(value, str)}
    else:
        try:
            data = await request.json()
        except ValueError as exc:
            raise ValidationError("Invalid request body") from exc
    if not isinstance(data, dict):
        raise ValidationError("Invalid request body")

    try:
        return schemas.ClaimRequest.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(_describe_validation_errors(exc.errors())) from exc


def _window_arbiter(request: Request) -> WindowArbiter:
    """Provide the process-wide arbiter created at startup."""

    return request.app.state.arbiter


def _require_admin(
    request: Request,
    config: Settings = Depends(get_settings),
) -> None:
    """Gate admin routes on the shared admin password."""

    if not config.admin_password:
        raise ConfigurationError("ADMIN_PASSWORD not set")
    key = request.query_params.get("admin") or request.headers.get("x-admin-key")
    if not key or not secrets.compare_digest(key.encode(), config.admin_password.encode()):
        raise UnauthorizedError("unauthorized")


@app.get("/healthz", tags=["system"])
def healthcheck() -> dict[str, str]:
    """Basic readiness probe consumed by infrastructure monitors."""

    return {"status": "ok"}


@app.get("/state", response_model=schemas.WindowState, tags=["window"])
def window_state(arbiter: WindowArbiter = Depends(_window_arbiter)):
    """Report whether a window is open, the seconds left and recent winners."""

    return arbiter.get_state()


@app.post(
    "/claim",
    response_model=schemas.ClaimResponse,
    responses={400: {"model": schemas.ErrorResponse}, 500: {"model": schemas.ErrorResponse}},
    tags=["window"],
)
def submit_claim(
    request: Request,
    payload: schemas.ClaimRequest = Depends(_claim_payload),
    arbiter: WindowArbiter = Depends(_window_arbiter),
):
    """Submit payout details for the open window."""

    try:
        result = arbiter.submit(
            payload.payout_method,
            payload.payout_id,
            captcha_token=payload.captcha,
            remote_ip=request.client.host if request.client else None,
        )
    except ClaimWindowError:
        raise
    except Exception:
        logger.exception("Claim error")
        return JSONResponse(status_code=500, content={"ok": False, "msg": "Server error"})
    return schemas.ClaimResponse(
        winner=result.winner, position=result.position, claim_id=result.claim_id
    )


@app.get(
    "/admin/claims",
    response_model=list[schemas.Claim],
    dependencies=[Depends(_require_admin)],
    tags=["admin"],
)
def list_claims(
    limit: Annotated[int | None, Query(ge=1, le=1000)] = None,
    arbiter: WindowArbiter = Depends(_window_arbiter),
    config: Settings = Depends(get_settings),
):
    """Return the most recent claims for audit review."""

    return arbiter.list_claims(limit or config.admin_claims_limit)


@app.get(
    "/admin/claims/{claim_id}",
    response_model=schemas.Claim,
    dependencies=[Depends(_require_admin)],
    tags=["admin"],
)
def get_claim(claim_id: int, arbiter: WindowArbiter = Depends(_window_arbiter)):
    """Retrieve a single claim by its ledger identifier."""

    return arbiter.get_claim(claim_id)


@app.post(
    "/admin/open",
    response_model=schemas.OpenWindowResponse,
    dependencies=[Depends(_require_admin)],
    tags=["admin"],
)
def open_window(
    seconds: Annotated[int | None, Query(ge=1, le=86400)] = None,
    arbiter: WindowArbiter = Depends(_window_arbiter),
    config: Settings = Depends(get_settings),
):
    """Open a new claim window, resetting any window already open."""

    duration = seconds or config.window_seconds
    status = arbiter.open_window(duration)
    return schemas.OpenWindowResponse(opened_for=duration, expires_at=status.expires_at)


@app.post(
    "/admin/close",
    response_model=schemas.CloseWindowResponse,
    dependencies=[Depends(_require_admin)],
    tags=["admin"],
)
def close_window(arbiter: WindowArbiter = Depends(_window_arbiter)):
    """Close the current window before it expires."""

    arbiter.close_window()
    return schemas.CloseWindowResponse()
