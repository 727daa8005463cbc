"""Claim window state machine and single-winner arbitration.

The arbiter owns the only mutable shared state of the game: whether a window
is open, when it expires and whether its winner has been assigned. Every read
and write of that state happens under one lock, and the winner gate holds the
same lock across the ledger update so that exactly one claim per window epoch
is ever marked as the winner.

Expiry is decided by comparing timestamps on every access. The close timer
only tidies state and logs; it is never the source of truth.
"""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol
from uuid import uuid4

from loguru import logger

from app.domain import (
    ClaimRecord,
    SubmitResult,
    ValidationError,
    WindowClosedError,
    WindowStatus,
)
from app.repositories import ClaimLedger

from .captcha import CaptchaResult, CaptchaVerificationError


class CaptchaCheck(Protocol):
    def verify(self, token: str | None, *, remote_ip: str | None = None) -> CaptchaResult:
        ...


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class _WindowState:
    is_open: bool = False
    window_id: str | None = None
    opened_at: datetime | None = None
    expires_at: datetime | None = None
    winner_assigned: bool = False


class WindowArbiter:
    """Decide which claims are accepted and which single claim wins."""

    def __init__(
        self,
        ledger: ClaimLedger,
        *,
        verifier: CaptchaCheck | None = None,
        clock: Callable[[], datetime] = utcnow,
        recent_winners_limit: int = 10,
        auto_close: bool = True,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ) -> None:
        self._ledger = ledger
        self._verifier = verifier
        self._clock = clock
        self._recent_winners_limit = recent_winners_limit
        self._auto_close = auto_close
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._state = _WindowState()
        self._timer: threading.Timer | None = None

    # ------------------------------------------------------------------
    # Window lifecycle

    def open_window(self, duration_seconds: float, *, now: datetime | None = None) -> WindowStatus:
        """Open a fresh window epoch, superseding any window already open."""

        if not math.isfinite(duration_seconds) or duration_seconds <= 0:
            raise ValidationError("Window duration must be a positive number of seconds")

        now = now or self._clock()
        window_id = uuid4().hex
        try:
            expires_at = now + timedelta(seconds=duration_seconds)
        except OverflowError as exc:
            raise ValidationError("Window duration is too long") from exc
        with self._lock:
            superseded = self._state.window_id if self._is_open_locked(now) else None
            self._state = _WindowState(
                is_open=True,
                window_id=window_id,
                opened_at=now,
                expires_at=expires_at,
                winner_assigned=False,
            )
            self._schedule_close_locked(window_id, duration_seconds)

        if superseded:
            logger.info("Window {} superseded by window {}", superseded, window_id)
        logger.info("Window {} open for {}s until {}", window_id, duration_seconds, expires_at.isoformat())
        return WindowStatus(
            is_open=True,
            remaining_seconds=math.floor(duration_seconds),
            expires_at=expires_at,
            window_id=window_id,
        )

    def close_window(self) -> None:
        """Close the current window immediately."""

        with self._lock:
            self._cancel_timer_locked()
            if not self._state.is_open:
                return
            self._state.is_open = False
            window_id = self._state.window_id
        logger.info("Window {} closed by operator", window_id)

    def shutdown(self) -> None:
        with self._lock:
            self._cancel_timer_locked()

    def _is_open_locked(self, now: datetime) -> bool:
        state = self._state
        if not state.is_open:
            return False
        if state.expires_at is not None and now >= state.expires_at:
            state.is_open = False
            logger.info("Window {} closed (expired)", state.window_id)
            return False
        return True

    def _schedule_close_locked(self, window_id: str, duration_seconds: float) -> None:
        self._cancel_timer_locked()
        if not self._auto_close:
            return
        timer = self._timer_factory(duration_seconds, self._expire, args=(window_id,))
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _cancel_timer_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _expire(self, window_id: str) -> None:
        with self._lock:
            if self._state.window_id != window_id:
                return
            self._timer = None
            if not self._state.is_open:
                return
            self._state.is_open = False
        logger.info("Window {} closed (timer)", window_id)

    # ------------------------------------------------------------------
    # Claims

    def submit(
        self,
        payout_method: str | None,
        payout_id: str | None,
        *,
        captcha_token: str | None = None,
        remote_ip: str | None = None,
        now: datetime | None = None,
    ) -> SubmitResult:
        """Accept a claim for the open window and run it through the winner gate.

        Raises ``WindowClosedError`` or ``ValidationError`` before any ledger
        write. ``StorageError`` from the ledger propagates unchanged; nothing
        is retried here because a retry could record the claim twice.
        """

        pinned_now = now

        def current_time() -> datetime:
            return pinned_now or self._clock()

        with self._lock:
            if not self._is_open_locked(current_time()):
                raise WindowClosedError("Window closed")
            window_id = self._state.window_id
            opened_at = self._state.opened_at

        method = (payout_method or "").strip()
        payout = (payout_id or "").strip()
        if not method or not payout:
            raise ValidationError("Missing fields")

        self._verify_captcha(captcha_token, remote_ip)

        # Captcha latency may have outlived the window or seen it reopened.
        with self._lock:
            if self._state.window_id != window_id or not self._is_open_locked(current_time()):
                raise WindowClosedError("Window closed")

        position = self._ledger.count_since(opened_at) + 1
        claim_id = self._ledger.insert(method, payout, current_time(), window_id=window_id)

        winner = False
        with self._lock:
            if self._state.window_id == window_id and not self._state.winner_assigned:
                self._ledger.mark_winner(claim_id)
                self._state.winner_assigned = True
                winner = True

        if winner:
            logger.info("Winner: claim {} ({}) in window {}", claim_id, payout, window_id)
        else:
            logger.debug("Claim {} accepted at position {} in window {}", claim_id, position, window_id)
        return SubmitResult(accepted=True, winner=winner, position=position, claim_id=claim_id)

    def _verify_captcha(self, token: str | None, remote_ip: str | None) -> None:
        if self._verifier is None:
            return
        try:
            result = self._verifier.verify(token, remote_ip=remote_ip)
        except CaptchaVerificationError as exc:
            logger.warning("Captcha verification unavailable: {}", exc)
            raise ValidationError("Captcha failed") from exc
        if not result.success:
            raise ValidationError("Captcha failed")

    # ------------------------------------------------------------------
    # Read-only views

    def get_state(self, *, now: datetime | None = None) -> WindowStatus:
        now = now or self._clock()
        with self._lock:
            is_open = self._is_open_locked(now)
            expires_at = self._state.expires_at if is_open else None
            window_id = self._state.window_id if is_open else None

        remaining = 0
        if expires_at is not None:
            remaining = max(0, math.floor((expires_at - now).total_seconds()))
        return WindowStatus(
            is_open=is_open,
            remaining_seconds=remaining,
            expires_at=expires_at,
            window_id=window_id,
            recent_winners=self._ledger.recent_winners(self._recent_winners_limit),
        )

    def list_claims(self, limit: int) -> list[ClaimRecord]:
        return self._ledger.all_claims(limit)

    def get_claim(self, claim_id: int) -> ClaimRecord:
        return self._ledger.get_claim(claim_id)

    @property
    def winner_assigned(self) -> bool:
        with self._lock:
            return self._state.winner_assigned


__all__ = ["CaptchaCheck", "WindowArbiter"]
