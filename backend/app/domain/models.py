"""Typed domain representations shared by the ledger, the arbiter and the API."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(slots=True, frozen=True)
class ClaimRecord:
    """Immutable snapshot of a stored claim."""

    claim_id: int
    payout_method: str
    payout_id: str
    submitted_at: datetime
    is_winner: bool
    window_id: str | None = None


@dataclass(slots=True, frozen=True)
class SubmitResult:
    """Decision returned for an accepted claim."""

    accepted: bool
    winner: bool
    position: int
    claim_id: int


@dataclass(slots=True, frozen=True)
class WindowStatus:
    """Read-only view of the claim window for status displays."""

    is_open: bool
    remaining_seconds: int
    expires_at: datetime | None
    window_id: str | None = None
    recent_winners: list[str] = field(default_factory=list)
