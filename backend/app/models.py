from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .db import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Claim(Base):
    __tablename__ = "claims"
    __table_args__ = (
        Index("ix_claims_submitted_at", "submitted_at"),
        Index("ix_claims_window_winner", "window_id", "is_winner"),
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    payout_method: Mapped[str] = mapped_column(String(64), nullable=False)
    payout_id: Mapped[str] = mapped_column(String(255), nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    is_winner: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    window_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
