"""Durable, append-only claim storage."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from loguru import logger
from sqlalchemy import desc, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.domain import ClaimRecord, NotFoundError, StorageError
from app.models import Claim


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is written in UTC.
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _to_record(claim: Claim) -> ClaimRecord:
    return ClaimRecord(
        claim_id=claim.id,
        payout_method=claim.payout_method,
        payout_id=claim.payout_id,
        submitted_at=_as_utc(claim.submitted_at),
        is_winner=bool(claim.is_winner),
        window_id=claim.window_id,
    )


class ClaimLedger:
    """Encapsulate claim persistence.

    Every call opens its own short-lived session, so one ledger instance can be
    shared by all request threads. Claim IDs come from the database
    autoincrement and are therefore unique under concurrent inserts.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception("Claim ledger {} failed", operation)
            raise StorageError(f"Claim storage unavailable during {operation}") from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ------------------------------------------------------------------
    # Mutations

    def insert(
        self,
        payout_method: str,
        payout_id: str,
        submitted_at: datetime,
        *,
        window_id: str | None = None,
    ) -> int:
        with self._session("insert") as session:
            claim = Claim(
                payout_method=payout_method,
                payout_id=payout_id,
                submitted_at=submitted_at,
                is_winner=False,
                window_id=window_id,
            )
            session.add(claim)
            session.flush()
            claim_id = claim.id
        return claim_id

    def mark_winner(self, claim_id: int) -> None:
        with self._session("mark_winner") as session:
            claim = session.get(Claim, claim_id)
            if claim is None:
                raise NotFoundError(f"Claim {claim_id} not found")
            if claim.is_winner:
                return
            claim.is_winner = True

    # ------------------------------------------------------------------
    # Queries

    def get_claim(self, claim_id: int) -> ClaimRecord:
        with self._session("get_claim") as session:
            claim = session.get(Claim, claim_id)
            if claim is None:
                raise NotFoundError(f"Claim {claim_id} not found")
            return _to_record(claim)

    def count_since(self, timestamp: datetime) -> int:
        with self._session("count_since") as session:
            query = select(func.count(Claim.id)).where(Claim.submitted_at >= timestamp)
            return session.execute(query).scalar_one()

    def count_winners(self, window_id: str) -> int:
        with self._session("count_winners") as session:
            query = select(func.count(Claim.id)).where(
                Claim.window_id == window_id, Claim.is_winner.is_(True)
            )
            return session.execute(query).scalar_one()

    def recent_winners(self, limit: int) -> list[str]:
        with self._session("recent_winners") as session:
            query = (
                select(Claim.payout_id)
                .where(Claim.is_winner.is_(True))
                .order_by(desc(Claim.submitted_at), desc(Claim.id))
                .limit(limit)
            )
            return list(session.execute(query).scalars().all())

    def all_claims(self, limit: int) -> list[ClaimRecord]:
        with self._session("all_claims") as session:
            query = select(Claim).order_by(desc(Claim.submitted_at), desc(Claim.id)).limit(limit)
            return [_to_record(claim) for claim in session.execute(query).scalars().all()]


__all__ = ["ClaimLedger"]
