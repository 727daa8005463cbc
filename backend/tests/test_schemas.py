from __future__ import annotations

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError as PydanticValidationError

from app.core.config import Settings
from app.domain import ClaimRecord
from app.schemas import Claim, ClaimRequest


def test_schedule_accepts_comma_separated_string():
    """Schedule entries are trimmed, de-duplicated and sorted."""
    settings = Settings(_env_file=None, window_schedule_utc=" 18:00, 06:30 ,18:00")
    assert settings.window_schedule_utc == ["06:30", "18:00"]


def test_schedule_default():
    assert Settings(_env_file=None).window_schedule_utc == ["18:00"]


@pytest.mark.parametrize("value", ["6:30", "24:00", "12:60", "ab:cd"])
def test_schedule_rejects_malformed_times(value):
    with pytest.raises(PydanticValidationError):
        Settings(_env_file=None, window_schedule_utc=value)


def test_window_seconds_must_be_positive():
    with pytest.raises(PydanticValidationError):
        Settings(_env_file=None, window_seconds=0)


def test_postgres_urls_use_psycopg_driver():
    settings = Settings(_env_file=None, database_url="postgres://user:pw@db.example.com:5432/claims")
    resolved = settings.resolved_database_url
    assert resolved.startswith("postgresql+psycopg://user:pw@db.example.com:5432/claims")
    assert "sslmode=require" in resolved


def test_sqlite_urls_unchanged(tmp_path):
    url = f"sqlite:///{tmp_path/'claims.db'}"
    assert Settings(_env_file=None, database_url=url).resolved_database_url == url


def test_claim_request_fields_optional():
    """Missing payout fields reach the arbiter, which reports them."""
    request = ClaimRequest.model_validate({"payout_method": "paypal"})
    assert request.payout_id is None
    assert request.captcha is None


def test_claim_schema_from_record():
    record = ClaimRecord(
        claim_id=1,
        payout_method="paypal",
        payout_id="alice",
        submitted_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
        is_winner=True,
        window_id="abc",
    )
    claim = Claim.model_validate(record)
    assert claim.claim_id == 1
    assert claim.is_winner is True
