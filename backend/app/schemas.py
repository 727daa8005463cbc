from datetime import datetime

from pydantic import BaseModel, Field


class ClaimRequest(BaseModel):
    payout_method: str | None = None
    payout_id: str | None = None
    captcha: str | None = None


class ClaimResponse(BaseModel):
    ok: bool = True
    winner: bool
    position: int
    claim_id: int


class ErrorResponse(BaseModel):
    ok: bool = False
    msg: str


class WindowState(BaseModel):
    is_open: bool
    remaining_seconds: int
    expires_at: datetime | None = None
    recent_winners: list[str] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class Claim(BaseModel):
    claim_id: int
    payout_method: str
    payout_id: str
    submitted_at: datetime
    is_winner: bool
    window_id: str | None = None

    model_config = {"from_attributes": True}


class OpenWindowResponse(BaseModel):
    ok: bool = True
    opened_for: int
    expires_at: datetime


class CloseWindowResponse(BaseModel):
    ok: bool = True
