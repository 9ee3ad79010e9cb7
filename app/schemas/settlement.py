"""Pydantic schemas for settlement sweeps and the settlement policy."""

from __future__ import annotations

from typing import Optional

from pydantic import Field

from app.schemas.common import CamelModel


class SweepResponse(CamelModel):
    settled_count: int
    not_ready_count: int
    failed_count: int = 0
    failed_ids: list[str] = Field(default_factory=list)


class SettlementPolicyResponse(CamelModel):
    mode: str = Field(..., description="cutoff_days | relative_minutes")
    settlement_minutes: Optional[int] = None
    settlement_days: Optional[int] = None
    settlement_hour: Optional[int] = None
    settlement_minute: Optional[int] = None
    cutoff_hour: Optional[int] = None
    cutoff_minute: Optional[int] = None
    skip_weekends: Optional[bool] = None
    timezone: str


class SettlementPolicyUpdate(CamelModel):
    """Partial update; omitted fields keep their current value."""

    mode: Optional[str] = Field(None, pattern="^(cutoff_days|relative_minutes)$")
    settlement_minutes: Optional[int] = Field(None, ge=0)
    settlement_days: Optional[int] = Field(None, ge=0, le=30)
    settlement_hour: Optional[int] = Field(None, ge=0, le=23)
    settlement_minute: Optional[int] = Field(None, ge=0, le=59)
    cutoff_hour: Optional[int] = Field(None, ge=0, le=23)
    cutoff_minute: Optional[int] = Field(None, ge=0, le=59)
    skip_weekends: Optional[bool] = None
    timezone: Optional[str] = None
