"""Persisted settlement policy: the admin-editable settlement contract."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class SettlementPolicyConfig(Base):
    """Single platform row describing how settlement timing is computed.

    ``mode`` selects which group of columns is meaningful:
    ``relative_minutes`` uses ``settlement_minutes``; ``cutoff_days`` uses
    the day/cutoff/time/weekend columns.
    """

    __tablename__ = "settlement_policies"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        default=1,
    )
    mode: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="cutoff_days | relative_minutes",
    )
    settlement_minutes: Mapped[Optional[int]] = mapped_column(Integer)
    settlement_days: Mapped[Optional[int]] = mapped_column(Integer)
    settlement_hour: Mapped[Optional[int]] = mapped_column(Integer)
    settlement_minute: Mapped[Optional[int]] = mapped_column(Integer)
    cutoff_hour: Mapped[Optional[int]] = mapped_column(Integer)
    cutoff_minute: Mapped[Optional[int]] = mapped_column(Integer)
    skip_weekends: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )
    timezone: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        default="Asia/Kolkata",
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        server_default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:
        return f"<SettlementPolicyConfig(mode={self.mode!r})>"
