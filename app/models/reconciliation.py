"""ReconciliationRun model: one pass of payments against statement lines."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import Date, DateTime, Integer, JSON, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


class ReconciliationRun(Base):
    """Summary of one reconciliation run.

    Payments captured in ``date_range_start..date_range_end`` (optionally
    only for ``gateways``) are matched to imported statement lines; every
    problem found is stored as a linked ``ReconciliationException``.
    ``reference_date`` is the day the missing-settlement grace period was
    measured to, so a run can be repeated with the same outcome.
    """

    __tablename__ = "reconciliation_runs"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    status: Mapped[str] = mapped_column(
        String(20),
        default="running",
        comment="running | completed | failed",
    )
    date_range_start: Mapped[date] = mapped_column(Date)
    date_range_end: Mapped[date] = mapped_column(Date)
    reference_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    gateways: Mapped[Optional[list[str]]] = mapped_column(
        JSON,
        nullable=True,
        comment="Gateway filter; NULL = all gateways",
    )

    total_payments: Mapped[int] = mapped_column(Integer, default=0)
    total_statement_lines: Mapped[int] = mapped_column(Integer, default=0)
    matched_count: Mapped[int] = mapped_column(Integer, default=0)
    exception_count: Mapped[int] = mapped_column(Integer, default=0)

    # Gross captured, net reported by the gateways, and the summed differences
    total_expected_amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=0)
    total_settled_amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=0)
    total_exception_amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=0)

    summary: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    exceptions: Mapped[list[ReconciliationException]] = relationship(
        "ReconciliationException",
        back_populates="run",
        lazy="select",
    )

    @property
    def match_rate(self) -> float:
        """Matched payments as a percentage of payments in the window."""
        if not self.total_payments:
            return 0.0
        return round(self.matched_count / self.total_payments * 100, 2)

    def __repr__(self) -> str:
        return (
            f"<ReconciliationRun(id={self.id!r}, status={self.status!r}, "
            f"matched={self.matched_count}/{self.total_payments}, "
            f"exceptions={self.exception_count})>"
        )
