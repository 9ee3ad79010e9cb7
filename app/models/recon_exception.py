"""Reconciliation exception model: a mismatch found during a run."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base

EXCEPTION_STATUSES = ("pending", "investigating", "resolved")


class ReconciliationException(Base):
    """A single discrepancy between our payment record and a statement line.

    Exceptions start ``pending`` and are worked to ``resolved``; a
    resolution may point at the adjustment journal that corrected it.
    """

    __tablename__ = "reconciliation_exceptions"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )
    transaction_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
    )
    statement_line_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("statement_lines.id"),
        nullable=True,
    )
    type: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        comment=(
            "missing_settlement | amount_mismatch | fee_mismatch "
            "| duplicate_settlement | unexpected_settlement"
        ),
    )
    severity: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        comment="critical | high | medium | low",
    )
    expected_value: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(15, 2),
        nullable=True,
    )
    actual_value: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(15, 2),
        nullable=True,
    )
    difference_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(15, 2),
    )
    gateway: Mapped[Optional[str]] = mapped_column(
        String(50),
    )
    description: Mapped[Optional[str]] = mapped_column(
        Text,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="pending",
        comment="pending | investigating | resolved",
    )
    resolution_note: Mapped[Optional[str]] = mapped_column(
        Text,
    )
    adjustment_journal_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("journal_entries.id"),
        nullable=True,
    )
    resolved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
    )
    run_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("reconciliation_runs.id"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=func.now(),
    )

    # -- Relationships --
    run: Mapped[Optional[ReconciliationRun]] = relationship(
        "ReconciliationRun",
        back_populates="exceptions",
        lazy="select",
    )

    def __repr__(self) -> str:
        return (
            f"<ReconciliationException(type={self.type!r}, severity={self.severity!r}, "
            f"transaction_id={self.transaction_id!r})>"
        )
