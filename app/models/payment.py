"""Payment record model: one row per captured payment."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import DateTime, Index, JSON, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base

SETTLEMENT_UNSETTLED = "unsettled"
SETTLEMENT_SETTLED = "settled"
SETTLEMENT_ON_HOLD = "on_hold"


class PaymentRecord(Base):
    """A payment confirmed by a gateway, with its commission and settlement state.

    ``commission`` and ``expected_settlement_date`` are computed once at
    capture (or backfilled by the sweeper). ``settlement_status`` moves
    unsettled -> settled exactly once, and only the sweeper does it.
    """

    __tablename__ = "payment_records"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )
    transaction_id: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
        index=True,
    )
    tenant_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )
    gateway: Mapped[Optional[str]] = mapped_column(
        String(50),
    )
    direction: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default="payin",
        comment="payin | payout",
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="captured",
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(15, 2),
        nullable=False,
    )
    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default="INR",
    )
    commission: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(15, 2),
    )
    net_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(15, 2),
    )
    commission_type: Mapped[Optional[str]] = mapped_column(
        String(20),
        comment="percentage | flat | free | tiered",
    )
    paid_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
    )
    settlement_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=SETTLEMENT_UNSETTLED,
        comment="unsettled | settled | on_hold",
    )
    expected_settlement_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True,
    )
    settlement_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True,
    )
    order_id: Mapped[Optional[str]] = mapped_column(
        String(100),
    )
    metadata_json: Mapped[Optional[dict[str, Any]]] = mapped_column(
        "metadata",
        JSON,
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=func.now(),
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        onupdate=func.now(),
    )

    __table_args__ = (
        Index("ix_payment_settlement_status", "settlement_status", "paid_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<PaymentRecord(transaction_id={self.transaction_id!r}, "
            f"amount={self.amount}, settlement_status={self.settlement_status!r})>"
        )
