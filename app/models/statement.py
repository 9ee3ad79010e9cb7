"""Statement line model: rows imported from gateway/bank settlement statements."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import DateTime, Index, JSON, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class StatementLine(Base):
    """One line of an external settlement statement.

    These are what the gateway (or the bank) says it paid out; the
    reconciliation engine compares them against our PaymentRecords.
    """

    __tablename__ = "statement_lines"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )
    transaction_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
    )
    gateway: Mapped[Optional[str]] = mapped_column(
        String(50),
    )
    gross_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(15, 2),
    )
    fee_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(15, 2),
    )
    net_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(15, 2),
    )
    currency: Mapped[Optional[str]] = mapped_column(
        String(3),
    )
    settled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
    )
    status: Mapped[Optional[str]] = mapped_column(
        String(20),
        comment="completed | failed | held | reversed",
    )
    source_file: Mapped[Optional[str]] = mapped_column(
        String(255),
    )
    raw_data: Mapped[Optional[dict[str, Any]]] = mapped_column(
        JSON,
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("ix_statement_gateway_settled", "gateway", "settled_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<StatementLine(transaction_id={self.transaction_id!r}, "
            f"net_amount={self.net_amount}, status={self.status!r})>"
        )
