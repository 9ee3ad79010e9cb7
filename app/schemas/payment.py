"""Pydantic schemas for payment capture, payment reads and payout quotes."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from pydantic import Field

from app.schemas.common import CamelModel


class CaptureRequest(CamelModel):
    """A "payment captured" event from a gateway integration.

    ``amount`` is validated by the commission engine rather than pydantic so
    that a bad amount is reported as ``invalid_amount``.
    """

    transaction_id: str = Field(..., min_length=1, max_length=100)
    tenant_id: str = Field(..., min_length=1, max_length=64)
    amount: Any = None
    currency: str = Field("INR", max_length=3)
    paid_at: Optional[datetime] = None
    gateway: Optional[str] = Field(None, max_length=50)
    order_id: Optional[str] = Field(None, max_length=100)
    direction: str = Field("payin", pattern="^(payin|payout)$")
    metadata: Optional[dict[str, Any]] = None


class PaymentResponse(CamelModel):
    id: UUID
    transaction_id: str
    tenant_id: str
    gateway: Optional[str] = None
    direction: str
    status: str
    amount: Decimal
    currency: str
    commission: Optional[Decimal] = None
    net_amount: Optional[Decimal] = None
    commission_type: Optional[str] = None
    paid_at: datetime
    settlement_status: str = Field(..., description="unsettled | settled | on_hold")
    expected_settlement_date: Optional[datetime] = None
    settlement_date: Optional[datetime] = None
    order_id: Optional[str] = None
    created_at: Optional[datetime] = None
    status_message: Optional[str] = None


class PayoutQuoteRequest(CamelModel):
    amount: Any = None
    free_payouts_remaining: int = Field(0, ge=0)


class PayoutQuoteResponse(CamelModel):
    amount: Decimal
    commission: Decimal
    net_amount: Decimal
    commission_type: str
    clamped: bool = False
    free_payout_consumed: bool = False
    free_payouts_remaining: int = 0
    breakdown: dict[str, Any] = Field(default_factory=dict)
