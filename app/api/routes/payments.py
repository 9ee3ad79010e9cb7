"""Payment capture, payment reads and payout quotes."""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import get_db
from app.core.logging import get_logger
from app.models.payment import PaymentRecord
from app.schemas.payment import (
    CaptureRequest,
    PaymentResponse,
    PayoutQuoteRequest,
    PayoutQuoteResponse,
)
from app.services.payments.service import PaymentService

logger = get_logger(__name__)

router = APIRouter()


def _to_response(service: PaymentService, record: PaymentRecord) -> PaymentResponse:
    response = PaymentResponse.model_validate(record)
    response.status_message = service.status_message(record)
    return response


@router.post("/capture", response_model=PaymentResponse, status_code=201)
def capture_payment(
    body: CaptureRequest,
    db: Session = Depends(get_db),
) -> PaymentResponse:
    """Record a gateway-confirmed payment as unsettled.

    Commission and the expected settlement date are computed here; when the
    tenant has a chart of accounts a capture journal is posted as well.
    """
    service = PaymentService(db, settings)
    record = service.record_capture(body.model_dump())
    return _to_response(service, record)


@router.post("/payout-quote", response_model=PayoutQuoteResponse)
def quote_payout(body: PayoutQuoteRequest, db: Session = Depends(get_db)) -> PayoutQuoteResponse:
    """Commission a payout of ``amount`` would be charged."""
    quote = PaymentService(db, settings).quote_payout(body.amount, body.free_payouts_remaining)
    return PayoutQuoteResponse(
        amount=quote.amount,
        commission=quote.result.commission,
        net_amount=quote.result.net_amount,
        commission_type=quote.result.commission_type,
        clamped=quote.result.clamped,
        free_payout_consumed=quote.free_payout_consumed,
        free_payouts_remaining=quote.free_payouts_remaining,
        breakdown=quote.result.breakdown,
    )


@router.get("", response_model=List[PaymentResponse])
def list_payments(
    tenant_id: Optional[str] = Query(None, alias="tenantId"),
    settlement_status: Optional[str] = Query(None, alias="settlementStatus"),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
) -> List[PaymentResponse]:
    service = PaymentService(db, settings)
    records = service.list_payments(tenant_id, settlement_status, limit)
    return [_to_response(service, record) for record in records]


@router.get("/{payment_id}", response_model=PaymentResponse)
def get_payment(payment_id: UUID, db: Session = Depends(get_db)) -> PaymentResponse:
    service = PaymentService(db, settings)
    return _to_response(service, service.get_payment(payment_id))
