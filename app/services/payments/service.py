"""Payment capture recording and payout quotes.

A capture event is turned into a PaymentRecord only after its commission
and expected settlement date have been computed successfully; an invalid
amount never produces a row.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.exceptions import DuplicatePayment, NotFound
from app.core.logging import get_logger
from app.core.timeutils import to_naive_utc, utc_now
from app.models.payment import SETTLEMENT_UNSETTLED, PaymentRecord
from app.services.commission.engine import PAYIN, PAYOUT, CommissionEngine, CommissionResult
from app.services.ledger.seed import COMMISSION_INCOME, GATEWAY_RECEIVABLE, REVENUE
from app.services.ledger.service import LedgerService
from app.services.settlement.policy_store import load_policy
from app.services.settlement.scheduler import (
    compute_expected_settlement,
    settlement_status_message,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class PayoutQuote:
    amount: Decimal
    result: CommissionResult
    free_payout_consumed: bool
    free_payouts_remaining: int


class PaymentService:
    def __init__(
        self,
        db: Session,
        config: Settings,
        commission_engine: Optional[CommissionEngine] = None,
    ) -> None:
        self.db = db
        self.config = config
        self.commission_engine = commission_engine or CommissionEngine.from_settings(config)
        self.ledger = LedgerService(db)

    # ── Capture ──────────────────────────────────────────────────────

    def record_capture(self, event: Mapping[str, Any]) -> PaymentRecord:
        """Persist a captured payment as ``unsettled``.

        Args:
            event: ``transaction_id``, ``tenant_id``, ``amount`` and optionally
                ``currency``, ``paid_at``, ``gateway``, ``order_id``,
                ``direction`` and ``metadata``.

        Raises:
            InvalidAmount: bad amount; nothing is written.
            DuplicatePayment: ``transaction_id`` already recorded.
        """
        direction = event.get("direction") or PAYIN
        computed = self.commission_engine.compute_commission(event.get("amount"), direction)
        gross = computed.commission + computed.net_amount

        transaction_id = event["transaction_id"]
        existing = (
            self.db.query(PaymentRecord.id)
            .filter(PaymentRecord.transaction_id == transaction_id)
            .first()
        )
        if existing is not None:
            raise DuplicatePayment(f"Payment {transaction_id!r} already recorded")

        paid_at = to_naive_utc(event["paid_at"]) if event.get("paid_at") else utc_now()
        policy = load_policy(self.db, self.config)
        expected = to_naive_utc(compute_expected_settlement(paid_at, policy))

        record = PaymentRecord(
            id=uuid.uuid4(),
            transaction_id=transaction_id,
            tenant_id=event["tenant_id"],
            gateway=event.get("gateway"),
            direction=direction,
            amount=gross,
            currency=(event.get("currency") or "INR").upper(),
            commission=computed.commission,
            net_amount=computed.net_amount,
            commission_type=computed.commission_type,
            paid_at=paid_at,
            settlement_status=SETTLEMENT_UNSETTLED,
            expected_settlement_date=expected,
            order_id=event.get("order_id"),
            metadata_json=event.get("metadata"),
        )

        try:
            self.db.add(record)
            self.db.flush()
            if direction == PAYIN:
                self._post_capture_journal(record)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise DuplicatePayment(f"Payment {transaction_id!r} already recorded")
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Payment captured: transaction_id=%s amount=%s commission=%s expected=%s",
            record.transaction_id,
            record.amount,
            record.commission,
            record.expected_settlement_date,
        )
        return record

    def _post_capture_journal(self, record: PaymentRecord) -> None:
        """Dr gateway_receivable gross / Cr revenue net / Cr commission_income fee."""
        if not self.config.ledger_auto_post:
            return
        receivable = self.ledger.get_account_by_code(record.tenant_id, GATEWAY_RECEIVABLE)
        revenue = self.ledger.get_account_by_code(record.tenant_id, REVENUE)
        commission_income = self.ledger.get_account_by_code(record.tenant_id, COMMISSION_INCOME)
        if receivable is None or revenue is None or commission_income is None:
            logger.debug("No chart of accounts for tenant=%s, capture journal skipped", record.tenant_id)
            return

        postings = [
            {"account_id": receivable.id, "side": "dr", "amount": record.amount, "ref": "gross"},
            {"account_id": revenue.id, "side": "cr", "amount": record.net_amount, "ref": "net"},
        ]
        if record.commission:
            postings.append(
                {
                    "account_id": commission_income.id,
                    "side": "cr",
                    "amount": record.commission,
                    "ref": "commission",
                }
            )
        self.ledger.post_journal_entry(
            record.tenant_id,
            "capture",
            postings,
            order_id=record.order_id,
            txn_id=record.transaction_id,
            memo=f"Capture {record.transaction_id}",
            commit=False,
        )

    # ── Reads ────────────────────────────────────────────────────────

    def list_payments(
        self,
        tenant_id: Optional[str] = None,
        settlement_status: Optional[str] = None,
        limit: int = 100,
    ) -> list[PaymentRecord]:
        query = self.db.query(PaymentRecord)
        if tenant_id:
            query = query.filter(PaymentRecord.tenant_id == tenant_id)
        if settlement_status:
            query = query.filter(PaymentRecord.settlement_status == settlement_status)
        return query.order_by(PaymentRecord.paid_at.desc()).limit(limit).all()

    def get_payment(self, payment_id: uuid.UUID) -> PaymentRecord:
        record = self.db.get(PaymentRecord, payment_id)
        if record is None:
            raise NotFound("Payment not found", paymentId=str(payment_id))
        return record

    def status_message(self, record: PaymentRecord, now: Optional[datetime] = None) -> str:
        if record.settlement_status != SETTLEMENT_UNSETTLED:
            return record.settlement_status.replace("_", " ").capitalize()
        policy = load_policy(self.db, self.config)
        expected = record.expected_settlement_date or compute_expected_settlement(
            record.paid_at, policy
        )
        return settlement_status_message(now or utc_now(), record.paid_at, expected, policy)

    # ── Payouts ──────────────────────────────────────────────────────

    def quote_payout(self, amount: Any, free_payouts_remaining: int = 0) -> PayoutQuote:
        """Commission for a payout request; flags when a free payout is used."""
        result = self.commission_engine.compute_commission(
            amount, PAYOUT, free_payouts_remaining=free_payouts_remaining
        )
        consumed = result.commission_type == "free"
        remaining = free_payouts_remaining - 1 if consumed else free_payouts_remaining
        return PayoutQuote(
            amount=result.commission + result.net_amount,
            result=result,
            free_payout_consumed=consumed,
            free_payouts_remaining=max(remaining, 0),
        )
