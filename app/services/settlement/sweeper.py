"""Settlement sweeper: promotes due unsettled payments to settled.

A sweep:
  1. Loads the current settlement policy (re-read every sweep).
  2. Fetches every unsettled payment record.
  3. Backfills commission / expected settlement date where missing.
  4. Promotes due records with a conditional UPDATE keyed on the record
     still being ``unsettled``, one transaction per record.

The conditional update makes overlapping sweeps harmless: whichever sweep
updates the row first wins, the other sees zero affected rows and moves on.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.logging import get_logger
from app.core.timeutils import to_naive_utc, utc_now
from app.models.payment import SETTLEMENT_SETTLED, SETTLEMENT_UNSETTLED, PaymentRecord
from app.services.commission.engine import CommissionEngine
from app.services.ledger.seed import GATEWAY_RECEIVABLE, SETTLEMENT_BANK
from app.services.ledger.service import LedgerService
from app.services.settlement.policy_store import load_policy
from app.services.settlement.scheduler import (
    SettlementPolicy,
    compute_expected_settlement,
    is_settlement_due,
)

logger = get_logger(__name__)


@dataclass
class SweepResult:
    settled_count: int = 0
    not_ready_count: int = 0
    failed_count: int = 0
    settled_ids: list[str] = field(default_factory=list)
    failed_ids: list[str] = field(default_factory=list)


class SettlementSweeper:
    """Runs one settlement sweep over all unsettled payment records."""

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

    # ── Public API ───────────────────────────────────────────────────

    def sweep(self, now: Optional[datetime] = None) -> SweepResult:
        now = to_naive_utc(now) if now is not None else utc_now()
        policy = load_policy(self.db, self.config)
        result = SweepResult()

        record_ids = [
            row.id
            for row in self.db.query(PaymentRecord.id)
            .filter(PaymentRecord.settlement_status == SETTLEMENT_UNSETTLED)
            .order_by(PaymentRecord.paid_at)
            .all()
        ]
        logger.info("Settlement sweep started: now=%s candidates=%d", now, len(record_ids))

        for record_id in record_ids:
            try:
                settled = self._process_record(record_id, now, policy)
            except Exception:
                self.db.rollback()
                result.failed_count += 1
                result.failed_ids.append(str(record_id))
                logger.exception("Settlement failed for payment record %s", record_id)
                continue

            if settled:
                result.settled_count += 1
                result.settled_ids.append(str(record_id))
            else:
                result.not_ready_count += 1

        logger.info(
            "Settlement sweep complete: settled=%d not_ready=%d failed=%d",
            result.settled_count,
            result.not_ready_count,
            result.failed_count,
        )
        return result

    # ── Private helpers ──────────────────────────────────────────────

    def _process_record(self, record_id, now: datetime, policy: SettlementPolicy) -> bool:
        """Settle one record if due. Commits its own transaction."""
        record = self.db.get(PaymentRecord, record_id)
        if record is None or record.settlement_status != SETTLEMENT_UNSETTLED:
            # settled by an overlapping sweep since the candidate list was read
            return False

        self._backfill(record, policy)

        if not is_settlement_due(now, record.paid_at, record.expected_settlement_date, policy):
            self.db.commit()
            return False

        outcome = self.db.execute(
            update(PaymentRecord)
            .where(
                PaymentRecord.id == record.id,
                PaymentRecord.settlement_status == SETTLEMENT_UNSETTLED,
            )
            .values(settlement_status=SETTLEMENT_SETTLED, settlement_date=now)
            .execution_options(synchronize_session=False)
        )
        if outcome.rowcount != 1:
            self.db.rollback()
            return False

        self._post_settlement_journal(record)
        self.db.commit()
        self.db.refresh(record)
        logger.info(
            "Payment settled: transaction_id=%s amount=%s", record.transaction_id, record.amount
        )
        return True

    def _backfill(self, record: PaymentRecord, policy: SettlementPolicy) -> None:
        if record.expected_settlement_date is None:
            record.expected_settlement_date = to_naive_utc(
                compute_expected_settlement(record.paid_at, policy)
            )
            logger.info(
                "Backfilled expected settlement for %s: %s",
                record.transaction_id,
                record.expected_settlement_date,
            )
        if record.commission is None or record.net_amount is None:
            computed = self.commission_engine.compute_commission(record.amount, record.direction)
            record.commission = computed.commission
            record.net_amount = computed.net_amount
            record.commission_type = computed.commission_type
            logger.info(
                "Backfilled commission for %s: %s", record.transaction_id, computed.commission
            )
        self.db.flush()

    def _post_settlement_journal(self, record: PaymentRecord) -> None:
        """Dr settlement_bank / Cr gateway_receivable, inside the caller's transaction."""
        if not self.config.ledger_auto_post:
            return
        bank = self.ledger.get_account_by_code(record.tenant_id, SETTLEMENT_BANK)
        receivable = self.ledger.get_account_by_code(record.tenant_id, GATEWAY_RECEIVABLE)
        if bank is None or receivable is None:
            return
        self.ledger.post_journal_entry(
            record.tenant_id,
            "other",
            [
                {"account_id": bank.id, "side": "dr", "amount": record.amount, "ref": "settlement"},
                {"account_id": receivable.id, "side": "cr", "amount": record.amount, "ref": "settlement"},
            ],
            order_id=record.order_id,
            txn_id=record.transaction_id,
            memo="settlement",
            commit=False,
        )
