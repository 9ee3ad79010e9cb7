"""Reconciliation engine.

A run:
  1. Records a new run (status=running).
  2. Loads payment records captured in the date range and the statement
     lines that could settle them.
  3. Matches them by transaction_id.
  4. Applies every detection rule to matched pairs, orphans and duplicates.
  5. Persists exceptions, fills in the run summary and returns it.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.logging import get_logger
from app.core.timeutils import utc_now
from app.models.payment import SETTLEMENT_ON_HOLD, PaymentRecord
from app.models.recon_exception import ReconciliationException
from app.models.reconciliation import ReconciliationRun
from app.models.statement import StatementLine
from app.services.reconciliation.matcher import MatchResult, PaymentMatcher
from app.services.reconciliation.rules import (
    calculate_severity,
    detect_amount_mismatch,
    detect_duplicate_settlement,
    detect_fee_mismatch,
    detect_missing_settlement,
    detect_unexpected_settlement,
)

logger = get_logger(__name__)


def _day_start(value: date) -> datetime:
    return datetime(value.year, value.month, value.day)


def _day_end(value: date) -> datetime:
    return datetime(value.year, value.month, value.day, 23, 59, 59)


class ReconciliationEngine:
    """Runs a full reconciliation cycle for a given date range."""

    def __init__(self, db: Session, config: Settings) -> None:
        self.db = db
        self.config = config
        self.matcher = PaymentMatcher()
        self.tolerance = Decimal(str(config.amount_tolerance))

    # ── Public API ───────────────────────────────────────────────────

    def run(
        self,
        date_from: date,
        date_to: date,
        gateways: Optional[list[str]] = None,
        reference_date: Optional[date] = None,
    ) -> ReconciliationRun:
        """Execute a full reconciliation run.

        Args:
            date_from: First payment date to reconcile (inclusive).
            date_to: Last payment date to reconcile (inclusive).
            gateways: If provided, limit to these gateways.
            reference_date: "Today" for the missing-settlement grace period.

        Returns:
            The persisted ``ReconciliationRun`` with its exceptions.
        """
        if date_from > date_to:
            raise ValueError("date_from must not be after date_to")
        reference_date = reference_date or utc_now().date()

        run = self._create_run(date_from, date_to, gateways, reference_date)
        logger.info(
            "Reconciliation run started: id=%s range=%s..%s", run.id, date_from, date_to
        )

        try:
            payments = self._fetch_payments(date_from, date_to, gateways)
            lines = self._fetch_lines(date_from, date_to, gateways)
            logger.info("Data loaded: payments=%d statement_lines=%d", len(payments), len(lines))

            match_result = self.matcher.match(payments, lines)
            found: list[dict] = []

            for payment, line in match_result.matched:
                for rule in (detect_amount_mismatch, detect_fee_mismatch):
                    exc = rule(payment, line, self.tolerance)
                    if exc:
                        found.append(exc)

            for payment in match_result.unmatched_payments:
                exc = detect_missing_settlement(
                    payment, self.config.settlement_delay_threshold_days, reference_date
                )
                if exc:
                    found.append(exc)

            for txn_id, dup_lines in match_result.duplicates.items():
                exc = detect_duplicate_settlement(txn_id, dup_lines)
                if exc:
                    found.append(exc)

            known_elsewhere = self._captured_ids(
                {line.transaction_id for line in match_result.unmatched_lines}
            )
            for line in match_result.unmatched_lines:
                # lines for payments outside this window are not unexpected
                if line.transaction_id not in known_elsewhere:
                    found.append(detect_unexpected_settlement(line))

            for item in found:
                item["severity"] = calculate_severity(item.get("difference_amount"), self.config)

            saved = self._save_exceptions(found, run.id)
            self._finalize_run(run, payments, lines, match_result, saved)

            logger.info(
                "Reconciliation complete: id=%s matched=%d exceptions=%d",
                run.id,
                run.matched_count,
                len(saved),
            )
        except Exception as exc:
            self.db.rollback()
            failed = self.db.get(ReconciliationRun, run.id)
            if failed is not None:
                failed.status = "failed"
                failed.error_message = str(exc)
                failed.completed_at = utc_now()
                self.db.commit()
            logger.exception("Reconciliation run failed: id=%s", run.id)
            raise

        return run

    # ── Private helpers ──────────────────────────────────────────────

    def _create_run(
        self,
        date_from: date,
        date_to: date,
        gateways: Optional[list[str]],
        reference_date: date,
    ) -> ReconciliationRun:
        run = ReconciliationRun(
            id=uuid.uuid4(),
            started_at=utc_now(),
            date_range_start=date_from,
            date_range_end=date_to,
            reference_date=reference_date,
            gateways=sorted(gateways) if gateways else None,
            status="running",
        )
        self.db.add(run)
        self.db.commit()
        return run

    def _fetch_payments(
        self, date_from: date, date_to: date, gateways: Optional[list[str]]
    ) -> list[PaymentRecord]:
        query = (
            self.db.query(PaymentRecord)
            .filter(PaymentRecord.settlement_status != SETTLEMENT_ON_HOLD)
            .filter(PaymentRecord.paid_at >= _day_start(date_from))
            .filter(PaymentRecord.paid_at <= _day_end(date_to))
        )
        if gateways:
            query = query.filter(PaymentRecord.gateway.in_(gateways))
        return query.all()

    def _fetch_lines(
        self, date_from: date, date_to: date, gateways: Optional[list[str]]
    ) -> list[StatementLine]:
        """Lines settled in the range, extended by the settlement grace period."""
        window_end = date_to + timedelta(days=self.config.settlement_delay_threshold_days)
        query = (
            self.db.query(StatementLine)
            .filter(StatementLine.settled_at >= _day_start(date_from))
            .filter(StatementLine.settled_at <= _day_end(window_end))
        )
        if gateways:
            query = query.filter(StatementLine.gateway.in_(gateways))
        return query.all()

    def _captured_ids(self, transaction_ids: set[str]) -> set[str]:
        if not transaction_ids:
            return set()
        rows = (
            self.db.query(PaymentRecord.transaction_id)
            .filter(PaymentRecord.transaction_id.in_(transaction_ids))
            .all()
        )
        return {row.transaction_id for row in rows}

    def _save_exceptions(
        self, found: list[dict], run_id: uuid.UUID
    ) -> list[ReconciliationException]:
        db_objects: list[ReconciliationException] = []
        for item in found:
            obj = ReconciliationException(
                id=uuid.uuid4(),
                transaction_id=item["transaction_id"],
                statement_line_id=item.get("statement_line_id"),
                type=item["type"],
                severity=item["severity"],
                expected_value=item.get("expected_value"),
                actual_value=item.get("actual_value"),
                difference_amount=item.get("difference_amount"),
                gateway=item.get("gateway"),
                description=item.get("description"),
                status="pending",
                run_id=run_id,
            )
            self.db.add(obj)
            db_objects.append(obj)

        self.db.flush()
        return db_objects

    def _finalize_run(
        self,
        run: ReconciliationRun,
        payments: list[PaymentRecord],
        lines: list[StatementLine],
        match_result: MatchResult,
        exceptions: list[ReconciliationException],
    ) -> None:
        total_expected = sum((Decimal(str(p.amount)) for p in payments), Decimal("0"))
        total_settled = sum(
            (Decimal(str(line.gross_amount or 0)) for line in lines), Decimal("0")
        )
        total_exceptions = sum(
            (Decimal(str(e.difference_amount or 0)) for e in exceptions), Decimal("0")
        )

        by_type: dict[str, int] = {}
        by_severity: dict[str, int] = {}
        by_gateway: dict[str, int] = {}
        for e in exceptions:
            by_type[e.type] = by_type.get(e.type, 0) + 1
            by_severity[e.severity] = by_severity.get(e.severity, 0) + 1
            if e.gateway:
                by_gateway[e.gateway] = by_gateway.get(e.gateway, 0) + 1

        run.completed_at = utc_now()
        run.status = "completed"
        run.total_payments = len(payments)
        run.total_statement_lines = len(lines)
        run.matched_count = len(match_result.matched)
        run.exception_count = len(exceptions)
        run.total_expected_amount = total_expected
        run.total_settled_amount = total_settled
        run.total_exception_amount = total_exceptions
        run.summary = {
            "by_type": by_type,
            "by_severity": by_severity,
            "by_gateway": by_gateway,
        }

        self.db.commit()
