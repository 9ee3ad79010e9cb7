"""Exception work queue and reconciliation overview metrics."""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.exceptions import NotFound
from app.core.logging import get_logger
from app.core.timeutils import utc_now
from app.models.ledger import JournalEntry
from app.models.payment import SETTLEMENT_SETTLED, SETTLEMENT_UNSETTLED, PaymentRecord
from app.models.recon_exception import EXCEPTION_STATUSES, ReconciliationException
from app.models.reconciliation import ReconciliationRun

logger = get_logger(__name__)

# pending -> investigating -> resolved; pending may be resolved directly
ALLOWED_TRANSITIONS: dict[str, tuple[str, ...]] = {
    "pending": ("investigating", "resolved"),
    "investigating": ("resolved",),
    "resolved": (),
}


def list_exceptions(
    db: Session,
    *,
    status: Optional[str] = None,
    type: Optional[str] = None,
    severity: Optional[str] = None,
    gateway: Optional[str] = None,
    run_id: Optional[uuid.UUID] = None,
    skip: int = 0,
    limit: int = 50,
) -> tuple[int, list[ReconciliationException]]:
    query = db.query(ReconciliationException)
    if status:
        query = query.filter(ReconciliationException.status == status)
    if type:
        query = query.filter(ReconciliationException.type == type)
    if severity:
        query = query.filter(ReconciliationException.severity == severity)
    if gateway:
        query = query.filter(ReconciliationException.gateway == gateway)
    if run_id:
        query = query.filter(ReconciliationException.run_id == run_id)

    total = query.count()
    items = (
        query.order_by(ReconciliationException.created_at.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
    return total, items


def get_exception(db: Session, exception_id: uuid.UUID) -> ReconciliationException:
    item = db.get(ReconciliationException, exception_id)
    if item is None:
        raise NotFound("Reconciliation exception not found", exceptionId=str(exception_id))
    return item


def update_exception_status(
    db: Session,
    exception_id: uuid.UUID,
    status: str,
    note: Optional[str] = None,
    adjustment_journal_id: Optional[uuid.UUID] = None,
) -> ReconciliationException:
    """Move an exception along its workflow.

    Raises:
        ValueError: unknown status or a transition the workflow forbids.
        NotFound: unknown exception or adjustment journal.
    """
    if status not in EXCEPTION_STATUSES:
        raise ValueError(f"status must be one of {', '.join(EXCEPTION_STATUSES)}")

    item = get_exception(db, exception_id)
    if status != item.status and status not in ALLOWED_TRANSITIONS[item.status]:
        raise ValueError(f"Cannot move exception from {item.status!r} to {status!r}")

    if adjustment_journal_id is not None:
        if db.get(JournalEntry, adjustment_journal_id) is None:
            raise NotFound("Adjustment journal not found", entryId=str(adjustment_journal_id))
        item.adjustment_journal_id = adjustment_journal_id

    item.status = status
    if note:
        item.resolution_note = note
    if status == "resolved":
        item.resolved_at = utc_now()
    db.commit()

    logger.info("Exception %s moved to %s", item.id, status)
    return item


def get_overview(db: Session) -> dict[str, Any]:
    """Headline numbers for the reconciliation dashboard."""
    settled = (
        db.query(func.count(PaymentRecord.id))
        .filter(PaymentRecord.settlement_status == SETTLEMENT_SETTLED)
        .scalar()
    )
    unsettled = (
        db.query(func.count(PaymentRecord.id))
        .filter(PaymentRecord.settlement_status == SETTLEMENT_UNSETTLED)
        .scalar()
    )

    by_status: dict[str, int] = {s: 0 for s in EXCEPTION_STATUSES}
    for status, count in (
        db.query(ReconciliationException.status, func.count(ReconciliationException.id))
        .group_by(ReconciliationException.status)
        .all()
    ):
        by_status[status] = count

    open_amount = Decimal("0")
    for (amount,) in db.query(ReconciliationException.difference_amount).filter(
        ReconciliationException.status != "resolved"
    ):
        open_amount += Decimal(str(amount or 0))

    last_run = (
        db.query(ReconciliationRun)
        .filter(ReconciliationRun.status == "completed")
        .order_by(ReconciliationRun.completed_at.desc())
        .first()
    )

    return {
        "settled_payments": settled or 0,
        "unsettled_payments": unsettled or 0,
        "exceptions_by_status": by_status,
        "open_exception_amount": open_amount,
        "last_run_id": last_run.id if last_run else None,
        "last_run_at": last_run.completed_at if last_run else None,
        "match_rate": last_run.match_rate if last_run else 0.0,
        "total_runs": db.query(func.count(ReconciliationRun.id)).scalar() or 0,
    }
