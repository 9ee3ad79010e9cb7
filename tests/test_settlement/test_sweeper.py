"""Integration tests for the settlement sweeper (SQLite session)."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.orm import sessionmaker

from app.core.config import Settings
from app.models.ledger import JournalEntry
from app.models.payment import PaymentRecord
from app.services.settlement.sweeper import SettlementSweeper

NOW = datetime(2024, 1, 17, 6, 0)  # Wednesday 11:30 IST


def _relative_config(minutes: int = 20) -> Settings:
    return Settings(
        database_url="sqlite://",
        settlement_mode="relative_minutes",
        settlement_minutes=minutes,
        sweeper_enabled=False,
    )


def _payment(db, txn_id: str, paid_at: datetime, **kwargs) -> PaymentRecord:
    values = {
        "id": uuid.uuid4(),
        "transaction_id": txn_id,
        "tenant_id": "merchant-1",
        "gateway": "razorpay",
        "amount": Decimal("1000.00"),
        "commission": Decimal("44.84"),
        "net_amount": Decimal("955.16"),
        "commission_type": "percentage",
        "paid_at": paid_at,
        "expected_settlement_date": paid_at + timedelta(minutes=20),
    }
    values.update(kwargs)
    record = PaymentRecord(**values)
    db.add(record)
    db.commit()
    return record


class TestSweep:
    def test_settles_due_records_only(self, db_session):
        due = _payment(db_session, "pay_due", NOW - timedelta(minutes=30))
        fresh = _payment(db_session, "pay_fresh", NOW - timedelta(minutes=5))

        result = SettlementSweeper(db_session, _relative_config()).sweep(NOW)

        assert result.settled_count == 1
        assert result.not_ready_count == 1
        assert result.failed_count == 0

        db_session.refresh(due)
        db_session.refresh(fresh)
        assert due.settlement_status == "settled"
        assert due.settlement_date == NOW
        assert fresh.settlement_status == "unsettled"
        assert fresh.settlement_date is None

    def test_boundary_nineteen_vs_twenty_minutes(self, db_session):
        _payment(db_session, "pay_19", NOW - timedelta(minutes=19))
        _payment(db_session, "pay_20", NOW - timedelta(minutes=20))

        result = SettlementSweeper(db_session, _relative_config()).sweep(NOW)

        assert result.settled_ids and len(result.settled_ids) == 1
        settled = db_session.query(PaymentRecord).filter_by(settlement_status="settled").one()
        assert settled.transaction_id == "pay_20"

    def test_second_sweep_is_a_no_op(self, db_session):
        _payment(db_session, "pay_1", NOW - timedelta(hours=1))
        _payment(db_session, "pay_2", NOW - timedelta(hours=2))
        sweeper = SettlementSweeper(db_session, _relative_config())

        first = sweeper.sweep(NOW)
        second = sweeper.sweep(NOW)

        assert first.settled_count == 2
        assert second.settled_count == 0
        assert second.not_ready_count == 0

    def test_backfills_missing_fields(self, db_session):
        record = _payment(
            db_session,
            "pay_backfill",
            NOW - timedelta(minutes=1),
            commission=None,
            net_amount=None,
            commission_type=None,
            expected_settlement_date=None,
        )

        result = SettlementSweeper(db_session, _relative_config()).sweep(NOW)

        assert result.not_ready_count == 1
        db_session.refresh(record)
        assert record.expected_settlement_date == NOW - timedelta(minutes=1) + timedelta(minutes=20)
        assert record.commission == Decimal("44.84")
        assert record.net_amount == Decimal("955.16")


class TestSweepFailures:
    def test_one_failure_does_not_abort_the_sweep(self, db_session, monkeypatch):
        _payment(db_session, "pay_ok", NOW - timedelta(hours=1))
        broken = _payment(db_session, "pay_broken", NOW - timedelta(hours=2))

        sweeper = SettlementSweeper(db_session, _relative_config())
        original = sweeper._post_settlement_journal

        def flaky(record):
            if record.transaction_id == "pay_broken":
                raise RuntimeError("ledger unavailable")
            original(record)

        monkeypatch.setattr(sweeper, "_post_settlement_journal", flaky)
        result = sweeper.sweep(NOW)

        assert result.settled_count == 1
        assert result.failed_count == 1
        assert result.failed_ids == [str(broken.id)]

        db_session.expire_all()
        assert db_session.get(PaymentRecord, broken.id).settlement_status == "unsettled"

    def test_record_settled_elsewhere_is_not_counted(self, db_session, monkeypatch):
        """Another sweep wins the race between the read and the conditional update."""
        record = _payment(db_session, "pay_race", NOW - timedelta(hours=1))
        other_session = sessionmaker(bind=db_session.get_bind())()

        sweeper = SettlementSweeper(db_session, _relative_config())
        original_backfill = sweeper._backfill

        def settle_concurrently(rec, policy):
            original_backfill(rec, policy)
            other_session.execute(
                update(PaymentRecord)
                .where(PaymentRecord.id == rec.id)
                .values(settlement_status="settled", settlement_date=NOW)
            )
            other_session.commit()

        monkeypatch.setattr(sweeper, "_backfill", settle_concurrently)
        try:
            result = sweeper.sweep(NOW)
        finally:
            other_session.close()

        assert result.settled_count == 0
        db_session.expire_all()
        assert db_session.get(PaymentRecord, record.id).settlement_status == "settled"


class TestSettlementJournal:
    def test_posts_journal_when_accounts_exist(self, db_session, tenant_accounts):
        _payment(db_session, "pay_journal", NOW - timedelta(hours=1))

        SettlementSweeper(db_session, _relative_config()).sweep(NOW)

        entry = db_session.query(JournalEntry).filter_by(txn_id="pay_journal").one()
        assert entry.type == "other"
        assert entry.memo == "settlement"
        sides = {(p.account.code, p.side): p.amount for p in entry.postings}
        assert sides == {
            ("settlement_bank", "dr"): Decimal("1000.00"),
            ("gateway_receivable", "cr"): Decimal("1000.00"),
        }

    def test_no_journal_without_accounts(self, db_session):
        _payment(db_session, "pay_plain", NOW - timedelta(hours=1))

        result = SettlementSweeper(db_session, _relative_config()).sweep(NOW)

        assert result.settled_count == 1
        assert db_session.query(JournalEntry).count() == 0

    def test_journal_only_posted_once(self, db_session, tenant_accounts):
        _payment(db_session, "pay_once", NOW - timedelta(hours=1))
        sweeper = SettlementSweeper(db_session, _relative_config())

        sweeper.sweep(NOW)
        sweeper.sweep(NOW + timedelta(minutes=15))

        assert db_session.query(JournalEntry).filter_by(txn_id="pay_once").count() == 1
