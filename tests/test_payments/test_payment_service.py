"""Integration tests for payment capture, reads and payout quotes."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from app.core.config import Settings
from app.core.exceptions import DuplicatePayment, InvalidAmount, NotFound
from app.models.ledger import JournalEntry
from app.models.payment import PaymentRecord
from app.services.payments.service import PaymentService
from app.services.settlement.policy_store import save_policy

PAID_AT = datetime(2024, 1, 15, 11, 30)  # Monday 17:00 IST


def _event(**overrides):
    event = {
        "transaction_id": "pay_001",
        "tenant_id": "merchant-1",
        "amount": 1000,
        "gateway": "razorpay",
        "order_id": "order_1001",
        "paid_at": PAID_AT,
    }
    event.update(overrides)
    return event


class TestRecordCapture:
    def test_capture_computes_commission_and_expected_date(self, db_session, config):
        record = PaymentService(db_session, config).record_capture(_event())

        assert record.settlement_status == "unsettled"
        assert record.amount == Decimal("1000.00")
        assert record.commission == Decimal("44.84")
        assert record.net_amount == Decimal("955.16")
        assert record.commission_type == "percentage"
        assert record.direction == "payin"
        # after the 16:00 IST cutoff on Monday -> Wednesday 16:00 IST
        assert record.expected_settlement_date == datetime(2024, 1, 17, 10, 30)

    def test_timezone_aware_paid_at_is_stored_as_utc(self, db_session, config):
        paid_at = datetime(2024, 1, 15, 11, 30, tzinfo=timezone.utc)
        record = PaymentService(db_session, config).record_capture(_event(paid_at=paid_at))
        assert record.paid_at == PAID_AT

    def test_capture_uses_saved_policy(self, db_session, config):
        save_policy(db_session, {"mode": "relative_minutes", "settlement_minutes": 20}, config)
        record = PaymentService(db_session, config).record_capture(_event())
        assert record.expected_settlement_date == datetime(2024, 1, 15, 11, 50)

    @pytest.mark.parametrize("amount", [0, -10, "abc", None, float("nan"), "0.004", "100.005"])
    def test_invalid_amount_writes_nothing(self, db_session, config, amount):
        with pytest.raises(InvalidAmount):
            PaymentService(db_session, config).record_capture(_event(amount=amount))
        assert db_session.query(PaymentRecord).count() == 0

    def test_duplicate_transaction_id(self, db_session, config):
        service = PaymentService(db_session, config)
        service.record_capture(_event())
        with pytest.raises(DuplicatePayment):
            service.record_capture(_event(amount=500))
        assert db_session.query(PaymentRecord).count() == 1

    def test_payout_direction_uses_payout_tiers(self, db_session, config):
        record = PaymentService(db_session, config).record_capture(
            _event(transaction_id="po_001", amount=300, direction="payout")
        )
        assert record.commission == Decimal("10.00")
        assert record.net_amount == Decimal("290.00")
        assert record.direction == "payout"

    def test_metadata_is_kept(self, db_session, config):
        record = PaymentService(db_session, config).record_capture(
            _event(metadata={"customer": "c_42"})
        )
        assert record.metadata_json == {"customer": "c_42"}


class TestCaptureJournal:
    def test_capture_posts_balanced_journal(self, db_session, config, tenant_accounts):
        PaymentService(db_session, config).record_capture(_event())

        entry = db_session.query(JournalEntry).filter_by(txn_id="pay_001").one()
        assert entry.type == "capture"
        lines = {(p.account.code, p.side): p.amount for p in entry.postings}
        assert lines == {
            ("gateway_receivable", "dr"): Decimal("1000.00"),
            ("revenue", "cr"): Decimal("955.16"),
            ("commission_income", "cr"): Decimal("44.84"),
        }

    def test_no_journal_for_payouts(self, db_session, config, tenant_accounts):
        PaymentService(db_session, config).record_capture(
            _event(transaction_id="po_002", amount=300, direction="payout")
        )
        assert db_session.query(JournalEntry).count() == 0

    def test_no_journal_without_accounts(self, db_session, config):
        PaymentService(db_session, config).record_capture(_event(tenant_id="merchant-new"))
        assert db_session.query(JournalEntry).count() == 0
        assert db_session.query(PaymentRecord).count() == 1

    def test_auto_post_can_be_disabled(self, db_session, tenant_accounts):
        config = Settings(database_url="sqlite://", sweeper_enabled=False, ledger_auto_post=False)
        PaymentService(db_session, config).record_capture(_event())
        assert db_session.query(JournalEntry).count() == 0


class TestReads:
    def test_list_filters(self, db_session, config):
        service = PaymentService(db_session, config)
        service.record_capture(_event(transaction_id="pay_a"))
        service.record_capture(_event(transaction_id="pay_b", tenant_id="merchant-2"))

        assert len(service.list_payments()) == 2
        assert [p.transaction_id for p in service.list_payments(tenant_id="merchant-2")] == ["pay_b"]
        assert service.list_payments(settlement_status="settled") == []

    def test_get_missing_payment(self, db_session, config):
        with pytest.raises(NotFound):
            PaymentService(db_session, config).get_payment(uuid.uuid4())

    def test_status_message_unsettled(self, db_session, config):
        service = PaymentService(db_session, config)
        record = service.record_capture(_event())
        message = service.status_message(record, now=datetime(2024, 1, 15, 12, 30))
        assert message == "Settles on Wed, 17 Jan at 16:00 (T+2)"

    def test_status_message_settled(self, db_session, config):
        service = PaymentService(db_session, config)
        record = service.record_capture(_event())
        record.settlement_status = "on_hold"
        assert service.status_message(record) == "On hold"


class TestPayoutQuote:
    def test_free_payout_consumed(self, db_session, config):
        quote = PaymentService(db_session, config).quote_payout(300, free_payouts_remaining=2)
        assert quote.result.commission == Decimal("0.00")
        assert quote.free_payout_consumed is True
        assert quote.free_payouts_remaining == 1

    def test_small_payout_without_free_quota(self, db_session, config):
        quote = PaymentService(db_session, config).quote_payout("300")
        assert quote.result.commission == Decimal("10.00")
        assert quote.amount == Decimal("300.00")
        assert quote.free_payout_consumed is False
        assert quote.free_payouts_remaining == 0

    def test_large_payout_keeps_free_quota(self, db_session, config):
        quote = PaymentService(db_session, config).quote_payout(2000, free_payouts_remaining=3)
        assert quote.result.commission == Decimal("30.00")
        assert quote.free_payouts_remaining == 3

    def test_invalid_payout_amount(self, db_session, config):
        with pytest.raises(InvalidAmount):
            PaymentService(db_session, config).quote_payout(-1)
