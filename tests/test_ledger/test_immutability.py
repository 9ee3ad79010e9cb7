"""Posted journal entries can never be changed or removed."""

from __future__ import annotations

from decimal import Decimal

import pytest

from app.core.exceptions import ImmutableEntry
from app.models.ledger import JournalEntry
from app.services.ledger.service import LedgerService


@pytest.fixture
def posted_entry(db_session, tenant_accounts):
    return LedgerService(db_session).post_journal_entry(
        "merchant-1",
        "capture",
        [
            {"account_id": tenant_accounts["gateway_receivable"].id, "side": "dr", "amount": 500},
            {"account_id": tenant_accounts["revenue"].id, "side": "cr", "amount": 500},
        ],
        memo="original memo",
    )


def test_service_refuses_update(db_session, posted_entry):
    with pytest.raises(ImmutableEntry):
        LedgerService(db_session).update_journal_entry(posted_entry.id, {"memo": "edited"})
    db_session.expire_all()
    assert db_session.get(JournalEntry, posted_entry.id).memo == "original memo"


def test_service_refuses_delete(db_session, posted_entry):
    with pytest.raises(ImmutableEntry):
        LedgerService(db_session).delete_journal_entry(posted_entry.id)
    assert db_session.get(JournalEntry, posted_entry.id) is not None


def test_orm_refuses_entry_change(db_session, posted_entry):
    posted_entry.memo = "sneaky"
    with pytest.raises(ImmutableEntry):
        db_session.flush()
    db_session.rollback()


def test_orm_refuses_posting_change(db_session, posted_entry):
    posted_entry.postings[0].amount = Decimal("1.00")
    with pytest.raises(ImmutableEntry):
        db_session.flush()
    db_session.rollback()


def test_orm_refuses_delete(db_session, posted_entry):
    db_session.delete(posted_entry.postings[1])
    with pytest.raises(ImmutableEntry):
        db_session.flush()
    db_session.rollback()


def test_entry_untouched_after_refusals(db_session, posted_entry):
    posted_entry.memo = "sneaky"
    with pytest.raises(ImmutableEntry):
        db_session.flush()
    db_session.rollback()

    detail = LedgerService(db_session).get_journal_by_id(posted_entry.id)
    assert detail.entry.memo == "original memo"
    assert detail.total_dr == detail.total_cr == Decimal("500.00")
