"""Tests for tenant account and sample journal seeding."""

from __future__ import annotations

from decimal import Decimal

import pytest

from app.models.ledger import Account, JournalEntry
from app.services.ledger.seed import DEFAULT_ACCOUNTS, seed_sample_journals, seed_tenant_accounts
from app.services.ledger.service import LedgerService


def test_seed_accounts_is_idempotent(db_session):
    first = seed_tenant_accounts(db_session, "merchant-9")
    second = seed_tenant_accounts(db_session, "merchant-9")

    assert [a.id for a in first] == [a.id for a in second]
    assert db_session.query(Account).count() == len(DEFAULT_ACCOUNTS)


def test_sample_journals(db_session, tenant_accounts):
    entries = seed_sample_journals(db_session, "merchant-1")

    assert [e.external_id for e in entries] == [
        "JE_001_merchant-1",
        "JE_002_merchant-1",
        "JE_003_merchant-1",
    ]
    assert [e.type for e in entries] == ["capture", "partial_refund", "dispute_reversal"]
    assert LedgerService(db_session).get_overview("merchant-1")["all_balanced"]


def test_sample_journals_not_duplicated(db_session, tenant_accounts):
    seed_sample_journals(db_session, "merchant-1")
    seed_sample_journals(db_session, "merchant-1")
    assert db_session.query(JournalEntry).count() == 3


def test_sample_receivable_balance(db_session, tenant_accounts):
    entries = seed_sample_journals(db_session, "merchant-1")
    receivable_id = tenant_accounts["gateway_receivable"].id
    balance = Decimal("0")
    for entry in entries:
        for posting in entry.postings:
            if posting.account_id == receivable_id:
                balance += posting.amount if posting.side == "dr" else -posting.amount
    assert balance == Decimal("400.00")


def test_sample_journals_need_accounts(db_session):
    with pytest.raises(ValueError):
        seed_sample_journals(db_session, "merchant-unknown")
