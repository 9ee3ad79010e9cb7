"""Default chart of accounts and sample journals for a new tenant."""

from decimal import Decimal

from sqlalchemy.orm import Session

from app.core.logging import get_logger
from app.models.ledger import Account, JournalEntry
from app.services.ledger.service import LedgerService

logger = get_logger(__name__)

GATEWAY_RECEIVABLE = "gateway_receivable"
REVENUE = "revenue"
COMMISSION_INCOME = "commission_income"
SETTLEMENT_BANK = "settlement_bank"

DEFAULT_ACCOUNTS = [
    (GATEWAY_RECEIVABLE, "Gateway Receivable", "asset"),
    (REVENUE, "Revenue", "revenue"),
    (COMMISSION_INCOME, "Commission Income", "revenue"),
    (SETTLEMENT_BANK, "Settlement Bank", "asset"),
]


def seed_tenant_accounts(db: Session, tenant_id: str, currency: str = "INR") -> list[Account]:
    """Create any missing default accounts for ``tenant_id``. Idempotent."""
    ledger = LedgerService(db)
    accounts = []
    for code, name, account_type in DEFAULT_ACCOUNTS:
        account = ledger.get_account_by_code(tenant_id, code)
        if account is None:
            account = ledger.create_account(
                tenant_id, code, name, account_type, currency, commit=False
            )
        accounts.append(account)
    db.commit()
    logger.info("Seeded %d ledger accounts for tenant=%s", len(accounts), tenant_id)
    return accounts


def seed_sample_journals(db: Session, tenant_id: str) -> list[JournalEntry]:
    """Post JE_001..JE_003 (capture, partial refund, dispute) if absent.

    Requires the default accounts; call :func:`seed_tenant_accounts` first.
    """
    ledger = LedgerService(db)
    receivable = ledger.get_account_by_code(tenant_id, GATEWAY_RECEIVABLE)
    revenue = ledger.get_account_by_code(tenant_id, REVENUE)
    if receivable is None or revenue is None:
        raise ValueError(f"Tenant {tenant_id!r} has no default accounts; seed them first")

    samples = [
        ("JE_001", "capture", "Order 1001 payment", "txn_1001", Decimal("1000.00"), "dr"),
        ("JE_002", "partial_refund", "Refund for Order 1001", "rfnd_1001", Decimal("400.00"), "cr"),
        ("JE_003", "dispute_reversal", "Chargeback on Order 1001", "dsp_1001", Decimal("200.00"), "cr"),
    ]

    posted = []
    for suffix, journal_type, memo, txn_id, amount, receivable_side in samples:
        external_id = f"{suffix}_{tenant_id}"
        existing = db.query(JournalEntry).filter(JournalEntry.external_id == external_id).first()
        if existing is not None:
            posted.append(existing)
            continue
        revenue_side = "cr" if receivable_side == "dr" else "dr"
        posted.append(
            ledger.post_journal_entry(
                tenant_id,
                journal_type,
                [
                    {"account_id": receivable.id, "side": receivable_side, "amount": amount},
                    {"account_id": revenue.id, "side": revenue_side, "amount": amount},
                ],
                order_id="1001",
                txn_id=txn_id,
                memo=memo,
                external_id=external_id,
            )
        )
    return posted
