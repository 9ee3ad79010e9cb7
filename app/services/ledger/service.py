"""Ledger service - tenant-scoped double-entry journal posting.

Rules enforced on every post, in order (the first violation wins):
  1. at least one posting,
  2. every posting has side dr|cr, a finite amount >= 0 in whole cents
     and an account id,
  3. every account exists and belongs to the entry's tenant,
  4. sum(dr) == sum(cr) within EPSILON.

A journal entry and all its postings are written in one transaction and
are never updated or deleted afterwards; corrections are new entries.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Optional, Sequence

from sqlalchemy.orm import Session

from app.core.exceptions import (
    CrossTenantAccount,
    DuplicateAccount,
    DuplicateJournal,
    EmptyJournal,
    ImmutableEntry,
    InvalidJournalType,
    InvalidPosting,
    NotFound,
    UnbalancedJournal,
    UnknownAccount,
)
from app.core.logging import get_logger
from app.core.timeutils import utc_now
from app.models.ledger import ACCOUNT_TYPES, JOURNAL_TYPES, SIDES, Account, JournalEntry, Posting

logger = get_logger(__name__)

EPSILON = Decimal("0.000001")
CENT = Decimal("0.01")
CORRECTION_TYPES = ("adjustment", "dispute_reversal")


@dataclass(frozen=True)
class PostingLine:
    """Validated posting input."""

    account_id: uuid.UUID
    side: str
    amount: Decimal
    ref: str = ""


@dataclass
class JournalDetail:
    """A journal entry with totals recomputed from its postings."""

    entry: JournalEntry
    postings: list[Posting]
    total_dr: Decimal
    total_cr: Decimal

    @property
    def balanced(self) -> bool:
        return is_balanced(self.total_dr, self.total_cr)


def sum_sides(postings: Iterable[Any]) -> tuple[Decimal, Decimal]:
    """Return (total_dr, total_cr) for objects or dicts with side/amount."""
    total_dr = Decimal("0")
    total_cr = Decimal("0")
    for p in postings:
        side = p["side"] if isinstance(p, Mapping) else p.side
        amount = p["amount"] if isinstance(p, Mapping) else p.amount
        if side == "dr":
            total_dr += Decimal(str(amount))
        else:
            total_cr += Decimal(str(amount))
    return total_dr, total_cr


def is_balanced(total_dr: Decimal, total_cr: Decimal) -> bool:
    return abs(total_dr - total_cr) <= EPSILON


def _parse_posting_amount(raw: Any, index: int) -> Decimal:
    if raw is None or isinstance(raw, bool):
        raise InvalidPosting(f"Posting {index}: amount is required")
    try:
        if isinstance(raw, str):
            value = Decimal(raw.replace(",", "").strip())
        else:
            value = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        raise InvalidPosting(f"Posting {index}: amount {raw!r} is not a number")
    if not value.is_finite():
        raise InvalidPosting(f"Posting {index}: amount must be finite")
    if value < 0:
        raise InvalidPosting(f"Posting {index}: amount must be non-negative")
    try:
        whole_cents = value == value.quantize(CENT)
    except InvalidOperation:
        raise InvalidPosting(f"Posting {index}: amount {raw!r} is out of range")
    if not whole_cents:
        raise InvalidPosting(f"Posting {index}: amount {raw!r} has more than 2 decimal places")
    return value


def _parse_account_id(raw: Any) -> Optional[uuid.UUID]:
    if isinstance(raw, uuid.UUID):
        return raw
    try:
        return uuid.UUID(str(raw))
    except (TypeError, ValueError):
        return None


def new_external_id() -> str:
    return f"JE_{utc_now():%Y%m%d%H%M%S}_{uuid.uuid4().hex[:8]}"


class LedgerService:
    """Posts and reads journal entries for one database session."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # ── Posting ──────────────────────────────────────────────────────

    def validate_postings(
        self,
        tenant_id: str,
        postings: Sequence[Mapping[str, Any]],
    ) -> list[PostingLine]:
        """Apply rules 1-4 and return the normalized lines."""
        if not postings:
            raise EmptyJournal("A journal entry needs at least one posting")

        checked: list[tuple[Any, str, Decimal, str]] = []
        for index, raw in enumerate(postings):
            side = raw.get("side")
            if side not in SIDES:
                raise InvalidPosting(f"Posting {index}: side must be 'dr' or 'cr', got {side!r}")
            amount = _parse_posting_amount(raw.get("amount"), index)
            account_ref = raw.get("account_id")
            if account_ref in (None, ""):
                raise InvalidPosting(f"Posting {index}: account_id is required")
            checked.append((account_ref, side, amount, str(raw.get("ref") or "")))

        resolved: list[PostingLine] = []
        for index, (account_ref, side, amount, ref) in enumerate(checked):
            account_id = _parse_account_id(account_ref)
            account = self.db.get(Account, account_id) if account_id else None
            if account is None:
                raise UnknownAccount(f"Posting {index}: account {account_ref!r} not found")
            if account.tenant_id != tenant_id:
                raise CrossTenantAccount(
                    f"Posting {index}: account {account.code!r} belongs to another tenant",
                    accountId=str(account.id),
                )
            resolved.append(PostingLine(account_id=account.id, side=side, amount=amount, ref=ref))

        total_dr, total_cr = sum_sides(
            {"side": line.side, "amount": line.amount} for line in resolved
        )
        if not is_balanced(total_dr, total_cr):
            raise UnbalancedJournal(total_dr, total_cr)
        return resolved

    def post_journal_entry(
        self,
        tenant_id: str,
        type: str,
        postings: Sequence[Mapping[str, Any]],
        *,
        order_id: Optional[str] = None,
        txn_id: Optional[str] = None,
        reference: Optional[str] = None,
        memo: Optional[str] = None,
        external_id: Optional[str] = None,
        commit: bool = True,
    ) -> JournalEntry:
        """Validate and atomically persist a posted journal entry.

        With ``commit=False`` the rows are only flushed, so the caller's
        surrounding transaction decides whether they survive.
        """
        if not tenant_id:
            raise InvalidPosting("tenant_id is required")
        if type not in JOURNAL_TYPES:
            raise InvalidJournalType(
                f"Unknown journal type {type!r}; expected one of {', '.join(JOURNAL_TYPES)}"
            )

        try:
            lines = self.validate_postings(tenant_id, postings)
        except UnbalancedJournal as exc:
            logger.warning(
                "Journal rejected (not balanced): tenant=%s type=%s dr=%s cr=%s",
                tenant_id,
                type,
                exc.total_dr,
                exc.total_cr,
            )
            raise

        if external_id and self._external_id_taken(external_id):
            raise DuplicateJournal(
                f"Journal entry {external_id!r} already exists", externalId=external_id
            )

        now = utc_now()
        entry = JournalEntry(
            id=uuid.uuid4(),
            external_id=external_id or new_external_id(),
            tenant_id=tenant_id,
            type=type,
            order_id=order_id,
            txn_id=txn_id,
            reference=reference,
            memo=memo,
            is_posted=True,
            posted_at=now,
        )
        entry.postings = [
            Posting(
                id=uuid.uuid4(),
                account_id=line.account_id,
                line_no=line_no,
                side=line.side,
                amount=line.amount,
                ref=line.ref or None,
            )
            for line_no, line in enumerate(lines)
        ]

        try:
            self.db.add(entry)
            self.db.flush()
            if commit:
                self.db.commit()
        except Exception:
            if commit:
                self.db.rollback()
            logger.exception("Journal write failed: tenant=%s type=%s", tenant_id, type)
            raise

        logger.info(
            "Journal posted: external_id=%s type=%s tenant=%s postings=%d",
            entry.external_id,
            type,
            tenant_id,
            len(lines),
        )
        return entry

    def reverse_journal_entry(
        self,
        entry_id: uuid.UUID,
        *,
        type: str = "dispute_reversal",
        memo: Optional[str] = None,
    ) -> JournalEntry:
        """Post a new entry that mirrors ``entry_id`` with every side swapped."""
        if type not in CORRECTION_TYPES:
            raise InvalidJournalType(f"Reversals must be one of {', '.join(CORRECTION_TYPES)}")
        original = self._get_entry(entry_id)
        mirrored = [
            {
                "account_id": p.account_id,
                "side": "cr" if p.side == "dr" else "dr",
                "amount": p.amount,
                "ref": p.ref,
            }
            for p in original.postings
        ]
        return self.post_journal_entry(
            original.tenant_id,
            type,
            mirrored,
            order_id=original.order_id,
            txn_id=original.txn_id,
            reference=original.external_id,
            memo=memo or f"Reversal of {original.external_id}",
        )

    # ── Immutability ─────────────────────────────────────────────────

    def update_journal_entry(self, entry_id: uuid.UUID, changes: Mapping[str, Any]) -> JournalEntry:
        """Posted entries cannot change; this always refuses them."""
        entry = self._get_entry(entry_id)
        if entry.is_posted:
            logger.warning("Refused update of posted journal %s", entry.external_id)
            raise ImmutableEntry(entry.id)
        for field_name in ("memo", "reference", "order_id", "txn_id"):
            if field_name in changes:
                setattr(entry, field_name, changes[field_name])
        self.db.commit()
        return entry

    def delete_journal_entry(self, entry_id: uuid.UUID) -> None:
        entry = self._get_entry(entry_id)
        if entry.is_posted:
            logger.warning("Refused delete of posted journal %s", entry.external_id)
            raise ImmutableEntry(entry.id)
        for posting in list(entry.postings):
            self.db.delete(posting)
        self.db.delete(entry)
        self.db.commit()

    # ── Reads ────────────────────────────────────────────────────────

    def get_journal(self, tenant_id: Optional[str] = None, limit: int = 50) -> list[JournalEntry]:
        """Entries newest first."""
        query = self.db.query(JournalEntry)
        if tenant_id:
            query = query.filter(JournalEntry.tenant_id == tenant_id)
        return (
            query.order_by(JournalEntry.posted_at.desc(), JournalEntry.created_at.desc())
            .limit(limit)
            .all()
        )

    def get_journal_by_id(self, entry_id: uuid.UUID) -> JournalDetail:
        """Entry plus postings, with totals recomputed from the stored rows."""
        entry = self._get_entry(entry_id)
        postings = (
            self.db.query(Posting)
            .filter(Posting.journal_entry_id == entry.id)
            .order_by(Posting.line_no)
            .all()
        )
        total_dr, total_cr = sum_sides(postings)
        return JournalDetail(entry=entry, postings=postings, total_dr=total_dr, total_cr=total_cr)

    def find_unbalanced_entries(self, tenant_id: Optional[str] = None) -> list[uuid.UUID]:
        """Re-check every posted entry; return the ids that do not balance."""
        query = (
            self.db.query(Posting.journal_entry_id, Posting.side, Posting.amount)
            .join(JournalEntry, JournalEntry.id == Posting.journal_entry_id)
            .filter(JournalEntry.is_posted.is_(True))
        )
        if tenant_id:
            query = query.filter(JournalEntry.tenant_id == tenant_id)

        totals: dict[uuid.UUID, list[Decimal]] = {}
        for journal_id, side, amount in query.all():
            bucket = totals.setdefault(journal_id, [Decimal("0"), Decimal("0")])
            bucket[0 if side == "dr" else 1] += Decimal(str(amount))

        return [
            journal_id
            for journal_id, (total_dr, total_cr) in totals.items()
            if not is_balanced(total_dr, total_cr)
        ]

    def get_overview(self, tenant_id: Optional[str] = None) -> dict[str, Any]:
        """Counts plus an integrity flag over all posted journals.

        This walks every posting, so it belongs in a periodic audit rather
        than on a hot request path at scale.
        """
        accounts = self.db.query(Account)
        journals = self.db.query(JournalEntry)
        postings = self.db.query(Posting).join(
            JournalEntry, JournalEntry.id == Posting.journal_entry_id
        )
        if tenant_id:
            accounts = accounts.filter(Account.tenant_id == tenant_id)
            journals = journals.filter(JournalEntry.tenant_id == tenant_id)
            postings = postings.filter(JournalEntry.tenant_id == tenant_id)

        unbalanced = self.find_unbalanced_entries(tenant_id)
        if unbalanced:
            logger.error("Ledger integrity check failed: unbalanced=%s", unbalanced)

        return {
            "account_count": accounts.count(),
            "journal_count": journals.count(),
            "posting_count": postings.count(),
            "all_balanced": not unbalanced,
            "unbalanced_entry_ids": unbalanced,
            "invariants": {
                "doubleEntry": True,
                "tenantScoped": True,
                "immutability": "posted journals are immutable",
            },
        }

    # ── Accounts ─────────────────────────────────────────────────────

    def list_accounts(self, tenant_id: Optional[str] = None) -> list[Account]:
        query = self.db.query(Account)
        if tenant_id:
            query = query.filter(Account.tenant_id == tenant_id)
        return query.order_by(Account.tenant_id, Account.code).all()

    def get_account_by_code(self, tenant_id: str, code: str) -> Optional[Account]:
        return (
            self.db.query(Account)
            .filter(Account.tenant_id == tenant_id, Account.code == code)
            .first()
        )

    def create_account(
        self,
        tenant_id: str,
        code: str,
        name: str,
        type: str,
        currency: str = "INR",
        *,
        commit: bool = True,
    ) -> Account:
        if type not in ACCOUNT_TYPES:
            raise InvalidPosting(
                f"Unknown account type {type!r}; expected one of {', '.join(ACCOUNT_TYPES)}"
            )
        if self.get_account_by_code(tenant_id, code) is not None:
            raise DuplicateAccount(f"Account {code!r} already exists for tenant {tenant_id!r}")

        account = Account(
            id=uuid.uuid4(),
            tenant_id=tenant_id,
            code=code,
            name=name,
            type=type,
            currency=currency.upper(),
        )
        self.db.add(account)
        self.db.flush()
        if commit:
            self.db.commit()
        logger.info("Account created: tenant=%s code=%s type=%s", tenant_id, code, type)
        return account

    # ── Private helpers ──────────────────────────────────────────────

    def _external_id_taken(self, external_id: str) -> bool:
        return (
            self.db.query(JournalEntry.id).filter(JournalEntry.external_id == external_id).first()
            is not None
        )

    def _get_entry(self, entry_id: uuid.UUID) -> JournalEntry:
        entry = self.db.get(JournalEntry, entry_id)
        if entry is None:
            raise NotFound("Journal entry not found", entryId=str(entry_id))
        return entry
