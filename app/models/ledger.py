"""Double-entry ledger models: accounts, journal entries and postings.

Posted journal entries are immutable. The service layer refuses edits up
front; the mapper listeners at the bottom of this module are the backstop
for any code path that mutates a posted row through the ORM.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    UniqueConstraint,
    event,
    func,
    inspect,
)
from sqlalchemy.orm import Mapped, mapped_column, object_session, relationship

from app.core.database import Base
from app.core.exceptions import ImmutableEntry

ACCOUNT_TYPES = ("asset", "liability", "equity", "revenue", "expense")
JOURNAL_TYPES = ("capture", "partial_refund", "dispute_reversal", "adjustment", "other")
SIDES = ("dr", "cr")


class Account(Base):
    """Chart-of-accounts entry, scoped to one tenant (merchant)."""

    __tablename__ = "ledger_accounts"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )
    tenant_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )
    code: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(
        String(120),
        nullable=False,
    )
    type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="asset | liability | equity | revenue | expense",
    )
    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default="INR",
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=func.now(),
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_ledger_accounts_tenant_code"),
    )

    def __repr__(self) -> str:
        return f"<Account(tenant_id={self.tenant_id!r}, code={self.code!r})>"


class JournalEntry(Base):
    """A balanced set of postings recorded atomically for one tenant."""

    __tablename__ = "journal_entries"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )
    external_id: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
    )
    tenant_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )
    type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="capture | partial_refund | dispute_reversal | adjustment | other",
    )
    order_id: Mapped[Optional[str]] = mapped_column(String(100))
    txn_id: Mapped[Optional[str]] = mapped_column(String(100))
    reference: Mapped[Optional[str]] = mapped_column(String(100))
    memo: Mapped[Optional[str]] = mapped_column(String(255))
    is_posted: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )
    posted_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=func.now(),
    )

    # -- Relationships --
    postings: Mapped[list[Posting]] = relationship(
        "Posting",
        back_populates="journal_entry",
        lazy="selectin",
        order_by="Posting.line_no",
    )

    __table_args__ = (
        Index("ix_journal_tenant_created", "tenant_id", "created_at"),
        Index("ix_journal_tenant_type", "tenant_id", "type"),
    )

    def __repr__(self) -> str:
        return (
            f"<JournalEntry(external_id={self.external_id!r}, type={self.type!r}, "
            f"is_posted={self.is_posted})>"
        )


class Posting(Base):
    """One debit or credit line of a journal entry."""

    __tablename__ = "postings"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )
    journal_entry_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("journal_entries.id"),
        nullable=False,
        index=True,
    )
    account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("ledger_accounts.id"),
        nullable=False,
    )
    line_no: Mapped[int] = mapped_column(nullable=False, default=0)
    side: Mapped[str] = mapped_column(
        String(2),
        nullable=False,
        comment="dr | cr",
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(15, 2),
        nullable=False,
    )
    ref: Mapped[Optional[str]] = mapped_column(String(100))

    # -- Relationships --
    journal_entry: Mapped[JournalEntry] = relationship(
        "JournalEntry",
        back_populates="postings",
    )
    account: Mapped[Account] = relationship(
        "Account",
        lazy="joined",
    )

    def __repr__(self) -> str:
        return f"<Posting(side={self.side!r}, amount={self.amount})>"


# ── Immutability guards ──────────────────────────────────────────────


def _has_column_changes(target) -> bool:
    session = object_session(target)
    if session is None:
        return False
    return session.is_modified(target, include_collections=False)


@event.listens_for(JournalEntry, "before_update")
def _refuse_posted_entry_update(mapper, connection, target: JournalEntry) -> None:
    if not _has_column_changes(target):
        return
    # a draft may be posted; a posted entry may not change at all
    history = inspect(target).attrs.is_posted.history
    was_posted = bool(history.deleted[0]) if history.deleted else target.is_posted
    if was_posted:
        raise ImmutableEntry(target.id)


@event.listens_for(JournalEntry, "before_delete")
def _refuse_posted_entry_delete(mapper, connection, target: JournalEntry) -> None:
    if target.is_posted:
        raise ImmutableEntry(target.id)


@event.listens_for(Posting, "before_update")
def _refuse_posted_line_update(mapper, connection, target: Posting) -> None:
    if not _has_column_changes(target):
        return
    entry = target.journal_entry
    if entry is not None and entry.is_posted:
        raise ImmutableEntry(entry.id)


@event.listens_for(Posting, "before_delete")
def _refuse_posted_line_delete(mapper, connection, target: Posting) -> None:
    entry = target.journal_entry
    if entry is not None and entry.is_posted:
        raise ImmutableEntry(entry.id)
