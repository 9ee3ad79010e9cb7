"""Pydantic schemas for ledger accounts, journal entries and postings."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from pydantic import Field

from app.schemas.common import CamelModel


class AccountCreate(CamelModel):
    tenant_id: str = Field(..., min_length=1, max_length=64)
    code: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=120)
    type: str = Field(..., description="asset | liability | equity | revenue | expense")
    currency: str = Field("INR", max_length=3)


class AccountResponse(CamelModel):
    id: UUID
    tenant_id: str
    code: str
    name: str
    type: str
    currency: str
    is_active: bool = True


class PostingIn(CamelModel):
    """One requested posting line.

    Left loosely typed on purpose: the ledger service checks each field and
    reports the first violated rule.
    """

    account_id: Any = None
    side: Any = None
    amount: Any = None
    ref: Optional[str] = None


class JournalCreate(CamelModel):
    tenant_id: str = Field(..., min_length=1, max_length=64)
    type: str
    postings: list[PostingIn] = Field(default_factory=list)
    order_id: Optional[str] = None
    txn_id: Optional[str] = None
    reference: Optional[str] = None
    memo: Optional[str] = None
    external_id: Optional[str] = Field(None, max_length=64)


class PostingResponse(CamelModel):
    id: UUID
    account_id: UUID
    account_code: Optional[str] = None
    line_no: int
    side: str
    amount: Decimal
    ref: Optional[str] = None


class JournalResponse(CamelModel):
    id: UUID
    external_id: str
    tenant_id: str
    type: str
    order_id: Optional[str] = None
    txn_id: Optional[str] = None
    reference: Optional[str] = None
    memo: Optional[str] = None
    is_posted: bool
    posted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    postings: list[PostingResponse] = Field(default_factory=list)
    total_dr: Decimal
    total_cr: Decimal
    balanced: bool


class JournalListResponse(CamelModel):
    total: int
    items: list[JournalResponse]


class ReverseRequest(CamelModel):
    type: str = Field("dispute_reversal", pattern="^(dispute_reversal|adjustment)$")
    memo: Optional[str] = None


class LedgerOverviewResponse(CamelModel):
    account_count: int
    journal_count: int
    posting_count: int
    all_balanced: bool
    unbalanced_entry_ids: list[UUID] = Field(default_factory=list)
    invariants: dict[str, Any] = Field(default_factory=dict)


class SeedResponse(CamelModel):
    tenant_id: str
    accounts: list[AccountResponse]
    sample_journals: list[str] = Field(default_factory=list)
