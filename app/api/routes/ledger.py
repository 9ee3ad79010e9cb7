"""Double-entry ledger endpoints.

Posted journal entries are immutable: PATCH and DELETE on them always
answer 409, and corrections go through ``/journal/{id}/reverse`` or a new
``adjustment`` entry.
"""

from __future__ import annotations

from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query, Response
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.logging import get_logger
from app.models.ledger import Account, JournalEntry
from app.schemas.ledger import (
    AccountCreate,
    AccountResponse,
    JournalCreate,
    JournalListResponse,
    JournalResponse,
    LedgerOverviewResponse,
    PostingResponse,
    ReverseRequest,
    SeedResponse,
)
from app.services.ledger.seed import seed_sample_journals, seed_tenant_accounts
from app.services.ledger.service import LedgerService, is_balanced, sum_sides

logger = get_logger(__name__)

router = APIRouter()


def _journal_response(entry: JournalEntry, postings: Optional[list] = None) -> JournalResponse:
    postings = entry.postings if postings is None else postings
    total_dr, total_cr = sum_sides(postings)
    return JournalResponse(
        id=entry.id,
        external_id=entry.external_id,
        tenant_id=entry.tenant_id,
        type=entry.type,
        order_id=entry.order_id,
        txn_id=entry.txn_id,
        reference=entry.reference,
        memo=entry.memo,
        is_posted=entry.is_posted,
        posted_at=entry.posted_at,
        created_at=entry.created_at,
        postings=[
            PostingResponse(
                id=p.id,
                account_id=p.account_id,
                account_code=p.account.code if p.account is not None else None,
                line_no=p.line_no,
                side=p.side,
                amount=p.amount,
                ref=p.ref,
            )
            for p in postings
        ],
        total_dr=total_dr,
        total_cr=total_cr,
        balanced=is_balanced(total_dr, total_cr),
    )


# ── Overview & accounts ──────────────────────────────────────────────


@router.get("/overview", response_model=LedgerOverviewResponse)
def ledger_overview(
    tenant_id: Optional[str] = Query(None, alias="tenantId"),
    db: Session = Depends(get_db),
) -> dict:
    """Counts plus ``allBalanced``, re-checked over every posted journal."""
    return LedgerService(db).get_overview(tenant_id)


@router.get("/accounts", response_model=list[AccountResponse])
def list_accounts(
    tenant_id: Optional[str] = Query(None, alias="tenantId"),
    db: Session = Depends(get_db),
) -> list[Account]:
    return LedgerService(db).list_accounts(tenant_id)


@router.post("/accounts", response_model=AccountResponse, status_code=201)
def create_account(body: AccountCreate, db: Session = Depends(get_db)) -> Account:
    return LedgerService(db).create_account(
        body.tenant_id, body.code, body.name, body.type, body.currency
    )


@router.post("/tenants/{tenant_id}/seed", response_model=SeedResponse)
def seed_tenant(
    tenant_id: str,
    with_samples: bool = Query(False, alias="withSamples"),
    db: Session = Depends(get_db),
) -> SeedResponse:
    """Create the default chart of accounts (idempotent), optionally with sample journals."""
    accounts = seed_tenant_accounts(db, tenant_id)
    samples = seed_sample_journals(db, tenant_id) if with_samples else []
    return SeedResponse(
        tenant_id=tenant_id,
        accounts=[AccountResponse.model_validate(a) for a in accounts],
        sample_journals=[entry.external_id for entry in samples],
    )


# ── Journal ──────────────────────────────────────────────────────────


@router.get("/journal", response_model=JournalListResponse)
def list_journal(
    tenant_id: Optional[str] = Query(None, alias="tenantId"),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
) -> JournalListResponse:
    """Journal entries, newest first."""
    entries = LedgerService(db).get_journal(tenant_id, limit)
    return JournalListResponse(
        total=len(entries),
        items=[_journal_response(entry) for entry in entries],
    )


@router.post("/journal", response_model=JournalResponse, status_code=201)
def post_journal(body: JournalCreate, db: Session = Depends(get_db)) -> JournalResponse:
    """Validate and post a journal entry atomically.

    400 names the first violated rule (empty postings, bad side or amount,
    unknown or cross-tenant account, or dr/cr imbalance with both sums).
    """
    ledger = LedgerService(db)
    entry = ledger.post_journal_entry(
        body.tenant_id,
        body.type,
        [posting.model_dump() for posting in body.postings],
        order_id=body.order_id,
        txn_id=body.txn_id,
        reference=body.reference,
        memo=body.memo,
        external_id=body.external_id,
    )
    detail = ledger.get_journal_by_id(entry.id)
    return _journal_response(detail.entry, detail.postings)


@router.get("/journal/{entry_id}", response_model=JournalResponse)
def get_journal_entry(entry_id: UUID, db: Session = Depends(get_db)) -> JournalResponse:
    """Entry with postings; totals are recomputed from the stored postings."""
    detail = LedgerService(db).get_journal_by_id(entry_id)
    return _journal_response(detail.entry, detail.postings)


@router.patch("/journal/{entry_id}", response_model=JournalResponse)
def patch_journal_entry(
    entry_id: UUID,
    changes: Optional[dict[str, Any]] = Body(None),
    db: Session = Depends(get_db),
) -> JournalResponse:
    entry = LedgerService(db).update_journal_entry(entry_id, changes or {})
    return _journal_response(entry)


@router.delete("/journal/{entry_id}", status_code=204)
def delete_journal_entry(entry_id: UUID, db: Session = Depends(get_db)) -> Response:
    LedgerService(db).delete_journal_entry(entry_id)
    return Response(status_code=204)


@router.post("/journal/{entry_id}/reverse", response_model=JournalResponse, status_code=201)
def reverse_journal_entry(
    entry_id: UUID,
    body: Optional[ReverseRequest] = None,
    db: Session = Depends(get_db),
) -> JournalResponse:
    """Post a correcting entry with every posting side swapped."""
    body = body or ReverseRequest()
    ledger = LedgerService(db)
    reversal = ledger.reverse_journal_entry(entry_id, type=body.type, memo=body.memo)
    detail = ledger.get_journal_by_id(reversal.id)
    return _journal_response(detail.entry, detail.postings)
