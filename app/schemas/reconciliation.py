"""Pydantic schemas for reconciliation runs, exceptions and overview."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from pydantic import Field

from app.schemas.common import CamelModel


class ReconciliationRequest(CamelModel):
    """Request body to kick off a new reconciliation run."""

    date_from: date = Field(
        ...,
        description="First payment date to reconcile (inclusive)",
    )
    date_to: date = Field(
        ...,
        description="Last payment date to reconcile (inclusive)",
    )
    gateways: Optional[list[str]] = Field(
        None,
        description="Limit reconciliation to these gateways; None = all",
    )
    reference_date: Optional[date] = Field(
        None,
        description="Date the missing-settlement grace period is measured to; defaults to today",
    )


class ExceptionResponse(CamelModel):
    """Full reconciliation exception record."""

    id: UUID
    transaction_id: str
    statement_line_id: Optional[UUID] = None
    type: str = Field(
        ...,
        description=(
            "missing_settlement | amount_mismatch | fee_mismatch "
            "| duplicate_settlement | unexpected_settlement"
        ),
    )
    severity: str = Field(..., description="critical | high | medium | low")
    expected_value: Optional[Decimal] = None
    actual_value: Optional[Decimal] = None
    difference_amount: Optional[Decimal] = None
    gateway: Optional[str] = None
    description: Optional[str] = None
    status: str = Field(..., description="pending | investigating | resolved")
    resolution_note: Optional[str] = None
    adjustment_journal_id: Optional[UUID] = None
    resolved_at: Optional[datetime] = None
    run_id: Optional[UUID] = None
    created_at: Optional[datetime] = None


class ExceptionListResponse(CamelModel):
    total: int
    items: list[ExceptionResponse]


class ResolveRequest(CamelModel):
    status: str = Field("resolved", pattern="^(pending|investigating|resolved)$")
    note: Optional[str] = None
    adjustment_journal_id: Optional[UUID] = None


class RunResponse(CamelModel):
    id: UUID
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    date_range_start: Optional[date] = None
    date_range_end: Optional[date] = None
    reference_date: Optional[date] = None
    gateways: Optional[list[str]] = None
    total_payments: int = 0
    total_statement_lines: int = 0
    matched_count: int = 0
    exception_count: int = 0
    match_rate: float = 0.0
    total_expected_amount: Optional[Decimal] = None
    total_settled_amount: Optional[Decimal] = None
    total_exception_amount: Optional[Decimal] = None
    status: Optional[str] = None
    summary: Optional[dict[str, Any]] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None


class RunDetailResponse(RunResponse):
    exceptions: list[ExceptionResponse] = Field(default_factory=list)


class ReconOverviewResponse(CamelModel):
    settled_payments: int
    unsettled_payments: int
    exceptions_by_status: dict[str, int]
    open_exception_amount: Decimal
    last_run_id: Optional[UUID] = None
    last_run_at: Optional[datetime] = None
    match_rate: float = 0.0
    total_runs: int = 0
