"""Reconciliation endpoints.

Upload gateway statements, run reconciliation against captured payments,
and work the resulting exception queue.
"""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import get_db
from app.core.logging import get_logger
from app.models.reconciliation import ReconciliationRun
from app.models.statement import StatementLine
from app.schemas.reconciliation import (
    ExceptionListResponse,
    ExceptionResponse,
    ReconciliationRequest,
    ReconOverviewResponse,
    ResolveRequest,
    RunDetailResponse,
    RunResponse,
)
from app.schemas.statement import UploadResponse
from app.services.ingestion.csv_parser import CsvParser
from app.services.ingestion.json_parser import JsonParser
from app.services.reconciliation import workflow
from app.services.reconciliation.engine import ReconciliationEngine

logger = get_logger(__name__)

router = APIRouter()

# Registry of parsers keyed by statement format
_PARSERS = {
    "csv": CsvParser(),
    "json": JsonParser(),
}


def _detect_format(filename: str, explicit: Optional[str]) -> str:
    if explicit:
        return explicit.strip().lower()
    if filename.lower().endswith(".json"):
        return "json"
    return "csv"


# ── Statements ───────────────────────────────────────────────────────


@router.post("/statements/upload", response_model=UploadResponse)
async def upload_statement(
    file: UploadFile = File(...),
    gateway: str = Query(..., description="Gateway the statement came from"),
    statement_format: Optional[str] = Query(
        None, alias="format", description="csv or json; guessed from the filename"
    ),
    db: Session = Depends(get_db),
) -> UploadResponse:
    """Upload a gateway settlement statement.

    Each parsed line is normalized and stored; lines with a failed status
    are skipped since no money moved.
    """
    filename = file.filename or "unknown"
    fmt = _detect_format(filename, statement_format)
    parser = _PARSERS.get(fmt)
    if parser is None:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown format '{fmt}'. Supported: {', '.join(_PARSERS.keys())}",
        )

    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded file is empty.")

    gateway_key = gateway.strip().lower()
    logger.info(
        "Received statement: gateway=%s format=%s file=%s size=%d",
        gateway_key,
        fmt,
        filename,
        len(content),
    )

    parsed = parser.parse(content, filename, gateway_key)
    saved = 0
    skipped = 0
    errors: list[str] = []

    for line in parsed:
        if line.status == "failed":
            skipped += 1
            continue
        try:
            db.add(StatementLine(**line.model_dump()))
            db.flush()
            saved += 1
        except SQLAlchemyError as exc:
            db.rollback()
            skipped += 1
            message = f"txn={line.transaction_id}: {exc}"
            errors.append(message)
            logger.warning("Failed to save statement line: %s", message)

    db.commit()
    logger.info(
        "Statement upload complete: processed=%d saved=%d skipped=%d",
        len(parsed),
        saved,
        skipped,
    )

    if saved == 0 and parsed:
        status = "failed"
    elif skipped > 0:
        status = "partial"
    else:
        status = "success"

    return UploadResponse(
        status=status,
        message=f"Processed {len(parsed)} lines from {filename}",
        lines_processed=len(parsed),
        lines_saved=saved,
        lines_skipped=skipped,
        errors=errors,
    )


# ── Runs ─────────────────────────────────────────────────────────────


@router.post("/run", response_model=RunResponse)
def run_reconciliation(
    body: ReconciliationRequest,
    db: Session = Depends(get_db),
) -> ReconciliationRun:
    """Reconcile payments captured in the date range against statements."""
    logger.info(
        "Reconciliation requested: %s to %s, gateways=%s",
        body.date_from,
        body.date_to,
        body.gateways,
    )
    engine = ReconciliationEngine(db=db, config=settings)
    try:
        return engine.run(
            date_from=body.date_from,
            date_to=body.date_to,
            gateways=body.gateways,
            reference_date=body.reference_date,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.get("/runs", response_model=List[RunResponse])
def list_runs(
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
) -> list[ReconciliationRun]:
    return (
        db.query(ReconciliationRun)
        .order_by(ReconciliationRun.created_at.desc())
        .limit(limit)
        .all()
    )


@router.get("/runs/{run_id}", response_model=RunDetailResponse)
def get_run(run_id: UUID, db: Session = Depends(get_db)) -> ReconciliationRun:
    run = db.get(ReconciliationRun, run_id)
    if run is None:
        raise HTTPException(status_code=404, detail="Reconciliation run not found")
    return run


# ── Exceptions ───────────────────────────────────────────────────────


@router.get("/exceptions", response_model=ExceptionListResponse)
def list_exceptions(
    status: Optional[str] = Query(None, description="pending | investigating | resolved"),
    type: Optional[str] = Query(None, description="Exception type"),
    severity: Optional[str] = Query(None, description="critical | high | medium | low"),
    gateway: Optional[str] = Query(None),
    run_id: Optional[UUID] = Query(None, alias="runId"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
) -> ExceptionListResponse:
    total, items = workflow.list_exceptions(
        db,
        status=status,
        type=type,
        severity=severity,
        gateway=gateway,
        run_id=run_id,
        skip=(page - 1) * limit,
        limit=limit,
    )
    return ExceptionListResponse(
        total=total,
        items=[ExceptionResponse.model_validate(item) for item in items],
    )


@router.get("/exceptions/{exception_id}", response_model=ExceptionResponse)
def get_exception(exception_id: UUID, db: Session = Depends(get_db)):
    return workflow.get_exception(db, exception_id)


@router.post("/exceptions/{exception_id}/resolve", response_model=ExceptionResponse)
def resolve_exception(
    exception_id: UUID,
    body: ResolveRequest,
    db: Session = Depends(get_db),
):
    """Move an exception to investigating or resolved.

    A resolution may reference the adjustment journal that corrected it.
    """
    try:
        return workflow.update_exception_status(
            db,
            exception_id,
            body.status,
            note=body.note,
            adjustment_journal_id=body.adjustment_journal_id,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.get("/overview", response_model=ReconOverviewResponse)
def reconciliation_overview(db: Session = Depends(get_db)) -> dict:
    return workflow.get_overview(db)
