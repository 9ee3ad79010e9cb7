"""Settlement endpoints: manual sweep trigger and the settlement policy."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import get_db
from app.core.logging import get_logger
from app.schemas.settlement import SettlementPolicyResponse, SettlementPolicyUpdate, SweepResponse
from app.services.settlement.policy_store import load_policy, policy_to_dict, save_policy
from app.services.settlement.sweeper import SettlementSweeper

logger = get_logger(__name__)

router = APIRouter()


@router.post("/sweep", response_model=SweepResponse)
def run_sweep(db: Session = Depends(get_db)) -> SweepResponse:
    """Run one settlement sweep now.

    Safe to call at any time, including while the scheduled sweep runs:
    records already settled are never counted twice.
    """
    logger.info("Manual settlement sweep requested")
    result = SettlementSweeper(db, settings).sweep()
    return SweepResponse(
        settled_count=result.settled_count,
        not_ready_count=result.not_ready_count,
        failed_count=result.failed_count,
        failed_ids=result.failed_ids,
    )


@router.get("/policy", response_model=SettlementPolicyResponse)
def get_policy(db: Session = Depends(get_db)) -> dict:
    return policy_to_dict(load_policy(db, settings))


@router.put("/policy", response_model=SettlementPolicyResponse)
def update_policy(
    body: SettlementPolicyUpdate,
    db: Session = Depends(get_db),
) -> dict:
    """Change how expected settlement dates are computed.

    Expected settlement dates already stored on payment records are not
    recomputed.
    """
    try:
        policy = save_policy(db, body.model_dump(exclude_none=True), settings)
    except ValueError as exc:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(exc))
    return policy_to_dict(policy)
