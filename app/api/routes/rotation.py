"""Gateway rotation: routing decisions, status and admin config."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import get_db
from app.core.logging import get_logger
from app.schemas.rotation import (
    GatewayConfigResponse,
    GatewayConfigUpdate,
    RotationStatusResponse,
    RouteResponse,
)
from app.services.rotation.policy import limit_for
from app.services.rotation.service import RotationService

logger = get_logger(__name__)

router = APIRouter()


def _gateway_rows(service: RotationService) -> List[GatewayConfigResponse]:
    return [
        GatewayConfigResponse(
            name=row.name,
            enabled=row.enabled,
            transaction_limit=row.transaction_limit,
            effective_limit=limit_for(
                row.name,
                {row.name: row.transaction_limit} if row.transaction_limit else {},
                settings.default_gateway_limit,
            ),
            updated_at=row.updated_at,
        )
        for row in service.list_gateways()
    ]


@router.get("/status", response_model=RotationStatusResponse)
def rotation_status(db: Session = Depends(get_db)) -> dict:
    return RotationService(db, settings).status()


@router.post("/route", response_model=RouteResponse)
def route_transaction(db: Session = Depends(get_db)) -> RouteResponse:
    """Pick the gateway for the next payment link and count it.

    503 when no gateway is enabled; the caller must not invent a fallback.
    """
    decision = RotationService(db, settings).route()
    return RouteResponse(
        gateway=decision.gateway,
        active_gateway=decision.active_gateway,
        transaction_count=decision.transaction_count,
        limit=decision.limit,
        remaining_before_rotation=decision.remaining_before_rotation,
        rotated=decision.rotated,
        rotation_cycle=decision.rotation_cycle,
        enabled_gateways=decision.enabled_gateways,
    )


@router.get("/gateways", response_model=List[GatewayConfigResponse])
def list_gateways(db: Session = Depends(get_db)) -> List[GatewayConfigResponse]:
    return _gateway_rows(RotationService(db, settings))


@router.put("/gateways", response_model=List[GatewayConfigResponse])
def update_gateways(
    body: GatewayConfigUpdate,
    db: Session = Depends(get_db),
) -> List[GatewayConfigResponse]:
    """Enable/disable gateways and set per-gateway limits.

    Applies to the very next routing decision.
    """
    service = RotationService(db, settings)
    try:
        service.update_gateways(
            item.model_dump(exclude_unset=True) for item in body.gateways
        )
    except ValueError as exc:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(exc))
    return _gateway_rows(service)
