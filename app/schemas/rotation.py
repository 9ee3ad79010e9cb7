"""Pydantic schemas for gateway rotation and gateway admin config."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import Field

from app.schemas.common import CamelModel


class RotationStatusResponse(CamelModel):
    scope: str
    active_gateway: Optional[str] = None
    transaction_count: int = 0
    limit: Optional[int] = None
    remaining_before_rotation: Optional[int] = None
    rotation_cycle: int = 0
    enabled_gateways: list[str] = Field(default_factory=list)
    gateway_limits: dict[str, int] = Field(default_factory=dict)


class RouteResponse(CamelModel):
    """Which gateway takes the next transaction, plus fairness metadata."""

    gateway: str
    active_gateway: str
    transaction_count: int
    limit: int
    remaining_before_rotation: int
    rotated: bool
    rotation_cycle: int
    enabled_gateways: list[str] = Field(default_factory=list)


class GatewayConfigItem(CamelModel):
    name: str = Field(..., min_length=1, max_length=50)
    enabled: Optional[bool] = None
    transaction_limit: Optional[int] = Field(None, ge=1)


class GatewayConfigResponse(CamelModel):
    name: str
    enabled: bool
    transaction_limit: Optional[int] = None
    effective_limit: int
    updated_at: Optional[datetime] = None


class GatewayConfigUpdate(CamelModel):
    gateways: list[GatewayConfigItem] = Field(..., min_length=1)
