"""DB-backed gateway rotation.

The rotation counter is a single shared row per scope. ``route`` runs
select + record-usage as one read-modify-write:

  * an in-process lock per scope serializes requests within one worker,
  * the row's ``version_id`` column catches writers in other processes;
    a stale write is rolled back and retried up to ``rotation_max_retries``.

Gateway enablement and limits are re-read from ``gateway_configs`` on every
call so admin changes apply to the very next selection.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import Settings
from app.core.exceptions import RotationConflict
from app.core.logging import get_logger
from app.models.gateway import PLATFORM_SCOPE, GatewayConfig, GatewayRotationState
from app.services.rotation.policy import (
    RotationState,
    limit_for,
    record_usage,
    select_next_gateway,
)

logger = get_logger(__name__)

# One lock per rotation scope, shared by every session in this process
_scope_locks: dict[str, threading.Lock] = {}
_scope_locks_guard = threading.Lock()


def _lock_for(scope: str) -> threading.Lock:
    with _scope_locks_guard:
        lock = _scope_locks.get(scope)
        if lock is None:
            lock = _scope_locks[scope] = threading.Lock()
        return lock


@dataclass
class RouteDecision:
    gateway: str
    active_gateway: str
    transaction_count: int
    limit: int
    rotated: bool
    rotation_cycle: int
    enabled_gateways: list[str] = field(default_factory=list)

    @property
    def remaining_before_rotation(self) -> int:
        return max(self.limit - self.transaction_count, 0)


class RotationService:
    def __init__(self, db: Session, config: Settings, scope: str = PLATFORM_SCOPE) -> None:
        self.db = db
        self.config = config
        self.scope = scope

    # ── Admin configuration ──────────────────────────────────────────

    def list_gateways(self) -> list[GatewayConfig]:
        return self.db.query(GatewayConfig).order_by(GatewayConfig.name).all()

    def enabled_gateways(self) -> list[str]:
        rows = (
            self.db.query(GatewayConfig.name)
            .filter(GatewayConfig.enabled.is_(True))
            .order_by(GatewayConfig.name)
            .all()
        )
        return [row.name for row in rows]

    def gateway_limits(self) -> dict[str, int]:
        return {
            row.name: row.transaction_limit
            for row in self.db.query(GatewayConfig).all()
            if row.transaction_limit is not None
        }

    def update_gateways(self, updates: Iterable[Mapping[str, Any]]) -> list[GatewayConfig]:
        """Upsert gateway rows from ``{name, enabled?, transaction_limit?}`` dicts."""
        for item in updates:
            name = str(item["name"]).strip().lower()
            if not name:
                raise ValueError("Gateway name must not be empty")
            limit = item.get("transaction_limit")
            if limit is not None and limit < 1:
                raise ValueError(f"Limit for {name!r} must be at least 1")

            row = self.db.get(GatewayConfig, name)
            if row is None:
                row = GatewayConfig(name=name, enabled=False)
                self.db.add(row)
            if item.get("enabled") is not None:
                row.enabled = bool(item["enabled"])
            if "transaction_limit" in item:
                row.transaction_limit = limit

        self.db.commit()
        logger.info("Gateway config updated: enabled=%s", self.enabled_gateways())
        return self.list_gateways()

    # ── Rotation ─────────────────────────────────────────────────────

    def status(self) -> dict[str, Any]:
        row = self.db.get(GatewayRotationState, self.scope)
        limits = self.gateway_limits()
        active = row.active_gateway if row else None
        count = row.transaction_count if row else 0
        limit = limit_for(active, limits, self.config.default_gateway_limit) if active else None
        return {
            "scope": self.scope,
            "active_gateway": active,
            "transaction_count": count,
            "limit": limit,
            "remaining_before_rotation": max(limit - count, 0) if limit is not None else None,
            "rotation_cycle": row.rotation_cycle if row else 0,
            "enabled_gateways": self.enabled_gateways(),
            "gateway_limits": {
                name: limit_for(name, limits, self.config.default_gateway_limit)
                for name in self.enabled_gateways()
            },
        }

    def route(self) -> RouteDecision:
        """Select the gateway for one transaction and count it.

        Raises:
            NoGatewayAvailable: nothing is enabled.
            RotationConflict: every optimistic retry lost the race.
        """
        with _lock_for(self.scope):
            attempts = max(1, self.config.rotation_max_retries)
            for attempt in range(1, attempts + 1):
                try:
                    return self._route_once()
                except (StaleDataError, IntegrityError):
                    self.db.rollback()
                    logger.warning(
                        "Rotation state changed concurrently (attempt %d/%d), retrying",
                        attempt,
                        attempts,
                    )
                except Exception:
                    self.db.rollback()
                    raise
        raise RotationConflict("Could not update the gateway rotation state; try again")

    def _route_once(self) -> RouteDecision:
        enabled = self.enabled_gateways()
        limits = self.gateway_limits()
        default_limit = self.config.default_gateway_limit

        row = self._load_state()
        current = RotationState(
            active_gateway=row.active_gateway,
            transaction_count=row.transaction_count,
            rotation_cycle=row.rotation_cycle,
        )
        selection = select_next_gateway(current, enabled, limits, default_limit)
        updated = record_usage(selection.state, limits, default_limit)

        row.active_gateway = updated.active_gateway
        row.transaction_count = updated.transaction_count
        row.rotation_cycle = updated.rotation_cycle
        self.db.commit()

        if selection.rotated:
            logger.info(
                "Gateway rotated: %s -> %s (cycle %d)",
                current.active_gateway,
                selection.gateway,
                updated.rotation_cycle,
            )
        logger.info(
            "Gateway selected: %s count=%d",
            selection.gateway,
            updated.transaction_count,
        )
        return RouteDecision(
            gateway=selection.gateway,
            active_gateway=updated.active_gateway,
            transaction_count=updated.transaction_count,
            limit=limit_for(selection.gateway, limits, default_limit),
            rotated=selection.rotated,
            rotation_cycle=updated.rotation_cycle,
            enabled_gateways=enabled,
        )

    def _load_state(self) -> GatewayRotationState:
        row = self.db.get(GatewayRotationState, self.scope)
        if row is None:
            row = GatewayRotationState(scope=self.scope, transaction_count=0, rotation_cycle=0)
            self.db.add(row)
            self.db.flush()
        return row
