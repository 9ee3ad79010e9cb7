"""Gateway rotation policy - pure state transitions.

Gateways are rotated by transaction count, not wall-clock time: the active
gateway keeps receiving traffic until it has handled ``limit`` transactions,
then the next enabled gateway (lexicographic order, wrapping) takes over.

Selection rules, applied in order:
  1. no enabled gateways              -> NoGatewayAvailable
  2. exactly one enabled gateway      -> always that gateway, never rotates
  3. active gateway unset or disabled -> first enabled gateway, count 0
  4. count >= limit(active)           -> next enabled gateway, count 0
  5. otherwise                        -> keep the active gateway

``transaction_count`` stays within [0, limit] for the active gateway.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Mapping, Optional, Sequence

from app.core.exceptions import NoGatewayAvailable


@dataclass(frozen=True)
class RotationState:
    active_gateway: Optional[str] = None
    transaction_count: int = 0
    rotation_cycle: int = 0


@dataclass(frozen=True)
class Selection:
    gateway: str
    state: RotationState
    rotated: bool = False


def limit_for(gateway: str, limits: Mapping[str, int], default_limit: int) -> int:
    return max(1, limits.get(gateway) or default_limit)


def select_next_gateway(
    state: RotationState,
    enabled_gateways: Sequence[str],
    limits: Mapping[str, int],
    default_limit: int = 10,
) -> Selection:
    """Pick the gateway for the next transaction. Does not count usage."""
    enabled = sorted(set(enabled_gateways))
    if not enabled:
        raise NoGatewayAvailable("No payment gateway is enabled")

    if len(enabled) == 1:
        only = enabled[0]
        if state.active_gateway != only:
            return Selection(only, RotationState(only, 0, state.rotation_cycle), rotated=True)
        if state.transaction_count >= limit_for(only, limits, default_limit):
            # a single gateway wraps onto itself
            return Selection(only, replace(state, transaction_count=0))
        return Selection(only, state)

    if state.active_gateway not in enabled:
        first = enabled[0]
        return Selection(first, RotationState(first, 0, state.rotation_cycle), rotated=True)

    if state.transaction_count >= limit_for(state.active_gateway, limits, default_limit):
        position = enabled.index(state.active_gateway)
        next_position = (position + 1) % len(enabled)
        cycle = state.rotation_cycle + (1 if next_position == 0 else 0)
        nxt = enabled[next_position]
        return Selection(nxt, RotationState(nxt, 0, cycle), rotated=True)

    return Selection(state.active_gateway, state)


def record_usage(
    state: RotationState,
    limits: Mapping[str, int],
    default_limit: int = 10,
) -> RotationState:
    """Count one routed transaction against the active gateway."""
    if state.active_gateway is None:
        return state
    limit = limit_for(state.active_gateway, limits, default_limit)
    return replace(state, transaction_count=min(state.transaction_count + 1, limit))
