"""Load and save the admin-editable settlement policy."""

from __future__ import annotations

from datetime import time
from typing import Any, Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.orm import Session

from app.core.config import Settings, settings
from app.core.logging import get_logger
from app.models.settlement import SettlementPolicyConfig
from app.services.settlement.scheduler import (
    CutoffDays,
    RelativeMinutes,
    SettlementPolicy,
    policy_from_settings,
)

logger = get_logger(__name__)

POLICY_ROW_ID = 1
MODES = (RelativeMinutes.mode, CutoffDays.mode)


def policy_from_row(row: SettlementPolicyConfig) -> SettlementPolicy:
    if row.mode == RelativeMinutes.mode:
        return RelativeMinutes(minutes=row.settlement_minutes or 0, timezone=row.timezone)
    return CutoffDays(
        days=row.settlement_days or 0,
        cutoff_time=time(row.cutoff_hour or 0, row.cutoff_minute or 0),
        settle_time=time(row.settlement_hour or 0, row.settlement_minute or 0),
        skip_weekends=row.skip_weekends,
        timezone=row.timezone,
    )


def load_policy(db: Session, config: Settings = settings) -> SettlementPolicy:
    """The saved policy, or the configured default when nothing is saved."""
    row = db.get(SettlementPolicyConfig, POLICY_ROW_ID)
    if row is None:
        return policy_from_settings(config)
    return policy_from_row(row)


def policy_to_dict(policy: SettlementPolicy) -> dict[str, Any]:
    if isinstance(policy, RelativeMinutes):
        return {
            "mode": policy.mode,
            "settlement_minutes": policy.minutes,
            "timezone": policy.timezone,
        }
    return {
        "mode": policy.mode,
        "settlement_days": policy.days,
        "cutoff_hour": policy.cutoff_time.hour,
        "cutoff_minute": policy.cutoff_time.minute,
        "settlement_hour": policy.settle_time.hour,
        "settlement_minute": policy.settle_time.minute,
        "skip_weekends": policy.skip_weekends,
        "timezone": policy.timezone,
    }


def _check_range(payload: Mapping[str, Any], key: str, low: int, high: int) -> int:
    value = payload.get(key)
    if value is None or isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    if not low <= value <= high:
        raise ValueError(f"{key} must be between {low} and {high}")
    return value


def save_policy(db: Session, payload: Mapping[str, Any], config: Settings = settings) -> SettlementPolicy:
    """Validate ``payload`` and persist it as the platform policy.

    Fields missing from the payload keep their current value.

    Raises:
        ValueError: unknown mode, bad timezone or an out-of-range field.
    """
    merged = policy_to_dict(load_policy(db, config))
    current_mode = merged["mode"]
    if payload.get("mode", current_mode) != current_mode:
        # switching modes starts from that mode's configured defaults
        target = payload["mode"]
        if target not in MODES:
            raise ValueError(f"mode must be one of {', '.join(MODES)}")
        defaults = config.model_copy(update={"settlement_mode": target})
        merged = policy_to_dict(policy_from_settings(defaults))
    merged.update({k: v for k, v in payload.items() if v is not None})

    mode = merged["mode"]
    if mode not in MODES:
        raise ValueError(f"mode must be one of {', '.join(MODES)}")
    try:
        ZoneInfo(merged["timezone"])
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown timezone {merged['timezone']!r}")

    values: dict[str, Any] = {"mode": mode, "timezone": merged["timezone"]}
    if mode == RelativeMinutes.mode:
        values["settlement_minutes"] = _check_range(merged, "settlement_minutes", 0, 60 * 24 * 30)
    else:
        values["settlement_days"] = _check_range(merged, "settlement_days", 0, 30)
        values["cutoff_hour"] = _check_range(merged, "cutoff_hour", 0, 23)
        values["cutoff_minute"] = _check_range(merged, "cutoff_minute", 0, 59)
        values["settlement_hour"] = _check_range(merged, "settlement_hour", 0, 23)
        values["settlement_minute"] = _check_range(merged, "settlement_minute", 0, 59)
        values["skip_weekends"] = bool(merged.get("skip_weekends", True))

    row = db.get(SettlementPolicyConfig, POLICY_ROW_ID)
    if row is None:
        row = SettlementPolicyConfig(id=POLICY_ROW_ID, mode=mode)
        db.add(row)
    for key, value in values.items():
        setattr(row, key, value)
    db.commit()
    db.refresh(row)
    policy = policy_from_row(row)
    logger.info("Settlement policy updated: %s", policy_to_dict(policy))
    return policy
