"""Settlement timing: when a captured payment becomes due for settlement.

Two policy shapes exist because the settlement contract moved from day
granularity (T+N with a daily cutoff) to minute granularity. They are
separate types so every caller handles both explicitly:

    SettlementPolicy = RelativeMinutes | CutoffDays

All functions here are pure. Naive datetimes are treated as UTC; the
cutoff/day arithmetic is done in the policy's local timezone and the result
is returned timezone-aware in that zone.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Union

from app.core.config import Settings
from app.core.timeutils import as_aware_utc, to_local

SATURDAY = 5
SUNDAY = 6


@dataclass(frozen=True)
class RelativeMinutes:
    """Due a fixed number of minutes after payment."""

    minutes: int
    timezone: str = "Asia/Kolkata"

    mode = "relative_minutes"


@dataclass(frozen=True)
class CutoffDays:
    """T+``days`` settlement at ``settle_time``, with a daily ``cutoff_time``.

    Payments at or after the cutoff count as next-day payments.
    """

    days: int
    cutoff_time: time
    settle_time: time
    skip_weekends: bool = True
    timezone: str = "Asia/Kolkata"

    mode = "cutoff_days"


SettlementPolicy = Union[RelativeMinutes, CutoffDays]


def policy_from_settings(config: Settings) -> SettlementPolicy:
    """Default policy used when no admin-saved policy exists."""
    if config.settlement_mode == RelativeMinutes.mode:
        return RelativeMinutes(
            minutes=config.settlement_minutes,
            timezone=config.settlement_timezone,
        )
    return CutoffDays(
        days=config.settlement_days,
        cutoff_time=time(config.cutoff_hour, config.cutoff_minute),
        settle_time=time(config.settlement_hour, config.settlement_minute),
        skip_weekends=config.skip_weekends,
        timezone=config.settlement_timezone,
    )


def _roll_past_weekend(moment: datetime) -> datetime:
    weekday = moment.weekday()
    if weekday == SATURDAY:
        return moment + timedelta(days=2)
    if weekday == SUNDAY:
        return moment + timedelta(days=1)
    return moment


def is_after_cutoff(paid_at: datetime, policy: CutoffDays) -> bool:
    local_paid = to_local(paid_at, policy.timezone)
    return local_paid.time().replace(tzinfo=None) >= policy.cutoff_time


def compute_expected_settlement(paid_at: datetime, policy: SettlementPolicy) -> datetime:
    """Return the moment a payment made at ``paid_at`` is expected to settle."""
    if isinstance(policy, RelativeMinutes):
        return to_local(paid_at, policy.timezone) + timedelta(minutes=policy.minutes)

    if isinstance(policy, CutoffDays):
        local_paid = to_local(paid_at, policy.timezone)
        effective = local_paid
        if is_after_cutoff(paid_at, policy):
            effective = local_paid + timedelta(days=1)

        settle_day = effective.date() + timedelta(days=policy.days)
        expected = datetime.combine(settle_day, policy.settle_time, tzinfo=local_paid.tzinfo)
        if policy.skip_weekends:
            expected = _roll_past_weekend(expected)
        return expected

    raise TypeError(f"Unsupported settlement policy: {policy!r}")


def is_settlement_due(
    now: datetime,
    paid_at: datetime,
    expected: datetime | None,
    policy: SettlementPolicy,
) -> bool:
    """Whether a payment may be promoted to settled at ``now``.

    Side-effect free; safe to call any number of times.
    """
    if isinstance(policy, RelativeMinutes):
        elapsed = as_aware_utc(now) - as_aware_utc(paid_at)
        return elapsed >= timedelta(minutes=policy.minutes)

    if isinstance(policy, CutoffDays):
        if expected is None:
            expected = compute_expected_settlement(paid_at, policy)
        if policy.skip_weekends:
            local_now = to_local(now, policy.timezone)
            if local_now.weekday() in (SATURDAY, SUNDAY):
                return False
        return as_aware_utc(now) >= as_aware_utc(expected)

    raise TypeError(f"Unsupported settlement policy: {policy!r}")


def settlement_status_message(
    now: datetime,
    paid_at: datetime,
    expected: datetime,
    policy: SettlementPolicy,
) -> str:
    """Human-readable settlement hint for dashboards."""
    if is_settlement_due(now, paid_at, expected, policy):
        return "Ready for settlement"

    local_expected = to_local(expected, policy.timezone)
    settle_clock = local_expected.strftime("%H:%M")
    remaining = as_aware_utc(expected) - as_aware_utc(now)

    if isinstance(policy, RelativeMinutes):
        minutes_left = max(1, math.ceil(remaining.total_seconds() / 60))
        return f"Settles in {minutes_left} min (at {settle_clock})"

    if remaining < timedelta(hours=24) and local_expected.date() == to_local(now, policy.timezone).date():
        return f"Settles today at {settle_clock}"

    t_plus = policy.days + (1 if is_after_cutoff(paid_at, policy) else 0)
    day_label = local_expected.strftime("%a, %d %b")
    return f"Settles on {day_label} at {settle_clock} (T+{t_plus})"
