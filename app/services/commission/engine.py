"""Commission engine: (amount, direction) -> commission and net amount.

Pure and deterministic. It never touches the database; callers persist the
result only after it has been computed successfully.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

from app.core.config import Settings
from app.core.exceptions import CommissionExceedsAmount, InvalidAmount
from app.core.logging import get_logger
from app.services.commission.policies import (
    CommissionPolicy,
    FlatFee,
    Percentage,
    Tier,
    Tiered,
    quantize_money,
)

logger = get_logger(__name__)

PAYIN = "payin"
PAYOUT = "payout"


@dataclass(frozen=True)
class CommissionResult:
    commission: Decimal
    net_amount: Decimal
    commission_type: str
    clamped: bool = False
    breakdown: dict = field(default_factory=dict)


def parse_amount(raw: Any) -> Decimal:
    """Coerce an incoming amount to a positive, finite Decimal.

    Strings may carry thousands separators ("1,000.50"). Floats go through
    ``str`` so 0.1 stays 0.1 rather than its binary expansion.

    Amounts are money: anything finer than a cent is rejected rather than
    rounded, so the stored amount is exactly the amount presented.

    Raises:
        InvalidAmount: for anything non-numeric, non-finite, <= 0 or with
            more than 2 decimal places.
    """
    if isinstance(raw, bool) or raw is None:
        raise InvalidAmount(f"Invalid amount: {raw!r}")
    try:
        if isinstance(raw, Decimal):
            value = raw
        elif isinstance(raw, str):
            value = Decimal(raw.replace(",", "").strip())
        else:
            value = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        raise InvalidAmount(f"Invalid amount: {raw!r}")

    if not value.is_finite():
        raise InvalidAmount(f"Amount must be finite, got {raw!r}")
    if value <= 0:
        raise InvalidAmount(f"Amount must be positive, got {raw!r}")
    try:
        whole_cents = value == quantize_money(value)
    except InvalidOperation:
        raise InvalidAmount(f"Amount out of range: {raw!r}")
    if not whole_cents:
        raise InvalidAmount(f"Amount must be in whole cents, got {raw!r}")
    return value


class CommissionEngine:
    """Applies the payin or payout policy to an amount."""

    def __init__(self, payin_policy: CommissionPolicy, payout_policy: CommissionPolicy) -> None:
        self.policies = {PAYIN: payin_policy, PAYOUT: payout_policy}

    @classmethod
    def from_settings(cls, config: Settings) -> CommissionEngine:
        """Build the engine from the configured rates.

        Payin: a percentage with GST on top. Payout: flat fee below the small
        threshold (free while free payouts remain), a larger flat fee up to
        the large threshold, a percentage above it.
        """
        payin = Percentage(
            rate_percent=Decimal(str(config.payin_commission_percent)),
            gst_percent=Decimal(str(config.payin_gst_percent)),
        )
        payout = Tiered(
            tiers=(
                Tier(
                    upper_bound=Decimal(str(config.payout_small_threshold)),
                    policy=FlatFee(Decimal(str(config.payout_small_flat_fee))),
                    free_eligible=True,
                ),
                Tier(
                    upper_bound=Decimal(str(config.payout_large_threshold)),
                    policy=FlatFee(Decimal(str(config.payout_medium_flat_fee))),
                ),
                Tier(
                    upper_bound=None,
                    policy=Percentage(rate_percent=Decimal(str(config.payout_large_percent))),
                ),
            )
        )
        return cls(payin_policy=payin, payout_policy=payout)

    def compute_commission(
        self,
        amount: Any,
        direction: str,
        *,
        free_payouts_remaining: int = 0,
        clamp: bool = True,
    ) -> CommissionResult:
        """Compute commission and net amount for one payment or payout.

        Args:
            amount: Gross amount; validated with :func:`parse_amount`.
            direction: ``"payin"`` or ``"payout"``.
            free_payouts_remaining: Merchant's unused free small payouts.
            clamp: When the commission would exceed the amount, cap it at the
                amount (and flag the result) instead of raising.

        Raises:
            InvalidAmount: bad amount.
            CommissionExceedsAmount: commission > amount and ``clamp`` is off.
            ValueError: unknown direction.
        """
        value = parse_amount(amount)
        policy = self.policies.get(direction)
        if policy is None:
            raise ValueError(f"Unknown commission direction: {direction!r}")

        quote = policy.quote(value, free_payouts_remaining)
        commission = quote.commission
        clamped = False

        if commission > value:
            if not clamp:
                raise CommissionExceedsAmount(
                    f"Commission {commission} exceeds amount {value}",
                    commission=str(commission),
                    amount=str(value),
                )
            logger.warning(
                "commission_exceeds_amount: direction=%s amount=%s commission=%s, clamping",
                direction,
                value,
                commission,
            )
            commission = value
            clamped = True

        net_amount = value - commission
        return CommissionResult(
            commission=commission,
            net_amount=net_amount,
            commission_type=quote.commission_type,
            clamped=clamped,
            breakdown=quote.breakdown,
        )
