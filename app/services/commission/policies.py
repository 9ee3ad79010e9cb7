"""Commission policy shapes.

Each policy turns a validated gross amount into an unrounded-then-rounded
commission. Rounding is always ROUND_HALF_UP to 2 decimal places so that
percentage fees neither systematically over- nor under-collect.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Protocol, Sequence

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class CommissionQuote:
    """Raw output of a policy, before clamping against the amount."""

    commission: Decimal
    commission_type: str
    breakdown: dict = field(default_factory=dict)


class CommissionPolicy(Protocol):
    def quote(self, amount: Decimal, free_payouts_remaining: int = 0) -> CommissionQuote:
        ...


@dataclass(frozen=True)
class FlatFee:
    fee: Decimal

    def quote(self, amount: Decimal, free_payouts_remaining: int = 0) -> CommissionQuote:
        fee = quantize_money(self.fee)
        return CommissionQuote(
            commission=fee,
            commission_type="flat",
            breakdown={"baseAmount": str(amount), "flatFee": str(fee)},
        )


@dataclass(frozen=True)
class Percentage:
    """``rate_percent`` of the amount, plus ``gst_percent`` charged on that fee."""

    rate_percent: Decimal
    gst_percent: Decimal = Decimal("0")

    @property
    def effective_percent(self) -> Decimal:
        return self.rate_percent + self.rate_percent * self.gst_percent / HUNDRED

    def quote(self, amount: Decimal, free_payouts_remaining: int = 0) -> CommissionQuote:
        base = amount * self.rate_percent / HUNDRED
        gst = base * self.gst_percent / HUNDRED
        commission = quantize_money(base + gst)
        return CommissionQuote(
            commission=commission,
            commission_type="percentage",
            breakdown={
                "baseAmount": str(amount),
                "baseRate": f"{self.rate_percent}%",
                "baseCommission": str(quantize_money(base)),
                "gstRate": f"{self.gst_percent}%",
                "gstAmount": str(quantize_money(gst)),
                "effectiveRate": f"{self.effective_percent.normalize()}%",
            },
        )


@dataclass(frozen=True)
class Tier:
    """Applies ``policy`` to amounts strictly below ``upper_bound`` (None = no bound)."""

    upper_bound: Optional[Decimal]
    policy: CommissionPolicy
    free_eligible: bool = False


@dataclass(frozen=True)
class Tiered:
    """Picks the first tier whose upper bound the amount is below.

    A tier marked ``free_eligible`` charges nothing while the merchant still
    has free payouts left; the caller is responsible for consuming one.
    """

    tiers: Sequence[Tier]

    def quote(self, amount: Decimal, free_payouts_remaining: int = 0) -> CommissionQuote:
        for tier in self.tiers:
            if tier.upper_bound is not None and amount >= tier.upper_bound:
                continue
            if tier.free_eligible and free_payouts_remaining > 0:
                return CommissionQuote(
                    commission=Decimal("0.00"),
                    commission_type="free",
                    breakdown={
                        "baseAmount": str(amount),
                        "note": "Free payout (merchant has remaining free payouts)",
                        "freeRemainingBefore": free_payouts_remaining,
                    },
                )
            return tier.policy.quote(amount, free_payouts_remaining)
        raise ValueError(f"No commission tier covers amount {amount}")
