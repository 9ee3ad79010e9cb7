"""Unit tests for the commission engine and its policies.

All tests are pure: no database, no I/O.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from app.core.config import Settings
from app.core.exceptions import CommissionExceedsAmount, InvalidAmount
from app.services.commission.engine import PAYIN, PAYOUT, CommissionEngine, parse_amount
from app.services.commission.policies import FlatFee, Percentage, Tier, Tiered


# ── Helpers ──────────────────────────────────────────────────────────


def _make_config(**overrides) -> Settings:
    defaults = {
        "database_url": "sqlite://",
        "test_database_url": "sqlite://",
    }
    defaults.update(overrides)
    return Settings(**defaults)


@pytest.fixture
def engine() -> CommissionEngine:
    return CommissionEngine.from_settings(_make_config())


# ── Payin ────────────────────────────────────────────────────────────


class TestPayin:
    def test_default_rate_with_gst(self, engine):
        """3.8% plus 18% GST on the fee -> 44.84 on 1000."""
        result = engine.compute_commission(1000, PAYIN)
        assert result.commission == Decimal("44.84")
        assert result.net_amount == Decimal("955.16")
        assert result.commission_type == "percentage"
        assert result.clamped is False

    def test_net_plus_commission_equals_amount(self, engine):
        for raw in ("1", "99.99", "1234.56", "100000"):
            result = engine.compute_commission(raw, PAYIN)
            assert result.net_amount + result.commission == Decimal(raw).quantize(Decimal("0.01"))
            assert result.commission >= 0
            assert result.net_amount >= 0

    def test_breakdown_reports_effective_rate(self, engine):
        result = engine.compute_commission(1000, PAYIN)
        assert result.breakdown["effectiveRate"] == "4.484%"
        assert result.breakdown["gstAmount"] == "6.84"

    def test_rounds_half_up_not_truncated(self):
        """0.025 rounds to 0.03 (half-up), not 0.02."""
        quote = Percentage(rate_percent=Decimal("2.5")).quote(Decimal("1"))
        assert quote.commission == Decimal("0.03")

    def test_accepts_thousands_separator(self, engine):
        result = engine.compute_commission("1,000", PAYIN)
        assert result.commission == Decimal("44.84")


# ── Payout tiers ─────────────────────────────────────────────────────


class TestPayout:
    def test_small_payout_flat_fee(self, engine):
        result = engine.compute_commission(300, PAYOUT)
        assert result.commission == Decimal("10.00")
        assert result.net_amount == Decimal("290.00")
        assert result.commission_type == "flat"

    def test_small_payout_free_when_remaining(self, engine):
        result = engine.compute_commission(300, PAYOUT, free_payouts_remaining=2)
        assert result.commission == Decimal("0.00")
        assert result.net_amount == Decimal("300.00")
        assert result.commission_type == "free"

    def test_free_payouts_do_not_apply_to_medium_tier(self, engine):
        result = engine.compute_commission(500, PAYOUT, free_payouts_remaining=2)
        assert result.commission == Decimal("30.00")

    def test_medium_payout_upper_edge(self, engine):
        result = engine.compute_commission("999.99", PAYOUT)
        assert result.commission == Decimal("30.00")

    def test_large_payout_percentage(self, engine):
        assert engine.compute_commission(1000, PAYOUT).commission == Decimal("15.00")
        assert engine.compute_commission(2000, PAYOUT).commission == Decimal("30.00")


# ── Clamping ─────────────────────────────────────────────────────────


class TestClamping:
    def test_commission_clamped_to_amount(self, engine):
        """A flat 10 fee on a 5 payout is capped so net never goes negative."""
        result = engine.compute_commission(5, PAYOUT)
        assert result.commission == Decimal("5.00")
        assert result.net_amount == Decimal("0.00")
        assert result.clamped is True

    def test_clamp_disabled_raises(self, engine):
        with pytest.raises(CommissionExceedsAmount):
            engine.compute_commission(5, PAYOUT, clamp=False)

    def test_custom_flat_policy(self):
        engine = CommissionEngine(
            payin_policy=FlatFee(Decimal("2")),
            payout_policy=Tiered(tiers=(Tier(upper_bound=None, policy=FlatFee(Decimal("1"))),)),
        )
        assert engine.compute_commission(50, PAYIN).commission == Decimal("2.00")
        assert engine.compute_commission(50, PAYOUT).commission == Decimal("1.00")


# ── Invalid input ────────────────────────────────────────────────────


class TestInvalidAmount:
    @pytest.mark.parametrize(
        "raw",
        [0, -5, "-1", "abc", "", None, True, float("nan"), float("inf"), "Infinity"],
    )
    def test_rejected(self, engine, raw):
        with pytest.raises(InvalidAmount):
            engine.compute_commission(raw, PAYIN)

    def test_parse_amount_keeps_float_precision(self):
        assert parse_amount(0.1) == Decimal("0.1")

    @pytest.mark.parametrize("raw", ["0.004", "100.005", Decimal("12.345"), 0.001])
    def test_sub_cent_amounts_rejected(self, engine, raw):
        with pytest.raises(InvalidAmount, match="whole cents"):
            engine.compute_commission(raw, PAYIN)

    def test_trailing_zeros_accepted(self, engine):
        result = engine.compute_commission("100.000", PAYIN)
        assert result.commission == Decimal("4.48")
        assert result.commission + result.net_amount == Decimal("100")

    @pytest.mark.parametrize("raw", ["0.01", "100.01", "999.99", "1000", "123456.78"])
    @pytest.mark.parametrize("direction", [PAYIN, PAYOUT])
    def test_commission_plus_net_is_exactly_amount(self, engine, raw, direction):
        result = engine.compute_commission(raw, direction)
        assert result.commission >= 0
        assert result.net_amount >= 0
        assert result.commission + result.net_amount == Decimal(raw)

    def test_unknown_direction(self, engine):
        with pytest.raises(ValueError):
            engine.compute_commission(100, "sideways")
