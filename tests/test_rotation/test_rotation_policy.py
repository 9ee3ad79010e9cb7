"""Unit tests for count-based gateway selection (pure functions)."""

from __future__ import annotations

import pytest

from app.core.exceptions import NoGatewayAvailable
from app.services.rotation.policy import (
    RotationState,
    limit_for,
    record_usage,
    select_next_gateway,
)


def _route(state, enabled, limits, default_limit=10):
    selection = select_next_gateway(state, enabled, limits, default_limit)
    return selection.gateway, record_usage(selection.state, limits, default_limit)


def _route_many(n, enabled, limits, state=None):
    state = state or RotationState()
    picks = []
    for _ in range(n):
        gateway, state = _route(state, enabled, limits)
        picks.append(gateway)
    return picks, state


class TestSelection:
    def test_fifteen_selections_follow_limits(self):
        picks, state = _route_many(15, ["cashfree", "razorpay"], {"cashfree": 10, "razorpay": 5})

        assert picks == ["cashfree"] * 10 + ["razorpay"] * 5
        assert state == RotationState("razorpay", 5, 0)

    def test_sixteenth_selection_wraps_to_first(self):
        limits = {"cashfree": 10, "razorpay": 5}
        picks, state = _route_many(16, ["razorpay", "cashfree"], limits)

        assert picks[-1] == "cashfree"
        assert state.transaction_count == 1
        assert state.rotation_cycle == 1

    def test_lexicographic_order(self):
        picks, _ = _route_many(4, ["stripe", "cashfree", "razorpay"], {}, None)
        assert picks == ["cashfree"] * 4

        state = RotationState("cashfree", 10, 0)
        gateway, _ = _route(state, ["stripe", "cashfree", "razorpay"], {})
        assert gateway == "razorpay"

    def test_default_limit_applies(self):
        picks, _ = _route_many(11, ["a", "b"], {})
        assert picks == ["a"] * 10 + ["b"]

    def test_single_gateway_never_rotates(self):
        picks, state = _route_many(25, ["razorpay"], {"razorpay": 3})

        assert set(picks) == {"razorpay"}
        assert 0 < state.transaction_count <= 3
        assert state.rotation_cycle == 0

    def test_single_gateway_at_limit_rotates_once_second_is_enabled(self):
        limits = {"razorpay": 3}
        picks, state = _route_many(3, ["razorpay"], limits)
        assert picks == ["razorpay"] * 3
        assert state.transaction_count == 3

        selection = select_next_gateway(state, ["cashfree", "razorpay"], limits)

        assert selection.gateway == "cashfree"
        assert selection.rotated
        assert selection.state.active_gateway == "cashfree"
        assert selection.state.transaction_count == 0
        assert record_usage(selection.state, limits).transaction_count == 1

    def test_disabled_active_gateway_falls_through(self):
        state = RotationState("paytm", 4, 2)
        selection = select_next_gateway(state, ["razorpay", "cashfree"], {})

        assert selection.gateway == "cashfree"
        assert selection.state == RotationState("cashfree", 0, 2)
        assert selection.rotated

    def test_below_limit_keeps_active(self):
        state = RotationState("razorpay", 3, 0)
        selection = select_next_gateway(state, ["cashfree", "razorpay"], {"razorpay": 5})

        assert selection.gateway == "razorpay"
        assert selection.state is state
        assert not selection.rotated

    def test_no_enabled_gateway_raises(self):
        with pytest.raises(NoGatewayAvailable):
            select_next_gateway(RotationState(), [], {})


class TestUsage:
    def test_record_usage_increments(self):
        state = record_usage(RotationState("a", 2, 0), {"a": 5})
        assert state.transaction_count == 3

    def test_record_usage_clamps_at_limit(self):
        state = record_usage(RotationState("a", 5, 0), {"a": 5})
        assert state.transaction_count == 5

    def test_record_usage_without_active_is_noop(self):
        state = RotationState()
        assert record_usage(state, {}) is state

    @pytest.mark.parametrize(
        "limits, expected",
        [({"a": 7}, 7), ({}, 10), ({"a": 0}, 10), ({"a": None}, 10)],
    )
    def test_limit_for(self, limits, expected):
        assert limit_for("a", limits, 10) == expected

    def test_limit_is_at_least_one(self):
        assert limit_for("a", {}, 0) == 1
