"""Unit tests for the PaymentMatcher.

These tests are *pure*: no database, no network, no side effects.
We use SimpleNamespace to create lightweight stand-ins for ORM objects
so we can verify matching logic in isolation.
"""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from app.services.reconciliation.matcher import PaymentMatcher


def _pay(txn_id: str) -> SimpleNamespace:
    """Create a minimal payment-like object."""
    return SimpleNamespace(transaction_id=txn_id)


def _line(txn_id: str) -> SimpleNamespace:
    """Create a minimal statement-line-like object."""
    return SimpleNamespace(transaction_id=txn_id)


@pytest.fixture
def matcher() -> PaymentMatcher:
    return PaymentMatcher()


# ── Tests ────────────────────────────────────────────────────────────


class TestPaymentMatcher:
    """Tests for PaymentMatcher.match()."""

    def test_match_single_pair(self, matcher: PaymentMatcher) -> None:
        result = matcher.match([_pay("pay_001")], [_line("pay_001")])

        assert len(result.matched) == 1
        assert result.matched[0][0].transaction_id == "pay_001"
        assert result.matched[0][1].transaction_id == "pay_001"
        assert result.unmatched_payments == []
        assert result.unmatched_lines == []
        assert result.duplicates == {}

    def test_payment_without_line(self, matcher: PaymentMatcher) -> None:
        result = matcher.match([_pay("pay_001")], [])

        assert result.matched == []
        assert [p.transaction_id for p in result.unmatched_payments] == ["pay_001"]
        assert result.unmatched_lines == []

    def test_duplicate_lines(self, matcher: PaymentMatcher) -> None:
        """Two lines for one payment: first one matches, both recorded as duplicates."""
        first, second = _line("pay_001"), _line("pay_001")

        result = matcher.match([_pay("pay_001")], [first, second])

        assert result.matched[0][1] is first
        assert result.duplicates["pay_001"] == [first, second]
        assert result.unmatched_payments == []
        assert result.unmatched_lines == []

    def test_transaction_ids_are_case_sensitive(self, matcher: PaymentMatcher) -> None:
        result = matcher.match([_pay("PAY_001")], [_line("pay_001")])

        assert result.matched == []
        assert len(result.unmatched_payments) == 1
        assert len(result.unmatched_lines) == 1

    def test_mixed_batch(self, matcher: PaymentMatcher) -> None:
        payments = [
            _pay("pay_001"),  # will match
            _pay("pay_002"),  # no line -> unmatched
            _pay("pay_003"),  # duplicate lines
        ]
        lines = [
            _line("pay_001"),
            _line("pay_003"),
            _line("pay_003"),
            _line("pay_999"),  # no payment -> unmatched line
        ]

        result = matcher.match(payments, lines)

        assert {m[0].transaction_id for m in result.matched} == {"pay_001", "pay_003"}
        assert [p.transaction_id for p in result.unmatched_payments] == ["pay_002"]
        assert [l.transaction_id for l in result.unmatched_lines] == ["pay_999"]
        assert list(result.duplicates) == ["pay_003"]
