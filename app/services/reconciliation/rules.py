"""Configurable exception-detection rules.

Each ``detect_*`` function inspects a payment record and/or statement line
and returns a lightweight dict describing the exception if one is found,
or ``None`` if everything lines up. The engine converts these dicts into
ReconciliationException rows.

The rules take plain objects (anything with the right attributes), never a
session, so they can be unit-tested with stand-ins.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from app.core.config import Settings

ZERO = Decimal("0")


def _money(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(value))


def _as_date(value: Any) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    return value


# ── Detection rules ─────────────────────────────────────────────────


def detect_amount_mismatch(payment: Any, line: Any, tolerance: Decimal) -> Optional[dict]:
    """Gross amount on the statement differs from the captured amount."""
    expected = _money(payment.amount)
    actual = _money(line.gross_amount)
    if expected is None or actual is None:
        return None

    diff = actual - expected
    if abs(diff) <= tolerance:
        return None

    return {
        "type": "amount_mismatch",
        "transaction_id": payment.transaction_id,
        "statement_line_id": getattr(line, "id", None),
        "expected_value": expected,
        "actual_value": actual,
        "difference_amount": abs(diff),
        "gateway": payment.gateway or getattr(line, "gateway", None),
        "description": (
            f"Gross amount mismatch: captured {expected} vs statement {actual} "
            f"({payment.currency}), diff={diff}"
        ),
    }


def detect_fee_mismatch(payment: Any, line: Any, tolerance: Decimal) -> Optional[dict]:
    """Fee deducted on the statement differs from the commission we computed."""
    expected = _money(payment.commission)
    actual = _money(line.fee_amount)
    if expected is None or actual is None:
        return None

    diff = actual - expected
    if abs(diff) <= tolerance:
        return None

    return {
        "type": "fee_mismatch",
        "transaction_id": payment.transaction_id,
        "statement_line_id": getattr(line, "id", None),
        "expected_value": expected,
        "actual_value": actual,
        "difference_amount": abs(diff),
        "gateway": payment.gateway or getattr(line, "gateway", None),
        "description": (
            f"Fee mismatch: expected commission {expected} vs statement fee {actual} "
            f"({'over' if diff > 0 else 'under'}-charged by {abs(diff)})"
        ),
    }


def detect_missing_settlement(
    payment: Any,
    threshold_days: int,
    reference_date: date,
) -> Optional[dict]:
    """Payment has no statement line ``threshold_days`` after it was due.

    The grace period starts at the expected settlement date when known,
    otherwise at the payment date.
    """
    due = _as_date(payment.expected_settlement_date) or _as_date(payment.paid_at)
    days_overdue = (reference_date - due).days
    if days_overdue <= threshold_days:
        return None

    expected = _money(payment.amount) or ZERO
    return {
        "type": "missing_settlement",
        "transaction_id": payment.transaction_id,
        "statement_line_id": None,
        "expected_value": expected,
        "actual_value": None,
        "difference_amount": expected,
        "gateway": payment.gateway,
        "description": (
            f"No statement line {days_overdue} days after expected settlement "
            f"(threshold={threshold_days}d). Expected gross: {expected} {payment.currency}"
        ),
    }


def detect_duplicate_settlement(transaction_id: str, lines: list) -> Optional[dict]:
    """Same transaction id appears on 2+ statement lines (possible double payout)."""
    if len(lines) < 2:
        return None

    total = sum((_money(line.net_amount) or ZERO for line in lines), ZERO)
    first = lines[0]
    extra = total - (_money(first.net_amount) or ZERO)
    return {
        "type": "duplicate_settlement",
        "transaction_id": transaction_id,
        "statement_line_id": getattr(lines[1], "id", None),
        "expected_value": _money(first.net_amount),
        "actual_value": total,
        "difference_amount": extra,
        "gateway": getattr(first, "gateway", None),
        "description": (
            f"Duplicate settlement: {len(lines)} statement lines for {transaction_id}, "
            f"total net={total} {getattr(first, 'currency', '')}"
        ),
    }


def detect_unexpected_settlement(line: Any) -> dict:
    """Statement line whose transaction id we never captured."""
    amount = _money(line.net_amount) or _money(line.gross_amount) or ZERO
    return {
        "type": "unexpected_settlement",
        "transaction_id": line.transaction_id,
        "statement_line_id": getattr(line, "id", None),
        "expected_value": None,
        "actual_value": amount,
        "difference_amount": amount,
        "gateway": getattr(line, "gateway", None),
        "description": (
            f"Statement line for unknown transaction {line.transaction_id}: "
            f"{amount} {getattr(line, 'currency', '')}"
        ),
    }


# ── Severity helpers ─────────────────────────────────────────────────


def calculate_severity(amount: Decimal, config: Settings) -> str:
    """Return a severity label from the configured amount thresholds.

    Thresholds (defaults, settlement currency):
        critical: >= 10000
        high:     >= 1000
        medium:   >= 100
        low:      < 100
    """
    value = float(abs(amount or ZERO))
    if value >= config.severity_critical_threshold:
        return "critical"
    if value >= config.severity_high_threshold:
        return "high"
    if value >= config.severity_medium_threshold:
        return "medium"
    return "low"
