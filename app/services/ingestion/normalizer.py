"""Normalizer utility functions for gateway statement data.

Each gateway exports settlement reports with its own column names, date
formats and status labels; everything funnels through here so the
reconciliation engine only ever sees one shape.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from app.core.logging import get_logger

logger = get_logger(__name__)

# Maps common currency symbols / aliases to ISO 4217 codes
_CURRENCY_ALIASES: dict[str, str] = {
    "₹": "INR",
    "RS": "INR",
    "RS.": "INR",
    "INR": "INR",
    "$": "USD",
    "USD": "USD",
    "EUR": "EUR",
    "GBP": "GBP",
}

# Gateway status label -> canonical statement status
_STATUS_MAP: dict[str, str] = {
    "settled": "completed",
    "processed": "completed",
    "completed": "completed",
    "success": "completed",
    "failed": "failed",
    "failure": "failed",
    "held": "held",
    "on_hold": "held",
    "pending": "held",
    "reversed": "reversed",
    "refunded": "reversed",
}

# Accepted column names per canonical field, most common first
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "transaction_id": ("transaction_id", "txn_id", "payment_id", "order_payment_id", "reference"),
    "gross_amount": ("gross_amount", "amount", "transaction_amount", "original_amount"),
    "fee_amount": ("fee_amount", "fee", "fees", "total_fees", "commission"),
    "tax_amount": ("tax_amount", "tax", "gst"),
    "net_amount": ("net_amount", "settled_amount", "settlement_amount", "net"),
    "currency": ("currency", "currency_code"),
    "settled_at": ("settled_at", "settlement_date", "settle_date", "settled_on"),
    "status": ("status", "settlement_status"),
}

# Date formats we accept, ordered from most specific to least
_DATE_FORMATS: list[str] = [
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y",
    "%d-%m-%Y %H:%M:%S",
    "%d-%m-%Y",
]


def pick(row: Mapping[str, Any], field_name: str) -> Any:
    """First non-empty value among ``field_name``'s aliases (case-insensitive keys)."""
    lowered = {str(k).strip().lower(): v for k, v in row.items()}
    for alias in FIELD_ALIASES[field_name]:
        value = lowered.get(alias)
        if value is not None and str(value).strip() != "":
            return value
    return None


def normalize_amount(value: Any) -> Optional[Decimal]:
    """'1,000.50' / 1000.5 / '₹ 1000' -> Decimal, None when unparseable."""
    if value is None or isinstance(value, bool):
        return None
    text = str(value).replace(",", "").replace("₹", "").strip()
    if not text:
        return None
    try:
        amount = Decimal(text)
    except (InvalidOperation, ValueError):
        logger.warning("Could not parse amount: %r", value)
        return None
    if not amount.is_finite():
        return None
    return amount


def normalize_currency(code: str) -> str:
    """Normalize currency codes: 'inr' -> 'INR', '₹' -> 'INR', etc.

    Raises:
        ValueError: If the code cannot be resolved.
    """
    stripped = code.strip()
    upper = stripped.upper()
    if upper in _CURRENCY_ALIASES:
        return _CURRENCY_ALIASES[upper]
    if len(stripped) == 3 and stripped.isalpha():
        return upper
    raise ValueError(f"Unknown currency code: {code!r}")


def normalize_date(date_str: str) -> Optional[datetime]:
    """Try multiple date formats and return a datetime, or None if all fail."""
    stripped = date_str.strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(stripped, fmt)
        except ValueError:
            continue
    logger.warning("Could not parse date: %s", date_str)
    return None


def normalize_status(status: str) -> str:
    """Map a gateway status label to completed/failed/held/reversed."""
    key = status.strip().lower().replace(" ", "_")
    if key in _STATUS_MAP:
        return _STATUS_MAP[key]
    logger.warning("Unknown statement status %r, keeping it lowercased", status)
    return key


def normalize_transaction_id(txn_id: str) -> str:
    """Strip whitespace; gateway ids are case-sensitive so case is kept."""
    return txn_id.strip()
