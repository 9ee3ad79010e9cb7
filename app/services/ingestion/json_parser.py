"""JSON gateway statement parser."""

from __future__ import annotations

import json
from decimal import Decimal
from typing import Any, List

from app.core.logging import get_logger
from app.schemas.statement import StatementLineCreate
from app.services.ingestion.base_parser import BaseParser
from app.services.ingestion.normalizer import (
    normalize_amount,
    normalize_currency,
    normalize_date,
    normalize_status,
    normalize_transaction_id,
    pick,
)

logger = get_logger(__name__)


class JsonParser(BaseParser):
    """Parser for JSON settlement reports.

    Accepts either a bare list of items or an object wrapping them::

        {
            "gateway": "razorpay",
            "settlements": [
                {
                    "payment_id": "pay_001",
                    "amount": 1000.0,
                    "fee": 44.84,
                    "settled_amount": 955.16,
                    "currency": "INR",
                    "settled_at": "2024-01-09T16:00:00",
                    "status": "processed"
                },
                ...
            ]
        }

    ``items`` and ``data`` are accepted as the list key too.
    """

    format_name: str = "json"

    def parse(self, file_content: bytes, filename: str, gateway: str) -> List[StatementLineCreate]:
        entries: List[StatementLineCreate] = []

        try:
            data = json.loads(file_content.decode("utf-8-sig"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            logger.error("Failed to decode JSON file %s: %s", filename, exc)
            return entries

        if isinstance(data, dict):
            items = data.get("settlements", data.get("items", data.get("data", [])))
        else:
            items = data
        if not isinstance(items, list):
            logger.error("No list of settlements found in %s", filename)
            return entries

        for idx, item in enumerate(items):
            try:
                entry = self._parse_item(item, filename, gateway, idx)
                if entry is not None:
                    entries.append(entry)
            except Exception as exc:
                logger.warning("Skipping JSON item %d in %s: %s", idx, filename, exc)

        logger.info("JSON parse complete for %s: %d lines parsed", filename, len(entries))
        return entries

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _parse_item(
        self, item: Any, filename: str, gateway: str, idx: int
    ) -> StatementLineCreate | None:
        if not isinstance(item, dict):
            logger.warning("Item %d: expected dict, got %s", idx, type(item).__name__)
            return None

        raw_txn_id = pick(item, "transaction_id")
        if not raw_txn_id:
            logger.warning("Item %d: missing transaction id, skipping", idx)
            return None

        gross_amount = normalize_amount(pick(item, "gross_amount"))
        fee_amount = normalize_amount(pick(item, "fee_amount"))
        tax_amount = normalize_amount(pick(item, "tax_amount"))
        net_amount = normalize_amount(pick(item, "net_amount"))

        if tax_amount is not None:
            fee_amount = (fee_amount or Decimal("0")) + tax_amount
        if net_amount is None and gross_amount is not None:
            net_amount = gross_amount - (fee_amount or Decimal("0"))

        raw_currency = str(pick(item, "currency") or "").strip()
        try:
            currency = normalize_currency(raw_currency) if raw_currency else "INR"
        except ValueError:
            logger.warning("Item %d: unknown currency %r", idx, raw_currency)
            currency = raw_currency.upper()[:3]

        raw_date = str(pick(item, "settled_at") or "").strip()
        raw_status = str(pick(item, "status") or "").strip()

        return StatementLineCreate(
            transaction_id=normalize_transaction_id(str(raw_txn_id)),
            gateway=gateway,
            gross_amount=gross_amount,
            fee_amount=fee_amount,
            net_amount=net_amount,
            currency=currency,
            settled_at=normalize_date(raw_date) if raw_date else None,
            status=normalize_status(raw_status) if raw_status else "completed",
            source_file=filename,
            raw_data=item,
        )
