"""CSV gateway statement parser."""

from __future__ import annotations

import csv
import io
from decimal import Decimal
from typing import List

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


class CsvParser(BaseParser):
    """Parser for CSV settlement reports.

    Column names are matched through ``FIELD_ALIASES``, so both
    ``payment_id,amount,fee,tax,settled_amount,settled_on`` and
    ``transaction_id,gross_amount,fee_amount,net_amount,settlement_date``
    style exports are accepted. When a separate tax column is present it
    is added to the fee.
    """

    format_name: str = "csv"

    def parse(self, file_content: bytes, filename: str, gateway: str) -> List[StatementLineCreate]:
        """Parse CSV bytes; rows that are malformed are skipped with a warning."""
        entries: List[StatementLineCreate] = []
        text = file_content.decode("utf-8-sig")  # handle BOM if present
        reader = csv.DictReader(io.StringIO(text))

        for row_num, row in enumerate(reader, start=2):  # row 1 is header
            try:
                entry = self._parse_row(row, filename, gateway, row_num)
                if entry is not None:
                    entries.append(entry)
            except Exception as exc:
                logger.warning("Skipping CSV row %d in %s: %s", row_num, filename, exc)

        logger.info("CSV parse complete for %s: %d lines parsed", filename, len(entries))
        return entries

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _parse_row(
        self, row: dict, filename: str, gateway: str, row_num: int
    ) -> StatementLineCreate | None:
        raw_txn_id = pick(row, "transaction_id")
        if not raw_txn_id:
            logger.warning("Row %d: missing transaction id, skipping", row_num)
            return None

        gross_amount = normalize_amount(pick(row, "gross_amount"))
        fee_amount = normalize_amount(pick(row, "fee_amount"))
        tax_amount = normalize_amount(pick(row, "tax_amount"))
        net_amount = normalize_amount(pick(row, "net_amount"))

        if tax_amount is not None:
            fee_amount = (fee_amount or Decimal("0")) + tax_amount
        if net_amount is None and gross_amount is not None:
            net_amount = gross_amount - (fee_amount or Decimal("0"))

        raw_currency = str(pick(row, "currency") or "").strip()
        try:
            currency = normalize_currency(raw_currency) if raw_currency else "INR"
        except ValueError:
            logger.warning("Row %d: unknown currency %r", row_num, raw_currency)
            currency = raw_currency.upper()[:3]

        raw_date = str(pick(row, "settled_at") or "").strip()
        raw_status = str(pick(row, "status") or "").strip()

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
            raw_data=dict(row),
        )
