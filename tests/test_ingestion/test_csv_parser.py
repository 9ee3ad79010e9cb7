"""Tests for the CSV statement parser.

These tests exercise parsing logic only: no database required.
"""

from datetime import datetime
from decimal import Decimal

import pytest

from app.services.ingestion.csv_parser import CsvParser

RAZORPAY_CSV = (
    "payment_id,amount,fee,tax,settled_amount,currency,settled_on,status\n"
    "pay_001,1000.00,38.00,6.84,955.16,INR,2024-01-16 16:00:00,processed\n"
    "pay_002,\"2,500.00\",95.00,17.10,,INR,2024-01-16 16:00:00,processed\n"
    "pay_003,300.00,11.40,2.05,286.55,INR,2024-01-16 16:00:00,failed\n"
).encode()

CASHFREE_CSV = (
    "\ufefftransaction_id,gross_amount,fee_amount,net_amount,settlement_date\n"
    "cf_100,500,22.42,477.58,17/01/2024\n"
    ",100,1,99,17/01/2024\n"
).encode("utf-8")


@pytest.fixture
def parser() -> CsvParser:
    return CsvParser()


class TestParseCsv:
    def test_razorpay_columns(self, parser: CsvParser):
        entries = parser.parse(RAZORPAY_CSV, "razorpay_0116.csv", "razorpay")

        assert [e.transaction_id for e in entries] == ["pay_001", "pay_002", "pay_003"]
        first = entries[0]
        assert first.gateway == "razorpay"
        assert first.gross_amount == Decimal("1000.00")
        # tax column is folded into the fee
        assert first.fee_amount == Decimal("44.84")
        assert first.net_amount == Decimal("955.16")
        assert first.settled_at == datetime(2024, 1, 16, 16, 0)
        assert first.status == "completed"
        assert first.source_file == "razorpay_0116.csv"
        assert first.raw_data["payment_id"] == "pay_001"

    def test_net_derived_when_missing(self, parser: CsvParser):
        entries = parser.parse(RAZORPAY_CSV, "razorpay_0116.csv", "razorpay")
        second = entries[1]
        assert second.gross_amount == Decimal("2500.00")
        assert second.fee_amount == Decimal("112.10")
        assert second.net_amount == Decimal("2387.90")

    def test_failed_status_is_kept_for_the_caller(self, parser: CsvParser):
        entries = parser.parse(RAZORPAY_CSV, "razorpay_0116.csv", "razorpay")
        assert entries[2].status == "failed"

    def test_bom_and_defaults(self, parser: CsvParser):
        entries = parser.parse(CASHFREE_CSV, "cashfree.csv", "cashfree")

        # row without a transaction id is skipped
        assert len(entries) == 1
        entry = entries[0]
        assert entry.transaction_id == "cf_100"
        assert entry.currency == "INR"
        assert entry.status == "completed"
        assert entry.settled_at == datetime(2024, 1, 17)

    def test_header_only(self, parser: CsvParser):
        assert parser.parse(b"payment_id,amount\n", "empty.csv", "razorpay") == []

    def test_unknown_currency_kept_uppercased(self, parser: CsvParser):
        content = b"payment_id,amount,currency\npay_9,10,rupees\n"
        entries = parser.parse(content, "odd.csv", "razorpay")
        assert entries[0].currency == "RUP"
