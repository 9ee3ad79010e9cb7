"""Payment-to-statement matching logic.

Pairs each captured payment with the statement line(s) the gateway
reported for it. Anything left over on either side is an exception
candidate.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Tuple

from app.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class MatchResult:
    """Container for matching outcomes.

    Attributes:
        matched: (payment, statement line) pairs sharing a transaction_id.
        unmatched_payments: Payments with no statement line.
        unmatched_lines: Statement lines with no payment.
        duplicates: transaction_id -> lines, when 2+ lines share an id.
    """

    matched: List[Tuple[Any, Any]] = field(default_factory=list)
    unmatched_payments: List[Any] = field(default_factory=list)
    unmatched_lines: List[Any] = field(default_factory=list)
    duplicates: dict[str, List[Any]] = field(default_factory=dict)


class PaymentMatcher:
    """Matches payments to statement lines by transaction_id.

    The algorithm:
    1. Index statement lines by transaction_id.
    2. Walk every payment:
       - 0 lines  -> unmatched payment
       - 1 line   -> matched pair
       - 2+ lines -> duplicate, and the first line still counts as the match
    3. Lines no payment claimed -> unmatched line
    """

    def match(self, payments: list, lines: list) -> MatchResult:
        result = MatchResult()

        line_map: dict[str, list] = {}
        for line in lines:
            line_map.setdefault(line.transaction_id, []).append(line)

        claimed: set[str] = set()
        for payment in payments:
            txn_id = payment.transaction_id
            entries = line_map.get(txn_id, [])

            if not entries:
                result.unmatched_payments.append(payment)
                continue

            if len(entries) > 1:
                result.duplicates[txn_id] = entries
            result.matched.append((payment, entries[0]))
            claimed.add(txn_id)

        for txn_id, entries in line_map.items():
            if txn_id not in claimed:
                result.unmatched_lines.extend(entries)

        logger.info(
            "Matching complete: matched=%d unmatched_payments=%d "
            "unmatched_lines=%d duplicates=%d",
            len(result.matched),
            len(result.unmatched_payments),
            len(result.unmatched_lines),
            len(result.duplicates),
        )
        return result
