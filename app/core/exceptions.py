"""Domain error taxonomy.

Services raise these; the API layer renders them through a single
exception handler registered in ``app.main`` so every router returns the
same ``{"detail": ..., "code": ...}`` body.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional


class PaySettleError(Exception):
    """Base class for all errors raised by the settlement core."""

    status_code: int = 400
    code: str = "paysettle_error"

    def __init__(self, message: str, **detail: Any) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"detail": self.message, "code": self.code}
        body.update(self.detail)
        return body


# ── Commission ───────────────────────────────────────────────────────


class InvalidAmount(PaySettleError):
    """Amount is non-positive, NaN, infinite or not a number at all."""

    code = "invalid_amount"


class CommissionExceedsAmount(PaySettleError):
    """Configured commission would push the net amount below zero."""

    status_code = 422
    code = "commission_exceeds_amount"


# ── Rotation ─────────────────────────────────────────────────────────


class NoGatewayAvailable(PaySettleError):
    status_code = 503
    code = "no_gateway_available"


class RotationConflict(PaySettleError):
    """Optimistic update of the rotation state kept losing the race."""

    status_code = 503
    code = "rotation_conflict"


# ── Ledger ───────────────────────────────────────────────────────────


class EmptyJournal(PaySettleError):
    code = "empty_journal"


class InvalidJournalType(PaySettleError):
    code = "invalid_journal_type"


class InvalidPosting(PaySettleError):
    code = "invalid_posting"


class UnknownAccount(PaySettleError):
    code = "unknown_account"


class CrossTenantAccount(PaySettleError):
    code = "cross_tenant_account"


class UnbalancedJournal(PaySettleError):
    code = "unbalanced_journal"

    def __init__(self, total_dr: Decimal, total_cr: Decimal) -> None:
        super().__init__(
            f"Journal not balanced: Dr={total_dr:.2f} vs Cr={total_cr:.2f}",
            totalDr=str(total_dr),
            totalCr=str(total_cr),
        )
        self.total_dr = total_dr
        self.total_cr = total_cr


class ImmutableEntry(PaySettleError):
    status_code = 409
    code = "immutable_entry"

    def __init__(self, entry_id: Optional[Any] = None) -> None:
        super().__init__(
            "Cannot modify or delete a posted journal entry. "
            "Post an adjustment entry instead.",
            entryId=str(entry_id) if entry_id is not None else None,
        )


class DuplicateAccount(PaySettleError):
    status_code = 409
    code = "duplicate_account"


class DuplicateJournal(PaySettleError):
    """A journal entry with the same external id was already posted."""

    status_code = 409
    code = "duplicate_journal"


# ── Generic ──────────────────────────────────────────────────────────


class DuplicatePayment(PaySettleError):
    status_code = 409
    code = "duplicate_payment"


class NotFound(PaySettleError):
    status_code = 404
    code = "not_found"
