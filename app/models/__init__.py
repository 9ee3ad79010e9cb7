"""SQLAlchemy models for the paysettle core."""

from app.models.payment import PaymentRecord
from app.models.gateway import GatewayConfig, GatewayRotationState
from app.models.settlement import SettlementPolicyConfig
from app.models.ledger import Account, JournalEntry, Posting
from app.models.statement import StatementLine
from app.models.reconciliation import ReconciliationRun
from app.models.recon_exception import ReconciliationException

__all__ = [
    "PaymentRecord",
    "GatewayConfig",
    "GatewayRotationState",
    "SettlementPolicyConfig",
    "Account",
    "JournalEntry",
    "Posting",
    "StatementLine",
    "ReconciliationRun",
    "ReconciliationException",
]
