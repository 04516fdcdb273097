"""trustledger — Verifier-attested reputation scoring ledger."""

__version__ = "0.1.0"

from trustledger.config import LedgerConfig
from trustledger.errors import ErrorCode, LedgerError, OpResult
from trustledger.events import Event, EventBus, EventType
from trustledger.ledger import ReputationLedger
from trustledger.models import (
    AccountReputation, Dispute, DisputeStatus, LedgerStats, Recomputation,
    ReputationStatus, StatusBand, StatusThresholds, Submission, Verifier,
)
from trustledger.storage import (
    FileBackend, LedgerStore, MemoryBackend, SQLiteBackend, StorageBackend,
)
from trustledger.weighting import (
    apply_decay, blend, inactivity_periods, valid_score, valid_weight,
    weighted_contribution,
)

__all__ = [
    "__version__",
    "LedgerConfig",
    "ErrorCode",
    "LedgerError",
    "OpResult",
    "Event",
    "EventBus",
    "EventType",
    "ReputationLedger",
    "AccountReputation",
    "Dispute",
    "DisputeStatus",
    "LedgerStats",
    "Recomputation",
    "ReputationStatus",
    "StatusBand",
    "StatusThresholds",
    "Submission",
    "Verifier",
    "FileBackend",
    "LedgerStore",
    "MemoryBackend",
    "SQLiteBackend",
    "StorageBackend",
    "apply_decay",
    "blend",
    "inactivity_periods",
    "valid_score",
    "valid_weight",
    "weighted_contribution",
]
