"""
trustledger.ledger — ReputationLedger, the single entry point to a ledger.

Binds an owner, a LedgerConfig, a LedgerStore and an EventBus, and exposes
every ledger operation. Mutations return ``OpResult``; successful ones are
published on the bus after they commit.

Usage:
    ledger = ReputationLedger(LedgerConfig(owner="root"))
    ledger.register_verifier("root", "v1", weight=80, stake=5000)
    ledger.initialize_account("alice")
    sid = ledger.submit_score("v1", "alice", score=90, ai_confidence=70,
                              category="kyc").unwrap()
    ledger.recompute_reputation("alice", [sid]).unwrap().new_score  # 57
"""

from __future__ import annotations

from typing import Iterable, Optional

from trustledger import aggregation, registry, submission
from trustledger.config import LedgerConfig
from trustledger.errors import OpResult
from trustledger.events import EventBus, EventType
from trustledger.models import (
    AccountReputation, Dispute, LedgerStats, Recomputation, Submission, Verifier,
)
from trustledger.storage import LedgerStore, SQLiteBackend


class ReputationLedger:

    def __init__(
        self,
        config: Optional[LedgerConfig] = None,
        store: Optional[LedgerStore] = None,
        events: Optional[EventBus] = None,
    ):
        self.config = config or LedgerConfig()
        if store is None:
            # Persist to config.db_path when set, in memory otherwise
            backend = SQLiteBackend(self.config.db_path) if self.config.db_path else None
            store = LedgerStore(backend)
        self.store = store
        self.events = events or EventBus()

    @classmethod
    def from_config(cls, config: LedgerConfig) -> "ReputationLedger":
        """Open a ledger persisted in ``config.db_path`` (in-memory when unset)."""
        return cls(config=config)

    @property
    def owner(self) -> str:
        return self.config.owner

    @property
    def height(self) -> int:
        return self.store.height

    def advance(self, blocks: int = 1) -> int:
        """Move the logical clock forward; returns the new height."""
        return self.store.advance(blocks)

    def _publish(self, result: OpResult, event_type: EventType, data: dict, source: str = "") -> OpResult:
        if result.ok:
            self.events.emit(event_type, data, height=self.height, source=source)
        return result

    # ─── Accounts ──────────────────────────────────────────────────

    def initialize_account(self, caller: str) -> OpResult:
        result = registry.initialize_account(self.store, self.config, caller)
        if result.ok and result.value:
            self.events.emit(EventType.ACCOUNT_INITIALIZED, {"account": caller},
                             height=self.height, source=caller)
        return result

    # ─── Verifiers ─────────────────────────────────────────────────

    def register_verifier(self, caller: str, verifier: str, weight: int, stake: int) -> OpResult:
        result = registry.register_verifier(self.store, self.config, caller, verifier, weight, stake)
        return self._publish(result, EventType.VERIFIER_REGISTERED,
                             {"verifier": verifier, "weight": weight, "stake": stake}, caller)

    def deactivate_verifier(self, caller: str, verifier: str) -> OpResult:
        result = registry.deactivate_verifier(self.store, self.config, caller, verifier)
        return self._publish(result, EventType.VERIFIER_DEACTIVATED, {"verifier": verifier}, caller)

    def reactivate_verifier(self, caller: str, verifier: str) -> OpResult:
        result = registry.reactivate_verifier(self.store, self.config, caller, verifier)
        return self._publish(result, EventType.VERIFIER_REACTIVATED, {"verifier": verifier}, caller)

    # ─── Scoring ───────────────────────────────────────────────────

    def submit_score(self, caller: str, user: str, score: int, ai_confidence: int, category: str) -> OpResult:
        result = submission.submit_score(
            self.store, self.config, caller, user, score, ai_confidence, category,
        )
        if result.ok:
            self.events.emit(EventType.SUBMISSION_RECORDED, {
                "sequence": result.value, "user": user, "verifier": caller,
                "score": score, "ai_confidence": ai_confidence, "category": category,
            }, height=self.height, source=caller)
        return result

    def recompute_reputation(self, user: str, submission_ids: Iterable[int]) -> OpResult:
        result = aggregation.recompute_reputation(self.store, self.config, user, submission_ids)
        if result.ok:
            outcome: Recomputation = result.value
            self.events.emit(EventType.SCORE_UPDATED, outcome.to_dict(), height=outcome.height)
        return result

    def preview_reputation(self, user: str, submission_ids: Iterable[int]) -> OpResult:
        return aggregation.preview_reputation(self.store, self.config, user, submission_ids)

    def effective_score(self, account: str) -> Optional[int]:
        """Stored score with inactivity decay applied up to the current height."""
        with self.store.transaction():
            record = self.store.get_account(account)
            if record is None:
                return None
            return aggregation.decayed_score(record, self.store.height, self.config)

    # ─── Disputes ──────────────────────────────────────────────────

    def raise_dispute(self, caller: str, reason: str) -> OpResult:
        result = registry.raise_dispute(self.store, self.config, caller, reason)
        if result.ok:
            self.events.emit(EventType.DISPUTE_RAISED, {"account": caller, "dispute_id": result.value},
                             height=self.height, source=caller)
        return result

    # ─── Read-only lookups ─────────────────────────────────────────

    def get_reputation(self, account: str) -> Optional[AccountReputation]:
        return self.store.get_account(account)

    def get_verifier(self, account: str) -> Optional[Verifier]:
        return self.store.get_verifier(account)

    def get_submission(self, sequence: int) -> Optional[Submission]:
        return self.store.get_submission(sequence)

    def list_submissions(self, user: str) -> list[Submission]:
        return self.store.list_submissions(user)

    def get_dispute(self, account: str, sequence: int) -> Optional[Dispute]:
        return self.store.get_dispute(account, sequence)

    def list_disputes(self, account: str) -> list[Dispute]:
        return self.store.list_disputes(account)

    def stats(self) -> LedgerStats:
        return registry.ledger_stats(self.store, self.config)

    def close(self) -> None:
        self.store.close()


__all__ = ["ReputationLedger"]
