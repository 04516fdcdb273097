"""
trustledger.models — Ledger records and status classification.

Records are frozen dataclasses. Updates go through ``dataclasses.replace``
inside a store transaction; nothing mutates a stored value in place.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict, field, replace
from enum import Enum
from typing import Optional

UNRESOLVED = -1  # Dispute.resolved_at while the dispute is open


class ReputationStatus(str, Enum):
    """Band an account's score falls into."""
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class DisputeStatus(str, Enum):
    OPEN = "open"
    RESOLVED = "resolved"


# ─── Status thresholds ─────────────────────────────────────────────

@dataclass(frozen=True)
class StatusBand:
    min_score: int
    status: ReputationStatus


@dataclass(frozen=True)
class StatusThresholds:
    """
    Ordered threshold table mapping a score to a status.

    Bands are checked highest first; a score at exactly ``min_score``
    belongs to that band. The floor band must start at 0 so every valid
    score is classified.
    """
    bands: tuple[StatusBand, ...] = (
        StatusBand(80, ReputationStatus.EXCELLENT),
        StatusBand(60, ReputationStatus.GOOD),
        StatusBand(40, ReputationStatus.FAIR),
        StatusBand(0, ReputationStatus.POOR),
    )

    def __post_init__(self):
        if not self.bands:
            raise ValueError("Threshold table cannot be empty")
        ordered = tuple(sorted(self.bands, key=lambda b: b.min_score, reverse=True))
        if ordered[-1].min_score != 0:
            raise ValueError("Lowest status band must start at 0")
        object.__setattr__(self, "bands", ordered)

    def classify(self, score: int) -> ReputationStatus:
        for band in self.bands:
            if score >= band.min_score:
                return band.status
        return self.bands[-1].status

    @classmethod
    def from_mapping(cls, mapping: dict[str, int]) -> "StatusThresholds":
        """Build from ``{"excellent": 80, "good": 60, ...}``."""
        return cls(bands=tuple(
            StatusBand(int(v), ReputationStatus(k)) for k, v in mapping.items()
        ))


# ─── Records ───────────────────────────────────────────────────────

@dataclass(frozen=True)
class AccountReputation:
    account: str
    score: int
    total_interactions: int
    last_updated: int
    status: ReputationStatus

    def to_dict(self) -> dict:
        d = asdict(self)
        d["status"] = self.status.value
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "AccountReputation":
        return cls(
            account=data["account"],
            score=int(data["score"]),
            total_interactions=int(data["total_interactions"]),
            last_updated=int(data["last_updated"]),
            status=ReputationStatus(data["status"]),
        )


@dataclass(frozen=True)
class Verifier:
    account: str
    credibility_weight: int
    stake_amount: int
    is_active: bool = True
    total_verifications: int = 0
    registered_at: int = 0

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Verifier":
        return cls(
            account=data["account"],
            credibility_weight=int(data["credibility_weight"]),
            stake_amount=int(data["stake_amount"]),
            is_active=bool(data.get("is_active", True)),
            total_verifications=int(data.get("total_verifications", 0)),
            registered_at=int(data.get("registered_at", 0)),
        )

    def with_activity(self, active: bool) -> "Verifier":
        return replace(self, is_active=active)

    def with_verification(self) -> "Verifier":
        return replace(self, total_verifications=self.total_verifications + 1)


@dataclass(frozen=True)
class Submission:
    """A single attestation. Keyed globally by ``sequence``."""
    sequence: int
    user: str
    verifier: str
    score: int
    ai_confidence: int
    category: str
    timestamp: int

    @property
    def key(self) -> tuple[str, str, int]:
        return (self.user, self.verifier, self.sequence)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Submission":
        return cls(**{k: data[k] for k in cls.__dataclass_fields__})


@dataclass(frozen=True)
class Dispute:
    account: str
    sequence: int
    reason: str
    created_at: int
    status: DisputeStatus = DisputeStatus.OPEN
    resolved_at: int = UNRESOLVED

    @property
    def is_resolved(self) -> bool:
        return self.resolved_at != UNRESOLVED

    def to_dict(self) -> dict:
        d = asdict(self)
        d["status"] = self.status.value
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "Dispute":
        return cls(
            account=data["account"],
            sequence=int(data["sequence"]),
            reason=data["reason"],
            created_at=int(data["created_at"]),
            status=DisputeStatus(data.get("status", DisputeStatus.OPEN.value)),
            resolved_at=int(data.get("resolved_at", UNRESOLVED)),
        )


@dataclass(frozen=True)
class Recomputation:
    """Outcome of one reputation recomputation."""
    user: str
    previous_score: int
    decayed_score: int
    calculated_score: int
    new_score: int
    status: ReputationStatus
    resolved_count: int
    height: int
    skipped_ids: tuple[int, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        d = asdict(self)
        d["status"] = self.status.value
        d["skipped_ids"] = list(self.skipped_ids)
        return d


@dataclass(frozen=True)
class LedgerStats:
    total_users: int
    total_verifiers: int
    submission_sequence: int
    dispute_sequence: int
    height: int
    owner: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


__all__ = [
    "UNRESOLVED",
    "ReputationStatus",
    "DisputeStatus",
    "StatusBand",
    "StatusThresholds",
    "AccountReputation",
    "Verifier",
    "Submission",
    "Dispute",
    "Recomputation",
    "LedgerStats",
]
