"""
trustledger.config — Ledger configuration.

Defaults match the protocol constants; every knob can be overridden from
the environment with ``LedgerConfig.from_env()``.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Optional

from trustledger.models import StatusThresholds
from trustledger import weighting


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "")
    if not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class LedgerConfig:
    """Tunable parameters of a ledger instance."""
    owner: str = "owner"
    min_stake: int = 1000
    max_batch_size: int = 10
    decay_rate: int = weighting.DECAY_RATE
    decay_period: int = weighting.DECAY_PERIOD
    fresh_weight: int = weighting.FRESH_WEIGHT
    initial_score: int = 50
    max_category_length: int = 30
    max_reason_length: int = 200
    thresholds: StatusThresholds = field(default_factory=StatusThresholds)
    db_path: Optional[str] = None
    log_level: str = "INFO"

    def __post_init__(self):
        if not self.owner:
            raise ValueError("owner cannot be empty")
        if self.min_stake < 0:
            raise ValueError("min_stake cannot be negative")
        if self.max_batch_size < 1:
            raise ValueError("max_batch_size must be at least 1")
        if not 0 <= self.decay_rate <= 100:
            raise ValueError("decay_rate must be within 0..100")
        if self.decay_period < 1:
            raise ValueError("decay_period must be at least 1")
        if not 0 <= self.fresh_weight <= 100:
            raise ValueError("fresh_weight must be within 0..100")
        if not weighting.valid_score(self.initial_score):
            raise ValueError("initial_score must be within 0..100")

    @classmethod
    def from_env(cls, **overrides) -> "LedgerConfig":
        """
        Build a config from ``TRUSTLEDGER_*`` environment variables.

        ``TRUSTLEDGER_THRESHOLDS`` takes a JSON object such as
        ``{"excellent": 80, "good": 60, "fair": 40, "poor": 0}``.
        Keyword overrides win over the environment.
        """
        values = dict(
            owner=os.environ.get("TRUSTLEDGER_OWNER", "owner"),
            min_stake=_env_int("TRUSTLEDGER_MIN_STAKE", 1000),
            max_batch_size=_env_int("TRUSTLEDGER_MAX_BATCH", 10),
            decay_rate=_env_int("TRUSTLEDGER_DECAY_RATE", weighting.DECAY_RATE),
            decay_period=_env_int("TRUSTLEDGER_DECAY_PERIOD", weighting.DECAY_PERIOD),
            fresh_weight=_env_int("TRUSTLEDGER_FRESH_WEIGHT", weighting.FRESH_WEIGHT),
            initial_score=_env_int("TRUSTLEDGER_INITIAL_SCORE", 50),
            db_path=os.environ.get("TRUSTLEDGER_DB") or None,
            log_level=os.environ.get("TRUSTLEDGER_LOG_LEVEL", "INFO"),
        )
        raw_thresholds = os.environ.get("TRUSTLEDGER_THRESHOLDS", "")
        if raw_thresholds:
            values["thresholds"] = StatusThresholds.from_mapping(json.loads(raw_thresholds))
        values.update(overrides)
        return cls(**values)


__all__ = ["LedgerConfig"]
