"""
trustledger.aggregation — Reputation recomputation.

One recomputation:
  1. decays the stored score by the inactivity since ``last_updated``
  2. folds a bounded batch of submission ids into (score_sum, weight_sum)
  3. averages the batch, or falls back to the decayed score if nothing resolved
  4. blends fresh average and decayed prior (70/30 by default)
  5. classifies the blended score and commits it

Recomputation is permissionless: it only reads committed, immutable
submissions, so a caller cannot forge anything with it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Iterable, Optional

from trustledger.config import LedgerConfig
from trustledger.errors import ErrorCode, OpResult
from trustledger.models import AccountReputation, Recomputation
from trustledger.storage import LedgerStore
from trustledger.weighting import (
    apply_decay, blend, clamp_score, inactivity_periods, weighted_contribution,
)

logger = logging.getLogger(__name__)


@dataclass
class FoldState:
    """Accumulator threaded through the submission fold."""
    score_sum: int = 0
    weight_sum: int = 0
    resolved: int = 0
    skipped: list[int] = field(default_factory=list)

    def average(self, fallback: int) -> int:
        if self.weight_sum > 0:
            return self.score_sum // self.weight_sum
        return fallback


def fold_submissions(store: LedgerStore, user: str, submission_ids: Iterable[int]) -> FoldState:
    """
    Fold submission ids into a weighted sum.

    Ids that do not resolve to a submission about ``user`` with a known
    verifier (active or not) are skipped, leaving the accumulator as is.
    """
    state = FoldState()
    for sid in submission_ids:
        submission = store.get_submission(sid)
        if submission is None or submission.user != user:
            state.skipped.append(sid)
            continue
        verifier = store.get_verifier(submission.verifier)
        if verifier is None:
            state.skipped.append(sid)
            continue
        weight = verifier.credibility_weight
        contribution = weighted_contribution(submission.score, weight, submission.ai_confidence)
        state.score_sum += contribution * weight
        state.weight_sum += weight
        state.resolved += 1
    return state


def decayed_score(record: AccountReputation, height: int, config: LedgerConfig) -> int:
    """Score after lazy decay from ``last_updated`` to ``height``."""
    periods = inactivity_periods(height - record.last_updated, config.decay_period)
    return apply_decay(record.score, periods, config.decay_rate)


def _compute(
    store: LedgerStore,
    config: LedgerConfig,
    user: str,
    submission_ids: list[int],
) -> tuple[OpResult, Optional[AccountReputation]]:
    if len(submission_ids) > config.max_batch_size:
        return OpResult.failure(
            ErrorCode.BATCH_TOO_LARGE,
            f"At most {config.max_batch_size} submissions per recomputation, got {len(submission_ids)}",
        ), None

    record = store.get_account(user)
    if record is None:
        return OpResult.failure(ErrorCode.UNKNOWN_ACCOUNT, f"No reputation record for {user}"), None

    height = store.height
    decayed = decayed_score(record, height, config)
    state = fold_submissions(store, user, submission_ids)
    calculated = state.average(fallback=decayed)
    if state.resolved:
        new_score = blend(calculated, decayed, config.fresh_weight)
    else:
        # Nothing resolved: the decayed score stands alone
        new_score = clamp_score(decayed)
    status = config.thresholds.classify(new_score)

    updated = replace(
        record,
        score=new_score,
        last_updated=height,
        total_interactions=record.total_interactions + state.resolved,
        status=status,
    )
    outcome = Recomputation(
        user=user,
        previous_score=record.score,
        decayed_score=decayed,
        calculated_score=calculated,
        new_score=new_score,
        status=status,
        resolved_count=state.resolved,
        height=height,
        skipped_ids=tuple(state.skipped),
    )
    return OpResult.success(outcome), updated


def recompute_reputation(
    store: LedgerStore,
    config: LedgerConfig,
    user: str,
    submission_ids: Iterable[int],
) -> OpResult:
    """Recompute and commit ``user``'s reputation from a batch of submissions."""
    ids = list(submission_ids)
    with store.transaction():
        result, updated = _compute(store, config, user, ids)
        if not result.ok:
            logger.info("Recomputation rejected: %s", result.error.value, extra={"user": user})
            return result
        store.put_account(updated)

    outcome: Recomputation = result.value
    logger.info("Reputation recomputed", extra={
        "user": user,
        "previous_score": outcome.previous_score,
        "new_score": outcome.new_score,
        "status": outcome.status.value,
        "resolved": outcome.resolved_count,
        "skipped": len(outcome.skipped_ids),
    })
    return result


def preview_reputation(
    store: LedgerStore,
    config: LedgerConfig,
    user: str,
    submission_ids: Iterable[int],
) -> OpResult:
    """Same computation as ``recompute_reputation`` without committing."""
    with store.transaction():
        result, _ = _compute(store, config, user, list(submission_ids))
    return result


__all__ = [
    "FoldState",
    "fold_submissions",
    "decayed_score",
    "recompute_reputation",
    "preview_reputation",
]
