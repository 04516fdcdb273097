"""
trustledger.submission — Recording attestations from active verifiers.

Submissions are append-only. Recording one never touches the subject
account's live score; that only changes when the aggregation protocol
folds submissions in.
"""

import logging

from trustledger.config import LedgerConfig
from trustledger.errors import ErrorCode, OpResult
from trustledger.models import Submission
from trustledger.storage import LedgerStore
from trustledger.weighting import valid_confidence, valid_score

logger = logging.getLogger(__name__)


def check_submitter(store: LedgerStore, verifier: str) -> OpResult:
    """Resolve the caller as an active verifier."""
    record = store.get_verifier(verifier)
    if record is None:
        return OpResult.failure(ErrorCode.NOT_A_VERIFIER, f"{verifier} is not a registered verifier")
    if not record.is_active:
        return OpResult.failure(ErrorCode.INACTIVE_VERIFIER, f"{verifier} is deactivated")
    return OpResult.success(record)


def submit_score(
    store: LedgerStore,
    config: LedgerConfig,
    verifier: str,
    user: str,
    score: int,
    ai_confidence: int,
    category: str,
) -> OpResult:
    """
    Append a Submission from ``verifier`` about ``user``.

    Returns the globally allocated submission sequence number. On any
    failure nothing is written.
    """
    with store.transaction():
        checked = check_submitter(store, verifier)
        if not checked.ok:
            logger.info("Submission rejected: %s", checked.error.value,
                        extra={"verifier": verifier, "user": user})
            return checked
        verifier_record = checked.value

        if store.get_account(user) is None:
            return OpResult.failure(ErrorCode.UNKNOWN_ACCOUNT, f"No reputation record for {user}")
        if not valid_score(score) or not valid_confidence(ai_confidence):
            return OpResult.failure(
                ErrorCode.INVALID_SCORE,
                f"score and ai_confidence must be within 0..100 (got {score}, {ai_confidence})",
            )
        if not category or len(category) > config.max_category_length:
            return OpResult.failure(
                ErrorCode.INVALID_ARGUMENT,
                f"category must be 1..{config.max_category_length} characters",
            )

        sequence = store.next_sequence("submission_sequence")
        store.put_submission(Submission(
            sequence=sequence,
            user=user,
            verifier=verifier,
            score=score,
            ai_confidence=ai_confidence,
            category=category,
            timestamp=store.height,
        ))
        store.put_verifier(verifier_record.with_verification())

    logger.info("Submission recorded", extra={
        "sequence": sequence, "verifier": verifier, "user": user, "score": score,
    })
    return OpResult.success(sequence)


__all__ = ["check_submitter", "submit_score"]
