"""
trustledger.registry — Accounts, verifier roster and dispute log.

Plain authorization-gated inserts and flag flips. The scoring core only
reads ``Verifier.is_active``, ``Verifier.credibility_weight`` and whether
an AccountReputation exists.
"""

import logging

from trustledger.config import LedgerConfig
from trustledger.errors import ErrorCode, OpResult
from trustledger.models import AccountReputation, Dispute, LedgerStats, Verifier
from trustledger.storage import LedgerStore
from trustledger.weighting import is_int, valid_weight

logger = logging.getLogger(__name__)


# ─── Accounts ──────────────────────────────────────────────────────

def initialize_account(store: LedgerStore, config: LedgerConfig, account: str) -> OpResult:
    """
    Create the caller's reputation record.

    Returns ``True`` when created and ``False`` when the record already
    existed; the second case changes nothing.
    """
    if not account:
        return OpResult.failure(ErrorCode.INVALID_ARGUMENT, "account id cannot be empty")
    with store.transaction():
        if store.get_account(account) is not None:
            return OpResult.success(False)
        store.put_account(AccountReputation(
            account=account,
            score=config.initial_score,
            total_interactions=0,
            last_updated=store.height,
            status=config.thresholds.classify(config.initial_score),
        ))
        store.increment("total_users")
    logger.info("Account initialized", extra={"account": account})
    return OpResult.success(True)


# ─── Verifiers ─────────────────────────────────────────────────────

def register_verifier(
    store: LedgerStore,
    config: LedgerConfig,
    caller: str,
    verifier: str,
    weight: int,
    stake: int,
) -> OpResult:
    """Owner-only: add a verifier with a credibility weight and stake."""
    if caller != config.owner:
        logger.warning("Unauthorized verifier registration", extra={"caller": caller})
        return OpResult.failure(ErrorCode.NOT_AUTHORIZED, "Only the ledger owner can register verifiers")
    if not verifier:
        return OpResult.failure(ErrorCode.INVALID_ARGUMENT, "verifier id cannot be empty")
    if not valid_weight(weight):
        return OpResult.failure(ErrorCode.INVALID_WEIGHT, f"weight must be within 1..100, got {weight}")
    if not is_int(stake):
        return OpResult.failure(ErrorCode.INVALID_ARGUMENT, f"stake must be an integer, got {stake!r}")
    if stake < config.min_stake:
        return OpResult.failure(
            ErrorCode.INSUFFICIENT_STAKE, f"stake {stake} is below the minimum {config.min_stake}",
        )
    with store.transaction():
        if store.get_verifier(verifier) is not None:
            return OpResult.failure(ErrorCode.ALREADY_REGISTERED, f"{verifier} is already registered")
        record = Verifier(
            account=verifier,
            credibility_weight=weight,
            stake_amount=stake,
            registered_at=store.height,
        )
        store.put_verifier(record)
        store.increment("total_verifiers")
    logger.info("Verifier registered", extra={"verifier": verifier, "weight": weight})
    return OpResult.success(record)


def set_verifier_active(
    store: LedgerStore,
    config: LedgerConfig,
    caller: str,
    verifier: str,
    active: bool,
) -> OpResult:
    """Owner-only: flip a verifier's active flag. Idempotent."""
    if caller != config.owner:
        logger.warning("Unauthorized verifier status change", extra={"caller": caller})
        return OpResult.failure(ErrorCode.NOT_AUTHORIZED, "Only the ledger owner can change verifiers")
    with store.transaction():
        record = store.get_verifier(verifier)
        if record is None:
            return OpResult.failure(ErrorCode.NOT_A_VERIFIER, f"{verifier} is not a registered verifier")
        if record.is_active != active:
            record = record.with_activity(active)
            store.put_verifier(record)
    logger.info("Verifier %s", "reactivated" if active else "deactivated",
                extra={"verifier": verifier})
    return OpResult.success(record)


def deactivate_verifier(store: LedgerStore, config: LedgerConfig, caller: str, verifier: str) -> OpResult:
    return set_verifier_active(store, config, caller, verifier, False)


def reactivate_verifier(store: LedgerStore, config: LedgerConfig, caller: str, verifier: str) -> OpResult:
    return set_verifier_active(store, config, caller, verifier, True)


# ─── Disputes ──────────────────────────────────────────────────────

def raise_dispute(store: LedgerStore, config: LedgerConfig, caller: str, reason: str) -> OpResult:
    """Log a dispute against the caller's own record. No resolution yet."""
    reason = (reason or "").strip()
    if not reason or len(reason) > config.max_reason_length:
        return OpResult.failure(
            ErrorCode.INVALID_ARGUMENT, f"reason must be 1..{config.max_reason_length} characters",
        )
    with store.transaction():
        if store.get_account(caller) is None:
            return OpResult.failure(ErrorCode.UNKNOWN_ACCOUNT, f"No reputation record for {caller}")
        sequence = store.next_sequence("dispute_sequence")
        store.put_dispute(Dispute(
            account=caller,
            sequence=sequence,
            reason=reason,
            created_at=store.height,
        ))
    logger.info("Dispute raised", extra={"account": caller, "dispute_id": sequence})
    return OpResult.success(sequence)


# ─── Lookups ───────────────────────────────────────────────────────

def ledger_stats(store: LedgerStore, config: LedgerConfig) -> LedgerStats:
    with store.transaction():
        return LedgerStats(
            total_users=store.counter("total_users"),
            total_verifiers=store.counter("total_verifiers"),
            submission_sequence=store.counter("submission_sequence"),
            dispute_sequence=store.counter("dispute_sequence"),
            height=store.height,
            owner=config.owner,
        )


__all__ = [
    "initialize_account",
    "register_verifier",
    "set_verifier_active",
    "deactivate_verifier",
    "reactivate_verifier",
    "raise_dispute",
    "ledger_stats",
]
