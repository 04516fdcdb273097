"""Tests for trustledger.aggregation — recomputing reputation from submissions."""

import pytest

from trustledger import LedgerConfig, ReputationLedger
from trustledger.aggregation import FoldState, fold_submissions
from trustledger.errors import ErrorCode
from trustledger.models import ReputationStatus

OWNER = "owner"


class TestRecompute:
    def test_single_submission(self, seeded):
        sid = seeded.submit_score("v1", "alice", 90, 70, "kyc").unwrap()
        outcome = seeded.recompute_reputation("alice", [sid]).unwrap()
        assert outcome.calculated_score == 61
        assert outcome.decayed_score == 50
        assert outcome.new_score == 57
        assert outcome.status == ReputationStatus.FAIR
        assert outcome.resolved_count == 1

        record = seeded.get_reputation("alice")
        assert record.score == 57
        assert record.status == ReputationStatus.FAIR
        assert record.total_interactions == 1

    def test_weighted_average_over_verifiers(self, seeded):
        seeded.register_verifier(OWNER, "v2", weight=20, stake=1000).unwrap()
        a = seeded.submit_score("v1", "alice", 100, 100, "kyc").unwrap()  # contribution 80
        b = seeded.submit_score("v2", "alice", 100, 100, "kyc").unwrap()  # contribution 20
        outcome = seeded.recompute_reputation("alice", [a, b]).unwrap()
        # (80*80 + 20*20) // 100
        assert outcome.calculated_score == 68
        assert outcome.new_score == 68 * 70 // 100 + 50 * 30 // 100

    def test_empty_batch_keeps_decayed_score(self, seeded):
        seeded.advance(2000)
        outcome = seeded.recompute_reputation("alice", []).unwrap()
        assert outcome.decayed_score == 45
        assert outcome.new_score == 45
        assert outcome.resolved_count == 0
        record = seeded.get_reputation("alice")
        assert record.last_updated == 2000
        assert record.total_interactions == 0

    def test_unresolvable_ids_keep_decayed_score(self, seeded):
        seeded.advance(1000)
        outcome = seeded.recompute_reputation("alice", [7, 99]).unwrap()
        assert outcome.new_score == 48
        assert outcome.skipped_ids == (7, 99)

    def test_submission_about_other_user_skipped(self, seeded):
        seeded.initialize_account("bob").unwrap()
        sid = seeded.submit_score("v1", "bob", 100, 100, "kyc").unwrap()
        outcome = seeded.recompute_reputation("alice", [sid]).unwrap()
        assert outcome.resolved_count == 0
        assert outcome.new_score == 50

    def test_deactivated_verifier_still_counts(self, seeded):
        sid = seeded.submit_score("v1", "alice", 90, 70, "kyc").unwrap()
        seeded.deactivate_verifier(OWNER, "v1").unwrap()
        assert seeded.recompute_reputation("alice", [sid]).unwrap().new_score == 57

    def test_duplicate_ids_each_count(self, seeded):
        sid = seeded.submit_score("v1", "alice", 90, 70, "kyc").unwrap()
        outcome = seeded.recompute_reputation("alice", [sid, sid]).unwrap()
        assert outcome.resolved_count == 2
        assert outcome.calculated_score == 61

    def test_repeated_recompute_converges(self, seeded):
        sid = seeded.submit_score("v1", "alice", 90, 70, "kyc").unwrap()
        scores = [seeded.recompute_reputation("alice", [sid]).unwrap().new_score for _ in range(6)]
        assert scores == sorted(scores)
        assert all(s <= 61 for s in scores)
        assert scores[-1] == scores[-2]

    def test_decay_saturates_at_zero(self, seeded):
        seeded.advance(1_000_000)
        assert seeded.recompute_reputation("alice", []).unwrap().new_score == 0
        assert seeded.get_reputation("alice").status == ReputationStatus.POOR

    def test_status_matches_score(self, seeded):
        seeded.register_verifier(OWNER, "v2", weight=100, stake=1000).unwrap()
        ids = [seeded.submit_score("v2", "alice", 100, 100, "kyc").unwrap() for _ in range(3)]
        for _ in range(5):
            outcome = seeded.recompute_reputation("alice", ids).unwrap()
            assert outcome.status == LedgerConfig().thresholds.classify(outcome.new_score)
        assert seeded.get_reputation("alice").status == ReputationStatus.EXCELLENT


class TestRecomputeRejections:
    def test_unknown_account(self, ledger):
        assert ledger.recompute_reputation("ghost", []).error == ErrorCode.UNKNOWN_ACCOUNT

    def test_batch_limit(self, seeded):
        assert seeded.recompute_reputation("alice", list(range(10))).ok
        result = seeded.recompute_reputation("alice", list(range(11)))
        assert result.error == ErrorCode.BATCH_TOO_LARGE

    def test_batch_checked_before_account(self, ledger):
        assert ledger.recompute_reputation("ghost", list(range(11))).error == ErrorCode.BATCH_TOO_LARGE

    def test_rejection_leaves_record(self, seeded):
        seeded.advance(5000)
        seeded.recompute_reputation("alice", list(range(11)))
        record = seeded.get_reputation("alice")
        assert (record.score, record.last_updated) == (50, 0)


class TestPreview:
    def test_preview_does_not_commit(self, seeded):
        sid = seeded.submit_score("v1", "alice", 90, 70, "kyc").unwrap()
        assert seeded.preview_reputation("alice", [sid]).unwrap().new_score == 57
        assert seeded.get_reputation("alice").score == 50

    def test_effective_score_applies_decay(self, seeded):
        seeded.advance(3000)
        assert seeded.effective_score("alice") == 43
        assert seeded.get_reputation("alice").score == 50
        assert seeded.effective_score("ghost") is None


class TestFold:
    def test_fold_state_average(self):
        assert FoldState().average(fallback=33) == 33
        assert FoldState(score_sum=610 * 8, weight_sum=80).average(0) == 61

    def test_fold_skips_unknown(self, seeded):
        sid = seeded.submit_score("v1", "alice", 90, 70, "kyc").unwrap()
        state = fold_submissions(seeded.store, "alice", [sid, 42])
        assert (state.score_sum, state.weight_sum, state.resolved) == (61 * 80, 80, 1)
        assert state.skipped == [42]


@pytest.mark.parametrize("fresh_weight,expected", [(100, 61), (0, 50), (50, 30 + 25)])
def test_configurable_blend(fresh_weight, expected):
    ledger = ReputationLedger(LedgerConfig(owner=OWNER, fresh_weight=fresh_weight))
    ledger.register_verifier(OWNER, "v1", weight=80, stake=5000).unwrap()
    ledger.initialize_account("alice").unwrap()
    sid = ledger.submit_score("v1", "alice", 90, 70, "kyc").unwrap()
    assert ledger.recompute_reputation("alice", [sid]).unwrap().new_score == expected
