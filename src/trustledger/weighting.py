"""
trustledger.weighting — Integer arithmetic for attestation weighting and decay.

Everything here is pure: no storage, no clock, no validation. Callers check
inputs with the ``valid_*`` helpers before calling into the arithmetic.

    contribution = floor(floor(score * weight / 100) * (100 + confidence) / 200)
    decayed      = max(0, score - floor(score * periods * rate / 100))
"""

SCORE_MIN = 0
SCORE_MAX = 100
WEIGHT_MIN = 1
WEIGHT_MAX = 100

DECAY_RATE = 5        # percent per inactivity period
DECAY_PERIOD = 1000   # ledger heights per inactivity period
FRESH_WEIGHT = 70     # percent of a blend taken from the fresh calculation


# ─── Validators ────────────────────────────────────────────────────

def is_int(x) -> bool:
    """True for plain integers; bools and floats are rejected."""
    return isinstance(x, int) and not isinstance(x, bool)


def valid_score(x: int) -> bool:
    return is_int(x) and SCORE_MIN <= x <= SCORE_MAX


def valid_confidence(x: int) -> bool:
    return is_int(x) and SCORE_MIN <= x <= SCORE_MAX


def valid_weight(w: int) -> bool:
    return is_int(w) and WEIGHT_MIN <= w <= WEIGHT_MAX


def clamp_score(x: int) -> int:
    return max(SCORE_MIN, min(SCORE_MAX, x))


# ─── Contribution ──────────────────────────────────────────────────

def weighted_contribution(base_score: int, verifier_weight: int, ai_confidence: int) -> int:
    """
    Weighted contribution of a single attestation.

    The verifier weight scales the score first, then the AI confidence
    maps onto a 50%..100% multiplier. Both steps floor. For valid inputs
    the result stays within [0, 100].
    """
    weighted_base = base_score * verifier_weight // 100
    return weighted_base * (100 + ai_confidence) // 200


# ─── Decay ─────────────────────────────────────────────────────────

def inactivity_periods(blocks_inactive: int, period: int = DECAY_PERIOD) -> int:
    """Number of whole decay periods in an inactivity span."""
    if blocks_inactive <= 0:
        return 0
    return blocks_inactive // period


def apply_decay(current_score: int, periods: int, rate: int = DECAY_RATE) -> int:
    """Fade a score by ``rate`` percent per period, saturating at 0."""
    decay_amount = current_score * periods * rate // 100
    if decay_amount > current_score:
        return SCORE_MIN
    return current_score - decay_amount


# ─── Blending ──────────────────────────────────────────────────────

def blend(new_score: int, prior_score: int, fresh_weight: int = FRESH_WEIGHT) -> int:
    """Mix a freshly calculated score with the decayed prior one."""
    fresh = new_score * fresh_weight // 100
    prior = prior_score * (100 - fresh_weight) // 100
    return clamp_score(fresh + prior)


__all__ = [
    "SCORE_MIN",
    "SCORE_MAX",
    "WEIGHT_MIN",
    "WEIGHT_MAX",
    "DECAY_RATE",
    "DECAY_PERIOD",
    "FRESH_WEIGHT",
    "is_int",
    "valid_score",
    "valid_confidence",
    "valid_weight",
    "clamp_score",
    "weighted_contribution",
    "inactivity_periods",
    "apply_decay",
    "blend",
]
