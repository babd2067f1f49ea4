"""
FSRS Memory Model

Pure functions of (stability, difficulty, elapsed time, grade) and the
weight vector. No state of their own.

Core formulas:
- Retrievability R(t,S) = (1 + FACTOR * t/S)^DECAY, with R(S) = 0.9
- Success:  S' = S * (1 + e^w8 * (11-D) * S^-w9 * (e^(w10*(1-R)) - 1) * hard * easy)
- Lapse:    S' = min(S, w11 * D^-w12 * ((S+1)^w13 - 1) * e^(w14*(1-R)))
- Difficulty D' = w7*w4 + (1-w7) * (D - w6*(G-3)), clamped to [1, 10]

The underscore-free kernels (forgetting_curve, stability_*, difficulty_*)
broadcast over numpy arrays so the optimizer can replay many candidate weight
vectors at once. `w` only has to support `w[i]`: a WeightVector for scalar
use, or an array of shape (17, K, 1) for a batch of K candidates.
The public scalar functions validate every input and output; a stability
below MIN_STABILITY is out of domain.
"""
import math
from typing import Any, Optional

import numpy as np

from revise.core.exceptions import InvalidGradeError, NumericDomainViolation
from .card import Grade
from .weights import WeightVector

DECAY = -0.5
# Chosen so that R(t=S) == 0.9
FACTOR = 0.9 ** (1 / DECAY) - 1
MIN_STABILITY = 0.01
MIN_DIFFICULTY = 1.0
MAX_DIFFICULTY = 10.0


# === Vectorised kernels ===

def forgetting_curve(elapsed_days, stability):
    return np.power(1.0 + FACTOR * elapsed_days / stability, DECAY)


def stability_init(w, grade):
    index = np.asarray(grade) - 1
    return np.choose(index, [w[0], w[1], w[2], w[3]])


def difficulty_init(w, grade):
    shift = np.asarray(grade) - 3
    return np.clip(w[4] - shift * w[5], MIN_DIFFICULTY, MAX_DIFFICULTY)


def difficulty_update(w, difficulty, grade):
    shifted = difficulty - w[6] * (np.asarray(grade) - 3)
    # Mean reversion toward the initial difficulty of a GOOD first review
    reverted = w[7] * w[4] + (1 - w[7]) * shifted
    return np.clip(reverted, MIN_DIFFICULTY, MAX_DIFFICULTY)


def stability_after_success(w, stability, difficulty, retrievability, grade):
    grade = np.asarray(grade)
    hard_penalty = np.where(grade == Grade.HARD, w[15], 1.0)
    easy_bonus = np.where(grade == Grade.EASY, w[16], 1.0)
    growth = (
        np.exp(w[8])
        * (11 - difficulty)
        * np.power(stability, -w[9])
        * np.expm1(w[10] * (1 - retrievability))
        * hard_penalty
        * easy_bonus
    )
    return stability * (1 + growth)


def stability_after_lapse(w, stability, difficulty, retrievability):
    forgetting = (
        w[11]
        * np.power(difficulty, -w[12])
        * (np.power(stability + 1, w[13]) - 1)
        * np.exp(w[14] * (1 - retrievability))
    )
    return np.maximum(MIN_STABILITY, np.minimum(stability, forgetting))


def interval_for_retention(stability, desired_retention):
    return stability / FACTOR * (np.power(desired_retention, 1 / DECAY) - 1)


# === Validated scalar API ===

def _finite(quantity: str, value: Any) -> float:
    value = float(value)
    if not math.isfinite(value):
        raise NumericDomainViolation(quantity, value)
    return value


def _check_stability(value: Any, quantity: str = "stability") -> float:
    value = _finite(quantity, value)
    if value < MIN_STABILITY:
        raise NumericDomainViolation(quantity, value)
    return value


def _check_difficulty(value: Any, quantity: str = "difficulty") -> float:
    value = _finite(quantity, value)
    if not MIN_DIFFICULTY <= value <= MAX_DIFFICULTY:
        raise NumericDomainViolation(quantity, value)
    return value


def _check_retrievability(value: Any, quantity: str = "retrievability") -> float:
    value = _finite(quantity, value)
    if not 0.0 < value <= 1.0:
        raise NumericDomainViolation(quantity, value)
    return value


def retrievability(stability: float, difficulty: Optional[float], elapsed_days: float) -> float:
    """
    Predicted recall probability after elapsed_days.

    Difficulty does not enter the power-law curve; it is accepted so callers
    can pass a full memory state.
    """
    stability = _check_stability(stability)
    if difficulty is not None:
        _check_difficulty(difficulty)
    elapsed_days = _finite("elapsed_days", elapsed_days)
    if elapsed_days < 0:
        raise NumericDomainViolation("elapsed_days", elapsed_days)
    return _check_retrievability(forgetting_curve(elapsed_days, stability))


def initial_stability(grade: Grade, weights: WeightVector) -> float:
    return _check_stability(stability_init(weights, Grade.coerce(grade)), "initial_stability")


def initial_difficulty(grade: Grade, weights: WeightVector) -> float:
    return _check_difficulty(difficulty_init(weights, Grade.coerce(grade)), "initial_difficulty")


def next_difficulty(difficulty: float, grade: Grade, weights: WeightVector) -> float:
    """Pull difficulty toward a grade-dependent target; EASY lowers it, AGAIN raises it"""
    difficulty = _check_difficulty(difficulty)
    return _check_difficulty(
        difficulty_update(weights, difficulty, Grade.coerce(grade)), "next_difficulty"
    )


def next_stability_on_success(
    stability: float,
    difficulty: float,
    retrievability: float,
    grade: Grade,
    weights: WeightVector,
) -> float:
    """
    Stability after a successful recall (HARD, GOOD or EASY).

    Lower retrievability at review time gives a strictly larger gain.
    AGAIN is rejected with InvalidGradeError; use next_stability_on_lapse.
    """
    grade = Grade.coerce(grade)
    if grade == Grade.AGAIN:
        raise InvalidGradeError(grade)
    stability = _check_stability(stability)
    difficulty = _check_difficulty(difficulty)
    r = _check_retrievability(retrievability)
    return _check_stability(
        stability_after_success(weights, stability, difficulty, r, grade),
        "next_stability",
    )


def next_stability_on_lapse(
    stability: float,
    difficulty: float,
    retrievability: float,
    weights: WeightVector,
) -> float:
    """Stability after AGAIN; never above the pre-lapse value nor below MIN_STABILITY"""
    stability = _check_stability(stability)
    difficulty = _check_difficulty(difficulty)
    r = _check_retrievability(retrievability)
    return _check_stability(
        stability_after_lapse(weights, stability, difficulty, r),
        "next_stability",
    )


def next_interval(stability: float, desired_retention: float) -> float:
    """
    Days until retrievability falls to desired_retention.

    Closed-form inverse of the forgetting curve; unrounded and unclamped.
    """
    stability = _check_stability(stability)
    if not 0.0 < desired_retention < 1.0:
        raise NumericDomainViolation("desired_retention", desired_retention)
    interval = _finite("interval", interval_for_retention(stability, desired_retention))
    if interval <= 0:
        raise NumericDomainViolation("interval", interval)
    return interval
