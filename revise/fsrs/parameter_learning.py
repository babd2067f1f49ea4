"""
FSRS Parameter Learning

Refits the 17 model weights from the review log by minimizing binary
cross-entropy between replayed retrievability and observed recall.

Each item's stability/difficulty trajectory is replayed from its first
review under the candidate weights. The S/D stored in the log were produced
by whatever weights were adopted at the time and are deliberately ignored.

Method:
1. Pad per-item review sequences into arrays
2. Replay all items for a batch of candidate weight vectors at once
   (numpy broadcasting over a (K, items) state)
3. Central finite-difference gradient (2 * 17 perturbed candidates)
4. Adam step, then hard clamp every weight into its bounds

References:
- FSRS-4.5: https://github.com/open-spaced-repetition/fsrs4anki
- Kingma & Ba, 2015: Adam: A Method for Stochastic Optimization
"""

from dataclasses import dataclass, field
from threading import Event
from typing import Callable, Dict, List, Optional, Sequence, Tuple
import logging
import math

import numpy as np

from revise.core.config import Settings, settings as default_settings
from revise.core.exceptions import (
    InsufficientDataError,
    OptimizationCancelledError,
    OptimizationDivergedError,
)
from .card import Grade, ReviewLogEntry
from .memory_model import (
    difficulty_init,
    difficulty_update,
    forgetting_curve,
    stability_after_lapse,
    stability_after_success,
    stability_init,
)
from .weights import (
    DEFAULT_WEIGHTS,
    NUM_WEIGHTS,
    WEIGHT_BOUNDS,
    WeightVector,
)

logger = logging.getLogger(__name__)

# Keeps log() finite for predictions of exactly 0 or 1
PREDICTION_EPS = 1e-7

_LOWER = np.array([low for low, _ in WEIGHT_BOUNDS])
_UPPER = np.array([high for _, high in WEIGHT_BOUNDS])


@dataclass
class OptimizerConfig:
    """Optimizer hyperparameters and guards"""
    min_reviews: int = 50
    max_iterations: int = 200
    learning_rate: float = 0.04
    tolerance: float = 1e-6              # stop when |loss change| falls below this
    gradient_tolerance: float = 1e-4     # stop when every |gradient| component falls below this
    min_improvement: float = 1e-3        # relative loss gain needed to move off the initial weights
    divergence_tolerance: float = 0.1    # abort when loss > initial * (1 + this)
    regularization: float = 0.0          # L2 pull toward the default weights
    gradient_step: float = 1e-4
    beta1: float = 0.9
    beta2: float = 0.999
    epsilon: float = 1e-8

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "OptimizerConfig":
        config = config or default_settings
        return cls(
            min_reviews=config.OPTIMIZER_MIN_REVIEWS,
            max_iterations=config.OPTIMIZER_MAX_ITERATIONS,
            learning_rate=config.OPTIMIZER_LEARNING_RATE,
            tolerance=config.OPTIMIZER_TOLERANCE,
            gradient_tolerance=config.OPTIMIZER_GRADIENT_TOLERANCE,
            min_improvement=config.OPTIMIZER_MIN_IMPROVEMENT,
            divergence_tolerance=config.OPTIMIZER_DIVERGENCE_TOLERANCE,
            regularization=config.OPTIMIZER_REGULARIZATION,
        )


@dataclass
class OptimizationResult:
    """Result of parameter optimization"""
    weights: WeightVector
    initial_loss: float
    final_loss: float
    improvement_percent: float
    num_reviews_used: int
    converged: bool
    iterations: int
    metrics: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {
            "weights": self.weights.to_dict(),
            "initial_loss": self.initial_loss,
            "final_loss": self.final_loss,
            "improvement_percent": self.improvement_percent,
            "num_reviews_used": self.num_reviews_used,
            "converged": self.converged,
            "iterations": self.iterations,
            "metrics": self.metrics,
        }


@dataclass
class ReviewSequences:
    """
    Review log reshaped for vectorised replay.

    Row i holds item i's reviews in chronological order, left-aligned and
    padded with GOOD / 0 days where mask is False.
    """
    item_ids: List[str]
    grades: np.ndarray    # (items, T) int
    elapsed: np.ndarray   # (items, T) float
    mask: np.ndarray      # (items, T) bool
    num_reviews: int

    @classmethod
    def from_log(cls, log: Sequence[ReviewLogEntry]) -> "ReviewSequences":
        by_item: Dict[str, List[ReviewLogEntry]] = {}
        for entry in log:
            by_item.setdefault(entry.item_id, []).append(entry)

        item_ids = list(by_item)
        length = max((len(entries) for entries in by_item.values()), default=0)
        grades = np.full((len(item_ids), length), int(Grade.GOOD), dtype=np.int64)
        elapsed = np.zeros((len(item_ids), length), dtype=np.float64)
        mask = np.zeros((len(item_ids), length), dtype=bool)

        for row, item_id in enumerate(item_ids):
            # Stable sort keeps log order for equal timestamps
            entries = sorted(by_item[item_id], key=lambda e: e.reviewed_at)
            n = len(entries)
            grades[row, :n] = [int(e.grade) for e in entries]
            elapsed[row, :n] = [e.elapsed_days for e in entries]
            mask[row, :n] = True

        return cls(item_ids, grades, elapsed, mask, num_reviews=len(log))

    @property
    def scored(self) -> np.ndarray:
        """
        Entries that contribute a prediction.

        An item's first review has no prior memory state, and same-day
        reviews (0 elapsed days) have R == 1 by definition; both still drive
        the replay but are not scored.
        """
        scored = self.mask & (self.elapsed > 0)
        scored[:, :1] = False
        return scored

    @property
    def num_predictions(self) -> int:
        return int(self.scored.sum())


class FSRSOptimizer:
    """
    Learns FSRS weights from a review log.

    fit() is synchronous and CPU-bound; run it through
    revise.fsrs.background.OptimizationJob to keep it off the review path.
    """

    def __init__(self, config: Optional[OptimizerConfig] = None):
        self.config = config or OptimizerConfig.from_settings()

    # === Replay ===

    def _replay(
        self,
        sequences: ReviewSequences,
        candidates: np.ndarray,
        collect: bool = False,
    ) -> Tuple[np.ndarray, Optional[np.ndarray], Optional[np.ndarray]]:
        """
        Replay every item under K candidate weight vectors.

        Args:
            sequences: Padded review sequences
            candidates: (K, 17) weight matrix
            collect: Also return scored predictions and outcomes

        Returns:
            (summed BCE per candidate, predictions (K, n) or None, outcomes (n,) or None)
        """
        w = candidates.T[:, :, None]  # w[i] has shape (K, 1)
        k = candidates.shape[0]
        scored = sequences.scored
        loss_sum = np.zeros(k)
        predictions: List[np.ndarray] = []
        outcomes: List[np.ndarray] = []

        if sequences.grades.shape[1] == 0:
            return loss_sum, None, None

        with np.errstate(over="ignore", invalid="ignore", divide="ignore"):
            first = sequences.grades[:, 0]
            stability = stability_init(w, first) * np.ones((k, len(first)))
            difficulty = difficulty_init(w, first) * np.ones((k, len(first)))

            for t in range(1, sequences.grades.shape[1]):
                active = sequences.mask[:, t]
                grade = sequences.grades[:, t]
                r = forgetting_curve(sequences.elapsed[:, t], stability)

                step_scored = scored[:, t]
                if step_scored.any():
                    y = (grade[step_scored] != Grade.AGAIN).astype(np.float64)
                    p = np.clip(r[:, step_scored], PREDICTION_EPS, 1 - PREDICTION_EPS)
                    loss_sum += -(y * np.log(p) + (1 - y) * np.log(1 - p)).sum(axis=1)
                    if collect:
                        predictions.append(r[:, step_scored])
                        outcomes.append(y)

                next_d = difficulty_update(w, difficulty, grade)
                next_s = np.where(
                    grade == Grade.AGAIN,
                    stability_after_lapse(w, stability, difficulty, r),
                    stability_after_success(w, stability, difficulty, r, grade),
                )
                stability = np.where(active, next_s, stability)
                difficulty = np.where(active, next_d, difficulty)

        if not collect:
            return loss_sum, None, None
        if not predictions:
            return loss_sum, np.zeros((k, 0)), np.zeros(0)
        return loss_sum, np.concatenate(predictions, axis=1), np.concatenate(outcomes)

    def _objective(self, sequences: ReviewSequences, candidates: np.ndarray) -> np.ndarray:
        """Mean BCE (+ optional regularization) for each candidate row"""
        loss_sum, _, _ = self._replay(sequences, candidates)
        loss = loss_sum / max(sequences.num_predictions, 1)

        if self.config.regularization > 0:
            default = np.array(DEFAULT_WEIGHTS.values)
            spread = ((candidates - default) / (_UPPER - _LOWER)) ** 2
            loss = loss + self.config.regularization * spread.mean(axis=1)

        return loss

    def _loss_and_gradient(
        self, sequences: ReviewSequences, weights: np.ndarray
    ) -> Tuple[float, np.ndarray]:
        """Loss at weights and its central-difference gradient, in one batched replay"""
        h = self.config.gradient_step
        offsets = np.eye(NUM_WEIGHTS) * h
        candidates = np.vstack([weights[None, :], weights + offsets, weights - offsets])
        losses = self._objective(sequences, candidates)
        gradient = (losses[1:NUM_WEIGHTS + 1] - losses[NUM_WEIGHTS + 1:]) / (2 * h)
        return float(losses[0]), gradient

    # === Public API ===

    def loss(self, log: Sequence[ReviewLogEntry], weights: WeightVector) -> float:
        """Objective value of a weight vector on a log"""
        sequences = ReviewSequences.from_log(log)
        return float(self._objective(sequences, np.array([weights.values]))[0])

    def evaluate(self, log: Sequence[ReviewLogEntry], weights: WeightVector) -> Dict[str, float]:
        """Prediction metrics of a weight vector on a log"""
        sequences = ReviewSequences.from_log(log)
        return self._calculate_metrics(sequences, np.array(weights.values))

    def fit(
        self,
        log: Sequence[ReviewLogEntry],
        initial_weights: Optional[WeightVector] = None,
        cancel_event: Optional[Event] = None,
        progress: Optional[Callable[[int, float], None]] = None,
    ) -> OptimizationResult:
        """
        Fit weights to a review log with Adam.

        Args:
            log: Review log entries (any order; grouped and sorted per item)
            initial_weights: Starting point (default: shipped defaults)
            cancel_event: Set to abort between iterations
            progress: Called with (iteration, loss) after each evaluation

        Returns:
            Optimization result with the best weights seen, or the initial
            weights when no vector beats them by min_improvement

        Raises:
            InsufficientDataError: fewer than min_reviews entries, or nothing to predict
            OptimizationDivergedError: loss non-finite or worse than tolerated
            OptimizationCancelledError: cancel_event was set
        """
        cfg = self.config
        initial_weights = initial_weights or DEFAULT_WEIGHTS

        if len(log) < cfg.min_reviews:
            logger.info(f"Insufficient reviews ({len(log)} < {cfg.min_reviews})")
            raise InsufficientDataError(len(log), cfg.min_reviews)

        sequences = ReviewSequences.from_log(log)
        if sequences.num_predictions == 0:
            # No entry follows an earlier review of its item on a later day
            logger.info("No scorable reviews in log")
            raise InsufficientDataError(0, 1)

        logger.info(
            f"Optimizing weights on {len(log)} reviews "
            f"({len(sequences.item_ids)} items, {sequences.num_predictions} predictions)"
        )

        weights = np.array(initial_weights.values, dtype=np.float64)
        m = np.zeros(NUM_WEIGHTS)
        v = np.zeros(NUM_WEIGHTS)

        initial_loss: Optional[float] = None
        best_loss = math.inf
        best_weights = weights.copy()
        previous_loss: Optional[float] = None
        converged = False
        iteration = 0

        for iteration in range(1, cfg.max_iterations + 1):
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"Optimization cancelled at iteration {iteration}")
                raise OptimizationCancelledError(iteration)

            loss, gradient = self._loss_and_gradient(sequences, weights)

            if initial_loss is None:
                initial_loss = loss
            self._check_divergence(initial_loss, loss, gradient, iteration)

            if progress is not None:
                progress(iteration, loss)

            if loss < best_loss:
                best_loss = loss
                best_weights = weights.copy()

            if (
                (previous_loss is not None and abs(previous_loss - loss) < cfg.tolerance)
                or np.max(np.abs(gradient)) < cfg.gradient_tolerance
            ):
                converged = True
                logger.info(f"Converged at iteration {iteration}")
                break
            previous_loss = loss

            # Adam update
            m = cfg.beta1 * m + (1 - cfg.beta1) * gradient
            v = cfg.beta2 * v + (1 - cfg.beta2) * gradient ** 2
            m_hat = m / (1 - cfg.beta1 ** iteration)
            v_hat = v / (1 - cfg.beta2 ** iteration)
            weights = weights - cfg.learning_rate * m_hat / (np.sqrt(v_hat) + cfg.epsilon)

            weights = np.clip(weights, _LOWER, _UPPER)

        if not converged:
            # The last step was taken but never evaluated
            final_loss = float(self._objective(sequences, weights[None, :])[0])
            if math.isfinite(final_loss) and final_loss < best_loss:
                best_loss = final_loss
                best_weights = weights.copy()

        # Gains below min_improvement keep the starting vector, so a refit is a fixed point
        if best_loss > initial_loss * (1 - cfg.min_improvement):
            logger.info(
                f"Best loss {best_loss:.5f} within {cfg.min_improvement:.2%} of initial; "
                f"keeping initial weights"
            )
            best_loss = initial_loss
            best_weights = np.array(initial_weights.values, dtype=np.float64)

        improvement = (
            (initial_loss - best_loss) / initial_loss * 100 if initial_loss > 0 else 0.0
        )
        result = OptimizationResult(
            weights=WeightVector.clamped(best_weights, version=initial_weights.version + 1),
            initial_loss=initial_loss,
            final_loss=best_loss,
            improvement_percent=improvement,
            num_reviews_used=len(log),
            converged=converged,
            iterations=iteration,
            metrics=self._calculate_metrics(sequences, best_weights),
        )

        logger.info(
            f"Optimization finished: loss {initial_loss:.5f} -> {best_loss:.5f} "
            f"({improvement:.2f}%), converged={converged}, iterations={iteration}"
        )
        return result

    def _check_divergence(
        self, initial_loss: float, loss: float, gradient: np.ndarray, iteration: int
    ) -> None:
        limit = initial_loss * (1 + self.config.divergence_tolerance)
        if (
            not math.isfinite(loss)
            or not np.all(np.isfinite(gradient))
            or loss > limit
        ):
            logger.error(
                f"Optimization diverged at iteration {iteration}: "
                f"loss={loss}, initial={initial_loss}"
            )
            raise OptimizationDivergedError(initial_loss, loss, iteration)

    # === Metrics ===

    def _calculate_metrics(
        self, sequences: ReviewSequences, weights: np.ndarray
    ) -> Dict[str, float]:
        """Calculate evaluation metrics for a weight vector"""
        _, predictions, outcomes = self._replay(sequences, weights[None, :], collect=True)
        if predictions is None or outcomes.size == 0:
            return {}

        p = predictions[0]
        y = outcomes
        clipped = np.clip(p, PREDICTION_EPS, 1 - PREDICTION_EPS)

        return {
            "log_loss": float(-(y * np.log(clipped) + (1 - y) * np.log(1 - clipped)).mean()),
            "rmse": float(np.sqrt(np.mean((p - y) ** 2))),
            "mae": float(np.mean(np.abs(p - y))),
            "auc": _calculate_auc(p, y),
            "calibration": _calculate_calibration(p, y),
            "predicted_retention": float(p.mean()),
            "actual_retention": float(y.mean()),
            "retention_error": float(abs(p.mean() - y.mean())),
        }


def _calculate_auc(predictions: np.ndarray, actuals: np.ndarray) -> float:
    """AUC-ROC via the rank-sum statistic, ties averaged"""
    n_pos = int(actuals.sum())
    n_neg = actuals.size - n_pos
    if n_pos == 0 or n_neg == 0:
        return 0.5

    _, inverse, counts = np.unique(predictions, return_inverse=True, return_counts=True)
    upper_ranks = np.cumsum(counts)
    average_ranks = upper_ranks - (counts - 1) / 2.0
    ranks = average_ranks[inverse]

    rank_sum = ranks[actuals == 1].sum()
    return float((rank_sum - n_pos * (n_pos + 1) / 2.0) / (n_pos * n_neg))


def _calculate_calibration(
    predictions: np.ndarray, actuals: np.ndarray, n_bins: int = 10
) -> float:
    """Expected calibration error over equal-width probability bins"""
    bins = np.minimum((predictions * n_bins).astype(int), n_bins - 1)
    ece = 0.0
    for b in range(n_bins):
        in_bin = bins == b
        count = int(in_bin.sum())
        if count == 0:
            continue
        ece += count * abs(predictions[in_bin].mean() - actuals[in_bin].mean())
    return float(ece / predictions.size)
