"""
FSRS Scheduler

Orchestrates card state transitions: applies the memory model recurrence for
a grade, decides the new review state, computes the fuzzed and clamped next
interval, and records a review log entry.

State machine:
    New -> Learning -> Review <-> Relearning
    Suspended is reachable from any state and resumes to the prior one.
"""
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Any, Dict, Iterable, List, Optional, Tuple
import logging

from revise.core.config import Settings, settings as default_settings
from revise.core.exceptions import (
    InvalidStateError,
    NotFoundError,
    NumericDomainViolation,
)
from . import memory_model
from .card import CardState, Grade, ReviewLogEntry, ReviewState
from .fuzz import apply_fuzz, fuzz_rng
from .review_queue import due_items
from .weights import DEFAULT_WEIGHTS, WeightVector

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SchedulerConfig:
    """Scheduling policy"""
    desired_retention: float = 0.9
    minimum_interval: int = 1          # days
    maximum_interval: int = 36500      # days
    graduation_threshold: int = 1      # consecutive non-AGAIN grades to reach Review
    enable_fuzz: bool = True
    fuzz_seed: Optional[int] = None

    def __post_init__(self):
        if not 0.0 < self.desired_retention < 1.0:
            raise ValueError("desired_retention must be in (0, 1)")
        if self.minimum_interval < 1:
            raise ValueError("minimum_interval must be >= 1 day")
        if self.maximum_interval < self.minimum_interval:
            raise ValueError("maximum_interval must be >= minimum_interval")
        if self.graduation_threshold < 1:
            raise ValueError("graduation_threshold must be >= 1")

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "SchedulerConfig":
        config = config or default_settings
        return cls(
            desired_retention=config.DESIRED_RETENTION,
            minimum_interval=config.MINIMUM_INTERVAL,
            maximum_interval=config.MAXIMUM_INTERVAL,
            graduation_threshold=config.GRADUATION_THRESHOLD,
            enable_fuzz=config.ENABLE_FUZZ,
            fuzz_seed=config.FUZZ_SEED,
        )

    def to_dict(self) -> Dict:
        return {
            "desired_retention": self.desired_retention,
            "minimum_interval": self.minimum_interval,
            "maximum_interval": self.maximum_interval,
            "graduation_threshold": self.graduation_threshold,
            "enable_fuzz": self.enable_fuzz,
            "fuzz_seed": self.fuzz_seed,
        }


@dataclass(frozen=True)
class SchedulingPreview:
    """Outcome a grade would produce, without applying it"""
    grade: Grade
    interval_days: int
    due_at: datetime
    stability: float
    difficulty: float
    review_state: ReviewState


def elapsed_days_between(last_reviewed_at: Optional[datetime], reviewed_at: datetime) -> int:
    """Whole days elapsed since the last review (0 for a first review)"""
    if last_reviewed_at is None:
        return 0
    return max(0, (reviewed_at - last_reviewed_at).days)


def _next_review_state(
    current: ReviewState,
    grade: Grade,
    consecutive_successes: int,
    graduation_threshold: int,
) -> ReviewState:
    if grade == Grade.AGAIN:
        if current in (ReviewState.REVIEW, ReviewState.RELEARNING):
            return ReviewState.RELEARNING
        return ReviewState.LEARNING

    if current == ReviewState.REVIEW:
        return ReviewState.REVIEW
    if consecutive_successes >= graduation_threshold:
        return ReviewState.REVIEW
    if current == ReviewState.NEW:
        return ReviewState.LEARNING
    return current


def scheduled_interval(
    stability: float,
    config: SchedulerConfig,
    item_id: str,
    reps: int,
    reviewed_at: datetime,
) -> int:
    """Whole-day interval: inverted forgetting curve, clamped, then fuzzed"""
    target = memory_model.next_interval(stability, config.desired_retention)
    interval = max(config.minimum_interval, min(config.maximum_interval, int(round(target))))
    if config.enable_fuzz:
        rng = fuzz_rng(config.fuzz_seed, item_id, reps, reviewed_at)
        interval = apply_fuzz(interval, config.minimum_interval, config.maximum_interval, rng)
    return interval


def review_card(
    card: CardState,
    grade: Any,
    reviewed_at: datetime,
    weights: WeightVector,
    config: SchedulerConfig,
) -> Tuple[CardState, ReviewLogEntry]:
    """
    Apply one graded review to a card.

    Pure: returns the updated card and its log entry, leaving the input
    untouched.

    Raises:
        InvalidGradeError: grade is not one of the four grades
        InvalidStateError: card is suspended, or reviewed_at precedes the last review
        NumericDomainViolation: malformed card state or weights produced an invalid value
    """
    grade = Grade.coerce(grade)

    if card.is_suspended:
        raise InvalidStateError(
            card.item_id, card.review_state, "Cannot grade a suspended item; resume it first"
        )
    if card.last_reviewed_at is not None and reviewed_at < card.last_reviewed_at:
        raise InvalidStateError(
            card.item_id, card.review_state, "Review time precedes the last review"
        )

    first_review = card.review_state == ReviewState.NEW
    elapsed_days = elapsed_days_between(card.last_reviewed_at, reviewed_at)

    try:
        if first_review:
            r = 1.0
            stability = memory_model.initial_stability(grade, weights)
            difficulty = memory_model.initial_difficulty(grade, weights)
        else:
            if card.stability is None:
                raise NumericDomainViolation("stability", None, card.item_id)
            if card.difficulty is None:
                raise NumericDomainViolation("difficulty", None, card.item_id)

            r = memory_model.retrievability(card.stability, card.difficulty, elapsed_days)
            difficulty = memory_model.next_difficulty(card.difficulty, grade, weights)
            if grade == Grade.AGAIN:
                stability = memory_model.next_stability_on_lapse(
                    card.stability, card.difficulty, r, weights
                )
            else:
                stability = memory_model.next_stability_on_success(
                    card.stability, card.difficulty, r, grade, weights
                )

        interval = scheduled_interval(stability, config, card.item_id, card.reps, reviewed_at)
    except NumericDomainViolation as e:
        if e.item_id is None:
            raise NumericDomainViolation(e.quantity, e.value, card.item_id) from e
        raise

    if grade == Grade.AGAIN:
        lapses = card.lapses + 1
        consecutive_successes = 0
    else:
        lapses = card.lapses
        consecutive_successes = card.consecutive_successes + 1

    review_state = _next_review_state(
        card.review_state, grade, consecutive_successes, config.graduation_threshold
    )

    updated = replace(
        card,
        stability=stability,
        difficulty=difficulty,
        last_reviewed_at=reviewed_at,
        due_at=reviewed_at + timedelta(days=interval),
        lapses=lapses,
        reps=card.reps + 1,
        consecutive_successes=consecutive_successes,
        scheduled_days=interval,
        review_state=review_state,
    )

    entry = ReviewLogEntry(
        item_id=card.item_id,
        reviewed_at=reviewed_at,
        elapsed_days=elapsed_days,
        grade=grade,
        stability_before=None if first_review else card.stability,
        stability_after=stability,
        difficulty_before=None if first_review else card.difficulty,
        difficulty_after=difficulty,
        predicted_retrievability=r,
        state_before=card.review_state,
        state_after=review_state,
        scheduled_days=interval,
    )

    return updated, entry


class Scheduler:
    """
    Owns card states and the append-only review log.

    The adopted weight vector is an immutable snapshot: every operation reads
    it once, and adopt_weights swaps the reference, so an in-flight grading
    never sees a half-applied refit.

    Grading of a single item must be serialized by the caller; different
    items share no mutable state besides the log.
    """

    def __init__(
        self,
        weights: Optional[WeightVector] = None,
        config: Optional[SchedulerConfig] = None,
    ):
        self._weights = weights or DEFAULT_WEIGHTS
        self.config = config or SchedulerConfig.from_settings()
        self._cards: Dict[str, CardState] = {}
        self._log: List[ReviewLogEntry] = []
        self._lock = Lock()

    # === Weights ===

    @property
    def weights(self) -> WeightVector:
        with self._lock:
            return self._weights

    def adopt_weights(self, weights: WeightVector) -> WeightVector:
        """
        Atomically replace the weight vector.

        The adopted copy is re-validated and gets a version above the current
        one. Call only after the caller confirms an optimization result.
        """
        with self._lock:
            adopted = WeightVector(
                weights.values, version=max(weights.version, self._weights.version + 1)
            )
            self._weights = adopted
        logger.info(f"Adopted weights v{adopted.version}")
        return adopted

    # === Item lifecycle ===

    def add_item(self, item_id: str, created_at: Optional[datetime] = None) -> CardState:
        """Start scheduling a new item; it is due immediately"""
        if item_id in self._cards:
            raise InvalidStateError(item_id, self._cards[item_id].review_state, "Item already tracked")
        card = CardState(item_id=item_id, due_at=created_at or utcnow())
        self._cards[item_id] = card
        return card.copy()

    def track(self, card: CardState) -> None:
        """Load an externally persisted card state"""
        self._cards[card.item_id] = card.copy()

    def remove_item(self, item_id: str) -> None:
        """Forget an item deleted by its owner"""
        self._get(item_id)
        del self._cards[item_id]

    def _get(self, item_id: str) -> CardState:
        try:
            return self._cards[item_id]
        except KeyError:
            raise NotFoundError(item_id) from None

    def card(self, item_id: str) -> CardState:
        return self._get(item_id).copy()

    def cards(self) -> List[CardState]:
        return [card.copy() for card in self._cards.values()]

    # === Reviews ===

    def grade(self, item_id: str, grade: Any, reviewed_at: Optional[datetime] = None) -> CardState:
        """
        Grade an item and reschedule it.

        Args:
            item_id: Tracked item id
            grade: Grade, its integer value (1-4) or name ("good")
            reviewed_at: Time of review (default: now, UTC)

        Returns:
            Updated card state
        """
        reviewed_at = reviewed_at or utcnow()
        card = self._get(item_id)
        weights = self.weights

        updated, entry = review_card(card, grade, reviewed_at, weights, self.config)

        self._cards[item_id] = updated
        with self._lock:
            self._log.append(entry)

        logger.debug(
            f"Graded {item_id} {entry.grade.name}: S={updated.stability:.3f} "
            f"D={updated.difficulty:.3f} R={entry.predicted_retrievability:.3f} "
            f"state={updated.review_state.value} interval={updated.scheduled_days}d"
        )
        return updated.copy()

    def preview(
        self, item_id: str, reviewed_at: Optional[datetime] = None
    ) -> Dict[Grade, SchedulingPreview]:
        """
        What each grade would do right now, without applying it.

        Uses the same fuzz stream as grade(), so with a fixed seed the preview
        matches the eventual outcome.
        """
        reviewed_at = reviewed_at or utcnow()
        card = self._get(item_id)
        weights = self.weights

        previews = {}
        for grade in Grade:
            updated, _ = review_card(card, grade, reviewed_at, weights, self.config)
            previews[grade] = SchedulingPreview(
                grade=grade,
                interval_days=updated.scheduled_days,
                due_at=updated.due_at,
                stability=updated.stability,
                difficulty=updated.difficulty,
                review_state=updated.review_state,
            )
        return previews

    def set_suspended(self, item_id: str, suspended: bool) -> CardState:
        """
        Suspend or resume an item.

        A pure state toggle: due_at and the memory state are left as they
        are. Repeating the current setting is a no-op.
        """
        card = self._get(item_id)

        if suspended and not card.is_suspended:
            updated = replace(
                card, review_state=ReviewState.SUSPENDED, suspended_from=card.review_state
            )
        elif not suspended and card.is_suspended:
            updated = replace(
                card,
                review_state=card.suspended_from or ReviewState.NEW,
                suspended_from=None,
            )
        else:
            return card.copy()

        self._cards[item_id] = updated
        logger.debug(f"{item_id} {'suspended' if suspended else 'resumed'} ({updated.review_state.value})")
        return updated.copy()

    # === Queries ===

    def due_items(self, now: Optional[datetime] = None) -> List[str]:
        return due_items(self._cards.values(), now or utcnow())

    def review_log(self) -> Tuple[ReviewLogEntry, ...]:
        """Read-only view of the accumulated log"""
        with self._lock:
            return tuple(self._log)

    def load_log(self, entries: Iterable[ReviewLogEntry]) -> None:
        """Append previously persisted entries"""
        with self._lock:
            self._log.extend(entries)

    def history(self, item_id: str) -> List[ReviewLogEntry]:
        self._get(item_id)
        return [entry for entry in self.review_log() if entry.item_id == item_id]

    def last_review(self, item_id: str) -> Optional[ReviewLogEntry]:
        """Latest log entry for an item (what was chosen last time)"""
        history = self.history(item_id)
        return history[-1] if history else None
