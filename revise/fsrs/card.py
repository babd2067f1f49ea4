"""
Card state, review log entries, grades and review states
"""
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, Dict, Optional

from revise.core.exceptions import InvalidGradeError


class Grade(IntEnum):
    """Review grade; the ordering is significant to the recurrence"""
    AGAIN = 1  # Failed recall (lapse)
    HARD = 2   # Recalled with serious difficulty
    GOOD = 3   # Recalled after some hesitation
    EASY = 4   # Recalled easily

    @classmethod
    def coerce(cls, value: Any) -> "Grade":
        """Accept a Grade, its integer value or its name"""
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise InvalidGradeError(value)
        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                raise InvalidGradeError(value) from None
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise InvalidGradeError(value) from None
        raise InvalidGradeError(value)

    @property
    def recalled(self) -> bool:
        return self is not Grade.AGAIN


class ReviewState(str, Enum):
    """Card review state"""
    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    RELEARNING = "relearning"
    SUSPENDED = "suspended"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass
class CardState:
    """
    Scheduling state for one item.

    stability and difficulty are None while the item is New; they are set by
    the first grade and afterwards only by the memory model recurrence.
    """
    item_id: str
    due_at: datetime
    stability: Optional[float] = None
    difficulty: Optional[float] = None
    last_reviewed_at: Optional[datetime] = None
    lapses: int = 0
    reps: int = 0
    consecutive_successes: int = 0
    scheduled_days: int = 0
    review_state: ReviewState = ReviewState.NEW
    suspended_from: Optional[ReviewState] = None

    @property
    def is_suspended(self) -> bool:
        return self.review_state == ReviewState.SUSPENDED

    def copy(self) -> "CardState":
        return replace(self)

    def to_dict(self) -> Dict:
        """Convert to dictionary"""
        return {
            "item_id": self.item_id,
            "due_at": _iso(self.due_at),
            "stability": self.stability,
            "difficulty": self.difficulty,
            "last_reviewed_at": _iso(self.last_reviewed_at),
            "lapses": self.lapses,
            "reps": self.reps,
            "consecutive_successes": self.consecutive_successes,
            "scheduled_days": self.scheduled_days,
            "review_state": self.review_state.value,
            "suspended_from": self.suspended_from.value if self.suspended_from else None,
        }

    @classmethod
    def from_dict(cls, d: Dict) -> "CardState":
        return cls(
            item_id=d["item_id"],
            due_at=_parse(d["due_at"]),
            stability=d.get("stability"),
            difficulty=d.get("difficulty"),
            last_reviewed_at=_parse(d.get("last_reviewed_at")),
            lapses=d.get("lapses", 0),
            reps=d.get("reps", 0),
            consecutive_successes=d.get("consecutive_successes", 0),
            scheduled_days=d.get("scheduled_days", 0),
            review_state=ReviewState(d.get("review_state", ReviewState.NEW.value)),
            suspended_from=ReviewState(d["suspended_from"]) if d.get("suspended_from") else None,
        )


@dataclass(frozen=True)
class ReviewLogEntry:
    """Immutable record of one graded review"""
    item_id: str
    reviewed_at: datetime
    elapsed_days: int
    grade: Grade
    stability_before: Optional[float]
    stability_after: float
    difficulty_before: Optional[float]
    difficulty_after: float
    predicted_retrievability: float
    state_before: ReviewState = ReviewState.NEW
    state_after: ReviewState = ReviewState.LEARNING
    scheduled_days: int = 0

    @property
    def is_first_review(self) -> bool:
        return self.stability_before is None

    def to_dict(self) -> Dict:
        return {
            "item_id": self.item_id,
            "reviewed_at": _iso(self.reviewed_at),
            "elapsed_days": self.elapsed_days,
            "grade": int(self.grade),
            "stability_before": self.stability_before,
            "stability_after": self.stability_after,
            "difficulty_before": self.difficulty_before,
            "difficulty_after": self.difficulty_after,
            "predicted_retrievability": self.predicted_retrievability,
            "state_before": self.state_before.value,
            "state_after": self.state_after.value,
            "scheduled_days": self.scheduled_days,
        }

    @classmethod
    def from_dict(cls, d: Dict) -> "ReviewLogEntry":
        return cls(
            item_id=d["item_id"],
            reviewed_at=_parse(d["reviewed_at"]),
            elapsed_days=int(d.get("elapsed_days", 0)),
            grade=Grade.coerce(d["grade"]),
            stability_before=d.get("stability_before"),
            stability_after=d["stability_after"],
            difficulty_before=d.get("difficulty_before"),
            difficulty_after=d["difficulty_after"],
            predicted_retrievability=d.get("predicted_retrievability", 1.0),
            state_before=ReviewState(d.get("state_before", ReviewState.NEW.value)),
            state_after=ReviewState(d.get("state_after", ReviewState.LEARNING.value)),
            scheduled_days=d.get("scheduled_days", 0),
        )
