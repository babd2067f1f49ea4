"""
FSRS Spaced Repetition Scheduling

Includes:
- Memory model: retrievability and the stability/difficulty recurrence
- WeightVector: versioned 17-weight parameter set with bounds
- Scheduler: grading state machine, fuzzed and clamped intervals, review log
- Review queue: due-item ordering
- Parameter learning: replay-based weight fitting, run in the background
"""
from .card import CardState, Grade, ReviewLogEntry, ReviewState
from .weights import (
    DEFAULT_WEIGHTS,
    WEIGHT_BOUNDS,
    WeightVector,
    export_weights,
    load_weights,
)
from .scheduler import Scheduler, SchedulerConfig, SchedulingPreview, review_card
from .review_queue import due_cards, due_items
from .parameter_learning import (
    FSRSOptimizer,
    OptimizationResult,
    OptimizerConfig,
)
from .background import OptimizationJob

__all__ = [
    # Data model
    "CardState",
    "Grade",
    "ReviewLogEntry",
    "ReviewState",
    # Weights
    "DEFAULT_WEIGHTS",
    "WEIGHT_BOUNDS",
    "WeightVector",
    "export_weights",
    "load_weights",
    # Scheduling
    "Scheduler",
    "SchedulerConfig",
    "SchedulingPreview",
    "review_card",
    "due_cards",
    "due_items",
    # Parameter learning
    "FSRSOptimizer",
    "OptimizationResult",
    "OptimizerConfig",
    "OptimizationJob",
]
