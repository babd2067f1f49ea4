"""
Error kinds raised by the scheduling core.

Every error carries the context needed to log it or surface it in a UI
(item id, offending value). Nothing in the core retries or swallows these.
"""
from typing import Any, Optional


class ReviseError(Exception):
    """Base class for all scheduling core errors"""


class NotFoundError(ReviseError):
    """Operation on an item id the scheduler is not tracking"""

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Not found: {item_id}")


class InvalidGradeError(ReviseError):
    """Grade value outside Again/Hard/Good/Easy"""

    def __init__(self, value: Any):
        self.value = value
        super().__init__(f"Invalid grade: {value!r}")


class InvalidStateError(ReviseError):
    """Operation not allowed in the item's current review state"""

    def __init__(self, item_id: str, state: Any, message: str):
        self.item_id = item_id
        self.state = state
        super().__init__(f"{message} (item={item_id}, state={state})")


class NumericDomainViolation(ReviseError):
    """
    A computed or supplied quantity is non-finite or outside its domain.

    Indicates a malformed weight vector or a corrupted card state. The host
    decides whether to halt the operation; the core never clamps S/D back.
    """

    def __init__(self, quantity: str, value: Any, item_id: Optional[str] = None):
        self.quantity = quantity
        self.value = value
        self.item_id = item_id
        where = f" for item {item_id}" if item_id is not None else ""
        super().__init__(f"{quantity} out of domain{where}: {value!r}")


class InsufficientDataError(ReviseError):
    """Review log too small to fit weights without overfitting"""

    def __init__(self, num_reviews: int, min_reviews: int):
        self.num_reviews = num_reviews
        self.min_reviews = min_reviews
        super().__init__(f"Insufficient reviews ({num_reviews} < {min_reviews})")


class OptimizationDivergedError(ReviseError):
    """Loss became non-finite or worsened beyond tolerance"""

    def __init__(self, initial_loss: float, loss: float, iteration: int):
        self.initial_loss = initial_loss
        self.loss = loss
        self.iteration = iteration
        super().__init__(
            f"Optimization diverged at iteration {iteration}: "
            f"loss {loss:.6f} vs initial {initial_loss:.6f}"
        )


class OptimizationCancelledError(ReviseError):
    """Fit was cancelled before completion"""

    def __init__(self, iteration: int):
        self.iteration = iteration
        super().__init__(f"Optimization cancelled at iteration {iteration}")
