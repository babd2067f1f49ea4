"""
Ambient configuration, logging and error kinds
"""
from .exceptions import (
    ReviseError,
    NotFoundError,
    InvalidGradeError,
    InvalidStateError,
    NumericDomainViolation,
    InsufficientDataError,
    OptimizationDivergedError,
    OptimizationCancelledError,
)

__all__ = [
    "ReviseError",
    "NotFoundError",
    "InvalidGradeError",
    "InvalidStateError",
    "NumericDomainViolation",
    "InsufficientDataError",
    "OptimizationDivergedError",
    "OptimizationCancelledError",
]
