"""
FSRS Weight Vector

The 17 model weights, their valid ranges, and the versioned immutable value
the Scheduler computes with. Load/export helpers fall back to the shipped
defaults when a weights file is absent or invalid.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union
import json
import logging
import math

from pydantic import BaseModel, ValidationError, field_validator

from revise.core.exceptions import NumericDomainViolation

logger = logging.getLogger(__name__)


NUM_WEIGHTS = 17

# FSRS-4.5 defaults
DEFAULT_WEIGHT_VALUES: Tuple[float, ...] = (
    0.4872,   # w[0]: Initial stability for AGAIN
    1.4003,   # w[1]: Initial stability for HARD
    3.7145,   # w[2]: Initial stability for GOOD
    13.8206,  # w[3]: Initial stability for EASY
    5.1618,   # w[4]: Initial difficulty for GOOD
    1.2298,   # w[5]: Initial difficulty slope per grade
    0.8975,   # w[6]: Difficulty shift per grade
    0.0310,   # w[7]: Difficulty mean reversion
    1.6474,   # w[8]: Success growth scale (exponent)
    0.1367,   # w[9]: Success saturation with stability
    1.0461,   # w[10]: Success gain from low retrievability
    2.1072,   # w[11]: Lapse scale
    0.0793,   # w[12]: Lapse difficulty exponent
    0.3246,   # w[13]: Lapse stability exponent
    1.5870,   # w[14]: Lapse gain from low retrievability
    0.2272,   # w[15]: Hard penalty
    2.8755,   # w[16]: Easy bonus
)

WEIGHT_BOUNDS: Tuple[Tuple[float, float], ...] = (
    (0.1, 100.0),   # w[0]
    (0.1, 100.0),   # w[1]
    (0.1, 100.0),   # w[2]
    (0.1, 100.0),   # w[3]
    (1.0, 10.0),    # w[4]
    (0.1, 5.0),     # w[5]
    (0.1, 5.0),     # w[6]
    (0.0, 0.5),     # w[7]
    (0.0, 3.0),     # w[8]
    (0.1, 0.8),     # w[9]
    (0.01, 2.5),    # w[10]
    (0.5, 5.0),     # w[11]
    (0.01, 0.2),    # w[12]
    (0.01, 0.9),    # w[13]
    (0.01, 2.0),    # w[14]
    (0.01, 1.0),    # w[15]
    (1.0, 4.0),     # w[16]
)


@dataclass(frozen=True)
class WeightVector:
    """
    Immutable, versioned weight vector.

    Construction validates length, finiteness and per-index bounds, so any
    WeightVector in hand is safe to compute with.
    """
    values: Tuple[float, ...]
    version: int = 0

    def __post_init__(self):
        values = tuple(float(v) for v in self.values)
        if len(values) != NUM_WEIGHTS:
            raise NumericDomainViolation("weights.length", len(values))
        for i, (value, (low, high)) in enumerate(zip(values, WEIGHT_BOUNDS)):
            if not math.isfinite(value) or not low <= value <= high:
                raise NumericDomainViolation(f"w[{i}]", value)
        object.__setattr__(self, "values", values)

    def __getitem__(self, index: int) -> float:
        return self.values[index]

    def __len__(self) -> int:
        return NUM_WEIGHTS

    def __iter__(self):
        return iter(self.values)

    @classmethod
    def clamped(cls, values: Sequence[float], version: int = 0) -> "WeightVector":
        """Build a vector, hard-clamping each weight into its bounds"""
        return cls(tuple(clamp_weights(values)), version)

    def to_dict(self) -> dict:
        return {"version": self.version, "weights": list(self.values)}


DEFAULT_WEIGHTS = WeightVector(DEFAULT_WEIGHT_VALUES, version=0)


def clamp_weights(values: Sequence[float]) -> List[float]:
    """Clip every weight to its valid range (hard clamp, not reflect)"""
    return [
        max(low, min(high, float(v)))
        for v, (low, high) in zip(values, WEIGHT_BOUNDS)
    ]


class WeightFile(BaseModel):
    """On-disk JSON layout of an exported weight vector"""
    version: int = 0
    weights: List[float]

    @field_validator("weights")
    @classmethod
    def _seventeen_weights(cls, v: List[float]) -> List[float]:
        if len(v) != NUM_WEIGHTS:
            raise ValueError(f"expected {NUM_WEIGHTS} weights, got {len(v)}")
        return v


def load_weights(path: Optional[Union[str, Path]]) -> WeightVector:
    """
    Load a weight vector, falling back to the defaults.

    A missing path, unreadable file, malformed JSON or out-of-bounds vector
    all yield DEFAULT_WEIGHTS with a warning.
    """
    if path is None:
        return DEFAULT_WEIGHTS

    path = Path(path)
    if not path.exists():
        logger.info(f"No weights file at {path}, using defaults")
        return DEFAULT_WEIGHTS

    try:
        data = WeightFile.model_validate_json(path.read_text())
        weights = WeightVector(tuple(data.weights), version=data.version)
    except (OSError, ValidationError, NumericDomainViolation) as e:
        logger.warning(f"Invalid weights file {path}, using defaults: {e}")
        return DEFAULT_WEIGHTS

    logger.info(f"Loaded weights v{weights.version} from {path}")
    return weights


def export_weights(weights: WeightVector, path: Union[str, Path]) -> None:
    """Write the weight vector as JSON"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(weights.to_dict(), f, indent=2)
    logger.info(f"Exported weights v{weights.version} to {path}")
