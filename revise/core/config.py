"""
Scheduler configuration settings
"""
from typing import Optional

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings with environment variable support (REVISE_ prefix)"""

    # App
    APP_NAME: str = "revise"
    APP_VERSION: str = "0.1.0"
    ENVIRONMENT: str = "development"  # development, production
    LOG_LEVEL: str = "INFO"

    # Scheduling policy
    DESIRED_RETENTION: float = 0.9
    MINIMUM_INTERVAL: int = 1  # days
    MAXIMUM_INTERVAL: int = 36500  # days (100 years)
    GRADUATION_THRESHOLD: int = 1  # consecutive non-Again grades to reach Review
    ENABLE_FUZZ: bool = True
    FUZZ_SEED: Optional[int] = None

    # Weight persistence
    WEIGHTS_PATH: Optional[str] = None

    # Parameter optimization
    OPTIMIZER_MIN_REVIEWS: int = 50
    OPTIMIZER_MAX_ITERATIONS: int = 200
    OPTIMIZER_LEARNING_RATE: float = 0.04
    OPTIMIZER_TOLERANCE: float = 1e-6
    OPTIMIZER_GRADIENT_TOLERANCE: float = 1e-4
    OPTIMIZER_MIN_IMPROVEMENT: float = 1e-3  # relative; smaller gains keep the initial weights
    OPTIMIZER_DIVERGENCE_TOLERANCE: float = 0.1
    OPTIMIZER_REGULARIZATION: float = 0.0

    model_config = SettingsConfigDict(
        env_prefix="REVISE_",
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    @field_validator("DESIRED_RETENTION")
    @classmethod
    def _retention_in_unit_interval(cls, v: float) -> float:
        if not 0.0 < v < 1.0:
            raise ValueError("DESIRED_RETENTION must be in (0, 1)")
        return v

    @field_validator("MINIMUM_INTERVAL", "GRADUATION_THRESHOLD", "OPTIMIZER_MAX_ITERATIONS")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @model_validator(mode="after")
    def _interval_bounds_ordered(self) -> "Settings":
        if self.MAXIMUM_INTERVAL < self.MINIMUM_INTERVAL:
            raise ValueError("MAXIMUM_INTERVAL must be >= MINIMUM_INTERVAL")
        return self


settings = Settings()
