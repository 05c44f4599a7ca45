"""Engine configuration and shared constants."""

from __future__ import annotations

from dataclasses import dataclass

TRANSFORM_MODES = ("linear", "log")

# Full O(n^2) pairwise statistics are only computed up to this many leaves.
DEFAULT_PRECOMPUTE_THRESHOLD = 400
DEFAULT_LOG_STRENGTH = 0.6
DEFAULT_SCORE_EXPONENT = 0.65


@dataclass(frozen=True)
class EngineConfig:
    """Tunable knobs for one RoundCoordinator."""

    precompute_threshold: int = DEFAULT_PRECOMPUTE_THRESHOLD
    transform_mode: str = "linear"
    transform_strength: float | None = None
    default_log_strength: float = DEFAULT_LOG_STRENGTH
    score_exponent: float = DEFAULT_SCORE_EXPONENT
    fallback_min_score: int = 5
    fallback_max_score: int = 95

    def __post_init__(self) -> None:
        if self.precompute_threshold < 2:
            raise ValueError("precompute_threshold must be >= 2")
        if self.transform_mode not in TRANSFORM_MODES:
            raise ValueError(f"transform_mode must be one of {TRANSFORM_MODES}")
        if self.transform_strength is not None and not 0.0 <= self.transform_strength <= 1.0:
            raise ValueError("transform_strength must be in [0, 1]")
        if not 0.0 <= self.default_log_strength <= 1.0:
            raise ValueError("default_log_strength must be in [0, 1]")
        if self.score_exponent <= 0:
            raise ValueError("score_exponent must be > 0")
        if not 1 <= self.fallback_min_score <= self.fallback_max_score <= 100:
            raise ValueError("fallback score bounds must satisfy 1 <= min <= max <= 100")
