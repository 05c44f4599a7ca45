"""Raw-distance to effective-distance transform."""

from __future__ import annotations

import logging
import math

from .config import DEFAULT_LOG_STRENGTH, TRANSFORM_MODES

logger = logging.getLogger(__name__)


def _clamp01(x: float) -> float:
    return max(0.0, min(1.0, x))


class DistanceTransform:
    """Linear/log blend anchored to the population min and max distance.

    Raw phylogenetic distances are heavy-tailed, so ``log`` mode mixes a
    ``log1p``-compressed position into the linear one with weight
    ``strength``.
    """

    def __init__(
        self,
        mode: str = "linear",
        strength: float | None = None,
        *,
        default_log_strength: float = DEFAULT_LOG_STRENGTH,
    ) -> None:
        if mode not in TRANSFORM_MODES:
            raise ValueError(f"mode must be one of {TRANSFORM_MODES}")
        self.mode = mode
        self.strength = strength
        self.default_log_strength = default_log_strength
        if mode == "log" and strength is None:
            self.strength = default_log_strength

    def set_mode(self, mode: str | None) -> bool:
        """Switch mode; returns False (and keeps the old mode) for unknown values."""
        if not mode:
            logger.warning("Ignoring empty transform mode")
            return False
        m = str(mode).strip().lower()
        if m not in TRANSFORM_MODES:
            logger.warning("Unknown transform mode %r; keeping %r", mode, self.mode)
            return False
        self.mode = m
        if m == "log" and self.strength is None:
            self.strength = self.default_log_strength
        logger.info("Distance transform mode set to %s", m)
        return True

    def set_strength(self, value) -> bool:
        try:
            v = float(value)
        except (TypeError, ValueError):
            logger.warning("Ignoring non-numeric transform strength %r", value)
            return False
        if not math.isfinite(v):
            logger.warning("Ignoring non-finite transform strength %r", value)
            return False
        self.strength = _clamp01(v)
        return True

    def effective_strength(self) -> float:
        if self.strength is None:
            return self.default_log_strength
        return _clamp01(self.strength)

    def apply(self, raw: float, minimum: float, maximum: float) -> float:
        """Map ``raw`` into ``[minimum, maximum]``.

        Non-positive and non-finite distances are returned unchanged, as is
        everything when the anchors do not describe a usable range.
        """
        if not math.isfinite(raw) or raw <= 0:
            return raw
        lo = minimum if math.isfinite(minimum) else 0.0
        hi = maximum
        if not math.isfinite(hi) or hi <= max(0.0, lo):
            return raw

        norm_linear = _clamp01((raw - lo) / max(1e-12, hi - lo))
        if self.mode == "linear":
            return lo + norm_linear * (hi - lo)

        if self.mode == "log":
            amin = math.log1p(max(0.0, lo))
            amax = math.log1p(max(0.0, hi))
            a = math.log1p(raw)
            norm_log = _clamp01((a - amin) / max(1e-12, amax - amin))
            s = self.effective_strength()
            norm = (1.0 - s) * norm_linear + s * norm_log
            return lo + norm * (hi - lo)

        return raw
