"""Effective distance to 1-100 similarity score."""

from __future__ import annotations

import math

import numpy as np

from .config import DEFAULT_SCORE_EXPONENT
from .distances import DistanceStats


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def fallback_score(distance: float, *, low: int = 5, high: int = 95) -> int:
    """Monotonic decay used before any statistics exist."""
    return min(high, max(low, _round_half_up(100.0 / (1.0 + distance))))


def distance_to_score(
    distance: float | None,
    stats: DistanceStats,
    *,
    has_target: bool = False,
    exponent: float = DEFAULT_SCORE_EXPONENT,
    fallback_low: int = 5,
    fallback_high: int = 95,
) -> int | None:
    """Ease-out mapping of an effective distance onto ``[1, 100]``.

    The range is anchored to the current target's nearest and farthest
    relatives when a target is active, so each round's scores are spread
    over the whole scale. ``1 - n**0.65`` bends the curve upward so close
    relatives read as clearly close.
    """
    if distance is None:
        return None
    d = float(distance)
    if math.isnan(d):
        return None
    if d <= 0:
        return 100

    per_target_max = None
    if has_target and math.isfinite(stats.target_max_distance) and stats.target_max_distance > 0:
        per_target_max = stats.target_max_distance
    max_distance = per_target_max if per_target_max is not None else stats.baseline_max()

    if not math.isfinite(max_distance) or max_distance <= 0:
        return fallback_score(d, low=fallback_low, high=fallback_high)

    per_target_min = 0.0
    if (
        has_target
        and math.isfinite(stats.target_min_positive_distance)
        and stats.target_min_positive_distance > 0
    ):
        per_target_min = stats.target_min_positive_distance

    clamped = min(d, max_distance)
    normalized = (clamped - per_target_min) / max(1e-9, max_distance - per_target_min)
    normalized = max(0.0, min(1.0, normalized))
    eased = 1.0 - normalized**exponent
    score = _round_half_up(1.0 + eased * 98.0)
    return max(1, min(100, score))


def _genus(record) -> str | None:
    genus = getattr(record, "genus", None)
    if genus:
        return genus
    name = getattr(record, "scientific_name", None) or ""
    parts = name.split(" ")
    return parts[0] if parts and parts[0] else None


def taxonomic_score(
    a,
    b,
    *,
    rng: np.random.Generator | None = None,
    jitter: float = 5.0,
) -> int:
    """Order/family/genus similarity used when no tree distance is available.

    Without ``rng`` every call draws from a fresh ``default_rng(0)``, so the
    jitter is the same fixed offset for every pair. Pass one shared generator
    to get independent jitter per pair.
    """
    rng = rng if rng is not None else np.random.default_rng(0)
    score = 10.0
    if a.order and b.order and a.order == b.order:
        score += 35.0
        if a.family and b.family and a.family == b.family:
            score += 25.0
            genus_a = _genus(a)
            genus_b = _genus(b)
            if genus_a and genus_b and genus_a == genus_b:
                score += 20.0
    if jitter > 0:
        score += float(rng.uniform(-jitter, jitter))
    return max(5, min(95, _round_half_up(score)))
