"""Stable per-round ranking of candidates by closeness to the target."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List, Sequence

import numpy as np

from .rounds import RoundCoordinator
from .scoring import taxonomic_score
from .species import SpeciesRecord

_TIE_EPS = 1e-9


@dataclass(frozen=True)
class RankedCandidate:
    record: SpeciesRecord
    distance: float
    source: str
    rank: int | None
    tie_size: int = 1


def candidate_distance(
    coordinator: RoundCoordinator | None,
    record: SpeciesRecord,
    target: SpeciesRecord,
    *,
    rng: np.random.Generator | None = None,
) -> tuple[float, str]:
    """Raw tree distance when both species are in the tree, else 100 - taxonomic score."""
    if record.id == target.id:
        return 0.0, "exact"
    if coordinator is not None and coordinator.is_loaded:
        metrics = coordinator.get_phylogenetic_distance(record.scientific_name, target.scientific_name)
        if metrics is not None and math.isfinite(metrics.raw):
            return float(metrics.raw), "phylogenetic"
    score = taxonomic_score(record, target, rng=rng)
    return float(100 - score), "taxonomic"


def _sort_name(record: SpeciesRecord) -> str:
    return (record.common_name or record.scientific_name or "").lower()


def _same_distance(a: float, b: float) -> bool:
    if not math.isfinite(a) or not math.isfinite(b):
        return False
    return abs(a - b) <= _TIE_EPS


def rank_candidates(
    coordinator: RoundCoordinator | None,
    target: SpeciesRecord,
    candidates: Sequence[SpeciesRecord],
    *,
    rng: np.random.Generator | None = None,
) -> List[RankedCandidate]:
    """Competition ranking (1 + number strictly closer); the target is listed first unranked."""
    rng = rng if rng is not None else np.random.default_rng(0)
    by_id: Dict[str, SpeciesRecord] = {}
    for record in candidates:
        if record is not None and record.id:
            by_id[record.id] = record
    by_id[target.id] = target

    rows = []
    for record in by_id.values():
        distance, source = candidate_distance(coordinator, record, target, rng=rng)
        rows.append((distance if math.isfinite(distance) else math.inf, _sort_name(record), record, source))
    rows.sort(key=lambda r: (r[0], r[1]))

    target_row = None
    others = []
    for distance, _, record, source in rows:
        if record.id == target.id:
            target_row = RankedCandidate(record=record, distance=0.0, source=source, rank=None)
        else:
            others.append((distance, record, source))

    ranked: List[RankedCandidate] = [target_row] if target_row is not None else []
    i = 0
    current_rank = 1
    while i < len(others):
        end = i + 1
        while end < len(others) and _same_distance(others[end][0], others[i][0]):
            end += 1
        tie_size = end - i
        for distance, record, source in others[i:end]:
            ranked.append(
                RankedCandidate(
                    record=record,
                    distance=distance,
                    source=source,
                    rank=current_rank,
                    tie_size=tie_size,
                )
            )
        current_rank += tie_size
        i = end
    return ranked
