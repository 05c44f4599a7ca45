"""MRCA path distances, the pairwise cache and population statistics."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, Iterable, Tuple

import numpy as np

from .config import DEFAULT_PRECOMPUTE_THRESHOLD
from .transform import DistanceTransform
from .trees import Node, TreeModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DistanceMetrics:
    raw: float
    edges: int
    effective: float


ZERO_DISTANCE = DistanceMetrics(raw=0.0, edges=0, effective=0.0)


@dataclass
class DistanceStats:
    max_pairwise_distance: float = 0.0
    min_pairwise_distance: float = 0.0
    # High-water mark kept across recomputations; the transform's ceiling.
    global_max_pairwise_distance: float = 0.0
    target_max_distance: float = 0.0
    target_min_positive_distance: float = 0.0
    target_scale_factor: float = 0.0

    def baseline_max(self) -> float:
        g = self.global_max_pairwise_distance
        if math.isfinite(g) and g > 0:
            return g
        return self.max_pairwise_distance

    def reset_pairwise(self) -> None:
        self.max_pairwise_distance = 0.0
        self.min_pairwise_distance = 0.0

    def reset_target(self) -> None:
        self.target_max_distance = 0.0
        self.target_min_positive_distance = 0.0
        self.target_scale_factor = 0.0


class DistanceCache:
    """Symmetric cache keyed by node-id pairs.

    ``generation`` increases on every clear so holders of stale results can
    tell that the active tree or transform changed underneath them.
    """

    def __init__(self) -> None:
        self._entries: Dict[Tuple[int, int], DistanceMetrics] = {}
        self.generation = 0

    def get(self, id_a: int, id_b: int) -> DistanceMetrics | None:
        return self._entries.get((id_a, id_b))

    def put(self, id_a: int, id_b: int, metrics: DistanceMetrics) -> None:
        self._entries[(id_a, id_b)] = metrics
        self._entries[(id_b, id_a)] = metrics

    def clear(self) -> None:
        self._entries.clear()
        self.generation += 1

    def __len__(self) -> int:
        return len(self._entries)


def _extremes(values: Iterable[float]) -> tuple[float, float]:
    """Return (max, min positive) of finite ``values``; zeros when absent."""
    arr = np.fromiter(values, dtype=float)
    arr = arr[np.isfinite(arr)]
    if arr.size == 0:
        return 0.0, 0.0
    max_value = max(0.0, float(np.max(arr)))
    positive = arr[arr > 0]
    min_positive = float(np.min(positive)) if positive.size else 0.0
    return max_value, min_positive


def _edge_length(node: Node) -> float:
    return float(node.edge_length or 0.0)


class DistanceEngine:
    def __init__(
        self,
        transform: DistanceTransform | None = None,
        *,
        precompute_threshold: int = DEFAULT_PRECOMPUTE_THRESHOLD,
    ) -> None:
        self.transform = transform if transform is not None else DistanceTransform()
        self.precompute_threshold = precompute_threshold
        self.model: TreeModel | None = None
        self.target: Node | None = None
        self.cache = DistanceCache()
        self.stats = DistanceStats()

    def attach(self, model: TreeModel | None) -> None:
        """Point the engine at a new active tree and drop everything derived."""
        self.model = model if model is not None and not model.is_empty else None
        self.target = None
        self.cache.clear()

    @property
    def leaf_count(self) -> int:
        return len(self.model.leaves) if self.model is not None else 0

    def mrca(self, a: Node, b: Node) -> Node | None:
        if self.model is None:
            return None
        depths = self.model.depths
        da = depths.get(a)
        db = depths.get(b)
        if da is None or db is None:
            return None
        x: Node | None = a
        y: Node | None = b
        while x is not None and da > db:
            x = x.parent
            da -= 1
        while y is not None and db > da:
            y = y.parent
            db -= 1
        while x is not None and y is not None and x is not y:
            x = x.parent
            y = y.parent
        if x is None or y is None:
            return None
        return x

    def distance_between(self, a: Node, b: Node) -> tuple[float, int] | None:
        """Branch-length sum and edge count between ``a`` and ``b`` via their MRCA.

        Returns ``None`` when the nodes do not share an ancestor in the
        active tree.
        """
        if a is b:
            return 0.0, 0
        ancestor = self.mrca(a, b)
        if ancestor is None:
            logger.debug("No common ancestor for %r and %r", a.label, b.label)
            return None
        raw = 0.0
        edges = 0
        for start in (a, b):
            cur = start
            while cur is not ancestor:
                raw += _edge_length(cur)
                edges += 1
                cur = cur.parent
        return raw, edges

    def get_distance(self, a: Node, b: Node) -> DistanceMetrics | None:
        if self.model is None:
            return None
        id_a = self.model.node_id(a)
        id_b = self.model.node_id(b)
        if id_a is None or id_b is None:
            return None
        if a is b:
            return ZERO_DISTANCE

        cached = self.cache.get(id_a, id_b)
        if cached is not None:
            return cached

        path = self.distance_between(a, b)
        if path is None:
            return None
        raw, edges = path
        effective = self.transform.apply(
            raw,
            self.stats.min_pairwise_distance,
            self.stats.baseline_max(),
        )
        metrics = DistanceMetrics(raw=raw, edges=edges, effective=effective)
        if math.isfinite(effective):
            self.cache.put(id_a, id_b, metrics)
        return metrics

    def compute_global_stats(self) -> None:
        """Max and min positive effective distance over every leaf pair."""
        leaves = self.model.leaves if self.model is not None else []
        if len(leaves) < 2:
            self.stats.reset_pairwise()
            self.cache.clear()
            return
        if len(leaves) > self.precompute_threshold:
            logger.info(
                "Skipping pairwise statistics for %d leaves (threshold %d)",
                len(leaves),
                self.precompute_threshold,
            )
            self.stats.reset_pairwise()
            return

        self.cache.clear()

        def pair_values():
            for i, a in enumerate(leaves):
                for b in leaves[i + 1 :]:
                    metrics = self.get_distance(a, b)
                    if metrics is not None:
                        yield metrics.effective

        max_value, min_positive = _extremes(pair_values())
        self.stats.max_pairwise_distance = max_value
        self.stats.min_pairwise_distance = min_positive
        if max_value > self.stats.global_max_pairwise_distance:
            self.stats.global_max_pairwise_distance = max_value
        logger.info("Distance stats -> max: %.4f, min: %.4f", max_value, min_positive)

    def compute_target_stats(self, target: Node | None = None) -> None:
        if target is not None:
            self.target = target
        target = self.target
        leaves = self.model.leaves if self.model is not None else []
        if target is None or len(leaves) < 2:
            self.stats.reset_target()
            return

        def target_values():
            for leaf in leaves:
                if leaf is target:
                    continue
                metrics = self.get_distance(target, leaf)
                if metrics is not None:
                    yield metrics.effective

        max_value, min_positive = _extremes(target_values())
        self.stats.target_max_distance = max_value
        self.stats.target_min_positive_distance = min_positive
        if max_value > self.stats.global_max_pairwise_distance:
            self.stats.global_max_pairwise_distance = max_value
        if max_value > min_positive:
            self.stats.target_scale_factor = math.log(99) / max(1e-6, max_value - min_positive)
        else:
            self.stats.target_scale_factor = 0.0
        logger.info("Target distance stats -> max: %.4f, min: %.4f", max_value, min_positive)

    def clear_target(self) -> None:
        self.target = None
        self.stats.reset_target()

    def reset(self) -> None:
        """Forget the active tree and every statistic except the high-water mark."""
        self.attach(None)
        self.stats.reset_pairwise()
        self.stats.reset_target()
