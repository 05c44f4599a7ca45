"""Per-round orchestration: prune, reroot, index and recompute statistics."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import List, Sequence

import numpy as np
import treeswift

from .config import EngineConfig
from .distances import ZERO_DISTANCE, DistanceEngine, DistanceMetrics, DistanceStats
from .index import SpeciesIndex
from .names import build_allowed_set
from .scoring import distance_to_score
from .transform import DistanceTransform
from .trees import Node, TreeModel, prune_to_allowed, read_tree

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Similarity:
    score: int
    distance: float
    raw_distance: float
    edge_count: int
    source: str = "phylogenetic"


def _looks_like_path(source) -> bool:
    if isinstance(source, os.PathLike):
        return True
    if isinstance(source, str) and os.path.isfile(source):
        return True
    return isinstance(source, str) and "(" not in source and ";" not in source


def _read_source(source) -> str:
    if _looks_like_path(source):
        with open(source, "r", encoding="utf-8") as handle:
            return handle.read()
    return str(source)


class RoundCoordinator:
    """Owns the active tree, species index, distance cache and statistics.

    Every configuration change rebuilds the working tree from the loaded
    source tree; nothing is adjusted incrementally.
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self.config = config if config is not None else EngineConfig()
        self.original_tree: treeswift.Tree | None = None
        self.active_tree: TreeModel | None = None
        self.is_loaded = False
        self.pending_allowed: List[str] | None = None
        self.pending_target: str | None = None
        self.allowed_set: frozenset[str] | None = None
        self.index = SpeciesIndex()
        self.transform = DistanceTransform(
            self.config.transform_mode,
            self.config.transform_strength,
            default_log_strength=self.config.default_log_strength,
        )
        self.engine = DistanceEngine(
            self.transform,
            precompute_threshold=self.config.precompute_threshold,
        )

    @property
    def stats(self) -> DistanceStats:
        return self.engine.stats

    @property
    def target_node(self) -> Node | None:
        return self.engine.target

    @property
    def is_configured(self) -> bool:
        return self.active_tree is not None and self.engine.target is not None

    # -- loading -----------------------------------------------------------

    def load_tree(self, source, allowed_names: Sequence[str] | None = None) -> bool:
        """Load a Newick tree from a path or from Newick text.

        Failures are logged and reported through ``is_loaded``; nothing is
        raised past this call.
        """
        try:
            tree = read_tree(_read_source(source))
        except Exception:
            logger.exception("Failed to load phylogenetic tree")
            self.is_loaded = False
            self._reset_active()
            return False

        self.original_tree = tree
        self.is_loaded = True
        if allowed_names:
            self.pending_allowed = list(allowed_names)
        self._apply()
        logger.info(
            "Phylogenetic tree ready. Indexed %d species after pruning.",
            len(self.active_tree) if self.active_tree is not None else 0,
        )
        return True

    # -- round configuration -----------------------------------------------

    def configure_round(self, allowed_names: Sequence[str] | None, target_name: str | None) -> None:
        self.pending_allowed = list(allowed_names) if allowed_names else None
        self.pending_target = target_name or None
        if self.is_loaded:
            self._apply()

    def set_allowed_species(self, names: Sequence[str] | None) -> None:
        self.pending_allowed = list(names) if names else None
        if self.is_loaded:
            self._apply()

    def set_target_species(self, name: str | None) -> None:
        self.pending_target = name or None
        if self.is_loaded:
            self._apply()

    def _reset_active(self) -> None:
        self.active_tree = None
        self.index = SpeciesIndex()
        self.engine.reset()

    def _apply(self) -> None:
        if self.original_tree is None:
            return

        allowed = build_allowed_set(self.pending_allowed)
        model = TreeModel.from_tree(self.original_tree)
        logger.debug("Original tree leaves before pruning: %d", len(model))
        prune_to_allowed(model, allowed)
        self.allowed_set = allowed

        if model.is_empty:
            logger.warning("Phylogenetic tree empty after pruning")
            self._reset_active()
            return

        self.active_tree = model
        self.index = SpeciesIndex.build(model)
        self.engine.attach(model)
        # Only the high-water mark carries over from the previous round.
        self.engine.stats.reset_pairwise()
        self.engine.compute_global_stats()

        if self.pending_target:
            self._apply_target()
        else:
            self.engine.clear_target()

    def _apply_target(self) -> None:
        node = self.index.lookup(self.pending_target)
        if node is None:
            logger.warning("Target species not found: %s", self.pending_target)
            self.engine.clear_target()
            return

        try:
            self.active_tree.reroot(node)
        except ValueError as exc:
            logger.warning("Failed to reroot tree: %s", exc)

        # Rerooting changes the MRCA of every pair that crosses the new root.
        self.index = SpeciesIndex.build(self.active_tree)
        self.engine.attach(self.active_tree)

        target = self.index.lookup(self.pending_target)
        if target is None:
            self.engine.clear_target()
            return
        self.engine.compute_global_stats()
        self.engine.compute_target_stats(target)

    # -- transform -----------------------------------------------------------

    def set_transform_mode(self, mode: str) -> bool:
        accepted = self.transform.set_mode(mode)
        if accepted:
            self._recompute_after_transform_change()
        return accepted

    def set_transform_strength(self, value) -> bool:
        accepted = self.transform.set_strength(value)
        if accepted:
            self._recompute_after_transform_change()
        return accepted

    def _recompute_after_transform_change(self) -> None:
        self.engine.cache.clear()
        if self.active_tree is not None:
            self.engine.compute_global_stats()
            self.engine.compute_target_stats()

    # -- queries -------------------------------------------------------------

    def lookup(self, name: str | None) -> Node | None:
        return self.index.lookup(name)

    def get_phylogenetic_distance(self, name_a: str | None, name_b: str | None) -> DistanceMetrics | None:
        if not self.is_loaded or self.active_tree is None:
            logger.warning("Phylogenetic tree not ready")
            return None
        node_a = self.index.lookup(name_a)
        node_b = self.index.lookup(name_b)
        if node_a is None or node_b is None:
            logger.debug("Species not found in tree: %s or %s", name_a, name_b)
            return None
        if node_a is node_b:
            return ZERO_DISTANCE
        return self.engine.get_distance(node_a, node_b)

    def distance_to_score(self, effective_distance: float | None) -> int | None:
        return distance_to_score(
            effective_distance,
            self.engine.stats,
            has_target=self.engine.target is not None,
            exponent=self.config.score_exponent,
            fallback_low=self.config.fallback_min_score,
            fallback_high=self.config.fallback_max_score,
        )

    def similarity(self, name_a: str | None, name_b: str | None) -> Similarity | None:
        """Phylogenetic similarity, or ``None`` when either species is unknown."""
        metrics = self.get_phylogenetic_distance(name_a, name_b)
        if metrics is None:
            return None
        score = self.distance_to_score(metrics.effective)
        return Similarity(
            score=score,
            distance=metrics.effective,
            raw_distance=metrics.raw,
            edge_count=metrics.edges,
        )

    def distance_matrix(self, names: Sequence[str]) -> np.ndarray:
        """Effective distances between ``names``; NaN where unknown."""
        n = len(names)
        out = np.full((n, n), np.nan, dtype=float)
        for i in range(n):
            for j in range(i, n):
                metrics = self.get_phylogenetic_distance(names[i], names[j])
                if metrics is None:
                    continue
                out[i, j] = out[j, i] = metrics.effective
        return out

    def active_leaf_labels(self) -> List[str]:
        return self.index.labels()

    def get_active_tree_snapshot(self) -> dict | None:
        if self.active_tree is None:
            return None
        return self.active_tree.snapshot()
