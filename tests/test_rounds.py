"""Round configuration and query tests for RoundCoordinator."""

from __future__ import annotations

import logging
import math

import numpy as np
import pytest

from phyloscore.config import EngineConfig
from phyloscore.rounds import RoundCoordinator

EXAMPLE = "((A:1,B:1):1,(C:5,D:5):5);"
MAMMALS = (
    "((Panthera_leo_FELIDAE:2,Panthera_pardus_FELIDAE:2):10,"
    "((Canis_lupus_CANIDAE:3,Vulpes_vulpes_CANIDAE:3):8,Ursus_arctos_URSIDAE:11):1);"
)


def _coordinator(newick: str = EXAMPLE, config: EngineConfig | None = None) -> RoundCoordinator:
    coordinator = RoundCoordinator(config)
    assert coordinator.load_tree(newick)
    return coordinator


def _effective(coordinator: RoundCoordinator, pairs) -> list[float]:
    return [coordinator.get_phylogenetic_distance(a, b).effective for a, b in pairs]


def test_load_tree_from_path(tmp_path):
    src = tmp_path / "tree.nwk"
    src.write_text(EXAMPLE + "\n", encoding="utf-8")
    coordinator = RoundCoordinator()
    assert coordinator.load_tree(str(src))
    assert coordinator.is_loaded
    assert coordinator.active_leaf_labels() == ["A", "B", "C", "D"]
    assert coordinator.stats.max_pairwise_distance == 12.0


def test_load_tree_failure_is_reported(tmp_path, caplog):
    coordinator = RoundCoordinator()
    with caplog.at_level(logging.ERROR):
        assert coordinator.load_tree(str(tmp_path / "missing.nwk")) is False
    assert not coordinator.is_loaded
    assert coordinator.active_tree is None
    assert "Failed to load phylogenetic tree" in caplog.text


def test_queries_before_load(caplog):
    coordinator = RoundCoordinator()
    with caplog.at_level(logging.WARNING):
        assert coordinator.get_phylogenetic_distance("A", "B") is None
    assert "not ready" in caplog.text
    coordinator.configure_round(["A", "B"], "A")
    assert coordinator.pending_target == "A"
    assert coordinator.active_tree is None


def test_round_with_target():
    coordinator = _coordinator()
    coordinator.configure_round(None, "A")
    assert coordinator.is_configured
    stats = coordinator.stats
    assert stats.max_pairwise_distance == 12.0
    assert stats.min_pairwise_distance == 2.0
    assert stats.target_max_distance == 12.0
    assert stats.target_min_positive_distance == 2.0
    assert abs(stats.target_scale_factor - math.log(99) / 10.0) < 1e-12

    ab = coordinator.get_phylogenetic_distance("A", "B")
    assert (ab.raw, ab.edges, ab.effective) == (2.0, 3, 2.0)
    ac = coordinator.get_phylogenetic_distance("A", "C")
    assert (ac.raw, ac.edges) == (12.0, 4)
    assert coordinator.distance_to_score(ab.effective) == 99
    assert coordinator.distance_to_score(ac.effective) == 1


def test_identity_and_symmetry():
    coordinator = _coordinator()
    coordinator.configure_round(None, "A")
    same = coordinator.get_phylogenetic_distance("C", "c")
    assert (same.raw, same.edges, same.effective) == (0.0, 0, 0.0)
    assert coordinator.get_phylogenetic_distance("B", "D") == coordinator.get_phylogenetic_distance("D", "B")
    assert coordinator.get_phylogenetic_distance("a", "b").raw == 2.0


def test_pruned_round_keeps_path_lengths():
    coordinator = _coordinator(MAMMALS)
    coordinator.configure_round(["Panthera leo", "Canis lupus", "Vulpes vulpes"], None)
    assert coordinator.active_leaf_labels() == [
        "Panthera_leo_FELIDAE",
        "Canis_lupus_CANIDAE",
        "Vulpes_vulpes_CANIDAE",
    ]
    leo_wolf = coordinator.get_phylogenetic_distance("Panthera leo", "Canis lupus")
    assert (leo_wolf.raw, leo_wolf.edges) == (24.0, 5)
    assert coordinator.get_phylogenetic_distance("Canis lupus", "Vulpes vulpes").raw == 6.0
    assert coordinator.get_phylogenetic_distance("Panthera leo", "Ursus arctos") is None
    assert coordinator.target_node is None


def test_rerooted_round_keeps_path_lengths():
    coordinator = _coordinator(MAMMALS)
    coordinator.configure_round(["Panthera leo", "Canis lupus", "Vulpes vulpes"], "Canis lupus")
    assert coordinator.target_node is coordinator.lookup("Canis_lupus")
    assert coordinator.get_phylogenetic_distance("Panthera leo", "Canis lupus").raw == 24.0
    assert coordinator.get_phylogenetic_distance("Vulpes vulpes", "Canis lupus").raw == 6.0
    assert coordinator.get_phylogenetic_distance("Vulpes vulpes", "Panthera leo").raw == 24.0


def test_target_not_found(caplog):
    coordinator = _coordinator()
    with caplog.at_level(logging.WARNING):
        coordinator.configure_round(None, "Felis catus")
    assert "Target species not found" in caplog.text
    assert coordinator.target_node is None
    assert not coordinator.is_configured
    assert coordinator.stats.target_max_distance == 0.0
    assert coordinator.get_phylogenetic_distance("A", "B").raw == 2.0


def test_empty_after_pruning(caplog):
    coordinator = _coordinator()
    with caplog.at_level(logging.WARNING):
        coordinator.configure_round(["Felis catus"], "A")
    assert "empty after pruning" in caplog.text
    assert coordinator.active_tree is None
    assert coordinator.get_phylogenetic_distance("A", "B") is None
    assert coordinator.get_active_tree_snapshot() is None
    assert coordinator.active_leaf_labels() == []


@pytest.mark.parametrize("mode", ["linear", "log"])
def test_repeated_configuration_is_idempotent(mode):
    coordinator = _coordinator(config=EngineConfig(transform_mode=mode))
    pairs = [("A", "B"), ("A", "C"), ("B", "D"), ("C", "D")]
    coordinator.configure_round(None, "A")
    first_stats = coordinator.stats.__dict__.copy()
    first = _effective(coordinator, pairs)
    coordinator.configure_round(None, "A")
    assert coordinator.stats.__dict__ == first_stats
    assert _effective(coordinator, pairs) == first


def test_transform_mode_switch_recomputes():
    coordinator = _coordinator()
    coordinator.configure_round(None, "A")
    assert coordinator.get_phylogenetic_distance("C", "D").effective == 10.0
    generation = coordinator.engine.cache.generation
    assert coordinator.set_transform_mode("log")
    assert coordinator.engine.cache.generation > generation
    cd = coordinator.get_phylogenetic_distance("C", "D")
    assert cd.raw == 10.0
    assert abs(cd.effective - 10.5166) < 1e-3
    assert coordinator.stats.target_max_distance == 12.0
    assert coordinator.set_transform_strength(0.0)
    assert coordinator.get_phylogenetic_distance("C", "D").effective == pytest.approx(10.0)


def test_invalid_transform_input_is_ignored(caplog):
    coordinator = _coordinator()
    coordinator.configure_round(None, "A")
    generation = coordinator.engine.cache.generation
    with caplog.at_level(logging.WARNING):
        assert coordinator.set_transform_mode("cubic") is False
        assert coordinator.set_transform_strength("strong") is False
    assert coordinator.transform.mode == "linear"
    assert coordinator.engine.cache.generation == generation
    assert len([r for r in caplog.records if r.levelno >= logging.WARNING]) == 2


def test_snapshot_after_reroot():
    coordinator = _coordinator()
    coordinator.configure_round(None, "A")
    snap = coordinator.get_active_tree_snapshot()
    assert snap["branch_length"] == 0.0
    first = snap["children"][0]
    assert first["label"] == "A"
    assert first["branch_length"] == 0.5
    snap["children"].clear()
    assert len(coordinator.get_active_tree_snapshot()["children"]) == 2


def test_large_tree_skips_global_precompute():
    coordinator = _coordinator(config=EngineConfig(precompute_threshold=3))
    coordinator.configure_round(None, "A")
    assert coordinator.stats.max_pairwise_distance == 0.0
    assert coordinator.stats.target_max_distance == 12.0
    assert coordinator.similarity("A", "B").score == 99
    assert coordinator.get_phylogenetic_distance("C", "D").raw == 10.0


def test_similarity():
    coordinator = _coordinator()
    coordinator.configure_round(None, "A")
    sim = coordinator.similarity("A", "B")
    assert (sim.score, sim.distance, sim.raw_distance, sim.edge_count) == (99, 2.0, 2.0, 3)
    assert sim.source == "phylogenetic"
    assert coordinator.similarity("A", "A").score == 100
    assert coordinator.similarity("A", "Felis catus") is None


def test_distance_matrix():
    coordinator = _coordinator()
    coordinator.configure_round(None, "A")
    out = coordinator.distance_matrix(["A", "B", "Felis catus"])
    assert out.shape == (3, 3)
    assert out[0, 0] == 0.0
    assert out[0, 1] == out[1, 0] == 2.0
    assert np.isnan(out[2]).all()
    assert np.isnan(out[:, 2]).all()


def test_set_allowed_then_target():
    coordinator = _coordinator()
    coordinator.set_target_species("A")
    assert coordinator.stats.target_max_distance == 12.0
    coordinator.set_allowed_species(["A", "B"])
    assert coordinator.active_leaf_labels()[0] == "A"
    assert sorted(coordinator.active_leaf_labels()) == ["A", "B"]
    assert coordinator.target_node is coordinator.lookup("A")
    assert coordinator.stats.target_max_distance == 2.0
    assert coordinator.stats.target_scale_factor == 0.0
    assert coordinator.similarity("A", "B").score == 99
    coordinator.set_target_species(None)
    assert coordinator.target_node is None
    assert coordinator.stats.target_max_distance == 0.0


def test_new_round_does_not_inherit_previous_minimum():
    newick = "((A:1,B:1):1,(E:3,(C:5,D:5):5):2);"
    everyone = ["A", "B", "C", "D", "E"]
    pairs = [("A", "B"), ("A", "E"), ("A", "C")]

    fresh = _coordinator(newick)
    fresh.configure_round(everyone, "A")

    coordinator = _coordinator(newick)
    coordinator.configure_round(["C", "D"], "C")
    assert coordinator.stats.min_pairwise_distance == 10.0
    coordinator.configure_round(everyone, "A")

    assert coordinator.stats.min_pairwise_distance == 2.0
    assert coordinator.stats.__dict__ == fresh.stats.__dict__
    assert _effective(coordinator, pairs) == _effective(fresh, pairs) == [2.0, 7.0, 14.0]
    scores = [coordinator.similarity(a, b).score for a, b in pairs]
    assert scores == [fresh.similarity(a, b).score for a, b in pairs]
    assert scores[0] > scores[1] > scores[2]


def test_load_tree_from_path_with_parentheses(tmp_path):
    src = tmp_path / "mammals (v2);.nwk"
    src.write_text(EXAMPLE + "\n", encoding="utf-8")
    coordinator = RoundCoordinator()
    assert coordinator.load_tree(str(src))
    assert coordinator.active_leaf_labels() == ["A", "B", "C", "D"]
