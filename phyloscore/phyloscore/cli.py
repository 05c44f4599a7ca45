"""PHYLOSCORE command-line interface."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from typing import Sequence

from .config import TRANSFORM_MODES, EngineConfig
from .ranking import rank_candidates
from .rounds import RoundCoordinator
from .species import SpeciesRecord, read_species_records


def _parse_names_arg(raw: str | None) -> list[str] | None:
    if raw is None:
        return None
    names = [x.strip() for x in raw.split(",") if x.strip()]
    return list(dict.fromkeys(names)) if names else None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="phyloscore",
        description="Score species against a target by phylogenetic distance on a Newick tree.",
    )
    parser.add_argument("tree", help="Path to a Newick tree with branch lengths.")
    parser.add_argument("--target", required=True, help="Target species name.")
    parser.add_argument(
        "--allowed",
        default=None,
        help="Optional comma-separated species allowed in this round.",
    )
    parser.add_argument(
        "--species-json",
        default=None,
        help="Optional species dataset (JSON array with scientific_name/order/family).",
    )
    parser.add_argument(
        "--transform",
        choices=list(TRANSFORM_MODES),
        default="linear",
        help="Distance transform mode.",
    )
    parser.add_argument(
        "--strength",
        type=float,
        default=None,
        help="Log-transform blend strength in [0, 1].",
    )
    parser.add_argument(
        "--threshold",
        type=int,
        default=None,
        help="Max leaf count for full pairwise statistics.",
    )
    parser.add_argument(
        "-o",
        "--output",
        default=None,
        help="Optional output path for the score table. Defaults to stdout.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress to stderr.")
    return parser


def _format_row(rank, label: str, metrics, score, source: str) -> str:
    rank_text = "-" if rank is None else str(rank)
    if metrics is None:
        return f"{rank_text}\t{label}\tNA\tNA\tNA\t{'NA' if score is None else score}\t{source}"
    return (
        f"{rank_text}\t{label}\t{metrics.raw:.6g}\t{metrics.edges}\t"
        f"{metrics.effective:.6g}\t{score}\t{source}"
    )


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.strength is not None and not 0.0 <= args.strength <= 1.0:
        print("error: --strength must be in [0, 1]", file=sys.stderr)
        return 2
    if args.threshold is not None and args.threshold < 2:
        print("error: --threshold must be >= 2", file=sys.stderr)
        return 2

    config = replace(EngineConfig(), transform_mode=args.transform, transform_strength=args.strength)
    if args.threshold is not None:
        config = replace(config, precompute_threshold=args.threshold)

    records: list[SpeciesRecord] = []
    if args.species_json:
        try:
            records = read_species_records(args.species_json)
        except Exception as exc:  # pragma: no cover - error path
            print(f"error: failed reading species dataset: {exc}", file=sys.stderr)
            return 1

    allowed = _parse_names_arg(args.allowed)
    if allowed is None and records:
        allowed = [r.scientific_name for r in records]

    coordinator = RoundCoordinator(config)
    if not coordinator.load_tree(args.tree):
        print(f"error: failed loading tree from {args.tree}", file=sys.stderr)
        return 1
    coordinator.configure_round(allowed, args.target)
    if coordinator.target_node is None:
        print(f"error: target species not found in tree: {args.target}", file=sys.stderr)
        return 1

    lines = ["rank\tspecies\traw\tedges\teffective\tscore\tsource"]
    if not records:
        records = [SpeciesRecord(id=label, scientific_name=label) for label in coordinator.active_leaf_labels()]
    target = next(
        (r for r in records if coordinator.lookup(r.scientific_name) is coordinator.target_node),
        SpeciesRecord(id=args.target, scientific_name=args.target),
    )
    for row in rank_candidates(coordinator, target, records):
        name = row.record.scientific_name
        metrics = coordinator.get_phylogenetic_distance(name, target.scientific_name)
        if metrics is not None:
            score = coordinator.distance_to_score(metrics.effective)
        elif row.source == "taxonomic":
            score = int(round(100 - row.distance))
        else:
            score = None
        lines.append(_format_row(row.rank, name, metrics, score, row.source))

    text = "\n".join(lines) + "\n"
    if args.output:
        try:
            with open(args.output, "w", encoding="utf-8") as handle:
                handle.write(text)
        except Exception as exc:  # pragma: no cover - error path
            print(f"error: failed writing output: {exc}", file=sys.stderr)
            return 1
    else:
        sys.stdout.write(text)
    return 0
