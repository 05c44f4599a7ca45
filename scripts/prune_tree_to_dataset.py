#!/usr/bin/env python3
"""Write a copy of a tree restricted to the species of a dataset."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from phyloscore.names import build_allowed_set
from phyloscore.species import read_species_records
from phyloscore.trees import TreeModel, prune_to_allowed, read_tree_file


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("tree", help="Newick tree path.")
    parser.add_argument("species_json", help="Species dataset (JSON array).")
    parser.add_argument("--output", required=True, help="Output Newick file path.")
    args = parser.parse_args()

    records = read_species_records(args.species_json)
    model = TreeModel.from_tree(read_tree_file(args.tree))
    before = len(model)
    prune_to_allowed(model, build_allowed_set([r.scientific_name for r in records]))
    if model.is_empty:
        print("error: no tree leaves match the dataset", file=sys.stderr)
        return 1

    out = Path(args.output)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(model.newick().rstrip() + "\n", encoding="utf-8")
    print(f"Original tree: {before} leaves")
    print(f"Pruned tree: {len(model)} leaves ({100.0 * (1 - len(model) / before):.1f}% removed)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
