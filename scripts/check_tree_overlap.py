#!/usr/bin/env python3
"""Count how many species in a dataset have a matching leaf in a tree."""

from __future__ import annotations

import argparse
import json

from phyloscore.names import canonical
from phyloscore.species import read_species_records
from phyloscore.trees import read_tree_file


def _key(name: str) -> str | None:
    canon = canonical("_".join(name.split()))
    return canon.lower() if canon else None


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("tree", help="Newick tree path.")
    parser.add_argument("species_json", help="Species dataset (JSON array).")
    parser.add_argument("--list-missing", action="store_true", help="Also list dataset species absent from the tree.")
    args = parser.parse_args()

    records = read_species_records(args.species_json)
    tree = read_tree_file(args.tree)

    wanted = {}
    for record in records:
        key = _key(record.scientific_name)
        if key:
            wanted.setdefault(key, record.scientific_name)
    labels = {str(n.label) for n in tree.traverse_leaves() if n.label}
    found = {key for key in (_key(label) for label in labels) if key in wanted}

    summary = {
        "tree_labels": len(labels),
        "dataset_species": len(wanted),
        "overlap": len(found),
    }
    if args.list_missing:
        summary["missing"] = sorted(name for key, name in wanted.items() if key not in found)
    print(json.dumps(summary, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
