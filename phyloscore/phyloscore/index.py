"""Name-variant lookup of leaves in the active tree."""

from __future__ import annotations

from typing import Dict, List

from .names import ordered_variants
from .trees import Node, TreeModel


class SpeciesIndex:
    """Maps every spelling variant of a leaf label to that leaf.

    The first leaf registered under a variant keeps it.
    """

    def __init__(self) -> None:
        self._by_variant: Dict[str, Node] = {}
        self._labels: List[str] = []

    @classmethod
    def build(cls, model: TreeModel | None) -> "SpeciesIndex":
        index = cls()
        if model is None:
            return index
        for leaf in model.leaves:
            if not leaf.label:
                continue
            label = str(leaf.label)
            index._labels.append(label)
            for variant in ordered_variants(label):
                index._by_variant.setdefault(variant, leaf)
        return index

    def lookup(self, name: str | None) -> Node | None:
        for variant in ordered_variants(name):
            node = self._by_variant.get(variant)
            if node is not None:
                return node
        return None

    def labels(self) -> List[str]:
        return list(self._labels)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.lookup(name) is not None

    def __len__(self) -> int:
        return len(self._labels)
