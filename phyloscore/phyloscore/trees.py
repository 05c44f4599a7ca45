"""Tree I/O, working-tree copies, pruning and rerooting."""

from __future__ import annotations

import io
import logging
from typing import Dict, List

import treeswift

from .names import variants

logger = logging.getLogger(__name__)

Node = treeswift.Node


def read_tree(newick: str) -> treeswift.Tree:
    """Parse a single Newick tree from text."""
    text = newick.strip() if newick else ""
    if not text:
        raise ValueError("Empty Newick text")
    if hasattr(treeswift, "read_tree_newick"):
        tree = treeswift.read_tree_newick(text)
    else:
        tree = treeswift.read_tree(io.StringIO(text), "newick")
    if isinstance(tree, list):
        if not tree:
            raise ValueError("No tree found in Newick text")
        logger.warning("Newick text holds %d trees; using the first", len(tree))
        tree = tree[0]
    if tree is None or tree.root is None:
        raise ValueError("Unable to parse phylogenetic tree")
    return tree


def read_tree_file(path: str) -> treeswift.Tree:
    with open(path, "r", encoding="utf-8") as handle:
        return read_tree(handle.read())


def _copy_subtree(root: Node) -> Node:
    clone_root = Node(label=root.label, edge_length=root.edge_length)
    stack = [(root, clone_root)]
    while stack:
        src, dst = stack.pop()
        for child in src.children:
            twin = Node(label=child.label, edge_length=child.edge_length)
            dst.add_child(twin)
            stack.append((child, twin))
    return clone_root


def _preorder(root: Node) -> List[Node]:
    """Parents before children, siblings left to right."""
    out: List[Node] = []
    stack = [root]
    while stack:
        node = stack.pop()
        out.append(node)
        stack.extend(reversed(node.children))
    return out


def _detach(node: Node) -> None:
    parent = node.parent
    if parent is not None:
        parent.children = [c for c in parent.children if c is not node]
    node.parent = None


def is_allowed(label: str | None, allowed: frozenset[str] | None) -> bool:
    if not allowed:
        return True
    if not label:
        return False
    return not variants(str(label)).isdisjoint(allowed)


class TreeModel:
    """Mutable working copy of a rooted tree.

    Holds the derived leaf list, per-node edge depths and sequential node ids.
    All three are rebuilt by :meth:`refresh` and must be refreshed after any
    topology change.
    """

    def __init__(self, root: Node | None) -> None:
        self.root = root
        self.leaves: List[Node] = []
        self.node_ids: Dict[Node, int] = {}
        self.depths: Dict[Node, int] = {}
        self.refresh()

    @classmethod
    def from_tree(cls, tree: treeswift.Tree) -> "TreeModel":
        """Deep-copy ``tree`` so that later edits never touch the source."""
        root = tree.root
        return cls(_copy_subtree(root) if root is not None else None)

    @property
    def is_empty(self) -> bool:
        return self.root is None

    def __len__(self) -> int:
        return len(self.leaves)

    def refresh(self) -> None:
        self.leaves = []
        self.node_ids = {}
        self.depths = {}
        if self.root is None:
            return
        self.root.parent = None
        for idx, node in enumerate(_preorder(self.root)):
            self.node_ids[node] = idx
            parent = node.parent
            self.depths[node] = 0 if parent is None else self.depths[parent] + 1
            if node.is_leaf():
                self.leaves.append(node)

    def node_id(self, node: Node) -> int | None:
        return self.node_ids.get(node)

    def postorder(self) -> List[Node]:
        if self.root is None:
            return []
        return list(self.root.traverse_postorder())

    def reroot(self, node: Node) -> None:
        """Root the tree at the midpoint of the edge above ``node``."""
        if self.root is None or node is self.root or node.parent is None:
            return
        if node not in self.node_ids:
            raise ValueError("Node is not part of this tree")

        half = float(node.edge_length or 0.0) / 2.0
        parent = node.parent
        _detach(node)
        new_root = Node()
        node.edge_length = half
        new_root.add_child(node)

        # Reverse the parent chain from the old attachment point up to the old root.
        previous, carried, cur = new_root, half, parent
        while cur is not None:
            nxt = cur.parent
            nxt_length = cur.edge_length
            _detach(cur)
            cur.edge_length = carried
            previous.add_child(cur)
            previous, carried, cur = cur, nxt_length, nxt

        old_root = previous
        if len(old_root.children) == 1:
            child = old_root.children[0]
            holder = old_root.parent
            child.edge_length = float(child.edge_length or 0.0) + float(old_root.edge_length or 0.0)
            old_root.children = []
            _detach(old_root)
            holder.add_child(child)
        elif not old_root.children:
            _detach(old_root)

        self.root = new_root
        self.refresh()

    def snapshot(self) -> dict | None:
        """Plain nested copy of the tree for read-only consumers."""
        if self.root is None:
            return None

        def entry(node: Node, is_root: bool) -> dict:
            return {
                "label": "" if node.label is None else str(node.label),
                "branch_length": 0.0 if is_root else float(node.edge_length or 0.0),
                "children": [],
            }

        out = entry(self.root, True)
        stack = [(self.root, out)]
        while stack:
            node, record = stack.pop()
            for child in node.children:
                child_record = entry(child, False)
                record["children"].append(child_record)
                stack.append((child, child_record))
        return out

    def as_treeswift(self) -> treeswift.Tree:
        tree = treeswift.Tree()
        tree.root = self.root if self.root is not None else Node()
        return tree

    def newick(self) -> str:
        return self.as_treeswift().newick()


def prune_to_allowed(model: TreeModel, allowed: frozenset[str] | None) -> TreeModel:
    """Restrict ``model`` in place to leaves whose labels match ``allowed``.

    An empty or missing ``allowed`` set means no restriction. If nothing
    survives, ``model.root`` becomes ``None``.
    """
    if model.root is None or not allowed:
        return model

    nodes = model.postorder()
    tips = {node for node in nodes if node.is_leaf()}
    for node in nodes:
        if node.parent is None:
            continue
        if node in tips:
            if not is_allowed(node.label, allowed):
                _detach(node)
        elif not node.children:
            _detach(node)

    root = model.root
    while root is not None and len(root.children) == 1 and not is_allowed(root.label, allowed):
        child = root.children[0]
        root.children = []
        child.parent = None
        root = child

    if root is not None and root.is_leaf() and not is_allowed(root.label, allowed):
        root = None

    model.root = root
    model.refresh()
    return model
