"""Species-name canonicalization and variant expansion.

Tree labels and dataset names rarely agree on formatting: tree tips look like
``Panthera_leo_FELIDAE_CARNIVORA`` or ``'Canis_lupus'`` while datasets carry
``Panthera leo``. Every function here is a pure function of its input.
"""

from __future__ import annotations

import re
from typing import Iterable

_WHITESPACE_RUN = re.compile(r"\s+")
_UNDERSCORE_RUN = re.compile(r"_+")
_LEADING_UNDERSCORES = re.compile(r"^_+")
_QUOTES = re.compile(r"['\"]")


def canonical(name: str | None) -> str | None:
    """Reduce a label to ``Genus_species`` (or its single token)."""
    if not name:
        return None
    cleaned = name.strip()
    if not cleaned:
        return None
    cleaned = _QUOTES.sub("", _LEADING_UNDERSCORES.sub("", cleaned))
    parts = [p for p in _UNDERSCORE_RUN.split(cleaned) if p]
    if len(parts) >= 2:
        return f"{parts[0]}_{parts[1]}"
    return cleaned or None


def ordered_variants(name: str | None) -> list[str]:
    """Spelling variants of ``name`` in lookup priority order, without repeats."""
    if not name:
        return []
    trimmed = name.strip()
    if not trimmed:
        return []

    underscore = _WHITESPACE_RUN.sub("_", trimmed)
    spaced = trimmed.replace("_", " ")
    out = [
        trimmed,
        trimmed.lower(),
        underscore,
        underscore.lower(),
        spaced,
        spaced.lower(),
    ]

    canon = canonical(trimmed)
    if canon and canon != trimmed:
        canon_spaced = canon.replace("_", " ")
        out.extend((canon, canon.lower(), canon_spaced, canon_spaced.lower()))
    return list(dict.fromkeys(out))


def variants(name: str | None) -> frozenset[str]:
    """All case/separator spellings used to match ``name``.

    Returns an empty set for missing or blank input.
    """
    return frozenset(ordered_variants(name))


def normalize_tree_label(name: str | None) -> str | None:
    if not name:
        return None
    return _WHITESPACE_RUN.sub("_", name.strip().lower())


def names_match(a: str | None, b: str | None) -> bool:
    if not a or not b:
        return False
    return not variants(a).isdisjoint(variants(b))


def build_allowed_set(names: Iterable[str | None] | None) -> frozenset[str] | None:
    """Union of the variants of every name; ``None`` means no restriction."""
    if not names:
        return None
    allowed: set[str] = set()
    for name in names:
        allowed |= variants(name)
    return frozenset(allowed) if allowed else None
