"""PHYLOSCORE package."""

__all__ = [
    "names",
    "trees",
    "index",
    "distances",
    "transform",
    "scoring",
    "rounds",
    "ranking",
    "species",
    "config",
    "cli",
]
