"""Species dataset records (JSON array of taxa)."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import List

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpeciesRecord:
    id: str
    scientific_name: str
    order: str | None = None
    family: str | None = None
    genus: str | None = None
    common_name: str | None = None


def _text(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_species_records(rows) -> List[SpeciesRecord]:
    records: List[SpeciesRecord] = []
    for i, row in enumerate(rows):
        if not isinstance(row, dict):
            continue
        name = _text(row.get("scientific_name"))
        if name is None:
            logger.debug("Skipping species row %d without scientific_name", i)
            continue
        record_id = _text(row.get("id")) or name
        records.append(
            SpeciesRecord(
                id=record_id,
                scientific_name=name,
                order=_text(row.get("order")),
                family=_text(row.get("family")),
                genus=_text(row.get("genus")),
                common_name=_text(row.get("common_name")),
            )
        )
    return records


def read_species_records(path: str) -> List[SpeciesRecord]:
    """Read a JSON array of species; rows without a scientific name are skipped."""
    with open(path, "r", encoding="utf-8") as handle:
        rows = json.load(handle)
    if not isinstance(rows, list):
        raise ValueError("Species dataset must be a JSON array")
    return parse_species_records(rows)
