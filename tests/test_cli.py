"""CLI integration tests."""

from __future__ import annotations

import io
import json
from contextlib import redirect_stdout

from phyloscore import cli

EXAMPLE = "((A:1,B:1):1,(C:5,D:5):5);\n"
MAMMALS = (
    "((Panthera_leo:2,Panthera_pardus:2):10,"
    "((Canis_lupus:3,Vulpes_vulpes:3):8,Ursus_arctos:11):1);\n"
)


def _rows(text: str) -> list[list[str]]:
    return [line.split("\t") for line in text.strip().splitlines()]


def test_cli_stdout_table(tmp_path):
    inp = tmp_path / "tree.nwk"
    inp.write_text(EXAMPLE, encoding="utf-8")

    buf = io.StringIO()
    with redirect_stdout(buf):
        code = cli.main([str(inp), "--target", "A"])
    assert code == 0
    rows = _rows(buf.getvalue())
    assert rows[0] == ["rank", "species", "raw", "edges", "effective", "score", "source"]
    assert rows[1] == ["-", "A", "0", "0", "0", "100", "exact"]
    assert rows[2] == ["1", "B", "2", "3", "2", "99", "phylogenetic"]
    assert rows[3] == ["2", "C", "12", "4", "12", "1", "phylogenetic"]
    assert rows[4][:2] == ["2", "D"]


def test_cli_species_json_writes_output_file(tmp_path):
    inp = tmp_path / "mammals.nwk"
    inp.write_text(MAMMALS, encoding="utf-8")
    species = tmp_path / "species.json"
    species.write_text(
        json.dumps(
            [
                {"id": "lion", "scientific_name": "Panthera leo", "order": "Carnivora", "family": "Felidae"},
                {"id": "leopard", "scientific_name": "Panthera pardus", "order": "Carnivora", "family": "Felidae"},
                {"id": "wolf", "scientific_name": "Canis lupus", "order": "Carnivora", "family": "Canidae"},
                {"id": "cat", "scientific_name": "Felis catus", "order": "Carnivora", "family": "Felidae"},
            ]
        ),
        encoding="utf-8",
    )
    out = tmp_path / "scores.tsv"

    code = cli.main(
        [
            str(inp),
            "--target",
            "Panthera leo",
            "--species-json",
            str(species),
            "--transform",
            "log",
            "--output",
            str(out),
        ]
    )
    assert code == 0
    rows = _rows(out.read_text(encoding="utf-8"))
    assert [r[1] for r in rows[1:]] == ["Panthera leo", "Panthera pardus", "Canis lupus", "Felis catus"]
    assert [r[0] for r in rows[1:]] == ["-", "1", "2", "3"]
    assert rows[2][2] == "4"
    assert rows[3][2] == "24"
    assert rows[4][2] == "NA"
    assert rows[4][6] == "taxonomic"


def test_cli_missing_target(tmp_path):
    inp = tmp_path / "tree.nwk"
    inp.write_text(EXAMPLE, encoding="utf-8")
    assert cli.main([str(inp), "--target", "Felis catus"]) == 1


def test_cli_missing_tree(tmp_path):
    assert cli.main([str(tmp_path / "nope.nwk"), "--target", "A"]) == 1


def test_cli_rejects_bad_strength(tmp_path):
    inp = tmp_path / "tree.nwk"
    inp.write_text(EXAMPLE, encoding="utf-8")
    assert cli.main([str(inp), "--target", "A", "--strength", "1.5"]) == 2
    assert cli.main([str(inp), "--target", "A", "--threshold", "1"]) == 2
