from __future__ import annotations

import json
from pathlib import Path

import pytest

from project_concat.config import STRUCTURE_FILE_NAME
from project_concat.structure import build_structure, export_structure, flatten_structure, list_file_tree


@pytest.mark.unit
def test_build_structure_nests_paths() -> None:
    tree = build_structure(["src/main/App.java", "src/Util.java", "pom.xml"])

    assert tree == {"src": {"main": {"App.java": None}, "Util.java": None}, "pom.xml": None}


@pytest.mark.unit
def test_flatten_is_the_inverse_of_build() -> None:
    paths = {"a/b/c.txt", "a/d.txt", "e.txt"}

    assert flatten_structure(build_structure(paths)) == paths


@pytest.mark.unit
def test_export_structure_writes_json(tmp_path: Path) -> None:
    root = tmp_path / "proj"
    out = tmp_path / "out"
    out.mkdir()

    target = export_structure(root, [root / "src" / "a.py", root / "b.md"], out)

    assert target == out / STRUCTURE_FILE_NAME
    payload = json.loads(target.read_text(encoding="utf-8"))
    assert payload == {"projectPath": str(root), "structure": {"src": {"a.py": None}, "b.md": None}}


@pytest.mark.unit
def test_list_file_tree_orders_directories_first(tmp_path: Path) -> None:
    (tmp_path / ".git").mkdir()
    (tmp_path / "lib").mkdir()
    (tmp_path / "lib" / "x.js").write_text("", encoding="utf-8")
    (tmp_path / "b.txt").write_text("", encoding="utf-8")
    (tmp_path / "A.txt").write_text("", encoding="utf-8")

    nodes = list_file_tree(tmp_path)

    assert [n["name"] for n in nodes] == ["lib", "A.txt", "b.txt"]
    assert nodes[0]["type"] == "directory"
    assert nodes[0]["children"] == [{"name": "x.js", "path": "lib/x.js", "type": "file"}]


@pytest.mark.unit
def test_list_file_tree_of_missing_directory_is_empty(tmp_path: Path) -> None:
    assert list_file_tree(tmp_path, tmp_path / "missing") == []
