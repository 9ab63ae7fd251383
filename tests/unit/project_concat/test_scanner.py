from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from project_concat.config import RuleSet
from project_concat.scanner import TreeScanner, VisitResult, scan

if TYPE_CHECKING:
    from pytest_mock import MockerFixture


def _write(path: Path, text: str = "x") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.mark.unit
def test_excluded_subtree_is_never_listed(tmp_path: Path, mocker: MockerFixture) -> None:
    _write(tmp_path / "node_modules" / "pkg" / "index.js")
    app = _write(tmp_path / "src" / "app.js")
    spy = mocker.spy(os, "scandir")

    files = scan(tmp_path, RuleSet(exclude_patterns={"node_modules/**"}, include_extensions={".js"}))

    assert files == [app.resolve()]
    listed = [str(c.args[0]) for c in spy.call_args_list]
    assert not any("node_modules" in p for p in listed)


@pytest.mark.unit
def test_scan_order_is_sorted_depth_first(tmp_path: Path) -> None:
    for rel in ["z.java", "b/c.java", "a.java", "b/a.java"]:
        _write(tmp_path / rel)

    files = scan(tmp_path, RuleSet(include_extensions={".java"}))

    root = tmp_path.resolve()
    assert [f.relative_to(root).as_posix() for f in files] == ["a.java", "b/a.java", "b/c.java", "z.java"]


@pytest.mark.unit
def test_binary_and_oversized_files_are_rejected(tmp_path: Path) -> None:
    keep = _write(tmp_path / "keep.txt", "ok")
    (tmp_path / "blob.txt").write_bytes(b"\x00\x01")
    _write(tmp_path / "big.txt", "y" * 200)

    files = scan(tmp_path, RuleSet(include_extensions={".txt"}), max_file_bytes=100)

    assert files == [keep.resolve()]


@pytest.mark.unit
def test_skip_dirs_prunes_the_output_directory(tmp_path: Path) -> None:
    src = _write(tmp_path / "src" / "a.txt")
    out = tmp_path / "export"
    _write(out / "src-1.txt")

    files = scan(tmp_path, RuleSet(include_extensions={".txt"}), skip_dirs=[out])

    assert files == [src.resolve()]


@pytest.mark.unit
def test_always_include_names_need_no_extension(tmp_path: Path) -> None:
    dockerfile = _write(tmp_path / "Dockerfile", "FROM python")
    _write(tmp_path / "notes")

    rules = RuleSet(include_extensions={".py"}, always_include_names={"Dockerfile"})

    assert scan(tmp_path, rules) == [dockerfile.resolve()]


@pytest.mark.unit
def test_unreadable_directory_is_reported_and_skipped(tmp_path: Path, mocker: MockerFixture) -> None:
    _write(tmp_path / "locked" / "hidden.txt")
    visible = _write(tmp_path / "open" / "seen.txt")
    real_scandir = os.scandir

    def fake_scandir(path: Path) -> object:
        if Path(path).name == "locked":
            msg = "denied"
            raise PermissionError(msg)
        return real_scandir(path)

    mocker.patch("os.scandir", side_effect=fake_scandir)
    scanner = TreeScanner(tmp_path, RuleSet(include_extensions={".txt"}))

    assert scanner.visit_directory(scanner.root / "locked")[0] is VisitResult.ERROR
    assert scanner.scan() == [visible.resolve()]
