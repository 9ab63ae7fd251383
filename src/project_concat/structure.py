"""Nested JSON view of the scanned tree."""

from __future__ import annotations

import json
import os
from typing import TYPE_CHECKING, Any

from project_concat.config import STRUCTURE_FILE_NAME
from project_concat.file_manipulation import relpath
from project_concat.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from pathlib import Path


def build_structure(rel_paths: Iterable[str]) -> dict[str, Any]:
    """Insert each relative path as a chain of nested maps, files mapped to None.

    Args:
        rel_paths (Iterable[str]): POSIX relative paths (e.g. "src/main/App.java")

    Returns:
        dict[str, Any]: the nested tree, e.g. {"src": {"main": {"App.java": None}}}
    """
    tree: dict[str, Any] = {}
    for rp in rel_paths:
        parts = [p for p in rp.split("/") if p]
        if not parts:
            continue
        cur = tree
        for part in parts[:-1]:
            cur = cur.setdefault(part, {})
        cur[parts[-1]] = None
    return tree


def flatten_structure(tree: dict[str, Any], prefix: str = "") -> set[str]:
    """Inverse of ``build_structure``: the set of leaf paths of ``tree``."""
    out: set[str] = set()
    for name, child in tree.items():
        path = f"{prefix}{name}"
        if child is None:
            out.add(path)
        else:
            out |= flatten_structure(child, prefix=f"{path}/")
    return out


def export_structure(root: Path, files: Sequence[Path], output_dir: Path) -> Path:
    """Write ``PROJECT_STRUCTURE.json`` for the candidate files.

    Args:
        root (Path): the project root
        files (Sequence[Path]): every candidate file of the run
        output_dir (Path): the resolved output directory

    Returns:
        Path: the structure file path
    """
    payload = {
        "projectPath": str(root),
        "structure": build_structure(relpath(f, root) for f in files),
    }
    target = output_dir / STRUCTURE_FILE_NAME
    target.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info("structure_exported", path=str(target), files=len(files))
    return target


def list_file_tree(root: Path, directory: Path | None = None) -> list[dict[str, Any]]:
    """List the raw directory tree for interactive file selection.

    Directories come first, then files, each sorted case-insensitively. ``.git``
    is skipped. A directory that cannot be read contributes no children.

    Args:
        root (Path): the project root; node paths are relative to it
        directory (Path | None): the directory to list. Defaults to ``root``.

    Returns:
        list[dict[str, Any]]: nodes with "name", "path", "type" and, for
            directories, "children"
    """
    current = directory or root
    try:
        with os.scandir(current) as it:
            entries = [(e.name, e.is_dir(follow_symlinks=False)) for e in it]
    except OSError as e:
        logger.warning("directory_unreadable", path=str(current), error=str(e))
        return []

    entries.sort(key=lambda item: (not item[1], item[0].lower()))
    nodes: list[dict[str, Any]] = []
    for name, is_dir in entries:
        if is_dir and name == ".git":
            continue
        path = current / name
        node: dict[str, Any] = {"name": name, "path": relpath(path, root)}
        if is_dir:
            node["type"] = "directory"
            node["children"] = list_file_tree(root, path)
        else:
            node["type"] = "file"
        nodes.append(node)
    return nodes
