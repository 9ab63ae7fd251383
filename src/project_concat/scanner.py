"""Depth-first project traversal with subtree pruning."""

from __future__ import annotations

import os
from enum import StrEnum, auto
from pathlib import Path
from typing import TYPE_CHECKING

from project_concat.file_manipulation import is_text_file, relpath
from project_concat.logging import logger
from project_concat.path_filter import PathFilter, file_extension

if TYPE_CHECKING:
    from collections.abc import Iterable

    from project_concat.config import RuleSet


class VisitResult(StrEnum):
    """Decision taken for a directory before its children are visited."""

    DESCEND = auto()
    SKIP_SUBTREE = auto()
    ERROR = auto()


class TreeScanner:
    """Collect candidate files under ``root`` in deterministic depth-first order.

    Directory entries are visited sorted by name. An excluded directory is
    never listed, so large excluded trees cost a single pattern check.
    Symlinked directories are not followed.

    Args:
        root (Path): the project root
        rules (RuleSet): the effective rules of the run
        max_file_bytes (int | None): per-file byte ceiling; None or 0 disables it
        skip_dirs (Iterable[Path]): resolved directories pruned whatever the patterns say
    """

    def __init__(
        self,
        root: Path,
        rules: RuleSet,
        *,
        max_file_bytes: int | None = None,
        skip_dirs: Iterable[Path] = (),
    ) -> None:
        self.root = root.resolve()
        self.filter = PathFilter(rules)
        self.max_file_bytes = max_file_bytes or None
        self.skip_dirs = {Path(p).resolve() for p in skip_dirs}

    def scan(self) -> list[Path]:
        files: list[Path] = []
        result, children = self.visit_directory(self.root)
        if result is not VisitResult.DESCEND:
            return files

        stack = list(reversed(children))
        while stack:
            path, is_dir = stack.pop()
            if is_dir:
                result, children = self.visit_directory(path)
                if result is VisitResult.DESCEND:
                    stack.extend(reversed(children))
            elif self.visit_file(path):
                files.append(path)

        logger.info("scan_completed", root=str(self.root), files=len(files))
        return files

    def visit_directory(self, directory: Path) -> tuple[VisitResult, list[tuple[Path, bool]]]:
        """Decide whether to descend into ``directory`` and list it if so.

        Returns:
            tuple[VisitResult, list[tuple[Path, bool]]]: the decision and, for
                DESCEND, the sorted children as (path, is_directory) pairs
        """
        if directory != self.root:
            if directory in self.skip_dirs:
                logger.debug("directory_skipped", path=str(directory))
                return VisitResult.SKIP_SUBTREE, []
            rel = relpath(directory, self.root)
            if self.filter.is_excluded(rel):
                logger.debug("directory_excluded", path=rel)
                return VisitResult.SKIP_SUBTREE, []

        children: list[tuple[Path, bool]] = []
        try:
            with os.scandir(directory) as it:
                for entry in sorted(it, key=lambda e: e.name):
                    if entry.is_dir(follow_symlinks=False):
                        children.append((Path(entry.path), True))
                    elif entry.is_file():
                        children.append((Path(entry.path), False))
        except OSError as e:
            logger.warning("directory_unreadable", path=str(directory), error=str(e))
            return VisitResult.ERROR, []
        return VisitResult.DESCEND, children

    def visit_file(self, path: Path) -> bool:
        """Return True when ``path`` is a candidate file."""
        rel = relpath(path, self.root)
        name = path.name
        ext = file_extension(name)
        if not self.filter.is_included(rel, name, ext):
            return False

        try:
            size = path.stat().st_size
        except OSError as e:
            logger.warning("file_unreadable", path=rel, error=str(e))
            return False
        if self.max_file_bytes is not None and size > self.max_file_bytes:
            logger.info("file_too_large", path=rel, size=size, max_bytes=self.max_file_bytes)
            return False

        if not is_text_file(path):
            if self.filter.is_always_included(name, ext):
                logger.warning("skipping_binary_file", path=rel)
            return False
        return True


def scan(
    root: Path,
    rules: RuleSet,
    max_file_bytes: int | None = None,
    skip_dirs: Iterable[Path] = (),
) -> list[Path]:
    """Scan ``root`` and return the ordered candidate file list.

    Args:
        root (Path): the project root
        rules (RuleSet): the effective rules of the run
        max_file_bytes (int | None, optional): per-file byte ceiling. Defaults to None (no ceiling).
        skip_dirs (Iterable[Path], optional): resolved directories to prune. Defaults to ().

    Returns:
        list[Path]: absolute candidate paths in traversal order
    """
    return TreeScanner(root, rules, max_file_bytes=max_file_bytes, skip_dirs=skip_dirs).scan()
