from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

ROOT_GROUP = "root"


def group_key(path: Path, root: Path) -> str:
    """Return the first path segment of ``path`` below ``root``, or ``ROOT_GROUP``.

    Examples:
        src/main/java/App.java -> "src"
        config/application.yml -> "config"
        README.md -> "root"
    """
    parts = path.relative_to(root).parts
    return parts[0] if len(parts) > 1 else ROOT_GROUP


def group_files(files: Sequence[Path], root: Path) -> dict[str, list[Path]]:
    """Partition files by their top-level folder, keeping the input order inside each group.

    Args:
        files (Sequence[Path]): absolute file paths under ``root``
        root (Path): the project root

    Returns:
        dict[str, list[Path]]: group key to files, groups in order of first appearance
    """
    groups: dict[str, list[Path]] = {}
    for f in files:
        groups.setdefault(group_key(f, root), []).append(f)
    return groups
