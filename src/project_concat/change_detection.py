"""Content-hash based change detection against a previous snapshot."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from project_concat.config import FileRecord
from project_concat.exceptions import HashComputationError
from project_concat.file_manipulation import relpath, sha256_file
from project_concat.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from pathlib import Path

    from project_concat.snapshot import Snapshot


@dataclass(slots=True)
class DiffResult:
    """Outcome of diffing the candidates against a baseline."""

    to_process: list[Path] = field(default_factory=list)
    skipped_count: int = 0
    new_records: dict[str, FileRecord] = field(default_factory=dict)
    removed: list[str] = field(default_factory=list)


def make_record(path: Path, root: Path) -> FileRecord:
    """Hash ``path`` and capture its size and modification time.

    Raises:
        HashComputationError: if the file cannot be read or stat'd
    """
    rel = relpath(path, root)
    try:
        digest = sha256_file(path)
        st = path.stat()
    except OSError as e:
        raise HashComputationError(file=path, reason=str(e)) from e
    return FileRecord(
        file_path=rel,
        sha256_hash=digest,
        last_modified=st.st_mtime_ns // 1_000_000,
        file_size=st.st_size,
    )


class ChangeDetector:
    """Classify candidates as to-process or skipped.

    The hash is the only change signal; modification time and size are kept in
    the records for diagnostics.
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    def diff(
        self,
        candidates: Sequence[Path],
        previous: Snapshot | None,
        *,
        incremental: bool,
        present: Iterable[str] | None = None,
    ) -> DiffResult:
        """Hash every candidate and compare it with ``previous``.

        A file is skipped only in incremental mode, when a previous snapshot
        exists and holds the same path with an identical hash. Paths of the
        baseline that no longer exist among ``present`` (the candidates by
        default) are listed in ``removed``.

        Args:
            candidates (Sequence[Path]): candidate files in traversal order
            previous (Snapshot | None): the baseline, if any
            incremental (bool): whether unchanged files may be skipped
            present (Iterable[str] | None): relative paths still in the project when
                ``candidates`` is a narrowed selection

        Raises:
            HashComputationError: if a candidate cannot be hashed

        Returns:
            DiffResult: files to process, skip count, records of the new snapshot and removed paths
        """
        baseline = previous.files if previous is not None else {}
        result = DiffResult()
        for path in candidates:
            record = make_record(path, self.root)
            result.new_records[record.file_path] = record
            old = baseline.get(record.file_path)
            if incremental and previous is not None and old is not None and old.sha256_hash == record.sha256_hash:
                result.skipped_count += 1
                continue
            result.to_process.append(path)

        still_there = set(result.new_records) if present is None else set(present)
        result.removed = sorted(set(baseline) - still_there)
        logger.info(
            "diff_completed",
            to_process=len(result.to_process),
            skipped=result.skipped_count,
            removed=len(result.removed),
        )
        return result
