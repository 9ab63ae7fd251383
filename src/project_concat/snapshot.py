"""Persistence of the per-output-directory baseline used for incremental runs."""

from __future__ import annotations

import subprocess  # noqa: S404
import sys
from typing import TYPE_CHECKING, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from project_concat.config import METADATA_FILE_NAME, FileRecord
from project_concat.logging import logger

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path


class Snapshot(BaseModel):
    """Record of one run: every candidate file with its content hash.

    Serialized with camelCase keys:
    ``{projectPath, lastScanTime, totalFiles, totalSize, files: {rel: {...}}}``.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    project_path: str
    last_scan_time: int
    files: dict[str, FileRecord] = Field(default_factory=dict)
    total_files: int = 0
    total_size: int = 0

    @classmethod
    def from_records(cls, project_path: Path, scan_time: int, records: dict[str, FileRecord]) -> Snapshot:
        return cls(
            project_path=str(project_path),
            last_scan_time=scan_time,
            files=dict(records),
            total_files=len(records),
            total_size=sum(r.file_size for r in records.values()),
        )


class HiddenFileMarker(Protocol):
    """Capability to toggle the platform hidden-file attribute."""

    def mark_hidden(self, path: Path) -> None: ...

    def unmark_hidden(self, path: Path) -> None: ...


class NoopHiddenFileMarker:
    """Marker for platforms where dot-files are already hidden."""

    def mark_hidden(self, path: Path) -> None:
        return None

    def unmark_hidden(self, path: Path) -> None:
        return None


class WindowsHiddenFileMarker:
    """Marker toggling the Windows hidden attribute with ``attrib``."""

    def mark_hidden(self, path: Path) -> None:
        self._attrib("+h", path)

    def unmark_hidden(self, path: Path) -> None:
        self._attrib("-h", path)

    @staticmethod
    def _attrib(flag: str, path: Path) -> None:
        subprocess.run(  # noqa: S603
            ["attrib", flag, str(path)],  # noqa: S607
            text=True,
            capture_output=True,
            check=True,
        )


def default_marker() -> HiddenFileMarker:
    """Pick the hidden-file marker for the running platform."""
    if sys.platform == "win32":
        return WindowsHiddenFileMarker()
    return NoopHiddenFileMarker()


class SnapshotStore:
    """Load and save the snapshot kept inside a resolved output directory.

    Each output directory owns its own baseline, so several output targets for
    the same project diff independently.
    """

    def __init__(self, output_dir: Path, marker: HiddenFileMarker | None = None) -> None:
        self.output_dir = output_dir
        self.marker = marker or default_marker()

    @property
    def path(self) -> Path:
        return self.output_dir / METADATA_FILE_NAME

    def load(self) -> Snapshot | None:
        """Return the stored snapshot, or None when it is missing or unreadable."""
        path = self.path
        if not path.exists():
            return None
        try:
            return Snapshot.model_validate_json(path.read_bytes())
        except (OSError, ValidationError) as e:
            logger.warning("snapshot_unreadable", path=str(path), error=str(e))
            return None

    def save(self, snapshot: Snapshot) -> Path:
        """Replace the stored snapshot wholesale.

        A hidden metadata file is un-hidden before writing and hidden again
        afterwards; attribute failures are logged and ignored.

        Returns:
            Path: the metadata file path
        """
        path = self.path
        if path.exists():
            self._toggle(self.marker.unmark_hidden, path)
        path.write_text(snapshot.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
        self._toggle(self.marker.mark_hidden, path)
        logger.info("snapshot_saved", path=str(path), files=snapshot.total_files)
        return path

    @staticmethod
    def _toggle(action: Callable[[Path], None], path: Path) -> None:
        try:
            action(path)
        except (OSError, subprocess.CalledProcessError) as e:
            logger.warning("hidden_attribute_failed", path=str(path), error=str(e))
