"""End-to-end export: scan, diff, group, write bundles, save the new snapshot."""

from __future__ import annotations

import time
from pathlib import Path
from typing import TYPE_CHECKING

from filelock import FileLock, Timeout
from pydantic import BaseModel, ConfigDict, Field

from project_concat.change_detection import ChangeDetector
from project_concat.config import (
    LOCK_FILE_NAME,
    MB_TO_BYTES,
    FormatMode,
    OutputSpec,
    build_rule_set,
    load_default_rules,
)
from project_concat.exceptions import InvalidProjectPathError, OutputLockedError
from project_concat.file_manipulation import build_tree_lines, now_ms, relpath
from project_concat.grouping import group_files
from project_concat.logging import logger
from project_concat.output_construction import BundleWriter, build_preamble
from project_concat.path_filter import escape_glob
from project_concat.scanner import scan
from project_concat.snapshot import Snapshot, SnapshotStore
from project_concat.structure import export_structure

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from project_concat.config import DefaultRules, RuleProvider
    from project_concat.snapshot import HiddenFileMarker

OUTPUT_SUFFIX = "_Concatenated_Output"


class ConcatenationRequest(BaseModel):
    """Inputs of one export run."""

    model_config = ConfigDict(frozen=True)

    project_path: Path
    output_folder: str | None = None
    max_file_size_mb: int | None = Field(default=None, gt=0, description="Max bundle size in MB.")
    max_source_file_mb: int | None = Field(default=None, gt=0, description="Per-file ceiling in MB.")
    exclude_patterns: frozenset[str] = frozenset()
    include_extensions: frozenset[str] = frozenset()
    incremental_update: bool = False
    selected_file_paths: tuple[str, ...] = ()

    use_xml_tags: bool = False
    include_file_tree: bool = False
    estimate_tokens: bool = False
    remove_comments: bool = False
    remove_redundant_whitespace: bool = False
    include_file_header: bool = True
    minify: bool = False

    use_lock: bool = True
    lock_timeout: float = Field(default=10.0, ge=0, description="Seconds to wait for the output lock.")


class ConcatenationResult(BaseModel):
    """Statistics and artifacts of one export run."""

    success: bool
    message: str
    output_files: list[str] = Field(default_factory=list)
    total_files_processed: int = 0
    files_changed: int = 0
    files_skipped: int = 0
    total_size_bytes: int = 0
    processing_time_ms: int = 0
    project_structure_file: str | None = None
    metadata_file: str | None = None
    estimated_token_count: int | None = None
    preview_file_tree: str | None = None
    processed_file_paths: list[str] = Field(default_factory=list)
    removed_file_paths: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)

    @classmethod
    def failure(cls, message: str) -> ConcatenationResult:
        return cls(success=False, message=message, errors=[message])


def resolve_output_dir(project: Path, output_folder: str | None) -> Path:
    """Resolve where the bundles of ``project`` go.

    The output always lands in a ``{project name}_Concatenated_Output`` folder:
    inside the project when no folder is given, inside ``output_folder`` when
    it is absolute, and inside ``project / output_folder`` otherwise.

    Args:
        project (Path): the resolved project root
        output_folder (str | None): the caller-supplied folder

    Returns:
        Path: the resolved output directory
    """
    name = f"{project.name}{OUTPUT_SUFFIX}"
    folder = (output_folder or "").strip()
    if not folder:
        return (project / name).resolve()
    base = Path(folder).expanduser()
    if not base.is_absolute():
        base = project / base
    return (base / name).resolve()


def validate_project(project_path: Path) -> Path:
    """Resolve the project root.

    Raises:
        InvalidProjectPathError: if the path is missing or not a directory
    """
    project = Path(project_path).expanduser()
    if not project.is_dir():
        raise InvalidProjectPathError(folder=project)
    return project.resolve()


def select_files(files: Sequence[Path], root: Path, selected: Iterable[str]) -> list[Path]:
    """Restrict ``files`` to an exact allowlist of root-relative paths."""
    wanted = {s.strip().replace("\\", "/").strip("/") for s in selected if s.strip()}
    return [f for f in files if relpath(f, root) in wanted]


def output_spec_for(request: ConcatenationRequest, max_bundle_mb: int) -> OutputSpec:
    return OutputSpec(
        max_bundle_bytes=max_bundle_mb * MB_TO_BYTES,
        format_mode=FormatMode.TAGGED if request.use_xml_tags else FormatMode.PLAIN,
        include_header=request.include_file_header,
        strip_comments=request.remove_comments,
        compact_whitespace=request.remove_redundant_whitespace,
        minify=request.minify,
    )


class ConcatenationPipeline:
    """Run exports against a RuleProvider and the packaged defaults.

    Args:
        rule_provider (RuleProvider): source of the stored exclude/include rules
        defaults (DefaultRules | None): packaged defaults; loaded from ``defaults.yaml`` when None
        marker (HiddenFileMarker | None): hidden-file capability for the snapshot file
    """

    def __init__(
        self,
        rule_provider: RuleProvider,
        defaults: DefaultRules | None = None,
        marker: HiddenFileMarker | None = None,
    ) -> None:
        self.rule_provider = rule_provider
        self.defaults = defaults or load_default_rules()
        self.marker = marker

    def run(self, request: ConcatenationRequest) -> ConcatenationResult:
        """Export the project described by ``request``.

        Failures never raise: they are logged and reported in the result.
        Output already written when a failure happens is left in place.
        """
        started = time.perf_counter()
        logger.info("concatenation_started", project=str(request.project_path))
        try:
            project = validate_project(request.project_path)
        except InvalidProjectPathError as e:
            logger.error("invalid_project_path", project=str(e.folder))
            return ConcatenationResult.failure(str(e))

        try:
            output_dir = resolve_output_dir(project, request.output_folder)
            output_dir.mkdir(parents=True, exist_ok=True)
            if not request.use_lock:
                return self._run(project, output_dir, request, started)
            try:
                with FileLock(output_dir / LOCK_FILE_NAME, timeout=request.lock_timeout):
                    return self._run(project, output_dir, request, started)
            except Timeout as e:
                raise OutputLockedError(folder=output_dir) from e
        except Exception as e:  # noqa: BLE001
            logger.exception("concatenation_failed", project=str(project))
            return ConcatenationResult.failure(f"Error: {e}")

    def _run(
        self,
        project: Path,
        output_dir: Path,
        request: ConcatenationRequest,
        started: float,
    ) -> ConcatenationResult:
        extra_excludes: list[str] = []
        if output_dir.is_relative_to(project):
            rel_out = escape_glob(relpath(output_dir, project))
            extra_excludes = [rel_out, f"{rel_out}/**"]
        rules = build_rule_set(
            self.defaults,
            self.rule_provider,
            exclude_patterns=request.exclude_patterns,
            include_extensions=request.include_extensions,
            extra_excludes=extra_excludes,
        )
        max_bundle_mb = request.max_file_size_mb or self.rule_provider.max_file_size_mb()
        max_source_bytes = request.max_source_file_mb * MB_TO_BYTES if request.max_source_file_mb else None

        store = SnapshotStore(output_dir, self.marker)
        previous = store.load()
        incremental = request.incremental_update and previous is not None

        logger.info("scan_started", project=str(project), max_bundle_mb=max_bundle_mb)
        files = scan(project, rules, max_file_bytes=max_source_bytes, skip_dirs=[output_dir])
        files = [f for f in files if not f.is_relative_to(output_dir)]
        scanned = [relpath(f, project) for f in files]
        if request.selected_file_paths:
            files = select_files(files, project, request.selected_file_paths)
            logger.info("selection_applied", selected=len(request.selected_file_paths), files=len(files))

        diff = ChangeDetector(project).diff(files, previous, incremental=incremental, present=scanned)

        tree: str | None = None
        preamble: str | None = None
        if request.include_file_tree:
            tree_lines = build_tree_lines(project.name, [relpath(f, project) for f in files])
            tree = "\n".join(tree_lines)
            preamble = build_preamble(tree_lines)

        writer = BundleWriter(project, output_dir, output_spec_for(request, max_bundle_mb))
        output_files: list[Path] = []
        token_count = 0
        for group_key, group in group_files(diff.to_process, project).items():
            written = writer.write_group(group_key, group, preamble=preamble)
            preamble = None
            output_files.extend(written.file_paths)
            token_count += written.token_count
            for f in written.unreadable:
                diff.new_records.pop(relpath(f, project), None)

        structure_file = export_structure(project, files, output_dir)
        metadata_file = store.save(Snapshot.from_records(project, now_ms(), diff.new_records))

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            "concatenation_completed",
            elapsed_ms=elapsed_ms,
            bundles=len(output_files),
            processed=len(diff.to_process),
            skipped=diff.skipped_count,
        )
        return ConcatenationResult(
            success=True,
            message="Concatenation completed successfully",
            output_files=[str(p) for p in output_files],
            total_files_processed=len(diff.to_process),
            files_changed=len(diff.to_process),
            files_skipped=diff.skipped_count,
            total_size_bytes=sum(p.stat().st_size for p in output_files),
            processing_time_ms=elapsed_ms,
            project_structure_file=str(structure_file),
            metadata_file=str(metadata_file),
            estimated_token_count=token_count if request.estimate_tokens else None,
            preview_file_tree=tree,
            processed_file_paths=[relpath(f, project) for f in diff.to_process],
            removed_file_paths=diff.removed,
        )
