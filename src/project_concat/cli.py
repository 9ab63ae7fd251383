"""
project-concat: export a project into size-bounded text bundles for an LLM.

Overview
--------
The project tree is scanned with include/exclude rules, every candidate file is
hashed, and the files are grouped by top-level folder and written into
``{group}-{n}.txt`` bundles no bigger than ``--max-file-size-mb`` each. The
output folder also receives ``PROJECT_STRUCTURE.json`` and a hidden metadata
file used by ``--incremental`` runs to re-export only the files whose content
changed.

Stored rule defaults come from the environment (a ``.env`` file is honoured):
``PROJECT_CONCAT_EXCLUDE_PATTERNS``, ``PROJECT_CONCAT_INCLUDE_EXTENSIONS`` and
``PROJECT_CONCAT_MAX_FILE_SIZE_MB``, all comma separated.

Usage
-----
    project-concat --project . --include-ext .py --include-ext .toml
    project-concat --project . --incremental --tags --tree --tokens
    project-concat --project . --exclude "docs/**" --output-folder /tmp/exports
"""

from __future__ import annotations

import argparse
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from project_concat import __version__
from project_concat.config import EnvRuleProvider, load_default_rules
from project_concat.logging import setup_logging
from project_concat.pipeline import ConcatenationPipeline, ConcatenationRequest
from project_concat.settings import ENV_FILE, Settings

if TYPE_CHECKING:
    from collections.abc import Sequence

    from project_concat.pipeline import ConcatenationResult


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    """Parse command line arguments into Settings.

    Args:
        argv (Sequence[str] | None): arguments; defaults to ``sys.argv[1:]``

    Returns:
        Settings: the validated settings
    """
    p = argparse.ArgumentParser(
        prog="project-concat",
        description="Export a project into size-bounded text bundles.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--project", type=str, default=".", help="Project root.")
    p.add_argument(
        "--output-folder",
        type=str,
        default="",
        help="Output folder (absolute, or relative to the project).",
    )
    p.add_argument("--max-file-size-mb", type=int, default=None, help="Max bundle size in MB.")
    p.add_argument(
        "--max-source-file-mb",
        type=int,
        default=None,
        help="Skip source files larger than this many MB.",
    )
    p.add_argument("--exclude", action="append", default=[], help="Exclude glob (repeatable).")
    p.add_argument(
        "--include-ext",
        action="append",
        default=[],
        help="Include extension, e.g. .java (repeatable).",
    )
    p.add_argument(
        "--select",
        action="append",
        default=[],
        help="Export only this relative path (repeatable).",
    )
    p.add_argument("--incremental", action="store_true", help="Only export changed files.")
    p.add_argument("--tags", action="store_true", help='Wrap entries in <file path="..."> tags.')
    p.add_argument("--tree", action="store_true", help="Prepend the project tree to the first bundle.")
    p.add_argument("--tokens", action="store_true", help="Report an approximate token count.")
    p.add_argument("--strip-comments", action="store_true", help="Remove // and /* */ comments.")
    p.add_argument("--compact", action="store_true", help="Collapse blank lines.")
    p.add_argument("--no-header", action="store_true", help="Do not label entries with their path.")
    p.add_argument("--minify", action="store_true", help="Strip comments and every blank line.")
    p.add_argument("--no-lock", action="store_true", help="Do not lock the output folder.")
    p.add_argument("--log-file", type=str, default="", help="Log file path.")
    args = p.parse_args(argv)
    return Settings(**vars(args))


def build_request(settings: Settings) -> ConcatenationRequest:
    """Map CLI settings onto a pipeline request."""
    return ConcatenationRequest(
        project_path=settings.project,
        output_folder=settings.output_folder or None,
        max_file_size_mb=settings.max_file_size_mb,
        max_source_file_mb=settings.max_source_file_mb,
        exclude_patterns=frozenset(settings.exclude),
        include_extensions=frozenset(settings.include_ext),
        incremental_update=settings.incremental,
        selected_file_paths=tuple(settings.select),
        use_xml_tags=settings.tags,
        include_file_tree=settings.tree,
        estimate_tokens=settings.tokens,
        remove_comments=settings.strip_comments,
        remove_redundant_whitespace=settings.compact,
        include_file_header=not settings.no_header,
        minify=settings.minify,
        use_lock=not settings.no_lock,
    )


def format_summary(result: ConcatenationResult) -> str:
    """One-line summary of a successful run."""
    line = (
        f"Wrote {len(result.output_files)} bundle(s) "
        f"processed={result.total_files_processed} skipped={result.files_skipped} "
        f"bytes={result.total_size_bytes}"
    )
    if result.estimated_token_count is not None:
        line += f" tokens~{result.estimated_token_count}"
    if result.removed_file_paths:
        line += f" removed={len(result.removed_file_paths)}"
    return line


def main(argv: Sequence[str] | None = None) -> int:
    settings = parse_args(argv)
    if settings.log_file:
        setup_logging(settings.log_file)
    if ENV_FILE:
        load_dotenv(ENV_FILE)

    defaults = load_default_rules()
    pipeline = ConcatenationPipeline(EnvRuleProvider(defaults), defaults=defaults)
    result = pipeline.run(build_request(settings))

    if not result.success:
        print(result.message)
        return 1
    print(format_summary(result))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
