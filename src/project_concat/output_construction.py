from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TextIO

from project_concat.config import FormatMode
from project_concat.file_manipulation import prepare_content, read_source_text, relpath
from project_concat.logging import logger

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from project_concat.config import OutputSpec

TREE_HEADER = "PROJECT FILE TREE:\n"
PLAIN_HEADER = "=== {path} ===\n"
TAGGED_HEADER = '<file path="{path}">\n'
TAGGED_TRAILER = "</file>\n\n"
MINIFIED_HEADER = "File: {path}\n"
TOKEN_BYTES = 4


@dataclass(slots=True)
class GroupOutput:
    """Bundles written for one group, plus the files that could not be read."""

    file_paths: list[Path] = field(default_factory=list)
    token_count: int = 0
    unreadable: list[Path] = field(default_factory=list)


def entry_frame(rel_path: str, spec: OutputSpec) -> tuple[str, str]:
    """Return the header and trailer framing one file entry.

    Args:
        rel_path (str): the POSIX relative path of the file
        spec (OutputSpec): formatting options of the run

    Returns:
        tuple[str, str]: the header written before the content and the trailer written after it
    """
    if not spec.include_header:
        return "\n", "\n" if spec.minify else "\n\n"
    if spec.format_mode is FormatMode.TAGGED:
        return TAGGED_HEADER.format(path=rel_path), TAGGED_TRAILER
    if spec.minify:
        return MINIFIED_HEADER.format(path=rel_path), "\n"
    return PLAIN_HEADER.format(path=rel_path), "\n\n"


def build_preamble(tree_lines: Sequence[str]) -> str:
    """Render the project tree block written at the top of the first bundle of a run."""
    tree = "\n".join(tree_lines)
    return f"{TREE_HEADER}{tree}\n\n"


def estimate_tokens(size_bytes: int) -> int:
    """Coarse token estimate: one token per four bytes."""
    return size_bytes // TOKEN_BYTES


class BundleWriter:
    """Serialize groups of files into size-bounded bundles.

    Bundles are named ``{group}-{n}.txt`` inside ``output_dir``. Splitting is a
    single greedy pass: a new bundle starts when none is open or when the next
    entry would push the current one past ``spec.max_bundle_bytes``. An entry is
    never split, so a file larger than the limit gets a bundle of its own. The
    tree preamble is never split either: a preamble larger than the limit fills
    the first bundle alone and the files start in the next one.
    """

    def __init__(self, root: Path, output_dir: Path, spec: OutputSpec) -> None:
        self.root = root
        self.output_dir = output_dir
        self.spec = spec

    def bundle_path(self, group_key: str, index: int) -> Path:
        return self.output_dir / f"{group_key}-{index}.txt"

    def write_group(
        self,
        group_key: str,
        files: Sequence[Path],
        preamble: str | None = None,
    ) -> GroupOutput:
        """Write the files of one group.

        Args:
            group_key (str): the group name used in bundle file names
            files (Sequence[Path]): the files of the group, in output order
            preamble (str | None): text written at the start of the first bundle

        Returns:
            GroupOutput: the bundle paths, the approximate token count and the unreadable files
        """
        output = GroupOutput()
        index = 1
        current_size = 0
        handle: TextIO | None = None
        try:
            if preamble:
                handle = self._open(group_key, index, output)
                index += 1
                handle.write(preamble)
                current_size = len(preamble.encode("utf-8"))
                output.token_count += estimate_tokens(current_size)

            for f in files:
                rel = relpath(f, self.root)
                try:
                    content = prepare_content(read_source_text(f), self.spec)
                except OSError as e:
                    logger.warning("file_unreadable", path=rel, error=str(e))
                    output.unreadable.append(f)
                    continue
                header, trailer = entry_frame(rel, self.spec)
                entry = f"{header}{content}{trailer}"
                entry_size = len(entry.encode("utf-8"))

                if handle is None or current_size + entry_size > self.spec.max_bundle_bytes:
                    if handle is not None:
                        handle.close()
                        handle = None
                    handle = self._open(group_key, index, output)
                    index += 1
                    current_size = 0

                handle.write(entry)
                current_size += entry_size
                output.token_count += estimate_tokens(entry_size)
        finally:
            if handle is not None:
                handle.close()

        return output

    def _open(self, group_key: str, index: int, output: GroupOutput) -> TextIO:
        path = self.bundle_path(group_key, index)
        handle = path.open("w", encoding="utf-8", newline="")
        output.file_paths.append(path)
        logger.info("bundle_created", path=path.name)
        return handle
