from __future__ import annotations

import hashlib
import re
import time
from typing import TYPE_CHECKING, Any

from project_concat.logging import logger

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from project_concat.config import OutputSpec

SNIFF_BYTES = 1024
HASH_BLOCK_BYTES = 1024 * 1024

_BLANK_LINE_RE = re.compile(r"^[ \t\f\v\r]+$", re.MULTILINE)
_BLANK_RUN_RE = re.compile(r"\n{3,}")
_NEWLINE_RUN_RE = re.compile(r"\n+")


def relpath(path: Path, root: Path) -> str:
    """Send the relative path of path from root.

    Args:
        path (Path): the path to "relativise"
        root (Path): the root to relativise from

    Returns:
        str: the relative path from root to path, with POSIX separators.
            If path is not under root, returns the original path as a string.
    """
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return str(path)


def is_text_file(path: Path, nbytes: int = SNIFF_BYTES) -> bool:
    """Check if a file looks like text.

    Reads at most the first ``nbytes`` bytes and rejects the file when a NUL
    byte shows up. Empty files are text. Unreadable files are logged and
    reported as non-text so the scan can move on.

    Args:
        path (Path): the file path to check
        nbytes (int, optional): number of bytes to sniff. Defaults to 1024.

    Returns:
        bool: True if the file is probably text, False otherwise
    """
    try:
        if path.stat().st_size == 0:
            return True
        with path.open("rb") as f:
            chunk = f.read(nbytes)
    except OSError as e:
        logger.warning("text_sniff_failed", path=str(path), error=str(e))
        return False
    return b"\x00" not in chunk


def sha256_file(path: Path) -> str:
    """Compute and return the SHA-256 hex digest of a file.

    Reads the file in 1 MiB chunks to handle large files without excessive memory use.

    Args:
        path (Path): the file path to hash

    Returns:
        str: the SHA-256 hex digest of the file contents
    """
    h = hashlib.sha256()
    with path.open("rb") as f:
        for blk in iter(lambda: f.read(HASH_BLOCK_BYTES), b""):
            h.update(blk)
    return h.hexdigest()


def read_source_text(path: Path) -> str:
    """Read a source file as UTF-8.

    Line endings are kept as they are on disk and undecodable bytes become
    U+FFFD, so any loss shows up in the bundle.
    """
    with path.open(encoding="utf-8", errors="replace", newline="") as f:
        return f.read()


def strip_comments(code: str) -> str:
    """Remove ``//`` line comments and ``/* */`` block comments from source text.

    Single pass over the text with four states: code, string, line comment and
    block comment. Double-quoted, single-quoted and backtick strings are copied
    verbatim, backslash escapes included, so comment markers inside string
    literals survive. Quoted strings (other than backtick ones) end at a newline
    when left unterminated. Line comments keep their terminating newline. A
    ``/*`` that is never closed (``COPY target/*.jar``, ``rm build/*``) is
    plain text: it and everything after it are kept.

    Args:
        code (str): the source text

    Returns:
        str: the text without comments
    """
    out: list[str] = []
    i, n = 0, len(code)
    state = "code"
    quote = ""
    block_start = 0
    unclosed = False
    while i < n:
        c = code[i]
        if state == "code":
            if code.startswith("//", i):
                state = "line"
                i += 2
            elif not unclosed and code.startswith("/*", i):
                state = "block"
                block_start = i
                i += 2
            else:
                if c in "\"'`":
                    state, quote = "string", c
                out.append(c)
                i += 1
        elif state == "string":
            out.append(c)
            if c == "\\" and i + 1 < n:
                out.append(code[i + 1])
                i += 2
                continue
            if c == quote or (c == "\n" and quote != "`"):
                state = "code"
            i += 1
        elif state == "line":
            if code.startswith("\r\n", i):
                out.append("\r\n")
                state = "code"
                i += 2
                continue
            if c == "\n":
                out.append(c)
                state = "code"
            i += 1
        elif code.startswith("*/", i):
            state = "code"
            i += 2
        else:
            i += 1
        if i >= n and state == "block":
            # unterminated: keep it as text, no later "/*" can be closed either
            out.append("/*")
            state, unclosed = "code", True
            i = block_start + 2
    return "".join(out)


def compact_whitespace(code: str) -> str:
    """Empty whitespace-only lines and collapse 3+ newlines into one blank line."""
    no_blank = _BLANK_LINE_RE.sub("", code)
    return _BLANK_RUN_RE.sub("\n\n", no_blank)


def minify_text(code: str) -> str:
    """Drop every blank line and trim the text."""
    no_blank = _BLANK_LINE_RE.sub("", code)
    return _NEWLINE_RUN_RE.sub("\n", no_blank).strip()


def prepare_content(text: str, spec: OutputSpec) -> str:
    """Apply the content transforms selected in ``spec``.

    Comments are stripped when either ``strip_comments`` or ``minify`` is set.
    ``minify`` then wins over ``compact_whitespace``.

    Args:
        text (str): the raw file content
        spec (OutputSpec): formatting options of the run

    Returns:
        str: the content to write into the bundle
    """
    if spec.strip_comments or spec.minify:
        text = strip_comments(text)
    if spec.minify:
        return minify_text(text)
    if spec.compact_whitespace:
        return compact_whitespace(text)
    return text


def build_tree_lines(root_name: str, rel_paths: Sequence[str]) -> list[str]:
    """Build a visual tree representation of file paths.

    Args:
        root_name (str): the name to use for the root of the tree
        rel_paths (Sequence[str]): the list of file paths relative to the root, using POSIX separators (e.g. "src/main.py")

    Returns:
        list[str]: a list of strings representing the tree structure, suitable for printing
    """
    rels = sorted(
        {p.strip("/").replace("\\", "/") for p in rel_paths if p.strip()},
        key=str.lower,
    )
    tree: dict[str, Any] = {}
    for rp in rels:
        cur = tree
        parts = rp.split("/")
        for part in parts[:-1]:
            cur = cur.setdefault(part, {})
        cur.setdefault("__files__", set()).add(parts[-1])

    lines: list[str] = [root_name]

    def walk(node: dict[str, Any], prefix: str) -> None:
        dirs = sorted([k for k in node if k != "__files__"], key=str.lower)
        files = sorted(node.get("__files__", set()), key=str.lower)
        entries: list[tuple[str, Any]] = [(d, node[d]) for d in dirs]
        entries.extend((f, None) for f in files)
        for idx, (name, child) in enumerate(entries):
            last = idx == len(entries) - 1
            branch = "└── " if last else "├── "
            lines.append(prefix + branch + name + ("/" if child is not None else ""))
            if child is not None:
                walk(child, prefix + ("    " if last else "│   "))

    walk(tree, "")
    return lines


def now_ms() -> int:
    """Return the current time in epoch milliseconds."""
    return time.time_ns() // 1_000_000
