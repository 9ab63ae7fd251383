"""Include/exclude decisions for root-relative paths.

Exclude patterns use shell glob syntax extended with ``**``:

- ``*`` matches any run of characters inside one path segment,
- ``?`` matches one character inside a segment,
- ``**`` matches any number of segments, including none
  (``node_modules/**`` matches ``node_modules`` itself, ``**/*.class`` matches
  ``Main.class``),
- ``[abc]`` / ``[!abc]`` character classes and ``{java,kt}`` alternation.

Patterns are matched against the whole root-relative POSIX path.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import TYPE_CHECKING

from project_concat.exceptions import InvalidGlobPatternError
from project_concat.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterable

    from project_concat.config import RuleSet


def glob_to_regex(pattern: str) -> str:
    """Translate a glob pattern into an equivalent regular expression source.

    Args:
        pattern (str): the glob pattern, using "/" as separator

    Raises:
        InvalidGlobPatternError: if a character class or a brace group is not closed

    Returns:
        str: a regular expression matching the same paths (use with ``fullmatch``)
    """
    out: list[str] = []
    i, n = 0, len(pattern)
    depth = 0
    while i < n:
        c = pattern[i]
        if c == "*":
            j = i
            while j < n and pattern[j] == "*":
                j += 1
            if j - i == 1:
                out.append("[^/]*")
            else:
                after_sep = i == 0 or pattern[i - 1] == "/"
                if after_sep and j < n and pattern[j] == "/":
                    out.append("(?:.*/)?")
                    j += 1
                elif after_sep and j == n and i > 0:
                    out.pop()
                    out.append("(?:/.*)?")
                else:
                    out.append(".*")
            i = j
        elif c == "?":
            out.append("[^/]")
            i += 1
        elif c == "[":
            j = i + 1
            if j < n and pattern[j] in "!^":
                j += 1
            if j < n and pattern[j] == "]":
                j += 1
            while j < n and pattern[j] != "]":
                j += 1
            if j >= n:
                raise InvalidGlobPatternError(pattern=pattern, reason=f"unclosed character class at {i}")
            body = pattern[i + 1 : j]
            negate = body[:1] in {"!", "^"}
            if negate:
                body = body[1:]
            body = body.replace("\\", "\\\\").replace("[", "\\[")
            out.append(f"[^{body}]" if negate else f"[{body}]")
            i = j + 1
        elif c == "{":
            depth += 1
            out.append("(?:")
            i += 1
        elif c == "}" and depth:
            depth -= 1
            out.append(")")
            i += 1
        elif c == "," and depth:
            out.append("|")
            i += 1
        else:
            out.append(re.escape(c))
            i += 1
    if depth:
        raise InvalidGlobPatternError(pattern=pattern, reason="unclosed brace group")
    return "".join(out)


def escape_glob(text: str) -> str:
    """Escape glob metacharacters so ``text`` only matches itself."""
    return "".join(f"[{c}]" if c in "*?[{}," else c for c in text)


def compile_glob(pattern: str) -> re.Pattern[str]:
    """Compile a glob pattern for ``fullmatch`` against a relative POSIX path.

    Raises:
        InvalidGlobPatternError: if the pattern cannot be translated or compiled
    """
    source = glob_to_regex(pattern)
    try:
        return re.compile(source, re.DOTALL)
    except re.error as e:
        raise InvalidGlobPatternError(pattern=pattern, reason=str(e)) from e


def compile_patterns(patterns: Iterable[str]) -> list[tuple[str, re.Pattern[str]]]:
    """Compile every pattern, logging and skipping the invalid ones.

    Args:
        patterns (Iterable[str]): glob patterns

    Returns:
        list[tuple[str, re.Pattern[str]]]: (pattern, compiled regex) pairs in sorted pattern order
    """
    compiled: list[tuple[str, re.Pattern[str]]] = []
    for pattern in sorted(patterns):
        try:
            compiled.append((pattern, compile_glob(pattern)))
        except InvalidGlobPatternError as e:
            logger.warning("invalid_exclude_pattern", pattern=e.pattern, reason=e.reason)
    return compiled


def file_extension(file_name: str) -> str:
    """Return the lower-case, dot-prefixed last suffix of a file name ("" if none).

    A leading dot does not start an extension: ``.gitignore`` has none.
    """
    stem = file_name.lstrip(".")
    if "." not in stem:
        return ""
    return "." + stem.rsplit(".", 1)[1].lower()


class PathFilter:
    """Inclusion and exclusion decisions against one RuleSet.

    Precedence is fixed: directory pruning depends on exclusion alone, while a
    file matched by an always-include name or extension is exempt from per-file
    exclusion. Every other file must not be excluded and must carry one of the
    caller's include extensions.
    """

    def __init__(self, rules: RuleSet) -> None:
        self.rules = rules
        self._matchers = compile_patterns(rules.exclude_patterns)

    @property
    def patterns(self) -> list[str]:
        """Valid patterns, in evaluation order."""
        return [p for p, _ in self._matchers]

    def is_excluded(self, rel_path: str) -> bool:
        if not rel_path:
            return False
        return any(rx.fullmatch(rel_path) for _, rx in self._matchers)

    def is_always_included(self, file_name: str, extension: str) -> bool:
        return file_name in self.rules.always_include_names or extension in self.rules.always_include_extensions

    def is_included(self, rel_path: str, file_name: str, extension: str) -> bool:
        if self.is_always_included(file_name, extension):
            return True
        if self.is_excluded(rel_path):
            return False
        return extension in self.rules.include_extensions


@lru_cache(maxsize=32)
def _filter_for(rules: RuleSet) -> PathFilter:
    return PathFilter(rules)


def is_excluded(rel_path: str, rules: RuleSet) -> bool:
    """Check a root-relative path against the exclude patterns of ``rules``."""
    return _filter_for(rules).is_excluded(rel_path)


def is_included(rel_path: str, file_name: str, extension: str, rules: RuleSet) -> bool:
    """Check whether a file is a scan candidate under ``rules`` (binary sniff aside)."""
    return _filter_for(rules).is_included(rel_path, file_name, extension)
