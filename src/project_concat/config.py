from __future__ import annotations

import os
from enum import StrEnum, auto
from importlib import resources
from typing import TYPE_CHECKING, Protocol

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

METADATA_FILE_NAME = ".project-concat-metadata.json"
STRUCTURE_FILE_NAME = "PROJECT_STRUCTURE.json"
LOCK_FILE_NAME = ".project-concat.lock"
MB_TO_BYTES = 1024 * 1024

ENV_EXCLUDE_PATTERNS = "PROJECT_CONCAT_EXCLUDE_PATTERNS"
ENV_INCLUDE_EXTENSIONS = "PROJECT_CONCAT_INCLUDE_EXTENSIONS"
ENV_MAX_FILE_SIZE_MB = "PROJECT_CONCAT_MAX_FILE_SIZE_MB"

_DEFAULTS_RESOURCE = "defaults.yaml"


class FormatMode(StrEnum):
    """How each bundle entry is framed."""

    PLAIN = auto()
    TAGGED = auto()


def normalize_extension(ext: str) -> str:
    """Normalize an extension to its lower-case, dot-prefixed form.

    Args:
        ext (str): extension with or without the leading dot (e.g. "java", ".PY")

    Returns:
        str: the normalized extension (e.g. ".java", ".py"), or "" for blank input
    """
    e = (ext or "").strip().lower()
    if not e:
        return ""
    return e if e.startswith(".") else f".{e}"


def normalize_globs(globs: Iterable[str]) -> list[str]:
    """Strip whitespace, drop blanks and turn backslashes into forward slashes.

    Args:
        globs (Iterable[str]): the glob patterns to normalize

    Returns:
        list[str]: the normalized glob patterns
    """
    out: list[str] = []
    for g in globs:
        g2 = (g or "").strip()
        if not g2:
            continue
        out.append(g2.replace("\\", "/"))
    return out


def parse_comma_separated(value: str | None) -> list[str]:
    """Split a comma separated setting into trimmed, non-empty items."""
    if not value or not value.strip():
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


class RuleSet(BaseModel):
    """Immutable union of the include/exclude rules governing a scan.

    Attributes:
        exclude_patterns: Glob patterns matched against root-relative POSIX paths.
        include_extensions: Dot-prefixed extensions selected by the caller.
        always_include_names: File names kept whatever the caller's extensions.
        always_include_extensions: Config/script extensions kept whatever the caller's extensions.
    """

    model_config = ConfigDict(frozen=True)

    exclude_patterns: frozenset[str] = Field(default_factory=frozenset)
    include_extensions: frozenset[str] = Field(default_factory=frozenset)
    always_include_names: frozenset[str] = Field(default_factory=frozenset)
    always_include_extensions: frozenset[str] = Field(default_factory=frozenset)

    @field_validator("exclude_patterns", mode="before")
    @classmethod
    def _normalize_patterns(cls, value: Iterable[str]) -> frozenset[str]:
        return frozenset(normalize_globs(value))

    @field_validator("include_extensions", "always_include_extensions", mode="before")
    @classmethod
    def _normalize_extensions(cls, value: Iterable[str]) -> frozenset[str]:
        return frozenset(e for e in (normalize_extension(v) for v in value) if e)


class UserDefaults(BaseModel):
    """Stored user preferences used when a caller supplies no rules."""

    model_config = ConfigDict(frozen=True)

    exclude_patterns: tuple[str, ...] = ()
    include_extensions: tuple[str, ...] = ()
    max_file_size_mb: int = Field(default=30, gt=0)


class DefaultRules(BaseModel):
    """Packaged rule defaults, built once at startup and passed around explicitly."""

    model_config = ConfigDict(frozen=True)

    always_include_names: frozenset[str] = Field(default_factory=frozenset)
    always_include_extensions: frozenset[str] = Field(default_factory=frozenset)
    default_exclude_patterns: frozenset[str] = Field(default_factory=frozenset)
    user_defaults: UserDefaults = Field(default_factory=UserDefaults)


def load_default_rules(text: str | None = None) -> DefaultRules:
    """Load the rule defaults from the packaged ``defaults.yaml``.

    Args:
        text (str | None): YAML document to parse instead of the packaged resource.

    Returns:
        DefaultRules: the parsed defaults
    """
    if text is None:
        text = resources.files("project_concat").joinpath(_DEFAULTS_RESOURCE).read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}
    return DefaultRules.model_validate(data)


class RuleProvider(Protocol):
    """Source of the stored exclude patterns, include extensions and bundle size."""

    def exclude_patterns(self) -> set[str]: ...

    def include_extensions(self) -> set[str]: ...

    def max_file_size_mb(self) -> int: ...


class StaticRuleProvider:
    """RuleProvider returning fixed values."""

    def __init__(
        self,
        exclude_patterns: Iterable[str] = (),
        include_extensions: Iterable[str] = (),
        max_file_size_mb: int = 30,
    ) -> None:
        self._exclude = set(exclude_patterns)
        self._include = set(include_extensions)
        self._max_mb = max_file_size_mb

    def exclude_patterns(self) -> set[str]:
        return set(self._exclude)

    def include_extensions(self) -> set[str]:
        return set(self._include)

    def max_file_size_mb(self) -> int:
        return self._max_mb


class EnvRuleProvider:
    """RuleProvider reading comma separated environment variables.

    Unset variables fall back to the ``user_defaults`` section of the packaged
    defaults. Callers load a ``.env`` file (python-dotenv) before using it.
    """

    def __init__(self, defaults: DefaultRules, environ: Mapping[str, str] | None = None) -> None:
        self._defaults = defaults.user_defaults
        self._environ = os.environ if environ is None else environ

    def exclude_patterns(self) -> set[str]:
        raw = self._environ.get(ENV_EXCLUDE_PATTERNS)
        if raw is None:
            return set(self._defaults.exclude_patterns)
        return set(parse_comma_separated(raw))

    def include_extensions(self) -> set[str]:
        raw = self._environ.get(ENV_INCLUDE_EXTENSIONS)
        if raw is None:
            return set(self._defaults.include_extensions)
        return set(parse_comma_separated(raw))

    def max_file_size_mb(self) -> int:
        raw = (self._environ.get(ENV_MAX_FILE_SIZE_MB) or "").strip()
        if raw.isdigit() and int(raw) > 0:
            return int(raw)
        return self._defaults.max_file_size_mb


def build_rule_set(
    defaults: DefaultRules,
    provider: RuleProvider,
    *,
    exclude_patterns: Iterable[str] | None = None,
    include_extensions: Iterable[str] | None = None,
    extra_excludes: Iterable[str] = (),
) -> RuleSet:
    """Merge caller rules, stored rules and the fixed defaults into a RuleSet.

    Non-empty caller sets replace the provider's stored sets (no union). The
    packaged default exclusions, the metadata file and ``extra_excludes`` are
    always added on top and cannot be removed by the caller.

    Args:
        defaults (DefaultRules): packaged defaults
        provider (RuleProvider): source of the stored user rules
        exclude_patterns (Iterable[str] | None): caller exclude patterns
        include_extensions (Iterable[str] | None): caller include extensions
        extra_excludes (Iterable[str]): run-specific exclusions (e.g. the output folder)

    Returns:
        RuleSet: the effective rules for one run
    """
    requested_excludes = set(exclude_patterns or ())
    requested_includes = set(include_extensions or ())
    excludes = requested_excludes or provider.exclude_patterns()
    includes = requested_includes or provider.include_extensions()

    excludes |= set(defaults.default_exclude_patterns)
    excludes |= set(extra_excludes)
    excludes.add(METADATA_FILE_NAME)

    return RuleSet(
        exclude_patterns=excludes,
        include_extensions=includes,
        always_include_names=defaults.always_include_names,
        always_include_extensions=defaults.always_include_extensions,
    )


class FileRecord(BaseModel):
    """Per-file entry of a snapshot.

    Attributes:
        file_path: Root-relative POSIX path, the unique key.
        sha256_hash: SHA-256 hex digest of the file contents.
        last_modified: Modification time in epoch milliseconds (diagnostics only).
        file_size: Size in bytes (diagnostics only).
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    file_path: str
    sha256_hash: str
    last_modified: int = 0
    file_size: int = Field(default=0, ge=0)


class OutputSpec(BaseModel):
    """Formatting and size options for one run; never persisted."""

    model_config = ConfigDict(frozen=True)

    max_bundle_bytes: int = Field(default=30 * MB_TO_BYTES, gt=0)
    format_mode: FormatMode = FormatMode.PLAIN
    include_header: bool = True
    strip_comments: bool = False
    compact_whitespace: bool = False
    minify: bool = False
