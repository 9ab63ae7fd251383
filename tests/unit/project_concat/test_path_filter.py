from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from project_concat import path_filter
from project_concat.config import RuleSet
from project_concat.exceptions import InvalidGlobPatternError
from project_concat.path_filter import (
    PathFilter,
    compile_glob,
    escape_glob,
    file_extension,
    is_excluded,
    is_included,
)

if TYPE_CHECKING:
    from pytest_mock import MockerFixture


@pytest.mark.unit
@pytest.mark.parametrize(
    ("pattern", "path", "expected"),
    [
        ("node_modules/**", "node_modules", True),
        ("node_modules/**", "node_modules/pkg/index.js", True),
        ("node_modules/**", "src/node_modules", False),
        ("**/node_modules", "node_modules", True),
        ("**/node_modules", "web/app/node_modules", True),
        ("*.env", "secret.env", True),
        ("*.env", "config/secret.env", False),
        ("**/*.class", "Main.class", True),
        ("**/*.class", "a/b/Main.class", True),
        ("src/**/test", "src/test", True),
        ("src/**/test", "src/a/b/test", True),
        ("src/*", "src/a/b.py", False),
        ("temp?.txt", "temp1.txt", True),
        ("temp?.txt", "temp12.txt", False),
        ("*.{java,kt}", "App.kt", True),
        ("*.{java,kt}", "App.scala", False),
        ("[!a]*.md", "b.md", True),
        ("[!a]*.md", "a.md", False),
        ("**", "any/thing/at/all", True),
    ],
)
def test_compile_glob_semantics(pattern: str, path: str, *, expected: bool) -> None:
    assert bool(compile_glob(pattern).fullmatch(path)) is expected


@pytest.mark.unit
@pytest.mark.parametrize("pattern", ["[abc", "{a,b", "[z-a]"])
def test_compile_glob_rejects_malformed_patterns(pattern: str) -> None:
    with pytest.raises(InvalidGlobPatternError):
        compile_glob(pattern)


@pytest.mark.unit
def test_invalid_patterns_are_logged_and_skipped(mocker: MockerFixture) -> None:
    fake_logger = mocker.patch.object(path_filter, "logger")

    pf = PathFilter(RuleSet(exclude_patterns={"[abc", "*.log"}))

    assert pf.patterns == ["*.log"]
    assert pf.is_excluded("debug.log")
    fake_logger.warning.assert_called_once()


@pytest.mark.unit
def test_escape_glob_matches_literal_folder_names() -> None:
    pattern = escape_glob("out[1]{x}")

    assert compile_glob(pattern).fullmatch("out[1]{x}")
    assert not compile_glob(pattern).fullmatch("out1x")


@pytest.mark.unit
def test_always_include_files_bypass_per_file_exclusion() -> None:
    rules = RuleSet(
        exclude_patterns={"Dockerfile", "*.sh", "*.java"},
        include_extensions={".java"},
        always_include_names={"Dockerfile"},
        always_include_extensions={".sh"},
    )

    assert is_included("Dockerfile", "Dockerfile", "", rules)
    assert is_included("run.sh", "run.sh", ".sh", rules)
    assert not is_included("App.java", "App.java", ".java", rules)
    assert is_excluded("Dockerfile", rules)


@pytest.mark.unit
def test_is_included_requires_a_selected_extension() -> None:
    rules = RuleSet(include_extensions={".java"})

    assert is_included("src/App.java", "App.java", ".java", rules)
    assert not is_included("notes.txt", "notes.txt", ".txt", rules)


@pytest.mark.unit
def test_root_path_is_never_excluded() -> None:
    assert not PathFilter(RuleSet(exclude_patterns={"**"})).is_excluded("")


@pytest.mark.unit
@pytest.mark.parametrize(
    ("name", "expected"),
    [("App.java", ".java"), ("a.tar.GZ", ".gz"), (".gitignore", ""), ("Makefile", "")],
)
def test_file_extension(name: str, expected: str) -> None:
    assert file_extension(name) == expected
