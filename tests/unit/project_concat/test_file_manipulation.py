from __future__ import annotations

import hashlib
from pathlib import Path

import pytest

from project_concat.config import OutputSpec
from project_concat.file_manipulation import (
    build_tree_lines,
    compact_whitespace,
    is_text_file,
    minify_text,
    prepare_content,
    read_source_text,
    relpath,
    sha256_file,
    strip_comments,
)


@pytest.mark.unit
def test_strip_comments_keeps_string_literals() -> None:
    source = 'String url = "http://x"; // trailing\n/* block */int a;'

    assert strip_comments(source) == 'String url = "http://x"; \nint a;'


@pytest.mark.unit
def test_strip_comments_handles_escaped_quotes() -> None:
    source = r'x = "a\"//b"; // gone'

    assert strip_comments(source) == r'x = "a\"//b"; '


@pytest.mark.unit
def test_strip_comments_keeps_single_quoted_markers() -> None:
    assert strip_comments("c = '/*'; /* x */ d") == "c = '/*';  d"


@pytest.mark.unit
def test_strip_comments_removes_multiline_block() -> None:
    source = "a();\n/**\n * doc\n */\nb();\n"

    assert strip_comments(source) == "a();\n\nb();\n"


@pytest.mark.unit
def test_strip_comments_keeps_unterminated_block_opener() -> None:
    dockerfile = "FROM eclipse-temurin\nCOPY target/*.jar /app/app.jar\nEXPOSE 8080\nCMD [\"java\"]\n"

    assert strip_comments(dockerfile) == dockerfile


@pytest.mark.unit
def test_strip_comments_after_unterminated_block_opener() -> None:
    script = "rm -rf build/* // clean\ncp dist/* out/\n"

    assert strip_comments(script) == "rm -rf build/* \ncp dist/* out/\n"


@pytest.mark.unit
def test_strip_comments_keeps_crlf_after_line_comment() -> None:
    assert strip_comments("a; // note\r\nb;\r\n") == "a; \r\nb;\r\n"


@pytest.mark.unit
def test_compact_whitespace_collapses_blank_runs() -> None:
    assert compact_whitespace("a\n   \n\n\n\nb") == "a\n\nb"
    assert compact_whitespace("a\n\nb") == "a\n\nb"


@pytest.mark.unit
def test_minify_text_drops_blank_lines() -> None:
    assert minify_text("  a\n\n  \nb\n") == "a\nb"


@pytest.mark.unit
def test_prepare_content_minify_strips_comments_too() -> None:
    spec = OutputSpec(minify=True, compact_whitespace=True)

    assert prepare_content("int a; // c\n\n\nint b;\n", spec) == "int a; \nint b;"


@pytest.mark.unit
def test_prepare_content_without_options_is_identity() -> None:
    text = "x // y\n\n\n\nz"

    assert prepare_content(text, OutputSpec()) == text


@pytest.mark.unit
def test_is_text_file_sniffs_nul_bytes(tmp_path: Path) -> None:
    empty = tmp_path / "empty.txt"
    text = tmp_path / "text.txt"
    binary = tmp_path / "blob.bin"
    late_nul = tmp_path / "late.txt"
    empty.write_bytes(b"")
    text.write_text("hello", encoding="utf-8")
    binary.write_bytes(b"abc\x00def")
    late_nul.write_bytes(b"a" * 2048 + b"\x00")

    assert is_text_file(empty)
    assert is_text_file(text)
    assert not is_text_file(binary)
    assert is_text_file(late_nul)
    assert not is_text_file(tmp_path / "missing.txt")


@pytest.mark.unit
def test_sha256_file_matches_hashlib(tmp_path: Path) -> None:
    data = b"content" * 1000
    target = tmp_path / "f.bin"
    target.write_bytes(data)

    assert sha256_file(target) == hashlib.sha256(data).hexdigest()


@pytest.mark.unit
def test_relpath_uses_posix_separators(tmp_path: Path) -> None:
    assert relpath(tmp_path / "a" / "b.py", tmp_path) == "a/b.py"
    assert relpath(Path("/elsewhere/x"), tmp_path) == str(Path("/elsewhere/x"))


@pytest.mark.unit
def test_build_tree_lines_lists_directories_first() -> None:
    lines = build_tree_lines("proj", ["README.md", "src/a.py"])

    assert lines == ["proj", "├── src/", "│   └── a.py", "└── README.md"]


@pytest.mark.unit
def test_read_source_text_keeps_line_endings_and_marks_bad_bytes(tmp_path: Path) -> None:
    target = tmp_path / "win.txt"
    target.write_bytes(b"a\r\nb\xff\r\n")

    assert read_source_text(target) == "a\r\nb\ufffd\r\n"
