"""Tests for output naming, normalization, and idempotent writes."""

from __future__ import annotations

from pathlib import Path

import libcst as cst
import pytest

from pytemplate.emitter import (
    GENERATED_HEADER,
    default_normalizer,
    emit_unit,
    output_paths,
    output_stem,
    render_unit,
    snake_case,
    with_header,
    write_if_changed,
)
from pytemplate.errors import EmitError


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("mySet", "my_set"),
        ("IntSet", "int_set"),
        ("HTTPServer", "http_server"),
        ("set", "set"),
        ("float32Box", "float32_box"),
    ],
)
def test_snake_case(name: str, expected: str) -> None:
    """Split camel case at case boundaries."""
    assert snake_case(name) == expected


def test_output_paths(tmp_path: Path) -> None:
    """Derive the primary and test file names from the target."""
    primary, test = output_paths("mySet", tmp_path)
    assert primary == tmp_path / "pytemplate_my_set.py"
    assert test == tmp_path / "pytemplate_my_set_test.py"
    assert output_stem("mySet", "gen_{}_impl") == "gen_my_set_impl"


def test_with_header() -> None:
    """Start the module with the generated-code marker and a blank line."""
    module = cst.parse_module("# original\nx = 1\n")
    assert with_header(module).code == f"{GENERATED_HEADER}\n\n# original\nx = 1\n"


def test_default_normalizer_removes_unused_imports() -> None:
    """Drop imports nothing refers to and keep the rest."""
    code = default_normalizer("import os\nimport sys\n\nx = sys.argv\n")
    assert "import os" not in code
    assert "import sys\n" in code


def test_default_normalizer_rejects_invalid_code() -> None:
    """Report output that does not parse."""
    with pytest.raises(EmitError, match="Cannot fix imports"):
        default_normalizer("def broken(:\n")


def test_render_unit_wraps_normalizer_failures() -> None:
    """Unexpected normalizer errors become emit errors."""

    def _fail(code: str) -> str:
        msg = f"cannot format {len(code)} characters"
        raise RuntimeError(msg)

    with pytest.raises(EmitError, match="Failed to format output: cannot format"):
        render_unit(cst.parse_module("x = 1\n"), _fail)


def test_render_unit_applies_normalizer() -> None:
    """Pass the headed source through the normalizer."""
    rendered = render_unit(cst.parse_module("x = 1\n"), str.upper)
    assert rendered == f"{GENERATED_HEADER}\n\nX = 1\n".upper().encode()


def test_write_if_changed_is_idempotent(tmp_path: Path) -> None:
    """Skip the write when the content is already on disk."""
    path = tmp_path / "nested" / "out.py"
    first = write_if_changed(path, b"x = 1\n")
    mtime = path.stat().st_mtime_ns
    second = write_if_changed(path, b"x = 1\n")
    assert first.written
    assert not second.written
    assert path.stat().st_mtime_ns == mtime
    assert write_if_changed(path, b"x = 2\n").written
    assert path.read_bytes() == b"x = 2\n"


def test_write_if_changed_reports_unreadable_target(tmp_path: Path) -> None:
    """A directory in the way of the output file is an emit error."""
    path = tmp_path / "out.py"
    path.mkdir()
    with pytest.raises(EmitError, match="Cannot open existing file"):
        write_if_changed(path, b"x = 1\n")


def test_emit_unit(tmp_path: Path) -> None:
    """Render, normalize, and write one unit."""
    path = tmp_path / "unit.py"
    result = emit_unit(cst.parse_module("import os\n\nx = 1\n"), path)
    assert result.written
    assert result.path == path
    text = path.read_text(encoding="utf-8")
    assert text.startswith(f"{GENERATED_HEADER}\n")
    assert "import os" not in text
    assert text.endswith("x = 1\n")
