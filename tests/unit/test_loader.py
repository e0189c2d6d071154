"""Tests for template loading and symbol resolution."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import libcst as cst
import pytest

from pytemplate.errors import LoadError
from pytemplate.loader import LoadedModule, export_entries, is_dunder, load_module

Loader = Callable[..., LoadedModule]

_SHADOWED = """\
# template type Box(V)
V = int
value = 1


def get(value: V) -> V:
    return value


class Box:
    item: V
"""


def test_same_named_local_is_a_different_symbol(load: Loader) -> None:
    """Resolve a parameter to its function scope, not the module-level name."""
    loaded = load(_SHADOWED)
    function = loaded.module.body[2]
    assert isinstance(function, cst.FunctionDef)
    param = function.params.params[0].name
    symbol = loaded.symbols.resolve(param)
    assert symbol is not None
    assert symbol.scope_kind == "function"
    assert symbol is not loaded.symbols.top_level["value"]
    assert loaded.symbols.top_level["value"].uses == []


def test_module_level_uses_are_collected(load: Loader) -> None:
    """Collect annotation uses of a module-level name from every scope."""
    loaded = load(_SHADOWED)
    placeholder = loaded.symbols.top_level["V"]
    assert placeholder.is_top_level
    assert len(placeholder.definitions) == 1
    assert len(placeholder.uses) == 3
    assert all(loaded.symbols.resolve(use) is placeholder for use in placeholder.uses)


def test_top_level_order_follows_definitions(load: Loader) -> None:
    """Iterate module-level symbols in source order."""
    loaded = load(_SHADOWED)
    assert [symbol.name for symbol in loaded.symbols.iter_top_level()] == [
        "V",
        "value",
        "get",
        "Box",
    ]


def test_forward_string_annotation_is_an_alias(load: Loader) -> None:
    """Link a quoted annotation to a class defined further down."""
    loaded = load(
        "# template type Box(V)\n"
        "V = int\n"
        "\n"
        "def make() -> 'Box':\n"
        "    return Box()\n"
        "\n"
        "class Box:\n"
        "    pass\n"
    )
    box = loaded.symbols.top_level["Box"]
    assert [alias.value for alias in box.aliases] == ["'Box'"]
    assert len(box.uses) == 1


def test_exports_are_aliases(load: Loader) -> None:
    """Record ``__all__`` entries as aliases of the names they list."""
    loaded = load("def helper():\n    pass\n\n__all__ = ['helper', 'missing']\n")
    entries = export_entries(loaded.module)
    assert [entry.value for entry in entries] == ["'helper'", "'missing'"]
    assert loaded.symbols.top_level["helper"].aliases == [entries[0]]
    assert loaded.symbols.resolve(entries[1]) is None


def test_import_origin(load: Loader) -> None:
    """Keep the module an import binds its name from."""
    loaded = load("import os.path as osp\nfrom collections import abc\n")
    assert loaded.symbols.top_level["osp"].import_origin == "os.path"
    assert loaded.symbols.top_level["abc"].import_origin == "collections"
    assert loaded.symbols.top_level["abc"].is_import


def test_undefined_name_is_rejected(load: Loader) -> None:
    """Fail on a name that resolves nowhere."""
    with pytest.raises(LoadError, match=r"template\.py:2: undefined: missing"):
        load("# header\nx = missing + 1\n")


def test_star_import_disables_undefined_check(load: Loader) -> None:
    """Names may come from a star import."""
    loaded = load("from os.path import *\nx = join('a', 'b')\n")
    assert "x" in loaded.symbols.top_level


def test_builtins_and_dunders_resolve(load: Loader) -> None:
    """Builtins and module dunders are not undefined."""
    loaded = load("x = len(__name__)\ny: list[int] = [None is None]\n")
    assert set(loaded.symbols.top_level) == {"x", "y"}
    assert {"len", "list", "int"} <= loaded.symbols.builtin_names


def test_shadowing_names_follow_use_sites(load: Loader) -> None:
    """Record local names visible where a module-level symbol is used."""
    loaded = load(
        "class Box:\n"
        "    pass\n"
        "def make(box: int) -> object:\n"
        "    return Box()\n"
        "class Holder:\n"
        "    inner = 1\n"
        "    def get(self):\n"
        "        return [Box() for each in range(1)][0]\n"
    )
    assert loaded.symbols.top_level["Box"].shadowing_names == {"box", "self", "each"}
    assert loaded.symbols.top_level["make"].shadowing_names == set()


def test_syntax_error_is_a_load_error(load: Loader) -> None:
    """Report unparsable template source."""
    with pytest.raises(LoadError, match="Failed to parse file"):
        load("def broken(:\n")


def test_load_module_missing_file(tmp_path: Path) -> None:
    """Report a template file that cannot be read."""
    with pytest.raises(LoadError, match="Failed to read template"):
        load_module(tmp_path / "absent.py")


def test_load_module_keeps_package(tmp_path: Path) -> None:
    """Carry the template package through loading."""
    path = tmp_path / "box.py"
    path.write_text("x = 1\n", encoding="utf-8")
    loaded = load_module(path, package="templates")
    assert loaded.package == "templates"
    assert loaded.path == path


@pytest.mark.parametrize(
    ("name", "expected"),
    [("__init__", True), ("__all__", True), ("_private", False), ("____", False)],
)
def test_is_dunder(name: str, expected: bool) -> None:
    """Detect double-underscore names."""
    assert is_dunder(name) is expected
