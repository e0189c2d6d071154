"""Tests for template location."""

from __future__ import annotations

from pathlib import Path

import pytest

from pytemplate.errors import LocateError
from pytemplate.locator import infer_package, locate_template


def _package(root: Path, dotted: str) -> Path:
    directory = root
    for part in dotted.split("."):
        directory /= part
        directory.mkdir(exist_ok=True)
        (directory / "__init__.py").touch()
    return directory


def test_locate_file_inside_package(tmp_path: Path) -> None:
    """Infer the package of a template file from ``__init__.py`` markers."""
    directory = _package(tmp_path, "app.templates")
    template = directory / "box.py"
    template.write_text("x = 1\n", encoding="utf-8")
    location = locate_template(str(template))
    assert location.path == template
    assert location.package == "app.templates"


def test_locate_file_outside_package(tmp_path: Path) -> None:
    """Loose files have no package."""
    template = tmp_path / "box.py"
    template.write_text("x = 1\n", encoding="utf-8")
    assert locate_template(template).package is None
    assert infer_package(template) is None


def test_locate_package_directory(tmp_path: Path) -> None:
    """A directory resolves to its single non-``__init__`` module."""
    directory = _package(tmp_path, "sets")
    (directory / "set_template.py").write_text("x = 1\n", encoding="utf-8")
    location = locate_template(directory)
    assert location.path == directory / "set_template.py"
    assert location.package == "sets"


def test_locate_directory_with_several_modules(tmp_path: Path) -> None:
    """More than one candidate module is ambiguous."""
    (tmp_path / "a.py").write_text("", encoding="utf-8")
    (tmp_path / "b.py").write_text("", encoding="utf-8")
    with pytest.raises(LocateError, match="Found more than one python file"):
        locate_template(tmp_path)


def test_locate_empty_directory(tmp_path: Path) -> None:
    """A directory without modules has nothing to instantiate."""
    (tmp_path / "__init__.py").touch()
    with pytest.raises(LocateError, match="No python files found"):
        locate_template(tmp_path)


def test_locate_dotted_module(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Resolve importable module and package names."""
    directory = _package(tmp_path, "locator_pkg.templates")
    template = directory / "box_template.py"
    template.write_text("x = 1\n", encoding="utf-8")
    monkeypatch.syspath_prepend(str(tmp_path))

    module = locate_template("locator_pkg.templates.box_template")
    assert module.path.resolve() == template.resolve()
    assert module.package == "locator_pkg.templates"

    package = locate_template("locator_pkg.templates")
    assert package.path.resolve() == template.resolve()
    assert package.package == "locator_pkg.templates"


def test_locate_missing_reference() -> None:
    """Unknown names are reported."""
    with pytest.raises(LocateError, match="not found"):
        locate_template("pytemplate_missing_template_module")
    with pytest.raises(LocateError, match="failed"):
        locate_template("pytemplate_missing_parent.module")
