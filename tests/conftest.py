"""Shared fixtures for pytemplate tests."""

from __future__ import annotations

import shutil
from collections.abc import Callable
from pathlib import Path

import pytest

from pytemplate.loader import LoadedModule, load_source

FIXTURES_DIR = Path(__file__).parent / "fixtures"
TEMPLATES_DIR = FIXTURES_DIR / "templates"


@pytest.fixture
def templates_dir() -> Path:
    """Return the directory holding the template fixtures.

    Returns
    -------
    Path
        Fixture template directory.
    """
    return TEMPLATES_DIR


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    """Return an empty directory for generated modules.

    Returns
    -------
    Path
        Output directory under the test's temporary path.
    """
    path = tmp_path / "out"
    path.mkdir()
    return path


@pytest.fixture
def copy_template(tmp_path: Path) -> Callable[[str], Path]:
    """Copy a fixture template into the temporary directory.

    Returns
    -------
    Callable[[str], Path]
        Function mapping a fixture file name to its copy.
    """

    def _copy(name: str) -> Path:
        target = tmp_path / name
        shutil.copyfile(TEMPLATES_DIR / name, target)
        return target

    return _copy


@pytest.fixture
def load() -> Callable[..., LoadedModule]:
    """Load template source text with an in-memory path.

    Returns
    -------
    Callable[..., LoadedModule]
        Loader taking source text and an optional package.
    """

    def _load(source: str, *, package: str | None = None) -> LoadedModule:
        return load_source(source, path=Path("template.py"), package=package)

    return _load
