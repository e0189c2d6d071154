"""Resolution of a template reference to a single source module."""

from __future__ import annotations

import importlib.util
import logging
from dataclasses import dataclass
from pathlib import Path

from pytemplate.errors import LocateError

logger = logging.getLogger(__name__)

INIT_MODULE = "__init__.py"


@dataclass(frozen=True)
class TemplateLocation:
    """Template source file and the dotted package that contains it."""

    path: Path
    package: str | None = None


def infer_package(path: Path) -> str | None:
    """Infer the dotted package of a module file from ``__init__.py`` markers.

    Returns
    -------
    str | None
        Dotted package name, or None when the file is not inside a package.
    """
    parts: list[str] = []
    directory = path.resolve().parent
    while (directory / INIT_MODULE).is_file():
        parts.append(directory.name)
        if directory.parent == directory:
            break
        directory = directory.parent
    if not parts:
        return None
    return ".".join(reversed(parts))


def _single_module(directory: Path, *, label: str) -> Path:
    modules = sorted(
        candidate
        for candidate in directory.glob("*.py")
        if candidate.name != INIT_MODULE and not candidate.name.startswith(".")
    )
    if not modules:
        msg = f"No python files found for package {label!r}"
        raise LocateError(msg)
    if len(modules) != 1:
        msg = (
            f"Found more than one python file in {label!r} - "
            "can only cope with 1 for the moment, sorry"
        )
        raise LocateError(msg)
    return modules[0]


def locate_template(reference: str | Path) -> TemplateLocation:
    """Resolve a file path, package directory, or dotted module name.

    Parameters
    ----------
    reference
        ``path/to/template.py``, a package directory, ``pkg.template`` or
        ``pkg`` (a package holding exactly one non-``__init__`` module).

    Returns
    -------
    TemplateLocation
        Template file and its package.

    Raises
    ------
    LocateError
        Raised when the reference cannot be resolved to exactly one module.
    """
    candidate = Path(reference)
    if candidate.is_file():
        location = TemplateLocation(path=candidate, package=infer_package(candidate))
    elif candidate.is_dir():
        module = _single_module(candidate, label=str(candidate))
        location = TemplateLocation(path=module, package=infer_package(module))
    else:
        location = _locate_dotted(str(reference))
    logger.debug(
        "Located template %s at %s (package %s)", reference, location.path, location.package
    )
    return location


def _locate_dotted(name: str) -> TemplateLocation:
    try:
        spec = importlib.util.find_spec(name)
    except (ImportError, ValueError) as exc:
        msg = f"Import {name} failed: {exc}"
        raise LocateError(msg) from exc
    if spec is None:
        msg = f"Template {name!r} not found"
        raise LocateError(msg)
    if spec.submodule_search_locations:
        directory = Path(next(iter(spec.submodule_search_locations)))
        return TemplateLocation(path=_single_module(directory, label=name), package=name)
    if spec.origin is None or not spec.origin.endswith(".py"):
        msg = f"Template {name!r} is not a Python source module"
        raise LocateError(msg)
    package = name.rpartition(".")[0] or None
    return TemplateLocation(path=Path(spec.origin), package=package)


__all__ = ["TemplateLocation", "infer_package", "locate_template"]
