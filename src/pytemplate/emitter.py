"""Header, normalization, naming, and idempotent writing of generated units."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import libcst as cst
from libcst.codemod import CodemodContext, SkipFile
from libcst.codemod.commands.remove_unused_imports import RemoveUnusedImportsCommand

from pytemplate.errors import EmitError
from utils.file_io import read_bytes_if_exists, write_bytes

logger = logging.getLogger(__name__)

GENERATED_HEADER = "# Code generated by pytemplate. DO NOT EDIT."
DEFAULT_OUTPUT_PATTERN = "pytemplate_{}"
TEST_SUFFIX = "_test"

Normalizer = Callable[[str], str]

_FIRST_CAP_RE = re.compile(r"(.)([A-Z][a-z]+)")
_ALL_CAP_RE = re.compile(r"([a-z0-9])([A-Z])")


@dataclass(frozen=True)
class EmitResult:
    """Outcome of emitting one unit."""

    path: Path
    written: bool


def snake_case(name: str) -> str:
    """Convert a camel-case identifier to snake case.

    Returns
    -------
    str
        Lower-case name with underscores at case boundaries.

    Examples
    --------
    >>> snake_case("mySet")
    'my_set'
    >>> snake_case("HTTPServer")
    'http_server'
    """
    snake = _FIRST_CAP_RE.sub(r"\1_\2", name)
    snake = _ALL_CAP_RE.sub(r"\1_\2", snake)
    return snake.lower()


def output_stem(target_name: str, pattern: str = DEFAULT_OUTPUT_PATTERN) -> str:
    """Return the module name of the primary unit for a target.

    Returns
    -------
    str
        Module stem without the ``.py`` suffix.
    """
    return pattern.format(snake_case(target_name))


def output_paths(
    target_name: str,
    output_dir: Path,
    pattern: str = DEFAULT_OUTPUT_PATTERN,
) -> tuple[Path, Path]:
    """Return the primary and test output paths for a target.

    Returns
    -------
    tuple[Path, Path]
        Primary unit path and test unit path.
    """
    stem = output_stem(target_name, pattern)
    return output_dir / f"{stem}.py", output_dir / f"{stem}{TEST_SUFFIX}.py"


def with_header(module: cst.Module) -> cst.Module:
    """Prepend the generated-code header to a module.

    Returns
    -------
    cst.Module
        Module whose header starts with the generated-code comment and a blank line.
    """
    header = [cst.EmptyLine(comment=cst.Comment(GENERATED_HEADER)), cst.EmptyLine()]
    return module.with_changes(header=[*header, *module.header])


def default_normalizer(code: str) -> str:
    """Re-parse generated code and drop imports it no longer uses.

    Returns
    -------
    str
        Normalized source.

    Raises
    ------
    EmitError
        Raised when the code does not parse or cannot be cleaned.
    """
    try:
        module = cst.parse_module(code)
        cleaned = RemoveUnusedImportsCommand(CodemodContext()).transform_module(module)
    except (cst.ParserSyntaxError, cst.CSTValidationError, SkipFile, ValueError) as exc:
        msg = f"Cannot fix imports: {exc}"
        raise EmitError(msg) from exc
    return cleaned.code


def render_unit(module: cst.Module, normalizer: Normalizer = default_normalizer) -> bytes:
    """Render a unit with its header and normalize it.

    Returns
    -------
    bytes
        UTF-8 encoded output.

    Raises
    ------
    EmitError
        Raised when normalization fails.
    """
    code = with_header(module).code
    try:
        normalized = normalizer(code)
    except EmitError:
        raise
    except Exception as exc:
        msg = f"Failed to format output: {exc}"
        raise EmitError(msg) from exc
    return normalized.encode("utf-8")


def write_if_changed(path: Path, content: bytes) -> EmitResult:
    """Write ``content`` only when it differs from the file on disk.

    Returns
    -------
    EmitResult
        Path and whether a write happened.

    Raises
    ------
    EmitError
        Raised when the existing file cannot be read or the write fails.
    """
    try:
        current = read_bytes_if_exists(path)
    except OSError as exc:
        msg = f"Cannot open existing file: {exc}"
        raise EmitError(msg) from exc
    if current == content:
        logger.debug("Unchanged %s", path)
        return EmitResult(path=path, written=False)
    try:
        write_bytes(path, content)
    except OSError as exc:
        msg = f"Unable to write to {str(path)!r}: {exc}"
        raise EmitError(msg) from exc
    logger.info("Written %s", path)
    return EmitResult(path=path, written=True)


def emit_unit(
    module: cst.Module,
    path: Path,
    normalizer: Normalizer = default_normalizer,
) -> EmitResult:
    """Render, normalize, and idempotently write one unit.

    Parameters
    ----------
    module
        Rewritten module without header.
    path
        Output file.
    normalizer
        Formatting collaborator applied to the rendered source.

    Returns
    -------
    EmitResult
        Path and whether a write happened.
    """
    return write_if_changed(path, render_unit(module, normalizer))


__all__ = [
    "DEFAULT_OUTPUT_PATTERN",
    "GENERATED_HEADER",
    "TEST_SUFFIX",
    "EmitResult",
    "Normalizer",
    "default_normalizer",
    "emit_unit",
    "output_paths",
    "output_stem",
    "render_unit",
    "snake_case",
    "with_header",
    "write_if_changed",
]
