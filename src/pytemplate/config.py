"""Configuration discovery for pytemplate."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Literal

import msgspec

from pytemplate.emitter import DEFAULT_OUTPUT_PATTERN
from pytemplate.errors import ConfigError
from serde_msgspec import StructBaseStrict, convert, describe_validation_error
from utils.file_io import read_toml

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "pytemplate.toml"
PYPROJECT_FILENAME = "pyproject.toml"

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]


class PytemplateConfig(StructBaseStrict, frozen=True):
    """Settings read from ``pytemplate.toml`` or ``[tool.pytemplate]``."""

    output_pattern: str = DEFAULT_OUTPUT_PATTERN
    split_tests: bool = True
    output_dir: str | None = None
    package: str | None = None
    log_level: LogLevel = "INFO"


def find_in_parents(filename: str, start: Path | None = None) -> Path | None:
    """Walk parents from ``start`` (default: cwd) to find a filename.

    Returns
    -------
    Path | None
        Path to the first matching file in the directory or its parents.
    """
    path = (start or Path.cwd()).resolve()
    while True:
        candidate = path / filename
        if candidate.is_file():
            return candidate
        if path.parent == path:
            return None
        path = path.parent


def decode_config(raw: Mapping[str, object], *, location: str) -> PytemplateConfig:
    """Validate raw settings into a config struct.

    Returns
    -------
    PytemplateConfig
        Validated configuration.

    Raises
    ------
    ConfigError
        Raised when the settings fail validation.
    """
    try:
        config = convert(dict(raw), target_type=PytemplateConfig, strict=True)
    except msgspec.ValidationError as exc:
        msg = f"Config validation failed for {location}: {describe_validation_error(exc)}"
        raise ConfigError(msg) from exc
    if "{}" not in config.output_pattern:
        msg = f"Config validation failed for {location}: output_pattern must contain '{{}}'"
        raise ConfigError(msg)
    return config


def _read(path: Path) -> Mapping[str, object]:
    try:
        return read_toml(path)
    except (OSError, TypeError, msgspec.DecodeError) as exc:
        msg = f"Cannot read config {path}: {exc}"
        raise ConfigError(msg) from exc


def _tool_section(payload: Mapping[str, object]) -> Mapping[str, object] | None:
    tool = payload.get("tool")
    if not isinstance(tool, Mapping):
        return None
    section = tool.get("pytemplate")
    return section if isinstance(section, Mapping) else None


def load_config(config_file: Path | None = None, *, start: Path | None = None) -> PytemplateConfig:
    """Load configuration from an explicit file or by searching parent directories.

    ``pytemplate.toml`` takes precedence over ``[tool.pytemplate]`` in the
    nearest ``pyproject.toml``.

    Parameters
    ----------
    config_file
        Explicit config file; a ``pyproject.toml`` is read from its tool table.
    start
        Directory where the search begins.

    Returns
    -------
    PytemplateConfig
        Loaded configuration, or defaults when nothing is found.

    Raises
    ------
    ConfigError
        Raised when an explicit file is missing or any file is invalid.
    """
    if config_file is not None:
        if not config_file.is_file():
            msg = f"Config file not found: {str(config_file)!r}"
            raise ConfigError(msg)
        payload = _read(config_file)
        if config_file.name == PYPROJECT_FILENAME:
            payload = _tool_section(payload) or {}
        return decode_config(payload, location=str(config_file))

    path = find_in_parents(CONFIG_FILENAME, start)
    if path is not None:
        logger.debug("Using config %s", path)
        return decode_config(_read(path), location=str(path))

    pyproject = find_in_parents(PYPROJECT_FILENAME, start)
    if pyproject is not None:
        section = _tool_section(_read(pyproject))
        if section is not None:
            logger.debug("Using config %s:tool.pytemplate", pyproject)
            return decode_config(section, location=f"{pyproject}:tool.pytemplate")
    return PytemplateConfig()


__all__ = [
    "CONFIG_FILENAME",
    "LogLevel",
    "PytemplateConfig",
    "decode_config",
    "find_in_parents",
    "load_config",
]
