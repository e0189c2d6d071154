"""File I/O utilities with consistent encoding handling."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path

from serde_msgspec import loads_toml


def read_text(path: Path, *, encoding: str = "utf-8") -> str:
    """Read text file with consistent encoding.

    Parameters
    ----------
    path
        Path to the file.
    encoding
        Text encoding.

    Returns
    -------
    str
        File contents.
    """
    return path.read_text(encoding=encoding)


def read_bytes_if_exists(path: Path) -> bytes | None:
    """Read a file's bytes, treating a missing file as absent.

    Returns
    -------
    bytes | None
        File contents, or None when the file does not exist.
    """
    try:
        return path.read_bytes()
    except FileNotFoundError:
        return None


def write_bytes(path: Path, data: bytes) -> None:
    """Write bytes to ``path``, creating parent directories as needed."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


def read_toml(path: Path) -> Mapping[str, object]:
    """Read and parse a TOML file.

    Parameters
    ----------
    path
        Path to the TOML file.

    Returns
    -------
    Mapping[str, object]
        Parsed TOML content.

    Raises
    ------
    TypeError
        Raised when the TOML content is not a mapping.
    """
    payload = loads_toml(path.read_text(encoding="utf-8"), target_type=object)
    if not isinstance(payload, dict):
        msg = f"Expected TOML mapping in {path}, got {type(payload).__name__}."
        raise TypeError(msg)
    return payload


__all__ = [
    "read_bytes_if_exists",
    "read_text",
    "read_toml",
    "write_bytes",
]
