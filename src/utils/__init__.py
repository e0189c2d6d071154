"""Shared utilities for pytemplate."""

from utils.file_io import (
    read_bytes_if_exists,
    read_text,
    read_toml,
    write_bytes,
)

__all__ = [
    "read_bytes_if_exists",
    "read_text",
    "read_toml",
    "write_bytes",
]
