"""Shared help-panel groups for the pytemplate CLI."""

from __future__ import annotations

from cyclopts import Group

session_group = Group(
    "Session",
    help="Logging and configuration options.",
    sort_key=0,
)

output_group = Group(
    "Output",
    help="Where and how generated modules are written.",
    sort_key=1,
)

__all__ = ["output_group", "session_group"]
