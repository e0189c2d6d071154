"""Run context for CLI command injection."""

from __future__ import annotations

from dataclasses import dataclass, field

from pytemplate.config import PytemplateConfig


@dataclass(frozen=True)
class RunContext:
    """Injected run context for CLI commands.

    Parameters
    ----------
    config
        Configuration loaded for the invocation.
    """

    config: PytemplateConfig = field(default_factory=PytemplateConfig)


__all__ = ["RunContext"]
