"""Structured command results for the pytemplate CLI."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from cli.exit_codes import ExitCode

if TYPE_CHECKING:
    from pytemplate.instantiate import InstantiationResult


@dataclass(frozen=True)
class CliResult:
    """Outcome of one CLI invocation.

    Parameters
    ----------
    exit_code
        Process exit code.
    summary
        One-line description printed to stdout, or to stderr for failures.
    written
        Output files that changed on disk, keyed by unit label.
    unchanged
        Output files that already held the rendered content.
    """

    exit_code: int
    summary: str | None = None
    written: Mapping[str, Path] = field(default_factory=dict)
    unchanged: Mapping[str, Path] = field(default_factory=dict)

    @classmethod
    def from_instantiations(
        cls,
        results: Sequence[InstantiationResult],
        *,
        source: Path,
    ) -> CliResult:
        """Summarise the emitted units of several requests.

        Returns
        -------
        CliResult
            Success result listing written and unchanged files.
        """
        written: dict[str, Path] = {}
        unchanged: dict[str, Path] = {}
        for result in results:
            target = result.request.target_name
            units = [(target, result.primary)]
            if result.tests is not None:
                units.append((f"{target} (tests)", result.tests))
            for label, emitted in units:
                (written if emitted.written else unchanged)[label] = emitted.path
        return cls(
            exit_code=ExitCode.SUCCESS,
            summary=(
                f"Instantiated {len(results)} request(s) from {source}: "
                f"{len(written)} written, {len(unchanged)} unchanged"
            ),
            written=written,
            unchanged=unchanged,
        )

    @classmethod
    def error(cls, exit_code: ExitCode | int, *, summary: str | None = None) -> CliResult:
        """Create a failed result.

        Returns
        -------
        CliResult
            Result carrying the exit code and message.
        """
        return cls(exit_code=int(exit_code), summary=summary)

    @classmethod
    def from_exception(cls, exc: BaseException) -> CliResult:
        """Create a failed result from a raised error.

        Returns
        -------
        CliResult
            Result whose exit code follows the error type.
        """
        return cls.error(ExitCode.from_exception(exc), summary=str(exc))

    @property
    def ok(self) -> bool:
        """Return whether the invocation succeeded.

        Returns
        -------
        bool
            True when the exit code is zero.
        """
        return self.exit_code == ExitCode.SUCCESS


__all__ = ["CliResult"]
