"""Result action handler for Cyclopts integration."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.markup import escape

from cli.exit_codes import ExitCode
from cli.result import CliResult

if TYPE_CHECKING:
    from cyclopts import App


def cli_result_action(
    app: App,
    cmd: object,
    result: Any,
    *,
    console: Console | None = None,
    error_console: Console | None = None,
) -> int:
    """Handle command results and convert to exit codes.

    Parameters
    ----------
    app
        The Cyclopts application instance.
    cmd
        The resolved command that was executed.
    result
        The return value from the command function.
    console
        Console for regular output.
    error_console
        Console for error summaries.

    Returns
    -------
    int
        Exit code for the process.
    """
    _ = (app, cmd)
    console = console or Console()
    error_console = error_console or Console(stderr=True)

    if result is None:
        return ExitCode.SUCCESS

    if isinstance(result, int):
        return result

    if isinstance(result, CliResult):
        if not result.ok:
            if result.summary:
                error_console.print(
                    f"[bold red]Error:[/bold red] {escape(result.summary)}", markup=True
                )
            return int(result.exit_code)
        if result.summary:
            console.print(escape(result.summary))
        if result.written:
            console.print("Written:")
            for name, path in sorted(result.written.items()):
                console.print(f"  {name}: {path}")
        if result.unchanged:
            console.print("Unchanged:")
            for name, path in sorted(result.unchanged.items()):
                console.print(f"  {name}: {path}")
        return int(result.exit_code)

    console.print(f"Unexpected command return type: {type(result).__name__} (value: {result!r})")
    return ExitCode.GENERAL_ERROR


__all__ = ["cli_result_action"]
