"""Main application setup for the pytemplate CLI."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Literal

from cyclopts import App, Parameter
from cyclopts.exceptions import CycloptsError

from cli.commands.instantiate import instantiate_command
from cli.commands.version import get_version, version_command
from cli.context import RunContext
from cli.exit_codes import ExitCode
from cli.groups import session_group
from cli.result import CliResult
from cli.result_action import cli_result_action
from pytemplate.config import load_config
from pytemplate.errors import TemplateError

_HELP_EPILOGUE = """
Examples:
  pytemplate set_template.py 'mySet(str)'             Write pytemplate_my_set.py
  pytemplate pkg.templates 'IntList(int)' -o out     Dotted template, custom directory
  pytemplate list.py 'strList(str)' --no-split-tests  Keep test declarations inline

Configuration:
  [tool.pytemplate] in pyproject.toml, or pytemplate.toml, searched from the
  current directory upwards. Command-line flags take precedence.
"""

app = App(
    name="pytemplate",
    help="Instantiate generic Python template modules.",
    help_format="rich",
    help_epilogue=_HELP_EPILOGUE,
    version=get_version(),
    version_flags=["--version", "-V"],
    default_parameter=Parameter(show_default=True),
    result_action=cli_result_action,
    exit_on_error=True,
    print_error=True,
    help_on_error=False,
)

app.meta.group_parameters = session_group


@dataclass(frozen=True)
class SessionOptions:
    """Session-level configuration parameters."""

    config_file: Annotated[
        str | None,
        Parameter(
            name="--config",
            help="Path to a configuration file (overrides the default search).",
            group=session_group,
        ),
    ] = None
    log_level: Annotated[
        Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None,
        Parameter(
            name="--log-level",
            help="Logging verbosity level (default: config value, then INFO).",
            env_var="PYTEMPLATE_LOG_LEVEL",
            group=session_group,
        ),
    ] = None


_DEFAULT_SESSION_OPTIONS = SessionOptions()


@app.meta.default
def meta_launcher(
    *tokens: Annotated[str, Parameter(show=False, allow_leading_hyphen=True)],
    session: Annotated[SessionOptions, Parameter(name="*")] = _DEFAULT_SESSION_OPTIONS,
) -> int:
    """Meta launcher for config selection and context injection.

    Returns
    -------
    int
        Exit status code from command execution.
    """
    config_file = Path(session.config_file) if session.config_file is not None else None
    try:
        config = load_config(config_file)
    except TemplateError as exc:
        return cli_result_action(app, None, CliResult.from_exception(exc))

    log_level = session.log_level or config.log_level
    logging.basicConfig(level=log_level)
    run_context = RunContext(config=config)
    return invoke(list(tokens), run_context=run_context)


def invoke(tokens: list[str], *, run_context: RunContext | None) -> int:
    """Parse tokens, inject the run context, and execute the command.

    Returns
    -------
    int
        Exit status code.
    """
    try:
        command, bound, ignored = app.parse_args(tokens, exit_on_error=False, print_error=True)
    except CycloptsError as exc:
        return ExitCode.from_exception(exc)

    if run_context is not None and ignored:
        for name, hint in ignored.items():
            if hint is RunContext or name == "run_context":
                bound.arguments[name] = run_context

    try:
        result = command(*bound.args, **bound.kwargs)
    except TemplateError as exc:
        result = CliResult.from_exception(exc)
    return cli_result_action(app, command, result)


app.default(instantiate_command)
app.command(version_command, name="version")


def main() -> None:
    """Run the pytemplate CLI."""
    sys.exit(app.meta())


__all__ = ["app", "invoke", "main", "meta_launcher"]
