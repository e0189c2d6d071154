"""Template instantiation command."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated

from cyclopts import Parameter

from cli.context import RunContext
from cli.exit_codes import ExitCode
from cli.groups import output_group
from cli.result import CliResult
from pytemplate.config import PytemplateConfig, load_config
from pytemplate.instantiate import InstantiateOptions, instantiate_many
from pytemplate.locator import locate_template

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutputOptions:
    """Output configuration parameters; unset values come from the config file."""

    output_dir: Annotated[
        Path | None,
        Parameter(
            name=["--output-dir", "-o"],
            help="Directory that receives the generated modules.",
            group=output_group,
        ),
    ] = None
    output_pattern: Annotated[
        str | None,
        Parameter(
            name="--output-pattern",
            help="Module name pattern; '{}' is replaced by the snake-cased target name.",
            group=output_group,
        ),
    ] = None
    split_tests: Annotated[
        bool | None,
        Parameter(
            name="--split-tests",
            negative="--no-split-tests",
            help="Write test-only declarations to a separate *_test.py module.",
            group=output_group,
        ),
    ] = None
    package: Annotated[
        str | None,
        Parameter(
            name="--package",
            help="Dotted package of the output directory, used by the test module import.",
            group=output_group,
        ),
    ] = None


_DEFAULT_OUTPUT_OPTIONS = OutputOptions()


def resolve_options(
    options: OutputOptions,
    config: PytemplateConfig,
    *,
    template_package: str | None,
) -> InstantiateOptions:
    """Merge command-line flags over configuration values.

    Returns
    -------
    InstantiateOptions
        Effective instantiation options.
    """
    output_dir = options.output_dir
    if output_dir is None:
        output_dir = Path(config.output_dir) if config.output_dir else Path()
    return InstantiateOptions(
        output_dir=output_dir,
        output_pattern=options.output_pattern or config.output_pattern,
        split_tests=config.split_tests if options.split_tests is None else options.split_tests,
        package=options.package or config.package,
        template_package=template_package,
    )


def instantiate_command(
    template: Annotated[
        str,
        Parameter(help="Template file, package directory, or dotted module name."),
    ],
    *requests: Annotated[
        str,
        Parameter(help="Instantiation requests such as 'mySet(str)'."),
    ],
    options: Annotated[OutputOptions, Parameter(name="*")] = _DEFAULT_OUTPUT_OPTIONS,
    run_context: Annotated[RunContext | None, Parameter(parse=False)] = None,
) -> CliResult:
    """Instantiate a template module once per request.

    Returns
    -------
    CliResult
        Written and unchanged output files.
    """
    if not requests:
        return CliResult.error(
            ExitCode.PARSE_ERROR,
            summary="At least one instantiation request such as 'mySet(str)' is required.",
        )
    config = run_context.config if run_context is not None else load_config()
    location = locate_template(template)
    effective = resolve_options(options, config, template_package=location.package)
    results = instantiate_many(location.path, requests, effective)
    logger.debug("Instantiated %d request(s) from %s", len(results), location.path)
    return CliResult.from_instantiations(results, source=location.path)


__all__ = ["OutputOptions", "instantiate_command", "resolve_options"]
