"""End-to-end instantiation of a template module."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from pytemplate.binder import bind_parameters
from pytemplate.declarations import classify
from pytemplate.directive import InstantiationRequest, parse_request, scan_directive
from pytemplate.emitter import (
    DEFAULT_OUTPUT_PATTERN,
    EmitResult,
    Normalizer,
    default_normalizer,
    output_paths,
    output_stem,
    render_unit,
    write_if_changed,
)
from pytemplate.format_injector import inject_formats
from pytemplate.loader import load_module
from pytemplate.rewriter import build_primary_unit, build_test_unit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InstantiateOptions:
    """Output settings for one instantiation run.

    Parameters
    ----------
    output_dir
        Directory that receives the generated modules.
    output_pattern
        ``str.format`` pattern for the module stem; ``{}`` is the snake-cased
        target name.
    split_tests
        Whether test-only declarations go to a separate ``*_test.py`` unit.
    package
        Dotted package of the output directory, used by the test unit to
        import the primary unit.
    template_package
        Dotted package of the template, used to resolve relative imports.
    normalizer
        Formatting collaborator applied to each rendered unit.
    """

    output_dir: Path = Path()
    output_pattern: str = DEFAULT_OUTPUT_PATTERN
    split_tests: bool = True
    package: str | None = None
    template_package: str | None = None
    normalizer: Normalizer = default_normalizer


@dataclass(frozen=True)
class InstantiationResult:
    """Emitted units of one request."""

    request: InstantiationRequest
    primary: EmitResult
    tests: EmitResult | None = None

    @property
    def written(self) -> bool:
        """Return whether any unit was written.

        Returns
        -------
        bool
            True when at least one file changed on disk.
        """
        return self.primary.written or (self.tests is not None and self.tests.written)


def instantiate(
    template_path: Path,
    request: InstantiationRequest | str,
    options: InstantiateOptions | None = None,
) -> InstantiationResult:
    """Instantiate a template module for one request.

    Both units are rendered before anything is written, so a failing request
    leaves the output directory untouched.

    Parameters
    ----------
    template_path
        Template source file.
    request
        Parsed request or call text such as ``"mySet(str)"``.
    options
        Output settings.

    Returns
    -------
    InstantiationResult
        Emit results for the primary and optional test unit.
    """
    options = options or InstantiateOptions()
    if isinstance(request, str):
        request = parse_request(request)
    logger.debug(
        "Substituting %s with %s(%s)",
        template_path,
        request.target_name,
        ", ".join(request.actual_args),
    )
    loaded = load_module(template_path, package=options.template_package)
    directive = scan_directive(loaded.module, source=str(template_path))
    bindings = bind_parameters(directive, request)
    plan = classify(loaded, directive, request, bindings)

    split = options.split_tests and plan.has_test_declarations
    primary_path, test_path = output_paths(
        request.target_name, options.output_dir, options.output_pattern
    )
    primary = inject_formats(build_primary_unit(loaded, plan, exclude_tests=split))
    rendered = [(primary_path, render_unit(primary, options.normalizer))]
    if split:
        stem = output_stem(request.target_name, options.output_pattern)
        import_from = f"{options.package}.{stem}" if options.package else stem
        tests = build_test_unit(loaded, plan, import_from=import_from)
        rendered.append((test_path, render_unit(tests, options.normalizer)))

    results = [write_if_changed(path, content) for path, content in rendered]
    return InstantiationResult(
        request=request,
        primary=results[0],
        tests=results[1] if len(results) > 1 else None,
    )


def instantiate_many(
    template_path: Path,
    requests: Iterable[InstantiationRequest | str],
    options: InstantiateOptions | None = None,
) -> list[InstantiationResult]:
    """Instantiate several requests against one template, one after the other.

    Returns
    -------
    list[InstantiationResult]
        Results in request order.
    """
    return [instantiate(template_path, request, options) for request in requests]


__all__ = [
    "InstantiateOptions",
    "InstantiationResult",
    "instantiate",
    "instantiate_many",
]
