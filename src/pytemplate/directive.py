"""Template and format directive scanning, plus request parsing."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass

import libcst as cst

from pytemplate.errors import DirectiveError

logger = logging.getLogger(__name__)

TEMPLATE_TYPE_RE = re.compile(r"^#\s*template\s+type\s+(\w+\s*.*?)\s*$")
TEMPLATE_FORMAT_RE = re.compile(r"^#\s*template\s+format\s*$")

_RENDER_MODULE = cst.Module(body=[])


@dataclass(frozen=True)
class Directive:
    """Template header declared by ``# template type Name(A, B)``."""

    name: str
    formal_params: tuple[str, ...]


@dataclass(frozen=True)
class InstantiationRequest:
    """Concrete instantiation such as ``mySet(str)``."""

    target_name: str
    actual_args: tuple[str, ...]

    @property
    def is_exported(self) -> bool:
        """Return whether the target name is exported-looking.

        Returns
        -------
        bool
            True when the first character of the target name is upper-case.
        """
        return is_exported(self.target_name)


def is_exported(name: str) -> bool:
    """Return whether ``name`` starts with an upper-case character.

    Returns
    -------
    bool
        True for exported-looking identifiers.
    """
    return name[:1].isupper()


def render_expression(node: cst.BaseExpression) -> str:
    """Render an expression node back to source text.

    Returns
    -------
    str
        Source text for the expression without surrounding whitespace.
    """
    return _RENDER_MODULE.code_for_node(node).strip()


def parse_template_call(text: str) -> tuple[str, tuple[str, ...], tuple[cst.BaseExpression, ...]]:
    """Parse ``Name(arg, ...)`` call syntax.

    Parameters
    ----------
    text
        Call expression source.

    Returns
    -------
    tuple[str, tuple[str, ...], tuple[cst.BaseExpression, ...]]
        Callee name, rendered arguments, and the parsed argument nodes.

    Raises
    ------
    DirectiveError
        Raised when the text is not a plain positional call of an identifier.
    """
    try:
        expr = cst.parse_expression(text)
    except cst.ParserSyntaxError as exc:
        msg = f"Failed to parse {text!r}: {exc}"
        raise DirectiveError(msg) from exc
    if not isinstance(expr, cst.Call) or not isinstance(expr.func, cst.Name):
        msg = f"Failed to parse {text!r}: expecting Identifier(...)"
        raise DirectiveError(msg)
    values: list[cst.BaseExpression] = []
    for arg in expr.args:
        if arg.keyword is not None or arg.star:
            msg = f"Failed to parse {text!r}: only positional arguments are allowed"
            raise DirectiveError(msg)
        values.append(arg.value)
    rendered = tuple(render_expression(value) for value in values)
    logger.debug("Parsed %r as %s%r", text, expr.func.value, rendered)
    return expr.func.value, rendered, tuple(values)


def parse_request(text: str) -> InstantiationRequest:
    """Parse an instantiation request such as ``mySet(str)``.

    Returns
    -------
    InstantiationRequest
        Parsed request.
    """
    name, args, _ = parse_template_call(text)
    return InstantiationRequest(target_name=name, actual_args=args)


class _CommentCollector(cst.CSTVisitor):
    def __init__(self) -> None:
        self.comments: list[str] = []

    def visit_Comment(self, node: cst.Comment) -> None:
        self.comments.append(node.value)


def scan_directive(module: cst.Module, *, source: str = "<template>") -> Directive:
    """Find the single ``# template type`` directive in a module.

    Parameters
    ----------
    module
        Parsed template module.
    source
        Template location used in error messages.

    Returns
    -------
    Directive
        Directive name and formal parameter names.

    Raises
    ------
    DirectiveError
        Raised when no directive, several directives, or non-identifier
        formal parameters are found.
    """
    collector = _CommentCollector()
    module.visit(collector)
    found: Directive | None = None
    for comment in collector.comments:
        match = TEMPLATE_TYPE_RE.match(comment)
        if match is None:
            continue
        if found is not None:
            msg = f"Found multiple template definitions in {source}"
            raise DirectiveError(msg)
        name, _, values = parse_template_call(match.group(1))
        formals: list[str] = []
        for value in values:
            if not isinstance(value, cst.Name):
                msg = (
                    f"Template parameters in {source} must be identifiers, "
                    f"got {render_expression(value)!r}"
                )
                raise DirectiveError(msg)
            formals.append(value.value)
        found = Directive(name=name, formal_params=tuple(formals))
    if found is None:
        msg = f"Didn't find template definition in {source}"
        raise DirectiveError(msg)
    logger.debug("templateName = %s, templateArgs = %s", found.name, found.formal_params)
    return found


def has_format_directive(leading_lines: Sequence[cst.EmptyLine]) -> bool:
    """Return whether the comment block directly above a statement is a format directive.

    Only the contiguous comment lines after the last blank line count.

    Returns
    -------
    bool
        True when one of those comments is ``# template format``.
    """
    for line in reversed(leading_lines):
        if line.comment is None:
            return False
        if TEMPLATE_FORMAT_RE.match(line.comment.value):
            return True
    return False


__all__ = [
    "TEMPLATE_FORMAT_RE",
    "TEMPLATE_TYPE_RE",
    "Directive",
    "InstantiationRequest",
    "has_format_directive",
    "is_exported",
    "parse_request",
    "parse_template_call",
    "render_expression",
    "scan_directive",
]
