"""Replacement of ``# template format`` stubs with catalog coercion functions."""

from __future__ import annotations

import logging

import libcst as cst
from libcst.codemod import CodemodContext
from libcst.codemod.visitors import AddImportsVisitor
from libcst.helpers import get_full_name_for_node

from pytemplate.directive import has_format_directive, render_expression
from pytemplate.format_catalog import FORMAT_IMPORTS, catalog_key, format_fragment

logger = logging.getLogger(__name__)


def _callable_result(annotation: cst.BaseExpression) -> cst.BaseExpression | None:
    if not isinstance(annotation, cst.Subscript):
        return None
    callee = get_full_name_for_node(annotation.value)
    if callee is None or callee.rsplit(".", 1)[-1] != "Callable":
        return None
    if len(annotation.slice) != 2:
        return None
    result = annotation.slice[1].slice
    return result.value if isinstance(result, cst.Index) else None


def stub_result_type(statement: cst.BaseStatement) -> tuple[str, cst.BaseExpression] | None:
    """Return the name and result type of a format stub.

    Recognised shapes are ``name: Callable[[...], R] = ...`` and
    ``def name(...) -> R``.

    Returns
    -------
    tuple[str, cst.BaseExpression] | None
        Stub name and result type expression, or None for other statements.
    """
    if isinstance(statement, cst.FunctionDef):
        if statement.returns is None:
            return None
        return statement.name.value, statement.returns.annotation
    if isinstance(statement, cst.SimpleStatementLine) and len(statement.body) == 1:
        small = statement.body[0]
        if isinstance(small, cst.AnnAssign) and isinstance(small.target, cst.Name):
            result = _callable_result(small.annotation.annotation)
            if result is not None:
                return small.target.value, result
    return None


class FormatInjector(cst.CSTTransformer):
    """Swap module-level format stubs for concrete functions from the catalog."""

    def __init__(self) -> None:
        super().__init__()
        self.injected: dict[str, str] = {}
        self.required_imports: list[str] = []

    def visit_IndentedBlock(self, node: cst.IndentedBlock) -> bool:
        return False

    def leave_FunctionDef(
        self, original_node: cst.FunctionDef, updated_node: cst.FunctionDef
    ) -> cst.BaseStatement:
        return self._inject(updated_node)

    def leave_SimpleStatementLine(
        self, original_node: cst.SimpleStatementLine, updated_node: cst.SimpleStatementLine
    ) -> cst.BaseStatement:
        return self._inject(updated_node)

    def _inject(self, statement: cst.FunctionDef | cst.SimpleStatementLine) -> cst.BaseStatement:
        if not has_format_directive(statement.leading_lines):
            return statement
        stub = stub_result_type(statement)
        if stub is None:
            return statement
        name, result = stub
        type_text = render_expression(result)
        fragment = format_fragment(type_text)
        if fragment is None:
            logger.debug("No format function for %s (%s); keeping stub", name, type_text)
            return statement
        key = catalog_key(type_text)
        for module in FORMAT_IMPORTS.get(key, ()):
            if module not in self.required_imports:
                self.required_imports.append(module)
        self.injected[name] = key
        logger.debug("Injecting %s format function as %s", key, name)
        return fragment.with_changes(
            name=cst.Name(name),
            leading_lines=statement.leading_lines,
        )


def inject_formats(module: cst.Module) -> cst.Module:
    """Replace every recognised format stub in ``module``.

    Returns
    -------
    cst.Module
        Module with catalog functions and the imports they need.
    """
    injector = FormatInjector()
    updated = module.visit(injector)
    if not injector.required_imports:
        return updated
    context = CodemodContext()
    for name in injector.required_imports:
        AddImportsVisitor.add_needed_import(context, name)
    return AddImportsVisitor(context).transform_module(updated)


__all__ = ["FormatInjector", "inject_formats", "stub_result_type"]
