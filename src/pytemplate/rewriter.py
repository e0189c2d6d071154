"""Identifier rewriting and assembly of the instantiated units."""

from __future__ import annotations

import dataclasses
import logging
import re
from collections.abc import Collection, Iterable, Sequence

import libcst as cst
from libcst.helpers import get_full_name_for_node

from pytemplate.declarations import InstantiationPlan, reference_nodes
from pytemplate.errors import LoadError
from pytemplate.loader import LoadedModule, SymbolTable, export_entries

logger = logging.getLogger(__name__)

_ATOMIC_EXPRESSIONS = (
    cst.Name,
    cst.Attribute,
    cst.Subscript,
    cst.Call,
    cst.SimpleString,
    cst.ConcatenatedString,
    cst.FormattedString,
    cst.Integer,
    cst.Float,
    cst.Imaginary,
    cst.List,
    cst.Set,
    cst.Dict,
    cst.ListComp,
    cst.SetComp,
    cst.DictComp,
    cst.Ellipsis,
)


def needs_parentheses(expr: cst.BaseExpression) -> bool:
    """Return whether an inserted expression must be parenthesised as an operand.

    Returns
    -------
    bool
        True for compound expressions without their own parentheses.
    """
    if expr.lpar:
        return False
    return not isinstance(expr, _ATOMIC_EXPRESSIONS)


def _parenthesize(expr: cst.BaseExpression) -> cst.BaseExpression:
    return expr.with_changes(lpar=[cst.LeftParen()], rpar=[cst.RightParen()])


# Slots where any expression other than a bare tuple reads the same without
# parentheses.
_UNAMBIGUOUS_SLOTS = (
    cst.Arg,
    cst.Element,
    cst.DictElement,
    cst.Assign,
    cst.AnnAssign,
    cst.AugAssign,
    cst.Return,
    cst.Annotation,
    cst.Index,
    cst.Expr,
    cst.Param,
)


def absolute_module(package: str | None, level: int, module: str | None, *, path: object) -> str:
    """Resolve a relative import against the template package.

    Parameters
    ----------
    package
        Dotted package that contains the template.
    level
        Number of leading dots in the import.
    module
        Module named after the dots, if any.
    path
        Template location used in error messages.

    Returns
    -------
    str
        Absolute dotted module name.

    Raises
    ------
    LoadError
        Raised when the package is unknown or the import escapes it.
    """
    if not package:
        msg = f"Relative import in {path} needs a known template package"
        raise LoadError(msg)
    parts = package.split(".")
    if level - 1 >= len(parts):
        msg = f"Relative import in {path} goes beyond top-level package {package!r}"
        raise LoadError(msg)
    base = parts[: len(parts) - (level - 1)]
    if module:
        base.append(module)
    return ".".join(base)


class IdentifierRewriter(cst.CSTTransformer):
    """Apply an instantiation plan to a module built from the template's nodes.

    Node identity is the lookup key, so the transformer must run over the
    loaded module or a module that reuses its statement nodes.
    """

    def __init__(
        self,
        plan: InstantiationPlan,
        loaded: LoadedModule,
        *,
        removed: Collection[cst.CSTNode],
    ) -> None:
        super().__init__()
        self._removed = removed
        self._tuple_eliminations = plan.tuple_eliminations
        self._package = loaded.package
        self._path = loaded.path
        self._renames: dict[cst.CSTNode, str] = {}
        self._substitutes: dict[cst.CSTNode, cst.BaseExpression] = {}
        self._alias_rewrites: dict[cst.CSTNode, dict[str, str]] = {}
        self._dropped_exports: set[cst.CSTNode] = set()
        self._global_renames: dict[str, str] = {}
        self._global_drops: set[str] = set()
        self._inserted: set[cst.CSTNode] = set()
        exports = set(export_entries(loaded.module))
        for symbol, replacement in plan.substitutions.items():
            if replacement.eliminated:
                for use in symbol.uses:
                    self._substitutes[use] = replacement.expression
                self._global_drops.add(symbol.name)
            else:
                for node in (*symbol.definitions, *symbol.uses):
                    self._renames[node] = replacement.text
                self._global_renames[symbol.name] = replacement.text
            for alias in symbol.aliases:
                if replacement.eliminated and alias in exports:
                    self._dropped_exports.add(alias)
                else:
                    self._alias_rewrites.setdefault(alias, {})[symbol.name] = replacement.text

    def on_visit(self, node: cst.CSTNode) -> bool:
        if node in self._removed:
            return False
        return super().on_visit(node)

    def on_leave(
        self,
        original_node: cst.CSTNode,
        updated_node: cst.CSTNode,
    ) -> cst.CSTNode | cst.RemovalSentinel | cst.FlattenSentinel[cst.CSTNode]:
        if original_node in self._removed and not isinstance(original_node, cst.ImportAlias):
            return cst.RemoveFromParent()
        result = super().on_leave(original_node, updated_node)
        if self._inserted and isinstance(result, cst.CSTNode):
            return self._wrap_inserted(result)
        return result

    def _wrap_inserted(self, node: cst.CSTNode) -> cst.CSTNode:
        unambiguous = isinstance(node, _UNAMBIGUOUS_SLOTS)
        changes: dict[str, cst.BaseExpression] = {}
        for item in dataclasses.fields(node):
            value = getattr(node, item.name)
            if not isinstance(value, cst.BaseExpression) or value not in self._inserted:
                continue
            if not needs_parentheses(value):
                continue
            if unambiguous and not isinstance(value, cst.Tuple):
                continue
            changes[item.name] = _parenthesize(value)
        return node.with_changes(**changes) if changes else node

    def leave_Name(self, original_node: cst.Name, updated_node: cst.Name) -> cst.BaseExpression:
        new_name = self._renames.get(original_node)
        if new_name is not None:
            return updated_node.with_changes(value=new_name)
        substitute = self._substitutes.get(original_node)
        if substitute is not None:
            inserted = substitute.deep_clone()
            self._inserted.add(inserted)
            return inserted
        return updated_node

    def leave_SimpleString(
        self, original_node: cst.SimpleString, updated_node: cst.SimpleString
    ) -> cst.SimpleString:
        rewrites = self._alias_rewrites.get(original_node)
        if not rewrites:
            return updated_node
        return updated_node.with_changes(value=rewrite_alias_text(updated_node.value, rewrites))

    def leave_Element(
        self, original_node: cst.Element, updated_node: cst.Element
    ) -> cst.Element | cst.RemovalSentinel:
        if original_node.value in self._dropped_exports:
            return cst.RemoveFromParent()
        return updated_node

    def leave_List(self, original_node: cst.List, updated_node: cst.List) -> cst.List:
        return _restore_last_comma(original_node, updated_node)

    def leave_Tuple(self, original_node: cst.Tuple, updated_node: cst.Tuple) -> cst.Tuple:
        return _restore_last_comma(original_node, updated_node)

    def leave_Global(
        self, original_node: cst.Global, updated_node: cst.Global
    ) -> cst.Global | cst.RemovalSentinel:
        items: list[cst.NameItem] = []
        for item in updated_node.names:
            name = item.name.value
            if name in self._global_drops:
                continue
            new_name = self._global_renames.get(name)
            if new_name is not None:
                item = item.with_changes(name=item.name.with_changes(value=new_name))
            items.append(item)
        if not items:
            return cst.RemoveFromParent()
        items[-1] = items[-1].with_changes(comma=cst.MaybeSentinel.DEFAULT)
        return updated_node.with_changes(names=items)

    def leave_Assign(
        self, original_node: cst.Assign, updated_node: cst.Assign
    ) -> cst.Assign:
        indices = self._tuple_eliminations.get(original_node)
        if not indices:
            return updated_node
        target = updated_node.targets[0]
        sequence = target.target
        value = updated_node.value
        if not isinstance(sequence, (cst.Tuple, cst.List)) or not isinstance(
            value, (cst.Tuple, cst.List)
        ):
            return updated_node
        kept = [i for i in range(len(sequence.elements)) if i not in indices]
        if len(kept) == 1:
            (position,) = kept
            return updated_node.with_changes(
                targets=[target.with_changes(target=sequence.elements[position].value)],
                value=value.elements[position].value,
            )
        return updated_node.with_changes(
            targets=[target.with_changes(target=_keep_elements(sequence, kept))],
            value=_keep_elements(value, kept),
        )

    def leave_Import(
        self, original_node: cst.Import, updated_node: cst.Import
    ) -> cst.Import | cst.RemovalSentinel:
        names = [
            updated
            for original, updated in zip(original_node.names, updated_node.names, strict=True)
            if original not in self._removed
        ]
        if len(names) == len(updated_node.names):
            return updated_node
        if not names:
            return cst.RemoveFromParent()
        names[-1] = names[-1].with_changes(comma=cst.MaybeSentinel.DEFAULT)
        return updated_node.with_changes(names=names)

    def leave_ImportFrom(
        self, original_node: cst.ImportFrom, updated_node: cst.ImportFrom
    ) -> cst.ImportFrom:
        if not updated_node.relative:
            return updated_node
        module = (
            get_full_name_for_node(updated_node.module)
            if updated_node.module is not None
            else None
        )
        dotted = absolute_module(
            self._package, len(updated_node.relative), module, path=self._path
        )
        logger.debug("Retargeting relative import to %s", dotted)
        new_module = cst.parse_expression(dotted)
        return updated_node.with_changes(relative=(), module=new_module)

    def leave_SimpleStatementLine(
        self, original_node: cst.SimpleStatementLine, updated_node: cst.SimpleStatementLine
    ) -> cst.SimpleStatementLine | cst.RemovalSentinel:
        if not updated_node.body:
            return cst.RemoveFromParent()
        last = updated_node.body[-1]
        if isinstance(last.semicolon, cst.Semicolon):
            body = [*updated_node.body[:-1], last.with_changes(semicolon=cst.MaybeSentinel.DEFAULT)]
            return updated_node.with_changes(body=body)
        return updated_node


def _restore_last_comma[S: (cst.List, cst.Tuple)](original: S, updated: S) -> S:
    # Removed elements leave the survivor before them with a dangling comma.
    if not updated.elements or len(updated.elements) == len(original.elements):
        return updated
    elements = list(updated.elements)
    elements[-1] = elements[-1].with_changes(comma=original.elements[-1].comma)
    return updated.with_changes(elements=elements)


def _keep_elements(
    sequence: cst.Tuple | cst.List, kept: Sequence[int]
) -> cst.Tuple | cst.List:
    elements = [sequence.elements[i] for i in kept]
    elements[-1] = elements[-1].with_changes(comma=cst.MaybeSentinel.DEFAULT)
    return sequence.with_changes(elements=elements)


def rewrite_alias_text(text: str, rewrites: dict[str, str]) -> str:
    """Replace whole-identifier occurrences inside a string literal.

    Parameters
    ----------
    text
        Raw string literal source, including prefix and quotes.
    rewrites
        Old identifier to replacement text.

    Returns
    -------
    str
        Rewritten literal source.
    """
    names = sorted(rewrites, key=len, reverse=True)
    pattern = re.compile(r"(?<![\w.])(" + "|".join(map(re.escape, names)) + r")(?!\w)")
    return pattern.sub(lambda match: rewrites[match.group(1)], text)


def _is_fully_removed(statement: cst.BaseStatement, removed: Collection[cst.CSTNode]) -> bool:
    if statement in removed:
        return True
    if isinstance(statement, cst.SimpleStatementLine):
        return all(small in removed for small in statement.body)
    return False


def _surviving_statements(
    body: Iterable[cst.BaseStatement],
    removed: Collection[cst.CSTNode],
    tests: Collection[cst.BaseStatement],
) -> tuple[list[cst.BaseStatement], list[cst.EmptyLine]]:
    kept: list[cst.BaseStatement] = []
    pending: list[cst.EmptyLine] = []
    for statement in body:
        if _is_fully_removed(statement, removed):
            if statement not in tests:
                pending.extend(statement.leading_lines)
            continue
        if pending:
            statement = statement.with_changes(
                leading_lines=[*pending, *statement.leading_lines]
            )
            pending = []
        kept.append(statement)
    return kept, pending


def build_primary_unit(
    loaded: LoadedModule,
    plan: InstantiationPlan,
    *,
    exclude_tests: bool,
) -> cst.Module:
    """Produce the instantiated module.

    Parameters
    ----------
    loaded
        Loaded template.
    plan
        Instantiation plan from the classifier.
    exclude_tests
        Whether test-only declarations and imports are left out.

    Returns
    -------
    cst.Module
        Rewritten module without the generated header.
    """
    removed: set[cst.CSTNode] = set(plan.eliminated_nodes)
    if exclude_tests:
        removed |= plan.test_nodes
    tests = set(plan.test_statements) if exclude_tests else set()
    body, orphaned = _surviving_statements(loaded.module.body, removed, tests)
    module = loaded.module.with_changes(
        body=body,
        footer=[*orphaned, *loaded.module.footer],
    )
    rewritten = module.visit(IdentifierRewriter(plan, loaded, removed=removed))
    logger.debug(
        "Primary unit for %s: %d of %d statements kept",
        plan.request.target_name,
        len(rewritten.body),
        len(loaded.module.body),
    )
    return rewritten


def _is_import_line(statement: cst.BaseStatement) -> bool:
    return isinstance(statement, cst.SimpleStatementLine) and all(
        isinstance(small, (cst.Import, cst.ImportFrom)) for small in statement.body
    )


def primary_names_used_by_tests(plan: InstantiationPlan, table: SymbolTable) -> list[str]:
    """List the renamed primary-unit names that test declarations refer to.

    Returns
    -------
    list[str]
        New names in first-use order.
    """
    renames = plan.renames()
    own = {
        table.resolve(statement.name)
        for statement in plan.test_statements
        if isinstance(statement, (cst.ClassDef, cst.FunctionDef))
    }
    names: list[str] = []
    for node in reference_nodes(plan.test_statements):
        symbol = table.resolve(node)
        if symbol is None or symbol in own or symbol not in renames:
            continue
        if renames[symbol] not in names:
            names.append(renames[symbol])
    return names


def build_test_unit(
    loaded: LoadedModule,
    plan: InstantiationPlan,
    *,
    import_from: str,
) -> cst.Module:
    """Produce the companion test module.

    The unit holds the template's import lines, an import of the primary-unit
    names the tests use, and the test-only declarations.

    Parameters
    ----------
    loaded
        Loaded template.
    plan
        Instantiation plan from the classifier.
    import_from
        Dotted module of the primary unit.

    Returns
    -------
    cst.Module
        Rewritten test module without the generated header.
    """
    imports = [statement for statement in loaded.module.body if _is_import_line(statement)]
    module = loaded.module.with_changes(
        body=[*imports, *plan.test_statements],
        header=(),
        footer=(),
    )
    rewritten = module.visit(IdentifierRewriter(plan, loaded, removed=plan.eliminated_nodes))
    body: list[cst.BaseStatement] = []
    for statement in rewritten.body[: len(imports)]:
        body.append(statement.with_changes(leading_lines=()))
    names = primary_names_used_by_tests(plan, loaded.symbols)
    if names:
        body.append(cst.parse_statement(f"from {import_from} import {', '.join(names)}"))
    body.extend(rewritten.body[len(imports) :])
    logger.debug("Test unit imports %s from %s", names, import_from)
    return rewritten.with_changes(body=body)


__all__ = [
    "IdentifierRewriter",
    "absolute_module",
    "build_primary_unit",
    "build_test_unit",
    "needs_parentheses",
    "primary_names_used_by_tests",
    "rewrite_alias_text",
]
