"""Semantic loading of template modules with LibCST scope analysis."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path

import libcst as cst
from libcst.metadata import (
    Assignment,
    BuiltinAssignment,
    ClassScope,
    ComprehensionScope,
    FunctionScope,
    GlobalScope,
    ImportAssignment,
    MetadataWrapper,
    PositionProvider,
    Scope,
    ScopeProvider,
)

from pytemplate.errors import LoadError
from utils.file_io import read_text

logger = logging.getLogger(__name__)

ALL_EXPORTS = "__all__"


def is_dunder(name: str) -> bool:
    """Return whether ``name`` is a ``__dunder__`` identifier.

    Returns
    -------
    bool
        True for names wrapped in double underscores.
    """
    return len(name) > 4 and name.startswith("__") and name.endswith("__")


@dataclass(eq=False)
class Symbol:
    """A binding resolved to one scope, with its definition, use, and alias sites.

    Symbols hash by identity: two same-named bindings in different scopes are
    different symbols. ``shadowing_names`` holds the local names visible at
    the use sites of a module-level symbol.
    """

    name: str
    scope_kind: str
    definitions: list[cst.Name] = field(default_factory=list)
    uses: list[cst.Name] = field(default_factory=list)
    aliases: list[cst.SimpleString] = field(default_factory=list)
    import_origin: str | None = None
    shadowing_names: set[str] = field(default_factory=set)

    @property
    def is_import(self) -> bool:
        """Return whether the symbol is bound by an import statement.

        Returns
        -------
        bool
            True when an import binds the name.
        """
        return self.import_origin is not None

    @property
    def is_top_level(self) -> bool:
        """Return whether the symbol lives in module scope.

        Returns
        -------
        bool
            True for module-level symbols.
        """
        return self.scope_kind == "module"


@dataclass
class SymbolTable:
    """Resolved symbols of a module plus a node index."""

    symbols: list[Symbol]
    top_level: dict[str, Symbol]
    builtin_names: set[str] = field(default_factory=set)
    _index: dict[cst.CSTNode, Symbol] = field(default_factory=dict, repr=False)

    def resolve(self, node: cst.CSTNode) -> Symbol | None:
        """Return the symbol a definition, use, or alias node belongs to.

        Returns
        -------
        Symbol | None
            Owning symbol, or None for unresolved and builtin names.
        """
        return self._index.get(node)

    def iter_top_level(self) -> Iterator[Symbol]:
        """Iterate module-level symbols in definition order.

        Yields
        ------
        Symbol
            Module-level symbol.
        """
        yield from self.top_level.values()


@dataclass(frozen=True)
class LoadedModule:
    """Parsed template with metadata and resolved symbols."""

    path: Path
    module: cst.Module
    symbols: SymbolTable
    package: str | None = None


def load_module(path: Path, *, package: str | None = None) -> LoadedModule:
    """Read and semantically analyse a template module.

    Parameters
    ----------
    path
        Template source file.
    package
        Dotted package that contains the template, when known.

    Returns
    -------
    LoadedModule
        Parsed module with its symbol table.

    Raises
    ------
    LoadError
        Raised when the file cannot be read.
    """
    try:
        source = read_text(path)
    except (OSError, UnicodeDecodeError) as exc:
        msg = f"Failed to read template {path}: {exc}"
        raise LoadError(msg) from exc
    return load_source(source, path=path, package=package)


def load_source(source: str, *, path: Path, package: str | None = None) -> LoadedModule:
    """Parse template source and build its symbol table.

    Parameters
    ----------
    source
        Template source text.
    path
        Location used in diagnostics.
    package
        Dotted package that contains the template, when known.

    Returns
    -------
    LoadedModule
        Parsed module with its symbol table.

    Raises
    ------
    LoadError
        Raised on syntax errors, metadata failures, or undefined names.
    """
    try:
        parsed = cst.parse_module(source)
    except cst.ParserSyntaxError as exc:
        msg = f"Failed to parse file: {path}: {exc}"
        raise LoadError(msg) from exc
    wrapper = MetadataWrapper(parsed)
    try:
        resolved = wrapper.resolve_many((ScopeProvider, PositionProvider))
    except (cst.CSTLogicError, cst.MetadataException) as exc:
        msg = f"Scope analysis failed for {path}: {exc}"
        raise LoadError(msg) from exc
    scope_map = resolved[ScopeProvider]
    module = wrapper.module
    scopes = _unique_scopes(scope_map.values())
    table = _build_table(scopes)
    _record_export_aliases(module, table)
    _check_undefined(module, scopes, table, resolved[PositionProvider], path=path)
    logger.debug(
        "Loaded %s: %d symbols, %d at module level",
        path,
        len(table.symbols),
        len(table.top_level),
    )
    return LoadedModule(path=path, module=module, symbols=table, package=package)


def _unique_scopes(values: Iterable[Scope | None]) -> list[Scope]:
    seen: dict[int, Scope] = {}
    for scope in values:
        if scope is not None and id(scope) not in seen:
            seen[id(scope)] = scope
    return list(seen.values())


def _scope_kind(scope: Scope) -> str:
    if isinstance(scope, GlobalScope):
        return "module"
    if isinstance(scope, ClassScope):
        return "class"
    if isinstance(scope, ComprehensionScope):
        return "comprehension"
    if isinstance(scope, FunctionScope):
        return "function"
    return type(scope).__name__


def _definition_name(node: cst.CSTNode) -> cst.Name | None:
    if isinstance(node, cst.Name):
        return node
    name = getattr(node, "name", None)
    if isinstance(name, cst.Name):
        return name
    return None


def _import_origin(assignment: ImportAssignment) -> str:
    node = assignment.node
    if isinstance(node, cst.ImportFrom):
        return assignment.get_module_name_for_import()
    if isinstance(node, cst.Import):
        for alias in node.names:
            bound = alias.evaluated_alias or alias.evaluated_name
            if bound == assignment.name or bound.startswith(f"{assignment.name}."):
                return alias.evaluated_name
    return assignment.name


def _string_parts(node: cst.BaseString) -> list[cst.SimpleString]:
    if isinstance(node, cst.SimpleString):
        return [node]
    if isinstance(node, cst.ConcatenatedString):
        return [*_string_parts(node.left), *_string_parts(node.right)]
    return []


def _build_table(scopes: list[Scope]) -> SymbolTable:
    symbols: list[Symbol] = []
    top_level: dict[str, Symbol] = {}
    index: dict[cst.CSTNode, Symbol] = {}
    for scope in scopes:
        kind = _scope_kind(scope)
        by_name: dict[str, Symbol] = {}
        for assignment in scope.assignments:
            if not isinstance(assignment, Assignment):
                continue
            symbol = by_name.get(assignment.name)
            if symbol is None:
                symbol = Symbol(name=assignment.name, scope_kind=kind)
                by_name[assignment.name] = symbol
            if isinstance(assignment, ImportAssignment):
                symbol.import_origin = _import_origin(assignment)
            else:
                definition = _definition_name(assignment.node)
                if definition is not None and definition not in index:
                    symbol.definitions.append(definition)
                    index[definition] = symbol
            for access in assignment.references:
                node = access.node
                if isinstance(node, cst.Name):
                    if kind == "module":
                        symbol.shadowing_names |= enclosing_local_names(access.scope)
                    if node not in index:
                        symbol.uses.append(node)
                        index[node] = symbol
                elif isinstance(node, cst.BaseString):
                    for part in _string_parts(node):
                        if part not in symbol.aliases:
                            symbol.aliases.append(part)
                            index.setdefault(part, symbol)
        symbols.extend(by_name.values())
        if kind == "module":
            top_level.update(by_name)
    table = SymbolTable(
        symbols=symbols,
        top_level=top_level,
        builtin_names=_builtin_accesses(scopes),
        _index=index,
    )
    _link_forward_annotations(scopes, table)
    return table


def enclosing_local_names(scope: Scope) -> set[str]:
    """Return the names bound in the local scopes visible from ``scope``.

    Class bodies only count when the access sits directly in them, since
    nested functions do not see class-level bindings.

    Returns
    -------
    set[str]
        Locally bound names that would hide a module-level name.
    """
    names: set[str] = set()
    current: Scope | None = scope
    innermost = True
    while current is not None and not isinstance(current, GlobalScope):
        if innermost or not isinstance(current, ClassScope):
            names.update(
                assignment.name
                for assignment in current.assignments
                if isinstance(assignment, Assignment)
            )
        innermost = False
        current = current.parent
    return names


def _builtin_accesses(scopes: list[Scope]) -> set[str]:
    names: set[str] = set()
    for scope in scopes:
        for access in scope.accesses:
            if isinstance(access.node, cst.Name) and any(
                isinstance(referent, BuiltinAssignment) for referent in access.referents
            ):
                names.add(access.node.value)
    return names


def _link_forward_annotations(scopes: list[Scope], table: SymbolTable) -> None:
    # Annotations are evaluated lazily, so a module-level name may be annotated
    # before its definition.
    for scope in scopes:
        for access in scope.accesses:
            node = access.node
            if access.referents or not access.is_annotation:
                continue
            if isinstance(node, cst.Name):
                symbol = table.top_level.get(node.value)
                if symbol is not None and node not in table._index:
                    symbol.shadowing_names |= enclosing_local_names(access.scope)
                    symbol.uses.append(node)
                    table._index[node] = symbol
            elif isinstance(node, cst.BaseString):
                for name in _names_in_string(node):
                    symbol = table.top_level.get(name)
                    if symbol is None:
                        continue
                    for part in _string_parts(node):
                        if part not in symbol.aliases:
                            symbol.aliases.append(part)
                            table._index.setdefault(part, symbol)


class _LoadedNames(cst.CSTVisitor):
    def __init__(self) -> None:
        self.names: list[str] = []

    def visit_Name(self, node: cst.Name) -> None:
        self.names.append(node.value)

    def visit_Attribute(self, node: cst.Attribute) -> bool:
        node.value.visit(self)
        return False


def expression_names(expr: cst.BaseExpression) -> list[str]:
    """Return the names an expression loads, skipping attribute members.

    Returns
    -------
    list[str]
        Names in source order.
    """
    collector = _LoadedNames()
    expr.visit(collector)
    return collector.names


def _names_in_string(node: cst.BaseString) -> list[str]:
    value = node.evaluated_value
    if not isinstance(value, str):
        return []
    try:
        expr = cst.parse_expression(value)
    except cst.ParserSyntaxError:
        return []
    return expression_names(expr)


def _export_elements(statement: cst.BaseSmallStatement) -> list[cst.SimpleString]:
    value: cst.BaseExpression | None = None
    if isinstance(statement, cst.Assign):
        targets = [target.target for target in statement.targets]
        if any(isinstance(t, cst.Name) and t.value == ALL_EXPORTS for t in targets):
            value = statement.value
    elif isinstance(statement, (cst.AnnAssign, cst.AugAssign)):
        if isinstance(statement.target, cst.Name) and statement.target.value == ALL_EXPORTS:
            value = statement.value
    if not isinstance(value, (cst.List, cst.Tuple)):
        return []
    return [
        element.value
        for element in value.elements
        if isinstance(element.value, cst.SimpleString)
    ]


def export_entries(module: cst.Module) -> list[cst.SimpleString]:
    """Return the string entries of module-level ``__all__`` assignments.

    Returns
    -------
    list[cst.SimpleString]
        String nodes listed in ``__all__``.
    """
    entries: list[cst.SimpleString] = []
    for statement in module.body:
        if not isinstance(statement, cst.SimpleStatementLine):
            continue
        for small in statement.body:
            entries.extend(_export_elements(small))
    return entries


def _record_export_aliases(module: cst.Module, table: SymbolTable) -> None:
    for element in export_entries(module):
        name = element.evaluated_value
        symbol = table.top_level.get(name) if isinstance(name, str) else None
        if symbol is None or element in symbol.aliases:
            continue
        symbol.aliases.append(element)
        table._index[element] = symbol


def _check_undefined(
    module: cst.Module,
    scopes: list[Scope],
    table: SymbolTable,
    positions: Mapping[cst.CSTNode, object],
    *,
    path: Path,
) -> None:
    if _has_star_import(module):
        return
    for scope in scopes:
        for access in scope.accesses:
            if access.referents or not isinstance(access.node, cst.Name):
                continue
            if table.resolve(access.node) is not None:
                continue
            name = access.node.value
            if is_dunder(name):
                continue
            position = positions.get(access.node)
            line = getattr(getattr(position, "start", None), "line", "?")
            msg = f"Type checking error: {path}:{line}: undefined: {name}"
            raise LoadError(msg)


def _has_star_import(module: cst.Module) -> bool:
    for statement in module.body:
        if not isinstance(statement, cst.SimpleStatementLine):
            continue
        for small in statement.body:
            if isinstance(small, cst.ImportFrom) and isinstance(small.names, cst.ImportStar):
                return True
    return False


__all__ = [
    "ALL_EXPORTS",
    "LoadedModule",
    "Symbol",
    "SymbolTable",
    "enclosing_local_names",
    "export_entries",
    "expression_names",
    "is_dunder",
    "load_module",
    "load_source",
]
