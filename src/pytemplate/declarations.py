"""Classification of top-level template declarations into an instantiation plan."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import NoReturn

import libcst as cst
from libcst.helpers import get_full_name_for_node

from pytemplate.directive import Directive, InstantiationRequest
from pytemplate.errors import TemplateDefinitionError, UnsupportedDeclarationError
from pytemplate.loader import LoadedModule, Symbol, SymbolTable, expression_names, is_dunder
from pytemplate.mangler import check_capture, check_collisions, mangle_name

logger = logging.getLogger(__name__)

TESTING_MODULES: frozenset[str] = frozenset({"pytest", "unittest", "hypothesis"})


class DeclarationKind(StrEnum):
    """Supported kinds of top-level declarations."""

    IMPORT = "import"
    VALUE = "value"
    TYPE = "type"
    FUNCTION = "function"
    DOCSTRING = "docstring"


@dataclass(frozen=True)
class Declaration:
    """One top-level declaration and the statement that holds it."""

    kind: DeclarationKind
    node: cst.CSTNode
    statement: cst.BaseStatement
    is_test: bool = False


@dataclass(frozen=True)
class Replacement:
    """Replacement for every occurrence of a module-level symbol."""

    text: str
    expression: cst.BaseExpression
    eliminated: bool = False


SubstitutionMap = dict[Symbol, Replacement]


@dataclass
class InstantiationPlan:
    """Everything the rewriter needs to produce the instantiated module."""

    directive: Directive
    request: InstantiationRequest
    bindings: dict[str, str]
    declarations: list[Declaration] = field(default_factory=list)
    substitutions: SubstitutionMap = field(default_factory=dict)
    eliminated_nodes: set[cst.CSTNode] = field(default_factory=set)
    tuple_eliminations: dict[cst.Assign, tuple[int, ...]] = field(default_factory=dict)
    test_aliases: set[cst.ImportAlias] = field(default_factory=set)

    @property
    def test_statements(self) -> list[cst.BaseStatement]:
        """Return test-only functions and classes in source order.

        Returns
        -------
        list[cst.BaseStatement]
            Statements that go to the test unit when tests are split.
        """
        return [
            declaration.statement
            for declaration in self.declarations
            if declaration.is_test and declaration.kind is not DeclarationKind.IMPORT
        ]

    @property
    def test_nodes(self) -> set[cst.CSTNode]:
        """Return every node left out of the primary unit when tests are split.

        Returns
        -------
        set[cst.CSTNode]
            Test statements, test-only imports, and test-only import aliases.
        """
        nodes: set[cst.CSTNode] = {
            declaration.node for declaration in self.declarations if declaration.is_test
        }
        nodes.update(self.test_aliases)
        return nodes

    @property
    def has_test_declarations(self) -> bool:
        """Return whether any test-only function or class was found.

        Returns
        -------
        bool
            True when the template defines test-only functions or classes.
        """
        return bool(self.test_statements)

    def renames(self) -> dict[Symbol, str]:
        """Return renamed symbols and their new names.

        Returns
        -------
        dict[Symbol, str]
            Mapping of renamed symbols to mangled names.
        """
        return {
            symbol: replacement.text
            for symbol, replacement in self.substitutions.items()
            if not replacement.eliminated
        }

    def eliminations(self) -> dict[Symbol, Replacement]:
        """Return eliminated placeholder symbols and their bound arguments.

        Returns
        -------
        dict[Symbol, Replacement]
            Mapping of eliminated symbols to replacements.
        """
        return {
            symbol: replacement
            for symbol, replacement in self.substitutions.items()
            if replacement.eliminated
        }


def is_testing_module(module_name: str | None) -> bool:
    """Return whether a dotted module name belongs to a testing framework.

    Returns
    -------
    bool
        True for ``pytest``, ``unittest``, ``hypothesis`` and their submodules.
    """
    if not module_name:
        return False
    return module_name.split(".", 1)[0] in TESTING_MODULES


def classify(
    loaded: LoadedModule,
    directive: Directive,
    request: InstantiationRequest,
    bindings: Mapping[str, str],
) -> InstantiationPlan:
    """Walk top-level statements and decide what is removed, renamed, or kept.

    Parameters
    ----------
    loaded
        Loaded template with its symbol table.
    directive
        Template directive.
    request
        Instantiation request.
    bindings
        Formal parameter to actual argument mapping.

    Returns
    -------
    InstantiationPlan
        Plan with substitutions, removals, and test-only declarations.

    Raises
    ------
    TemplateDefinitionError
        Raised when the template type itself is not defined at module level.
    """
    plan = InstantiationPlan(directive=directive, request=request, bindings=dict(bindings))
    for index, statement in enumerate(loaded.module.body):
        _classify_statement(plan, loaded, statement, first=index == 0)
    _classify_symbols(plan, loaded.symbols)
    _classify_test_imports(plan, loaded.symbols)
    renames = plan.renames()
    if directive.name not in {symbol.name for symbol in renames}:
        msg = f"No definition for template type {directive.name!r}"
        raise TemplateDefinitionError(msg)
    kept = [
        symbol.name
        for symbol in loaded.symbols.iter_top_level()
        if symbol not in plan.substitutions
    ]
    check_collisions(renames, kept, builtins=loaded.symbols.builtin_names)
    for symbol, replacement in plan.eliminations().items():
        check_capture(symbol, expression_names(replacement.expression))
    logger.debug(
        "Names to mangle = %s",
        {symbol.name: name for symbol, name in renames.items()},
    )
    logger.debug(
        "Eliminated = %s",
        {symbol.name: rep.text for symbol, rep in plan.eliminations().items()},
    )
    return plan


def _classify_statement(
    plan: InstantiationPlan,
    loaded: LoadedModule,
    statement: cst.BaseStatement,
    *,
    first: bool,
) -> None:
    match statement:
        case cst.SimpleStatementLine():
            for small in statement.body:
                docstring = first and len(statement.body) == 1
                plan.declarations.append(
                    _classify_small(plan, loaded, statement, small, docstring=docstring)
                )
        case cst.ClassDef():
            _eliminate_if_formal(plan, statement.name.value, statement)
            is_test = _is_test_class(statement, loaded.symbols)
            plan.declarations.append(
                Declaration(
                    DeclarationKind.TYPE,
                    statement,
                    statement,
                    is_test=is_test and statement not in plan.eliminated_nodes,
                )
            )
        case cst.FunctionDef():
            _eliminate_if_formal(plan, statement.name.value, statement)
            is_test = _is_test_function(statement, loaded.symbols)
            plan.declarations.append(
                Declaration(
                    DeclarationKind.FUNCTION,
                    statement,
                    statement,
                    is_test=is_test and statement not in plan.eliminated_nodes,
                )
            )
        case _:
            _unsupported(loaded, statement)


def _classify_small(
    plan: InstantiationPlan,
    loaded: LoadedModule,
    statement: cst.SimpleStatementLine,
    small: cst.BaseSmallStatement,
    *,
    docstring: bool,
) -> Declaration:
    match small:
        case cst.Import() | cst.ImportFrom():
            return Declaration(DeclarationKind.IMPORT, small, statement)
        case cst.Assign():
            _classify_assign(plan, loaded, small)
            return Declaration(DeclarationKind.VALUE, small, statement)
        case cst.AnnAssign(target=cst.Name(value=name)):
            _eliminate_if_formal(plan, name, small)
            return Declaration(DeclarationKind.VALUE, small, statement)
        case cst.AnnAssign() | cst.AugAssign():
            return Declaration(DeclarationKind.VALUE, small, statement)
        case cst.TypeAlias(name=cst.Name(value=name)):
            _eliminate_if_formal(plan, name, small)
            return Declaration(DeclarationKind.TYPE, small, statement)
        case cst.Expr(value=cst.SimpleString() | cst.ConcatenatedString()) if docstring:
            return Declaration(DeclarationKind.DOCSTRING, small, statement)
        case _:
            _unsupported(loaded, small)


def _unsupported(loaded: LoadedModule, node: cst.CSTNode) -> NoReturn:
    line = loaded.module.code_for_node(node).strip().splitlines()[0]
    msg = (
        f"Unsupported top-level statement in {loaded.path}: "
        f"{type(node).__name__} ({line!r})"
    )
    raise UnsupportedDeclarationError(msg)


def _eliminate_if_formal(plan: InstantiationPlan, name: str, node: cst.CSTNode) -> None:
    if name in plan.bindings:
        logger.debug("Removing placeholder declaration %s", name)
        plan.eliminated_nodes.add(node)


def _classify_assign(plan: InstantiationPlan, loaded: LoadedModule, assign: cst.Assign) -> None:
    eliminated: list[cst.AssignTarget] = []
    for target in assign.targets:
        match target.target:
            case cst.Name(value=name) if name in plan.bindings:
                eliminated.append(target)
            case cst.Tuple() | cst.List() as sequence:
                _classify_unpacking(plan, loaded, assign, sequence)
            case _:
                pass
    if eliminated and len(eliminated) == len(assign.targets):
        plan.eliminated_nodes.add(assign)
    else:
        plan.eliminated_nodes.update(eliminated)


def _classify_unpacking(
    plan: InstantiationPlan,
    loaded: LoadedModule,
    assign: cst.Assign,
    sequence: cst.Tuple | cst.List,
) -> None:
    indices = [
        position
        for position, element in enumerate(sequence.elements)
        if isinstance(element.value, cst.Name) and element.value.value in plan.bindings
    ]
    if not indices:
        return
    value = assign.value
    if (
        len(assign.targets) != 1
        or not isinstance(value, (cst.Tuple, cst.List))
        or len(value.elements) != len(sequence.elements)
        or any(isinstance(element, cst.StarredElement) for element in value.elements)
        or any(isinstance(element, cst.StarredElement) for element in sequence.elements)
    ):
        line = loaded.module.code_for_node(assign).strip()
        msg = f"Cannot remove placeholders from unpacking assignment in {loaded.path}: {line!r}"
        raise UnsupportedDeclarationError(msg)
    if len(indices) == len(sequence.elements):
        plan.eliminated_nodes.add(assign)
    else:
        plan.tuple_eliminations[assign] = tuple(indices)


def _classify_symbols(plan: InstantiationPlan, table: SymbolTable) -> None:
    for symbol in table.iter_top_level():
        if is_dunder(symbol.name) or symbol.is_import:
            continue
        actual = plan.bindings.get(symbol.name)
        if actual is not None:
            plan.substitutions[symbol] = Replacement(
                text=actual,
                expression=cst.parse_expression(actual),
                eliminated=True,
            )
            continue
        new_name = mangle_name(symbol.name, plan.directive.name, plan.request.target_name)
        plan.substitutions[symbol] = Replacement(text=new_name, expression=cst.Name(new_name))


def _root_name(expr: cst.BaseExpression) -> cst.Name | None:
    node: cst.BaseExpression = expr
    while True:
        match node:
            case cst.Attribute(value=inner) | cst.Subscript(value=inner) | cst.Call(func=inner):
                node = inner
            case cst.Name():
                return node
            case _:
                return None


def _is_testing_reference(expr: cst.BaseExpression, table: SymbolTable) -> bool:
    root = _root_name(expr)
    if root is None:
        return False
    symbol = table.resolve(root)
    return symbol is not None and symbol.is_import and is_testing_module(symbol.import_origin)


def _is_test_function(node: cst.FunctionDef, table: SymbolTable) -> bool:
    if any(_is_testing_reference(d.decorator, table) for d in node.decorators):
        return True
    params = node.params
    every = [*params.posonly_params, *params.params, *params.kwonly_params]
    if isinstance(params.star_arg, cst.Param):
        every.append(params.star_arg)
    if params.star_kwarg is not None:
        every.append(params.star_kwarg)
    if not every:
        return False
    return all(
        param.annotation is not None
        and _is_testing_reference(param.annotation.annotation, table)
        for param in every
    )


def _is_test_class(node: cst.ClassDef, table: SymbolTable) -> bool:
    if any(_is_testing_reference(d.decorator, table) for d in node.decorators):
        return True
    return any(
        arg.keyword is None and _is_testing_reference(arg.value, table) for arg in node.bases
    )


class _ReferenceCollector(cst.CSTVisitor):
    def __init__(self) -> None:
        self.nodes: list[cst.CSTNode] = []

    def visit_Name(self, node: cst.Name) -> None:
        self.nodes.append(node)

    def visit_SimpleString(self, node: cst.SimpleString) -> None:
        self.nodes.append(node)


def reference_nodes(statements: Iterable[cst.CSTNode]) -> list[cst.CSTNode]:
    """Collect the name and string nodes inside ``statements``.

    Returns
    -------
    list[cst.CSTNode]
        Nodes in source order; strings are included for quoted annotations.
    """
    collector = _ReferenceCollector()
    for statement in statements:
        statement.visit(collector)
    return collector.nodes


def _bound_name(alias: cst.ImportAlias) -> str:
    if alias.asname is not None:
        return alias.evaluated_alias or alias.evaluated_name
    return alias.evaluated_name.split(".", 1)[0]


def _used_only_by_tests(
    alias: cst.ImportAlias, table: SymbolTable, test_refs: set[cst.CSTNode]
) -> bool:
    symbol = table.top_level.get(_bound_name(alias))
    if symbol is None:
        return True
    return all(node in test_refs for node in (*symbol.uses, *symbol.aliases))


def _classify_test_imports(plan: InstantiationPlan, table: SymbolTable) -> None:
    # A testing import stays in the primary unit while a non-test declaration uses it.
    test_refs = set(reference_nodes(plan.test_statements))
    for index, declaration in enumerate(plan.declarations):
        small = declaration.node
        if isinstance(small, cst.ImportFrom):
            if small.relative or small.module is None:
                continue
            if not is_testing_module(get_full_name_for_node(small.module)):
                continue
            if isinstance(small.names, cst.ImportStar) or all(
                _used_only_by_tests(alias, table, test_refs) for alias in small.names
            ):
                plan.declarations[index] = replace(declaration, is_test=True)
        elif isinstance(small, cst.Import):
            aliases = [
                alias
                for alias in small.names
                if is_testing_module(alias.evaluated_name)
                and _used_only_by_tests(alias, table, test_refs)
            ]
            if aliases and len(aliases) == len(small.names):
                plan.declarations[index] = replace(declaration, is_test=True)
            else:
                plan.test_aliases.update(aliases)


__all__ = [
    "TESTING_MODULES",
    "Declaration",
    "DeclarationKind",
    "InstantiationPlan",
    "Replacement",
    "SubstitutionMap",
    "classify",
    "is_testing_module",
    "reference_nodes",
]
