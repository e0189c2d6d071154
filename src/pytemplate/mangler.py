"""Name mangling for renamed module-level symbols."""

from __future__ import annotations

import logging
from collections.abc import Collection, Iterable, Mapping

from pytemplate.directive import is_exported
from pytemplate.errors import NameCollisionError
from pytemplate.loader import Symbol

logger = logging.getLogger(__name__)


def upper_first(name: str) -> str:
    """Upper-case the first character of ``name``.

    Returns
    -------
    str
        Name with an upper-case first character.
    """
    return name[:1].upper() + name[1:]


def lower_first(name: str) -> str:
    """Lower-case the first character of ``name``.

    Returns
    -------
    str
        Name with a lower-case first character.
    """
    return name[:1].lower() + name[1:]


def mangle_name(name: str, template_name: str, target_name: str) -> str:
    """Derive the instantiated name of a module-level symbol.

    Names that do not mention the template name get the target name appended.
    Otherwise the first mention is replaced, keeping camel case when the
    mention is not at the start. An unexported target never produces an
    exported-looking name.

    Parameters
    ----------
    name
        Original symbol name.
    template_name
        Name declared by the template directive.
    target_name
        Name requested for the instantiation.

    Returns
    -------
    str
        Mangled name.

    Examples
    --------
    >>> mangle_name("Set", "Set", "mySet")
    'mySet'
    >>> mangle_name("newSet", "Set", "mySet")
    'newMySet'
    >>> mangle_name("Helper", "Set", "mySet")
    'helperMySet'
    """
    if template_name not in name:
        mangled = name + upper_first(target_name)
    else:
        inner = target_name
        if name.index(template_name) != 0:
            inner = upper_first(inner)
        mangled = name.replace(template_name, inner, 1)
    if not is_exported(target_name) and is_exported(mangled):
        mangled = lower_first(mangled)
    return mangled


def check_capture(symbol: Symbol, names: Iterable[str]) -> None:
    """Reject replacement names that a local binding would hide at a use site.

    Parameters
    ----------
    symbol
        Module-level symbol being renamed or substituted.
    names
        Names the replacement introduces at each use site.

    Raises
    ------
    NameCollisionError
        Raised when a function, class, or comprehension that uses ``symbol``
        binds one of ``names`` locally.
    """
    for name in names:
        if name in symbol.shadowing_names:
            msg = (
                f"Replacing {symbol.name!r} with {name!r} would be captured by a "
                f"local binding of {name!r}"
            )
            raise NameCollisionError(msg)


def check_collisions(
    renames: Mapping[Symbol, str],
    kept: Iterable[str],
    *,
    builtins: Collection[str] = (),
) -> None:
    """Reject renames that would merge or hide bindings.

    Parameters
    ----------
    renames
        Renamed symbols and their new names.
    kept
        Module-level names that survive unchanged, such as imports.
    builtins
        Builtin names the template refers to.

    Raises
    ------
    NameCollisionError
        Raised when two symbols would end up with the same name, when a local
        binding would capture a new name, or when a new name would shadow a
        builtin the template uses.
    """
    owners: dict[str, str] = {name: name for name in kept}
    for symbol, new_name in renames.items():
        previous = owners.get(new_name)
        if previous is not None:
            msg = (
                f"Renaming {symbol.name!r} to {new_name!r} collides with "
                f"module-level name {previous!r}"
            )
            raise NameCollisionError(msg)
        if new_name in builtins:
            msg = f"Renaming {symbol.name!r} to {new_name!r} shadows the builtin {new_name!r}"
            raise NameCollisionError(msg)
        check_capture(symbol, [new_name])
        owners[new_name] = symbol.name
    logger.debug("Renames checked for collisions: %d symbols", len(renames))


__all__ = ["check_capture", "check_collisions", "lower_first", "mangle_name", "upper_first"]
