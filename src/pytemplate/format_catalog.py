"""Catalog of concrete coercion functions for ``# template format`` stubs."""

from __future__ import annotations

from string import Template
from textwrap import indent
from types import MappingProxyType

import libcst as cst

_REJECT = Template(
    """\
msg = f"Cannot format {type(value).__name__} as $target"
raise TypeError(msg)
"""
)

_INTEGER = Template(
    """\
def format_value(value: object) -> int:
    if isinstance(value, bool):
$nested_reject\
    if isinstance(value, int):
        result = value
    elif isinstance(value, float):
        result = int(value)
    elif isinstance(value, str):
        result = int(value, 10)
    else:
$nested_reject\
$check\
    return result
"""
)

_BOUNDED = Template(
    """\
    if not $lower <= result <= $upper:
        msg = f"{result} is out of range for $target"
        raise OverflowError(msg)
"""
)

_UNSIGNED = Template(
    """\
    if result < 0:
        msg = f"{result} is out of range for $target"
        raise OverflowError(msg)
"""
)

_FLOAT = Template(
    """\
def format_value(value: object) -> float:
    if isinstance(value, bool):
$nested_reject\
    if isinstance(value, (int, float, str)):
        return $convert
$reject\
"""
)

_STRING = Template(
    """\
def format_value(value: object) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
$nested_reject\
    if isinstance(value, (int, float)):
        return str(value)
$reject\
"""
)

_ANY = """\
def format_value(value: object) -> object:
    return value
"""

_INTEGER_WIDTHS: dict[str, tuple[int | None, int | None]] = {
    "int": (None, None),
    "int8": (-(2**7), 2**7 - 1),
    "int16": (-(2**15), 2**15 - 1),
    "int32": (-(2**31), 2**31 - 1),
    "int64": (-(2**63), 2**63 - 1),
    "uint": (0, None),
    "uint8": (0, 2**8 - 1),
    "uint16": (0, 2**16 - 1),
    "uint32": (0, 2**32 - 1),
    "uint64": (0, 2**64 - 1),
}


def _reject(target: str, *, depth: int) -> str:
    return indent(_REJECT.substitute(target=target), "    " * depth)


def _integer_source(target: str, lower: int | None, upper: int | None) -> str:
    if upper is not None:
        check = _BOUNDED.substitute(lower=lower, upper=upper, target=target)
    elif lower is not None:
        check = _UNSIGNED.substitute(target=target)
    else:
        check = ""
    return _INTEGER.substitute(nested_reject=_reject(target, depth=2), check=check)


def _float_source(target: str, convert: str) -> str:
    return _FLOAT.substitute(
        nested_reject=_reject(target, depth=2),
        reject=_reject(target, depth=1),
        convert=convert,
    )


def _catalog_sources() -> dict[str, str]:
    sources = {
        name: _integer_source(name, lower, upper)
        for name, (lower, upper) in _INTEGER_WIDTHS.items()
    }
    sources["float"] = _float_source("float", "float(value)")
    sources["float64"] = _float_source("float64", "float(value)")
    sources["float32"] = _float_source(
        "float32", 'struct.unpack("f", struct.pack("f", float(value)))[0]'
    )
    sources["str"] = _STRING.substitute(
        nested_reject=_reject("str", depth=2),
        reject=_reject("str", depth=1),
    )
    sources["any"] = _ANY
    return sources


def _parse_function(source: str) -> cst.FunctionDef:
    statement = cst.parse_statement(source)
    if not isinstance(statement, cst.FunctionDef):
        msg = f"Format catalog entry is not a function: {source!r}"
        raise TypeError(msg)
    return statement


FORMAT_CATALOG: MappingProxyType[str, cst.FunctionDef] = MappingProxyType(
    {name: _parse_function(source) for name, source in _catalog_sources().items()}
)
FORMAT_IMPORTS: MappingProxyType[str, tuple[str, ...]] = MappingProxyType(
    {"float32": ("struct",)}
)


# Annotations that accept any value and use the pass-through entry.
_PASSTHROUGH_NAMES: frozenset[str] = frozenset({"Any", "object"})


def catalog_key(type_text: str) -> str:
    """Normalize a result type to its catalog key.

    Bare names match case-sensitively, so a user class such as ``Float`` never
    picks up the builtin coercion. Dotted names such as ``numpy.Int16`` match on
    their last component, lower-cased. ``Any`` and ``object`` map to ``any``.

    Returns
    -------
    str
        Catalog key for ``type_text``.
    """
    text = type_text.strip()
    if "." in text:
        text = text.rsplit(".", 1)[-1]
        if text not in _PASSTHROUGH_NAMES:
            return text.lower()
    return "any" if text in _PASSTHROUGH_NAMES else text


def format_fragment(type_text: str) -> cst.FunctionDef | None:
    """Look up the coercion function for a result type.

    Parameters
    ----------
    type_text
        Source text of the stub's result type, e.g. ``numpy.Int16``.

    Returns
    -------
    cst.FunctionDef | None
        Catalog function, or None when the type is not in the catalog.
    """
    return FORMAT_CATALOG.get(catalog_key(type_text))


__all__ = ["FORMAT_CATALOG", "FORMAT_IMPORTS", "catalog_key", "format_fragment"]
