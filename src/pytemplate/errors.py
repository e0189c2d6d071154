"""Error types for template instantiation."""

from __future__ import annotations


class TemplateError(Exception):
    """Base class for template instantiation errors."""


class DirectiveError(TemplateError, ValueError):
    """Raised when a template directive or request cannot be parsed."""


class ArityError(TemplateError, ValueError):
    """Raised when a request supplies the wrong number of arguments."""

    def __init__(self, expected: int, supplied: int) -> None:
        msg = (
            f"Wrong number of arguments - template is expecting {expected} "
            f"but {supplied} supplied"
        )
        super().__init__(msg)
        self.expected = expected
        self.supplied = supplied


class TemplateDefinitionError(TemplateError, ValueError):
    """Raised when the template type itself is not defined at module level."""


class UnsupportedDeclarationError(TemplateError, ValueError):
    """Raised for a top-level statement outside the supported declaration kinds."""


class NameCollisionError(TemplateError, ValueError):
    """Raised when two symbols would share a name after mangling."""


class LoadError(TemplateError, RuntimeError):
    """Raised when a template module cannot be parsed or resolved."""


class LocateError(TemplateError, FileNotFoundError):
    """Raised when a template module cannot be found."""


class EmitError(TemplateError, RuntimeError):
    """Raised when generated output cannot be normalized, read, or written."""


class ConfigError(TemplateError, ValueError):
    """Raised when pytemplate configuration fails validation."""


__all__ = [
    "ArityError",
    "ConfigError",
    "DirectiveError",
    "EmitError",
    "LoadError",
    "LocateError",
    "NameCollisionError",
    "TemplateDefinitionError",
    "TemplateError",
    "UnsupportedDeclarationError",
]
