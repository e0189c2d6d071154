"""Exit code taxonomy for the pytemplate CLI."""

from __future__ import annotations

from enum import IntEnum

from pytemplate.errors import (
    ArityError,
    ConfigError,
    DirectiveError,
    EmitError,
    LoadError,
    LocateError,
    NameCollisionError,
    TemplateDefinitionError,
    UnsupportedDeclarationError,
)


class ExitCode(IntEnum):
    """Standard exit codes for CLI commands.

    Exit codes follow Unix conventions with domain-specific extensions:
    - 0: Success
    - 1-9: General errors (parse, validation, config)
    - 10-19: Instantiation stage errors
    """

    SUCCESS = 0
    GENERAL_ERROR = 1
    PARSE_ERROR = 2
    VALIDATION_ERROR = 3
    CONFIG_ERROR = 4

    # Instantiation stage errors (10-19)
    DIRECTIVE_ERROR = 10
    ARITY_ERROR = 11
    DEFINITION_ERROR = 12
    LOAD_ERROR = 13
    LOCATE_ERROR = 14
    EMIT_ERROR = 15

    @classmethod
    def from_exception(cls, exc: BaseException) -> ExitCode:
        """Map an exception to an appropriate exit code.

        Parameters
        ----------
        exc
            Exception to classify.

        Returns
        -------
        ExitCode
            Exit code appropriate for the exception type.
        """
        cyclopts_code = _exit_code_for_cyclopts(exc)
        if cyclopts_code is not None:
            return cyclopts_code

        template_code = _exit_code_for_template_error(exc)
        if template_code is not None:
            return template_code

        type_code = _exit_code_for_exception_type(exc)
        if type_code is not None:
            return type_code

        return cls.GENERAL_ERROR


def _exit_code_for_cyclopts(exc: BaseException) -> ExitCode | None:
    module = exc.__class__.__module__
    if not module.startswith("cyclopts"):
        return None
    if exc.__class__.__name__ == "ValidationError":
        return ExitCode.VALIDATION_ERROR
    return ExitCode.PARSE_ERROR


_TEMPLATE_ERROR_CODES: tuple[tuple[type[BaseException], ExitCode], ...] = (
    (ConfigError, ExitCode.CONFIG_ERROR),
    (DirectiveError, ExitCode.DIRECTIVE_ERROR),
    (ArityError, ExitCode.ARITY_ERROR),
    (TemplateDefinitionError, ExitCode.DEFINITION_ERROR),
    (UnsupportedDeclarationError, ExitCode.DEFINITION_ERROR),
    (NameCollisionError, ExitCode.DEFINITION_ERROR),
    (LoadError, ExitCode.LOAD_ERROR),
    (LocateError, ExitCode.LOCATE_ERROR),
    (EmitError, ExitCode.EMIT_ERROR),
)


def _exit_code_for_template_error(exc: BaseException) -> ExitCode | None:
    for error_type, exit_code in _TEMPLATE_ERROR_CODES:
        if isinstance(exc, error_type):
            return exit_code
    return None


def _exit_code_for_exception_type(exc: BaseException) -> ExitCode | None:
    if isinstance(exc, (ValueError, TypeError)):
        return ExitCode.VALIDATION_ERROR
    if isinstance(exc, (FileNotFoundError, FileExistsError, PermissionError)):
        return ExitCode.CONFIG_ERROR
    return None


__all__ = ["ExitCode"]
