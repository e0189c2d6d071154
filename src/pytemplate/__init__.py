"""Generic-template instantiation for Python modules."""

from pytemplate.directive import Directive, InstantiationRequest, parse_request
from pytemplate.emitter import GENERATED_HEADER, EmitResult
from pytemplate.errors import (
    ArityError,
    ConfigError,
    DirectiveError,
    EmitError,
    LoadError,
    LocateError,
    NameCollisionError,
    TemplateDefinitionError,
    TemplateError,
    UnsupportedDeclarationError,
)
from pytemplate.format_catalog import FORMAT_CATALOG
from pytemplate.instantiate import (
    InstantiateOptions,
    InstantiationResult,
    instantiate,
    instantiate_many,
)
from pytemplate.locator import TemplateLocation, locate_template

__all__ = [
    "FORMAT_CATALOG",
    "GENERATED_HEADER",
    "ArityError",
    "ConfigError",
    "Directive",
    "DirectiveError",
    "EmitError",
    "EmitResult",
    "InstantiateOptions",
    "InstantiationRequest",
    "InstantiationResult",
    "LoadError",
    "LocateError",
    "NameCollisionError",
    "TemplateDefinitionError",
    "TemplateError",
    "TemplateLocation",
    "UnsupportedDeclarationError",
    "instantiate",
    "instantiate_many",
    "locate_template",
    "parse_request",
]
