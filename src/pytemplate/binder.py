"""Binding of formal template parameters to request arguments."""

from __future__ import annotations

import logging

from pytemplate.directive import Directive, InstantiationRequest
from pytemplate.errors import ArityError

logger = logging.getLogger(__name__)


def bind_parameters(directive: Directive, request: InstantiationRequest) -> dict[str, str]:
    """Pair formal parameters with actual arguments positionally.

    Arguments are not type checked; they are spliced in as written.

    Parameters
    ----------
    directive
        Template header with the formal parameter names.
    request
        Instantiation request with the actual arguments.

    Returns
    -------
    dict[str, str]
        Ordered mapping of formal name to actual argument text.

    Raises
    ------
    ArityError
        Raised when the argument count differs from the parameter count.
    """
    expected = len(directive.formal_params)
    supplied = len(request.actual_args)
    if expected != supplied:
        raise ArityError(expected, supplied)
    bindings = dict(zip(directive.formal_params, request.actual_args, strict=True))
    logger.debug("Bindings for %s: %s", request.target_name, bindings)
    return bindings


__all__ = ["bind_parameters"]
