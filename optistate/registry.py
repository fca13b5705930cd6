"""Closed mapping from method tags to method strategies."""

from __future__ import annotations

from dataclasses import fields
from typing import Any, Union

from .conjugate import ConjugateGradient
from .exceptions import ConfigError
from .gradient import DeltaBarDelta, Momentum, SteepestDescent
from .methods import Method
from .quasi_newton import BFGS, LBFGS

METHODS: dict[str, type[Method]] = {
    cls.name: cls
    for cls in (SteepestDescent, ConjugateGradient, BFGS, LBFGS, Momentum, DeltaBarDelta)
}


def make_method(method: Union[str, Method], **options: Any) -> Method:
    """
    Resolve a method tag (or pass through a :class:`Method` instance).

    Raises:
        ConfigError: If the tag is unknown or an option is not accepted by
            the selected method.
    """
    if isinstance(method, Method):
        if options:
            raise ConfigError("Options cannot be combined with a Method instance.")
        return method
    if not isinstance(method, str):
        raise ConfigError(f"Method must be a name or a Method, got {method!r}.")
    key = method.lower()
    if key not in METHODS:
        raise ConfigError(
            f"Unsupported method '{method}'. Supported methods: {sorted(METHODS)}"
        )
    cls = METHODS[key]
    accepted = {f.name for f in fields(cls)}
    unknown = sorted(set(options) - accepted)
    if unknown:
        raise ConfigError(f"Unknown options for method '{key}': {unknown}")
    return cls(**options)


__all__ = ["METHODS", "make_method"]
