"""Exception hierarchy for optistate.

Configuration problems are raised eagerly. Numerical failures inside a step
are never raised; their description is written into the state's error slot.
"""

from __future__ import annotations


class OptimizerError(Exception):
    """Base class for all optistate errors."""


class ConfigError(OptimizerError, ValueError):
    """Invalid method, inconsistent configuration or dimension mismatch."""


class NumericalError(OptimizerError, ArithmeticError):
    """Non-finite function value or gradient encountered during a step."""

    def __init__(self, what: str, iteration: int) -> None:
        self.what = what
        self.iteration = iteration
        super().__init__(f"non-finite {what} encountered at iteration {iteration}")


class BudgetExhaustedError(OptimizerError):
    """An evaluation was requested after the budget ran out."""


__all__ = [
    "BudgetExhaustedError",
    "ConfigError",
    "NumericalError",
    "OptimizerError",
]
