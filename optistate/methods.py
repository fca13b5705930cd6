"""Base class for method strategies.

A method is a frozen dataclass holding only its options. Its private memory
is a separate immutable value stored on the optimizer state; every hook takes
the old memory and returns a new one.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, ClassVar, Optional

import numpy as np

from .core import Array
from .exceptions import ConfigError

LINE_SEARCHES = ("armijo", "wolfe")


@dataclass(frozen=True)
class NoMemory:
    """Memory of methods that keep no history."""


@dataclass(frozen=True)
class Method:
    """
    Descent-direction rule plus its line-search settings.

    Subclasses set ``name`` and ``memory_type`` and override the hooks they
    need. The defaults describe steepest descent.
    """

    name: ClassVar[str] = ""
    memory_type: ClassVar[type] = NoMemory
    # whether ``update`` needs the gradient at the new point
    needs_curvature: ClassVar[bool] = False

    line_search: str = "armijo"
    c1: float = 1e-4
    c2: float = 0.9
    max_ls: int = 40

    def __post_init__(self) -> None:
        if self.line_search not in LINE_SEARCHES:
            raise ConfigError(
                f"Unknown line search '{self.line_search}'. "
                f"Supported: {list(LINE_SEARCHES)}"
            )
        if self.line_search == "wolfe" and not (0 < self.c1 < self.c2 < 1):
            raise ConfigError("Require 0 < c1 < c2 < 1 for Wolfe conditions.")
        if not (0 < self.c1 < 1):
            raise ConfigError("c1 must lie in (0, 1).")
        if self.max_ls < 1:
            raise ConfigError("max_ls must be positive.")

    def options(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def init_memory(self, dim: int) -> Any:
        return NoMemory()

    def is_fresh(self, memory: Any) -> bool:
        """True if ``memory`` carries no history, so resetting it changes nothing."""
        return True

    def direction(self, memory: Any, g: Array) -> tuple[Array, Any]:
        return -g, memory

    def initial_step(
        self,
        memory: Any,
        g: Array,
        p: Array,
        alpha_prev: Optional[float],
        slope_prev: Optional[float],
    ) -> float:
        """First trial step length for the line search."""
        slope = float(np.dot(g, p))
        if alpha_prev and slope_prev:
            alpha = alpha_prev * slope_prev / slope
            if np.isfinite(alpha) and alpha > 0:
                return float(min(alpha, 1e10))
        return _unit_displacement(p)

    def momentum(self, memory: Any) -> float:
        """Coefficient blending the previous displacement into this one."""
        return 0.0

    def displacement(self, memory: Any, s: Array, mu: float) -> Array:
        return s

    def restarts_on_increase(self) -> bool:
        return False

    def update(
        self,
        memory: Any,
        s: Array,
        y: Optional[Array],
        g_old: Array,
        p: Array,
    ) -> Any:
        """Return the memory after accepting displacement ``s``."""
        return memory


def _unit_displacement(p: Array) -> float:
    norm = float(np.linalg.norm(p))
    return min(1.0, 1.0 / norm) if norm > 0 else 1.0


__all__ = ["LINE_SEARCHES", "Method", "NoMemory"]
