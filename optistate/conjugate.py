"""Nonlinear conjugate gradient with a choice of beta formulas.

References:
    - Fletcher & Reeves (1964); Polak & Ribiere (1969);
      Hestenes & Stiefel (1952); Dai & Yuan (1999); Hager & Zhang (2005)
    - Nocedal & Wright, *Numerical Optimization* (2006), chapter 5
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from .core import Array
from .exceptions import ConfigError
from .methods import Method


@dataclass(frozen=True)
class CGMemory:
    prev_g: Optional[Array] = None
    prev_p: Optional[Array] = None


def _safe_div(num: float, den: float) -> float:
    return num / den if den != 0 else 0.0


def beta_fr(g: Array, g_prev: Array, p_prev: Array) -> float:
    return _safe_div(float(g @ g), float(g_prev @ g_prev))


def beta_pr(g: Array, g_prev: Array, p_prev: Array) -> float:
    return _safe_div(float(g @ (g - g_prev)), float(g_prev @ g_prev))


def beta_pr_plus(g: Array, g_prev: Array, p_prev: Array) -> float:
    return max(0.0, beta_pr(g, g_prev, p_prev))


def beta_hs(g: Array, g_prev: Array, p_prev: Array) -> float:
    y = g - g_prev
    return _safe_div(float(g @ y), float(p_prev @ y))


def beta_dy(g: Array, g_prev: Array, p_prev: Array) -> float:
    y = g - g_prev
    return _safe_div(float(g @ g), float(p_prev @ y))


def beta_hz(g: Array, g_prev: Array, p_prev: Array) -> float:
    y = g - g_prev
    py = float(p_prev @ y)
    if py == 0:
        return 0.0
    return float((y - 2.0 * p_prev * float(y @ y) / py) @ g) / py


BETAS: dict[str, Callable[[Array, Array, Array], float]] = {
    "fr": beta_fr,
    "pr": beta_pr,
    "pr+": beta_pr_plus,
    "hs": beta_hs,
    "dy": beta_dy,
    "hz": beta_hz,
}


@dataclass(frozen=True)
class ConjugateGradient(Method):
    """
    Nonlinear conjugate gradient.

    The direction is ``-g + beta * p_prev``. Whenever that is not a descent
    direction the method falls back to steepest descent for the iteration.
    """

    name = "cg"
    memory_type = CGMemory

    line_search: str = "wolfe"
    c2: float = 0.1
    beta: str = "pr+"

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.beta not in BETAS:
            raise ConfigError(
                f"Unknown CG beta formula '{self.beta}'. Supported: {list(BETAS)}"
            )

    def init_memory(self, dim: int) -> CGMemory:
        return CGMemory()

    def is_fresh(self, memory: CGMemory) -> bool:
        return memory.prev_g is None

    def direction(self, memory: CGMemory, g: Array) -> tuple[Array, CGMemory]:
        if memory.prev_g is None or memory.prev_p is None:
            return -g, memory
        beta = BETAS[self.beta](g, memory.prev_g, memory.prev_p)
        p = -g + beta * memory.prev_p
        if not np.all(np.isfinite(p)) or float(g @ p) >= 0:
            p = -g
        return p, memory

    def update(self, memory, s, y, g_old, p) -> CGMemory:
        return CGMemory(prev_g=np.array(g_old, dtype=float), prev_p=np.array(p, dtype=float))


__all__ = ["BETAS", "CGMemory", "ConjugateGradient"]
