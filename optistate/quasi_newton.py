"""Quasi-Newton direction rules (BFGS and L-BFGS)."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .core import Array
from .exceptions import ConfigError
from .methods import Method, _unit_displacement

# curvature pairs with s.y at or below this are skipped
_CURVATURE_EPS = 1e-12


@dataclass(frozen=True)
class BFGSMemory:
    inv_hessian: Array
    updates: int = 0


@dataclass(frozen=True)
class BFGS(Method):
    """Full-memory BFGS on the inverse Hessian approximation."""

    name = "bfgs"
    memory_type = BFGSMemory
    needs_curvature = True

    line_search: str = "wolfe"
    c2: float = 0.9
    scale_hess: bool = True

    def init_memory(self, dim: int) -> BFGSMemory:
        return BFGSMemory(inv_hessian=np.eye(dim))

    def is_fresh(self, memory: BFGSMemory) -> bool:
        return memory.updates == 0

    def direction(self, memory: BFGSMemory, g: Array) -> tuple[Array, BFGSMemory]:
        p = -memory.inv_hessian @ g
        if not np.all(np.isfinite(p)) or float(g @ p) >= 0:
            memory = self.init_memory(g.size)
            p = -g
        return p, memory

    def initial_step(self, memory, g, p, alpha_prev, slope_prev) -> float:
        if self.is_fresh(memory):
            return _unit_displacement(p)
        return 1.0

    def update(self, memory, s, y, g_old, p) -> BFGSMemory:
        ys = float(np.dot(y, s))
        if ys <= _CURVATURE_EPS:
            return memory
        n = s.size
        inv_hessian = memory.inv_hessian
        if memory.updates == 0 and self.scale_hess:
            inv_hessian = (ys / float(np.dot(y, y))) * np.eye(n)
        rho = 1.0 / ys
        identity = np.eye(n)
        outer_sy = np.outer(s, y)
        inv_hessian = (
            (identity - rho * outer_sy)
            @ inv_hessian
            @ (identity - rho * outer_sy.T)
            + rho * np.outer(s, s)
        )
        return BFGSMemory(inv_hessian=inv_hessian, updates=memory.updates + 1)


@dataclass(frozen=True)
class LBFGSMemory:
    s: tuple = ()
    y: tuple = ()


@dataclass(frozen=True)
class LBFGS(Method):
    """Limited-memory BFGS using the two-loop recursion."""

    name = "lbfgs"
    memory_type = LBFGSMemory
    needs_curvature = True

    line_search: str = "wolfe"
    c2: float = 0.9
    m: int = 5

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.m <= 0:
            raise ConfigError("Memory parameter must be positive.")

    def init_memory(self, dim: int) -> LBFGSMemory:
        return LBFGSMemory()

    def is_fresh(self, memory: LBFGSMemory) -> bool:
        return len(memory.s) == 0

    def direction(self, memory: LBFGSMemory, g: Array) -> tuple[Array, LBFGSMemory]:
        q = g.copy()
        alpha_vals = []
        for s, y in reversed(list(zip(memory.s, memory.y))):
            rho = 1.0 / float(np.dot(y, s))
            alpha_i = rho * float(np.dot(s, q))
            q = q - alpha_i * y
            alpha_vals.append((rho, alpha_i, s, y))
        if memory.s:
            last_s = memory.s[-1]
            last_y = memory.y[-1]
            gamma = float(np.dot(last_s, last_y) / np.dot(last_y, last_y))
        else:
            gamma = 1.0
        r = gamma * q
        for rho, alpha_i, s, y in reversed(alpha_vals):
            beta = rho * float(np.dot(y, r))
            r = r + s * (alpha_i - beta)
        p = -r
        if not np.all(np.isfinite(p)) or float(g @ p) >= 0:
            return -g, LBFGSMemory()
        return p, memory

    def initial_step(self, memory, g, p, alpha_prev, slope_prev) -> float:
        if self.is_fresh(memory):
            return _unit_displacement(p)
        return 1.0

    def update(self, memory, s, y, g_old, p) -> LBFGSMemory:
        if float(np.dot(y, s)) <= _CURVATURE_EPS:
            return memory
        return LBFGSMemory(
            s=(memory.s + (np.array(s, dtype=float),))[-self.m:],
            y=(memory.y + (np.array(y, dtype=float),))[-self.m:],
        )


__all__ = ["BFGS", "BFGSMemory", "LBFGS", "LBFGSMemory"]
