"""Gradient-based methods: steepest descent, momentum and delta-bar-delta."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

import numpy as np

from .core import Array
from .exceptions import ConfigError
from .methods import Method

MOMENTUM_SCHEDULES = ("constant", "nesterov")
MOMENTUM_RESTARTS = (None, "fn")


@dataclass(frozen=True)
class SteepestDescent(Method):
    """Move along the negative gradient."""

    name = "sd"


@dataclass(frozen=True)
class MomentumMemory:
    velocity: Array
    t: int = 0


def _check_mu(mu: float) -> None:
    if not (0.0 <= mu < 1.0):
        raise ConfigError("Momentum coefficient mu must lie in [0, 1).")


@dataclass(frozen=True)
class Momentum(Method):
    """
    Steepest descent with a heavy-ball velocity term.

    The displacement is ``alpha * p + mu * velocity`` where ``velocity`` is
    the previous displacement. With ``schedule="nesterov"`` the coefficient
    grows as ``1 - 3 / (t + 5)``, capped at ``mu``. With ``restart="fn"`` a
    displacement that increases the objective is discarded and the velocity
    reset, producing a restart iteration.
    """

    name = "momentum"
    memory_type = MomentumMemory

    mu: float = 0.9
    schedule: str = "constant"
    restart: Optional[str] = None

    def __post_init__(self) -> None:
        super().__post_init__()
        _check_mu(self.mu)
        if self.schedule not in MOMENTUM_SCHEDULES:
            raise ConfigError(
                f"Unknown momentum schedule '{self.schedule}'. "
                f"Supported: {list(MOMENTUM_SCHEDULES)}"
            )
        if self.restart not in MOMENTUM_RESTARTS:
            raise ConfigError(
                f"Unknown momentum restart '{self.restart}'. "
                f"Supported: {list(MOMENTUM_RESTARTS)}"
            )

    def init_memory(self, dim: int) -> MomentumMemory:
        return MomentumMemory(velocity=np.zeros(dim), t=0)

    def is_fresh(self, memory: MomentumMemory) -> bool:
        return memory.t == 0 or not np.any(memory.velocity)

    def momentum(self, memory: MomentumMemory) -> float:
        if self.schedule == "nesterov":
            return min(self.mu, 1.0 - 3.0 / (memory.t + 5.0))
        return self.mu

    def displacement(self, memory: MomentumMemory, s: Array, mu: float) -> Array:
        return s + mu * memory.velocity

    def restarts_on_increase(self) -> bool:
        return self.restart == "fn"

    def update(self, memory, s, y, g_old, p) -> MomentumMemory:
        return MomentumMemory(velocity=np.array(s, dtype=float), t=memory.t + 1)


@dataclass(frozen=True)
class DeltaBarDeltaMemory:
    gains: Array
    delta_bar: Array
    velocity: Array
    t: int = 0


@dataclass(frozen=True)
class DeltaBarDelta(Method):
    """
    Per-parameter learning rates (Jacobs, 1988).

    Each gain grows by ``kappa`` while the gradient component agrees in sign
    with its exponential average ``delta_bar`` and is multiplied by
    ``1 - phi`` when it disagrees. Gains never fall below ``min_gain``.
    """

    name = "dbd"
    memory_type = DeltaBarDeltaMemory

    kappa: float = 0.2
    phi: float = 0.5
    theta: float = 0.7
    init_gain: float = 1.0
    min_gain: float = 1e-8
    mu: float = 0.0

    def __post_init__(self) -> None:
        super().__post_init__()
        _check_mu(self.mu)
        if self.kappa < 0:
            raise ConfigError("kappa must be non-negative.")
        if not (0.0 < self.phi < 1.0):
            raise ConfigError("phi must lie in (0, 1).")
        if not (0.0 <= self.theta < 1.0):
            raise ConfigError("theta must lie in [0, 1).")
        if self.init_gain <= 0 or self.min_gain <= 0:
            raise ConfigError("Gains must be positive.")

    def init_memory(self, dim: int) -> DeltaBarDeltaMemory:
        return DeltaBarDeltaMemory(
            gains=np.full(dim, float(self.init_gain)),
            delta_bar=np.zeros(dim),
            velocity=np.zeros(dim),
        )

    def is_fresh(self, memory: DeltaBarDeltaMemory) -> bool:
        return memory.t == 0

    def direction(self, memory: DeltaBarDeltaMemory, g: Array) -> tuple[Array, DeltaBarDeltaMemory]:
        return -memory.gains * g, memory

    def initial_step(self, memory, g, p, alpha_prev, slope_prev) -> float:
        return 1.0

    def momentum(self, memory: DeltaBarDeltaMemory) -> float:
        return self.mu

    def displacement(self, memory: DeltaBarDeltaMemory, s: Array, mu: float) -> Array:
        return s + mu * memory.velocity

    def update(self, memory, s, y, g_old, p) -> DeltaBarDeltaMemory:
        agreement = memory.delta_bar * g_old
        gains = np.where(
            agreement > 0,
            memory.gains + self.kappa,
            np.where(agreement < 0, memory.gains * (1.0 - self.phi), memory.gains),
        )
        return replace(
            memory,
            gains=np.maximum(gains, self.min_gain),
            delta_bar=(1.0 - self.theta) * g_old + self.theta * memory.delta_bar,
            velocity=np.array(s, dtype=float),
            t=memory.t + 1,
        )


__all__ = [
    "DeltaBarDelta",
    "DeltaBarDeltaMemory",
    "Momentum",
    "MomentumMemory",
    "SteepestDescent",
]
