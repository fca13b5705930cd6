"""Budgeted access to the caller's objective and gradient.

:class:`CountingOracle` is the only place where oracle calls are made and
counted. It is created fresh for each operation from the counters stored on
the state, and the operation copies the final counts back into the state it
returns.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from .core import Array, OptimizerConfig, Oracle, TerminationReason
from .exceptions import BudgetExhaustedError, ConfigError


class CountingOracle:
    """Wrap an :class:`Oracle` with evaluation counters and budget limits."""

    def __init__(
        self, oracle: Oracle, config: OptimizerConfig, nf: int = 0, ng: int = 0
    ) -> None:
        self.oracle = oracle
        self.config = config
        self.nf = int(nf)
        self.ng = int(ng)

    def blocking_reason(self, nfn: int = 0, ngr: int = 0) -> Optional[TerminationReason]:
        """Return the budget that forbids ``nfn`` + ``ngr`` more calls, if any."""
        cfg = self.config
        if nfn and cfg.max_fn is not None and self.nf + nfn > cfg.max_fn:
            return TerminationReason.MAX_FN
        if ngr and cfg.max_gr is not None and self.ng + ngr > cfg.max_gr:
            return TerminationReason.MAX_GR
        if cfg.max_fg is not None and self.nf + self.ng + nfn + ngr > cfg.max_fg:
            return TerminationReason.MAX_FG
        return None

    def can_evaluate(self, nfn: int = 0, ngr: int = 0) -> bool:
        return self.blocking_reason(nfn, ngr) is None

    def fn(self, x: Array) -> float:
        if not self.can_evaluate(nfn=1):
            raise BudgetExhaustedError("function evaluation budget exhausted")
        self.nf += 1
        return float(self.oracle.fn(x))

    def gr(self, x: Array) -> Array:
        if not self.can_evaluate(ngr=1):
            raise BudgetExhaustedError("gradient evaluation budget exhausted")
        self.ng += 1
        g = np.array(self.oracle.gr(x), dtype=float).reshape(-1)
        if g.size != x.size:
            raise ConfigError(
                f"Gradient has dimension {g.size}, expected {x.size}."
            )
        return g

    def fg(self, x: Array) -> tuple[float, Array]:
        if not self.can_evaluate(nfn=1, ngr=1):
            raise BudgetExhaustedError("evaluation budget exhausted")
        return self.fn(x), self.gr(x)


__all__ = ["CountingOracle"]
