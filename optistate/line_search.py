"""Budget-aware line-search routines following Nocedal & Wright.

Every trial goes through a :class:`~optistate.oracle.CountingOracle`. Before
each trial the remaining allowance is checked; once it runs out the search
returns the lowest function value found below ``f0`` (or a zero step) and
flags the result as exhausted. A non-finite trial ends the search at once so
that the caller can report the numerical failure.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import NamedTuple, Optional

import numpy as np

from .core import Array, is_finite
from .oracle import CountingOracle


@dataclass(frozen=True)
class LineSearchResult:
    """Accepted step length with the function value and gradient there."""

    alpha: float
    f: float
    g: Optional[Array]
    nf: int
    ng: int
    success: bool
    exhausted: bool = False

    @property
    def finite(self) -> bool:
        return is_finite(self.f) and (self.g is None or is_finite(self.g))


class _Trial(NamedTuple):
    alpha: float
    f: float
    g: Optional[Array]
    dphi: float


class _Search:
    """Shared bookkeeping: counters at entry and the best decreasing trial."""

    def __init__(self, oracle: CountingOracle, f0: float, g0: Array) -> None:
        self.oracle = oracle
        self.nf0 = oracle.nf
        self.ng0 = oracle.ng
        self.origin = _Trial(0.0, f0, g0, math.nan)
        self.best: Optional[_Trial] = None

    def offer(self, trial: _Trial) -> None:
        if trial.f < self.origin.f and (self.best is None or trial.f < self.best.f):
            self.best = trial

    def finish(self, trial: _Trial, success: bool, exhausted: bool = False) -> LineSearchResult:
        return LineSearchResult(
            alpha=trial.alpha,
            f=trial.f,
            g=trial.g,
            nf=self.oracle.nf - self.nf0,
            ng=self.oracle.ng - self.ng0,
            success=success,
            exhausted=exhausted,
        )

    def fallback(self, exhausted: bool) -> LineSearchResult:
        return self.finish(self.best or self.origin, success=False, exhausted=exhausted)


def backtracking_armijo(
    oracle: CountingOracle,
    x: Array,
    p: Array,
    f0: float,
    g0: Array,
    alpha0: float = 1.0,
    rho: float = 0.5,
    c1: float = 1e-4,
    max_iter: int = 50,
) -> LineSearchResult:
    """Classic Armijo backtracking line search; one function call per trial."""
    if not (0 < c1 < 1):
        raise ValueError("Armijo constant c1 must lie in (0, 1)")
    if not (0 < rho < 1):
        raise ValueError("rho must lie in (0, 1)")
    slope = float(np.dot(g0, p))
    if slope >= 0:
        raise ValueError("Search direction must be a descent direction.")

    search = _Search(oracle, f0, g0)
    alpha = float(alpha0)
    for _ in range(max_iter):
        if not oracle.can_evaluate(nfn=1):
            return search.fallback(exhausted=True)
        trial = _Trial(alpha, oracle.fn(x + alpha * p), None, math.nan)
        if not is_finite(trial.f):
            return search.finish(trial, success=False)
        search.offer(trial)
        if trial.f <= f0 + c1 * alpha * slope:
            return search.finish(trial, success=True)
        alpha *= rho
    return search.fallback(exhausted=False)


def wolfe_line_search(
    oracle: CountingOracle,
    x: Array,
    p: Array,
    f0: float,
    g0: Array,
    alpha0: float = 1.0,
    c1: float = 1e-4,
    c2: float = 0.9,
    alpha_max: float = 1e10,
    max_iter: int = 40,
) -> LineSearchResult:
    """Strong Wolfe line search using bracketing and a cubic zoom."""
    if not (0 < c1 < c2 < 1):
        raise ValueError("Require 0 < c1 < c2 < 1 for Wolfe conditions.")
    der0 = float(np.dot(g0, p))
    if der0 >= 0:
        raise ValueError("Search direction must be a descent direction.")

    search = _Search(oracle, f0, g0)
    origin = _Trial(0.0, f0, g0, der0)

    def sufficient(trial: _Trial) -> bool:
        return trial.f <= f0 + c1 * trial.alpha * der0

    def curvature(trial: _Trial) -> bool:
        return abs(trial.dphi) <= -c2 * der0

    def evaluate(alpha: float) -> Optional[_Trial]:
        if not oracle.can_evaluate(nfn=1, ngr=1):
            return None
        f, g = oracle.fg(x + alpha * p)
        dphi = float(np.dot(g, p)) if is_finite(g) else math.nan
        trial = _Trial(alpha, f, g, dphi)
        if is_finite(f) and is_finite(g):
            search.offer(trial)
        return trial

    def zoom(lo: _Trial, hi: _Trial) -> LineSearchResult:
        for _ in range(max_iter):
            trial = evaluate(_interpolate(lo, hi))
            if trial is None:
                return search.fallback(exhausted=True)
            if not (is_finite(trial.f) and is_finite(trial.g)):
                return search.finish(trial, success=False)
            if not sufficient(trial) or trial.f >= lo.f:
                hi = trial
            else:
                if curvature(trial):
                    return search.finish(trial, success=True)
                if trial.dphi * (hi.alpha - lo.alpha) >= 0:
                    hi = lo
                lo = trial
            if abs(hi.alpha - lo.alpha) <= 1e-12 * max(1.0, lo.alpha):
                break
        return search.fallback(exhausted=False)

    prev = origin
    alpha = min(float(alpha0), alpha_max)
    for iteration in range(max_iter):
        trial = evaluate(alpha)
        if trial is None:
            return search.fallback(exhausted=True)
        if not (is_finite(trial.f) and is_finite(trial.g)):
            return search.finish(trial, success=False)
        if not sufficient(trial) or (iteration > 0 and trial.f >= prev.f):
            return zoom(prev, trial)
        if curvature(trial):
            return search.finish(trial, success=True)
        if trial.dphi >= 0:
            return zoom(trial, prev)
        if alpha >= alpha_max:
            break
        prev = trial
        alpha = min(2.0 * alpha, alpha_max)
    return search.fallback(exhausted=False)


def _interpolate(lo: _Trial, hi: _Trial) -> float:
    """Safeguarded cubic minimizer between two trials, bisection otherwise."""
    a, b = lo.alpha, hi.alpha
    left, right = min(a, b), max(a, b)
    width = right - left
    midpoint = left + 0.5 * width
    if width <= 0:
        return midpoint
    d1 = lo.dphi + hi.dphi - 3.0 * (lo.f - hi.f) / (a - b)
    rad = d1 * d1 - lo.dphi * hi.dphi
    if not math.isfinite(rad) or rad < 0:
        return midpoint
    d2 = math.copysign(math.sqrt(rad), b - a)
    denom = hi.dphi - lo.dphi + 2.0 * d2
    if denom == 0 or not math.isfinite(denom):
        return midpoint
    alpha = b - (b - a) * (hi.dphi + d2 - d1) / denom
    if not math.isfinite(alpha):
        return midpoint
    return min(max(alpha, left + 0.1 * width), right - 0.1 * width)


__all__ = ["LineSearchResult", "backtracking_armijo", "wolfe_line_search"]
