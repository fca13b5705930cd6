"""Convergence metrics and termination classification.

Classification precedence, first match wins:

1. numerical failure
2. ``max_iter``
3. ``max_fn``, ``max_gr``, ``max_fg``
4. ``abs_tol``
5. ``rel_tol``
6. ``grad_tol``
7. ``ginf_tol``
8. ``step_tol``

Iteration and evaluation limits are checked on every call. Tolerances are
only checked every ``check_conv_every`` iterations, and the function-value
and step tolerances ignore restart iterations.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Optional

import numpy as np

from .core import (
    Array,
    OptimizerState,
    Oracle,
    Status,
    StepSummary,
    Termination,
    TerminationReason,
    as_point,
    is_finite,
)
from .exceptions import NumericalError
from .logging import get_logger
from .oracle import CountingOracle

logger = get_logger(__name__)


def is_check_iteration(state: OptimizerState) -> bool:
    return state.iteration % state.config.check_conv_every == 0


def step_summary(
    state: OptimizerState,
    par: Any,
    oracle: Optional[Oracle] = None,
    par_old: Optional[Any] = None,
) -> StepSummary:
    """
    Gather the metrics needed to classify the current iteration.

    The function value and gradient norms are only computed when a tolerance
    needs them and only on check iterations. Cached values are used first;
    otherwise the oracle is called if given and the budget allows. Any new
    evaluation is reflected in the counters of the returned state.
    """
    x = as_point(par, state.dim)
    config = state.config
    checked = is_check_iteration(state)
    counter = None
    if oracle is not None and state.is_running:
        counter = CountingOracle(oracle, config, state.nf, state.ng)

    f, g = state.f, state.g
    if checked and config.needs_fn and f is None and counter and counter.can_evaluate(nfn=1):
        f = counter.fn(x)
    g2n = ginfn = None
    if checked and config.needs_gr:
        if g is None and counter and counter.can_evaluate(ngr=1):
            g = counter.gr(x)
        if g is not None:
            if config.grad_tol is not None:
                g2n = float(np.linalg.norm(g))
            if config.ginf_tol is not None:
                ginfn = float(np.max(np.abs(g)))

    step = None
    if par_old is not None:
        step = float(np.linalg.norm(x - as_point(par_old, state.dim)))

    if counter is not None:
        state = replace(state, f=f, g=g, nf=counter.nf, ng=counter.ng)
    return StepSummary(
        par=x,
        iteration=state.iteration,
        nf=state.nf,
        ng=state.ng,
        f=f,
        g2n=g2n,
        ginfn=ginfn,
        step=step,
        alpha=state.alpha,
        mu=state.mu,
        restart=state.restart,
        checked=checked,
        state=state,
    )


def check_convergence(summary: StepSummary) -> OptimizerState:
    """
    Classify the iteration described by ``summary``.

    Returns the state with best-seen tracking updated and, if a criterion
    fired, a terminal status. A state that is already terminal is returned
    unchanged.
    """
    state = summary.state
    if state.is_terminated:
        return state

    state = update_best(state, summary.par, summary.f, summary.g2n)

    if state.error is None and not (_finite_or_none(state.f) and _finite_or_none(state.g)):
        state = replace(state, error=str(NumericalError("value", state.iteration)))
    if state.error is not None:
        return _terminate(state, TerminationReason.NUMERICAL_FAILURE, Status.TERMINATED_ERROR)

    reason = _limit_reason(state)
    if reason is None and summary.checked:
        reason = _tolerance_reason(state, summary)
    if summary.checked and summary.f is not None:
        state = replace(state, f_check=summary.f)
    if reason is not None:
        return _terminate(state, reason, Status.TERMINATED_NORMAL)
    return state


def update_best(
    state: OptimizerState,
    par: Array,
    f: Optional[float],
    g2n: Optional[float] = None,
) -> OptimizerState:
    """
    Track the best point seen so far.

    Points are ranked by function value. Until a function value has been
    seen, they are ranked by gradient norm, and failing that the most recent
    point is kept.
    """
    if f is not None and is_finite(f):
        if state.best_f is None or f < state.best_f:
            return replace(state, best_par=np.array(par, dtype=float), best_f=float(f))
        return state
    if state.best_f is not None:
        return state
    if g2n is not None and is_finite(g2n):
        if state.best_g2n is None or g2n < state.best_g2n:
            return replace(state, best_par=np.array(par, dtype=float), best_g2n=float(g2n))
        return state
    if state.best_g2n is None:
        return replace(state, best_par=np.array(par, dtype=float))
    return state


def relative_difference(f: float, f_old: float) -> float:
    diff = abs(f - f_old)
    if diff == 0:
        return 0.0
    denom = min(abs(f), abs(f_old))
    return diff / denom if denom > 0 else float("inf")


def _limit_reason(state: OptimizerState) -> Optional[TerminationReason]:
    cfg = state.config
    if cfg.max_iter is not None and state.iteration >= cfg.max_iter:
        return TerminationReason.MAX_ITER
    if cfg.max_fn is not None and state.nf >= cfg.max_fn:
        return TerminationReason.MAX_FN
    if cfg.max_gr is not None and state.ng >= cfg.max_gr:
        return TerminationReason.MAX_GR
    if cfg.max_fg is not None and state.nfg >= cfg.max_fg:
        return TerminationReason.MAX_FG
    return None


def _tolerance_reason(state: OptimizerState, summary: StepSummary) -> Optional[TerminationReason]:
    cfg = state.config
    f, f_old = summary.f, state.f_check
    compare_f = not summary.restart and f is not None and f_old is not None
    if compare_f and cfg.abs_tol is not None and abs(f - f_old) < cfg.abs_tol:
        return TerminationReason.ABS_TOL
    if compare_f and cfg.rel_tol is not None and relative_difference(f, f_old) < cfg.rel_tol:
        return TerminationReason.REL_TOL
    if cfg.grad_tol is not None and summary.g2n is not None and summary.g2n < cfg.grad_tol:
        return TerminationReason.GRAD_TOL
    if cfg.ginf_tol is not None and summary.ginfn is not None and summary.ginfn < cfg.ginf_tol:
        return TerminationReason.GINF_TOL
    if (
        cfg.step_tol is not None
        and not summary.restart
        and summary.step is not None
        and summary.step < cfg.step_tol
    ):
        return TerminationReason.STEP_TOL
    return None


def _terminate(state: OptimizerState, reason: TerminationReason, status: Status) -> OptimizerState:
    logger.info("Terminated at iteration %d: %s", state.iteration, reason.value)
    return replace(state, termination=Termination(status, reason, state.iteration))


def _finite_or_none(value: Any) -> bool:
    return value is None or is_finite(value)


__all__ = [
    "check_convergence",
    "is_check_iteration",
    "relative_difference",
    "step_summary",
    "update_best",
]
