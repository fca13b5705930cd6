"""Run-to-completion driver built on the resumable core.

:func:`minimize` is a thin loop around :func:`~optistate.state.step`,
:func:`~optistate.convergence.step_summary` and
:func:`~optistate.convergence.check_convergence`. Pass the ``state`` of a
previous result to continue an interrupted run.

Example
-------
>>> import numpy as np
>>> from optistate import minimize
>>> def rosen(x):
...     return (1 - x[0])**2 + 100 * (x[1] - x[0]**2)**2
>>> def rosen_grad(x):
...     return np.array([
...         -2 * (1 - x[0]) - 400 * x[0] * (x[1] - x[0] ** 2),
...         200 * (x[1] - x[0] ** 2),
...     ])
>>> res = minimize(rosen, rosen_grad, [-1.2, 1.0], method="bfgs", max_iter=10)
>>> res.reason
'max_iter'
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Union

import numpy as np

from .convergence import check_convergence, step_summary
from .core import (
    EPS,
    SQRT_EPS,
    Array,
    Gradient,
    Objective,
    OptimizerConfig,
    OptimizerState,
    Oracle,
    Status,
    StepSummary,
    TerminationReason,
    as_point,
)
from .logging import get_logger
from .methods import Method
from .state import init_state, step

logger = get_logger(__name__)

_CONVERGED = frozenset(
    {
        TerminationReason.ABS_TOL,
        TerminationReason.REL_TOL,
        TerminationReason.GRAD_TOL,
        TerminationReason.GINF_TOL,
        TerminationReason.STEP_TOL,
    }
)


@dataclass
class OptimizeResult:
    """
    Outcome of :func:`minimize`.

    Attributes:
        par: Best point found (the last valid point after a failure).
        last_par: Point the run stopped at; resume from it together with
            ``state``.
        f: Function value at ``par``, if it was ever computed.
        iter: Number of iterations performed.
        nf: Function evaluations.
        ng: Gradient evaluations.
        reason: Termination reason as a string, or None if still running.
        status: Final termination status.
        success: True if a tolerance criterion stopped the run.
        error: Description of a numerical failure, if any.
        state: Final optimizer state; pass it back to resume.
        progress: Per-iteration records when requested.
    """

    par: Array
    f: Optional[float]
    iter: int
    nf: int
    ng: int
    reason: Optional[str]
    status: Status
    success: bool
    error: Optional[str]
    state: OptimizerState
    last_par: Optional[Array] = None
    progress: list[dict] = field(default_factory=list)


def minimize(
    fn: Objective,
    gr: Gradient,
    par: Any,
    method: Union[str, Method] = "bfgs",
    method_options: Optional[dict] = None,
    max_iter: Optional[int] = 100,
    max_fn: Optional[int] = None,
    max_gr: Optional[int] = None,
    max_fg: Optional[int] = None,
    abs_tol: Optional[float] = SQRT_EPS,
    rel_tol: Optional[float] = SQRT_EPS,
    grad_tol: Optional[float] = None,
    ginf_tol: Optional[float] = None,
    step_tol: Optional[float] = EPS,
    check_conv_every: int = 1,
    log_every: Optional[int] = None,
    state: Optional[OptimizerState] = None,
    store_progress: bool = False,
) -> OptimizeResult:
    """
    Minimize ``fn`` from ``par`` until a termination criterion fires.

    When ``state`` is given, the run resumes from it and the method and
    termination options are taken from the state; ``par`` must then be the
    ``last_par`` that was returned alongside it.
    """
    oracle = Oracle(fn=fn, gr=gr)
    x = as_point(par)
    if state is None:
        config = OptimizerConfig(
            max_iter=max_iter,
            max_fn=max_fn,
            max_gr=max_gr,
            max_fg=max_fg,
            abs_tol=abs_tol,
            rel_tol=rel_tol,
            grad_tol=grad_tol,
            ginf_tol=ginf_tol,
            step_tol=step_tol,
            check_conv_every=check_conv_every,
            log_every=log_every,
        )
        state = init_state(method, x, oracle, config=config, method_options=method_options)
        summary = step_summary(state, x, oracle)
        state = check_convergence(summary)
    else:
        x = as_point(x, state.dim)

    progress: list[dict] = []
    log_every = state.config.log_every
    while state.is_running:
        x_old = x
        result = step(state, x, oracle)
        x, state = result.par, result.state
        if state.is_terminated:
            break
        summary = step_summary(state, x, oracle, x_old)
        state = check_convergence(summary)
        if store_progress:
            progress.append(_progress_record(summary))
        if log_every and state.iteration % log_every == 0:
            logger.info(_format_progress(summary))

    return _make_result(state, x, progress)


def _progress_record(summary: StepSummary) -> dict:
    return {
        "iter": summary.iteration,
        "f": summary.f,
        "g2n": summary.g2n,
        "ginfn": summary.ginfn,
        "step": summary.step,
        "alpha": summary.alpha,
        "mu": summary.mu,
        "nf": summary.nf,
        "ng": summary.ng,
        "restart": summary.restart,
    }


def _format_progress(summary: StepSummary) -> str:
    parts = [f"iter {summary.iteration}"]
    if summary.f is not None:
        parts.append(f"f = {summary.f:.6g}")
    if summary.g2n is not None:
        parts.append(f"g2n = {summary.g2n:.6g}")
    if summary.step is not None:
        parts.append(f"step = {summary.step:.6g}")
    parts.append(f"nf = {summary.nf} ng = {summary.ng}")
    return " ".join(parts)


def _make_result(state: OptimizerState, x: Array, progress: list[dict]) -> OptimizeResult:
    reason = state.termination.reason
    if reason is not None:
        logger.info("Stopped after %d iterations: %s", state.iteration, reason.value)
    par = state.best_par if state.best_par is not None else x
    return OptimizeResult(
        par=np.array(par, dtype=float),
        f=state.best_f,
        iter=state.iteration,
        nf=state.nf,
        ng=state.ng,
        reason=reason.value if reason is not None else None,
        status=state.status,
        success=reason in _CONVERGED,
        error=state.error,
        state=state,
        last_par=np.array(x, dtype=float),
        progress=progress,
    )


__all__ = ["OptimizeResult", "minimize"]
