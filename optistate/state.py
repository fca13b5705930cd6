"""Optimizer initialization and the single-iteration step procedure.

Both operations are pure: they read an :class:`OptimizerState` and return a
new one. The caller threads the returned state into the next call and must
not reuse the value it passed in.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Optional, Union

import numpy as np

from .core import (
    Array,
    OptimizerConfig,
    OptimizerState,
    Oracle,
    Status,
    StepResult,
    Termination,
    TerminationReason,
    as_point,
    is_finite,
)
from .exceptions import ConfigError, NumericalError
from .line_search import LineSearchResult, backtracking_armijo, wolfe_line_search
from .logging import get_logger
from .methods import Method
from .oracle import CountingOracle
from .registry import make_method

logger = get_logger(__name__)


def init_state(
    method: Union[str, Method],
    par: Any,
    oracle: Optional[Oracle] = None,
    config: Optional[OptimizerConfig] = None,
    method_options: Optional[dict] = None,
    **options: Any,
) -> OptimizerState:
    """
    Create the initial optimizer state.

    Parameters
    ----------
    method:
        Method tag (``"sd"``, ``"cg"``, ``"bfgs"``, ``"lbfgs"``,
        ``"momentum"``, ``"dbd"``) or a :class:`Method` instance.
    par:
        Starting point; fixes the dimensionality of the run.
    oracle:
        Optional objective and gradient. When given, the gradient at ``par``
        is evaluated to seed the first direction, and the function value too
        if ``abs_tol`` or ``rel_tol`` is configured. These evaluations are
        counted and respect the evaluation budgets.
    config:
        Termination configuration. Alternatively pass its fields as keyword
        ``options``.
    method_options:
        Keyword options for the method strategy.

    Raises
    ------
    ConfigError
        Unknown method or option, invalid configuration, or a point whose
        dimensionality cannot be determined.
    """
    x = as_point(par)
    strategy = make_method(method, **(method_options or {}))
    if config is None:
        try:
            config = OptimizerConfig(**options)
        except TypeError as exc:
            raise ConfigError(str(exc)) from exc
    elif options:
        raise ConfigError("Pass either a config or keyword options, not both.")

    state = OptimizerState(
        method=strategy,
        memory=strategy.init_memory(x.size),
        config=config,
        dim=x.size,
        best_par=x.copy(),
    )
    if oracle is None:
        return state

    counter = CountingOracle(oracle, config)
    g = counter.gr(x) if counter.can_evaluate(ngr=1) else None
    f = None
    if config.needs_fn and counter.can_evaluate(nfn=1):
        f = counter.fn(x)
    if g is not None and not is_finite(g):
        return _numerical_failure(state, x, counter, "gradient").state
    if f is not None and not is_finite(f):
        return _numerical_failure(state, x, counter, "function value").state
    return replace(state, nf=counter.nf, ng=counter.ng, f=f, g=g, best_f=f)


def step(state: OptimizerState, par: Any, oracle: Oracle) -> StepResult:
    """
    Perform one iteration: direction, line search, blending, memory update.

    A terminal state is returned unchanged. A non-finite function value or
    gradient terminates the state with ``numerical_failure`` and returns the
    last valid point. If the evaluation budget does not allow any progress,
    the state terminates normally with the binding budget as reason.
    """
    if state.is_terminated:
        x = np.asarray(par, dtype=float)
        return StepResult(x, state.f, state.g, state.nf, state.ng, state, state.restart)

    x = as_point(par, state.dim)
    method = state.method
    counter = CountingOracle(oracle, state.config, state.nf, state.ng)

    g0 = state.g
    if g0 is None:
        reason = counter.blocking_reason(ngr=1)
        if reason is not None:
            return _exhausted(state, x, counter, reason)
        g0 = counter.gr(x)
        if not is_finite(g0):
            return _numerical_failure(state, x, counter, "gradient")
    f0 = state.f
    if f0 is None:
        reason = counter.blocking_reason(nfn=1)
        if reason is not None:
            return _exhausted(state, x, counter, reason, g=g0)
        f0 = counter.fn(x)
        if not is_finite(f0):
            return _numerical_failure(state, x, counter, "function value")

    p, memory = method.direction(state.memory, g0)
    slope = float(np.dot(g0, p))
    if not slope < 0:
        # stationary point: there is no descent direction
        return _advance(state, x, counter, memory, f0, g0, 0.0, None, 0.0, False)

    alpha0 = method.initial_step(memory, g0, p, state.alpha, state.slope)
    ls = _line_search(method, counter, x, p, f0, g0, alpha0)
    if not ls.finite:
        what = "function value" if not is_finite(ls.f) else "gradient"
        return _numerical_failure(state, x, counter, what)

    if ls.alpha == 0.0:
        if ls.exhausted:
            need = (1, 1) if method.line_search == "wolfe" else (1, 0)
            reason = counter.blocking_reason(*need)
            return _exhausted(state, x, counter, reason, f=f0, g=g0)
        if not method.is_fresh(memory):
            logger.debug(
                "Line search failed at iteration %d; restarting %s",
                state.iteration + 1,
                method.name,
            )
            fresh = method.init_memory(state.dim)
            return _advance(state, x, counter, fresh, f0, g0, 0.0, slope, 0.0, True)
        return _advance(state, x, counter, memory, f0, g0, 0.0, slope, 0.0, False)

    mu = method.momentum(memory)
    ls_step = ls.alpha * p
    s = method.displacement(memory, ls_step, mu)
    if np.array_equal(s, ls_step):
        f_new, g_new = ls.f, ls.g
    else:
        f_new, g_new = None, None
    x_new = x + s

    if method.restarts_on_increase():
        if f_new is None and counter.can_evaluate(nfn=1):
            f_new = counter.fn(x_new)
            if not is_finite(f_new):
                return _numerical_failure(state, x, counter, "function value")
        if f_new is not None and f_new > f0:
            logger.debug(
                "Function increased at iteration %d; resetting %s velocity",
                state.iteration + 1,
                method.name,
            )
            fresh = method.init_memory(state.dim)
            return _advance(state, x, counter, fresh, f0, g0, ls.alpha, slope, mu, True)

    if method.needs_curvature:
        if g_new is None and counter.can_evaluate(ngr=1):
            g_new = counter.gr(x_new)
            if not is_finite(g_new):
                return _numerical_failure(state, x, counter, "gradient")
        if g_new is not None:
            memory = method.update(memory, s, g_new - g0, g0, p)
    else:
        memory = method.update(memory, s, None, g0, p)

    return _advance(state, x_new, counter, memory, f_new, g_new, ls.alpha, slope, mu, False)


def _line_search(
    method: Method,
    counter: CountingOracle,
    x: Array,
    p: Array,
    f0: float,
    g0: Array,
    alpha0: float,
) -> LineSearchResult:
    if method.line_search == "wolfe":
        return wolfe_line_search(
            counter, x, p, f0, g0, alpha0=alpha0, c1=method.c1, c2=method.c2,
            max_iter=method.max_ls,
        )
    return backtracking_armijo(
        counter, x, p, f0, g0, alpha0=alpha0, c1=method.c1, max_iter=method.max_ls
    )


def _advance(
    state: OptimizerState,
    x: Array,
    counter: CountingOracle,
    memory: Any,
    f: Optional[float],
    g: Optional[Array],
    alpha: float,
    slope: Optional[float],
    mu: float,
    restart: bool,
) -> StepResult:
    new_state = replace(
        state,
        memory=memory,
        nf=counter.nf,
        ng=counter.ng,
        iteration=state.iteration + 1,
        f=f,
        g=g,
        alpha=alpha,
        slope=slope,
        mu=mu,
        restart=restart,
    )
    return StepResult(x, f, g, counter.nf, counter.ng, new_state, restart)


def _exhausted(
    state: OptimizerState,
    x: Array,
    counter: CountingOracle,
    reason: TerminationReason,
    f: Optional[float] = None,
    g: Optional[Array] = None,
) -> StepResult:
    logger.info("Evaluation budget exhausted (%s) at iteration %d", reason.value, state.iteration)
    new_state = replace(
        state,
        nf=counter.nf,
        ng=counter.ng,
        f=f if f is not None else state.f,
        g=g if g is not None else state.g,
        termination=Termination(Status.TERMINATED_NORMAL, reason, state.iteration),
    )
    return StepResult(x, new_state.f, new_state.g, counter.nf, counter.ng, new_state)


def _numerical_failure(
    state: OptimizerState, x: Array, counter: CountingOracle, what: str
) -> StepResult:
    error = NumericalError(what, state.iteration + 1)
    logger.warning("Numerical failure: %s", error)
    new_state = replace(
        state,
        nf=counter.nf,
        ng=counter.ng,
        error=state.error or str(error),
        termination=Termination(
            Status.TERMINATED_ERROR,
            TerminationReason.NUMERICAL_FAILURE,
            state.iteration,
        ),
    )
    return StepResult(x, None, None, counter.nf, counter.ng, new_state)


__all__ = ["init_state", "step"]
