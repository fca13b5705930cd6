"""optistate - a resumable, externally drivable gradient-based optimizer.

The optimizer state is an immutable value: :func:`init_state` creates it,
:func:`step` advances it by one iteration and :func:`check_convergence`
classifies it. Any state can be serialized with :mod:`optistate.io` and
resumed later.

Example
-------
>>> import numpy as np
>>> from optistate import Oracle, check_convergence, init_state, step, step_summary
>>> oracle = Oracle(fn=lambda x: float(x @ x), gr=lambda x: 2 * x)
>>> par = np.array([1.0, -2.0])
>>> state = init_state("bfgs", par, oracle, max_iter=20, grad_tol=1e-8)
>>> while state.is_running:
...     result = step(state, par, oracle)
...     par_old, par, state = par, result.par, result.state
...     state = check_convergence(step_summary(state, par, oracle, par_old))
>>> state.termination.reason.value
'grad_tol'
"""

__version__ = "0.1.0"

from .conjugate import BETAS, ConjugateGradient
from .convergence import check_convergence, step_summary, update_best
from .core import (
    OptimizerConfig,
    OptimizerState,
    Oracle,
    Status,
    StepResult,
    StepSummary,
    Termination,
    TerminationReason,
)
from .driver import OptimizeResult, minimize
from .exceptions import ConfigError, NumericalError, OptimizerError
from .gradient import DeltaBarDelta, Momentum, SteepestDescent
from .io import state_from_dict, state_from_json, state_to_dict, state_to_json
from .line_search import LineSearchResult, backtracking_armijo, wolfe_line_search
from .methods import Method
from .quasi_newton import BFGS, LBFGS
from .registry import METHODS, make_method
from .state import init_state, step

__all__ = [
    "BETAS",
    "BFGS",
    "ConfigError",
    "ConjugateGradient",
    "DeltaBarDelta",
    "LBFGS",
    "LineSearchResult",
    "METHODS",
    "Method",
    "Momentum",
    "NumericalError",
    "OptimizeResult",
    "OptimizerConfig",
    "OptimizerError",
    "OptimizerState",
    "Oracle",
    "Status",
    "SteepestDescent",
    "StepResult",
    "StepSummary",
    "Termination",
    "TerminationReason",
    "backtracking_armijo",
    "check_convergence",
    "init_state",
    "make_method",
    "minimize",
    "state_from_dict",
    "state_from_json",
    "state_to_dict",
    "state_to_json",
    "step",
    "step_summary",
    "update_best",
    "wolfe_line_search",
]
