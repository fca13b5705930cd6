"""Core types shared by the optimizer state machine.

Every value defined here is immutable: operations take a state and return a
new one built with :func:`dataclasses.replace`, so any state can be kept as a
checkpoint and resumed later.
"""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Optional

import numpy as np

from .exceptions import ConfigError

if TYPE_CHECKING:
    from .methods import Method

Array = np.ndarray
Objective = Callable[[Array], float]
Gradient = Callable[[Array], Array]

EPS = float(np.finfo(float).eps)
SQRT_EPS = math.sqrt(EPS)


@dataclass(frozen=True)
class Oracle:
    """Caller-supplied objective and gradient."""

    fn: Objective
    gr: Gradient


class Status(Enum):
    """Termination status of an optimizer state."""

    RUNNING = "running"
    TERMINATED_ERROR = "terminated_error"
    TERMINATED_NORMAL = "terminated_normal"


class TerminationReason(Enum):
    """Why an optimization stopped, in order of classification precedence."""

    NUMERICAL_FAILURE = "numerical_failure"
    MAX_ITER = "max_iter"
    MAX_FN = "max_fn"
    MAX_GR = "max_gr"
    MAX_FG = "max_fg"
    ABS_TOL = "abs_tol"
    REL_TOL = "rel_tol"
    GRAD_TOL = "grad_tol"
    GINF_TOL = "ginf_tol"
    STEP_TOL = "step_tol"


@dataclass(frozen=True)
class Termination:
    """Termination status, reason and the iteration at which it was decided."""

    status: Status = Status.RUNNING
    reason: Optional[TerminationReason] = None
    iteration: Optional[int] = None


_INT_OPTIONS = ("max_iter", "max_fn", "max_gr", "max_fg")
_FLOAT_OPTIONS = ("abs_tol", "rel_tol", "grad_tol", "ginf_tol", "step_tol")


def _interval(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ConfigError(f"{name} must be a positive integer, got {value!r}")
    if math.isnan(value) or math.isinf(value) or value != int(value) or value < 1:
        raise ConfigError(f"{name} must be a positive integer, got {value!r}")
    return int(value)


@dataclass(frozen=True)
class OptimizerConfig:
    """
    Termination configuration. Every limit is optional; ``None`` disables it.

    Args:
        max_iter: Maximum number of iterations.
        max_fn: Maximum number of function evaluations.
        max_gr: Maximum number of gradient evaluations.
        max_fg: Maximum number of function plus gradient evaluations.
        abs_tol: Stop when consecutive function values differ by less.
        rel_tol: Stop when the relative difference of consecutive function
            values is smaller.
        grad_tol: Stop when the gradient 2-norm is smaller.
        ginf_tol: Stop when the gradient infinity-norm is smaller.
        step_tol: Stop when the distance between iterates is smaller.
        check_conv_every: Tolerances are only checked every this many
            iterations. Iteration and evaluation limits are checked every
            iteration.
        log_every: Progress reporting interval. Replaced by
            ``check_conv_every`` when it is not a multiple of it.
    """

    max_iter: Optional[int] = None
    max_fn: Optional[int] = None
    max_gr: Optional[int] = None
    max_fg: Optional[int] = None
    abs_tol: Optional[float] = None
    rel_tol: Optional[float] = None
    grad_tol: Optional[float] = None
    ginf_tol: Optional[float] = None
    step_tol: Optional[float] = None
    check_conv_every: int = 1
    log_every: Optional[int] = None

    def __post_init__(self) -> None:
        for name in _INT_OPTIONS + _FLOAT_OPTIONS:
            value = getattr(self, name)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, numbers.Real):
                raise ConfigError(f"{name} must be numeric, got {value!r}")
            if math.isnan(value) or value < 0:
                raise ConfigError(f"{name} must be non-negative, got {value!r}")
            if name in _INT_OPTIONS and value != math.inf:
                if value != int(value):
                    raise ConfigError(f"{name} must be integral, got {value!r}")
                object.__setattr__(self, name, int(value))
        check_every = _interval("check_conv_every", self.check_conv_every)
        object.__setattr__(self, "check_conv_every", check_every)
        if self.log_every is not None:
            log_every = _interval("log_every", self.log_every)
            if log_every % self.check_conv_every != 0:
                log_every = self.check_conv_every
            object.__setattr__(self, "log_every", log_every)

    @property
    def needs_fn(self) -> bool:
        return self.abs_tol is not None or self.rel_tol is not None

    @property
    def needs_gr(self) -> bool:
        return self.grad_tol is not None or self.ginf_tol is not None

    def as_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class OptimizerState:
    """
    Complete, self-contained optimizer state.

    Attributes:
        method: Immutable method strategy (tag plus options).
        memory: The method's private memory.
        config: Termination configuration.
        dim: Dimensionality of the point, fixed at initialization.
        nf: Function evaluations so far.
        ng: Gradient evaluations so far.
        iteration: Number of completed steps.
        f: Function value at the current point, if known.
        g: Gradient at the current point, if known.
        f_check: Function value recorded at the last full convergence check.
        alpha: Step length accepted by the last line search.
        slope: Directional derivative along the last search direction.
        mu: Momentum coefficient used by the last step.
        restart: Whether the last step was a restart iteration.
        best_par: Best point seen so far.
        best_f: Function value at ``best_par``, if ever computed.
        best_g2n: Gradient 2-norm used to rank points when no function
            value has been computed.
        termination: Termination status, reason and iteration.
        error: Description of a numerical failure. Never cleared.
    """

    method: "Method"
    memory: Any
    config: OptimizerConfig
    dim: int
    nf: int = 0
    ng: int = 0
    iteration: int = 0
    f: Optional[float] = None
    g: Optional[Array] = None
    f_check: Optional[float] = None
    alpha: Optional[float] = None
    slope: Optional[float] = None
    mu: float = 0.0
    restart: bool = False
    best_par: Optional[Array] = None
    best_f: Optional[float] = None
    best_g2n: Optional[float] = None
    termination: Termination = field(default_factory=Termination)
    error: Optional[str] = None

    @property
    def status(self) -> Status:
        return self.termination.status

    @property
    def is_running(self) -> bool:
        return self.termination.status is Status.RUNNING

    @property
    def is_terminated(self) -> bool:
        return self.termination.status is not Status.RUNNING

    @property
    def nfg(self) -> int:
        return self.nf + self.ng


@dataclass(frozen=True)
class StepResult:
    """Outcome of a single call to :func:`optistate.state.step`."""

    par: Array
    f: Optional[float]
    g: Optional[Array]
    nf: int
    ng: int
    state: OptimizerState
    restart: bool = False


@dataclass(frozen=True)
class StepSummary:
    """Read-only view of an iteration used for convergence classification."""

    par: Array
    iteration: int
    nf: int
    ng: int
    f: Optional[float]
    g2n: Optional[float]
    ginfn: Optional[float]
    step: Optional[float]
    alpha: Optional[float]
    mu: float
    restart: bool
    checked: bool
    state: OptimizerState


def as_point(par: Any, dim: Optional[int] = None) -> Array:
    """Return ``par`` as a fresh 1-D float array, checking its dimension."""
    try:
        x = np.array(par, dtype=float)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Point must be numeric: {exc}") from exc
    if x.ndim == 0:
        x = x.reshape(1)
    if x.ndim != 1:
        raise ConfigError(f"Point must be one-dimensional, got shape {x.shape}.")
    if x.size == 0:
        raise ConfigError("Point must not be empty.")
    if dim is not None and x.size != dim:
        raise ConfigError(f"Point has dimension {x.size}, expected {dim}.")
    return x


def is_finite(value: Any) -> bool:
    """True if ``value`` (scalar or array) has no NaN or infinite entries."""
    return bool(np.all(np.isfinite(value)))


__all__ = [
    "Array",
    "EPS",
    "Gradient",
    "Objective",
    "Oracle",
    "OptimizerConfig",
    "OptimizerState",
    "SQRT_EPS",
    "Status",
    "StepResult",
    "StepSummary",
    "Termination",
    "TerminationReason",
    "as_point",
    "is_finite",
]
