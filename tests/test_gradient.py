from dataclasses import replace

import numpy as np
import pytest

from optistate import ConfigError, Oracle, init_state, minimize, step
from optistate.gradient import (
    DeltaBarDelta,
    DeltaBarDeltaMemory,
    Momentum,
    MomentumMemory,
    SteepestDescent,
)
from optistate.methods import Method


def quad_fun(x: np.ndarray) -> float:
    return float(x[0] ** 2 + 10 * x[1] ** 2)


def quad_grad(x: np.ndarray) -> np.ndarray:
    return np.array([2 * x[0], 20 * x[1]])


def test_steepest_descent_direction():
    method = SteepestDescent()
    g = np.array([1.0, -3.0])
    p, memory = method.direction(method.init_memory(2), g)
    assert np.allclose(p, -g)
    assert method.is_fresh(memory)


def test_initial_step_reuses_previous_slope_ratio():
    method = SteepestDescent()
    g = np.array([1.0, 0.0])
    p = np.array([-1.0, 0.0])
    assert method.initial_step(None, g, p, 0.5, -4.0) == pytest.approx(2.0)


def test_initial_step_defaults_to_unit_displacement():
    method = SteepestDescent()
    p = np.array([-3.0, -4.0])
    assert method.initial_step(None, -p, p, None, None) == pytest.approx(0.2)


def test_steepest_descent_decreases_quadratic():
    res = minimize(
        quad_fun, quad_grad, [3.0, -2.0], method="sd",
        max_iter=200, abs_tol=None, rel_tol=None, step_tol=None,
    )
    assert res.reason == "max_iter"
    assert res.f < 1e-4
    assert res.nf > 0


@pytest.mark.parametrize(
    "options",
    [
        {"line_search": "newton"},
        {"c1": 1.5},
        {"line_search": "wolfe", "c1": 0.5, "c2": 0.4},
        {"max_ls": 0},
    ],
)
def test_method_rejects_invalid_line_search_settings(options):
    with pytest.raises(ConfigError):
        SteepestDescent(**options)


def test_momentum_coefficient_schedules():
    memory = MomentumMemory(velocity=np.zeros(2), t=0)
    assert Momentum(mu=0.8).momentum(memory) == 0.8
    nesterov = Momentum(mu=0.9, schedule="nesterov")
    assert nesterov.momentum(memory) == pytest.approx(0.4)
    assert nesterov.momentum(MomentumMemory(np.zeros(2), t=95)) == pytest.approx(0.9)


def test_momentum_blends_previous_displacement():
    method = Momentum(mu=0.5)
    memory = MomentumMemory(velocity=np.array([2.0, 0.0]), t=1)
    s = np.array([0.0, 1.0])
    assert np.allclose(method.displacement(memory, s, 0.5), [1.0, 1.0])
    memory = method.update(memory, np.array([1.0, 1.0]), None, np.zeros(2), -s)
    assert np.allclose(memory.velocity, [1.0, 1.0])
    assert memory.t == 2


@pytest.mark.parametrize(
    "options", [{"mu": 1.0}, {"mu": -0.1}, {"schedule": "linear"}, {"restart": "grad"}]
)
def test_momentum_rejects_invalid_options(options):
    with pytest.raises(ConfigError):
        Momentum(**options)


def test_momentum_restarts_when_function_increases():
    oracle = Oracle(fn=quad_fun, gr=quad_grad)
    method = Momentum(mu=0.9, restart="fn")
    state = init_state(method, [1.0, 1.0], oracle)
    state = replace(state, memory=MomentumMemory(velocity=np.array([100.0, 100.0]), t=1))
    res = step(state, [1.0, 1.0], oracle)
    assert res.restart
    assert res.state.restart
    assert np.allclose(res.par, [1.0, 1.0])
    assert res.state.memory.t == 0
    assert not np.any(res.state.memory.velocity)
    assert res.state.iteration == 1


def test_momentum_without_restart_accepts_increase():
    oracle = Oracle(fn=quad_fun, gr=quad_grad)
    state = init_state(Momentum(mu=0.9), [1.0, 1.0], oracle)
    state = replace(state, memory=MomentumMemory(velocity=np.array([100.0, 100.0]), t=1))
    res = step(state, [1.0, 1.0], oracle)
    assert not res.restart
    assert quad_fun(res.par) > quad_fun(np.array([1.0, 1.0]))


def test_delta_bar_delta_gain_adaptation():
    method = DeltaBarDelta(kappa=0.2, phi=0.5, theta=0.7)
    memory = DeltaBarDeltaMemory(
        gains=np.ones(3),
        delta_bar=np.array([1.0, -1.0, 0.0]),
        velocity=np.zeros(3),
    )
    s = np.array([0.1, 0.2, 0.3])
    memory = method.update(memory, s, None, np.ones(3), -s)
    assert np.allclose(memory.gains, [1.2, 0.5, 1.0])
    assert np.allclose(memory.delta_bar, [1.0, -0.4, 0.3])
    assert np.allclose(memory.velocity, s)
    assert memory.t == 1


def test_delta_bar_delta_gains_floor():
    method = DeltaBarDelta(phi=0.9, min_gain=0.5)
    memory = DeltaBarDeltaMemory(
        gains=np.ones(1), delta_bar=np.array([-1.0]), velocity=np.zeros(1), t=3
    )
    memory = method.update(memory, np.zeros(1), None, np.ones(1), np.zeros(1))
    assert memory.gains[0] == 0.5


def test_delta_bar_delta_scales_direction_by_gains():
    method = DeltaBarDelta()
    memory = DeltaBarDeltaMemory(
        gains=np.array([2.0, 0.5]), delta_bar=np.zeros(2), velocity=np.zeros(2)
    )
    p, _ = method.direction(memory, np.array([1.0, 1.0]))
    assert np.allclose(p, [-2.0, -0.5])


@pytest.mark.parametrize("tag", ["sd", "cg", "bfgs", "lbfgs", "momentum", "dbd"])
def test_every_method_decreases_objective(tag):
    x0 = np.array([3.0, -2.0])
    res = minimize(quad_fun, quad_grad, x0, method=tag, max_iter=30)
    assert res.f < quad_fun(x0)
    assert isinstance(res.state.method, Method)
    assert res.state.method.name == tag
