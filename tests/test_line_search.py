import numpy as np
import pytest

from optistate import OptimizerConfig, Oracle
from optistate.line_search import backtracking_armijo, wolfe_line_search
from optistate.oracle import CountingOracle


def quadratic_fun(x: np.ndarray) -> float:
    return float(x.T @ x)


def quadratic_grad(x: np.ndarray) -> np.ndarray:
    return 2 * x


def rosen(x: np.ndarray) -> float:
    return (1 - x[0]) ** 2 + 100 * (x[1] - x[0] ** 2) ** 2


def rosen_grad(x: np.ndarray) -> np.ndarray:
    return np.array(
        [
            -2 * (1 - x[0]) - 400 * x[0] * (x[1] - x[0] ** 2),
            200 * (x[1] - x[0] ** 2),
        ]
    )


def counting(fn, gr, **config) -> CountingOracle:
    return CountingOracle(Oracle(fn=fn, gr=gr), OptimizerConfig(**config))


def test_backtracking_armijo_halves_until_sufficient_decrease():
    oracle = counting(quadratic_fun, quadratic_grad)
    x = np.array([1.0, -2.0])
    grad = quadratic_grad(x)
    res = backtracking_armijo(oracle, x, -grad, quadratic_fun(x), grad)
    assert res.success
    assert res.alpha == 0.5
    assert res.f == 0.0
    assert res.g is None
    assert (res.nf, res.ng) == (2, 0)
    assert oracle.nf == 2


def test_backtracking_armijo_raises_on_invalid_params():
    oracle = counting(quadratic_fun, quadratic_grad)
    x = np.array([1.0])
    grad = quadratic_grad(x)
    with pytest.raises(ValueError):
        backtracking_armijo(oracle, x, -grad, 1.0, grad, c1=1.5)
    with pytest.raises(ValueError):
        backtracking_armijo(oracle, x, -grad, 1.0, grad, rho=1.1)
    with pytest.raises(ValueError):
        backtracking_armijo(oracle, x, grad, 1.0, grad)
    assert oracle.nf == 0


def test_wolfe_conditions_rosenbrock():
    oracle = counting(rosen, rosen_grad)
    x = np.array([-1.2, 1.0])
    grad = rosen_grad(x)
    direction = -grad
    res = wolfe_line_search(oracle, x, direction, rosen(x), grad)
    assert res.success
    alpha = res.alpha
    slope = grad @ direction
    assert res.f <= rosen(x) + 1e-4 * alpha * slope
    assert abs(res.g @ direction) <= 0.9 * abs(slope)
    assert np.allclose(res.g, rosen_grad(x + alpha * direction))
    assert res.nf == res.ng == oracle.nf


def test_wolfe_expands_short_initial_step():
    oracle = counting(quadratic_fun, quadratic_grad)
    x = np.array([1.0, -2.0])
    grad = quadratic_grad(x)
    res = wolfe_line_search(oracle, x, -grad, quadratic_fun(x), grad, alpha0=1e-3, c2=0.1)
    assert res.success
    assert res.alpha > 1e-3
    assert abs(res.g @ -grad) <= 0.1 * abs(grad @ -grad)


def test_wolfe_raises_on_invalid_params():
    oracle = counting(quadratic_fun, quadratic_grad)
    x = np.array([1.0])
    grad = quadratic_grad(x)
    with pytest.raises(ValueError):
        wolfe_line_search(oracle, x, -grad, 1.0, grad, c1=0.5, c2=0.4)
    with pytest.raises(ValueError):
        wolfe_line_search(oracle, x, grad, 1.0, grad)


def test_armijo_budget_exhausted_without_decrease_returns_zero_step():
    oracle = counting(quadratic_fun, quadratic_grad, max_fn=1)
    x = np.array([1.0, -2.0])
    grad = quadratic_grad(x)
    f0 = quadratic_fun(x)
    res = backtracking_armijo(oracle, x, -grad, f0, grad)
    assert res.exhausted
    assert not res.success
    assert res.alpha == 0.0
    assert res.f == f0
    assert oracle.nf == 1


def test_armijo_budget_exhausted_returns_best_decrease():
    oracle = counting(quadratic_fun, quadratic_grad, max_fn=1)
    x = np.array([1.0, -2.0])
    grad = quadratic_grad(x)
    res = backtracking_armijo(oracle, x, -grad, quadratic_fun(x), grad, alpha0=0.9, c1=0.9)
    assert res.exhausted
    assert res.alpha == 0.9
    assert res.f == pytest.approx(quadratic_fun(x - 0.9 * grad))


def test_wolfe_needs_a_paired_evaluation():
    oracle = counting(quadratic_fun, quadratic_grad, max_fg=1)
    x = np.array([1.0, -2.0])
    grad = quadratic_grad(x)
    res = wolfe_line_search(oracle, x, -grad, quadratic_fun(x), grad)
    assert res.exhausted
    assert res.alpha == 0.0
    assert (oracle.nf, oracle.ng) == (0, 0)


def test_non_finite_trial_ends_search():
    def fun(x):
        return float("nan") if np.any(np.abs(x) > 10) else quadratic_fun(x)

    oracle = counting(fun, quadratic_grad)
    x = np.array([1.0, -2.0])
    grad = quadratic_grad(x)
    res = backtracking_armijo(oracle, x, -grad, quadratic_fun(x), grad, alpha0=10.0)
    assert not res.finite
    assert not res.success
    assert oracle.nf == 1


def test_line_search_iteration_cap():
    oracle = counting(quadratic_fun, quadratic_grad)
    x = np.array([1.0, -2.0])
    grad = quadratic_grad(x)
    res = backtracking_armijo(oracle, x, -grad, quadratic_fun(x), grad, alpha0=100.0, max_iter=2)
    assert not res.success
    assert not res.exhausted
    assert res.alpha == 0.0
    assert oracle.nf == 2
