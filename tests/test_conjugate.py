import numpy as np
import pytest

from optistate import BETAS, ConfigError, minimize
from optistate.conjugate import CGMemory, ConjugateGradient


def quad_fun(x: np.ndarray) -> float:
    return float(x[0] ** 2 + 10 * x[1] ** 2)


def quad_grad(x: np.ndarray) -> np.ndarray:
    return np.array([2 * x[0], 20 * x[1]])


@pytest.mark.parametrize("beta", ["fr", "pr", "pr+", "hs", "dy", "hz"])
def test_beta_formulas_on_orthogonal_gradients(beta):
    g = np.array([1.0, 0.0])
    g_prev = np.array([0.0, 1.0])
    p_prev = np.array([0.0, -1.0])
    assert BETAS[beta](g, g_prev, p_prev) == pytest.approx(1.0)


def test_pr_plus_clips_negative_beta():
    g = np.array([0.0, 0.5])
    g_prev = np.array([0.0, 1.0])
    p_prev = np.array([0.0, -1.0])
    assert BETAS["pr"](g, g_prev, p_prev) == pytest.approx(-0.25)
    assert BETAS["pr+"](g, g_prev, p_prev) == 0.0


def test_beta_with_zero_denominator_is_zero():
    g = np.array([1.0, 0.0])
    assert BETAS["hs"](g, g, np.array([0.0, 1.0])) == 0.0
    assert BETAS["fr"](g, np.zeros(2), np.zeros(2)) == 0.0


def test_first_direction_is_steepest_descent():
    method = ConjugateGradient()
    g = np.array([2.0, -1.0])
    p, _ = method.direction(method.init_memory(2), g)
    assert np.allclose(p, -g)


def test_non_descent_direction_falls_back_to_steepest_descent():
    method = ConjugateGradient(beta="fr")
    memory = CGMemory(prev_g=np.array([0.1, 0.0]), prev_p=np.array([1.0, 0.0]))
    g = np.array([1.0, 0.0])
    p, _ = method.direction(memory, g)
    assert np.allclose(p, -g)


def test_update_records_gradient_and_direction():
    method = ConjugateGradient()
    memory = method.update(
        method.init_memory(2), np.ones(2), None, np.array([1.0, 2.0]), np.array([-1.0, -2.0])
    )
    assert not method.is_fresh(memory)
    assert np.allclose(memory.prev_g, [1.0, 2.0])
    assert np.allclose(memory.prev_p, [-1.0, -2.0])


def test_unknown_beta_is_rejected():
    with pytest.raises(ConfigError):
        ConjugateGradient(beta="xx")


@pytest.mark.parametrize("beta", sorted(BETAS))
def test_cg_solves_quadratic(beta):
    res = minimize(
        quad_fun, quad_grad, [3.0, -2.0], method="cg", method_options={"beta": beta},
        max_iter=200, abs_tol=None, rel_tol=None, step_tol=None, grad_tol=1e-6,
    )
    assert res.reason == "grad_tol"
    assert np.allclose(res.par, 0.0, atol=1e-6)
