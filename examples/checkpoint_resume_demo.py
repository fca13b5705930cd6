"""
Example: Driving, checkpointing and resuming an optimization

This example minimizes the Rosenbrock function three ways: with the
``minimize`` driver, with a hand-written loop over ``step`` and
``check_convergence``, and with a loop that is interrupted, written to JSON
and resumed from the checkpoint.
"""

import numpy as np

from optistate import (
    Oracle,
    check_convergence,
    init_state,
    minimize,
    state_from_json,
    state_to_json,
    step,
    step_summary,
)


def rosen(x):
    return float((1 - x[0]) ** 2 + 100 * (x[1] - x[0] ** 2) ** 2)


def rosen_grad(x):
    return np.array(
        [
            -2 * (1 - x[0]) - 400 * x[0] * (x[1] - x[0] ** 2),
            200 * (x[1] - x[0] ** 2),
        ]
    )


X0 = np.array([-1.2, 1.0])
OPTIONS = dict(max_iter=200, abs_tol=None, rel_tol=None, step_tol=None, grad_tol=1e-8)


def run(state, par, oracle, max_steps=None):
    """Advance ``state`` until it terminates or ``max_steps`` steps were taken."""
    taken = 0
    while state.is_running and (max_steps is None or taken < max_steps):
        result = step(state, par, oracle)
        par_old, par = par, result.par
        state = check_convergence(step_summary(result.state, par, oracle, par_old))
        taken += 1
    return state, par


def example_driver():
    """Example: run to completion with the driver."""
    print("=" * 60)
    print("Example 1: minimize() with L-BFGS")
    print("=" * 60)

    res = minimize(rosen, rosen_grad, X0, method="lbfgs", **OPTIONS)
    print(f"Reason: {res.reason}")
    print(f"Solution: {res.par}")
    print(f"Iterations: {res.iter}  nf = {res.nf}  ng = {res.ng}")
    print()
    return res


def example_external_loop():
    """Example: the caller owns the loop."""
    print("=" * 60)
    print("Example 2: External loop")
    print("=" * 60)

    oracle = Oracle(fn=rosen, gr=rosen_grad)
    state = init_state("lbfgs", X0, oracle, **OPTIONS)
    state = check_convergence(step_summary(state, X0, oracle))
    state, par = run(state, X0, oracle)
    print(f"Reason: {state.termination.reason.value}")
    print(f"Solution: {par}")
    print()
    return state


def example_checkpoint():
    """Example: interrupt, serialize, resume."""
    print("=" * 60)
    print("Example 3: Checkpoint and resume")
    print("=" * 60)

    oracle = Oracle(fn=rosen, gr=rosen_grad)
    state = init_state("lbfgs", X0, oracle, **OPTIONS)
    state = check_convergence(step_summary(state, X0, oracle))
    state, par = run(state, X0, oracle, max_steps=10)

    checkpoint = state_to_json(state)
    print(f"Checkpoint after {state.iteration} iterations: {len(checkpoint)} bytes")

    restored = state_from_json(checkpoint)
    restored, par = run(restored, par, oracle)
    print(f"Reason: {restored.termination.reason.value}")
    print(f"Solution: {par}")
    print()
    return restored


if __name__ == "__main__":
    direct = example_driver()
    looped = example_external_loop()
    resumed = example_checkpoint()
    same = direct.iter == looped.iteration == resumed.iteration
    print(f"All runs agree on the iteration count: {same}")
