"""Generic explicit Runge-Kutta step executor.

A single function, :func:`rk_step`, advances a state by one step of any
:class:`~astroprop.integrators._tableau.ButcherTableau`. The stage loop is
unrolled in Python over the (static) tableau coefficients, so under
``jax.jit`` each tableau compiles to straight-line code with the zero
coupling coefficients dropped.

The executor never retries: it reports the scaled error of one attempt and
leaves acceptance to the caller.
"""

from __future__ import annotations

from typing import Callable, Sequence

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from astroprop.config import get_dtype
from astroprop.errors import EvaluationError
from astroprop.integrators._adaptive import compute_error_norm
from astroprop.integrators._tableau import ButcherTableau
from astroprop.integrators._types import ErrorNorm, StepResult


def _weighted_sum(coeffs: Sequence[float], k: Sequence[Array]) -> Array | None:
    """Return ``sum(coeffs[j] * k[j])`` skipping zero coefficients."""
    total = None
    for cj, kj in zip(coeffs, k):
        if cj == 0.0:
            continue
        term = cj * kj
        total = term if total is None else total + term
    return total


def rk_step(
    tableau: ButcherTableau,
    dynamics: Callable[[ArrayLike, ArrayLike], Array],
    t: ArrayLike,
    state: ArrayLike,
    dt: ArrayLike,
    rel_tol: float = 1e-12,
    abs_tol: float = 1e-12,
    error_norm: ErrorNorm = ErrorNorm.MAX,
    scale_floor: float = 0.0,
) -> StepResult:
    """Perform one explicit Runge-Kutta step attempt.

    Stage *i* is evaluated at ``t + c[i] * dt`` with the intermediate state
    ``state + dt * sum_j a[i][j] * k_j``. The propagated state uses the
    high-order weights ``b``. For adaptive tableaus the embedded solution
    (weights ``b_low``) is formed as well and the difference between the
    two is reduced to a scaled error norm with
    :func:`~astroprop.integrators._adaptive.compute_error_norm`.

    The function is pure: identical inputs give bit-identical outputs. It is
    compatible with ``jax.jit`` when ``tableau``, ``dynamics`` and
    ``error_norm`` are static.

    Args:
        tableau: Method coefficients.
        dynamics: ODE right-hand side ``f(t, x) -> dx/dt``.
        t: Time of the step start, seconds past the reference epoch.
        state: State vector at ``t``.
        dt: Step size. Negative for backward propagation.
        rel_tol: Relative error tolerance.
        abs_tol: Absolute error tolerance.
        error_norm: Reduction applied to the scaled error components.
        scale_floor: Lower bound on the magnitude used for relative scaling.

    Returns:
        StepResult: Propagated state, step used, scaled error estimate
            (0.0 for fixed-step tableaus) and a flag that is ``False`` when
            any stage derivative was not finite.

    Raises:
        EvaluationError: If a stage derivative does not have the shape of
            the state. Under ``jax.jit`` this surfaces at trace time.

    Examples:
        ```python
        import jax.numpy as jnp
        from astroprop.integrators import RK4, rk_step
        def harmonic(t, x):
            return jnp.array([x[1], -x[0]])
        result = rk_step(RK4, harmonic, 0.0, jnp.array([1.0, 0.0]), 0.1)
        result.state  # ~[cos(0.1), -sin(0.1)]
        ```
    """
    dtype = get_dtype()
    t = jnp.asarray(t, dtype=dtype)
    state = jnp.asarray(state, dtype=dtype)
    dt = jnp.asarray(dt, dtype=dtype)

    k: list[Array] = []
    finite = jnp.asarray(True)
    for i in range(tableau.stages):
        incr = _weighted_sum(tableau.a[i], k)
        x_i = state if incr is None else state + dt * incr
        k_i = jnp.asarray(dynamics(t + tableau.c[i] * dt, x_i), dtype=dtype)
        if k_i.shape != state.shape:
            raise EvaluationError(
                f"{tableau.name} stage {i}: derivative shape {k_i.shape} "
                f"does not match state shape {state.shape}"
            )
        finite = finite & jnp.all(jnp.isfinite(k_i))
        k.append(k_i)

    state_high = state + dt * _weighted_sum(tableau.b, k)

    if not tableau.adaptive:
        return StepResult(
            state=state_high,
            dt_used=dt,
            error_estimate=jnp.asarray(0.0, dtype=dtype),
            finite=finite,
        )

    # high - low, formed from the weight differences to avoid cancellation
    diff = tuple(bh - bl for bh, bl in zip(tableau.b, tableau.b_low))
    error_vec = dt * _weighted_sum(diff, k)
    error = compute_error_norm(
        error_vec, state_high, state, abs_tol, rel_tol, error_norm, scale_floor
    )

    return StepResult(
        state=state_high,
        dt_used=dt,
        error_estimate=error,
        finite=finite & jnp.isfinite(error),
    )
