"""Adaptive step-size control utilities for embedded Runge-Kutta methods.

Provides the error-norm computation used inside the step executor and the
step-size laws used by the controller. The algorithms follow the standard
embedded Runge-Kutta error control approach:

1. Compute a normalized error using mixed absolute/relative tolerances.
2. Accept the step if the normalized error is <= 1.0.
3. Predict the next step size using the error and the method order.

The error norm runs inside the (possibly jitted) step kernel and is written
with ``jnp``. The step-size laws run in the Python driver loop on concrete
floats and use :mod:`math`.
"""

from __future__ import annotations

import math

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from astroprop.config import get_dtype
from astroprop.integrators._types import ErrorNorm


def compute_error_norm(
    error_vec: ArrayLike,
    state_new: ArrayLike,
    state_old: ArrayLike,
    abs_tol: float,
    rel_tol: float,
    norm: ErrorNorm = ErrorNorm.MAX,
    scale_floor: float = 0.0,
) -> Array:
    """Compute the normalized error norm for adaptive step-size control.

    The per-component tolerance is:

    .. math::

        \\text{tol}_i = \\text{abs\\_tol} + \\text{rel\\_tol}
            \\cdot \\max(|y^{\\text{new}}_i|, |y^{\\text{old}}_i|, \\text{floor})

    and the componentwise ratios ``|error_i| / tol_i`` are reduced with the
    selected :class:`ErrorNorm`. The step is accepted when the returned
    value is <= 1.0.

    Args:
        error_vec: Difference between high-order and low-order solutions.
        state_new: High-order solution (candidate state).
        state_old: State at the beginning of the step.
        abs_tol: Absolute error tolerance.
        rel_tol: Relative error tolerance.
        norm: Reduction applied to the scaled components.
        scale_floor: Lower bound on the magnitude used for relative scaling.

    Returns:
        jax.Array: Scalar normalized error. Step is accepted if <= 1.0.
    """
    error_vec = jnp.asarray(error_vec, dtype=get_dtype())
    state_new = jnp.asarray(state_new, dtype=get_dtype())
    state_old = jnp.asarray(state_old, dtype=get_dtype())

    magnitude = jnp.maximum(jnp.abs(state_new), jnp.abs(state_old))
    magnitude = jnp.maximum(magnitude, scale_floor)
    scaled = jnp.abs(error_vec) / (abs_tol + rel_tol * magnitude)

    if norm is ErrorNorm.MAX:
        return jnp.max(scaled)
    if norm is ErrorNorm.RMS:
        return jnp.sqrt(jnp.mean(scaled**2))
    if norm is ErrorNorm.RSS_PV:
        if scaled.shape[0] < 6:
            raise ValueError(
                f"RSS_PV error norm needs a state of dimension >= 6, got {scaled.shape[0]}"
            )
        pos = jnp.sqrt(jnp.sum(scaled[:3] ** 2))
        vel = jnp.sqrt(jnp.sum(scaled[3:] ** 2))
        return jnp.maximum(pos, vel)
    raise ValueError(f"Unknown error norm: {norm!r}")


def accepted_step_size(
    error: float,
    h: float,
    order: int,
    safety_factor: float,
    max_scale_factor: float,
    min_step: float,
    max_step: float,
) -> float:
    """Step size to propose after an accepted step.

    .. math::

        h_{\\text{next}} = h \\cdot \\min\\left(G,
            S \\cdot E^{-1/(q+1)}\\right)

    where *S* is the safety factor, *G* the maximum growth factor and *q*
    the embedded order. A zero error grows by *G*. The magnitude is clamped
    to ``[min_step, max_step]`` and the sign of ``h`` is preserved for
    backward integration.

    Args:
        error: Scaled error norm of the accepted step (<= 1.0).
        h: Step size just taken (may be negative).
        order: Embedded order ``q`` of the tableau.
        safety_factor: Multiplicative safety factor (typically 0.9).
        max_scale_factor: Maximum allowed ratio ``|h_next| / |h|``.
        min_step: Absolute minimum step size.
        max_step: Absolute maximum step size.

    Returns:
        float: Suggested next step size with same sign as ``h``.
    """
    if error > 0.0:
        scale = min(max_scale_factor, safety_factor * error ** (-1.0 / (order + 1.0)))
    else:
        scale = max_scale_factor

    abs_h_next = min(max(abs(h) * scale, min_step), max_step)
    return math.copysign(abs_h_next, h)


def rejected_step_size(
    error: float,
    h: float,
    order: int,
    safety_factor: float,
    min_scale_factor: float,
    min_step: float,
) -> float:
    """Step size to retry with after a rejected step.

    .. math::

        h_{\\text{retry}} = h \\cdot \\max\\left(s,
            S \\cdot E^{-1/q}\\right)

    where *s* is the minimum shrink factor. The magnitude is clamped below
    by ``min_step`` and the sign of ``h`` is preserved.

    Args:
        error: Scaled error norm of the rejected step (> 1.0).
        h: Step size just attempted (may be negative).
        order: Embedded order ``q`` of the tableau.
        safety_factor: Multiplicative safety factor (typically 0.9).
        min_scale_factor: Minimum allowed ratio ``|h_retry| / |h|``.
        min_step: Absolute minimum step size.

    Returns:
        float: Step size for the next attempt with same sign as ``h``.
    """
    scale = max(min_scale_factor, safety_factor * error ** (-1.0 / order))
    return math.copysign(max(abs(h) * scale, min_step), h)
