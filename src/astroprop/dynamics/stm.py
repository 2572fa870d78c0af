"""State transition matrix augmentation.

Wraps a dynamics function so that the propagator integrates the state and
its state transition matrix (STM) together. The augmented vector is

.. math::

    y = [x, \\mathrm{vec}(\\Phi)]

with :math:`\\Phi` flattened row-major, and its derivative is

.. math::

    \\dot{x} = f(t, x), \\qquad \\dot{\\Phi} = \\frac{\\partial f}{\\partial x} \\Phi

The Jacobian is computed with ``jax.jacfwd``, so any dynamics written with
``jax.numpy`` can be augmented without hand-derived partials.
"""

from __future__ import annotations

from collections.abc import Callable

import jax
import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from astroprop.config import get_dtype


def augment_with_stm(
    dynamics: Callable[[ArrayLike, ArrayLike], Array],
    n: int,
) -> Callable[[ArrayLike, ArrayLike], Array]:
    """Return dynamics on the STM-augmented state.

    Args:
        dynamics: Dynamics ``f(t, x) -> dx/dt`` on an ``n``-dimensional
            state.
        n: Dimension of the un-augmented state.

    Returns:
        Callable ``g(t, y) -> dy/dt`` on vectors of length ``n + n*n``.

    Examples:
        ```python
        import jax.numpy as jnp
        from astroprop.dynamics import augment_with_stm, stm_initial_state, two_body
        f = augment_with_stm(two_body(), 6)
        y0 = stm_initial_state(jnp.array([6878e3, 0.0, 0.0, 0.0, 7612.0, 0.0]))
        dy = f(0.0, y0)
        ```
    """

    def stm_dynamics(t: ArrayLike, y: ArrayLike) -> Array:
        y = jnp.asarray(y, dtype=get_dtype())
        x = y[:n]
        phi = y[n:].reshape((n, n))

        dx = dynamics(t, x)
        jac = jax.jacfwd(lambda xi: dynamics(t, xi))(x)
        return jnp.concatenate([dx, (jac @ phi).reshape(-1)])

    return stm_dynamics


def stm_initial_state(x: ArrayLike) -> Array:
    """Append an identity STM to a state vector.

    Args:
        x: State vector of length ``n``.

    Returns:
        jax.Array: Augmented vector of length ``n + n*n``.
    """
    x = jnp.asarray(x, dtype=get_dtype())
    n = x.shape[0]
    return jnp.concatenate([x, jnp.eye(n, dtype=x.dtype).reshape(-1)])


def split_stm(y: ArrayLike, n: int) -> tuple[Array, Array]:
    """Split an augmented vector into the state and its STM.

    Args:
        y: Augmented vector of length ``n + n*n``.
        n: Dimension of the un-augmented state.

    Returns:
        tuple: ``(x, phi)`` with shapes ``(n,)`` and ``(n, n)``.

    Raises:
        ValueError: If ``y`` does not have length ``n + n*n``.
    """
    y = jnp.asarray(y, dtype=get_dtype())
    if y.shape != (n + n * n,):
        raise ValueError(f"augmented state must have length {n + n * n}, got {y.shape}")
    return y[:n], y[n:].reshape((n, n))
