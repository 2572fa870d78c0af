"""Reference gravity contributors for Cartesian orbit states.

Both contributors act on a state whose first six components are the ECI
position and velocity ``[x, y, z, vx, vy, vz]`` in [m, m/s]. Any further
components receive a zero derivative, so the contributors can be composed
with dynamics that carry extra states.

- :func:`two_body` supplies the kinematics (position rate equals velocity)
  and the point-mass acceleration.
- :func:`j2_perturbation` supplies only the J2 zonal acceleration and a
  zero kinematic part, so it is meant to be composed with :func:`two_body`.
"""

from __future__ import annotations

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from astroprop.config import get_dtype
from astroprop.constants import GM_EARTH, J2_EARTH, R_EARTH
from astroprop.dynamics.composite import Contributor


def accel_point_mass(r_object: ArrayLike, gm: float) -> Array:
    """Acceleration due to a point mass at the origin.

    Args:
        r_object: Position of the object [m].  Shape ``(3,)`` or longer
            (only the first 3 elements are used).
        gm: Gravitational parameter of the central body [m^3/s^2].

    Returns:
        Acceleration vector [m/s^2], shape ``(3,)``.

    Examples:
        ```python
        import jax.numpy as jnp
        from astroprop.constants import R_EARTH, GM_EARTH
        from astroprop.dynamics import accel_point_mass
        a = accel_point_mass(jnp.array([R_EARTH, 0.0, 0.0]), GM_EARTH)
        ```
    """
    r = jnp.asarray(r_object, dtype=get_dtype())[:3]
    r_norm = jnp.linalg.norm(r)
    return -gm * r / r_norm**3


def accel_j2(r_object: ArrayLike, gm: float, j2: float, radius: float) -> Array:
    """Acceleration due to the J2 zonal harmonic.

    .. math::

        \\mathbf{a} = -\\frac{3}{2} \\frac{J_2 \\mu R^2}{r^5}
            \\begin{bmatrix}
            x (1 - 5 z^2 / r^2) \\\\
            y (1 - 5 z^2 / r^2) \\\\
            z (3 - 5 z^2 / r^2)
            \\end{bmatrix}

    Args:
        r_object: Position of the object in ECI [m].
        gm: Gravitational parameter [m^3/s^2].
        j2: Un-normalized J2 coefficient.
        radius: Reference radius of the gravity field [m].

    Returns:
        Acceleration vector [m/s^2], shape ``(3,)``.
    """
    r = jnp.asarray(r_object, dtype=get_dtype())[:3]
    r2 = jnp.dot(r, r)
    r_norm = jnp.sqrt(r2)
    z2_r2 = r[2] ** 2 / r2

    factor = -1.5 * j2 * gm * radius**2 / r_norm**5
    return factor * jnp.array(
        [
            r[0] * (1.0 - 5.0 * z2_r2),
            r[1] * (1.0 - 5.0 * z2_r2),
            r[2] * (3.0 - 5.0 * z2_r2),
        ]
    )


def _pad(head: Array, state: Array) -> Array:
    """Zero-extend a 6-element derivative to the full state length."""
    n_extra = state.shape[0] - 6
    if n_extra < 0:
        raise ValueError(f"orbit state must have at least 6 components, got {state.shape[0]}")
    if n_extra == 0:
        return head
    return jnp.concatenate([head, jnp.zeros(n_extra, dtype=head.dtype)])


def two_body(gm: float = GM_EARTH) -> Contributor:
    """Point-mass two-body dynamics contributor.

    Args:
        gm: Gravitational parameter of the central body [m^3/s^2].

    Returns:
        Callable ``f(t, state) -> [v, a, 0...]``.

    Examples:
        ```python
        import jax.numpy as jnp
        from astroprop.dynamics import two_body
        f = two_body()
        dx = f(0.0, jnp.array([6878e3, 0.0, 0.0, 0.0, 7612.0, 0.0]))
        ```
    """

    def two_body_dynamics(t: ArrayLike, state: ArrayLike) -> Array:
        state = jnp.asarray(state, dtype=get_dtype())
        a = accel_point_mass(state, gm)
        return _pad(jnp.concatenate([state[3:6], a]), state)

    return two_body_dynamics


def j2_perturbation(
    gm: float = GM_EARTH,
    j2: float = J2_EARTH,
    radius: float = R_EARTH,
) -> Contributor:
    """J2 zonal perturbation contributor.

    Args:
        gm: Gravitational parameter [m^3/s^2].
        j2: Un-normalized J2 coefficient.
        radius: Reference radius [m].

    Returns:
        Callable ``f(t, state) -> [0, 0, 0, a_j2, 0...]``.
    """

    def j2_dynamics(t: ArrayLike, state: ArrayLike) -> Array:
        state = jnp.asarray(state, dtype=get_dtype())
        a = accel_j2(state, gm, j2, radius)
        return _pad(jnp.concatenate([jnp.zeros(3, dtype=a.dtype), a]), state)

    return j2_dynamics
