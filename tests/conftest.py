import jax.numpy as jnp
import numpy as np
import pytest

from astroprop.config import set_dtype
from astroprop.constants import GM_EARTH, R_EARTH


@pytest.fixture(autouse=True)
def _ensure_float64():
    """Set float64 precision before every test.

    Tests that switch to float32 (test_config.py) leave the module-wide
    dtype changed; this fixture restores the package default so tolerances
    down to 1e-12 remain meaningful everywhere else.
    """
    set_dtype(jnp.float64)


@pytest.fixture
def leo_state():
    """Slightly eccentric, inclined LEO state at perigee [m, m/s]."""
    a = R_EARTH + 500e3
    e = 0.01
    inc = np.deg2rad(51.6)
    rp = a * (1.0 - e)
    vp = np.sqrt(GM_EARTH * (1.0 + e) / rp)
    return jnp.array([rp, 0.0, 0.0, 0.0, vp * np.cos(inc), vp * np.sin(inc)])


def kepler_propagate(state, dt, gm=GM_EARTH):
    """Analytic two-body propagation with Lagrange f and g coefficients.

    Solves the universal Kepler equation in eccentric-anomaly difference
    form with Newton iterations. Valid for elliptic orbits.

    Args:
        state: Initial ``[r, v]`` [m, m/s].
        dt: Time of flight [s], may be negative.
        gm: Gravitational parameter [m^3/s^2].

    Returns:
        numpy.ndarray: State after ``dt``.
    """
    x = np.asarray(state, dtype=np.float64)
    r0v = x[:3]
    v0v = x[3:6]
    r0 = np.linalg.norm(r0v)
    v0 = np.linalg.norm(v0v)
    a = 1.0 / (2.0 / r0 - v0**2 / gm)
    n = np.sqrt(gm / a**3)
    sigma0 = np.dot(r0v, v0v) / np.sqrt(gm)

    dm = n * dt
    de = dm
    for _ in range(50):
        f_val = (
            de
            - (1.0 - r0 / a) * np.sin(de)
            + sigma0 / np.sqrt(a) * (1.0 - np.cos(de))
            - dm
        )
        f_der = 1.0 - (1.0 - r0 / a) * np.cos(de) + sigma0 / np.sqrt(a) * np.sin(de)
        step = f_val / f_der
        de -= step
        if abs(step) < 1e-15:
            break

    r = a + (r0 - a) * np.cos(de) + sigma0 * np.sqrt(a) * np.sin(de)
    f = 1.0 - a / r0 * (1.0 - np.cos(de))
    g = dt - (de - np.sin(de)) / n
    fdot = -np.sqrt(gm * a) / (r * r0) * np.sin(de)
    gdot = 1.0 - a / r * (1.0 - np.cos(de))

    return np.concatenate([f * r0v + g * v0v, fdot * r0v + gdot * v0v])
