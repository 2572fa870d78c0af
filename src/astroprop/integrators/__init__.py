"""Explicit Runge-Kutta integrators for trajectory propagation.

Provides Butcher tableaus for fixed-step and embedded (adaptive) methods,
a generic step executor and the adaptive step-size controller. Everything
numeric is implemented in JAX for compatibility with ``jax.jit``,
``jax.vmap``, and automatic differentiation.

Available tableaus:

- :data:`RK4` -- Classic 4th-order Runge-Kutta (fixed step)
- :data:`RKF45` -- Runge-Kutta-Fehlberg 4(5)
- :data:`DP54` -- Dormand-Prince 5(4)
- :data:`VERNER56` -- Verner 6(5)
- :data:`DP78` -- Dormand-Prince 8(7)
- :data:`RK89` -- Verner 9(8)

Every tableau is advanced with the same executor::

    result = rk_step(tableau, dynamics, t, state, dt)

where ``dynamics(t, x) -> dx`` defines the ODE right-hand side, and the
result is a :class:`StepResult` named tuple.
"""

from astroprop.integrators._adaptive import (
    accepted_step_size,
    compute_error_norm,
    rejected_step_size,
)
from astroprop.integrators._controller import StepSizeController
from astroprop.integrators._step import rk_step
from astroprop.integrators._tableau import ButcherTableau
from astroprop.integrators._types import ErrorNorm, IntegrationDetails, StepResult
from astroprop.integrators.dp54 import DP54
from astroprop.integrators.dp78 import DP78
from astroprop.integrators.rk4 import RK4
from astroprop.integrators.rk89 import RK89
from astroprop.integrators.rkf45 import RKF45
from astroprop.integrators.verner56 import VERNER56

__all__ = [
    "ButcherTableau",
    "ErrorNorm",
    "IntegrationDetails",
    "StepResult",
    "StepSizeController",
    "rk_step",
    "compute_error_norm",
    "accepted_step_size",
    "rejected_step_size",
    "RK4",
    "RKF45",
    "DP54",
    "VERNER56",
    "DP78",
    "RK89",
]
