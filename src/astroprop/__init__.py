"""
astroprop is an embedded Runge-Kutta trajectory propagation library implemented in JAX.
"""

from .constants import (
    JD_MJD_OFFSET,
    MJD2000,
    SECONDS_PER_DAY,
    R_EARTH,
    GM_EARTH,
    J2_EARTH,
)

from .config import set_dtype, get_dtype
from .epoch import Epoch

from .errors import (
    PropagationError,
    EvaluationError,
    StepSizeConvergenceError,
    ConfigurationError,
)

from .integrators import (
    ButcherTableau,
    ErrorNorm,
    IntegrationDetails,
    StepResult,
    StepSizeController,
    rk_step,
    RK4,
    RKF45,
    DP54,
    VERNER56,
    DP78,
    RK89,
)

from .dynamics import (
    CompositeDynamics,
    compose,
    two_body,
    j2_perturbation,
    augment_with_stm,
    stm_initial_state,
    split_stm,
)

from .propagator import (
    Integrator,
    PropagatorConfig,
    Propagator,
    PropagationResult,
    IntegrationStats,
    propagate,
    propagate_for,
)

from .montecarlo import (
    DispersionConfig,
    RunOutcome,
    MonteCarloResult,
    run_monte_carlo,
)

__all__ = [
    # Constants
    "JD_MJD_OFFSET",
    "MJD2000",
    "SECONDS_PER_DAY",
    "R_EARTH",
    "GM_EARTH",
    "J2_EARTH",
    # Config
    "set_dtype",
    "get_dtype",
    # Time
    "Epoch",
    # Errors
    "PropagationError",
    "EvaluationError",
    "StepSizeConvergenceError",
    "ConfigurationError",
    # Integrators
    "ButcherTableau",
    "ErrorNorm",
    "IntegrationDetails",
    "StepResult",
    "StepSizeController",
    "rk_step",
    "RK4",
    "RKF45",
    "DP54",
    "VERNER56",
    "DP78",
    "RK89",
    # Dynamics
    "CompositeDynamics",
    "compose",
    "two_body",
    "j2_perturbation",
    "augment_with_stm",
    "stm_initial_state",
    "split_stm",
    # Propagation
    "Integrator",
    "PropagatorConfig",
    "Propagator",
    "PropagationResult",
    "IntegrationStats",
    "propagate",
    "propagate_for",
    # Monte Carlo
    "DispersionConfig",
    "RunOutcome",
    "MonteCarloResult",
    "run_monte_carlo",
]
