"""Propagation driver, configuration and results.

Typical use::

    from astroprop.dynamics import compose, two_body, j2_perturbation
    from astroprop.propagator import Integrator, PropagatorConfig, propagate

    config = PropagatorConfig.with_adaptive_step(
        Integrator.DORMAND78, min_step=0.1, max_step=30.0, tolerance=1e-12
    )
    result = propagate(compose(two_body(), j2_perturbation()), epc0, x0, epc1, config)
"""

from astroprop.propagator.config import Integrator, PropagatorConfig
from astroprop.propagator.driver import Propagator, propagate, propagate_for
from astroprop.propagator.result import IntegrationStats, PropagationResult

__all__ = [
    "Integrator",
    "PropagatorConfig",
    "Propagator",
    "propagate",
    "propagate_for",
    "IntegrationStats",
    "PropagationResult",
]
