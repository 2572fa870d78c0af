"""Type definitions for numerical integrators.

Provides the core data types used by the step executor and the step-size
controller:

- :class:`StepResult`: Output of one executor invocation, containing the
  propagated state, the step used, the scaled error estimate and a flag
  telling whether every stage derivative was finite.
- :class:`IntegrationDetails`: Step size, error and attempt count of the
  latest accepted step.
- :class:`ErrorNorm`: How the componentwise scaled error is reduced to the
  scalar compared against 1.0.

:class:`StepResult` is a :class:`~typing.NamedTuple`, which JAX treats as a
pytree automatically, so it can be returned from a ``jax.jit`` compiled
kernel.
"""

from __future__ import annotations

import enum
from typing import NamedTuple

from jax import Array


class StepResult(NamedTuple):
    """Result of a single Runge-Kutta step attempt.

    For fixed-step tableaus ``error_estimate`` is always 0.0.

    Attributes:
        state: High-order state at ``t + dt_used``.
        dt_used: Step size used for this attempt.
        error_estimate: Scaled error norm. A value <= 1.0 means the step
            met the tolerance. Always 0.0 for fixed-step tableaus.
        finite: ``True`` when every stage derivative was finite.
    """

    state: Array
    dt_used: Array
    error_estimate: Array
    finite: Array


class IntegrationDetails(NamedTuple):
    """Details of the latest accepted integration step.

    Attributes:
        step: Step size used [s].
        error: Scaled error norm of the accepted attempt.
        attempts: Number of attempts needed, 1 when accepted outright.
    """

    step: float
    error: float
    attempts: int


class ErrorNorm(enum.Enum):
    """Reduction of the componentwise scaled error to a scalar.

    - ``MAX``: largest scaled component (infinity norm).
    - ``RMS``: root-mean-square of the scaled components.
    - ``RSS_PV``: root-sum-square over the position block and over the
      remaining (velocity and auxiliary) block separately; the larger of
      the two.
    """

    MAX = "max"
    RMS = "rms"
    RSS_PV = "rss_pv"
