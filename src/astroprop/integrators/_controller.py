"""Adaptive step-size controller.

One :class:`StepSizeController` is owned by each propagation. It holds the
step to propose next and the attempt counter of the step in progress, and
applies the accept/reject laws from :mod:`astroprop.integrators._adaptive`.
"""

from __future__ import annotations

import logging
from typing import Any

from astroprop.errors import StepSizeConvergenceError
from astroprop.integrators._adaptive import accepted_step_size, rejected_step_size
from astroprop.integrators._types import IntegrationDetails

logger = logging.getLogger(__name__)


class StepSizeController:
    """Mutable step-size state for one adaptive propagation.

    Args:
        order: Embedded order ``q`` of the tableau in use.
        initial_step: First step to propose. Its sign sets the direction.
        min_step: Minimum step magnitude [s].
        max_step: Maximum step magnitude [s].
        max_attempts: Maximum attempts for a single step.
        safety_factor: Safety factor applied to the optimal step.
        min_scale_factor: Minimum shrink ratio after a rejection.
        max_scale_factor: Maximum growth ratio after an acceptance.
    """

    def __init__(
        self,
        order: int,
        initial_step: float,
        min_step: float,
        max_step: float,
        max_attempts: int = 50,
        safety_factor: float = 0.9,
        min_scale_factor: float = 0.2,
        max_scale_factor: float = 10.0,
    ) -> None:
        self.order = order
        self.min_step = min_step
        self.max_step = max_step
        self.max_attempts = max_attempts
        self.safety_factor = safety_factor
        self.min_scale_factor = min_scale_factor
        self.max_scale_factor = max_scale_factor

        self.step = initial_step
        self.attempts = 1
        self.details = IntegrationDetails(step=0.0, error=0.0, attempts=1)

    def accept(self, h: float, error: float) -> float:
        """Record an accepted attempt and return the next step to propose.

        Args:
            h: Step size actually used (may be shorter than :attr:`step`
                after overshoot correction).
            error: Scaled error norm of the attempt.

        Returns:
            float: Step size for the next step.
        """
        self.details = IntegrationDetails(step=h, error=error, attempts=self.attempts)
        self.step = accepted_step_size(
            error,
            h,
            self.order,
            self.safety_factor,
            self.max_scale_factor,
            self.min_step,
            self.max_step,
        )
        self.attempts = 1
        return self.step

    def reject(self, h: float, error: float, epoch: Any = None) -> float:
        """Record a rejected attempt and return the step to retry with.

        Raises:
            StepSizeConvergenceError: If ``h`` was already at the minimum
                step, or if the attempt budget is exhausted.
        """
        if abs(h) <= self.min_step:
            raise StepSizeConvergenceError(epoch, h, error, self.attempts)
        self.attempts += 1
        if self.attempts > self.max_attempts:
            raise StepSizeConvergenceError(epoch, h, error, self.attempts - 1)

        self.step = rejected_step_size(
            error, h, self.order, self.safety_factor, self.min_scale_factor, self.min_step
        )
        logger.debug(
            "Rejected step %.6e s (error %.3e), retrying with %.6e s",
            h,
            error,
            self.step,
        )
        return self.step
