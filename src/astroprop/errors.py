"""Error taxonomy for propagation failures.

Every error raised by the propagation core derives from
:class:`PropagationError`, so a batch collaborator (for example the Monte
Carlo coordinator) can record a failed run with a single ``except`` clause
and move on.  All three concrete errors are terminal for the propagation
they occur in; nothing inside the core retries or substitutes a fallback
state.
"""

from __future__ import annotations

from typing import Any


class PropagationError(Exception):
    """Base class for all propagation failures."""


class EvaluationError(PropagationError):
    """The dynamics could not produce a derivative.

    Raised when a dynamics contributor signals an invalid state (for
    example a singular position), when a stage derivative is not finite,
    or when the derivative does not have the shape of the state.

    Args:
        message: Human readable description.
        epoch: Epoch of the step being evaluated, if known.
        state: State at the start of that step, if known.
    """

    def __init__(self, message: str, epoch: Any = None, state: Any = None) -> None:
        super().__init__(message)
        self.epoch = epoch
        self.state = state

    def __str__(self) -> str:
        msg = super().__str__()
        if self.epoch is not None:
            msg = f"{msg} (epoch: {self.epoch})"
        return msg


class StepSizeConvergenceError(PropagationError):
    """The adaptive controller could not meet the tolerance.

    Raised when a single step is rejected more than ``max_attempts`` times,
    or when a step already at ``min_step`` is still rejected.

    Args:
        epoch: Epoch at which the step was attempted.
        step: Last attempted step size [s].
        error: Scaled error norm of the last attempt.
        attempts: Number of attempts made for this step.
    """

    def __init__(self, epoch: Any, step: float, error: float, attempts: int) -> None:
        self.epoch = epoch
        self.step = step
        self.error = error
        self.attempts = attempts
        super().__init__(
            f"step size failed to converge at epoch {epoch}: "
            f"last step {step:.6e} s, error norm {error:.6e}, "
            f"{attempts} attempts"
        )


class ConfigurationError(PropagationError, ValueError):
    """The propagator configuration is inconsistent.

    Detected before any stepping takes place.
    """
