"""Propagation driver.

Advances a state from an initial epoch to a target epoch by repeatedly
calling the Runge-Kutta step kernel. Fixed-step methods take the configured
step directly; adaptive methods go through a
:class:`~astroprop.integrators.StepSizeController`. Whenever the proposed
step would pass the target it is shortened to land on the target exactly,
and the final sample carries the caller's target epoch object.

Epochs may be plain floats (seconds) or :class:`~astroprop.Epoch`
instances. The driver keeps elapsed time as a float offset; the dynamics
receive ``t`` in seconds past a reference epoch (``0.0`` for float epochs,
the initial epoch for :class:`~astroprop.Epoch` unless overridden).
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from typing import Any

import jax
import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from astroprop.config import get_dtype
from astroprop.errors import ConfigurationError, EvaluationError
from astroprop.integrators import ErrorNorm, StepResult, StepSizeController, rk_step
from astroprop.propagator.config import PropagatorConfig
from astroprop.propagator.result import IntegrationStats, PropagationResult

logger = logging.getLogger(__name__)

# Relative slack under which a remaining interval counts as one step.
_ARRIVAL_SLACK = 1e-12


class Propagator:
    """Reusable propagator for one dynamics function and configuration.

    Holds the selected tableau and the (compiled) step kernel so repeated
    propagations, for example the runs of a Monte Carlo batch, share one
    compilation. The instance itself carries no per-propagation state and
    may be used from several threads at once.

    Args:
        dynamics: Dynamics ``f(t, x) -> dx/dt``.
        config: Propagator settings. Defaults to
            :meth:`PropagatorConfig.default`.

    Raises:
        ConfigurationError: If ``config`` is inconsistent.

    Examples:
        ```python
        import jax.numpy as jnp
        from astroprop.dynamics import two_body
        from astroprop.propagator import Propagator, PropagatorConfig
        prop = Propagator(two_body(), PropagatorConfig.with_fixed_step(10.0))
        x0 = jnp.array([6878e3, 0.0, 0.0, 0.0, 7612.0, 0.0])
        result = prop.propagate(0.0, x0, 5400.0)
        result.state
        ```
    """

    def __init__(
        self,
        dynamics: Callable[[ArrayLike, ArrayLike], Array],
        config: PropagatorConfig | None = None,
    ) -> None:
        if config is None:
            config = PropagatorConfig.default()
        config.validate()

        self.dynamics = dynamics
        self.config = config
        self.tableau = config.tableau
        self._step = self._build_kernel()

    def _build_kernel(self) -> Callable[..., StepResult]:
        tableau = self.tableau
        dynamics = self.dynamics
        norm = self.config.error_norm

        def kernel(t, state, dt, rel_tol, abs_tol, scale_floor):
            return rk_step(
                tableau, dynamics, t, state, dt, rel_tol, abs_tol, norm, scale_floor
            )

        if self.config.jit:
            logger.debug("Building compiled %s step kernel", tableau.name)
            return jax.jit(kernel)
        return kernel

    def _controller(self, direction: float) -> StepSizeController:
        cfg = self.config
        initial = min(max(cfg.initial_step, cfg.min_step), cfg.max_step)
        return StepSizeController(
            order=self.tableau.error_order,
            initial_step=math.copysign(initial, direction),
            min_step=cfg.min_step,
            max_step=cfg.max_step,
            max_attempts=cfg.max_attempts,
            safety_factor=cfg.safety_factor,
            min_scale_factor=cfg.min_scale_factor,
            max_scale_factor=cfg.max_scale_factor,
        )

    def propagate(
        self,
        initial_epoch: Any,
        initial_state: ArrayLike,
        target_epoch: Any,
        *,
        sample_interval: float | None = None,
        record_steps: bool = False,
        reference_epoch: Any = None,
    ) -> PropagationResult:
        """Propagate ``initial_state`` from ``initial_epoch`` to ``target_epoch``.

        Args:
            initial_epoch: Epoch of the initial state (float seconds or
                :class:`~astroprop.Epoch`).
            initial_state: State vector at ``initial_epoch``.
            target_epoch: Epoch to arrive at. May precede
                ``initial_epoch`` for backward propagation.
            sample_interval: Also emit accepted step boundaries that are at
                least this many seconds after the last emitted sample.
            record_steps: Emit every accepted step.
            reference_epoch: Epoch from which the dynamics time argument is
                counted. Defaults to ``0.0`` for float epochs and to
                ``initial_epoch`` otherwise.

        Returns:
            PropagationResult: Samples from the initial state to the state
                at exactly ``target_epoch``.

        Raises:
            EvaluationError: If the dynamics fail or produce a non-finite
                derivative.
            StepSizeConvergenceError: If an adaptive step cannot meet the
                tolerance.
            ConfigurationError: If the state is incompatible with the
                configured error norm.
        """
        cfg = self.config
        dtype = get_dtype()
        state = jnp.asarray(initial_state, dtype=dtype)
        if state.ndim != 1:
            raise ValueError(f"state must be a 1-D vector, got shape {state.shape}")
        if cfg.error_norm is ErrorNorm.RSS_PV and self.tableau.adaptive and state.shape[0] < 6:
            raise ConfigurationError(
                f"RSS_PV error norm needs a state of dimension >= 6, got {state.shape[0]}"
            )
        if sample_interval is not None and not sample_interval > 0.0:
            raise ValueError(f"sample_interval must be positive, got {sample_interval}")

        duration = float(target_epoch - initial_epoch)
        if reference_epoch is None:
            reference_epoch = 0.0 if isinstance(initial_epoch, (int, float)) else initial_epoch
        t0 = float(initial_epoch - reference_epoch)

        if duration == 0.0:
            return PropagationResult(
                epochs=(target_epoch,), states=state[None, :], stats=IntegrationStats()
            )

        direction = math.copysign(1.0, duration)
        rel_tol = jnp.asarray(cfg.rel_tol, dtype=dtype)
        abs_tol = jnp.asarray(cfg.abs_tol, dtype=dtype)
        scale_floor = jnp.asarray(cfg.scale_floor, dtype=dtype)

        if self.tableau.adaptive:
            controller = self._controller(direction)
        else:
            controller = None
            fixed_step = math.copysign(cfg.fixed_step, direction)

        epochs = [initial_epoch]
        states = [state]
        last_sample = 0.0

        elapsed = 0.0
        accepted = 0
        rejected = 0
        evaluations = 0

        while True:
            remaining = duration - elapsed

            # Retry until accepted; the fixed-step path accepts the first attempt
            while True:
                h = fixed_step if controller is None else controller.step
                arriving = abs(h) * (1.0 + _ARRIVAL_SLACK) >= abs(remaining)
                if arriving:
                    if h != remaining:
                        logger.debug(
                            "Overshoot correction: step %.6e s shortened to %.6e s", h, remaining
                        )
                    h = remaining

                result = self._attempt(
                    t0 + elapsed, state, h, rel_tol, abs_tol, scale_floor, initial_epoch + elapsed
                )
                evaluations += self.tableau.stages
                error = float(result.error_estimate)

                if controller is None or error <= 1.0:
                    break
                rejected += 1
                controller.reject(h, error, epoch=initial_epoch + elapsed)

            if controller is None:
                attempts = 1
            else:
                attempts = controller.attempts
                controller.accept(h, error)
            accepted += 1
            state = result.state

            if arriving:
                epochs.append(target_epoch)
                states.append(state)
                break

            elapsed += h
            if record_steps or (
                sample_interval is not None and abs(elapsed - last_sample) >= sample_interval
            ):
                epochs.append(initial_epoch + elapsed)
                states.append(state)
                last_sample = elapsed

        stats = IntegrationStats(
            accepted_steps=accepted,
            rejected_attempts=rejected,
            evaluations=evaluations,
            last_step=h,
            last_error=error,
            last_attempts=attempts,
        )
        return PropagationResult(epochs=tuple(epochs), states=jnp.stack(states), stats=stats)

    def _attempt(self, t, state, h, rel_tol, abs_tol, scale_floor, epoch):
        """Run one step attempt, turning non-finite derivatives into errors."""
        try:
            result = self._step(t, state, h, rel_tol, abs_tol, scale_floor)
        except EvaluationError as exc:
            if exc.epoch is None:
                exc.epoch = epoch
                exc.state = state
            raise
        if not bool(result.finite):
            raise EvaluationError(
                f"non-finite derivative in {self.tableau.name} step of {h:.6e} s",
                epoch=epoch,
                state=state,
            )
        return result

    def propagate_for(
        self,
        initial_epoch: Any,
        initial_state: ArrayLike,
        duration: float,
        **kwargs: Any,
    ) -> PropagationResult:
        """Propagate for ``duration`` seconds (negative for backward).

        The target epoch is ``initial_epoch + duration``. Keyword arguments
        are passed to :meth:`propagate`.
        """
        return self.propagate(initial_epoch, initial_state, initial_epoch + duration, **kwargs)


def propagate(
    dynamics: Callable[[ArrayLike, ArrayLike], Array],
    initial_epoch: Any,
    initial_state: ArrayLike,
    target_epoch: Any,
    config: PropagatorConfig | None = None,
    **kwargs: Any,
) -> PropagationResult:
    """Propagate a state to a target epoch.

    Convenience wrapper building a :class:`Propagator` for a single call.
    See :meth:`Propagator.propagate` for the keyword arguments.

    Examples:
        ```python
        import jax.numpy as jnp
        from astroprop import Epoch
        from astroprop.dynamics import two_body
        from astroprop.propagator import propagate
        epc0 = Epoch(2024, 1, 1)
        x0 = jnp.array([6878e3, 0.0, 0.0, 0.0, 7612.0, 0.0])
        result = propagate(two_body(), epc0, x0, epc0 + 3600.0)
        result.epoch
        ```
    """
    return Propagator(dynamics, config).propagate(
        initial_epoch, initial_state, target_epoch, **kwargs
    )


def propagate_for(
    dynamics: Callable[[ArrayLike, ArrayLike], Array],
    initial_epoch: Any,
    initial_state: ArrayLike,
    duration: float,
    config: PropagatorConfig | None = None,
    **kwargs: Any,
) -> PropagationResult:
    """Propagate a state for ``duration`` seconds."""
    return Propagator(dynamics, config).propagate_for(
        initial_epoch, initial_state, duration, **kwargs
    )
