"""Propagator configuration.

Provides the closed :class:`Integrator` enumeration, which maps each
supported method to its immutable Butcher tableau, and the
:class:`PropagatorConfig` dataclass holding the step-size and tolerance
settings of a propagation. Configuration is static: it is validated once
when constructed and never changes during a propagation.
"""

from __future__ import annotations

import dataclasses
import math
from collections.abc import Mapping
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any

from astroprop.errors import ConfigurationError
from astroprop.integrators import DP54, DP78, RK4, RK89, RKF45, VERNER56, ButcherTableau, ErrorNorm


class Integrator(Enum):
    """Supported Runge-Kutta methods."""

    RK4_FIXED = "RK4Fixed"
    FEHLBERG45 = "Fehlberg45"
    DORMAND45 = "Dormand45"
    VERNER56 = "Verner56"
    DORMAND78 = "Dormand78"
    RK89 = "RK89"

    @property
    def tableau(self) -> ButcherTableau:
        """Butcher tableau implementing this method."""
        _tableaus = {
            Integrator.RK4_FIXED: RK4,
            Integrator.FEHLBERG45: RKF45,
            Integrator.DORMAND45: DP54,
            Integrator.VERNER56: VERNER56,
            Integrator.DORMAND78: DP78,
            Integrator.RK89: RK89,
        }
        return _tableaus[self]

    @property
    def adaptive(self) -> bool:
        """Whether the method carries an embedded error estimate."""
        return self.tableau.adaptive

    @classmethod
    def parse(cls, value: str | Integrator) -> Integrator:
        """Look up a method by value (``"Dormand78"``) or member name, ignoring case.

        Raises:
            ConfigurationError: If ``value`` names no supported method.
        """
        if isinstance(value, cls):
            return value
        key = str(value).casefold()
        for member in cls:
            if key in (member.value.casefold(), member.name.casefold()):
                return member
        raise ConfigurationError(
            f"unknown integrator {value!r}, expected one of "
            f"{', '.join(m.value for m in cls)}"
        )

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class PropagatorConfig:
    """Integrator selection and step-size control settings.

    Defaults match GMAT: adaptive RK89 with a 60 s initial step, steps
    between 0.001 s and 2700 s, tolerance 1e-12 and 50 attempts per step.

    Args:
        integrator: Method to use.
        fixed_step: Constant step magnitude [s]. Required by
            :attr:`Integrator.RK4_FIXED` and rejected by adaptive methods.
        initial_step: First step magnitude tried by adaptive methods [s].
            Clamped to ``[min_step, max_step]``.
        min_step: Minimum adaptive step magnitude [s].
        max_step: Maximum adaptive step magnitude [s].
        rel_tol: Relative error tolerance.
        abs_tol: Absolute error tolerance.
        max_attempts: Maximum attempts for a single adaptive step.
        error_norm: Reduction of the scaled error components.
        scale_floor: Lower bound on the magnitude used for relative
            error scaling.
        safety_factor: Safety factor of the step-size control law.
        min_scale_factor: Minimum shrink ratio after a rejected step.
        max_scale_factor: Maximum growth ratio after an accepted step.
        jit: Compile the step kernel with ``jax.jit``. Disable to run
            dynamics eagerly on concrete arrays.

    Raises:
        ConfigurationError: If the settings are inconsistent.

    Examples:
        ```python
        from astroprop.propagator import Integrator, PropagatorConfig
        config = PropagatorConfig.with_adaptive_step(
            Integrator.DORMAND78, min_step=0.1, max_step=30.0, tolerance=1e-12
        )
        config.initial_step
        ```
    """

    integrator: Integrator = Integrator.RK89
    fixed_step: float | None = None
    initial_step: float = 60.0
    min_step: float = 0.001
    max_step: float = 2700.0
    rel_tol: float = 1e-12
    abs_tol: float = 1e-12
    max_attempts: int = 50
    error_norm: ErrorNorm = ErrorNorm.MAX
    scale_floor: float = 0.0
    safety_factor: float = 0.9
    min_scale_factor: float = 0.2
    max_scale_factor: float = 10.0
    jit: bool = True

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Check the settings for consistency.

        Raises:
            ConfigurationError: Describing the first inconsistency found.
        """
        if not isinstance(self.integrator, Integrator):
            raise ConfigurationError(f"integrator must be an Integrator, got {self.integrator!r}")
        if not isinstance(self.error_norm, ErrorNorm):
            raise ConfigurationError(f"error_norm must be an ErrorNorm, got {self.error_norm!r}")

        if not self.integrator.adaptive:
            if self.fixed_step is None:
                raise ConfigurationError(f"{self.integrator} requires fixed_step")
            if not (math.isfinite(self.fixed_step) and self.fixed_step > 0.0):
                raise ConfigurationError(
                    f"fixed_step must be positive and finite, got {self.fixed_step}"
                )
            return

        if self.fixed_step is not None:
            raise ConfigurationError(
                f"{self.integrator} is adaptive and does not accept fixed_step"
            )
        if not self.min_step > 0.0:
            raise ConfigurationError(f"min_step must be positive, got {self.min_step}")
        if not self.max_step >= self.min_step:
            raise ConfigurationError(
                f"max_step ({self.max_step}) must not be smaller than min_step ({self.min_step})"
            )
        if not (math.isfinite(self.initial_step) and self.initial_step > 0.0):
            raise ConfigurationError(
                f"initial_step must be positive and finite, got {self.initial_step}"
            )
        if not all(math.isfinite(tol) and tol > 0.0 for tol in (self.rel_tol, self.abs_tol)):
            raise ConfigurationError(
                f"tolerances must be positive and finite, "
                f"got rel_tol={self.rel_tol}, abs_tol={self.abs_tol}"
            )
        if self.max_attempts < 1:
            raise ConfigurationError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.scale_floor < 0.0:
            raise ConfigurationError(f"scale_floor must be non-negative, got {self.scale_floor}")
        if not 0.0 < self.safety_factor <= 1.0:
            raise ConfigurationError(
                f"safety_factor must be in (0, 1], got {self.safety_factor}"
            )
        if not 0.0 < self.min_scale_factor <= 1.0:
            raise ConfigurationError(
                f"min_scale_factor must be in (0, 1], got {self.min_scale_factor}"
            )
        if self.max_scale_factor < 1.0:
            raise ConfigurationError(
                f"max_scale_factor must be at least 1, got {self.max_scale_factor}"
            )

    @property
    def tableau(self) -> ButcherTableau:
        """Butcher tableau of the selected integrator."""
        return self.integrator.tableau

    @staticmethod
    def default() -> PropagatorConfig:
        """Preset: GMAT default adaptive settings.

        Returns:
            PropagatorConfig: Adaptive RK89 configuration.
        """
        return PropagatorConfig()

    @staticmethod
    def with_fixed_step(step: float, jit: bool = True) -> PropagatorConfig:
        """Preset: classic RK4 with a constant step.

        Args:
            step: Step magnitude [s].
            jit: Compile the step kernel.

        Returns:
            PropagatorConfig: Fixed-step configuration.
        """
        return PropagatorConfig(integrator=Integrator.RK4_FIXED, fixed_step=step, jit=jit)

    @staticmethod
    def with_adaptive_step(
        integrator: Integrator | str,
        min_step: float,
        max_step: float,
        tolerance: float,
        max_attempts: int = 50,
        **kwargs: Any,
    ) -> PropagatorConfig:
        """Preset: adaptive method with a single tolerance.

        The tolerance is used for both ``rel_tol`` and ``abs_tol`` and the
        first step tried is ``max_step``.

        Args:
            integrator: Adaptive method.
            min_step: Minimum step magnitude [s].
            max_step: Maximum step magnitude [s].
            tolerance: Relative and absolute error tolerance.
            max_attempts: Maximum attempts for a single step.
            **kwargs: Any other :class:`PropagatorConfig` field.

        Returns:
            PropagatorConfig: Adaptive configuration.
        """
        kwargs.setdefault("initial_step", max_step)
        return PropagatorConfig(
            integrator=Integrator.parse(integrator),
            min_step=min_step,
            max_step=max_step,
            rel_tol=tolerance,
            abs_tol=tolerance,
            max_attempts=max_attempts,
            **kwargs,
        )

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> PropagatorConfig:
        """Build a configuration from a plain mapping.

        Keys are field names. ``integrator`` and ``error_norm`` may be given
        as strings (``"Dormand78"``, ``"rss_pv"``).

        Raises:
            ConfigurationError: On unknown keys or invalid values.
        """
        known = {f.name for f in fields(PropagatorConfig)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"unknown configuration keys: {', '.join(unknown)}")

        values = dict(data)
        if "integrator" in values:
            values["integrator"] = Integrator.parse(values["integrator"])
        if "error_norm" in values and not isinstance(values["error_norm"], ErrorNorm):
            try:
                values["error_norm"] = ErrorNorm(str(values["error_norm"]).lower())
            except ValueError:
                raise ConfigurationError(
                    f"unknown error norm {values['error_norm']!r}"
                ) from None
        return PropagatorConfig(**values)

    def replace(self, **changes: Any) -> PropagatorConfig:
        """Return a copy with the given fields changed (and re-validated)."""
        return dataclasses.replace(self, **changes)
