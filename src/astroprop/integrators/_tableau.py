"""Butcher tableau container shared by every Runge-Kutta method.

A tableau fully defines one explicit Runge-Kutta method.  Coefficients are
stored as nested Python tuples: they are static data baked into the step
kernel at trace time, never traced themselves, and the container is
hashable so that it can be passed as a static argument to ``jax.jit``.

Tableaus are module-level constants created once at import and shared,
read-only, by every concurrent propagation.
"""

from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class ButcherTableau:
    """Coefficients of an explicit (optionally embedded) Runge-Kutta method.

    Args:
        name: Human readable method name.
        a: Stage coupling rows. ``a[i]`` holds the ``i`` coefficients
            ``a[i][0] .. a[i][i-1]``; ``a[0]`` is empty.
        b: Weights of the propagated (high-order) solution.
        c: Stage nodes.
        order: Formal order of the propagated solution.
        b_low: Weights of the embedded solution used for error estimation.
            ``None`` for fixed-step methods.
        order_low: Formal order of the embedded solution.
    """

    name: str
    a: tuple[tuple[float, ...], ...]
    b: tuple[float, ...]
    c: tuple[float, ...]
    order: int
    b_low: tuple[float, ...] | None = None
    order_low: int | None = None

    def __post_init__(self):
        stages = len(self.c)
        if len(self.a) != stages or len(self.b) != stages:
            raise ValueError(
                f"{self.name}: a, b and c must all describe {stages} stages"
            )
        for i, row in enumerate(self.a):
            if len(row) != i:
                raise ValueError(
                    f"{self.name}: row {i} of a must have {i} entries, got {len(row)}"
                )
        if (self.b_low is None) != (self.order_low is None):
            raise ValueError(
                f"{self.name}: b_low and order_low must be given together"
            )
        if self.b_low is not None and len(self.b_low) != stages:
            raise ValueError(f"{self.name}: b_low must have {stages} entries")

    @property
    def stages(self) -> int:
        """Number of derivative evaluations per step."""
        return len(self.c)

    @property
    def adaptive(self) -> bool:
        """Whether the tableau carries an embedded error estimator."""
        return self.b_low is not None

    @property
    def error_order(self) -> int:
        """Order ``q`` used by the step-size control law.

        The local error estimate of an embedded pair behaves as
        ``O(h^(q+1))`` where ``q`` is the lower of the two orders.
        """
        if self.order_low is None:
            return self.order
        return min(self.order, self.order_low)

    def consistency_residuals(self) -> tuple[float, ...]:
        """Return ``c[i] - sum(a[i])`` for every stage."""
        return tuple(ci - math.fsum(row) for ci, row in zip(self.c, self.a))

    def weight_residuals(self) -> tuple[float, ...]:
        """Return ``sum(w) - 1`` for each weight vector (high order first)."""
        weights = [self.b] if self.b_low is None else [self.b, self.b_low]
        return tuple(math.fsum(w) - 1.0 for w in weights)
