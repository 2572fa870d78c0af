"""Propagation result types."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any, NamedTuple

import jax.numpy as jnp
import numpy as np
import polars as pl
from jax import Array


class IntegrationStats(NamedTuple):
    """Counters accumulated over one propagation.

    Attributes:
        accepted_steps: Number of accepted steps.
        rejected_attempts: Number of rejected step attempts.
        evaluations: Number of dynamics evaluations.
        last_step: Step size of the last accepted step [s].
        last_error: Scaled error norm of the last accepted step.
        last_attempts: Attempts needed by the last accepted step.
    """

    accepted_steps: int = 0
    rejected_attempts: int = 0
    evaluations: int = 0
    last_step: float = 0.0
    last_error: float = 0.0
    last_attempts: int = 0


@dataclass(frozen=True)
class PropagationResult:
    """Ordered ``(epoch, state)`` samples of one propagation.

    The first sample is the initial condition and the last sample is the
    state at the requested target epoch; the final epoch is the caller's
    target object itself.

    Args:
        epochs: Sample epochs in propagation order.
        states: Sample states, shape ``(n_samples, n)``.
        stats: Step counters of the propagation.
    """

    epochs: tuple[Any, ...]
    states: Array
    stats: IntegrationStats

    @property
    def epoch(self) -> Any:
        """Final epoch (the requested target)."""
        return self.epochs[-1]

    @property
    def state(self) -> Array:
        """Final state."""
        return self.states[-1]

    @property
    def initial_epoch(self) -> Any:
        return self.epochs[0]

    @property
    def initial_state(self) -> Array:
        return self.states[0]

    def __len__(self) -> int:
        return len(self.epochs)

    def __iter__(self) -> Iterator[tuple[Any, Array]]:
        return iter(zip(self.epochs, self.states))

    def __getitem__(self, index: int) -> tuple[Any, Array]:
        return self.epochs[index], self.states[index]

    def elapsed(self) -> Array:
        """Seconds from the initial epoch to every sample."""
        t0 = self.epochs[0]
        return jnp.asarray([float(e - t0) for e in self.epochs])

    def to_dataframe(self) -> pl.DataFrame:
        """Export the samples as a :class:`polars.DataFrame`.

        Columns are ``epoch`` (ISO string for :class:`~astroprop.Epoch`
        samples, float seconds otherwise), ``elapsed`` in seconds and one
        ``x0 .. x{n-1}`` column per state component.
        """
        states = np.asarray(self.states)
        if all(isinstance(e, (int, float)) for e in self.epochs):
            epoch_col = pl.Series([float(e) for e in self.epochs], dtype=pl.Float64)
        else:
            epoch_col = pl.Series([str(e) for e in self.epochs], dtype=pl.Utf8)

        columns = {
            "epoch": epoch_col,
            "elapsed": pl.Series(np.asarray(self.elapsed()), dtype=pl.Float64),
        }
        for i in range(states.shape[1]):
            columns[f"x{i}"] = pl.Series(states[:, i], dtype=pl.Float64)
        return pl.DataFrame(columns)
