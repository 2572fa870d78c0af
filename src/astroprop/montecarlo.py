"""Parallel Monte Carlo dispersion of an initial state.

Draws Gaussian perturbations of a nominal state, propagates every
perturbed state to the same target epoch on a thread pool, and collects
the outcomes in run order.

Perturbations are drawn up front from ``jax.random.PRNGKey(seed)`` split
into one key per run index, so the sample for run *i* (and therefore the
whole result) does not depend on the worker count or on the order in which
runs finish. A run that fails with a
:class:`~astroprop.errors.PropagationError` is recorded with its error and
the batch continues.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, NamedTuple

import jax
import jax.numpy as jnp
import numpy as np
import polars as pl
from jax import Array
from jax.typing import ArrayLike

from astroprop.config import get_dtype
from astroprop.errors import ConfigurationError, PropagationError
from astroprop.propagator import PropagationResult, Propagator, PropagatorConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DispersionConfig:
    """Settings of a Monte Carlo batch.

    Args:
        n_runs: Number of dispersed runs.
        sigma: Gaussian 1-sigma per state component. A scalar applies to
            every component.
        seed: Seed of the ``jax.random`` key the perturbations derive from.
        max_workers: Thread pool size. Defaults to ``os.cpu_count()``.
    """

    n_runs: int = 100
    sigma: float | Sequence[float] = 0.0
    seed: int = 0
    max_workers: int | None = None

    def __post_init__(self) -> None:
        if self.n_runs < 0:
            raise ConfigurationError(f"n_runs must be non-negative, got {self.n_runs}")
        if self.max_workers is not None and self.max_workers < 1:
            raise ConfigurationError(f"max_workers must be at least 1, got {self.max_workers}")
        if np.any(np.asarray(self.sigma) < 0.0):
            raise ConfigurationError("sigma must be non-negative")

    def perturbations(self, n: int) -> Array:
        """Return the ``(n_runs, n)`` perturbations added to the nominal state.

        Raises:
            ConfigurationError: If ``sigma`` does not match the state size.
        """
        sigma = jnp.asarray(self.sigma, dtype=get_dtype())
        if sigma.ndim > 1 or (sigma.ndim == 1 and sigma.shape[0] != n):
            raise ConfigurationError(
                f"sigma must be a scalar or have {n} components, got shape {sigma.shape}"
            )
        if self.n_runs == 0:
            return jnp.zeros((0, n), dtype=get_dtype())
        keys = jax.random.split(jax.random.PRNGKey(self.seed), self.n_runs)
        draws = jnp.stack([jax.random.normal(k, (n,), dtype=get_dtype()) for k in keys])
        return draws * sigma


class RunOutcome(NamedTuple):
    """Outcome of one Monte Carlo run.

    Attributes:
        index: Run index in ``[0, n_runs)``.
        initial_state: Perturbed initial state.
        result: Propagation result, ``None`` if the run failed or was
            cancelled.
        error: The error that ended the run, if any.
        cancelled: ``True`` if the run was never started.
    """

    index: int
    initial_state: Array
    result: PropagationResult | None = None
    error: PropagationError | None = None
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return self.result is not None


@dataclass(frozen=True)
class MonteCarloResult:
    """Ordered outcomes of a Monte Carlo batch.

    Args:
        outcomes: One :class:`RunOutcome` per run, in index order.
        elapsed: Wall-clock duration of the batch [s].
    """

    outcomes: tuple[RunOutcome, ...]
    elapsed: float = 0.0

    def __len__(self) -> int:
        return len(self.outcomes)

    @property
    def n_succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def n_failed(self) -> int:
        return sum(1 for o in self.outcomes if o.error is not None)

    @property
    def n_cancelled(self) -> int:
        return sum(1 for o in self.outcomes if o.cancelled)

    def final_states(self) -> Array:
        """Final states of the successful runs, shape ``(n_succeeded, n)``."""
        finals = [o.result.state for o in self.outcomes if o.ok]
        if not finals:
            n = self.outcomes[0].initial_state.shape[0] if self.outcomes else 0
            return jnp.zeros((0, n), dtype=get_dtype())
        return jnp.stack(finals)

    def errors(self) -> list[tuple[int, PropagationError]]:
        """``(index, error)`` pairs of the failed runs."""
        return [(o.index, o.error) for o in self.outcomes if o.error is not None]

    def to_dataframe(self) -> pl.DataFrame:
        """Export one row per run as a :class:`polars.DataFrame`.

        Columns are ``run``, ``status`` (``"ok"``, ``"failed"`` or
        ``"cancelled"``), ``error`` (message or null) and the final state
        components ``x0 .. x{n-1}`` (null for runs without a result).
        """
        n = self.outcomes[0].initial_state.shape[0] if self.outcomes else 0
        rows: dict[str, list[Any]] = {"run": [], "status": [], "error": []}
        finals: list[list[float | None]] = [[] for _ in range(n)]
        for o in self.outcomes:
            rows["run"].append(o.index)
            if o.ok:
                rows["status"].append("ok")
                rows["error"].append(None)
                values = np.asarray(o.result.state).tolist()
            else:
                rows["status"].append("cancelled" if o.cancelled else "failed")
                rows["error"].append(None if o.error is None else str(o.error))
                values = [None] * n
            for i, v in enumerate(values):
                finals[i].append(v)

        columns = {
            "run": pl.Series(rows["run"], dtype=pl.Int64),
            "status": pl.Series(rows["status"], dtype=pl.Utf8),
            "error": pl.Series(rows["error"], dtype=pl.Utf8),
        }
        for i in range(n):
            columns[f"x{i}"] = pl.Series(finals[i], dtype=pl.Float64)
        return pl.DataFrame(columns)


def _run_single(
    propagator: Propagator,
    index: int,
    initial_epoch: Any,
    initial_state: Array,
    target_epoch: Any,
    cancel_event: threading.Event | None,
    propagate_kwargs: dict[str, Any],
) -> RunOutcome:
    if cancel_event is not None and cancel_event.is_set():
        return RunOutcome(index=index, initial_state=initial_state, cancelled=True)
    try:
        result = propagator.propagate(
            initial_epoch, initial_state, target_epoch, **propagate_kwargs
        )
    except PropagationError as exc:
        logger.warning("Monte Carlo run %d failed: %s", index, exc)
        return RunOutcome(index=index, initial_state=initial_state, error=exc)
    return RunOutcome(index=index, initial_state=initial_state, result=result)


def run_monte_carlo(
    dynamics: Callable[[ArrayLike, ArrayLike], Array],
    initial_epoch: Any,
    nominal_state: ArrayLike,
    target_epoch: Any,
    dispersion: DispersionConfig,
    config: PropagatorConfig | None = None,
    cancel_event: threading.Event | None = None,
    **propagate_kwargs: Any,
) -> MonteCarloResult:
    """Propagate a batch of dispersed initial states in parallel.

    Args:
        dynamics: Dynamics ``f(t, x) -> dx/dt`` shared by every run.
        initial_epoch: Epoch of the nominal state.
        nominal_state: Undispersed initial state.
        target_epoch: Epoch every run propagates to.
        dispersion: Batch size, dispersion and pool settings.
        config: Propagator settings shared by every run.
        cancel_event: When set, runs that have not started yet are
            skipped; runs already in progress finish.
        **propagate_kwargs: Passed to :meth:`Propagator.propagate`
            (``sample_interval``, ``record_steps``, ``reference_epoch``).

    Returns:
        MonteCarloResult: Outcomes in run-index order.

    Examples:
        ```python
        import jax.numpy as jnp
        from astroprop.dynamics import two_body
        from astroprop.montecarlo import DispersionConfig, run_monte_carlo
        x0 = jnp.array([6878e3, 0.0, 0.0, 0.0, 7612.0, 0.0])
        disp = DispersionConfig(n_runs=8, sigma=[100.0] * 3 + [0.1] * 3, seed=42)
        mc = run_monte_carlo(two_body(), 0.0, x0, 3600.0, disp)
        mc.final_states().shape
        ```
    """
    nominal = jnp.asarray(nominal_state, dtype=get_dtype())
    propagator = Propagator(dynamics, config)
    initial_states = nominal + dispersion.perturbations(nominal.shape[0])

    n_workers = dispersion.max_workers or os.cpu_count() or 1
    logger.info(
        "Starting Monte Carlo batch: %d runs with %s on %d workers",
        dispersion.n_runs,
        propagator.tableau.name,
        n_workers,
    )

    start = time.perf_counter()
    outcomes: list[RunOutcome] = []
    with ThreadPoolExecutor(max_workers=n_workers) as executor:
        futures = [
            executor.submit(
                _run_single,
                propagator,
                i,
                initial_epoch,
                initial_states[i],
                target_epoch,
                cancel_event,
                propagate_kwargs,
            )
            for i in range(dispersion.n_runs)
        ]
        for future in as_completed(futures):
            outcomes.append(future.result())
    elapsed = time.perf_counter() - start

    outcomes.sort(key=lambda o: o.index)
    result = MonteCarloResult(outcomes=tuple(outcomes), elapsed=elapsed)
    logger.info(
        "Monte Carlo batch finished in %.2f s: %d succeeded, %d failed, %d cancelled",
        elapsed,
        result.n_succeeded,
        result.n_failed,
        result.n_cancelled,
    )
    return result
