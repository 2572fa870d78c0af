"""Tests for the propagation driver.

Tests cover:
- Accuracy against analytic two-body propagation (fixed and adaptive)
- Forward/backward round trips
- Exact arrival at the target epoch and overshoot correction
- Sampling, zero-duration and backward propagation
- Determinism across repeated and concurrent runs
- Step statistics and failure modes
- Export to polars
"""

import logging
from concurrent.futures import ThreadPoolExecutor

import jax.numpy as jnp
import numpy as np
import polars as pl
import pytest
from conftest import kepler_propagate

from astroprop import Epoch
from astroprop.constants import GM_EARTH
from astroprop.dynamics import compose, j2_perturbation, two_body
from astroprop.errors import ConfigurationError, EvaluationError, StepSizeConvergenceError
from astroprop.integrators import ErrorNorm
from astroprop.propagator import (
    IntegrationStats,
    Integrator,
    PropagationResult,
    Propagator,
    PropagatorConfig,
    propagate,
    propagate_for,
)

ADAPTIVE = [
    Integrator.FEHLBERG45,
    Integrator.DORMAND45,
    Integrator.VERNER56,
    Integrator.DORMAND78,
    Integrator.RK89,
]


def _adaptive_config(integrator, min_step=0.01, max_step=300.0, tolerance=1e-12, **kwargs):
    return PropagatorConfig.with_adaptive_step(
        integrator, min_step=min_step, max_step=max_step, tolerance=tolerance, **kwargs
    )


def _decay(t, x):
    return -x


def _unit_rate(t, x):
    return jnp.ones_like(x)


def _numpy_two_body(x):
    r = x[:3]
    a = -GM_EARTH * r / np.linalg.norm(r) ** 3
    return np.concatenate([x[3:], a])


def _numpy_rk4(x, dt, n_steps):
    """Classical RK4 written out in numpy, independent of the tableau code."""
    x = np.asarray(x, dtype=np.float64)
    for _ in range(n_steps):
        k1 = _numpy_two_body(x)
        k2 = _numpy_two_body(x + 0.5 * dt * k1)
        k3 = _numpy_two_body(x + 0.5 * dt * k2)
        k4 = _numpy_two_body(x + dt * k3)
        x = x + dt / 6.0 * (k1 + 2.0 * k2 + 2.0 * k3 + k4)
    return x


# Full-day error bounds against Kepler [m, m/s], per adaptive method
ONE_DAY_BOUNDS = {
    Integrator.FEHLBERG45: (0.5, 5e-4),
    Integrator.DORMAND45: (0.5, 5e-4),
    Integrator.VERNER56: (0.2, 2e-4),
    Integrator.DORMAND78: (0.05, 5e-5),
    Integrator.RK89: (0.05, 5e-5),
}


# ──────────────────────────────────────────────
# Accuracy
# ──────────────────────────────────────────────


class TestAccuracy:
    def test_rk4_fixed_one_day(self, leo_state):
        """RK4 with a 10 s step stays within a metre of Kepler over a day."""
        result = propagate(
            two_body(), 0.0, leo_state, 86400.0, PropagatorConfig.with_fixed_step(10.0)
        )
        expected = kepler_propagate(leo_state, 86400.0)
        final = np.asarray(result.state)
        assert np.linalg.norm(final[:3] - expected[:3]) < 1.0
        assert np.linalg.norm(final[3:] - expected[3:]) < 1e-3
        assert result.stats.accepted_steps == 8640

    def test_rk4_fixed_matches_reference_rk4(self, leo_state):
        """RK4 at 10 s over a day matches a plain numpy RK4 to 3e-5 m and 4e-8 m/s."""
        result = propagate(
            two_body(), 0.0, leo_state, 86400.0, PropagatorConfig.with_fixed_step(10.0)
        )
        expected = _numpy_rk4(leo_state, 10.0, 8640)
        final = np.asarray(result.state)
        assert np.linalg.norm(final[:3] - expected[:3]) < 3e-5
        assert np.linalg.norm(final[3:] - expected[3:]) < 4e-8

    @pytest.mark.parametrize("integrator", ADAPTIVE, ids=str)
    def test_adaptive_matches_kepler(self, integrator, leo_state):
        """Each adaptive method tracks Kepler over a day within its own bound."""
        pos_bound, vel_bound = ONE_DAY_BOUNDS[integrator]
        result = propagate(two_body(), 0.0, leo_state, 86400.0, _adaptive_config(integrator))
        expected = kepler_propagate(leo_state, 86400.0)
        final = np.asarray(result.state)
        assert np.linalg.norm(final[:3] - expected[:3]) < pos_bound
        assert np.linalg.norm(final[3:] - expected[3:]) < vel_bound

    def test_default_config(self, leo_state):
        """The default adaptive RK89 configuration is accurate out of the box."""
        result = propagate(two_body(), 0.0, leo_state, 600.0)
        expected = kepler_propagate(leo_state, 600.0)
        assert np.linalg.norm(np.asarray(result.state)[:3] - expected[:3]) < 0.1

    @pytest.mark.parametrize("integrator", ADAPTIVE, ids=str)
    def test_round_trip(self, integrator, leo_state):
        """Forward then backward over one hour returns to the start.

        The 1e-2 m / 1e-5 m/s bound is claimed for a one-hour arc with
        min 0.1 s, max 30 s, tolerance 1e-12. Over a full day the 5th-order
        methods drift slightly past it.
        """
        config = _adaptive_config(integrator, min_step=0.1, max_step=30.0)
        prop = Propagator(two_body(), config)
        fwd = prop.propagate(0.0, leo_state, 3600.0)
        back = prop.propagate(3600.0, fwd.state, 0.0)
        final = np.asarray(back.state)
        start = np.asarray(leo_state)
        assert np.linalg.norm(final[:3] - start[:3]) < 1e-2
        assert np.linalg.norm(final[3:] - start[3:]) < 1e-5

    @pytest.mark.parametrize("integrator", ADAPTIVE, ids=str)
    def test_halving_rel_tol_never_increases_error(self, integrator, leo_state):
        expected = kepler_propagate(leo_state, 3600.0)
        errors = []
        for rel_tol in (1e-8, 5e-9, 2.5e-9, 1.25e-9):
            config = PropagatorConfig(
                integrator=integrator,
                min_step=0.01,
                max_step=2700.0,
                initial_step=2700.0,
                rel_tol=rel_tol,
                abs_tol=1e-12,
            )
            result = propagate(two_body(), 0.0, leo_state, 3600.0, config)
            errors.append(np.linalg.norm(np.asarray(result.state)[:3] - expected[:3]))
        for looser, tighter in zip(errors, errors[1:]):
            assert tighter <= looser

    def test_backward_matches_kepler(self, leo_state):
        config = _adaptive_config(Integrator.DORMAND78)
        result = propagate(two_body(), 3600.0, leo_state, 0.0, config)
        expected = kepler_propagate(leo_state, -3600.0)
        assert np.linalg.norm(np.asarray(result.state)[:3] - expected[:3]) < 0.1
        assert result.stats.last_step < 0.0

    def test_j2_changes_trajectory(self, leo_state):
        config = _adaptive_config(Integrator.DORMAND78)
        kepler = propagate(two_body(), 0.0, leo_state, 3600.0, config)
        perturbed = propagate(compose(two_body(), j2_perturbation()), 0.0, leo_state, 3600.0, config)
        diff = float(jnp.linalg.norm(perturbed.state[:3] - kepler.state[:3]))
        assert 100.0 < diff < 5e5


# ──────────────────────────────────────────────
# Arrival and sampling
# ──────────────────────────────────────────────


class TestArrivalAndSampling:
    def test_final_epoch_is_target_object(self, leo_state):
        epc0 = Epoch(2024, 1, 1)
        target = epc0 + 3600.0
        result = propagate(two_body(), epc0, leo_state, target, _adaptive_config(Integrator.DORMAND78))
        assert result.epoch is target
        assert result.initial_epoch is epc0
        assert len(result.epochs) == len(result.states)

    def test_overshoot_shortens_last_step(self):
        config = PropagatorConfig.with_fixed_step(7.0)
        result = propagate(_unit_rate, 0.0, jnp.array([0.0]), 100.0, config)
        assert result.stats.accepted_steps == 15
        assert result.stats.last_step == pytest.approx(2.0)
        assert result.stats.evaluations == 15 * 4
        assert result.epoch == 100.0
        assert float(result.state[0]) == pytest.approx(100.0, rel=1e-14)

    def test_overshoot_logged(self, caplog):
        config = PropagatorConfig.with_fixed_step(7.0)
        with caplog.at_level(logging.DEBUG, logger="astroprop.propagator.driver"):
            propagate(_unit_rate, 0.0, jnp.array([0.0]), 100.0, config)
        assert "Overshoot correction" in caplog.text

    def test_adaptive_lands_exactly(self, leo_state):
        prop = Propagator(two_body(), _adaptive_config(Integrator.DORMAND45))
        result = prop.propagate(0.0, leo_state, 1234.5, record_steps=True)
        assert result.epoch == 1234.5
        elapsed = np.asarray(result.elapsed())
        assert elapsed[-1] == 1234.5
        assert np.all(np.diff(elapsed) > 0.0)

    def test_record_steps(self):
        config = PropagatorConfig.with_fixed_step(10.0)
        result = propagate(_unit_rate, 0.0, jnp.array([0.0]), 100.0, config, record_steps=True)
        assert len(result) == 11
        assert result.epochs == tuple(float(10 * i) for i in range(11))

    def test_sample_interval(self):
        config = PropagatorConfig.with_fixed_step(10.0)
        result = propagate(_unit_rate, 0.0, jnp.array([0.0]), 100.0, config, sample_interval=30.0)
        assert result.epochs == (0.0, 30.0, 60.0, 90.0, 100.0)

    def test_default_samples_are_endpoints(self, leo_state):
        result = propagate(two_body(), 0.0, leo_state, 600.0, PropagatorConfig.with_fixed_step(10.0))
        assert len(result) == 2
        assert jnp.array_equal(result.initial_state, leo_state)

    def test_zero_duration(self, leo_state):
        epc = Epoch(2024, 1, 1)
        result = propagate(two_body(), epc, leo_state, Epoch(epc))
        assert len(result) == 1
        assert result.epoch == epc
        assert jnp.array_equal(result.state, leo_state)
        assert result.stats == IntegrationStats()

    def test_backward_sampling(self):
        config = PropagatorConfig.with_fixed_step(10.0)
        result = propagate(_unit_rate, 50.0, jnp.array([0.0]), 0.0, config, record_steps=True)
        assert result.epochs == (50.0, 40.0, 30.0, 20.0, 10.0, 0.0)
        assert float(result.state[0]) == pytest.approx(-50.0, rel=1e-14)

    def test_epoch_samples(self):
        epc0 = Epoch(2024, 1, 1)
        config = PropagatorConfig.with_fixed_step(60.0)
        result = propagate(
            _unit_rate, epc0, jnp.array([0.0]), epc0 + 300.0, config, record_steps=True
        )
        assert result.epochs[1] == epc0 + 60.0
        assert np.asarray(result.elapsed()).tolist() == [0.0, 60.0, 120.0, 180.0, 240.0, 300.0]

    def test_propagate_for(self, leo_state):
        epc0 = Epoch(2024, 1, 1)
        config = PropagatorConfig.with_fixed_step(10.0)
        result = propagate_for(two_body(), epc0, leo_state, 600.0, config)
        assert result.epoch == epc0 + 600.0
        back = Propagator(two_body(), config).propagate_for(result.epoch, result.state, -600.0)
        assert back.epoch == epc0


# ──────────────────────────────────────────────
# Dynamics time argument
# ──────────────────────────────────────────────


def _ramp(t, x):
    return t * jnp.ones_like(x)


class TestDynamicsTime:
    def test_float_epochs_pass_absolute_time(self):
        config = PropagatorConfig.with_fixed_step(10.0)
        result = propagate(_ramp, 100.0, jnp.array([0.0]), 110.0, config)
        # integral of t from 100 to 110
        assert float(result.state[0]) == pytest.approx(1050.0, rel=1e-14)

    def test_epoch_time_counts_from_initial(self):
        epc0 = Epoch(2024, 1, 1)
        config = PropagatorConfig.with_fixed_step(10.0)
        result = propagate(_ramp, epc0, jnp.array([0.0]), epc0 + 10.0, config)
        assert float(result.state[0]) == pytest.approx(50.0, rel=1e-14)

    def test_reference_epoch(self):
        epc0 = Epoch(2024, 1, 1)
        config = PropagatorConfig.with_fixed_step(10.0)
        result = propagate(
            _ramp, epc0, jnp.array([0.0]), epc0 + 10.0, config, reference_epoch=epc0 - 100.0
        )
        assert float(result.state[0]) == pytest.approx(1050.0, rel=1e-12)


# ──────────────────────────────────────────────
# Determinism and statistics
# ──────────────────────────────────────────────


class TestDeterminism:
    def test_repeated_runs_identical(self, leo_state):
        prop = Propagator(compose(two_body(), j2_perturbation()), _adaptive_config(Integrator.RK89))
        a = prop.propagate(0.0, leo_state, 3600.0, record_steps=True)
        b = prop.propagate(0.0, leo_state, 3600.0, record_steps=True)
        assert a.epochs == b.epochs
        assert jnp.array_equal(a.states, b.states)
        assert a.stats == b.stats

    def test_concurrent_runs_identical(self, leo_state):
        prop = Propagator(two_body(), _adaptive_config(Integrator.DORMAND78))
        reference = prop.propagate(0.0, leo_state, 1800.0)
        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(lambda _: prop.propagate(0.0, leo_state, 1800.0), range(8)))
        for r in results:
            assert jnp.array_equal(r.state, reference.state)
            assert r.stats == reference.stats

    def test_jit_and_eager_agree(self, leo_state):
        jitted = propagate(two_body(), 0.0, leo_state, 600.0, PropagatorConfig.with_fixed_step(10.0))
        eager = propagate(
            two_body(), 0.0, leo_state, 600.0, PropagatorConfig.with_fixed_step(10.0, jit=False)
        )
        assert jnp.allclose(jitted.state, eager.state, rtol=1e-13, atol=1e-9)


class TestStatistics:
    def test_adaptive_evaluation_count(self, leo_state):
        result = propagate(two_body(), 0.0, leo_state, 3600.0, _adaptive_config(Integrator.DORMAND45))
        stats = result.stats
        assert stats.accepted_steps > 0
        assert stats.rejected_attempts >= 1  # first step tries max_step
        assert stats.evaluations == 7 * (stats.accepted_steps + stats.rejected_attempts)
        assert 0.0 <= stats.last_error <= 1.0
        assert stats.last_attempts >= 1

    def test_fixed_step_has_no_rejections(self, leo_state):
        result = propagate(two_body(), 0.0, leo_state, 600.0, PropagatorConfig.with_fixed_step(10.0))
        assert result.stats.rejected_attempts == 0
        assert result.stats.last_error == 0.0
        assert result.stats.last_attempts == 1


# ──────────────────────────────────────────────
# Failures
# ──────────────────────────────────────────────


def _stiff(t, x):
    return -1e6 * x


def _nan_dynamics(t, x):
    return x * jnp.nan


class TestFailures:
    def test_stiff_problem_hits_min_step(self):
        config = _adaptive_config(Integrator.DORMAND45, min_step=1e-3, max_step=10.0, tolerance=1e-8)
        with pytest.raises(StepSizeConvergenceError) as exc_info:
            propagate(_stiff, 0.0, jnp.array([1.0]), 100.0, config)
        assert exc_info.value.step == pytest.approx(1e-3)
        assert exc_info.value.epoch == 0.0

    def test_stiff_problem_exhausts_attempts(self):
        config = _adaptive_config(
            Integrator.DORMAND45, min_step=1e-3, max_step=10.0, tolerance=1e-8, max_attempts=3
        )
        with pytest.raises(StepSizeConvergenceError) as exc_info:
            propagate(_stiff, 0.0, jnp.array([1.0]), 100.0, config)
        assert exc_info.value.attempts == 3

    def test_non_finite_derivative(self):
        config = _adaptive_config(Integrator.DORMAND45)
        with pytest.raises(EvaluationError, match="non-finite") as exc_info:
            propagate(_nan_dynamics, 0.0, jnp.array([1.0]), 10.0, config)
        assert exc_info.value.epoch == 0.0
        assert exc_info.value.state is not None

    def test_dynamics_error_gets_epoch(self):
        def singular_after_50(t, x):
            if float(t) > 50.0:
                raise EvaluationError("singular state")
            return -x

        config = PropagatorConfig.with_fixed_step(10.0, jit=False)
        with pytest.raises(EvaluationError, match="singular") as exc_info:
            propagate(singular_after_50, 0.0, jnp.array([1.0]), 100.0, config)
        assert exc_info.value.epoch == 50.0
        assert "epoch: 50.0" in str(exc_info.value)

    def test_shape_mismatch(self):
        config = PropagatorConfig.with_fixed_step(10.0)
        with pytest.raises(EvaluationError, match="shape"):
            propagate(lambda t, x: jnp.zeros(2), 0.0, jnp.array([1.0, 2.0, 3.0]), 100.0, config)

    def test_rss_pv_needs_six_components(self):
        config = PropagatorConfig(integrator=Integrator.DORMAND45, error_norm=ErrorNorm.RSS_PV)
        with pytest.raises(ConfigurationError, match="RSS_PV"):
            propagate(_decay, 0.0, jnp.array([1.0, 2.0, 3.0]), 10.0, config)

    def test_rss_pv_propagation(self, leo_state):
        config = _adaptive_config(Integrator.DORMAND78, error_norm=ErrorNorm.RSS_PV)
        result = propagate(two_body(), 0.0, leo_state, 3600.0, config)
        expected = kepler_propagate(leo_state, 3600.0)
        assert np.linalg.norm(np.asarray(result.state)[:3] - expected[:3]) < 0.1

    def test_state_must_be_vector(self):
        with pytest.raises(ValueError, match="1-D"):
            propagate(_decay, 0.0, jnp.ones((2, 2)), 10.0, PropagatorConfig.with_fixed_step(1.0))

    def test_sample_interval_must_be_positive(self):
        with pytest.raises(ValueError, match="sample_interval"):
            propagate(
                _decay, 0.0, jnp.array([1.0]), 10.0,
                PropagatorConfig.with_fixed_step(1.0), sample_interval=0.0,
            )


# ──────────────────────────────────────────────
# Result container
# ──────────────────────────────────────────────


class TestPropagationResult:
    def test_iteration_and_indexing(self):
        config = PropagatorConfig.with_fixed_step(10.0)
        result = propagate(_unit_rate, 0.0, jnp.array([0.0]), 30.0, config, record_steps=True)
        assert isinstance(result, PropagationResult)
        pairs = list(result)
        assert len(pairs) == 4
        epoch, state = result[2]
        assert epoch == 20.0
        assert jnp.array_equal(state, result.states[2])

    def test_to_dataframe_float_epochs(self, leo_state):
        config = PropagatorConfig.with_fixed_step(10.0)
        df = propagate(two_body(), 0.0, leo_state, 60.0, config, record_steps=True).to_dataframe()
        assert isinstance(df, pl.DataFrame)
        assert df.columns == ["epoch", "elapsed", "x0", "x1", "x2", "x3", "x4", "x5"]
        assert df.height == 7
        assert df["epoch"].dtype == pl.Float64
        assert df["elapsed"].to_list() == [0.0, 10.0, 20.0, 30.0, 40.0, 50.0, 60.0]
        assert df["x0"][0] == pytest.approx(float(leo_state[0]))

    def test_to_dataframe_epoch_strings(self, leo_state):
        epc0 = Epoch(2024, 1, 1)
        config = PropagatorConfig.with_fixed_step(60.0)
        df = propagate(two_body(), epc0, leo_state, epc0 + 60.0, config).to_dataframe()
        assert df["epoch"].dtype == pl.Utf8
        assert df["epoch"].to_list() == ["2024-01-01T00:00:00.000Z", "2024-01-01T00:01:00.000Z"]
