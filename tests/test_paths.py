"""Tests for PathSimulator — GBM ensembles, seeding, batching, cancellation."""

import threading

import numpy as np
import pytest
from scipy.stats import kurtosis

from fx_hedging.errors import ComputationCancelled, InvalidInputError
from fx_hedging.paths import (
    GaussianShock,
    PathSimulator,
    UniformShock,
    make_shock,
    monthly_indices,
    n_steps_for,
)


class TestStepGrid:
    def test_one_year_daily(self):
        assert n_steps_for(1.0) == 252

    def test_floor_of_fifty(self):
        assert n_steps_for(0.1) == 50
        assert n_steps_for(0.0) == 50
        assert n_steps_for(-1.0) == 50

    def test_multi_year(self):
        assert n_steps_for(2.0) == 504

    def test_monthly_indices_from_times(self):
        times = [i / 12 for i in range(1, 13)]
        idx = monthly_indices(252, 1.0, period_times=times)
        assert list(idx) == [21 * i for i in range(1, 13)]

    def test_monthly_indices_uniform(self):
        idx = monthly_indices(100, 1.0, n_periods=4)
        assert list(idx) == [25, 50, 75, 100]

    def test_monthly_indices_clipped(self):
        idx = monthly_indices(50, 1.0, period_times=[-0.5, 2.0])
        assert list(idx) == [0, 50]

    def test_zero_horizon_indices(self):
        assert list(monthly_indices(50, 0.0, period_times=[0.0, 0.0])) == [0, 0]


class TestShocks:
    def test_uniform_bounds(self):
        z = UniformShock()(np.random.default_rng(0), 50_000)
        assert z.min() >= -1.0
        assert z.max() <= 1.0
        assert np.var(z) == pytest.approx(1 / 3, rel=0.02)

    def test_gaussian_moments(self):
        z = GaussianShock()(np.random.default_rng(0), 100_000)
        assert np.mean(z) == pytest.approx(0.0, abs=0.01)
        assert np.std(z) == pytest.approx(1.0, abs=0.01)
        assert kurtosis(z) == pytest.approx(0.0, abs=0.05)

    def test_uniform_is_platykurtic(self):
        z = UniformShock()(np.random.default_rng(0), 100_000)
        assert kurtosis(z) == pytest.approx(-1.2, abs=0.05)

    def test_make_shock(self):
        assert isinstance(make_shock("uniform"), UniformShock)
        with pytest.raises(InvalidInputError, match="Unknown shock"):
            make_shock("cauchy")


class TestPathSimulator:
    def test_shape_and_start(self):
        sim = PathSimulator(seed=42)
        paths, idx = sim.generate(500, 1.0, spot=1.10, rate=0.02, volatility=0.1,
                                  n_periods=12)
        assert paths.shape == (500, 253)
        assert np.allclose(paths[:, 0], 1.10)
        assert np.all(paths > 0)
        assert len(idx) == 12
        assert idx[-1] == 252

    def test_read_only(self):
        paths, _ = PathSimulator(seed=1).generate(10, 0.5, 100.0, 0.02, 0.2)
        with pytest.raises(ValueError):
            paths[0, 0] = 1.0

    def test_seed_reproducible(self):
        a, _ = PathSimulator(seed=7).generate(200, 1.0, 100.0, 0.02, 0.2)
        b, _ = PathSimulator(seed=7).generate(200, 1.0, 100.0, 0.02, 0.2)
        c, _ = PathSimulator(seed=8).generate(200, 1.0, 100.0, 0.02, 0.2)
        assert np.array_equal(a, b)
        assert not np.array_equal(a, c)

    def test_worker_count_does_not_change_output(self):
        one = PathSimulator(seed=3, n_workers=1, batch_size=100)
        many = PathSimulator(seed=3, n_workers=4, batch_size=100)
        a, _ = one.generate(1000, 1.0, 100.0, 0.02, 0.2)
        b, _ = many.generate(1000, 1.0, 100.0, 0.02, 0.2)
        assert np.array_equal(a, b)

    def test_zero_horizon_flat(self):
        paths, _ = PathSimulator(seed=1).generate(20, 0.0, 100.0, 0.02, 0.2)
        assert np.allclose(paths, 100.0)

    def test_risk_neutral_drift(self):
        paths, _ = PathSimulator(seed=11).generate(20_000, 1.0, 100.0, 0.02, 0.2)
        assert np.mean(paths[:, -1]) == pytest.approx(100.0 * np.exp(0.02), rel=0.01)

    def test_terminal_volatility(self):
        paths, _ = PathSimulator(seed=5).generate(20_000, 1.0, 100.0, 0.0, 0.2)
        log_returns = np.log(paths[:, -1] / 100.0)
        assert np.std(log_returns) == pytest.approx(0.2, rel=0.03)

    def test_ensemble_reprices_any_sigma(self):
        ens = PathSimulator(seed=2).simulate_brownian(50, 1.0)
        low = ens.prices(100.0, 0.02, 0.1)
        high = ens.prices(100.0, 0.02, 0.3)
        assert ens.n_paths == 50
        assert ens.n_steps == 252
        assert ens.horizon == pytest.approx(1.0)
        assert np.std(np.log(high[:, -1])) > np.std(np.log(low[:, -1]))

    def test_cancel_event(self):
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(ComputationCancelled):
            PathSimulator(seed=1, batch_size=10).generate(
                100, 1.0, 100.0, 0.02, 0.2, cancel_event=cancel,
            )

    def test_invalid_inputs(self):
        sim = PathSimulator(seed=1)
        with pytest.raises(InvalidInputError):
            sim.generate(10, 1.0, spot=0.0, rate=0.02, volatility=0.2)
        with pytest.raises(InvalidInputError):
            sim.generate(10, 1.0, spot=100.0, rate=0.02, volatility=-0.2)
        with pytest.raises(InvalidInputError):
            sim.generate(0, 1.0, spot=100.0, rate=0.02, volatility=0.2)

    def test_seed_sequence_accepted(self):
        seq = np.random.SeedSequence(9)
        a = PathSimulator(seed=seq).simulate_brownian(10, 1.0).W
        b = PathSimulator(seed=np.random.SeedSequence(9)).simulate_brownian(10, 1.0).W
        assert np.array_equal(a, b)
