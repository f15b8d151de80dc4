"""
Path simulation — geometric Brownian motion ensembles for the hedge horizon.

S_{t+dt} = S_t * exp((r - sigma^2/2)*dt + sigma*sqrt(dt)*Z)

The random part is generated once as a Brownian ensemble W (cumulative
sqrt(dt)*Z per path) and turned into prices for any (spot, rate, sigma):

    S_t = S_0 * exp((r - sigma^2/2)*t + sigma*W_t)

so every leg and every period of one calculation is priced against the same
random numbers. Batches of paths are generated on a thread pool; each batch
draws from its own child of a single SeedSequence, which keeps the output
identical for any worker count.
"""

import logging
import math
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import numpy as np

from fx_hedging.errors import ComputationCancelled, InvalidInputError

logger = logging.getLogger(__name__)

TRADING_DAYS = 252
MIN_STEPS = 50


# ── Shock generators ────────────────────────────────────────────────────

class GaussianShock:
    """Standard normal shocks (default)."""
    name = "gaussian"

    def __call__(self, rng, size):
        return rng.standard_normal(size)


class UniformShock:
    """
    Uniform shocks on [-1, 1].

    Reproduces results produced by the legacy calculator, which used this as a
    stand-in for a normal variate. Its tails are thinner than Gaussian and its
    variance is 1/3, so simulated volatility is understated.
    """
    name = "uniform"

    def __call__(self, rng, size):
        return rng.uniform(-1.0, 1.0, size)


SHOCKS = {
    GaussianShock.name: GaussianShock,
    UniformShock.name: UniformShock,
}


def make_shock(name):
    try:
        return SHOCKS[name]()
    except KeyError:
        raise InvalidInputError(
            f"Unknown shock generator: {name!r}. Available: {list(SHOCKS)}"
        ) from None


# ── Step grid ───────────────────────────────────────────────────────────

def n_steps_for(horizon_years):
    """max(252 * horizon, 50) steps; horizons <= 0 get the 50-step floor."""
    if horizon_years <= 0:
        return MIN_STEPS
    return max(int(math.ceil(TRADING_DAYS * horizon_years - 1e-9)), MIN_STEPS)


def monthly_indices(n_steps, horizon_years, period_times=None, n_periods=None):
    """
    Map each calendar period to the nearest path step.

    Parameters
    ----------
    n_steps       : int — number of steps in the path grid
    horizon_years : float — time covered by the grid
    period_times  : list[float] or None — time to maturity of each period
    n_periods     : int or None — used for uniform fractions (i+1)/n when
                    period_times is not given

    Returns
    -------
    np.ndarray[int] — one step index per period, within [0, n_steps]
    """
    if period_times is not None:
        if horizon_years <= 0:
            return np.zeros(len(period_times), dtype=int)
        fractions = np.asarray(period_times, dtype=np.float64) / horizon_years
    else:
        n = n_periods or 1
        fractions = np.arange(1, n + 1, dtype=np.float64) / n
    idx = np.rint(fractions * n_steps).astype(int)
    return np.clip(idx, 0, n_steps)


# ── BrownianEnsemble ────────────────────────────────────────────────────

@dataclass
class BrownianEnsemble:
    """Cumulative Brownian increments W [n_paths, n_steps+1] on a time grid."""
    W: np.ndarray
    times: np.ndarray

    @property
    def n_paths(self):
        return self.W.shape[0]

    @property
    def n_steps(self):
        return self.W.shape[1] - 1

    @property
    def horizon(self):
        return float(self.times[-1])

    def prices(self, spot, rate, sigma):
        """Read-only GBM price paths [n_paths, n_steps+1] starting at spot."""
        drift = (rate - 0.5 * sigma ** 2) * self.times
        paths = spot * np.exp(drift[np.newaxis, :] + sigma * self.W)
        paths.flags.writeable = False
        return paths


# ── PathSimulator ───────────────────────────────────────────────────────

class PathSimulator:
    """
    Generate GBM price paths across a hedge horizon.

    Usage:
        sim = PathSimulator(seed=42)
        paths, idx = sim.generate(1000, 1.0, spot=1.10, rate=0.02, volatility=0.1,
                                  n_periods=12)
    """

    def __init__(self, shock=None, seed=None, n_workers=4, batch_size=2000):
        """
        Parameters
        ----------
        shock      : callable(rng, size) -> np.ndarray, default GaussianShock
        seed       : int, SeedSequence or None — root seed; None draws fresh OS entropy
        n_workers  : int — thread pool size for batch generation
        batch_size : int — paths per batch (cancellation granularity)
        """
        self.shock = shock or GaussianShock()
        self.seed = seed
        self.n_workers = max(1, n_workers)
        self.batch_size = max(1, batch_size)

    def simulate_brownian(self, n_paths, horizon_years, cancel_event=None):
        """
        Simulate the Brownian ensemble shared by all pricing on this horizon.

        Raises ComputationCancelled if cancel_event is set between batches.
        """
        if n_paths < 1:
            raise InvalidInputError(f"n_paths must be >= 1, got {n_paths}")

        t0 = time.time()
        n_steps = n_steps_for(horizon_years)
        dt = horizon_years / n_steps if horizon_years > 0 else 0.0
        sqrt_dt = math.sqrt(dt)

        W = np.zeros((n_paths, n_steps + 1), dtype=np.float64)
        bounds = [
            (start, min(start + self.batch_size, n_paths))
            for start in range(0, n_paths, self.batch_size)
        ]
        root = self.seed
        if not isinstance(root, np.random.SeedSequence):
            root = np.random.SeedSequence(root)
        children = root.spawn(len(bounds))

        def run_batch(batch):
            (lo, hi), child = batch
            if cancel_event is not None and cancel_event.is_set():
                raise ComputationCancelled("Path simulation cancelled")
            rng = np.random.default_rng(child)
            Z = self.shock(rng, (hi - lo, n_steps))
            W[lo:hi, 1:] = np.cumsum(sqrt_dt * Z, axis=1)

        if len(bounds) == 1 or self.n_workers == 1:
            for batch in zip(bounds, children):
                run_batch(batch)
        else:
            with ThreadPoolExecutor(max_workers=min(self.n_workers, len(bounds))) as pool:
                # list() re-raises the first batch error, cancellation included
                list(pool.map(run_batch, zip(bounds, children)))

        if cancel_event is not None and cancel_event.is_set():
            raise ComputationCancelled("Path simulation cancelled")

        W.flags.writeable = False
        times = np.linspace(0.0, max(horizon_years, 0.0), n_steps + 1)
        logger.debug(
            f"Simulated {n_paths} x {n_steps} Brownian paths "
            f"({self.shock.name}) in {time.time() - t0:.2f}s"
        )
        return BrownianEnsemble(W=W, times=times)

    def generate(self, num_paths, horizon_years, spot, rate, volatility,
                 period_times=None, n_periods=None, cancel_event=None):
        """
        Generate price paths and the per-period step indices.

        Parameters
        ----------
        num_paths     : int
        horizon_years : float — simulation horizon
        spot          : float — path[0] for every path
        rate          : float — drift (decimal)
        volatility    : float — sigma (decimal)
        period_times  : list[float] or None — per-period times for the index map
        n_periods     : int or None — number of uniform periods otherwise

        Returns
        -------
        (paths, monthly_indices) : (np.ndarray [num_paths, n_steps+1], np.ndarray[int])
        """
        if spot <= 0 or math.isnan(spot):
            raise InvalidInputError(f"Spot must be > 0, got {spot}")
        if volatility < 0 or math.isnan(volatility):
            raise InvalidInputError(f"Volatility must be >= 0, got {volatility}")

        ensemble = self.simulate_brownian(num_paths, horizon_years, cancel_event)
        paths = ensemble.prices(spot, rate, volatility)
        indices = monthly_indices(
            ensemble.n_steps, horizon_years,
            period_times=period_times, n_periods=n_periods,
        )
        return paths, indices
