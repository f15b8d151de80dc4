"""
HedgeEngine — one full calculation from inputs to period results.

    params + legs + overrides
        -> schedule, forwards
        -> realized price series (overrides, forwards, or one simulated path)
        -> shared Brownian ensemble for Monte Carlo barrier pricing
        -> StrategyValuator -> PeriodResults
        -> yearly / total summaries, simulation sample, payoff diagram

The engine keeps nothing between calls; every call rebuilds everything from
its arguments.
"""

import logging
import math
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace

import numpy as np

from fx_hedging.errors import ComputationCancelled
from fx_hedging.legs import BarrierShape
from fx_hedging.params import Overrides, SimulationConfig
from fx_hedging.paths import PathSimulator, make_shock, monthly_indices
from fx_hedging.pricing import OptionPricer, barrier_payoffs, survival_weights
from fx_hedging.scenarios import STRESS_SCENARIOS, apply_stress_scenario
from fx_hedging.valuation import (
    StrategyValuator, payoff_diagram, period_forwards, summarize, yearly_summary,
)

logger = logging.getLogger(__name__)


@dataclass
class SimulationData:
    """
    Sampled paths for display, one value per period.

    real_price_paths are rows drawn at random from the realized-price
    ensemble. barrier_option_paths hold the discounted payoff of the first
    barrier leg along each sampled path, priced at the period's volatility
    (implied vol override when active, leg volatility otherwise).
    """
    time_labels: list = field(default_factory=list)
    real_price_paths: list = field(default_factory=list)
    barrier_option_paths: list = field(default_factory=list)
    barrier_leg_key: str = None

    def to_dict(self):
        return {
            "time_labels": list(self.time_labels),
            "real_price_paths": [list(p) for p in self.real_price_paths],
            "barrier_option_paths": [list(p) for p in self.barrier_option_paths],
            "barrier_leg_key": self.barrier_leg_key,
        }


@dataclass
class HedgeResults:
    periods: list = field(default_factory=list)
    yearly: list = field(default_factory=list)
    total: object = None
    simulation: SimulationData = field(default_factory=SimulationData)
    payoff: list = field(default_factory=list)

    def to_dict(self):
        return {
            "periods": [p.to_dict() for p in self.periods],
            "yearly": [y.to_dict() for y in self.yearly],
            "total": self.total.to_dict() if self.total is not None else None,
            "simulation": self.simulation.to_dict(),
            "payoff": list(self.payoff),
        }


def _check_cancel(cancel_event):
    if cancel_event is not None and cancel_event.is_set():
        raise ComputationCancelled("Hedge calculation cancelled")


def sample_rows(n_paths, n_sample, rng):
    """Sorted row indices of up to n_sample paths drawn without replacement."""
    size = min(n_sample, n_paths)
    return np.sort(rng.choice(n_paths, size=size, replace=False))


class HedgeEngine:
    """
    Stateless orchestrator for a hedge calculation.

    Usage:
        engine = HedgeEngine(SimulationConfig(use_simulation=True))
        results = engine.compute(params, legs, overrides)
        results.total.delta_pnl
    """

    def __init__(self, config=None):
        self.config = config or SimulationConfig()

    def _needs_barrier_paths(self, legs):
        for leg in legs:
            if not leg.is_barrier:
                continue
            if not self.config.use_closed_form or leg.barrier_shape == BarrierShape.DOUBLE:
                return True
        return False

    def compute(self, params, legs, overrides=None, cancel_event=None):
        """
        Parameters
        ----------
        params       : HedgeParams
        legs         : list[StrategyLeg]
        overrides    : Overrides or None
        cancel_event : threading.Event or None — set by a newer submission

        Returns
        -------
        HedgeResults
        """
        t0 = time.time()
        cfg = self.config
        overrides = overrides or Overrides()
        periods = params.schedule()
        if not periods:
            logger.warning("Empty hedge schedule; nothing to compute")
            return HedgeResults(total=summarize([]), payoff=payoff_diagram(params, legs))

        horizon = max(p.time_to_maturity for p in periods)
        times = [p.time_to_maturity for p in periods]
        forwards = period_forwards(params, periods, overrides)

        real_seed, barrier_seed, sample_seed = np.random.SeedSequence(cfg.random_seed).spawn(3)
        rng = np.random.default_rng(sample_seed)
        shock = make_shock(cfg.shock)

        # Realized prices
        simulation = SimulationData(time_labels=[p.maturity.isoformat() for p in periods])
        if cfg.use_simulation:
            sim = PathSimulator(shock, real_seed, cfg.n_workers, cfg.batch_size)
            real_paths, real_idx = sim.generate(
                cfg.real_price_paths, horizon, params.spot_price,
                cfg.real_price_drift, cfg.real_price_volatility,
                period_times=times, cancel_event=cancel_event,
            )
            realized = [float(v) for v in real_paths[0, real_idx]]
            rows = sample_rows(real_paths.shape[0], cfg.sample_paths, rng)
            sample = real_paths[rows][:, real_idx]
            simulation.real_price_paths = sample.tolist()
        else:
            realized = StrategyValuator.default_realized(periods, forwards, overrides)

        _check_cancel(cancel_event)

        # Shared ensemble for path-dependent pricing
        ensemble, idx = None, None
        if self._needs_barrier_paths(legs):
            sim = PathSimulator(shock, barrier_seed, cfg.n_workers, cfg.batch_size)
            ensemble = sim.simulate_brownian(cfg.barrier_paths, horizon, cancel_event)
            idx = monthly_indices(ensemble.n_steps, horizon, period_times=times)

        pricer = OptionPricer(
            n_paths=cfg.barrier_paths, seed=cfg.random_seed,
            batch_size=cfg.batch_size, shock=shock,
        )
        valuator = StrategyValuator(pricer, use_closed_form=cfg.use_closed_form)
        rows = valuator.value(
            params, legs, overrides, realized,
            ensemble=ensemble, period_indices=idx, periods=periods,
        )
        _check_cancel(cancel_event)

        self._sample_barrier_paths(
            simulation, params, legs, periods, forwards, shock, barrier_seed, ensemble, idx,
            valuator, overrides, rng,
        )

        results = HedgeResults(
            periods=rows,
            yearly=yearly_summary(rows),
            total=summarize(rows),
            simulation=simulation,
            payoff=payoff_diagram(params, legs),
        )
        logger.info(
            f"Computed {len(rows)} periods x {len(legs)} legs in {time.time() - t0:.2f}s "
            f"(simulation={'on' if cfg.use_simulation else 'off'}, "
            f"barrier paths={'shared' if ensemble is not None else 'none'})"
        )
        return results

    def _sample_barrier_paths(self, simulation, params, legs, periods, forwards,
                              shock, seed, ensemble, idx, valuator, overrides, rng):
        """Per-period discounted payoff along sampled paths for the first barrier leg."""
        index = next((i for i, leg in enumerate(legs) if leg.is_barrier), None)
        if index is None:
            return
        cfg = self.config
        leg = legs[index]
        r = params.rate
        if ensemble is None:
            horizon = max(p.time_to_maturity for p in periods)
            sim = PathSimulator(shock, seed, 1, cfg.sample_paths)
            ensemble = sim.simulate_brownian(cfg.sample_paths, horizon)
            idx = monthly_indices(ensemble.n_steps, horizon,
                                  period_times=[p.time_to_maturity for p in periods])

        rows = sample_rows(ensemble.n_paths, cfg.sample_paths, rng)
        unit_by_sigma = {}
        dt = ensemble.horizon / ensemble.n_steps if ensemble.n_steps else 0.0
        strike = leg.strike_level(params.spot_price)
        barrier, second = leg.barrier_levels(params.spot_price)

        values = np.zeros((len(rows), len(periods)))
        for i, (period, forward) in enumerate(zip(periods, forwards)):
            sigma, _ = valuator.leg_volatility(leg, period, overrides)
            if sigma not in unit_by_sigma:
                unit_by_sigma[sigma] = ensemble.prices(1.0, r, sigma)[rows]
            unit = unit_by_sigma[sigma]
            window = forward * unit[:, :int(idx[i]) + 1]
            survival = survival_weights(leg, window, barrier, second, sigma, dt)
            payoffs = barrier_payoffs(leg, strike, window, int(idx[i]), survival)
            values[:, i] = math.exp(-r * period.time_to_maturity) * payoffs

        simulation.barrier_option_paths = values.tolist()
        simulation.barrier_leg_key = leg.key(index)

    def run_all_scenarios(self, params, legs, overrides=None, names=None):
        """
        Run predefined stress scenarios in parallel.

        Returns dict[scenario_name, HedgeResults].
        """
        names = list(names or STRESS_SCENARIOS)

        def run(name):
            scenario_overrides, changes = apply_stress_scenario(params, name, overrides)
            engine = HedgeEngine(replace(self.config, **changes))
            return engine.compute(params, legs, scenario_overrides)

        with ThreadPoolExecutor(max_workers=min(8, len(names) or 1)) as pool:
            futures = {pool.submit(run, name): name for name in names}
            results = {}
            for future in futures:
                results[futures[future]] = future.result()
        return results
