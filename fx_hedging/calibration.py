"""
Implied volatility calibration.

Vanilla legs use Newton-Raphson on the Black-Scholes price:

    sigma_{n+1} = sigma_n - (BS(sigma_n) - observed) / vega(sigma_n)

starting at 20%, clamped to [0.1%, 100%]. Barrier legs have no usable vega
here, so they are fitted by grid search over the barrier pricer.

Non-convergence is not an error: the best sigma seen is returned and a
warning is logged.
"""

import logging
import math

import numpy as np

from fx_hedging.errors import InvalidInputError
from fx_hedging.pricing import OptionPricer, PricingMethod, black_scholes, vega
from fx_hedging.valuation import period_forwards

logger = logging.getLogger(__name__)

SIGMA_START = 0.20
SIGMA_MIN = 0.001
SIGMA_MAX = 1.0
TOLERANCE = 1e-4
MAX_ITERATIONS = 100
MIN_VEGA = 1e-10
GRID = np.linspace(0.01, 1.0, 50)


class VolatilityCalibrator:
    """
    Back out the volatility that reproduces an observed option price.

    Usage:
        cal = VolatilityCalibrator()
        vol_pct = cal.implied_volatility(leg, S=100, K=100, r=0.02, t=1.0, observed=8.9)
    """

    def __init__(self, pricer=None, use_closed_form=True):
        # Fixed seed so barrier grid searches are repeatable
        self.pricer = pricer or OptionPricer(n_paths=2000, seed=42)
        self.use_closed_form = use_closed_form

    def implied_volatility(self, leg, S, K, r, t, observed, barrier=None,
                           second_barrier=None):
        """
        Parameters
        ----------
        leg            : StrategyLeg — call or put, with or without barrier
        S, K           : float — underlying and absolute strike
        r, t           : float — rate (decimal) and time to maturity (years)
        observed       : float — market price per unit, > 0
        barrier        : float or None — absolute level (default: from leg at S)
        second_barrier : float or None

        Returns
        -------
        float — implied volatility in percent
        """
        if observed is None or math.isnan(observed) or observed <= 0:
            raise InvalidInputError(f"Observed price must be > 0, got {observed}")
        if leg.is_swap:
            raise InvalidInputError("Swap legs have no volatility to calibrate")
        self.pricer.validate(S, K, r, t, SIGMA_START)

        if leg.is_barrier:
            sigma = self._grid_search(leg, S, K, r, t, observed, barrier, second_barrier)
        else:
            sigma = self._newton(leg.is_call, S, K, r, t, observed)
        return sigma * 100.0

    def _newton(self, is_call, S, K, r, t, observed):
        sigma = SIGMA_START
        best_sigma, best_diff = sigma, math.inf

        for i in range(MAX_ITERATIONS):
            diff = black_scholes(is_call, S, K, r, t, sigma) - observed
            if abs(diff) < best_diff:
                best_sigma, best_diff = sigma, abs(diff)
            if abs(diff) < TOLERANCE:
                logger.debug(f"Implied vol converged to {sigma:.6f} in {i + 1} iterations")
                return sigma

            v = vega(S, K, r, t, sigma)
            if v < MIN_VEGA:
                logger.warning(
                    f"Vega vanished at sigma={sigma:.4f}; returning best sigma "
                    f"{best_sigma:.4f} (|diff|={best_diff:.2e})"
                )
                return best_sigma

            sigma = min(max(sigma - diff / v, SIGMA_MIN), SIGMA_MAX)

        logger.warning(
            f"Implied vol did not converge in {MAX_ITERATIONS} iterations; "
            f"returning best sigma {best_sigma:.4f} (|diff|={best_diff:.2e})"
        )
        return best_sigma

    def _grid_search(self, leg, S, K, r, t, observed, barrier, second_barrier):
        method = PricingMethod.CLOSED_FORM if self.use_closed_form else PricingMethod.MONTE_CARLO
        diffs = np.array([
            abs(self.pricer.price(
                leg, S, K, r, t, float(sigma), method=method,
                barrier=barrier, second_barrier=second_barrier,
            ) - observed)
            for sigma in GRID
        ])
        best = int(np.argmin(diffs))
        logger.debug(
            f"Barrier grid search for {leg.type_tag}: sigma={GRID[best]:.4f} "
            f"(|diff|={diffs[best]:.4f})"
        )
        return float(GRID[best])

    def calibrate_periods(self, params, legs, overrides, leg_index=0):
        """
        Turn custom option price overrides into implied-vol overrides.

        For every period with a custom price for legs[leg_index], back out the
        volatility at the period forward.

        Returns
        -------
        dict — month key -> implied volatility in percent
        """
        if not legs or leg_index >= len(legs):
            return {}
        leg = legs[leg_index]
        if leg.is_swap:
            return {}

        leg_key = leg.key(leg_index)
        periods = params.schedule()
        forwards = period_forwards(params, periods, overrides)
        strike = leg.strike_level(params.spot_price)
        barrier, second = leg.barrier_levels(params.spot_price)

        vols = {}
        for period, forward in zip(periods, forwards):
            observed = overrides.custom_price(period.key, leg_key)
            if observed is None or observed <= 0:
                continue
            vols[period.key] = self.implied_volatility(
                leg, forward, strike, params.rate, period.time_to_maturity, observed,
                barrier=barrier, second_barrier=second,
            )
        logger.info(f"Calibrated {len(vols)} implied vols from {leg_key} prices")
        return vols
