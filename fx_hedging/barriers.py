"""
Barrier touch rule and the absorbing barrier state over the hedge horizon.

Touch rule:
    standard call   price >= barrier   (up barrier)
    standard put    price <= barrier   (down barrier)
    reverse         comparison inverted (reverse call: down, reverse put: up)
    double          price outside [min(b1, b2), max(b1, b2)]

The same rule drives the Monte Carlo pricer (along each simulated path) and
the tracker below (along the realized price series).
"""

import logging

import numpy as np

from fx_hedging.legs import BarrierShape, OptionKind

logger = logging.getLogger(__name__)

UP = "up"
DOWN = "down"


def barrier_direction(leg):
    """UP or DOWN for a single-barrier leg, None for double or non-barrier legs."""
    if not leg.is_barrier or leg.barrier_shape == BarrierShape.DOUBLE:
        return None
    up = leg.kind == OptionKind.CALL
    if leg.barrier_shape == BarrierShape.REVERSE:
        up = not up
    return UP if up else DOWN


def barrier_touched(leg, prices, barrier, second_barrier=None):
    """
    Vectorised touch test.

    Parameters
    ----------
    leg            : StrategyLeg — must be a barrier leg
    prices         : float or np.ndarray
    barrier        : float — absolute level
    second_barrier : float or None — absolute level, double barriers only

    Returns
    -------
    bool or np.ndarray[bool] matching the shape of prices
    """
    prices = np.asarray(prices)
    if leg.barrier_shape == BarrierShape.DOUBLE:
        lo, hi = min(barrier, second_barrier), max(barrier, second_barrier)
        return (prices < lo) | (prices > hi)
    if barrier_direction(leg) == UP:
        return prices >= barrier
    return prices <= barrier


# ── BarrierStateTracker ─────────────────────────────────────────────────

class BarrierStates:
    """Per barrier leg, a bool array over periods: True once triggered."""

    def __init__(self, states, n_periods):
        self._states = states  # leg index -> np.ndarray[bool]
        self.n_periods = n_periods

    def triggered(self, leg_index, period):
        flags = self._states.get(leg_index)
        if flags is None:
            return False
        return bool(flags[period])

    def series(self, leg_index):
        return self._states.get(leg_index)

    def first_trigger(self, leg_index):
        """Index of the first triggered period, or None."""
        flags = self._states.get(leg_index)
        if flags is None or not flags.any():
            return None
        return int(np.argmax(flags))

    @property
    def leg_indices(self):
        return sorted(self._states)

    def to_dict(self):
        return {idx: flags.tolist() for idx, flags in self._states.items()}

    def __repr__(self):
        return f"BarrierStates(legs={self.leg_indices}, periods={self.n_periods})"


class BarrierStateTracker:
    """
    Derive knocked-in / knocked-out state from the realized price series.

    A leg's flag starts False and becomes True the first period its touch rule
    holds; it stays True for every later period, whatever the price does
    afterwards (no knock-back).
    """

    def track(self, legs, realized_prices, spot):
        """
        Parameters
        ----------
        legs            : list[StrategyLeg]
        realized_prices : sequence[float] — one price per period, chronological
        spot            : float — reference for percent barriers

        Returns
        -------
        BarrierStates
        """
        prices = np.asarray(realized_prices, dtype=np.float64)
        states = {}
        for idx, leg in enumerate(legs):
            if not leg.is_barrier:
                continue
            barrier, second = leg.barrier_levels(spot)
            touched = np.atleast_1d(barrier_touched(leg, prices, barrier, second))
            states[idx] = np.logical_or.accumulate(touched) if len(touched) else touched
            if states[idx].any():
                logger.debug(
                    f"Leg {idx} ({leg.type_tag}) triggered at period "
                    f"{int(np.argmax(states[idx]))}"
                )
        return BarrierStates(states, len(prices))
