"""
Risk matrix — hedged vs unhedged P&L of candidate strategies across price ranges.

Each strategy is evaluated at a coverage ratio (percent of the exposure
hedged). For every price range the underlying is held at the range midpoint
for every period, and the delta P&L is summed over the horizon:

    covered     = V * ratio / 100
    hedgedPrice = s * swapPrice + (1 - s) * mid
    hedged      = -(V - covered) * mid - covered * hedgedPrice
                  - covered * (1 - s) * strategyPrice
                  + covered * (1 - s) * payoff(mid)
    unhedged    = -V * mid

Barrier legs are paid out with the static approximation (final price only).
Results are linear in the coverage ratio, so other ratios are derived by
rescaling instead of recomputing.
"""

import logging
import time
from dataclasses import dataclass, field

from fx_hedging.errors import InvalidInputError
from fx_hedging.pricing import static_payoff
from fx_hedging.valuation import StrategyValuator, period_forwards, swap_price, swap_share

logger = logging.getLogger(__name__)

DEFAULT_COVERAGE_RATIOS = (25, 50, 75, 100)


@dataclass
class PriceRange:
    min: float
    max: float
    probability: float  # percent

    def __post_init__(self):
        if self.min > self.max:
            raise InvalidInputError(f"Price range min {self.min} > max {self.max}")
        if self.probability < 0:
            raise InvalidInputError(f"Probability must be >= 0, got {self.probability}")

    @property
    def midpoint(self):
        return (self.min + self.max) / 2.0

    @property
    def key(self):
        """Exact bound key for result lookups; label is rounded for display."""
        return f"{self.min!r}-{self.max!r}"

    @property
    def label(self):
        return f"{self.min:.4g}-{self.max:.4g}"

    def to_dict(self):
        return {"min": self.min, "max": self.max, "probability": self.probability}


@dataclass
class RiskStrategy:
    name: str
    legs: tuple
    coverage_ratio: float = 100.0

    def __post_init__(self):
        self.legs = tuple(self.legs)
        if not 0 <= self.coverage_ratio <= 100:
            raise InvalidInputError(
                f"Coverage ratio must be within [0, 100], got {self.coverage_ratio}"
            )


@dataclass
class RiskMatrixResult:
    strategy_name: str
    coverage_ratio: float
    hedging_cost: float
    differences: dict = field(default_factory=dict)  # range key -> delta P&L
    expected_value: float = None

    def to_dict(self):
        return {
            "strategy_name": self.strategy_name,
            "coverage_ratio": self.coverage_ratio,
            "hedging_cost": self.hedging_cost,
            "differences": dict(self.differences),
            "expected_value": self.expected_value,
        }


def expected_value(differences, ranges):
    """
    Probability-weighted mean of the per-range differences.

    Probabilities are normalised by their sum; None when they sum to 0.
    """
    weights = sum(r.probability / 100.0 for r in ranges)
    if weights == 0:
        return None
    total = sum(differences[r.key] * r.probability / 100.0 for r in ranges)
    return total / weights


def coverage_variations(result, ranges, ratios=DEFAULT_COVERAGE_RATIOS):
    """
    Rescale a result to other coverage ratios without recomputation.

    Raises InvalidInputError when the base ratio is 0 (nothing to scale).
    """
    if result.coverage_ratio == 0:
        raise InvalidInputError("Cannot rescale a risk matrix result with zero coverage")

    variations = []
    for ratio in ratios:
        factor = ratio / result.coverage_ratio
        diffs = {key: value * factor for key, value in result.differences.items()}
        variations.append(RiskMatrixResult(
            strategy_name=result.strategy_name,
            coverage_ratio=ratio,
            hedging_cost=result.hedging_cost * factor,
            differences=diffs,
            expected_value=expected_value(diffs, ranges),
        ))
    return variations


class RiskMatrixEngine:
    """
    Evaluate strategies against price ranges.

    Usage:
        engine = RiskMatrixEngine()
        results = engine.evaluate(params, [RiskStrategy("Collar", legs, 50)], ranges)
    """

    def __init__(self, valuator=None):
        self.valuator = valuator or StrategyValuator()

    def evaluate(self, params, strategies, ranges, overrides=None):
        """
        Parameters
        ----------
        params     : HedgeParams
        strategies : list[RiskStrategy]
        ranges     : list[PriceRange]
        overrides  : Overrides or None — forwards / implied vols for pricing

        Returns
        -------
        list[RiskMatrixResult] — one per strategy, in input order
        """
        t0 = time.time()
        periods = params.schedule()
        forwards = period_forwards(params, periods, overrides)
        swap_px = swap_price(
            forwards, [p.time_to_maturity for p in periods], params.rate,
            volumes=[p.volume for p in periods],
        )

        cache = {}
        results = []
        for strategy in strategies:
            cache_key = (strategy.legs, strategy.coverage_ratio)
            if cache_key not in cache:
                cache[cache_key] = self._evaluate_one(
                    params, periods, strategy, ranges, overrides, swap_px,
                )
            else:
                logger.debug(f"Reusing risk matrix result for {strategy.name}")
            cached = cache[cache_key]
            results.append(RiskMatrixResult(
                strategy_name=strategy.name,
                coverage_ratio=cached.coverage_ratio,
                hedging_cost=cached.hedging_cost,
                differences=dict(cached.differences),
                expected_value=cached.expected_value,
            ))

        logger.info(
            f"Risk matrix: {len(strategies)} strategies x {len(ranges)} ranges "
            f"({len(cache)} evaluated) in {time.time() - t0:.2f}s"
        )
        return results

    def _evaluate_one(self, params, periods, strategy, ranges, overrides, swap_px):
        legs = list(strategy.legs)
        rows = self.valuator.value(params, legs, overrides, periods=periods)
        share = swap_share(legs)
        ratio = strategy.coverage_ratio / 100.0
        spot = params.spot_price

        resolved = [
            (leg, leg.strike_level(spot), *leg.barrier_levels(spot), leg.quantity / 100.0)
            for leg in legs if not leg.is_swap
        ]

        hedging_cost = sum(row.strategy_price * row.monthly_volume * ratio for row in rows)
        differences = {}
        for price_range in ranges:
            mid = price_range.midpoint
            payoff = sum(
                qty * static_payoff(leg, mid, strike, barrier, second)
                for leg, strike, barrier, second, qty in resolved
            )
            hedged_px = share * swap_px + (1.0 - share) * mid
            pnl = 0.0
            for row in rows:
                volume = row.monthly_volume
                covered = volume * ratio
                hedged = (
                    -(volume - covered) * mid
                    - covered * hedged_px
                    - covered * (1.0 - share) * row.strategy_price
                    + covered * (1.0 - share) * payoff
                )
                pnl += hedged - (-volume * mid)
            differences[price_range.key] = pnl

        return RiskMatrixResult(
            strategy_name=strategy.name,
            coverage_ratio=strategy.coverage_ratio,
            hedging_cost=hedging_cost,
            differences=differences,
            expected_value=expected_value(differences, ranges),
        )
