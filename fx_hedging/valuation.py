"""
Strategy valuation — per-period leg prices, payoffs and hedged vs unhedged cost.

For every period the valuator prices each leg at the period forward, pays it
out at the realized price (gated by the barrier state), and combines the
result with the strategy's swap share:

    swapShare   = sum(swap quantity) / 100
    hedgedPrice = swapShare * swapPrice + (1 - swapShare) * realized
    hedgedCost  = -(V * hedgedPrice)
                  - V * (1 - swapShare) * strategyPrice
                  + V * (1 - swapShare) * totalPayoff
    unhedged    = -V * realized
    deltaPnL    = hedgedCost - unhedged

Yearly and total summaries are plain reductions over the period results.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

import numpy as np

from fx_hedging.barriers import BarrierStateTracker
from fx_hedging.legs import BarrierMode
from fx_hedging.pricing import (
    OptionPricer, PricingMethod, black_scholes, intrinsic, static_payoff,
)

logger = logging.getLogger(__name__)


# ── Result records ──────────────────────────────────────────────────────

@dataclass
class LegPrice:
    key: str
    label: str
    type_tag: str
    price: float
    quantity: float          # fraction of notional, signed
    strike: float            # absolute
    payoff: float = 0.0
    active: bool = True      # False when a barrier has switched the payoff off
    custom: bool = False     # price came from a custom override

    def to_dict(self):
        return {
            "key": self.key,
            "label": self.label,
            "type": self.type_tag,
            "price": self.price,
            "quantity": self.quantity,
            "strike": self.strike,
            "payoff": self.payoff,
            "active": self.active,
            "custom": self.custom,
        }


@dataclass
class PeriodResult:
    date: date
    time_to_maturity: float
    forward: float
    real_price: float
    leg_prices: list = field(default_factory=list)
    strategy_price: float = 0.0
    total_payoff: float = 0.0
    monthly_volume: float = 0.0
    hedged_cost: float = 0.0
    unhedged_cost: float = 0.0
    delta_pnl: float = 0.0
    implied_volatility: Optional[float] = None  # percent, when an override was used

    @property
    def key(self):
        return f"{self.date.year}-{self.date.month}"

    @property
    def year(self):
        return self.date.year

    def to_dict(self):
        return {
            "date": self.date.isoformat(),
            "time_to_maturity": self.time_to_maturity,
            "forward": self.forward,
            "real_price": self.real_price,
            "leg_prices": [lp.to_dict() for lp in self.leg_prices],
            "strategy_price": self.strategy_price,
            "total_payoff": self.total_payoff,
            "monthly_volume": self.monthly_volume,
            "hedged_cost": self.hedged_cost,
            "unhedged_cost": self.unhedged_cost,
            "delta_pnl": self.delta_pnl,
            "implied_volatility": self.implied_volatility,
        }


@dataclass
class Summary:
    """Reduction of period results over a calendar year or the whole horizon."""
    label: str
    hedged_cost: float = 0.0
    unhedged_cost: float = 0.0
    delta_pnl: float = 0.0
    strategy_premium: float = 0.0
    volume: float = 0.0

    @property
    def cost_reduction_pct(self):
        """deltaPnL / |unhedged| in percent; None when unhedged cost is 0."""
        if self.unhedged_cost == 0:
            return None
        return self.delta_pnl / abs(self.unhedged_cost) * 100.0

    @property
    def hedged_rate(self):
        """Average all-in rate paid per unit when hedged; None for zero volume."""
        if self.volume == 0:
            return None
        return -self.hedged_cost / self.volume

    @property
    def unhedged_rate(self):
        if self.volume == 0:
            return None
        return -self.unhedged_cost / self.volume

    def to_dict(self):
        return {
            "label": self.label,
            "hedged_cost": self.hedged_cost,
            "unhedged_cost": self.unhedged_cost,
            "delta_pnl": self.delta_pnl,
            "strategy_premium": self.strategy_premium,
            "volume": self.volume,
            "cost_reduction_pct": self.cost_reduction_pct,
            "hedged_rate": self.hedged_rate,
            "unhedged_rate": self.unhedged_rate,
        }


def summarize(results, label="Total"):
    summary = Summary(label=label)
    for row in results:
        summary.hedged_cost += row.hedged_cost
        summary.unhedged_cost += row.unhedged_cost
        summary.delta_pnl += row.delta_pnl
        summary.strategy_premium += row.strategy_price * row.monthly_volume
        summary.volume += row.monthly_volume
    return summary


def yearly_summary(results):
    """One Summary per calendar year, in chronological order."""
    years = {}
    for row in results:
        years.setdefault(row.year, []).append(row)
    return [summarize(rows, label=str(year)) for year, rows in sorted(years.items())]


# ── Forwards, swap price, cost formula ──────────────────────────────────

def forward_price(spot, rate, t):
    return spot * math.exp(rate * t)


def period_forwards(params, periods, overrides=None):
    """Forward per period: the manual override if set, else spot * e^(r t)."""
    manual = overrides.forwards if overrides is not None else {}
    forwards = []
    for p in periods:
        value = manual.get(p.key)
        if value is None or value <= 0:
            value = forward_price(params.spot_price, params.rate, p.time_to_maturity)
        forwards.append(float(value))
    return forwards


def swap_price(forwards, times, rate, volumes=None):
    """
    Volume-weighted average of discounted forwards, forward_j * e^(-r t_j).

    Falls back to equal weights when no volume is given or it sums to 0.
    """
    if not forwards:
        return 0.0
    discounted = np.asarray(forwards, dtype=np.float64) * np.exp(
        -rate * np.asarray(times, dtype=np.float64)
    )
    weights = None if volumes is None else np.asarray(volumes, dtype=np.float64)
    if weights is None or weights.sum() == 0:
        return float(discounted.mean())
    return float(np.sum(discounted * weights) / weights.sum())


def swap_share(legs):
    return sum(leg.quantity for leg in legs if leg.is_swap) / 100.0


def hedged_cost(volume, realized, swap_px, share, strategy_price, total_payoff):
    hedged_px = share * swap_px + (1.0 - share) * realized
    return (
        -(volume * hedged_px)
        - volume * (1.0 - share) * strategy_price
        + volume * (1.0 - share) * total_payoff
    )


def leg_payoff(leg, realized, strike, forward, triggered=False):
    """
    Payoff of one leg at the realized price.

    Knock-outs pay 0 once triggered; knock-ins pay 0 until triggered. Swaps
    pay forward - realized.
    """
    if leg.is_swap:
        return forward - realized
    payoff = intrinsic(leg.is_call, realized, strike)
    if leg.barrier_mode == BarrierMode.KNOCKOUT and triggered:
        return 0.0
    if leg.barrier_mode == BarrierMode.KNOCKIN and not triggered:
        return 0.0
    return payoff


# ── StrategyValuator ────────────────────────────────────────────────────

class StrategyValuator:
    """
    Turn a strategy and a period schedule into PeriodResults.

    Usage:
        valuator = StrategyValuator(OptionPricer(seed=42))
        rows = valuator.value(params, legs, overrides, realized_prices)
    """

    def __init__(self, pricer=None, use_closed_form=True):
        self.pricer = pricer or OptionPricer()
        self.use_closed_form = use_closed_form
        self.tracker = BarrierStateTracker()

    def leg_volatility(self, leg, period, overrides):
        """(sigma as decimal, implied vol in percent or None)."""
        implied = overrides.implied_vol(period.key) if overrides is not None else None
        if implied is not None:
            return implied, implied * 100.0
        return leg.volatility / 100.0, None

    def value(self, params, legs, overrides=None, realized_prices=None,
              ensemble=None, period_indices=None, periods=None):
        """
        Value a strategy over the hedge horizon.

        Parameters
        ----------
        params          : HedgeParams
        legs            : list[StrategyLeg]
        overrides       : Overrides or None
        realized_prices : list[float] or None — one per period; defaults to
                          the real-price override, else the forward
        ensemble        : BrownianEnsemble or None — shared paths for Monte
                          Carlo barrier pricing
        period_indices  : np.ndarray[int] or None — ensemble step per period
        periods         : list[Period] or None — defaults to params.schedule()

        Returns
        -------
        list[PeriodResult] in maturity order
        """
        periods = periods if periods is not None else params.schedule()
        if not periods:
            return []

        r = params.rate
        spot = params.spot_price
        forwards = period_forwards(params, periods, overrides)
        if realized_prices is None:
            realized_prices = self.default_realized(periods, forwards, overrides)

        swap_px = swap_price(
            forwards, [p.time_to_maturity for p in periods], r,
            volumes=[p.volume for p in periods],
        )
        share = swap_share(legs)
        states = self.tracker.track(legs, realized_prices, spot)
        method = PricingMethod.CLOSED_FORM if self.use_closed_form else PricingMethod.MONTE_CARLO
        unit_paths = {}

        results = []
        for i, period in enumerate(periods):
            forward = forwards[i]
            realized = float(realized_prices[i])
            t = period.time_to_maturity
            implied_pct = None

            leg_prices = []
            strategy_px = 0.0
            total_payoff = 0.0
            for j, leg in enumerate(legs):
                key = leg.key(j)
                strike = leg.strike_level(spot)
                qty = leg.quantity / 100.0

                if leg.is_swap:
                    leg_prices.append(LegPrice(
                        key=key, label=leg.label(j), type_tag=leg.type_tag,
                        price=swap_px, quantity=qty, strike=swap_px,
                        payoff=leg_payoff(leg, realized, strike, forward),
                    ))
                    continue

                sigma, implied = self.leg_volatility(leg, period, overrides)
                if implied is not None:
                    implied_pct = implied

                custom = overrides.custom_price(period.key, key) if overrides is not None else None
                if custom is not None:
                    price = max(float(custom), 0.0)
                else:
                    price = self.price_leg(
                        leg, j, forward, strike, r, t, sigma, method,
                        ensemble, period_indices, i, unit_paths, spot,
                    )

                triggered = states.triggered(j, i)
                payoff = leg_payoff(leg, realized, strike, forward, triggered)
                active = not (
                    (leg.barrier_mode == BarrierMode.KNOCKOUT and triggered)
                    or (leg.barrier_mode == BarrierMode.KNOCKIN and not triggered)
                )
                strategy_px += price * qty
                total_payoff += payoff * qty
                leg_prices.append(LegPrice(
                    key=key, label=leg.label(j), type_tag=leg.type_tag,
                    price=price, quantity=qty, strike=strike, payoff=payoff,
                    active=active, custom=custom is not None,
                ))

            volume = period.volume
            h_cost = hedged_cost(volume, realized, swap_px, share, strategy_px, total_payoff)
            u_cost = -volume * realized
            results.append(PeriodResult(
                date=period.maturity,
                time_to_maturity=t,
                forward=forward,
                real_price=realized,
                leg_prices=leg_prices,
                strategy_price=strategy_px,
                total_payoff=total_payoff,
                monthly_volume=volume,
                hedged_cost=h_cost,
                unhedged_cost=u_cost,
                delta_pnl=h_cost - u_cost,
                implied_volatility=implied_pct,
            ))
        return results

    def price_leg(self, leg, index, forward, strike, r, t, sigma, method,
                  ensemble, period_indices, period_pos, unit_paths, spot):
        """Model price of an option leg for one period."""
        barrier, second = leg.barrier_levels(spot)
        needs_paths = leg.is_barrier and (
            method == PricingMethod.MONTE_CARLO
            or not self.pricer.supports_closed_form(leg)
        )
        if not needs_paths or ensemble is None or period_indices is None:
            return self.pricer.price(
                leg, forward, strike, r, t, sigma, method=method,
                barrier=barrier, second_barrier=second,
            )

        # Unit-spot paths per (leg, sigma); scaling by the forward reuses the
        # same random numbers for every period.
        cache_key = (index, sigma)
        if cache_key not in unit_paths:
            unit_paths[cache_key] = ensemble.prices(1.0, r, sigma)
        paths = forward * unit_paths[cache_key]
        dt = ensemble.horizon / ensemble.n_steps if ensemble.n_steps else 0.0
        return self.pricer.price(
            leg, forward, strike, r, t, sigma, method=method,
            paths=paths, maturity_index=int(period_indices[period_pos]),
            barrier=barrier, second_barrier=second, dt=dt,
        )

    @staticmethod
    def default_realized(periods, forwards, overrides):
        """Real-price override per period, else the forward."""
        manual = overrides.real_prices if overrides is not None else {}
        realized = []
        for period, forward in zip(periods, forwards):
            value = manual.get(period.key)
            realized.append(float(value) if value is not None and value > 0 else forward)
        return realized


# ── Payoff diagram ──────────────────────────────────────────────────────

def payoff_diagram(params, legs, include_premium=True, points=101):
    """
    Strategy payoff at maturity across 50% .. 150% of spot.

    Barrier legs use the static approximation (final price only). The premium
    of each option leg is its Black-Scholes price at spot with t = 1.

    Returns
    -------
    list[dict] — {"price": float, "payoff": float}
    """
    spot = params.spot_price
    r = params.rate
    grid = spot * np.linspace(0.5, 1.5, points)

    resolved = []
    for leg in legs:
        if leg.is_swap:
            continue
        strike = leg.strike_level(spot)
        barrier, second = leg.barrier_levels(spot)
        premium = 0.0
        if include_premium:
            premium = black_scholes(leg.is_call, spot, strike, r, 1.0, leg.volatility / 100.0)
        resolved.append((leg, strike, barrier, second, premium, leg.quantity / 100.0))

    diagram = []
    for price in grid:
        total = 0.0
        for leg, strike, barrier, second, premium, qty in resolved:
            total += qty * (static_payoff(leg, price, strike, barrier, second) - premium)
        diagram.append({"price": float(price), "payoff": total})
    return diagram
