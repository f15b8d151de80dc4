"""
Stress scenarios and historical statistics, turned into override maps.

A stress scenario never touches the pricing code: it only rewrites the
forward curve and/or realized prices the engine is fed, and swaps in its own
volatility and drift for the real-price simulation (which it switches off).
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd

from fx_hedging.errors import InvalidInputError
from fx_hedging.params import Overrides, month_key

logger = logging.getLogger(__name__)

TRADING_DAYS = 252

# Predefined stress scenarios
STRESS_SCENARIOS = {
    "Base Case": {
        "volatility": 0.20,
        "drift": 0.01,
        "price_shock": 0.0,
        "forward_basis": 0.0,
        "description": "Normal market conditions",
    },
    "High Volatility": {
        "volatility": 0.40,
        "drift": 0.01,
        "price_shock": 0.0,
        "forward_basis": 0.0,
        "description": "Double volatility scenario",
    },
    "Market Crash": {
        "volatility": 0.50,
        "drift": -0.03,
        "price_shock": -0.20,
        "forward_basis": 0.0,
        "trend": "down",
        "description": "High volatility, negative drift, price shock",
    },
    "Bull Market": {
        "volatility": 0.15,
        "drift": 0.02,
        "price_shock": 0.10,
        "forward_basis": 0.0,
        "trend": "up",
        "description": "Low volatility, positive drift, upward shock",
    },
    "Contango": {
        "volatility": 0.20,
        "drift": 0.01,
        "price_shock": 0.0,
        "forward_basis": 0.01,
        "description": "Forward prices higher than spot (monthly basis)",
    },
    "Backwardation": {
        "volatility": 0.20,
        "drift": 0.01,
        "price_shock": 0.0,
        "forward_basis": -0.01,
        "description": "Forward prices lower than spot (monthly basis)",
    },
    "Contango (Real Prices)": {
        "volatility": 0.20,
        "drift": 0.01,
        "price_shock": 0.0,
        "real_basis": 0.01,
        "description": "Real prices higher than spot (monthly basis)",
    },
    "Backwardation (Real Prices)": {
        "volatility": 0.20,
        "drift": 0.01,
        "price_shock": 0.0,
        "real_basis": -0.01,
        "description": "Real prices lower than spot (monthly basis)",
    },
}


@dataclass
class StressScenario:
    name: str
    volatility: float = 0.20
    drift: float = 0.01
    price_shock: float = 0.0
    forward_basis: Optional[float] = None
    real_basis: Optional[float] = None
    trend: str = "flat"
    description: str = ""

    def __post_init__(self):
        if self.volatility < 0:
            self.volatility = 0.0
        if abs(self.price_shock) > 1:
            self.price_shock = math.copysign(1.0, self.price_shock)
        if self.trend not in ("flat", "up", "down"):
            raise InvalidInputError(f"Unknown scenario trend: {self.trend!r}")

    @classmethod
    def named(cls, name):
        if name not in STRESS_SCENARIOS:
            raise InvalidInputError(
                f"Unknown scenario: {name}. Available: {list(STRESS_SCENARIOS.keys())}"
            )
        return cls(name=name, **STRESS_SCENARIOS[name])

    def to_dict(self):
        return {
            "name": self.name,
            "volatility": self.volatility,
            "drift": self.drift,
            "price_shock": self.price_shock,
            "forward_basis": self.forward_basis,
            "real_basis": self.real_basis,
            "trend": self.trend,
            "description": self.description,
        }


def _shocked_forwards(params, scenario, keys):
    """Monthly forward curve for a price-shock scenario."""
    months = len(keys)
    shock = scenario.price_shock
    current = params.spot_price
    multiplier = 1.0
    if scenario.trend == "down":
        current = params.spot_price * (1 - abs(shock) / 2)
        multiplier = 1 - abs(shock) / months
    elif scenario.trend == "up":
        current = params.spot_price * (1 + shock / 2)
        multiplier = 1 + shock / months

    forwards = {}
    for i, key in enumerate(keys):
        if i > 0:
            current *= multiplier
        forwards[key] = current * math.exp(params.rate * i / 12)
    return forwards


def apply_stress_scenario(params, scenario, base=None):
    """
    Build the overrides and simulation settings for a stress scenario.

    Parameters
    ----------
    params   : HedgeParams
    scenario : StressScenario or str — scenario or STRESS_SCENARIOS name
    base     : Overrides or None — caller's current overrides; forwards are
               replaced, real prices are kept unless the scenario sets them

    Returns
    -------
    (Overrides, dict) — new overrides, and SimulationConfig field updates
    """
    if isinstance(scenario, str):
        scenario = StressScenario.named(scenario)
    base = base or Overrides()

    keys = [p.key for p in params.schedule()]
    spot = params.spot_price
    r = params.rate

    forwards = {}
    real_prices = dict(base.real_prices)
    if scenario.price_shock != 0:
        forwards = _shocked_forwards(params, scenario, keys)
    elif scenario.forward_basis is not None:
        forwards = {
            key: spot * math.exp((r + scenario.forward_basis) * i / 12)
            for i, key in enumerate(keys)
        }

    if scenario.real_basis is not None:
        real_prices = {}
        for i, key in enumerate(keys):
            real_prices[key] = spot * math.exp(scenario.real_basis * i)
            forwards[key] = spot * math.exp(r * i / 12)

    overrides = Overrides(
        forwards=forwards,
        real_prices=real_prices,
        implied_vols=dict(base.implied_vols),
        custom_option_prices={k: dict(v) for k, v in base.custom_option_prices.items()},
        use_implied_vol=base.use_implied_vol,
    )
    config_changes = {
        "use_simulation": False,
        "real_price_volatility": scenario.volatility,
        "real_price_drift": scenario.drift,
    }
    logger.info(
        f"Applied stress scenario {scenario.name}: {len(forwards)} forwards, "
        f"{len(real_prices)} real prices"
    )
    return overrides, config_changes


# ── Historical statistics ───────────────────────────────────────────────

def monthly_statistics(points):
    """
    Average price and annualised historical volatility per calendar month.

    Volatility is the sample std of daily log returns within the month times
    sqrt(252); months with fewer than two returns get None.

    Parameters
    ----------
    points : pd.DataFrame with "date" and "price" columns, or an iterable of
             (date, price) pairs

    Returns
    -------
    pd.DataFrame indexed by month key ("YYYY-M"), columns avg_price and
    volatility (decimal), in chronological order
    """
    if isinstance(points, pd.DataFrame):
        df = points[["date", "price"]].copy()
    else:
        df = pd.DataFrame(list(points), columns=["date", "price"])
    if df.empty:
        return pd.DataFrame(columns=["avg_price", "volatility"])

    df["date"] = pd.to_datetime(df["date"])
    df["price"] = df["price"].astype(float)
    if (df["price"] <= 0).any():
        raise InvalidInputError("Historical prices must be > 0")
    df = df.sort_values("date")
    df["month"] = df["date"].dt.to_period("M")

    rows = []
    for period, group in df.groupby("month", sort=True):
        prices = group["price"].to_numpy()
        returns = np.diff(np.log(prices))
        vol = None
        if len(returns) > 1:
            vol = float(np.std(returns, ddof=1) * math.sqrt(TRADING_DAYS))
        rows.append({
            "month": f"{period.year}-{period.month}",
            "avg_price": float(prices.mean()),
            "volatility": vol,
        })
    return pd.DataFrame(rows).set_index("month")


def overrides_from_history(stats, params, base=None):
    """
    Real-price and implied-vol overrides for the periods covered by stats.

    Implied vols are stored in percent and switched on when any are found.
    """
    base = base or Overrides()
    real_prices = dict(base.real_prices)
    implied_vols = dict(base.implied_vols)

    for period in params.schedule():
        key = month_key(period.maturity)
        if key not in stats.index:
            continue
        row = stats.loc[key]
        real_prices[key] = float(row["avg_price"])
        vol = row["volatility"]
        if vol is not None and not pd.isna(vol):
            implied_vols[key] = float(vol) * 100.0

    return Overrides(
        forwards=dict(base.forwards),
        real_prices=real_prices,
        implied_vols=implied_vols,
        custom_option_prices={k: dict(v) for k, v in base.custom_option_prices.items()},
        use_implied_vol=base.use_implied_vol or bool(implied_vols),
    )
