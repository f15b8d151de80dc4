"""
Hedge parameters, override maps, simulation config and the period schedule.

Every calculation is driven by these records; the engine keeps nothing else
between calls.
"""

import calendar
import logging
import math
from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from typing import Optional

from fx_hedging.errors import InvalidInputError

logger = logging.getLogger(__name__)

DAYS_PER_YEAR = 365.25


def month_key(d):
    """Override-map key for a period date: "YYYY-M" (month not zero-padded)."""
    return f"{d.year}-{d.month}"


def _parse_date(value):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value), "%Y-%m-%d").date()
    except ValueError:
        raise InvalidInputError(f"Expected an ISO date (YYYY-MM-DD), got {value!r}") from None


# ── HedgeParams ─────────────────────────────────────────────────────────

@dataclass
class CustomPeriod:
    maturity_date: date
    volume: float

    def __post_init__(self):
        self.maturity_date = _parse_date(self.maturity_date)
        if math.isnan(self.volume) or self.volume < 0:
            raise InvalidInputError(f"Period volume must be >= 0, got {self.volume}")


@dataclass
class HedgeParams:
    """
    Inputs describing the exposure being hedged.

    interest_rate is an annual rate in percent. When custom_periods is set it
    replaces the uniform monthly split of total_volume over months_to_hedge.
    """
    start_date: date = field(default_factory=date.today)
    months_to_hedge: int = 12
    interest_rate: float = 2.0
    total_volume: float = 1_000_000.0
    spot_price: float = 100.0
    custom_periods: list = field(default_factory=list)

    def __post_init__(self):
        self.start_date = _parse_date(self.start_date)
        self.custom_periods = [
            p if isinstance(p, CustomPeriod) else CustomPeriod(**p)
            for p in self.custom_periods
        ]
        if math.isnan(self.spot_price) or self.spot_price <= 0:
            raise InvalidInputError(f"Spot price must be > 0, got {self.spot_price}")
        if math.isnan(self.interest_rate):
            raise InvalidInputError("Interest rate is NaN")
        if not self.custom_periods and self.months_to_hedge < 1:
            raise InvalidInputError(
                f"months_to_hedge must be >= 1, got {self.months_to_hedge}"
            )

    @property
    def rate(self):
        """Continuously-compounded annual rate as a decimal."""
        return self.interest_rate / 100.0

    @property
    def use_custom_periods(self):
        return bool(self.custom_periods)

    def schedule(self):
        """
        Build the chronological list of hedge periods.

        Monthly mode: one period per month, maturing on the last day of the
        month, starting with the month of start_date. Custom mode: the custom
        maturities sorted by date.

        Returns
        -------
        list[Period]
        """
        if self.use_custom_periods:
            periods = []
            for p in sorted(self.custom_periods, key=lambda p: p.maturity_date):
                days = (p.maturity_date - self.start_date).days
                if days < 0:
                    logger.warning(
                        f"Custom period {p.maturity_date} precedes start date "
                        f"{self.start_date}; using zero time to maturity"
                    )
                periods.append(Period(p.maturity_date, max(days, 0) / DAYS_PER_YEAR, p.volume))
            return periods

        monthly_volume = self.total_volume / self.months_to_hedge
        periods = []
        for i in range(self.months_to_hedge):
            month_index = self.start_date.month - 1 + i
            year = self.start_date.year + month_index // 12
            month = month_index % 12 + 1
            end = date(year, month, calendar.monthrange(year, month)[1])
            ttm = (end - self.start_date).days / DAYS_PER_YEAR
            periods.append(Period(end, ttm, monthly_volume))
        return periods

    def to_dict(self):
        return {
            "start_date": self.start_date.isoformat(),
            "months_to_hedge": self.months_to_hedge,
            "interest_rate": self.interest_rate,
            "total_volume": self.total_volume,
            "spot_price": self.spot_price,
            "custom_periods": [
                {"maturity_date": p.maturity_date.isoformat(), "volume": p.volume}
                for p in self.custom_periods
            ],
        }


@dataclass(frozen=True)
class Period:
    maturity: date
    time_to_maturity: float
    volume: float

    @property
    def key(self):
        return month_key(self.maturity)


# ── Overrides ───────────────────────────────────────────────────────────

@dataclass
class Overrides:
    """
    Caller-owned override maps, keyed by "YYYY-M".

    implied_vols are in percent and only used when use_implied_vol is set.
    custom_option_prices maps month key -> leg key -> price.
    """
    forwards: dict = field(default_factory=dict)
    real_prices: dict = field(default_factory=dict)
    implied_vols: dict = field(default_factory=dict)
    custom_option_prices: dict = field(default_factory=dict)
    use_implied_vol: bool = False

    def implied_vol(self, key):
        """Implied vol override as a decimal, or None."""
        if not self.use_implied_vol:
            return None
        vol = self.implied_vols.get(key)
        if vol is None or vol <= 0:
            return None
        return vol / 100.0

    def custom_price(self, key, leg_key):
        return self.custom_option_prices.get(key, {}).get(leg_key)

    def merged(self, other):
        """New Overrides where entries from other win."""
        prices = {k: dict(v) for k, v in self.custom_option_prices.items()}
        for k, v in other.custom_option_prices.items():
            prices.setdefault(k, {}).update(v)
        return Overrides(
            forwards={**self.forwards, **other.forwards},
            real_prices={**self.real_prices, **other.real_prices},
            implied_vols={**self.implied_vols, **other.implied_vols},
            custom_option_prices=prices,
            use_implied_vol=self.use_implied_vol or other.use_implied_vol,
        )

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, data):
        return cls(**(data or {}))


# ── SimulationConfig ────────────────────────────────────────────────────

@dataclass
class SimulationConfig:
    """Configuration for path simulation and barrier pricing."""
    real_price_paths: int = 1000
    barrier_paths: int = 1000
    use_closed_form: bool = True
    use_simulation: bool = False
    real_price_volatility: float = 0.3
    real_price_drift: float = 0.01
    random_seed: Optional[int] = 42
    n_workers: int = 4
    batch_size: int = 2000
    sample_paths: int = 100
    shock: str = "gaussian"

    def __post_init__(self):
        if self.real_price_paths < 1 or self.barrier_paths < 1:
            raise InvalidInputError("Path counts must be >= 1")
        if self.real_price_volatility < 0:
            raise InvalidInputError(
                f"Real-price volatility must be >= 0, got {self.real_price_volatility}"
            )

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, data):
        return cls(**(data or {}))
