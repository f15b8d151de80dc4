"""Tests for stress scenarios and historical statistics."""

import math
from datetime import date

import numpy as np
import pandas as pd
import pytest

from fx_hedging.errors import InvalidInputError
from fx_hedging.params import HedgeParams, Overrides
from fx_hedging.scenarios import (
    STRESS_SCENARIOS,
    StressScenario,
    apply_stress_scenario,
    monthly_statistics,
    overrides_from_history,
)


@pytest.fixture
def params():
    return HedgeParams(start_date="2025-01-01", months_to_hedge=12,
                       spot_price=100.0, interest_rate=2.0)


class TestStressScenario:
    def test_all_scenarios_defined(self):
        assert len(STRESS_SCENARIOS) == 8
        for name in STRESS_SCENARIOS:
            assert StressScenario.named(name).name == name

    def test_unknown_scenario(self):
        with pytest.raises(InvalidInputError, match="Unknown scenario"):
            StressScenario.named("Alien Invasion")

    def test_clamping(self):
        s = StressScenario("Custom", volatility=-0.5, price_shock=-3.0)
        assert s.volatility == 0.0
        assert s.price_shock == -1.0

    def test_bad_trend(self):
        with pytest.raises(InvalidInputError):
            StressScenario("Custom", trend="sideways")


class TestApplyStressScenario:
    def test_market_crash_forwards(self, params):
        overrides, changes = apply_stress_scenario(params, "Market Crash")
        fwd = list(overrides.forwards.values())
        assert len(fwd) == 12
        assert fwd[0] == pytest.approx(90.0)
        assert fwd[1] == pytest.approx(90.0 * (1 - 0.2 / 12) * math.exp(0.02 / 12))
        assert fwd[-1] < fwd[0]
        assert changes == {"use_simulation": False, "real_price_volatility": 0.5,
                           "real_price_drift": -0.03}

    def test_bull_market_starts_above_spot(self, params):
        overrides, _ = apply_stress_scenario(params, "Bull Market")
        fwd = list(overrides.forwards.values())
        assert fwd[0] == pytest.approx(105.0)
        assert fwd[-1] > fwd[0]

    def test_base_case_is_plain_carry(self, params):
        overrides, _ = apply_stress_scenario(params, "Base Case")
        for i, value in enumerate(overrides.forwards.values()):
            assert value == pytest.approx(100.0 * math.exp(0.02 * i / 12))

    def test_contango_forwards(self, params):
        overrides, _ = apply_stress_scenario(params, "Contango")
        assert overrides.forwards["2025-7"] == pytest.approx(100.0 * math.exp(0.03 * 6 / 12))

    def test_backwardation_below_carry(self, params):
        contango, _ = apply_stress_scenario(params, "Contango")
        backwardation, _ = apply_stress_scenario(params, "Backwardation")
        assert backwardation.forwards["2025-12"] < contango.forwards["2025-12"]

    def test_contango_real_prices(self, params):
        overrides, _ = apply_stress_scenario(params, "Contango (Real Prices)")
        assert overrides.real_prices["2025-3"] == pytest.approx(100.0 * math.exp(0.02))
        assert overrides.forwards["2025-3"] == pytest.approx(100.0 * math.exp(0.02 * 2 / 12))

    def test_base_real_prices_kept(self, params):
        base = Overrides(real_prices={"2025-2": 97.0}, implied_vols={"2025-2": 12.0},
                         use_implied_vol=True)
        overrides, _ = apply_stress_scenario(params, "High Volatility", base)
        assert overrides.real_prices == {"2025-2": 97.0}
        assert overrides.implied_vol("2025-2") == pytest.approx(0.12)
        assert base.forwards == {}

    def test_real_basis_replaces_base_real_prices(self, params):
        base = Overrides(real_prices={"2025-2": 97.0})
        overrides, _ = apply_stress_scenario(params, "Backwardation (Real Prices)", base)
        assert overrides.real_prices["2025-2"] == pytest.approx(100.0 * math.exp(-0.01))

    def test_custom_scenario_object(self, params):
        scenario = StressScenario("Mild Drop", volatility=0.25, price_shock=-0.1, trend="down")
        overrides, changes = apply_stress_scenario(params, scenario)
        assert list(overrides.forwards.values())[0] == pytest.approx(95.0)
        assert changes["real_price_volatility"] == 0.25


class TestMonthlyStatistics:
    @pytest.fixture
    def history(self):
        return [
            (date(2025, 1, 2), 100.0),
            (date(2025, 1, 3), 101.0),
            (date(2025, 1, 6), 102.0),
            (date(2025, 1, 7), 101.0),
            (date(2025, 2, 3), 104.0),
        ]

    def test_average_and_volatility(self, history):
        stats = monthly_statistics(history)
        assert list(stats.index) == ["2025-1", "2025-2"]
        assert stats.loc["2025-1", "avg_price"] == pytest.approx(101.0)
        returns = np.diff(np.log([100.0, 101.0, 102.0, 101.0]))
        expected = np.std(returns, ddof=1) * math.sqrt(252)
        assert stats.loc["2025-1", "volatility"] == pytest.approx(expected)
        assert pd.isna(stats.loc["2025-2", "volatility"])

    def test_dataframe_input_unsorted(self, history):
        df = pd.DataFrame(list(reversed(history)), columns=["date", "price"])
        stats = monthly_statistics(df)
        assert stats.loc["2025-1", "avg_price"] == pytest.approx(101.0)
        assert list(stats.index) == ["2025-1", "2025-2"]

    def test_empty(self):
        stats = monthly_statistics([])
        assert stats.empty
        assert list(stats.columns) == ["avg_price", "volatility"]

    def test_non_positive_price(self):
        with pytest.raises(InvalidInputError):
            monthly_statistics([(date(2025, 1, 2), 0.0)])

    def test_overrides_from_history(self, history):
        params = HedgeParams(start_date="2025-01-01", months_to_hedge=3)
        stats = monthly_statistics(history)
        overrides = overrides_from_history(stats, params,
                                           Overrides(forwards={"2025-3": 99.0}))
        assert overrides.real_prices == {"2025-1": pytest.approx(101.0),
                                         "2025-2": pytest.approx(104.0)}
        assert set(overrides.implied_vols) == {"2025-1"}
        assert overrides.use_implied_vol
        assert overrides.forwards == {"2025-3": 99.0}
