"""Tests for StrategyValuator, summaries and the payoff diagram."""

import math

import pytest

from fx_hedging.legs import ABSOLUTE, BarrierMode, BarrierShape, OptionKind, StrategyLeg
from fx_hedging.params import HedgeParams, Overrides
from fx_hedging.pricing import OptionPricer, black_scholes
from fx_hedging.valuation import (
    StrategyValuator,
    Summary,
    payoff_diagram,
    summarize,
    swap_price,
    yearly_summary,
)


@pytest.fixture
def params():
    return HedgeParams(start_date="2025-01-01", months_to_hedge=3,
                       total_volume=3000.0, spot_price=100.0, interest_rate=2.0)


class TestStrategyValuator:
    def test_no_legs(self, params):
        rows = StrategyValuator().value(params, [])
        assert len(rows) == 3
        for row in rows:
            assert row.strategy_price == 0.0
            assert row.total_payoff == 0.0
            assert row.delta_pnl == pytest.approx(0.0)
            assert row.real_price == pytest.approx(row.forward)

    def test_offsetting_legs_cancel(self, params):
        legs = [StrategyLeg(quantity=50.0), StrategyLeg(quantity=-50.0)]
        for row in StrategyValuator().value(params, legs):
            assert row.strategy_price == pytest.approx(0.0, abs=1e-12)
            assert row.total_payoff == pytest.approx(0.0, abs=1e-12)

    def test_hedged_cost_formula(self):
        params = HedgeParams(start_date="2025-01-01", months_to_hedge=1,
                             total_volume=1000.0, spot_price=100.0)
        overrides = Overrides(real_prices={"2025-1": 110.0},
                              custom_option_prices={"2025-1": {"call-0": 4.0}})
        row = StrategyValuator().value(params, [StrategyLeg()], overrides)[0]
        assert row.strategy_price == pytest.approx(4.0)
        assert row.total_payoff == pytest.approx(10.0)
        assert row.hedged_cost == pytest.approx(-104_000.0)
        assert row.unhedged_cost == pytest.approx(-110_000.0)
        assert row.delta_pnl == pytest.approx(6_000.0)
        assert row.leg_prices[0].custom

    def test_negative_custom_price_clamped(self):
        params = HedgeParams(start_date="2025-01-01", months_to_hedge=1)
        overrides = Overrides(custom_option_prices={"2025-1": {"call-0": -3.0}})
        row = StrategyValuator().value(params, [StrategyLeg()], overrides)[0]
        assert row.leg_prices[0].price == 0.0

    def test_full_swap_locks_spot(self, params):
        legs = [StrategyLeg(kind=OptionKind.SWAP, quantity=100.0)]
        overrides = Overrides(real_prices={"2025-1": 120.0, "2025-2": 80.0})
        rows = StrategyValuator().value(params, legs, overrides)
        for row in rows:
            assert row.leg_prices[0].price == pytest.approx(100.0)
            assert row.hedged_cost == pytest.approx(-row.monthly_volume * 100.0)
        assert rows[0].leg_prices[0].payoff == pytest.approx(rows[0].forward - 120.0)

    def test_knockout_switches_off_after_trigger(self, params):
        leg = StrategyLeg(kind=OptionKind.PUT, barrier_mode=BarrierMode.KNOCKOUT,
                          barrier=90.0)
        overrides = Overrides(real_prices={"2025-1": 95.0, "2025-2": 85.0, "2025-3": 95.0})
        rows = StrategyValuator().value(params, [leg], overrides)
        assert [r.total_payoff for r in rows] == pytest.approx([5.0, 0.0, 0.0])
        assert [r.leg_prices[0].active for r in rows] == [True, False, False]

    def test_knockin_switches_on_after_trigger(self, params):
        leg = StrategyLeg(kind=OptionKind.PUT, barrier_mode=BarrierMode.KNOCKIN,
                          barrier=90.0)
        overrides = Overrides(real_prices={"2025-1": 95.0, "2025-2": 85.0, "2025-3": 95.0})
        rows = StrategyValuator().value(params, [leg], overrides)
        assert [r.total_payoff for r in rows] == pytest.approx([0.0, 15.0, 5.0])

    def test_priced_at_forward(self, params):
        row = StrategyValuator().value(params, [StrategyLeg()])[1]
        expected = black_scholes(True, row.forward, 100.0, 0.02, row.time_to_maturity, 0.2)
        assert row.leg_prices[0].price == pytest.approx(expected)

    def test_forward_override(self, params):
        overrides = Overrides(forwards={"2025-2": 105.0})
        rows = StrategyValuator().value(params, [], overrides)
        assert rows[1].forward == 105.0
        assert rows[0].forward == pytest.approx(100.0 * math.exp(0.02 * rows[0].time_to_maturity))

    def test_implied_vol_override(self, params):
        overrides = Overrides(implied_vols={"2025-2": 30.0}, use_implied_vol=True)
        rows = StrategyValuator().value(params, [StrategyLeg()], overrides)
        row = rows[1]
        expected = black_scholes(True, row.forward, 100.0, 0.02, row.time_to_maturity, 0.3)
        assert row.leg_prices[0].price == pytest.approx(expected)
        assert row.implied_volatility == pytest.approx(30.0)
        assert rows[0].implied_volatility is None

    def test_delta_is_hedged_minus_unhedged(self, params):
        legs = [StrategyLeg(kind=OptionKind.PUT, strike=95.0, quantity=-100.0),
                StrategyLeg(strike=105.0),
                StrategyLeg(kind=OptionKind.SWAP, quantity=25.0)]
        overrides = Overrides(real_prices={"2025-1": 97.0, "2025-3": 111.0})
        for row in StrategyValuator().value(params, legs, overrides):
            assert row.delta_pnl == pytest.approx(row.hedged_cost - row.unhedged_cost)

    def test_monte_carlo_route(self, params):
        leg = StrategyLeg(barrier_mode=BarrierMode.KNOCKOUT, barrier=130.0)
        valuator = StrategyValuator(OptionPricer(n_paths=2000, seed=1),
                                    use_closed_form=False)
        rows = valuator.value(params, [leg])
        assert all(r.leg_prices[0].price > 0 for r in rows)

    def test_double_barrier_on_shared_ensemble(self, params):
        from fx_hedging.paths import PathSimulator, monthly_indices

        periods = params.schedule()
        horizon = periods[-1].time_to_maturity
        ensemble = PathSimulator(seed=3).simulate_brownian(2000, horizon)
        indices = monthly_indices(ensemble.n_steps, horizon,
                                  period_times=[p.time_to_maturity for p in periods])
        leg = StrategyLeg(barrier_mode=BarrierMode.KNOCKOUT,
                          barrier_shape=BarrierShape.DOUBLE,
                          barrier=80.0, second_barrier=120.0)
        rows = StrategyValuator().value(params, [leg], ensemble=ensemble,
                                        period_indices=indices, periods=periods)
        prices = [r.leg_prices[0].price for r in rows]
        assert all(p > 0 for p in prices)
        # longer maturities cross the barriers more often
        assert prices[2] < black_scholes(True, rows[2].forward, 100.0, 0.02,
                                         rows[2].time_to_maturity, 0.2)


class TestSummaries:
    def test_yearly_grouping(self):
        params = HedgeParams(start_date="2025-11-01", months_to_hedge=3)
        rows = StrategyValuator().value(params, [StrategyLeg()])
        years = yearly_summary(rows)
        assert [y.label for y in years] == ["2025", "2026"]
        assert years[0].volume == pytest.approx(2 * params.total_volume / 3)
        total = summarize(rows)
        assert total.delta_pnl == pytest.approx(sum(y.delta_pnl for y in years))

    def test_empty_summary(self):
        s = Summary(label="Total")
        assert s.cost_reduction_pct is None
        assert s.hedged_rate is None
        assert s.unhedged_rate is None

    def test_rates_and_reduction(self):
        s = Summary(label="2025", hedged_cost=-95.0, unhedged_cost=-100.0,
                    delta_pnl=5.0, volume=1.0)
        assert s.cost_reduction_pct == pytest.approx(5.0)
        assert s.hedged_rate == pytest.approx(95.0)
        assert s.unhedged_rate == pytest.approx(100.0)
        assert s.to_dict()["cost_reduction_pct"] == pytest.approx(5.0)


class TestSwapPrice:
    def test_equal_weights_fallback(self):
        assert swap_price([100.0, 110.0], [0.0, 0.0], 0.02) == pytest.approx(105.0)
        assert swap_price([100.0, 110.0], [0.0, 0.0], 0.02, volumes=[0, 0]) == pytest.approx(105.0)

    def test_volume_weighted(self):
        assert swap_price([100.0, 110.0], [0.0, 0.0], 0.0, volumes=[3, 1]) == pytest.approx(102.5)

    def test_empty(self):
        assert swap_price([], [], 0.02) == 0.0


class TestPayoffDiagram:
    def test_long_call_without_premium(self):
        params = HedgeParams(spot_price=100.0)
        diagram = payoff_diagram(params, [StrategyLeg()], include_premium=False)
        assert len(diagram) == 101
        assert diagram[0]["price"] == pytest.approx(50.0)
        assert diagram[0]["payoff"] == 0.0
        assert diagram[-1]["price"] == pytest.approx(150.0)
        assert diagram[-1]["payoff"] == pytest.approx(50.0)

    def test_premium_shifts_curve(self):
        params = HedgeParams(spot_price=100.0)
        premium = black_scholes(True, 100.0, 100.0, 0.02, 1.0, 0.2)
        diagram = payoff_diagram(params, [StrategyLeg()])
        assert diagram[0]["payoff"] == pytest.approx(-premium)

    def test_swaps_skipped(self):
        params = HedgeParams(spot_price=100.0)
        diagram = payoff_diagram(params, [StrategyLeg(kind=OptionKind.SWAP)])
        assert all(point["payoff"] == 0.0 for point in diagram)

    def test_knockout_static(self):
        params = HedgeParams(spot_price=100.0)
        leg = StrategyLeg(kind=OptionKind.PUT, strike=100.0, strike_type=ABSOLUTE,
                          barrier_mode=BarrierMode.KNOCKOUT, barrier=80.0)
        diagram = payoff_diagram(params, [leg], include_premium=False, points=11)
        by_price = {round(p["price"]): p["payoff"] for p in diagram}
        assert by_price[90] == pytest.approx(10.0)
        assert by_price[60] == 0.0
