"""
QuantLib pricing of strategy legs, used to cross-check OptionPricer.

Vanilla legs go through AnalyticEuropeanEngine, single barriers through
AnalyticBarrierEngine (continuous monitoring, no rebate), with a flat rate
curve and zero foreign/dividend yield so the setup matches b = r.
"""

import logging

import QuantLib as ql

from fx_hedging.barriers import UP, barrier_direction
from fx_hedging.errors import InvalidInputError
from fx_hedging.legs import BarrierMode, BarrierShape
from fx_hedging.pricing import OptionPricer, intrinsic

logger = logging.getLogger(__name__)


def _barrier_type(leg):
    up = barrier_direction(leg) == UP
    if leg.barrier_mode == BarrierMode.KNOCKOUT:
        return ql.Barrier.UpOut if up else ql.Barrier.DownOut
    return ql.Barrier.UpIn if up else ql.Barrier.DownIn


def quantlib_price(leg, S, K, r, t, sigma, barrier=None):
    """
    Price a vanilla or single-barrier leg with QuantLib.

    Returns
    -------
    float — price per unit of notional
    """
    if leg.is_swap or (leg.is_barrier and leg.barrier_shape == BarrierShape.DOUBLE):
        raise InvalidInputError(f"No QuantLib analytic engine for {leg.type_tag}")
    OptionPricer.validate(S, K, r, t, sigma)

    if t <= 0 or sigma <= 0:
        return intrinsic(leg.is_call, S, K)

    if leg.is_barrier:
        if barrier is None:
            barrier = leg.barrier_levels(S)[0]
        up = barrier_direction(leg) == UP
        if (up and S >= barrier) or (not up and S <= barrier):
            # QuantLib refuses already-touched barriers
            if leg.barrier_mode == BarrierMode.KNOCKOUT:
                return 0.0
            leg_vanilla = type(leg)(kind=leg.kind, strike=K, strike_type="absolute")
            return quantlib_price(leg_vanilla, S, K, r, t, sigma)

    today = ql.Date.todaysDate()
    ql.Settings.instance().evaluationDate = today
    expiry_days = max(1, int(round(t * 365)))
    expiry_date = today + ql.Period(expiry_days, ql.Days)

    option_type = ql.Option.Call if leg.is_call else ql.Option.Put
    payoff = ql.PlainVanillaPayoff(option_type, K)
    exercise = ql.EuropeanExercise(expiry_date)

    day_count = ql.Actual365Fixed()
    spot_handle = ql.QuoteHandle(ql.SimpleQuote(S))
    rate_handle = ql.YieldTermStructureHandle(
        ql.FlatForward(today, ql.QuoteHandle(ql.SimpleQuote(r)), day_count)
    )
    div_handle = ql.YieldTermStructureHandle(
        ql.FlatForward(today, ql.QuoteHandle(ql.SimpleQuote(0.0)), day_count)
    )
    vol_handle = ql.BlackVolTermStructureHandle(
        ql.BlackConstantVol(today, ql.NullCalendar(),
                            ql.QuoteHandle(ql.SimpleQuote(sigma)), day_count)
    )
    process = ql.BlackScholesMertonProcess(spot_handle, div_handle, rate_handle, vol_handle)

    if leg.is_barrier:
        option = ql.BarrierOption(_barrier_type(leg), barrier, 0.0, payoff, exercise)
        option.setPricingEngine(ql.AnalyticBarrierEngine(process))
    else:
        option = ql.VanillaOption(payoff, exercise)
        option.setPricingEngine(ql.AnalyticEuropeanEngine(process))

    return max(option.NPV(), 0.0)


def cross_check(leg, S, K, r, t, sigma, barrier=None, pricer=None):
    """
    Compare OptionPricer's closed form against QuantLib.

    Returns
    -------
    dict — {"ours", "quantlib", "diff"}
    """
    pricer = pricer or OptionPricer()
    ours = pricer.price(leg, S, K, r, t, sigma, barrier=barrier)
    theirs = quantlib_price(leg, S, K, r, t, sigma, barrier=barrier)
    diff = ours - theirs
    logger.info(f"{leg.type_tag}: ours={ours:.6f} quantlib={theirs:.6f} diff={diff:+.2e}")
    return {"ours": ours, "quantlib": theirs, "diff": diff}
