"""
Option pricing — vanilla Black-Scholes, closed-form barriers, Monte Carlo barriers.

Closed-form single barriers follow Haug (Reiner-Rubinstein, no rebate, cost of
carry b = r). The barrier direction comes from the leg's touch rule, so
standard and reverse shapes both map onto the down/up formulas:

    standard call -> up      standard put -> down
    reverse call  -> down    reverse put  -> up

Knock-ins are priced by in/out parity: knockin = vanilla - knockout.

Double barriers have no closed form here and are priced by Monte Carlo. The
Monte Carlo pricer walks each path to the maturity step, checking the touch
rule. By default it also weights each surviving path by its Brownian-bridge
probability of not crossing between grid points, so a daily grid converges on
the continuously-monitored closed-form price; bridge_correction=False keeps
the plain discrete check.

Also hosts the static approximation used by payoff diagrams and the risk
matrix, which checks only the final price against the barrier.
"""

import logging
import math
from enum import Enum

import numpy as np
from scipy.special import erf

from fx_hedging.barriers import DOWN, UP, barrier_direction, barrier_touched
from fx_hedging.errors import InvalidInputError
from fx_hedging.legs import BarrierMode, BarrierShape
from fx_hedging.paths import PathSimulator, n_steps_for

logger = logging.getLogger(__name__)


class PricingMethod(Enum):
    CLOSED_FORM = "closed_form"
    MONTE_CARLO = "monte_carlo"


# ── Normal CDF / PDF helpers ────────────────────────────────────────────

def _norm_cdf(x):
    """Standard normal CDF using math.erf."""
    return 0.5 * (1.0 + math.erf(x / math.sqrt(2.0)))


def _norm_pdf(x):
    """Standard normal PDF."""
    return math.exp(-0.5 * x * x) / math.sqrt(2.0 * math.pi)


def _vec_norm_cdf(x):
    """Vectorized normal CDF via scipy's erf."""
    return 0.5 * (1.0 + erf(x / np.sqrt(2.0)))


# ── Vanilla ─────────────────────────────────────────────────────────────

def intrinsic(is_call, S, K):
    return max(S - K, 0.0) if is_call else max(K - S, 0.0)


def black_scholes(is_call, S, K, r, t, sigma):
    """
    Scalar Black-Scholes price, floored at 0.

    t <= 0 or sigma <= 0 returns intrinsic value. Inputs are not validated;
    OptionPricer.price is the checked entry point.
    """
    if t <= 0 or sigma <= 0:
        return intrinsic(is_call, S, K)

    sqrt_t = math.sqrt(t)
    d1 = (math.log(S / K) + (r + 0.5 * sigma ** 2) * t) / (sigma * sqrt_t)
    d2 = d1 - sigma * sqrt_t
    df = math.exp(-r * t)

    if is_call:
        price = S * _norm_cdf(d1) - K * df * _norm_cdf(d2)
    else:
        price = K * df * _norm_cdf(-d2) - S * _norm_cdf(-d1)
    return max(price, 0.0)


def bs_price_vec(is_call, S, K, r, t, sigma):
    """
    Vectorized Black-Scholes price over arrays of S, t and sigma.

    Elements with t <= 0 or sigma <= 0 get intrinsic value.

    Returns
    -------
    np.ndarray — prices, floored at 0
    """
    S = np.asarray(S, dtype=np.float64)
    t = np.asarray(t, dtype=np.float64)
    sigma = np.asarray(sigma, dtype=np.float64)
    S, t, sigma = np.broadcast_arrays(S, t, sigma)

    live = (t > 0) & (sigma > 0)
    t_safe = np.where(live, t, 1.0)
    sig_safe = np.where(live, sigma, 1.0)
    sqrt_t = np.sqrt(t_safe)

    d1 = (np.log(S / K) + (r + 0.5 * sig_safe ** 2) * t_safe) / (sig_safe * sqrt_t)
    d2 = d1 - sig_safe * sqrt_t
    df = np.exp(-r * t_safe)

    if is_call:
        price = S * _vec_norm_cdf(d1) - K * df * _vec_norm_cdf(d2)
        fallback = np.maximum(S - K, 0.0)
    else:
        price = K * df * _vec_norm_cdf(-d2) - S * _vec_norm_cdf(-d1)
        fallback = np.maximum(K - S, 0.0)

    return np.maximum(np.where(live, price, fallback), 0.0)


def vega(S, K, r, t, sigma):
    """Black-Scholes vega S*sqrt(t)*phi(d1), per unit of sigma."""
    if t <= 0 or sigma <= 0:
        return 0.0
    sqrt_t = math.sqrt(t)
    d1 = (math.log(S / K) + (r + 0.5 * sigma ** 2) * t) / (sigma * sqrt_t)
    return S * sqrt_t * _norm_pdf(d1)


# ── Closed-form barriers ────────────────────────────────────────────────

def _haug_terms(phi, eta, S, K, H, r, t, sigma):
    """Haug's A, B, C, D building blocks (b = r, no rebate)."""
    sst = sigma * math.sqrt(t)
    mu = (r - 0.5 * sigma ** 2) / sigma ** 2
    df = math.exp(-r * t)

    x1 = math.log(S / K) / sst + (1 + mu) * sst
    x2 = math.log(S / H) / sst + (1 + mu) * sst
    y1 = math.log(H * H / (S * K)) / sst + (1 + mu) * sst
    y2 = math.log(H / S) / sst + (1 + mu) * sst

    hs_up = (H / S) ** (2 * (mu + 1))
    hs = (H / S) ** (2 * mu)

    A = phi * S * _norm_cdf(phi * x1) - phi * K * df * _norm_cdf(phi * x1 - phi * sst)
    B = phi * S * _norm_cdf(phi * x2) - phi * K * df * _norm_cdf(phi * x2 - phi * sst)
    C = (phi * S * hs_up * _norm_cdf(eta * y1)
         - phi * K * df * hs * _norm_cdf(eta * y1 - eta * sst))
    D = (phi * S * hs_up * _norm_cdf(eta * y2)
         - phi * K * df * hs * _norm_cdf(eta * y2 - eta * sst))
    return A, B, C, D


def barrier_knockout(is_call, direction, S, K, H, r, t, sigma):
    """
    Continuously-monitored single-barrier knock-out price.

    Parameters
    ----------
    is_call   : bool
    direction : "up" or "down" — side of spot the barrier sits on
    S, K, H   : float — spot, strike, barrier
    r, t      : float — rate (decimal), time to maturity (years)
    sigma     : float — volatility (decimal)

    Returns
    -------
    float — price >= 0; 0 if the barrier is already breached at S
    """
    if direction == DOWN and S <= H:
        return 0.0
    if direction == UP and S >= H:
        return 0.0
    if t <= 0 or sigma <= 0:
        return intrinsic(is_call, S, K)

    phi = 1.0 if is_call else -1.0
    eta = 1.0 if direction == DOWN else -1.0
    A, B, C, D = _haug_terms(phi, eta, S, K, H, r, t, sigma)

    if is_call and direction == DOWN:
        price = A - C if K >= H else B - D
    elif is_call:
        price = 0.0 if K >= H else A - B + C - D
    elif direction == DOWN:
        price = A - B + C - D if K >= H else 0.0
    else:
        price = B - D if K >= H else A - C
    return max(price, 0.0)


# ── Monte Carlo barriers ────────────────────────────────────────────────

def survival_weights(leg, paths, barrier, second_barrier, sigma, dt,
                     bridge_correction=True):
    """
    Probability that each path has not touched the barrier up to each step.

    A discrete touch at a grid point zeroes the weight for that step and all
    later steps. With bridge_correction, the weight between two untouched
    grid points is multiplied by the Brownian-bridge non-crossing probability

        1 - exp(-2 * ln(S_i/H) * ln(S_{i+1}/H) / (sigma^2 * dt))

    Returns
    -------
    np.ndarray [n_paths, n_steps+1] — values in [0, 1], non-increasing per row
    """
    touched = barrier_touched(leg, paths, barrier, second_barrier)
    alive = ~np.logical_or.accumulate(touched, axis=1)
    weights = alive.astype(np.float64)

    if not bridge_correction or sigma <= 0 or dt <= 0 or paths.shape[1] < 2:
        return weights

    log_paths = np.log(paths)
    var = sigma ** 2 * dt
    levels = [barrier]
    if leg.barrier_shape == BarrierShape.DOUBLE:
        levels.append(second_barrier)

    p_cross = np.zeros((paths.shape[0], paths.shape[1] - 1))
    for level in levels:
        dist = log_paths - math.log(level)
        prod = dist[:, :-1] * dist[:, 1:]
        # Same side at both ends: bridge crossing probability; else touched anyway
        p_cross += np.where(prod > 0, np.exp(-2.0 * np.maximum(prod, 0.0) / var), 0.0)
    p_cross = np.minimum(p_cross, 1.0)

    with np.errstate(divide="ignore"):
        log_keep = np.log1p(-p_cross)
    cum = np.concatenate(
        [np.zeros((paths.shape[0], 1)), np.cumsum(log_keep, axis=1)], axis=1,
    )
    return weights * np.exp(cum)


def barrier_payoffs(leg, strike, paths, maturity_index, survival):
    """
    Undiscounted barrier payoff of every path at maturity_index.

    Knock-outs keep the vanilla payoff weighted by survival; knock-ins keep it
    weighted by the knock-in probability (1 - survival).
    """
    terminal = paths[:, maturity_index]
    if leg.is_call:
        vanilla = np.maximum(terminal - strike, 0.0)
    else:
        vanilla = np.maximum(strike - terminal, 0.0)
    alive = survival[:, maturity_index]
    if leg.barrier_mode == BarrierMode.KNOCKOUT:
        return vanilla * alive
    return vanilla * (1.0 - alive)


# ── Static approximation ────────────────────────────────────────────────

def static_payoff(leg, price, strike, barrier=None, second_barrier=None):
    """
    Per-unit payoff at a single final price, ignoring path history.

    Vanilla legs pay intrinsic value. Knock-outs pay 0 when the final price
    is on the trigger side of the barrier; knock-ins pay only then. Swaps
    settle through the strategy's swap share and return 0 here.
    """
    if leg.is_swap:
        return 0.0
    payoff = intrinsic(leg.is_call, price, strike)
    if not leg.is_barrier:
        return payoff
    hit = bool(barrier_touched(leg, price, barrier, second_barrier))
    if leg.barrier_mode == BarrierMode.KNOCKOUT:
        return 0.0 if hit else payoff
    return payoff if hit else 0.0


# ── OptionPricer ────────────────────────────────────────────────────────

class OptionPricer:
    """
    Price a single strategy leg.

    Usage:
        pricer = OptionPricer(n_paths=10_000, seed=42)
        pricer.price(leg, S=100, K=100, r=0.02, t=1.0, sigma=0.2)
    """

    def __init__(self, n_paths=10_000, seed=42, batch_size=10_000,
                 bridge_correction=True, shock=None):
        """
        Parameters
        ----------
        n_paths           : int — paths used when price() has to simulate its own
        seed              : int or None
        batch_size        : int — paths simulated at once for self-simulated MC
        bridge_correction : bool — Brownian-bridge survival weighting
        shock             : shock generator forwarded to PathSimulator
        """
        self.n_paths = n_paths
        self.seed = seed
        self.batch_size = batch_size
        self.bridge_correction = bridge_correction
        self.shock = shock

    @staticmethod
    def supports_closed_form(leg):
        """True for vanilla legs and single (standard or reverse) barriers."""
        if leg.is_swap:
            return False
        return not leg.is_barrier or leg.barrier_shape != BarrierShape.DOUBLE

    @staticmethod
    def validate(S, K, r, t, sigma):
        for name, value in (("spot", S), ("strike", K), ("rate", r),
                            ("time", t), ("volatility", sigma)):
            if value is None or math.isnan(value):
                raise InvalidInputError(f"{name} is NaN or missing")
        if S <= 0:
            raise InvalidInputError(f"Spot must be > 0, got {S}")
        if K <= 0:
            raise InvalidInputError(f"Strike must be > 0, got {K}")
        if sigma < 0:
            raise InvalidInputError(f"Volatility must be >= 0, got {sigma}")

    def price(self, leg, S, K, r, t, sigma, method=PricingMethod.CLOSED_FORM,
              paths=None, maturity_index=None, barrier=None, second_barrier=None,
              dt=None):
        """
        Price one leg (per unit of notional).

        Parameters
        ----------
        leg            : StrategyLeg — call or put, with or without barrier
        S, K           : float — underlying and absolute strike
        r              : float — rate (decimal)
        t              : float — time to maturity (years)
        sigma          : float — volatility (decimal)
        method         : PricingMethod — closed form falls back to Monte Carlo
                         for legs without a formula
        paths          : np.ndarray [n_paths, n_steps+1] or None — shared price
                         paths at this sigma; simulated internally when None
        maturity_index : int or None — step of paths at maturity (default last)
        barrier        : float or None — absolute level (default: from leg at S)
        second_barrier : float or None — absolute level for double barriers
        dt             : float or None — step size of paths (default t/maturity_index)

        Returns
        -------
        float — price >= 0
        """
        if leg.is_swap:
            raise InvalidInputError("Swap legs are priced from the forward curve, not by OptionPricer")
        self.validate(S, K, r, t, sigma)

        if not leg.is_barrier:
            return black_scholes(leg.is_call, S, K, r, t, sigma)

        if barrier is None:
            barrier, default_second = leg.barrier_levels(S)
            if second_barrier is None:
                second_barrier = default_second
        if barrier is None or barrier <= 0 or (
                leg.barrier_shape == BarrierShape.DOUBLE
                and (second_barrier is None or second_barrier <= 0)):
            raise InvalidInputError(f"{leg.type_tag} needs positive barrier levels")

        if method == PricingMethod.CLOSED_FORM and self.supports_closed_form(leg):
            return self.closed_form(leg, S, K, r, t, sigma, barrier)

        if method == PricingMethod.CLOSED_FORM:
            logger.debug(f"No closed form for {leg.type_tag}; using Monte Carlo")

        if t <= 0:
            # Already at maturity: only the spot itself can trigger
            return static_payoff(leg, S, K, barrier, second_barrier)

        if paths is None:
            return self.monte_carlo_simulated(leg, S, K, r, t, sigma, barrier, second_barrier)
        return self.monte_carlo(
            leg, K, r, t, sigma, paths, barrier, second_barrier,
            maturity_index=maturity_index, dt=dt,
        )

    def closed_form(self, leg, S, K, r, t, sigma, barrier):
        direction = barrier_direction(leg)
        knockout = barrier_knockout(leg.is_call, direction, S, K, barrier, r, t, sigma)
        if leg.barrier_mode == BarrierMode.KNOCKOUT:
            return knockout
        vanilla = black_scholes(leg.is_call, S, K, r, t, sigma)
        return max(vanilla - knockout, 0.0)

    def monte_carlo(self, leg, K, r, t, sigma, paths, barrier, second_barrier,
                    maturity_index=None, dt=None):
        """Discounted mean barrier payoff over precomputed paths."""
        if maturity_index is None:
            maturity_index = paths.shape[1] - 1
        if dt is None:
            dt = t / maturity_index if maturity_index > 0 else 0.0
        window = paths[:, :maturity_index + 1]
        survival = survival_weights(
            leg, window, barrier, second_barrier, sigma, dt, self.bridge_correction,
        )
        payoffs = barrier_payoffs(leg, K, window, maturity_index, survival)
        return max(math.exp(-r * t) * float(np.mean(payoffs)), 0.0)

    def monte_carlo_simulated(self, leg, S, K, r, t, sigma, barrier, second_barrier):
        """
        Monte Carlo price on freshly simulated paths, in batches.

        Each batch is an independent child of the pricer's seed, so memory
        stays bounded by batch_size regardless of n_paths.
        """
        n_steps = n_steps_for(t)
        dt = t / n_steps
        children = np.random.SeedSequence(self.seed).spawn(
            max(1, math.ceil(self.n_paths / self.batch_size))
        )
        total, count = 0.0, 0
        for i, child in enumerate(children):
            size = min(self.batch_size, self.n_paths - i * self.batch_size)
            sim = PathSimulator(shock=self.shock, seed=child, n_workers=1, batch_size=size)
            paths = sim.simulate_brownian(size, t).prices(S, r, sigma)
            survival = survival_weights(
                leg, paths, barrier, second_barrier, sigma, dt, self.bridge_correction,
            )
            total += float(np.sum(barrier_payoffs(leg, K, paths, n_steps, survival)))
            count += size
        return max(math.exp(-r * t) * total / count, 0.0)
