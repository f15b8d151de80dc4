"""
fx_hedging — pricing and simulation engine for FX hedging strategies.

Components:
- Legs / Params: strategy legs, hedge parameters, override maps, simulation config
- PathSimulator: seeded GBM path ensembles generated in parallel batches
- OptionPricer: Black-Scholes, closed-form and Monte Carlo barrier pricing
- BarrierStateTracker: absorbing knock-in / knock-out state on realized prices
- StrategyValuator: per-period prices, payoffs, hedged vs unhedged cost
- VolatilityCalibrator: implied volatility from observed prices
- RiskMatrixEngine: probability-weighted P&L across price ranges
- Scenarios: stress scenarios and historical statistics as override maps
- HedgeEngine / RecomputeScheduler: full calculation, background recompute
- ScenarioStore / HedgeRenderer: CLI persistence and rich tables
"""

from .errors import HedgeError, InvalidInputError, ComputationCancelled
from .legs import (
    StrategyLeg,
    OptionKind,
    BarrierMode,
    BarrierShape,
    parse_type_tag,
    PERCENT,
    ABSOLUTE,
)
from .params import (
    HedgeParams,
    CustomPeriod,
    Period,
    Overrides,
    SimulationConfig,
    month_key,
)
from .paths import (
    PathSimulator,
    BrownianEnsemble,
    GaussianShock,
    UniformShock,
    make_shock,
    monthly_indices,
)
from .pricing import (
    OptionPricer,
    PricingMethod,
    black_scholes,
    barrier_knockout,
    static_payoff,
)
from .barriers import BarrierStateTracker, BarrierStates, barrier_touched
from .valuation import (
    StrategyValuator,
    LegPrice,
    PeriodResult,
    Summary,
    swap_price,
    summarize,
    yearly_summary,
    payoff_diagram,
)
from .calibration import VolatilityCalibrator
from .risk_matrix import (
    PriceRange,
    RiskStrategy,
    RiskMatrixResult,
    RiskMatrixEngine,
    expected_value,
    coverage_variations,
)
from .scenarios import (
    STRESS_SCENARIOS,
    StressScenario,
    apply_stress_scenario,
    monthly_statistics,
    overrides_from_history,
)
from .engine import HedgeEngine, HedgeResults, SimulationData
from .scheduler import RecomputeScheduler, RunStatus
from .store import ScenarioStore
from .rendering import HedgeRenderer

__all__ = [
    # Errors
    "HedgeError", "InvalidInputError", "ComputationCancelled",
    # Legs / params
    "StrategyLeg", "OptionKind", "BarrierMode", "BarrierShape", "parse_type_tag",
    "PERCENT", "ABSOLUTE",
    "HedgeParams", "CustomPeriod", "Period", "Overrides", "SimulationConfig", "month_key",
    # Paths
    "PathSimulator", "BrownianEnsemble", "GaussianShock", "UniformShock",
    "make_shock", "monthly_indices",
    # Pricing
    "OptionPricer", "PricingMethod", "black_scholes", "barrier_knockout", "static_payoff",
    "BarrierStateTracker", "BarrierStates", "barrier_touched",
    # Valuation
    "StrategyValuator", "LegPrice", "PeriodResult", "Summary", "swap_price",
    "summarize", "yearly_summary", "payoff_diagram",
    "VolatilityCalibrator",
    # Risk matrix
    "PriceRange", "RiskStrategy", "RiskMatrixResult", "RiskMatrixEngine",
    "expected_value", "coverage_variations",
    # Scenarios
    "STRESS_SCENARIOS", "StressScenario", "apply_stress_scenario",
    "monthly_statistics", "overrides_from_history",
    # Orchestration
    "HedgeEngine", "HedgeResults", "SimulationData", "RecomputeScheduler", "RunStatus",
    "ScenarioStore", "HedgeRenderer",
]
