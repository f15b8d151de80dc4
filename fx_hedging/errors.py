"""
Exceptions raised at the boundary of the hedging engine.

Expected edge cases (empty strategy, zero volume, zero time to maturity) never
raise; these are reserved for caller programming errors and cancelled runs.
"""


class HedgeError(Exception):
    """Base class for all fx_hedging errors."""


class InvalidInputError(HedgeError, ValueError):
    """Numeric input that would feed NaN/inf into the pricing formulas."""


class ComputationCancelled(HedgeError):
    """Raised inside a compute run that was superseded by a newer request."""
