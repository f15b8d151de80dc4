"""
Integrations — optional QuantLib cross-check for the closed-form pricer.

The import is conditional; the rest of fx_hedging works without QuantLib.
Use HAS_QUANTLIB to check availability at runtime.
"""

# ── QuantLib ──────────────────────────────────────────────────────────────
HAS_QUANTLIB = False
try:
    import QuantLib  # noqa: F401
    HAS_QUANTLIB = True
except ImportError:
    pass


def require_quantlib():
    """Raise ImportError with a helpful message if QuantLib is missing."""
    if not HAS_QUANTLIB:
        raise ImportError(
            "QuantLib is required for this feature. "
            "Install it with: pip install 'fx-hedging[quantlib]'"
        )


# ── Conditional re-exports ───────────────────────────────────────────────

if HAS_QUANTLIB:
    from .quantlib_pricing import (
        quantlib_price,
        cross_check,
    )
