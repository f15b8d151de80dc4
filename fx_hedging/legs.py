"""
Strategy legs — the tagged variant describing one component of a hedge.

A leg is {kind} x {barrier mode} x {barrier shape}. The legacy string tags
("call", "put-knockin", "call-double-knockout", "put-reverse-knockout", ...)
are parsed into that variant once, at the boundary, and never inspected again.
"""

import math
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Optional

from fx_hedging.errors import InvalidInputError


class OptionKind(Enum):
    CALL = "call"
    PUT = "put"
    SWAP = "swap"


class BarrierMode(Enum):
    NONE = "none"
    KNOCKOUT = "knockout"
    KNOCKIN = "knockin"


class BarrierShape(Enum):
    STANDARD = "standard"
    REVERSE = "reverse"
    DOUBLE = "double"


PERCENT = "percent"
ABSOLUTE = "absolute"


def resolve_level(value, level_type, spot):
    """Turn a percent-of-spot or absolute level into an absolute price."""
    if value is None:
        return None
    if level_type == PERCENT:
        return spot * value / 100.0
    return float(value)


# ── StrategyLeg ─────────────────────────────────────────────────────────

@dataclass(frozen=True)
class StrategyLeg:
    """
    One component of a hedging strategy.

    strike/barrier values are either a percentage of spot or an absolute
    price, depending on strike_type/barrier_type. volatility is in percent.
    quantity is a signed percentage of notional: positive = bought,
    negative = sold.
    """
    kind: OptionKind = OptionKind.CALL
    strike: float = 100.0
    strike_type: str = PERCENT
    volatility: float = 20.0
    quantity: float = 100.0
    barrier_mode: BarrierMode = BarrierMode.NONE
    barrier_shape: BarrierShape = BarrierShape.STANDARD
    barrier: Optional[float] = None
    second_barrier: Optional[float] = None
    barrier_type: str = PERCENT

    def __post_init__(self):
        if self.strike_type not in (PERCENT, ABSOLUTE):
            raise InvalidInputError(f"Unknown strike type: {self.strike_type!r}")
        if self.barrier_type not in (PERCENT, ABSOLUTE):
            raise InvalidInputError(f"Unknown barrier type: {self.barrier_type!r}")
        if math.isnan(self.volatility) or self.volatility < 0:
            raise InvalidInputError(f"Leg volatility must be >= 0, got {self.volatility}")
        if self.kind == OptionKind.SWAP and self.barrier_mode != BarrierMode.NONE:
            raise InvalidInputError("A swap leg cannot carry a barrier")
        if self.barrier_mode != BarrierMode.NONE:
            if self.barrier is None:
                raise InvalidInputError(f"{self.type_tag} requires a barrier level")
            if self.barrier_shape == BarrierShape.DOUBLE and self.second_barrier is None:
                raise InvalidInputError(f"{self.type_tag} requires a second barrier")

    @property
    def is_swap(self):
        return self.kind == OptionKind.SWAP

    @property
    def is_barrier(self):
        return self.barrier_mode != BarrierMode.NONE

    @property
    def is_call(self):
        return self.kind == OptionKind.CALL

    @property
    def type_tag(self):
        """Legacy string tag, e.g. "call-double-knockout"."""
        if self.barrier_mode == BarrierMode.NONE:
            return self.kind.value
        parts = [self.kind.value]
        if self.barrier_shape != BarrierShape.STANDARD:
            parts.append(self.barrier_shape.value)
        parts.append(self.barrier_mode.value)
        return "-".join(parts)

    def strike_level(self, spot):
        return resolve_level(self.strike, self.strike_type, spot)

    def barrier_levels(self, spot):
        """Absolute (barrier, second_barrier); second is None unless double."""
        if not self.is_barrier:
            return None, None
        first = resolve_level(self.barrier, self.barrier_type, spot)
        second = None
        if self.barrier_shape == BarrierShape.DOUBLE:
            second = resolve_level(self.second_barrier, self.barrier_type, spot)
        return first, second

    def key(self, index):
        """Override-map key for this leg at position index in the strategy."""
        return f"{self.type_tag}-{index}"

    def label(self, index):
        return f"{self.type_tag.replace('-', ' ').title()} {index + 1}"

    def to_dict(self):
        d = asdict(self)
        d["kind"] = self.kind.value
        d["barrier_mode"] = self.barrier_mode.value
        d["barrier_shape"] = self.barrier_shape.value
        d["type"] = self.type_tag
        return d

    @classmethod
    def from_dict(cls, data):
        """
        Build a leg from a plain mapping.

        Accepts either the explicit fields (kind/barrier_mode/barrier_shape)
        or a legacy "type" tag, plus camelCase aliases used by saved files.
        """
        data = dict(data)
        aliases = {
            "strikeType": "strike_type",
            "barrierType": "barrier_type",
            "secondBarrier": "second_barrier",
        }
        for old, new in aliases.items():
            if old in data:
                data[new] = data.pop(old)

        tag = data.pop("type", None)
        if tag is not None and "kind" not in data:
            kind, mode, shape = parse_type_tag(tag)
            data["kind"], data["barrier_mode"], data["barrier_shape"] = kind, mode, shape

        if isinstance(data.get("kind"), str):
            data["kind"] = OptionKind(data["kind"])
        if isinstance(data.get("barrier_mode"), str):
            data["barrier_mode"] = BarrierMode(data["barrier_mode"])
        if isinstance(data.get("barrier_shape"), str):
            data["barrier_shape"] = BarrierShape(data["barrier_shape"])

        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            raise InvalidInputError(f"Unknown leg fields: {sorted(unknown)}")
        return cls(**data)


def parse_type_tag(tag):
    """
    Parse a legacy type tag into (OptionKind, BarrierMode, BarrierShape).

    "put"                   -> (PUT, NONE, STANDARD)
    "call-knockout"         -> (CALL, KNOCKOUT, STANDARD)
    "put-reverse-knockin"   -> (PUT, KNOCKIN, REVERSE)
    "call-double-knockout"  -> (CALL, KNOCKOUT, DOUBLE)
    """
    parts = tag.strip().lower().split("-")
    try:
        kind = OptionKind(parts[0])
    except ValueError:
        raise InvalidInputError(f"Unknown leg type: {tag!r}") from None

    if len(parts) == 1:
        return kind, BarrierMode.NONE, BarrierShape.STANDARD

    if len(parts) == 2:
        shape_part, mode_part = BarrierShape.STANDARD.value, parts[1]
    elif len(parts) == 3:
        shape_part, mode_part = parts[1], parts[2]
    else:
        raise InvalidInputError(f"Unknown leg type: {tag!r}")

    try:
        mode = BarrierMode(mode_part)
        shape = BarrierShape(shape_part)
    except ValueError:
        raise InvalidInputError(f"Unknown leg type: {tag!r}") from None
    if mode == BarrierMode.NONE or kind == OptionKind.SWAP:
        raise InvalidInputError(f"Unknown leg type: {tag!r}")
    return kind, mode, shape
