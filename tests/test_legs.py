"""Tests for strategy legs — tagged variant, tag parsing, level resolution."""

import pytest

from fx_hedging.errors import InvalidInputError
from fx_hedging.legs import (
    ABSOLUTE,
    BarrierMode,
    BarrierShape,
    OptionKind,
    StrategyLeg,
    parse_type_tag,
)


class TestParseTypeTag:
    @pytest.mark.parametrize("tag, expected", [
        ("call", (OptionKind.CALL, BarrierMode.NONE, BarrierShape.STANDARD)),
        ("put", (OptionKind.PUT, BarrierMode.NONE, BarrierShape.STANDARD)),
        ("swap", (OptionKind.SWAP, BarrierMode.NONE, BarrierShape.STANDARD)),
        ("call-knockout", (OptionKind.CALL, BarrierMode.KNOCKOUT, BarrierShape.STANDARD)),
        ("put-knockin", (OptionKind.PUT, BarrierMode.KNOCKIN, BarrierShape.STANDARD)),
        ("call-reverse-knockout", (OptionKind.CALL, BarrierMode.KNOCKOUT, BarrierShape.REVERSE)),
        ("put-double-knockin", (OptionKind.PUT, BarrierMode.KNOCKIN, BarrierShape.DOUBLE)),
        (" Call-Double-Knockout ", (OptionKind.CALL, BarrierMode.KNOCKOUT, BarrierShape.DOUBLE)),
    ])
    def test_valid_tags(self, tag, expected):
        assert parse_type_tag(tag) == expected

    @pytest.mark.parametrize("tag", [
        "straddle", "call-foo", "call-double-foo", "swap-knockout",
        "call-none", "call-a-b-c", "",
    ])
    def test_invalid_tags_raise(self, tag):
        with pytest.raises(InvalidInputError):
            parse_type_tag(tag)

    def test_invalid_tag_is_value_error(self):
        with pytest.raises(ValueError):
            parse_type_tag("butterfly")


class TestStrategyLeg:
    def test_defaults(self):
        leg = StrategyLeg()
        assert leg.is_call
        assert not leg.is_barrier
        assert not leg.is_swap
        assert leg.type_tag == "call"

    def test_type_tag_round_trip(self):
        for tag in ("put", "call-knockin", "put-reverse-knockout", "call-double-knockout"):
            kind, mode, shape = parse_type_tag(tag)
            leg = StrategyLeg(kind=kind, barrier_mode=mode, barrier_shape=shape,
                              barrier=90.0, second_barrier=110.0)
            assert leg.type_tag == tag

    def test_strike_percent_of_spot(self):
        leg = StrategyLeg(strike=105.0)
        assert leg.strike_level(1.10) == pytest.approx(1.155)

    def test_strike_absolute(self):
        leg = StrategyLeg(strike=1.2, strike_type=ABSOLUTE)
        assert leg.strike_level(1.10) == 1.2

    def test_barrier_levels(self):
        leg = StrategyLeg(barrier_mode=BarrierMode.KNOCKOUT,
                          barrier_shape=BarrierShape.DOUBLE,
                          barrier=80.0, second_barrier=120.0)
        assert leg.barrier_levels(200.0) == (pytest.approx(160.0), pytest.approx(240.0))

    def test_single_barrier_has_no_second_level(self):
        leg = StrategyLeg(barrier_mode=BarrierMode.KNOCKIN, barrier=90.0, second_barrier=70.0)
        assert leg.barrier_levels(100.0) == (pytest.approx(90.0), None)

    def test_non_barrier_levels(self):
        assert StrategyLeg().barrier_levels(100.0) == (None, None)

    def test_key_and_label(self):
        leg = StrategyLeg(kind=OptionKind.PUT, barrier_mode=BarrierMode.KNOCKOUT,
                          barrier_shape=BarrierShape.REVERSE, barrier=110.0)
        assert leg.key(2) == "put-reverse-knockout-2"
        assert leg.label(0) == "Put Reverse Knockout 1"

    def test_barrier_required(self):
        with pytest.raises(InvalidInputError, match="barrier"):
            StrategyLeg(barrier_mode=BarrierMode.KNOCKOUT)

    def test_second_barrier_required_for_double(self):
        with pytest.raises(InvalidInputError, match="second barrier"):
            StrategyLeg(barrier_mode=BarrierMode.KNOCKOUT,
                        barrier_shape=BarrierShape.DOUBLE, barrier=90.0)

    def test_negative_volatility_rejected(self):
        with pytest.raises(InvalidInputError):
            StrategyLeg(volatility=-1.0)

    def test_nan_volatility_rejected(self):
        with pytest.raises(InvalidInputError):
            StrategyLeg(volatility=float("nan"))

    def test_swap_cannot_carry_barrier(self):
        with pytest.raises(InvalidInputError):
            StrategyLeg(kind=OptionKind.SWAP, barrier_mode=BarrierMode.KNOCKIN, barrier=90.0)

    def test_unknown_strike_type(self):
        with pytest.raises(InvalidInputError):
            StrategyLeg(strike_type="pips")

    def test_hashable(self):
        a = StrategyLeg(strike=95.0)
        b = StrategyLeg(strike=95.0)
        assert a == b
        assert len({a, b}) == 1


class TestLegFromDict:
    def test_from_type_tag(self):
        leg = StrategyLeg.from_dict({"type": "put-knockout", "strike": 95, "barrier": 85})
        assert leg.kind == OptionKind.PUT
        assert leg.barrier_mode == BarrierMode.KNOCKOUT
        assert leg.barrier == 85

    def test_camel_case_aliases(self):
        leg = StrategyLeg.from_dict({
            "type": "call-double-knockin", "strikeType": "absolute",
            "barrierType": "absolute", "barrier": 1.0, "secondBarrier": 1.3,
        })
        assert leg.strike_type == ABSOLUTE
        assert leg.barrier_type == ABSOLUTE
        assert leg.second_barrier == 1.3

    def test_explicit_fields(self):
        leg = StrategyLeg.from_dict({
            "kind": "put", "barrier_mode": "knockin",
            "barrier_shape": "reverse", "barrier": 110,
        })
        assert leg.type_tag == "put-reverse-knockin"

    def test_unknown_field_rejected(self):
        with pytest.raises(InvalidInputError, match="Unknown leg fields"):
            StrategyLeg.from_dict({"type": "call", "notional": 5})

    def test_to_dict_round_trip(self):
        leg = StrategyLeg(kind=OptionKind.PUT, barrier_mode=BarrierMode.KNOCKOUT,
                          barrier=90.0, quantity=-50.0)
        d = leg.to_dict()
        assert d["type"] == "put-knockout"
        assert StrategyLeg.from_dict(d) == leg
