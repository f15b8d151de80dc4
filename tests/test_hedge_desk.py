"""Tests for the hedge_desk command-line interface."""

import json

import pytest

import hedge_desk
from fx_hedging.store import ScenarioStore


@pytest.fixture
def db(tmp_path):
    return str(tmp_path / "desk.db")


@pytest.fixture
def input_file(tmp_path):
    path = tmp_path / "collar.json"
    path.write_text(json.dumps({
        "params": {"start_date": "2025-01-15", "months_to_hedge": 3,
                   "interest_rate": 2.0, "total_volume": 300000, "spot_price": 1.10},
        "legs": [{"type": "call", "strike": 105, "volatility": 10, "quantity": 100},
                 {"type": "put-knockout", "strike": 95, "barrier": 85, "quantity": -100}],
        "overrides": {"real_prices": {"2025-2": 1.2}},
    }))
    return str(path)


def _run(db, *args):
    return hedge_desk.main(["--db", db, *args])


class TestConfigCommand:
    def test_show(self, db, capsys):
        assert _run(db, "config") == 0
        assert "barrier_paths" in capsys.readouterr().out

    def test_set(self, db):
        assert _run(db, "config", "--set", "barrier_paths", "500") == 0
        assert _run(db, "config", "--set", "use_simulation", "yes") == 0
        store = ScenarioStore.open(db)
        assert store["/Config/barrier_paths"] == 500
        assert store["/Config/use_simulation"] is True
        store.close()

    def test_bad_value(self, db):
        assert _run(db, "config", "--set", "barrier_paths", "lots") == 1

    def test_invalid_config_rejected(self, db):
        assert _run(db, "config", "--set", "barrier_paths", "0") == 1

    def test_coerce(self):
        assert hedge_desk.coerce("use_closed_form", "off") is False
        assert hedge_desk.coerce("real_price_volatility", "0.25") == 0.25
        with pytest.raises(ValueError):
            hedge_desk.coerce("use_closed_form", "maybe")


class TestRunCommand:
    def test_json_output(self, db, input_file, capsys):
        assert _run(db, "run", input_file, "--json") == 0
        payload = json.loads(capsys.readouterr().out)
        assert len(payload["periods"]) == 3
        assert payload["periods"][1]["real_price"] == 1.2

    def test_table_output(self, db, input_file, capsys):
        assert _run(db, "run", input_file) == 0
        assert "2025" in capsys.readouterr().out

    def test_save_and_show(self, db, input_file, capsys):
        assert _run(db, "run", input_file, "--save", "collar") == 0
        assert _run(db, "scenarios") == 0
        assert "collar" in capsys.readouterr().out
        assert _run(db, "scenarios", "--show", "collar") == 0
        assert "delta_pnl" in capsys.readouterr().out
        assert _run(db, "scenarios", "--delete", "collar") == 0
        assert _run(db, "scenarios", "--show", "collar") == 1

    def test_missing_file(self, db, tmp_path):
        assert _run(db, "run", str(tmp_path / "nope.json")) == 1

    def test_bad_leg(self, db, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"legs": [{"type": "straddle"}]}))
        assert _run(db, "run", str(path)) == 1


class TestPricingCommands:
    def test_price(self, db, capsys):
        assert _run(db, "price", "call", "--spot", "100", "--strike", "100") == 0
        out = capsys.readouterr().out
        assert "Closed form" in out
        assert "8.9" in out

    def test_price_double_barrier(self, db, capsys):
        assert _run(db, "price", "put-double-knockout", "--barrier", "80",
                    "--second-barrier", "120", "--paths", "2000") == 0
        assert "Monte Carlo" in capsys.readouterr().out

    def test_price_unknown_type(self, db):
        assert _run(db, "price", "straddle") == 1

    def test_calibrate(self, db, capsys):
        assert _run(db, "calibrate", "call", "--price", "8.916") == 0
        assert "Implied volatility" in capsys.readouterr().out

    def test_calibrate_from_file_saves(self, db, tmp_path):
        path = tmp_path / "prices.json"
        path.write_text(json.dumps({
            "params": {"start_date": "2025-01-01", "months_to_hedge": 2},
            "legs": [{"type": "call"}],
            "overrides": {"custom_option_prices": {"2025-2": {"call-0": 2.5}}},
        }))
        assert _run(db, "calibrate", "--from-file", str(path), "--save") == 0
        store = ScenarioStore.open(db)
        assert set(store["/Overrides/implied_vols"]) == {"2025-2"}
        assert store["/Overrides/use_implied_vol"] is True
        store.close()


class TestOverridesCommand:
    def test_set_and_clear(self, db):
        assert _run(db, "overrides", "--set", "forwards", "2025-3", "1.2") == 0
        store = ScenarioStore.open(db)
        assert store.load_overrides().forwards == {"2025-3": 1.2}
        store.close()
        assert _run(db, "overrides", "--clear") == 0
        store = ScenarioStore.open(db)
        assert store.load_overrides().forwards == {}
        store.close()

    def test_stored_overrides_used_by_run(self, db, input_file, capsys):
        assert _run(db, "overrides", "--set", "real_prices", "2025-3", "1.3") == 0
        capsys.readouterr()
        assert _run(db, "run", input_file, "--json") == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["periods"][2]["real_price"] == 1.3


class TestMatrixAndStress:
    def test_matrix(self, db, tmp_path, capsys):
        path = tmp_path / "matrix.json"
        path.write_text(json.dumps({
            "params": {"start_date": "2025-01-01", "months_to_hedge": 3, "spot_price": 100},
            "strategies": [{"name": "Collar", "coverage_ratio": 50,
                            "legs": [{"type": "put", "strike": 95},
                                     {"type": "call", "strike": 110, "quantity": -100}]}],
            "ranges": [{"min": 80, "max": 90, "probability": 30},
                       {"min": 90, "max": 110, "probability": 70}],
        }))
        assert _run(db, "matrix", str(path), "--variations") == 0
        assert "Collar" in capsys.readouterr().out

    def test_stress_single(self, db, input_file, capsys):
        assert _run(db, "stress", input_file, "--scenario", "Market Crash") == 0
        assert "Market Crash" in capsys.readouterr().out
