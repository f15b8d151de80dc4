#!/usr/bin/env python3
"""
FX Hedge Desk — price hedging strategies from the command line.

Inputs are JSON files:

    {"params": {"start_date": "2025-01-15", "months_to_hedge": 12,
                "interest_rate": 2.0, "total_volume": 1000000, "spot_price": 1.10},
     "legs": [{"type": "call", "strike": 105, "volatility": 10, "quantity": 100},
              {"type": "put-knockout", "strike": 95, "barrier": 85, "quantity": -100}],
     "overrides": {"forwards": {"2025-3": 1.112}},
     "simulation": {"use_simulation": true}}

Usage:
    python hedge_desk.py run FILE [--simulate] [--save NAME] [--json]
    python hedge_desk.py price TYPE --spot S --strike K --rate R --t T --vol V [--barrier H]
    python hedge_desk.py calibrate TYPE --spot S --strike K --rate R --t T --price P
    python hedge_desk.py calibrate --from-file FILE [--leg N] [--save]
    python hedge_desk.py matrix FILE [--variations]
    python hedge_desk.py stress FILE [--scenario NAME]
    python hedge_desk.py config [--set KEY VALUE]
    python hedge_desk.py overrides [--set KIND MONTH VALUE] [--clear [KIND]]
    python hedge_desk.py scenarios [--show NAME] [--delete NAME]
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table as RichTable
from rich.text import Text

from fx_hedging import (
    STRESS_SCENARIOS,
    HedgeEngine,
    HedgeError,
    HedgeParams,
    HedgeRenderer,
    OptionPricer,
    Overrides,
    PriceRange,
    PricingMethod,
    RiskMatrixEngine,
    RiskStrategy,
    ScenarioStore,
    SimulationConfig,
    StrategyLeg,
    VolatilityCalibrator,
    coverage_variations,
)
from fx_hedging.integrations import HAS_QUANTLIB
from fx_hedging.legs import ABSOLUTE
from fx_hedging.store import OVERRIDE_KINDS

logging.basicConfig(level=logging.WARNING)
log = logging.getLogger("hedge_desk")

# ── Constants ────────────────────────────────────────────────────────────

DATA_DIR = Path(__file__).parent / "data"
DB_PATH = DATA_DIR / "hedge_desk.db"

DEFAULT_CONFIG = {
    "real_price_paths": 1000,
    "barrier_paths": 1000,
    "use_closed_form": True,
    "use_simulation": False,
    "real_price_volatility": 0.3,
    "real_price_drift": 0.01,
    "random_seed": 42,
    "n_workers": 4,
    "batch_size": 2000,
    "sample_paths": 100,
    "shock": "gaussian",
}


# ── Store & config ───────────────────────────────────────────────────────

def open_store(db_path=None):
    path = Path(db_path) if db_path else DB_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    return ScenarioStore.open(str(path))


def coerce(key, value):
    """Convert a CLI string to the type of DEFAULT_CONFIG[key]."""
    default = DEFAULT_CONFIG[key]
    if isinstance(default, bool):
        lowered = value.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        raise ValueError(f"Expected a boolean for {key}, got {value!r}")
    return type(default)(value)


def simulation_config(store, extra=None):
    cfg = store.load_config(DEFAULT_CONFIG)
    cfg.update(extra or {})
    return SimulationConfig.from_dict(cfg)


def load_input(path):
    """Read a JSON input file into (params, legs, overrides, simulation dict, raw data)."""
    with open(path) as f:
        data = json.load(f)
    params = HedgeParams(**data.get("params", {}))
    legs = [StrategyLeg.from_dict(d) for d in data.get("legs", [])]
    overrides = Overrides.from_dict(data.get("overrides"))
    return params, legs, overrides, data.get("simulation", {}), data


# ── Commands ─────────────────────────────────────────────────────────────

def cmd_run(store, console, path, simulate=False, save=None, as_json=False):
    params, legs, file_overrides, sim, _ = load_input(path)
    overrides = store.load_overrides().merged(file_overrides)
    if simulate:
        sim = {**sim, "use_simulation": True}
    config = simulation_config(store, sim)

    results = HedgeEngine(config).compute(params, legs, overrides)

    if save:
        store.save_scenario(save, {
            "params": params.to_dict(),
            "legs": [leg.to_dict() for leg in legs],
            "overrides": overrides.to_dict(),
            "simulation": config.to_dict(),
            "results": results.to_dict(),
        }, description=f"{len(legs)} legs, {len(results.periods)} periods")
        console.print(f"[green]Saved scenario {save}[/green]")

    if as_json:
        print(json.dumps(results.to_dict(), indent=2, default=str))
        return

    renderer = HedgeRenderer(console)
    renderer.render_periods(results.periods)
    renderer.render_leg_prices(results.periods)
    renderer.render_summary(results.yearly, results.total)
    renderer.render_simulation(results.simulation)


def _cli_leg(tag, strike, barrier=None, second_barrier=None, volatility=20.0):
    fields = {"type": tag, "strike": strike, "strike_type": ABSOLUTE,
              "volatility": volatility, "barrier_type": ABSOLUTE}
    if barrier is not None:
        fields["barrier"] = barrier
    if second_barrier is not None:
        fields["second_barrier"] = second_barrier
    return StrategyLeg.from_dict(fields)


def cmd_price(console, args):
    leg = _cli_leg(args.type, args.strike, args.barrier, args.second_barrier, args.vol)
    pricer = OptionPricer(n_paths=args.paths, seed=args.seed)
    method = PricingMethod.MONTE_CARLO if args.mc else PricingMethod.CLOSED_FORM
    sigma = args.vol / 100.0
    price = pricer.price(leg, args.spot, args.strike, args.rate / 100.0, args.t, sigma,
                         method=method)

    tbl = RichTable(title=f"{leg.type_tag} price", header_style="bold cyan")
    tbl.add_column("Engine", style="bold")
    tbl.add_column("Price", justify="right")
    use_mc = method == PricingMethod.MONTE_CARLO or not pricer.supports_closed_form(leg)
    label = "Monte Carlo" if use_mc and leg.is_barrier else "Closed form"
    tbl.add_row(label, f"{price:.6f}")

    if args.quantlib:
        if not HAS_QUANTLIB:
            console.print("[yellow]QuantLib not installed; skipping cross-check[/yellow]")
        else:
            from fx_hedging.integrations.quantlib_pricing import quantlib_price
            ql_price = quantlib_price(leg, args.spot, args.strike, args.rate / 100.0,
                                      args.t, sigma)
            tbl.add_row("QuantLib", f"{ql_price:.6f}")
    console.print(tbl)


def cmd_calibrate(store, console, args):
    calibrator = VolatilityCalibrator()
    if args.from_file:
        params, legs, file_overrides, _, _ = load_input(args.from_file)
        overrides = store.load_overrides().merged(file_overrides)
        vols = calibrator.calibrate_periods(params, legs, overrides, leg_index=args.leg)
        HedgeRenderer(console).render_calibration(vols)
        if args.save and vols:
            stored = store.get("/Overrides/implied_vols", {})
            stored.update(vols)
            store["/Overrides/implied_vols"] = stored
            store["/Overrides/use_implied_vol"] = True
            console.print(f"[green]Stored {len(vols)} implied vols[/green]")
        return

    if args.type is None or args.price is None:
        console.print("[red]calibrate needs TYPE and --price, or --from-file[/red]")
        return
    leg = _cli_leg(args.type, args.strike, args.barrier, args.second_barrier)
    vol = calibrator.implied_volatility(leg, args.spot, args.strike, args.rate / 100.0,
                                        args.t, args.price)
    console.print(f"Implied volatility for {leg.type_tag}: [bold]{vol:.4f}%[/bold]")


def cmd_matrix(store, console, path, variations=False):
    with open(path) as f:
        data = json.load(f)
    params = HedgeParams(**data.get("params", {}))
    overrides = store.load_overrides().merged(Overrides.from_dict(data.get("overrides")))
    ranges = [PriceRange(**r) for r in data.get("ranges", [])]
    strategies = [
        RiskStrategy(
            name=s.get("name", f"Strategy {i + 1}"),
            legs=[StrategyLeg.from_dict(d) for d in s.get("legs", [])],
            coverage_ratio=s.get("coverage_ratio", 100.0),
        )
        for i, s in enumerate(data.get("strategies", []))
    ]

    results = RiskMatrixEngine().evaluate(params, strategies, ranges, overrides)
    if variations:
        results = [
            v for res in results if res.coverage_ratio > 0
            for v in coverage_variations(res, ranges)
        ]
    HedgeRenderer(console).render_risk_matrix(results, ranges)


def cmd_stress(store, console, path, scenario=None):
    params, legs, file_overrides, sim, _ = load_input(path)
    overrides = store.load_overrides().merged(file_overrides)
    config = simulation_config(store, sim)
    names = [scenario] if scenario else None
    results = HedgeEngine(config).run_all_scenarios(params, legs, overrides, names=names)
    HedgeRenderer(console).render_stress(results)


def cmd_config(store, console, set_pair=None):
    """Show or edit the simulation defaults."""
    if set_pair:
        key, value = set_pair
        if key not in DEFAULT_CONFIG:
            console.print(f"[red]Unknown key: {key}[/red]")
            console.print(f"Valid keys: {', '.join(DEFAULT_CONFIG.keys())}")
            return
        typed_val = coerce(key, value)
        SimulationConfig.from_dict({**store.load_config(DEFAULT_CONFIG), key: typed_val})
        store[f"/Config/{key}"] = typed_val
        console.print(f"[green]Set {key} = {typed_val}[/green]")
        return

    config = store.load_config(DEFAULT_CONFIG)
    tbl = RichTable(title="Hedge Desk Simulation Config", expand=True,
                    title_style="bold white", show_header=True,
                    header_style="bold cyan")
    tbl.add_column("Key", style="bold", width=26)
    tbl.add_column("Value", justify="right", width=14)
    tbl.add_column("Default", justify="right", width=14, style="dim")

    for key, default in DEFAULT_CONFIG.items():
        val = config[key]
        style = "" if val == default else "yellow"
        tbl.add_row(key, Text(str(val), style=style), str(default))

    console.print(Panel(tbl, border_style="cyan"))
    console.print("[dim]Edit: python hedge_desk.py config --set KEY VALUE[/dim]")


def cmd_overrides(store, console, set_triple=None, clear=None):
    if set_triple:
        kind, month, value = set_triple
        if kind not in OVERRIDE_KINDS or kind == "custom_option_prices":
            console.print(f"[red]Unknown override kind: {kind}[/red]")
            console.print("Valid kinds: forwards, real_prices, implied_vols")
            return
        stored = store.get(f"/Overrides/{kind}", {})
        stored[month] = float(value)
        store[f"/Overrides/{kind}"] = stored
        if kind == "implied_vols":
            store["/Overrides/use_implied_vol"] = True
        console.print(f"[green]Set {kind}[{month}] = {float(value)}[/green]")
        return
    if clear is not None:
        store.clear_overrides(clear or None)
        console.print(f"[green]Cleared {clear or 'all'} overrides[/green]")
        return

    overrides = store.load_overrides()
    tbl = RichTable(title="Stored Overrides", header_style="bold cyan")
    tbl.add_column("Kind", style="bold")
    tbl.add_column("Month")
    tbl.add_column("Value", justify="right")
    for kind in ("forwards", "real_prices", "implied_vols"):
        for month, value in sorted(getattr(overrides, kind).items()):
            tbl.add_row(kind, month, f"{value:.4f}")
    for month, prices in sorted(overrides.custom_option_prices.items()):
        for leg_key, value in prices.items():
            tbl.add_row("custom_option_prices", f"{month} {leg_key}", f"{value:.4f}")
    console.print(tbl)
    console.print(f"[dim]use_implied_vol = {overrides.use_implied_vol}[/dim]")


def cmd_scenarios(store, console, show=None, delete=None):
    if delete:
        store.delete_scenario(delete)
        console.print(f"[green]Deleted scenario {delete}[/green]")
        return
    if show:
        payload = store.load_scenario(show)
        total = payload["results"]["total"]
        console.print(Panel(json.dumps(total, indent=2, default=str),
                            title=f"Scenario {show}", border_style="cyan"))
        return

    tbl = RichTable(title="Saved Scenarios", header_style="bold cyan")
    tbl.add_column("Name", style="bold")
    tbl.add_column("Description")
    tbl.add_column("Delta P&L", justify="right")
    for name in store.list_scenarios():
        meta = store.get_metadata(f"/Scenarios/{name}") or {}
        total = store.load_scenario(name)["results"]["total"]
        tbl.add_row(name, meta.get("description") or "", f"{total['delta_pnl']:+,.0f}")
    console.print(tbl)
    console.print(f"[dim]Stress scenarios: {', '.join(STRESS_SCENARIOS)}[/dim]")


# ── CLI ──────────────────────────────────────────────────────────────────

def _add_leg_args(p, type_required=True):
    if type_required:
        p.add_argument("type", help="Leg type tag, e.g. call, put-knockout, call-double-knockin")
    else:
        p.add_argument("type", nargs="?", help="Leg type tag")
    p.add_argument("--spot", type=float, default=100.0, help="Underlying price")
    p.add_argument("--strike", type=float, default=100.0, help="Absolute strike")
    p.add_argument("--rate", type=float, default=2.0, help="Annual rate in percent")
    p.add_argument("--t", type=float, default=1.0, help="Time to maturity in years")
    p.add_argument("--barrier", type=float, help="Absolute barrier level")
    p.add_argument("--second-barrier", type=float, help="Second barrier (double barriers)")


def build_parser():
    parser = argparse.ArgumentParser(description="FX Hedge Desk")
    parser.add_argument("--db", help=f"Store path (default: {DB_PATH})")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at INFO level")

    sub = parser.add_subparsers(dest="command")

    run_p = sub.add_parser("run", help="Value a strategy over the hedge horizon")
    run_p.add_argument("file", help="JSON input file")
    run_p.add_argument("--simulate", action="store_true",
                       help="Simulate the realized price path")
    run_p.add_argument("--save", metavar="NAME", help="Save inputs and results")
    run_p.add_argument("--json", action="store_true", help="Print results as JSON")

    price_p = sub.add_parser("price", help="Price a single leg")
    _add_leg_args(price_p)
    price_p.add_argument("--vol", type=float, default=20.0, help="Volatility in percent")
    price_p.add_argument("--mc", action="store_true", help="Force Monte Carlo")
    price_p.add_argument("--paths", type=int, default=10_000, help="Monte Carlo paths")
    price_p.add_argument("--seed", type=int, default=42)
    price_p.add_argument("--quantlib", action="store_true", help="Cross-check with QuantLib")

    cal_p = sub.add_parser("calibrate", help="Implied volatility from observed prices")
    _add_leg_args(cal_p, type_required=False)
    cal_p.add_argument("--price", type=float, help="Observed option price")
    cal_p.add_argument("--from-file", metavar="FILE",
                       help="Calibrate every custom price of a leg in FILE")
    cal_p.add_argument("--leg", type=int, default=0, help="Leg index for --from-file")
    cal_p.add_argument("--save", action="store_true", help="Store as implied-vol overrides")

    matrix_p = sub.add_parser("matrix", help="Risk matrix across price ranges")
    matrix_p.add_argument("file", help="JSON file with params, strategies and ranges")
    matrix_p.add_argument("--variations", action="store_true",
                          help="Show 25/50/75/100%% coverage variations")

    stress_p = sub.add_parser("stress", help="Run stress scenarios")
    stress_p.add_argument("file", help="JSON input file")
    stress_p.add_argument("--scenario", choices=list(STRESS_SCENARIOS),
                          help="Run a single scenario")

    cfg_p = sub.add_parser("config", help="Show/edit simulation config")
    cfg_p.add_argument("--set", nargs=2, metavar=("KEY", "VALUE"),
                       help="Set a config value")

    ov_p = sub.add_parser("overrides", help="Show/edit stored override maps")
    ov_p.add_argument("--set", nargs=3, metavar=("KIND", "MONTH", "VALUE"),
                      help="Set an override, MONTH as YYYY-M")
    ov_p.add_argument("--clear", nargs="?", const="", metavar="KIND",
                      help="Clear one kind of override, or all")

    sc_p = sub.add_parser("scenarios", help="List saved scenarios")
    sc_p.add_argument("--show", metavar="NAME")
    sc_p.add_argument("--delete", metavar="NAME")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    console = Console(width=120)
    if args.verbose:
        logging.getLogger().setLevel(logging.INFO)

    if args.command is None:
        parser.print_help()
        return 0

    store = open_store(args.db)
    store.seed_config(DEFAULT_CONFIG)
    try:
        if args.command == "run":
            cmd_run(store, console, args.file, simulate=args.simulate,
                    save=args.save, as_json=args.json)

        elif args.command == "price":
            cmd_price(console, args)

        elif args.command == "calibrate":
            cmd_calibrate(store, console, args)

        elif args.command == "matrix":
            cmd_matrix(store, console, args.file, variations=args.variations)

        elif args.command == "stress":
            cmd_stress(store, console, args.file, scenario=args.scenario)

        elif args.command == "config":
            cmd_config(store, console, set_pair=args.set)

        elif args.command == "overrides":
            cmd_overrides(store, console, set_triple=args.set, clear=args.clear)

        elif args.command == "scenarios":
            cmd_scenarios(store, console, show=args.show, delete=args.delete)
    except (HedgeError, ValueError, KeyError, OSError) as e:
        console.print(f"[red]Error: {e}[/red]")
        log.debug("Command failed", exc_info=True)
        return 1
    finally:
        store.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
