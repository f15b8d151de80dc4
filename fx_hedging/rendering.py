"""
Rich-based tables for hedge results, risk matrices and stress runs.

Degenerate aggregates (None) render as "N/A".
"""

import numpy as np
from rich.console import Console
from rich.panel import Panel
from rich.table import Table as RichTable
from rich.text import Text

SPARK_CHARS = "▁▂▃▄▅▆▇█"


def fmt(value, spec=",.2f", suffix=""):
    if value is None:
        return "N/A"
    return f"{value:{spec}}{suffix}"


def pnl_text(value, spec="+,.0f"):
    if value is None:
        return Text("N/A", style="dim")
    style = "green" if value >= 0 else "red"
    return Text(f"{value:{spec}}", style=style)


def sparkline(values):
    values = np.asarray(values, dtype=np.float64)
    if values.size == 0:
        return ""
    lo, hi = values.min(), values.max()
    if hi - lo < 1e-12:
        return SPARK_CHARS[0] * values.size
    scaled = ((values - lo) / (hi - lo) * (len(SPARK_CHARS) - 1)).astype(int)
    return "".join(SPARK_CHARS[i] for i in scaled)


class HedgeRenderer:
    """Render engine outputs on a rich Console."""

    def __init__(self, console=None):
        self.console = console or Console(width=120)

    def render_periods(self, periods):
        tbl = RichTable(
            title="Hedge Results by Period",
            expand=True,
            title_style="bold white",
            show_header=True,
            header_style="bold cyan",
        )
        tbl.add_column("Maturity", style="bold")
        tbl.add_column("T", justify="right")
        tbl.add_column("Forward", justify="right")
        tbl.add_column("Real", justify="right")
        tbl.add_column("IV %", justify="right")
        tbl.add_column("Strategy", justify="right")
        tbl.add_column("Payoff", justify="right")
        tbl.add_column("Volume", justify="right")
        tbl.add_column("Hedged", justify="right")
        tbl.add_column("Unhedged", justify="right")
        tbl.add_column("Delta P&L", justify="right")

        for row in periods:
            tbl.add_row(
                row.date.isoformat(),
                f"{row.time_to_maturity:.3f}",
                f"{row.forward:.4f}",
                f"{row.real_price:.4f}",
                fmt(row.implied_volatility, ".1f"),
                f"{row.strategy_price:.4f}",
                f"{row.total_payoff:.4f}",
                f"{row.monthly_volume:,.0f}",
                f"{row.hedged_cost:,.0f}",
                f"{row.unhedged_cost:,.0f}",
                pnl_text(row.delta_pnl),
            )
        self.console.print(Panel(tbl, border_style="cyan"))

    def render_leg_prices(self, periods):
        """Per-leg model prices, one column per leg."""
        if not periods or not periods[0].leg_prices:
            return
        tbl = RichTable(title="Leg Prices", expand=True, header_style="bold cyan")
        tbl.add_column("Maturity", style="bold")
        for lp in periods[0].leg_prices:
            tbl.add_column(lp.label, justify="right")
        for row in periods:
            cells = []
            for lp in row.leg_prices:
                cell = f"{lp.price:.4f}" + ("*" if lp.custom else "")
                cells.append(Text(cell, style="" if lp.active else "dim"))
            tbl.add_row(row.date.isoformat(), *cells)
        self.console.print(tbl)
        self.console.print("[dim]* custom price override; dimmed = barrier switched payoff off[/]")

    def render_summary(self, yearly, total):
        tbl = RichTable(
            title="Summary",
            expand=True,
            title_style="bold white",
            header_style="bold cyan",
        )
        tbl.add_column("Year", style="bold")
        tbl.add_column("Hedged Cost", justify="right")
        tbl.add_column("Unhedged Cost", justify="right")
        tbl.add_column("Delta P&L", justify="right")
        tbl.add_column("Premium", justify="right")
        tbl.add_column("Volume", justify="right")
        tbl.add_column("Hedged Rate", justify="right")
        tbl.add_column("Cost Reduction", justify="right")

        for s in list(yearly) + ([total] if total is not None else []):
            tbl.add_row(
                Text(s.label, style="bold" if s is total else ""),
                f"{s.hedged_cost:,.0f}",
                f"{s.unhedged_cost:,.0f}",
                pnl_text(s.delta_pnl),
                f"{s.strategy_premium:,.0f}",
                f"{s.volume:,.0f}",
                fmt(s.hedged_rate, ".4f"),
                fmt(s.cost_reduction_pct, "+.2f", "%"),
            )
        self.console.print(Panel(tbl, border_style="cyan"))

    def render_simulation(self, simulation, max_rows=5):
        """Sparklines of a few sampled paths."""
        lines = []
        for i, path in enumerate(simulation.real_price_paths[:max_rows]):
            lines.append(f"real  #{i:<3d} {sparkline(path)}  {path[-1]:.4f}")
        for i, path in enumerate(simulation.barrier_option_paths[:max_rows]):
            lines.append(f"{simulation.barrier_leg_key} #{i:<3d} {sparkline(path)}  {path[-1]:.4f}")
        if lines:
            self.console.print(Panel("\n".join(lines), title="Sampled Paths", border_style="cyan"))

    def render_risk_matrix(self, results, ranges):
        tbl = RichTable(
            title="Risk Matrix",
            expand=True,
            title_style="bold white",
            header_style="bold cyan",
        )
        tbl.add_column("Strategy", style="bold")
        tbl.add_column("Coverage", justify="right")
        tbl.add_column("Hedging Cost", justify="right")
        for r in ranges:
            tbl.add_column(f"{r.label}\n({r.probability:.0f}%)", justify="right")
        tbl.add_column("Expected", justify="right")

        for res in results:
            tbl.add_row(
                res.strategy_name,
                f"{res.coverage_ratio:.0f}%",
                f"{res.hedging_cost:,.0f}",
                *[pnl_text(res.differences.get(r.key)) for r in ranges],
                pnl_text(res.expected_value),
            )
        self.console.print(Panel(tbl, border_style="cyan"))

    def render_stress(self, all_results):
        """Scenario x total metrics."""
        tbl = RichTable(
            title="Stress Scenarios",
            expand=True,
            title_style="bold white",
            header_style="bold cyan",
        )
        tbl.add_column("Scenario", style="bold")
        tbl.add_column("Hedged Cost", justify="right")
        tbl.add_column("Unhedged Cost", justify="right")
        tbl.add_column("Delta P&L", justify="right")
        tbl.add_column("Cost Reduction", justify="right")

        for name, res in all_results.items():
            total = res.total
            tbl.add_row(
                name,
                f"{total.hedged_cost:,.0f}",
                f"{total.unhedged_cost:,.0f}",
                pnl_text(total.delta_pnl),
                fmt(total.cost_reduction_pct, "+.2f", "%"),
            )
        self.console.print(Panel(tbl, border_style="cyan"))

    def render_calibration(self, vols):
        tbl = RichTable(title="Implied Volatility", header_style="bold cyan")
        tbl.add_column("Month", style="bold")
        tbl.add_column("Vol %", justify="right")
        for key, vol in vols.items():
            tbl.add_row(key, f"{vol:.2f}")
        self.console.print(tbl)
