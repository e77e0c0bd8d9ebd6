"""
Command-Line Interface for the Options Journal

Provides CLI commands for pricing single options, solving implied
volatility, sampling payoff curves and summarizing a journal file.

Usage:
    options-journal price --spot 21000 --strike 21500 --days 60 --vol 15 --kind call
    options-journal iv --price 180 --spot 21000 --strike 21500 --days 60 --kind call
    options-journal payoff --journal journal.yaml --structure "Bear call"
    options-journal portfolio --journal journal.yaml
    options-journal validate --journal journal.yaml
"""

import math
import sys
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from options_journal import __version__
from options_journal.analytics.payoff import payoff_curve
from options_journal.analytics.portfolio import (
    equity_curve,
    total_greeks,
    total_unrealized_pnl,
    trade_statistics,
)
from options_journal.cli.config_loader import Journal, JournalLoader
from options_journal.cli.config_schema import ConfigValidationError, ConfigValidator
from options_journal.cli.environment import (
    Environment,
    configure_logging,
    get_settings,
    set_environment,
)
from options_journal.core.exceptions import OptionsJournalError
from options_journal.core.expiry import DAYS_PER_YEAR
from options_journal.core.market import MarketSnapshot
from options_journal.core.pricing import implied_volatility, price_option
from options_journal.core.structure import Structure, structure_pnl

console = Console()
err_console = Console(stderr=True)


def echo(message: str, style: Optional[str] = None, err: bool = False) -> None:
    """Output message through rich."""
    (err_console if err else console).print(message, style=style)


def echo_error(message: str) -> None:
    """Output error message."""
    echo(f"[red]Error:[/red] {message}", err=True)


def echo_success(message: str) -> None:
    """Output success message."""
    echo(f"[green]{message}[/green]")


def echo_warning(message: str) -> None:
    """Output warning message."""
    echo(f"[yellow]Warning:[/yellow] {message}")


def _money(value: float) -> str:
    return f"{value:,.2f}"


def _ratio(value: float) -> str:
    return "inf" if math.isinf(value) else f"{value:.2f}"


@click.group()
@click.option(
    "--env",
    "-e",
    type=click.Choice([e.value for e in Environment]),
    default="development",
    help="Environment to use",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.version_option(version=__version__, prog_name="Options Journal")
@click.pass_context
def cli(ctx: click.Context, env: str, verbose: bool, quiet: bool) -> None:
    """Options Journal CLI - Price options and analyze a journal of structures."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet

    set_environment(Environment(env))
    if verbose:
        configure_logging()


# =============================================================================
# Single Option Commands
# =============================================================================

_kind_option = click.option(
    "--kind",
    "-k",
    type=click.Choice(["call", "put"], case_sensitive=False),
    required=True,
    help="Option type",
)


@cli.command()
@click.option("--spot", "-s", type=float, required=True, help="Underlying price")
@click.option("--strike", "-K", type=float, required=True, help="Strike price")
@click.option("--days", "-d", type=float, required=True, help="Calendar days to expiry")
@click.option("--vol", type=float, required=True, help="Volatility in percent")
@click.option("--rate", "-r", type=float, help="Risk-free rate in percent")
@_kind_option
def price(spot: float, strike: float, days: float, vol: float, rate: Optional[float], kind: str) -> None:
    """Price one option and show its Greeks."""
    rate_pct = rate if rate is not None else get_settings().risk_free_rate_pct

    try:
        valuation = price_option(
            spot=spot,
            strike=strike,
            time_to_expiry=max(days, 0.0) / DAYS_PER_YEAR,
            rate=rate_pct / 100.0,
            vol_pct=vol,
            kind=kind,
        )
    except OptionsJournalError as e:
        echo_error(str(e))
        sys.exit(1)

    table = Table(title=f"{kind.upper()} {strike:g} ({days:g} days, {vol:g}% vol, {rate_pct:g}% rate)")
    table.add_column("Measure", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Price", f"{valuation.price:.4f}")
    table.add_row("Delta", f"{valuation.delta:.4f}")
    table.add_row("Gamma", f"{valuation.gamma:.6f}")
    table.add_row("Theta / day", f"{valuation.theta:.4f}")
    table.add_row("Vega / vol pt", f"{valuation.vega:.4f}")
    table.add_row("Rho / rate pt", f"{valuation.rho:.4f}")
    console.print(table)


@cli.command()
@click.option("--price", "-p", "observed_price", type=float, required=True, help="Observed option price")
@click.option("--spot", "-s", type=float, required=True, help="Underlying price")
@click.option("--strike", "-K", type=float, required=True, help="Strike price")
@click.option("--days", "-d", type=float, required=True, help="Calendar days to expiry")
@click.option("--rate", "-r", type=float, help="Risk-free rate in percent")
@_kind_option
def iv(observed_price: float, spot: float, strike: float, days: float, rate: Optional[float], kind: str) -> None:
    """Solve the implied volatility of an observed price."""
    settings = get_settings()
    rate_pct = rate if rate is not None else settings.risk_free_rate_pct

    try:
        result = implied_volatility(
            observed_price=observed_price,
            spot=spot,
            strike=strike,
            time_to_expiry=max(days, 0.0) / DAYS_PER_YEAR,
            rate=rate_pct / 100.0,
            kind=kind,
            initial_guess_pct=settings.iv_initial_guess_pct,
            tolerance=settings.iv_tolerance,
            max_iterations=settings.iv_max_iterations,
        )
    except OptionsJournalError as e:
        echo_error(str(e))
        sys.exit(1)

    if not result.converged:
        echo_error(f"No implied volatility: {result.status.value}")
        sys.exit(1)

    echo(
        f"Implied volatility: [bold]{result.volatility_pct:.4f}%[/bold] "
        f"({result.method}, {result.iterations} iterations)"
    )


# =============================================================================
# Journal Commands
# =============================================================================

def _load_journal(path: Path) -> Journal:
    """Load a journal or exit with the validation errors."""
    try:
        journal = JournalLoader.load(path)
    except ConfigValidationError as e:
        echo_error(str(e))
        for error in e.errors:
            echo(f"  - {error}", err=True)
        sys.exit(1)
    except (OSError, ValueError) as e:
        echo_error(str(e))
        sys.exit(1)

    for message in journal.skipped:
        echo_warning(message)
    return journal


def _resolve_market(journal: Journal, spot: Optional[float], rate: Optional[float]) -> MarketSnapshot:
    """Journal market with command-line overrides."""
    if journal.market is None:
        if spot is None:
            echo_error("The journal has no market section; pass --spot")
            sys.exit(1)
        rate_pct = rate if rate is not None else get_settings().risk_free_rate_pct
        return MarketSnapshot(spot_price=spot, risk_free_rate_pct=rate_pct)

    market = journal.market
    if spot is not None:
        market = market.with_spot(spot)
    if rate is not None:
        market = MarketSnapshot(market.spot_price, rate, market.valuation_date)
    return market


def _find_structure(structures: List[Structure], selector: Optional[str]) -> Structure:
    """Select a structure by tag, id or zero-based index."""
    if not structures:
        echo_error("The journal has no structures")
        sys.exit(1)
    if selector is None:
        return structures[0]

    for structure in structures:
        if structure.tag == selector or str(structure.structure_id) == selector:
            return structure
    if selector.isdigit() and int(selector) < len(structures):
        return structures[int(selector)]

    echo_error(f"No structure matches '{selector}'")
    sys.exit(1)


_journal_option = click.option(
    "--journal",
    "-j",
    type=click.Path(exists=True, path_type=Path),
    required=True,
    help="Path to journal file (YAML or JSON)",
)


@cli.command()
@_journal_option
@click.option("--structure", "-n", "selector", help="Structure tag, id or index (default: first)")
@click.option("--spot", "-s", type=float, help="Override the journal spot price")
@click.option("--rate", "-r", type=float, help="Override the risk-free rate in percent")
@click.option("--steps", type=int, help="Number of intervals (default from environment)")
@click.option("--min-spot", type=float, help="Lower edge of the spot range")
@click.option("--max-spot", type=float, help="Upper edge of the spot range")
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    help="Write the full curve to this CSV file",
)
@click.pass_context
def payoff(
    ctx: click.Context,
    journal: Path,
    selector: Optional[str],
    spot: Optional[float],
    rate: Optional[float],
    steps: Optional[int],
    min_spot: Optional[float],
    max_spot: Optional[float],
    output: Optional[Path],
) -> None:
    """Sample the payoff curve of one structure."""
    quiet = ctx.obj.get("quiet", False)
    loaded = _load_journal(journal)
    market = _resolve_market(loaded, spot, rate)
    structure = _find_structure(loaded.structures, selector)

    spot_range = None
    if min_spot is not None or max_spot is not None:
        if min_spot is None or max_spot is None:
            echo_error("--min-spot and --max-spot must be given together")
            sys.exit(1)
        spot_range = (min_spot, max_spot)

    try:
        curve = payoff_curve(
            structure.legs,
            market,
            structure.multiplier,
            spot_range=spot_range,
            steps=steps or get_settings().payoff_steps,
        )
    except OptionsJournalError as e:
        echo_error(str(e))
        sys.exit(1)

    if output:
        curve.to_frame().to_csv(output, index=False)
        if not quiet:
            echo_success(f"Payoff curve written: {output}")
        return

    breakevens = curve.breakeven_points()
    console.print(Panel(f"[bold]{structure}[/bold] at spot {market.spot_price:,.2f}"))

    table = Table()
    table.add_column("Spot", justify="right", style="cyan")
    table.add_column("P&L at expiry", justify="right")
    table.add_column("P&L today", justify="right")
    stride = max(1, len(curve) // 20)
    for point in curve[::stride]:
        table.add_row(f"{point.spot:,.2f}", _money(point.pnl_at_expiry), _money(point.pnl_today))
    console.print(table)

    echo(f"Max profit: {_money(curve.max_profit())}  Max loss: {_money(curve.max_loss())}")
    echo(
        "Breakevens: "
        + (", ".join(f"{b:,.2f}" for b in breakevens) if breakevens else "none in range")
    )


@cli.command()
@_journal_option
@click.option("--spot", "-s", type=float, help="Override the journal spot price")
@click.option("--rate", "-r", type=float, help="Override the risk-free rate in percent")
@click.option("--capital", type=float, help="Override initial capital from the journal")
@click.option("--recompute", is_flag=True, help="Recompute realized P&L from the legs")
@click.pass_context
def portfolio(
    ctx: click.Context,
    journal: Path,
    spot: Optional[float],
    rate: Optional[float],
    capital: Optional[float],
    recompute: bool,
) -> None:
    """Summarize open risk and closed-trade performance of a journal."""
    verbose = ctx.obj.get("verbose", False)
    loaded = _load_journal(journal)
    initial_capital = capital if capital is not None else loaded.initial_capital
    active = loaded.active_structures
    closed = loaded.closed_structures

    console.print(Panel(f"[bold]{loaded.name}[/bold]"))

    if active:
        market = _resolve_market(loaded, spot, rate)
        greeks = total_greeks(active, market)

        table = Table(title=f"Open Risk ({len(active)} active)")
        table.add_column("Measure", style="cyan")
        table.add_column("Value", justify="right")
        table.add_row("Delta (pts)", f"{greeks.delta:.4f}")
        table.add_row("Gamma (pts)", f"{greeks.gamma:.6f}")
        table.add_row("Theta / day", _money(greeks.theta))
        table.add_row("Vega / vol pt", _money(greeks.vega))
        table.add_row("Unrealized P&L", _money(total_unrealized_pnl(active, market)))
        console.print(table)

        if verbose:
            for structure in active:
                pnl = structure_pnl(structure, market)
                echo(f"  {structure}: net {_money(pnl.total.net_pnl)}")

    stats = trade_statistics(closed, initial_capital, recompute)
    table = Table(title=f"Closed Trades ({stats.num_trades})")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Total Net P&L", _money(stats.total_net_pnl))
    table.add_row("Profit Factor", _ratio(stats.profit_factor))
    table.add_row("Win Rate", f"{stats.win_rate:.1%}")
    table.add_row("Avg Win", _money(stats.avg_win))
    table.add_row("Avg Loss", _money(stats.avg_loss))
    table.add_row("Max Drawdown", _money(stats.max_drawdown))
    console.print(table)

    if stats.num_trades:
        table = Table(title="Equity Curve")
        table.add_column("Date")
        table.add_column("Structure", style="cyan")
        table.add_column("Equity", justify="right")
        table.add_column("Drawdown", justify="right")
        for point in equity_curve(closed, initial_capital, recompute):
            table.add_row(
                point.closing_date.isoformat() if point.closing_date else point.label,
                point.tag,
                _money(point.equity),
                _money(point.drawdown),
            )
        console.print(table)


@cli.command()
@_journal_option
@click.pass_context
def validate(ctx: click.Context, journal: Path) -> None:
    """Validate a journal file."""
    quiet = ctx.obj.get("quiet", False)

    try:
        if not quiet:
            echo(f"Validating [cyan]{journal}[/cyan]...")

        config = JournalLoader.parse(journal)
        errors = ConfigValidator.validate(config)
    except ConfigValidationError as e:
        echo_error(str(e))
        for error in e.errors:
            echo(f"  - {error}", err=True)
        sys.exit(1)
    except (OSError, ValueError) as e:
        echo_error(f"Validation error: {e}")
        sys.exit(1)

    if errors:
        echo_error("Validation failed with the following errors:")
        for error in errors:
            echo(f"  [red]x[/red] {error}", err=True)
        sys.exit(1)

    echo_success(f"Journal '{config.name}' is valid ({len(config.structures)} structures)")


@cli.command()
def env() -> None:
    """Show current environment configuration."""
    settings = get_settings()

    table = Table(title=f"Environment: {settings.name.value}")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Log Level", settings.log_level)
    table.add_row("Log File", settings.log_file or "Not set")
    table.add_row("Initial Capital", _money(settings.initial_capital))
    table.add_row("Opening Commission", _money(settings.default_opening_commission))
    table.add_row("Closing Commission", _money(settings.default_closing_commission))
    table.add_row("Risk-free Rate", f"{settings.risk_free_rate_pct:g}%")
    table.add_row("Payoff Steps", str(settings.payoff_steps))
    table.add_row("IV Tolerance", f"{settings.iv_tolerance:g}")

    console.print(table)


def main() -> None:
    """Main entry point for CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
