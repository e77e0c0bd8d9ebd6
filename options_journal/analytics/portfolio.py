"""
Portfolio Aggregation for the Options Journal

This module aggregates many structures into portfolio-level figures: live
risk and P&L of the active book, and performance statistics of the closed
trades.

Key Features:
    - Net Greeks of the active structures, theta and vega in currency
    - Unrealized P&L of the open legs
    - Equity curve with running peak and drawdown
    - Trade statistics (profit factor, win rate, average win/loss)
    - Realized P&L per calendar month and per structure

Mathematical Correctness:
    - Equity(i) = Initial Capital + sum of realized P&L up to trade i
    - Peak(i) = max(Initial Capital, Equity(0..i))
    - Drawdown(i) = Equity(i) - Peak(i), never positive
    - Profit Factor = Gross Profit / |Gross Loss|, infinite with no losses
    - Win Rate = winning trades / closed trades, as a fraction

Usage:
    from options_journal.analytics.portfolio import equity_curve, trade_statistics

    points = equity_curve(closed_structures, initial_capital=10000)
    stats = trade_statistics(closed_structures, initial_capital=10000)
    print(f"Win rate: {stats.win_rate:.1%}, profit factor: {stats.profit_factor:.2f}")
"""

import logging
import math
from dataclasses import asdict, dataclass
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from options_journal.core.leg import GreeksVector, leg_pnl
from options_journal.core.market import MarketSnapshot
from options_journal.core.structure import (
    Structure,
    recompute_realized_pnl,
    structure_greeks,
)

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

DEFAULT_INITIAL_CAPITAL = 10000.0

START_LABEL = 'Start'
START_TAG = 'Initial capital'

# Numerical tolerance for gross loss comparisons
EPSILON = 1e-10


# =============================================================================
# Live Book
# =============================================================================

def total_greeks(structures: Sequence[Structure], market: MarketSnapshot) -> GreeksVector:
    """
    Net Greeks of the active structures.

    Delta and gamma are summed in points. Theta and vega are monetized with
    each structure's own multiplier before summing, since structures with
    different multipliers cannot share a point value.
    """
    total = GreeksVector()
    for structure in structures:
        if not structure.is_active:
            continue
        total = total + structure_greeks(structure, market).monetized(structure.multiplier)
    return total


def total_unrealized_pnl(structures: Sequence[Structure], market: MarketSnapshot) -> float:
    """Net P&L of the open, active legs of the active structures, in currency."""
    total = 0.0
    for structure in structures:
        if not structure.is_active:
            continue
        for leg in structure.open_legs:
            total += leg_pnl(leg, market, structure.multiplier).net_pnl
    return total


# =============================================================================
# Closed Trades
# =============================================================================

@dataclass(frozen=True)
class EquityPoint:
    """One point of the equity curve."""

    label: str
    equity: float
    drawdown: float
    tag: str = ''
    closing_date: Optional[date] = None


def realized_value(structure: Structure, recompute: bool = False) -> float:
    """
    Realized P&L of a closed structure.

    Uses the stored value unless it is missing or recompute is set, in
    which case it is rebuilt from the closed legs.
    """
    if recompute or structure.realized_pnl is None:
        return recompute_realized_pnl(structure)
    return structure.realized_pnl


def _closed_in_order(structures: Sequence[Structure]) -> List[Structure]:
    """Closed structures by closing date; undated ones first, ties in input order."""
    closed = []
    for structure in structures:
        if structure.is_closed:
            closed.append(structure)
        else:
            logger.warning(f"Skipping {structure}: only closed structures have realized P&L")
    return sorted(
        closed,
        key=lambda s: (s.closing_date is not None, s.closing_date or date.min),
    )


def equity_curve(
    closed_structures: Sequence[Structure],
    initial_capital: float = DEFAULT_INITIAL_CAPITAL,
    recompute: bool = False
) -> List[EquityPoint]:
    """
    Build the equity curve of the closed trades.

    Args:
        closed_structures: Closed structures in any order; active ones are
            skipped with a warning
        initial_capital: Equity before the first trade
        recompute: Rebuild every realized P&L from the legs

    Returns:
        A 'Start' point at the initial capital followed by one point per
        trade in closing order.

    Example:
        >>> # P&L of 100, -50, 200, -300 on 1000 of capital
        >>> [p.equity for p in curve]
        [1000.0, 1100.0, 1050.0, 1250.0, 950.0]
        >>> [p.drawdown for p in curve]
        [0.0, 0.0, -50.0, 0.0, -300.0]
    """
    return _build_curve(_closed_in_order(closed_structures), initial_capital, recompute)


def _build_curve(
    ordered: List[Structure],
    initial_capital: float,
    recompute: bool
) -> List[EquityPoint]:
    start = EquityPoint(START_LABEL, float(initial_capital), 0.0, START_TAG)
    if not ordered:
        return [start]

    pnl = pd.Series([realized_value(s, recompute) for s in ordered], dtype='float64')
    equity = pnl.cumsum() + float(initial_capital)
    peak = equity.cummax().clip(lower=float(initial_capital))
    drawdown = equity - peak

    points = [start]
    for structure, value, dd in zip(ordered, equity, drawdown):
        points.append(EquityPoint(
            label=structure.closing_date.strftime('%b %y') if structure.closing_date else '',
            equity=float(value),
            drawdown=float(dd),
            tag=structure.tag,
            closing_date=structure.closing_date,
        ))
    return points


def equity_curve_frame(points: Sequence[EquityPoint]) -> pd.DataFrame:
    """Equity curve as a DataFrame with one row per point."""
    return pd.DataFrame(
        [asdict(p) for p in points],
        columns=['label', 'equity', 'drawdown', 'tag', 'closing_date'],
    )


@dataclass(frozen=True)
class TradeStatistics:
    """
    Summary statistics of the closed trades.

    win_rate is a fraction in [0, 1]. gross_loss is a positive magnitude
    while avg_loss is negative (the mean of the losing trades).
    profit_factor is math.inf when there are winners and no losers.
    """

    num_trades: int
    num_wins: int
    num_losses: int
    total_net_pnl: float
    gross_profit: float
    gross_loss: float
    profit_factor: float
    win_rate: float
    avg_win: float
    avg_loss: float
    max_drawdown: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def trade_statistics(
    closed_structures: Sequence[Structure],
    initial_capital: float = DEFAULT_INITIAL_CAPITAL,
    recompute: bool = False
) -> TradeStatistics:
    """
    Calculate trade statistics over the closed structures.

    Args:
        closed_structures: Closed structures; active ones are skipped
        initial_capital: Starting equity for the drawdown calculation
        recompute: Rebuild every realized P&L from the legs

    Returns:
        TradeStatistics. With no trades every figure is zero.
    """
    ordered = _closed_in_order(closed_structures)
    points = _build_curve(ordered, initial_capital, recompute)
    pnl = pd.Series([realized_value(s, recompute) for s in ordered], dtype='float64')

    wins = pnl[pnl > 0]
    losses = pnl[pnl < 0]
    gross_profit = float(wins.sum())
    gross_loss = abs(float(losses.sum()))

    if gross_loss < EPSILON:
        profit_factor = math.inf if gross_profit > 0 else 0.0
    else:
        profit_factor = gross_profit / gross_loss

    if len(points) > 1:
        max_drawdown = min(0.0, min(p.drawdown for p in points))
    else:
        max_drawdown = 0.0

    return TradeStatistics(
        num_trades=len(pnl),
        num_wins=len(wins),
        num_losses=len(losses),
        total_net_pnl=float(pnl.sum()),
        gross_profit=gross_profit,
        gross_loss=gross_loss,
        profit_factor=profit_factor,
        win_rate=len(wins) / len(pnl) if len(pnl) else 0.0,
        avg_win=float(wins.mean()) if len(wins) else 0.0,
        avg_loss=float(losses.mean()) if len(losses) else 0.0,
        max_drawdown=max_drawdown,
    )


def monthly_pnl(closed_structures: Sequence[Structure], recompute: bool = False) -> pd.Series:
    """
    Realized P&L per calendar month of closing.

    Structures without a closing date are left out. The index holds
    'YYYY-MM' strings in ascending order.
    """
    records = [
        (s.closing_date.strftime('%Y-%m'), realized_value(s, recompute))
        for s in _closed_in_order(closed_structures)
        if s.closing_date is not None
    ]
    if not records:
        return pd.Series(dtype='float64', name='pnl')

    frame = pd.DataFrame(records, columns=['month', 'pnl'])
    return frame.groupby('month')['pnl'].sum().sort_index()


def structure_pnl_series(closed_structures: Sequence[Structure], recompute: bool = False) -> pd.Series:
    """Realized P&L of each closed structure in closing order, indexed by tag."""
    ordered = _closed_in_order(closed_structures)
    return pd.Series(
        [realized_value(s, recompute) for s in ordered],
        index=pd.Index([s.tag for s in ordered], name='tag'),
        dtype='float64',
        name='pnl',
    )


__all__ = [
    'DEFAULT_INITIAL_CAPITAL',
    'EquityPoint',
    'TradeStatistics',
    'total_greeks',
    'total_unrealized_pnl',
    'realized_value',
    'equity_curve',
    'equity_curve_frame',
    'trade_statistics',
    'monthly_pnl',
    'structure_pnl_series',
]
