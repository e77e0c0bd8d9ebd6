"""
Analytics Module for the Options Journal

Components:
    - payoff: Payoff curves at expiry and today, breakevens, max profit/loss
    - portfolio: Net Greeks, unrealized P&L, equity curve, trade statistics

Usage:
    from options_journal.analytics import payoff_curve, equity_curve, trade_statistics

    curve = payoff_curve(structure.legs, market, structure.multiplier)
    stats = trade_statistics(closed_structures, initial_capital=10000)
"""

from options_journal.analytics.payoff import (
    DEFAULT_STEPS,
    PayoffPoint,
    PayoffCurve,
    default_spot_range,
    payoff_curve,
    value_at_expiry_now,
    value_today_now,
)

from options_journal.analytics.portfolio import (
    DEFAULT_INITIAL_CAPITAL,
    EquityPoint,
    TradeStatistics,
    total_greeks,
    total_unrealized_pnl,
    realized_value,
    equity_curve,
    equity_curve_frame,
    trade_statistics,
    monthly_pnl,
    structure_pnl_series,
)

__all__ = [
    # Payoff
    "DEFAULT_STEPS",
    "PayoffPoint",
    "PayoffCurve",
    "default_spot_range",
    "payoff_curve",
    "value_at_expiry_now",
    "value_today_now",
    # Portfolio
    "DEFAULT_INITIAL_CAPITAL",
    "EquityPoint",
    "TradeStatistics",
    "total_greeks",
    "total_unrealized_pnl",
    "realized_value",
    "equity_curve",
    "equity_curve_frame",
    "trade_statistics",
    "monthly_pnl",
    "structure_pnl_series",
]
