"""
Options Journal Package

Analytics engine for a journal of index option structures: Black-Scholes
pricing with Greeks, implied volatility, leg and structure P&L, payoff
curves and portfolio statistics.

Modules:
    core: Pricing kernel, time to expiry, legs, structures and settlement
    analytics: Payoff curves and portfolio aggregation
    cli: Command-line interface, journal files and environment settings
"""

__version__ = "1.0.0"
__author__ = "Options Journal Team"

from options_journal.cli import (
    load_journal,
    load_journal_string,
    Journal,
    Environment,
    get_environment,
    set_environment,
)

__all__ = [
    "__version__",
    "__author__",
    "load_journal",
    "load_journal_string",
    "Journal",
    "Environment",
    "get_environment",
    "set_environment",
]
