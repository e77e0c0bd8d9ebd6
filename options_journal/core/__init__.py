"""
Core Module for the Options Journal

This module provides the building blocks for valuing a journal of index
option structures: the pricing kernel, the leg P&L model and the
structure model with its close/reopen transitions.

Components:
    - exceptions: Error hierarchy shared by the whole package
    - expiry: Calendar-day time to expiry in UTC
    - pricing: Black-Scholes pricing, Greeks and implied volatility
    - market: MarketSnapshot passed into every valuation
    - leg: Leg value type and leg P&L
    - structure: Structure value type, structure P&L and settlement

Units:
    - Prices and strikes are index points
    - Volatility is in percent (15.0 for 15%)
    - The kernel takes the rate as a decimal; MarketSnapshot stores percent
    - theta per calendar day, vega per vol point, rho per rate point

Usage:
    from options_journal.core import (
        Leg, OptionContract, MarketSnapshot, Structure,
        structure_pnl, close_structure
    )

    market = MarketSnapshot(spot_price=21000, risk_free_rate_pct=2.0)
    structure = Structure(legs=(short_call, long_call), multiplier=5)
    print(structure_pnl(structure, market).total.net_pnl)
"""

from options_journal.core.exceptions import (
    OptionsJournalError,
    InvalidInputError,
    InvalidDateError,
    LegValidationError,
    StructureValidationError,
    ImpliedVolatilityError,
    StructureStateError,
)

from options_journal.core.expiry import (
    DAYS_PER_YEAR,
    MIN_TIME_TO_EXPIRY,
    utc_today,
    to_calendar_date,
    days_to_expiry,
    time_to_expiry,
)

from options_journal.core.pricing import (
    OptionKind,
    OptionValuation,
    ImpliedVolatilityStatus,
    ImpliedVolatilityResult,
    intrinsic_value,
    price_option,
    price_option_vectorized,
    implied_volatility,
)

from options_journal.core.market import MarketSnapshot

from options_journal.core.leg import (
    DEFAULT_COMMISSION,
    OptionContract,
    Leg,
    PnlBreakdown,
    GreeksVector,
    signed_points_pnl,
    leg_greeks,
    mark_price,
    position_greeks,
    leg_pnl,
    realized_leg_pnl,
)

from options_journal.core.structure import (
    DEFAULT_MULTIPLIER,
    StructureStatus,
    Structure,
    StructurePnl,
    structure_pnl,
    structure_greeks,
    net_premium,
    recompute_realized_pnl,
    close_structure,
    reopen_structure,
    load_structures,
)

__all__ = [
    # Exceptions
    "OptionsJournalError",
    "InvalidInputError",
    "InvalidDateError",
    "LegValidationError",
    "StructureValidationError",
    "ImpliedVolatilityError",
    "StructureStateError",
    # Time to expiry
    "DAYS_PER_YEAR",
    "MIN_TIME_TO_EXPIRY",
    "utc_today",
    "to_calendar_date",
    "days_to_expiry",
    "time_to_expiry",
    # Pricing
    "OptionKind",
    "OptionValuation",
    "ImpliedVolatilityStatus",
    "ImpliedVolatilityResult",
    "intrinsic_value",
    "price_option",
    "price_option_vectorized",
    "implied_volatility",
    # Market
    "MarketSnapshot",
    # Legs
    "DEFAULT_COMMISSION",
    "OptionContract",
    "Leg",
    "PnlBreakdown",
    "GreeksVector",
    "signed_points_pnl",
    "leg_greeks",
    "mark_price",
    "position_greeks",
    "leg_pnl",
    "realized_leg_pnl",
    # Structures
    "DEFAULT_MULTIPLIER",
    "StructureStatus",
    "Structure",
    "StructurePnl",
    "structure_pnl",
    "structure_greeks",
    "net_premium",
    "recompute_realized_pnl",
    "close_structure",
    "reopen_structure",
    "load_structures",
]
