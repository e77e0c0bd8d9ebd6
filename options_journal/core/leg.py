"""
Option Legs and the Leg P&L Model

This module provides the Leg value type (one option position inside a
structure) and the functions that value it against a MarketSnapshot.

Key Features:
    - Immutable legs validated at construction
    - One sign convention for every P&L in the package
    - Realized (closed) versus unrealized (open) P&L
    - Commission reserve for both sides of the trade
    - Per-contract and position Greeks

Closed Legs:
    A leg is closed exactly when close_price is present. close_date is
    informational; records where the two disagree are reported through
    has_inconsistent_close_state and otherwise tolerated, since repairing
    them is the storage layer's job.

P&L Conventions:
    - Long (quantity > 0): points = (mark - open) * quantity
    - Short (quantity < 0): points = (open - mark) * |quantity|
    - gross = points * multiplier
    - commission = (opening + closing commission) * |quantity|, charged in
      full for open legs as well (the closing cost is reserved up front)
    - net = gross - commission

Usage:
    from options_journal.core.leg import Leg, OptionContract, leg_pnl

    leg = Leg(
        contract=OptionContract(kind='call', strike=21000, expiry=date(2025, 3, 21)),
        quantity=-1,
        open_price=100.0,
        implied_volatility_pct=15.0,
    )
    breakdown = leg_pnl(leg, market, multiplier=5)
    print(f"Net P&L: {breakdown.net_pnl:,.2f}")
"""

import logging
import math
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Dict, Iterable, Optional, Union

import numpy as np

from options_journal.core.exceptions import InvalidInputError, LegValidationError
from options_journal.core.expiry import DateLike, time_to_expiry, to_calendar_date
from options_journal.core.market import MarketSnapshot
from options_journal.core.pricing import (
    OptionKind,
    OptionValuation,
    intrinsic_value,
    price_option,
)

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Default commission per contract, per side (currency units)
DEFAULT_COMMISSION = 2.0

# Storage field names mapped to Leg.to_dict() names
_STORAGE_ALIASES = {
    'optionType': 'kind',
    'option_type': 'kind',
    'expiryDate': 'expiry',
    'expiry_date': 'expiry',
    'tradePrice': 'open_price',
    'openPrice': 'open_price',
    'openDate': 'open_date',
    'closingPrice': 'close_price',
    'closePrice': 'close_price',
    'closingDate': 'close_date',
    'closeDate': 'close_date',
    'impliedVolatility': 'implied_volatility_pct',
    'openingCommission': 'opening_commission',
    'closingCommission': 'closing_commission',
    'isActive': 'is_active',
    'id': 'leg_id',
}


# =============================================================================
# Value Types
# =============================================================================

@dataclass(frozen=True)
class OptionContract:
    """
    An option contract on the index. Identity is structural.

    Attributes:
        kind: Call or put
        strike: Strike price, > 0
        expiry: Expiry calendar date (UTC)
    """

    kind: OptionKind
    strike: float
    expiry: date

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, 'kind', OptionKind.parse(self.kind))
        except InvalidInputError as e:
            raise LegValidationError(str(e)) from e

        if not _is_finite_number(self.strike) or self.strike <= 0:
            raise LegValidationError(f"strike must be positive and finite, got {self.strike}")
        object.__setattr__(self, 'strike', float(self.strike))
        object.__setattr__(self, 'expiry', to_calendar_date(self.expiry))

    def __str__(self) -> str:
        return f"{self.strike:g} {self.kind.value.upper()} exp {self.expiry.isoformat()}"


@dataclass(frozen=True)
class Leg:
    """
    One option position within a structure.

    Attributes:
        contract: The option contract
        quantity: Signed contract count, positive long, negative short
        open_price: Premium per contract at entry, in points (> 0)
        implied_volatility_pct: Volatility used to mark the leg, in percent
        open_date: Entry date, if known
        close_price: Exit premium in points; present exactly when closed
        close_date: Exit date
        opening_commission: Commission per contract on entry
        closing_commission: Commission per contract on exit
        is_active: False to leave the leg out of structure aggregates
            (what-if toggling); per-leg valuation ignores it
        leg_id: Identifier assigned by storage
        notes: Free text
    """

    contract: OptionContract
    quantity: int
    open_price: float
    implied_volatility_pct: float
    open_date: Optional[date] = None
    close_price: Optional[float] = None
    close_date: Optional[date] = None
    opening_commission: float = DEFAULT_COMMISSION
    closing_commission: float = DEFAULT_COMMISSION
    is_active: bool = True
    leg_id: Optional[Union[int, str]] = None
    notes: str = field(default='', compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.contract, OptionContract):
            raise LegValidationError(
                f"contract must be an OptionContract, got {type(self.contract).__name__}"
            )

        # bool is an int subclass but never a contract count
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, (int, np.integer)):
            raise LegValidationError(
                f"quantity must be an integer, got {type(self.quantity).__name__}"
            )
        object.__setattr__(self, 'quantity', int(self.quantity))
        if self.quantity == 0:
            raise LegValidationError("quantity cannot be zero")

        self._set_price('open_price', self.open_price, allow_zero=False)
        if self.close_price is not None:
            self._set_price('close_price', self.close_price, allow_zero=True)

        if not _is_finite_number(self.implied_volatility_pct) or self.implied_volatility_pct <= 0:
            raise LegValidationError(
                f"implied_volatility_pct must be positive, got {self.implied_volatility_pct}"
            )
        object.__setattr__(self, 'implied_volatility_pct', float(self.implied_volatility_pct))

        for name in ('opening_commission', 'closing_commission'):
            value = getattr(self, name)
            if not _is_finite_number(value) or value < 0:
                raise LegValidationError(f"{name} must be non-negative, got {value}")
            object.__setattr__(self, name, float(value))

        for name in ('open_date', 'close_date'):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, to_calendar_date(value))

        object.__setattr__(self, 'is_active', bool(self.is_active))

        if self.has_inconsistent_close_state:
            logger.debug(
                f"Leg {self.leg_id or self.contract} has close_date={self.close_date} "
                f"and close_price={self.close_price}; treating it as "
                f"{'closed' if self.is_closed else 'open'}"
            )

    def _set_price(self, name: str, value: float, allow_zero: bool) -> None:
        if not _is_finite_number(value) or value < 0 or (value == 0 and not allow_zero):
            bound = 'non-negative' if allow_zero else 'positive'
            raise LegValidationError(f"{name} must be {bound} and finite, got {value}")
        object.__setattr__(self, name, float(value))

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def kind(self) -> OptionKind:
        return self.contract.kind

    @property
    def strike(self) -> float:
        return self.contract.strike

    @property
    def expiry(self) -> date:
        return self.contract.expiry

    @property
    def is_long(self) -> bool:
        return self.quantity > 0

    @property
    def is_short(self) -> bool:
        return self.quantity < 0

    @property
    def contracts(self) -> int:
        """Number of contracts, regardless of direction."""
        return abs(self.quantity)

    @property
    def is_closed(self) -> bool:
        """True exactly when a closing price is recorded."""
        return self.close_price is not None

    @property
    def has_inconsistent_close_state(self) -> bool:
        """True when close_date presence disagrees with close_price presence."""
        return (self.close_price is None) != (self.close_date is None)

    @property
    def commission_per_contract(self) -> float:
        return self.opening_commission + self.closing_commission

    # =========================================================================
    # Transitions
    # =========================================================================

    def settled(self, price: float, on: DateLike) -> 'Leg':
        """Return this leg closed at price on the given day."""
        return replace(self, close_price=price, close_date=to_calendar_date(on))

    def reopened(self) -> 'Leg':
        """Return this leg with its closing data cleared."""
        return replace(self, close_price=None, close_date=None)

    def with_active(self, is_active: bool) -> 'Leg':
        return replace(self, is_active=is_active)

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> Dict[str, Any]:
        """Convert the leg to a plain dictionary with ISO dates."""
        return {
            'leg_id': self.leg_id,
            'kind': self.kind.value,
            'strike': self.strike,
            'expiry': self.expiry.isoformat(),
            'quantity': self.quantity,
            'open_price': self.open_price,
            'open_date': self.open_date.isoformat() if self.open_date else None,
            'close_price': self.close_price,
            'close_date': self.close_date.isoformat() if self.close_date else None,
            'implied_volatility_pct': self.implied_volatility_pct,
            'opening_commission': self.opening_commission,
            'closing_commission': self.closing_commission,
            'is_active': self.is_active,
            'notes': self.notes,
        }

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        default_commission: float = DEFAULT_COMMISSION,
        default_closing_commission: Optional[float] = None
    ) -> 'Leg':
        """
        Create a Leg from to_dict() output or from a stored record.

        Stored records use camelCase names ('optionType', 'tradePrice',
        'closingPrice', 'impliedVolatility', ...). A missing opening commission
        falls back to default_commission, a missing closing commission to
        default_closing_commission (default_commission when not given).

        Raises:
            LegValidationError: If required fields are missing or invalid.
        """
        fields = {_STORAGE_ALIASES.get(key, key): value for key, value in data.items()}

        missing = [
            name for name in ('kind', 'strike', 'expiry', 'quantity', 'open_price', 'implied_volatility_pct')
            if fields.get(name) is None
        ]
        if missing:
            raise LegValidationError(f"Leg record is missing {', '.join(missing)}")

        def optional_float(name: str, default: Optional[float] = None) -> Optional[float]:
            value = fields.get(name)
            return default if value is None else _to_float(name, value)

        try:
            quantity = int(fields['quantity'])
        except (TypeError, ValueError) as e:
            raise LegValidationError(f"quantity must be an integer, got {fields['quantity']!r}") from e
        if quantity != fields['quantity'] and not isinstance(fields['quantity'], str):
            raise LegValidationError(f"quantity must be an integer, got {fields['quantity']!r}")

        return cls(
            contract=OptionContract(
                kind=fields['kind'],
                strike=_to_float('strike', fields['strike']),
                expiry=fields['expiry'],
            ),
            quantity=quantity,
            open_price=_to_float('open_price', fields['open_price']),
            implied_volatility_pct=_to_float('implied_volatility_pct', fields['implied_volatility_pct']),
            open_date=fields.get('open_date') or None,
            close_price=optional_float('close_price'),
            close_date=fields.get('close_date') or None,
            opening_commission=optional_float('opening_commission', default_commission),
            closing_commission=optional_float(
                'closing_commission',
                default_commission if default_closing_commission is None else default_closing_commission,
            ),
            is_active=fields.get('is_active') is not False,
            leg_id=fields.get('leg_id'),
            notes=fields.get('notes') or '',
        )

    def __str__(self) -> str:
        side = 'LONG' if self.is_long else 'SHORT'
        state = f" closed @ {self.close_price:.2f}" if self.is_closed else ''
        return f"{side} {self.contracts} {self.contract} @ {self.open_price:.2f}{state}"


def _is_finite_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float, np.number))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _to_float(name: str, value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise LegValidationError(f"{name} must be numeric, got {value!r}") from e


@dataclass(frozen=True)
class PnlBreakdown:
    """
    P&L of one leg, or the sum over several legs.

    Attributes:
        points_pnl: P&L in index points, unmonetized
        gross_pnl: points_pnl * multiplier
        commission_cost: Opening plus closing commission for all contracts
        net_pnl: gross_pnl - commission_cost
        is_closed: True when every leg summed is closed
        mark_price: Closing or model price used for a single leg; None for sums
    """

    points_pnl: float
    gross_pnl: float
    commission_cost: float
    net_pnl: float
    is_closed: bool
    mark_price: Optional[float] = None

    def __add__(self, other: 'PnlBreakdown') -> 'PnlBreakdown':
        if not isinstance(other, PnlBreakdown):
            return NotImplemented
        return PnlBreakdown(
            points_pnl=self.points_pnl + other.points_pnl,
            gross_pnl=self.gross_pnl + other.gross_pnl,
            commission_cost=self.commission_cost + other.commission_cost,
            net_pnl=self.net_pnl + other.net_pnl,
            is_closed=self.is_closed and other.is_closed,
        )

    @classmethod
    def total(cls, breakdowns: Iterable['PnlBreakdown']) -> 'PnlBreakdown':
        """Sum breakdowns. An empty input sums to zero and counts as not closed."""
        items = list(breakdowns)
        if not items:
            return cls(0.0, 0.0, 0.0, 0.0, False)
        result = items[0]
        for item in items[1:]:
            result = result + item
        return replace(result, mark_price=None)


@dataclass(frozen=True)
class GreeksVector:
    """
    Delta, gamma, theta and vega of a position or portfolio.

    Values are in points unless the producer states they are monetized.
    """

    delta: float = 0.0
    gamma: float = 0.0
    theta: float = 0.0
    vega: float = 0.0

    def __add__(self, other: 'GreeksVector') -> 'GreeksVector':
        if not isinstance(other, GreeksVector):
            return NotImplemented
        return GreeksVector(
            self.delta + other.delta,
            self.gamma + other.gamma,
            self.theta + other.theta,
            self.vega + other.vega,
        )

    def scaled(self, factor: float) -> 'GreeksVector':
        return GreeksVector(
            self.delta * factor,
            self.gamma * factor,
            self.theta * factor,
            self.vega * factor,
        )

    def monetized(self, multiplier: int) -> 'GreeksVector':
        """Monetize theta and vega; delta and gamma stay in points."""
        return GreeksVector(self.delta, self.gamma, self.theta * multiplier, self.vega * multiplier)

    def to_dict(self) -> Dict[str, float]:
        return {'delta': self.delta, 'gamma': self.gamma, 'theta': self.theta, 'vega': self.vega}


# =============================================================================
# Leg P&L Model
# =============================================================================

def signed_points_pnl(open_price: float, mark_price: float, quantity: int) -> float:
    """
    P&L in points for a position opened at open_price and marked at mark_price.

    Long positions profit when the price rises, short positions when it
    falls. Every P&L figure in the package is computed here.

    Example:
        >>> signed_points_pnl(100.0, 300.0, 1)
        200.0
        >>> signed_points_pnl(100.0, 300.0, -1)
        -200.0
    """
    if quantity > 0:
        return (mark_price - open_price) * quantity
    return (open_price - mark_price) * abs(quantity)


def _validate_multiplier(multiplier: int) -> None:
    if isinstance(multiplier, bool) or not isinstance(multiplier, int) or multiplier <= 0:
        raise InvalidInputError(f"multiplier must be a positive integer, got {multiplier!r}")


def leg_time_to_expiry(leg: Leg, market: MarketSnapshot) -> float:
    """Time to the leg's expiry from the snapshot's valuation date, floored at zero."""
    return time_to_expiry(market.valuation_date, leg.expiry)


def leg_greeks(leg: Leg, market: MarketSnapshot) -> OptionValuation:
    """
    Price and Greeks of one contract of the leg at the snapshot.

    Uses the leg's own implied volatility. Expired legs get the kernel's
    expiry branch.
    """
    return price_option(
        spot=market.spot_price,
        strike=leg.strike,
        time_to_expiry=leg_time_to_expiry(leg, market),
        rate=market.rate,
        vol_pct=leg.implied_volatility_pct,
        kind=leg.kind,
    )


def mark_price(leg: Leg, market: MarketSnapshot) -> float:
    """Model price of one contract of an open leg; intrinsic value once expired."""
    return leg_greeks(leg, market).price


def expiry_value(leg: Leg, spot: float) -> float:
    """Intrinsic value of one contract of the leg at the given spot."""
    return intrinsic_value(spot, leg.strike, leg.kind)


def position_greeks(leg: Leg, market: MarketSnapshot) -> GreeksVector:
    """Per-contract Greeks weighted by signed quantity, in points."""
    valuation = leg_greeks(leg, market)
    return GreeksVector(
        delta=valuation.delta,
        gamma=valuation.gamma,
        theta=valuation.theta,
        vega=valuation.vega,
    ).scaled(leg.quantity)


def leg_pnl(
    leg: Leg,
    market: Optional[MarketSnapshot],
    multiplier: int
) -> PnlBreakdown:
    """
    Calculate the P&L of one leg.

    Closed legs are valued at their closing price and need no market.
    Open legs are marked with the pricing kernel at the snapshot and the
    leg's implied volatility (intrinsic value once expired).

    Args:
        leg: The leg to value
        market: Current snapshot; may be None for closed legs
        multiplier: Currency per index point

    Returns:
        PnlBreakdown for the leg.

    Raises:
        InvalidInputError: If the multiplier is invalid or an open leg is
            valued without a market snapshot.

    Example:
        >>> # Long 1 call opened at 100, closed at 300, multiplier 5
        >>> # points = 200, gross = 1000, commission = 4, net = 996
    """
    _validate_multiplier(multiplier)

    if leg.is_closed:
        price = leg.close_price
    else:
        if market is None:
            raise InvalidInputError(f"A market snapshot is required to value open leg {leg}")
        price = mark_price(leg, market)

    points = signed_points_pnl(leg.open_price, price, leg.quantity)
    gross = points * multiplier
    commission = leg.commission_per_contract * leg.contracts

    return PnlBreakdown(
        points_pnl=points,
        gross_pnl=gross,
        commission_cost=commission,
        net_pnl=gross - commission,
        is_closed=leg.is_closed,
        mark_price=price,
    )


def realized_leg_pnl(leg: Leg, multiplier: int) -> PnlBreakdown:
    """
    P&L of a closed leg.

    Raises:
        InvalidInputError: If the leg is still open.
    """
    if not leg.is_closed:
        raise InvalidInputError(f"Leg {leg} is open; realized P&L needs a closing price")
    return leg_pnl(leg, None, multiplier)


__all__ = [
    'DEFAULT_COMMISSION',
    'OptionContract',
    'Leg',
    'PnlBreakdown',
    'GreeksVector',
    'signed_points_pnl',
    'leg_time_to_expiry',
    'leg_greeks',
    'mark_price',
    'expiry_value',
    'position_greeks',
    'leg_pnl',
    'realized_leg_pnl',
]
