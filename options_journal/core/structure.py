"""
Option Structures and Settlement

This module provides the Structure value type (a named multi-leg position
sharing one multiplier) together with structure-level P&L, Greeks and the
close/reopen transitions.

Key Features:
    - Immutable structures; transitions return new objects
    - Realized/unrealized P&L split across legs
    - Net Greeks of the open, active legs
    - Settlement at mark price with the leg P&L model
    - Storage-shape serialization (realized P&L stored as a string)

Status Rules:
    - An active structure may hold closed legs (partially closed)
    - close_structure settles every open leg and fails on a closed structure
    - reopen_structure clears every leg's close and fails on an active one
    - Legs with is_active=False are reported but left out of every sum

Usage:
    from options_journal.core.structure import Structure, close_structure

    structure = Structure(legs=(short_call, long_call), multiplier=5, tag='Bear call')
    pnl = structure_pnl(structure, market)
    closed = close_structure(structure, market)
    print(closed.realized_pnl)
"""

import json
import logging
import math
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from options_journal.core.exceptions import (
    InvalidInputError,
    StructureStateError,
    StructureValidationError,
)
from options_journal.core.expiry import DateLike, to_calendar_date
from options_journal.core.leg import (
    DEFAULT_COMMISSION,
    GreeksVector,
    Leg,
    PnlBreakdown,
    leg_pnl,
    mark_price,
    position_greeks,
)
from options_journal.core.market import MarketSnapshot

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Index option multiplier used when a record does not carry one
DEFAULT_MULTIPLIER = 5

# Stored realized P&L is rounded to cents
REALIZED_PNL_DECIMALS = 2


class StructureStatus(str, Enum):
    """Lifecycle state of a structure."""
    ACTIVE = 'active'
    CLOSED = 'closed'


# =============================================================================
# Structure
# =============================================================================

@dataclass(frozen=True)
class Structure:
    """
    A named group of legs valued together with one contract multiplier.

    Attributes:
        legs: The option legs, in entry order
        multiplier: Currency per index point (5 for the mini contract)
        status: ACTIVE or CLOSED
        tag: Display name
        structure_id: Identifier assigned by storage
        closing_date: Date the structure was closed
        realized_pnl: Realized net P&L of a closed structure. Numeric strings,
            Decimals and ints are accepted and stored as float.
    """

    legs: Tuple[Leg, ...]
    multiplier: int = DEFAULT_MULTIPLIER
    status: StructureStatus = StructureStatus.ACTIVE
    tag: str = ''
    structure_id: Optional[Union[int, str]] = None
    closing_date: Optional[date] = None
    realized_pnl: Optional[float] = None
    notes: str = field(default='', compare=False)

    def __post_init__(self) -> None:
        legs = tuple(self.legs)
        for leg in legs:
            if not isinstance(leg, Leg):
                raise StructureValidationError(
                    f"legs must contain Leg objects, got {type(leg).__name__}"
                )
        object.__setattr__(self, 'legs', legs)

        if isinstance(self.multiplier, bool) or not isinstance(self.multiplier, int) or self.multiplier <= 0:
            raise StructureValidationError(
                f"multiplier must be a positive integer, got {self.multiplier!r}"
            )

        try:
            object.__setattr__(self, 'status', StructureStatus(self.status))
        except ValueError as e:
            raise StructureValidationError(f"Unknown structure status: {self.status!r}") from e

        if self.closing_date is not None:
            object.__setattr__(self, 'closing_date', to_calendar_date(self.closing_date))

        object.__setattr__(self, 'realized_pnl', _coerce_pnl(self.realized_pnl))

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def is_active(self) -> bool:
        return self.status == StructureStatus.ACTIVE

    @property
    def is_closed(self) -> bool:
        return self.status == StructureStatus.CLOSED

    @property
    def active_legs(self) -> Tuple[Leg, ...]:
        """Legs included in aggregates."""
        return tuple(leg for leg in self.legs if leg.is_active)

    @property
    def open_legs(self) -> Tuple[Leg, ...]:
        """Active legs without a closing price."""
        return tuple(leg for leg in self.active_legs if not leg.is_closed)

    @property
    def num_legs(self) -> int:
        return len(self.legs)

    @property
    def earliest_expiry(self) -> Optional[date]:
        if not self.legs:
            return None
        return min(leg.expiry for leg in self.legs)

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the structure to a plain dictionary.

        realized_pnl is written as a fixed two-decimal string, the form the
        journal stores it in.
        """
        return {
            'structure_id': self.structure_id,
            'tag': self.tag,
            'multiplier': self.multiplier,
            'status': self.status.value,
            'closing_date': self.closing_date.isoformat() if self.closing_date else None,
            'realized_pnl': (
                f"{self.realized_pnl:.{REALIZED_PNL_DECIMALS}f}"
                if self.realized_pnl is not None else None
            ),
            'notes': self.notes,
            'legs': [leg.to_dict() for leg in self.legs],
        }

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        default_commission: float = DEFAULT_COMMISSION,
        default_closing_commission: Optional[float] = None
    ) -> 'Structure':
        """
        Create a Structure from to_dict() output or from a stored record.

        Stored records use 'id', 'closingDate' and 'realizedPnl', and may
        keep the legs as a JSON-encoded string. The commission defaults are
        passed on to Leg.from_dict().

        Raises:
            StructureValidationError: If the record or one of its legs is invalid.
        """
        raw_legs = data.get('legs')
        if isinstance(raw_legs, str):
            try:
                raw_legs = json.loads(raw_legs)
            except json.JSONDecodeError as e:
                raise StructureValidationError(f"'legs' is not valid JSON: {e}") from e
        if raw_legs is None:
            raise StructureValidationError("Structure record has no 'legs'")
        if not isinstance(raw_legs, (list, tuple)):
            raise StructureValidationError(
                f"'legs' must be a list, got {type(raw_legs).__name__}"
            )

        legs = []
        for index, raw_leg in enumerate(raw_legs):
            if not isinstance(raw_leg, dict):
                raise StructureValidationError(f"Leg {index} is not a mapping")
            try:
                legs.append(Leg.from_dict(
                    raw_leg,
                    default_commission=default_commission,
                    default_closing_commission=default_closing_commission,
                ))
            except InvalidInputError as e:
                raise StructureValidationError(f"Leg {index}: {e}") from e

        multiplier = data.get('multiplier', DEFAULT_MULTIPLIER)
        try:
            multiplier = int(multiplier)
        except (TypeError, ValueError) as e:
            raise StructureValidationError(f"multiplier must be an integer, got {multiplier!r}") from e

        return cls(
            legs=tuple(legs),
            multiplier=multiplier,
            status=data.get('status', StructureStatus.ACTIVE.value),
            tag=data.get('tag') or '',
            structure_id=data.get('structure_id', data.get('id')),
            closing_date=data.get('closing_date', data.get('closingDate')) or None,
            realized_pnl=data.get('realized_pnl', data.get('realizedPnl')),
            notes=data.get('notes') or '',
        )

    def __str__(self) -> str:
        name = self.tag or 'Structure'
        return f"{name} ({len(self.legs)} legs, x{self.multiplier}, {self.status.value})"

    def __len__(self) -> int:
        return len(self.legs)

    def __iter__(self):
        return iter(self.legs)


def _coerce_pnl(value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    try:
        result = float(Decimal(str(value).strip()) if isinstance(value, str) else value)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise StructureValidationError(f"realized_pnl must be numeric, got {value!r}") from e
    if not math.isfinite(result):
        raise StructureValidationError(f"realized_pnl must be finite, got {value!r}")
    return result


# =============================================================================
# Structure P&L and Greeks
# =============================================================================

@dataclass(frozen=True)
class StructurePnl:
    """
    P&L of a structure.

    legs holds one breakdown per leg in entry order, inactive legs included.
    realized, unrealized and total sum the active legs only.
    """

    legs: Tuple[PnlBreakdown, ...]
    realized: PnlBreakdown
    unrealized: PnlBreakdown
    total: PnlBreakdown


def structure_pnl(structure: Structure, market: MarketSnapshot) -> StructurePnl:
    """
    Calculate realized, unrealized and total P&L of a structure.

    Args:
        structure: The structure to value
        market: Current snapshot used to mark open legs

    Returns:
        StructurePnl with per-leg breakdowns and active-leg sums.
    """
    breakdowns = tuple(leg_pnl(leg, market, structure.multiplier) for leg in structure.legs)

    realized = []
    unrealized = []
    for leg, breakdown in zip(structure.legs, breakdowns):
        if not leg.is_active:
            continue
        (realized if leg.is_closed else unrealized).append(breakdown)

    realized_total = PnlBreakdown.total(realized)
    unrealized_total = PnlBreakdown.total(unrealized)

    return StructurePnl(
        legs=breakdowns,
        realized=realized_total,
        unrealized=unrealized_total,
        total=PnlBreakdown.total(realized + unrealized),
    )


def structure_greeks(structure: Structure, market: MarketSnapshot) -> GreeksVector:
    """Net Greeks of the open, active legs, in points."""
    total = GreeksVector()
    for leg in structure.open_legs:
        total = total + position_greeks(leg, market)
    return total


def net_premium(structure: Structure) -> float:
    """
    Net premium paid to open the active legs, in points.

    Positive for a net debit, negative for a net credit.
    """
    return sum(leg.open_price * leg.quantity for leg in structure.active_legs)


def recompute_realized_pnl(structure: Structure) -> float:
    """Sum of net P&L over the closed, active legs."""
    return sum(
        leg_pnl(leg, None, structure.multiplier).net_pnl
        for leg in structure.active_legs
        if leg.is_closed
    )


# =============================================================================
# Settlement
# =============================================================================

def close_structure(
    structure: Structure,
    market: MarketSnapshot,
    closing_date: Optional[DateLike] = None
) -> Structure:
    """
    Close a structure at the current market.

    Every open leg is settled at its mark price (intrinsic value once
    expired). Legs closed earlier keep their closing data. The realized
    P&L is the sum of net leg P&L, rounded to cents.

    Args:
        structure: An active structure
        market: Snapshot used to mark the open legs
        closing_date: Settlement date; defaults to the snapshot's valuation date

    Returns:
        A new CLOSED structure.

    Raises:
        StructureStateError: If the structure is already closed.
    """
    if structure.is_closed:
        raise StructureStateError(f"{structure} is already closed")

    settle_on = to_calendar_date(closing_date) if closing_date is not None else market.valuation_date

    settled_legs: List[Leg] = []
    for leg in structure.legs:
        if leg.is_closed:
            settled_legs.append(leg)
            continue
        price = mark_price(leg, market)
        logger.debug(f"Settling {leg} at {price:.4f} on {settle_on}")
        settled_legs.append(leg.settled(price, settle_on))

    closed = replace(
        structure,
        legs=tuple(settled_legs),
        status=StructureStatus.CLOSED,
        closing_date=settle_on,
    )
    realized = round(recompute_realized_pnl(closed), REALIZED_PNL_DECIMALS)

    logger.info(f"Closed {structure} with realized P&L {realized:,.2f}")
    return replace(closed, realized_pnl=realized)


def reopen_structure(structure: Structure) -> Structure:
    """
    Reopen a closed structure.

    Clears closing price and date on every leg and discards the stored
    realized P&L and closing date.

    Raises:
        StructureStateError: If the structure is already active.
    """
    if structure.is_active:
        raise StructureStateError(f"{structure} is already active")

    logger.info(f"Reopening {structure}")
    return replace(
        structure,
        legs=tuple(leg.reopened() for leg in structure.legs),
        status=StructureStatus.ACTIVE,
        closing_date=None,
        realized_pnl=None,
    )


def load_structures(
    records: Iterable[Dict[str, Any]],
    default_commission: float = DEFAULT_COMMISSION,
    default_closing_commission: Optional[float] = None
) -> Tuple[List[Structure], List[str]]:
    """
    Build structures from stored records, skipping the invalid ones.

    Returns:
        Tuple of (structures, errors) where errors describes each skipped record.
    """
    structures: List[Structure] = []
    errors: List[str] = []
    for index, record in enumerate(records):
        label = record.get('tag') or record.get('id') or index if isinstance(record, dict) else index
        try:
            if not isinstance(record, dict):
                raise StructureValidationError(f"record is {type(record).__name__}, not a mapping")
            structures.append(Structure.from_dict(
                record,
                default_commission=default_commission,
                default_closing_commission=default_closing_commission,
            ))
        except InvalidInputError as e:
            message = f"Skipping structure {label}: {e}"
            logger.warning(message)
            errors.append(message)
    return structures, errors


__all__ = [
    'DEFAULT_MULTIPLIER',
    'StructureStatus',
    'Structure',
    'StructurePnl',
    'structure_pnl',
    'structure_greeks',
    'net_premium',
    'recompute_realized_pnl',
    'close_structure',
    'reopen_structure',
    'load_structures',
]
