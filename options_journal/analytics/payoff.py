"""
Payoff Curve Generator

This module samples the P&L of a set of legs across a range of underlying
prices, both at expiry and today, for payoff diagrams and quick what-if
checks.

Key Features:
    - P&L at expiry (intrinsic value) and today (model value) per spot
    - Closed legs contribute their realized P&L as a constant offset
    - Legs with is_active=False are left out
    - Automatic spot range around the strikes
    - Breakevens, max profit and max loss over the sampled grid
    - DataFrame export for plotting or CSV

Financial Correctness:
    - Every point uses the leg sign convention, scaled by the multiplier
    - Open legs are marked today at their own implied volatility and time
      to expiry; legs past expiry fall back to intrinsic value
    - The curves are gross of commissions

Usage:
    from options_journal.analytics.payoff import payoff_curve

    curve = payoff_curve(structure.legs, market, multiplier=5)
    df = curve.to_frame()
    print(curve.breakeven_points())
"""

import logging
from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Tuple, overload

import numpy as np
import pandas as pd

from options_journal.core.exceptions import InvalidInputError
from options_journal.core.leg import (
    Leg,
    expiry_value,
    leg_time_to_expiry,
    mark_price,
    signed_points_pnl,
)
from options_journal.core.market import MarketSnapshot
from options_journal.core.pricing import OptionKind, price_option_vectorized

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Number of intervals sampled; the curve has DEFAULT_STEPS + 1 points
DEFAULT_STEPS = 200

# Half-width of the range around spot when there are no legs
EMPTY_RANGE_FRACTION = 0.15

# Minimum buffer around the strikes as a fraction of spot
MIN_BUFFER_FRACTION = 0.05

# Buffer as a fraction of the strike width
STRIKE_WIDTH_BUFFER_FRACTION = 0.5

# Lower edge used when the buffer would push the range to zero or below
MIN_SPOT_FRACTION = 0.01

CURVE_EXPIRY = 'expiry'
CURVE_TODAY = 'today'


# =============================================================================
# Curve Types
# =============================================================================

@dataclass(frozen=True)
class PayoffPoint:
    """P&L of the position at one underlying price, in currency."""

    spot: float
    pnl_at_expiry: float
    pnl_today: float


class PayoffCurve(Sequence[PayoffPoint]):
    """
    Immutable sampled payoff curve.

    Indexing and iteration yield PayoffPoint objects; iteration can be
    restarted any number of times.
    """

    def __init__(self, spots: np.ndarray, pnl_at_expiry: np.ndarray, pnl_today: np.ndarray):
        self._spots = np.array(spots, dtype=np.float64)
        self._expiry = np.array(pnl_at_expiry, dtype=np.float64)
        self._today = np.array(pnl_today, dtype=np.float64)
        for array in (self._spots, self._expiry, self._today):
            array.setflags(write=False)

    @property
    def spots(self) -> np.ndarray:
        return self._spots

    @property
    def pnl_at_expiry(self) -> np.ndarray:
        return self._expiry

    @property
    def pnl_today(self) -> np.ndarray:
        return self._today

    def __len__(self) -> int:
        return len(self._spots)

    @overload
    def __getitem__(self, index: int) -> PayoffPoint: ...

    @overload
    def __getitem__(self, index: slice) -> List[PayoffPoint]: ...

    def __getitem__(self, index):
        if isinstance(index, slice):
            return [self[i] for i in range(*index.indices(len(self)))]
        return PayoffPoint(
            spot=float(self._spots[index]),
            pnl_at_expiry=float(self._expiry[index]),
            pnl_today=float(self._today[index]),
        )

    def __iter__(self) -> Iterator[PayoffPoint]:
        for i in range(len(self)):
            yield self[i]

    def __repr__(self) -> str:
        if not len(self):
            return "PayoffCurve(empty)"
        return (
            f"PayoffCurve(points={len(self)}, "
            f"spots={self._spots[0]:.2f}..{self._spots[-1]:.2f})"
        )

    def _values(self, curve: str) -> np.ndarray:
        if curve == CURVE_EXPIRY:
            return self._expiry
        if curve == CURVE_TODAY:
            return self._today
        raise InvalidInputError(f"curve must be '{CURVE_EXPIRY}' or '{CURVE_TODAY}', got {curve!r}")

    def to_frame(self) -> pd.DataFrame:
        """Return the curve as a DataFrame with spot, pnl_at_expiry and pnl_today columns."""
        return pd.DataFrame({
            'spot': self._spots,
            'pnl_at_expiry': self._expiry,
            'pnl_today': self._today,
        })

    def max_profit(self, curve: str = CURVE_EXPIRY) -> float:
        """
        Highest sampled P&L.

        For unbounded positions this is the value at the edge of the grid.
        """
        return float(np.max(self._values(curve)))

    def max_loss(self, curve: str = CURVE_EXPIRY) -> float:
        """Lowest sampled P&L (negative for a loss)."""
        return float(np.min(self._values(curve)))

    def breakeven_points(self, curve: str = CURVE_EXPIRY) -> List[float]:
        """
        Spot prices where the sampled P&L crosses zero.

        Sign changes between neighbouring samples are located by linear
        interpolation; samples that are exactly zero are returned as is.

        Example:
            >>> # Long 1 call, strike 100, paid 5: breakeven at 105
            >>> curve.breakeven_points()
            [105.0]
        """
        values = self._values(curve)
        spots = self._spots
        breakevens: List[float] = []

        for i in range(len(spots)):
            if values[i] == 0.0:
                if not breakevens or spots[i] != breakevens[-1]:
                    breakevens.append(float(spots[i]))
                continue
            if i + 1 < len(spots) and values[i] * values[i + 1] < 0:
                fraction = values[i] / (values[i] - values[i + 1])
                breakevens.append(float(spots[i] + fraction * (spots[i + 1] - spots[i])))

        return breakevens


# =============================================================================
# Spot Range
# =============================================================================

def default_spot_range(legs: Sequence[Leg], spot: float) -> Tuple[float, float]:
    """
    Spot range that frames the strikes of the given legs.

    With no legs the range is spot +/- 15%. Otherwise it spans the strikes
    widened on each side by max(half the strike width, 5% of spot). The
    lower edge is kept strictly positive.
    """
    if spot <= 0:
        raise InvalidInputError(f"spot must be positive, got {spot}")

    if not legs:
        half_width = spot * EMPTY_RANGE_FRACTION
        return spot - half_width, spot + half_width

    strikes = [leg.strike for leg in legs]
    min_strike = min(strikes)
    max_strike = max(strikes)
    buffer = max(
        (max_strike - min_strike) * STRIKE_WIDTH_BUFFER_FRACTION,
        spot * MIN_BUFFER_FRACTION,
    )

    lower = min_strike - buffer
    if lower <= 0:
        lower = min(min_strike, spot) * MIN_SPOT_FRACTION
    return lower, max_strike + buffer


def _validate_multiplier(multiplier: int) -> None:
    if isinstance(multiplier, bool) or not isinstance(multiplier, int) or multiplier <= 0:
        raise InvalidInputError(f"multiplier must be a positive integer, got {multiplier!r}")


def _intrinsic_grid(spots: np.ndarray, leg: Leg) -> np.ndarray:
    if leg.kind == OptionKind.CALL:
        return np.maximum(spots - leg.strike, 0.0)
    return np.maximum(leg.strike - spots, 0.0)


# =============================================================================
# Payoff Curve
# =============================================================================

def payoff_curve(
    legs: Sequence[Leg],
    market: MarketSnapshot,
    multiplier: int,
    spot_range: Optional[Tuple[float, float]] = None,
    steps: int = DEFAULT_STEPS
) -> PayoffCurve:
    """
    Sample P&L at expiry and today across a spot range.

    Args:
        legs: Legs of the position; inactive legs are ignored
        market: Snapshot supplying the rate and the valuation date. Its spot
            only centers the default range.
        multiplier: Currency per index point
        spot_range: (min_spot, max_spot) with 0 < min < max. Defaults to
            default_spot_range() over the active legs.
        steps: Number of intervals; the curve has steps + 1 points

    Returns:
        PayoffCurve with evenly spaced spots including both ends.

    Raises:
        InvalidInputError: If the range, steps or multiplier are invalid.
    """
    _validate_multiplier(multiplier)
    if isinstance(steps, bool) or not isinstance(steps, int) or steps < 1:
        raise InvalidInputError(f"steps must be a positive integer, got {steps!r}")

    active = [leg for leg in legs if leg.is_active]

    if spot_range is None:
        spot_range = default_spot_range(active, market.spot_price)
    min_spot, max_spot = (float(edge) for edge in spot_range)
    if not (0 < min_spot < max_spot) or not np.isfinite(max_spot):
        raise InvalidInputError(
            f"spot_range must satisfy 0 < min < max, got ({min_spot}, {max_spot})"
        )

    spots = np.linspace(min_spot, max_spot, steps + 1)
    expiry_points = np.zeros_like(spots)
    today_points = np.zeros_like(spots)
    realized_points = 0.0

    for leg in active:
        if leg.is_closed:
            realized_points += signed_points_pnl(leg.open_price, leg.close_price, leg.quantity)
            continue

        expiry_points += signed_points_pnl(leg.open_price, _intrinsic_grid(spots, leg), leg.quantity)
        model_values = price_option_vectorized(
            spots,
            leg.strike,
            leg_time_to_expiry(leg, market),
            market.rate,
            leg.implied_volatility_pct,
            leg.kind,
        )
        today_points += signed_points_pnl(leg.open_price, model_values, leg.quantity)

    logger.debug(
        f"Payoff curve over {len(active)} active legs, {steps + 1} points "
        f"in [{min_spot:.2f}, {max_spot:.2f}]"
    )

    return PayoffCurve(
        spots=spots,
        pnl_at_expiry=(expiry_points + realized_points) * multiplier,
        pnl_today=(today_points + realized_points) * multiplier,
    )


def value_at_expiry_now(legs: Sequence[Leg], market: MarketSnapshot, multiplier: int) -> float:
    """P&L at expiry if the underlying settled at the snapshot's spot, in currency."""
    _validate_multiplier(multiplier)
    points = 0.0
    for leg in legs:
        if not leg.is_active:
            continue
        settle = leg.close_price if leg.is_closed else expiry_value(leg, market.spot_price)
        points += signed_points_pnl(leg.open_price, settle, leg.quantity)
    return points * multiplier


def value_today_now(legs: Sequence[Leg], market: MarketSnapshot, multiplier: int) -> float:
    """P&L today at the snapshot's spot, in currency, gross of commissions."""
    _validate_multiplier(multiplier)
    points = 0.0
    for leg in legs:
        if not leg.is_active:
            continue
        settle = leg.close_price if leg.is_closed else mark_price(leg, market)
        points += signed_points_pnl(leg.open_price, settle, leg.quantity)
    return points * multiplier


__all__ = [
    'DEFAULT_STEPS',
    'PayoffPoint',
    'PayoffCurve',
    'default_spot_range',
    'payoff_curve',
    'value_at_expiry_now',
    'value_today_now',
]
