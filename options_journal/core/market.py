"""
Market Snapshot

The engine keeps no market state. Every computation receives a fresh
MarketSnapshot from the market-data collaborator.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict

from options_journal.core.exceptions import InvalidInputError
from options_journal.core.expiry import DateLike, to_calendar_date, utc_today

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MarketSnapshot:
    """
    Spot, rate and valuation day used for one computation.

    Attributes:
        spot_price: Index level, > 0
        risk_free_rate_pct: Risk-free rate in percent (2.0 for 2%)
        valuation_date: UTC calendar day the options are valued on.
            Defaults to today in UTC.
    """

    spot_price: float
    risk_free_rate_pct: float = 0.0
    valuation_date: date = field(default_factory=utc_today)

    def __post_init__(self) -> None:
        if self.spot_price is None or not math.isfinite(self.spot_price) or self.spot_price <= 0:
            raise InvalidInputError(f"spot_price must be positive and finite, got {self.spot_price}")
        if self.risk_free_rate_pct is None or not math.isfinite(self.risk_free_rate_pct):
            raise InvalidInputError(
                f"risk_free_rate_pct must be finite, got {self.risk_free_rate_pct}"
            )
        object.__setattr__(self, 'spot_price', float(self.spot_price))
        object.__setattr__(self, 'risk_free_rate_pct', float(self.risk_free_rate_pct))
        object.__setattr__(self, 'valuation_date', to_calendar_date(self.valuation_date))

    @property
    def rate(self) -> float:
        """Risk-free rate as a decimal, the unit the pricing kernel expects."""
        return self.risk_free_rate_pct / 100.0

    def with_spot(self, spot_price: float) -> 'MarketSnapshot':
        """Return a copy priced at another spot."""
        return MarketSnapshot(spot_price, self.risk_free_rate_pct, self.valuation_date)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'spot_price': self.spot_price,
            'risk_free_rate_pct': self.risk_free_rate_pct,
            'valuation_date': self.valuation_date.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MarketSnapshot':
        """
        Build a snapshot from a mapping with 'spot_price' (or 'spot'),
        'risk_free_rate_pct' and an optional 'valuation_date'.
        """
        spot = data.get('spot_price', data.get('spot'))
        rate_pct = data.get('risk_free_rate_pct', 0.0)
        valuation: DateLike = data.get('valuation_date') or utc_today()
        return cls(
            spot_price=float(spot) if spot is not None else None,
            risk_free_rate_pct=float(rate_pct),
            valuation_date=valuation,
        )


__all__ = ['MarketSnapshot']
