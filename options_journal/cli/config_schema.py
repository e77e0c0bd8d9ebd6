"""
Configuration Schema for Journal Files

Defines the schema for YAML/JSON journal files (market snapshot, portfolio
settings and the recorded structures), including validation logic and type
coercion.

Example journal:

    name: DAX book
    market:
      spot_price: 21000
      risk_free_rate_pct: 2.0
      valuation_date: 2025-01-15
    portfolio:
      initial_capital: 10000
      opening_commission: 2.0
      closing_commission: 2.0
    structures:
      - tag: Bear call 21500/21700
        multiplier: 5
        legs:
          - optionType: call
            strike: 21500
            expiryDate: 2025-03-21
            quantity: -1
            tradePrice: 180
            impliedVolatility: 15

Portfolio values left out of the file come from the environment settings.
A single default_commission key sets both commissions.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union
import logging
import math

from options_journal.core.exceptions import InvalidInputError
from options_journal.core.expiry import to_calendar_date
from options_journal.core.leg import DEFAULT_COMMISSION
from options_journal.core.structure import Structure, StructureStatus

logger = logging.getLogger(__name__)


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = errors or []
        super().__init__(message)


@dataclass
class MarketConfig:
    """Market snapshot used to value the journal."""

    spot_price: float
    risk_free_rate_pct: float = 0.0
    valuation_date: Optional[Union[str, date, datetime]] = None


@dataclass
class PortfolioConfig:
    """Portfolio-wide settings."""

    initial_capital: float = 10000.0
    opening_commission: float = DEFAULT_COMMISSION
    closing_commission: float = DEFAULT_COMMISSION


@dataclass
class JournalConfig:
    """Complete journal file."""

    name: str = "Journal"
    description: Optional[str] = None
    market: Optional[MarketConfig] = None
    portfolio: PortfolioConfig = field(default_factory=PortfolioConfig)
    structures: List[Dict[str, Any]] = field(default_factory=list)


class ConfigValidator:
    """Validates journal configuration."""

    VALID_STATUSES = {status.value for status in StructureStatus}

    @classmethod
    def validate(cls, config: JournalConfig) -> List[str]:
        """
        Validate a journal configuration.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        if not config.name:
            errors.append("Journal name is required")

        if config.market:
            errors.extend(cls._validate_market(config.market))

        errors.extend(cls._validate_portfolio(config.portfolio))

        for i, record in enumerate(config.structures):
            errors.extend(cls._validate_structure(record, i, config.portfolio))

        return errors

    @classmethod
    def _validate_market(cls, market: MarketConfig) -> List[str]:
        """Validate market configuration."""
        errors = []

        if not _is_number(market.spot_price) or market.spot_price <= 0:
            errors.append(f"Market spot_price must be positive, got {market.spot_price}")

        if not _is_number(market.risk_free_rate_pct):
            errors.append(
                f"Market risk_free_rate_pct must be a number, got {market.risk_free_rate_pct}"
            )
        elif abs(market.risk_free_rate_pct) > 25:
            errors.append(
                f"Market risk_free_rate_pct {market.risk_free_rate_pct} looks like a "
                f"fraction or a typo; rates are given in percent"
            )

        if market.valuation_date is not None:
            try:
                to_calendar_date(market.valuation_date)
            except InvalidInputError as e:
                errors.append(f"Market valuation_date: {e}")

        return errors

    @classmethod
    def _validate_portfolio(cls, portfolio: PortfolioConfig) -> List[str]:
        """Validate portfolio configuration."""
        errors = []

        if not _is_number(portfolio.initial_capital) or portfolio.initial_capital <= 0:
            errors.append("Initial capital must be positive")

        for name in ("opening_commission", "closing_commission"):
            value = getattr(portfolio, name)
            if not _is_number(value) or value < 0:
                errors.append(f"Portfolio {name} cannot be negative, got {value}")

        return errors

    @classmethod
    def _validate_structure(
        cls, record: Any, index: int, portfolio: PortfolioConfig
    ) -> List[str]:
        """Validate one structure record by building it."""
        prefix = f"Structure [{index}]"

        if not isinstance(record, dict):
            return [f"{prefix}: must be a mapping, got {type(record).__name__}"]

        status = record.get("status", StructureStatus.ACTIVE.value)
        if status not in cls.VALID_STATUSES:
            return [f"{prefix}: Unknown status '{status}'"]

        try:
            Structure.from_dict(
                record,
                default_commission=portfolio.opening_commission,
                default_closing_commission=portfolio.closing_commission,
            )
        except InvalidInputError as e:
            return [f"{prefix}: {e}"]

        return []


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def validate_config(config: JournalConfig) -> None:
    """
    Validate configuration and raise exception if invalid.

    Args:
        config: Journal configuration to validate

    Raises:
        ConfigValidationError: If validation fails
    """
    errors = ConfigValidator.validate(config)
    if errors:
        raise ConfigValidationError(
            f"Configuration validation failed with {len(errors)} error(s)",
            errors=errors,
        )
