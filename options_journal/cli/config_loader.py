"""
Journal Loader

Loads journal files from YAML and JSON, validates the market and portfolio
sections, and builds MarketSnapshot and Structure objects. Structure records
that fail validation are skipped with a warning so one bad entry does not
hide the rest of the book.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import logging

import yaml

from options_journal.cli.environment import get_settings
from options_journal.core.market import MarketSnapshot
from options_journal.core.structure import Structure, load_structures
from options_journal.cli.config_schema import (
    ConfigValidationError,
    ConfigValidator,
    JournalConfig,
    MarketConfig,
    PortfolioConfig,
)

logger = logging.getLogger(__name__)


@dataclass
class Journal:
    """A loaded journal ready for valuation."""

    name: str
    market: Optional[MarketSnapshot]
    initial_capital: float
    structures: List[Structure] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def active_structures(self) -> List[Structure]:
        return [s for s in self.structures if s.is_active]

    @property
    def closed_structures(self) -> List[Structure]:
        return [s for s in self.structures if s.is_closed]


class JournalLoader:
    """Loads and parses journal files."""

    @classmethod
    def load(cls, path: Union[str, Path]) -> Journal:
        """
        Load a journal from file.

        Args:
            path: Path to YAML or JSON journal file

        Returns:
            Journal with every valid structure

        Raises:
            FileNotFoundError: If the file doesn't exist
            ConfigValidationError: If the file cannot be parsed or the market or
                portfolio section is invalid
            ValueError: If file format is unsupported
        """
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"Journal file not found: {path}")

        config = cls._parse_config(cls._load_file(path))
        journal = cls._build(config)

        logger.info(
            f"Loaded journal '{journal.name}' from {path}: "
            f"{len(journal.structures)} structures, {len(journal.skipped)} skipped"
        )
        return journal

    @classmethod
    def load_from_string(cls, content: str, format: str = "yaml") -> Journal:
        """
        Load a journal from string content.

        Args:
            content: YAML or JSON string
            format: "yaml" or "json"
        """
        return cls._build(cls._parse_config(cls._parse_string(content, format)))

    @classmethod
    def parse(cls, path: Union[str, Path]) -> JournalConfig:
        """Parse a journal file without building or validating it."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Journal file not found: {path}")
        return cls._parse_config(cls._load_file(path))

    @staticmethod
    def _parse_string(content: str, format: str) -> Dict[str, Any]:
        try:
            if format.lower() == "yaml":
                return yaml.safe_load(content)
            elif format.lower() == "json":
                return json.loads(content)
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigValidationError(
                f"Journal {format.upper()} could not be parsed", errors=[str(e)]
            ) from e
        raise ValueError(f"Unsupported format: {format}")

    @classmethod
    def _load_file(cls, path: Path) -> Dict[str, Any]:
        """Load raw data from file."""
        suffix = path.suffix.lower()

        if suffix not in (".yaml", ".yml", ".json"):
            raise ValueError(f"Unsupported file format: {suffix}")

        with open(path, "r") as f:
            try:
                if suffix == ".json":
                    return json.load(f)
                return yaml.safe_load(f)
            except (yaml.YAMLError, json.JSONDecodeError) as e:
                raise ConfigValidationError(
                    f"Journal {path.name} could not be parsed", errors=[str(e)]
                ) from e

    @classmethod
    def _parse_config(cls, data: Any) -> JournalConfig:
        """Parse raw dictionary into JournalConfig."""
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigValidationError(
                "Journal must be a mapping",
                errors=[f"Top level is {type(data).__name__}, expected a mapping"],
            )

        market = None
        if data.get("market") is not None:
            market = cls._parse_market(data["market"])

        structures = data.get("structures") or []
        if not isinstance(structures, list):
            raise ConfigValidationError(
                "Journal 'structures' must be a list",
                errors=[f"'structures' is {type(structures).__name__}, expected a list"],
            )

        return JournalConfig(
            name=data.get("name", "Journal"),
            description=data.get("description"),
            market=market,
            portfolio=cls._parse_portfolio(data.get("portfolio") or {}),
            structures=structures,
        )

    @classmethod
    def _parse_market(cls, data: Dict[str, Any]) -> MarketConfig:
        """Parse market configuration."""
        return MarketConfig(
            spot_price=data.get("spot_price", data.get("spot")),
            risk_free_rate_pct=data.get("risk_free_rate_pct", 0.0),
            valuation_date=data.get("valuation_date"),
        )

    @classmethod
    def _parse_portfolio(cls, data: Dict[str, Any]) -> PortfolioConfig:
        """Parse portfolio configuration, filling gaps from the environment settings."""
        settings = get_settings()
        shared = data.get("default_commission")
        opening = settings.default_opening_commission if shared is None else shared
        closing = settings.default_closing_commission if shared is None else shared
        return PortfolioConfig(
            initial_capital=data.get("initial_capital", settings.initial_capital),
            opening_commission=data.get("opening_commission", opening),
            closing_commission=data.get("closing_commission", closing),
        )

    @classmethod
    def _build(cls, config: JournalConfig) -> Journal:
        """Validate the journal sections and build the model objects."""
        errors = []
        if config.market:
            errors.extend(ConfigValidator._validate_market(config.market))
        errors.extend(ConfigValidator._validate_portfolio(config.portfolio))
        if errors:
            raise ConfigValidationError(
                f"Journal '{config.name}' failed validation", errors=errors
            )

        market = None
        if config.market:
            market = MarketSnapshot.from_dict({
                "spot_price": config.market.spot_price,
                "risk_free_rate_pct": config.market.risk_free_rate_pct,
                "valuation_date": config.market.valuation_date,
            })

        structures, skipped = load_structures(
            config.structures,
            default_commission=config.portfolio.opening_commission,
            default_closing_commission=config.portfolio.closing_commission,
        )

        return Journal(
            name=config.name,
            market=market,
            initial_capital=float(config.portfolio.initial_capital),
            structures=structures,
            skipped=skipped,
        )


def load_journal(path: Union[str, Path]) -> Journal:
    """
    Convenience function to load a journal file.

    Args:
        path: Path to YAML or JSON journal file
    """
    return JournalLoader.load(path)


def load_journal_string(content: str, format: str = "yaml") -> Journal:
    """Convenience function to load a journal from string."""
    return JournalLoader.load_from_string(content, format)
