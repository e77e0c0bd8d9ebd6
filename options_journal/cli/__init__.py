"""
CLI Package for the Options Journal

Provides command-line tools for pricing options and analyzing journal
files, plus the environment and journal-file configuration layer.

Usage:
    # Price an option
    options-journal price --spot 21000 --strike 21500 --days 60 --vol 15 --kind call

    # Summarize a journal
    options-journal portfolio --journal journal.yaml

    # Validate a journal
    options-journal validate --journal journal.yaml
"""

from options_journal.cli.config_schema import (
    # Config Classes
    MarketConfig,
    PortfolioConfig,
    JournalConfig,
    # Validation
    ConfigValidator,
    ConfigValidationError,
    validate_config,
)

from options_journal.cli.config_loader import (
    Journal,
    JournalLoader,
    load_journal,
    load_journal_string,
)

from options_journal.cli.environment import (
    Environment,
    EnvironmentSettings,
    EnvironmentManager,
    get_environment,
    get_settings,
    set_environment,
    configure_logging,
)

__all__ = [
    # Config Classes
    "MarketConfig",
    "PortfolioConfig",
    "JournalConfig",
    # Validation
    "ConfigValidator",
    "ConfigValidationError",
    "validate_config",
    # Loader
    "Journal",
    "JournalLoader",
    "load_journal",
    "load_journal_string",
    # Environment
    "Environment",
    "EnvironmentSettings",
    "EnvironmentManager",
    "get_environment",
    "get_settings",
    "set_environment",
    "configure_logging",
]
