"""
Exception Hierarchy for the Options Journal Engine

All engine failures derive from OptionsJournalError so callers processing a
whole portfolio can catch one type, skip the offending structure and keep
going.

Taxonomy:
    InvalidInputError: non-positive spot/strike/volatility, malformed dates,
        malformed legs or structures. Raised at the boundary, never clamped.
    ImpliedVolatilityError: raised only when a caller unwraps a failed
        ImpliedVolatilityResult.
    StructureStateError: closing a closed structure or reopening an active
        one.
"""


class OptionsJournalError(Exception):
    """Base exception for all engine errors."""
    pass


class InvalidInputError(OptionsJournalError, ValueError):
    """Exception raised when an input is outside the documented domain."""
    pass


class InvalidDateError(InvalidInputError):
    """Exception raised when a calendar date cannot be parsed."""
    pass


class LegValidationError(InvalidInputError):
    """Exception raised when leg data fails validation."""
    pass


class StructureValidationError(InvalidInputError):
    """Exception raised when structure data fails validation."""
    pass


class ImpliedVolatilityError(OptionsJournalError):
    """Exception raised when an implied volatility result is unwrapped after a failure."""
    pass


class StructureStateError(OptionsJournalError):
    """Exception raised when a status transition is not allowed."""
    pass


__all__ = [
    'OptionsJournalError',
    'InvalidInputError',
    'InvalidDateError',
    'LegValidationError',
    'StructureValidationError',
    'ImpliedVolatilityError',
    'StructureStateError',
]
