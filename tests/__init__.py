"""
Test Suite for the Options Journal

This package contains unit tests for the analytics engine, organized by
module.

Test modules:
    - test_expiry: Calendar-day time to expiry
    - test_pricing: Black-Scholes pricing, Greeks and implied volatility
    - test_leg: Leg validation and leg P&L
    - test_structure: Structure P&L, Greeks and settlement
    - test_payoff: Payoff curve generator
    - test_portfolio: Portfolio aggregation and trade statistics
    - test_cli: Command-line interface and journal loading

Run all tests:
    pytest tests/ -v

Run with coverage:
    pytest tests/ --cov=options_journal --cov-report=term-missing
"""
