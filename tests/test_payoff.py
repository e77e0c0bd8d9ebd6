"""
Unit Tests for Payoff Curves

Covers the sampled grid, expiry and today curves, closed-leg offsets,
breakeven interpolation and the default spot range.
"""

import pytest
import numpy as np
import pandas as pd
from datetime import date

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from options_journal.analytics.payoff import (
    DEFAULT_STEPS,
    PayoffCurve,
    PayoffPoint,
    default_spot_range,
    payoff_curve,
    value_at_expiry_now,
    value_today_now,
)
from options_journal.core.exceptions import InvalidInputError
from options_journal.core.leg import Leg, OptionContract, mark_price
from options_journal.core.market import MarketSnapshot
from options_journal.core.pricing import price_option


# =============================================================================
# Test Fixtures
# =============================================================================

VALUATION_DATE = date(2025, 1, 1)
EXPIRY = date(2025, 4, 1)


def make_leg(kind='call', strike=100.0, quantity=1, open_price=5.0, **overrides):
    params = {
        'contract': OptionContract(kind=kind, strike=strike, expiry=EXPIRY),
        'quantity': quantity,
        'open_price': open_price,
        'implied_volatility_pct': 20.0,
    }
    params.update(overrides)
    return Leg(**params)


@pytest.fixture
def market():
    return MarketSnapshot(spot_price=100.0, risk_free_rate_pct=5.0, valuation_date=VALUATION_DATE)


# =============================================================================
# Grid Tests
# =============================================================================

class TestPayoffGrid:
    """Tests for the sampled spot grid."""

    def test_steps_plus_one_points(self, market):
        curve = payoff_curve([make_leg()], market, 1, spot_range=(80.0, 120.0), steps=40)
        assert len(curve) == 41
        assert curve.spots[0] == 80.0
        assert curve.spots[-1] == 120.0

    def test_default_steps(self, market):
        curve = payoff_curve([make_leg()], market, 1)
        assert len(curve) == DEFAULT_STEPS + 1

    def test_evenly_spaced(self, market):
        curve = payoff_curve([make_leg()], market, 1, spot_range=(50.0, 150.0), steps=10)
        np.testing.assert_allclose(np.diff(curve.spots), 10.0)

    @pytest.mark.parametrize('steps', [0, -5, 2.5, True])
    def test_invalid_steps(self, market, steps):
        with pytest.raises(InvalidInputError):
            payoff_curve([make_leg()], market, 1, spot_range=(80.0, 120.0), steps=steps)

    @pytest.mark.parametrize('spot_range', [(0.0, 100.0), (-10.0, 100.0), (120.0, 80.0), (100.0, 100.0)])
    def test_invalid_range(self, market, spot_range):
        with pytest.raises(InvalidInputError):
            payoff_curve([make_leg()], market, 1, spot_range=spot_range)

    def test_invalid_multiplier(self, market):
        with pytest.raises(InvalidInputError):
            payoff_curve([make_leg()], market, 0)


# =============================================================================
# Curve Value Tests
# =============================================================================

class TestPayoffValues:
    """Tests for the expiry and today curves."""

    def test_long_call_at_expiry(self, market):
        curve = payoff_curve([make_leg()], market, 5, spot_range=(80.0, 130.0), steps=50)
        expected = (np.maximum(curve.spots - 100.0, 0.0) - 5.0) * 5
        np.testing.assert_allclose(curve.pnl_at_expiry, expected)

    def test_short_put_at_expiry(self, market):
        leg = make_leg(kind='put', quantity=-2, open_price=4.0)
        curve = payoff_curve([leg], market, 1, spot_range=(80.0, 120.0), steps=40)
        expected = -2 * (np.maximum(100.0 - curve.spots, 0.0) - 4.0)
        np.testing.assert_allclose(curve.pnl_at_expiry, expected)

    def test_today_curve_uses_pricing_kernel(self, market):
        curve = payoff_curve([make_leg()], market, 5, spot_range=(90.0, 110.0), steps=2)
        t = 90 / 365
        for point in curve:
            model = price_option(point.spot, 100.0, t, 0.05, 20.0, 'call').price
            assert point.pnl_today == pytest.approx((model - 5.0) * 5)

    def test_today_curve_above_expiry_for_long_call(self, market):
        """Time value keeps a long option's today curve above its expiry curve."""
        curve = payoff_curve([make_leg()], market, 1, spot_range=(80.0, 120.0), steps=40)
        assert np.all(curve.pnl_today >= curve.pnl_at_expiry - 1e-9)

    def test_closed_leg_adds_constant_offset(self, market):
        closed = make_leg(strike=110.0, quantity=-1, open_price=3.0,
                          close_price=1.0, close_date=VALUATION_DATE)
        open_leg = make_leg()
        alone = payoff_curve([open_leg], market, 5, spot_range=(80.0, 120.0), steps=20)
        both = payoff_curve([open_leg, closed], market, 5, spot_range=(80.0, 120.0), steps=20)
        # Short closed at 1 after opening at 3: +2 points, gross of commission
        np.testing.assert_allclose(both.pnl_at_expiry - alone.pnl_at_expiry, 10.0)
        np.testing.assert_allclose(both.pnl_today - alone.pnl_today, 10.0)

    def test_inactive_legs_ignored(self, market):
        inactive = make_leg(kind='put', quantity=-10, is_active=False)
        alone = payoff_curve([make_leg()], market, 1, spot_range=(80.0, 120.0), steps=20)
        with_inactive = payoff_curve([make_leg(), inactive], market, 1, spot_range=(80.0, 120.0), steps=20)
        np.testing.assert_allclose(with_inactive.pnl_at_expiry, alone.pnl_at_expiry)
        np.testing.assert_allclose(with_inactive.pnl_today, alone.pnl_today)

    def test_no_legs_is_flat_zero(self, market):
        curve = payoff_curve([], market, 5, steps=10)
        assert np.all(curve.pnl_at_expiry == 0.0)
        assert np.all(curve.pnl_today == 0.0)

    def test_value_now_helpers(self, market):
        leg = make_leg(strike=95.0)
        assert value_at_expiry_now([leg], market, 5) == pytest.approx((5.0 - 5.0) * 5)
        assert value_today_now([leg], market, 5) == pytest.approx((mark_price(leg, market) - 5.0) * 5)


# =============================================================================
# Breakeven and Extremes Tests
# =============================================================================

class TestBreakevens:
    """Tests for breakeven_points, max_profit and max_loss."""

    def test_long_call_breakeven(self, market):
        curve = payoff_curve([make_leg()], market, 5, spot_range=(80.0, 130.0), steps=50)
        breakevens = curve.breakeven_points()
        assert len(breakevens) == 1
        assert breakevens[0] == pytest.approx(105.0)

    def test_breakeven_interpolated_between_samples(self, market):
        curve = payoff_curve([make_leg(open_price=5.5)], market, 1, spot_range=(80.0, 130.0), steps=50)
        assert curve.breakeven_points() == [pytest.approx(105.5)]

    def test_straddle_has_two_breakevens(self, market):
        legs = [make_leg(open_price=4.0), make_leg(kind='put', open_price=4.0)]
        curve = payoff_curve(legs, market, 1, spot_range=(70.0, 130.0), steps=60)
        breakevens = curve.breakeven_points()
        assert breakevens == [pytest.approx(92.0), pytest.approx(108.0)]

    def test_no_breakeven(self, market):
        curve = payoff_curve([make_leg()], market, 1, spot_range=(50.0, 90.0), steps=10)
        assert curve.breakeven_points() == []

    def test_max_profit_and_loss(self, market):
        spread = [make_leg(open_price=5.0), make_leg(strike=110.0, quantity=-1, open_price=2.0)]
        curve = payoff_curve(spread, market, 5, spot_range=(80.0, 130.0), steps=50)
        assert curve.max_loss() == pytest.approx(-15.0)
        assert curve.max_profit() == pytest.approx(35.0)

    def test_unknown_curve_name(self, market):
        curve = payoff_curve([make_leg()], market, 1, steps=10)
        with pytest.raises(InvalidInputError):
            curve.max_profit('tomorrow')

    def test_today_curve_breakevens(self, market):
        curve = payoff_curve([make_leg()], market, 1, spot_range=(80.0, 130.0), steps=100)
        breakevens = curve.breakeven_points('today')
        assert len(breakevens) == 1
        assert breakevens[0] < 105.0


# =============================================================================
# Curve Container Tests
# =============================================================================

class TestPayoffCurveContainer:
    """Tests for the PayoffCurve sequence interface."""

    def test_points_and_slices(self):
        curve = PayoffCurve([1.0, 2.0, 3.0], [0.0, 1.0, 2.0], [0.5, 1.5, 2.5])
        assert curve[1] == PayoffPoint(2.0, 1.0, 1.5)
        assert curve[-1].spot == 3.0
        assert curve[:2] == [PayoffPoint(1.0, 0.0, 0.5), PayoffPoint(2.0, 1.0, 1.5)]

    def test_iteration_is_restartable(self):
        curve = PayoffCurve([1.0, 2.0], [0.0, 1.0], [0.0, 1.0])
        assert list(curve) == list(curve)

    def test_arrays_are_read_only(self):
        curve = PayoffCurve([1.0, 2.0], [0.0, 1.0], [0.0, 1.0])
        with pytest.raises(ValueError):
            curve.spots[0] = 10.0

    def test_to_frame(self):
        curve = PayoffCurve([1.0, 2.0], [0.0, 1.0], [0.5, 1.5])
        frame = curve.to_frame()
        assert isinstance(frame, pd.DataFrame)
        assert list(frame.columns) == ['spot', 'pnl_at_expiry', 'pnl_today']
        assert len(frame) == 2


# =============================================================================
# Default Range Tests
# =============================================================================

class TestDefaultSpotRange:
    """Tests for default_spot_range."""

    def test_no_legs(self):
        low, high = default_spot_range([], 100.0)
        assert low == pytest.approx(85.0)
        assert high == pytest.approx(115.0)

    def test_single_strike_uses_spot_buffer(self):
        low, high = default_spot_range([make_leg(strike=100.0)], 100.0)
        assert low == pytest.approx(95.0)
        assert high == pytest.approx(105.0)

    def test_wide_strikes_use_width_buffer(self):
        legs = [make_leg(strike=80.0), make_leg(strike=120.0)]
        low, high = default_spot_range(legs, 100.0)
        assert low == pytest.approx(60.0)
        assert high == pytest.approx(140.0)

    def test_lower_edge_stays_positive(self):
        legs = [make_leg(strike=5.0), make_leg(strike=200.0)]
        low, high = default_spot_range(legs, 100.0)
        assert low > 0
        assert high == pytest.approx(297.5)

    def test_invalid_spot(self):
        with pytest.raises(InvalidInputError):
            default_spot_range([], 0.0)

    def test_payoff_uses_default_range(self, market):
        legs = [make_leg(strike=90.0), make_leg(strike=110.0, quantity=-1)]
        curve = payoff_curve(legs, market, 1, steps=10)
        assert curve.spots[0] == pytest.approx(80.0)
        assert curve.spots[-1] == pytest.approx(120.0)
