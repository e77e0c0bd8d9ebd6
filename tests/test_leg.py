"""
Unit Tests for Option Legs and the Leg P&L Model

Test Categories:
    1. Validation: contracts and legs reject out-of-domain fields
    2. Serialization: storage records and to_dict()/from_dict()
    3. Sign convention: signed_points_pnl for long and short positions
    4. Leg P&L: closed legs, open legs marked by the kernel, commissions
    5. Greeks: per-contract and position Greeks
"""

import pytest
from datetime import date

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from options_journal.core.exceptions import InvalidInputError, LegValidationError
from options_journal.core.leg import (
    DEFAULT_COMMISSION,
    GreeksVector,
    Leg,
    OptionContract,
    PnlBreakdown,
    leg_greeks,
    leg_pnl,
    mark_price,
    position_greeks,
    realized_leg_pnl,
    signed_points_pnl,
)
from options_journal.core.market import MarketSnapshot
from options_journal.core.pricing import OptionKind, price_option


# =============================================================================
# Test Fixtures and Constants
# =============================================================================

VALUATION_DATE = date(2025, 1, 15)
EXPIRY = date(2025, 3, 16)  # 60 days after VALUATION_DATE
MULTIPLIER = 5


def make_leg(**overrides):
    """Create a leg with sensible defaults."""
    params = {
        'contract': OptionContract(kind='call', strike=21000.0, expiry=EXPIRY),
        'quantity': 1,
        'open_price': 100.0,
        'implied_volatility_pct': 15.0,
        'opening_commission': 2.0,
        'closing_commission': 2.0,
    }
    params.update(overrides)
    return Leg(**params)


@pytest.fixture
def market():
    """Market snapshot with spot at the strike."""
    return MarketSnapshot(spot_price=21000.0, risk_free_rate_pct=2.0, valuation_date=VALUATION_DATE)


# =============================================================================
# Validation Tests
# =============================================================================

class TestOptionContract:
    """Tests for OptionContract."""

    def test_kind_is_parsed(self):
        contract = OptionContract(kind='Put', strike=100, expiry='2025-03-21')
        assert contract.kind == OptionKind.PUT
        assert contract.strike == 100.0
        assert contract.expiry == date(2025, 3, 21)

    def test_structural_identity(self):
        a = OptionContract('call', 100.0, date(2025, 3, 21))
        b = OptionContract(OptionKind.CALL, 100, '2025-03-21')
        assert a == b
        assert hash(a) == hash(b)

    @pytest.mark.parametrize('strike', [0.0, -100.0, float('nan')])
    def test_invalid_strike(self, strike):
        with pytest.raises(LegValidationError):
            OptionContract('call', strike, EXPIRY)

    def test_invalid_kind(self):
        with pytest.raises(LegValidationError):
            OptionContract('forward', 100.0, EXPIRY)

    def test_invalid_expiry(self):
        with pytest.raises(InvalidInputError):
            OptionContract('call', 100.0, 'someday')


class TestLegValidation:
    """Tests for Leg construction."""

    def test_valid_leg(self):
        leg = make_leg()
        assert leg.is_long
        assert not leg.is_closed
        assert leg.contracts == 1
        assert leg.is_active

    @pytest.mark.parametrize('quantity', [0, 1.5, '2', True, None])
    def test_invalid_quantity(self, quantity):
        with pytest.raises(LegValidationError):
            make_leg(quantity=quantity)

    @pytest.mark.parametrize('open_price', [0.0, -1.0, float('inf')])
    def test_invalid_open_price(self, open_price):
        with pytest.raises(LegValidationError):
            make_leg(open_price=open_price)

    def test_close_price_may_be_zero(self):
        leg = make_leg(close_price=0.0, close_date=VALUATION_DATE)
        assert leg.is_closed

    def test_negative_close_price(self):
        with pytest.raises(LegValidationError):
            make_leg(close_price=-0.5)

    @pytest.mark.parametrize('vol', [0.0, -10.0, float('nan')])
    def test_invalid_volatility(self, vol):
        with pytest.raises(LegValidationError):
            make_leg(implied_volatility_pct=vol)

    def test_negative_commission(self):
        with pytest.raises(LegValidationError):
            make_leg(opening_commission=-1.0)

    def test_contract_required(self):
        with pytest.raises(LegValidationError):
            make_leg(contract=('call', 100.0, EXPIRY))

    def test_closed_exactly_when_close_price_present(self):
        """A close date without a close price leaves the leg open."""
        leg = make_leg(close_date=VALUATION_DATE)
        assert not leg.is_closed
        assert leg.has_inconsistent_close_state

    def test_close_price_without_date_is_closed(self):
        leg = make_leg(close_price=120.0)
        assert leg.is_closed
        assert leg.has_inconsistent_close_state

    def test_consistent_close_state(self):
        assert not make_leg().has_inconsistent_close_state
        assert not make_leg(close_price=1.0, close_date=VALUATION_DATE).has_inconsistent_close_state

    def test_default_commission(self):
        leg = Leg(
            contract=OptionContract('put', 100.0, EXPIRY),
            quantity=-2,
            open_price=3.0,
            implied_volatility_pct=20.0,
        )
        assert leg.opening_commission == DEFAULT_COMMISSION == 2.0
        assert leg.closing_commission == DEFAULT_COMMISSION
        assert leg.is_short
        assert leg.contracts == 2


class TestLegTransitions:
    """Tests for settled(), reopened() and with_active()."""

    def test_settled_returns_new_leg(self):
        leg = make_leg()
        closed = leg.settled(150.0, '2025-02-01')
        assert closed.is_closed
        assert closed.close_price == 150.0
        assert closed.close_date == date(2025, 2, 1)
        assert not leg.is_closed

    def test_reopened_clears_close(self):
        leg = make_leg(close_price=150.0, close_date=VALUATION_DATE)
        reopened = leg.reopened()
        assert reopened.close_price is None
        assert reopened.close_date is None

    def test_with_active(self):
        assert not make_leg().with_active(False).is_active


# =============================================================================
# Serialization Tests
# =============================================================================

class TestLegSerialization:
    """Tests for from_dict/to_dict."""

    def test_storage_record(self):
        record = {
            'id': 7,
            'optionType': 'Call',
            'strike': 21500,
            'expiryDate': '2025-03-21T00:00:00.000Z',
            'quantity': -1,
            'tradePrice': '180.5',
            'impliedVolatility': 14.2,
            'openingCommission': 1.5,
            'closingCommission': 1.5,
            'closingPrice': 90,
            'closingDate': '2025-02-10',
            'isActive': True,
        }
        leg = Leg.from_dict(record)
        assert leg.leg_id == 7
        assert leg.kind == OptionKind.CALL
        assert leg.strike == 21500.0
        assert leg.expiry == date(2025, 3, 21)
        assert leg.quantity == -1
        assert leg.open_price == 180.5
        assert leg.close_price == 90.0
        assert leg.close_date == date(2025, 2, 10)
        assert leg.opening_commission == 1.5

    def test_missing_commissions_use_default(self):
        record = {
            'optionType': 'put', 'strike': 100, 'expiryDate': '2025-03-21',
            'quantity': 1, 'tradePrice': 2.0, 'impliedVolatility': 20,
        }
        leg = Leg.from_dict(record, default_commission=3.0)
        assert leg.opening_commission == 3.0
        assert leg.closing_commission == 3.0

    def test_separate_closing_commission_default(self):
        record = {
            'optionType': 'put', 'strike': 100, 'expiryDate': '2025-03-21',
            'quantity': 1, 'tradePrice': 2.0, 'impliedVolatility': 20,
        }
        leg = Leg.from_dict(record, default_commission=3.0, default_closing_commission=0.0)
        assert leg.opening_commission == 3.0
        assert leg.closing_commission == 0.0

    def test_inactive_flag(self):
        record = {
            'optionType': 'put', 'strike': 100, 'expiryDate': '2025-03-21',
            'quantity': 1, 'tradePrice': 2.0, 'impliedVolatility': 20, 'isActive': False,
        }
        assert not Leg.from_dict(record).is_active

    def test_missing_field_raises(self):
        with pytest.raises(LegValidationError, match='open_price'):
            Leg.from_dict({
                'optionType': 'put', 'strike': 100, 'expiryDate': '2025-03-21',
                'quantity': 1, 'impliedVolatility': 20,
            })

    def test_non_integer_quantity_raises(self):
        with pytest.raises(LegValidationError):
            Leg.from_dict({
                'optionType': 'put', 'strike': 100, 'expiryDate': '2025-03-21',
                'quantity': 1.5, 'tradePrice': 2.0, 'impliedVolatility': 20,
            })

    def test_round_trip(self):
        leg = make_leg(close_price=80.0, close_date=date(2025, 2, 1), leg_id='a1', notes='hedge')
        restored = Leg.from_dict(leg.to_dict())
        assert restored == leg
        assert restored.notes == 'hedge'


# =============================================================================
# Sign Convention Tests
# =============================================================================

class TestSignedPointsPnl:
    """Tests for signed_points_pnl."""

    def test_long_profit(self):
        assert signed_points_pnl(100.0, 300.0, 1) == 200.0

    def test_short_loss(self):
        assert signed_points_pnl(100.0, 300.0, -1) == -200.0

    def test_short_profit(self):
        assert signed_points_pnl(100.0, 40.0, -2) == 120.0

    def test_long_loss_scales_with_quantity(self):
        assert signed_points_pnl(100.0, 40.0, 3) == -180.0

    def test_long_and_short_are_opposite(self):
        for mark in (0.0, 50.0, 100.0, 250.0):
            assert signed_points_pnl(100.0, mark, 2) == -signed_points_pnl(100.0, mark, -2)


# =============================================================================
# Leg P&L Tests
# =============================================================================

class TestLegPnl:
    """Tests for leg_pnl and realized_leg_pnl."""

    def test_closed_long_leg(self):
        leg = make_leg(close_price=300.0, close_date=VALUATION_DATE)
        pnl = leg_pnl(leg, None, MULTIPLIER)
        assert pnl.points_pnl == 200.0
        assert pnl.gross_pnl == 1000.0
        assert pnl.commission_cost == 4.0
        assert pnl.net_pnl == 996.0
        assert pnl.is_closed
        assert pnl.mark_price == 300.0

    def test_closed_short_leg(self):
        leg = make_leg(quantity=-1, close_price=300.0, close_date=VALUATION_DATE)
        pnl = leg_pnl(leg, None, MULTIPLIER)
        assert pnl.points_pnl == -200.0
        assert pnl.gross_pnl == -1000.0
        assert pnl.net_pnl == -1004.0

    def test_commission_scales_with_contracts(self):
        leg = make_leg(quantity=-3, opening_commission=1.5, closing_commission=2.5,
                       close_price=100.0, close_date=VALUATION_DATE)
        pnl = leg_pnl(leg, None, MULTIPLIER)
        assert pnl.commission_cost == 12.0
        assert pnl.net_pnl == -12.0

    def test_open_leg_marked_by_kernel(self, market):
        leg = make_leg()
        expected_mark = price_option(21000.0, 21000.0, 60 / 365, 0.02, 15.0, 'call').price
        pnl = leg_pnl(leg, market, MULTIPLIER)
        assert pnl.mark_price == pytest.approx(expected_mark)
        assert pnl.points_pnl == pytest.approx(expected_mark - 100.0)
        assert pnl.gross_pnl == pytest.approx((expected_mark - 100.0) * MULTIPLIER)
        assert not pnl.is_closed

    def test_open_leg_charged_full_commission(self, market):
        """Open legs reserve the closing commission too."""
        pnl = leg_pnl(make_leg(quantity=2), market, MULTIPLIER)
        assert pnl.commission_cost == 8.0
        assert pnl.net_pnl == pytest.approx(pnl.gross_pnl - 8.0)

    def test_expired_open_leg_uses_intrinsic(self):
        market = MarketSnapshot(21300.0, 2.0, date(2025, 4, 1))
        leg = make_leg()
        assert mark_price(leg, market) == 300.0
        assert leg_pnl(leg, market, MULTIPLIER).points_pnl == 200.0

    def test_closed_leg_ignores_market(self, market):
        leg = make_leg(close_price=300.0, close_date=VALUATION_DATE)
        assert leg_pnl(leg, market, MULTIPLIER) == leg_pnl(leg, None, MULTIPLIER)

    def test_open_leg_needs_market(self):
        with pytest.raises(InvalidInputError):
            leg_pnl(make_leg(), None, MULTIPLIER)

    @pytest.mark.parametrize('multiplier', [0, -5, 2.5, True])
    def test_invalid_multiplier(self, market, multiplier):
        with pytest.raises(InvalidInputError):
            leg_pnl(make_leg(), market, multiplier)

    def test_realized_leg_pnl(self):
        leg = make_leg(close_price=300.0, close_date=VALUATION_DATE)
        assert realized_leg_pnl(leg, MULTIPLIER).net_pnl == 996.0

    def test_realized_leg_pnl_requires_closed(self):
        with pytest.raises(InvalidInputError):
            realized_leg_pnl(make_leg(), MULTIPLIER)


class TestPnlBreakdown:
    """Tests for PnlBreakdown aggregation."""

    def test_addition(self):
        a = PnlBreakdown(10.0, 50.0, 4.0, 46.0, True, 1.0)
        b = PnlBreakdown(-5.0, -25.0, 4.0, -29.0, False, 2.0)
        total = a + b
        assert total.points_pnl == 5.0
        assert total.gross_pnl == 25.0
        assert total.commission_cost == 8.0
        assert total.net_pnl == 17.0
        assert not total.is_closed
        assert total.mark_price is None

    def test_total_of_empty(self):
        total = PnlBreakdown.total([])
        assert total.net_pnl == 0.0
        assert not total.is_closed

    def test_total_of_closed(self):
        a = PnlBreakdown(1.0, 5.0, 4.0, 1.0, True, 3.0)
        total = PnlBreakdown.total([a, a])
        assert total.net_pnl == 2.0
        assert total.is_closed
        assert total.mark_price is None


# =============================================================================
# Greeks Tests
# =============================================================================

class TestLegGreeks:
    """Tests for leg_greeks and position_greeks."""

    def test_leg_greeks_use_leg_volatility(self, market):
        leg = make_leg(implied_volatility_pct=25.0)
        expected = price_option(21000.0, 21000.0, 60 / 365, 0.02, 25.0, 'call')
        assert leg_greeks(leg, market) == expected

    def test_position_greeks_scale_by_signed_quantity(self, market):
        leg = make_leg(quantity=-2)
        per_contract = leg_greeks(leg, market)
        position = position_greeks(leg, market)
        assert position.delta == pytest.approx(-2 * per_contract.delta)
        assert position.gamma == pytest.approx(-2 * per_contract.gamma)
        assert position.theta == pytest.approx(-2 * per_contract.theta)
        assert position.vega == pytest.approx(-2 * per_contract.vega)

    def test_expired_leg_greeks(self):
        market = MarketSnapshot(21300.0, 2.0, date(2025, 4, 1))
        valuation = leg_greeks(make_leg(), market)
        assert valuation.delta == 1.0
        assert valuation.gamma == 0.0
        assert valuation.vega == 0.0


class TestGreeksVector:
    """Tests for GreeksVector arithmetic."""

    def test_add_and_scale(self):
        a = GreeksVector(0.5, 0.01, -2.0, 10.0)
        b = GreeksVector(-0.2, 0.02, -1.0, 5.0)
        total = (a + b).scaled(2)
        assert total.delta == pytest.approx(0.6)
        assert total.gamma == pytest.approx(0.06)
        assert total.theta == pytest.approx(-6.0)
        assert total.vega == pytest.approx(30.0)

    def test_monetized_keeps_delta_and_gamma_in_points(self):
        greeks = GreeksVector(0.5, 0.01, -2.0, 10.0).monetized(5)
        assert greeks == GreeksVector(0.5, 0.01, -10.0, 50.0)
