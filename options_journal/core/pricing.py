"""
Options Pricing Module for the Options Journal

This module provides the Black-Scholes pricing kernel, analytical Greeks and
the implied volatility solver used by every other part of the engine.

Mathematical Framework:
    The Black-Scholes model assumes:
    - European-style options (no early exercise)
    - Log-normal distribution of underlying returns
    - Constant volatility and risk-free rate
    - No dividends (total return index)

Key Formulas:
    Call Price: C = S*N(d1) - K*exp(-rT)*N(d2)
    Put Price:  P = K*exp(-rT)*N(-d2) - S*N(-d1)

    where:
        d1 = [ln(S/K) + (r + sigma^2/2)*T] / (sigma*sqrt(T))
        d2 = d1 - sigma*sqrt(T)
        N(x) = cumulative standard normal distribution

Units:
    - rate is a decimal (0.02 for 2%)
    - vol_pct is a percentage (15.0 for 15%) and is divided by 100 internally
    - theta is per calendar day, vega per 1 vol point, rho per 1 rate point
    - gamma is per 1 point of spot

Expiry Boundary:
    When T <= 0 the kernel returns intrinsic value through an explicit
    branch. The closed form divides by sqrt(T) and is undefined there.

Usage:
    from options_journal.core.pricing import price_option, implied_volatility

    valuation = price_option(
        spot=20000, strike=21000, time_to_expiry=0.25, rate=0.02,
        vol_pct=15.0, kind='call'
    )
    result = implied_volatility(
        observed_price=valuation.price, spot=20000, strike=21000,
        time_to_expiry=0.25, rate=0.02, kind='call'
    )
    print(result.volatility_pct)

References:
    - Black, F., & Scholes, M. (1973). The Pricing of Options and Corporate Liabilities.
    - Hull, J. C. (2018). Options, Futures, and Other Derivatives.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

import numpy as np
from scipy.optimize import brentq
from scipy.stats import norm

from options_journal.core.exceptions import (
    ImpliedVolatilityError,
    InvalidInputError,
)
from options_journal.core.expiry import DAYS_PER_YEAR

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# IV solver parameters (volatility in percent, tolerance in price points)
IV_INITIAL_GUESS_PCT = 20.0
IV_MAX_ITERATIONS = 100
IV_PRICE_TOLERANCE = 1e-4
IV_LOWER_BOUND_PCT = 0.1
IV_UPPER_BOUND_PCT = 500.0

# Below this vega (points per vol point) Newton steps are unreliable
MIN_NEWTON_VEGA = 1e-8

# Consecutive Newton steps allowed to land outside the bracket
MAX_OUT_OF_BRACKET_STEPS = 3


# =============================================================================
# Option Kind
# =============================================================================

class OptionKind(str, Enum):
    """Option right."""

    CALL = "call"
    PUT = "put"

    @classmethod
    def parse(cls, value: Union[str, 'OptionKind']) -> 'OptionKind':
        """
        Parse 'call'/'put' in any case, or the 'c'/'p' shorthands.

        Raises:
            InvalidInputError: If the value is not a recognised option kind.
        """
        if isinstance(value, OptionKind):
            return value
        if not isinstance(value, str):
            raise InvalidInputError(
                f"option kind must be 'call' or 'put', got {value!r}"
            )
        normalized = value.lower().strip()
        if normalized in ('call', 'c'):
            return cls.CALL
        if normalized in ('put', 'p'):
            return cls.PUT
        raise InvalidInputError(f"option kind must be 'call' or 'put', got '{value}'")


# =============================================================================
# Results
# =============================================================================

@dataclass(frozen=True)
class OptionValuation:
    """
    Price and Greeks of a single option contract, in points.

    Attributes:
        price: Option value
        delta: dV/dS
        gamma: dDelta/dS, per point of spot
        theta: Daily time decay (per calendar day)
        vega: Price change per 1 percentage point of volatility
        rho: Price change per 1 percentage point of rate
    """

    price: float
    delta: float
    gamma: float
    theta: float
    vega: float
    rho: float


class ImpliedVolatilityStatus(str, Enum):
    """Outcome of an implied volatility solve."""

    CONVERGED = "converged"
    EXPIRED = "expired"
    BELOW_RANGE = "below_range"
    ABOVE_RANGE = "above_range"
    NON_CONVERGENCE = "non_convergence"


@dataclass(frozen=True)
class ImpliedVolatilityResult:
    """
    Result of implied_volatility().

    Failures are reported through status rather than raised so that a
    caller iterating over many legs can branch on them.

    Attributes:
        volatility_pct: Solved volatility in percent, None on failure
        status: Outcome of the solve
        iterations: Total iterations spent (Newton plus bracketing)
        method: 'newton' or 'bisection' when converged, None otherwise
    """

    volatility_pct: Optional[float]
    status: ImpliedVolatilityStatus
    iterations: int = 0
    method: Optional[str] = None

    @property
    def converged(self) -> bool:
        return self.status == ImpliedVolatilityStatus.CONVERGED

    def unwrap(self) -> float:
        """
        Return the volatility or raise.

        Raises:
            ImpliedVolatilityError: If the solve did not converge.
        """
        if not self.converged or self.volatility_pct is None:
            raise ImpliedVolatilityError(
                f"Implied volatility unavailable: {self.status.value} "
                f"after {self.iterations} iterations"
            )
        return self.volatility_pct


# =============================================================================
# Helper Functions
# =============================================================================

def _validate_inputs(
    spot: float,
    strike: float,
    time_to_expiry: float,
    rate: float,
    vol_pct: float
) -> None:
    """
    Validate kernel inputs.

    Raises:
        InvalidInputError: If any input is missing, non-finite or
            outside its domain.
    """
    if spot is None or strike is None or time_to_expiry is None or rate is None or vol_pct is None:
        raise InvalidInputError("All pricing parameters must be provided (none can be None)")

    if not math.isfinite(spot) or spot <= 0:
        raise InvalidInputError(f"Spot price must be positive and finite, got {spot}")

    if not math.isfinite(strike) or strike <= 0:
        raise InvalidInputError(f"Strike price must be positive and finite, got {strike}")

    if not math.isfinite(time_to_expiry):
        raise InvalidInputError(f"Time to expiry must be finite, got {time_to_expiry}")

    if not math.isfinite(rate):
        raise InvalidInputError(f"Risk-free rate must be finite, got {rate}")

    if not math.isfinite(vol_pct) or vol_pct <= 0:
        raise InvalidInputError(f"Volatility must be positive and finite, got {vol_pct}")


def _calculate_d1_d2(
    spot: float,
    strike: float,
    time_to_expiry: float,
    rate: float,
    sigma: float
) -> Tuple[float, float]:
    """
    Calculate d1 and d2 for a strictly positive time to expiry.

    Args:
        sigma: Volatility as a decimal.
    """
    sigma_sqrt_t = sigma * math.sqrt(time_to_expiry)
    d1 = (math.log(spot / strike) + (rate + 0.5 * sigma ** 2) * time_to_expiry) / sigma_sqrt_t
    d2 = d1 - sigma_sqrt_t
    return d1, d2


def intrinsic_value(spot: float, strike: float, kind: Union[str, OptionKind]) -> float:
    """
    Exercise value of an option: max(0, S - K) for a call, max(0, K - S) for a put.
    """
    if OptionKind.parse(kind) == OptionKind.CALL:
        return max(0.0, spot - strike)
    return max(0.0, strike - spot)


def _expired_valuation(spot: float, strike: float, kind: OptionKind) -> OptionValuation:
    """Valuation at or after expiry: intrinsic value and step delta."""
    if kind == OptionKind.CALL:
        delta = 1.0 if spot > strike else 0.0
    else:
        delta = -1.0 if spot < strike else 0.0

    return OptionValuation(
        price=intrinsic_value(spot, strike, kind),
        delta=delta,
        gamma=0.0,
        theta=0.0,
        vega=0.0,
        rho=0.0,
    )


# =============================================================================
# Black-Scholes Kernel
# =============================================================================

def price_option(
    spot: float,
    strike: float,
    time_to_expiry: float,
    rate: float,
    vol_pct: float,
    kind: Union[str, OptionKind]
) -> OptionValuation:
    """
    Price a European option and compute its Greeks.

    Greeks:
        Delta: N(d1) for calls, N(d1) - 1 for puts
        Gamma: N'(d1) / (S * sigma * sqrt(T))
        Theta: [-S*N'(d1)*sigma/(2*sqrt(T)) -/+ r*K*exp(-rT)*N(+/-d2)] / 365
        Vega:  S * N'(d1) * sqrt(T) / 100
        Rho:   +/-K * T * exp(-rT) * N(+/-d2) / 100

    Args:
        spot: Spot price of the underlying, > 0
        strike: Strike price, > 0
        time_to_expiry: Time to expiry in years. Values <= 0 take the
            expiry branch.
        rate: Risk-free rate as a decimal
        vol_pct: Volatility in percent, > 0
        kind: 'call' or 'put'

    Returns:
        OptionValuation with price and Greeks in points.

    Raises:
        InvalidInputError: If any input is invalid.

    Example:
        >>> v = price_option(100, 100, 0.25, 0.05, 20.0, 'call')
        >>> round(v.price, 2)
        4.61
    """
    option_kind = OptionKind.parse(kind)
    _validate_inputs(spot, strike, time_to_expiry, rate, vol_pct)

    if time_to_expiry <= 0:
        logger.debug(
            f"Expired {option_kind.value} K={strike}: returning intrinsic value"
        )
        return _expired_valuation(spot, strike, option_kind)

    sigma = vol_pct / 100.0
    sqrt_t = math.sqrt(time_to_expiry)
    d1, d2 = _calculate_d1_d2(spot, strike, time_to_expiry, rate, sigma)

    discount_factor = math.exp(-rate * time_to_expiry)
    pdf_d1 = float(norm.pdf(d1))

    # Time decay component (always negative)
    time_decay = -spot * pdf_d1 * sigma / (2.0 * sqrt_t)

    if option_kind == OptionKind.CALL:
        cdf_d1 = float(norm.cdf(d1))
        cdf_d2 = float(norm.cdf(d2))
        price = spot * cdf_d1 - strike * discount_factor * cdf_d2
        delta = cdf_d1
        theta_annual = time_decay - rate * strike * discount_factor * cdf_d2
        rho_per_unit = strike * time_to_expiry * discount_factor * cdf_d2
    else:
        cdf_minus_d1 = float(norm.cdf(-d1))
        cdf_minus_d2 = float(norm.cdf(-d2))
        price = strike * discount_factor * cdf_minus_d2 - spot * cdf_minus_d1
        delta = float(norm.cdf(d1)) - 1.0
        theta_annual = time_decay + rate * strike * discount_factor * cdf_minus_d2
        rho_per_unit = -strike * time_to_expiry * discount_factor * cdf_minus_d2

    return OptionValuation(
        # Non-negative despite rounding in the far wings
        price=max(price, 0.0),
        delta=delta,
        gamma=pdf_d1 / (spot * sigma * sqrt_t),
        theta=theta_annual / DAYS_PER_YEAR,
        vega=spot * pdf_d1 * sqrt_t / 100.0,
        rho=rho_per_unit / 100.0,
    )


def price_option_vectorized(
    spots: np.ndarray,
    strike: float,
    time_to_expiry: float,
    rate: float,
    vol_pct: float,
    kind: Union[str, OptionKind]
) -> np.ndarray:
    """
    Price one contract across an array of spot prices.

    Uses the same formulas and the same expiry branch as price_option(),
    so element i equals price_option(spots[i], ...).price.

    Args:
        spots: Array of spot prices, all > 0
        strike: Strike price
        time_to_expiry: Time to expiry in years
        rate: Risk-free rate as a decimal
        vol_pct: Volatility in percent
        kind: 'call' or 'put'

    Returns:
        Array of option prices.

    Raises:
        InvalidInputError: If any spot or parameter is invalid.
    """
    option_kind = OptionKind.parse(kind)
    spots = np.asarray(spots, dtype=np.float64)

    if spots.size and (not np.all(np.isfinite(spots)) or np.any(spots <= 0)):
        raise InvalidInputError("All spot prices must be positive and finite")
    _validate_inputs(1.0, strike, time_to_expiry, rate, vol_pct)

    if time_to_expiry <= 0:
        if option_kind == OptionKind.CALL:
            return np.maximum(spots - strike, 0.0)
        return np.maximum(strike - spots, 0.0)

    sigma = vol_pct / 100.0
    sigma_sqrt_t = sigma * np.sqrt(time_to_expiry)
    d1 = (np.log(spots / strike) + (rate + 0.5 * sigma ** 2) * time_to_expiry) / sigma_sqrt_t
    d2 = d1 - sigma_sqrt_t
    discounted_strike = strike * np.exp(-rate * time_to_expiry)

    if option_kind == OptionKind.CALL:
        prices = spots * norm.cdf(d1) - discounted_strike * norm.cdf(d2)
    else:
        prices = discounted_strike * norm.cdf(-d2) - spots * norm.cdf(-d1)

    return np.maximum(prices, 0.0)


# =============================================================================
# Implied Volatility Calculation
# =============================================================================

def implied_volatility(
    observed_price: float,
    spot: float,
    strike: float,
    time_to_expiry: float,
    rate: float,
    kind: Union[str, OptionKind],
    initial_guess_pct: float = IV_INITIAL_GUESS_PCT,
    tolerance: float = IV_PRICE_TOLERANCE,
    max_iterations: int = IV_MAX_ITERATIONS,
    lower_bound_pct: float = IV_LOWER_BOUND_PCT,
    upper_bound_pct: float = IV_UPPER_BOUND_PCT
) -> ImpliedVolatilityResult:
    """
    Recover the volatility that reproduces an observed option price.

    Newton-Raphson runs first, in percentage units so the kernel's vega
    (per vol point) is the derivative directly. If Newton stalls, keeps
    leaving the bracket or meets a near-zero vega, Brent's bracketed method
    takes over on [lower_bound_pct, upper_bound_pct].

    Args:
        observed_price: Option price in points, >= 0
        spot: Spot price, > 0
        strike: Strike price, > 0
        time_to_expiry: Time to expiry in years
        rate: Risk-free rate as a decimal
        kind: 'call' or 'put'
        initial_guess_pct: Newton seed in percent. Default 20.
        tolerance: Convergence tolerance on price, in points. Default 1e-4.
        max_iterations: Iteration budget for each method. Default 100.
        lower_bound_pct: Lower edge of the volatility bracket. Default 0.1.
        upper_bound_pct: Upper edge of the volatility bracket. Default 500.

    Returns:
        ImpliedVolatilityResult. Expired options, prices outside the range
        reachable inside the bracket and exhausted budgets are reported in
        its status.

    Raises:
        InvalidInputError: If the price or market inputs are invalid.

    Example:
        >>> price = price_option(100, 100, 0.25, 0.05, 20.0, 'call').price
        >>> round(implied_volatility(price, 100, 100, 0.25, 0.05, 'call').volatility_pct, 2)
        20.0
    """
    option_kind = OptionKind.parse(kind)

    if observed_price is None or not math.isfinite(observed_price) or observed_price < 0:
        raise InvalidInputError(
            f"observed_price must be non-negative and finite, got {observed_price}"
        )
    if not 0 < lower_bound_pct < upper_bound_pct:
        raise InvalidInputError(
            f"Invalid volatility bracket [{lower_bound_pct}, {upper_bound_pct}]"
        )
    _validate_inputs(spot, strike, time_to_expiry, rate, initial_guess_pct)

    if time_to_expiry <= 0:
        return ImpliedVolatilityResult(None, ImpliedVolatilityStatus.EXPIRED)

    def objective(vol_pct: float) -> float:
        return price_option(spot, strike, time_to_expiry, rate, vol_pct, option_kind).price - observed_price

    # Price is monotonic in volatility, so the bracket edges bound what is reachable
    f_lower = objective(lower_bound_pct)
    f_upper = objective(upper_bound_pct)

    if f_lower > tolerance:
        logger.warning(
            f"Price {observed_price:.4f} is below the model price at "
            f"{lower_bound_pct}% vol (K={strike}, {option_kind.value})"
        )
        return ImpliedVolatilityResult(None, ImpliedVolatilityStatus.BELOW_RANGE)
    if f_upper < -tolerance:
        logger.warning(
            f"Price {observed_price:.4f} exceeds the model price at "
            f"{upper_bound_pct}% vol (K={strike}, {option_kind.value})"
        )
        return ImpliedVolatilityResult(None, ImpliedVolatilityStatus.ABOVE_RANGE)

    # Newton-Raphson
    vol_pct = min(max(initial_guess_pct, lower_bound_pct), upper_bound_pct)
    out_of_bracket = 0
    iterations = 0

    for iterations in range(1, max_iterations + 1):
        valuation = price_option(spot, strike, time_to_expiry, rate, vol_pct, option_kind)
        price_diff = valuation.price - observed_price

        if abs(price_diff) < tolerance:
            return ImpliedVolatilityResult(
                vol_pct, ImpliedVolatilityStatus.CONVERGED, iterations, 'newton'
            )

        if valuation.vega < MIN_NEWTON_VEGA:
            logger.debug(f"Vega {valuation.vega:.2e} too small at {vol_pct:.4f}%, switching to bracketing")
            break

        next_vol = vol_pct - price_diff / valuation.vega

        if next_vol < lower_bound_pct or next_vol > upper_bound_pct:
            out_of_bracket += 1
            if out_of_bracket >= MAX_OUT_OF_BRACKET_STEPS:
                logger.debug("Newton kept leaving the volatility bracket, switching to bracketing")
                break
            next_vol = min(max(next_vol, lower_bound_pct), upper_bound_pct)
        else:
            out_of_bracket = 0

        vol_pct = next_vol
    else:
        logger.debug("Newton's method did not converge, falling back to Brent's method")

    # Bracketed fallback
    if f_lower * f_upper > 0:
        # No sign change: the price sits within tolerance of a bracket edge
        edge_pct = lower_bound_pct if abs(f_lower) <= abs(f_upper) else upper_bound_pct
        return ImpliedVolatilityResult(
            edge_pct, ImpliedVolatilityStatus.CONVERGED, iterations, 'bisection'
        )

    root, info = brentq(
        objective,
        lower_bound_pct,
        upper_bound_pct,
        xtol=1e-12,
        maxiter=max_iterations,
        full_output=True,
        disp=False,
    )
    total_iterations = iterations + info.iterations

    if info.converged and abs(objective(root)) < tolerance:
        return ImpliedVolatilityResult(
            float(root), ImpliedVolatilityStatus.CONVERGED, total_iterations, 'bisection'
        )

    logger.warning(
        f"Implied volatility did not converge for price {observed_price:.4f} "
        f"(K={strike}, T={time_to_expiry:.4f}, {option_kind.value})"
    )
    return ImpliedVolatilityResult(
        None, ImpliedVolatilityStatus.NON_CONVERGENCE, total_iterations
    )


# =============================================================================
# Module Exports
# =============================================================================

__all__ = [
    # Types
    'OptionKind',
    'OptionValuation',
    'ImpliedVolatilityStatus',
    'ImpliedVolatilityResult',

    # Kernel
    'intrinsic_value',
    'price_option',
    'price_option_vectorized',

    # Implied volatility
    'implied_volatility',

    # Constants
    'IV_INITIAL_GUESS_PCT',
    'IV_MAX_ITERATIONS',
    'IV_PRICE_TOLERANCE',
    'IV_LOWER_BOUND_PCT',
    'IV_UPPER_BOUND_PCT',
]
