"""
Interest Accrual Module

Pure functions computing the balance of a principal after a number of loan
periods. Two formulas are supported:

- SIMPLE: ``balance + balance * rate * periods / factor``
- COMPOUND: ``balance * (1 + rate / factor) ** periods``

The compound formula is evaluated in 64.64 fixed point by repeated squaring
and is the authoritative strategy. ``calculate_outstanding_balance_iterative``
applies the rate period by period with integer rounding at each step; it is
kept as a reference and drifts from the closed form at high period counts.

All final conversions round to the nearest integer with ties rounding up.
"""

from enum import Enum
from typing import Union

from .exceptions import FormulaNotImplemented, DivisionByZero, InvalidAmount
from .fixed_point import Fixed64x64


class InterestFormula(Enum):
    """Interest accrual formulas"""
    SIMPLE = "simple"
    COMPOUND = "compound"


def resolve_formula(formula: Union[InterestFormula, str]) -> InterestFormula:
    if isinstance(formula, InterestFormula):
        return formula
    try:
        return InterestFormula(formula)
    except ValueError:
        raise FormulaNotImplemented(formula) from None


def round_half_up_div(numerator: int, denominator: int) -> int:
    """Integer division of non-negative values rounding to nearest, ties up"""
    if denominator == 0:
        raise DivisionByZero("round_half_up_div")
    return (2 * numerator + denominator) // (2 * denominator)


def round_math(value: int, accuracy: int) -> int:
    """
    Round value to the nearest multiple of accuracy, ties rounding up.
    
    With accuracy 10000: 104999 -> 100000, 105000 -> 110000.
    """
    if accuracy == 0:
        raise DivisionByZero("round_math")
    return round_half_up_div(value, accuracy) * accuracy


def calculate_period_index(timestamp: int, period_in_seconds: int, time_offset: int = 0) -> int:
    """Index of the loan period containing timestamp, shifted back by time_offset seconds"""
    if period_in_seconds <= 0:
        raise DivisionByZero("calculate_period_index")
    return (timestamp - time_offset) // period_in_seconds


def calculate_outstanding_balance(
    original_balance: int,
    number_of_periods: int,
    interest_rate: int,
    interest_rate_factor: int,
    formula: Union[InterestFormula, str] = InterestFormula.COMPOUND
) -> int:
    """
    Balance of ``original_balance`` after ``number_of_periods`` periods.
    
    Args:
        original_balance: Starting balance in base units
        number_of_periods: Elapsed periods, zero returns the balance unchanged
        interest_rate: Per-period rate scaled by interest_rate_factor
        interest_rate_factor: Rate scale, e.g. 10**9
        formula: InterestFormula or its string value
        
    Returns:
        Accrued balance rounded half up
        
    Raises:
        FormulaNotImplemented: formula is not SIMPLE or COMPOUND
        FixedPointOverflow: the compound growth factor leaves the 64.64 range
        DivisionByZero: interest_rate_factor is zero
        InvalidAmount: number_of_periods is negative
    """
    formula = resolve_formula(formula)
    if number_of_periods < 0:
        raise InvalidAmount(number_of_periods, "number of periods must be non-negative")
    if interest_rate_factor == 0:
        raise DivisionByZero("calculate_outstanding_balance")
    if number_of_periods == 0:
        return original_balance
    
    if formula == InterestFormula.SIMPLE:
        interest = round_half_up_div(
            original_balance * interest_rate * number_of_periods, interest_rate_factor
        )
        return original_balance + interest
    
    growth = Fixed64x64.add(
        Fixed64x64.ONE, Fixed64x64.div_int(interest_rate, interest_rate_factor)
    )
    growth = Fixed64x64.pow(growth, number_of_periods)
    return Fixed64x64.mul_int_round(growth, original_balance)


def calculate_outstanding_balance_iterative(
    original_balance: int,
    number_of_periods: int,
    interest_rate: int,
    interest_rate_factor: int
) -> int:
    """Reference compound accrual applying the rate once per period"""
    if interest_rate_factor == 0:
        raise DivisionByZero("calculate_outstanding_balance_iterative")
    balance = original_balance
    for _ in range(number_of_periods):
        balance = round_half_up_div(balance * (interest_rate_factor + interest_rate), interest_rate_factor)
    return balance


def accrue_balance(
    balance: int,
    from_period: int,
    to_period: int,
    due_period: int,
    interest_rate_primary: int,
    interest_rate_secondary: int,
    interest_rate_factor: int,
    formula: Union[InterestFormula, str] = InterestFormula.COMPOUND
) -> int:
    """
    Accrue balance from from_period to to_period.
    
    Periods before due_period use the primary rate, later periods the
    secondary rate. A to_period at or before from_period accrues nothing.
    """
    if to_period <= from_period:
        return balance
    
    primary_periods = max(0, min(to_period, due_period) - from_period)
    secondary_periods = max(0, to_period - max(from_period, due_period))
    
    if primary_periods:
        balance = calculate_outstanding_balance(
            balance, primary_periods, interest_rate_primary, interest_rate_factor, formula
        )
    if secondary_periods:
        balance = calculate_outstanding_balance(
            balance, secondary_periods, interest_rate_secondary, interest_rate_factor, formula
        )
    return balance
