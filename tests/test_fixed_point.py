"""
Test suite for 64.64 fixed-point arithmetic
"""

import pytest

from lending_core.fixed_point import Fixed64x64
from lending_core.exceptions import FixedPointOverflow, DivisionByZero, InvalidAmount


ONE = Fixed64x64.ONE


class TestConversion:
    """Test integer conversion bounds"""
    
    def test_from_int(self):
        assert Fixed64x64.from_int(0) == 0
        assert Fixed64x64.from_int(3) == 3 << 64
        assert Fixed64x64.to_int(Fixed64x64.from_int(12345)) == 12345
    
    def test_from_int_upper_bound(self):
        assert Fixed64x64.from_int(2 ** 63 - 1) == (2 ** 63 - 1) << 64
        with pytest.raises(FixedPointOverflow):
            Fixed64x64.from_int(2 ** 63)
    
    def test_from_int_rejects_negative(self):
        with pytest.raises(FixedPointOverflow):
            Fixed64x64.from_int(-1)


class TestOperations:
    """Test arithmetic and range checks"""
    
    def test_add_and_mul(self):
        two = Fixed64x64.from_int(2)
        three = Fixed64x64.from_int(3)
        assert Fixed64x64.add(two, three) == Fixed64x64.from_int(5)
        assert Fixed64x64.mul(two, three) == Fixed64x64.from_int(6)
    
    def test_add_overflow(self):
        with pytest.raises(FixedPointOverflow):
            Fixed64x64.add(Fixed64x64.MAX, 1)
    
    def test_div(self):
        assert Fixed64x64.div(ONE, Fixed64x64.from_int(4)) == ONE // 4
        assert Fixed64x64.div(-ONE, Fixed64x64.from_int(2)) == -(ONE // 2)
    
    def test_div_by_zero(self):
        with pytest.raises(DivisionByZero):
            Fixed64x64.div(ONE, 0)
        with pytest.raises(DivisionByZero):
            Fixed64x64.div_int(1, 0)
    
    def test_div_int(self):
        assert Fixed64x64.div_int(1, 2) == ONE // 2
        assert Fixed64x64.div_int(10 ** 8, 10 ** 9) == (10 ** 8 << 64) // 10 ** 9


class TestPow:
    """Test exponentiation by repeated squaring"""
    
    def test_zero_exponent_is_one(self):
        assert Fixed64x64.pow(Fixed64x64.from_int(7), 0) == ONE
    
    def test_exact_powers(self):
        assert Fixed64x64.pow(Fixed64x64.from_int(2), 10) == Fixed64x64.from_int(1024)
        assert Fixed64x64.pow(ONE + ONE // 2, 3) == Fixed64x64.from_int(3) + 3 * ONE // 8
    
    def test_largest_representable_power(self):
        assert Fixed64x64.pow(Fixed64x64.from_int(2), 62) == 1 << 126
    
    def test_overflow_is_fatal(self):
        with pytest.raises(FixedPointOverflow):
            Fixed64x64.pow(Fixed64x64.from_int(2), 63)
    
    def test_negative_exponent_rejected(self):
        with pytest.raises(InvalidAmount):
            Fixed64x64.pow(ONE, -1)


class TestRounding:
    """Test conversion back to integers"""
    
    def test_mul_int_round_ties_up(self):
        assert Fixed64x64.mul_int_round(ONE // 2, 1) == 1
        assert Fixed64x64.mul_int_round(ONE // 2, 3) == 2
    
    def test_mul_int_round_below_half(self):
        assert Fixed64x64.mul_int_round(ONE // 4, 1) == 0
        assert Fixed64x64.mul_int_round(3 * ONE // 4, 1) == 1
