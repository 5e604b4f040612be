"""
Signed 64.64 Fixed-Point Arithmetic

Values are Python ints holding ``real_value * 2**64``, bounded to the signed
128-bit range. Every operation checks its result and raises
FixedPointOverflow instead of wrapping or clamping.
"""

from .exceptions import FixedPointOverflow, DivisionByZero, InvalidAmount


class Fixed64x64:
    """Namespace for 64.64 fixed-point operations"""
    
    FRACTION_BITS = 64
    ONE = 1 << 64
    HALF = 1 << 63
    MIN = -(1 << 127)
    MAX = (1 << 127) - 1
    MAX_INT_INPUT = (1 << 63) - 1
    MAX_UINT256 = (1 << 256) - 1
    
    @classmethod
    def check(cls, value: int, operation: str) -> int:
        """Return value if it fits the signed 128-bit range"""
        if value < cls.MIN or value > cls.MAX:
            raise FixedPointOverflow(operation, value)
        return value
    
    @classmethod
    def from_int(cls, value: int) -> int:
        """Convert a non-negative integer below 2**63 to fixed point"""
        if value < 0 or value > cls.MAX_INT_INPUT:
            raise FixedPointOverflow("from_int", value)
        return value << cls.FRACTION_BITS
    
    @classmethod
    def to_int(cls, value: int) -> int:
        """Integer part, rounding toward negative infinity"""
        return value >> cls.FRACTION_BITS
    
    @classmethod
    def add(cls, x: int, y: int) -> int:
        return cls.check(x + y, "add")
    
    @classmethod
    def mul(cls, x: int, y: int) -> int:
        return cls.check((x * y) >> cls.FRACTION_BITS, "mul")
    
    @classmethod
    def div(cls, x: int, y: int) -> int:
        """Fixed-point quotient, truncated toward zero"""
        if y == 0:
            raise DivisionByZero("div")
        quotient = (abs(x) << cls.FRACTION_BITS) // abs(y)
        if (x < 0) != (y < 0):
            quotient = -quotient
        return cls.check(quotient, "div")
    
    @classmethod
    def div_int(cls, x: int, y: int) -> int:
        """Quotient of two non-negative integers as a fixed-point value"""
        if y == 0:
            raise DivisionByZero("div_int")
        if x < 0 or y < 0:
            raise FixedPointOverflow("div_int", x if x < 0 else y)
        return cls.check((x << cls.FRACTION_BITS) // y, "div_int")
    
    @classmethod
    def pow(cls, x: int, exponent: int) -> int:
        """
        Raise x to a non-negative integer power by repeated squaring.
        
        Each intermediate square and product is range-checked, so a base
        above one overflows loudly once the result leaves the 64.64 range.
        """
        if exponent < 0:
            raise InvalidAmount(exponent, "exponent must be non-negative")
        result = cls.ONE
        base = x
        while exponent:
            if exponent & 1:
                result = cls.mul(result, base)
            exponent >>= 1
            if exponent:
                base = cls.mul(base, base)
        return result
    
    @classmethod
    def mul_int_round(cls, x: int, value: int) -> int:
        """Multiply a non-negative fixed-point value by an integer, rounding half up"""
        if x < 0 or value < 0:
            raise FixedPointOverflow("mul_int_round", x if x < 0 else value)
        result = (x * value + cls.HALF) >> cls.FRACTION_BITS
        if result > cls.MAX_UINT256:
            raise FixedPointOverflow("mul_int_round", result)
        return result
