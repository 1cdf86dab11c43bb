"""
Rational -- Exact numerator/denominator value object.

Responsibility:
    Provides RationalValue, the single numeric type for every monetary
    amount, price and quantity handled by the kernel.  Arithmetic is exact
    integer arithmetic on (numerator, denominator) pairs; nothing is ever
    routed through float.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every other domain module, the assemblers and the SQL
    engine models.  No outward dependencies.

Invariants enforced:
    - denominator != 0 on every constructed value
    - numerator and denominator fit in a signed 64-bit integer
    - cross-multiplied products used for equality/ordering fit in 128 bits
    - values are NOT reduced on construction; equality is structural
      (a/b == c/d iff a*d == c*b), never component-wise

Failure modes:
    - DivisionByZeroError on a zero denominator, a zero divisor, or a sign
      query on a non-positive denominator
    - ArithmeticOverflowError when a result (or widened intermediate) leaves
      its representable range
    - ValueError on non-finite Decimal input

Audit relevance:
    The transaction balance check and the invoice subtotal/tax computation
    are decided exclusively with these operations.  to_approximate_float()
    exists for display and is never used in a decision.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Iterable

from ledger_kernel.exceptions import ArithmeticOverflowError, DivisionByZeroError

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1
INT128_MIN = -(2**127)
INT128_MAX = 2**127 - 1

# Enough significant digits to round any int64/int64 quotient exactly
_CONVERT_PRECISION = 80


def _check64(value: int, operation: str) -> int:
    if value < INT64_MIN or value > INT64_MAX:
        raise ArithmeticOverflowError(operation, value, 64)
    return value


def _check128(value: int, operation: str) -> int:
    if value < INT128_MIN or value > INT128_MAX:
        raise ArithmeticOverflowError(operation, value, 128)
    return value


@dataclass(frozen=True, slots=True, eq=False)
class RationalValue:
    """
    Exact rational number value object.

    Contract:
        A (numerator, denominator) pair of signed 64-bit integers with a
        nonzero denominator.  Construction never reduces the pair, so
        50.00 is typically carried as 5000/100.

    Guarantees:
        - Immutable; ``==`` and ``hash`` follow value equality, so
          ``RationalValue(1, 2) == RationalValue(50, 100)``.
        - Every arithmetic result is overflow-checked.

    Non-goals:
        - Does NOT carry a currency (multi-currency logic is out of scope).
        - Does NOT auto-round -- callers use convert() explicitly.
    """

    numerator: int
    denominator: int

    def __post_init__(self) -> None:
        for name in ("numerator", "denominator"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise TypeError(f"{name} must be int, got {type(value).__name__}")
        _check64(self.numerator, "make")
        _check64(self.denominator, "make")
        if self.denominator == 0:
            raise DivisionByZeroError(self.numerator, self.denominator, "make")

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def make(cls, numerator: int, denominator: int = 1) -> RationalValue:
        """
        Create a value from its components, unmodified.

        Raises:
            DivisionByZeroError: If denominator is 0.
            ArithmeticOverflowError: If a component does not fit in 64 bits.
        """
        return cls(numerator, denominator)

    @classmethod
    def zero(cls) -> RationalValue:
        """Return 0/1."""
        return cls(0, 1)

    @classmethod
    def from_int(cls, value: int) -> RationalValue:
        return cls(value, 1)

    @classmethod
    def from_decimal(cls, value: Decimal | str | int) -> RationalValue:
        """
        Convert a Decimal to an exact rational over a power of ten.

        ``Decimal("50.00")`` becomes 5000/100; the exponent of the Decimal
        decides the denominator, so trailing zeros are preserved.

        Raises:
            ValueError: If the value is NaN or infinite.
        """
        if isinstance(value, (str, int)):
            value = Decimal(str(value))
        if not value.is_finite():
            raise ValueError(f"Cannot convert non-finite Decimal: {value}")
        sign, digits, exponent = value.as_tuple()
        magnitude = int("".join(str(d) for d in digits) or "0")
        if sign:
            magnitude = -magnitude
        if exponent >= 0:
            return cls(magnitude * 10**exponent, 1)
        return cls(magnitude, 10**-exponent)

    # ------------------------------------------------------------------
    # Equality and ordering
    # ------------------------------------------------------------------

    @staticmethod
    def equals(a: RationalValue, b: RationalValue) -> bool:
        """
        Structural equality by cross-multiplication.

        Postconditions:
            Returns True iff a.numerator * b.denominator ==
            b.numerator * a.denominator.

        Raises:
            ArithmeticOverflowError: If a widened product exceeds 128 bits.
        """
        left = _check128(a.numerator * b.denominator, "equals")
        right = _check128(b.numerator * a.denominator, "equals")
        return left == right

    def compare(self, other: RationalValue) -> int:
        """Return -1, 0 or 1 as self is less than, equal to or greater than other."""
        left = _check128(self.numerator * other.denominator, "compare")
        right = _check128(other.numerator * self.denominator, "compare")
        difference = left - right
        # a/b - c/d has the sign of (ad - cb) * bd
        if (self.denominator < 0) != (other.denominator < 0):
            difference = -difference
        return (difference > 0) - (difference < 0)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RationalValue):
            return NotImplemented
        return RationalValue.equals(self, other)

    def __hash__(self) -> int:
        # Lowest terms in plain ints; INT64_MIN over -1 has no int64 reduction.
        divisor = math.gcd(self.numerator, self.denominator)
        numerator, denominator = self.numerator // divisor, self.denominator // divisor
        if denominator < 0:
            numerator, denominator = -numerator, -denominator
        return hash((numerator, denominator))

    def __lt__(self, other: RationalValue) -> bool:
        if not isinstance(other, RationalValue):
            return NotImplemented
        return self.compare(other) < 0

    def __le__(self, other: RationalValue) -> bool:
        if not isinstance(other, RationalValue):
            return NotImplemented
        return self.compare(other) <= 0

    def __gt__(self, other: RationalValue) -> bool:
        if not isinstance(other, RationalValue):
            return NotImplemented
        return self.compare(other) > 0

    def __ge__(self, other: RationalValue) -> bool:
        if not isinstance(other, RationalValue):
            return NotImplemented
        return self.compare(other) >= 0

    # ------------------------------------------------------------------
    # Sign
    # ------------------------------------------------------------------

    def _require_positive_denominator(self, operation: str) -> None:
        if self.denominator <= 0:
            raise DivisionByZeroError(self.numerator, self.denominator, operation)

    @property
    def is_zero(self) -> bool:
        """Check if the value is zero."""
        self._require_positive_denominator("is_zero")
        return self.numerator == 0

    @property
    def is_negative(self) -> bool:
        """Check if the value is negative."""
        self._require_positive_denominator("is_negative")
        return self.numerator < 0

    @property
    def is_positive(self) -> bool:
        """Check if the value is positive."""
        self._require_positive_denominator("is_positive")
        return self.numerator > 0

    def negate(self) -> RationalValue:
        """Flip the numerator's sign; the denominator is untouched."""
        return RationalValue(_check64(-self.numerator, "negate"), self.denominator)

    def absolute(self) -> RationalValue:
        """Absolute numerator; the denominator is untouched."""
        return RationalValue(_check64(abs(self.numerator), "absolute"), self.denominator)

    # ------------------------------------------------------------------
    # Arithmetic
    # ------------------------------------------------------------------

    def add(self, other: RationalValue) -> RationalValue:
        """
        Exact sum over a common denominator.

        Equal denominators add numerators directly; otherwise both sides are
        scaled to the least common multiple of the denominators, which is
        d1*d2 when they are coprime.

        Raises:
            ArithmeticOverflowError: If a scaled term or the result
                leaves the representable range.
        """
        if self.denominator == other.denominator:
            return RationalValue(
                _check64(self.numerator + other.numerator, "add"),
                self.denominator,
            )
        common = _check64(math.lcm(self.denominator, other.denominator), "add")
        left = _check128(self.numerator * (common // self.denominator), "add")
        right = _check128(other.numerator * (common // other.denominator), "add")
        return RationalValue(_check64(left + right, "add"), common)

    def subtract(self, other: RationalValue) -> RationalValue:
        return self.add(other.negate())

    def multiply(self, other: RationalValue) -> RationalValue:
        """Numerator x numerator over denominator x denominator, overflow-checked."""
        return RationalValue(
            _check64(self.numerator * other.numerator, "multiply"),
            _check64(self.denominator * other.denominator, "multiply"),
        )

    def divide(self, other: RationalValue) -> RationalValue:
        """
        Exact quotient; the result's denominator is made positive.

        Raises:
            DivisionByZeroError: If other is zero.
        """
        if other.numerator == 0:
            raise DivisionByZeroError(self.numerator, 0, "divide")
        numerator = self.numerator * other.denominator
        denominator = self.denominator * other.numerator
        if denominator < 0:
            numerator, denominator = -numerator, -denominator
        return RationalValue(
            _check64(numerator, "divide"),
            _check64(denominator, "divide"),
        )

    @classmethod
    def sum(cls, values: Iterable[RationalValue]) -> RationalValue:
        """
        Sum a sequence pairwise, overflow-checking every step.

        An empty sequence sums to zero().
        """
        total = cls.zero()
        for value in values:
            total = total.add(value)
        return total

    def reduce(self) -> RationalValue:
        """Lowest terms with a positive denominator."""
        divisor = math.gcd(self.numerator, self.denominator)
        numerator = self.numerator // divisor
        denominator = self.denominator // divisor
        if denominator < 0:
            numerator, denominator = -numerator, -denominator
        return RationalValue(_check64(numerator, "reduce"), _check64(denominator, "reduce"))

    def convert(self, denominator: int, rounding: str = ROUND_HALF_UP) -> RationalValue:
        """
        Re-express the value over a fixed denominator.

        Used to bring exact results onto a currency fraction (e.g. 100 for
        cents).  Rounding follows the given ``decimal`` rounding mode.

        Raises:
            DivisionByZeroError: If denominator is not positive.
        """
        if denominator <= 0:
            raise DivisionByZeroError(self.numerator, denominator, "convert")
        if denominator == self.denominator:
            return self
        with localcontext() as ctx:
            ctx.prec = _CONVERT_PRECISION
            scaled = Decimal(self.numerator * denominator) / Decimal(self.denominator)
            rounded = scaled.quantize(Decimal(1), rounding=rounding)
        return RationalValue(_check64(int(rounded), "convert"), denominator)

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def to_approximate_float(self) -> float:
        """Lossy float for display only."""
        return self.numerator / self.denominator

    def to_decimal(self, places: int | None = None) -> Decimal:
        """Decimal rendering, optionally quantized to ``places`` (ROUND_HALF_UP)."""
        with localcontext() as ctx:
            ctx.prec = _CONVERT_PRECISION
            value = Decimal(self.numerator) / Decimal(self.denominator)
            if places is not None:
                value = value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
        return value

    # ------------------------------------------------------------------
    # Operators
    # ------------------------------------------------------------------

    def __add__(self, other: RationalValue) -> RationalValue:
        if not isinstance(other, RationalValue):
            return NotImplemented
        return self.add(other)

    def __radd__(self, other: int) -> RationalValue:
        # Supports the builtin sum(), which starts from int 0
        if isinstance(other, int) and not isinstance(other, bool):
            return RationalValue.from_int(other).add(self)
        return NotImplemented

    def __sub__(self, other: RationalValue) -> RationalValue:
        if not isinstance(other, RationalValue):
            return NotImplemented
        return self.subtract(other)

    def __mul__(self, other: RationalValue | int) -> RationalValue:
        if isinstance(other, int) and not isinstance(other, bool):
            other = RationalValue.from_int(other)
        if not isinstance(other, RationalValue):
            return NotImplemented
        return self.multiply(other)

    def __rmul__(self, other: int) -> RationalValue:
        return self.__mul__(other)

    def __truediv__(self, other: RationalValue | int) -> RationalValue:
        if isinstance(other, int) and not isinstance(other, bool):
            other = RationalValue.from_int(other)
        if not isinstance(other, RationalValue):
            return NotImplemented
        return self.divide(other)

    def __neg__(self) -> RationalValue:
        return self.negate()

    def __abs__(self) -> RationalValue:
        return self.absolute()

    def __str__(self) -> str:
        if self.denominator == 1:
            return str(self.numerator)
        return f"{self.numerator}/{self.denominator}"

    def __repr__(self) -> str:
        return f"RationalValue({self.numerator}, {self.denominator})"
