"""Fixed-precision currency arithmetic.

Amounts are ``Decimal`` values quantized to cents. Conversions refuse to drop
significant digits: ``Decimal("10.005")`` is not a currency amount and raises
``MoneyPrecisionError`` instead of being rounded.
"""

from decimal import ROUND_HALF_UP, Context, Decimal, Inexact, InvalidOperation

SCALE = 2
CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# Absolute tolerance for display/legacy comparisons of amounts.
EPSILON = Decimal("0.01")

# Largest amount a Numeric(12, 2) column holds
MAX_AMOUNT = Decimal("9999999999.99")

_EXACT = Context(prec=28, traps=[Inexact, InvalidOperation])

MoneyInput = Decimal | int | str | float


class MoneyPrecisionError(ArithmeticError):
    """Raised when a value cannot be represented exactly at cent precision."""


def to_money(value: MoneyInput) -> Decimal:
    """Convert ``value`` to a 2-dp Decimal without losing precision."""
    if isinstance(value, bool):
        raise MoneyPrecisionError(f"{value!r} is not a monetary amount")
    if isinstance(value, float):
        # Go through str() so 0.1 becomes Decimal("0.1"), not its binary expansion
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise MoneyPrecisionError(f"{value!r} is not a monetary amount") from None

    if not amount.is_finite():
        raise MoneyPrecisionError(f"{value!r} is not a finite amount")
    if abs(amount) > MAX_AMOUNT:
        raise MoneyPrecisionError(f"{value} exceeds the maximum amount {MAX_AMOUNT}")

    try:
        return amount.quantize(CENT, context=_EXACT)
    except (Inexact, InvalidOperation):
        raise MoneyPrecisionError(
            f"{value} has more than {SCALE} fractional digits"
        ) from None


def from_storage(value: MoneyInput | None) -> Decimal:
    """Read a persisted numeric back into a 2-dp Decimal.

    Some backends (SQLite) hand back binary floats; those are rounded half-up
    to the nearest cent. Only use this at the persistence boundary.
    """
    if value is None:
        return ZERO
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def add(*amounts: MoneyInput) -> Decimal:
    total = ZERO
    for amount in amounts:
        total += to_money(amount)
    return to_money(total)


def subtract(a: MoneyInput, b: MoneyInput) -> Decimal:
    return to_money(to_money(a) - to_money(b))


def multiply(amount: MoneyInput, factor: Decimal | int | str) -> Decimal:
    """Multiply by a scalar; the product must still be exact at cent precision."""
    product = to_money(amount) * Decimal(factor)
    return to_money(product)


def compare(a: MoneyInput, b: MoneyInput) -> int:
    """Return -1, 0 or 1 as ``a`` is less than, equal to or greater than ``b``."""
    return int(to_money(a).compare(to_money(b)))


def _as_decimal(value: MoneyInput) -> Decimal:
    return Decimal(str(value)) if isinstance(value, float) else Decimal(value)


def is_effectively_zero(amount: MoneyInput) -> bool:
    return abs(_as_decimal(amount)) < EPSILON


def approx_equal(a: MoneyInput, b: MoneyInput) -> bool:
    return is_effectively_zero(_as_decimal(a) - _as_decimal(b))


def format_money(amount: MoneyInput) -> str:
    return f"{to_money(amount):.2f}"
