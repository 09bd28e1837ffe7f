from decimal import Decimal, InvalidOperation

from budgeting.config import settings
from budgeting.exceptions import InvalidAmountError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
AMOUNT_LIMIT = Decimal(10) ** (settings.AMOUNT_MAX_DIGITS - 2)


def to_amount(value: Decimal | int | float | str) -> Decimal:
    """Validate and normalise a money value to a 2-decimal Decimal.

    Raises InvalidAmountError for non-finite values, values with more than two
    fractional digits, and values that overflow NUMERIC(12, 2).
    """
    if isinstance(value, bool):
        raise InvalidAmountError(f"Invalid amount: {value!r}")
    try:
        # str() keeps floats like 0.1 at their shortest decimal representation
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidAmountError(f"Invalid amount: {value!r}") from None

    if not amount.is_finite():
        raise InvalidAmountError(f"Amount must be finite, got {value!r}")
    quantized = amount.quantize(CENT)
    if quantized != amount:
        raise InvalidAmountError(
            f"Amount must have at most 2 decimal places, got {value!r}"
        )
    if abs(quantized) >= AMOUNT_LIMIT:
        raise InvalidAmountError(f"Amount out of range: {value!r}")
    return quantized


def as_amount(value) -> Decimal:
    """Coerce a value read back from the database (None, float, Decimal) to 2 places."""
    if value is None:
        return ZERO
    return Decimal(str(value)).quantize(CENT)
