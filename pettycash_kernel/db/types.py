"""Money helpers. All amounts are Decimal quantized to cents."""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# Numeric(12, 2) holds at most ten integer digits.
MAX_MONEY = Decimal("9999999999.99")


def to_money(value) -> Decimal | None:
    """Coerce a number-like value to a cent-quantized Decimal.

    None stays None. Floats go through str() so 45.1 becomes 45.10, not
    45.099999...
    """
    if value is None:
        return None
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, float):
        amount = Decimal(str(value))
    else:
        try:
            amount = Decimal(value)
        except (InvalidOperation, TypeError) as exc:
            raise ValueError(f"Not a monetary amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"Not a monetary amount: {value!r}")
    try:
        amount = round_money(amount)
    except InvalidOperation as exc:
        raise ValueError(f"Monetary amount out of range: {value!r}") from exc
    if abs(amount) > MAX_MONEY:
        raise ValueError(f"Monetary amount out of range: {value!r}")
    return amount


def round_money(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def sum_money(amounts) -> Decimal:
    """Sum amounts, treating None as zero."""
    total = ZERO
    for amount in amounts:
        if amount is not None:
            total += amount
    return round_money(total)
