from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from ..exceptions import ValidationFailedError

CENTS = Decimal("0.01")
MAX_PRICE = Decimal("999999.99")


def to_price(value) -> Decimal:
    """Coerce user input to a positive two-decimal amount."""
    try:
        price = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationFailedError(f"Invalid price: {value}")
    # NaN and Infinity parse fine but cannot be quantized or compared
    if not price.is_finite():
        raise ValidationFailedError(f"Invalid price: {value}")
    price = price.quantize(CENTS, rounding=ROUND_HALF_UP)
    if price <= 0 or price > MAX_PRICE:
        raise ValidationFailedError(f"Price must be between 0.01 and {MAX_PRICE}")
    return price
