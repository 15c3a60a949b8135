# utils/amounts.py
from decimal import Decimal, ROUND_DOWN, InvalidOperation

LEDGER_PLACES = Decimal("0.000000001")
DISPLAY_PLACES = Decimal("0.000001")


def to_decimal(value) -> Decimal:
    """Parse user or API input into a Decimal, raising ValueError on garbage."""
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, TypeError):
            raise ValueError(f"Not a number: {value!r}")
    if not result.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return result


def quantize_ledger(value) -> Decimal:
    return to_decimal(value).quantize(LEDGER_PLACES, rounding=ROUND_DOWN)


def format_amount(raw_amount, decimals: int = 9) -> str:
    """Smallest on-chain unit -> human string with 6 fractional digits."""
    value = to_decimal(raw_amount) / (Decimal(10) ** decimals)
    return str(value.quantize(DISPLAY_PLACES, rounding=ROUND_DOWN))


def to_smallest_unit(amount, decimals: int = 9) -> int:
    value = to_decimal(amount) * (Decimal(10) ** decimals)
    return int(value.to_integral_value(rounding=ROUND_DOWN))
