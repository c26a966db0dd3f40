"""Number parsing utilities for Turkish formats."""
import re
from decimal import Decimal, InvalidOperation

TR_NUMBER_PATTERN = re.compile(r"^(?:\d{1,3}(?:\.\d{3})+|\d+)(?:,\d+)?$")


def parse_tr_number(value) -> Decimal:
    """
    Parse a number typed by an administrator (e.g. the exchange rate).

    Accepts Turkish format (1.234,56 / 35,50) and plain dotted decimals
    (35.50) as a fallback. Numbers pass straight through.

    Raises:
        ValueError: if the value is invalid, empty or negative.
    """
    if value is None:
        raise ValueError('Invalid format. Use 35,50 or 35.50')

    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        decimal_value = Decimal(str(value))
    else:
        cleaned = str(value).strip()
        if not cleaned:
            raise ValueError('Invalid format. Use 35,50 or 35.50')

        if TR_NUMBER_PATTERN.match(cleaned) and (',' in cleaned or cleaned.count('.') > 1):
            normalized = cleaned.replace('.', '').replace(',', '.')
        else:
            normalized = cleaned
        try:
            decimal_value = Decimal(normalized)
        except (InvalidOperation, ValueError):
            raise ValueError('Invalid format. Use 35,50 or 35.50')

    if not decimal_value.is_finite():
        raise ValueError('Invalid format. Use 35,50 or 35.50')
    if decimal_value < 0:
        raise ValueError('Value cannot be negative')

    return decimal_value
