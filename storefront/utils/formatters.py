"""
Formatting helpers for prices and order statuses.
Display locale is Turkish: dot for thousands, comma for decimals.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union, Dict

CENT = Decimal('0.01')


def to_decimal(value: Union[int, float, Decimal, str, None]) -> Decimal:
    """
    Coerce a numeric value to Decimal without float artefacts.

    Raises:
        ValueError: if the value is not numeric.
    """
    if isinstance(value, Decimal):
        return value
    if value is None or value == "":
        raise ValueError('A numeric value is required')
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValueError(f'Not a number: {value!r}')


def quantize_money(value: Union[int, float, Decimal, str]) -> Decimal:
    """Round to cents, half-up (commercial rounding)."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def money_tr(value: Union[int, float, Decimal, str, None]) -> str:
    """
    Format an amount with exactly 2 decimals, Turkish style.

    Examples:
        money_tr(1234567.891) -> "1.234.567,89"
        money_tr(0) -> "0,00"
        money_tr(None) -> "-"
    """
    if value is None or value == "":
        return "-"

    try:
        num = quantize_money(value)
    except ValueError:
        return "-"

    sign = "-" if num < 0 else ""
    num = abs(num)

    integer_part, decimal_part = f"{num:.2f}".split(".")
    reversed_int = integer_part[::-1]
    groups = [reversed_int[i:i+3] for i in range(0, len(reversed_int), 3)]
    integer_formatted = '.'.join(groups)[::-1]

    return f"{sign}{integer_formatted},{decimal_part}"


ORDER_STATUS_LABELS: Dict[str, str] = {
    'pending': 'Sipariş Alındı',
    'pending_payment': 'Sipariş Alındı',
    'processing': 'Hazırlanıyor',
    'processed': 'Hazırlanıyor',
    'approved': 'Hazırlanıyor',
    'shipped': 'Kargolandı',
    'delivered': 'Teslim Edildi',
    'cancelled': 'İptal Edildi',
    'returned': 'İade Edildi',
}


def order_status_label(status: str) -> str:
    """Customer-facing label; unknown statuses are shown verbatim."""
    return ORDER_STATUS_LABELS.get(status, status)
