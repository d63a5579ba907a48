"""Colombian formatting helpers shared by the HTML and PDF renderers."""
from __future__ import annotations

import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

PLACEHOLDER = '_______________'
SHORT_DATE_PLACEHOLDER = '___/___/______'

MONTHS = [
    'enero', 'febrero', 'marzo', 'abril', 'mayo', 'junio',
    'julio', 'agosto', 'septiembre', 'octubre', 'noviembre', 'diciembre',
]

Number = Union[Decimal, int, float, str, None]


def to_decimal(value: Number) -> Decimal:
    if value in (None, ''):
        return Decimal('0')
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def format_cop(value: Number) -> str:
    """``1234567.5`` -> ``$ 1.234.568`` (pesos, no decimals, dot grouping)."""
    amount = to_decimal(value).quantize(Decimal('1'), rounding=ROUND_HALF_UP)
    sign = '-' if amount < 0 else ''
    grouped = f"{abs(int(amount)):,}".replace(',', '.')
    return f"{sign}$ {grouped}"


def format_percent(value: Number) -> str:
    return f"{to_decimal(value).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)}".replace('.', ',') + ' %'


def month_name(d: Optional[datetime.date]) -> str:
    return MONTHS[d.month - 1] if d else ''


def format_long_date(d: Optional[datetime.date]) -> str:
    """``2025-03-05`` -> ``05 de marzo de 2025``."""
    if not d:
        return PLACEHOLDER
    return f"{d.day:02d} de {MONTHS[d.month - 1]} de {d.year}"


def format_short_date(d: Optional[datetime.date]) -> str:
    if not d:
        return SHORT_DATE_PLACEHOLDER
    return d.strftime('%d/%m/%Y')


def or_placeholder(value) -> str:
    text = str(value).strip() if value is not None else ''
    return text or PLACEHOLDER
