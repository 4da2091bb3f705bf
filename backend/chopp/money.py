"""
Money helpers.

All amounts are integer cents. Formatting is display-only (Brazilian real);
nothing in the services depends on the formatted string.
"""
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP


def percent_of(amount_cents: int, percent) -> int:
    """`amount_cents * percent / 100`, rounded half-up to the cent."""
    value = Decimal(amount_cents) * Decimal(str(percent)) / Decimal(100)
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def format_brl(cents: int) -> str:
    """12345 -> 'R$ 123,45', 123456789 -> 'R$ 1.234.567,89'."""
    sign = "-" if cents < 0 else ""
    text = f"{abs(cents) / 100:,.2f}"
    # swap US separators for pt-BR ones
    text = text.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{sign}R$ {text}"
