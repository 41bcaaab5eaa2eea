"""
Conversions centimes <-> dollars.
Les montants circulent en centimes entiers; les dollars n'apparaissent
qu'aux frontières (API Shopify, réponses de taxe).
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

CENT = Decimal("0.01")


def round_half_up(value: Any, quantum: Decimal = CENT) -> Decimal:
    return Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)


def cents_to_dollars(cents: Optional[int]) -> str:
    """1 -> "0.01", None -> "0.00"."""
    if cents is None:
        return "0.00"
    return f"{(Decimal(int(cents)) / 100).quantize(CENT, rounding=ROUND_HALF_UP)}"


def dollars_to_cents(value: Any) -> int:
    """"0.01" -> 1, 12.5 -> 1250. Lève ValueError si non numérique."""
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, AttributeError):
        raise ValueError(f"not a dollar amount: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"not a dollar amount: {value!r}")
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
