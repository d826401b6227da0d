"""Money helpers for the single-currency (EUR) balance model."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from app.utils.errors import InvalidInputError

CURRENCY = "EUR"
MINOR_UNITS = 100
CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Any) -> Decimal:
    """Coerce a stored or gateway-reported figure into a 2dp Decimal.

    Floats are routed through ``str`` so PostgREST numerics such as ``9.99``
    do not pick up binary noise.
    """
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value))
        except (InvalidOperation, ValueError) as exc:
            raise InvalidInputError(f"Invalid amount: {value!r}") from exc
    if not amount.is_finite():
        raise InvalidInputError(f"Invalid amount: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_positive_amount(value: Any, label: str = "amount") -> Decimal:
    """Validate a client-supplied amount: finite, positive, at most 2 decimals."""
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidInputError(f"Invalid {label}") from exc
    if not amount.is_finite() or amount <= 0:
        raise InvalidInputError(f"Invalid {label}")
    if amount != amount.quantize(CENT):
        raise InvalidInputError(f"Invalid {label}: at most 2 decimal places")
    return amount.quantize(CENT)


def to_minor_units(amount: Decimal) -> int:
    """Convert major units to gateway cents."""
    return int((to_money(amount) * MINOR_UNITS).to_integral_value(rounding=ROUND_HALF_UP))


def from_minor_units(cents: int | None) -> Decimal:
    """Convert gateway cents back to major units."""
    return to_money(Decimal(int(cents or 0)) / MINOR_UNITS)


def money_str(amount: Decimal) -> str:
    """Render an amount the way it travels in JSON and gateway metadata."""
    return f"{to_money(amount):.2f}"
