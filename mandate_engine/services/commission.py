"""Commission derivation. Never stored: always recomputed from the current rent."""

from __future__ import annotations

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

from mandate_engine.core.exceptions import ValidationError

Number = Union[int, float, Decimal]

MIN_RATE = Decimal("0")
MAX_RATE = Decimal("100")
# Matches the Numeric(5, 2) storage of agency_mandates.commission_rate
RATE_STEP = Decimal("0.01")


def _to_decimal(value: Number, label: str) -> Decimal:
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"{label} must be a number") from exc
    if not result.is_finite():
        raise ValidationError(f"{label} must be a finite number")
    return result


def validate_rate(rate: Number) -> Decimal:
    """Commission rate is a percentage in [0, 100] with at most two decimals."""
    value = _to_decimal(rate, "commission_rate")
    if value < MIN_RATE or value > MAX_RATE:
        raise ValidationError(f"commission_rate must be between 0 and 100, got {rate}")
    if value != value.quantize(RATE_STEP):
        raise ValidationError(f"commission_rate allows at most two decimal places, got {rate}")
    return value


def monthly_commission(rent: Number, rate: Number) -> int:
    """round(rent * rate / 100), half-up, to the nearest whole currency unit."""
    rent_value = _to_decimal(rent, "rent")
    if rent_value < 0:
        raise ValidationError(f"rent must not be negative, got {rent}")
    amount = rent_value * validate_rate(rate) / Decimal(100)
    return int(amount.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def aggregate_commission(rents: Iterable[Number], rate: Number) -> int:
    """Sum of per-property commissions (each rounded before summing)."""
    return sum(monthly_commission(rent, rate) for rent in rents)
