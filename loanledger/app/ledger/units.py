from __future__ import annotations

import datetime as dt
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Union

from loanledger.app.ledger.errors import EncodingError

BASE_UNIT_DECIMALS = 18
_SCALE = Decimal(10) ** BASE_UNIT_DECIMALS

Numeric = Union[int, str, Decimal, float]


def _to_decimal(value: Numeric, what: str) -> Decimal:
    if isinstance(value, bool):
        raise EncodingError(f"{what} must be numeric, got bool")
    try:
        # floats go through their shortest repr so 11.75 stays 11.75
        number = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise EncodingError(f"{what} is not a number: {value!r}") from exc
    if not number.is_finite():
        raise EncodingError(f"{what} must be finite")
    return number


def to_base_units(amount: Numeric) -> int:
    number = _to_decimal(amount, "amount")
    if number < 0:
        raise EncodingError("amount must not be negative")
    with localcontext() as ctx:
        ctx.prec = 80
        scaled = number * _SCALE
    if scaled != scaled.to_integral_value():
        raise EncodingError(f"amount has more than {BASE_UNIT_DECIMALS} decimal places")
    return int(scaled)


def from_base_units(value: int) -> str:
    with localcontext() as ctx:
        ctx.prec = 80
        number = (Decimal(int(value)) / _SCALE).normalize()
    return format(number, "f")


def rate_to_bps(rate: Numeric) -> int:
    """Percentage to integer basis points: 11.75 -> 1175."""
    number = _to_decimal(rate, "rate")
    if number < 0:
        raise EncodingError("rate must not be negative")
    return int((number * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def bps_to_rate(bps: int) -> str:
    """Basis points to a two-decimal percentage string: 1175 -> "11.75"."""
    return str((Decimal(int(bps)) / 100).quantize(Decimal("0.01")))


def chain_timestamp_to_iso(seconds: int) -> str:
    moment = dt.datetime.fromtimestamp(int(seconds), tz=dt.timezone.utc)
    return moment.isoformat().replace("+00:00", "Z")


__all__ = [
    "BASE_UNIT_DECIMALS",
    "to_base_units",
    "from_base_units",
    "rate_to_bps",
    "bps_to_rate",
    "chain_timestamp_to_iso",
]
