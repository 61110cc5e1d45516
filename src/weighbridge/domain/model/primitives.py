"""Domain primitives: scalar aliases + fixed-point tonnage helpers.

All weights are tons with three decimals (kilogram resolution).
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Final

from weighbridge.domain.errors import InvalidWeight

type TruckId = str
type ClientName = str
type TicketNumber = int

TON_QUANTUM: Final[Decimal] = Decimal("0.001")
ZERO_TONS: Final[Decimal] = Decimal("0.000")


def to_tons(value: Decimal | float | int | str) -> Decimal:
    """Return ``value`` as a three-decimal ``Decimal``.

    Floats go through ``str`` first so that ``35.0`` does not turn into
    ``35.00000000000000142...`` before rounding.
    """

    if isinstance(value, bool):
        raise InvalidWeight(f"Not a weight: {value!r}")
    try:
        raw = value if isinstance(value, Decimal) else Decimal(str(value).strip())
        quantized = raw.quantize(TON_QUANTUM, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError) as exc:
        raise InvalidWeight(f"Not a weight: {value!r}") from exc
    if not quantized.is_finite():
        raise InvalidWeight(f"Not a weight: {value!r}")
    return quantized


def to_non_negative_tons(value: Decimal | float | int | str) -> Decimal:
    tons = to_tons(value)
    if tons < ZERO_TONS:
        raise InvalidWeight(f"Weight must be non-negative, got {tons}")
    return tons


def tons_to_kilograms(value: Decimal) -> int:
    return int(to_tons(value) * 1000)


def kilograms_to_tons(value: int) -> Decimal:
    return (Decimal(value) / 1000).quantize(TON_QUANTUM)
