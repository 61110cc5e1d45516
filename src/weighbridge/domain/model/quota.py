"""Per-client quota records."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from weighbridge.domain.model.primitives import ZERO_TONS, to_tons

if TYPE_CHECKING:
    from datetime import datetime


@dataclass(eq=False, kw_only=True)
class QuotaRecord:
    """Allotment and consumption of one client, in tons.

    ``blocked`` is sticky: once set it is only cleared by :meth:`reset`.
    """

    client: str
    total: Decimal
    consumed: Decimal = ZERO_TONS
    blocked: bool = False
    blocked_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        self.total = to_tons(self.total)
        self.consumed = to_tons(self.consumed)

    @property
    def remaining(self) -> Decimal:
        return self.total - self.consumed

    @property
    def exceeded(self) -> bool:
        return self.consumed > self.total

    def add_consumption(self, amount: Decimal, *, at: datetime | None = None) -> None:
        self.consumed = to_tons(self.consumed + amount)
        self.updated_at = at

    def block(self, *, at: datetime) -> bool:
        """Flag the record blocked; return ``True`` only on the first flip."""
        if self.blocked:
            return False
        self.blocked = True
        self.blocked_at = at
        return True

    def reset(self, *, total: Decimal, consumed: Decimal, at: datetime | None = None) -> None:
        self.total = to_tons(total)
        self.consumed = to_tons(consumed)
        self.blocked = False
        self.blocked_at = None
        self.updated_at = at
