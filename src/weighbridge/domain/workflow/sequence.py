"""Ticket number allocation."""

from __future__ import annotations

import threading
from logging import getLogger
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Iterable

log = getLogger(__name__)

DEFAULT_TICKET_BASE: Final[int] = 58000


class SequenceAllocator:
    """Hands out strictly increasing ticket numbers.

    The allocator only keeps the high-water mark in memory. Durability comes
    from the stores the tickets end up in: on startup the allocator is seeded
    with the largest ticket found there (see :meth:`seeded`), so a restart never
    re-issues a number that was committed before. Numbers taken by a completion
    that later rolls back are skipped, never reused.
    """

    def __init__(self, *, high_water_mark: int | None = None, base: int = DEFAULT_TICKET_BASE):
        if base < 1:
            raise ValueError("ticket base must be >= 1")
        floor = base - 1
        self._high_water_mark = max(floor, high_water_mark or 0)
        self._lock = threading.Lock()

    @classmethod
    def seeded(
        cls,
        observed: Iterable[int | None],
        *,
        base: int = DEFAULT_TICKET_BASE,
    ) -> SequenceAllocator:
        """Build an allocator above every ticket in ``observed`` (``None`` entries ignored)."""

        known = [value for value in observed if value is not None]
        high = max(known) if known else None
        allocator = cls(high_water_mark=high, base=base)
        log.info(f"Ticket sequence seeded at {allocator.high_water_mark} (base={base})")
        return allocator

    @property
    def high_water_mark(self) -> int:
        with self._lock:
            return self._high_water_mark

    def next(self) -> int:
        with self._lock:
            self._high_water_mark += 1
            return self._high_water_mark

    def observe(self, value: int) -> None:
        """Raise the high-water mark to ``value`` if it is ahead; never lowers it."""

        with self._lock:
            if value > self._high_water_mark:
                log.warning(
                    f"Ticket high-water mark moved from {self._high_water_mark} to {value} "
                    "by an external observation"
                )
                self._high_water_mark = value
