"""Per-key mutual exclusion."""

from __future__ import annotations

import threading
from collections.abc import Hashable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field


@dataclass(slots=True)
class _Slot:
    lock: threading.RLock = field(default_factory=threading.RLock)
    users: int = 0


class KeyedLocks:
    """A lock per key, created on demand and dropped once nobody uses it.

    Unrelated keys never contend; the registry lock is only held while looking
    up or discarding a slot.
    """

    def __init__(self) -> None:
        self._registry: dict[Hashable, _Slot] = {}
        self._guard = threading.Lock()

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            slot = self._registry.get(key)
            if slot is None:
                slot = self._registry[key] = _Slot()
            slot.users += 1
        try:
            with slot.lock:
                yield
        finally:
            with self._guard:
                slot.users -= 1
                if slot.users == 0:
                    del self._registry[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._registry)
