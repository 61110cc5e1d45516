"""Entity resolution against the historical store.

Responsibilities of this stage:
- map a session's truck, client and product to destination-local ids
- create the reference rows that do not exist yet
- remember ids between transfers, re-verifying each id together with its key before reuse

Out of scope for this stage:
- inserting the weighing record
- commit/rollback
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from logging import getLogger
from typing import TYPE_CHECKING, Final

from .contracts import ResolvedEntities

if TYPE_CHECKING:
    from weighbridge.domain.model import WeighingSession
    from weighbridge.domain.ports import HistoricalRepositories

log = getLogger(__name__)

UNKNOWN_PRODUCT_NAME: Final[str] = "Unknown product"


def product_reference(product_id: int) -> str:
    """Natural key of a product in the historical store."""
    return str(product_id)


class EntityResolver:
    """Get-or-create reference rows by natural key (truck code, client name, product)."""

    def __init__(self) -> None:
        self._trucks: dict[str, int] = {}
        self._clients: dict[str, int] = {}
        self._products: dict[str, int] = {}
        self._lock = threading.Lock()

    def resolve(
        self, repositories: HistoricalRepositories, session: WeighingSession
    ) -> ResolvedEntities:
        reference = product_reference(session.product_id)
        product_id = self._get_or_create(
            self._products,
            reference,
            holds=repositories.products.holds,
            find=repositories.products.find_id,
            create=lambda: repositories.products.add(
                reference, name=session.product_name or UNKNOWN_PRODUCT_NAME
            ),
        )
        client_id = self._get_or_create(
            self._clients,
            session.client,
            holds=repositories.clients.holds,
            find=repositories.clients.find_id,
            create=lambda: repositories.clients.add(session.client, product_id=product_id),
        )
        truck_id = self._get_or_create(
            self._trucks,
            session.truck_id,
            holds=repositories.trucks.holds,
            find=repositories.trucks.find_id,
            create=lambda: repositories.trucks.add(session.truck_id, client_id=client_id),
        )
        return ResolvedEntities(truck_id=truck_id, client_id=client_id, product_id=product_id)

    def forget(self) -> None:
        with self._lock:
            self._trucks.clear()
            self._clients.clear()
            self._products.clear()

    def _get_or_create(
        self,
        cache: dict[str, int],
        key: str,
        *,
        holds: Callable[[int, str], bool],
        find: Callable[[str], int | None],
        create: Callable[[], int],
    ) -> int:
        with self._lock:
            cached = cache.get(key)
        if cached is not None:
            if holds(cached, key):
                return cached
            log.info(
                f"Remembered id {cached} for {key!r} is gone from the historical store "
                "or now names another row"
            )

        found = find(key)
        if found is None:
            found = create()
            log.info(f"Created historical reference {key!r} with id {found}")
        with self._lock:
            cache[key] = found
        return found
