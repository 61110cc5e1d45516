"""Client quota ledger."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Literal

from weighbridge.domain.model import ZERO_TONS, QuotaRecord, to_tons
from weighbridge.domain.workflow.locks import KeyedLocks

if TYPE_CHECKING:
    from decimal import Decimal

    from weighbridge.domain.ports.persistence import QuotaRepository

log = getLogger(__name__)


@dataclass(frozen=True, slots=True, kw_only=True)
class Available:
    """Admission allowed. ``record`` is ``None`` for clients without a quota."""

    record: QuotaRecord | None = None
    status: Literal["available"] = "available"

    @property
    def unlimited(self) -> bool:
        return self.record is None


@dataclass(frozen=True, slots=True, kw_only=True)
class Blocked:
    reason: str
    record: QuotaRecord
    status: Literal["blocked"] = "blocked"


type QuotaCheck = Available | Blocked


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class QuotaLedger:
    """Tracks consumption against each client's allotment.

    The ledger is stateless apart from its per-client locks: records live in the
    :class:`~weighbridge.domain.ports.persistence.QuotaRepository` handed to each
    call, so a debit commits (or rolls back) together with the unit of work that
    completes the session.
    """

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._locks = KeyedLocks()
        self._clock = clock

    def check_available(self, quotas: QuotaRepository, client: str) -> QuotaCheck:
        record = quotas.get(client)
        if record is None:
            return Available()
        if record.blocked:
            return Blocked(
                reason=f"quota exceeded ({record.consumed}/{record.total} t)",
                record=record,
            )
        return Available(record=record)

    def debit(self, quotas: QuotaRepository, client: str, amount: Decimal) -> Decimal | None:
        """Add ``amount`` to the client's consumption; return the new remaining tons.

        Clients without a record are unlimited and yield ``None``. Consumption
        may go past the total; the first time it does, the record is blocked.
        """

        tons = to_tons(amount)
        if tons < ZERO_TONS:
            raise ValueError(f"cannot debit a negative amount ({tons})")
        with self._locks.hold(client):
            now = self._clock()
            record = quotas.add_consumption(client, tons, at=now)
            if record is None:
                return None
            if record.exceeded and record.block(at=now):
                quotas.update(record)
                log.warning(
                    f"Client {client} blocked: consumed {record.consumed} t of {record.total} t"
                )
            return record.remaining

    def reset(
        self,
        quotas: QuotaRepository,
        client: str,
        *,
        total: Decimal,
        consumed: Decimal = ZERO_TONS,
    ) -> QuotaRecord:
        """Create or overwrite the client's allotment and clear any block."""

        with self._locks.hold(client):
            now = self._clock()
            record = quotas.get(client)
            if record is None:
                record = QuotaRecord(client=client, total=total, consumed=consumed, updated_at=now)
                quotas.add(record)
            else:
                record.reset(total=total, consumed=consumed, at=now)
                quotas.update(record)
            log.info(f"Quota for {client} set to {record.total} t (consumed {record.consumed} t)")
            return record
