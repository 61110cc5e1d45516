"""Background sweeping with jittered exponential backoff."""

from __future__ import annotations

import random
import threading
from logging import getLogger
from typing import TYPE_CHECKING

from .contracts import SweepResult

if TYPE_CHECKING:
    from .engine import ReconciliationEngine

log = getLogger(__name__)


class ReconciliationScheduler:
    """Run :meth:`ReconciliationEngine.sweep` every ``interval`` seconds.

    While sweeps make no progress the delay doubles per failed round, capped at
    ``max_backoff``; one productive sweep resets it. Each delay is spread by
    ``+/- jitter`` (a fraction) so several instances do not hammer a recovering
    store in lockstep.
    """

    def __init__(
        self,
        engine: ReconciliationEngine,
        *,
        interval: float = 5.0,
        max_backoff: float = 300.0,
        jitter: float = 0.1,
        rng: random.Random | None = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        if max_backoff < interval:
            raise ValueError("max_backoff must be >= interval")
        if not 0 <= jitter < 1:
            raise ValueError("jitter must be in [0, 1)")
        self._engine = engine
        self._interval = interval
        self._max_backoff = max_backoff
        self._jitter = jitter
        self._rng = rng or random.Random()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._failures = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def consecutive_failures(self) -> int:
        return self._failures

    def next_delay(self, failures: int) -> float:
        base = min(self._interval * (2 ** min(failures, 32)), self._max_backoff)
        if not self._jitter:
            return base
        spread = base * self._jitter
        return max(0.0, base + self._rng.uniform(-spread, spread))

    def run_once(self) -> SweepResult:
        try:
            result = self._engine.sweep()
        except Exception:
            log.exception("Reconciliation sweep crashed")
            result = SweepResult(aborted=True)
        if result.struggling:
            self._failures += 1
        else:
            self._failures = 0
        return result

    def run_forever(self) -> None:
        """Sweep on the calling thread until :meth:`stop` is called."""

        self._stop.clear()
        self._loop()

    def _loop(self) -> None:
        log.info(f"Reconciliation loop started (interval={self._interval}s)")
        while not self._stop.is_set():
            self.run_once()
            delay = self.next_delay(self._failures)
            if self._failures:
                log.info(
                    f"Reconciliation backing off for {delay:.1f}s "
                    f"after {self._failures} unproductive sweep(s)"
                )
            if self._stop.wait(delay):
                break
        log.info("Reconciliation loop stopped")

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._loop, name="weighbridge-reconciliation", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None
