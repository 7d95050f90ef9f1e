"""Interval scheduling of reconciliation passes."""

from __future__ import annotations

import logging
from threading import Event, Thread

from netpolicy_sync.worker import PassResult, SyncWorker

LOG = logging.getLogger(__name__)


class PassScheduler(Thread):
    """Run a pass immediately and then every ``interval`` seconds."""

    def __init__(self, worker: SyncWorker, interval: float, stop_event: Event) -> None:
        super().__init__(daemon=True, name="netpolicy-sync-scheduler")
        self._worker = worker
        self._interval = interval
        self._stop_event = stop_event

    def run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:  # pragma: no cover - logged below
                LOG.exception("reconciliation pass failed")
            self._stop_event.wait(self._interval)

    def tick(self) -> PassResult:
        result = self._worker.work()
        LOG.debug("pass finished with status %s", result.status.name)
        return result
