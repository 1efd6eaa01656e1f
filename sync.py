"""
Poll-based sync.

Views never receive pushes. Each one reads through a ``Snapshot`` that holds
the last full result of a table query; a refresh replaces the whole list
(last full read wins) and bumps a version counter. ``Poller`` refreshes a set
of snapshots on a fixed interval from a daemon thread.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional

import database

logger = logging.getLogger(__name__)

ORDERS_INTERVAL = 5
CATALOG_INTERVAL = 10

Fetch = Callable[[], List[dict]]


class Snapshot:
    def __init__(self, name: str, fetch: Fetch, clock: Callable[[], float] = time.monotonic):
        self.name = name
        self._fetch = fetch
        self._clock = clock
        self._lock = threading.Lock()
        self._rows: List[dict] = []
        self.version = 0
        self.fetched_at: Optional[float] = None

    @classmethod
    def table(cls, table: str, eq: Optional[Dict[str, Any]] = None, order: Optional[str] = None,
              ascending: bool = True, **kwargs) -> "Snapshot":
        return cls(table, lambda: database.select(table, eq=eq, order=order, ascending=ascending), **kwargs)

    def refresh(self) -> bool:
        """Replace the snapshot with a fresh read. Failures keep the stale rows."""
        try:
            rows = self._fetch()
        except Exception:
            logger.exception("Refreshing %s failed; keeping version %d", self.name, self.version)
            return False
        with self._lock:
            self._rows = list(rows or [])
            self.version += 1
            self.fetched_at = self._clock()
        return True

    def age(self) -> Optional[float]:
        if self.fetched_at is None:
            return None
        return self._clock() - self.fetched_at

    def is_stale(self, max_age: Optional[float]) -> bool:
        age = self.age()
        if age is None:
            return True
        return max_age is not None and age >= max_age

    def get(self, max_age: Optional[float] = None) -> List[dict]:
        if self.is_stale(max_age):
            self.refresh()
        with self._lock:
            return list(self._rows)

    def patch(self, key: str, value: Any, changes: Dict[str, Any]) -> int:
        """Optimistically apply ``changes`` to matching rows before the write lands."""
        touched = 0
        with self._lock:
            rows = []
            for row in self._rows:
                if row.get(key) == value:
                    row = {**row, **changes}
                    touched += 1
                rows.append(row)
            self._rows = rows
        return touched

    def drop(self, key: str, value: Any) -> int:
        with self._lock:
            before = len(self._rows)
            self._rows = [row for row in self._rows if row.get(key) != value]
            return before - len(self._rows)

    def invalidate(self) -> None:
        with self._lock:
            self.fetched_at = None


class Poller:
    """Refresh ``snapshots`` every ``interval`` seconds until stopped."""

    def __init__(self, interval: float, snapshots: List[Snapshot], name: str = "poller"):
        self.interval = interval
        self.snapshots = list(snapshots)
        self.name = name
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def tick(self) -> None:
        for snap in self.snapshots:
            snap.refresh()

    def _run(self) -> None:
        while not self._stop.is_set():
            self.tick()
            self._stop.wait(self.interval)

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        logger.info("Started %s every %ss", self.name, self.interval)

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout)
            self._thread = None

    @property
    def running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())
