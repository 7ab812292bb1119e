"""Queue persistence.

The coordinator only needs three things from storage: read a snapshot, write a
brand-new queue, and replace a snapshot if nobody else replaced it first
(compare-and-swap on `version`). `InMemoryQueueStore` is the implementation
used by the service and the tests; a database-backed store only has to honour
the same contract.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Protocol

from .errors import QueueNotFound, VersionConflict
from .models import QueueSnapshot, QueueStatus


class QueueStore(Protocol):
    def load(self, queue_id: str) -> QueueSnapshot: ...

    def insert(self, snapshot: QueueSnapshot) -> QueueSnapshot: ...

    def compare_and_swap(self, queue_id: str, expected_version: int, new: QueueSnapshot) -> QueueSnapshot: ...

    def list_queues(self, status: QueueStatus | None = None) -> list[QueueSnapshot]: ...


class InMemoryQueueStore:
    """Thread-safe dict of immutable snapshots."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._queues: dict[str, QueueSnapshot] = {}

    def load(self, queue_id: str) -> QueueSnapshot:
        with self._lock:
            snap = self._queues.get(queue_id)
        if snap is None:
            raise QueueNotFound()
        return snap

    def insert(self, snapshot: QueueSnapshot) -> QueueSnapshot:
        with self._lock:
            if snapshot.id in self._queues:
                raise VersionConflict(f"Queue {snapshot.id} already exists")
            self._queues[snapshot.id] = snapshot
            return snapshot

    def compare_and_swap(self, queue_id: str, expected_version: int, new: QueueSnapshot) -> QueueSnapshot:
        """Install `new` if the stored version is still `expected_version`.

        The stored copy gets `expected_version + 1`; that copy is returned.
        """
        with self._lock:
            cur = self._queues.get(queue_id)
            if cur is None:
                raise QueueNotFound()
            if cur.version != expected_version:
                raise VersionConflict()
            stored = replace(new, version=expected_version + 1)
            self._queues[queue_id] = stored
            return stored

    def list_queues(self, status: QueueStatus | None = None) -> list[QueueSnapshot]:
        with self._lock:
            snaps = list(self._queues.values())
        if status is not None:
            snaps = [s for s in snaps if s.status is status]
        snaps.sort(key=lambda s: (s.session_date, s.id))
        return snaps
