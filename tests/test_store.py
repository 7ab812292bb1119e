import datetime as dt
from dataclasses import replace

import pytest

from mentor_queue.errors import QueueNotFound, VersionConflict
from mentor_queue.models import QueueSnapshot, QueueStatus
from mentor_queue.store import InMemoryQueueStore


def _queue(qid: str, day: int = 19, status: QueueStatus = QueueStatus.ACTIVE) -> QueueSnapshot:
    return QueueSnapshot(id=qid, team_ref="t1", session_date=dt.date(2026, 10, day), status=status)


def test_load_missing_queue():
    with pytest.raises(QueueNotFound):
        InMemoryQueueStore().load("nope")


def test_insert_is_create_only():
    store = InMemoryQueueStore()
    store.insert(_queue("q1"))
    with pytest.raises(VersionConflict):
        store.insert(_queue("q1"))


def test_compare_and_swap_bumps_version():
    store = InMemoryQueueStore()
    store.insert(_queue("q1"))

    stored = store.compare_and_swap("q1", 0, replace(_queue("q1"), next_ticket_number=1))
    assert stored.version == 1
    assert store.load("q1") == stored


def test_compare_and_swap_rejects_stale_version():
    store = InMemoryQueueStore()
    store.insert(_queue("q1"))
    store.compare_and_swap("q1", 0, replace(_queue("q1"), next_ticket_number=1))

    with pytest.raises(VersionConflict):
        store.compare_and_swap("q1", 0, replace(_queue("q1"), next_ticket_number=5))
    assert store.load("q1").next_ticket_number == 1

    with pytest.raises(QueueNotFound):
        store.compare_and_swap("q2", 0, _queue("q2"))


def test_list_queues_filters_and_orders():
    store = InMemoryQueueStore()
    store.insert(_queue("b", day=20))
    store.insert(_queue("a", day=20))
    store.insert(_queue("c", day=18))
    store.insert(_queue("z", status=QueueStatus.CLOSED))

    assert [q.id for q in store.list_queues(QueueStatus.ACTIVE)] == ["c", "a", "b"]
    assert len(store.list_queues()) == 4
