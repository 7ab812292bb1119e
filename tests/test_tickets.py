import datetime as dt

import pytest

from mentor_queue.models import QueueSnapshot
from mentor_queue.tickets import allocate_ticket


def _queue(counter: int) -> QueueSnapshot:
    return QueueSnapshot(id="q1", team_ref="t1", session_date=dt.date(2026, 10, 19), next_ticket_number=counter)


def test_first_ticket_is_one():
    assert allocate_ticket(_queue(0)) == (1, 1)


def test_counter_tracks_last_issued_ticket():
    ticket, counter = allocate_ticket(_queue(6))
    assert ticket == 7
    assert counter == 7


def test_negative_counter_rejected():
    with pytest.raises(ValueError):
        allocate_ticket(_queue(-1))
