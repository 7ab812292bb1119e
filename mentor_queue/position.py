from __future__ import annotations

# Position / ETA projection.
#
# Derived on every read and never stored on the queue:
#   position = 1 + number of WAITING entries with a smaller ticket
#   eta      = position * estimated_minutes_per_member

from collections import Counter
from dataclasses import dataclass
from typing import Any

from .models import MemberStatus, QueueSnapshot


@dataclass(frozen=True)
class Position:
    user_ref: str
    ticket_number: int
    position: int
    estimated_wait_minutes: int

    def to_message(self) -> dict[str, Any]:
        return {
            "user_id": self.user_ref,
            "ticket_number": self.ticket_number,
            "position": self.position,
            "estimated_wait_minutes": self.estimated_wait_minutes,
        }


def waiting_count(snapshot: QueueSnapshot) -> int:
    return sum(1 for m in snapshot.members if m.status is MemberStatus.WAITING)


def compute_position(snapshot: QueueSnapshot, user_ref: str) -> Position | None:
    """Rank of the user's WAITING entry, or None if the user is not waiting.

    Pending, current, finished and absent users all yield None.
    """
    mine = None
    for m in snapshot.members:
        if m.user_ref == user_ref and m.status is MemberStatus.WAITING:
            mine = m
            break
    if mine is None:
        return None

    ahead = sum(
        1
        for m in snapshot.members
        if m.status is MemberStatus.WAITING and m.ticket_number < mine.ticket_number
    )
    position = ahead + 1
    return Position(
        user_ref=user_ref,
        ticket_number=mine.ticket_number,
        position=position,
        estimated_wait_minutes=position * snapshot.estimated_minutes_per_member,
    )


def status_counts(snapshot: QueueSnapshot) -> dict[str, int]:
    """Number of entries per member status (every status present, zeros included)."""
    counts = Counter(m.status for m in snapshot.members)
    return {s.value: counts.get(s, 0) for s in MemberStatus}


def queue_view(snapshot: QueueSnapshot, user_ref: str | None = None) -> dict[str, Any]:
    """Read-side projection sent to clients alongside the snapshot."""
    n_waiting = waiting_count(snapshot)
    pos = compute_position(snapshot, user_ref) if user_ref else None
    return {
        "waiting_count": n_waiting,
        "total_wait_minutes": n_waiting * snapshot.estimated_minutes_per_member,
        "counts": status_counts(snapshot),
        "position": pos.to_message() if pos else None,
    }
