"""Member lifecycle transitions.

All functions are pure: they take a snapshot, validate the transition and
return a new snapshot (plus extra info where useful). They never persist or
notify; the coordinator does that.

    join      -> PENDING                       (queue must be ACTIVE)
    approve   PENDING -> WAITING
    reject    PENDING -> REJECTED
    leave     PENDING | WAITING | CURRENT -> CANCELLED
    advance   CURRENT -> COMPLETED, lowest-ticket WAITING -> CURRENT
"""

from __future__ import annotations

import datetime as dt
from dataclasses import replace

from .errors import (
    AlreadyInQueue,
    InvalidStatus,
    MemberNotFound,
    NoPendingRequest,
    NotInQueue,
    QueueNotActive,
)
from .models import MemberEntry, MemberStatus, QueueSnapshot, QueueStatus
from .tickets import allocate_ticket

# Legal member transitions per operation: source statuses -> result.
TRANSITIONS: dict[str, tuple[frozenset[MemberStatus], MemberStatus]] = {
    "approve": (frozenset({MemberStatus.PENDING}), MemberStatus.WAITING),
    "reject": (frozenset({MemberStatus.PENDING}), MemberStatus.REJECTED),
    "leave": (
        frozenset({MemberStatus.PENDING, MemberStatus.WAITING, MemberStatus.CURRENT}),
        MemberStatus.CANCELLED,
    ),
}

# Legal queue status changes. CLOSED has no way out.
QUEUE_TRANSITIONS: dict[QueueStatus, frozenset[QueueStatus]] = {
    QueueStatus.ACTIVE: frozenset({QueueStatus.PAUSED, QueueStatus.CLOSED}),
    QueueStatus.PAUSED: frozenset({QueueStatus.ACTIVE, QueueStatus.CLOSED}),
    QueueStatus.CLOSED: frozenset(),
}


def join(
    snapshot: QueueSnapshot,
    user_ref: str,
    note: str = "",
    *,
    now: dt.datetime | None = None,
) -> tuple[QueueSnapshot, MemberEntry]:
    if snapshot.status is not QueueStatus.ACTIVE:
        raise QueueNotActive()
    if snapshot.live_entry_for(user_ref) is not None:
        raise AlreadyInQueue()

    ticket, counter = allocate_ticket(snapshot)
    entry = MemberEntry(
        user_ref=user_ref,
        ticket_number=ticket,
        status=MemberStatus.PENDING,
        joined_at=now or dt.datetime.now(dt.timezone.utc),
        note=note or "",
    )
    new = replace(snapshot, next_ticket_number=counter, members=snapshot.members + (entry,))
    return new, entry


def _apply(snapshot: QueueSnapshot, op: str, user_ref: str) -> tuple[QueueSnapshot, MemberEntry]:
    sources, target = TRANSITIONS[op]
    for m in snapshot.members:
        if m.user_ref == user_ref and m.status in sources:
            updated = m.with_status(target)
            return replace(snapshot, members=snapshot.replace_member(m, updated)), updated

    if op == "leave":
        raise NotInQueue()
    raise NoPendingRequest()


def approve(snapshot: QueueSnapshot, user_ref: str) -> tuple[QueueSnapshot, MemberEntry]:
    return _apply(snapshot, "approve", user_ref)


def reject(snapshot: QueueSnapshot, user_ref: str) -> tuple[QueueSnapshot, MemberEntry]:
    return _apply(snapshot, "reject", user_ref)


def leave(snapshot: QueueSnapshot, user_ref: str) -> tuple[QueueSnapshot, MemberEntry]:
    return _apply(snapshot, "leave", user_ref)


def advance(snapshot: QueueSnapshot) -> tuple[QueueSnapshot, MemberEntry | None]:
    """Complete the current member and promote the lowest-ticket waiting one.

    Returns the new snapshot and the newly current entry, or None when nobody
    is waiting. The snapshot is returned unchanged (same object) when there
    was neither a current nor a waiting entry.
    """
    members = list(snapshot.members)
    changed = False

    for i, m in enumerate(members):
        if m.status is MemberStatus.CURRENT:
            members[i] = m.with_status(MemberStatus.COMPLETED)
            changed = True

    waiting = [(m.ticket_number, i) for i, m in enumerate(members) if m.status is MemberStatus.WAITING]
    promoted = None
    if waiting:
        _ticket, idx = min(waiting)
        promoted = members[idx].with_status(MemberStatus.CURRENT)
        members[idx] = promoted
        changed = True

    if not changed:
        return snapshot, None
    return replace(snapshot, members=tuple(members)), promoted


def parse_queue_status(value: QueueStatus | str) -> QueueStatus:
    if isinstance(value, QueueStatus):
        return value
    try:
        return QueueStatus(str(value).lower())
    except ValueError:
        raise InvalidStatus(f"Invalid status: {value!r}") from None


def set_status(snapshot: QueueSnapshot, status: QueueStatus | str) -> QueueSnapshot:
    """Change the queue-level status. Setting the current status is a no-op."""
    target = parse_queue_status(status)
    if target is snapshot.status:
        return snapshot
    if target not in QUEUE_TRANSITIONS[snapshot.status]:
        raise InvalidStatus(f"Cannot change queue status from {snapshot.status.value} to {target.value}")
    return replace(snapshot, status=target)


def set_mentor_note(snapshot: QueueSnapshot, user_ref: str, note: str) -> tuple[QueueSnapshot, MemberEntry]:
    """Annotate the user's most recent entry. Status is left alone."""
    entry = snapshot.latest_entry_for(user_ref)
    if entry is None:
        raise MemberNotFound()
    updated = replace(entry, mentor_note=note or "")
    return replace(snapshot, members=snapshot.replace_member(entry, updated)), updated
