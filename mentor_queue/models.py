"""Queue aggregate data model.

A `QueueSnapshot` is the unit of atomic read/write: every mutation produces a
new snapshot instead of editing one in place, so a reader holding a snapshot
never observes a half-updated member list.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any


class QueueStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    CLOSED = "closed"


class MemberStatus(str, Enum):
    PENDING = "pending"
    WAITING = "waiting"
    CURRENT = "current"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"

    @property
    def is_live(self) -> bool:
        return self in LIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


LIVE_STATUSES = frozenset({MemberStatus.PENDING, MemberStatus.WAITING, MemberStatus.CURRENT})
TERMINAL_STATUSES = frozenset({MemberStatus.COMPLETED, MemberStatus.CANCELLED, MemberStatus.REJECTED})


class Role(str, Enum):
    STUDENT = "student"
    MENTOR = "mentor"
    ADMIN = "admin"


@dataclass(frozen=True)
class Actor:
    """Caller identity as supplied by the authentication layer (trusted)."""

    user_id: str
    role: Role = Role.STUDENT


@dataclass(frozen=True)
class Team:
    team_ref: str
    mentor_ref: str
    name: str = ""


@dataclass(frozen=True)
class MemberEntry:
    user_ref: str
    ticket_number: int
    status: MemberStatus
    joined_at: dt.datetime
    note: str = ""
    mentor_note: str = ""

    def with_status(self, status: MemberStatus) -> MemberEntry:
        return replace(self, status=status)

    def to_message(self) -> dict[str, Any]:
        return {
            "user_id": self.user_ref,
            "ticket_number": self.ticket_number,
            "status": self.status.value,
            "joined_at": self.joined_at.isoformat(),
            "note": self.note,
            "mentor_note": self.mentor_note,
        }


@dataclass(frozen=True)
class QueueSnapshot:
    id: str
    team_ref: str
    session_date: dt.date
    status: QueueStatus = QueueStatus.ACTIVE
    estimated_minutes_per_member: int = 15
    next_ticket_number: int = 0
    members: tuple[MemberEntry, ...] = field(default_factory=tuple)
    # Bumped by the store on every successful compare-and-swap.
    version: int = 0

    def live_entry_for(self, user_ref: str) -> MemberEntry | None:
        for m in self.members:
            if m.user_ref == user_ref and m.status.is_live:
                return m
        return None

    def latest_entry_for(self, user_ref: str) -> MemberEntry | None:
        found = None
        for m in self.members:
            if m.user_ref == user_ref:
                found = m
        return found

    def current_entry(self) -> MemberEntry | None:
        for m in self.members:
            if m.status is MemberStatus.CURRENT:
                return m
        return None

    def replace_member(self, old: MemberEntry, new: MemberEntry) -> tuple[MemberEntry, ...]:
        """Return the member tuple with `old` swapped for `new` (matched by ticket)."""
        return tuple(new if m.ticket_number == old.ticket_number else m for m in self.members)

    def to_message(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "team_id": self.team_ref,
            "session_date": self.session_date.isoformat(),
            "status": self.status.value,
            "estimated_minutes_per_member": self.estimated_minutes_per_member,
            "next_ticket_number": self.next_ticket_number,
            "version": self.version,
            "members": [m.to_message() for m in self.members],
        }
