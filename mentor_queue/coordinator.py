"""Queue Mutation Coordinator.

The only place queue state changes. Every operation runs the same pipeline:

    load snapshot -> check caller -> state machine -> compare-and-swap -> announce

Two layers keep each queue's history linear:

1) a `threading.Lock` per queue id serializes callers inside this process
   (different queues never wait on each other);
2) the store's compare-and-swap rejects a write built on a stale snapshot,
   which covers several coordinators sharing one store. Stale writes are
   retried from a fresh snapshot up to `max_attempts` times, then surfaced
   as `QueueBusy`.

Snapshots are immutable, so a failed write leaves nothing behind: the stored
snapshot is still the one every reader sees.
"""

from __future__ import annotations

import datetime as dt
import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

from . import state_machine
from .errors import InvalidRequest, QueueBusy, QueueError, StorageError, VersionConflict
from .models import Actor, MemberEntry, QueueSnapshot, QueueStatus
from .notifier import Notifier, NullNotifier, announce_safely
from .position import Position, compute_position, queue_view
from .store import QueueStore
from .teams import TeamDirectory, require_manager, require_team

logger = logging.getLogger(__name__)

T = TypeVar("T")
Mutation = Callable[[QueueSnapshot], tuple[QueueSnapshot, T]]

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_MINUTES_PER_MEMBER = 15


@dataclass(frozen=True)
class AdvanceResult:
    queue: QueueSnapshot
    # None means nobody was waiting.
    next_member: MemberEntry | None

    def to_message(self) -> dict[str, Any]:
        return {
            "type": "advanced",
            "queue": self.queue.to_message(),
            "next_member": self.next_member.to_message() if self.next_member else None,
        }


class QueueCoordinator:
    def __init__(
        self,
        *,
        store: QueueStore,
        teams: TeamDirectory,
        notifier: Notifier | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        default_minutes_per_member: int = DEFAULT_MINUTES_PER_MEMBER,
        clock: Callable[[], dt.datetime] | None = None,
    ) -> None:
        if max_attempts <= 0:
            raise ValueError("max_attempts must be > 0")
        if default_minutes_per_member <= 0:
            raise ValueError("default_minutes_per_member must be > 0")

        self.store = store
        self.teams = teams
        self.notifier = notifier or NullNotifier()
        self.max_attempts = max_attempts
        self.default_minutes_per_member = default_minutes_per_member
        self._clock = clock or (lambda: dt.datetime.now(dt.timezone.utc))

        self._locks_guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    # -------------------- read side --------------------

    def get(self, queue_id: str) -> QueueSnapshot:
        return self.store.load(queue_id)

    def position(self, queue_id: str, user_id: str) -> Position | None:
        return compute_position(self.store.load(queue_id), user_id)

    def view(self, queue_id: str, user_id: str | None = None) -> dict[str, Any]:
        """Snapshot plus derived counts/position, all taken from one snapshot."""
        snap = self.store.load(queue_id)
        return {"queue": snap.to_message(), **queue_view(snap, user_id)}

    def list_active_queues(self) -> list[QueueSnapshot]:
        return self.store.list_queues(QueueStatus.ACTIVE)

    # -------------------- queue lifecycle --------------------

    def create_queue(
        self,
        actor: Actor,
        team_ref: str,
        *,
        session_date: dt.date | None = None,
        estimated_minutes_per_member: int | None = None,
    ) -> QueueSnapshot:
        team = require_team(self.teams, team_ref)
        require_manager(actor, team)

        minutes = self.default_minutes_per_member if estimated_minutes_per_member is None else estimated_minutes_per_member
        if isinstance(minutes, bool) or not isinstance(minutes, int) or minutes <= 0:
            raise InvalidRequest("estimated_minutes_per_member must be a positive integer")

        snap = QueueSnapshot(
            id=uuid.uuid4().hex,
            team_ref=team.team_ref,
            session_date=session_date or self._clock().date(),
            estimated_minutes_per_member=minutes,
        )
        stored = self.store.insert(snap)
        logger.info("created queue=%s team=%s date=%s by=%s", stored.id, team_ref, stored.session_date, actor.user_id)
        announce_safely(self.notifier, stored.id)
        return stored

    def set_status(self, queue_id: str, actor: Actor, status: QueueStatus | str) -> QueueSnapshot:
        def apply(snap: QueueSnapshot) -> tuple[QueueSnapshot, None]:
            self._require_manager(actor, snap)
            return state_machine.set_status(snap, status), None

        snap, _ = self._mutate(queue_id, "set_status", apply)
        return snap

    # -------------------- member operations --------------------

    def join(self, queue_id: str, actor: Actor, note: str = "") -> QueueSnapshot:
        now = self._clock()

        def apply(snap: QueueSnapshot) -> tuple[QueueSnapshot, MemberEntry]:
            return state_machine.join(snap, actor.user_id, note, now=now)

        snap, entry = self._mutate(queue_id, "join", apply)
        logger.info("join queue=%s user=%s ticket=%s", queue_id, actor.user_id, entry.ticket_number)
        return snap

    def approve(self, queue_id: str, actor: Actor, user_id: str) -> QueueSnapshot:
        return self._mentor_transition(queue_id, actor, user_id, "approve", state_machine.approve)

    def reject(self, queue_id: str, actor: Actor, user_id: str) -> QueueSnapshot:
        return self._mentor_transition(queue_id, actor, user_id, "reject", state_machine.reject)

    def leave(self, queue_id: str, actor: Actor, user_id: str | None = None) -> QueueSnapshot:
        """Cancel a live entry. Removing someone else needs mentor/admin rights."""
        target = user_id or actor.user_id

        def apply(snap: QueueSnapshot) -> tuple[QueueSnapshot, MemberEntry]:
            if target != actor.user_id:
                self._require_manager(actor, snap)
            return state_machine.leave(snap, target)

        snap, entry = self._mutate(queue_id, "leave", apply)
        logger.info("leave queue=%s user=%s ticket=%s by=%s", queue_id, target, entry.ticket_number, actor.user_id)
        return snap

    def advance(self, queue_id: str, actor: Actor) -> AdvanceResult:
        def apply(snap: QueueSnapshot) -> tuple[QueueSnapshot, MemberEntry | None]:
            self._require_manager(actor, snap)
            return state_machine.advance(snap)

        snap, nxt = self._mutate(queue_id, "advance", apply)
        if nxt is None:
            logger.info("advance queue=%s: no next person", queue_id)
        else:
            logger.info("advance queue=%s: now serving user=%s ticket=%s", queue_id, nxt.user_ref, nxt.ticket_number)
        return AdvanceResult(queue=snap, next_member=nxt)

    def set_mentor_note(self, queue_id: str, actor: Actor, user_id: str, note: str) -> QueueSnapshot:
        return self._mentor_transition(
            queue_id,
            actor,
            user_id,
            "mentor_note",
            lambda snap, uid: state_machine.set_mentor_note(snap, uid, note),
        )

    # -------------------- internals --------------------

    def _mentor_transition(
        self,
        queue_id: str,
        actor: Actor,
        user_id: str,
        op: str,
        transition: Callable[[QueueSnapshot, str], tuple[QueueSnapshot, MemberEntry]],
    ) -> QueueSnapshot:
        def apply(snap: QueueSnapshot) -> tuple[QueueSnapshot, MemberEntry]:
            self._require_manager(actor, snap)
            if not user_id:
                raise InvalidRequest("user_id required")
            return transition(snap, user_id)

        snap, entry = self._mutate(queue_id, op, apply)
        logger.info("%s queue=%s user=%s ticket=%s by=%s", op, queue_id, user_id, entry.ticket_number, actor.user_id)
        return snap

    def _require_manager(self, actor: Actor, snap: QueueSnapshot) -> None:
        require_manager(actor, self.teams.get_team(snap.team_ref))

    def _lock_for(self, queue_id: str) -> threading.Lock:
        # Only called for queues that exist; queues are never deleted.
        with self._locks_guard:
            lock = self._locks.get(queue_id)
            if lock is None:
                lock = self._locks[queue_id] = threading.Lock()
            return lock

    def _mutate(self, queue_id: str, op: str, apply: Mutation[T]) -> tuple[QueueSnapshot, T]:
        """Run `apply` against the latest snapshot and persist its result.

        `apply` must be pure: it may run more than once when a write conflicts.
        Returning the very same snapshot object means "nothing changed" and
        skips both the write and the announcement.
        """
        # Raises QueueNotFound before a lock is created for an unknown id.
        self.store.load(queue_id)
        with self._lock_for(queue_id):
            for attempt in range(1, self.max_attempts + 1):
                snap = self.store.load(queue_id)
                new, extra = apply(snap)
                if new is snap:
                    return snap, extra

                try:
                    stored = self.store.compare_and_swap(queue_id, snap.version, new)
                except VersionConflict:
                    logger.warning("%s queue=%s: version %s is stale (attempt %d/%d)", op, queue_id, snap.version, attempt, self.max_attempts)
                    continue
                except QueueError:
                    raise
                except Exception as e:
                    logger.exception("%s queue=%s: persisting snapshot failed", op, queue_id)
                    raise StorageError() from e

                announce_safely(self.notifier, queue_id)
                return stored, extra

        raise QueueBusy()
