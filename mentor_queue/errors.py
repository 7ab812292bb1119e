"""Error taxonomy and the shared error envelope.

Every failure the core can report is a `QueueError` subclass with a stable
`code` (what went wrong) and `kind` (which family it belongs to). The MQTT
adapter turns them into `ErrorResponse` messages; in-process callers catch
the exception types directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ErrorResponse:
    code: str
    message: str

    def to_message(self, *, corr_id: str | None = None) -> dict[str, Any]:
        msg: dict[str, Any] = {"type": "error", "code": self.code, "message": self.message}
        if corr_id is not None:
            msg["corr_id"] = corr_id
        return msg


# Error kinds.
NOT_FOUND = "not_found"
INVALID_TRANSITION = "invalid_transition"
NOT_AUTHORIZED = "not_authorized"
QUEUE_NOT_ACTIVE = "queue_not_active"
INVALID_REQUEST = "invalid_request"
CONFLICT = "conflict"
TRANSIENT = "transient"


class QueueError(Exception):
    code = "queue_error"
    kind = TRANSIENT
    default_message = "Queue operation failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(self.code, self.message)


class QueueNotFound(QueueError):
    code = "queue_not_found"
    kind = NOT_FOUND
    default_message = "Queue not found"


class TeamNotFound(QueueError):
    code = "team_not_found"
    kind = NOT_FOUND
    default_message = "Team not found"


class MemberNotFound(QueueError):
    code = "member_not_found"
    kind = NOT_FOUND
    default_message = "User has no entry in this queue"


class AlreadyInQueue(QueueError):
    code = "already_in_queue"
    kind = INVALID_TRANSITION
    default_message = "User is already in this queue or has a pending request"


class NoPendingRequest(QueueError):
    code = "no_pending_request"
    kind = INVALID_TRANSITION
    default_message = "No pending request found for this user"


class NotInQueue(QueueError):
    code = "not_in_queue"
    kind = INVALID_TRANSITION
    default_message = "User is not in this queue"


class InvalidStatus(QueueError):
    code = "invalid_status"
    kind = INVALID_TRANSITION
    default_message = "Invalid status"


class NotAuthorized(QueueError):
    code = "not_authorized"
    kind = NOT_AUTHORIZED
    default_message = "Access denied. Not authorized."


class QueueNotActive(QueueError):
    code = "queue_not_active"
    kind = QUEUE_NOT_ACTIVE
    default_message = "Queue is not active"


class InvalidRequest(QueueError):
    code = "bad_request"
    kind = INVALID_REQUEST
    default_message = "Malformed request"


class VersionConflict(QueueError):
    """Raised by a store when the expected version is stale. Retried internally."""

    code = "conflict"
    kind = CONFLICT
    default_message = "Queue was modified concurrently"


class QueueBusy(QueueError):
    code = "queue_busy"
    kind = TRANSIENT
    default_message = "Queue is busy, try again"


class StorageError(QueueError):
    code = "storage_error"
    kind = TRANSIENT
    default_message = "Could not persist queue"
