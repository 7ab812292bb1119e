from __future__ import annotations

# Queue service.
#
# This file contains two layers:
# 1) `MqttQueueService`: request/response adapter around `QueueCoordinator`
#    (testable with any object offering subscribe/add_handler/publish)
# 2) `main()`: wiring for a real broker, in-memory store and team directory
#
# Identity is taken from the `user_id` / `role` fields of each request. They
# are set by whatever authenticates clients in front of the broker; the
# service trusts them as given.

import argparse
import datetime as dt
import logging
import time
from typing import TYPE_CHECKING, Any, Callable

from .coordinator import QueueCoordinator
from .errors import ErrorResponse, InvalidRequest, QueueError
from .models import Actor, QueueSnapshot, Role, Team
from .mqtt_topics import queue_requests
from .position import queue_view

if TYPE_CHECKING:
    from .mqtt_client import MqttClient

logger = logging.getLogger(__name__)

Handler = Callable[[Actor, dict[str, Any]], dict[str, Any]]


def _str_field(msg: dict[str, Any], name: str, *, required: bool = True) -> str | None:
    value = msg.get(name)
    if value is None or value == "":
        if required:
            raise InvalidRequest(f"{name} required")
        return None
    if not isinstance(value, str):
        raise InvalidRequest(f"{name} must be a string")
    return value


def parse_actor(msg: dict[str, Any]) -> Actor:
    user_id = _str_field(msg, "user_id")
    try:
        role = Role(str(msg.get("role") or Role.STUDENT.value).lower())
    except ValueError:
        raise InvalidRequest(f"unknown role {msg.get('role')!r}") from None
    return Actor(user_id=user_id, role=role)


class MqttQueueService:
    """MQTT adapter around the QueueCoordinator."""

    def __init__(self, *, mqtt: MqttClient, coordinator: QueueCoordinator, namespace: str) -> None:
        self.mqtt = mqtt
        self.coordinator = coordinator
        self.namespace = namespace

        self._handlers: dict[str, Handler] = {
            "create_queue": self._create_queue,
            "join_queue": self._join,
            "approve": self._approve,
            "reject": self._reject,
            "leave_queue": self._leave,
            "advance": self._advance,
            "set_status": self._set_status,
            "mentor_note": self._mentor_note,
            "get_queue": self._get_queue,
            "list_queues": self._list_queues,
        }

    def start(self) -> None:
        self.mqtt.subscribe(queue_requests(self.namespace))
        self.mqtt.add_handler(self._handle_message)

    def _handle_message(self, topic: str, msg: dict[str, Any]) -> None:
        if topic != queue_requests(self.namespace):
            return

        corr_id = msg.get("corr_id") if isinstance(msg.get("corr_id"), str) else None
        reply_to = msg.get("reply_to") if isinstance(msg.get("reply_to"), str) else None
        if not reply_to:
            logger.debug("ignoring request without reply_to: %s", msg.get("type"))
            return

        self._reply(reply_to, corr_id, self.dispatch(msg))

    def dispatch(self, msg: dict[str, Any]) -> dict[str, Any]:
        """Handle one request message and build the reply (error replies included)."""
        mtype = msg.get("type")
        handler = self._handlers.get(mtype) if isinstance(mtype, str) else None
        if handler is None:
            return ErrorResponse("bad_request", f"unknown request type {mtype!r}").to_message()

        try:
            actor = parse_actor(msg)
            return handler(actor, msg)
        except QueueError as e:
            logger.info("%s rejected: %s (%s)", mtype, e.code, e.message)
            return e.to_response().to_message()

    def _reply(self, reply_to: str, corr_id: str | None, message: dict[str, Any]) -> None:
        msg = dict(message)
        if corr_id is not None:
            msg["corr_id"] = corr_id
        self.mqtt.publish(reply_to, msg)

    # -------------------- request handlers --------------------

    @staticmethod
    def _queue_reply(snap: QueueSnapshot, actor: Actor) -> dict[str, Any]:
        return {"type": "queue", "queue": snap.to_message(), **queue_view(snap, actor.user_id)}

    def _create_queue(self, actor: Actor, msg: dict[str, Any]) -> dict[str, Any]:
        team_id = _str_field(msg, "team_id")
        raw_date = _str_field(msg, "session_date", required=False)
        try:
            session_date = dt.date.fromisoformat(raw_date) if raw_date else None
        except ValueError:
            raise InvalidRequest(f"session_date must be YYYY-MM-DD, got {raw_date!r}") from None
        minutes = msg.get("estimated_minutes_per_member")
        snap = self.coordinator.create_queue(
            actor,
            team_id,
            session_date=session_date,
            estimated_minutes_per_member=minutes,
        )
        return self._queue_reply(snap, actor)

    def _join(self, actor: Actor, msg: dict[str, Any]) -> dict[str, Any]:
        note = msg.get("note") or ""
        snap = self.coordinator.join(_str_field(msg, "queue_id"), actor, str(note))
        return self._queue_reply(snap, actor)

    def _approve(self, actor: Actor, msg: dict[str, Any]) -> dict[str, Any]:
        snap = self.coordinator.approve(_str_field(msg, "queue_id"), actor, _str_field(msg, "target_user_id"))
        return self._queue_reply(snap, actor)

    def _reject(self, actor: Actor, msg: dict[str, Any]) -> dict[str, Any]:
        snap = self.coordinator.reject(_str_field(msg, "queue_id"), actor, _str_field(msg, "target_user_id"))
        return self._queue_reply(snap, actor)

    def _leave(self, actor: Actor, msg: dict[str, Any]) -> dict[str, Any]:
        target = _str_field(msg, "target_user_id", required=False)
        snap = self.coordinator.leave(_str_field(msg, "queue_id"), actor, target)
        return self._queue_reply(snap, actor)

    def _advance(self, actor: Actor, msg: dict[str, Any]) -> dict[str, Any]:
        result = self.coordinator.advance(_str_field(msg, "queue_id"), actor)
        return result.to_message()

    def _set_status(self, actor: Actor, msg: dict[str, Any]) -> dict[str, Any]:
        snap = self.coordinator.set_status(_str_field(msg, "queue_id"), actor, _str_field(msg, "status"))
        return self._queue_reply(snap, actor)

    def _mentor_note(self, actor: Actor, msg: dict[str, Any]) -> dict[str, Any]:
        note = msg.get("note") or ""
        snap = self.coordinator.set_mentor_note(
            _str_field(msg, "queue_id"), actor, _str_field(msg, "target_user_id"), str(note)
        )
        return self._queue_reply(snap, actor)

    def _get_queue(self, actor: Actor, msg: dict[str, Any]) -> dict[str, Any]:
        return {"type": "queue", **self.coordinator.view(_str_field(msg, "queue_id"), actor.user_id)}

    def _list_queues(self, actor: Actor, msg: dict[str, Any]) -> dict[str, Any]:
        return {"type": "queues", "queues": [s.to_message() for s in self.coordinator.list_active_queues()]}


def parse_team(value: str) -> Team:
    """Parse `TEAM=MENTOR` or `TEAM=MENTOR:Display name` from the command line."""
    team_ref, sep, rest = value.partition("=")
    mentor_ref, _, name = rest.partition(":")
    if not sep or not team_ref or not mentor_ref:
        raise argparse.ArgumentTypeError(f"expected TEAM=MENTOR[:NAME], got {value!r}")
    return Team(team_ref=team_ref, mentor_ref=mentor_ref, name=name)


def main() -> None:
    from .config import Settings, setup_logging

    settings = Settings.from_env()

    parser = argparse.ArgumentParser(description="Mentor queue service (MQTT)")
    parser.add_argument("--mqtt-host", default=settings.mqtt_host)
    parser.add_argument("--mqtt-port", type=int, default=settings.mqtt_port)
    parser.add_argument("--namespace", default=settings.namespace)
    parser.add_argument(
        "--team",
        action="append",
        type=parse_team,
        default=[],
        metavar="TEAM=MENTOR[:NAME]",
        help="register a team and its mentor (repeatable)",
    )
    parser.add_argument("--max-attempts", type=int, default=settings.max_attempts, help="write retries per operation")
    parser.add_argument("--minutes-per-member", type=int, default=settings.minutes_per_member)
    parser.add_argument("--log-level", default=settings.log_level)
    args = parser.parse_args()

    setup_logging(args.log_level)

    # Import MQTT dependencies only when running the real service.
    from .mqtt_client import MqttClient
    from .notifier import MqttNotifier
    from .store import InMemoryQueueStore
    from .teams import InMemoryTeamDirectory

    mqtt_client = MqttClient(client_id=f"mentor-queue-{int(time.time())}", host=args.mqtt_host, port=args.mqtt_port)
    coordinator = QueueCoordinator(
        store=InMemoryQueueStore(),
        teams=InMemoryTeamDirectory(args.team),
        notifier=MqttNotifier(mqtt=mqtt_client, namespace=args.namespace),
        max_attempts=args.max_attempts,
        default_minutes_per_member=args.minutes_per_member,
    )
    service = MqttQueueService(mqtt=mqtt_client, coordinator=coordinator, namespace=args.namespace)
    service.start()
    mqtt_client.start()

    print(
        f"[service] connected to MQTT {args.mqtt_host}:{args.mqtt_port}, namespace={args.namespace}, "
        f"teams={[t.team_ref for t in args.team]}"
    )

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        mqtt_client.stop()


if __name__ == "__main__":
    main()
