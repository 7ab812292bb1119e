from __future__ import annotations

# Command-line client.
#
# A client is a short-lived process:
# - connect to broker
# - publish one request (join, approve, advance, ...)
# - wait for the correlated reply
# - print it as JSON and exit (non-zero exit code on an error reply)

import argparse
import json
import sys
import time
from typing import Any

from .mqtt_topics import queue_requests, queue_responses

REQUEST_TYPES = (
    "create_queue",
    "join_queue",
    "approve",
    "reject",
    "leave_queue",
    "advance",
    "set_status",
    "mentor_note",
    "get_queue",
    "list_queues",
)


def build_request(
    request_type: str,
    *,
    user_id: str,
    role: str,
    queue_id: str | None = None,
    target_user_id: str | None = None,
    team_id: str | None = None,
    session_date: str | None = None,
    minutes_per_member: int | None = None,
    status: str | None = None,
    note: str | None = None,
) -> dict[str, Any]:
    """Assemble a request message, leaving out fields that were not given."""
    if request_type not in REQUEST_TYPES:
        raise ValueError(f"unknown request type {request_type!r}")

    msg: dict[str, Any] = {"type": request_type, "user_id": user_id, "role": role}
    optional = {
        "queue_id": queue_id,
        "target_user_id": target_user_id,
        "team_id": team_id,
        "session_date": session_date,
        "estimated_minutes_per_member": minutes_per_member,
        "status": status,
        "note": note,
    }
    msg.update({k: v for k, v in optional.items() if v is not None})
    return msg


def send_request(*, mqtt_host: str, mqtt_port: int, namespace: str, message: dict[str, Any], timeout: float = 5.0) -> dict:
    from .mqtt_client import MqttClient

    # Unique client id so several clients can run concurrently.
    client_id = f"client-{message.get('user_id', 'anon')}-{int(time.time() * 1000)}"
    mqtt = MqttClient(client_id=client_id, host=mqtt_host, port=mqtt_port)

    reply_topic = queue_responses(client_id, namespace)
    mqtt.subscribe(reply_topic)
    mqtt.start()

    try:
        # Give the connect/subscribe round trip a moment before publishing.
        time.sleep(0.2)
        return mqtt.request(
            request_topic=queue_requests(namespace),
            response_topic=reply_topic,
            message=message,
            timeout=timeout,
        )
    finally:
        mqtt.stop()


def main() -> None:
    from .config import Settings

    settings = Settings.from_env()

    parser = argparse.ArgumentParser(description="Send one request to the mentor queue service (MQTT)")
    parser.add_argument("type", choices=REQUEST_TYPES)
    parser.add_argument("--mqtt-host", default=settings.mqtt_host)
    parser.add_argument("--mqtt-port", type=int, default=settings.mqtt_port)
    parser.add_argument("--namespace", default=settings.namespace)
    parser.add_argument("--user-id", required=True)
    parser.add_argument("--role", default="student", choices=("student", "mentor", "admin"))
    parser.add_argument("--queue-id")
    parser.add_argument("--target-user-id", help="member acted upon by approve/reject/leave/mentor_note")
    parser.add_argument("--team-id")
    parser.add_argument("--session-date", help="YYYY-MM-DD (create_queue)")
    parser.add_argument("--minutes-per-member", type=int)
    parser.add_argument("--status", help="active | paused | closed")
    parser.add_argument("--note")
    parser.add_argument("--timeout", type=float, default=5.0)
    args = parser.parse_args()

    message = build_request(
        args.type,
        user_id=args.user_id,
        role=args.role,
        queue_id=args.queue_id,
        target_user_id=args.target_user_id,
        team_id=args.team_id,
        session_date=args.session_date,
        minutes_per_member=args.minutes_per_member,
        status=args.status,
        note=args.note,
    )
    resp = send_request(
        mqtt_host=args.mqtt_host,
        mqtt_port=args.mqtt_port,
        namespace=args.namespace,
        message=message,
        timeout=args.timeout,
    )

    resp.pop("corr_id", None)
    print(json.dumps(resp, indent=2))
    if resp.get("type") == "error":
        sys.exit(1)


if __name__ == "__main__":
    main()
