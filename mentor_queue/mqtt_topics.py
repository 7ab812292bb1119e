"""MQTT topic helpers.

Topic layout under a configurable namespace (default: `mentorqueue/v1`):

Request/response:
- `<ns>/queues/requests`
    Every client (student, mentor, admin) publishes requests here.
- `<ns>/queues/responses/<client_id>`
    The service replies on the `reply_to` topic named in the request; by
    convention this one.

Announcements:
- `<ns>/queues/updates/<queue_id>`
    Published after every successful mutation of one queue. Subscribers
    re-fetch the queue; the message carries no state.
"""

from __future__ import annotations

DEFAULT_NAMESPACE = "mentorqueue/v1"


def queue_requests(namespace: str = DEFAULT_NAMESPACE) -> str:
    return f"{namespace}/queues/requests"


def queue_responses(client_id: str, namespace: str = DEFAULT_NAMESPACE) -> str:
    return f"{namespace}/queues/responses/{client_id}"


def queue_updates(queue_id: str, namespace: str = DEFAULT_NAMESPACE) -> str:
    return f"{namespace}/queues/updates/{queue_id}"


def all_queue_updates(namespace: str = DEFAULT_NAMESPACE) -> str:
    """Wildcard subscription covering every queue's announcements."""
    return f"{namespace}/queues/updates/+"
