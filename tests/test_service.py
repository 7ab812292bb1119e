import argparse
import datetime as dt

import pytest

from mentor_queue.coordinator import QueueCoordinator
from mentor_queue.models import Team
from mentor_queue.mqtt_topics import queue_requests, queue_updates
from mentor_queue.notifier import MqttNotifier
from mentor_queue.service import MqttQueueService, parse_team
from mentor_queue.store import InMemoryQueueStore
from mentor_queue.teams import InMemoryTeamDirectory

NS = "test/v1"


class FakeMqtt:
    """Records subscriptions and publications instead of talking to a broker."""

    def __init__(self):
        self.subscribed = []
        self.handlers = []
        self.published = []

    def subscribe(self, topic):
        self.subscribed.append(topic)

    def add_handler(self, handler):
        self.handlers.append(handler)

    def publish(self, topic, message):
        self.published.append((topic, message))

    def deliver(self, topic, message):
        for h in self.handlers:
            h(topic, message)


def make():
    mqtt = FakeMqtt()
    coord = QueueCoordinator(
        store=InMemoryQueueStore(),
        teams=InMemoryTeamDirectory([Team("web", "mentor-ana")]),
        notifier=MqttNotifier(mqtt=mqtt, namespace=NS),
        clock=lambda: dt.datetime(2026, 10, 19, 9, 0, tzinfo=dt.timezone.utc),
    )
    service = MqttQueueService(mqtt=mqtt, coordinator=coord, namespace=NS)
    service.start()
    return mqtt, service


def request(mqtt, **msg):
    """Send one request through the handler and return the reply."""
    msg.setdefault("corr_id", "c1")
    msg.setdefault("reply_to", "test/v1/queues/responses/cli")
    before = len(mqtt.published)
    mqtt.deliver(queue_requests(NS), msg)
    replies = [m for t, m in mqtt.published[before:] if t == msg["reply_to"]]
    assert len(replies) == 1
    return replies[0]


def create(mqtt):
    reply = request(mqtt, type="create_queue", user_id="mentor-ana", role="mentor", team_id="web")
    assert reply["type"] == "queue"
    return reply["queue"]["id"]


def test_start_subscribes_to_request_topic():
    mqtt, _ = make()
    assert mqtt.subscribed == [queue_requests(NS)]
    assert len(mqtt.handlers) == 1


def test_full_round_trip():
    mqtt, _ = make()
    qid = create(mqtt)

    reply = request(mqtt, type="join_queue", user_id="alice", queue_id=qid, note="sorting")
    assert reply["corr_id"] == "c1"
    assert reply["queue"]["members"][0]["ticket_number"] == 1
    assert reply["queue"]["members"][0]["status"] == "pending"

    request(mqtt, type="approve", user_id="mentor-ana", role="mentor", queue_id=qid, target_user_id="alice")
    reply = request(mqtt, type="get_queue", user_id="alice", queue_id=qid)
    assert reply["position"]["position"] == 1
    assert reply["position"]["estimated_wait_minutes"] == 15

    reply = request(mqtt, type="advance", user_id="mentor-ana", role="mentor", queue_id=qid)
    assert reply["type"] == "advanced"
    assert reply["next_member"]["user_id"] == "alice"

    reply = request(mqtt, type="advance", user_id="mentor-ana", role="mentor", queue_id=qid)
    assert reply["next_member"] is None


def test_mutations_are_announced_on_queue_topic():
    mqtt, _ = make()
    qid = create(mqtt)
    request(mqtt, type="join_queue", user_id="alice", queue_id=qid)
    updates = [m for t, m in mqtt.published if t == queue_updates(qid, NS)]
    assert updates == [{"type": "queue_update", "queue_id": qid}] * 2


@pytest.mark.parametrize(
    "msg, code",
    [
        ({"type": "teleport", "user_id": "alice"}, "bad_request"),
        ({"type": "join_queue", "queue_id": "x"}, "bad_request"),
        ({"type": "join_queue", "user_id": "alice", "role": "wizard", "queue_id": "x"}, "bad_request"),
        ({"type": "join_queue", "user_id": "alice", "queue_id": "missing"}, "queue_not_found"),
        ({"type": "create_queue", "user_id": "alice", "team_id": "web"}, "not_authorized"),
        ({"type": "create_queue", "user_id": "root", "role": "admin", "team_id": "ops"}, "team_not_found"),
        (
            {"type": "create_queue", "user_id": "root", "role": "admin", "team_id": "web", "session_date": "19/10"},
            "bad_request",
        ),
    ],
)
def test_errors_become_error_replies(msg, code):
    mqtt, _ = make()
    reply = request(mqtt, **msg)
    assert reply["type"] == "error"
    assert reply["code"] == code
    assert reply["corr_id"] == "c1"


def test_domain_errors_are_replied():
    mqtt, _ = make()
    qid = create(mqtt)
    request(mqtt, type="set_status", user_id="mentor-ana", role="mentor", queue_id=qid, status="paused")
    reply = request(mqtt, type="join_queue", user_id="alice", queue_id=qid)
    assert reply["code"] == "queue_not_active"

    reply = request(mqtt, type="set_status", user_id="mentor-ana", role="mentor", queue_id=qid, status="done")
    assert reply["code"] == "invalid_status"

    reply = request(mqtt, type="reject", user_id="mentor-ana", role="mentor", queue_id=qid, target_user_id="bob")
    assert reply["code"] == "no_pending_request"


def test_leave_and_mentor_note():
    mqtt, _ = make()
    qid = create(mqtt)
    request(mqtt, type="join_queue", user_id="alice", queue_id=qid)
    reply = request(
        mqtt, type="mentor_note", user_id="mentor-ana", role="mentor", queue_id=qid, target_user_id="alice", note="ok"
    )
    assert reply["queue"]["members"][0]["mentor_note"] == "ok"

    reply = request(mqtt, type="leave_queue", user_id="alice", queue_id=qid)
    assert reply["queue"]["members"][0]["status"] == "cancelled"
    reply = request(mqtt, type="leave_queue", user_id="alice", queue_id=qid)
    assert reply["code"] == "not_in_queue"


def test_list_queues_shows_active_only():
    mqtt, _ = make()
    qid = create(mqtt)
    other = create(mqtt)
    request(mqtt, type="set_status", user_id="mentor-ana", role="mentor", queue_id=other, status="closed")
    reply = request(mqtt, type="list_queues", user_id="alice")
    assert [q["id"] for q in reply["queues"]] == [qid]


def test_requests_without_reply_to_or_on_other_topics_are_ignored():
    mqtt, _ = make()
    mqtt.deliver(queue_requests(NS), {"type": "list_queues", "user_id": "alice"})
    mqtt.deliver("elsewhere", {"type": "list_queues", "user_id": "alice", "reply_to": "x"})
    assert mqtt.published == []


def test_parse_team():
    assert parse_team("web=mentor-ana:Web team") == Team("web", "mentor-ana", "Web team")
    assert parse_team("ml=bo") == Team("ml", "bo", "")
    with pytest.raises(argparse.ArgumentTypeError):
        parse_team("web")
