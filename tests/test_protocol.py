import json

import pytest

from mentor_queue.client import build_request
from mentor_queue.errors import ErrorResponse, NoPendingRequest
from mentor_queue.mqtt_topics import all_queue_updates, queue_requests, queue_responses, queue_updates


def test_topic_helpers():
    ns = "demo/v1"
    assert queue_requests(ns) == "demo/v1/queues/requests"
    assert queue_responses("c1", ns) == "demo/v1/queues/responses/c1"
    assert queue_updates("q1", ns) == "demo/v1/queues/updates/q1"
    assert all_queue_updates(ns) == "demo/v1/queues/updates/+"
    assert queue_requests() == "mentorqueue/v1/queues/requests"


def test_error_envelope():
    msg = NoPendingRequest().to_response().to_message(corr_id="abc")
    assert msg == {
        "type": "error",
        "code": "no_pending_request",
        "message": "No pending request found for this user",
        "corr_id": "abc",
    }
    assert "corr_id" not in ErrorResponse("bad_request", "x").to_message()


def test_build_request_drops_missing_fields():
    msg = build_request("approve", user_id="mentor-ana", role="mentor", queue_id="q1", target_user_id="alice")
    assert msg == {
        "type": "approve",
        "user_id": "mentor-ana",
        "role": "mentor",
        "queue_id": "q1",
        "target_user_id": "alice",
    }
    json.dumps(msg)


def test_build_request_rejects_unknown_type():
    with pytest.raises(ValueError):
        build_request("teleport", user_id="x", role="student")
