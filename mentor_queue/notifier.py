from __future__ import annotations

# Queue change announcements.
#
# The core only says "queue X changed"; subscribers fetch the new state
# themselves. Announcing is fire-and-forget: a failed announcement is logged
# and never undoes the mutation that triggered it.

import logging
import threading
from typing import TYPE_CHECKING, Protocol

from .mqtt_topics import DEFAULT_NAMESPACE, queue_updates

if TYPE_CHECKING:
    from .mqtt_client import MqttClient

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def announce(self, queue_id: str) -> None: ...


class NullNotifier:
    def announce(self, queue_id: str) -> None:
        return None


class RecordingNotifier:
    """Keeps every announced queue id in order. Handy for tests and local runs."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.announced: list[str] = []

    def announce(self, queue_id: str) -> None:
        with self._lock:
            self.announced.append(queue_id)


class MqttNotifier:
    """Publishes `{"type": "queue_update", "queue_id": ...}` per changed queue."""

    def __init__(self, *, mqtt: MqttClient, namespace: str = DEFAULT_NAMESPACE) -> None:
        self.mqtt = mqtt
        self.namespace = namespace

    def announce(self, queue_id: str) -> None:
        self.mqtt.publish(queue_updates(queue_id, self.namespace), {"type": "queue_update", "queue_id": queue_id})


def announce_safely(notifier: Notifier, queue_id: str) -> None:
    try:
        notifier.announce(queue_id)
    except Exception:
        logger.warning("announce failed for queue=%s", queue_id, exc_info=True)
