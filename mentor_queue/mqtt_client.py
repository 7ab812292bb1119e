"""JSON-over-MQTT helper built on top of paho-mqtt.

- `MqttClient` owns the connection and paho's background network loop.
- `publish()` / `subscribe()` speak JSON objects instead of raw payloads.
- `request()` publishes a message and blocks until the reply carrying the same
  `corr_id` arrives on the caller's response topic.

Subscriptions are remembered and replayed on every (re)connect, so a broker
restart does not silently leave the service deaf.
"""

from __future__ import annotations

import json
import logging
import queue
import threading
import uuid
from typing import Any, Callable

import paho.mqtt.client as mqtt

logger = logging.getLogger(__name__)

MessageHandler = Callable[[str, dict[str, Any]], None]


class MqttClient:
    """Thin wrapper around paho-mqtt with JSON convenience APIs."""

    def __init__(
        self,
        *,
        client_id: str,
        host: str,
        port: int,
        keepalive: int = 30,
    ) -> None:
        self.client_id = client_id
        self.host = host
        self.port = port
        self.keepalive = keepalive

        self._client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id,
            clean_session=True,
        )
        self._client.on_connect = self._on_connect
        self._client.on_message = self._on_message

        self._handlers: list[MessageHandler] = []
        self._topics: set[str] = set()

        # corr_id -> one-slot queue that request() is blocked on
        self._pending: dict[str, queue.Queue[dict[str, Any]]] = {}
        self._lock = threading.Lock()

        self._started = False

    def start(self) -> None:
        """Connect and start the background network loop."""
        if self._started:
            return
        self._client.connect(self.host, self.port, keepalive=self.keepalive)
        self._client.loop_start()
        self._started = True

    def stop(self) -> None:
        if not self._started:
            return
        self._client.loop_stop()
        self._client.disconnect()
        self._started = False

    def add_handler(self, handler: MessageHandler) -> None:
        self._handlers.append(handler)

    def subscribe(self, topic: str) -> None:
        with self._lock:
            self._topics.add(topic)
        self._client.subscribe(topic, qos=1)

    def publish(self, topic: str, message: dict[str, Any]) -> None:
        payload = json.dumps(message, separators=(",", ":")).encode("utf-8")
        self._client.publish(topic, payload=payload, qos=1)

    def request(
        self,
        *,
        request_topic: str,
        response_topic: str,
        message: dict[str, Any],
        timeout: float = 5.0,
    ) -> dict[str, Any]:
        """Publish `message` and wait for the correlated reply.

        The caller must already be subscribed to `response_topic`.
        """
        corr_id = str(uuid.uuid4())
        msg = dict(message, corr_id=corr_id, reply_to=response_topic)

        slot: queue.Queue[dict[str, Any]] = queue.Queue(maxsize=1)
        with self._lock:
            self._pending[corr_id] = slot

        self.publish(request_topic, msg)

        try:
            return slot.get(timeout=timeout)
        except queue.Empty as e:
            raise TimeoutError(f"No response for corr_id={corr_id}") from e
        finally:
            with self._lock:
                self._pending.pop(corr_id, None)

    # -------------------- paho callbacks --------------------

    def _on_connect(self, client: mqtt.Client, userdata: Any, flags: Any, reason_code: Any, properties: Any) -> None:
        if reason_code.is_failure:
            logger.error("mqtt connect to %s:%s failed: %s", self.host, self.port, reason_code)
            return
        with self._lock:
            topics = sorted(self._topics)
        for t in topics:
            client.subscribe(t, qos=1)
        logger.info("mqtt connected to %s:%s as %s", self.host, self.port, self.client_id)

    def _on_message(self, client: mqtt.Client, userdata: Any, msg: mqtt.MQTTMessage) -> None:
        try:
            raw = msg.payload
            text = raw.decode("utf-8") if isinstance(raw, bytes) else str(raw)
            data = json.loads(text)
        except (UnicodeDecodeError, ValueError):
            logger.warning("dropping malformed payload on %s", msg.topic)
            return
        if not isinstance(data, dict):
            logger.warning("dropping non-object payload on %s", msg.topic)
            return

        corr_id = data.get("corr_id")
        if isinstance(corr_id, str):
            with self._lock:
                slot = self._pending.get(corr_id)
            if slot is not None:
                try:
                    slot.put_nowait(data)
                except queue.Full:
                    logger.debug("duplicate reply for corr_id=%s", corr_id)
                return

        for h in list(self._handlers):
            try:
                h(msg.topic, data)
            except Exception:
                # Keep the network loop alive; one bad message must not stop the service.
                logger.exception("handler failed for message on %s", msg.topic)
