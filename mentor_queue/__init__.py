"""Mentor queue: students request time with a mentor team and are served in order.

The core (`coordinator`, `state_machine`, `tickets`, `position`) is plain
Python with no broker dependency. `service` exposes it over MQTT request /
response topics and announces every change on a per-queue updates topic.

See README for how to run.
"""
