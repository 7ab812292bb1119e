"""Runtime settings and logging setup.

Values come from the environment (optionally via a `.env` file in the working
directory). Command-line flags use them as defaults and may override them.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

from .coordinator import DEFAULT_MAX_ATTEMPTS, DEFAULT_MINUTES_PER_MEMBER
from .mqtt_topics import DEFAULT_NAMESPACE


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class Settings:
    mqtt_host: str = "127.0.0.1"
    mqtt_port: int = 1883
    namespace: str = DEFAULT_NAMESPACE
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    minutes_per_member: int = DEFAULT_MINUTES_PER_MEMBER
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, *, dotenv: bool = True) -> Settings:
        if dotenv:
            load_dotenv()
        return cls(
            mqtt_host=os.getenv("MENTOR_QUEUE_MQTT_HOST", cls.mqtt_host),
            mqtt_port=_int_env("MENTOR_QUEUE_MQTT_PORT", cls.mqtt_port),
            namespace=os.getenv("MENTOR_QUEUE_NAMESPACE", cls.namespace),
            max_attempts=_int_env("MENTOR_QUEUE_MAX_ATTEMPTS", cls.max_attempts),
            minutes_per_member=_int_env("MENTOR_QUEUE_MINUTES_PER_MEMBER", cls.minutes_per_member),
            log_level=os.getenv("LOG_LEVEL", cls.log_level),
        )


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )
