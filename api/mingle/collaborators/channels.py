from __future__ import annotations

import json
import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Protocol

from sqlalchemy import text

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationEvent:
    type: str
    user_id: str
    payload: dict[str, Any] = field(default_factory=dict)
    idempotency_key: str | None = None


class NotificationChannel(Protocol):
    def publish(self, event: NotificationEvent) -> None:
        ...


class InMemoryChannel:
    def __init__(self) -> None:
        self.events: list[NotificationEvent] = []
        self._lock = threading.Lock()

    def publish(self, event: NotificationEvent) -> None:
        with self._lock:
            self.events.append(event)

    def of_type(self, event_type: str) -> list[NotificationEvent]:
        with self._lock:
            return [e for e in self.events if e.type == event_type]


class LoggingChannel:
    def publish(self, event: NotificationEvent) -> None:
        logger.info("[notify] type=%s user_id=%s payload=%s", event.type, event.user_id, event.payload)


class OutboxChannel:
    """Queues events in ``notification_outbox`` for a push worker to deliver."""

    def __init__(self, session_factory, channel: str = "push") -> None:
        self._session_factory = session_factory
        self._channel = channel

    def publish(self, event: NotificationEvent) -> None:
        with self._session_factory() as db:
            enqueue_outbox_event(db, event, channel=self._channel)
            db.commit()


def enqueue_outbox_event(db, event: NotificationEvent, channel: str = "push") -> None:
    db.execute(
        text(
            """
            INSERT INTO notification_outbox (id, user_id, channel, event_type, payload, idempotency_key)
            VALUES (:id, :user_id, :channel, :event_type, CAST(:payload AS jsonb), :idempotency_key)
            ON CONFLICT (idempotency_key) DO NOTHING
            """
        ),
        {
            "id": str(uuid.uuid4()),
            "user_id": event.user_id,
            "channel": channel,
            "event_type": event.type,
            "payload": json.dumps(event.payload, default=str),
            "idempotency_key": event.idempotency_key or f"{event.type}:{event.user_id}:{uuid.uuid4()}",
        },
    )
