import logging
from typing import Any

from ..collaborators.channels import NotificationChannel, NotificationEvent
from ..domain import Match, Message

logger = logging.getLogger(__name__)

MATCH_FORMED = "match_formed"
MESSAGE_RECEIVED = "message_received"
QUOTA_EXHAUSTED = "quota_exhausted"


class NotificationDispatcher:
    """Fan-out boundary to the push/real-time channel. Best-effort only."""

    def __init__(self, channel: NotificationChannel) -> None:
        self.channel = channel

    def _publish(self, event: NotificationEvent) -> bool:
        try:
            self.channel.publish(event)
            return True
        except Exception:
            logger.warning("[notify] publish failed type=%s user_id=%s", event.type, event.user_id, exc_info=True)
            return False

    def match_formed(self, match: Match) -> None:
        payload: dict[str, Any] = {
            "match_id": match.id,
            "venue_id": match.venue_id,
            "expires_at": match.expires_at.isoformat(),
            "rematched_from_id": match.rematched_from_id,
        }
        for user_id in (match.user_id_a, match.user_id_b):
            self._publish(
                NotificationEvent(
                    type=MATCH_FORMED,
                    user_id=user_id,
                    payload={**payload, "other_user_id": match.other_party(user_id)},
                    idempotency_key=f"{MATCH_FORMED}:{match.id}:{user_id}",
                )
            )

    def message_received(self, match: Match, message: Message) -> None:
        recipient = match.other_party(message.sender_id)
        self._publish(
            NotificationEvent(
                type=MESSAGE_RECEIVED,
                user_id=recipient,
                payload={
                    "match_id": match.id,
                    "message_id": message.id,
                    "sender_id": message.sender_id,
                    "preview": message.text[:80],
                },
                idempotency_key=f"{MESSAGE_RECEIVED}:{message.id}",
            )
        )

    def quota_exhausted(self, match: Match, user_id: str, limit: int) -> None:
        self._publish(
            NotificationEvent(
                type=QUOTA_EXHAUSTED,
                user_id=user_id,
                payload={"match_id": match.id, "limit": limit},
                idempotency_key=f"{QUOTA_EXHAUSTED}:{match.id}:{user_id}",
            )
        )
