"""Messaging gate: who may post into a match, and how much.

Quota rule: a flat per-sender cap of ``MESSAGE_LIMIT_PER_USER`` messages per
match. Replies from the other party do not reset it. Once contact has been
shared the quota is frozen: messages sent after ``shared_at`` are not counted
and the cap no longer applies, but the match still expires.

Expiry is derived from ``expires_at`` on every call; nothing here trusts a
stored "expired" flag.
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable

from ..collaborators.blocks import CachedBlockList
from ..collaborators.validation import TextValidator
from ..config import MESSAGE_LIMIT_PER_USER, TYPING_TTL_SECONDS
from ..domain import STATUS_CONTACT_SHARED, STATUS_EXPIRED, Match, Message, QuotaStatus, new_id, now_utc
from ..store.base import RecordStore
from .errors import Blocked, DependencyUnavailable, Expired, MatchError, QuotaExceeded
from .matches import MatchStore
from .notifications import NotificationDispatcher
from .state_machine import quota_applies, transition_status

logger = logging.getLogger(__name__)


class TypingTracker:
    """Ephemeral per-(match, user) typing flags that clear themselves after ``ttl``."""

    def __init__(self, ttl: timedelta, clock: Callable[[], datetime] = now_utc) -> None:
        self._ttl = ttl
        self._clock = clock
        self._until: dict[tuple[str, str], datetime] = {}
        self._lock = threading.Lock()

    def set(self, match_id: str, user_id: str, is_typing: bool) -> None:
        key = (match_id, user_id)
        now = self._clock()
        with self._lock:
            self._purge(now)
            if is_typing:
                self._until[key] = now + self._ttl
            else:
                self._until.pop(key, None)

    def typing_users(self, match_id: str) -> list[str]:
        now = self._clock()
        with self._lock:
            self._purge(now)
            return sorted(user_id for (mid, user_id) in self._until if mid == match_id)

    def _purge(self, now: datetime) -> None:
        for key in [k for k, until in self._until.items() if until <= now]:
            del self._until[key]


class MessagingGate:
    def __init__(
        self,
        store: RecordStore,
        matches: MatchStore,
        dispatcher: NotificationDispatcher,
        blocks: CachedBlockList,
        validator: TextValidator,
        *,
        limit: int = MESSAGE_LIMIT_PER_USER,
        typing_ttl: timedelta = timedelta(seconds=TYPING_TTL_SECONDS),
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self.store = store
        self.matches = matches
        self.dispatcher = dispatcher
        self.blocks = blocks
        self.validator = validator
        self.limit = limit
        self.clock = clock
        self.typing = TypingTracker(typing_ttl, clock)

    def _is_blocked(self, match: Match, *, strict: bool) -> bool:
        try:
            return self.blocks.is_blocked(match.user_id_a, match.user_id_b)
        except Exception as exc:
            logger.warning("[gate] block list unavailable match_id=%s: %s", match.id, exc)
            if strict:
                raise DependencyUnavailable("Block list unavailable") from exc
            cached = self.blocks.cached(match.user_id_a, match.user_id_b)
            return True if cached is None else cached

    def _used(self, match: Match, user_id: str) -> int:
        counted_before = match.contact_info.shared_at if match.contact_info else None
        return self.store.count_messages(match.id, str(user_id), counted_before)

    def quota_status(self, match_id: str, user_id: str) -> QuotaStatus:
        match = self.matches.get_match_for(match_id, user_id)
        used = self._used(match, user_id)
        frozen = match.status == STATUS_CONTACT_SHARED
        remaining = self._remaining(match, used)

        reason = None
        if self.matches.is_expired(match):
            reason = "expired"
        elif self._is_blocked(match, strict=False):
            reason = "blocked"
        elif not frozen and remaining == 0:
            reason = "limit_reached"
        return QuotaStatus(
            limit=self.limit,
            used=used,
            remaining=remaining,
            frozen=frozen,
            can_send=reason is None,
            reason=reason,
        )

    def can_send(self, match_id: str, user_id: str) -> bool:
        try:
            return self.quota_status(match_id, user_id).can_send
        except MatchError:
            return False

    def _remaining(self, match: Match, used: int) -> int:
        # A frozen quota has no cap left to spend down.
        if match.status == STATUS_CONTACT_SHARED:
            return self.limit
        return max(0, self.limit - used)

    def remaining_quota(self, match_id: str, user_id: str) -> int:
        match = self.matches.get_match_for(match_id, user_id)
        return self._remaining(match, self._used(match, user_id))

    def send(self, match_id: str, user_id: str, text: str) -> Message:
        sender = str(user_id)
        match = self.matches.get_match_for(match_id, sender)
        now = self.clock()
        if transition_status(match.status, "send", now, match.expires_at) == STATUS_EXPIRED:
            raise Expired(match_id=match.id)
        if self._is_blocked(match, strict=True):
            raise Blocked(match_id=match.id)

        try:
            body = self.validator.validate(text)
        except MatchError:
            raise
        except Exception as exc:
            logger.warning("[gate] text validator unavailable match_id=%s: %s", match.id, exc)
            raise DependencyUnavailable("Message validation unavailable") from exc

        frozen = not quota_applies(match.status, now, match.expires_at)
        message = Message(id=new_id(), match_id=match.id, sender_id=sender, text=body, created_at=now)
        if not self.store.append_message(message, limit=None if frozen else self.limit):
            raise QuotaExceeded(match_id=match.id, limit=self.limit)
        logger.info("[gate] message sent match_id=%s sender=%s", match.id, sender)

        self.typing.set(match.id, sender, False)
        self.dispatcher.message_received(match, message)
        if not frozen and self._used(match, sender) >= self.limit:
            self.dispatcher.quota_exhausted(match, sender, self.limit)
        return message

    def list_messages(self, match_id: str, user_id: str) -> list[Message]:
        match = self.matches.get_match_for(match_id, user_id)
        return self.store.list_messages(match.id)

    def unread_count(self, match_id: str, user_id: str) -> int:
        reader = str(user_id)
        return sum(1 for m in self.list_messages(match_id, reader) if m.sender_id != reader and reader not in m.read_by)

    def mark_read(self, match_id: str, user_id: str) -> int:
        match = self.matches.get_match_for(match_id, user_id)
        return self.store.mark_read(match.id, str(user_id))

    def set_typing(self, match_id: str, user_id: str, is_typing: bool) -> None:
        match = self.matches.get_match_for(match_id, user_id)
        if is_typing and self.matches.is_expired(match):
            return
        self.typing.set(match.id, str(user_id), bool(is_typing))

    def typing_users(self, match_id: str, user_id: str) -> list[str]:
        match = self.matches.get_match_for(match_id, user_id)
        return [u for u in self.typing.typing_users(match.id) if u != str(user_id)]
