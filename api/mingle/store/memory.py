from __future__ import annotations

import threading
from collections import defaultdict
from dataclasses import replace
from datetime import datetime

from ..domain import STATUS_CONTACT_SHARED, ContactInfo, Interest, Match, Message
from ..services.state_machine import is_expired


class InMemoryStore:
    """Process-local store used by tests and ``STORE_BACKEND=memory``.

    One re-entrant lock serialises every write, which makes each conditional
    write below atomic across request threads. Records handed out are copies.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._kv: dict[str, str] = {}
        self._interests: dict[str, Interest] = {}
        self._matches: dict[str, Match] = {}
        self._slots: dict[str, str] = {}
        self._messages: dict[str, list[Message]] = defaultdict(list)

    def put_if_absent(self, key: str, value: str) -> bool:
        with self._lock:
            if key in self._kv:
                return False
            self._kv[key] = value
            return True

    def read(self, key: str) -> str | None:
        with self._lock:
            return self._kv.get(key)

    def add_interest(self, interest: Interest, now: datetime) -> tuple[Interest, bool]:
        with self._lock:
            existing = self._find_live_interest(interest.from_user_id, interest.to_user_id, interest.venue_id, now)
            if existing:
                return replace(existing), False
            self._interests[interest.id] = replace(interest)
            return replace(interest), True

    def find_live_interest(self, from_user_id: str, to_user_id: str, venue_id: str, now: datetime) -> Interest | None:
        with self._lock:
            found = self._find_live_interest(from_user_id, to_user_id, venue_id, now)
            return replace(found) if found else None

    def _find_live_interest(self, from_user_id: str, to_user_id: str, venue_id: str, now: datetime) -> Interest | None:
        for interest in self._interests.values():
            if (
                interest.from_user_id == from_user_id
                and interest.to_user_id == to_user_id
                and interest.venue_id == venue_id
                and interest.is_live(now)
            ):
                return interest
        return None

    def interests_between(self, user_a: str, user_b: str) -> list[Interest]:
        users = {user_a, user_b}
        with self._lock:
            rows = [replace(i) for i in self._interests.values() if {i.from_user_id, i.to_user_id} == users]
        return sorted(rows, key=lambda i: i.created_at)

    def count_interests_from(self, user_id: str, venue_id: str) -> int:
        with self._lock:
            return sum(1 for i in self._interests.values() if i.from_user_id == user_id and i.venue_id == venue_id)

    def consume_interests(self, interest_ids: list[str], match_id: str) -> None:
        with self._lock:
            for interest_id in interest_ids:
                interest = self._interests.get(interest_id)
                if interest is not None:
                    interest.active = False
                    interest.match_id = match_id

    def claim_pair_slot(self, match: Match, now: datetime) -> tuple[Match, bool]:
        key = match.pair_key
        with self._lock:
            holder_id = self._slots.get(key)
            holder = self._matches.get(holder_id) if holder_id else None
            if holder is not None and not is_expired(now, holder.expires_at):
                return replace(holder), False
            self._matches[match.id] = replace(match)
            self._slots[key] = match.id
            return replace(match), True

    def get_match(self, match_id: str) -> Match | None:
        with self._lock:
            found = self._matches.get(match_id)
            return replace(found) if found else None

    def live_match_for_pair(self, pair_key: str, now: datetime) -> Match | None:
        with self._lock:
            holder_id = self._slots.get(pair_key)
            holder = self._matches.get(holder_id) if holder_id else None
            if holder is None or is_expired(now, holder.expires_at):
                return None
            return replace(holder)

    def matches_for_pair(self, pair_key: str) -> list[Match]:
        with self._lock:
            rows = [replace(m) for m in self._matches.values() if m.pair_key == pair_key]
        return sorted(rows, key=lambda m: m.created_at)

    def matches_for_user(self, user_id: str) -> list[Match]:
        with self._lock:
            rows = [replace(m) for m in self._matches.values() if m.has_party(user_id)]
        return sorted(rows, key=lambda m: m.created_at, reverse=True)

    def set_contact_shared(self, match_id: str, contact: ContactInfo, now: datetime) -> Match | None:
        with self._lock:
            match = self._matches.get(match_id)
            if match is None or is_expired(now, match.expires_at):
                return None
            if match.status != STATUS_CONTACT_SHARED:
                match.status = STATUS_CONTACT_SHARED
                match.contact_info = contact
            return replace(match)

    def append_message(
        self,
        message: Message,
        *,
        limit: int | None = None,
        counted_before: datetime | None = None,
    ) -> bool:
        with self._lock:
            if limit is not None:
                used = self._count(message.match_id, message.sender_id, counted_before)
                if used >= limit:
                    return False
            self._messages[message.match_id].append(replace(message, read_by=set(message.read_by)))
            return True

    def list_messages(self, match_id: str) -> list[Message]:
        with self._lock:
            return [replace(m, read_by=set(m.read_by)) for m in self._messages.get(match_id, [])]

    def count_messages(self, match_id: str, sender_id: str, counted_before: datetime | None = None) -> int:
        with self._lock:
            return self._count(match_id, sender_id, counted_before)

    def _count(self, match_id: str, sender_id: str, counted_before: datetime | None) -> int:
        return sum(
            1
            for m in self._messages.get(match_id, [])
            if m.sender_id == sender_id and (counted_before is None or m.created_at < counted_before)
        )

    def mark_read(self, match_id: str, reader_id: str) -> int:
        marked = 0
        with self._lock:
            for message in self._messages.get(match_id, []):
                if message.sender_id == reader_id or reader_id in message.read_by:
                    continue
                message.read_by.add(reader_id)
                marked += 1
        return marked