"""Record store contract shared by the in-memory and Postgres backends."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from ..domain import ContactInfo, Interest, Match, Message


class RecordStore(Protocol):
    """Durable owner of interests, matches and messages.

    Every method that decides between two concurrent writers is a single
    conditional write: ``put_if_absent``, ``add_interest``,
    ``claim_pair_slot``, ``set_contact_shared`` and ``append_message``.
    """

    def put_if_absent(self, key: str, value: str) -> bool:
        ...

    def read(self, key: str) -> str | None:
        ...

    def add_interest(self, interest: Interest, now: datetime) -> tuple[Interest, bool]:
        """Insert unless a live interest for (from, to, venue) exists; return it and whether it was created."""
        ...

    def find_live_interest(self, from_user_id: str, to_user_id: str, venue_id: str, now: datetime) -> Interest | None:
        ...

    def interests_between(self, user_a: str, user_b: str) -> list[Interest]:
        """Every interest between the two users in either direction, live or not."""
        ...

    def count_interests_from(self, user_id: str, venue_id: str) -> int:
        ...

    def consume_interests(self, interest_ids: list[str], match_id: str) -> None:
        ...

    def claim_pair_slot(self, match: Match, now: datetime) -> tuple[Match, bool]:
        """Persist ``match`` unless its pair already holds an unexpired match, which is returned instead."""
        ...

    def get_match(self, match_id: str) -> Match | None:
        ...

    def live_match_for_pair(self, pair_key: str, now: datetime) -> Match | None:
        ...

    def matches_for_pair(self, pair_key: str) -> list[Match]:
        ...

    def matches_for_user(self, user_id: str) -> list[Match]:
        ...

    def set_contact_shared(self, match_id: str, contact: ContactInfo, now: datetime) -> Match | None:
        """Mark contact shared if the match is still unexpired; ``None`` otherwise."""
        ...

    def append_message(
        self,
        message: Message,
        *,
        limit: int | None = None,
        counted_before: datetime | None = None,
    ) -> bool:
        """Append unless the sender already has ``limit`` counted messages in the match."""
        ...

    def list_messages(self, match_id: str) -> list[Message]:
        ...

    def count_messages(self, match_id: str, sender_id: str, counted_before: datetime | None = None) -> int:
        ...

    def mark_read(self, match_id: str, reader_id: str) -> int:
        ...
