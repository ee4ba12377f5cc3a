"""Records owned by the store layer.

Timestamps are timezone-aware UTC datetimes. ``Match.status`` only ever
stores ``active`` or ``contact_shared``; ``expired`` is derived from
``expires_at`` at read time (see ``services.state_machine``).
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

STATUS_ACTIVE = "active"
STATUS_CONTACT_SHARED = "contact_shared"
STATUS_EXPIRED = "expired"

INTEREST_PENDING = "pending"
INTEREST_MATCHED = "matched"


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def pair_key(user_a: str, user_b: str) -> str:
    a, b = sorted([str(user_a), str(user_b)])
    return f"{a}:{b}"


def split_pair_key(key: str) -> tuple[str, str]:
    a, _, b = key.partition(":")
    if not a or not b:
        raise ValueError(f"malformed pair key: {key!r}")
    return a, b


@dataclass
class Interest:
    id: str
    from_user_id: str
    to_user_id: str
    venue_id: str
    created_at: datetime
    expires_at: datetime
    active: bool = True
    match_id: str | None = None

    def is_live(self, now: datetime) -> bool:
        return self.active and now < self.expires_at


@dataclass(frozen=True)
class ContactInfo:
    kind: str
    value: str
    shared_by: str
    shared_at: datetime


@dataclass
class Match:
    id: str
    user_id_a: str
    user_id_b: str
    venue_id: str
    created_at: datetime
    expires_at: datetime
    status: str = STATUS_ACTIVE
    contact_info: ContactInfo | None = None
    rematched_from_id: str | None = None

    @property
    def pair_key(self) -> str:
        return pair_key(self.user_id_a, self.user_id_b)

    def has_party(self, user_id: str) -> bool:
        return str(user_id) in (self.user_id_a, self.user_id_b)

    def other_party(self, user_id: str) -> str:
        return self.user_id_b if str(user_id) == self.user_id_a else self.user_id_a


@dataclass
class Message:
    id: str
    match_id: str
    sender_id: str
    text: str
    created_at: datetime
    read_by: set[str] = field(default_factory=set)


@dataclass(frozen=True)
class MatchView:
    match: Match
    status: str
    is_expired: bool
    seconds_remaining: int
    other_user_id: str


@dataclass(frozen=True)
class InterestResult:
    status: str
    interest_id: str | None = None
    match_id: str | None = None


@dataclass(frozen=True)
class QuotaStatus:
    limit: int
    used: int
    remaining: int
    frozen: bool
    can_send: bool
    reason: str | None = None


@dataclass(frozen=True)
class CheckIn:
    venue_id: str
    since: datetime
