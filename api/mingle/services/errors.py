"""Typed failures for expected match-lifecycle conditions.

Operations raise a ``MatchError`` subclass when a precondition does not hold;
the HTTP layer maps ``kind`` to a status code. Anything that is not a
``MatchError`` is an unexpected fault and propagates unchanged.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    SELF_INTEREST = "self_interest"
    NOT_CHECKED_IN = "not_checked_in"
    EXPIRED = "expired"
    QUOTA_EXCEEDED = "quota_exceeded"
    ALREADY_REMATCHED = "already_rematched"
    NOT_EXPIRED = "not_expired"
    BLOCKED = "blocked"
    VALIDATION_FAILED = "validation_failed"
    DEPENDENCY_UNAVAILABLE = "dependency_unavailable"
    LIKES_EXHAUSTED = "likes_exhausted"
    CONTACT_ALREADY_SHARED = "contact_already_shared"


class MatchError(Exception):
    kind: ErrorKind = ErrorKind.NOT_FOUND
    default_detail = "Request could not be completed"

    def __init__(self, detail: str | None = None, **context: Any) -> None:
        self.detail = detail or self.default_detail
        self.context = context
        super().__init__(self.detail)


class NotFound(MatchError):
    kind = ErrorKind.NOT_FOUND
    default_detail = "Not found"


class Forbidden(MatchError):
    kind = ErrorKind.FORBIDDEN
    default_detail = "Forbidden"


class SelfInterest(MatchError):
    kind = ErrorKind.SELF_INTEREST
    default_detail = "Cannot like yourself"


class NotCheckedIn(MatchError):
    kind = ErrorKind.NOT_CHECKED_IN
    default_detail = "Both users must be checked in at the venue"


class Expired(MatchError):
    kind = ErrorKind.EXPIRED
    default_detail = "Match has expired"


class QuotaExceeded(MatchError):
    kind = ErrorKind.QUOTA_EXCEEDED
    default_detail = "Message limit reached"


class AlreadyRematched(MatchError):
    kind = ErrorKind.ALREADY_REMATCHED
    default_detail = "This pair has already used its rematch"


class NotExpired(MatchError):
    kind = ErrorKind.NOT_EXPIRED
    default_detail = "Match has not expired yet"


class Blocked(MatchError):
    kind = ErrorKind.BLOCKED
    default_detail = "Messaging is blocked between these users"


class ValidationFailed(MatchError):
    kind = ErrorKind.VALIDATION_FAILED
    default_detail = "Message rejected"


class DependencyUnavailable(MatchError):
    kind = ErrorKind.DEPENDENCY_UNAVAILABLE
    default_detail = "A required service is unavailable"


class LikesExhausted(MatchError):
    kind = ErrorKind.LIKES_EXHAUSTED
    default_detail = "No likes remaining at this venue"


class ContactAlreadyShared(MatchError):
    kind = ErrorKind.CONTACT_ALREADY_SHARED
    default_detail = "Contact has already been shared on this match"
