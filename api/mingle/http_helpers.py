from contextlib import contextmanager
from typing import Any

from .domain import Match, MatchView, Message
from .services.errors import ErrorKind, Expired

ERROR_STATUS = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.SELF_INTEREST: 400,
    ErrorKind.NOT_CHECKED_IN: 409,
    ErrorKind.EXPIRED: 410,
    ErrorKind.QUOTA_EXCEEDED: 429,
    ErrorKind.ALREADY_REMATCHED: 409,
    ErrorKind.NOT_EXPIRED: 409,
    ErrorKind.BLOCKED: 403,
    ErrorKind.VALIDATION_FAILED: 400,
    ErrorKind.DEPENDENCY_UNAVAILABLE: 503,
    ErrorKind.LIKES_EXHAUSTED: 429,
    ErrorKind.CONTACT_ALREADY_SHARED: 409,
}


def contact_payload(match: Match) -> dict[str, Any] | None:
    if match.contact_info is None:
        return None
    c = match.contact_info
    return {"kind": c.kind, "value": c.value, "shared_by": c.shared_by, "shared_at": c.shared_at.isoformat()}


def match_payload(view: MatchView) -> dict[str, Any]:
    m = view.match
    return {
        "id": m.id,
        "user_id_a": m.user_id_a,
        "user_id_b": m.user_id_b,
        "other_user_id": view.other_user_id,
        "venue_id": m.venue_id,
        "status": view.status,
        "is_expired": view.is_expired,
        "seconds_remaining": view.seconds_remaining,
        "created_at": m.created_at.isoformat(),
        "expires_at": m.expires_at.isoformat(),
        "contact_info": contact_payload(m),
        "rematched_from_id": m.rematched_from_id,
    }


def message_payload(message: Message) -> dict[str, Any]:
    return {
        "id": message.id,
        "match_id": message.match_id,
        "sender_id": message.sender_id,
        "text": message.text,
        "created_at": message.created_at.isoformat(),
        "read_by": sorted(message.read_by),
    }


@contextmanager
def rematch_hint(services, match_id: str):
    """Annotate an ``Expired`` error with whether the pair can still rematch."""
    try:
        yield
    except Expired as exc:
        match = services.store.get_match(str(match_id))
        exc.context["rematch_available"] = bool(match) and services.rematch.can_rematch(match.pair_key)
        raise
