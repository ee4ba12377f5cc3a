from datetime import datetime

from ..domain import STATUS_ACTIVE, STATUS_CONTACT_SHARED, STATUS_EXPIRED


def is_expired(now: datetime, expires_at: datetime) -> bool:
    return now >= expires_at


def effective_status(stored: str, now: datetime, expires_at: datetime) -> str:
    # Stored status is never flipped to expired; every reader derives it.
    if is_expired(now, expires_at):
        return STATUS_EXPIRED
    return stored


def transition_status(current: str, action: str, now: datetime, expires_at: datetime) -> str:
    if effective_status(current, now, expires_at) == STATUS_EXPIRED:
        return STATUS_EXPIRED

    if action == "share_contact":
        if current in {STATUS_ACTIVE, STATUS_CONTACT_SHARED}:
            return STATUS_CONTACT_SHARED
        return current

    if action == "send":
        return current

    return current


def quota_applies(current: str, now: datetime, expires_at: datetime) -> bool:
    return effective_status(current, now, expires_at) == STATUS_ACTIVE


def seconds_remaining(now: datetime, expires_at: datetime) -> int:
    remaining = int((expires_at - now).total_seconds())
    return remaining if remaining > 0 else 0
