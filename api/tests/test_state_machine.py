from datetime import datetime, timedelta, timezone

from mingle.services.state_machine import effective_status, is_expired, quota_applies, seconds_remaining, transition_status


def test_share_contact_transitions_and_is_idempotent():
    now = datetime.now(timezone.utc)
    expires = now + timedelta(hours=2)

    assert transition_status("active", "share_contact", now, expires) == "contact_shared"
    assert transition_status("contact_shared", "share_contact", now, expires) == "contact_shared"
    assert transition_status("active", "send", now, expires) == "active"


def test_expired_wins_over_every_action():
    now = datetime.now(timezone.utc)
    past = now - timedelta(minutes=1)

    assert transition_status("active", "share_contact", now, past) == "expired"
    assert transition_status("contact_shared", "send", now, past) == "expired"
    assert effective_status("contact_shared", now, past) == "expired"


def test_expiry_boundary_is_inclusive():
    now = datetime(2026, 3, 1, 21, 0, tzinfo=timezone.utc)
    assert is_expired(now, now) is True
    assert is_expired(now - timedelta(microseconds=1), now) is False
    assert seconds_remaining(now, now) == 0
    assert seconds_remaining(now - timedelta(seconds=90), now) == 90


def test_quota_only_applies_to_active_matches():
    now = datetime.now(timezone.utc)
    expires = now + timedelta(hours=1)
    assert quota_applies("active", now, expires) is True
    assert quota_applies("contact_shared", now, expires) is False
    assert quota_applies("active", expires, expires) is False
