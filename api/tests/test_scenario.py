from datetime import datetime, timedelta, timezone

import pytest

from mingle.collaborators.channels import InMemoryChannel
from mingle.container import build_services
from mingle.services.errors import AlreadyRematched, Expired, QuotaExceeded


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def test_like_match_cap_expire_and_single_rematch():
    clock = FakeClock(datetime(2026, 3, 1, 20, 0, tzinfo=timezone.utc))
    s = build_services("memory", clock=clock, channel=InMemoryChannel())
    s.checkin_registry.check_in("alice", "v1")
    s.checkin_registry.check_in("bob", "v1")

    assert s.interests.record_interest("alice", "bob", "v1").status == "pending"
    matched = s.interests.record_interest("bob", "alice", "v1")
    assert matched.status == "matched"
    assert s.interests.record_interest("alice", "bob", "v1").match_id == matched.match_id

    for i in range(3):
        s.messaging.send(matched.match_id, "alice", f"message {i}")
        assert s.messaging.remaining_quota(matched.match_id, "alice") == 2 - i
    with pytest.raises(QuotaExceeded):
        s.messaging.send(matched.match_id, "alice", "fourth")

    clock.advance(hours=3)
    assert s.messaging.can_send(matched.match_id, "bob") is False
    with pytest.raises(Expired):
        s.messaging.send(matched.match_id, "bob", "late reply")
    assert s.store.get_match(matched.match_id).status == "active"

    rematched = s.rematch.rematch(matched.match_id, "alice")
    assert rematched.rematched_from_id == matched.match_id
    assert rematched.id != matched.match_id
    assert s.messaging.remaining_quota(rematched.id, "alice") == 3

    with pytest.raises(AlreadyRematched):
        s.rematch.rematch(matched.match_id, "alice")
