import threading
from datetime import datetime, timedelta, timezone

import pytest

from mingle.collaborators.channels import InMemoryChannel
from mingle.container import build_services
from mingle.services.errors import AlreadyRematched, Forbidden, MatchError, NotCheckedIn, NotExpired, NotFound
from mingle.services.notifications import MATCH_FORMED
from mingle.services.rematch import rematch_ledger_key


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def _expired_match():
    clock = FakeClock(datetime(2026, 3, 1, 20, 0, tzinfo=timezone.utc))
    channel = InMemoryChannel()
    s = build_services("memory", clock=clock, channel=channel)
    match, _ = s.matches.create_match("u1", "u2", "v1")
    clock.advance(hours=3, minutes=5)
    s.checkin_registry.check_in("u1", "v2")
    s.checkin_registry.check_in("u2", "v2")
    return s, clock, channel, match


def test_rematch_creates_new_match_once():
    s, clock, channel, old = _expired_match()
    assert s.rematch.can_rematch(old.pair_key) is True

    new = s.rematch.rematch(old.id, "u2")
    assert new.id != old.id
    assert new.rematched_from_id == old.id
    assert new.venue_id == "v2"
    assert new.expires_at == clock.now + timedelta(hours=3)
    assert s.store.read(rematch_ledger_key(old.pair_key)) == old.id
    assert s.matches.is_expired(s.matches.get_match(old.id)) is True
    assert len(channel.of_type(MATCH_FORMED)) == 2

    assert s.rematch.can_rematch(old.pair_key) is False
    with pytest.raises(AlreadyRematched):
        s.rematch.rematch(old.id, "u1")

    clock.advance(hours=4)
    with pytest.raises(AlreadyRematched):
        s.rematch.rematch(new.id, "u1")


def test_rematch_requires_expiry():
    clock = FakeClock(datetime(2026, 3, 1, 20, 0, tzinfo=timezone.utc))
    s = build_services("memory", clock=clock, channel=InMemoryChannel())
    match, _ = s.matches.create_match("u1", "u2", "v1")
    assert s.rematch.can_rematch(match.pair_key) is False
    with pytest.raises(NotExpired):
        s.rematch.rematch(match.id, "u1")


def test_rematch_requires_both_users_at_requester_venue():
    s, _, _, old = _expired_match()
    s.checkin_registry.check_in("u2", "v3")
    with pytest.raises(NotCheckedIn):
        s.rematch.rematch(old.id, "u1")
    assert s.rematch.can_rematch(old.pair_key) is True

    s.checkin_registry.check_out("u1")
    with pytest.raises(NotCheckedIn):
        s.rematch.rematch(old.id, "u1")


def test_rematch_party_and_existence_checks():
    s, _, _, old = _expired_match()
    with pytest.raises(NotFound):
        s.rematch.rematch("missing", "u1")
    with pytest.raises(Forbidden):
        s.rematch.rematch(old.id, "u3")


def test_can_rematch_unknown_pair():
    s, _, _, _ = _expired_match()
    assert s.rematch.can_rematch("u8:u9") is False
    with pytest.raises(ValueError):
        s.rematch.can_rematch("not-a-pair")


def test_concurrent_rematch_requests_yield_one_new_match():
    s, _, _, old = _expired_match()
    barrier = threading.Barrier(4)
    created, refused = [], []

    def _request(uid):
        barrier.wait()
        try:
            created.append(s.rematch.rematch(old.id, uid).id)
        except MatchError as exc:
            refused.append(exc)

    threads = [threading.Thread(target=_request, args=(uid,)) for uid in ("u1", "u2", "u1", "u2")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert created
    assert len(set(created)) == 1
    assert all(isinstance(e, AlreadyRematched) for e in refused)
    assert len(s.store.matches_for_pair(old.pair_key)) == 2
