import threading
from datetime import datetime, timedelta, timezone

from mingle.domain import ContactInfo, Interest, Match, Message, pair_key, split_pair_key
from mingle.store.memory import InMemoryStore

T0 = datetime(2026, 3, 1, 20, 0, tzinfo=timezone.utc)


def _match(match_id: str, a: str = "u1", b: str = "u2", created: datetime = T0, hours: int = 3) -> Match:
    return Match(id=match_id, user_id_a=a, user_id_b=b, venue_id="v1", created_at=created, expires_at=created + timedelta(hours=hours))


def _interest(interest_id: str, src: str, dst: str, created: datetime = T0) -> Interest:
    return Interest(id=interest_id, from_user_id=src, to_user_id=dst, venue_id="v1", created_at=created, expires_at=created + timedelta(hours=24))


def test_pair_key_is_order_independent():
    assert pair_key("u2", "u1") == pair_key("u1", "u2") == "u1:u2"
    assert split_pair_key("u1:u2") == ("u1", "u2")


def test_put_if_absent_writes_once():
    store = InMemoryStore()
    assert store.put_if_absent("rematch:u1:u2", "m1") is True
    assert store.put_if_absent("rematch:u1:u2", "m2") is False
    assert store.read("rematch:u1:u2") == "m1"
    assert store.read("missing") is None


def test_add_interest_is_idempotent_while_live():
    store = InMemoryStore()
    first, created = store.add_interest(_interest("i1", "u1", "u2"), T0)
    again, created_again = store.add_interest(_interest("i2", "u1", "u2"), T0 + timedelta(minutes=5))
    assert created is True
    assert created_again is False
    assert again.id == first.id

    later, created_later = store.add_interest(_interest("i3", "u1", "u2", T0 + timedelta(hours=25)), T0 + timedelta(hours=25))
    assert created_later is True
    assert later.id == "i3"


def test_claim_pair_slot_allows_one_live_match_per_pair():
    store = InMemoryStore()
    m1, created = store.claim_pair_slot(_match("m1"), T0)
    m2, created2 = store.claim_pair_slot(_match("m2"), T0 + timedelta(minutes=1))
    assert created is True
    assert created2 is False
    assert m2.id == m1.id == "m1"

    after = T0 + timedelta(hours=3)
    m3, created3 = store.claim_pair_slot(_match("m3", created=after), after)
    assert created3 is True
    assert m3.id == "m3"
    assert [m.id for m in store.matches_for_pair("u1:u2")] == ["m1", "m3"]
    assert [m.id for m in store.matches_for_user("u2")] == ["m3", "m1"]


def test_claim_pair_slot_under_contention_creates_single_match():
    store = InMemoryStore()
    results = []
    barrier = threading.Barrier(8)

    def _claim(i: int) -> None:
        barrier.wait()
        results.append(store.claim_pair_slot(_match(f"m{i}"), T0))

    threads = [threading.Thread(target=_claim, args=(i,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sum(1 for _, created in results if created) == 1
    assert len({m.id for m, _ in results}) == 1


def test_returned_records_are_copies():
    store = InMemoryStore()
    store.claim_pair_slot(_match("m1"), T0)
    copy = store.get_match("m1")
    copy.status = "contact_shared"
    assert store.get_match("m1").status == "active"


def test_set_contact_shared_refuses_expired_match():
    store = InMemoryStore()
    store.claim_pair_slot(_match("m1"), T0)
    contact = ContactInfo(kind="phone", value="555", shared_by="u1", shared_at=T0)
    assert store.set_contact_shared("m1", contact, T0 + timedelta(hours=3)) is None
    shared = store.set_contact_shared("m1", contact, T0 + timedelta(hours=1))
    assert shared.status == "contact_shared"
    assert shared.contact_info == contact


def test_append_message_respects_limit_and_cutoff():
    store = InMemoryStore()
    for i in range(2):
        msg = Message(id=f"x{i}", match_id="m1", sender_id="u1", text="hi", created_at=T0 + timedelta(minutes=i))
        assert store.append_message(msg, limit=2) is True
    blocked = Message(id="x2", match_id="m1", sender_id="u1", text="hi", created_at=T0 + timedelta(minutes=5))
    assert store.append_message(blocked, limit=2) is False
    assert store.count_messages("m1", "u1") == 2
    assert store.count_messages("m1", "u1", counted_before=T0 + timedelta(seconds=30)) == 1
    assert store.count_messages("m1", "u2") == 0


def test_mark_read_counts_only_new_receipts():
    store = InMemoryStore()
    store.append_message(Message(id="a", match_id="m1", sender_id="u1", text="hi", created_at=T0))
    store.append_message(Message(id="b", match_id="m1", sender_id="u2", text="yo", created_at=T0))
    assert store.mark_read("m1", "u2") == 1
    assert store.mark_read("m1", "u2") == 0
    messages = store.list_messages("m1")
    assert messages[0].read_by == {"u2"}
    assert messages[1].read_by == set()
