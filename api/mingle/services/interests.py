import logging
from datetime import datetime, timedelta
from typing import Callable

from ..collaborators.checkins import CheckInProvider
from ..config import INTEREST_TTL_HOURS, LIKES_PER_VENUE
from ..domain import INTEREST_MATCHED, INTEREST_PENDING, Interest, InterestResult, new_id, now_utc
from ..store.base import RecordStore
from .errors import DependencyUnavailable, LikesExhausted, NotCheckedIn, SelfInterest
from .matches import MatchStore
from .notifications import NotificationDispatcher

logger = logging.getLogger(__name__)


def require_checked_in(checkins: CheckInProvider, user_id: str, venue_id: str | None = None) -> str:
    """Return the user's current venue; refuse when the provider cannot answer."""
    try:
        row = checkins.is_checked_in(user_id)
    except Exception as exc:
        logger.warning("[checkin] provider unavailable user_id=%s: %s", user_id, exc)
        raise DependencyUnavailable("Check-in service unavailable") from exc
    if row is None or (venue_id is not None and row.venue_id != str(venue_id)):
        raise NotCheckedIn(user_id=user_id, venue_id=venue_id)
    return row.venue_id


class InterestLedger:
    def __init__(
        self,
        store: RecordStore,
        matches: MatchStore,
        checkins: CheckInProvider,
        dispatcher: NotificationDispatcher,
        *,
        ttl: timedelta = timedelta(hours=INTEREST_TTL_HOURS),
        likes_per_venue: int = LIKES_PER_VENUE,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self.store = store
        self.matches = matches
        self.checkins = checkins
        self.dispatcher = dispatcher
        self.ttl = ttl
        self.likes_per_venue = likes_per_venue
        self.clock = clock

    def record_interest(self, from_user_id: str, to_user_id: str, venue_id: str) -> InterestResult:
        from_id, to_id, venue = str(from_user_id), str(to_user_id), str(venue_id)
        if from_id == to_id:
            raise SelfInterest()
        require_checked_in(self.checkins, from_id, venue)
        require_checked_in(self.checkins, to_id, venue)

        live = self.matches.find_live_match(from_id, to_id)
        if live is not None:
            return InterestResult(status=INTEREST_MATCHED, match_id=live.id)

        # An expired pair can only come back through rematch.
        previous = self.matches.latest_match(from_id, to_id)
        if previous is not None:
            return InterestResult(status=INTEREST_MATCHED, match_id=previous.id)

        now = self.clock()
        if self.likes_remaining(from_id, venue) == 0 and self.store.find_live_interest(from_id, to_id, venue, now) is None:
            raise LikesExhausted(venue_id=venue)

        interest, created = self.store.add_interest(
            Interest(
                id=new_id(),
                from_user_id=from_id,
                to_user_id=to_id,
                venue_id=venue,
                created_at=now,
                expires_at=now + self.ttl,
            ),
            now,
        )
        if created:
            logger.info("[interest] recorded from=%s to=%s venue_id=%s", from_id, to_id, venue)

        # Our interest is committed before this read, so of two opposing
        # concurrent likes at least one sees the other.
        reciprocal = self.store.find_live_interest(to_id, from_id, venue, self.clock())
        if reciprocal is None:
            # The other side may already have consumed both interests.
            live = self.matches.find_live_match(from_id, to_id)
            if live is not None:
                return InterestResult(status=INTEREST_MATCHED, interest_id=interest.id, match_id=live.id)
            return InterestResult(status=INTEREST_PENDING, interest_id=interest.id)

        match, created_match = self.matches.create_match(from_id, to_id, venue)
        self.store.consume_interests([interest.id, reciprocal.id], match.id)
        if created_match:
            self.dispatcher.match_formed(match)
        return InterestResult(status=INTEREST_MATCHED, interest_id=interest.id, match_id=match.id)

    def has_mutual_interest(self, user_a: str, user_b: str) -> bool:
        a, b = str(user_a), str(user_b)
        now = self.clock()
        rows = self.store.interests_between(a, b)
        live_from_a = {i.venue_id for i in rows if i.from_user_id == a and i.is_live(now)}
        live_from_b = {i.venue_id for i in rows if i.from_user_id == b and i.is_live(now)}
        if live_from_a & live_from_b:
            return True
        consumed_from_a = {i.match_id for i in rows if i.from_user_id == a and i.match_id}
        consumed_from_b = {i.match_id for i in rows if i.from_user_id == b and i.match_id}
        return bool(consumed_from_a & consumed_from_b)

    def likes_remaining(self, user_id: str, venue_id: str) -> int | None:
        """Likes left at the venue; ``None`` when the budget is disabled."""
        if self.likes_per_venue <= 0:
            return None
        used = self.store.count_interests_from(str(user_id), str(venue_id))
        return max(0, self.likes_per_venue - used)
