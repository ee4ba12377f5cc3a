"""One-shot revival of an expired match.

The pair ledger key ``rematch:<pair_key>`` is written with put-if-absent, so
a pair can rematch once for the lifetime of the relationship no matter how
many requests race. A rematch always creates a new match; the predecessor
stays expired.
"""

import logging
from datetime import datetime
from typing import Callable

from ..collaborators.checkins import CheckInProvider
from ..domain import Match, now_utc, split_pair_key
from ..store.base import RecordStore
from .errors import AlreadyRematched, NotCheckedIn, NotExpired
from .interests import require_checked_in
from .matches import MatchStore
from .notifications import NotificationDispatcher
from .state_machine import is_expired

logger = logging.getLogger(__name__)


def rematch_ledger_key(pair_key: str) -> str:
    return f"rematch:{pair_key}"


class RematchController:
    def __init__(
        self,
        store: RecordStore,
        matches: MatchStore,
        checkins: CheckInProvider,
        dispatcher: NotificationDispatcher,
        *,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self.store = store
        self.matches = matches
        self.checkins = checkins
        self.dispatcher = dispatcher
        self.clock = clock

    def _already_rematched(self, pair_key: str, history: list[Match]) -> bool:
        if self.store.read(rematch_ledger_key(pair_key)) is not None:
            return True
        return any(m.rematched_from_id for m in history)

    def can_rematch(self, pair_key: str) -> bool:
        split_pair_key(pair_key)
        history = self.store.matches_for_pair(pair_key)
        if not history or self._already_rematched(pair_key, history):
            return False
        return is_expired(self.clock(), history[-1].expires_at)

    def rematch(self, expired_match_id: str, requesting_user_id: str) -> Match:
        requester = str(requesting_user_id)
        source = self.matches.get_match_for(expired_match_id, requester)
        key = source.pair_key
        if self._already_rematched(key, self.store.matches_for_pair(key)):
            raise AlreadyRematched(match_id=source.id)
        if not self.matches.is_expired(source):
            raise NotExpired(match_id=source.id)

        venue_id = require_checked_in(self.checkins, requester)
        other = source.other_party(requester)
        try:
            require_checked_in(self.checkins, other, venue_id)
        except NotCheckedIn:
            raise NotCheckedIn("The other person must be checked in at your venue", user_id=other, venue_id=venue_id)

        live = self.matches.find_live_match(requester, other)
        if live is not None:
            return live

        if not self.store.put_if_absent(rematch_ledger_key(key), source.id):
            raise AlreadyRematched(match_id=source.id)
        match, created = self.matches.create_match(requester, other, venue_id, rematched_from_id=source.id)
        if created:
            logger.info("[rematch] match_id=%s rematched_from_id=%s by=%s", match.id, source.id, requester)
            self.dispatcher.match_formed(match)
        return match
