import logging
from datetime import datetime, timedelta
from typing import Callable

from ..config import MATCH_WINDOW_HOURS
from ..domain import ContactInfo, Match, MatchView, new_id, now_utc, pair_key
from ..store.base import RecordStore
from .errors import ContactAlreadyShared, Expired, Forbidden, NotFound, ValidationFailed
from .state_machine import effective_status, is_expired, seconds_remaining, transition_status

logger = logging.getLogger(__name__)

CONTACT_KINDS = {"phone", "email", "instagram", "snapchat", "other"}


class MatchStore:
    def __init__(
        self,
        store: RecordStore,
        *,
        window: timedelta = timedelta(hours=MATCH_WINDOW_HOURS),
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self.store = store
        self.window = window
        self.clock = clock

    def create_match(
        self,
        user_a: str,
        user_b: str,
        venue_id: str,
        rematched_from_id: str | None = None,
    ) -> tuple[Match, bool]:
        """Create the pair's match, or return the unexpired one that already holds the pair.

        Only the first match of a pair is organic. Without ``rematched_from_id``
        a pair that has matched before gets its latest match back.
        """
        a, b = sorted([str(user_a), str(user_b)])
        now = self.clock()
        if rematched_from_id is None:
            previous = self.latest_match(a, b)
            if previous is not None and is_expired(now, previous.expires_at):
                logger.info("[match] pair=%s already matched as match_id=%s; rematch required", previous.pair_key, previous.id)
                return previous, False
        candidate = Match(
            id=new_id(),
            user_id_a=a,
            user_id_b=b,
            venue_id=str(venue_id),
            created_at=now,
            expires_at=now + self.window,
            rematched_from_id=rematched_from_id,
        )
        match, created = self.store.claim_pair_slot(candidate, now)
        if created:
            logger.info("[match] created match_id=%s pair=%s venue_id=%s rematch_of=%s", match.id, match.pair_key, match.venue_id, rematched_from_id)
        else:
            logger.debug("[match] pair=%s already holds match_id=%s", match.pair_key, match.id)
        return match, created

    def get_match(self, match_id: str) -> Match:
        match = self.store.get_match(str(match_id))
        if match is None:
            raise NotFound("Match not found", match_id=match_id)
        return match

    def get_match_for(self, match_id: str, user_id: str) -> Match:
        match = self.get_match(match_id)
        if not match.has_party(user_id):
            raise Forbidden("Not a party to this match", match_id=match_id)
        return match

    def find_live_match(self, user_a: str, user_b: str) -> Match | None:
        return self.store.live_match_for_pair(pair_key(user_a, user_b), self.clock())

    def latest_match(self, user_a: str, user_b: str) -> Match | None:
        history = self.store.matches_for_pair(pair_key(user_a, user_b))
        return history[-1] if history else None

    def is_expired(self, match: Match) -> bool:
        return is_expired(self.clock(), match.expires_at)

    def view(self, match: Match, user_id: str) -> MatchView:
        now = self.clock()
        return MatchView(
            match=match,
            status=effective_status(match.status, now, match.expires_at),
            is_expired=is_expired(now, match.expires_at),
            seconds_remaining=seconds_remaining(now, match.expires_at),
            other_user_id=match.other_party(user_id),
        )

    def list_matches_for(self, user_id: str) -> list[MatchView]:
        return [self.view(m, str(user_id)) for m in self.store.matches_for_user(str(user_id))]

    def share_contact(self, match_id: str, user_id: str, contact_info: dict) -> Match:
        match = self.get_match_for(match_id, user_id)
        now = self.clock()
        if transition_status(match.status, "share_contact", now, match.expires_at) != "contact_shared":
            raise Expired(match_id=match.id)

        kind = str(contact_info.get("kind") or "").strip().lower()
        value = str(contact_info.get("value") or "").strip()
        if kind not in CONTACT_KINDS or not value:
            raise ValidationFailed("contact kind and value required")

        if match.contact_info is not None:
            return self._existing_share(match, str(user_id), kind, value)

        contact = ContactInfo(kind=kind, value=value, shared_by=str(user_id), shared_at=now)
        updated = self.store.set_contact_shared(match.id, contact, now)
        if updated is None:
            # Lapsed between the read and the conditional write.
            raise Expired(match_id=match.id)
        if updated.contact_info != contact:
            return self._existing_share(updated, str(user_id), kind, value)
        logger.info("[match] contact shared match_id=%s by=%s", match.id, user_id)
        return updated

    @staticmethod
    def _existing_share(match: Match, user_id: str, kind: str, value: str) -> Match:
        """Repeat shares by the same user are no-ops; any other share is refused."""
        c = match.contact_info
        if c.shared_by == user_id and c.kind == kind and c.value == value:
            return match
        raise ContactAlreadyShared(match_id=match.id, shared_by=c.shared_by)
