"""Wires stores, collaborators and services for one backend."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable

from .collaborators.blocks import CachedBlockList, InMemoryBlockList, SqlBlockList
from .collaborators.channels import InMemoryChannel, LoggingChannel, OutboxChannel
from .collaborators.checkins import CheckInProvider, HttpCheckIns, InMemoryCheckIns, SqlCheckIns
from .collaborators.validation import BasicTextValidator
from .config import (
    BLOCK_CACHE_TTL_SECONDS,
    CHECKIN_DURATION_HOURS,
    CHECKIN_SERVICE_URL,
    INTEREST_TTL_HOURS,
    LIKES_PER_VENUE,
    MATCH_WINDOW_HOURS,
    MESSAGE_LIMIT_PER_USER,
    MESSAGE_MAX_LENGTH,
    NOTIFICATION_CHANNEL,
    STORE_BACKEND,
    TYPING_TTL_SECONDS,
)
from .domain import now_utc
from .services.interests import InterestLedger
from .services.matches import MatchStore
from .services.messaging import MessagingGate
from .services.notifications import NotificationDispatcher
from .services.rematch import RematchController
from .store.memory import InMemoryStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    store: Any
    checkin_registry: Any
    checkins: CheckInProvider
    blocks: CachedBlockList
    channel: Any
    dispatcher: NotificationDispatcher
    matches: MatchStore
    interests: InterestLedger
    messaging: MessagingGate
    rematch: RematchController


def build_services(
    backend: str = STORE_BACKEND,
    *,
    clock: Callable[[], datetime] = now_utc,
    session_factory=None,
    channel=None,
    checkins: CheckInProvider | None = None,
    match_window_hours: float = MATCH_WINDOW_HOURS,
    message_limit: int = MESSAGE_LIMIT_PER_USER,
    likes_per_venue: int = LIKES_PER_VENUE,
) -> Services:
    if backend == "memory":
        store = InMemoryStore()
        registry = InMemoryCheckIns(duration=timedelta(hours=CHECKIN_DURATION_HOURS), clock=clock)
        block_source = InMemoryBlockList()
        default_channel = LoggingChannel() if NOTIFICATION_CHANNEL == "log" else InMemoryChannel()
    elif backend == "postgres":
        from .store.postgres import PostgresStore

        if session_factory is None:
            from .database import SessionLocal

            session_factory = SessionLocal
        store = PostgresStore(session_factory)
        registry = SqlCheckIns(session_factory, duration=timedelta(hours=CHECKIN_DURATION_HOURS))
        block_source = SqlBlockList(session_factory)
        default_channel = LoggingChannel() if NOTIFICATION_CHANNEL == "log" else OutboxChannel(session_factory)
    else:
        raise ValueError(f"unknown STORE_BACKEND {backend!r}")

    if checkins is None:
        checkins = HttpCheckIns(CHECKIN_SERVICE_URL) if CHECKIN_SERVICE_URL else registry
    channel = channel if channel is not None else default_channel
    blocks = CachedBlockList(block_source, ttl_seconds=BLOCK_CACHE_TTL_SECONDS)
    dispatcher = NotificationDispatcher(channel)
    matches = MatchStore(store, window=timedelta(hours=match_window_hours), clock=clock)
    logger.info("[container] backend=%s checkins=%s channel=%s", backend, type(checkins).__name__, type(channel).__name__)
    return Services(
        store=store,
        checkin_registry=registry,
        checkins=checkins,
        blocks=blocks,
        channel=channel,
        dispatcher=dispatcher,
        matches=matches,
        interests=InterestLedger(
            store,
            matches,
            checkins,
            dispatcher,
            ttl=timedelta(hours=INTEREST_TTL_HOURS),
            likes_per_venue=likes_per_venue,
            clock=clock,
        ),
        messaging=MessagingGate(
            store,
            matches,
            dispatcher,
            blocks,
            BasicTextValidator(MESSAGE_MAX_LENGTH),
            limit=message_limit,
            typing_ttl=timedelta(seconds=TYPING_TTL_SECONDS),
            clock=clock,
        ),
        rematch=RematchController(store, matches, checkins, dispatcher, clock=clock),
    )
