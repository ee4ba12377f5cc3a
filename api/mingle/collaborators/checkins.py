"""Venue check-in providers.

``is_checked_in`` returns the user's current check-in or ``None``. Any
exception it raises is treated as an outage by callers.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Protocol

import httpx
from sqlalchemy import text

from ..config import CHECKIN_DURATION_HOURS, COLLABORATOR_TIMEOUT_SECONDS
from ..domain import CheckIn, now_utc

logger = logging.getLogger(__name__)


class CheckInProvider(Protocol):
    def is_checked_in(self, user_id: str) -> CheckIn | None:
        ...


class InMemoryCheckIns:
    def __init__(
        self,
        *,
        duration: timedelta = timedelta(hours=CHECKIN_DURATION_HOURS),
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self._duration = duration
        self._clock = clock
        self._rows: dict[str, CheckIn] = {}
        self._lock = threading.Lock()

    def check_in(self, user_id: str, venue_id: str) -> CheckIn:
        row = CheckIn(venue_id=str(venue_id), since=self._clock())
        with self._lock:
            self._rows[str(user_id)] = row
        return row

    def check_out(self, user_id: str) -> bool:
        with self._lock:
            return self._rows.pop(str(user_id), None) is not None

    def is_checked_in(self, user_id: str) -> CheckIn | None:
        with self._lock:
            row = self._rows.get(str(user_id))
            if row is None:
                return None
            if self._clock() - row.since >= self._duration:
                del self._rows[str(user_id)]
                return None
            return row


class SqlCheckIns:
    """Reads and writes the ``venue_checkin`` table (one row per user)."""

    def __init__(self, session_factory, *, duration: timedelta = timedelta(hours=CHECKIN_DURATION_HOURS)) -> None:
        self._session_factory = session_factory
        self._duration = duration

    def check_in(self, user_id: str, venue_id: str) -> CheckIn:
        with self._session_factory() as db:
            row = db.execute(
                text(
                    """
                    INSERT INTO venue_checkin (user_id, venue_id, checked_in_at)
                    VALUES (:user_id, :venue_id, NOW())
                    ON CONFLICT (user_id)
                    DO UPDATE SET venue_id = EXCLUDED.venue_id, checked_in_at = EXCLUDED.checked_in_at
                    RETURNING venue_id, checked_in_at
                    """
                ),
                {"user_id": str(user_id), "venue_id": str(venue_id)},
            ).mappings().first()
            db.commit()
        return CheckIn(venue_id=str(row["venue_id"]), since=row["checked_in_at"])

    def check_out(self, user_id: str) -> bool:
        with self._session_factory() as db:
            res = db.execute(text("DELETE FROM venue_checkin WHERE user_id=:user_id"), {"user_id": str(user_id)})
            db.commit()
            return bool(res.rowcount)

    def is_checked_in(self, user_id: str) -> CheckIn | None:
        with self._session_factory() as db:
            row = db.execute(
                text(
                    """
                    SELECT venue_id, checked_in_at
                    FROM venue_checkin
                    WHERE user_id=:user_id
                      AND checked_in_at > NOW() - make_interval(secs => :duration_seconds)
                    """
                ),
                {"user_id": str(user_id), "duration_seconds": self._duration.total_seconds()},
            ).mappings().first()
        if not row:
            return None
        return CheckIn(venue_id=str(row["venue_id"]), since=row["checked_in_at"])


@dataclass
class HttpCheckIns:
    """Asks a remote venue service: ``GET {base_url}/checkins/{user_id}``.

    404 means not checked in; transport errors and 5xx propagate.
    """

    base_url: str
    timeout: float = COLLABORATOR_TIMEOUT_SECONDS
    http: httpx.Client | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.http is None:
            self.http = httpx.Client(base_url=self.base_url.rstrip("/"), timeout=self.timeout)

    def is_checked_in(self, user_id: str) -> CheckIn | None:
        response = self.http.get(f"/checkins/{user_id}")
        if response.status_code == 404:
            return None
        response.raise_for_status()
        body = response.json()
        if not body or not body.get("venue_id"):
            return None
        return CheckIn(venue_id=str(body["venue_id"]), since=datetime.fromisoformat(str(body["since"])))
