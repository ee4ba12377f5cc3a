from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from ..domain import ContactInfo, Interest, Match, Message

_MATCH_COLUMNS = """
    id, user_id_a, user_id_b, venue_id, created_at, expires_at, status,
    contact_kind, contact_value, contact_shared_by, contact_shared_at, rematched_from_id
"""

_INTEREST_COLUMNS = "id, from_user_id, to_user_id, venue_id, created_at, expires_at, active, match_id"


def _interest_from_row(row: Any) -> Interest:
    return Interest(
        id=str(row["id"]),
        from_user_id=str(row["from_user_id"]),
        to_user_id=str(row["to_user_id"]),
        venue_id=str(row["venue_id"]),
        created_at=row["created_at"],
        expires_at=row["expires_at"],
        active=bool(row["active"]),
        match_id=str(row["match_id"]) if row.get("match_id") else None,
    )


def _match_from_row(row: Any) -> Match:
    contact = None
    if row.get("contact_kind"):
        contact = ContactInfo(
            kind=str(row["contact_kind"]),
            value=str(row["contact_value"]),
            shared_by=str(row["contact_shared_by"]),
            shared_at=row["contact_shared_at"],
        )
    return Match(
        id=str(row["id"]),
        user_id_a=str(row["user_id_a"]),
        user_id_b=str(row["user_id_b"]),
        venue_id=str(row["venue_id"]),
        created_at=row["created_at"],
        expires_at=row["expires_at"],
        status=str(row["status"]),
        contact_info=contact,
        rematched_from_id=str(row["rematched_from_id"]) if row.get("rematched_from_id") else None,
    )


def _message_from_row(row: Any) -> Message:
    return Message(
        id=str(row["id"]),
        match_id=str(row["match_id"]),
        sender_id=str(row["sender_id"]),
        text=str(row["body"]),
        created_at=row["created_at"],
        read_by={str(u) for u in (row.get("read_by") or [])},
    )


class PostgresStore:
    """Record store on Postgres via SQLAlchemy sessions and raw SQL.

    Conditional writes lean on unique indexes and ``ON CONFLICT`` so two
    API processes can race safely; see ``migrations/001_match_core.sql``.
    """

    def __init__(self, session_factory) -> None:
        self._session_factory = session_factory

    def put_if_absent(self, key: str, value: str) -> bool:
        with self._session_factory() as db:
            row = db.execute(
                text(
                    """
                    INSERT INTO kv_ledger (key, value)
                    VALUES (:key, :value)
                    ON CONFLICT (key) DO NOTHING
                    RETURNING key
                    """
                ),
                {"key": key, "value": value},
            ).first()
            db.commit()
        return row is not None

    def read(self, key: str) -> str | None:
        with self._session_factory() as db:
            row = db.execute(text("SELECT value FROM kv_ledger WHERE key=:key"), {"key": key}).first()
        return str(row[0]) if row else None

    def add_interest(self, interest: Interest, now: datetime) -> tuple[Interest, bool]:
        params = {
            "id": interest.id,
            "from_user_id": interest.from_user_id,
            "to_user_id": interest.to_user_id,
            "venue_id": interest.venue_id,
            "created_at": interest.created_at,
            "expires_at": interest.expires_at,
            "now": now,
        }
        with self._session_factory() as db:
            # Lapsed interests release the partial unique index first.
            db.execute(
                text(
                    """
                    UPDATE interest SET active = FALSE
                    WHERE from_user_id=:from_user_id AND to_user_id=:to_user_id AND venue_id=:venue_id
                      AND active AND expires_at <= :now
                    """
                ),
                params,
            )
            row = db.execute(
                text(
                    f"""
                    INSERT INTO interest (id, from_user_id, to_user_id, venue_id, created_at, expires_at, active)
                    VALUES (:id, :from_user_id, :to_user_id, :venue_id, :created_at, :expires_at, TRUE)
                    ON CONFLICT (from_user_id, to_user_id, venue_id) WHERE active DO NOTHING
                    RETURNING {_INTEREST_COLUMNS}
                    """
                ),
                params,
            ).mappings().first()
            db.commit()
        if row:
            return _interest_from_row(row), True
        existing = self.find_live_interest(interest.from_user_id, interest.to_user_id, interest.venue_id, now)
        if existing is None:
            raise RuntimeError("interest insert conflicted but no live interest found")
        return existing, False

    def find_live_interest(self, from_user_id: str, to_user_id: str, venue_id: str, now: datetime) -> Interest | None:
        with self._session_factory() as db:
            row = db.execute(
                text(
                    f"""
                    SELECT {_INTEREST_COLUMNS}
                    FROM interest
                    WHERE from_user_id=:from_user_id AND to_user_id=:to_user_id AND venue_id=:venue_id
                      AND active AND expires_at > :now
                    LIMIT 1
                    """
                ),
                {"from_user_id": from_user_id, "to_user_id": to_user_id, "venue_id": venue_id, "now": now},
            ).mappings().first()
        return _interest_from_row(row) if row else None

    def interests_between(self, user_a: str, user_b: str) -> list[Interest]:
        with self._session_factory() as db:
            rows = db.execute(
                text(
                    f"""
                    SELECT {_INTEREST_COLUMNS}
                    FROM interest
                    WHERE (from_user_id=:a AND to_user_id=:b) OR (from_user_id=:b AND to_user_id=:a)
                    ORDER BY created_at ASC
                    """
                ),
                {"a": user_a, "b": user_b},
            ).mappings().all()
        return [_interest_from_row(r) for r in rows]

    def count_interests_from(self, user_id: str, venue_id: str) -> int:
        with self._session_factory() as db:
            row = db.execute(
                text("SELECT COUNT(1) FROM interest WHERE from_user_id=:user_id AND venue_id=:venue_id"),
                {"user_id": user_id, "venue_id": venue_id},
            ).first()
        return int(row[0]) if row else 0

    def consume_interests(self, interest_ids: list[str], match_id: str) -> None:
        if not interest_ids:
            return
        with self._session_factory() as db:
            for interest_id in interest_ids:
                db.execute(
                    text("UPDATE interest SET active = FALSE, match_id = :match_id WHERE id = :id"),
                    {"id": interest_id, "match_id": match_id},
                )
            db.commit()

    def claim_pair_slot(self, match: Match, now: datetime) -> tuple[Match, bool]:
        with self._session_factory() as db:
            claimed = db.execute(
                text(
                    """
                    INSERT INTO match_pair_slot (pair_key, match_id, expires_at)
                    VALUES (:pair_key, :match_id, :expires_at)
                    ON CONFLICT (pair_key)
                    DO UPDATE SET match_id = EXCLUDED.match_id, expires_at = EXCLUDED.expires_at
                    WHERE match_pair_slot.expires_at <= :now
                    RETURNING match_id
                    """
                ),
                {"pair_key": match.pair_key, "match_id": match.id, "expires_at": match.expires_at, "now": now},
            ).first()
            if claimed:
                db.execute(
                    text(
                        """
                        INSERT INTO venue_match (
                          id, user_id_a, user_id_b, pair_key, venue_id, created_at, expires_at, status, rematched_from_id
                        )
                        VALUES (
                          :id, :user_id_a, :user_id_b, :pair_key, :venue_id, :created_at, :expires_at, :status, :rematched_from_id
                        )
                        """
                    ),
                    {
                        "id": match.id,
                        "user_id_a": match.user_id_a,
                        "user_id_b": match.user_id_b,
                        "pair_key": match.pair_key,
                        "venue_id": match.venue_id,
                        "created_at": match.created_at,
                        "expires_at": match.expires_at,
                        "status": match.status,
                        "rematched_from_id": match.rematched_from_id,
                    },
                )
            db.commit()
        if claimed:
            return match, True
        holder = self.live_match_for_pair(match.pair_key, now)
        if holder is None:
            raise RuntimeError(f"pair slot {match.pair_key} is held but no live match was found")
        return holder, False

    def get_match(self, match_id: str) -> Match | None:
        with self._session_factory() as db:
            row = db.execute(
                text(f"SELECT {_MATCH_COLUMNS} FROM venue_match WHERE id=:id"),
                {"id": match_id},
            ).mappings().first()
        return _match_from_row(row) if row else None

    def live_match_for_pair(self, pair_key: str, now: datetime) -> Match | None:
        with self._session_factory() as db:
            row = db.execute(
                text(
                    """
                    SELECT m.id, m.user_id_a, m.user_id_b, m.venue_id, m.created_at, m.expires_at, m.status,
                           m.contact_kind, m.contact_value, m.contact_shared_by, m.contact_shared_at, m.rematched_from_id
                    FROM match_pair_slot s
                    JOIN venue_match m ON m.id = s.match_id
                    WHERE s.pair_key=:pair_key AND m.expires_at > :now
                    """
                ),
                {"pair_key": pair_key, "now": now},
            ).mappings().first()
        return _match_from_row(row) if row else None

    def matches_for_pair(self, pair_key: str) -> list[Match]:
        with self._session_factory() as db:
            rows = db.execute(
                text(f"SELECT {_MATCH_COLUMNS} FROM venue_match WHERE pair_key=:pair_key ORDER BY created_at ASC"),
                {"pair_key": pair_key},
            ).mappings().all()
        return [_match_from_row(r) for r in rows]

    def matches_for_user(self, user_id: str) -> list[Match]:
        with self._session_factory() as db:
            rows = db.execute(
                text(
                    f"""
                    SELECT {_MATCH_COLUMNS}
                    FROM venue_match
                    WHERE user_id_a=:user_id OR user_id_b=:user_id
                    ORDER BY created_at DESC
                    """
                ),
                {"user_id": user_id},
            ).mappings().all()
        return [_match_from_row(r) for r in rows]

    def set_contact_shared(self, match_id: str, contact: ContactInfo, now: datetime) -> Match | None:
        with self._session_factory() as db:
            db.execute(
                text(
                    """
                    UPDATE venue_match
                    SET status='contact_shared',
                        contact_kind=:kind,
                        contact_value=:value,
                        contact_shared_by=:shared_by,
                        contact_shared_at=:shared_at
                    WHERE id=:id AND expires_at > :now AND status='active'
                    """
                ),
                {
                    "id": match_id,
                    "kind": contact.kind,
                    "value": contact.value,
                    "shared_by": contact.shared_by,
                    "shared_at": contact.shared_at,
                    "now": now,
                },
            )
            db.commit()
        match = self.get_match(match_id)
        if match is None or match.expires_at <= now:
            return None
        return match

    def append_message(
        self,
        message: Message,
        *,
        limit: int | None = None,
        counted_before: datetime | None = None,
    ) -> bool:
        with self._session_factory() as db:
            if limit is not None:
                db.execute(
                    text("SELECT pg_advisory_xact_lock(hashtext(:lock_key))"),
                    {"lock_key": f"quota:{message.match_id}:{message.sender_id}"},
                )
                used = self._count(db, message.match_id, message.sender_id, counted_before)
                if used >= limit:
                    db.rollback()
                    return False
            try:
                db.execute(
                    text(
                        """
                        INSERT INTO message (id, match_id, sender_id, body, created_at)
                        VALUES (:id, :match_id, :sender_id, :body, :created_at)
                        """
                    ),
                    {
                        "id": message.id,
                        "match_id": message.match_id,
                        "sender_id": message.sender_id,
                        "body": message.text,
                        "created_at": message.created_at,
                    },
                )
                db.commit()
            except IntegrityError:
                db.rollback()
                raise
        return True

    @staticmethod
    def _count(db, match_id: str, sender_id: str, counted_before: datetime | None) -> int:
        row = db.execute(
            text(
                """
                SELECT COUNT(1)
                FROM message
                WHERE match_id=:match_id AND sender_id=:sender_id
                  AND (CAST(:counted_before AS timestamptz) IS NULL OR created_at < :counted_before)
                """
            ),
            {"match_id": match_id, "sender_id": sender_id, "counted_before": counted_before},
        ).first()
        return int(row[0]) if row else 0

    def list_messages(self, match_id: str) -> list[Message]:
        with self._session_factory() as db:
            rows = db.execute(
                text(
                    """
                    SELECT m.id, m.match_id, m.sender_id, m.body, m.created_at,
                           COALESCE(array_agg(r.user_id) FILTER (WHERE r.user_id IS NOT NULL), ARRAY[]::text[]) AS read_by
                    FROM message m
                    LEFT JOIN message_read r ON r.message_id = m.id
                    WHERE m.match_id=:match_id
                    GROUP BY m.id
                    ORDER BY m.created_at ASC, m.id ASC
                    """
                ),
                {"match_id": match_id},
            ).mappings().all()
        return [_message_from_row(r) for r in rows]

    def count_messages(self, match_id: str, sender_id: str, counted_before: datetime | None = None) -> int:
        with self._session_factory() as db:
            return self._count(db, match_id, sender_id, counted_before)

    def mark_read(self, match_id: str, reader_id: str) -> int:
        with self._session_factory() as db:
            res = db.execute(
                text(
                    """
                    INSERT INTO message_read (message_id, user_id)
                    SELECT m.id, :reader_id
                    FROM message m
                    WHERE m.match_id=:match_id
                      AND m.sender_id <> :reader_id
                      AND NOT EXISTS (
                        SELECT 1 FROM message_read r WHERE r.message_id = m.id AND r.user_id = :reader_id
                      )
                    ON CONFLICT (message_id, user_id) DO NOTHING
                    """
                ),
                {"match_id": match_id, "reader_id": reader_id},
            )
            db.commit()
            return int(res.rowcount or 0)
