from __future__ import annotations

import threading
import time
import uuid
from typing import Any, Protocol

from sqlalchemy import text

from ..config import BLOCK_CACHE_TTL_SECONDS


class BlockList(Protocol):
    def is_blocked(self, user_a: str, user_b: str) -> bool:
        ...


class InMemoryBlockList:
    def __init__(self) -> None:
        self._blocks: dict[str, set[str]] = {}
        self._lock = threading.Lock()

    def block(self, user_id: str, blocked_user_id: str) -> bool:
        if str(user_id) == str(blocked_user_id):
            return False
        with self._lock:
            self._blocks.setdefault(str(user_id), set()).add(str(blocked_user_id))
        return True

    def unblock(self, user_id: str, blocked_user_id: str) -> int:
        with self._lock:
            blocked = self._blocks.get(str(user_id), set())
            if str(blocked_user_id) in blocked:
                blocked.discard(str(blocked_user_id))
                return 1
        return 0

    def list_blocks(self, user_id: str) -> list[dict[str, Any]]:
        with self._lock:
            return [{"blocked_user_id": b} for b in sorted(self._blocks.get(str(user_id), set()))]

    def is_blocked(self, user_a: str, user_b: str) -> bool:
        with self._lock:
            return str(user_b) in self._blocks.get(str(user_a), set()) or str(user_a) in self._blocks.get(str(user_b), set())


class SqlBlockList:
    def __init__(self, session_factory) -> None:
        self._session_factory = session_factory

    def block(self, user_id: str, blocked_user_id: str) -> bool:
        if str(user_id) == str(blocked_user_id):
            return False
        with self._session_factory() as db:
            db.execute(
                text(
                    """
                    INSERT INTO user_block (id, user_id, blocked_user_id)
                    VALUES (:id, :user_id, :blocked_user_id)
                    ON CONFLICT (user_id, blocked_user_id) DO NOTHING
                    """
                ),
                {"id": str(uuid.uuid4()), "user_id": str(user_id), "blocked_user_id": str(blocked_user_id)},
            )
            db.commit()
        return True

    def unblock(self, user_id: str, blocked_user_id: str) -> int:
        with self._session_factory() as db:
            res = db.execute(
                text("DELETE FROM user_block WHERE user_id=:user_id AND blocked_user_id=:blocked_user_id"),
                {"user_id": str(user_id), "blocked_user_id": str(blocked_user_id)},
            )
            db.commit()
            return int(res.rowcount or 0)

    def list_blocks(self, user_id: str) -> list[dict[str, Any]]:
        with self._session_factory() as db:
            rows = db.execute(
                text(
                    """
                    SELECT blocked_user_id, created_at
                    FROM user_block
                    WHERE user_id=:user_id
                    ORDER BY created_at DESC
                    """
                ),
                {"user_id": str(user_id)},
            ).mappings().all()
        return [dict(r) for r in rows]

    def is_blocked(self, user_a: str, user_b: str) -> bool:
        with self._session_factory() as db:
            row = db.execute(
                text(
                    """
                    SELECT 1
                    FROM user_block
                    WHERE (user_id=:a AND blocked_user_id=:b)
                       OR (user_id=:b AND blocked_user_id=:a)
                    LIMIT 1
                    """
                ),
                {"a": str(user_a), "b": str(user_b)},
            ).first()
        return bool(row)


class CachedBlockList:
    """Remembers the last answer per pair so reads can survive an outage.

    ``is_blocked`` always asks the backing list; ``cached`` returns the last
    answer seen within ``ttl_seconds`` or ``None``.
    """

    def __init__(self, inner: BlockList, ttl_seconds: int = BLOCK_CACHE_TTL_SECONDS) -> None:
        self.inner = inner
        self._ttl = ttl_seconds
        self._cache: dict[tuple[str, str], tuple[bool, float]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _key(user_a: str, user_b: str) -> tuple[str, str]:
        a, b = sorted([str(user_a), str(user_b)])
        return a, b

    def is_blocked(self, user_a: str, user_b: str) -> bool:
        value = bool(self.inner.is_blocked(user_a, user_b))
        with self._lock:
            self._cache[self._key(user_a, user_b)] = (value, time.monotonic())
        return value

    def cached(self, user_a: str, user_b: str) -> bool | None:
        with self._lock:
            hit = self._cache.get(self._key(user_a, user_b))
        if hit is None:
            return None
        value, at = hit
        if time.monotonic() - at > self._ttl:
            return None
        return value

    def forget(self, user_a: str, user_b: str) -> None:
        with self._lock:
            self._cache.pop(self._key(user_a, user_b), None)

    def block(self, user_id: str, blocked_user_id: str) -> bool:
        ok = self.inner.block(user_id, blocked_user_id)
        self.forget(user_id, blocked_user_id)
        return ok

    def unblock(self, user_id: str, blocked_user_id: str) -> int:
        removed = self.inner.unblock(user_id, blocked_user_id)
        self.forget(user_id, blocked_user_id)
        return removed

    def list_blocks(self, user_id: str) -> list[dict[str, Any]]:
        return self.inner.list_blocks(user_id)
