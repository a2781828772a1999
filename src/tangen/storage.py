from __future__ import annotations

import hashlib
import json
import logging
import re
import sqlite3
import time
from pathlib import Path
from typing import Any, Callable

LOGGER = logging.getLogger(__name__)

DEFAULT_TTL_MS = 5 * 60 * 1000
MEMORY_DB = ":memory:"


def _now_ms() -> int:
    return int(time.time() * 1000)


def sanitize_key(value: str) -> str:
    return re.sub(r"[^A-Za-z0-9_]", "_", value)


def stable_hash(identifier: str) -> str:
    """64-bit BLAKE2b digest of the full identifier, as a decimal string."""
    digest = hashlib.blake2b(identifier.encode("utf-8"), digest_size=8).digest()
    return str(int.from_bytes(digest, "big"))


def cache_key(signal_type: str, identifier: str) -> str:
    return f"cache_{sanitize_key(signal_type)}_{stable_hash(identifier)}"


class CacheStore:
    """Durable TTL key/value cache on top of sqlite.

    Entries are stored as ``{"data": ..., "storedAtEpochMillis": ...}``.
    Expired entries are evicted lazily when read.
    """

    def __init__(
        self,
        path: str | Path = MEMORY_DB,
        ttl_ms: int = DEFAULT_TTL_MS,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self.path = str(path)
        self.ttl_ms = ttl_ms
        self.clock = clock
        self._connection: sqlite3.Connection | None = None

    def _conn(self) -> sqlite3.Connection:
        if self._connection is None:
            if self.path != MEMORY_DB:
                Path(self.path).parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self.path, check_same_thread=False)
            conn.row_factory = sqlite3.Row
            with conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS cache_entries (
                        key TEXT PRIMARY KEY,
                        payload TEXT NOT NULL,
                        stored_at INTEGER NOT NULL
                    )
                    """
                )
            self._connection = conn
        return self._connection

    def get(self, key: str) -> Any | None:
        try:
            row = self._conn().execute(
                "SELECT payload FROM cache_entries WHERE key = ?", (key,)
            ).fetchone()
            if row is None:
                return None
            entry = json.loads(row["payload"])
            data = entry["data"]
            stored_at = int(entry["storedAtEpochMillis"])
        except (sqlite3.Error, ValueError, KeyError, TypeError) as exc:
            LOGGER.warning("Cache get failed for %s: %s", key, exc)
            return None

        if self.clock() - stored_at > self.ttl_ms:
            self.delete(key)
            return None
        LOGGER.debug("Cache hit: %s", key)
        return data

    def put(self, key: str, value: Any) -> None:
        now = self.clock()
        try:
            payload = json.dumps({"data": value, "storedAtEpochMillis": now})
            with self._conn() as conn:
                conn.execute(
                    """
                    INSERT INTO cache_entries(key, payload, stored_at)
                    VALUES(?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        payload=excluded.payload,
                        stored_at=excluded.stored_at
                    """,
                    (key, payload, now),
                )
        except (sqlite3.Error, TypeError, ValueError) as exc:
            LOGGER.warning("Cache store failed for %s: %s", key, exc)

    def delete(self, key: str) -> None:
        try:
            with self._conn() as conn:
                conn.execute("DELETE FROM cache_entries WHERE key = ?", (key,))
        except sqlite3.Error as exc:
            LOGGER.warning("Cache delete failed for %s: %s", key, exc)

    def contains(self, key: str) -> bool:
        """Raw existence check that ignores the TTL."""
        row = self._conn().execute(
            "SELECT 1 FROM cache_entries WHERE key = ?", (key,)
        ).fetchone()
        return row is not None

    def purge_expired(self) -> int:
        cutoff = self.clock() - self.ttl_ms
        with self._conn() as conn:
            cur = conn.execute("DELETE FROM cache_entries WHERE stored_at < ?", (cutoff,))
        return cur.rowcount

    def clear(self) -> int:
        with self._conn() as conn:
            count = conn.execute("SELECT COUNT(*) FROM cache_entries").fetchone()[0]
            conn.execute("DELETE FROM cache_entries")
        return int(count)

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None
