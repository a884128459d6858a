"""
SQLiteUsageStore — usage counters in a single SQLite file.

One row per key: (key, count, expires_at). Expired rows read as absent and
are purged lazily. Read-modify-write happens inside BEGIN IMMEDIATE so two
processes sharing the file can't interleave an increment.
Good for a single host and for tests; use the Redis store for replicas.
"""

import logging
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path

from .base import UsageStore

logger = logging.getLogger(__name__)

CREATE_TABLES = """
CREATE TABLE IF NOT EXISTS usage (
    key TEXT PRIMARY KEY,
    count INTEGER NOT NULL DEFAULT 0,
    expires_at REAL DEFAULT NULL
);

CREATE INDEX IF NOT EXISTS idx_usage_expires
    ON usage(expires_at);
"""

# A row is live when it has no expiry or expires in the future.
_LIVE = "(expires_at IS NULL OR expires_at > ?)"


class SQLiteUsageStore(UsageStore):
    """SQLite-backed usage counters."""

    name = "sqlite"

    def __init__(self, path: str, clock=time.time):
        self.db_path = Path(path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._clock = clock
        self._init_db()

    def _init_db(self):
        with self._connect() as conn:
            conn.executescript(CREATE_TABLES)
        purged = self.purge_expired()
        logger.info("SQLite usage store initialized at %s (%d expired rows purged)", self.db_path, purged)

    @contextmanager
    def _connect(self):
        conn = sqlite3.connect(str(self.db_path), timeout=10)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def purge_expired(self) -> int:
        """Delete rows whose window has ended. Returns number removed."""
        with self._connect() as conn:
            cur = conn.execute(
                "DELETE FROM usage WHERE expires_at IS NOT NULL AND expires_at <= ?",
                (self._clock(),),
            )
            return cur.rowcount

    def get(self, key: str) -> int | None:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT count FROM usage WHERE key = ? AND {_LIVE}",
                (key, self._clock()),
            ).fetchone()
        return int(row["count"]) if row else None

    def set_with_expiry(self, key: str, value: int, ttl_seconds: int) -> None:
        now = self._clock()
        with self._connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO usage (key, count, expires_at) VALUES (?, ?, ?)",
                (key, int(value), now + ttl_seconds),
            )
        logger.debug("Set %s=%d (ttl=%ds)", key, value, ttl_seconds)

    def _bump(self, conn, key: str, now: float) -> int | None:
        cur = conn.execute(
            f"UPDATE usage SET count = count + 1 WHERE key = ? AND {_LIVE}",
            (key, now),
        )
        if cur.rowcount == 0:
            return None
        row = conn.execute("SELECT count FROM usage WHERE key = ?", (key,)).fetchone()
        return int(row["count"])

    def increment(self, key: str) -> int:
        now = self._clock()
        with self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            value = self._bump(conn, key, now)
            if value is None:
                conn.execute(
                    "INSERT OR REPLACE INTO usage (key, count, expires_at) VALUES (?, 1, NULL)",
                    (key,),
                )
                value = 1
        return value

    def create_or_increment(self, key: str, ttl_seconds: int) -> int:
        now = self._clock()
        with self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            value = self._bump(conn, key, now)
            if value is None:
                conn.execute(
                    "INSERT OR REPLACE INTO usage (key, count, expires_at) VALUES (?, 1, ?)",
                    (key, now + ttl_seconds),
                )
                value = 1
        return value

    def ttl(self, key: str) -> int | None:
        now = self._clock()
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT expires_at FROM usage WHERE key = ? AND {_LIVE}",
                (key, now),
            ).fetchone()
        if not row or row["expires_at"] is None:
            return None
        return max(0, int(row["expires_at"] - now))

    def ping(self) -> bool:
        try:
            with self._connect() as conn:
                conn.execute("SELECT 1")
            return True
        except sqlite3.Error as e:
            logger.warning("SQLite usage store unreachable: %s", e)
            return False
