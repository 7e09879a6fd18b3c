"""Key-value storage engine on SQLite."""

import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from lingo_binder.exceptions import StoreError

log = logging.getLogger(__name__)


class SqliteKeyValueStore:
    """Bucketed key-value store with all-or-nothing semantics per call.

    Every operation runs in its own transaction unless it is issued inside
    ``transaction()``, in which case the whole block commits or rolls back
    together. Access is serialized internally so a debounce timer thread can
    share the store with the main thread.

    Example:
        >>> kv = SqliteKeyValueStore(":memory:")
        >>> kv.put("books", "abc", b"{}")
        >>> kv.get("books", "abc")
        b'{}'
    """

    def __init__(self, db_path: str | Path = ":memory:") -> None:
        self._db_path = str(db_path)
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        self._depth = 0

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create the connection (lazy initialization)."""
        if self._conn is None:
            if self._db_path != ":memory:":
                Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    bucket TEXT NOT NULL,
                    key TEXT NOT NULL,
                    value BLOB NOT NULL,
                    PRIMARY KEY (bucket, key)
                )
                """
            )
            self._conn.commit()
            log.debug("Opened key-value store at %s", self._db_path)
        return self._conn

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    @contextmanager
    def transaction(self) -> Iterator["SqliteKeyValueStore"]:
        """Group several operations into one atomic unit."""
        with self._lock:
            conn = self._get_connection()
            if self._depth:
                # Nested: join the outer transaction
                self._depth += 1
                try:
                    yield self
                finally:
                    self._depth -= 1
                return

            self._depth = 1
            try:
                with conn:
                    yield self
            except sqlite3.Error as e:
                raise StoreError(f"Transaction failed: {e}") from e
            finally:
                self._depth = 0

    def get(self, bucket: str, key: str) -> bytes | None:
        with self.transaction():
            row = self._get_connection().execute(
                "SELECT value FROM kv WHERE bucket = ? AND key = ?", (bucket, key)
            ).fetchone()
        return bytes(row[0]) if row else None

    def put(self, bucket: str, key: str, value: bytes) -> None:
        with self.transaction():
            self._get_connection().execute(
                "INSERT OR REPLACE INTO kv (bucket, key, value) VALUES (?, ?, ?)",
                (bucket, key, value),
            )

    def delete(self, bucket: str, key: str) -> None:
        with self.transaction():
            self._get_connection().execute(
                "DELETE FROM kv WHERE bucket = ? AND key = ?", (bucket, key)
            )

    def delete_range(self, bucket: str, lower: str, upper: str) -> int:
        """Delete keys in ``[lower, upper]``. Returns the number removed."""
        with self.transaction():
            cursor = self._get_connection().execute(
                "DELETE FROM kv WHERE bucket = ? AND key >= ? AND key <= ?",
                (bucket, lower, upper),
            )
        return cursor.rowcount

    def values(self, bucket: str) -> list[bytes]:
        """All values of a bucket, in key order."""
        with self.transaction():
            rows = self._get_connection().execute(
                "SELECT value FROM kv WHERE bucket = ? ORDER BY key", (bucket,)
            ).fetchall()
        return [bytes(row[0]) for row in rows]
