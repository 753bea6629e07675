"""Persistent response cache with read-time TTL checks.

Catalog responses and derived artifacts (file hashes) are stored in a
single SQLite table::

    responses(url TEXT PRIMARY KEY, result TEXT NOT NULL, downloaded INTEGER NOT NULL)

``downloaded`` is the Unix time, in whole seconds, at which the value was
last computed. Freshness is not a property of the row: every read passes
its own TTL, so the same URL can be treated as immutable by one caller
and as short-lived by another.

The store is opened once per process and shared by all worker threads.
A single connection is guarded by a store lock that is held only around
the lookup and around the upsert. The expensive ``compute`` step runs
outside that lock, under a per-key lock, so a slow download never blocks
lookups for unrelated keys while concurrent misses for the *same* key
still fetch only once.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from contextlib import contextmanager
from datetime import timedelta
from pathlib import Path
from typing import Callable, Iterator, Optional, Union

from cursetool.exceptions import CacheError

logger = logging.getLogger(__name__)

DB_NAME = "cache.db"
"""File name of the cache database inside the cache directory."""

TTL = Union[int, float, timedelta]

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS responses (
    url TEXT PRIMARY KEY,
    result TEXT NOT NULL,
    downloaded INTEGER NOT NULL
)
"""
_SELECT_FRESH = "SELECT result FROM responses WHERE url = ? AND downloaded > ?"
_UPSERT = "INSERT OR REPLACE INTO responses (url, result, downloaded) VALUES (?, ?, ?)"


class CacheStore:
    """Key/value store mapping a request URL to its last computed payload.

    Use :meth:`open` for the on-disk database and :meth:`in_memory` in
    tests. The only read path is :meth:`get_or_put`.

    Args:
        connection: An open SQLite connection. It must allow use from
            multiple threads (``check_same_thread=False``).
        location: Human-readable location of the database, for logs and
            :meth:`stats`.
        clock: Returns the current Unix time in seconds. Injectable so
            that staleness can be tested without sleeping.

    Raises:
        CacheError: If the table cannot be created.
    """

    def __init__(
        self,
        connection: sqlite3.Connection,
        location: str,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._conn = connection
        self._location = location
        self._clock = clock
        self._lock = threading.Lock()
        self._key_locks_guard = threading.Lock()
        self._key_locks: dict[str, _KeyLock] = {}
        try:
            with self._lock, self._conn:
                self._conn.execute(_CREATE_TABLE)
        except sqlite3.Error as exc:
            raise CacheError(f"Cannot initialise cache database {location}: {exc}") from exc

    # ------------------------------------------------------------------ #
    # Construction
    # ------------------------------------------------------------------ #

    @classmethod
    def open(cls, path: str | Path, clock: Callable[[], float] = time.time) -> CacheStore:
        """Open (creating if needed) the cache database at *path*.

        Parent directories are created. Any failure here is fatal to the
        process: the CLI reports it and exits with
        :data:`~cursetool.exit_codes.EXIT_CACHE_ERROR`.

        Raises:
            CacheError: If the directory or the database cannot be created
                or opened.
        """
        path = Path(path)
        logger.info("Using cache database %s", path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(path), check_same_thread=False)
        except (OSError, sqlite3.Error) as exc:
            raise CacheError(f"Cannot open cache database {path}: {exc}") from exc
        return cls(conn, str(path), clock=clock)

    @classmethod
    def in_memory(cls, clock: Callable[[], float] = time.time) -> CacheStore:
        """Return a store backed by a private in-memory database."""
        conn = sqlite3.connect(":memory:", check_same_thread=False)
        return cls(conn, ":memory:", clock=clock)

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def get_or_put(self, key: str, ttl: TTL, compute: Callable[[], str]) -> str:
        """Return the cached payload for *key*, recomputing it if stale.

        A row counts as fresh when it was computed less than *ttl* ago.
        Ages are measured in whole seconds: both the stored timestamp and
        the current time are truncated, so a row can expire up to a second
        before *ttl* has fully elapsed.
        Fresh rows are returned without calling *compute*. Otherwise
        *compute* is invoked; its result is upserted with the current time
        and returned.

        Args:
            key: Request identity, normally the absolute URL as sent.
            ttl: Maximum age of an acceptable cached value, in seconds or
                as a :class:`~datetime.timedelta`.
            compute: Zero-argument callable performing the origin request.

        Returns:
            The cached or freshly computed payload.

        Raises:
            CacheError: If the database cannot be queried or updated.
            Exception: Whatever *compute* raises, unchanged. Nothing is
                written for *key* in that case.
        """
        seconds = ttl.total_seconds() if isinstance(ttl, timedelta) else float(ttl)
        with self._lock_for(key):
            cutoff = int(self._clock()) - seconds
            cached = self._lookup(key, cutoff)
            if cached is not None:
                logger.debug("Cache hit: %s", key)
                return cached

            logger.debug("Cache miss: %s", key)
            payload = compute()
            self._store(key, payload, int(self._clock()))
            return payload

    def stats(self) -> dict[str, object]:
        """Return the database location and number of cached entries."""
        try:
            with self._lock:
                (count,) = self._conn.execute("SELECT COUNT(*) FROM responses").fetchone()
        except sqlite3.Error as exc:
            raise CacheError(f"Reading cache statistics: {exc}") from exc
        return {"location": self._location, "entries": count}

    def close(self) -> None:
        """Close the underlying connection."""
        with self._lock:
            self._conn.close()

    def __enter__(self) -> CacheStore:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _lookup(self, key: str, cutoff: float) -> Optional[str]:
        try:
            with self._lock:
                row = self._conn.execute(_SELECT_FRESH, (key, cutoff)).fetchone()
        except sqlite3.Error as exc:
            raise CacheError(f"Searching cache for {key}: {exc}") from exc
        if row is None:
            return None
        result = row[0]
        if isinstance(result, bytes):
            try:
                return result.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise CacheError(f"Decoding cached result for {key}: {exc}") from exc
        if not isinstance(result, str):
            raise CacheError(f"Decoding cached result for {key}: unexpected {type(result).__name__}")
        return result

    def _store(self, key: str, payload: str, downloaded: int) -> None:
        try:
            with self._lock, self._conn:
                self._conn.execute(_UPSERT, (key, payload, downloaded))
        except sqlite3.Error as exc:
            raise CacheError(f"Updating cache for {key}: {exc}") from exc

    @contextmanager
    def _lock_for(self, key: str) -> Iterator[None]:
        """Hold the per-key lock for *key*, dropping it once unused."""
        with self._key_locks_guard:
            entry = self._key_locks.get(key)
            if entry is None:
                entry = self._key_locks[key] = _KeyLock()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._key_locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._key_locks[key]


class _KeyLock:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0
