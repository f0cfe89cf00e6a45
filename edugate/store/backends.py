"""DurableStore — key-ordered list store with TTL, plus a TTL key/value area.

Backends: in-memory (default, no deps) → SQLite (single host) → Redis (shared).
The backend is chosen once at start-up from a connection URL; all three have
the same external behaviour:

- ``append_bounded`` pushes one item, trims the list to the newest ``max_len``
  items and refreshes the list's expiry, atomically per key.
  A non-positive ``max_len`` empties the list.
- ``get`` after a key's expiry is a miss and evicts the key.

Install the Redis backend with: pip install edugate[redis]
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable

logger = logging.getLogger("edugate.store.backends")

SWEEP_EVERY = 256


class DurableStore(ABC):
    """Capability interface shared by every backend."""

    name: str = "abstract"
    durable: bool = False

    @abstractmethod
    async def append_bounded(self, key: str, item: str, max_len: int, ttl: float) -> None:
        ...

    @abstractmethod
    async def read_list(self, key: str) -> list[str]:
        ...

    @abstractmethod
    async def get(self, key: str) -> str | None:
        ...

    @abstractmethod
    async def set(self, key: str, value: str, ttl: float) -> None:
        ...

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


class MemoryStore(DurableStore):
    """Process-local dict store. A lock makes each per-key operation atomic."""

    name = "memory"
    durable = False

    def __init__(self, clock: Callable[[], float] = time.monotonic, sweep_every: int = SWEEP_EVERY):
        self._clock = clock
        self._sweep_every = max(sweep_every, 1)
        self._writes = 0
        self._lists: dict[str, tuple[list[str], float]] = {}
        self._values: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    async def append_bounded(self, key: str, item: str, max_len: int, ttl: float) -> None:
        now = self._clock()
        with self._lock:
            self._maybe_sweep(now)
            if max_len <= 0:
                self._lists.pop(key, None)
                return
            items, expires_at = self._lists.get(key, ([], 0.0))
            if expires_at and expires_at <= now:
                items = []
            self._lists[key] = ((items + [item])[-max_len:], now + ttl)

    async def read_list(self, key: str) -> list[str]:
        now = self._clock()
        with self._lock:
            entry = self._lists.get(key)
            if entry is None:
                return []
            items, expires_at = entry
            if expires_at <= now:
                del self._lists[key]
                return []
            return list(items)

    async def get(self, key: str) -> str | None:
        now = self._clock()
        with self._lock:
            entry = self._values.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at <= now:
                del self._values[key]
                return None
            return value

    async def set(self, key: str, value: str, ttl: float) -> None:
        now = self._clock()
        with self._lock:
            self._maybe_sweep(now)
            self._values[key] = (value, now + ttl)

    def _maybe_sweep(self, now: float) -> None:
        """Drop expired entries every ``sweep_every`` writes. Caller holds the lock."""
        self._writes += 1
        if self._writes % self._sweep_every:
            return
        for table in (self._lists, self._values):
            for key in [k for k, (_, expires_at) in table.items() if expires_at <= now]:
                del table[key]

    async def close(self) -> None:
        with self._lock:
            self._lists.clear()
            self._values.clear()


class SqliteStore(DurableStore):
    """SQLite-backed store. Blocking calls run in a worker thread."""

    name = "sqlite"
    durable = True

    def __init__(self, path: str | Path, clock: Callable[[], float] = time.time):
        self.path = Path(path)
        self._clock = clock
        self._lock = threading.Lock()
        self._conn: sqlite3.Connection | None = None
        self._init_sqlite()

    def _init_sqlite(self) -> None:
        """Initialize SQLite database and tables."""
        if str(self.path) != ":memory:":
            self.path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self.path), check_same_thread=False)
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS list_items (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                key TEXT NOT NULL,
                item TEXT NOT NULL
            )
        """)
        self._conn.execute("CREATE INDEX IF NOT EXISTS idx_list_items_key ON list_items (key, id)")
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS list_expiry (
                key TEXT PRIMARY KEY,
                expires_at REAL NOT NULL
            )
        """)
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS kv (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                expires_at REAL NOT NULL
            )
        """)
        self._conn.commit()

    async def _run(self, fn: Callable[..., Any], *args: Any) -> Any:
        return await asyncio.to_thread(self._locked, fn, *args)

    def _locked(self, fn: Callable[..., Any], *args: Any) -> Any:
        with self._lock:
            if self._conn is None:
                raise RuntimeError("SqliteStore is closed")
            return fn(self._conn, *args)

    def _list_missing(self, conn: sqlite3.Connection, key: str, now: float) -> bool:
        row = conn.execute("SELECT expires_at FROM list_expiry WHERE key = ?", (key,)).fetchone()
        if row is not None and row[0] <= now:
            conn.execute("DELETE FROM list_items WHERE key = ?", (key,))
            conn.execute("DELETE FROM list_expiry WHERE key = ?", (key,))
            return True
        return row is None

    def _append(self, conn: sqlite3.Connection, key: str, item: str, max_len: int, ttl: float) -> None:
        now = self._clock()
        with conn:
            self._list_missing(conn, key, now)
            if max_len <= 0:
                conn.execute("DELETE FROM list_items WHERE key = ?", (key,))
                conn.execute("DELETE FROM list_expiry WHERE key = ?", (key,))
                return
            conn.execute("INSERT INTO list_items (key, item) VALUES (?, ?)", (key, item))
            conn.execute(
                "DELETE FROM list_items WHERE key = ? AND id NOT IN "
                "(SELECT id FROM list_items WHERE key = ? ORDER BY id DESC LIMIT ?)",
                (key, key, max_len),
            )
            conn.execute(
                "INSERT OR REPLACE INTO list_expiry (key, expires_at) VALUES (?, ?)",
                (key, now + ttl),
            )

    def _read(self, conn: sqlite3.Connection, key: str) -> list[str]:
        with conn:
            if self._list_missing(conn, key, self._clock()):
                return []
            rows = conn.execute("SELECT item FROM list_items WHERE key = ? ORDER BY id ASC", (key,)).fetchall()
        return [row[0] for row in rows]

    def _get(self, conn: sqlite3.Connection, key: str) -> str | None:
        row = conn.execute("SELECT value, expires_at FROM kv WHERE key = ?", (key,)).fetchone()
        if row is None:
            return None
        if row[1] <= self._clock():
            with conn:
                conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            return None
        return row[0]

    def _set(self, conn: sqlite3.Connection, key: str, value: str, ttl: float) -> None:
        with conn:
            conn.execute(
                "INSERT OR REPLACE INTO kv (key, value, expires_at) VALUES (?, ?, ?)",
                (key, value, self._clock() + ttl),
            )

    async def append_bounded(self, key: str, item: str, max_len: int, ttl: float) -> None:
        await self._run(self._append, key, item, max_len, ttl)

    async def read_list(self, key: str) -> list[str]:
        return await self._run(self._read, key)

    async def get(self, key: str) -> str | None:
        return await self._run(self._get, key)

    async def set(self, key: str, value: str, ttl: float) -> None:
        await self._run(self._set, key, value, ttl)

    async def close(self) -> None:
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None


class RedisStore(DurableStore):
    """Redis-backed store (redis.asyncio). Lists use RPUSH + LTRIM + EXPIRE in one MULTI."""

    name = "redis"
    durable = True

    def __init__(self, url: str, client: Any = None):
        self.url = url
        if client is None:
            try:
                import redis.asyncio as aioredis
            except ImportError:
                raise ImportError(
                    "redis is required for the Redis backend. "
                    "Install with: pip install edugate[redis]"
                )
            client = aioredis.from_url(url, decode_responses=True)
        self._client = client

    async def append_bounded(self, key: str, item: str, max_len: int, ttl: float) -> None:
        if max_len <= 0:
            await self._client.delete(key)
            return
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.rpush(key, item)
            pipe.ltrim(key, -max_len, -1)
            pipe.expire(key, max(int(ttl), 1))
            await pipe.execute()

    async def read_list(self, key: str) -> list[str]:
        return list(await self._client.lrange(key, 0, -1))

    async def get(self, key: str) -> str | None:
        return await self._client.get(key)

    async def set(self, key: str, value: str, ttl: float) -> None:
        await self._client.set(key, value, ex=max(int(ttl), 1))

    async def ping(self) -> bool:
        return bool(await self._client.ping())

    async def close(self) -> None:
        await self._client.aclose()


async def open_store(url: str | None) -> DurableStore:
    """Select and connect the backend named by ``url``.

    ``None``/``memory://`` → MemoryStore, ``sqlite:///path`` → SqliteStore,
    ``redis://``/``rediss://`` → RedisStore. A backend that cannot be reached
    is logged and replaced by MemoryStore.
    """
    if not url or url.startswith("memory://"):
        return MemoryStore()

    try:
        if url.startswith("sqlite://"):
            # sqlite:///relative.db, sqlite:////absolute/path.db
            path = url[len("sqlite:///"):] if url.startswith("sqlite:///") else url[len("sqlite://"):]
            store: DurableStore = SqliteStore(path or ":memory:")
        elif url.startswith(("redis://", "rediss://", "unix://")):
            store = RedisStore(url)
            await store.ping()
        else:
            logger.warning(f"Unknown store URL scheme: {url.split('://', 1)[0]}; using in-memory store")
            return MemoryStore()
    except Exception as e:
        logger.warning(f"Durable store unavailable ({type(e).__name__}: {e}); using in-memory store")
        return MemoryStore()

    logger.info(f"Durable store ready: {store.name}")
    return store
