"""ResultCache — TTL memoization of search queries, page fetches and essay analyses.

Keys are namespaced so entries can never collide across operation kinds, and
essay keys also carry the user identity:

    search:<sha256>        page:<sha256>        essay:<user>:<sha256>
"""

from __future__ import annotations

import enum
import hashlib
import json
import logging
from typing import Any

from edugate.models import normalize_user_id
from edugate.store.backends import DurableStore

logger = logging.getLogger("edugate.store.cache")


class CacheKind(str, enum.Enum):
    SEARCH = "search"
    PAGE = "page"
    ESSAY = "essay"
    COOKIES = "cookies"


DEFAULT_TTLS: dict[CacheKind, float] = {
    CacheKind.SEARCH: 3600,
    CacheKind.PAGE: 1800,
    CacheKind.ESSAY: 24 * 3600,
    CacheKind.COOKIES: 3600,
}


def stable_hash(*parts: str) -> str:
    digest = hashlib.sha256()
    for part in parts:
        data = (part or "").encode("utf-8")
        # Length prefix keeps ("ab", "c") and ("a", "bc") apart.
        digest.update(f"{len(data)}:".encode())
        digest.update(data)
    return digest.hexdigest()


def derive_key(kind: CacheKind | str, *payload: str, user: str | None = None) -> str:
    """Deterministic cache key for ``payload`` in the ``kind`` namespace."""
    kind = CacheKind(kind)
    if kind is CacheKind.ESSAY:
        return f"essay:{normalize_user_id(user)}:{stable_hash(*payload)}"
    return f"{kind.value}:{stable_hash(*payload)}"


class ResultCache:
    """Key → JSON value with per-entry TTL. Misses are ``None``.

    Usage:
        cache = ResultCache(MemoryStore())
        key = derive_key("search", "photosynthesis")
        await cache.set(key, {"hits": [...]}, ttl=3600)
        await cache.get(key)
    """

    def __init__(self, store: DurableStore, ttls: dict[CacheKind, float] | None = None):
        self.store = store
        self.ttls = {**DEFAULT_TTLS, **(ttls or {})}

    def ttl_for(self, kind: CacheKind | str) -> float:
        return self.ttls[CacheKind(kind)]

    async def get(self, key: str) -> Any | None:
        raw = await self.store.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Discarding undecodable cache entry {key[:40]}")
            return None

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        if ttl is None:
            ttl = self.ttl_for(key.split(":", 1)[0])
        await self.store.set(key, json.dumps(value), ttl)
