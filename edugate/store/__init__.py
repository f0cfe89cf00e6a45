"""edugate store — durable-store backends, conversation memory and result cache."""

from edugate.store.backends import DurableStore, MemoryStore, RedisStore, SqliteStore, open_store
from edugate.store.cache import CacheKind, ResultCache, derive_key
from edugate.store.conversation import ConversationStore

__all__ = [
    "CacheKind",
    "ConversationStore",
    "DurableStore",
    "MemoryStore",
    "RedisStore",
    "ResultCache",
    "SqliteStore",
    "derive_key",
    "open_store",
]
