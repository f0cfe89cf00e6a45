"""ConversationStore — per-user append-only message log with bounded retention.

Each user's log lives under ``convo:<user>`` in the DurableStore. Every append
trims the log to the newest ``max_messages`` entries in the same atomic store
operation, and pushes the log's expiry ``ttl`` seconds into the future.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from edugate.models import ConversationMessage, Role, normalize_user_id
from edugate.store.backends import DurableStore

logger = logging.getLogger("edugate.store.conversation")

DEFAULT_MAX_MESSAGES = 200
DEFAULT_TTL_SECONDS = 7 * 24 * 3600


class ConversationStore:
    """Short-term conversational memory.

    Usage:
        convo = ConversationStore(MemoryStore())
        await convo.append("alice", "user", "What is a thesis?")
        history = await convo.read("alice")          # oldest first
        window = await convo.recent("alice", 40)
    """

    def __init__(
        self,
        store: DurableStore,
        max_messages: int = DEFAULT_MAX_MESSAGES,
        ttl: float = DEFAULT_TTL_SECONDS,
    ):
        self.store = store
        self.max_messages = max_messages
        self.ttl = ttl

    @staticmethod
    def key_for(user: str | None) -> str:
        return f"convo:{normalize_user_id(user)}"

    async def append(self, user: str | None, role: Role | str, content: str) -> ConversationMessage:
        message = ConversationMessage(role=Role(role), content=content or "")
        await self.store.append_bounded(
            self.key_for(user),
            message.model_dump_json(),
            self.max_messages,
            self.ttl,
        )
        return message

    async def read(self, user: str | None) -> list[ConversationMessage]:
        raw_items = await self.store.read_list(self.key_for(user))
        messages: list[ConversationMessage] = []
        for raw in raw_items:
            try:
                messages.append(ConversationMessage.model_validate_json(raw))
            except ValidationError as e:
                logger.warning(f"Skipping unreadable conversation entry for {normalize_user_id(user)}: {e}")
        return messages

    async def recent(self, user: str | None, limit: int) -> list[ConversationMessage]:
        if limit <= 0:
            return []
        return (await self.read(user))[-limit:]
