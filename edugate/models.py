"""Data models for edugate — request/response bodies and internal value types.

All inputs/outputs are Pydantic v2 validated. Request field aliases follow the
JSON the browser client sends (camelCase, plus legacy spellings such as
``user`` and ``gradeLevel``).
"""

from __future__ import annotations

import enum
import time
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

MAX_USER_ID_LENGTH = 128
DEFAULT_USER_ID = "anon"

_TRUTHY = {"1", "true", "yes", "on", "y"}
_FALSY = {"0", "false", "no", "off", "n", ""}


# ============================================================
# Enums
# ============================================================

class Action(str, enum.Enum):
    CHAT = "chat"
    ANALYZE_ESSAY = "analyze_essay"
    SEARCH_AND_ANALYZE = "search_and_analyze"
    BROWSE_AND_ANALYZE = "browse_and_analyze"


class GradeBand(str, enum.Enum):
    UNSPECIFIED = "unspecified"
    ELEMENTARY = "K-5"
    MIDDLE = "6-8"
    HIGH = "9-12"
    ADVANCED = "advanced"


class Role(str, enum.Enum):
    USER = "user"
    ASSISTANT = "assistant"


def parse_flag(value: Any) -> bool | None:
    """Interpret a boolean-or-truthy-string override. None means "not given"."""
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    text = str(value).strip().lower()
    if text in _TRUTHY:
        return True
    if text in _FALSY:
        return False
    return None


def normalize_user_id(raw: Any) -> str:
    text = str(raw).strip() if raw is not None else ""
    if not text:
        return DEFAULT_USER_ID
    return text[:MAX_USER_ID_LENGTH]


# ============================================================
# Conversation + cache entities
# ============================================================

class ConversationMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Role
    content: str
    timestamp: float = Field(default_factory=time.time)


class CompletionOptions(BaseModel):
    temperature: float = 0.2
    max_tokens: int = 600


class SearchHit(BaseModel):
    title: str = ""
    url: str = ""
    description: str = ""


class SearchResults(BaseModel):
    """Search outcome; ``raw`` keeps the provider-shaped payload for the response."""
    query: str = ""
    hits: list[SearchHit] = Field(default_factory=list)
    raw: dict[str, Any] = Field(default_factory=dict)
    from_cache: bool = False

    @property
    def empty(self) -> bool:
        return not self.hits


class FetchedPage(BaseModel):
    url: str
    text: str = ""
    method: str = "http"
    cookies: list[dict[str, str]] = Field(default_factory=list)
    from_cache: bool = False


# ============================================================
# HTTP request / response bodies
# ============================================================

class LegacyMessage(BaseModel):
    role: str = "user"
    content: Any = ""


class ChatRequest(BaseModel):
    """One inbound request (the per-request context). Never persisted as a whole."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    user_id: str = Field(default=DEFAULT_USER_ID, validation_alias=AliasChoices("userId", "user", "user_id"))
    action: Action = Action.CHAT
    message: str = ""
    essay: str = ""
    grade: str | None = Field(default=None, validation_alias=AliasChoices("grade", "gradeLevel"))
    url: str | None = None
    use_search: bool | None = Field(default=None, validation_alias=AliasChoices("useBraveSearch", "use_search"))
    use_reasoning: bool | None = Field(default=None, validation_alias=AliasChoices("useReasoning", "use_reasoning"))
    search_query: str | None = Field(default=None, validation_alias=AliasChoices("searchQuery", "search_query"))
    cookies: str | None = None
    messages: list[LegacyMessage] = Field(default_factory=list)

    @field_validator("user_id", mode="before")
    @classmethod
    def _user_id(cls, v: Any) -> str:
        return normalize_user_id(v)

    @field_validator("action", mode="before")
    @classmethod
    def _action(cls, v: Any) -> Action:
        try:
            return Action(str(v).strip().lower()) if v else Action.CHAT
        except ValueError:
            return Action.CHAT

    @field_validator("message", "essay", mode="before")
    @classmethod
    def _text(cls, v: Any) -> str:
        return v if isinstance(v, str) else ""

    @field_validator("grade", "url", "search_query", "cookies", mode="before")
    @classmethod
    def _optional_text(cls, v: Any) -> str | None:
        if v is None:
            return None
        text = str(v).strip()
        return text or None

    @field_validator("messages", mode="before")
    @classmethod
    def _messages(cls, v: Any) -> list[dict[str, Any]]:
        if not isinstance(v, list):
            return []
        return [m for m in v if isinstance(m, dict)]

    @field_validator("use_search", "use_reasoning", mode="before")
    @classmethod
    def _flag(cls, v: Any) -> bool | None:
        return parse_flag(v)

    @property
    def intent_message(self) -> str:
        """The explicit instruction: ``message``, else the latest legacy user turn."""
        if self.message:
            return self.message
        for msg in reversed(self.messages):
            if msg.role == "user":
                return str(msg.content or "")
        return ""

    @property
    def intent_text(self) -> str:
        return f"{self.intent_message}\n{self.url or ''}"


class ChatResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    reply: str
    refused: bool = False
    reason: list[str] | None = None
    essay_warning: str | None = Field(default=None, serialization_alias="essayWarning")
    used_search: bool = Field(default=False, serialization_alias="usedSearch")
    used_reasoning: bool = Field(default=False, serialization_alias="usedReasoning")
    search_results: dict[str, Any] | None = Field(default=None, serialization_alias="searchResults")
    from_cache: bool | None = Field(default=None, serialization_alias="fromCache")

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True) | {
            "essayWarning": self.essay_warning,
        }


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = ""
    completion: bool = False
    search: bool = False
    durable_store: bool = Field(default=False, serialization_alias="durableStore")
    page_fetch: bool = Field(default=False, serialization_alias="pageFetch")
