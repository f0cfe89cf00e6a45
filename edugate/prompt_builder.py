"""PromptBuilder — system prompt, conversation context and task-specific final prompts.

Task prompts are built from tagged variants (ChatTask, EssayTask, SearchTask,
BrowseTask). Each variant checks its own required fields when constructed and
applies its truncation rule, so an invalid task never reaches rendering.
"""

from __future__ import annotations

import logging
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator

from edugate.models import Action, ConversationMessage, GradeBand, Role, SearchResults
from edugate.policy.grade_rubric import GradeRubric
from edugate.policy.rules import RuleSet
from edugate.prompt_registry import PromptRegistry
from edugate.store.conversation import ConversationStore

logger = logging.getLogger("edugate.prompt_builder")

MAX_DOCUMENT_CHARS = 30_000
HISTORY_WINDOW = 40
MAX_GROUNDING_HITS = 5


class TaskValidationError(ValueError):
    """Raised when a task variant is missing a field its prompt requires."""


def truncate(text: str, limit: int = MAX_DOCUMENT_CHARS) -> str:
    return text[:limit] if len(text) > limit else text


# ============================================================
# Task variants
# ============================================================

class _TaskBase(BaseModel):
    message: str = ""
    grade: str | None = None


class ChatTask(_TaskBase):
    kind: Literal[Action.CHAT] = Action.CHAT
    message: str = Field(min_length=1)
    reasoning: bool = False


class EssayTask(_TaskBase):
    kind: Literal[Action.ANALYZE_ESSAY] = Action.ANALYZE_ESSAY
    essay: str = Field(min_length=1)

    @field_validator("essay")
    @classmethod
    def _bound(cls, v: str) -> str:
        return truncate(v)


class SearchTask(_TaskBase):
    kind: Literal[Action.SEARCH_AND_ANALYZE] = Action.SEARCH_AND_ANALYZE
    query: str = Field(min_length=1)
    results: SearchResults = Field(default_factory=SearchResults)


class BrowseTask(_TaskBase):
    kind: Literal[Action.BROWSE_AND_ANALYZE] = Action.BROWSE_AND_ANALYZE
    url: str = Field(min_length=1)
    page_text: str = ""

    @field_validator("page_text")
    @classmethod
    def _bound(cls, v: str) -> str:
        return truncate(v)


Task = Annotated[Union[ChatTask, EssayTask, SearchTask, BrowseTask], Field(discriminator="kind")]
_TASK_ADAPTER: TypeAdapter[Task] = TypeAdapter(Task)


def make_task(kind: Action | str, **fields) -> ChatTask | EssayTask | SearchTask | BrowseTask:
    """Build the variant for ``kind``; raises TaskValidationError on missing fields."""
    try:
        return _TASK_ADAPTER.validate_python({"kind": Action(kind), **fields})
    except ValidationError as e:
        problems = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
        raise TaskValidationError(f"Invalid {Action(kind).value} task: {problems}") from e


def format_search_grounding(results: SearchResults, limit: int = MAX_GROUNDING_HITS) -> str:
    if results.empty:
        return "(no search results available)"
    lines = []
    for i, hit in enumerate(results.hits[:limit], start=1):
        lines.append(f"{i}. {hit.title} — {hit.url}")
        if hit.description:
            lines.append(f"   {hit.description}")
    return "\n".join(lines)


# ============================================================
# Builder
# ============================================================

class PromptBuilder:
    """Usage:
        builder = PromptBuilder(RuleSet(), GradeRubric(), conversation_store)
        context = await builder.build_conversation_context("alice", grade="7")
        prompt = builder.compose_task_prompt(make_task("chat", message="Hi"), context)
    """

    def __init__(
        self,
        rules: RuleSet,
        rubric: GradeRubric,
        conversations: ConversationStore,
        registry: PromptRegistry | None = None,
        history_window: int = HISTORY_WINDOW,
    ):
        self.rules = rules
        self.rubric = rubric
        self.conversations = conversations
        self.registry = registry or PromptRegistry()
        self.history_window = history_window

    def build_system_prompt(self, grade: str | None) -> str:
        return self.registry.get(
            "system",
            rules=self.rules.enumerate(),
            grade_summary=self.rubric.summarize(grade),
        )

    def render_history(self, messages: list[ConversationMessage]) -> list[dict[str, str]]:
        return [
            {"label": "User" if m.role is Role.USER else "Assistant", "content": m.content}
            for m in messages
        ]

    async def build_conversation_context(
        self,
        user: str | None,
        extra: str = "",
        grade: str | None = None,
    ) -> str:
        history = await self.conversations.recent(user, self.history_window)
        return self.render_conversation_context(history, extra=extra, grade=grade)

    def render_conversation_context(
        self,
        history: list[ConversationMessage],
        extra: str = "",
        grade: str | None = None,
    ) -> str:
        return self.registry.get(
            "conversation_context",
            system=self.build_system_prompt(grade),
            history=self.render_history(history[-self.history_window:] if self.history_window > 0 else []),
            extra=extra or "",
        )

    def compose_task_prompt(self, task: ChatTask | EssayTask | SearchTask | BrowseTask, context: str) -> str:
        band = self.rubric.normalize(task.grade)
        common = {
            "context": context,
            "message": task.message,
            "grade_summary": self.rubric.summary_for_band(band),
        }

        if isinstance(task, ChatTask):
            return self.registry.get("chat", reasoning=task.reasoning, **common)

        if isinstance(task, EssayTask):
            grade_label = task.grade if band is not GradeBand.UNSPECIFIED and task.grade else "unspecified"
            return self.registry.get(
                "analyze_essay",
                essay=self._bounded("analyze_essay", task.essay),
                grade=grade_label,
                **common,
            )

        if isinstance(task, SearchTask):
            return self.registry.get(
                "search_and_analyze",
                query=task.query,
                grounding=format_search_grounding(task.results),
                **common,
            )

        if isinstance(task, BrowseTask):
            return self.registry.get(
                "browse_and_analyze",
                url=task.url,
                page_text=self._bounded("browse_and_analyze", task.page_text) or "(the page could not be fetched)",
                **common,
            )

        raise TaskValidationError(f"Unsupported task type: {type(task).__name__}")

    def _bounded(self, prompt_name: str, text: str) -> str:
        limit = self.registry.get_entry(prompt_name).max_chars
        return truncate(text, limit) if limit else text
