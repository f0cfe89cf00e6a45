"""Tests for PromptRegistry, task variants and PromptBuilder."""

from __future__ import annotations

import pytest

from edugate.models import Action, Role, SearchHit, SearchResults
from edugate.policy.grade_rubric import GradeRubric
from edugate.policy.rules import BASE_RULES, RuleSet
from edugate.prompt_builder import (
    MAX_DOCUMENT_CHARS,
    BrowseTask,
    ChatTask,
    EssayTask,
    PromptBuilder,
    SearchTask,
    TaskValidationError,
    format_search_grounding,
    make_task,
)
from edugate.prompt_registry import PromptNotFoundError, PromptRegistry, PromptRenderError
from edugate.store.backends import MemoryStore
from edugate.store.conversation import ConversationStore


@pytest.fixture
def conversations():
    return ConversationStore(MemoryStore())


@pytest.fixture
def builder(conversations):
    return PromptBuilder(RuleSet(["Never mention the cafeteria menu."]), GradeRubric(), conversations)


class TestPromptRegistry:
    def test_bundled_prompts_are_valid(self):
        registry = PromptRegistry()
        assert registry.validate() == []
        assert "analyze_essay" in registry.list_prompts()

    def test_max_chars_loaded(self):
        assert PromptRegistry().get_entry("analyze_essay").max_chars == MAX_DOCUMENT_CHARS

    def test_unknown_prompt(self):
        with pytest.raises(PromptNotFoundError):
            PromptRegistry().get("nope")

    def test_missing_variable(self):
        registry = PromptRegistry()
        registry.register("greet", "Hello {{ name }}")
        with pytest.raises(PromptRenderError):
            registry.get("greet")
        assert registry.get("greet", name="Ada") == "Hello Ada"

    def test_missing_file(self, tmp_path):
        registry = PromptRegistry(tmp_path / "missing.yaml")
        assert registry.list_prompts() == []
        assert any("Missing required prompts" in err for err in registry.validate())


class TestTaskVariants:
    def test_make_task_dispatches_on_kind(self):
        assert isinstance(make_task("chat", message="hi"), ChatTask)
        assert isinstance(make_task(Action.ANALYZE_ESSAY, essay="text"), EssayTask)
        assert isinstance(make_task("search_and_analyze", query="q"), SearchTask)
        assert isinstance(make_task("browse_and_analyze", url="https://x"), BrowseTask)

    @pytest.mark.parametrize("kind, fields", [
        ("chat", {"message": ""}),
        ("analyze_essay", {"essay": ""}),
        ("search_and_analyze", {"query": ""}),
        ("browse_and_analyze", {}),
    ])
    def test_required_fields(self, kind, fields):
        with pytest.raises(TaskValidationError):
            make_task(kind, **fields)

    def test_essay_truncated(self):
        task = make_task("analyze_essay", essay="a" * (MAX_DOCUMENT_CHARS + 500))
        assert len(task.essay) == MAX_DOCUMENT_CHARS

    def test_page_text_truncated(self):
        task = make_task("browse_and_analyze", url="https://x", page_text="b" * (MAX_DOCUMENT_CHARS + 1))
        assert len(task.page_text) == MAX_DOCUMENT_CHARS


class TestSystemPrompt:
    def test_contains_rules_grade_and_closing(self, builder):
        prompt = builder.build_system_prompt("grade 10")
        assert prompt.startswith("You are an educational assistant")
        assert f"1. {BASE_RULES[0]}" in prompt
        assert f"{len(BASE_RULES) + 1}. Never mention the cafeteria menu." in prompt
        assert "High school (9-12)" in prompt
        assert "chain-of-thought" in prompt
        assert "alternatives" in prompt

    def test_unspecified_grade(self, builder):
        assert "Grade not specified" in builder.build_system_prompt(None)


class TestConversationContext:
    @pytest.mark.asyncio
    async def test_history_oldest_first_with_labels(self, builder, conversations):
        await conversations.append("amy", Role.USER, "What is a thesis?")
        await conversations.append("amy", Role.ASSISTANT, "A thesis is your main claim.")
        context = await builder.build_conversation_context("amy", extra="GROUNDING BLOCK")
        first = context.index("User: What is a thesis?")
        second = context.index("Assistant: A thesis is your main claim.")
        assert first < second < context.index("GROUNDING BLOCK")

    @pytest.mark.asyncio
    async def test_window_bound(self, conversations):
        builder = PromptBuilder(RuleSet(), GradeRubric(), conversations, history_window=3)
        for i in range(6):
            await conversations.append("ben", Role.USER, f"message-{i}")
        context = await builder.build_conversation_context("ben")
        assert "message-2" not in context
        assert "message-3" in context and "message-5" in context

    @pytest.mark.asyncio
    async def test_no_history(self, builder):
        context = await builder.build_conversation_context("nobody")
        assert "Conversation (recent)" not in context


class TestComposeTaskPrompt:
    def test_chat(self, builder):
        context = builder.render_conversation_context([])
        prompt = builder.compose_task_prompt(make_task("chat", message="Explain similes"), context)
        assert prompt.rstrip().endswith("Assistant:")
        assert "User: Explain similes" in prompt
        assert "Internal directive" not in prompt

    def test_chat_reasoning_directive(self, builder):
        context = builder.render_conversation_context([])
        prompt = builder.compose_task_prompt(make_task("chat", message="Hi", reasoning=True), context)
        assert "Internal directive" in prompt
        assert "only the final answer" in prompt

    def test_essay(self, builder):
        context = builder.render_conversation_context([], grade="9")
        task = make_task("analyze_essay", essay="My essay about the ocean.", grade="9")
        prompt = builder.compose_task_prompt(task, context)
        for marker in ["1) A 2-3 sentence summary", "2) Strengths", "3) Weaknesses", "4) Concrete, numbered revision steps",
                       "5) 3-6 teacher questions", "6) DO NOT rewrite or complete the essay"]:
            assert marker in prompt
        assert "tailored to grade 9" in prompt
        assert "High school (9-12)" in prompt
        assert prompt.rstrip().endswith("My essay about the ocean.")

    def test_essay_rewrite_directive(self, builder):
        context = builder.render_conversation_context([])
        plain = builder.compose_task_prompt(make_task("analyze_essay", essay="x"), context)
        assert "6) DO NOT rewrite or complete the essay; provide scaffolding instead." in plain
        asked = builder.compose_task_prompt(make_task("analyze_essay", essay="x", message="outline my intro"), context)
        assert ("6) DO NOT rewrite or complete the essay unless the request below asks for that kind of "
                "scaffolding; otherwise provide scaffolding instead.") in asked
        assert "Request: outline my intro" in asked

    def test_essay_unspecified_grade(self, builder):
        prompt = builder.compose_task_prompt(make_task("analyze_essay", essay="x"), builder.render_conversation_context([]))
        assert "tailored to grade unspecified" in prompt

    def test_essay_truncation_applies_in_prompt(self, builder):
        essay = "a" * MAX_DOCUMENT_CHARS + "TAIL_MARKER"
        prompt = builder.compose_task_prompt(make_task("analyze_essay", essay=essay), "ctx")
        assert "TAIL_MARKER" not in prompt

    def test_search(self, builder):
        results = SearchResults(query="volcanoes", hits=[
            SearchHit(title="Volcano facts", url="https://v.example", description="Lava and ash"),
        ])
        task = make_task("search_and_analyze", query="volcanoes", results=results, grade="4")
        prompt = builder.compose_task_prompt(task, "ctx")
        assert 'Search results for "volcanoes"' in prompt
        assert "1. Volcano facts — https://v.example" in prompt
        assert "Elementary (K-5)" in prompt

    def test_browse(self, builder):
        task = make_task("browse_and_analyze", url="https://p.example", page_text="Photosynthesis uses light.")
        prompt = builder.compose_task_prompt(task, "ctx")
        assert "Page content from https://p.example" in prompt
        assert "Photosynthesis uses light." in prompt

    def test_browse_without_text(self, builder):
        prompt = builder.compose_task_prompt(make_task("browse_and_analyze", url="https://p.example"), "ctx")
        assert "could not be fetched" in prompt


def test_format_search_grounding_limits_hits():
    hits = [SearchHit(title=f"t{i}", url=f"https://{i}.example") for i in range(10)]
    text = format_search_grounding(SearchResults(query="q", hits=hits), limit=3)
    assert "3. t2" in text
    assert "4. t3" not in text
    assert format_search_grounding(SearchResults(query="q")) == "(no search results available)"


def test_template_max_chars_bounds_document(conversations):
    registry = PromptRegistry()
    entry = registry.get_entry("analyze_essay")
    registry.register("analyze_essay", entry.template, max_chars=10)
    builder = PromptBuilder(RuleSet(), GradeRubric(), conversations, registry=registry)
    prompt = builder.compose_task_prompt(make_task("analyze_essay", essay="0123456789TAIL"), "ctx")
    assert "0123456789" in prompt
    assert "TAIL" not in prompt
