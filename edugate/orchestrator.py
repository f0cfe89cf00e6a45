"""RequestOrchestrator — the per-request control flow.

    gate → warn → decide → gather grounding → build prompt → complete → persist → respond

Only the intent text (message + URL) can refuse a request; essay bodies get an
advisory warning at most. Every collaborator failure is converted into degraded
data at its call site (empty results, cache miss, error-string reply) so a
request always produces a response.

Usage:
    services = await build_services(get_env_config())
    response = await services.orchestrator.handle(ChatRequest(message="Hi"))
    await services.aclose()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from nfo.decorators import log_call

from edugate.env_config import EnvConfig
from edugate.grounding.page_fetch import BrowserPageFetcher, HttpPageFetcher, PageFetcher
from edugate.grounding.search import BraveSearchClient, SearchClient
from edugate.heuristics import HeuristicEngine
from edugate.llm_provider import CompletionClient, is_degraded_reply
from edugate.models import (
    Action,
    ChatRequest,
    ChatResponse,
    ConversationMessage,
    FetchedPage,
    Role,
    SearchResults,
)
from edugate.policy.grade_rubric import GradeRubric
from edugate.policy.rules import RuleSet
from edugate.policy.violations import ViolationDetector
from edugate.prompt_builder import (
    PromptBuilder,
    TaskValidationError,
    format_search_grounding,
    make_task,
)
from edugate.store.backends import DurableStore, open_store
from edugate.store.cache import CacheKind, ResultCache, derive_key
from edugate.store.conversation import ConversationStore

logger = logging.getLogger("edugate.orchestrator")

MISSING_INPUT_REPLIES: dict[Action, str] = {
    Action.CHAT: "Please type a question or message and I'll help.",
    Action.ANALYZE_ESSAY: "Please paste the essay you'd like feedback on.",
    Action.SEARCH_AND_ANALYZE: "Please tell me what to search for.",
    Action.BROWSE_AND_ANALYZE: "Please provide the URL of the page you'd like me to look at.",
}


class RequestOrchestrator:
    """Runs one request through the pipeline. Holds no per-request state."""

    def __init__(
        self,
        detector: ViolationDetector,
        heuristics: HeuristicEngine,
        builder: PromptBuilder,
        completion: CompletionClient,
        conversations: ConversationStore,
        cache: ResultCache,
        search: SearchClient | None = None,
        page_fetcher: PageFetcher | None = None,
        persist_cookies: bool = False,
    ):
        self.detector = detector
        self.heuristics = heuristics
        self.builder = builder
        self.completion = completion
        self.conversations = conversations
        self.cache = cache
        self.search = search or SearchClient()
        self.page_fetcher = page_fetcher
        self.persist_cookies = persist_cookies

    # ------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------

    @log_call
    async def handle(self, req: ChatRequest) -> ChatResponse:
        user = req.user_id

        violations = self.detector.detect(req.intent_text)
        if violations:
            logger.info(f"Refused request from {user}: {violations}")
            reply = self.detector.refusal_message(violations)
            await self._remember(user, self._user_record(req), reply)
            return ChatResponse(reply=reply, refused=True, reason=violations)

        essay_warning = self.detector.essay_warning(req.essay)
        if essay_warning:
            logger.info(f"Essay advisory for {user}: {essay_warning[:120]}")

        use_search = self.heuristics.needs_search(req)
        use_reasoning = self.heuristics.needs_reasoning(req)

        essay_key: str | None = None
        if req.action is Action.ANALYZE_ESSAY:
            essay_text = req.essay or req.intent_message
            if essay_text:
                band = self.builder.rubric.normalize(req.grade)
                request_text = req.intent_message if req.essay else ""
                essay_key = derive_key(CacheKind.ESSAY, band.value, essay_text, request_text, user=user)
                cached = await self._cache_get(essay_key)
                if isinstance(cached, dict) and cached.get("reply"):
                    logger.info(f"Essay analysis cache hit for {user}")
                    await self._remember(user, self._user_record(req), cached["reply"])
                    return ChatResponse(
                        reply=cached["reply"],
                        essay_warning=essay_warning,
                        used_search=False,
                        used_reasoning=use_reasoning,
                        from_cache=True,
                    )

        search_results: SearchResults | None = None
        if use_search and self.search.available:
            query = self._search_query(req)
            if query:
                search_results = await self._search(query)

        used_search = search_results is not None and not search_results.empty

        page: FetchedPage | None = None
        if req.action is Action.BROWSE_AND_ANALYZE and req.url and self.page_fetcher is not None:
            page = await self._fetch_page(req.url, req.cookies)

        try:
            task = self._build_task(req, use_reasoning, search_results, page)
        except TaskValidationError as e:
            logger.info(f"Incomplete {req.action.value} request from {user}: {e}")
            return ChatResponse(
                reply=MISSING_INPUT_REPLIES[req.action],
                essay_warning=essay_warning,
                used_search=used_search,
                used_reasoning=use_reasoning,
            )

        extra = ""
        if used_search and req.action is not Action.SEARCH_AND_ANALYZE:
            extra = f"Search results for \"{search_results.query}\":\n{format_search_grounding(search_results)}"

        history = await self._history(user)
        context = self.builder.render_conversation_context(history, extra=extra, grade=req.grade)
        prompt = self.builder.compose_task_prompt(task, context)

        options = self.heuristics.budget(use_reasoning)
        reply = await self.completion.complete(prompt, options)

        await self._remember(user, self._user_record(req), reply)
        if essay_key and not is_degraded_reply(reply):
            await self._cache_set(essay_key, {"reply": reply})

        return ChatResponse(
            reply=reply,
            essay_warning=essay_warning,
            used_search=used_search,
            used_reasoning=use_reasoning,
            search_results=search_results.raw if search_results is not None else None,
            from_cache=False if essay_key else None,
        )

    def _build_task(
        self,
        req: ChatRequest,
        reasoning: bool,
        search_results: SearchResults | None,
        page: FetchedPage | None,
    ):
        common: dict[str, Any] = {"grade": req.grade}
        if req.action is Action.ANALYZE_ESSAY:
            if req.essay:
                return make_task(Action.ANALYZE_ESSAY, essay=req.essay, message=req.intent_message, **common)
            return make_task(Action.ANALYZE_ESSAY, essay=req.intent_message, **common)

        if req.action is Action.SEARCH_AND_ANALYZE:
            return make_task(
                Action.SEARCH_AND_ANALYZE,
                query=self._search_query(req),
                results=search_results or SearchResults(query=self._search_query(req)),
                message=req.intent_message,
                **common,
            )

        if req.action is Action.BROWSE_AND_ANALYZE:
            return make_task(
                Action.BROWSE_AND_ANALYZE,
                url=req.url or "",
                page_text=page.text if page else "",
                message=req.intent_message,
                **common,
            )

        return make_task(Action.CHAT, message=req.intent_message, reasoning=reasoning, **common)

    @staticmethod
    def _search_query(req: ChatRequest) -> str:
        return (req.search_query or req.intent_message or req.url or "").strip()

    @staticmethod
    def _user_record(req: ChatRequest) -> str:
        message = req.intent_message
        if req.action is Action.ANALYZE_ESSAY and req.essay:
            note = f"[essay submitted for analysis: {len(req.essay)} chars]"
            return f"{message}\n{note}" if message else note
        if req.url and req.url not in message:
            return f"{message}\n[url: {req.url}]" if message else f"[url: {req.url}]"
        return message

    # ------------------------------------------------------------
    # Grounding (cache-checked)
    # ------------------------------------------------------------

    async def _search(self, query: str) -> SearchResults:
        key = derive_key(CacheKind.SEARCH, query)
        cached = await self._cache_get(key)
        if isinstance(cached, dict):
            results = SearchResults.model_validate(cached)
            results.from_cache = True
            return results

        results = await self.search.search(query)
        if not results.empty:
            await self._cache_set(key, results.model_dump(exclude={"from_cache"}))
        return results

    async def _fetch_page(self, url: str, cookies: str | None) -> FetchedPage:
        # Pages fetched with a caller's cookies are private to that caller.
        key = None if cookies else derive_key(CacheKind.PAGE, url)
        if key:
            cached = await self._cache_get(key)
            if isinstance(cached, dict):
                page = FetchedPage.model_validate(cached)
                page.from_cache = True
                return page

        page = await self.page_fetcher.fetch(url, cookies)
        if key and page.text:
            await self._cache_set(key, page.model_dump(exclude={"from_cache", "cookies"}))
        if self.persist_cookies and page.cookies:
            await self._cache_set(derive_key(CacheKind.COOKIES, url), {"url": url, "cookies": page.cookies})
        return page

    # ------------------------------------------------------------
    # Store access (failures degrade to "no data")
    # ------------------------------------------------------------

    async def _history(self, user: str) -> list[ConversationMessage]:
        try:
            return await self.conversations.recent(user, self.builder.history_window)
        except Exception as e:
            logger.warning(f"Conversation read failed for {user}: {e}")
            return []

    async def _remember(self, user: str, user_text: str, reply: str) -> None:
        try:
            if user_text:
                await self.conversations.append(user, Role.USER, user_text)
            await self.conversations.append(user, Role.ASSISTANT, reply)
        except Exception as e:
            logger.warning(f"Conversation append failed for {user}: {e}")

    async def _cache_get(self, key: str) -> Any | None:
        try:
            return await self.cache.get(key)
        except Exception as e:
            logger.warning(f"Cache read failed for {key[:40]}: {e}")
            return None

    async def _cache_set(self, key: str, value: Any) -> None:
        try:
            await self.cache.set(key, value)
        except Exception as e:
            logger.warning(f"Cache write failed for {key[:40]}: {e}")


# ============================================================
# Wiring
# ============================================================

@dataclass
class Services:
    """Process-wide collaborators, built at start-up and closed at shutdown."""
    config: EnvConfig
    store: DurableStore
    conversations: ConversationStore
    cache: ResultCache
    completion: CompletionClient
    search: SearchClient
    page_fetcher: PageFetcher
    orchestrator: RequestOrchestrator

    def health(self) -> dict[str, bool]:
        return {
            "completion": self.completion.configured,
            "search": self.search.available,
            "durable_store": self.store.durable,
            "page_fetch": self.page_fetcher.rich,
        }

    async def aclose(self) -> None:
        for closer in (self.search.aclose, self.page_fetcher.aclose, self.completion.aclose, self.store.close):
            try:
                await closer()
            except Exception as e:
                logger.warning(f"Error during shutdown: {e}")


async def build_services(cfg: EnvConfig, store: DurableStore | None = None) -> Services:
    """Pick each capability once from configuration and wire the orchestrator."""
    store = store or await open_store(cfg.store_url)
    conversations = ConversationStore(store)
    cache = ResultCache(store)

    rules = RuleSet(cfg.extra_rules)
    rubric = GradeRubric()
    detector = ViolationDetector(patterns_path=cfg.patterns_file)
    builder = PromptBuilder(rules, rubric, conversations)

    completion = CompletionClient(
        api_key=cfg.completion_api_key,
        url=cfg.completion_url,
        model=cfg.completion_model,
        timeout=max(cfg.timeout, 60),
    )
    search: SearchClient = (
        BraveSearchClient(cfg.search_api_key, timeout=cfg.timeout) if cfg.has_search else SearchClient()
    )
    page_fetcher: PageFetcher = HttpPageFetcher(timeout=cfg.timeout)
    if cfg.has_browser:
        page_fetcher = BrowserPageFetcher(cfg.browser_path, fallback=page_fetcher, timeout=cfg.timeout)

    orchestrator = RequestOrchestrator(
        detector=detector,
        heuristics=HeuristicEngine(),
        builder=builder,
        completion=completion,
        conversations=conversations,
        cache=cache,
        search=search,
        page_fetcher=page_fetcher,
        persist_cookies=cfg.persist_cookies,
    )
    logger.info(
        f"edugate services ready: store={store.name} search={search.name} "
        f"page_fetch={page_fetcher.name} completion={'configured' if completion.configured else 'unconfigured'}"
    )
    return Services(
        config=cfg,
        store=store,
        conversations=conversations,
        cache=cache,
        completion=completion,
        search=search,
        page_fetcher=page_fetcher,
        orchestrator=orchestrator,
    )
