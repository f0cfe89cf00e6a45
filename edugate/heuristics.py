"""HeuristicEngine — per-request decisions: search grounding and reasoning budget.

Both decisions are independent booleans defaulting to False. Every signal
can only switch a decision on: a truthy override flag, the action, a URL,
text length or keywords. A falsy or absent flag leaves the other signals to
decide.
"""

from __future__ import annotations

import logging
import re

from edugate.models import Action, ChatRequest, CompletionOptions

logger = logging.getLogger("edugate.heuristics")

SEARCH_KEYWORDS = re.compile(
    r"\b(search for|find|sources|verify|ground|cite|references?)\b",
    re.IGNORECASE,
)
REASONING_KEYWORDS = re.compile(
    r"\b(analy[sz]e|critique|evaluate|grade|feedback|rubric|thesis)\b",
    re.IGNORECASE,
)
LONG_TEXT_THRESHOLD = 800

DEFAULT_BUDGET = CompletionOptions(temperature=0.2, max_tokens=600)
REASONING_BUDGET = CompletionOptions(temperature=0.15, max_tokens=1200)


class HeuristicEngine:
    """Usage:
        engine = HeuristicEngine()
        engine.needs_search(req)       # True if "find sources on ..." etc.
        engine.needs_reasoning(req)    # True for essay analysis or long text
        engine.budget(True)            # CompletionOptions(temperature=0.15, max_tokens=1200)
    """

    def __init__(
        self,
        long_text_threshold: int = LONG_TEXT_THRESHOLD,
        default_budget: CompletionOptions = DEFAULT_BUDGET,
        reasoning_budget: CompletionOptions = REASONING_BUDGET,
    ):
        self.long_text_threshold = long_text_threshold
        self.default_budget = default_budget
        self.reasoning_budget = reasoning_budget

    def needs_search(self, req: ChatRequest) -> bool:
        if req.use_search:
            return True
        if req.action is Action.SEARCH_AND_ANALYZE:
            return True
        if req.url:
            return True
        return bool(SEARCH_KEYWORDS.search(req.intent_message))

    def needs_reasoning(self, req: ChatRequest) -> bool:
        if req.use_reasoning:
            return True
        if req.action is Action.ANALYZE_ESSAY:
            return True
        message = req.intent_message
        if len(message) > self.long_text_threshold or len(req.essay) > self.long_text_threshold:
            return True
        return bool(REASONING_KEYWORDS.search(message))

    def budget(self, reasoning: bool) -> CompletionOptions:
        return self.reasoning_budget if reasoning else self.default_budget
