"""edugate — grade-aware safety proxy in front of a hosted LLM.

Usage:
    from edugate import ChatRequest, build_services, get_env_config

    services = await build_services(get_env_config())
    result = await services.orchestrator.handle(
        ChatRequest(action="analyze_essay", essay="...", grade="9")
    )
    print(result.reply)
"""

__version__ = "0.2.0"

from edugate.env_config import EnvConfig, get_env_config
from edugate.heuristics import HeuristicEngine
from edugate.llm_provider import CompletionClient, NOT_CONFIGURED_REPLY
from edugate.models import (
    Action,
    ChatRequest,
    ChatResponse,
    CompletionOptions,
    ConversationMessage,
    GradeBand,
    SearchResults,
)
from edugate.orchestrator import RequestOrchestrator, Services, build_services
from edugate.policy import BASE_RULES, GradeRubric, RuleSet, ViolationDetector
from edugate.prompt_builder import PromptBuilder, make_task
from edugate.store import ConversationStore, MemoryStore, ResultCache, derive_key

# Logging
from edugate.logging_setup import setup_logging

__all__ = [
    # Wiring
    "build_services",
    "Services",
    "RequestOrchestrator",
    # Config
    "EnvConfig",
    "get_env_config",
    # Models
    "Action",
    "ChatRequest",
    "ChatResponse",
    "CompletionOptions",
    "ConversationMessage",
    "GradeBand",
    "SearchResults",
    # Components
    "BASE_RULES",
    "RuleSet",
    "ViolationDetector",
    "GradeRubric",
    "HeuristicEngine",
    "PromptBuilder",
    "make_task",
    "CompletionClient",
    "NOT_CONFIGURED_REPLY",
    "ConversationStore",
    "MemoryStore",
    "ResultCache",
    "derive_key",
    # Logging
    "setup_logging",
]
