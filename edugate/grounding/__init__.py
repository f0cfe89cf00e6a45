"""edugate grounding — web search and page fetch collaborators."""

from edugate.grounding.page_fetch import BrowserPageFetcher, HttpPageFetcher, PageFetcher
from edugate.grounding.search import BraveSearchClient, SearchClient

__all__ = ["BraveSearchClient", "BrowserPageFetcher", "HttpPageFetcher", "PageFetcher", "SearchClient"]
