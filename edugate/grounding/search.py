"""SearchClient — optional web-search grounding (Brave Search API).

A client without a key reports ``available = False`` and returns empty results;
request failures are logged and also degrade to empty results.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from edugate.models import SearchHit, SearchResults

logger = logging.getLogger("edugate.grounding.search")

BRAVE_SEARCH_URL = "https://api.search.brave.com/res/v1/web/search"
DEFAULT_RESULT_COUNT = 7


class SearchClient:
    """Capability interface; the base class is the disabled implementation."""

    name = "disabled"

    @property
    def available(self) -> bool:
        return False

    async def search(self, query: str) -> SearchResults:
        return SearchResults(query=query)

    async def aclose(self) -> None:
        return None


class BraveSearchClient(SearchClient):
    """Usage:
        client = BraveSearchClient(api_key=os.environ["BRAVE_API_KEY"])
        results = await client.search("causes of the french revolution")
    """

    name = "brave"

    def __init__(
        self,
        api_key: str,
        count: int = DEFAULT_RESULT_COUNT,
        timeout: float = 20.0,
        endpoint: str = BRAVE_SEARCH_URL,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.api_key = (api_key or "").strip()
        self.count = count
        self.timeout = timeout
        self.endpoint = endpoint
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    async def search(self, query: str) -> SearchResults:
        query = (query or "").strip()
        if not self.available or not query:
            return SearchResults(query=query)

        try:
            resp = await self._http.get(
                self.endpoint,
                params={"q": query, "count": self.count},
                headers={
                    "Accept": "application/json",
                    "X-Subscription-Token": self.api_key,
                },
            )
            resp.raise_for_status()
            raw = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Brave search failed for {query[:80]!r}: {e}")
            return SearchResults(query=query)

        return SearchResults(query=query, hits=parse_brave_hits(raw), raw=raw if isinstance(raw, dict) else {})

    async def aclose(self) -> None:
        await self._http.aclose()


def parse_brave_hits(raw: Any) -> list[SearchHit]:
    if not isinstance(raw, dict):
        return []
    web = raw.get("web") or {}
    results = web.get("results") if isinstance(web, dict) else None
    hits: list[SearchHit] = []
    for item in results or []:
        if not isinstance(item, dict) or not item.get("url"):
            continue
        hits.append(SearchHit(
            title=str(item.get("title") or ""),
            url=str(item["url"]),
            description=str(item.get("description") or ""),
        ))
    return hits
