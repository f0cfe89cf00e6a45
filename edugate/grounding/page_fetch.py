"""PageFetcher — fetches a web page and reduces it to readable text.

Two strategies:
- HttpPageFetcher: plain GET with httpx (always available);
- BrowserPageFetcher: headless Chromium via Playwright, used when a browser
  executable path is configured. Any exception from the browser path falls
  back to HttpPageFetcher.

Both honour a bounded wait and forward an optional ``Cookie`` header.
Install the browser path with: pip install edugate[browser]
"""

from __future__ import annotations

import asyncio
import logging
import re

import httpx
from bs4 import BeautifulSoup

from edugate.models import FetchedPage

logger = logging.getLogger("edugate.grounding.page_fetch")

DEFAULT_FETCH_TIMEOUT = 20.0
MAX_PAGE_CHARS = 120_000
_USER_AGENT = "Mozilla/5.0 (compatible; edugate/0.2; +https://example.invalid/edugate)"
_NOISE_TAGS = ["script", "style", "noscript", "nav", "header", "footer", "aside"]


def html_to_text(html: str) -> str:
    soup = BeautifulSoup(html or "", "html.parser")
    for tag in soup(_NOISE_TAGS):
        tag.decompose()
    text = " ".join(soup.stripped_strings)
    return re.sub(r"\s+", " ", text)[:MAX_PAGE_CHARS]


def _cookie_header(cookies: str | None) -> dict[str, str]:
    return {"Cookie": cookies} if cookies else {}


class PageFetcher:
    """Capability interface."""

    name = "abstract"
    rich = False

    async def fetch(self, url: str, cookies: str | None = None) -> FetchedPage:
        raise NotImplementedError

    async def aclose(self) -> None:
        return None


class HttpPageFetcher(PageFetcher):
    """Usage:
        fetcher = HttpPageFetcher()
        page = await fetcher.fetch("https://example.org", cookies="session=abc")
    """

    name = "http"

    def __init__(self, timeout: float = DEFAULT_FETCH_TIMEOUT, http_client: httpx.AsyncClient | None = None):
        self.timeout = timeout
        self._http = http_client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    async def fetch(self, url: str, cookies: str | None = None) -> FetchedPage:
        try:
            resp = await self._http.get(
                url,
                headers={"User-Agent": _USER_AGENT, **_cookie_header(cookies)},
                timeout=self.timeout,
            )
            resp.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning(f"Page fetch failed for {url}: {e}")
            return FetchedPage(url=url, method=self.name)

        content_type = resp.headers.get("content-type", "")
        text = html_to_text(resp.text) if "html" in content_type or not content_type else resp.text[:MAX_PAGE_CHARS]
        cookie_meta = [{"name": name, "domain": resp.url.host or ""} for name in resp.cookies.keys()]
        return FetchedPage(url=url, text=text, method=self.name, cookies=cookie_meta)

    async def aclose(self) -> None:
        await self._http.aclose()


class BrowserPageFetcher(PageFetcher):
    """Headless-browser fetch with an explicit fallback to ``fallback`` on any error."""

    name = "browser"
    rich = True

    def __init__(
        self,
        executable_path: str,
        fallback: PageFetcher,
        timeout: float = DEFAULT_FETCH_TIMEOUT,
    ):
        self.executable_path = executable_path
        self.fallback = fallback
        self.timeout = timeout

    async def fetch(self, url: str, cookies: str | None = None) -> FetchedPage:
        try:
            return await asyncio.wait_for(self._fetch_with_browser(url, cookies), timeout=self.timeout)
        except Exception as e:
            logger.warning(f"Browser fetch failed for {url} ({type(e).__name__}: {e}); falling back to HTTP")
            return await self.fallback.fetch(url, cookies)

    async def _fetch_with_browser(self, url: str, cookies: str | None) -> FetchedPage:
        from playwright.async_api import async_playwright

        async with async_playwright() as pw:
            browser = await pw.chromium.launch(executable_path=self.executable_path, headless=True)
            try:
                context = await browser.new_context(
                    user_agent=_USER_AGENT,
                    extra_http_headers=_cookie_header(cookies),
                )
                page = await context.new_page()
                await page.goto(url, wait_until="networkidle", timeout=self.timeout * 1000)
                html = await page.content()
                browser_cookies = await context.cookies()
            finally:
                await browser.close()

        cookie_meta = [
            {"name": str(c.get("name", "")), "domain": str(c.get("domain", ""))}
            for c in browser_cookies
        ]
        return FetchedPage(url=url, text=html_to_text(html), method=self.name, cookies=cookie_meta)

    async def aclose(self) -> None:
        await self.fallback.aclose()
