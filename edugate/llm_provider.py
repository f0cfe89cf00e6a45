"""CompletionClient — sends one prompt to the hosted LLM and normalizes its reply.

Two transports:
- raw HTTP POST (httpx) to GEMINI_API_URL with a bearer credential, body
  ``{prompt, temperature, max_tokens}``;
- LiteLLM (``litellm.acompletion``) when a model id is configured.

``complete()`` never raises: a missing credential yields NOT_CONFIGURED_REPLY and
any transport/backend failure yields an ``"LLM error: ..."`` string.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from edugate.models import CompletionOptions

logger = logging.getLogger("edugate.llm_provider")

NOT_CONFIGURED_REPLY = "No GEMINI_API_KEY configured on the server."
ERROR_REPLY_PREFIX = "LLM error: "
MAX_RAW_REPLY_CHARS = 2000


def is_degraded_reply(reply: str) -> bool:
    """True for the sentinel and error strings; those must not be cached."""
    return reply == NOT_CONFIGURED_REPLY or reply.startswith(ERROR_REPLY_PREFIX)


def normalize_reply(payload: Any) -> str:
    """Collapse the known backend response shapes into one string.

    Recognized, in order: ``output.text``, ``choices[0].text``,
    ``choices[0].message.content``, flat ``text``. Anything else becomes a
    truncated JSON dump of the raw payload.
    """
    if isinstance(payload, dict):
        output = payload.get("output")
        if isinstance(output, dict) and output.get("text"):
            return str(output["text"])

        choices = payload.get("choices")
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            first = choices[0]
            if first.get("text"):
                return str(first["text"])
            message = first.get("message")
            if isinstance(message, dict) and message.get("content"):
                return str(message["content"])

        if payload.get("text"):
            return str(payload["text"])

    try:
        dumped = json.dumps(payload, default=str)
    except (TypeError, ValueError):
        dumped = repr(payload)
    return dumped[:MAX_RAW_REPLY_CHARS]


class CompletionClient:
    """Unified completion caller for the hosted LLM.

    Usage:
        client = CompletionClient(api_key="...", url="https://...")
        reply = await client.complete("prompt", CompletionOptions(temperature=0.15, max_tokens=1200))
    """

    def __init__(
        self,
        api_key: str = "",
        url: str = "",
        model: str | None = None,
        timeout: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key
        self.url = url
        self.model = model
        self.timeout = timeout
        self._http = http_client

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def complete(self, prompt: str, options: CompletionOptions | None = None) -> str:
        if not self.configured:
            return NOT_CONFIGURED_REPLY
        opts = options or CompletionOptions()

        try:
            if self.model:
                payload = await self._complete_litellm(prompt, opts)
            else:
                payload = await self._complete_http(prompt, opts)
        except Exception as e:
            logger.error(f"Completion call failed: {type(e).__name__}: {e}")
            return f"{ERROR_REPLY_PREFIX}{e}"

        reply = normalize_reply(payload)
        logger.debug(f"Completion reply ({len(reply)} chars): {reply[:100]}...")
        return reply

    async def _complete_http(self, prompt: str, opts: CompletionOptions) -> Any:
        body = {
            "prompt": prompt,
            "temperature": opts.temperature,
            "max_tokens": opts.max_tokens,
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        if self._http is not None:
            resp = await self._http.post(self.url, json=body, headers=headers, timeout=self.timeout)
            return resp.json()
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(self.url, json=body, headers=headers)
            return resp.json()

    async def _complete_litellm(self, prompt: str, opts: CompletionOptions) -> Any:
        import litellm

        resp = await litellm.acompletion(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            api_key=self.api_key,
            temperature=opts.temperature,
            max_tokens=opts.max_tokens,
            timeout=self.timeout,
        )
        content = resp.choices[0].message.content or ""
        return {"choices": [{"message": {"content": content}}]} if content else resp.model_dump()

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()
