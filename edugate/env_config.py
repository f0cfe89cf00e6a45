"""Environment configuration — .env loading and collaborator credentials.

Reads the completion-backend credential (GEMINI_API_KEY / GEMINI_API_URL),
the Brave Search key, the durable-store URL and edugate-specific vars
(EDUGATE_*). Legacy names (REDIS_URL, EXTRA_RULES, CHROME_PATH) are honoured
when the EDUGATE_* variant is absent.

Usage:
    from edugate.env_config import get_env_config, check_collaborators

    cfg = get_env_config()
    print(cfg.store_url)     # "redis://localhost:6379/0" or None
    print(cfg.extra_rules)   # ["Do NOT ...", ...]

    status = check_collaborators(cfg)
    # {"completion": {"status": "configured", ...}, "search": {"status": "no_key"}, ...}
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger("edugate.env_config")

DEFAULT_COMPLETION_URL = "https://api.example-gemini/v2.5flash-lite"


@dataclass
class EnvConfig:
    """Resolved environment configuration."""
    # Completion backend
    completion_api_key: str = ""
    completion_url: str = DEFAULT_COMPLETION_URL
    completion_model: str | None = None

    # Grounding
    search_api_key: str = ""
    browser_path: str | None = None
    persist_cookies: bool = False

    # Storage
    store_url: str | None = None

    # Policy
    extra_rules: list[str] = field(default_factory=list)
    patterns_file: str | None = None

    # Server
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "info"
    log_file: str | None = None
    timeout: int = 20

    @property
    def has_completion(self) -> bool:
        return bool(self.completion_api_key)

    @property
    def has_search(self) -> bool:
        return bool(self.search_api_key)

    @property
    def has_browser(self) -> bool:
        return bool(self.browser_path)


def load_dotenv_if_available(path: str | Path | None = None) -> None:
    """Load .env file if it exists. No dependency on python-dotenv — just basic parsing."""
    candidates = [path] if path else [".env", Path.home() / ".edugate" / ".env"]

    for candidate in candidates:
        if candidate and Path(candidate).is_file():
            logger.debug(f"Loading .env from {candidate}")
            with open(candidate) as f:
                for line in f:
                    line = line.strip()
                    if not line or line.startswith("#") or "=" not in line:
                        continue
                    key, _, value = line.partition("=")
                    key = key.strip()
                    value = value.strip().strip("'\"")
                    if key and value and key not in os.environ:
                        os.environ[key] = value
            return


def parse_extra_rules(raw: str | None) -> list[str]:
    """Parse the rules extension list.

    Tries a JSON array first; on a decode failure (or a non-list document)
    falls back to one rule per non-blank line.
    """
    if not raw or not raw.strip():
        return []

    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        data = None

    if isinstance(data, list):
        return [str(item).strip() for item in data if isinstance(item, str) and item.strip()]

    if data is not None:
        logger.warning("Extra rules JSON is not an array; treating it as newline-delimited text")
    return [line.strip() for line in raw.splitlines() if line.strip()]


def _parse_bool(raw: str | None) -> bool:
    return (raw or "").strip().lower() in {"1", "true", "yes", "on"}


def _first_env(*names: str) -> str | None:
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return None


def get_env_config(dotenv_path: str | Path | None = None) -> EnvConfig:
    """Read all config from environment variables.

    Priority: CLI args > env vars > .env file > defaults
    """
    load_dotenv_if_available(dotenv_path)

    return EnvConfig(
        completion_api_key=os.getenv("GEMINI_API_KEY", ""),
        completion_url=os.getenv("GEMINI_API_URL", DEFAULT_COMPLETION_URL),
        completion_model=os.getenv("EDUGATE_COMPLETION_MODEL", None) or None,
        search_api_key=(os.getenv("BRAVE_API_KEY", "") or "").strip(),
        browser_path=_first_env("EDUGATE_BROWSER_PATH", "CHROME_PATH"),
        persist_cookies=_parse_bool(os.getenv("EDUGATE_PERSIST_COOKIES")),
        store_url=_first_env("EDUGATE_STORE_URL", "REDIS_URL"),
        extra_rules=parse_extra_rules(_first_env("EDUGATE_EXTRA_RULES", "EXTRA_RULES")),
        patterns_file=os.getenv("EDUGATE_PATTERNS_FILE", None) or None,
        host=os.getenv("EDUGATE_HOST", "0.0.0.0"),
        port=int(os.getenv("EDUGATE_PORT", "8080")),
        log_level=os.getenv("EDUGATE_LOG_LEVEL", "info"),
        log_file=os.getenv("EDUGATE_LOG_FILE", None) or None,
        timeout=int(os.getenv("EDUGATE_TIMEOUT", "20")),
    )


def check_collaborators(env: EnvConfig | None = None) -> dict[str, dict[str, Any]]:
    """Report which optional collaborators are configured (no network calls)."""
    cfg = env or get_env_config()

    def _entry(ok: bool, detail_ok: str, detail_missing: str) -> dict[str, Any]:
        return {
            "status": "configured" if ok else "no_key",
            "detail": detail_ok if ok else detail_missing,
        }

    return {
        "completion": _entry(
            cfg.has_completion,
            f"GEMINI_API_KEY set ({cfg.completion_model or cfg.completion_url})",
            "GEMINI_API_KEY not set (replies use the not-configured sentinel)",
        ),
        "search": _entry(cfg.has_search, "BRAVE_API_KEY set", "BRAVE_API_KEY not set (search disabled)"),
        "durable_store": _entry(
            bool(cfg.store_url),
            f"store: {mask_url(cfg.store_url or '')}",
            "no store URL (in-memory fallback)",
        ),
        "page_fetch": _entry(
            cfg.has_browser,
            f"browser: {cfg.browser_path}",
            "no browser path (plain HTTP fetch only)",
        ),
    }


def mask_url(url: str) -> str:
    """Hide the password part of a connection URL."""
    if "@" not in url or "://" not in url:
        return url
    scheme, _, rest = url.partition("://")
    creds, _, host = rest.rpartition("@")
    user = creds.split(":", 1)[0]
    return f"{scheme}://{user}:***@{host}" if user else f"{scheme}://***@{host}"
