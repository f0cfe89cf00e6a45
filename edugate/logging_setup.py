"""nfo logging for edugate.

Modules log through stdlib ``logging.getLogger("edugate.<module>")``. The
server lifespan and the CLI call ``setup_logging()`` once; it bridges those
loggers into an nfo terminal sink (plus an optional markdown file) and clips
long records so essay and page text never land in the logs in full.

Usage:
    from edugate.logging_setup import setup_logging

    setup_logging("DEBUG", markdown_file="edugate.log.md")
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

from nfo.configure import configure
from nfo.logger import Logger
from nfo.sinks import MarkdownSink
from nfo.terminal import TerminalSink

MAX_RECORD_CHARS = 500

_NOISY_LOGGERS = ("LiteLLM", "litellm", "httpx", "httpcore", "uvicorn.access")

_logger: Optional[Logger] = None


class ClipFilter(logging.Filter):
    """Truncates the rendered message of a record to ``limit`` characters."""

    def __init__(self, limit: int = MAX_RECORD_CHARS):
        super().__init__()
        self.limit = limit

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        if len(message) > self.limit:
            record.msg = f"{message[:self.limit]}... [+{len(message) - self.limit} chars]"
            record.args = None
        return True


def setup_logging(
    level: str = "INFO",
    markdown_file: str | None = None,
    terminal_format: str = "color",
) -> Logger:
    """Configure nfo once per process; later calls return the same logger.

    Args:
        level: DEBUG, INFO, WARNING or ERROR (case-insensitive).
        markdown_file: Also write a markdown log here (EDUGATE_LOG_FILE).
        terminal_format: nfo terminal format: "color", "markdown", "toon" or "ascii".
    """
    global _logger

    if _logger is not None:
        return _logger

    sinks = [
        TerminalSink(
            format=terminal_format,
            stream=sys.stderr,
            show_args=False,
            show_return=False,
            show_duration=True,
            show_traceback=True,
        ),
    ]
    if markdown_file:
        sinks.append(MarkdownSink(file_path=markdown_file))

    _logger = configure(
        name="edugate",
        level=level.upper(),
        sinks=sinks,
        bridge_stdlib=True,
        propagate_stdlib=False,
        env_prefix="EDUGATE_NFO_",
        version=_version(),
        force=True,
    )

    # Logger-level filters never see child records; filter at the handlers.
    clip = ClipFilter()
    for handler in logging.getLogger("edugate").handlers + logging.getLogger().handlers:
        if not any(isinstance(f, ClipFilter) for f in handler.filters):
            handler.addFilter(clip)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return _logger


def _version() -> str:
    from edugate import __version__
    return __version__
