"""ViolationDetector — classifies a short text span against forbidden-intent patterns.

Applied to the user's explicit instruction (message + URL) to decide refusal,
and separately to essay bodies where a hit is only advisory.
Supports extra patterns loaded from YAML.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

import yaml

logger = logging.getLogger("edugate.policy.violations")

# Declaration order is the order findings are reported in.
_DEFAULT_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (
        re.compile(
            r"\b(do my homework|write my essay|take my test|do my assignment|complete my assignment)\b",
            re.IGNORECASE,
        ),
        "academic dishonesty",
    ),
    (re.compile(r"\b(cheat|cheating|exam answers|test answers)\b", re.IGNORECASE), "cheating"),
    (re.compile(r"\b(bomb|explosive|detonate|make a bomb)\b", re.IGNORECASE), "weapons/explosives"),
    (re.compile(r"\b(how to hack|hack into|break into|steal password)\b", re.IGNORECASE), "illegal hacking"),
    (
        re.compile(r"\b(play (games|minecraft|roblox)|start a game for me)\b", re.IGNORECASE),
        "playing games / disruption",
    ),
]


class ViolationDetector:
    """Stateless, deterministic pattern table.

    Usage:
        detector = ViolationDetector()
        detector.detect("can you do my homework")   # ["academic dishonesty"]
    """

    def __init__(
        self,
        patterns_path: str | Path | None = None,
        extra_patterns: list[tuple[str, str]] | None = None,
    ):
        self._patterns = list(_DEFAULT_PATTERNS)

        if patterns_path:
            pp = Path(patterns_path)
            if pp.is_file():
                self._load_patterns(pp)
            else:
                logger.warning(f"Violation patterns file not found: {pp}")

        for pattern, reason in extra_patterns or []:
            self._patterns.append((re.compile(pattern, re.IGNORECASE), reason))

    def _load_patterns(self, path: Path) -> None:
        """Load extra patterns from YAML: ``patterns: [{pattern: ..., reason: ...}]``."""
        try:
            with open(path) as f:
                raw = yaml.safe_load(f) or {}

            for item in raw.get("patterns", []):
                pattern, reason = item.get("pattern"), item.get("reason")
                if not pattern or not reason:
                    continue
                self._patterns.append((re.compile(pattern, re.IGNORECASE), str(reason)))
        except (OSError, yaml.YAMLError, re.error, AttributeError) as e:
            logger.warning(f"Failed to load violation patterns from {path}: {e}")

    @property
    def reasons(self) -> list[str]:
        return [reason for _, reason in self._patterns]

    def detect(self, text: str | None) -> list[str]:
        """Return the reasons of every pattern that matches, in declaration order."""
        if not text:
            return []
        return [reason for pattern, reason in self._patterns if pattern.search(text)]

    def refusal_message(self, reasons: list[str]) -> str:
        return (
            f"I can't help with that because it conflicts with platform rules ({', '.join(reasons)}). "
            "I can, however, provide hints, scaffolded steps, or teaching guidance."
        )

    def essay_warning(self, text: str | None) -> str | None:
        """Advisory note for essay bodies; never a refusal."""
        reasons = self.detect(text)
        if not reasons:
            return None
        return (
            "Note: the essay text contains phrases that often indicate disallowed intent "
            f"({', '.join(reasons)}). Proceeding with analysis but teacher review recommended."
        )
