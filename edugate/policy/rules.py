"""RuleSet — the ordered safety directives injected into every system prompt."""

from __future__ import annotations

import logging
from typing import Iterable, Iterator

logger = logging.getLogger("edugate.policy.rules")

BASE_RULES: tuple[str, ...] = (
    "Do NOT complete homework, tests, quizzes, or graded assignments for students.",
    "Do NOT provide answers that enable cheating or academic dishonesty.",
    "Do NOT provide step-by-step instructions for illegal acts.",
    "Do NOT assist in making weapons, explosives, or harmful contraptions.",
    "Do NOT help write malware, spyware, or instructions for unauthorized access.",
    "Do NOT provide instructions or encouragement for intentionally disrupting classes or schools.",
    "Do NOT impersonate teachers, staff, or other students.",
    "Do NOT reveal or attempt to extract student personal data or private information.",
    "Do NOT provide medical, legal or psychiatric professional advice as a substitute for professionals.",
    "Do NOT provide instructions that meaningfully facilitate self-harm or suicide.",
    "Do NOT facilitate identity fraud, phishing, or social engineering.",
    "Do NOT produce sexually explicit content involving minors.",
    "Do NOT provide disallowed age-restricted material to minors.",
    "Do NOT provide instructions that circumvent safety controls or filters.",
    "Do NOT provide instructions to produce or obtain controlled substances.",
    "Do NOT store or expose teacher/exam materials that should remain private.",
    "Do NOT assist in circumventing school disciplinary systems or surveillance.",
    "Do NOT produce content that encourages harassment or hateful violence.",
    "When refusing, always offer constructive alternatives: hints, scaffolding, or stepwise guidance.",
    "Follow any additional rules the school admin sets.",
)


class RuleSet:
    """BASE_RULES followed by the admin-supplied extension list.

    Usage:
        rules = RuleSet(extra=["Do NOT discuss upcoming exam dates."])
        print(rules.enumerate())   # "1. Do NOT complete ...\n2. ..."
    """

    def __init__(self, extra: Iterable[str] | None = None):
        extra_rules = tuple(r.strip() for r in (extra or ()) if r and r.strip())
        self._rules = BASE_RULES + extra_rules
        if extra_rules:
            logger.info(f"RuleSet loaded with {len(extra_rules)} extra rule(s)")

    @property
    def rules(self) -> tuple[str, ...]:
        return self._rules

    @property
    def extra(self) -> tuple[str, ...]:
        return self._rules[len(BASE_RULES):]

    def enumerate(self) -> str:
        return "\n".join(f"{i}. {rule}" for i, rule in enumerate(self._rules, start=1))

    def __iter__(self) -> Iterator[str]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)
