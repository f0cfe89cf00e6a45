"""GradeRubric — normalizes free-form grade designators to a band and its guidance text."""

from __future__ import annotations

import re

from edugate.models import GradeBand

_NUMBER_RE = re.compile(r"(\d{1,2})")

# Checked in order; "k" also catches "kindergarten".
_KEYWORD_BANDS: tuple[tuple[str, GradeBand], ...] = (
    ("k", GradeBand.ELEMENTARY),
    ("elementary", GradeBand.ELEMENTARY),
    ("middle", GradeBand.MIDDLE),
    ("high", GradeBand.HIGH),
)

_SUMMARIES: dict[GradeBand, str] = {
    GradeBand.ELEMENTARY: (
        "Elementary (K-5): focus on topic sentences, short paragraphs, spelling/grammar, and clear main idea."
    ),
    GradeBand.MIDDLE: (
        "Middle (6-8): focus on thesis, paragraph structure with evidence, basic analysis and transitions."
    ),
    GradeBand.HIGH: (
        "High school (9-12): focus on thesis clarity, evidence integration, analysis depth, organization, and tone."
    ),
    GradeBand.ADVANCED: (
        "Advanced / college-prep: hold the writing to first-year college expectations: an arguable thesis, "
        "synthesis of sources, counter-argument, and precise academic style."
    ),
    GradeBand.UNSPECIFIED: (
        "Grade not specified: default to general K-12 expectations (scaffolded suggestions)."
    ),
}


class GradeRubric:
    """Grade designator → GradeBand → rubric summary.

    Usage:
        rubric = GradeRubric()
        rubric.normalize("grade 9")            # GradeBand.HIGH
        rubric.summarize("middle school")      # "Middle (6-8): ..."
    """

    @staticmethod
    def band_for_grade(grade: int) -> GradeBand:
        if grade <= 5:
            return GradeBand.ELEMENTARY
        if grade <= 8:
            return GradeBand.MIDDLE
        if grade <= 12:
            return GradeBand.HIGH
        return GradeBand.ADVANCED

    def normalize(self, designator: str | None) -> GradeBand:
        if designator is None:
            return GradeBand.UNSPECIFIED
        text = str(designator).strip().lower()
        if not text:
            return GradeBand.UNSPECIFIED

        # Band labels round-trip to themselves.
        for band in GradeBand:
            if text == band.value.lower():
                return band

        match = _NUMBER_RE.search(text)
        if match:
            return self.band_for_grade(int(match.group(1)))

        for keyword, band in _KEYWORD_BANDS:
            if keyword in text:
                return band
        return GradeBand.UNSPECIFIED

    def summarize(self, designator: str | None) -> str:
        return _SUMMARIES[self.normalize(designator)]

    def summary_for_band(self, band: GradeBand) -> str:
        return _SUMMARIES[band]
