"""edugate policy — safety rules, intent violation detection, grade rubrics."""

from edugate.policy.grade_rubric import GradeRubric
from edugate.policy.rules import BASE_RULES, RuleSet
from edugate.policy.violations import ViolationDetector

__all__ = ["BASE_RULES", "GradeRubric", "RuleSet", "ViolationDetector"]
