"""Keyword-scoring heuristic that classifies task descriptions.

The score decides whether a task should go through a written specification
before implementation starts (``complex``) or can be implemented directly.
"""

from __future__ import annotations

import re
from typing import List, Optional

from .models import ComplexityAnalysis

SIMPLE = "simple"
MODERATE = "moderate"
COMPLEX = "complex"

HIGH_KEYWORDS = (
    "app", "application", "system", "platform", "enterprise",
    "full", "complete", "entire", "build", "create from scratch",
    "architecture", "infrastructure", "microservice", "distributed",
)

MEDIUM_KEYWORDS = (
    "integrate", "refactor", "redesign", "migrate", "convert",
    "dashboard", "admin", "management", "authentication", "authorization",
)

COMPONENT_INDICATORS = ("page", "screen", "view", "component", "feature", "module")

ARCHITECTURE_KEYWORDS = (
    "design", "architecture", "structure", "pattern", "framework",
    "technology stack", "tech stack", "database schema", "api design",
)

# Broad keyword count reported by get_score
SCORE_KEYWORDS = (
    "app", "application", "system", "platform", "enterprise",
    "full", "complete", "entire", "page", "screen", "view",
    "component", "feature", "module", "architecture", "integrate",
)

TASK_TYPES = (
    ("bug-fix", ("bug", "fix", "error")),
    ("refactor", ("refactor", "improve", "optimize")),
    ("documentation", ("doc", "readme", "comment")),
    ("feature", ("feature", "add", "create", "build")),
)

EFFORT = {
    SIMPLE: "<1 day",
    MODERATE: "2-5 days",
    COMPLEX: "1+ weeks",
}

COMPLEX_THRESHOLD = 6
MODERATE_THRESHOLD = 3
MAX_FEATURES = 10

_NUMBERED_COMPONENT = re.compile(r"(\d+)\s*(page|screen|view|component|feature|module)")
_LIST_ITEM = re.compile(r"(?:^|\n)\s*(?:\d+\.|-|\*)\s*(.+?)(?=\n|$)")
_WITH_PHRASE = re.compile(r"with\s+([^,.]+?)(?:\s+and\s+([^,.]+?))?(?=[,.]|$)")


class ComplexityEstimator:
    """Classify free-text task descriptions as simple, moderate or complex."""

    def complexity_score(self, description: Optional[str]) -> int:
        text = (description or "").lower()
        if not text.strip():
            return 0

        score = 0
        score += sum(2 for keyword in HIGH_KEYWORDS if keyword in text)
        score += sum(1 for keyword in MEDIUM_KEYWORDS if keyword in text)
        score += sum(text.count(indicator) for indicator in COMPONENT_INDICATORS)

        for match in _NUMBERED_COMPONENT.finditer(text):
            number = int(match.group(1))
            if number > 3:
                score += number

        score += sum(3 for keyword in ARCHITECTURE_KEYWORDS if keyword in text)
        return score

    def estimate_complexity(self, description: Optional[str]) -> str:
        return self._classify(self.complexity_score(description))

    def should_use_spec_first(self, description: Optional[str]) -> bool:
        return self.estimate_complexity(description) == COMPLEX

    def get_score(self, description: Optional[str]) -> int:
        """Number of broad scope keywords present in the description."""
        text = (description or "").lower()
        return sum(1 for keyword in SCORE_KEYWORDS if keyword in text)

    def analyze(self, description: Optional[str]) -> ComplexityAnalysis:
        text = (description or "").lower()
        score = self.complexity_score(text)
        complexity = self._classify(score)

        return ComplexityAnalysis(
            complexity=complexity,
            task_type=self._task_type(text),
            estimated_effort=EFFORT[complexity],
            spec_first_recommended=complexity == COMPLEX,
            features=self.extract_features(text),
            score=score,
        )

    def extract_features(self, description: Optional[str]) -> List[str]:
        """Pull bullet/numbered list items and "with X and Y" phrases."""
        text = (description or "").lower()
        features: List[str] = []

        for match in _LIST_ITEM.finditer(text):
            features.append(match.group(1).strip())

        for match in _WITH_PHRASE.finditer(text):
            features.extend(group.strip() for group in match.groups() if group)

        return [feature for feature in features if len(feature) > 3][:MAX_FEATURES]

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def get_recommendation(self, analysis: ComplexityAnalysis) -> str:
        if analysis.spec_first_recommended:
            return (
                f"This appears to be complex work (estimated {analysis.estimated_effort}).\n\n"
                "Recommended approach:\n"
                "1. Create specification document in docs/specs/\n"
                "2. Review architecture decisions with team\n"
                "3. Get approval before proceeding\n"
                "4. Break into smaller trackable issues\n\n"
                "This follows the spec-first workflow for complex work."
            )
        return (
            f"This appears to be {analysis.complexity} work (estimated {analysis.estimated_effort}).\n\n"
            "You can proceed directly with implementation."
        )

    def format_analysis(self, analysis: ComplexityAnalysis) -> str:
        lines = [
            "Task Complexity Analysis",
            "",
            f"  Complexity: {analysis.complexity.upper()}",
            f"  Task Type: {analysis.task_type}",
            f"  Estimated Effort: {analysis.estimated_effort}",
            f"  Score: {analysis.score}",
        ]
        if analysis.features:
            lines.append(f"  Detected Features: {len(analysis.features)}")
            lines.extend(f"    - {feature}" for feature in analysis.features[:5])
            if len(analysis.features) > 5:
                lines.append(f"    ... and {len(analysis.features) - 5} more")

        lines.append("")
        if analysis.spec_first_recommended:
            lines.extend([
                "SPEC-FIRST RECOMMENDED",
                "  1. Create specification document",
                "  2. Review with stakeholders",
                "  3. Break into smaller issues",
                "  4. Implement incrementally",
            ])
        else:
            lines.extend([
                "DIRECT IMPLEMENTATION OK",
                "  Clear solution path, can proceed directly",
            ])
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _classify(self, score: int) -> str:
        if score >= COMPLEX_THRESHOLD:
            return COMPLEX
        if score >= MODERATE_THRESHOLD:
            return MODERATE
        return SIMPLE

    def _task_type(self, text: str) -> str:
        for task_type, words in TASK_TYPES:
            if any(word in text for word in words):
                return task_type
        return "unknown"
