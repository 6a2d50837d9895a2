"""Role definitions and the linear role sequence.

Five roles make up the hunt lifecycle. A hunt starts with ``requirements``
and finishes with ``deploy``; each handoff moves it exactly one step forward.
"""

from __future__ import annotations

import re
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

from .errors import InvalidRole
from .models import Role

ENTRY_ROLE = "requirements"
TERMINAL_ROLE = "deploy"


def _contains_word(text: str, word: str) -> bool:
    return re.search(r"\b" + re.escape(word) + r"\b", text) is not None


def _triggers(*words: str) -> Tuple[str, ...]:
    """Lowercase and de-duplicate keyword triggers, keeping their order."""
    seen: Dict[str, None] = {}
    for word in words:
        seen.setdefault(word.lower(), None)
    return tuple(seen)


_ROLE_TABLE = (
    Role(
        id="requirements",
        name="Requirements Hunter",
        emoji="🔍",
        color="#FF6B6B",
        description="Analyzes requirements and defines scope",
        github_label="role-requirements",
        ai_agent="requirements-analyzer",
        estimated_duration="2-4 hours",
        sequence_order=1,
        responsibilities=(
            "Analyze user needs and business requirements",
            "Define scope, constraints, and success criteria",
            "Identify edge cases and non-functional requirements",
            "Create initial problem statement",
            "Document assumptions and risks",
        ),
        keyword_triggers=_triggers(
            "user story", "requirement", "scope", "acceptance criteria",
            "feature request", "user need", "business requirement", "story",
            "analyze", "definition",
        ),
    ),
    Role(
        id="spec",
        name="Specification Refiner",
        emoji="📋",
        color="#4ECDC4",
        description="Creates specifications and prepares issues",
        github_label="role-spec",
        ai_agent="spec-master",
        estimated_duration="4-8 hours",
        sequence_order=2,
        responsibilities=(
            "Take requirements and create detailed specifications",
            "Break down complex features into testable chunks",
            "Prepare focused GitHub issues for implementation",
            "Identify risks and dependencies",
            "Create implementation roadmap",
        ),
        keyword_triggers=_triggers(
            "specification", "spec", "design", "architecture", "breakdown",
            "task breakdown", "technical design", "interface", "api", "schema",
            "structure",
        ),
    ),
    Role(
        id="implementation",
        name="Implementation Hunter",
        emoji="🎯",
        color="#45B7D1",
        description="Codes features based on specifications",
        github_label="role-implementation",
        ai_agent="implementation-expert",
        estimated_duration="1-3 days per task",
        sequence_order=3,
        responsibilities=(
            "Code features based on specifications",
            "Implement according to acceptance criteria",
            "Make implementation decisions within spec boundaries",
            "Create commits with clear traceability",
            "Open pull requests with complete context",
        ),
        keyword_triggers=_triggers(
            "implement", "code", "feature", "component", "API", "backend",
            "frontend", "development", "build", "develop", "function",
        ),
    ),
    Role(
        id="testing",
        name="QA & Testing Specialist",
        emoji="✅",
        color="#96CEB4",
        description="Tests and validates implementation",
        github_label="role-testing",
        ai_agent="qa-expert",
        estimated_duration="2-4 hours per task",
        sequence_order=4,
        responsibilities=(
            "Test implementation against acceptance criteria",
            "Validate edge cases defined in requirements",
            "Verify no regressions",
            "Review code quality and test coverage",
            "Approve or request changes",
        ),
        keyword_triggers=_triggers(
            "test", "verify", "quality", "coverage", "regression", "QA",
            "testing", "validation", "validate", "check", "qa",
        ),
    ),
    Role(
        id="deploy",
        name="Deployment Specialist",
        emoji="🚀",
        color="#FF6B35",
        description="Deploys and releases to production",
        github_label="role-deploy",
        ai_agent="deploy-expert",
        estimated_duration="1-2 hours",
        sequence_order=5,
        responsibilities=(
            "Merge approved PRs to main branch",
            "Create release tags and notes",
            "Deploy to production environments",
            "Monitor deployment health",
            "Rollback if issues detected",
        ),
        keyword_triggers=_triggers(
            "deploy", "release", "production", "merge", "ship", "launch",
            "rollout",
        ),
    ),
)

ROLES: Mapping[str, Role] = MappingProxyType({role.id: role for role in _ROLE_TABLE})


class RoleSequencer:
    """Read-only queries over a role table."""

    def __init__(self, roles: Mapping[str, Role] = ROLES):
        self.roles = roles
        self._sequence = [role.id for role in sorted(roles.values(), key=lambda r: r.sequence_order)]

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get_role(self, role_id: str) -> Optional[Role]:
        return self.roles.get(role_id) if isinstance(role_id, str) else None

    def get_all_roles(self) -> List[Role]:
        return [self.roles[role_id] for role_id in self._sequence]

    def get_role_by_name(self, name: str) -> Optional[Role]:
        """Case-insensitive lookup by display name."""
        if not name:
            return None
        wanted = name.strip().lower()
        return next((role for role in self.get_all_roles() if role.name.lower() == wanted), None)

    def get_role_by_emoji(self, emoji: str) -> Optional[Role]:
        return next((role for role in self.get_all_roles() if role.emoji == emoji), None)

    def validate_role(self, role_id: str) -> bool:
        return self.get_role(role_id) is not None

    def _require(self, role_id: str) -> Role:
        role = self.get_role(role_id)
        if role is None:
            raise InvalidRole(role_id)
        return role

    # ------------------------------------------------------------------
    # Sequence
    # ------------------------------------------------------------------

    def get_sequence(self) -> List[str]:
        return list(self._sequence)

    def get_next_role(self, role_id: str) -> Optional[str]:
        """Role that follows ``role_id``, or None at the terminal role."""
        self._require(role_id)
        index = self._sequence.index(role_id)
        if index + 1 >= len(self._sequence):
            return None
        return self._sequence[index + 1]

    def get_previous_role(self, role_id: str) -> Optional[str]:
        """Role that precedes ``role_id``, or None at the entry role."""
        self._require(role_id)
        index = self._sequence.index(role_id)
        if index == 0:
            return None
        return self._sequence[index - 1]

    def is_valid_transition(self, from_role: str, to_role: str) -> bool:
        if not self.validate_role(from_role) or not self.validate_role(to_role):
            return False
        return self.get_next_role(from_role) == to_role

    def is_sequence_before(self, role_a: str, role_b: str) -> bool:
        return self._require(role_a).sequence_order < self._require(role_b).sequence_order

    def is_first_in_sequence(self, role_id: str) -> bool:
        return bool(self._sequence) and self._sequence[0] == role_id

    def is_last_in_sequence(self, role_id: str) -> bool:
        return bool(self._sequence) and self._sequence[-1] == role_id

    # ------------------------------------------------------------------
    # Keyword matching
    # ------------------------------------------------------------------

    def find_role_by_keyword(self, text: Optional[str]) -> Optional[Role]:
        """Pick the role whose keyword triggers best match ``text``.

        A trigger scores an exact match when it equals the whole text, and a
        partial match when it appears as a whole word inside the text or the
        text appears as a whole word inside the trigger. Roles are ranked by
        exact matches, then partial matches, then sequence order.
        """
        if not text or not text.strip():
            return None

        needle = text.strip().lower()
        word = re.compile(r"\b" + re.escape(needle) + r"\b")

        scored = []
        for role in self.get_all_roles():
            exact = 0
            partial = 0
            for trigger in role.keyword_triggers:
                if trigger == needle:
                    exact += 1
                elif _contains_word(needle, trigger) or word.search(trigger):
                    partial += 1
            if exact or partial:
                scored.append((-exact, -partial, role.sequence_order, role))

        if not scored:
            return None
        scored.sort(key=lambda item: item[:3])
        return scored[0][3]

    # ------------------------------------------------------------------
    # Formatting
    # ------------------------------------------------------------------

    def format_role(self, role_id: str) -> str:
        return self._require(role_id).display_name

    def get_display_string(self) -> str:
        return " → ".join(self.format_role(role_id) for role_id in self._sequence)


ROLE_SEQUENCER = RoleSequencer()
