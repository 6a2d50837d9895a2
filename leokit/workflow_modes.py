"""Board layouts for teams of one to four people.

Smaller teams merge adjacent roles into a single column so every column has
someone to own it. The four layouts are fixed module data.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from .errors import InvalidTeamSize, TeamSizeMismatch, UnknownColumn
from .models import MODE_SOLO, MODE_TEAM, Column, TeamMember, WorkflowConfiguration

MemberLike = Union[TeamMember, Mapping[str, Any]]

SOLO_CONFIG = WorkflowConfiguration(
    mode=MODE_SOLO,
    team_size=1,
    description="Single developer - roles merged for speed",
    columns=(
        Column(
            id="design",
            name="Design & Requirements",
            emoji="📋",
            roles=("requirements", "spec"),
            merged=True,
            description="Define requirements and design simultaneously",
            position=1,
        ),
        Column(
            id="implement",
            name="Implementation",
            emoji="🎯",
            roles=("implementation",),
            description="Code feature with full test coverage",
            position=2,
        ),
        Column(
            id="merge",
            name="Testing & Merge",
            emoji="✅",
            roles=("testing",),
            merged=True,
            description="Run tests and merge to main",
            position=3,
        ),
    ),
)

TEAM_OF_2_CONFIG = WorkflowConfiguration(
    mode=MODE_TEAM,
    team_size=2,
    description="Two developers - split specialized work",
    columns=(
        Column(
            id="requirements",
            name="Requirements",
            emoji="🔍",
            roles=("requirements",),
            description="Analyze scope and acceptance criteria",
            position=1,
        ),
        Column(
            id="spec-impl",
            name="Design & Implement",
            emoji="📋",
            roles=("spec", "implementation"),
            merged=True,
            description="Design architecture and code feature",
            position=2,
        ),
        Column(
            id="testing",
            name="Testing & Merge",
            emoji="✅",
            roles=("testing",),
            description="Validate and merge to main",
            position=3,
        ),
    ),
)

TEAM_OF_3_CONFIG = WorkflowConfiguration(
    mode=MODE_TEAM,
    team_size=3,
    description="Three developers - specialized roles",
    columns=(
        Column(
            id="requirements",
            name="Requirements",
            emoji="🔍",
            roles=("requirements",),
            description="Analyze scope and acceptance criteria",
            position=1,
        ),
        Column(
            id="spec",
            name="Specification",
            emoji="📋",
            roles=("spec",),
            description="Design architecture and break tasks",
            position=2,
        ),
        Column(
            id="implement",
            name="Implementation",
            emoji="🎯",
            roles=("implementation",),
            description="Code features with test coverage",
            position=3,
        ),
        Column(
            id="testing",
            name="Testing & Merge",
            emoji="✅",
            roles=("testing",),
            description="Validate quality and merge",
            position=4,
        ),
    ),
)

TEAM_OF_4_CONFIG = WorkflowConfiguration(
    mode=MODE_TEAM,
    team_size=4,
    description="Full pack - all specialized roles",
    columns=(
        Column(
            id="requirements",
            name="Requirements",
            emoji="🔍",
            roles=("requirements",),
            description="Analyze scope and acceptance criteria",
            position=1,
        ),
        Column(
            id="spec",
            name="Specification",
            emoji="📋",
            roles=("spec",),
            description="Design architecture and break tasks",
            position=2,
        ),
        Column(
            id="implement",
            name="Implementation",
            emoji="🎯",
            roles=("implementation",),
            description="Code features with full coverage",
            position=3,
        ),
        Column(
            id="testing",
            name="Testing & Review",
            emoji="✅",
            roles=("testing",),
            description="Validate quality and approvals",
            position=4,
        ),
        Column(
            id="deploy",
            name="Deploy",
            emoji="🚀",
            roles=None,
            optional=True,
            description="Final merge and deployment",
            position=5,
        ),
    ),
)

WORKFLOW_CONFIGS: Mapping[int, WorkflowConfiguration] = MappingProxyType({
    1: SOLO_CONFIG,
    2: TEAM_OF_2_CONFIG,
    3: TEAM_OF_3_CONFIG,
    4: TEAM_OF_4_CONFIG,
})

_RECOMMENDATIONS = MappingProxyType({
    1: (
        "✓ Solo mode: Merged roles for maximum speed",
        "✓ Minimum columns: Focus on delivery",
        "→ Can upgrade to team mode as you grow",
    ),
    2: (
        "✓ Efficient pair: Clear role separation",
        "✓ Daily sync recommended",
        "→ Critical: Spec-to-Implementation handoff",
    ),
    3: (
        "✓ Balanced pack: Good parallelization",
        "✓ Typical bottleneck: Implementation phase",
        "→ Consider adding fourth member for faster delivery",
    ),
    4: (
        "✓ Full pack: All specializations active",
        "✓ Maximum parallelization achieved",
        "→ Optimal for complex features",
    ),
})


def _member_fields(member: MemberLike) -> tuple:
    if isinstance(member, Mapping):
        return member.get("username"), member.get("role")
    return member.username, member.role


class WorkflowModeTable:
    """Queries over the fixed per-team-size workflow layouts."""

    def __init__(self, configs: Mapping[int, WorkflowConfiguration] = WORKFLOW_CONFIGS):
        self.configs = configs

    def get_config_by_team_size(self, team_size: int) -> WorkflowConfiguration:
        if isinstance(team_size, bool) or not isinstance(team_size, int) or team_size not in self.configs:
            raise InvalidTeamSize(team_size)
        return self.configs[team_size]

    def mode_for_team_size(self, team_size: int) -> str:
        return self.get_config_by_team_size(team_size).mode

    def get_columns(self, team_size: int) -> List[Column]:
        return self.get_config_by_team_size(team_size).ordered_columns()

    def get_column_sequence(self, team_size: int) -> List[str]:
        return [column.id for column in self.get_columns(team_size)]

    def get_column(self, team_size: int, column_id: str) -> Column:
        for column in self.get_columns(team_size):
            if column.id == column_id:
                return column
        raise UnknownColumn(column_id, team_size)

    def get_roles_for_column(self, team_size: int, column_id: str) -> List[str]:
        return self.get_column(team_size, column_id).role_list

    def get_next_column(self, team_size: int, column_id: str) -> Optional[str]:
        """Column after ``column_id`` by position, or None for the last column."""
        sequence = self.get_column_sequence(team_size)
        if column_id not in sequence:
            raise UnknownColumn(column_id, team_size)
        index = sequence.index(column_id)
        if index == len(sequence) - 1:
            return None
        return sequence[index + 1]

    def get_column_for_role(self, team_size: int, role_id: str) -> Optional[str]:
        for column in self.get_columns(team_size):
            if role_id in column.role_list:
                return column.id
        return None

    def map_members_to_columns(self, team_size: int, members: Iterable[MemberLike]) -> Dict[str, str]:
        """Assign each column to the first member, in roster order, holding one of its roles.

        Columns without roles, or with no matching member, are left out.
        """
        config = self.get_config_by_team_size(team_size)
        roster = [_member_fields(member) for member in members]
        if len(roster) != team_size:
            raise TeamSizeMismatch(len(roster), team_size)

        mapping: Dict[str, str] = {}
        for column in config.ordered_columns():
            if not column.roles:
                continue
            assignee = next((username for username, role in roster if role in column.roles), None)
            if assignee:
                mapping[column.id] = assignee
        return mapping

    def get_recommendations(self, team_size: int) -> Dict[str, Any]:
        config = self.get_config_by_team_size(team_size)
        columns = config.ordered_columns()
        return {
            "team_size": team_size,
            "mode": config.mode,
            "column_count": len(columns),
            "description": config.description,
            "parallelizable": [column.name for column in columns if column.roles and len(column.roles) > 1],
            "recommendations": list(_RECOMMENDATIONS[team_size]),
        }

    def get_github_setup_instructions(self, team_size: int, members: Iterable[MemberLike]) -> Dict[str, Any]:
        """Board layout with assignees plus the manual steps to recreate it."""
        config = self.get_config_by_team_size(team_size)
        columns = config.ordered_columns()
        mapping = self.map_members_to_columns(team_size, members)

        setup = [
            "1. Create GitHub Project board for your repository",
            f"2. Create {len(columns)} columns with these names:",
        ]
        setup.extend(f"   - {column.emoji} {column.name}" for column in columns)
        setup.append("3. Set column automation:")
        setup.extend(f"   - {column.id}: Move to column on workflow change" for column in columns)
        setup.append("4. Assign team members to columns:")
        setup.extend(
            f"   - {self.get_column(team_size, column_id).name}: {username}"
            for column_id, username in mapping.items()
        )

        return {
            "team_size": team_size,
            "mode": config.mode,
            "column_count": len(columns),
            "columns": [
                {
                    "id": column.id,
                    "name": column.name,
                    "description": column.description,
                    "assignee": mapping.get(column.id, "Unassigned"),
                    "roles": column.role_list,
                    "optional": column.optional,
                }
                for column in columns
            ],
            "setup": setup,
        }


WORKFLOW_MODES = WorkflowModeTable()
