"""Team roster and workflow configuration persisted to ``.leo.json``.

The configuration document is owned by :class:`ConfigurationManager`. Every
roster change re-derives the team size, the mode and the workflow section
from the fixed layouts in :mod:`leokit.workflow_modes`.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from .errors import (
    ConfigurationError,
    InvalidRole,
    InvalidTeamSize,
    NoConfiguration,
    NotFound,
    TeamSizeMismatch,
)
from .leokit_logging import log_error_with_context, log_operation, log_roster_change
from .models import (
    CONFIG_VERSION,
    Configuration,
    GitHubSettings,
    TeamMember,
    WorkflowState,
    utc_now_iso,
)
from .roles import ROLE_SEQUENCER, RoleSequencer
from .workflow_modes import WORKFLOW_MODES, WorkflowModeTable

logger = logging.getLogger("leokit.config")

CONFIG_FILE_ENV = "LEOKIT_CONFIG_FILE"
DEFAULT_CONFIG_FILE = ".leo.json"
MAX_TEAM_SIZE = 4

MemberInput = Union[TeamMember, Mapping[str, Any]]


def _to_member(member: MemberInput) -> TeamMember:
    if isinstance(member, TeamMember):
        return TeamMember(username=member.username, role=member.role)
    if isinstance(member, Mapping):
        return TeamMember(username=member.get("username") or "", role=member.get("role") or "")
    raise ConfigurationError(f"Member must be a TeamMember or a mapping, got {member!r}")


class ConfigurationManager:
    """Load, validate and update the project configuration document."""

    def __init__(
        self,
        root: Path | str = ".",
        table: WorkflowModeTable = WORKFLOW_MODES,
        sequencer: RoleSequencer = ROLE_SEQUENCER,
    ):
        self.root = Path(root).resolve()
        self.table = table
        self.sequencer = sequencer
        self.config_path = self.root / os.getenv(CONFIG_FILE_ENV, DEFAULT_CONFIG_FILE)
        self.config: Optional[Configuration] = None

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def exists(self) -> bool:
        return self.config_path.is_file()

    def load(self) -> Configuration:
        """Load and validate the configuration document."""
        if not self.exists():
            raise NoConfiguration(f"No configuration found at {self.config_path}. Run 'leokit team init' first.")

        try:
            data = json.loads(self.config_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            log_error_with_context(e, {"operation": "load_config", "path": str(self.config_path)})
            raise ConfigurationError(f"Configuration at {self.config_path} is not valid JSON: {e}") from e

        config = Configuration.from_dict(data)
        if config.members or config.team_size:
            try:
                self._validate_roster(config.members, config.team_size)
            except (InvalidTeamSize, TeamSizeMismatch, InvalidRole) as e:
                raise ConfigurationError(f"Invalid roster in {self.config_path}: {e}") from e
            config.mode = self.table.mode_for_team_size(config.team_size)
        config.workflow = self._derive_workflow(config.members)
        self.config = config
        logger.debug(f"Loaded configuration from {self.config_path}")
        return config

    def save(self) -> Path:
        config = self._require_config()
        config.updated_at = utc_now_iso()
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        self.config_path.write_text(
            json.dumps(config.to_dict(), indent=2, ensure_ascii=False) + "\n",
            encoding="utf-8",
        )
        return self.config_path

    def get_config(self) -> Configuration:
        return self._require_config()

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def initialize(
        self,
        team_size: int,
        members: Iterable[MemberInput],
        *,
        name: str = "My Project",
    ) -> Configuration:
        """Create and save a fresh configuration for ``members``."""
        mode = self.table.mode_for_team_size(team_size)
        roster = [_to_member(member) for member in members]
        self._validate_roster(roster, team_size)

        with log_operation("initialize_config", team_size=team_size, mode=mode):
            now = utc_now_iso()
            self.config = Configuration(
                version=CONFIG_VERSION,
                name=name,
                team_size=team_size,
                mode=mode,
                members=roster,
                workflow=self._derive_workflow(roster),
                created_at=now,
                updated_at=now,
            )
            self.save()

        logger.info(f"Initialized {mode} configuration for {team_size} member(s) at {self.config_path}")
        return self.config

    # ------------------------------------------------------------------
    # Roster changes
    # ------------------------------------------------------------------

    def add_member(self, username: str, role: str) -> List[TeamMember]:
        config = self._require_config()
        if len(config.members) >= MAX_TEAM_SIZE:
            raise ConfigurationError(f"Maximum team size is {MAX_TEAM_SIZE}")
        if not username or not username.strip():
            raise ConfigurationError("Member username cannot be empty")
        if not self.sequencer.validate_role(role):
            raise InvalidRole(role)
        if config.find_member(username):
            raise ConfigurationError(f"Member {username} already exists")
        holder = config.member_for_role(role)
        if holder:
            raise ConfigurationError(f"Role {role} already assigned to {holder.username}")
        self._check_columns([*config.members, TeamMember(username=username, role=role)])

        config.members.append(TeamMember(username=username, role=role))
        self._rederive(config)
        self.save()
        log_roster_change("added", username, role=role, team_size=config.team_size)
        return list(config.members)

    def remove_member(self, username: str) -> List[TeamMember]:
        config = self._require_config()
        member = config.find_member(username)
        if member is None:
            raise NotFound(f"Member not found: {username}")
        self._check_columns([m for m in config.members if m is not member])

        config.members.remove(member)
        self._rederive(config)
        self.save()
        log_roster_change("removed", username, role=member.role, team_size=config.team_size)
        return list(config.members)

    def update_member_role(self, username: str, role: str) -> TeamMember:
        config = self._require_config()
        member = config.find_member(username)
        if member is None:
            raise NotFound(f"Member not found: {username}")
        if not self.sequencer.validate_role(role):
            raise InvalidRole(role)
        holder = config.member_for_role(role)
        if holder and holder.username != username:
            raise ConfigurationError(f"Role {role} already assigned to {holder.username}")
        self._check_columns(
            [TeamMember(username=m.username, role=role if m is member else m.role) for m in config.members]
        )

        previous = member.role
        member.role = role
        self._rederive(config)
        self.save()
        log_roster_change("reassigned", username, role=role, previous_role=previous)
        return member

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_members(self) -> List[TeamMember]:
        return list(self._require_config().members)

    def get_member_by_role(self, role: str) -> Optional[TeamMember]:
        return self._require_config().member_for_role(role)

    def get_column_for_role(self, role: str) -> Optional[str]:
        config = self._require_config()
        if not config.team_size:
            return None
        return self.table.get_column_for_role(config.team_size, role)

    def get_next_column(self, column_id: str) -> Optional[str]:
        return self.table.get_next_column(self._require_config().team_size, column_id)

    def get_recommendations(self) -> Dict[str, Any]:
        return self.table.get_recommendations(self._require_config().team_size)

    def get_summary(self) -> Dict[str, Any]:
        config = self._require_config()
        return {
            "name": config.name,
            "mode": config.mode,
            "team_size": config.team_size,
            "members": [member.to_dict() for member in config.members],
            "columns": len(config.workflow.columns),
            "sequence": list(config.workflow.sequence),
            "member_mapping": dict(config.workflow.member_mapping),
            "github_enabled": config.github.enabled,
        }

    # ------------------------------------------------------------------
    # GitHub bookkeeping
    # ------------------------------------------------------------------

    def set_github_project_info(
        self,
        project_number: Optional[int],
        project_id: Optional[str],
        columns: Optional[Dict[str, str]] = None,
        field_id: Optional[str] = None,
    ) -> GitHubSettings:
        config = self._require_config()
        config.github = GitHubSettings(
            enabled=True,
            project_id=project_id,
            project_number=project_number,
            field_id=field_id,
            columns=dict(columns or {}),
            labels_created=config.github.labels_created,
        )
        self.save()
        return config.github

    def mark_labels_created(self) -> None:
        self._require_config().github.labels_created = True
        self.save()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_config(self) -> Configuration:
        if self.config is None:
            raise NoConfiguration("Configuration not loaded. Call load() or initialize() first.")
        return self.config

    def _validate_roster(self, members: List[TeamMember], team_size: int) -> None:
        self.table.get_config_by_team_size(team_size)
        if len(members) != team_size:
            raise TeamSizeMismatch(len(members), team_size)

        usernames = set()
        roles = set()
        for member in members:
            if not member.username or not member.username.strip():
                raise ConfigurationError("Each member must have a username")
            if not member.role:
                raise ConfigurationError(f"Member {member.username} must have a role")
            if not self.sequencer.validate_role(member.role):
                raise InvalidRole(member.role)
            if member.username in usernames:
                raise ConfigurationError(f"Duplicate username: {member.username}")
            if member.role in roles:
                raise ConfigurationError(f"Role {member.role} is assigned to more than one member")
            usernames.add(member.username)
            roles.add(member.role)
        self._check_columns(members)

    def _check_columns(self, members: List[TeamMember]) -> None:
        """Every role must land on a column of the layout for this roster's size."""
        team_size = len(members)
        if not team_size:
            return
        column_ids = self.table.get_column_sequence(team_size)
        for member in members:
            if member.role in column_ids or self.table.get_column_for_role(team_size, member.role):
                continue
            raise ConfigurationError(f"Role {member.role} has no column in a team of {team_size}")

    def _derive_workflow(self, members: List[TeamMember]) -> WorkflowState:
        team_size = len(members)
        if team_size == 0:
            return WorkflowState(team_size=0)
        return WorkflowState(
            team_size=team_size,
            columns=self.table.get_columns(team_size),
            sequence=self.table.get_column_sequence(team_size),
            member_mapping=self.table.map_members_to_columns(team_size, members),
        )

    def _rederive(self, config: Configuration) -> None:
        config.team_size = len(config.members)
        config.workflow = self._derive_workflow(config.members)
        if config.team_size:
            config.mode = self.table.mode_for_team_size(config.team_size)
