"""Data models for Leo Kit.

This module contains the records shared across the kit: roles and workflow
columns (immutable lookup data), the team roster, hunts and their phase
history, handoff records, complexity analyses, constitutional principles and
the versioned project configuration document.

Serialised keys are camelCase so the JSON documents written to a project
directory keep a stable format.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from .errors import ConfigurationError

CONFIG_VERSION = "1.0.0"

MODE_SOLO = "solo"
MODE_TEAM = "team"

STATUS_NOT_STARTED = "not-started"
STATUS_IN_PROGRESS = "in-progress"
STATUS_COMPLETED = "completed"
HUNT_STATUSES = (STATUS_NOT_STARTED, STATUS_IN_PROGRESS, STATUS_COMPLETED)


def utc_now_iso() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


def parse_iso(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def minutes_between(start: str, end: str) -> int:
    """Whole minutes elapsed between two ISO timestamps."""
    return round((parse_iso(end) - parse_iso(start)).total_seconds() / 60)


# ----------------------------------------------------------------------
# Static lookup data
# ----------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Role:
    """One of the five specializations a hunt moves through."""

    id: str
    name: str
    emoji: str
    color: str
    description: str
    github_label: str
    ai_agent: str
    estimated_duration: str
    sequence_order: int
    responsibilities: Tuple[str, ...] = ()
    keyword_triggers: Tuple[str, ...] = ()

    @property
    def display_name(self) -> str:
        return f"{self.emoji} {self.name}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "name": self.name,
            "emoji": self.emoji,
            "color": self.color,
            "description": self.description,
            "gitHubLabel": self.github_label,
            "aiAgent": self.ai_agent,
            "estimatedDuration": self.estimated_duration,
            "sequenceOrder": self.sequence_order,
            "responsibilities": list(self.responsibilities),
            "keywordTriggers": list(self.keyword_triggers),
        }


@dataclass(frozen=True, slots=True)
class Column:
    """A workflow board stage; may merge several roles into one column."""

    id: str
    name: str
    emoji: str
    roles: Optional[Tuple[str, ...]]
    position: int
    description: str = ""
    merged: bool = False
    optional: bool = False

    @property
    def role_list(self) -> List[str]:
        return list(self.roles) if self.roles else []

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "name": self.name,
            "emoji": self.emoji,
            "roles": list(self.roles) if self.roles is not None else None,
            "merged": self.merged,
            "optional": self.optional,
            "description": self.description,
            "position": self.position,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Column":
        """Create from dictionary representation."""
        roles = data.get("roles")
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            emoji=data.get("emoji", ""),
            roles=tuple(roles) if roles is not None else None,
            position=int(data["position"]),
            description=data.get("description", ""),
            merged=bool(data.get("merged", False)),
            optional=bool(data.get("optional", False)),
        )


@dataclass(frozen=True, slots=True)
class WorkflowConfiguration:
    """Board layout for one team size."""

    mode: str
    team_size: int
    description: str
    columns: Tuple[Column, ...]

    def ordered_columns(self) -> List[Column]:
        return sorted(self.columns, key=lambda column: column.position)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "mode": self.mode,
            "teamSize": self.team_size,
            "description": self.description,
            "columns": [column.to_dict() for column in self.ordered_columns()],
        }


# ----------------------------------------------------------------------
# Roster
# ----------------------------------------------------------------------


@dataclass(slots=True)
class TeamMember:
    """A roster entry: one username holding exactly one role."""

    username: str
    role: str

    def to_dict(self) -> Dict[str, str]:
        return {"username": self.username, "role": self.role}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TeamMember":
        if not isinstance(data, dict):
            raise ConfigurationError(f"Member entry must be an object, got {data!r}")
        return cls(username=data.get("username") or "", role=data.get("role") or "")


# ----------------------------------------------------------------------
# Hunts and handoffs
# ----------------------------------------------------------------------


@dataclass(slots=True)
class PhaseEntry:
    """One stay of a hunt in a phase."""

    phase: str
    assignee: Optional[str]
    entered_at: str = field(default_factory=utc_now_iso)
    exited_at: Optional[str] = None
    duration: Optional[int] = None  # minutes

    def close(self, exited_at: Optional[str] = None) -> None:
        """Record the exit time and the duration in minutes."""
        self.exited_at = exited_at or utc_now_iso()
        self.duration = minutes_between(self.entered_at, self.exited_at)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase,
            "assignee": self.assignee,
            "enteredAt": self.entered_at,
            "exitedAt": self.exited_at,
            "duration": self.duration,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PhaseEntry":
        return cls(
            phase=data["phase"],
            assignee=data.get("assignee"),
            entered_at=data.get("enteredAt") or utc_now_iso(),
            exited_at=data.get("exitedAt"),
            duration=data.get("duration"),
        )


@dataclass(slots=True)
class Hunt:
    """A tracked unit of feature work moving through the role sequence."""

    id: str
    feature_name: str
    description: str = ""
    current_phase: Optional[str] = None
    current_assignee: Optional[str] = None
    status: str = STATUS_NOT_STARTED
    phase_history: List[PhaseEntry] = field(default_factory=list)
    started_at: str = field(default_factory=utc_now_iso)
    completed_at: Optional[str] = None
    issue_number: Optional[int] = None

    @property
    def is_completed(self) -> bool:
        return self.status == STATUS_COMPLETED

    @property
    def is_in_progress(self) -> bool:
        return self.status == STATUS_IN_PROGRESS

    def current_entry(self) -> Optional[PhaseEntry]:
        return self.phase_history[-1] if self.phase_history else None

    def enter_phase(self, phase: str, assignee: Optional[str], entered_at: Optional[str] = None) -> PhaseEntry:
        """Close the open phase entry, if any, and open a new one."""
        timestamp = entered_at or utc_now_iso()
        current = self.current_entry()
        if current is not None and current.exited_at is None:
            current.close(timestamp)
        entry = PhaseEntry(phase=phase, assignee=assignee, entered_at=timestamp)
        self.phase_history.append(entry)
        self.current_phase = phase
        self.current_assignee = assignee
        return entry

    def total_duration(self) -> int:
        """Minutes since the hunt started, up to completion if completed."""
        end = self.completed_at or utc_now_iso()
        return minutes_between(self.started_at, end)

    def validate(self) -> List[str]:
        """Validate the hunt and return any issues."""
        issues = []
        if not self.id:
            issues.append("Hunt ID is required")
        if not self.feature_name:
            issues.append("Feature name is required")
        if self.status not in HUNT_STATUSES:
            issues.append(f"Invalid status: {self.status}")
        if self.status == STATUS_IN_PROGRESS and not self.current_phase:
            issues.append("In-progress hunt must have a current phase")
        return issues

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "featureName": self.feature_name,
            "description": self.description,
            "currentPhase": self.current_phase,
            "currentAssignee": self.current_assignee,
            "status": self.status,
            "phaseHistory": [entry.to_dict() for entry in self.phase_history],
            "startedAt": self.started_at,
            "completedAt": self.completed_at,
            "issueNumber": self.issue_number,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Hunt":
        """Create from dictionary representation."""
        return cls(
            id=data["id"],
            feature_name=data["featureName"],
            description=data.get("description", ""),
            current_phase=data.get("currentPhase"),
            current_assignee=data.get("currentAssignee"),
            status=data.get("status", STATUS_NOT_STARTED),
            phase_history=[PhaseEntry.from_dict(entry) for entry in data.get("phaseHistory", [])],
            started_at=data.get("startedAt") or utc_now_iso(),
            completed_at=data.get("completedAt"),
            issue_number=data.get("issueNumber"),
        )


@dataclass(slots=True)
class HandoffRecord:
    """Outcome of a successful handoff."""

    hunt_id: str
    from_role: str
    to_role: str
    from_member: Optional[str]
    to_member: str
    timestamp: str = field(default_factory=utc_now_iso)
    context: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "huntId": self.hunt_id,
            "fromRole": self.from_role,
            "toRole": self.to_role,
            "fromMember": self.from_member,
            "toMember": self.to_member,
            "timestamp": self.timestamp,
            "context": dict(self.context),
        }


# ----------------------------------------------------------------------
# Complexity analysis
# ----------------------------------------------------------------------


@dataclass(slots=True)
class ComplexityAnalysis:
    """Derived classification of a free-text task description."""

    complexity: str
    task_type: str
    estimated_effort: str
    spec_first_recommended: bool
    features: List[str] = field(default_factory=list)
    score: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "complexity": self.complexity,
            "taskType": self.task_type,
            "estimatedEffort": self.estimated_effort,
            "specFirstRecommended": self.spec_first_recommended,
            "features": list(self.features),
            "score": self.score,
        }


# ----------------------------------------------------------------------
# Constitution
# ----------------------------------------------------------------------


@dataclass(slots=True)
class Principle:
    """A project-wide development rule."""

    name: str
    rule: str
    enforcement: str = "Code review"
    rationale: str = "Improves code quality and consistency"

    def to_dict(self) -> Dict[str, str]:
        return {
            "name": self.name,
            "rule": self.rule,
            "enforcement": self.enforcement,
            "rationale": self.rationale,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Principle":
        return cls(
            name=data["name"],
            rule=data["rule"],
            enforcement=data.get("enforcement", "Code review"),
            rationale=data.get("rationale", "Improves code quality and consistency"),
        )

    def validate(self) -> List[str]:
        issues = []
        if not self.name or not self.name.strip():
            issues.append("Principle name is required")
        if not self.rule or not self.rule.strip():
            issues.append("Principle rule is required")
        return issues


@dataclass(slots=True)
class Constitution:
    version: str = CONFIG_VERSION
    last_updated: str = field(default_factory=utc_now_iso)
    principles: List[Principle] = field(default_factory=list)

    def find(self, name: str) -> Optional[Principle]:
        return next((p for p in self.principles if p.name == name), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "lastUpdated": self.last_updated,
            "principles": [p.to_dict() for p in self.principles],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Constitution":
        return cls(
            version=data.get("version", CONFIG_VERSION),
            last_updated=data.get("lastUpdated") or utc_now_iso(),
            principles=[Principle.from_dict(p) for p in data.get("principles", [])],
        )


# ----------------------------------------------------------------------
# Project configuration document
# ----------------------------------------------------------------------


@dataclass(slots=True)
class GitHubSettings:
    """Remote board bookkeeping for a project."""

    enabled: bool = False
    project_id: Optional[str] = None
    project_number: Optional[int] = None
    field_id: Optional[str] = None  # single-select field holding the columns
    columns: Dict[str, str] = field(default_factory=dict)  # local column id -> remote column id
    labels_created: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "projectId": self.project_id,
            "projectNumber": self.project_number,
            "fieldId": self.field_id,
            "columns": dict(self.columns),
            "labelsCreated": self.labels_created,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "GitHubSettings":
        data = data or {}
        return cls(
            enabled=bool(data.get("enabled", False)),
            project_id=data.get("projectId"),
            project_number=data.get("projectNumber"),
            field_id=data.get("fieldId"),
            columns=dict(data.get("columns") or data.get("columnMapping") or {}),
            labels_created=bool(data.get("labelsCreated", False)),
        )


@dataclass(slots=True)
class WorkflowSettings:
    auto_handoff: bool = True
    auto_label: bool = True
    notify_on_handoff: bool = True
    track_metrics: bool = True

    def to_dict(self) -> Dict[str, bool]:
        return {
            "autoHandoff": self.auto_handoff,
            "autoLabel": self.auto_label,
            "notifyOnHandoff": self.notify_on_handoff,
            "trackMetrics": self.track_metrics,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "WorkflowSettings":
        data = data or {}
        return cls(
            auto_handoff=bool(data.get("autoHandoff", True)),
            auto_label=bool(data.get("autoLabel", True)),
            notify_on_handoff=bool(data.get("notifyOnHandoff", True)),
            track_metrics=bool(data.get("trackMetrics", True)),
        )


@dataclass(slots=True)
class WorkflowState:
    """The workflow section derived from the team size and roster."""

    team_size: int
    columns: List[Column] = field(default_factory=list)
    sequence: List[str] = field(default_factory=list)
    member_mapping: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "teamSize": self.team_size,
            "columns": [column.to_dict() for column in self.columns],
            "sequence": list(self.sequence),
            "memberMapping": dict(self.member_mapping),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkflowState":
        return cls(
            team_size=int(data.get("teamSize", 0)),
            columns=[Column.from_dict(column) for column in data.get("columns", [])],
            sequence=list(data.get("sequence", [])),
            member_mapping=dict(data.get("memberMapping", {})),
        )


REQUIRED_CONFIG_FIELDS = ("version", "teamSize", "mode", "members")


@dataclass(slots=True)
class Configuration:
    """Versioned project configuration persisted to ``.leo.json``."""

    team_size: int
    mode: str
    members: List[TeamMember]
    workflow: WorkflowState
    name: str = "My Project"
    version: str = CONFIG_VERSION
    github: GitHubSettings = field(default_factory=GitHubSettings)
    settings: WorkflowSettings = field(default_factory=WorkflowSettings)
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)

    def find_member(self, username: str) -> Optional[TeamMember]:
        return next((m for m in self.members if m.username == username), None)

    def member_for_role(self, role: str) -> Optional[TeamMember]:
        return next((m for m in self.members if m.role == role), None)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "version": self.version,
            "name": self.name,
            "teamSize": self.team_size,
            "mode": self.mode,
            "members": [member.to_dict() for member in self.members],
            "workflow": self.workflow.to_dict(),
            "github": self.github.to_dict(),
            "settings": self.settings.to_dict(),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Configuration":
        """Create from dictionary representation, validating required fields."""
        if not isinstance(data, dict):
            raise ConfigurationError("Configuration document must be a JSON object")

        missing = [key for key in REQUIRED_CONFIG_FIELDS if key not in data]
        if missing:
            raise ConfigurationError(f"Configuration is missing required fields: {', '.join(missing)}")

        team_size = data["teamSize"]
        if isinstance(team_size, bool) or not isinstance(team_size, int):
            raise ConfigurationError(f"teamSize must be an integer, got {team_size!r}")

        members = data["members"]
        if not isinstance(members, list):
            raise ConfigurationError("members must be a list")

        return cls(
            version=str(data["version"]),
            name=data.get("name", "My Project"),
            team_size=team_size,
            mode=data["mode"],
            members=[TeamMember.from_dict(member) for member in members],
            workflow=WorkflowState.from_dict(data.get("workflow") or {"teamSize": team_size}),
            github=GitHubSettings.from_dict(data.get("github")),
            settings=WorkflowSettings.from_dict(data.get("settings")),
            created_at=data.get("createdAt") or utc_now_iso(),
            updated_at=data.get("updatedAt") or utc_now_iso(),
        )
