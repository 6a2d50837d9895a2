"""Workflow management for Leo Kit.

This module wires the components together for one project root and exposes
operations that return plain dictionaries. Errors from the components are
caught, logged with context and reported under an ``error`` key together
with a ``suggestion`` and the ``next_suggested_step``.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .analytics import HuntAnalytics
from .complexity import ComplexityEstimator
from .config_manager import CONFIG_FILE_ENV, DEFAULT_CONFIG_FILE, ConfigurationManager
from .constitution import ConstitutionManager
from .errors import (
    ConfigurationError,
    InvalidHandoff,
    InvalidRole,
    InvalidTeamSize,
    LeoKitError,
    NoConfiguration,
    NotFound,
    RemoteError,
    TeamSizeMismatch,
    UnknownMember,
)
from .github import IssueBoardCollaborator, ProjectBoardBuilder
from .handoff import HandoffCoordinator
from .hunts import HuntTracker
from .instructions import InstructionsBuilder
from .leokit_logging import log_error_with_context, log_performance
from .models import Principle
from .roles import ROLE_SEQUENCER
from .workflow_modes import WORKFLOW_MODES

PROJECT_ROOT_ENV = "LEOKIT_PROJECT_ROOT"
STATE_DIR = ".leo"

logger = logging.getLogger("leokit.workflow")

_SUGGESTIONS = (
    (NoConfiguration, "Initialize the team first with init_team", "init_team"),
    (TeamSizeMismatch, "Provide exactly one member per seat in the team", "init_team"),
    (InvalidTeamSize, "Choose a team size between 1 and 4", "init_team"),
    (InvalidRole, "Use one of: " + ", ".join(ROLE_SEQUENCER.get_sequence()), "get_roles"),
    (UnknownMember, "Add a team member holding the target role with add_member", "add_member"),
    (InvalidHandoff, "Hand off only to the next role in the sequence", "hunt_status"),
    (NotFound, "Check the identifier with list_hunts or team_status", "list_hunts"),
    (RemoteError, "Local state was saved; check gh authentication and retry the board sync", "hunt_status"),
    (ConfigurationError, "Fix the reported configuration problem and retry", "team_status"),
)


def _project_markers() -> List[str]:
    return [STATE_DIR, os.getenv(CONFIG_FILE_ENV, DEFAULT_CONFIG_FILE)]


def resolve_project_root(root: Optional[str] = None) -> Path:
    """Pick the project root: explicit argument, environment, then auto-detection."""
    if root:
        resolved = Path(root).expanduser().resolve()
        if not resolved.exists():
            raise ValueError(f"Provided root '{root}' does not exist.")
        return resolved

    env_root = os.getenv(PROJECT_ROOT_ENV)
    if env_root:
        env_path = Path(env_root).expanduser().resolve()
        if not env_path.exists():
            raise ValueError(
                f"Environment variable {PROJECT_ROOT_ENV} points to '{env_root}', which does not exist."
            )
        return env_path

    cwd = Path.cwd().resolve()
    for base in (cwd, *cwd.parents):
        if any((base / marker).exists() for marker in _project_markers()):
            return base
    return cwd


class WorkflowManager:
    """Manages the Leo Kit workflow for one project root."""

    def __init__(self, root: Path | str, collaborator: Optional[IssueBoardCollaborator] = None):
        self.root = Path(root).resolve()
        self.config_manager = ConfigurationManager(self.root)
        self.tracker = HuntTracker(self.root)
        self.constitution = ConstitutionManager(self.root)
        self.estimator = ComplexityEstimator()
        self.collaborator = collaborator

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _ensure_config(self):
        if self.config_manager.config is None:
            self.config_manager.load()
        return self.config_manager.get_config()

    def _board(self) -> Optional[ProjectBoardBuilder]:
        if self.collaborator is None:
            return None
        return ProjectBoardBuilder(self.collaborator, self.config_manager, self.tracker)

    def _coordinator(self) -> HandoffCoordinator:
        config = self._ensure_config()
        board = self._board() if config.github.enabled else None
        return HandoffCoordinator(config.members, tracker=self.tracker, board=board)

    def _failure(self, operation: str, error: Exception, **context: Any) -> Dict[str, Any]:
        suggestion, next_step = "Check the inputs and try again", operation
        for error_type, hint, step in _SUGGESTIONS:
            if isinstance(error, error_type):
                suggestion, next_step = hint, step
                break

        logger.error(f"{operation} failed: {error}")
        log_error_with_context(error, {"operation": operation, "root": str(self.root), **context})
        return {
            "error": str(error),
            "error_type": type(error).__name__,
            "suggestion": suggestion,
            "next_suggested_step": next_step,
        }

    # ------------------------------------------------------------------
    # Team
    # ------------------------------------------------------------------

    @log_performance("init_team")
    def init_team(self, team_size: int, members: Iterable[Mapping[str, Any]], name: str = "My Project") -> Dict[str, Any]:
        try:
            config = self.config_manager.initialize(team_size, list(members), name=name)
            return {
                "config_path": str(self.config_manager.config_path),
                "summary": self.config_manager.get_summary(),
                "recommendations": self.config_manager.get_recommendations(),
                "next_suggested_step": "start_hunt",
                "message": f"Initialized {config.mode} workflow for {config.team_size} member(s)",
            }
        except (LeoKitError, ValueError) as e:
            return self._failure("init_team", e, team_size=team_size)

    def add_member(self, username: str, role: str) -> Dict[str, Any]:
        try:
            self._ensure_config()
            members = self.config_manager.add_member(username, role)
            return {
                "members": [member.to_dict() for member in members],
                "summary": self.config_manager.get_summary(),
                "next_suggested_step": "team_status",
            }
        except (LeoKitError, ValueError) as e:
            return self._failure("add_member", e, username=username, role=role)

    def remove_member(self, username: str) -> Dict[str, Any]:
        try:
            self._ensure_config()
            members = self.config_manager.remove_member(username)
            return {
                "members": [member.to_dict() for member in members],
                "summary": self.config_manager.get_summary(),
                "next_suggested_step": "team_status" if members else "add_member",
            }
        except (LeoKitError, ValueError) as e:
            return self._failure("remove_member", e, username=username)

    def update_member_role(self, username: str, role: str) -> Dict[str, Any]:
        try:
            self._ensure_config()
            member = self.config_manager.update_member_role(username, role)
            return {"member": member.to_dict(), "summary": self.config_manager.get_summary()}
        except (LeoKitError, ValueError) as e:
            return self._failure("update_member_role", e, username=username, role=role)

    def team_status(self) -> Dict[str, Any]:
        try:
            config = self._ensure_config()
            result = {"summary": self.config_manager.get_summary()}
            if config.team_size:
                result["recommendations"] = self.config_manager.get_recommendations()
                result["setup"] = WORKFLOW_MODES.get_github_setup_instructions(config.team_size, config.members)
            return result
        except (LeoKitError, ValueError) as e:
            return self._failure("team_status", e)

    # ------------------------------------------------------------------
    # Roles and analysis
    # ------------------------------------------------------------------

    def get_roles(self) -> Dict[str, Any]:
        return {
            "roles": [role.to_dict() for role in ROLE_SEQUENCER.get_all_roles()],
            "sequence": ROLE_SEQUENCER.get_sequence(),
            "display": ROLE_SEQUENCER.get_display_string(),
        }

    def find_role(self, text: str) -> Dict[str, Any]:
        role = ROLE_SEQUENCER.find_role_by_keyword(text)
        if role is None:
            return {
                "role": None,
                "suggestion": "No role matched; try a keyword such as 'test', 'design' or 'deploy'",
            }
        return {"role": role.to_dict(), "display": role.display_name}

    def analyze_task(self, description: str) -> Dict[str, Any]:
        analysis = self.estimator.analyze(description)
        return {
            "analysis": analysis.to_dict(),
            "recommendation": self.estimator.get_recommendation(analysis),
            "suggested_role": getattr(ROLE_SEQUENCER.find_role_by_keyword(description), "id", None),
            "next_suggested_step": "start_hunt",
        }

    # ------------------------------------------------------------------
    # Hunts
    # ------------------------------------------------------------------

    @log_performance("start_hunt")
    def start_hunt(
        self,
        feature_name: str,
        description: str = "",
        assignee: Optional[str] = None,
        file_issue: bool = False,
    ) -> Dict[str, Any]:
        """Start a hunt; the entry role's owner is assigned when no assignee is given."""
        try:
            if assignee is None and self.config_manager.exists():
                holder = self._ensure_config().member_for_role(ROLE_SEQUENCER.get_sequence()[0])
                assignee = holder.username if holder else None

            board = self._board() if file_issue else None
            if file_issue and board is None:
                raise ConfigurationError("Filing issues requires a GitHub collaborator")

            hunt = self.tracker.start_hunt(feature_name, description, first_assignee=assignee)
            result: Dict[str, Any] = {
                "hunt": hunt.to_dict(),
                "analysis": self.estimator.analyze(f"{feature_name}. {description}").to_dict(),
                "next_suggested_step": "handoff" if hunt.is_in_progress else "begin_hunt",
            }
            if board is not None:
                issue = board.file_hunt(hunt)
                result["issue_number"] = issue.number
                result["hunt"] = hunt.to_dict()
            return result
        except (LeoKitError, ValueError) as e:
            return self._failure("start_hunt", e, feature_name=feature_name)

    def begin_hunt(self, hunt_id: str, assignee: Optional[str] = None) -> Dict[str, Any]:
        try:
            if assignee is None:
                holder = self._ensure_config().member_for_role(ROLE_SEQUENCER.get_sequence()[0])
                if holder is None:
                    raise UnknownMember(ROLE_SEQUENCER.get_sequence()[0])
                assignee = holder.username
            hunt = self.tracker.begin(hunt_id, assignee)
            return {"hunt": hunt.to_dict(), "next_suggested_step": "handoff"}
        except (LeoKitError, ValueError) as e:
            return self._failure("begin_hunt", e, hunt_id=hunt_id)

    @log_performance("handoff")
    def handoff(
        self,
        hunt_id: str,
        to_role: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Hand the hunt to ``to_role``, defaulting to the next role in sequence."""
        try:
            hunt = self.tracker.get_hunt(hunt_id)
            if not hunt.current_phase:
                raise InvalidHandoff(f"Hunt {hunt_id} has not started; begin it first")
            target = to_role or ROLE_SEQUENCER.get_next_role(hunt.current_phase)
            if target is None:
                raise InvalidHandoff(
                    f"Hunt {hunt_id} is at the final role; complete it instead of handing it off"
                )

            coordinator = self._coordinator()
            record = coordinator.execute_handoff(hunt, hunt.current_phase, target, context)
            is_last = ROLE_SEQUENCER.is_last_in_sequence(target)
            return {
                "handoff": record.to_dict(),
                "hunt": hunt.to_dict(),
                "notification": coordinator.format_handoff_notification(
                    record.from_role, record.to_role, hunt.id, hunt.feature_name
                ),
                "summary": coordinator.generate_handoff_summary(hunt, target),
                "next_suggested_step": "complete_hunt" if is_last else "handoff",
            }
        except (LeoKitError, ValueError) as e:
            return self._failure("handoff", e, hunt_id=hunt_id, to_role=to_role)

    def complete_hunt(self, hunt_id: str) -> Dict[str, Any]:
        try:
            hunt = self.tracker.complete_hunt(hunt_id)
            return {
                "hunt": hunt.to_dict(),
                "total_duration": hunt.total_duration(),
                "statistics": self.tracker.statistics(),
                "next_suggested_step": "start_hunt",
            }
        except (LeoKitError, ValueError) as e:
            return self._failure("complete_hunt", e, hunt_id=hunt_id)

    def hunt_status(self, hunt_id: str) -> Dict[str, Any]:
        try:
            hunt = self.tracker.get_hunt(hunt_id)
            next_role = ROLE_SEQUENCER.get_next_role(hunt.current_phase) if hunt.current_phase else None
            result = {
                "hunt": hunt.to_dict(),
                "display": self.tracker.format_hunt(hunt),
                "next_role": next_role,
            }
            if self.config_manager.exists() and next_role:
                result["simulation"] = self._coordinator().simulate_handoff(hunt, next_role)
            return result
        except (LeoKitError, ValueError) as e:
            return self._failure("hunt_status", e, hunt_id=hunt_id)

    def list_hunts(self, status: Optional[str] = None) -> Dict[str, Any]:
        hunts = self.tracker.list_hunts(status)
        return {
            "hunts": [hunt.to_dict() for hunt in hunts],
            "statistics": self.tracker.statistics(),
        }

    def team_report(self, save: bool = False) -> Dict[str, Any]:
        """Velocity, utilization, quality and bottlenecks over all tracked hunts."""
        try:
            name = self._ensure_config().name if self.config_manager.exists() else "My Project"
            analytics = HuntAnalytics(self.tracker)
            report = analytics.generate_team_report(name)
            result: Dict[str, Any] = {
                "report": report,
                "markdown": analytics.format_report_as_markdown(report),
                "next_suggested_step": "list_hunts" if report["summary"]["total_hunts"] else "start_hunt",
            }
            if save:
                result["path"] = str(analytics.save(report))
            return result
        except (LeoKitError, ValueError) as e:
            return self._failure("team_report", e)

    # ------------------------------------------------------------------
    # GitHub board
    # ------------------------------------------------------------------

    def setup_board(self, title: Optional[str] = None, create_labels: bool = True) -> Dict[str, Any]:
        try:
            self._ensure_config()
            board_builder = self._board()
            if board_builder is None:
                raise ConfigurationError("Board setup requires a GitHub collaborator")
            labels = board_builder.setup_labels() if create_labels else []
            board = board_builder.create_board(title)
            return {
                "board": {"id": board.id, "number": board.number, "title": board.title, "url": board.url},
                "labels": labels,
                "github": self.config_manager.get_config().github.to_dict(),
                "rate_limit": self.collaborator.get_rate_limit().remaining,
            }
        except (LeoKitError, ValueError) as e:
            return self._failure("setup_board", e)

    # ------------------------------------------------------------------
    # Constitution
    # ------------------------------------------------------------------

    def init_constitution(self, force: bool = False) -> Dict[str, Any]:
        try:
            constitution = self.constitution.init(force=force)
            return {
                "constitution": constitution.to_dict(),
                "document_path": str(self.constitution.document_path),
                "next_suggested_step": "init_team" if not self.config_manager.exists() else "generate_instructions",
            }
        except (LeoKitError, ValueError) as e:
            return self._failure("init_constitution", e)

    def get_constitution(self) -> Dict[str, Any]:
        try:
            constitution = self.constitution.load()
            if constitution is None:
                return {
                    "constitution": None,
                    "suggestion": "Create one with init_constitution",
                    "next_suggested_step": "init_constitution",
                }
            return {"constitution": constitution.to_dict(), "document_path": str(self.constitution.document_path)}
        except (LeoKitError, ValueError) as e:
            return self._failure("get_constitution", e)

    def add_principle(self, name: str, rule: str, enforcement: str = "Code review",
                      rationale: str = "Improves code quality and consistency") -> Dict[str, Any]:
        try:
            principle = Principle(name=name, rule=rule, enforcement=enforcement, rationale=rationale)
            constitution = self.constitution.add_principle(principle)
            return {"constitution": constitution.to_dict()}
        except (LeoKitError, ValueError) as e:
            return self._failure("add_principle", e, name=name)

    def remove_principle(self, name: str) -> Dict[str, Any]:
        try:
            constitution = self.constitution.remove_principle(name)
            return {"constitution": constitution.to_dict()}
        except (LeoKitError, ValueError) as e:
            return self._failure("remove_principle", e, name=name)

    def update_principle(
        self,
        name: str,
        rule: Optional[str] = None,
        enforcement: Optional[str] = None,
        rationale: Optional[str] = None,
        new_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        try:
            principle = self.constitution.update_principle(
                name, name=new_name, rule=rule, enforcement=enforcement, rationale=rationale
            )
            return {"principle": principle.to_dict()}
        except (LeoKitError, ValueError) as e:
            return self._failure("update_principle", e, name=name)

    # ------------------------------------------------------------------
    # AI instructions
    # ------------------------------------------------------------------

    def generate_instructions(self, ai_names: Optional[Iterable[str]] = None, write: bool = True) -> Dict[str, Any]:
        try:
            builder = InstructionsBuilder(self.root, self.config_manager, self.constitution)
            names = list(ai_names) if ai_names else builder.get_available_ais()
            results = builder.generate_for_multiple(names)
            response: Dict[str, Any] = {"results": [result.to_dict() for result in results]}
            if write:
                response.update(builder.write(results))
            return response
        except (LeoKitError, ValueError) as e:
            return self._failure("generate_instructions", e)
