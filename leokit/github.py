"""GitHub issue and project board automation.

All remote calls go through :class:`IssueBoardCollaborator`. The ``gh`` CLI
implementation shells out to the GitHub CLI; the in-memory implementation
keeps everything in process and is what the tests use.

Project boards are GitHub Projects (v2). Workflow columns are the options of
a single-select field on the project, so moving a card means setting that
field on the project item.
"""

from __future__ import annotations

import json
import logging
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from .config_manager import ConfigurationManager
from .errors import ConfigurationError, RemoteError
from .handoff import format_handoff_notification
from .hunts import HuntTracker
from .leokit_logging import log_operation, observability_hooks
from .models import Column, HandoffRecord, Hunt
from .roles import ROLE_SEQUENCER, RoleSequencer
from .workflow_modes import WORKFLOW_MODES, WorkflowModeTable

logger = logging.getLogger("leokit.github")

RATE_LIMIT_WARNING_THRESHOLD = 100
HUNT_LABEL = "hunt"
STATUS_FIELD_NAME = "Leo Stage"


# ----------------------------------------------------------------------
# Result records
# ----------------------------------------------------------------------


@dataclass(slots=True)
class IssueRef:
    number: int
    title: str
    url: str = ""
    state: str = "open"
    labels: List[str] = field(default_factory=list)


@dataclass(slots=True)
class BoardRef:
    id: str
    number: int
    title: str
    url: str = ""
    field_id: Optional[str] = None
    columns: Dict[str, str] = field(default_factory=dict)  # column name -> option id


@dataclass(slots=True)
class CardRef:
    id: str
    issue_number: int
    column_id: str


@dataclass(slots=True)
class RateLimit:
    limit: int
    remaining: int
    reset: Optional[str] = None

    @property
    def near_limit(self) -> bool:
        return self.remaining < RATE_LIMIT_WARNING_THRESHOLD


# ----------------------------------------------------------------------
# Collaborator interface
# ----------------------------------------------------------------------


class IssueBoardCollaborator(ABC):
    """Remote issue tracker and project board operations."""

    @abstractmethod
    def create_issue(self, title: str, body: str, labels: Optional[Sequence[str]] = None) -> IssueRef:
        ...

    @abstractmethod
    def get_issue(self, number: int) -> IssueRef:
        ...

    @abstractmethod
    def add_labels(self, number: int, labels: Sequence[str]) -> IssueRef:
        ...

    @abstractmethod
    def add_comment(self, number: int, body: str) -> str:
        """Comment on an issue and return the comment URL or id."""

    @abstractmethod
    def create_label(self, name: str, color: str, description: str = "") -> None:
        ...

    @abstractmethod
    def create_project_board(self, title: str, column_names: Sequence[str]) -> BoardRef:
        ...

    @abstractmethod
    def add_issue_to_board(self, board: BoardRef, issue_number: int, column_id: str) -> CardRef:
        ...

    @abstractmethod
    def move_issue(self, board: BoardRef, issue_number: int, column_id: str) -> CardRef:
        ...

    @abstractmethod
    def get_rate_limit(self) -> RateLimit:
        ...


# ----------------------------------------------------------------------
# gh CLI implementation
# ----------------------------------------------------------------------


class GhCliCollaborator(IssueBoardCollaborator):
    """Collaborator backed by the GitHub CLI (``gh``)."""

    def __init__(
        self,
        repo: Optional[str] = None,
        owner: str = "@me",
        executable: str = "gh",
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ):
        self.repo = repo
        self.owner = owner
        self.executable = executable
        self.runner = runner

    def _run(self, operation: str, args: List[str], input_text: Optional[str] = None) -> str:
        command = [self.executable, *args]
        logger.debug(f"Running: {' '.join(command[:4])} ...")
        try:
            result = self.runner(
                command,
                input=input_text,
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as e:
            raise RemoteError(operation, f"{self.executable} CLI not found") from e

        if result.returncode != 0:
            message = (result.stderr or result.stdout or "").strip() or f"exit status {result.returncode}"
            raise RemoteError(operation, message)
        return result.stdout

    def _run_json(self, operation: str, args: List[str]) -> Any:
        output = self._run(operation, args)
        try:
            return json.loads(output)
        except json.JSONDecodeError as e:
            raise RemoteError(operation, f"unexpected output from {self.executable}: {output[:200]!r}") from e

    def _repo_args(self) -> List[str]:
        return ["--repo", self.repo] if self.repo else []

    def create_issue(self, title: str, body: str, labels: Optional[Sequence[str]] = None) -> IssueRef:
        label_args: List[str] = []
        for label in labels or []:
            label_args.extend(["--label", label])

        output = self._run(
            "create issue",
            ["issue", "create", "--title", title, "--body", body, *label_args, *self._repo_args()],
        )
        url = output.strip().splitlines()[-1] if output.strip() else ""
        try:
            number = int(url.rstrip("/").split("/")[-1])
        except ValueError as e:
            raise RemoteError("create issue", f"could not parse issue URL {url!r}") from e
        return IssueRef(number=number, title=title, url=url, labels=list(labels or []))

    def get_issue(self, number: int) -> IssueRef:
        data = self._run_json(
            "get issue",
            ["issue", "view", str(number), "--json", "number,title,url,state,labels", *self._repo_args()],
        )
        return IssueRef(
            number=data["number"],
            title=data["title"],
            url=data.get("url", ""),
            state=str(data.get("state", "open")).lower(),
            labels=[label["name"] for label in data.get("labels", [])],
        )

    def add_labels(self, number: int, labels: Sequence[str]) -> IssueRef:
        self._run(
            "add labels",
            ["issue", "edit", str(number), "--add-label", ",".join(labels), *self._repo_args()],
        )
        return self.get_issue(number)

    def add_comment(self, number: int, body: str) -> str:
        output = self._run("add comment", ["issue", "comment", str(number), "--body", body, *self._repo_args()])
        return output.strip()

    def create_label(self, name: str, color: str, description: str = "") -> None:
        self._run(
            "create label",
            ["label", "create", name, "--color", color.lstrip("#"), "--description", description,
             "--force", *self._repo_args()],
        )

    def create_project_board(self, title: str, column_names: Sequence[str]) -> BoardRef:
        project = self._run_json(
            "create project board",
            ["project", "create", "--owner", self.owner, "--title", title, "--format", "json"],
        )
        number = int(project["number"])
        created = self._run_json(
            "create project board",
            ["project", "field-create", str(number), "--owner", self.owner, "--name", STATUS_FIELD_NAME,
             "--data-type", "SINGLE_SELECT", "--single-select-options", ",".join(column_names),
             "--format", "json"],
        )
        options = created.get("options")
        if not options:
            fields = self._run_json(
                "create project board",
                ["project", "field-list", str(number), "--owner", self.owner, "--format", "json"],
            )
            match = next((f for f in fields.get("fields", []) if f.get("name") == STATUS_FIELD_NAME), {})
            options = match.get("options", [])

        return BoardRef(
            id=project["id"],
            number=number,
            title=title,
            url=project.get("url", ""),
            field_id=created.get("id"),
            columns={option["name"]: option["id"] for option in options},
        )

    def add_issue_to_board(self, board: BoardRef, issue_number: int, column_id: str) -> CardRef:
        issue = self.get_issue(issue_number)
        item = self._run_json(
            "add issue to board",
            ["project", "item-add", str(board.number), "--owner", self.owner, "--url", issue.url,
             "--format", "json"],
        )
        card = CardRef(id=item["id"], issue_number=issue_number, column_id=column_id)
        self._set_column(board, card, "add issue to board")
        return card

    def move_issue(self, board: BoardRef, issue_number: int, column_id: str) -> CardRef:
        # item-add returns the existing item when the issue is already on the board
        issue = self.get_issue(issue_number)
        item = self._run_json(
            "move issue",
            ["project", "item-add", str(board.number), "--owner", self.owner, "--url", issue.url,
             "--format", "json"],
        )
        card = CardRef(id=item["id"], issue_number=issue_number, column_id=column_id)
        self._set_column(board, card, "move issue")
        return card

    def _set_column(self, board: BoardRef, card: CardRef, operation: str) -> None:
        if not board.field_id:
            raise RemoteError(operation, f"board {board.number} has no stage field")
        self._run(
            operation,
            ["project", "item-edit", "--id", card.id, "--project-id", board.id, "--field-id", board.field_id,
             "--single-select-option-id", card.column_id],
        )

    def get_rate_limit(self) -> RateLimit:
        data = self._run_json("get rate limit", ["api", "rate_limit"])
        core = data.get("resources", {}).get("core", data.get("rate", {}))
        reset = core.get("reset")
        return RateLimit(
            limit=int(core.get("limit", 0)),
            remaining=int(core.get("remaining", 0)),
            reset=str(reset) if reset is not None else None,
        )


# ----------------------------------------------------------------------
# In-memory implementation
# ----------------------------------------------------------------------


class InMemoryCollaborator(IssueBoardCollaborator):
    """Process-local collaborator with generated ids.

    Operations named in ``fail_on`` raise :class:`RemoteError`, which lets
    callers exercise their failure paths.
    """

    def __init__(self, rate_limit: int = 5000, fail_on: Optional[Sequence[str]] = None):
        self.issues: Dict[int, IssueRef] = {}
        self.comments: Dict[int, List[str]] = {}
        self.labels: Dict[str, Dict[str, str]] = {}
        self.boards: Dict[str, BoardRef] = {}
        self.cards: Dict[str, Dict[int, CardRef]] = {}
        self.calls: List[str] = []
        self.fail_on = set(fail_on or ())
        self.rate_limit = rate_limit
        self.remaining = rate_limit
        self._counter = 0

    def _call(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.fail_on:
            raise RemoteError(operation, "simulated failure")
        if self.remaining <= 0:
            raise RemoteError(operation, "API rate limit exceeded")
        self.remaining -= 1

    def _next_id(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}_{self._counter}"

    def _issue(self, operation: str, number: int) -> IssueRef:
        issue = self.issues.get(number)
        if issue is None:
            raise RemoteError(operation, f"issue #{number} not found")
        return issue

    def _board(self, operation: str, board: BoardRef) -> BoardRef:
        stored = self.boards.get(board.id)
        if stored is None:
            raise RemoteError(operation, f"board {board.id} not found")
        return stored

    def create_issue(self, title: str, body: str, labels: Optional[Sequence[str]] = None) -> IssueRef:
        self._call("create issue")
        if not title:
            raise RemoteError("create issue", "title is required")
        number = len(self.issues) + 1
        issue = IssueRef(
            number=number,
            title=title,
            url=f"https://github.com/example/repo/issues/{number}",
            labels=list(labels or []),
        )
        self.issues[number] = issue
        self.comments[number] = [body]
        return issue

    def get_issue(self, number: int) -> IssueRef:
        self._call("get issue")
        return self._issue("get issue", number)

    def add_labels(self, number: int, labels: Sequence[str]) -> IssueRef:
        self._call("add labels")
        issue = self._issue("add labels", number)
        for label in labels:
            if label not in issue.labels:
                issue.labels.append(label)
        return issue

    def add_comment(self, number: int, body: str) -> str:
        self._call("add comment")
        self._issue("add comment", number)
        self.comments[number].append(body)
        return self._next_id("COMMENT")

    def create_label(self, name: str, color: str, description: str = "") -> None:
        self._call("create label")
        self.labels[name] = {"color": color.lstrip("#"), "description": description}

    def create_project_board(self, title: str, column_names: Sequence[str]) -> BoardRef:
        self._call("create project board")
        board_id = self._next_id("PVT")
        board = BoardRef(
            id=board_id,
            number=len(self.boards) + 1,
            title=title,
            url=f"https://github.com/users/example/projects/{len(self.boards) + 1}",
            field_id=self._next_id("FIELD"),
            columns={name: self._next_id("OPT") for name in column_names},
        )
        self.boards[board_id] = board
        self.cards[board_id] = {}
        return board

    def add_issue_to_board(self, board: BoardRef, issue_number: int, column_id: str) -> CardRef:
        self._call("add issue to board")
        return self._place("add issue to board", board, issue_number, column_id)

    def move_issue(self, board: BoardRef, issue_number: int, column_id: str) -> CardRef:
        self._call("move issue")
        stored = self._board("move issue", board)
        if issue_number not in self.cards[stored.id]:
            raise RemoteError("move issue", f"issue #{issue_number} is not on board {stored.id}")
        return self._place("move issue", board, issue_number, column_id)

    def _place(self, operation: str, board: BoardRef, issue_number: int, column_id: str) -> CardRef:
        stored = self._board(operation, board)
        self._issue(operation, issue_number)
        if column_id not in stored.columns.values():
            raise RemoteError(operation, f"column {column_id} not found on board {stored.id}")
        existing = self.cards[stored.id].get(issue_number)
        card = CardRef(id=existing.id if existing else self._next_id("ITEM"), issue_number=issue_number,
                       column_id=column_id)
        self.cards[stored.id][issue_number] = card
        return card

    def get_rate_limit(self) -> RateLimit:
        self.calls.append("get rate limit")
        return RateLimit(limit=self.rate_limit, remaining=self.remaining)


# ----------------------------------------------------------------------
# Board builder
# ----------------------------------------------------------------------


class ProjectBoardBuilder:
    """Mirror the team's workflow on a remote project board."""

    def __init__(
        self,
        collaborator: IssueBoardCollaborator,
        config_manager: ConfigurationManager,
        tracker: Optional[HuntTracker] = None,
        table: WorkflowModeTable = WORKFLOW_MODES,
        sequencer: RoleSequencer = ROLE_SEQUENCER,
    ):
        self.collaborator = collaborator
        self.config_manager = config_manager
        self.tracker = tracker
        self.table = table
        self.sequencer = sequencer

    @staticmethod
    def column_title(column: Column) -> str:
        return f"{column.emoji} {column.name}".strip()

    def setup_labels(self) -> List[str]:
        """Create one label per role plus the hunt label."""
        created = []
        for role in self.sequencer.get_all_roles():
            self.collaborator.create_label(role.github_label, role.color, role.description)
            created.append(role.github_label)
        self.collaborator.create_label(HUNT_LABEL, "#FFD93D", "Tracked Leo Kit hunt")
        created.append(HUNT_LABEL)
        self.config_manager.mark_labels_created()
        return created

    def create_board(self, title: Optional[str] = None) -> BoardRef:
        """Create a board whose columns follow the team's workflow."""
        config = self.config_manager.get_config()
        if not config.team_size:
            raise ConfigurationError("Cannot create a board for an empty team")

        columns = self.table.get_columns(config.team_size)
        board_title = title or f"{config.name} - Leo Workflow"
        with log_operation("create_board", title=board_title, columns=len(columns)):
            board = self.collaborator.create_project_board(
                board_title, [self.column_title(column) for column in columns]
            )
            mapping = {
                column.id: board.columns[self.column_title(column)]
                for column in columns
                if self.column_title(column) in board.columns
            }
            self.config_manager.set_github_project_info(board.number, board.id, mapping, field_id=board.field_id)

        observability_hooks.log_workflow_event("board_created", board_id=board.id, columns=len(mapping))
        return board

    def board_ref(self) -> BoardRef:
        """Rebuild the board reference recorded in the configuration."""
        github = self.config_manager.get_config().github
        if not github.enabled or not github.project_id:
            raise ConfigurationError("No project board recorded; create one first")
        return BoardRef(
            id=github.project_id,
            number=github.project_number or 0,
            title="",
            field_id=github.field_id,
            columns=dict(github.columns),
        )

    def column_for_role(self, role_id: str) -> Optional[str]:
        """Local column holding ``role_id``; a role-less column named after the role also counts."""
        config = self.config_manager.get_config()
        if not config.team_size:
            return None
        column_id = self.table.get_column_for_role(config.team_size, role_id)
        if column_id is None and role_id in self.table.get_column_sequence(config.team_size):
            column_id = role_id
        return column_id

    def file_hunt(self, hunt: Hunt) -> IssueRef:
        """Create the hunt's issue and place it on the board."""
        body = self.tracker.render_issue_body(hunt) if self.tracker else hunt.description
        labels = [HUNT_LABEL]
        role = self.sequencer.get_role(hunt.current_phase) if hunt.current_phase else None
        if role:
            labels.append(role.github_label)

        issue = self.collaborator.create_issue(f"Hunt: {hunt.feature_name}", body, labels)
        if self.tracker is not None:
            self.tracker.attach_issue(hunt.id, issue.number)
        hunt.issue_number = issue.number

        if hunt.current_phase and self.config_manager.get_config().github.enabled:
            column_id = self.column_for_role(hunt.current_phase)
            board = self.board_ref()
            if column_id and column_id in board.columns:
                self.collaborator.add_issue_to_board(board, issue.number, board.columns[column_id])
        return issue

    def sync_handoff(self, hunt: Hunt, record: HandoffRecord) -> Optional[CardRef]:
        """Reflect a handoff on the hunt's issue and card."""
        if hunt.issue_number is None:
            logger.debug(f"Hunt {hunt.id} has no issue; skipping board sync")
            return None

        config = self.config_manager.get_config()
        card = None
        if config.github.enabled:
            column_id = self.column_for_role(record.to_role)
            board = self.board_ref()
            if column_id and column_id in board.columns:
                card = self.collaborator.move_issue(board, hunt.issue_number, board.columns[column_id])

        if config.settings.auto_label:
            role = self.sequencer.get_role(record.to_role)
            if role:
                self.collaborator.add_labels(hunt.issue_number, [role.github_label])

        if config.settings.notify_on_handoff:
            message = format_handoff_notification(
                record.from_role, record.to_role, hunt.id, hunt.feature_name, self.sequencer
            )
            self.collaborator.add_comment(hunt.issue_number, f"{message}\n\nAssigned to @{record.to_member}")
        return card
