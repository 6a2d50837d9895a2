"""Hunt tracking and persistence.

Hunts live in ``<root>/.leo/hunts.json``. Phase changes go through
:class:`leokit.handoff.HandoffCoordinator`; this module only records them.
"""

from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import ConfigurationError, InvalidHandoff, InvalidRole, NotFound
from .leokit_logging import log_error_with_context, log_hunt_event, log_operation
from .models import (
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    STATUS_NOT_STARTED,
    Hunt,
    PhaseEntry,
    utc_now_iso,
)
from .roles import ROLE_SEQUENCER, RoleSequencer

logger = logging.getLogger("leokit.hunts")

STATE_DIR = ".leo"
HUNTS_FILE = "hunts.json"


def _generate_hunt_id() -> str:
    """Generate a unique hunt ID."""
    return f"hunt-{uuid.uuid4().hex[:8]}"


class HuntTracker:
    """Own the hunts of one project directory."""

    def __init__(self, root: Path | str, sequencer: RoleSequencer = ROLE_SEQUENCER):
        self.root = Path(root).resolve()
        self.sequencer = sequencer
        self.hunts: List[Hunt] = self.load()

    @property
    def hunts_path(self) -> Path:
        return self.root / STATE_DIR / HUNTS_FILE

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> List[Hunt]:
        """Load hunts from disk; a missing file means no hunts yet."""
        path = self.hunts_path
        if not path.exists():
            return []
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(data, list):
                raise ConfigurationError(f"{path} must contain a list of hunts")
            hunts = [Hunt.from_dict(item) for item in data]
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            log_error_with_context(e, {"operation": "load_hunts", "path": str(path)})
            raise ConfigurationError(f"Could not read hunts from {path}: {e}") from e
        self.hunts = hunts
        return hunts

    def save(self) -> Path:
        path = self.hunts_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps([hunt.to_dict() for hunt in self.hunts], indent=2, ensure_ascii=False) + "\n",
            encoding="utf-8",
        )
        logger.debug(f"Saved {len(self.hunts)} hunts to {path}")
        return path

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_hunt(self, hunt_id: str) -> Hunt:
        for hunt in self.hunts:
            if hunt.id == hunt_id:
                return hunt
        raise NotFound(f"Hunt not found: {hunt_id}")

    def list_hunts(self, status: Optional[str] = None) -> List[Hunt]:
        if status is None:
            return list(self.hunts)
        return [hunt for hunt in self.hunts if hunt.status == status]

    def active_hunts(self) -> List[Hunt]:
        return [hunt for hunt in self.hunts if hunt.status != STATUS_COMPLETED]

    def completed_hunts(self) -> List[Hunt]:
        return self.list_hunts(STATUS_COMPLETED)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_hunt(self, feature_name: str, description: str = "", *, first_assignee: Optional[str] = None) -> Hunt:
        """Create a hunt; with an assignee it starts at the entry role."""
        if not feature_name or not feature_name.strip():
            raise ValueError("Feature name cannot be empty")

        with log_operation("start_hunt", feature_name=feature_name):
            hunt = Hunt(
                id=_generate_hunt_id(),
                feature_name=feature_name.strip(),
                description=(description or "").strip(),
            )
            if first_assignee:
                self._enter_entry_role(hunt, first_assignee)
            self.hunts.append(hunt)
            self.save()

        log_hunt_event("started", hunt.id, feature_name=hunt.feature_name, status=hunt.status)
        return hunt

    def begin(self, hunt_id: str, assignee: str) -> Hunt:
        """Move a not-started hunt into its first phase."""
        hunt = self.get_hunt(hunt_id)
        if hunt.status != STATUS_NOT_STARTED:
            raise InvalidHandoff(f"Hunt {hunt_id} has already started (status: {hunt.status})")
        if not assignee:
            raise ValueError("Assignee cannot be empty")

        self._enter_entry_role(hunt, assignee)
        self.save()
        log_hunt_event("begun", hunt.id, phase=hunt.current_phase, assignee=assignee)
        return hunt

    def record_transition(self, hunt: Hunt, phase: str, assignee: Optional[str]) -> PhaseEntry:
        """Close the current phase entry and open ``phase``, then persist."""
        if not self.sequencer.validate_role(phase):
            raise InvalidRole(phase)

        stored = self._store(hunt)
        entry = stored.enter_phase(phase, assignee)
        stored.status = STATUS_IN_PROGRESS
        self.save()
        return entry

    def complete_hunt(self, hunt_id: str) -> Hunt:
        """Finish a hunt that has reached the terminal role."""
        hunt = self.get_hunt(hunt_id)
        if hunt.is_completed:
            raise InvalidHandoff(f"Hunt {hunt_id} is already completed")

        terminal = self.sequencer.get_sequence()[-1]
        if hunt.current_phase != terminal:
            raise InvalidHandoff(
                f"Hunt {hunt_id} can only be completed from {terminal} (current phase: {hunt.current_phase})"
            )

        completed_at = utc_now_iso()
        current = hunt.current_entry()
        if current is not None and current.exited_at is None:
            current.close(completed_at)
        hunt.status = STATUS_COMPLETED
        hunt.completed_at = completed_at
        self.save()

        log_hunt_event("completed", hunt.id, total_duration=hunt.total_duration())
        return hunt

    def attach_issue(self, hunt_id: str, issue_number: int) -> Hunt:
        hunt = self.get_hunt(hunt_id)
        hunt.issue_number = issue_number
        self.save()
        return hunt

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def statistics(self) -> Dict[str, Any]:
        completed = self.completed_hunts()
        total_duration = sum(hunt.total_duration() for hunt in completed)
        average = round(total_duration / len(completed)) if completed else 0
        return {
            "total": len(self.hunts),
            "completed": len(completed),
            "active": len(self.active_hunts()),
            "not_started": len(self.list_hunts(STATUS_NOT_STARTED)),
            "total_duration": total_duration,
            "average_duration": average,
        }

    def format_hunt(self, hunt: Hunt) -> str:
        role = self.sequencer.get_role(hunt.current_phase) if hunt.current_phase else None
        emoji = role.emoji if role else "❓"
        return f"{emoji} Hunt #{hunt.id}: {hunt.feature_name} [{hunt.status}]"

    def render_issue_body(self, hunt: Hunt) -> str:
        """Markdown body used when filing the hunt as a GitHub issue."""
        progress = []
        for role in self.sequencer.get_all_roles():
            entry = next((e for e in hunt.phase_history if e.phase == role.id), None)
            if entry is None:
                progress.append(f"- [ ] {role.display_name} - Pending")
                continue
            duration = f" ({entry.duration}m)" if entry.duration is not None else ""
            progress.append(f"- [x] {role.display_name} - {entry.assignee or 'Unassigned'}{duration}")

        lines = [
            f"# Hunt: {hunt.feature_name}",
            "",
            "## Description",
            hunt.description or "_No description provided._",
            "",
            "## Hunt Tracking",
            f"- **Hunt ID:** {hunt.id}",
            f"- **Status:** {hunt.status}",
            f"- **Started:** {hunt.started_at}",
            "",
            "## Phase Progress",
            *progress,
            "",
            "## Acceptance Criteria",
            "- [ ] Feature complete",
            "- [ ] All tests passing",
            "- [ ] Code reviewed and approved",
            "- [ ] Deployed to production",
            "",
            "---",
            "",
            "*Managed by Leo Kit*",
        ]
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _enter_entry_role(self, hunt: Hunt, assignee: str) -> None:
        hunt.enter_phase(self.sequencer.get_sequence()[0], assignee)
        hunt.status = STATUS_IN_PROGRESS

    def _store(self, hunt: Hunt) -> Hunt:
        """Return the tracked instance for ``hunt``, adopting it if it is new."""
        for index, existing in enumerate(self.hunts):
            if existing.id == hunt.id:
                if existing is not hunt:
                    self.hunts[index] = hunt
                return hunt
        self.hunts.append(hunt)
        return hunt
