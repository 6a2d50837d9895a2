"""Validated role-to-role handoffs of hunts.

The lifecycle is a strict line: requirements → spec → implementation →
testing → deploy. A handoff moves a hunt exactly one step and assigns it to
the roster member holding the next role.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from .errors import InvalidHandoff, UnknownMember
from .hunts import HuntTracker
from .leokit_logging import log_handoff, log_performance
from .models import STATUS_IN_PROGRESS, HandoffRecord, Hunt, TeamMember
from .roles import ROLE_SEQUENCER, RoleSequencer

logger = logging.getLogger("leokit.handoff")


def format_handoff_notification(
    from_role: str,
    to_role: str,
    hunt_id: str,
    hunt_name: str,
    sequencer: RoleSequencer = ROLE_SEQUENCER,
) -> str:
    """Markdown message announcing a handoff to the receiving member."""
    return "\n".join([
        f"🤝 **Handoff: {hunt_name}**",
        "",
        f"**From:** {sequencer.format_role(from_role)}",
        f"**To:** {sequencer.format_role(to_role)}",
        "",
        f"**Hunt:** #{hunt_id}",
        "",
        "Your turn to hunt!",
    ])


class HandoffCoordinator:
    """Move hunts between roles for one roster."""

    def __init__(
        self,
        members: Iterable[TeamMember],
        tracker: Optional[HuntTracker] = None,
        sequencer: RoleSequencer = ROLE_SEQUENCER,
        board: Optional[Any] = None,
    ):
        self.members: List[TeamMember] = list(members)
        self.tracker = tracker
        self.sequencer = sequencer
        # ProjectBoardBuilder, or anything with sync_handoff(hunt, record)
        self.board = board

    def member_for_role(self, role_id: str) -> Optional[TeamMember]:
        return next((member for member in self.members if member.role == role_id), None)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_handoff(self, from_role: str, to_role: str) -> None:
        """Raise InvalidHandoff unless ``to_role`` directly follows ``from_role``."""
        if self.sequencer.is_valid_transition(from_role, to_role):
            return

        if not self.sequencer.validate_role(from_role):
            raise InvalidHandoff(f"Invalid handoff: unknown role {from_role!r}")
        if not self.sequencer.validate_role(to_role):
            raise InvalidHandoff(f"Invalid handoff: unknown role {to_role!r}")

        expected = self.sequencer.get_next_role(from_role)
        if expected is None:
            raise InvalidHandoff(f"Invalid handoff: {from_role} is the final role, nothing follows it")
        raise InvalidHandoff(
            f"Invalid handoff: {from_role} → {to_role}. Expected {from_role} → {expected}"
        )

    def can_proceed_to_next_phase(self, hunt: Hunt, next_role: str) -> bool:
        if hunt.status != STATUS_IN_PROGRESS or not hunt.current_phase:
            return False
        return self.sequencer.is_valid_transition(hunt.current_phase, next_role)

    def simulate_handoff(self, hunt: Hunt, to_role: str) -> Dict[str, Any]:
        """Check a handoff without changing anything."""
        if not self.can_proceed_to_next_phase(hunt, to_role):
            return {"success": False, "reason": "Hunt cannot proceed to next phase"}

        to_member = self.member_for_role(to_role)
        return {
            "success": True,
            "from": hunt.current_phase,
            "to": to_role,
            "to_member": to_member.username if to_member else None,
            "message": f"Handoff ready: {hunt.current_phase} → {to_role}",
        }

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    @log_performance("execute_handoff")
    def execute_handoff(
        self,
        hunt: Hunt,
        from_role: str,
        to_role: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> HandoffRecord:
        """Hand ``hunt`` from ``from_role`` to the member holding ``to_role``."""
        if hunt.is_completed:
            raise InvalidHandoff(f"Hunt {hunt.id} is completed; no further handoffs are allowed")
        if hunt.status != STATUS_IN_PROGRESS:
            raise InvalidHandoff(f"Hunt {hunt.id} is not in progress (status: {hunt.status})")
        if hunt.current_phase != from_role:
            raise InvalidHandoff(
                f"Hunt {hunt.id} is in phase {hunt.current_phase!r}, not {from_role!r}"
            )
        self.validate_handoff(from_role, to_role)

        to_member = self.member_for_role(to_role)
        if to_member is None:
            raise UnknownMember(to_role)

        from_member = hunt.current_assignee
        if self.tracker is not None:
            entry = self.tracker.record_transition(hunt, to_role, to_member.username)
        else:
            entry = hunt.enter_phase(to_role, to_member.username)

        record = HandoffRecord(
            hunt_id=hunt.id,
            from_role=from_role,
            to_role=to_role,
            from_member=from_member,
            to_member=to_member.username,
            timestamp=entry.entered_at,
            context=dict(context or {}),
        )
        logger.info(f"Hunt {hunt.id} handed off {from_role} → {to_role} ({to_member.username})")
        log_handoff(hunt.id, from_role, to_role, from_member=from_member, to_member=to_member.username)

        if self.board is not None:
            # local state is already saved; a remote failure propagates as RemoteError
            self.board.sync_handoff(hunt, record)

        return record

    def complete(self, hunt: Hunt) -> Hunt:
        """Complete a hunt sitting at the terminal role."""
        if self.tracker is None:
            raise InvalidHandoff("Completing a hunt requires a hunt tracker")
        return self.tracker.complete_hunt(hunt.id)

    # ------------------------------------------------------------------
    # Presentation
    # ------------------------------------------------------------------

    def get_workflow_sequence(self) -> List[Dict[str, str]]:
        sequence = self.sequencer.get_sequence()
        return [
            {
                "from": current,
                "to": following,
                "from_role": self.sequencer.format_role(current),
                "to_role": self.sequencer.format_role(following),
            }
            for current, following in zip(sequence, sequence[1:])
        ]

    def format_handoff_notification(self, from_role: str, to_role: str, hunt_id: str, hunt_name: str) -> str:
        return format_handoff_notification(from_role, to_role, hunt_id, hunt_name, self.sequencer)

    def generate_handoff_summary(self, hunt: Hunt, to_role: str) -> Dict[str, Any]:
        """Summary for the receiving role, based on the phase before the current one."""
        role = self.sequencer.get_role(to_role)
        title = f"{role.display_name}" if role else to_role
        previous = hunt.phase_history[-2] if len(hunt.phase_history) >= 2 else None
        return {
            "title": f"Ready for {title}",
            "hunt_id": hunt.id,
            "feature": hunt.feature_name,
            "to_role": to_role,
            "previous_phase": previous.phase if previous else None,
            "previous_assignee": previous.assignee if previous else None,
            "previous_duration": previous.duration if previous else None,
        }
