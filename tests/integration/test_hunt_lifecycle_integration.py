"""
Integration tests for the hunt lifecycle.

A hunt is filed as an issue, placed on the team's project board and handed
through every role until it is completed at deploy. The board, labels and
comments are checked after each handoff, and the MCP tools are exercised
against a real project directory.
"""

import json
import pytest
import tempfile
from pathlib import Path

import main
from leokit.config_manager import ConfigurationManager
from leokit.github import InMemoryCollaborator
from leokit.hunts import HuntTracker
from leokit.workflow import WorkflowManager

PIPELINE_TEAM = [
    {"username": "bob", "role": "spec"},
    {"username": "carol", "role": "implementation"},
    {"username": "dave", "role": "testing"},
    {"username": "erin", "role": "deploy"},
]


class TestHuntLifecycleIntegration:
    """Integration tests for a hunt travelling the whole role sequence."""

    @pytest.fixture
    def temp_project_dir(self):
        """Create a temporary project directory for integration testing."""
        with tempfile.TemporaryDirectory() as temp_dir:
            yield Path(temp_dir)

    @pytest.fixture
    def remote(self):
        return InMemoryCollaborator()

    @pytest.fixture
    def manager(self, temp_project_dir, remote):
        manager = WorkflowManager(temp_project_dir, collaborator=remote)
        result = manager.init_team(4, PIPELINE_TEAM, name="Shop")
        assert "error" not in result
        return manager

    def test_complete_lifecycle_with_board(self, manager, remote, temp_project_dir):
        """
        Given: a four person team with a project board
        When: a hunt is filed and handed from requirements through deploy
        Then: the card follows the hunt and the hunt completes with full history
        """
        board_result = manager.setup_board()
        assert "error" not in board_result
        board = remote.boards[board_result["board"]["id"]]
        assert list(board.columns) == [
            "🔍 Requirements", "📋 Specification", "🎯 Implementation", "✅ Testing & Review", "🚀 Deploy",
        ]

        started = manager.start_hunt("Checkout", "Card payments with receipts", assignee="alice", file_issue=True)
        assert "error" not in started
        hunt_id = started["hunt"]["id"]
        issue_number = started["issue_number"]
        assert remote.cards[board.id][issue_number].column_id == board.columns["🔍 Requirements"]

        expected = [
            ("spec", "bob", "📋 Specification", "handoff"),
            ("implementation", "carol", "🎯 Implementation", "handoff"),
            ("testing", "dave", "✅ Testing & Review", "handoff"),
            ("deploy", "erin", "🚀 Deploy", "complete_hunt"),
        ]
        for role, member, column_name, next_step in expected:
            result = manager.handoff(hunt_id, context={"note": f"ready for {role}"})
            assert "error" not in result, result
            assert result["handoff"]["toRole"] == role
            assert result["handoff"]["toMember"] == member
            assert result["next_suggested_step"] == next_step
            assert remote.cards[board.id][issue_number].column_id == board.columns[column_name]
            assert remote.comments[issue_number][-1].endswith(f"Assigned to @{member}")

        assert manager.handoff(hunt_id)["error_type"] == "InvalidHandoff"

        completed = manager.complete_hunt(hunt_id)
        assert completed["hunt"]["status"] == "completed"
        assert completed["statistics"]["completed"] == 1

        hunt = HuntTracker(temp_project_dir).get_hunt(hunt_id)
        assert [entry.phase for entry in hunt.phase_history] == [
            "requirements", "spec", "implementation", "testing", "deploy",
        ]
        assert [entry.assignee for entry in hunt.phase_history] == ["alice", "bob", "carol", "dave", "erin"]
        assert all(entry.exited_at for entry in hunt.phase_history)

        labels = remote.issues[issue_number].labels
        assert labels[:2] == ["hunt", "role-requirements"]
        assert {"role-spec", "role-implementation", "role-testing", "role-deploy"} <= set(labels)
        assert len(remote.comments[issue_number]) == 5

        assert manager.handoff(hunt_id)["error_type"] == "InvalidHandoff"

    def test_remote_failure_keeps_local_progress(self, temp_project_dir):
        """
        Given: a board whose remote rejects card moves
        When: a hunt is handed off
        Then: the error is reported and the local hunt still advances
        """
        remote = InMemoryCollaborator(fail_on=["move issue"])
        manager = WorkflowManager(temp_project_dir, collaborator=remote)
        manager.init_team(4, PIPELINE_TEAM)
        manager.setup_board(create_labels=False)
        hunt_id = manager.start_hunt("Checkout", assignee="alice", file_issue=True)["hunt"]["id"]

        result = manager.handoff(hunt_id)

        assert result["error_type"] == "RemoteError"
        assert "Failed to move issue" in result["error"]
        assert HuntTracker(temp_project_dir).get_hunt(hunt_id).current_phase == "spec"

    def test_roster_change_rebuilds_workflow(self, manager, temp_project_dir):
        """
        Given: a four person team
        When: members leave until one remains
        Then: the stored workflow follows the new team size and mode
        """
        manager.remove_member("erin")
        manager.remove_member("dave")
        manager.remove_member("carol")

        config = ConfigurationManager(temp_project_dir).load()
        assert config.mode == "solo"
        assert config.workflow.sequence == ["design", "implement", "merge"]
        assert config.workflow.member_mapping == {"design": "bob"}


class TestMcpToolsIntegration:
    """Integration tests driving the MCP tool functions."""

    @pytest.fixture
    def temp_project_dir(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            yield Path(temp_dir)

    def test_team_and_hunt_tools(self, temp_project_dir):
        """
        Given: an empty project directory
        When: the team, hunt and constitution tools are called in order
        Then: each step succeeds and points at the next one
        """
        root = str(temp_project_dir)
        members = [{"username": "alice", "role": "requirements"}, {"username": "bob", "role": "spec"}]

        init_result = main.init_team(2, members, name="Shop", root=root)
        assert init_result["next_suggested_step"] == "start_hunt"

        hunt_result = main.start_hunt("Search", "Full-text search", root=root)
        hunt_id = hunt_result["hunt"]["id"]
        assert hunt_result["hunt"]["currentAssignee"] == "alice"

        handoff_result = main.handoff(hunt_id, note="scope agreed", root=root)
        assert handoff_result["handoff"]["context"] == {"note": "scope agreed"}
        assert main.hunt_status(hunt_id, root=root)["hunt"]["currentPhase"] == "spec"

        assert main.init_constitution(root=root)["next_suggested_step"] == "generate_instructions"
        instructions = main.generate_instructions(["copilot"], root=root)
        assert instructions["results"][0]["success"] is True
        assert (temp_project_dir / ".github" / "copilot-instructions.md").exists()

        listing = main.list_hunts(root=root)
        assert [hunt["id"] for hunt in listing["hunts"]] == [hunt_id]
        assert json.loads(json.dumps(listing)) == listing

        report = main.team_report(root=root)
        assert report["report"]["team_name"] == "Shop"
        assert report["report"]["summary"] == {"total_hunts": 1, "completed_hunts": 0}

    def test_tool_errors_are_reported(self, temp_project_dir):
        root = str(temp_project_dir)

        result = main.team_status(root=root)

        assert result["error_type"] == "NoConfiguration"
        assert result["next_suggested_step"] == "init_team"
