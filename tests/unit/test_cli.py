"""Unit tests for the leokit command-line interface."""

import json
import pytest
import tempfile
from pathlib import Path

from leokit.cli import create_parser, main, member_spec
from leokit.hunts import HuntTracker


@pytest.fixture
def project_dir():
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


def run(project_dir, *argv):
    return main(["--root", str(project_dir), *argv])


def init_pair(project_dir):
    return run(project_dir, "team", "init", "--size", "2",
               "--member", "alice:requirements", "--member", "bob:spec")


class TestParser:
    """Test cases for argument parsing."""

    def test_member_spec(self):
        member = member_spec("alice:requirements")
        assert (member.username, member.role) == ("alice", "requirements")

    def test_member_spec_rejects_bad_value(self):
        with pytest.raises(Exception, match="USERNAME:ROLE"):
            member_spec("alice")

    def test_handoff_arguments(self):
        args = create_parser().parse_args(["hunt", "handoff", "hunt-1", "--to", "spec", "--note", "go"])

        assert args.hunt_id == "hunt-1"
        assert args.to_role == "spec"
        assert args.note == "go"

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "usage: leokit" in capsys.readouterr().out


class TestTeamCommands:
    """Test cases for 'leokit team'."""

    def test_init_and_show(self, project_dir, capsys):
        assert init_pair(project_dir) == 0
        assert "Initialized team workflow for 2 member(s)" in capsys.readouterr().out

        assert run(project_dir, "--json", "team", "show") == 0
        summary = json.loads(capsys.readouterr().out)
        assert summary["team_size"] == 2

    def test_invalid_size(self, project_dir, capsys):
        code = run(project_dir, "team", "init", "--size", "5", "--member", "a:spec")

        assert code == 1
        assert "Team size must be 1-4" in capsys.readouterr().err

    def test_show_without_team(self, project_dir, capsys):
        assert run(project_dir, "team", "show") == 1
        assert "Error:" in capsys.readouterr().err

    def test_add_member(self, project_dir, capsys):
        init_pair(project_dir)
        assert run(project_dir, "team", "add", "carol", "testing") == 0
        assert "Added carol as testing" in capsys.readouterr().out


class TestRolesAndAnalysis:
    """Test cases for 'leokit roles' and 'leokit analyze'."""

    def test_list_roles(self, project_dir, capsys):
        assert run(project_dir, "roles") == 0
        assert len(capsys.readouterr().out.strip().splitlines()) == 5

    def test_find_role(self, project_dir, capsys):
        assert run(project_dir, "roles", "--find", "release notes") == 0
        assert "Deployment Specialist" in capsys.readouterr().out

    def test_find_role_no_match(self, project_dir, capsys):
        assert run(project_dir, "roles", "--find", "lunch") == 1

    def test_analyze(self, project_dir, capsys):
        assert run(project_dir, "analyze", "build", "an", "enterprise", "platform") == 0
        out = capsys.readouterr().out
        assert "Complexity: COMPLEX" in out
        assert "SPEC-FIRST RECOMMENDED" in out


class TestHuntCommands:
    """Test cases for 'leokit hunt'."""

    def test_start_and_handoff(self, project_dir, capsys):
        init_pair(project_dir)
        assert run(project_dir, "--json", "hunt", "start", "Login") == 0
        started = json.loads(capsys.readouterr().out)
        assert started["currentAssignee"] == "alice"

        assert run(project_dir, "--json", "hunt", "handoff", started["id"], "--note", "scope agreed") == 0
        record = json.loads(capsys.readouterr().out)
        assert record["toMember"] == "bob"
        assert record["context"] == {"note": "scope agreed"}
        assert HuntTracker(project_dir).get_hunt(started["id"]).current_phase == "spec"

    def test_start_with_issue_needs_a_team(self, project_dir, capsys):
        assert run(project_dir, "hunt", "start", "Login", "--issue") == 1
        assert "Error:" in capsys.readouterr().err
        assert HuntTracker(project_dir).list_hunts() == []

    def test_handoff_invalid_target(self, project_dir, capsys):
        init_pair(project_dir)
        run(project_dir, "hunt", "start", "Login")
        hunt_id = HuntTracker(project_dir).list_hunts()[0].id
        capsys.readouterr()

        assert run(project_dir, "hunt", "handoff", hunt_id, "--to", "testing") == 1
        assert "Expected requirements → spec" in capsys.readouterr().err

    def test_list_and_stats(self, project_dir, capsys):
        run(project_dir, "hunt", "start", "Login")
        capsys.readouterr()

        assert run(project_dir, "hunt", "list") == 0
        assert "Login [not-started]" in capsys.readouterr().out
        assert run(project_dir, "hunt", "stats") == 0
        assert "total: 1" in capsys.readouterr().out

    def test_report(self, project_dir, capsys):
        init_pair(project_dir)
        run(project_dir, "hunt", "start", "Login")
        capsys.readouterr()

        assert run(project_dir, "hunt", "report", "--save") == 0
        out = capsys.readouterr().out
        assert "# 🦁 Leo Kit Team Report" in out
        assert "- Total Hunts: 1" in out
        assert (project_dir / ".leo" / "analytics.json").exists()

    def test_report_json(self, project_dir, capsys):
        assert run(project_dir, "--json", "hunt", "report") == 0
        report = json.loads(capsys.readouterr().out)
        assert report["quality"]["fastest_hunt"] is None
        assert report["team_name"] == "My Project"


class TestConstitutionAndInstructions:
    """Test cases for 'leokit constitution' and 'leokit instructions'."""

    def test_constitution_lifecycle(self, project_dir, capsys):
        assert run(project_dir, "constitution", "init") == 0
        assert run(project_dir, "constitution", "update", "Test-First Development", "--rename", "TDD") == 0
        assert "Updated principle: TDD" in capsys.readouterr().out
        assert run(project_dir, "constitution", "remove", "TDD") == 0
        assert run(project_dir, "constitution", "remove", "TDD") == 1

    def test_instructions_dry_run(self, project_dir, capsys):
        assert run(project_dir, "instructions", "copilot", "--dry-run") == 0
        assert "ok copilot: .github/copilot-instructions.md" in capsys.readouterr().out
        assert not (project_dir / ".github").exists()

    def test_instructions_unknown_ai(self, project_dir, capsys):
        assert run(project_dir, "instructions", "emacs") == 1
        assert "FAILED emacs" in capsys.readouterr().out
