"""MCP server exposing Leo Kit team workflow tools."""

from __future__ import annotations

import os
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.resources import TextResource

from leokit.github import GhCliCollaborator
from leokit.workflow import WorkflowManager, resolve_project_root

mcp = FastMCP("leo-kit")

GITHUB_REPO_ENV = "LEOKIT_GITHUB_REPO"
GITHUB_OWNER_ENV = "LEOKIT_GITHUB_OWNER"
HUNTS_URI = "leokit://hunts"


def _manager(root: Optional[str]) -> WorkflowManager:
    resolved = resolve_project_root(root)
    collaborator = GhCliCollaborator(
        repo=os.getenv(GITHUB_REPO_ENV),
        owner=os.getenv(GITHUB_OWNER_ENV, "@me"),
    )
    return WorkflowManager(resolved, collaborator=collaborator)


# ----------------------------------------------------------------------
# Team
# ----------------------------------------------------------------------


@mcp.tool()
def init_team(
    team_size: int,
    members: List[Dict[str, str]],
    name: str = "My Project",
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """STEP 1: Create the team configuration (.leo.json).
    `members` is a list of {"username", "role"} objects, one per seat; roles are
    requirements, spec, implementation, testing or deploy."""

    return _manager(root).init_team(team_size, members, name=name)


@mcp.tool()
def add_member(username: str, role: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Add a member to the team; the workflow layout is re-derived for the new size."""

    return _manager(root).add_member(username, role)


@mcp.tool()
def remove_member(username: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Remove a member from the team."""

    return _manager(root).remove_member(username)


@mcp.tool()
def team_status(root: Optional[str] = None) -> Dict[str, Any]:
    """Show the roster, the workflow columns with their owners and team recommendations."""

    return _manager(root).team_status()


@mcp.tool()
def get_roles() -> Dict[str, Any]:
    """List the five roles in hunt order with their responsibilities."""

    return WorkflowManager(resolve_project_root(None)).get_roles()


@mcp.tool()
def find_role(text: str) -> Dict[str, Any]:
    """Suggest the role whose keywords best match a piece of text."""

    return WorkflowManager(resolve_project_root(None)).find_role(text)


# ----------------------------------------------------------------------
# Analysis
# ----------------------------------------------------------------------


@mcp.tool()
def analyze_task(description: str) -> Dict[str, Any]:
    """Estimate complexity, task type and effort, and say whether to write a spec first."""

    return WorkflowManager(resolve_project_root(None)).analyze_task(description)


# ----------------------------------------------------------------------
# Hunts
# ----------------------------------------------------------------------


@mcp.tool()
def start_hunt(
    feature_name: str,
    description: str = "",
    assignee: Optional[str] = None,
    file_issue: bool = False,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """STEP 2: Start a hunt for a feature. The requirements owner is assigned
    unless `assignee` is given. Set `file_issue` to open a GitHub issue (gh CLI)."""

    return _manager(root).start_hunt(feature_name, description, assignee=assignee, file_issue=file_issue)


@mcp.tool()
def begin_hunt(hunt_id: str, assignee: Optional[str] = None, root: Optional[str] = None) -> Dict[str, Any]:
    """Move a not-started hunt into its first phase."""

    return _manager(root).begin_hunt(hunt_id, assignee)


@mcp.tool()
def handoff(
    hunt_id: str,
    to_role: Optional[str] = None,
    note: Optional[str] = None,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """STEP 3: Hand a hunt to the next role in sequence
    (requirements → spec → implementation → testing → deploy)."""

    context = {"note": note} if note else None
    return _manager(root).handoff(hunt_id, to_role, context)


@mcp.tool()
def complete_hunt(hunt_id: str, root: Optional[str] = None) -> Dict[str, Any]:
    """STEP 4 (FINAL): Complete a hunt that has reached the deploy role."""

    return _manager(root).complete_hunt(hunt_id)


@mcp.tool()
def hunt_status(hunt_id: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Show a hunt with its phase history and whether it can be handed off."""

    return _manager(root).hunt_status(hunt_id)


@mcp.tool()
def list_hunts(status: Optional[str] = None, root: Optional[str] = None) -> Dict[str, Any]:
    """List hunts, optionally filtered by status (not-started, in-progress, completed)."""

    return _manager(root).list_hunts(status)


@mcp.tool()
def team_report(save: bool = False, root: Optional[str] = None) -> Dict[str, Any]:
    """Team analytics: velocity, role utilization, hunt durations and bottleneck phases.

    The Markdown rendering is returned under "markdown"; save=True also writes
    the report to .leo/analytics.json.
    """

    return _manager(root).team_report(save=save)


@mcp.resource(HUNTS_URI)
def resource_hunts():
    """Resource view of the hunts in the detected project."""

    manager = WorkflowManager(resolve_project_root(None))
    hunts = manager.tracker.list_hunts()
    if not hunts:
        return TextResource(uri=HUNTS_URI, name="hunts", text="No hunts have been started yet.")

    lines = ["Leo Kit Hunts"]
    for hunt in hunts:
        lines.append(f"- {manager.tracker.format_hunt(hunt)}")
    return TextResource(uri=HUNTS_URI, name="hunts", text="\n".join(lines))


# ----------------------------------------------------------------------
# GitHub board
# ----------------------------------------------------------------------


@mcp.tool()
def setup_board(title: Optional[str] = None, root: Optional[str] = None) -> Dict[str, Any]:
    """Create role labels and a GitHub project board that mirrors the team workflow."""

    return _manager(root).setup_board(title)


# ----------------------------------------------------------------------
# Constitution
# ----------------------------------------------------------------------


@mcp.tool()
def init_constitution(force: bool = False, root: Optional[str] = None) -> Dict[str, Any]:
    """Seed the default constitutional principles and write docs/CONSTITUTION.md."""

    return _manager(root).init_constitution(force=force)


@mcp.tool()
def get_constitution(root: Optional[str] = None) -> Dict[str, Any]:
    """Return the project's constitutional principles."""

    return _manager(root).get_constitution()


@mcp.tool()
def add_principle(
    name: str,
    rule: str,
    enforcement: str = "Code review",
    rationale: str = "Improves code quality and consistency",
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """Add a constitutional principle."""

    return _manager(root).add_principle(name, rule, enforcement, rationale)


@mcp.tool()
def remove_principle(name: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Remove a constitutional principle by name."""

    return _manager(root).remove_principle(name)


@mcp.tool()
def update_principle(
    name: str,
    rule: Optional[str] = None,
    enforcement: Optional[str] = None,
    rationale: Optional[str] = None,
    new_name: Optional[str] = None,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """Update fields of an existing principle; omitted fields are left unchanged."""

    return _manager(root).update_principle(
        name, rule=rule, enforcement=enforcement, rationale=rationale, new_name=new_name
    )


# ----------------------------------------------------------------------
# AI instructions
# ----------------------------------------------------------------------


@mcp.tool()
def generate_instructions(
    ais: Optional[List[str]] = None,
    write: bool = True,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """Write instruction files for copilot, cursor, cline and/or codeium."""

    return _manager(root).generate_instructions(ais, write=write)


@mcp.tool()
def get_workflow_guide() -> Dict[str, Any]:
    """Get guidance on the recommended Leo Kit workflow."""
    return {
        "workflow_overview": "Spec-first team workflow in recommended order",
        "steps": [
            {"step": 1, "tool": "init_team", "description": "Create the roster and derive the board layout"},
            {"step": 2, "tool": "analyze_task", "description": "Decide whether the work needs a spec first"},
            {"step": 3, "tool": "start_hunt", "description": "Start tracking the feature at the requirements role"},
            {"step": 4, "tool": "handoff", "description": "Move the hunt one role forward when a phase is done"},
            {"step": 5, "tool": "complete_hunt", "description": "Close the hunt after deploy"},
        ],
        "tips": [
            "Handoffs only move one step forward; skipping roles is rejected",
            "Every role in the sequence needs an owner for handoffs to succeed",
            "Use init_constitution and generate_instructions to share rules with AI assistants",
        ],
    }


if __name__ == "__main__":
    mcp.run(transport="stdio")
