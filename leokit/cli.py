"""
leokit.cli - Command-line interface.

Main entry point for the ``leokit`` command.
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from typing import Any, Dict, List, Optional

from . import __version__
from .analytics import HuntAnalytics
from .complexity import ComplexityEstimator
from .config_manager import ConfigurationManager
from .constitution import ConstitutionManager
from .errors import InvalidHandoff, LeoKitError
from .github import GhCliCollaborator, ProjectBoardBuilder
from .handoff import HandoffCoordinator
from .hunts import HuntTracker
from .instructions import ADAPTERS, InstructionsBuilder
from .leokit_logging import setup_logging
from .models import HUNT_STATUSES, Principle, TeamMember
from .roles import ROLE_SEQUENCER
from .workflow import resolve_project_root
from .workflow_modes import WORKFLOW_MODES

LOG_LEVEL_ENV = "LEOKIT_LOG_LEVEL"


def member_spec(value: str) -> TeamMember:
    """Parse ``username:role`` into a TeamMember."""
    username, sep, role = value.partition(":")
    if not sep or not username or not role:
        raise argparse.ArgumentTypeError(f"expected USERNAME:ROLE, got {value!r}")
    return TeamMember(username=username.strip(), role=role.strip())


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="leokit",
        description="Spec-first team workflow kit: roles, hunts, handoffs and AI instructions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  leokit team init --size 2 --member alice:requirements --member bob:spec
  leokit analyze "build a full enterprise application"
  leokit hunt start "Login page" --description "OAuth login"
  leokit hunt handoff hunt-1a2b3c4d
  leokit instructions copilot cursor
        """,
    )
    parser.add_argument("--version", action="version", version=f"leokit {__version__}")
    parser.add_argument("--root", help="Project root (default: auto-detect)", metavar="PATH")
    parser.add_argument(
        "--log-level",
        default=os.getenv(LOG_LEVEL_ENV, "WARNING"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: $LEOKIT_LOG_LEVEL or WARNING)",
    )
    parser.add_argument("--json", action="store_true", help="Print machine-readable JSON")
    parser.add_argument("--repo", help="GitHub repository (OWNER/NAME) for gh commands")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # team
    team_parser = subparsers.add_parser("team", help="Manage the team roster")
    team_sub = team_parser.add_subparsers(dest="team_command")
    team_init = team_sub.add_parser("init", help="Create the team configuration")
    team_init.add_argument("--size", type=int, required=True, help="Team size (1-4)")
    team_init.add_argument("--member", type=member_spec, action="append", default=[],
                           help="USERNAME:ROLE, repeat once per member")
    team_init.add_argument("--name", default="My Project", help="Project name")
    team_add = team_sub.add_parser("add", help="Add a team member")
    team_add.add_argument("username")
    team_add.add_argument("role")
    team_remove = team_sub.add_parser("remove", help="Remove a team member")
    team_remove.add_argument("username")
    team_reassign = team_sub.add_parser("reassign", help="Change a member's role")
    team_reassign.add_argument("username")
    team_reassign.add_argument("role")
    team_sub.add_parser("show", help="Show the team and its workflow")

    # roles
    roles_parser = subparsers.add_parser("roles", help="List roles or match one by keyword")
    roles_parser.add_argument("--find", metavar="TEXT", help="Find the role matching TEXT")

    # hunt
    hunt_parser = subparsers.add_parser("hunt", help="Track hunts through the role sequence")
    hunt_sub = hunt_parser.add_subparsers(dest="hunt_command")
    hunt_start = hunt_sub.add_parser("start", help="Start a hunt")
    hunt_start.add_argument("feature_name")
    hunt_start.add_argument("--description", default="")
    hunt_start.add_argument("--assignee", help="Defaults to the requirements owner")
    hunt_start.add_argument("--issue", action="store_true", help="File a GitHub issue for the hunt")
    hunt_begin = hunt_sub.add_parser("begin", help="Begin a not-started hunt")
    hunt_begin.add_argument("hunt_id")
    hunt_begin.add_argument("--assignee")
    hunt_handoff = hunt_sub.add_parser("handoff", help="Hand a hunt to the next role")
    hunt_handoff.add_argument("hunt_id")
    hunt_handoff.add_argument("--to", dest="to_role", help="Target role (default: next in sequence)")
    hunt_handoff.add_argument("--note", help="Context note passed with the handoff")
    hunt_complete = hunt_sub.add_parser("complete", help="Complete a hunt at the final role")
    hunt_complete.add_argument("hunt_id")
    hunt_show = hunt_sub.add_parser("show", help="Show one hunt")
    hunt_show.add_argument("hunt_id")
    hunt_list = hunt_sub.add_parser("list", help="List hunts")
    hunt_list.add_argument("--status", choices=HUNT_STATUSES)
    hunt_sub.add_parser("stats", help="Hunt statistics")
    hunt_report = hunt_sub.add_parser("report", help="Team analytics over all hunts")
    hunt_report.add_argument("--save", action="store_true", help="Also write .leo/analytics.json")

    # analyze
    analyze_parser = subparsers.add_parser("analyze", help="Estimate task complexity")
    analyze_parser.add_argument("description", nargs="+")

    # constitution
    const_parser = subparsers.add_parser("constitution", help="Manage constitutional principles")
    const_sub = const_parser.add_subparsers(dest="constitution_command")
    const_init = const_sub.add_parser("init", help="Seed the default principles")
    const_init.add_argument("--force", action="store_true", help="Overwrite an existing constitution")
    const_sub.add_parser("show", help="List principles")
    const_add = const_sub.add_parser("add", help="Add a principle")
    const_add.add_argument("name")
    const_add.add_argument("rule")
    const_add.add_argument("--enforcement", default="Code review")
    const_add.add_argument("--rationale", default="Improves code quality and consistency")
    const_update = const_sub.add_parser("update", help="Update a principle")
    const_update.add_argument("name")
    const_update.add_argument("--rule")
    const_update.add_argument("--enforcement")
    const_update.add_argument("--rationale")
    const_update.add_argument("--rename", dest="new_name")
    const_remove = const_sub.add_parser("remove", help="Remove a principle")
    const_remove.add_argument("name")

    # instructions
    instr_parser = subparsers.add_parser("instructions", help="Write AI assistant instruction files")
    instr_parser.add_argument("ais", nargs="*", metavar="AI", help=f"One or more of: {', '.join(ADAPTERS)}")
    instr_parser.add_argument("--dry-run", action="store_true", help="Generate without writing files")

    # board
    board_parser = subparsers.add_parser("board", help="GitHub project board automation (gh CLI)")
    board_sub = board_parser.add_subparsers(dest="board_command")
    board_setup = board_sub.add_parser("setup", help="Create labels and a board for the team workflow")
    board_setup.add_argument("--title")
    board_setup.add_argument("--owner", default="@me")
    board_sub.add_parser("rate-limit", help="Show the remaining GitHub API budget")

    return parser


# ----------------------------------------------------------------------
# Output helpers
# ----------------------------------------------------------------------


def _emit(args: argparse.Namespace, payload: Dict[str, Any], lines: List[str]) -> None:
    if args.json:
        print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))
    else:
        print("\n".join(lines))


def _loaded_config(root) -> ConfigurationManager:
    manager = ConfigurationManager(root)
    manager.load()
    return manager


def _collaborator(args: argparse.Namespace, owner: str = "@me") -> GhCliCollaborator:
    return GhCliCollaborator(repo=args.repo, owner=owner)


# ----------------------------------------------------------------------
# Commands
# ----------------------------------------------------------------------


def team_command(args: argparse.Namespace, root) -> int:
    manager = ConfigurationManager(root)

    if args.team_command == "init":
        config = manager.initialize(args.size, args.member, name=args.name)
        _emit(args, config.to_dict(), [
            f"Initialized {config.mode} workflow for {config.team_size} member(s): {manager.config_path}",
            *WORKFLOW_MODES.get_recommendations(config.team_size)["recommendations"],
        ])
        return 0

    manager.load()
    if args.team_command == "add":
        members = manager.add_member(args.username, args.role)
        _emit(args, {"members": [m.to_dict() for m in members]}, [f"Added {args.username} as {args.role}"])
    elif args.team_command == "remove":
        members = manager.remove_member(args.username)
        _emit(args, {"members": [m.to_dict() for m in members]}, [f"Removed {args.username}"])
    elif args.team_command == "reassign":
        member = manager.update_member_role(args.username, args.role)
        _emit(args, member.to_dict(), [f"{member.username} now holds {member.role}"])
    else:
        summary = manager.get_summary()
        lines = [f"{summary['name']} ({summary['mode']}, {summary['team_size']} member(s))"]
        lines.extend(f"  {m['username']}: {ROLE_SEQUENCER.format_role(m['role'])}" for m in summary["members"])
        if summary["team_size"]:
            lines.append("")
            setup = WORKFLOW_MODES.get_github_setup_instructions(summary["team_size"], manager.get_members())
            lines.extend(f"  {c['name']} -> {c['assignee']}" for c in setup["columns"])
        _emit(args, summary, lines)
    return 0


def roles_command(args: argparse.Namespace, root) -> int:
    if args.find is not None:
        role = ROLE_SEQUENCER.find_role_by_keyword(args.find)
        if role is None:
            print(f"No role matches {args.find!r}", file=sys.stderr)
            return 1
        _emit(args, role.to_dict(), [role.display_name])
        return 0

    roles = ROLE_SEQUENCER.get_all_roles()
    _emit(args, {"roles": [r.to_dict() for r in roles]}, [
        f"{r.sequence_order}. {r.display_name} - {r.description}" for r in roles
    ])
    return 0


def hunt_command(args: argparse.Namespace, root) -> int:
    tracker = HuntTracker(root)

    if args.hunt_command == "start":
        assignee = args.assignee
        manager = ConfigurationManager(root)
        if assignee is None and manager.exists():
            holder = manager.load().member_for_role(ROLE_SEQUENCER.get_sequence()[0])
            assignee = holder.username if holder else None
        board = ProjectBoardBuilder(_collaborator(args), _loaded_config(root), tracker) if args.issue else None
        hunt = tracker.start_hunt(args.feature_name, args.description, first_assignee=assignee)
        if board is not None:
            board.file_hunt(hunt)
        _emit(args, hunt.to_dict(), [f"Started {tracker.format_hunt(hunt)}"])
    elif args.hunt_command == "begin":
        assignee = args.assignee
        if assignee is None:
            holder = _loaded_config(root).get_member_by_role(ROLE_SEQUENCER.get_sequence()[0])
            assignee = holder.username if holder else None
        hunt = tracker.begin(args.hunt_id, assignee)
        _emit(args, hunt.to_dict(), [tracker.format_hunt(hunt)])
    elif args.hunt_command == "handoff":
        manager = _loaded_config(root)
        config = manager.get_config()
        hunt = tracker.get_hunt(args.hunt_id)
        if not hunt.current_phase:
            raise InvalidHandoff(f"Hunt {hunt.id} has not started; run 'leokit hunt begin' first")
        target = args.to_role or ROLE_SEQUENCER.get_next_role(hunt.current_phase)
        if target is None:
            raise InvalidHandoff(f"Hunt {hunt.id} is at the final role; run 'leokit hunt complete'")
        board = ProjectBoardBuilder(_collaborator(args), manager, tracker) if config.github.enabled else None
        coordinator = HandoffCoordinator(config.members, tracker=tracker, board=board)
        context = {"note": args.note} if args.note else None
        record = coordinator.execute_handoff(hunt, hunt.current_phase, target, context)
        _emit(args, record.to_dict(), [
            coordinator.format_handoff_notification(record.from_role, record.to_role, hunt.id, hunt.feature_name)
        ])
    elif args.hunt_command == "complete":
        hunt = tracker.complete_hunt(args.hunt_id)
        _emit(args, hunt.to_dict(), [f"Completed {hunt.feature_name} in {hunt.total_duration()} minutes"])
    elif args.hunt_command == "show":
        hunt = tracker.get_hunt(args.hunt_id)
        _emit(args, hunt.to_dict(), [tracker.render_issue_body(hunt)])
    elif args.hunt_command == "list":
        hunts = tracker.list_hunts(args.status)
        lines = [tracker.format_hunt(h) for h in hunts] or ["No hunts"]
        _emit(args, {"hunts": [h.to_dict() for h in hunts]}, lines)
    elif args.hunt_command == "report":
        analytics = HuntAnalytics(tracker)
        manager = ConfigurationManager(root)
        name = manager.load().name if manager.exists() else "My Project"
        report = analytics.generate_team_report(name)
        lines = [analytics.format_report_as_markdown(report)]
        if args.save:
            lines.append(f"Saved report to {analytics.save(report)}")
        _emit(args, report, lines)
    else:
        stats = tracker.statistics()
        _emit(args, stats, [f"{key}: {value}" for key, value in stats.items()])
    return 0


def analyze_command(args: argparse.Namespace, root) -> int:
    estimator = ComplexityEstimator()
    analysis = estimator.analyze(" ".join(args.description))
    _emit(args, analysis.to_dict(), [
        estimator.format_analysis(analysis),
        "",
        estimator.get_recommendation(analysis),
    ])
    return 0


def constitution_command(args: argparse.Namespace, root) -> int:
    manager = ConstitutionManager(root)

    if args.constitution_command == "init":
        constitution = manager.init(force=args.force)
        _emit(args, constitution.to_dict(), [
            f"{len(constitution.principles)} principles written to {manager.document_path}"
        ])
    elif args.constitution_command == "add":
        constitution = manager.add_principle(Principle(
            name=args.name, rule=args.rule, enforcement=args.enforcement, rationale=args.rationale,
        ))
        _emit(args, constitution.to_dict(), [f"Added principle: {args.name}"])
    elif args.constitution_command == "update":
        principle = manager.update_principle(
            args.name, name=args.new_name, rule=args.rule, enforcement=args.enforcement, rationale=args.rationale,
        )
        _emit(args, principle.to_dict(), [f"Updated principle: {principle.name}"])
    elif args.constitution_command == "remove":
        manager.remove_principle(args.name)
        _emit(args, {"removed": args.name}, [f"Removed principle: {args.name}"])
    else:
        principles = manager.get_principles()
        lines = [f"- {p.name}: {p.rule}" for p in principles] or ["No constitution yet; run 'leokit constitution init'"]
        _emit(args, {"principles": [p.to_dict() for p in principles]}, lines)
    return 0


def instructions_command(args: argparse.Namespace, root) -> int:
    manager = ConfigurationManager(root)
    builder = InstructionsBuilder(root, manager if manager.exists() else None)
    results = builder.generate_for_multiple(args.ais or builder.get_available_ais())
    payload: Dict[str, Any] = {"results": [r.to_dict() for r in results]}
    lines = [f"{'ok' if r.success else 'FAILED'} {r.ai}: {r.file_path or r.error}" for r in results]
    if not args.dry_run:
        payload.update(builder.write(results))
    _emit(args, payload, lines)
    return 0 if all(r.success for r in results) else 1


def board_command(args: argparse.Namespace, root) -> int:
    if args.board_command == "setup":
        builder = ProjectBoardBuilder(_collaborator(args, args.owner), _loaded_config(root))
        labels = builder.setup_labels()
        board = builder.create_board(args.title)
        _emit(args, {"board": board.id, "number": board.number, "url": board.url, "labels": labels}, [
            f"Created board #{board.number} {board.url}",
            f"Labels: {', '.join(labels)}",
        ])
        return 0

    limit = _collaborator(args).get_rate_limit()
    _emit(args, {"limit": limit.limit, "remaining": limit.remaining, "reset": limit.reset}, [
        f"{limit.remaining}/{limit.limit} requests remaining" + (" (near limit)" if limit.near_limit else "")
    ])
    return 0


COMMANDS = {
    "team": team_command,
    "roles": roles_command,
    "hunt": hunt_command,
    "analyze": analyze_command,
    "constitution": constitution_command,
    "instructions": instructions_command,
    "board": board_command,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI; returns the exit code."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    setup_logging(args.log_level)

    try:
        root = resolve_project_root(args.root)
        return COMMANDS[args.command](args, root)
    except KeyboardInterrupt:
        print("\nOperation cancelled.", file=sys.stderr)
        return 130
    except (LeoKitError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
