"""Instruction files for AI coding assistants.

A universal Markdown template describes the roles, the team's workflow
columns and the project's principles. Each adapter wraps it with its own
header and footer and writes it where the assistant looks for it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Type

from .config_manager import ConfigurationManager
from .constitution import ConstitutionManager
from .errors import LeoKitError, NoConfiguration
from .leokit_logging import log_operation
from .roles import ROLE_SEQUENCER, RoleSequencer
from .workflow_modes import WORKFLOW_MODES, WorkflowModeTable

logger = logging.getLogger("leokit.instructions")


@dataclass(slots=True)
class InstructionResult:
    ai: str
    file_path: Optional[str] = None
    content: str = ""
    success: bool = True
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ai": self.ai,
            "file_path": self.file_path,
            "success": self.success,
            "error": self.error,
            "metadata": dict(self.metadata),
        }


# ----------------------------------------------------------------------
# Adapters
# ----------------------------------------------------------------------


class InstructionAdapter:
    """Base adapter: wraps the universal template for one assistant."""

    name = "generic"
    display_name = "AI Assistant"
    file_path = "AI_INSTRUCTIONS.md"
    format = "markdown"

    def header(self) -> str:
        return "\n".join([
            f"# {self.display_name} Rules - Leo Kit",
            "",
            f"> **AI Assistant:** {self.display_name}",
            "> **Purpose:** Follow the team's spec-first workflow for consistent, high-quality development",
            f"> **Last Updated:** {date.today().isoformat()}",
            "",
            "---",
            "",
        ])

    def footer(self) -> str:
        return ""

    def generate_instructions(self, template: str) -> str:
        return self.header() + template + self.footer()

    def validate(self, content: str) -> bool:
        """Instructions must mention the workflow and git usage."""
        if not content:
            return False
        lowered = content.lower()
        return "workflow" in lowered and "git" in lowered

    def metadata(self) -> Dict[str, Any]:
        return {"name": self.display_name, "file_path": self.file_path, "format": self.format}


class CopilotAdapter(InstructionAdapter):
    name = "copilot"
    display_name = "GitHub Copilot"
    file_path = ".github/copilot-instructions.md"

    def footer(self) -> str:
        return "\n".join([
            "",
            "---",
            "",
            "## Copilot Tips",
            "",
            "- Use Copilot Chat with `#file` references for multi-file changes",
            "- Ask for tests alongside every implementation change",
            "",
        ])


class CursorAdapter(InstructionAdapter):
    name = "cursor"
    display_name = "Cursor"
    file_path = ".cursorrules"

    def footer(self) -> str:
        return "\n".join([
            "",
            "---",
            "",
            "## Cursor-Specific Tips",
            "",
            "- Use Composer mode for complex, multi-file changes",
            "- Reference files explicitly with @filename when needed",
            "- Use @codebase for project-wide context",
            "",
        ])


class ClineAdapter(InstructionAdapter):
    name = "cline"
    display_name = "Cline"
    file_path = ".clinerules"

    def footer(self) -> str:
        return "\n".join([
            "",
            "---",
            "",
            "## Cline-Specific Tips",
            "",
            "- Plan before acting: outline the steps before editing files",
            "- Confirm terminal commands that change remote state",
            "",
        ])


class CodeiumAdapter(InstructionAdapter):
    name = "codeium"
    display_name = "Codeium Windsurf"
    file_path = ".windsurfrules"

    def footer(self) -> str:
        return "\n".join([
            "",
            "---",
            "",
            "## Windsurf-Specific Tips",
            "",
            "- Let Cascade read related files before proposing changes",
            "- Keep each flow focused on a single hunt",
            "",
        ])


ADAPTERS: Mapping[str, Type[InstructionAdapter]] = {
    adapter.name: adapter
    for adapter in (CopilotAdapter, CursorAdapter, ClineAdapter, CodeiumAdapter)
}


# ----------------------------------------------------------------------
# Builder
# ----------------------------------------------------------------------


class InstructionsBuilder:
    """Generate and write per-assistant instruction files for a project."""

    def __init__(
        self,
        root: Path | str,
        config_manager: Optional[ConfigurationManager] = None,
        constitution: Optional[ConstitutionManager] = None,
        sequencer: RoleSequencer = ROLE_SEQUENCER,
        table: WorkflowModeTable = WORKFLOW_MODES,
    ):
        self.root = Path(root).resolve()
        self.config_manager = config_manager
        self.constitution = constitution or ConstitutionManager(self.root)
        self.sequencer = sequencer
        self.table = table

    def get_available_ais(self) -> List[str]:
        return list(ADAPTERS)

    def get_adapter(self, ai_name: str) -> InstructionAdapter:
        adapter_class = ADAPTERS.get(ai_name)
        if adapter_class is None:
            raise ValueError(f"Unknown AI assistant: {ai_name}. Available: {', '.join(ADAPTERS)}")
        return adapter_class()

    # ------------------------------------------------------------------
    # Template
    # ------------------------------------------------------------------

    def universal_template(self) -> str:
        sections = [self._roles_section(), self._workflow_section(), self._principles_section(), self._git_section()]
        return "\n".join(section for section in sections if section)

    def _roles_section(self) -> str:
        lines = ["## Roles", "", f"Sequence: {self.sequencer.get_display_string()}", ""]
        for role in self.sequencer.get_all_roles():
            lines.append(f"### {role.display_name}")
            lines.append("")
            lines.append(f"{role.description} (label `{role.github_label}`, typical effort {role.estimated_duration}).")
            lines.append("")
            lines.extend(f"- {item}" for item in role.responsibilities)
            lines.append("")
        return "\n".join(lines)

    def _workflow_section(self) -> str:
        config = self._team_config()
        lines = ["## Team Workflow", ""]
        if config is None or not config.team_size:
            lines.append("No team configured yet. Run `leokit team init` to set one up.")
            lines.append("")
            return "\n".join(lines)

        lines.append(f"Mode: **{config.mode}** ({config.team_size} member(s))")
        lines.append("")
        mapping = config.workflow.member_mapping
        for column in self.table.get_columns(config.team_size):
            owner = mapping.get(column.id, "Unassigned")
            roles = ", ".join(column.role_list) or "none"
            lines.append(f"{column.position}. {column.emoji} **{column.name}** ({roles}) - {owner}")
        lines.append("")
        lines.append("Hand work to the next column only when the current phase is complete.")
        lines.append("")
        return "\n".join(lines)

    def _principles_section(self) -> str:
        principles = self.constitution.get_principles()
        if not principles:
            return ""
        lines = ["## Constitutional Principles", ""]
        for principle in principles:
            lines.append(f"- **{principle.name}:** {principle.rule} _(enforced by: {principle.enforcement})_")
        lines.append("")
        return "\n".join(lines)

    def _git_section(self) -> str:
        return "\n".join([
            "## Git Workflow",
            "",
            "- Create a GitHub issue for every piece of work before starting it",
            "- Reference the issue number in every commit message",
            "- Keep commit subjects under 72 characters",
            "- Write a specification first for complex work and get it approved",
            "",
        ])

    def _team_config(self):
        if self.config_manager is None:
            return None
        try:
            return self.config_manager.get_config()
        except NoConfiguration:
            if not self.config_manager.exists():
                return None
            return self.config_manager.load()

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def generate_for_ai(self, ai_name: str, template: Optional[str] = None) -> InstructionResult:
        adapter = self.get_adapter(ai_name)
        content = adapter.generate_instructions(template if template is not None else self.universal_template())
        if not adapter.validate(content):
            raise ValueError(f"Generated instructions for {ai_name} failed validation")
        return InstructionResult(
            ai=ai_name,
            file_path=adapter.file_path,
            content=content,
            metadata=adapter.metadata(),
        )

    def generate_for_multiple(self, ai_names: Iterable[str]) -> List[InstructionResult]:
        """Generate for each assistant; failures are reported per assistant."""
        template = self.universal_template()
        results = []
        for ai_name in ai_names:
            try:
                results.append(self.generate_for_ai(ai_name, template))
            except (ValueError, LeoKitError) as e:
                logger.warning(f"Failed to generate instructions for {ai_name}: {e}")
                results.append(InstructionResult(ai=ai_name, success=False, error=str(e)))
        return results

    def write(self, results: Iterable[InstructionResult]) -> Dict[str, List[str]]:
        summary: Dict[str, List[str]] = {"written": [], "failed": []}
        with log_operation("write_instructions"):
            for result in results:
                if not result.success or not result.file_path:
                    summary["failed"].append(result.ai)
                    continue
                path = self.root / result.file_path
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_text(result.content, encoding="utf-8")
                summary["written"].append(str(path))
        return summary

    def detect_existing(self) -> List[str]:
        return [name for name, adapter in ADAPTERS.items() if (self.root / adapter.file_path).exists()]
