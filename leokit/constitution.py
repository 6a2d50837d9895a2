"""Constitutional principles for a project.

Principles are stored in ``<root>/.leo/constitution.json`` and rendered to
``<root>/docs/CONSTITUTION.md`` after every change.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .errors import ConfigurationError, NotFound
from .leokit_logging import log_error_with_context, log_performance, observability_hooks
from .models import CONFIG_VERSION, Constitution, Principle, parse_iso, utc_now_iso

DEFAULT_PRINCIPLES = (
    Principle(
        name="Test-First Development",
        rule="Tests MUST be written before implementation (TDD)",
        enforcement="Pre-commit hooks check test coverage",
        rationale="Ensures code quality and catches bugs early",
    ),
    Principle(
        name="API-First Design",
        rule="Define contracts (APIs, data models) before implementation",
        enforcement="Planning phase requires API specifications",
        rationale="Aligns expectations and enables parallel development",
    ),
    Principle(
        name="Single Responsibility",
        rule="Each feature/component should have one clear purpose",
        enforcement="Code review checks for focused modules",
        rationale="Improves maintainability and testability",
    ),
    Principle(
        name="Dependency Limits",
        rule="Maximum 3 external dependencies per feature",
        enforcement="Dependency manifests audited during PR review",
        rationale="Reduces bloat and security vulnerabilities",
    ),
    Principle(
        name="Documentation Required",
        rule="All public APIs must have doc comments",
        enforcement="Linter enforces documentation on exports",
        rationale="Self-documenting code improves team collaboration",
    ),
)

UPDATABLE_FIELDS = ("name", "rule", "enforcement", "rationale")


class ConstitutionManager:
    """Manage the principles of one project directory."""

    def __init__(self, root: Path | str):
        self.root = Path(root).resolve()
        self.logger = logging.getLogger("leokit.constitution")

    @property
    def constitution_path(self) -> Path:
        return self.root / ".leo" / "constitution.json"

    @property
    def document_path(self) -> Path:
        return self.root / "docs" / "CONSTITUTION.md"

    def exists(self) -> bool:
        return self.constitution_path.is_file()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @log_performance("init_constitution")
    def init(self, principles: Optional[Iterable[Principle]] = None, *, force: bool = False) -> Constitution:
        """Seed the constitution, using the defaults when no principles are given."""
        if self.exists() and not force:
            raise ConfigurationError(
                f"Constitution already exists at {self.constitution_path}; pass force=True to overwrite"
            )

        chosen = [Principle(**p.to_dict()) for p in (principles if principles is not None else DEFAULT_PRINCIPLES)]
        self._check_principles(chosen)
        constitution = Constitution(version=CONFIG_VERSION, principles=chosen)
        self._persist(constitution)

        observability_hooks.log_workflow_event(
            "constitution_initialized",
            principles=len(chosen),
            path=str(self.constitution_path),
        )
        return constitution

    def load(self) -> Optional[Constitution]:
        """Load the constitution, or None when the project has none yet."""
        if not self.exists():
            return None
        try:
            data = json.loads(self.constitution_path.read_text(encoding="utf-8"))
            return Constitution.from_dict(data)
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            log_error_with_context(e, {"operation": "load_constitution", "path": str(self.constitution_path)})
            raise ConfigurationError(f"Could not read constitution at {self.constitution_path}: {e}") from e

    def get_principles(self) -> List[Principle]:
        constitution = self.load()
        return list(constitution.principles) if constitution else []

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def add_principle(self, principle: Principle) -> Constitution:
        constitution = self.load() or Constitution()
        self._check_principles([principle])
        if constitution.find(principle.name):
            raise ConfigurationError(f"Principle already exists: {principle.name}")

        constitution.principles.append(principle)
        self._persist(constitution)
        self.logger.info(f"Added principle: {principle.name}")
        return constitution

    def remove_principle(self, name: str) -> Constitution:
        constitution = self._require()
        principle = constitution.find(name)
        if principle is None:
            raise NotFound(f"Principle not found: {name}")

        constitution.principles.remove(principle)
        self._persist(constitution)
        self.logger.info(f"Removed principle: {name}")
        return constitution

    def update_principle(self, current_name: str, **updates: Any) -> Principle:
        constitution = self._require()
        principle = constitution.find(current_name)
        if principle is None:
            raise NotFound(f"Principle not found: {current_name}")

        unknown = set(updates) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ConfigurationError(f"Unknown principle fields: {', '.join(sorted(unknown))}")

        new_name = updates.get("name")
        if new_name and new_name != current_name and constitution.find(new_name):
            raise ConfigurationError(f"Principle already exists: {new_name}")

        for key, value in updates.items():
            if value is not None:
                setattr(principle, key, value)
        self._check_principles([principle])
        self._persist(constitution)
        return principle

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render_markdown(self, constitution: Constitution) -> str:
        updated = parse_iso(constitution.last_updated).date().isoformat()
        sections = []
        for index, principle in enumerate(constitution.principles, start=1):
            sections.extend([
                f"### {index}. {principle.name}",
                "",
                f"**Rule:** {principle.rule}",
                "",
                f"**Enforcement:** {principle.enforcement}",
                "",
                f"**Rationale:** {principle.rationale}",
                "",
                "---",
                "",
            ])

        lines = [
            f"# {self.root.name} Constitution",
            "",
            f"**Version:** {constitution.version}",
            f"**Last Updated:** {updated}",
            "",
            "---",
            "",
            "## Purpose",
            "",
            "This constitution defines the core principles that guide all development in this project.",
            "",
            "**All contributors MUST follow these principles.** Exceptions require explicit documentation and team approval.",
            "",
            "---",
            "",
            "## Core Principles",
            "",
            *sections,
            "## Governance",
            "",
            "1. **Proposal**: Team member proposes change via GitHub issue",
            "2. **Discussion**: Team discusses rationale and impact",
            "3. **Approval**: Requires majority approval",
            "4. **Update**: Run `leokit constitution update` to modify",
            "",
            "### Exceptions",
            "",
            "1. Must be documented in the PR description",
            "2. Require explicit approval from team lead",
            "3. Should include plan to resolve (if temporary)",
            "",
            "---",
            "",
            "*Generated by Leo Kit*",
        ]
        return "\n".join(lines) + "\n"

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require(self) -> Constitution:
        constitution = self.load()
        if constitution is None:
            raise NotFound(f"No constitution found at {self.constitution_path}")
        return constitution

    def _check_principles(self, principles: List[Principle]) -> None:
        names = set()
        for principle in principles:
            issues = principle.validate()
            if issues:
                raise ConfigurationError("; ".join(issues))
            if principle.name in names:
                raise ConfigurationError(f"Duplicate principle name: {principle.name}")
            names.add(principle.name)

    def _persist(self, constitution: Constitution) -> Dict[str, Path]:
        constitution.last_updated = utc_now_iso()
        self.constitution_path.parent.mkdir(parents=True, exist_ok=True)
        self.constitution_path.write_text(
            json.dumps(constitution.to_dict(), indent=2, ensure_ascii=False) + "\n",
            encoding="utf-8",
        )
        self.document_path.parent.mkdir(parents=True, exist_ok=True)
        self.document_path.write_text(self.render_markdown(constitution), encoding="utf-8")
        return {"config": self.constitution_path, "document": self.document_path}
