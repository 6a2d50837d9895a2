"""Unit tests for constitution management."""

import json
import pytest
import tempfile
from pathlib import Path

from leokit.constitution import DEFAULT_PRINCIPLES, ConstitutionManager
from leokit.errors import ConfigurationError, NotFound
from leokit.models import Principle


@pytest.fixture
def manager():
    with tempfile.TemporaryDirectory() as temp_dir:
        yield ConstitutionManager(Path(temp_dir))


class TestInit:
    """Test cases for seeding a constitution."""

    def test_init_with_defaults(self, manager):
        constitution = manager.init()

        assert [p.name for p in constitution.principles] == [p.name for p in DEFAULT_PRINCIPLES]
        assert manager.constitution_path.exists()
        assert manager.document_path.exists()

    def test_defaults_are_not_shared(self, manager):
        constitution = manager.init()
        constitution.principles[0].rule = "changed"

        assert DEFAULT_PRINCIPLES[0].rule != "changed"

    def test_init_twice_requires_force(self, manager):
        manager.init()
        with pytest.raises(ConfigurationError, match="already exists"):
            manager.init()

        constitution = manager.init([Principle(name="Only", rule="One rule")], force=True)
        assert [p.name for p in constitution.principles] == ["Only"]

    def test_init_rejects_duplicate_names(self, manager):
        with pytest.raises(ConfigurationError, match="Duplicate principle name"):
            manager.init([Principle(name="A", rule="a"), Principle(name="A", rule="b")])

    def test_init_rejects_invalid_principle(self, manager):
        with pytest.raises(ConfigurationError, match="rule is required"):
            manager.init([Principle(name="A", rule="")])


class TestLoad:
    """Test cases for loading."""

    def test_load_missing(self, manager):
        assert manager.load() is None
        assert manager.get_principles() == []

    def test_load_round_trip(self, manager):
        manager.init()
        loaded = ConstitutionManager(manager.root).load()

        assert len(loaded.principles) == len(DEFAULT_PRINCIPLES)
        assert loaded.principles[0].enforcement == DEFAULT_PRINCIPLES[0].enforcement

    def test_corrupt_document(self, manager):
        manager.constitution_path.parent.mkdir(parents=True)
        manager.constitution_path.write_text(json.dumps({"principles": [{"rule": "no name"}]}))

        with pytest.raises(ConfigurationError, match="Could not read constitution"):
            manager.load()


class TestEdits:
    """Test cases for add, update and remove."""

    def test_add_principle_without_existing_constitution(self, manager):
        constitution = manager.add_principle(Principle(name="Small PRs", rule="Under 400 lines"))

        assert [p.name for p in constitution.principles] == ["Small PRs"]
        assert manager.exists()

    def test_add_duplicate(self, manager):
        manager.init()
        with pytest.raises(ConfigurationError, match="already exists"):
            manager.add_principle(Principle(name="API-First Design", rule="again"))

    def test_remove_principle(self, manager):
        manager.init()
        constitution = manager.remove_principle("Dependency Limits")

        assert constitution.find("Dependency Limits") is None
        assert "Dependency Limits" not in manager.document_path.read_text()

    def test_remove_missing(self, manager):
        manager.init()
        with pytest.raises(NotFound):
            manager.remove_principle("Nope")

    def test_remove_without_constitution(self, manager):
        with pytest.raises(NotFound):
            manager.remove_principle("Test-First Development")

    def test_update_principle(self, manager):
        manager.init()
        principle = manager.update_principle("Test-First Development", rule="Tests first", rationale=None)

        assert principle.rule == "Tests first"
        assert principle.rationale == DEFAULT_PRINCIPLES[0].rationale
        assert ConstitutionManager(manager.root).load().find("Test-First Development").rule == "Tests first"

    def test_rename_principle(self, manager):
        manager.init()
        manager.update_principle("Test-First Development", name="TDD")

        names = [p.name for p in manager.get_principles()]
        assert "TDD" in names
        assert "Test-First Development" not in names

    def test_rename_clash(self, manager):
        manager.init()
        with pytest.raises(ConfigurationError, match="already exists"):
            manager.update_principle("Test-First Development", name="API-First Design")

    def test_update_unknown_field(self, manager):
        manager.init()
        with pytest.raises(ConfigurationError, match="Unknown principle fields: owner"):
            manager.update_principle("Test-First Development", owner="alice")


class TestRendering:
    """Test cases for the Markdown document."""

    def test_document_sections(self, manager):
        manager.init()
        document = manager.document_path.read_text()

        assert document.startswith(f"# {manager.root.name} Constitution")
        assert "### 1. Test-First Development" in document
        assert "**Rule:** Tests MUST be written before implementation (TDD)" in document
        assert "## Governance" in document
