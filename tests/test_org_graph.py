"""Tests for registry/loader.py and registry/hierarchy.py: the organization graph."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from cadre.registry.hierarchy import (
    has_manager_skill,
    is_direct_report,
    is_discoverable_by_manager,
    is_manager_agent,
    normalize_agent_id,
)
from cadre.registry.loader import OrgGraph
from cadre.registry.models import AgentType, ManifestSource


class TestListManifests:
    def test_sorted_by_id(self, graph: OrgGraph):
        ids = [m.agent_id for m in graph.list_manifests()]
        assert ids == ["ceo", "cto", "engineer", "qa"]

    def test_sorted_regardless_of_creation_order(self, graph: OrgGraph, write_agent):
        write_agent("aardvark", reports_to="ceo")
        write_agent("zebra", reports_to="ceo")
        ids = [m.agent_id for m in graph.list_manifests()]
        assert ids == sorted(ids)
        assert ids[0] == "aardvark"

    def test_missing_workspaces_dir(self, tmp_path: Path):
        assert OrgGraph(tmp_path / "nope").list_manifests() == []

    def test_reflects_disk_changes(self, graph: OrgGraph, write_agent):
        assert not graph.has_agent("designer")
        write_agent("designer", reports_to="cto")
        assert graph.has_agent("designer")
        assert "designer" in [m.agent_id for m in graph.list_manifests()]


class TestGetManifest:
    def test_frontmatter_manifest(self, graph: OrgGraph):
        manifest = graph.get_manifest("cto")
        assert manifest.source == ManifestSource.FRONTMATTER
        assert manifest.metadata.type == AgentType.MANAGER
        assert manifest.metadata.reports_to == "ceo"
        assert manifest.metadata.tags == ["architecture", "api"]

    def test_root_has_no_manager(self, graph: OrgGraph):
        assert graph.get_manifest("ceo").metadata.reports_to is None

    def test_missing_agent_is_synthesized(self, graph: OrgGraph):
        manifest = graph.get_manifest("ghost")
        assert manifest.source == ManifestSource.DERIVED
        assert manifest.metadata.type == AgentType.INDIVIDUAL
        assert manifest.metadata.reports_to == "ceo"
        assert manifest.metadata.skills == []

    def test_workspace_without_manifest_uses_display_name(self, home: Path, graph: OrgGraph):
        workspace = home / "workspaces" / "writer"
        workspace.mkdir()
        (workspace / "workspace.json").write_text(json.dumps({"displayName": "Copy Writer"}))
        manifest = graph.get_manifest("writer")
        assert manifest.source == ManifestSource.DERIVED
        assert manifest.metadata.name == "Copy Writer"

    def test_id_is_normalized(self, graph: OrgGraph):
        assert graph.get_manifest("  CTO ").agent_id == "cto"

    def test_root_id_injected_at_construction(self, home: Path):
        graph = OrgGraph(home / "workspaces", root_agent_id="cto")
        assert graph.root_agent_id == "cto"
        assert graph.get_manifest("cto").metadata.reports_to is None
        assert graph.get_manifest("ghost").metadata.reports_to == "cto"


class TestHierarchy:
    def test_direct_reports(self, graph: OrgGraph):
        assert [m.agent_id for m in graph.list_direct_reports("ceo")] == ["cto", "qa"]
        assert [m.agent_id for m in graph.list_direct_reports("cto")] == ["engineer"]
        assert graph.list_direct_reports("engineer") == []

    def test_all_reportees(self, graph: OrgGraph):
        assert [m.agent_id for m in graph.list_all_reportees("ceo")] == [
            "cto",
            "qa",
            "engineer",
        ]

    def test_all_reportees_cycle_safe(self, graph: OrgGraph, write_agent):
        write_agent("a", manager=True, reports_to="b")
        write_agent("b", manager=True, reports_to="a")
        ids = [m.agent_id for m in graph.list_all_reportees("a")]
        assert ids == ["b"]

    def test_resolve_entry_existing(self, graph: OrgGraph):
        assert graph.resolve_entry_agent_id("CTO") == "cto"

    def test_resolve_entry_unknown_falls_back_to_root(self, graph: OrgGraph):
        assert graph.resolve_entry_agent_id("nobody") == "ceo"
        assert graph.resolve_entry_agent_id("") == "ceo"

    def test_resolve_entry_without_root_uses_first(self, home: Path):
        graph = OrgGraph(home / "workspaces", root_agent_id="goat")
        assert graph.resolve_entry_agent_id("nobody") == "ceo"

    def test_resolve_entry_empty_org(self, tmp_path: Path):
        graph = OrgGraph(tmp_path, root_agent_id="goat")
        assert graph.resolve_entry_agent_id("Somebody") == "somebody"


@pytest.mark.unit
class TestPredicates:
    def test_is_manager_agent(self, graph: OrgGraph):
        assert is_manager_agent(graph.get_manifest("ceo"))
        assert is_manager_agent(graph.get_manifest("cto"))
        assert not is_manager_agent(graph.get_manifest("engineer"))

    def test_is_direct_report_normalizes_manager_id(self, graph: OrgGraph):
        assert is_direct_report(graph.get_manifest("engineer"), " CTO ")
        assert not is_direct_report(graph.get_manifest("engineer"), "ceo")
        assert not is_direct_report(graph.get_manifest("engineer"), "")

    def test_discoverable_requires_both_flags(self, graph: OrgGraph, write_agent):
        write_agent("hidden", reports_to="ceo", discoverable=False)
        write_agent("closed", reports_to="ceo", can_receive=False)
        assert is_discoverable_by_manager(graph.get_manifest("qa"))
        assert not is_discoverable_by_manager(graph.get_manifest("hidden"))
        assert not is_discoverable_by_manager(graph.get_manifest("closed"))

    def test_has_manager_skill_accepts_legacy(self):
        assert has_manager_skill(["board-manager"])
        assert has_manager_skill(["OG-Board-Manager"])
        assert not has_manager_skill(["board-individual"])

    def test_normalize_agent_id(self):
        assert normalize_agent_id(" Tech Lead ") == "tech-lead"
        assert normalize_agent_id(None) == ""
