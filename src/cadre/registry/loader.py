"""OrgGraph: read-only view of every agent manifest under a workspaces directory."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from cadre.config import DEFAULT_ROOT_AGENT_ID, Config
from cadre.registry.hierarchy import (
    is_direct_report,
    normalize_agent_id,
)
from cadre.registry.manifest import normalize_metadata, parse_manifest_markdown
from cadre.registry.models import AgentManifest, ManifestSource

logger = logging.getLogger(__name__)

MANIFEST_FILE = "AGENTS.md"
WORKSPACE_METADATA_FILE = "workspace.json"


class OrgGraph:
    """Authoritative, normalized view of the agent organization.

    Manifests are rebuilt from disk on every call; nothing is cached between
    operations.
    """

    def __init__(
        self,
        workspaces_dir: Path,
        *,
        root_agent_id: str = DEFAULT_ROOT_AGENT_ID,
    ) -> None:
        self._workspaces_dir = workspaces_dir
        self._root_agent_id = normalize_agent_id(root_agent_id) or DEFAULT_ROOT_AGENT_ID

    @classmethod
    def from_config(cls, config: Config) -> OrgGraph:
        return cls(config.workspaces_dir, root_agent_id=config.root_agent_id)

    @property
    def root_agent_id(self) -> str:
        return self._root_agent_id

    @property
    def workspaces_dir(self) -> Path:
        return self._workspaces_dir

    # -- Manifest access ----------------------------------------------------

    def list_agent_ids(self) -> list[str]:
        if not self._workspaces_dir.is_dir():
            return []
        return sorted(p.name for p in self._workspaces_dir.iterdir() if p.is_dir())

    def has_agent(self, agent_id: str) -> bool:
        normalized = normalize_agent_id(agent_id)
        return bool(normalized) and (self._workspaces_dir / normalized).is_dir()

    def list_manifests(self) -> list[AgentManifest]:
        """All manifests sorted by agent id; this order is the routing tie-break."""
        manifests = [self.get_manifest(agent_id) for agent_id in self.list_agent_ids()]
        return sorted(manifests, key=lambda m: m.agent_id)

    def get_manifest(self, agent_id: str) -> AgentManifest:
        """Return the normalized manifest, deriving a default when no record exists."""
        agent_id = normalize_agent_id(agent_id) or agent_id.strip().lower()
        workspace_dir = self._workspaces_dir / agent_id
        manifest_path = workspace_dir / MANIFEST_FILE
        display_name = self._read_display_name(workspace_dir, agent_id)

        markdown = None
        if manifest_path.is_file():
            try:
                markdown = manifest_path.read_text(encoding="utf-8")
            except OSError as e:
                logger.warning(f"Unreadable manifest {manifest_path}: {e}")

        if markdown is None:
            return AgentManifest(
                agent_id=agent_id,
                file_path=str(manifest_path),
                workspace_dir=str(workspace_dir),
                metadata=normalize_metadata(
                    agent_id, display_name, root_agent_id=self._root_agent_id
                ),
                source=ManifestSource.DERIVED,
            )

        parsed = parse_manifest_markdown(markdown)
        return AgentManifest(
            agent_id=agent_id,
            file_path=str(manifest_path),
            workspace_dir=str(workspace_dir),
            metadata=normalize_metadata(
                agent_id,
                display_name,
                parsed.data,
                root_agent_id=self._root_agent_id,
            ),
            body=parsed.body,
            source=(
                ManifestSource.FRONTMATTER if parsed.has_front_matter else ManifestSource.DERIVED
            ),
        )

    # -- Hierarchy queries --------------------------------------------------

    def list_direct_reports(self, manager_id: str) -> list[AgentManifest]:
        manager_id = normalize_agent_id(manager_id)
        return [
            m
            for m in self.list_manifests()
            if m.agent_id != manager_id and is_direct_report(m, manager_id)
        ]

    def list_all_reportees(self, manager_id: str) -> list[AgentManifest]:
        """Transitive reportees, breadth first, each agent at most once."""
        manifests = self.list_manifests()
        by_manager: dict[str, list[AgentManifest]] = {}
        for m in manifests:
            if m.metadata.reports_to:
                by_manager.setdefault(m.metadata.reports_to, []).append(m)

        root = normalize_agent_id(manager_id)
        seen = {root}
        result: list[AgentManifest] = []
        queue = [root]
        while queue:
            current = queue.pop(0)
            for report in by_manager.get(current, []):
                if report.agent_id in seen:
                    continue
                seen.add(report.agent_id)
                result.append(report)
                queue.append(report.agent_id)
        return result

    def resolve_entry_agent_id(self, agent_id: str) -> str:
        """Requested agent if it exists, else the root manager, else the first agent."""
        requested = normalize_agent_id(agent_id) or self._root_agent_id
        known = self.list_agent_ids()
        if requested in known:
            return requested
        if self._root_agent_id in known:
            return self._root_agent_id
        return known[0] if known else requested

    # -- Internals ----------------------------------------------------------

    def _read_display_name(self, workspace_dir: Path, agent_id: str) -> str:
        path = workspace_dir / WORKSPACE_METADATA_FILE
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (FileNotFoundError, json.JSONDecodeError, OSError):
            return agent_id
        if isinstance(data, dict) and isinstance(data.get("displayName"), str):
            return data["displayName"].strip() or agent_id
        return agent_id
