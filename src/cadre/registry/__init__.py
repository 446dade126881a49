"""Agent organization graph: manifests, normalization, and hierarchy predicates."""

from cadre.registry.hierarchy import (
    BOARD_MANAGER_SKILL_ID,
    has_manager_skill,
    is_direct_report,
    is_discoverable_by_manager,
    is_manager_agent,
    normalize_agent_id,
)
from cadre.registry.loader import OrgGraph
from cadre.registry.manifest import (
    format_manifest_markdown,
    normalize_metadata,
    parse_manifest_markdown,
)
from cadre.registry.models import (
    AgentManifest,
    AgentMetadata,
    AgentType,
    DelegationPolicy,
    ManifestSource,
)

__all__ = [
    "BOARD_MANAGER_SKILL_ID",
    "AgentManifest",
    "AgentMetadata",
    "AgentType",
    "DelegationPolicy",
    "ManifestSource",
    "OrgGraph",
    "format_manifest_markdown",
    "has_manager_skill",
    "is_direct_report",
    "is_discoverable_by_manager",
    "is_manager_agent",
    "normalize_agent_id",
    "normalize_metadata",
    "parse_manifest_markdown",
]
