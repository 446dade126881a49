"""Pure hierarchy predicates over normalized manifests."""

from __future__ import annotations

import re
from collections.abc import Iterable

from cadre.registry.models import AgentManifest

BOARD_MANAGER_SKILL_ID = "og-board-manager"
BOARD_INDIVIDUAL_SKILL_ID = "og-board-individual"
LEGACY_BOARD_MANAGER_SKILL_ID = "board-manager"
LEGACY_BOARD_INDIVIDUAL_SKILL_ID = "board-individual"

_LEGACY_SKILL_IDS: dict[str, str] = {
    LEGACY_BOARD_MANAGER_SKILL_ID: BOARD_MANAGER_SKILL_ID,
    LEGACY_BOARD_INDIVIDUAL_SKILL_ID: BOARD_INDIVIDUAL_SKILL_ID,
}

_INVALID_ID_CHARS = re.compile(r"[^a-z0-9-]+")


def sanitize_id(value: str) -> str:
    """Lowercase slug restricted to ``[a-z0-9-]`` with no leading/trailing dashes."""
    return _INVALID_ID_CHARS.sub("-", value.strip().lower()).strip("-")


def normalize_agent_id(value: str | None) -> str:
    if not value:
        return ""
    return sanitize_id(value)


def canonicalize_skill_id(skill_id: str) -> str:
    return _LEGACY_SKILL_IDS.get(skill_id, skill_id)


def has_manager_skill(skills: Iterable[str]) -> bool:
    for skill in skills:
        normalized = sanitize_id(skill)
        if normalized in (BOARD_MANAGER_SKILL_ID, LEGACY_BOARD_MANAGER_SKILL_ID):
            return True
    return False


def is_manager_agent(manifest: AgentManifest) -> bool:
    """Effective type check: delegation capability or the manager skill marker."""
    metadata = manifest.metadata
    return metadata.delegation.can_delegate or has_manager_skill(metadata.skills)


def is_direct_report(manifest: AgentManifest, manager_id: str) -> bool:
    normalized = normalize_agent_id(manager_id)
    if not normalized:
        return False
    return (manifest.metadata.reports_to or "") == normalized


def is_discoverable_by_manager(manifest: AgentManifest) -> bool:
    return manifest.metadata.discoverable and manifest.metadata.delegation.can_receive
