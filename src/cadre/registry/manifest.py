"""AGENTS.md front-matter parsing, metadata normalization, and formatting.

Manifest sources are loosely typed. ``parse_manifest_markdown`` turns the
markdown into an untyped key-value bag, and ``normalize_metadata`` is the
single boundary that maps such a bag onto a strict ``AgentMetadata``.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from cadre.config import DEFAULT_ROOT_AGENT_ID
from cadre.registry.hierarchy import (
    BOARD_MANAGER_SKILL_ID,
    canonicalize_skill_id,
    has_manager_skill,
    normalize_agent_id,
    sanitize_id,
)
from cadre.registry.models import (
    DEFAULT_PRIORITY,
    AgentMetadata,
    AgentType,
    DelegationPolicy,
)

FRONT_MATTER_MARKER = "---"

_TRUE_VALUES = {"true", "yes", "1"}
_FALSE_VALUES = {"false", "no", "0"}


@dataclass
class ParsedFrontMatter:
    data: dict[str, Any] = field(default_factory=dict)
    body: str = ""
    has_front_matter: bool = False


def parse_manifest_markdown(markdown: str) -> ParsedFrontMatter:
    """Split ``---`` front matter from the body and parse the known keys."""
    normalized = markdown.replace("\r\n", "\n")
    start = f"{FRONT_MATTER_MARKER}\n"
    if not normalized.startswith(start):
        return ParsedFrontMatter(body=normalized)

    end_marker = f"\n{FRONT_MATTER_MARKER}\n"
    end = normalized.find(end_marker, len(FRONT_MATTER_MARKER))
    if end < 0:
        return ParsedFrontMatter(body=normalized)

    lines = normalized[len(start) : end].split("\n")
    body = normalized[end + len(end_marker) :]

    data: dict[str, Any] = {}
    index = 0
    while index < len(lines):
        line = lines[index].strip()
        index += 1
        if not line or line.startswith("#"):
            continue

        key, sep, raw_value = line.partition(":")
        key = key.strip()
        if not sep or not key:
            continue
        raw_value = raw_value.strip()

        if key in ("tags", "skills"):
            values, index = _parse_string_list(raw_value, lines, index, sanitize_id)
            data[key] = values
        elif key == "delegation":
            data[key], index = _parse_delegation(lines, index)
        elif key == "priority":
            try:
                data[key] = int(_unquote(raw_value))
            except ValueError:
                pass
        elif key == "discoverable":
            data[key] = _parse_bool(raw_value, True)
        elif key == "id":
            data[key] = normalize_agent_id(_unquote(raw_value))
        elif key in ("name", "description"):
            data[key] = _unquote(raw_value)
        elif key == "type":
            agent_type = _unquote(raw_value).lower()
            if agent_type in (AgentType.MANAGER, AgentType.INDIVIDUAL):
                data[key] = agent_type
        elif key == "reportsTo":
            value = _unquote(raw_value).strip().lower()
            if value in ("null", "none", ""):
                data[key] = None
            elif normalize_agent_id(value):
                data[key] = normalize_agent_id(value)

    return ParsedFrontMatter(data=data, body=body, has_front_matter=True)


def normalize_metadata(
    agent_id: str,
    display_name: str,
    raw: Mapping[str, Any] | None = None,
    *,
    root_agent_id: str = DEFAULT_ROOT_AGENT_ID,
) -> AgentMetadata:
    """Map an untyped metadata bag onto ``AgentMetadata`` with default filling.

    Recognized keys use the manifest spelling: ``id``, ``name``, ``description``,
    ``type``, ``reportsTo``, ``discoverable``, ``tags``, ``skills``,
    ``delegation`` (``canReceive``/``canDelegate``), ``priority``.
    """
    raw = raw or {}
    root_id = normalize_agent_id(root_agent_id)
    resolved_id = (
        normalize_agent_id(_as_str(raw.get("id")))
        or normalize_agent_id(agent_id)
        or "agent"
    )

    delegation_raw = raw.get("delegation")
    if not isinstance(delegation_raw, Mapping):
        delegation_raw = {}
    raw_skills = _as_str_list(raw.get("skills"))

    explicit_type = _as_str(raw.get("type")).strip().lower()
    if explicit_type in (AgentType.MANAGER, AgentType.INDIVIDUAL):
        inferred_type = AgentType(explicit_type)
    elif (
        delegation_raw.get("canDelegate") is True
        or has_manager_skill(raw_skills)
        or resolved_id == root_id
    ):
        inferred_type = AgentType.MANAGER
    else:
        inferred_type = AgentType.INDIVIDUAL

    name = _as_str(raw.get("name")).strip() or display_name.strip() or resolved_id
    description = _as_str(raw.get("description")).strip()
    if not description:
        description = (
            "Manager agent coordinating direct reports."
            if inferred_type == AgentType.MANAGER
            else f"Agent {name}."
        )

    discoverable = raw.get("discoverable")
    tags = _dedupe(sanitize_id(tag) for tag in _as_str_list(raw.get("tags")))
    skills = _dedupe(canonicalize_skill_id(sanitize_id(skill)) for skill in raw_skills)
    if inferred_type == AgentType.MANAGER and not has_manager_skill(skills):
        skills = _dedupe([BOARD_MANAGER_SKILL_ID, *skills])

    can_receive = delegation_raw.get("canReceive")
    can_delegate = delegation_raw.get("canDelegate")
    delegation = DelegationPolicy(
        can_receive=can_receive if isinstance(can_receive, bool) else True,
        can_delegate=(
            can_delegate
            if isinstance(can_delegate, bool)
            else inferred_type == AgentType.MANAGER or has_manager_skill(skills)
        ),
    )
    agent_type = (
        AgentType.MANAGER
        if delegation.can_delegate or has_manager_skill(skills)
        else inferred_type
    )

    reports_to = _resolve_reports_to(
        resolved_id,
        agent_type,
        raw,
        root_id=root_id,
    )

    return AgentMetadata(
        id=resolved_id,
        name=name,
        description=description,
        type=agent_type,
        reports_to=reports_to,
        discoverable=discoverable if isinstance(discoverable, bool) else True,
        tags=tags,
        skills=skills,
        delegation=delegation,
        priority=_resolve_priority(raw.get("priority")),
    )


def format_manifest_markdown(metadata: AgentMetadata, body: str = "") -> str:
    """Render metadata back into AGENTS.md front-matter form."""
    safe_body = body[1:] if body.startswith("\n") else body
    if safe_body.endswith("\n"):
        safe_body = safe_body[:-1]
    lines = [
        FRONT_MATTER_MARKER,
        f"id: {metadata.id}",
        f"name: {metadata.name}",
        f"description: {metadata.description}",
        f"type: {metadata.type}",
        f"reportsTo: {metadata.reports_to or 'null'}",
        f"discoverable: {_format_bool(metadata.discoverable)}",
        f"tags: [{', '.join(metadata.tags)}]",
        f"skills: [{', '.join(metadata.skills)}]",
        "delegation:",
        f"  canReceive: {_format_bool(metadata.delegation.can_receive)}",
        f"  canDelegate: {_format_bool(metadata.delegation.can_delegate)}",
        f"priority: {metadata.priority}",
        FRONT_MATTER_MARKER,
        "",
        safe_body,
    ]
    return "\n".join(lines) + "\n"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _resolve_reports_to(
    agent_id: str,
    agent_type: AgentType,
    raw: Mapping[str, Any],
    *,
    root_id: str,
) -> str | None:
    explicit_null = "reportsTo" in raw and raw["reportsTo"] is None
    reports_to = normalize_agent_id(_as_str(raw.get("reportsTo")))
    is_root = agent_id == root_id

    if agent_type == AgentType.MANAGER:
        if is_root:
            return None
        if reports_to and reports_to != agent_id:
            return reports_to
        return root_id

    if explicit_null:
        return root_id
    if reports_to and reports_to != agent_id:
        return reports_to
    return None if is_root else root_id


def _resolve_priority(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return DEFAULT_PRIORITY
    if not math.isfinite(value):
        return DEFAULT_PRIORITY
    return int(value)


def _parse_string_list(
    raw_value: str,
    lines: list[str],
    start: int,
    sanitize: Callable[[str], str],
) -> tuple[list[str], int]:
    if raw_value.startswith("[") and raw_value.endswith("]"):
        values = [sanitize(_unquote(v.strip())) for v in raw_value[1:-1].split(",")]
        return _dedupe(values), start

    values = []
    index = start
    while index < len(lines):
        current = lines[index]
        if not current:
            index += 1
            continue
        trimmed = current.strip()
        if not trimmed.startswith("- "):
            break
        value = sanitize(_unquote(trimmed[2:].strip()))
        if value:
            values.append(value)
        index += 1
    return _dedupe(values), index


def _parse_delegation(lines: list[str], start: int) -> tuple[dict[str, bool], int]:
    delegation = {"canReceive": True, "canDelegate": False}
    index = start
    while index < len(lines):
        current = lines[index]
        if not current:
            index += 1
            continue
        if not current.startswith("  "):
            break
        key, sep, value = current.strip().partition(":")
        key = key.strip()
        if sep and key in delegation:
            delegation[key] = _parse_bool(value.strip(), delegation[key])
        index += 1
    return delegation, index


def _parse_bool(raw_value: str, fallback: bool) -> bool:
    normalized = _unquote(raw_value).lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    return fallback


def _format_bool(value: bool) -> str:
    return "true" if value else "false"


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def _as_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _as_str_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, list | tuple | set):
        return [v for v in value if isinstance(v, str)]
    return []


def _dedupe(values: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(v for v in values if v.strip()))
