"""Pydantic models for the agent organization graph."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field

DEFAULT_PRIORITY = 50


class AgentType(StrEnum):
    MANAGER = "manager"
    INDIVIDUAL = "individual"


class ManifestSource(StrEnum):
    FRONTMATTER = "frontmatter"
    DERIVED = "derived"


class DelegationPolicy(BaseModel):
    can_receive: bool = True
    can_delegate: bool = False


class AgentMetadata(BaseModel):
    """Normalized identity and policy record for one agent."""

    id: str
    name: str
    description: str
    type: AgentType = AgentType.INDIVIDUAL
    reports_to: str | None = None
    discoverable: bool = True
    tags: list[str] = Field(default_factory=list)
    skills: list[str] = Field(default_factory=list)
    delegation: DelegationPolicy = Field(default_factory=DelegationPolicy)
    priority: int = DEFAULT_PRIORITY


class AgentManifest(BaseModel):
    agent_id: str
    file_path: str
    workspace_dir: str
    metadata: AgentMetadata
    body: str = ""
    source: ManifestSource = ManifestSource.DERIVED
