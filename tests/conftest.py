"""Shared fixtures for cadre tests.

The default org:

    ceo (root manager)
    ├── cto (manager; tags architecture, api)
    │   └── engineer (individual)
    └── qa (individual)
"""

import json
from collections.abc import Callable
from pathlib import Path

import pytest

from cadre.config import Config
from cadre.registry.loader import OrgGraph
from cadre.registry.manifest import format_manifest_markdown
from cadre.registry.models import AgentMetadata, AgentType, DelegationPolicy

AgentWriter = Callable[..., Path]


def _make_metadata(
    agent_id: str,
    *,
    manager: bool = False,
    reports_to: str | None = None,
    name: str | None = None,
    description: str = "",
    tags: list[str] | None = None,
    skills: list[str] | None = None,
    priority: int = 50,
    discoverable: bool = True,
    can_receive: bool = True,
) -> AgentMetadata:
    return AgentMetadata(
        id=agent_id,
        name=name or agent_id.upper(),
        description=description or f"Agent {agent_id}.",
        type=AgentType.MANAGER if manager else AgentType.INDIVIDUAL,
        reports_to=reports_to,
        discoverable=discoverable,
        tags=tags or [],
        skills=skills or [],
        delegation=DelegationPolicy(can_receive=can_receive, can_delegate=manager),
        priority=priority,
    )


def _write_agent(
    workspaces_dir: Path,
    agent_id: str,
    *,
    body: str = "",
    display_name: str | None = None,
    **metadata_kwargs,
) -> Path:
    """Write ``workspaces/<id>/AGENTS.md`` (and optionally workspace.json)."""
    workspace = workspaces_dir / agent_id
    workspace.mkdir(parents=True, exist_ok=True)
    metadata = _make_metadata(agent_id, **metadata_kwargs)
    path = workspace / "AGENTS.md"
    path.write_text(format_manifest_markdown(metadata, body))
    if display_name is not None:
        (workspace / "workspace.json").write_text(json.dumps({"displayName": display_name}))
    return path


@pytest.fixture
def home(tmp_path: Path) -> Path:
    """Temporary cadre home with the ceo/cto/engineer/qa org."""
    home_dir = tmp_path / "cadre-home"
    workspaces = home_dir / "workspaces"
    _write_agent(
        workspaces,
        "ceo",
        manager=True,
        name="CEO",
        description="Chief executive coordinating the company.",
    )
    _write_agent(
        workspaces,
        "cto",
        manager=True,
        reports_to="ceo",
        name="CTO",
        description="Owns technology strategy and platform design.",
        tags=["architecture", "api"],
    )
    _write_agent(
        workspaces,
        "engineer",
        reports_to="cto",
        name="Engineer",
        description="Builds backend services.",
        tags=["backend", "python"],
    )
    _write_agent(
        workspaces,
        "qa",
        reports_to="ceo",
        name="QA",
        description="Quality assurance and release testing.",
        tags=["testing", "release"],
    )
    return home_dir


@pytest.fixture
def write_agent(home: Path) -> AgentWriter:
    """Add or overwrite an agent in the temporary home."""

    def _write(agent_id: str, **kwargs) -> Path:
        return _write_agent(home / "workspaces", agent_id, **kwargs)

    return _write


@pytest.fixture
def config(home: Path) -> Config:
    return Config(home_dir=home, root_agent_id="ceo")


@pytest.fixture
def graph(config: Config) -> OrgGraph:
    return OrgGraph.from_config(config)
