"""ProviderService: resolve an agent's provider binding and open its output stream."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Iterator
from pathlib import Path

from cadre.config import DEFAULT_PROVIDER_ID, Config
from cadre.errors import InvalidInputError
from cadre.providers.base import OutputChunk, ProviderBinding, ProviderInvokeOptions
from cadre.providers.registry import ProviderRegistry, default_registry

logger = logging.getLogger(__name__)

AGENT_CONFIG_FILE = "config.json"


class ProviderService:
    def __init__(
        self,
        agents_dir: Path,
        workspaces_dir: Path,
        *,
        registry: ProviderRegistry | None = None,
        default_provider_id: str = DEFAULT_PROVIDER_ID,
    ) -> None:
        self._agents_dir = agents_dir
        self._workspaces_dir = workspaces_dir
        self._registry = registry or default_registry()
        self._default_provider_id = default_provider_id

    @classmethod
    def from_config(
        cls, config: Config, registry: ProviderRegistry | None = None
    ) -> ProviderService:
        return cls(
            config.agents_dir,
            config.workspaces_dir,
            registry=registry,
            default_provider_id=config.default_provider_id,
        )

    @property
    def default_provider_id(self) -> str:
        return self._default_provider_id

    def list_provider_ids(self) -> list[str]:
        return self._registry.list_ids()

    def get_agent_provider(self, agent_id: str) -> ProviderBinding:
        """Provider configured in ``agents/<id>/config.json``, else the default."""
        provider_id = self._read_configured_provider_id(agent_id) or self._default_provider_id
        # Validate at read time so a bad binding surfaces before invocation
        provider = self._registry.create(provider_id)
        return ProviderBinding(agent_id=agent_id, provider_id=provider.id)

    def set_agent_provider(self, agent_id: str, provider_id: str) -> ProviderBinding:
        """Bind ``agent_id`` to ``provider_id``, keeping other keys of its config file."""
        if not agent_id:
            raise InvalidInputError("Agent id is required.")
        provider = self._registry.create(provider_id)
        path = self._agents_dir / agent_id / AGENT_CONFIG_FILE
        data = self._read_config(path)
        provider_section = data.get("provider")
        if not isinstance(provider_section, dict):
            provider_section = {}
        data["provider"] = {**provider_section, "id": provider.id}
        _write_json_atomic(path, data)
        logger.info(f"Agent {agent_id} bound to provider {provider.id}")
        return ProviderBinding(agent_id=agent_id, provider_id=provider.id)

    def stream_agent(
        self, agent_id: str, options: ProviderInvokeOptions
    ) -> tuple[ProviderBinding, Iterator[OutputChunk]]:
        binding = self.get_agent_provider(agent_id)
        provider = self._registry.create(binding.provider_id)
        invoke_options = options.model_copy(
            update={
                "cwd": options.cwd or str(self._workspaces_dir / agent_id),
                "agent": (options.agent or agent_id)
                if provider.capabilities.agent
                else options.agent,
            }
        )
        logger.debug(f"Invoking agent {agent_id} via provider {provider.id}")
        return binding, provider.stream(invoke_options)

    def _read_configured_provider_id(self, agent_id: str) -> str | None:
        data = self._read_config(self._agents_dir / agent_id / AGENT_CONFIG_FILE)
        provider = data.get("provider")
        if isinstance(provider, dict) and isinstance(provider.get("id"), str):
            return provider["id"].strip().lower() or None
        return None

    @staticmethod
    def _read_config(path: Path) -> dict:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Ignoring unreadable agent config {path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}


def _write_json_atomic(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.write("\n")
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise
