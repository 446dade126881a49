"""ProviderRegistry: provider id -> factory."""

from __future__ import annotations

from collections.abc import Callable

from cadre.errors import ProviderNotFoundError
from cadre.providers.base import Provider
from cadre.providers.command import CommandProvider
from cadre.providers.http import HttpProvider

ProviderFactory = Callable[[], Provider]


class ProviderRegistry:
    def __init__(self) -> None:
        self._factories: dict[str, ProviderFactory] = {}

    def register(self, provider_id: str, factory: ProviderFactory) -> None:
        self._factories[provider_id.strip().lower()] = factory

    def create(self, provider_id: str) -> Provider:
        factory = self._factories.get(provider_id.strip().lower())
        if factory is None:
            raise ProviderNotFoundError(provider_id)
        return factory()

    def list_ids(self) -> list[str]:
        return sorted(self._factories)


def default_registry() -> ProviderRegistry:
    registry = ProviderRegistry()
    registry.register(CommandProvider.id, CommandProvider)
    registry.register(HttpProvider.id, HttpProvider)
    return registry
