"""Provider contract and the built-in command-line and HTTP adapters."""

from cadre.providers.base import (
    ChunkKind,
    OutputChunk,
    Provider,
    ProviderBinding,
    ProviderCapabilities,
    ProviderInvokeOptions,
    ProviderResult,
    collect_output,
)
from cadre.providers.command import CommandProvider
from cadre.providers.http import HttpProvider
from cadre.providers.registry import ProviderRegistry, default_registry
from cadre.providers.service import ProviderService

__all__ = [
    "ChunkKind",
    "CommandProvider",
    "HttpProvider",
    "OutputChunk",
    "Provider",
    "ProviderBinding",
    "ProviderCapabilities",
    "ProviderInvokeOptions",
    "ProviderRegistry",
    "ProviderResult",
    "ProviderService",
    "collect_output",
    "default_registry",
]
