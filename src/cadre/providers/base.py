"""Provider contract: an agent turn is a sequence of output chunks ending in an exit chunk."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator
from enum import StrEnum

from pydantic import BaseModel, Field


class ChunkKind(StrEnum):
    STDOUT = "stdout"
    STDERR = "stderr"
    EXIT = "exit"


class OutputChunk(BaseModel):
    kind: ChunkKind
    text: str = ""
    exit_code: int | None = None


class ProviderCapabilities(BaseModel):
    agent: bool = False


class ProviderInvokeOptions(BaseModel):
    message: str
    session_ref: str | None = None
    cwd: str | None = None
    system_prompt: str | None = None
    agent: str | None = None
    env: dict[str, str] = Field(default_factory=dict)


class ProviderResult(BaseModel):
    exit_code: int
    stdout: str = ""
    stderr: str = ""


class ProviderBinding(BaseModel):
    agent_id: str
    provider_id: str


def collect_output(chunks: Iterable[OutputChunk]) -> ProviderResult:
    """Fold a chunk sequence into a result. A missing exit chunk means exit code 0."""
    stdout: list[str] = []
    stderr: list[str] = []
    exit_code = 0
    for chunk in chunks:
        if chunk.kind == ChunkKind.STDOUT:
            stdout.append(chunk.text)
        elif chunk.kind == ChunkKind.STDERR:
            stderr.append(chunk.text)
        elif chunk.exit_code is not None:
            exit_code = chunk.exit_code
    return ProviderResult(exit_code=exit_code, stdout="".join(stdout), stderr="".join(stderr))


class Provider(ABC):
    """One execution backend (command-line tool or HTTP API)."""

    id: str = ""
    capabilities: ProviderCapabilities = ProviderCapabilities()

    @abstractmethod
    def stream(self, options: ProviderInvokeOptions) -> Iterator[OutputChunk]:
        """Yield output chunks for one turn.

        Raises ``ExecutionError`` when the turn could not be started or the
        backend failed before producing an exit status.
        """

    def invoke(self, options: ProviderInvokeOptions) -> ProviderResult:
        return collect_output(self.stream(options))
