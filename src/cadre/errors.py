"""Error taxonomy shared by routing, orchestration, and board operations.

Callers can tell apart:

- authorization failures (``AuthorizationError``),
- bad input (``InvalidInputError``),
- unknown ids (``NotFoundError``),
- work that did not happen (``ExecutionError``),
- work that happened but was not recorded (``PersistenceError``).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cadre.orchestration.models import AgentRunTrace


class CadreError(Exception):
    """Base class for all cadre errors."""


class ConfigError(CadreError):
    """Raised when configuration values cannot be interpreted."""


class AuthorizationError(CadreError):
    """The actor is not allowed to perform the operation."""


class InvalidInputError(CadreError):
    """The request is malformed; nothing was mutated."""


class NotFoundError(CadreError):
    def __init__(self, kind: str, ident: str) -> None:
        super().__init__(f"{kind.capitalize()} not found: {ident}")
        self.kind = kind
        self.ident = ident


class ProviderNotFoundError(NotFoundError):
    def __init__(self, provider_id: str) -> None:
        super().__init__("provider", provider_id)


class ExecutionError(CadreError):
    """Provider invocation failed; carries the provider's exit code and stderr."""

    def __init__(
        self,
        message: str,
        *,
        exit_code: int = 1,
        stderr: str = "",
        stdout: str = "",
        agent_id: str | None = None,
        provider_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr = stderr
        self.stdout = stdout
        self.agent_id = agent_id
        self.provider_id = provider_id


class PersistenceError(CadreError):
    """A state change could not be recorded."""


class TraceWriteError(PersistenceError):
    def __init__(
        self,
        message: str,
        *,
        trace: AgentRunTrace,
        execution_error: ExecutionError | None = None,
    ) -> None:
        super().__init__(message)
        self.trace = trace
        self.execution_error = execution_error


class BoardWriteError(PersistenceError):
    """The board file could not be read back or written."""
