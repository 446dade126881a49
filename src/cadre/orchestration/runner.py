"""OrchestrationRunner: route one user turn, invoke the target, persist the trace."""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

from cadre.config import Config
from cadre.errors import ExecutionError, TraceWriteError
from cadre.orchestration.models import (
    AgentRunTrace,
    ExecutionRecord,
    OrchestrationRunResult,
    RoutingDecision,
)
from cadre.orchestration.routing import route_message
from cadre.orchestration.trace import list_runs, read_trace, write_trace
from cadre.providers.base import ProviderInvokeOptions, ProviderResult, collect_output
from cadre.providers.registry import ProviderRegistry
from cadre.providers.service import ProviderService
from cadre.registry.loader import OrgGraph

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def _new_run_id() -> str:
    return str(uuid.uuid4()).lower()


class OrchestrationRunner:
    """Executes one routing decision end to end.

    No retries and no timeout are applied here; both belong to the provider
    or to the caller wrapping it.
    """

    def __init__(
        self,
        graph: OrgGraph,
        providers: ProviderService,
        runs_dir: Path,
        *,
        now: Callable[[], str] = _now_iso,
        run_id_factory: Callable[[], str] = _new_run_id,
    ) -> None:
        self._graph = graph
        self._providers = providers
        self._runs_dir = runs_dir
        self._now = now
        self._run_id_factory = run_id_factory

    @classmethod
    def from_config(
        cls, config: Config, registry: ProviderRegistry | None = None
    ) -> OrchestrationRunner:
        return cls(
            OrgGraph.from_config(config),
            ProviderService.from_config(config, registry),
            config.runs_dir,
        )

    def route_message(self, entry_agent_id: str, message: str) -> RoutingDecision:
        return route_message(self._graph, entry_agent_id, message)

    def run_agent(
        self, entry_agent_id: str, options: ProviderInvokeOptions
    ) -> OrchestrationRunResult:
        """Route, invoke, and record one turn.

        Raises:
            ExecutionError: the provider failed; the trace was still written.
            TraceWriteError: the trace could not be written. When the provider
                also failed, its error is attached as ``execution_error``.
        """
        started_at = self._now()
        routing = self.route_message(entry_agent_id, options.message)
        target = routing.target_agent_id
        runtime_options = options.model_copy(update={"message": routing.rewritten_message})

        execution_error: ExecutionError | None = None
        start = time.monotonic()
        binding, chunks = self._providers.stream_agent(target, runtime_options)
        provider_id = binding.provider_id
        try:
            result = collect_output(chunks)
        except ExecutionError as e:
            e.agent_id = e.agent_id or target
            e.provider_id = e.provider_id or provider_id
            execution_error = e
            result = ProviderResult(exit_code=e.exit_code, stdout=e.stdout, stderr=e.stderr)
        duration_ms = int((time.monotonic() - start) * 1000)

        trace = AgentRunTrace(
            run_id=self._run_id_factory(),
            started_at=started_at,
            completed_at=self._now(),
            entry_agent_id=routing.entry_agent_id,
            user_message=options.message,
            routing=routing,
            execution=ExecutionRecord(
                agent_id=target,
                provider_id=provider_id,
                exit_code=result.exit_code,
                stdout=result.stdout,
                stderr=result.stderr,
                duration_ms=duration_ms,
            ),
        )

        try:
            path = write_trace(self._runs_dir, trace)
        except OSError as e:
            raise TraceWriteError(
                f"Failed to write run trace {trace.run_id}: {e}",
                trace=trace,
                execution_error=execution_error,
            ) from e

        if execution_error is not None:
            logger.warning(
                f"Run {trace.run_id} failed in provider {provider_id}: "
                f"exit={execution_error.exit_code}"
            )
            raise execution_error

        logger.info(
            f"Run {trace.run_id} completed: {routing.entry_agent_id} -> {target} "
            f"exit={result.exit_code} duration_ms={duration_ms}"
        )
        return OrchestrationRunResult(
            agent_id=target,
            provider_id=provider_id,
            exit_code=result.exit_code,
            stdout=result.stdout,
            stderr=result.stderr,
            entry_agent_id=routing.entry_agent_id,
            routing=routing,
            run_id=trace.run_id,
            trace_path=str(path),
        )

    def read_trace(self, run_id: str) -> AgentRunTrace:
        return read_trace(self._runs_dir, run_id)

    def list_runs(self, *, limit: int = 20) -> list[AgentRunTrace]:
        return list_runs(self._runs_dir, limit=limit)
