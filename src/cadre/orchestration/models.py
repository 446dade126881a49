"""Pydantic models for routing decisions and orchestration run traces."""

from __future__ import annotations

from pydantic import BaseModel, Field

TRACE_SCHEMA_VERSION = 1


class RoutingCandidate(BaseModel):
    agent_id: str
    agent_name: str
    score: float
    matched_terms: list[str] = Field(default_factory=list)
    reason: str


class RoutingDecision(BaseModel):
    entry_agent_id: str
    target_agent_id: str
    confidence: float = Field(ge=0.0, le=1.0)
    reason: str
    rewritten_message: str
    candidates: list[RoutingCandidate] = Field(default_factory=list)

    @property
    def delegated(self) -> bool:
        return self.target_agent_id != self.entry_agent_id


class ExecutionRecord(BaseModel):
    agent_id: str
    provider_id: str
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: int


class AgentRunTrace(BaseModel, frozen=True):
    """Immutable audit record of one orchestration run."""

    schema_version: int = TRACE_SCHEMA_VERSION
    run_id: str
    started_at: str
    completed_at: str
    entry_agent_id: str
    user_message: str
    routing: RoutingDecision
    execution: ExecutionRecord


class OrchestrationRunResult(BaseModel):
    agent_id: str
    provider_id: str
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    entry_agent_id: str
    routing: RoutingDecision
    run_id: str
    trace_path: str
