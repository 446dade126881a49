"""Delegation routing, provider execution, and run traces."""

from cadre.orchestration.models import (
    AgentRunTrace,
    ExecutionRecord,
    OrchestrationRunResult,
    RoutingCandidate,
    RoutingDecision,
)
from cadre.orchestration.routing import (
    decide_route,
    rewrite_message_for_delegation,
    route_message,
    score_candidate,
)
from cadre.orchestration.runner import OrchestrationRunner

__all__ = [
    "AgentRunTrace",
    "ExecutionRecord",
    "OrchestrationRunResult",
    "OrchestrationRunner",
    "RoutingCandidate",
    "RoutingDecision",
    "decide_route",
    "rewrite_message_for_delegation",
    "route_message",
    "score_candidate",
]
