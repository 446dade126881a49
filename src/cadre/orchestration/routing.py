"""Single-hop delegation decision: keep the message or hand it to a direct report.

``decide_route`` is a pure function of the entry agent id, the message, and a
manifest snapshot. Candidate order among equal scores is the input order,
which ``OrgGraph.list_manifests`` guarantees to be ascending by agent id.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence

from cadre.orchestration.models import RoutingCandidate, RoutingDecision
from cadre.registry.hierarchy import (
    is_direct_report,
    is_discoverable_by_manager,
    is_manager_agent,
)
from cadre.registry.loader import OrgGraph
from cadre.registry.models import AgentManifest

logger = logging.getLogger(__name__)

EMPTY_MESSAGE_CONFIDENCE = 1.0
NOT_MANAGER_CONFIDENCE = 1.0
NO_MATCH_CONFIDENCE = 0.35
MAX_DELEGATION_CONFIDENCE = 0.99
MAX_PRIORITY_BOOST = 3
MAX_REPORTED_TERMS = 8
BODY_TOKEN_LIMIT = 80

_TOKEN_SPLIT = re.compile(r"[^a-z0-9]+")


def tokenize(value: str) -> list[str]:
    """Lowercase, split on non-alphanumeric runs, drop tokens shorter than 2."""
    return [t for t in _TOKEN_SPLIT.split(value.lower()) if len(t) >= 2]


def includes_exact_word(haystack: str, needle: str) -> bool:
    needle = needle.strip()
    if not needle:
        return False
    return re.search(rf"\b{re.escape(needle)}\b", haystack, re.IGNORECASE) is not None


def score_candidate(message: str, manifest: AgentManifest) -> RoutingCandidate:
    metadata = manifest.metadata
    metadata_tokens = tokenize(
        " ".join([metadata.id, metadata.name, metadata.description, *metadata.tags])
    )
    body_tokens = tokenize(manifest.body)[:BODY_TOKEN_LIMIT]
    matched_terms = _intersect(tokenize(message), {*metadata_tokens, *body_tokens})
    explicit_name_match = includes_exact_word(message, metadata.id) or includes_exact_word(
        message, metadata.name
    )

    relevance = len(matched_terms) * 2 + (4 if explicit_name_match else 0)
    priority_boost = (
        max(0.0, min(MAX_PRIORITY_BOOST, metadata.priority / 50)) if relevance > 0 else 0
    )
    reason = (
        f"Explicit mention and {len(matched_terms)} matched metadata terms."
        if explicit_name_match
        else f"{len(matched_terms)} matched metadata terms."
    )
    return RoutingCandidate(
        agent_id=manifest.agent_id,
        agent_name=metadata.name,
        score=round(relevance + priority_boost, 2),
        matched_terms=matched_terms[:MAX_REPORTED_TERMS],
        reason=reason,
    )


def decide_route(
    entry_agent_id: str,
    message: str,
    manifests: Sequence[AgentManifest],
) -> RoutingDecision:
    """Decide whether ``entry_agent_id`` keeps ``message`` or delegates it."""
    entry_agent_id = entry_agent_id.strip().lower()
    message = message.strip()

    if not message:
        return RoutingDecision(
            entry_agent_id=entry_agent_id,
            target_agent_id=entry_agent_id,
            confidence=EMPTY_MESSAGE_CONFIDENCE,
            reason="Empty message; keeping current agent.",
            rewritten_message=message,
        )

    entry = next((m for m in manifests if m.agent_id == entry_agent_id), None)
    if entry is None or not is_manager_agent(entry):
        return RoutingDecision(
            entry_agent_id=entry_agent_id,
            target_agent_id=entry_agent_id,
            confidence=NOT_MANAGER_CONFIDENCE,
            reason="Entry agent is not a manager (missing manager skill).",
            rewritten_message=message,
        )

    scored = [
        score_candidate(message, m)
        for m in manifests
        if m.agent_id != entry_agent_id
        and is_direct_report(m, entry_agent_id)
        and is_discoverable_by_manager(m)
    ]
    # sorted() is stable: equal scores keep the ascending-id input order
    candidates = sorted(scored, key=lambda c: c.score, reverse=True)

    top = candidates[0] if candidates else None
    if top is None or top.score <= 0:
        return RoutingDecision(
            entry_agent_id=entry_agent_id,
            target_agent_id=entry_agent_id,
            confidence=NO_MATCH_CONFIDENCE,
            reason="No direct-report agent strongly matched the request.",
            rewritten_message=message,
            candidates=candidates,
        )

    token_count = len(tokenize(message))
    confidence = round(
        min(MAX_DELEGATION_CONFIDENCE, top.score / max(4, token_count + 1)), 2
    )
    reason = f"Matched {len(top.matched_terms)} relevant term(s) for {top.agent_name}."
    logger.debug(
        f"Routing {entry_agent_id} -> {top.agent_id} "
        f"(confidence={confidence:.2f}, score={top.score:.2f})"
    )
    return RoutingDecision(
        entry_agent_id=entry_agent_id,
        target_agent_id=top.agent_id,
        confidence=confidence,
        reason=reason,
        rewritten_message=rewrite_message_for_delegation(message, top.agent_name, reason),
        candidates=candidates,
    )


def route_message(graph: OrgGraph, entry_agent_id: str, message: str) -> RoutingDecision:
    """Resolve the entry agent against the graph, then decide on a fresh snapshot."""
    manifests = graph.list_manifests()
    resolved = graph.resolve_entry_agent_id(entry_agent_id)
    return decide_route(resolved, message, manifests)


def rewrite_message_for_delegation(message: str, agent_name: str, reason: str) -> str:
    return "\n\n".join(
        [
            f"Original user request:\n{message}",
            f"Delegation target: {agent_name}",
            f"Delegation reason: {reason}",
            "Please execute the task and return a concise, user-ready response.",
        ]
    )


def _intersect(left: Iterable[str], right: set[str]) -> list[str]:
    matches: list[str] = []
    for token in left:
        if token in right and token not in matches:
            matches.append(token)
    return matches
