"""Agent routes: manifests, reportees, routing preview, and orchestration runs."""

from __future__ import annotations

from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from cadre.errors import CadreError, NotFoundError
from cadre.providers.base import ProviderInvokeOptions
from cadre.registry.hierarchy import is_manager_agent, normalize_agent_id
from cadre.server.responses import (
    BadRequest,
    error_response,
    optional_str,
    read_json,
    require_str,
)

DEFAULT_RUNS_LIMIT = 20


def _manifest_json(manifest) -> dict:
    data = manifest.model_dump(mode="json")
    data["is_manager"] = is_manager_agent(manifest)
    return data


async def list_agents(request: Request) -> JSONResponse:
    graph = request.app.state.graph
    return JSONResponse({"agents": [_manifest_json(m) for m in graph.list_manifests()]})


async def get_agent(request: Request) -> JSONResponse:
    graph = request.app.state.graph
    agent_id = request.path_params["agent_id"]
    if not graph.has_agent(agent_id):
        return error_response(NotFoundError("agent", agent_id))
    return JSONResponse(_manifest_json(graph.get_manifest(agent_id)))


async def get_reportees(request: Request) -> JSONResponse:
    """GET /api/agents/{agent_id}/reportees — direct and transitive reportees."""
    graph = request.app.state.graph
    agent_id = request.path_params["agent_id"]
    if not graph.has_agent(agent_id):
        return error_response(NotFoundError("agent", agent_id))
    return JSONResponse(
        {
            "agent_id": normalize_agent_id(agent_id),
            "direct_reports": [m.agent_id for m in graph.list_direct_reports(agent_id)],
            "all_reportees": [m.agent_id for m in graph.list_all_reportees(agent_id)],
        }
    )


async def preview_route(request: Request) -> JSONResponse:
    """POST /api/route — routing decision without invoking any provider."""
    try:
        body = await read_json(request)
        message = optional_str(body, "message") or ""
        entry_agent_id = optional_str(body, "entry_agent_id") or ""
    except BadRequest as e:
        return e.response

    decision = request.app.state.runner.route_message(entry_agent_id, message)
    return JSONResponse(decision.model_dump(mode="json"))


async def start_run(request: Request) -> JSONResponse:
    """POST /api/runs — route and execute one turn, persisting its trace."""
    try:
        body = await read_json(request)
        message = require_str(body, "message")
        options = ProviderInvokeOptions(
            message=message,
            session_ref=optional_str(body, "session_ref"),
            cwd=optional_str(body, "cwd"),
            system_prompt=optional_str(body, "system_prompt"),
        )
        entry_agent_id = optional_str(body, "entry_agent_id") or ""
    except BadRequest as e:
        return e.response

    runner = request.app.state.runner
    try:
        result = await run_in_threadpool(runner.run_agent, entry_agent_id, options)
    except CadreError as e:
        return error_response(e)
    return JSONResponse(result.model_dump(mode="json"))


async def list_runs(request: Request) -> JSONResponse:
    try:
        limit = int(request.query_params.get("limit", DEFAULT_RUNS_LIMIT))
    except ValueError:
        return JSONResponse({"error": "limit must be an integer"}, status_code=422)
    traces = request.app.state.runner.list_runs(limit=limit)
    return JSONResponse({"runs": [t.model_dump(mode="json") for t in traces]})


async def get_run(request: Request) -> JSONResponse:
    try:
        trace = request.app.state.runner.read_trace(request.path_params["run_id"])
    except CadreError as e:
        return error_response(e)
    return JSONResponse(trace.model_dump(mode="json"))


routes = [
    Route("/api/agents", list_agents),
    Route("/api/agents/{agent_id}", get_agent),
    Route("/api/agents/{agent_id}/reportees", get_reportees),
    Route("/api/route", preview_route, methods=["POST"]),
    Route("/api/runs", list_runs),
    Route("/api/runs", start_run, methods=["POST"]),
    Route("/api/runs/{run_id}", get_run),
]
