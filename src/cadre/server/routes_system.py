"""Liveness and version routes."""

from __future__ import annotations

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from cadre import __version__


async def health(request: Request) -> JSONResponse:
    """GET /health — liveness plus the organization this server routes for."""
    graph = request.app.state.graph
    return JSONResponse(
        {
            "status": "ok",
            "root_agent_id": graph.root_agent_id,
            "agent_count": len(graph.list_agent_ids()),
        }
    )


async def version(request: Request) -> JSONResponse:
    return JSONResponse({"name": "cadre", "version": __version__})


routes = [
    Route("/health", health),
    Route("/api/version", version),
]
