"""Starlette app factory with lifespan for the board store and runner."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from starlette.applications import Starlette

from cadre.boards.store import BoardStore
from cadre.config import Config, load_config
from cadre.orchestration.runner import OrchestrationRunner
from cadre.providers.registry import ProviderRegistry
from cadre.providers.service import ProviderService
from cadre.registry.loader import OrgGraph
from cadre.server.routes_agents import routes as agent_routes
from cadre.server.routes_boards import routes as board_routes
from cadre.server.routes_system import routes as system_routes

logger = logging.getLogger(__name__)


def create_app(
    config: Config | None = None,
    registry: ProviderRegistry | None = None,
) -> Starlette:
    """Create the API app; config is loaded from the environment when omitted."""

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncGenerator[None, None]:
        cfg = config or load_config()
        graph = OrgGraph.from_config(cfg)

        app.state.config = cfg
        app.state.graph = graph
        app.state.board_store = BoardStore(cfg.board_db_path, graph)
        app.state.runner = OrchestrationRunner(
            graph,
            ProviderService.from_config(cfg, registry),
            cfg.runs_dir,
        )
        logger.info(f"cadre API started for home {cfg.home_dir}")

        yield

        app.state.board_store.close()

    return Starlette(
        routes=system_routes + agent_routes + board_routes,
        lifespan=lifespan,
    )
