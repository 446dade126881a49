"""Board and task routes. Every mutating request names its ``actor`` in the body."""

from __future__ import annotations

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from cadre.boards.store import DEFAULT_LATEST_TASKS
from cadre.errors import CadreError
from cadre.server.responses import (
    BadRequest,
    error_response,
    optional_str,
    read_json,
    require_str,
)

ENTRY_KINDS = ("blockers", "artifacts", "worklog")


async def list_boards(request: Request) -> JSONResponse:
    try:
        boards = request.app.state.board_store.list_boards()
    except CadreError as e:
        return error_response(e)
    return JSONResponse({"boards": [b.model_dump(mode="json") for b in boards]})


async def create_board(request: Request) -> JSONResponse:
    try:
        body = await read_json(request)
        actor = require_str(body, "actor")
        title = require_str(body, "title")
    except BadRequest as e:
        return e.response

    try:
        board = request.app.state.board_store.create_board(actor, title)
    except CadreError as e:
        return error_response(e)
    return JSONResponse(board.model_dump(mode="json"), status_code=201)


async def get_board(request: Request) -> JSONResponse:
    try:
        board = request.app.state.board_store.get_board(request.path_params["board_id"])
    except CadreError as e:
        return error_response(e)
    return JSONResponse(board.model_dump(mode="json"))


async def update_board(request: Request) -> JSONResponse:
    try:
        body = await read_json(request)
        actor = require_str(body, "actor")
        title = optional_str(body, "title")
    except BadRequest as e:
        return e.response

    try:
        board = request.app.state.board_store.update_board(
            actor, request.path_params["board_id"], title=title
        )
    except CadreError as e:
        return error_response(e)
    return JSONResponse(board.model_dump(mode="json"))


async def list_board_tasks(request: Request) -> JSONResponse:
    try:
        tasks = request.app.state.board_store.list_tasks(request.path_params["board_id"])
    except CadreError as e:
        return error_response(e)
    return JSONResponse({"tasks": [t.model_dump(mode="json") for t in tasks]})


async def _create_task(request: Request, board_id: str | None) -> JSONResponse:
    try:
        body = await read_json(request)
        actor = require_str(body, "actor")
        title = require_str(body, "title")
        fields = {
            key: optional_str(body, key)
            for key in ("assigned_to", "status", "reason", "project")
        }
        description = optional_str(body, "description") or ""
        if board_id is None:
            board_id = optional_str(body, "board_id")
    except BadRequest as e:
        return e.response

    try:
        task = request.app.state.board_store.create_task(
            actor, board_id, title=title, description=description, **fields
        )
    except CadreError as e:
        return error_response(e)
    return JSONResponse(task.model_dump(mode="json"), status_code=201)


async def create_board_task(request: Request) -> JSONResponse:
    """POST /api/boards/{board_id}/tasks"""
    return await _create_task(request, request.path_params["board_id"])


async def create_task(request: Request) -> JSONResponse:
    """POST /api/tasks — optional ``board_id``; managers fall back to their default board."""
    return await _create_task(request, None)


async def list_latest_tasks(request: Request) -> JSONResponse:
    assignee = request.query_params.get("assignee")
    try:
        limit = int(request.query_params.get("limit", DEFAULT_LATEST_TASKS))
    except ValueError:
        return JSONResponse({"error": "limit must be an integer"}, status_code=422)

    try:
        tasks = request.app.state.board_store.list_latest_tasks(assignee=assignee, limit=limit)
    except CadreError as e:
        return error_response(e)
    return JSONResponse({"tasks": [t.model_dump(mode="json") for t in tasks]})


async def get_task(request: Request) -> JSONResponse:
    try:
        task = request.app.state.board_store.get_task(request.path_params["task_id"])
    except CadreError as e:
        return error_response(e)
    return JSONResponse(task.model_dump(mode="json"))


async def update_task_status(request: Request) -> JSONResponse:
    try:
        body = await read_json(request)
        actor = require_str(body, "actor")
        status = require_str(body, "status")
        reason = optional_str(body, "reason")
    except BadRequest as e:
        return e.response

    try:
        task = request.app.state.board_store.update_task_status(
            actor, request.path_params["task_id"], status, reason
        )
    except CadreError as e:
        return error_response(e)
    return JSONResponse(task.model_dump(mode="json"))


async def add_task_entry(request: Request) -> JSONResponse:
    """POST /api/tasks/{task_id}/{kind} — append a blocker, artifact, or worklog entry."""
    kind = request.path_params["kind"]
    if kind not in ENTRY_KINDS:
        return JSONResponse({"error": f"Unknown task entry kind: {kind}"}, status_code=404)
    try:
        body = await read_json(request)
        actor = require_str(body, "actor")
        content = require_str(body, "content")
    except BadRequest as e:
        return e.response

    store = request.app.state.board_store
    append = {
        "blockers": store.add_task_blocker,
        "artifacts": store.add_task_artifact,
        "worklog": store.add_task_worklog,
    }[kind]
    try:
        task = append(actor, request.path_params["task_id"], content)
    except CadreError as e:
        return error_response(e)
    return JSONResponse(task.model_dump(mode="json"))


routes = [
    Route("/api/boards", list_boards),
    Route("/api/boards", create_board, methods=["POST"]),
    Route("/api/boards/{board_id}", get_board),
    Route("/api/boards/{board_id}", update_board, methods=["PATCH"]),
    Route("/api/boards/{board_id}/tasks", list_board_tasks),
    Route("/api/boards/{board_id}/tasks", create_board_task, methods=["POST"]),
    Route("/api/tasks", create_task, methods=["POST"]),
    Route("/api/tasks/latest", list_latest_tasks),
    Route("/api/tasks/{task_id}", get_task),
    Route("/api/tasks/{task_id}/status", update_task_status, methods=["POST"]),
    Route("/api/tasks/{task_id}/{kind}", add_task_entry, methods=["POST"]),
]
