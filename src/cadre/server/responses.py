"""Shared request parsing and error-to-status mapping for the route modules."""

from __future__ import annotations

from typing import Any

from starlette.requests import Request
from starlette.responses import JSONResponse

from cadre.errors import (
    AuthorizationError,
    CadreError,
    ExecutionError,
    InvalidInputError,
    NotFoundError,
    PersistenceError,
)

_STATUS_BY_ERROR: list[tuple[type[CadreError], int]] = [
    (AuthorizationError, 403),
    (InvalidInputError, 422),
    (NotFoundError, 404),
    (ExecutionError, 502),
    (PersistenceError, 500),
]


class BadRequest(Exception):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.response = JSONResponse({"error": message}, status_code=422)


def error_response(exc: CadreError) -> JSONResponse:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            break
    else:
        status_code = 500
    body: dict[str, Any] = {"error": str(exc), "type": type(exc).__name__}
    if isinstance(exc, ExecutionError):
        body["exit_code"] = exc.exit_code
        body["stderr"] = exc.stderr
    return JSONResponse(body, status_code=status_code)


async def read_json(request: Request) -> dict:
    try:
        body = await request.json()
    except ValueError as e:
        raise BadRequest("Invalid JSON") from e
    if not isinstance(body, dict):
        raise BadRequest("JSON body must be an object")
    return body


def require_str(body: dict, key: str) -> str:
    value = body.get(key)
    if not isinstance(value, str) or not value.strip():
        raise BadRequest(f"{key} is required")
    return value


def optional_str(body: dict, key: str) -> str | None:
    value = body.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise BadRequest(f"{key} must be a string")
    return value
