"""Exceptions and shared FastAPI error handlers."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from agentfirst.schemas import ErrorResponse

logger = logging.getLogger(__name__)


class AgentFirstError(Exception):
    """Base exception for agent-first services."""

    pass


class TaskNotFoundError(AgentFirstError, KeyError):
    """Raised when a task id is not tracked."""

    def __init__(self, task_id: str):
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id

    def __str__(self) -> str:
        return self.args[0]


class SubtaskNotFoundError(AgentFirstError, KeyError):
    """Raised when a subtask id is not part of its task."""

    def __init__(self, subtask_id: str):
        super().__init__(f"Subtask {subtask_id} not found")
        self.subtask_id = subtask_id

    def __str__(self) -> str:
        return self.args[0]


class SessionNotFoundError(AgentFirstError, KeyError):
    """Raised when a session id is not tracked."""

    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} not found")
        self.session_id = session_id

    def __str__(self) -> str:
        return self.args[0]


class DelegationError(AgentFirstError):
    """Raised when a worker cannot complete a delegated subtask."""

    pass


class AuthenticationError(AgentFirstError):
    """Raised when an agent fails the login challenge."""

    pass


def _error_body(error: str, message: str | None = None) -> dict:
    return ErrorResponse(error=error, message=message).model_dump(exclude_none=True)


def _describe_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts)


def install_error_handlers(app: FastAPI) -> None:
    """Render every error on ``app`` as an ErrorResponse body."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        if any(err.get("type") == "json_invalid" for err in exc.errors()):
            return JSONResponse(status_code=400, content=_error_body("Invalid JSON"))
        return JSONResponse(
            status_code=400,
            content=_error_body("Invalid request body", _describe_validation_errors(exc)),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content=_error_body("Internal server error", str(exc)),
        )
