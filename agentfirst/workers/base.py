"""Shared HTTP plumbing for specialist worker agents."""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable

import httpx
from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse

from agentfirst.config import WorkerSettings
from agentfirst.errors import AuthenticationError, install_error_handlers
from agentfirst.schemas import (
    CapabilitiesResponse,
    ErrorResponse,
    TaskStatus,
    WorkerHealthResponse,
    WorkerTaskRequest,
)
from agentfirst.workers.auth import AgentAuth

logger = logging.getLogger(__name__)

TaskHandler = Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]


class Worker:
    """A worker agent: one task handler behind the standard worker endpoints.

    The FastAPI app is available as ``worker.app``. Its lifespan logs in to
    the agent API, registers with the coordinator, and keeps both fresh in
    the background.
    """

    def __init__(
        self,
        settings: WorkerSettings,
        handler: TaskHandler,
        result_key: str,
        label: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the worker.

        Args:
            settings: Identity, ports and upstream URLs
            handler: Coroutine turning a subtask into the result payload
            result_key: Key the payload is returned under (e.g. "findings")
            label: Short name used in log lines and error messages
            transport: Optional httpx transport for upstream calls
        """
        self.settings = settings
        self.handler = handler
        self.result_key = result_key
        self.label = label
        self.auth = AgentAuth(settings.server_url, settings.agent_name, transport=transport)
        self.authenticated = False
        self.current_tasks: dict[str, dict[str, Any]] = {}
        self.started_at = time.monotonic()
        self._transport = transport
        self.app = self._build_app()

    # --- Upstream calls ---

    async def register_with_coordinator(self) -> bool:
        """Announce this worker's URL and capabilities to the coordinator."""
        try:
            async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
                response = await client.post(
                    f"{self.settings.coordinator_url.rstrip('/')}/agent/register",
                    json={
                        "name": self.settings.agent_name,
                        "url": self.settings.advertised_url,
                        "capabilities": self.settings.capabilities,
                    },
                )
        except httpx.HTTPError as e:
            logger.warning(f"[{self.label}] Could not reach coordinator: {e}")
            return False

        if response.is_success:
            logger.info(f"[{self.label}] Registered with coordinator")
            return True

        logger.warning(f"[{self.label}] Failed to register with coordinator: {response.status_code}")
        return False

    async def _refresh_token_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.token_refresh_interval)
            try:
                await self.auth.get_token()
                self.authenticated = True
            except AuthenticationError as e:
                logger.error(f"[{self.label}] Token refresh failed: {e}")
                self.authenticated = False

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.heartbeat_interval)
            await self.register_with_coordinator()

    @asynccontextmanager
    async def lifespan(self, app: FastAPI):
        logger.info(f"[{self.label}] Starting {self.settings.agent_name}...")

        if self.settings.require_auth:
            logger.info(f"[{self.label}] Authenticating with server...")
            await self.auth.authenticate()
            self.authenticated = True

        await self.register_with_coordinator()

        background = []
        if self.settings.require_auth and self.settings.token_refresh_interval > 0:
            background.append(asyncio.create_task(self._refresh_token_loop()))
        if self.settings.heartbeat_interval > 0:
            background.append(asyncio.create_task(self._heartbeat_loop()))

        try:
            yield
        finally:
            for task in background:
                task.cancel()
            logger.info(f"[{self.label}] Shutting down gracefully...")
            self.auth.logout()

    # --- Task processing ---

    async def process_task(self, task_id: str, subtask: dict[str, Any]) -> dict[str, Any]:
        """Run the handler for one subtask, tracking it in ``current_tasks``."""
        logger.info(f"[{self.label}] Received task {task_id}: {subtask.get('description')}")
        self.current_tasks[task_id] = {
            **subtask,
            "status": TaskStatus.IN_PROGRESS.value,
            "startedAt": time.time(),
        }

        try:
            payload = await self.handler(subtask)
        except Exception as e:
            self.current_tasks[task_id].update(status=TaskStatus.FAILED.value, error=str(e))
            raise

        self.current_tasks[task_id].update(
            status=TaskStatus.COMPLETED.value,
            completedAt=time.time(),
            result=payload,
        )
        logger.info(f"[{self.label}] Completed task {task_id}")
        return {"success": True, "taskId": task_id, self.result_key: payload}

    # --- HTTP app ---

    def _build_app(self) -> FastAPI:
        app = FastAPI(
            title=self.settings.agent_name,
            description=f"{self.label} worker agent",
            version="1.0.0",
            lifespan=self.lifespan,
        )
        install_error_handlers(app)

        @app.post("/task")
        async def receive_task(request: WorkerTaskRequest):
            """Execute a delegated subtask."""
            if not request.task_id or not request.subtask:
                raise HTTPException(status_code=400, detail="taskId and subtask are required")

            try:
                return await self.process_task(request.task_id, request.subtask)
            except Exception as e:
                logger.error(f"[{self.label}] Error processing task: {e}", exc_info=True)
                return JSONResponse(
                    status_code=500,
                    content=ErrorResponse(
                        error=f"Failed to process {self.label.lower()} task",
                        message=str(e),
                    ).model_dump(),
                )

        @app.get("/task/{task_id}")
        async def get_task(task_id: str) -> dict[str, Any]:
            task = self.current_tasks.get(task_id)
            if task is None:
                raise HTTPException(status_code=404, detail="Task not found")
            return task

        @app.get("/capabilities", response_model=CapabilitiesResponse)
        async def capabilities() -> CapabilitiesResponse:
            return CapabilitiesResponse(
                name=self.settings.agent_name,
                capabilities=self.settings.capabilities,
                status="authenticated" if self.authenticated else "unauthenticated",
                active_tasks=len(self.current_tasks),
            )

        @app.get("/health", response_model=WorkerHealthResponse)
        async def health() -> WorkerHealthResponse:
            return WorkerHealthResponse(
                authenticated=self.authenticated,
                uptime=time.monotonic() - self.started_at,
                active_tasks=len(self.current_tasks),
            )

        return app
