"""Coordinator agent: decomposes research queries and delegates subtasks.

Subtasks run one at a time in priority order. Each goes to the first
registered worker advertising the required capability. A failed delegation
fails only that subtask; the task itself always ends ``completed``.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

import httpx
from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse

from agentfirst.config import get_coordinator_settings
from agentfirst.errors import DelegationError, install_error_handlers
from agentfirst.schemas import (
    RESEARCH_PREFIX,
    AgentRegisterRequest,
    AgentsResponse,
    CoordinatorHealthResponse,
    Depth,
    ErrorResponse,
    ResearchReport,
    ResearchRequest,
    ResearchResponse,
    StatsResponse,
    Subtask,
    SubtaskSpec,
    SubtaskType,
    SuccessResponse,
    Task,
    TaskStatus,
    WorkerRegistration,
)
from agentfirst.state import StateManager, get_state_manager

logger = logging.getLogger(__name__)

logging.basicConfig(
    level=get_coordinator_settings().log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

NO_CAPABLE_AGENT = "No capable agent available"


# --- Decomposition ---


def decompose_query(query: str, depth: Depth) -> list[SubtaskSpec]:
    """Split a research query into subtasks.

    Research always runs; a summarize step that depends on it is added for
    ``detailed`` and ``comprehensive`` depth.
    """
    subtasks = [
        SubtaskSpec(
            type=SubtaskType.RESEARCH,
            description=f"{RESEARCH_PREFIX}{query}",
            capability="search",
            priority=1,
        )
    ]

    if depth in (Depth.DETAILED, Depth.COMPREHENSIVE):
        subtasks.append(
            SubtaskSpec(
                type=SubtaskType.SUMMARIZE,
                description="Summarize research findings",
                capability="summarize",
                priority=2,
                depends_on=[SubtaskType.RESEARCH.value],
            )
        )

    return subtasks


def dependencies_met(subtask: SubtaskSpec, results: dict[str, Any]) -> bool:
    """True when every dependency of ``subtask`` produced a result."""
    return all(results.get(dep) is not None for dep in subtask.depends_on or [])


# --- Coordinator ---


class Coordinator:
    """Worker registry plus the sequential delegation loop."""

    def __init__(
        self,
        state: StateManager,
        task_timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the coordinator.

        Args:
            state: Store for tasks, subtasks and agent statuses
            task_timeout: Seconds to wait for a worker to answer a subtask
            transport: Optional httpx transport (used to fake workers in tests)
        """
        self.state = state
        self.task_timeout = task_timeout
        self._transport = transport
        self._workers: dict[str, WorkerRegistration] = {}
        self.started_at = time.monotonic()

    @property
    def workers(self) -> list[WorkerRegistration]:
        return list(self._workers.values())

    def register_worker(self, name: str, url: str, capabilities: list[str]) -> WorkerRegistration:
        """Add or silently replace the worker registered under ``name``."""
        registration = WorkerRegistration(
            name=name,
            url=url.rstrip("/"),
            capabilities=list(capabilities),
            last_seen=time.time(),
        )
        self._workers[name] = registration
        self.state.register_agent(name, url=registration.url, capabilities=registration.capabilities)
        logger.info(f"Registered agent: {name} at {registration.url} ({', '.join(capabilities)})")
        return registration

    def find_workers_by_capability(self, capability: str) -> list[WorkerRegistration]:
        """Workers advertising ``capability``, in registration order."""
        return [w for w in self._workers.values() if capability in w.capabilities]

    async def delegate_task(self, task_id: str, subtask: dict[str, Any], worker_url: str) -> dict[str, Any]:
        """POST one subtask to a worker and return its JSON response.

        Raises:
            DelegationError: On a non-2xx answer, transport failure, timeout
                or a body that is not JSON
        """
        try:
            async with httpx.AsyncClient(timeout=self.task_timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{worker_url}/task",
                    json={"taskId": task_id, "subtask": subtask},
                )
                response.raise_for_status()
                return response.json()

        except httpx.HTTPStatusError as e:
            logger.error(f"Failed to delegate task to {worker_url}: status {e.response.status_code}")
            raise DelegationError(f"Agent returned {e.response.status_code}") from e

        except httpx.HTTPError as e:
            message = str(e) or e.__class__.__name__
            logger.error(f"Failed to delegate task to {worker_url}: {message}")
            raise DelegationError(message) from e

        except ValueError as e:
            logger.error(f"Agent at {worker_url} returned invalid JSON")
            raise DelegationError("Agent returned invalid JSON") from e

    async def execute_subtasks(self, task_id: str, subtasks: list[Subtask]) -> dict[str, Any]:
        """Run subtasks in priority order and collect results by subtask type."""
        results: dict[str, Any] = {}

        for subtask in sorted(subtasks, key=lambda st: st.priority):
            subtask_type = subtask.type.value

            if not dependencies_met(subtask, results):
                logger.info(f"Skipping {subtask_type} - dependencies not met")
                continue

            candidates = self.find_workers_by_capability(subtask.capability)
            if not candidates:
                logger.error(f"No agent found for capability: {subtask.capability}")
                self.state.update_subtask(task_id, subtask.id, TaskStatus.FAILED, {"error": NO_CAPABLE_AGENT})
                continue

            worker = candidates[0]
            logger.info(f"Delegating {subtask_type} to {worker.name}")
            self.state.update_subtask(task_id, subtask.id, TaskStatus.IN_PROGRESS)

            payload = subtask.model_dump(by_alias=True, mode="json")
            payload["previousResults"] = {dep: results[dep] for dep in subtask.depends_on or []}

            try:
                result = await self.delegate_task(task_id, payload, worker.url)
            except DelegationError as e:
                logger.error(f"Task {subtask_type} failed: {e}")
                self.state.update_subtask(task_id, subtask.id, TaskStatus.FAILED, {"error": str(e)})
                continue

            results[subtask_type] = result
            self.state.update_subtask(task_id, subtask.id, TaskStatus.COMPLETED, result)
            self.state.store_result(task_id, worker.name, result)
            self.state.update_agent_status(worker.name, status="online")

        return results

    async def run_research(self, query: str, depth: Depth = Depth.BASIC) -> ResearchReport:
        """Create a task for ``query``, run its subtasks and store the report."""
        task_id = str(uuid.uuid4())
        self.state.create_task(task_id, query=query, depth=depth)
        logger.info(f"New research task: {task_id}")
        logger.info(f"Query: {query}")

        for spec in decompose_query(query, depth):
            self.state.add_subtask(task_id, spec)

        self.state.update_task(task_id, TaskStatus.IN_PROGRESS)
        results = await self.execute_subtasks(task_id, self.state.get_task(task_id).subtasks)

        research = results.get(SubtaskType.RESEARCH.value) or {}
        summarize = results.get(SubtaskType.SUMMARIZE.value) or {}
        report = ResearchReport(
            task_id=task_id,
            query=query,
            depth=depth,
            completed_at=datetime.now(timezone.utc).isoformat(),
            findings=research.get("findings") or {},
            summary=summarize.get("summary"),
        )

        self.state.update_task(task_id, TaskStatus.COMPLETED, report=report)
        return report


# Global coordinator instance
_coordinator: Coordinator | None = None


def get_coordinator() -> Coordinator:
    """Get or create the process-wide coordinator."""
    global _coordinator
    if _coordinator is None:
        settings = get_coordinator_settings()
        _coordinator = Coordinator(state=get_state_manager(), task_timeout=settings.task_timeout)
    return _coordinator


async def _cleanup_loop(state: StateManager, interval: float, max_age: float) -> None:
    while True:
        await asyncio.sleep(interval)
        state.cleanup(max_age)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_coordinator_settings()
    coordinator = get_coordinator()
    logger.info(f"Coordinator listening; server URL: {settings.server_url}")
    logger.info("Waiting for agents to register...")

    cleanup = asyncio.create_task(
        _cleanup_loop(coordinator.state, settings.cleanup_interval, settings.task_max_age)
    )
    try:
        yield
    finally:
        cleanup.cancel()
        logger.info("Shutting down gracefully...")


app = FastAPI(
    title="Research Coordinator",
    description="Decomposes research queries and delegates them to specialist agents",
    version="1.0.0",
    lifespan=lifespan,
)
install_error_handlers(app)


# --- HTTP Endpoints ---


@app.post("/research", response_model=ResearchResponse)
async def research(request: ResearchRequest):
    """Submit a research query and wait for the aggregated report."""
    if not request.query:
        raise HTTPException(status_code=400, detail="Query is required")

    try:
        report = await get_coordinator().run_research(request.query, request.depth)
    except Exception as e:
        logger.error(f"Error processing research: {e}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(error="Failed to process research query", message=str(e)).model_dump(),
        )

    return ResearchResponse(task_id=report.task_id, report=report)


@app.get("/task/{task_id}", response_model=Task)
async def get_task(task_id: str) -> Task:
    task = get_coordinator().state.get_task(task_id)
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


@app.post("/agent/register", response_model=SuccessResponse)
async def register_agent(request: AgentRegisterRequest) -> SuccessResponse:
    """Register (or re-register) a worker and its capabilities."""
    if not request.name or not request.url or request.capabilities is None:
        raise HTTPException(status_code=400, detail="name, url, and capabilities are required")

    get_coordinator().register_worker(request.name, request.url, request.capabilities)
    return SuccessResponse(message=f"Agent {request.name} registered successfully")


@app.get("/agents", response_model=AgentsResponse)
async def list_agents() -> AgentsResponse:
    coordinator = get_coordinator()
    return AgentsResponse(agents=coordinator.workers, online=coordinator.state.get_online_agents())


@app.get("/stats", response_model=StatsResponse)
async def stats() -> StatsResponse:
    return get_coordinator().state.get_stats()


@app.get("/health", response_model=CoordinatorHealthResponse)
async def health() -> CoordinatorHealthResponse:
    coordinator = get_coordinator()
    return CoordinatorHealthResponse(
        uptime=time.monotonic() - coordinator.started_at,
        agents=len(coordinator.workers),
    )
