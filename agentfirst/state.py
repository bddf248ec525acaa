"""In-memory state for the multi-agent coordinator.

Tracks research tasks and their subtasks, coordinator sessions, and the
liveness of registered workers. Everything lives in plain dicts owned by a
single event loop, so no locking is done.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from agentfirst.errors import SessionNotFoundError, SubtaskNotFoundError, TaskNotFoundError
from agentfirst.schemas import (
    TERMINAL_STATUSES,
    AgentCounts,
    AgentStatus,
    Depth,
    Session,
    SessionCounts,
    StatsResponse,
    StoredResult,
    Subtask,
    SubtaskSpec,
    Task,
    TaskCounts,
    TaskStatus,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE_SECONDS = 3600.0
AGENT_OFFLINE_AFTER_SECONDS = 60.0


class StateManager:
    """Tasks, sessions and agent statuses for one coordinator process."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self.tasks: dict[str, Task] = {}
        self.sessions: dict[str, Session] = {}
        self.agent_status: dict[str, AgentStatus] = {}
        self._clock = clock

    # --- Tasks ---

    def create_task(self, task_id: str, query: str, depth: Depth = Depth.BASIC) -> Task:
        now = self._clock()
        task = Task(id=task_id, query=query, depth=depth, created_at=now, updated_at=now)
        self.tasks[task_id] = task
        return task

    def get_task(self, task_id: str) -> Task | None:
        return self.tasks.get(task_id)

    def _require_task(self, task_id: str) -> Task:
        task = self.tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def update_task(self, task_id: str, status: TaskStatus, **updates: Any) -> Task:
        """Set a task's status plus any extra fields (e.g. ``report``)."""
        task = self._require_task(task_id)
        task.status = status
        for key, value in updates.items():
            setattr(task, key, value)
        task.updated_at = self._clock()
        return task

    def add_subtask(self, task_id: str, spec: SubtaskSpec) -> Subtask:
        """Track a decomposed subtask; its id is ``{task_id}-{index}``."""
        task = self._require_task(task_id)
        now = self._clock()
        subtask = Subtask(
            **spec.model_dump(),
            id=f"{task_id}-{len(task.subtasks)}",
            created_at=now,
            updated_at=now,
        )
        task.subtasks.append(subtask)
        task.updated_at = now
        return subtask

    def update_subtask(
        self,
        task_id: str,
        subtask_id: str,
        status: TaskStatus,
        result: dict[str, Any] | None = None,
    ) -> Subtask:
        task = self._require_task(task_id)
        subtask = next((st for st in task.subtasks if st.id == subtask_id), None)
        if subtask is None:
            raise SubtaskNotFoundError(subtask_id)

        now = self._clock()
        subtask.status = status
        subtask.updated_at = now
        if result is not None:
            subtask.result = result
        task.updated_at = now
        return subtask

    def store_result(self, task_id: str, agent_name: str, result: Any) -> None:
        """Record a worker's output for a task, keyed by worker name."""
        task = self._require_task(task_id)
        now = self._clock()
        task.results[agent_name] = StoredResult(data=result, timestamp=now)
        task.updated_at = now

    def get_results(self, task_id: str) -> dict[str, StoredResult]:
        task = self.tasks.get(task_id)
        return task.results if task else {}

    def are_subtasks_complete(self, task_id: str) -> bool:
        """True once every subtask of a task reached a terminal status."""
        task = self.tasks.get(task_id)
        if task is None or not task.subtasks:
            return False
        return all(st.status in TERMINAL_STATUSES for st in task.subtasks)

    # --- Sessions ---

    def create_session(self, session_id: str, **data: Any) -> Session:
        now = self._clock()
        session = Session(id=session_id, created_at=now, updated_at=now, **data)
        self.sessions[session_id] = session
        return session

    def get_session(self, session_id: str) -> Session | None:
        return self.sessions.get(session_id)

    def update_session(self, session_id: str, **updates: Any) -> Session:
        session = self.sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        for key, value in updates.items():
            setattr(session, key, value)
        session.updated_at = self._clock()
        return session

    # --- Agents ---

    def register_agent(self, name: str, url: str | None = None, capabilities: list[str] | None = None) -> AgentStatus:
        status = AgentStatus(
            name=name,
            status="online",
            last_seen=self._clock(),
            url=url,
            capabilities=list(capabilities or []),
        )
        self.agent_status[name] = status
        return status

    def update_agent_status(self, name: str, **updates: Any) -> AgentStatus:
        """Merge updates into an agent's status and mark it as just seen."""
        agent = self.agent_status.get(name)
        if agent is None:
            return self.register_agent(
                name,
                url=updates.get("url"),
                capabilities=updates.get("capabilities"),
            )
        for key, value in updates.items():
            setattr(agent, key, value)
        agent.last_seen = self._clock()
        return agent

    def get_agent_status(self, name: str) -> AgentStatus | None:
        return self.agent_status.get(name)

    def get_online_agents(self) -> list[AgentStatus]:
        now = self._clock()
        return [
            agent
            for agent in self.agent_status.values()
            if agent.status == "online" and now - agent.last_seen < AGENT_OFFLINE_AFTER_SECONDS
        ]

    # --- Maintenance ---

    def cleanup(self, max_age: float = DEFAULT_MAX_AGE_SECONDS) -> None:
        """Drop stale terminal tasks and sessions; flag silent agents offline."""
        now = self._clock()

        stale_tasks = [
            task_id
            for task_id, task in self.tasks.items()
            if now - task.updated_at > max_age and task.status in TERMINAL_STATUSES
        ]
        for task_id in stale_tasks:
            del self.tasks[task_id]

        stale_sessions = [sid for sid, s in self.sessions.items() if now - s.updated_at > max_age]
        for session_id in stale_sessions:
            del self.sessions[session_id]

        went_offline = 0
        for agent in self.agent_status.values():
            if now - agent.last_seen > AGENT_OFFLINE_AFTER_SECONDS and agent.status != "offline":
                agent.status = "offline"
                went_offline += 1

        if stale_tasks or stale_sessions or went_offline:
            logger.info(
                f"Cleanup removed {len(stale_tasks)} tasks, {len(stale_sessions)} sessions; "
                f"{went_offline} agents marked offline"
            )

    def get_stats(self) -> StatsResponse:
        tasks = list(self.tasks.values())
        agents = list(self.agent_status.values())

        def count(status: TaskStatus) -> int:
            return sum(1 for t in tasks if t.status == status)

        return StatsResponse(
            tasks=TaskCounts(
                total=len(tasks),
                pending=count(TaskStatus.PENDING),
                in_progress=count(TaskStatus.IN_PROGRESS),
                completed=count(TaskStatus.COMPLETED),
                failed=count(TaskStatus.FAILED),
            ),
            sessions=SessionCounts(total=len(self.sessions)),
            agents=AgentCounts(
                total=len(agents),
                online=sum(1 for a in agents if a.status == "online"),
                offline=sum(1 for a in agents if a.status == "offline"),
            ),
        )


# Global state instance
_state_manager: StateManager | None = None


def get_state_manager() -> StateManager:
    """Get or create the process-wide state manager."""
    global _state_manager
    if _state_manager is None:
        _state_manager = StateManager()
    return _state_manager
