"""Pydantic schemas for the agent API, coordinator and worker contracts.

All models serialize with camelCase keys on the wire and accept either
camelCase or snake_case on input.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TaskStatus(str, Enum):
    """Lifecycle of tasks and subtasks."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED})

# Description prefix the researcher strips to recover the query
RESEARCH_PREFIX = "Gather information about: "


class Depth(str, Enum):
    """How far a research query is decomposed."""

    BASIC = "basic"
    DETAILED = "detailed"
    COMPREHENSIVE = "comprehensive"


class SubtaskType(str, Enum):
    """Kinds of delegated work."""

    RESEARCH = "research"
    SUMMARIZE = "summarize"


class SessionStatus(str, Enum):
    """Agent API session lifecycle."""

    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETE = "complete"


# --- Errors ---


class ErrorResponse(BaseModel):
    """Error body returned by every service."""

    error: str
    message: str | None = None


# --- Agent API ---


class RegisterRequest(BaseModel):
    name: str | None = None


class RegisterResponse(CamelModel):
    agent_id: str
    api_key: str
    message: str


class ApiHealthResponse(BaseModel):
    status: Literal["healthy"] = "healthy"
    timestamp: str
    framework: str = "agent-first"
    version: str


class SessionStateView(CamelModel):
    phase: Literal["lobby", "game"]
    player_count: int
    max_players: int = 2
    turn: str | None = None


class SessionResponse(CamelModel):
    """Snapshot of a session as seen by the owning agent."""

    session_id: str
    status: SessionStatus
    state: SessionStateView
    available_actions: list[str]
    spectator_url: str
    result: dict[str, Any] | None = None


class ChallengeTask(BaseModel):
    """One puzzle in an agent login challenge."""

    type: Literal["reverse", "sort", "math", "pattern", "logic"]
    input: Any


class ChallengeResponse(CamelModel):
    challenge_id: str
    tasks: list[ChallengeTask]
    expires_in: int


class ChallengeSubmission(BaseModel):
    name: str | None = None
    solutions: list[Any] | None = None


class TokenResponse(CamelModel):
    token: str
    expires_in: int


# --- Coordinator ---


class SubtaskSpec(CamelModel):
    """A subtask as produced by decomposition, before it is tracked."""

    type: SubtaskType
    description: str
    capability: str
    priority: int
    depends_on: list[str] | None = None


class Subtask(SubtaskSpec):
    """A tracked unit of delegated work."""

    id: str
    status: TaskStatus = TaskStatus.PENDING
    result: dict[str, Any] | None = None
    created_at: float
    updated_at: float


class StoredResult(CamelModel):
    data: Any
    timestamp: float


class ResearchReport(CamelModel):
    """Aggregated outcome of a research task."""

    task_id: str
    query: str
    depth: Depth
    completed_at: str
    findings: dict[str, Any] = Field(default_factory=dict)
    summary: dict[str, Any] | None = None


class Task(CamelModel):
    """A research request and everything delegated for it."""

    id: str
    status: TaskStatus = TaskStatus.PENDING
    type: str = "research"
    query: str
    depth: Depth = Depth.BASIC
    created_at: float
    updated_at: float
    subtasks: list[Subtask] = Field(default_factory=list)
    results: dict[str, StoredResult] = Field(default_factory=dict)
    report: ResearchReport | None = None


class Session(CamelModel):
    """Coordinator-side session record."""

    model_config = ConfigDict(extra="allow")

    id: str
    created_at: float
    updated_at: float


class AgentStatus(CamelModel):
    """Liveness record for a registered worker."""

    name: str
    status: Literal["online", "offline"] = "online"
    last_seen: float
    url: str | None = None
    capabilities: list[str] = Field(default_factory=list)


class WorkerRegistration(CamelModel):
    name: str
    url: str
    capabilities: list[str]
    last_seen: float


class ResearchRequest(BaseModel):
    query: str | None = None
    depth: Depth = Depth.BASIC


class ResearchResponse(CamelModel):
    success: bool = True
    task_id: str
    report: ResearchReport


class AgentRegisterRequest(BaseModel):
    name: str | None = None
    url: str | None = None
    capabilities: list[str] | None = None


class SuccessResponse(BaseModel):
    success: bool = True
    message: str


class AgentsResponse(BaseModel):
    agents: list[WorkerRegistration]
    online: list[AgentStatus]


class TaskCounts(CamelModel):
    total: int
    pending: int
    in_progress: int
    completed: int
    failed: int


class AgentCounts(BaseModel):
    total: int
    online: int
    offline: int


class SessionCounts(BaseModel):
    total: int


class StatsResponse(BaseModel):
    tasks: TaskCounts
    sessions: SessionCounts
    agents: AgentCounts


class CoordinatorHealthResponse(BaseModel):
    status: Literal["healthy"] = "healthy"
    uptime: float
    agents: int


# --- Workers ---


class WorkerTaskRequest(CamelModel):
    task_id: str | None = None
    subtask: dict[str, Any] | None = None


class Source(BaseModel):
    title: str
    url: str
    summary: str
    relevance: float


class ResearchFindings(CamelModel):
    """Templated findings returned by the researcher."""

    query: str
    sources: list[Source]
    key_points: list[str] = Field(default_factory=list)
    confidence: float = 0.85
    timestamp: str


class SourceAnalysis(CamelModel):
    title: str
    main_point: str
    relevance: float


class DetailedSummary(CamelModel):
    overview: str
    key_findings: list[str]
    source_analysis: list[SourceAnalysis]
    confidence: float
    recommendations: list[str]


class WordCount(BaseModel):
    executive: int
    concise: int


class ResearchSummary(CamelModel):
    """Summary produced by the summarizer."""

    query: str
    executive: str
    detailed: DetailedSummary
    concise: str
    word_count: WordCount
    generated_at: str


class CapabilitiesResponse(CamelModel):
    name: str
    capabilities: list[str]
    status: Literal["authenticated", "unauthenticated"]
    active_tasks: int


class WorkerHealthResponse(CamelModel):
    status: Literal["healthy"] = "healthy"
    authenticated: bool
    uptime: float
    active_tasks: int
