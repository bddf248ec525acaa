"""Agent-first HTTP API: registration, sessions and the skill document."""

from __future__ import annotations

import logging
import secrets
import time
import uuid
from datetime import datetime, timezone
from typing import Any

from fastapi import Body, Depends, FastAPI, HTTPException, Request
from fastapi.responses import PlainTextResponse

from agentfirst import __version__
from agentfirst.auth import new_agent_id, new_api_key, require_agent
from agentfirst.challenge import generate_challenge, verify_solutions
from agentfirst.config import get_server_settings
from agentfirst.errors import install_error_handlers
from agentfirst.schemas import (
    ApiHealthResponse,
    ChallengeResponse,
    ChallengeSubmission,
    RegisterRequest,
    RegisterResponse,
    SessionResponse,
    SessionStateView,
    SessionStatus,
    TokenResponse,
)
from agentfirst.storage import AgentRecord, IssuedToken, SessionRecord, get_storage

logger = logging.getLogger(__name__)

logging.basicConfig(
    level=get_server_settings().log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

AGENT_CAPABLE_HEADER = "X-Agent-Capable"
MAX_NAME_LENGTH = 50

app = FastAPI(
    title="Agent-First API",
    description="HTTP API designed for autonomous agents",
    version=__version__,
)
install_error_handlers(app)


@app.middleware("http")
async def agent_capable_header(request: Request, call_next):
    response = await call_next(request)
    response.headers[AGENT_CAPABLE_HEADER] = "true"
    return response


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# --- Skill document ---


_skill_cache: dict[str, Any] = {"content": None, "loaded_at": 0.0}


def _load_skill_document() -> str:
    """Return the skill document, re-reading it once the cache TTL lapses."""
    settings = get_server_settings()
    now = time.monotonic()
    if _skill_cache["content"] is None or now - _skill_cache["loaded_at"] > settings.skill_cache_ttl:
        _skill_cache["content"] = settings.skill_file.read_text(encoding="utf-8")
        _skill_cache["loaded_at"] = now
    return _skill_cache["content"]


@app.get("/.well-known/skill.md", response_class=PlainTextResponse)
async def skill_document() -> PlainTextResponse:
    """Serve the agent-facing description of this API."""
    return PlainTextResponse(
        _load_skill_document(),
        media_type="text/plain; charset=utf-8",
        headers={"Cache-Control": "public, max-age=60"},
    )


# --- Registration ---


@app.post("/api/auth/register", response_model=RegisterResponse, status_code=201)
async def register(request: RegisterRequest) -> RegisterResponse:
    """Issue an agent id and API key for a new, unique name."""
    name = request.name
    if not name or not name.strip():
        raise HTTPException(status_code=400, detail="Name is required and must be a non-empty string")
    if len(name) > MAX_NAME_LENGTH:
        raise HTTPException(status_code=400, detail=f"Name must be {MAX_NAME_LENGTH} characters or less")

    storage = get_storage()
    if storage.find_agent_by_name(name):
        raise HTTPException(status_code=409, detail="Name already taken")

    agent = AgentRecord(
        id=new_agent_id(),
        name=name,
        api_key=new_api_key(),
        created_at=_now_iso(),
    )
    storage.add_agent(agent)
    logger.info(f"Registered agent {agent.name} ({agent.id})")

    return RegisterResponse(
        agent_id=agent.id,
        api_key=agent.api_key,
        message=f"Welcome {name}! Use this API key for all requests.",
    )


# --- Login challenge ---


@app.get("/api/agent-auth", response_model=ChallengeResponse)
async def request_challenge(name: str | None = None) -> ChallengeResponse:
    """Hand out login puzzles for ``name``."""
    if not name or not name.strip():
        raise HTTPException(status_code=400, detail="Name is required")

    tasks, pending = generate_challenge(name)
    get_storage().put_challenge(pending)
    logger.info(f"Issued challenge {pending.challenge_id} to {name}")

    return ChallengeResponse(
        challenge_id=pending.challenge_id,
        tasks=tasks,
        expires_in=int(pending.ttl_seconds),
    )


@app.post("/api/agent-auth", response_model=TokenResponse)
async def submit_challenge(submission: ChallengeSubmission) -> TokenResponse:
    """Verify puzzle answers and issue a bearer token."""
    if not submission.name or submission.solutions is None:
        raise HTTPException(status_code=400, detail="name and solutions are required")

    storage = get_storage()
    pending = storage.pop_challenge(submission.name)
    if pending is None:
        raise HTTPException(status_code=400, detail="No pending challenge for this name")

    if not verify_solutions(pending, submission.solutions):
        logger.warning(f"Challenge failed for {submission.name}")
        raise HTTPException(status_code=401, detail="Incorrect solutions")

    agent = storage.find_agent_by_name(submission.name)
    if agent is None:
        agent = AgentRecord(id=new_agent_id(), name=submission.name, api_key=None, created_at=_now_iso())
        storage.add_agent(agent)

    ttl = get_server_settings().auth_token_ttl
    token = f"tok_{secrets.token_hex(24)}"
    storage.add_token(IssuedToken(token=token, agent_id=agent.id, expires_at=time.time() + ttl))
    logger.info(f"Issued token to {agent.name}")

    return TokenResponse(token=token, expires_in=ttl)


# --- Sessions ---


def _spectator_url(session_id: str) -> str:
    return f"{get_server_settings().public_base_url}/watch/{session_id}"


def _available_actions(status: str) -> list[str]:
    if status == SessionStatus.WAITING.value:
        return ["wait", "leave"]
    if status == SessionStatus.ACTIVE.value:
        return ["make_move", "forfeit"]
    return ["view_result"]


def build_session_view(session: SessionRecord, viewer: AgentRecord) -> SessionResponse:
    """Render a session the way its owner sees it."""
    waiting = session.status == SessionStatus.WAITING.value
    active = session.status == SessionStatus.ACTIVE.value
    complete = session.status == SessionStatus.COMPLETE.value

    return SessionResponse(
        session_id=session.id,
        status=session.status,
        state=SessionStateView(
            phase="lobby" if waiting else "game",
            player_count=1 if waiting else 2,
            turn=viewer.name if active else None,
        ),
        available_actions=_available_actions(session.status),
        spectator_url=_spectator_url(session.id),
        result={"winner": "demo", "reason": "test_complete"} if complete else None,
    )


@app.post("/api/sessions/join", response_model=SessionResponse, status_code=201)
async def join_session(agent: AgentRecord = Depends(require_agent)) -> SessionResponse:
    """Open a new waiting session for the calling agent."""
    now = _now_iso()
    session = SessionRecord(
        id=f"session_{uuid.uuid4()}",
        agent_id=agent.id,
        agent_name=agent.name,
        status=SessionStatus.WAITING.value,
        created_at=now,
        last_activity=now,
    )
    get_storage().add_session(session)
    logger.info(f"Agent {agent.name} joined session {session.id}")

    return build_session_view(session, agent)


@app.get("/api/sessions/{session_id}/state", response_model=SessionResponse)
async def session_state(session_id: str, agent: AgentRecord = Depends(require_agent)) -> SessionResponse:
    """Return the state of a session owned by the calling agent."""
    storage = get_storage()
    session = storage.get_session(session_id)

    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    if session.agent_id != agent.id:
        raise HTTPException(status_code=403, detail="Not your session")

    storage.update_session(session_id, last_activity=_now_iso())
    return build_session_view(session, agent)


# --- Health and test ---


@app.get("/api/health", response_model=ApiHealthResponse)
async def health() -> ApiHealthResponse:
    return ApiHealthResponse(timestamp=_now_iso(), version=__version__)


@app.get("/api/test")
async def test_endpoint() -> dict[str, Any]:
    """Unauthenticated endpoint listing."""
    return {
        "message": "Agent Framework Test Endpoint",
        "timestamp": _now_iso(),
        "status": "working",
        "endpoints": {
            "register": "/api/auth/register",
            "join_session": "/api/sessions/join",
            "session_state": "/api/sessions/{id}/state",
            "health": "/api/health",
        },
    }


@app.post("/api/test")
async def test_echo(
    body: Any = Body(default=None),
    agent: AgentRecord = Depends(require_agent),
) -> dict[str, Any]:
    """Authenticated echo of the request body."""
    return {
        "message": "Test successful",
        "agent": {"id": agent.id, "name": agent.name},
        "echo": body,
        "timestamp": _now_iso(),
    }
