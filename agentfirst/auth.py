"""API key issuance and bearer validation for the agent API."""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from fastapi import HTTPException, Request

from agentfirst.storage import AgentRecord, Storage, get_storage

BEARER_PREFIX = "Bearer "


@dataclass
class AuthResult:
    """Outcome of validating a request's Authorization header."""

    valid: bool
    agent: AgentRecord | None = None
    error: str | None = None


def new_agent_id() -> str:
    return f"agent_{uuid.uuid4()}"


def new_api_key() -> str:
    return f"sk_test_{uuid.uuid4().hex}"


def validate_api_key(request: Request, storage: Storage | None = None) -> AuthResult:
    """Resolve the bearer credential on ``request`` to an agent.

    Accepts either an API key from registration or an unexpired token from
    the login challenge.
    """
    storage = storage or get_storage()
    auth_header = request.headers.get("authorization")

    if not auth_header or not auth_header.startswith(BEARER_PREFIX):
        return AuthResult(valid=False, error="Missing or invalid Authorization header")

    credential = auth_header[len(BEARER_PREFIX):]
    agent = storage.find_agent_by_api_key(credential) or storage.find_agent_by_token(credential)

    if agent is None:
        return AuthResult(valid=False, error="Invalid API key")

    return AuthResult(valid=True, agent=agent)


def require_agent(request: Request) -> AgentRecord:
    """FastAPI dependency returning the authenticated agent or raising 401."""
    auth = validate_api_key(request)
    if not auth.valid:
        raise HTTPException(status_code=401, detail=auth.error or "Authentication failed")
    return auth.agent
