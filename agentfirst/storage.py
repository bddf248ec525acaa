"""In-memory storage for the agent API.

Holds registered agents, their sessions, pending login challenges and issued
bearer tokens. Replace with a real database in production.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from threading import Lock
from typing import Any


@dataclass
class AgentRecord:
    """An agent known to the API."""

    id: str
    name: str
    api_key: str | None
    created_at: str


@dataclass
class SessionRecord:
    """A session owned by one agent."""

    id: str
    agent_id: str
    agent_name: str
    status: str
    created_at: str
    last_activity: str


@dataclass
class PendingChallenge:
    """Expected answers for an outstanding login challenge."""

    challenge_id: str
    name: str
    expected: list[Any]
    issued_at: float = field(default_factory=time.time)
    ttl_seconds: float = 300.0

    def is_expired(self, now: float | None = None) -> bool:
        return (time.time() if now is None else now) - self.issued_at > self.ttl_seconds


@dataclass
class IssuedToken:
    token: str
    agent_id: str
    expires_at: float


class Storage:
    """Thread-safe maps of agents, sessions, challenges and tokens."""

    def __init__(self):
        self._agents: dict[str, AgentRecord] = {}
        self._sessions: dict[str, SessionRecord] = {}
        self._challenges: dict[str, PendingChallenge] = {}
        self._tokens: dict[str, IssuedToken] = {}
        self._lock = Lock()

    # Agents

    def add_agent(self, agent: AgentRecord) -> None:
        with self._lock:
            self._agents[agent.id] = agent

    def get_agent(self, agent_id: str) -> AgentRecord | None:
        with self._lock:
            return self._agents.get(agent_id)

    def find_agent_by_api_key(self, api_key: str) -> AgentRecord | None:
        with self._lock:
            return next(
                (a for a in self._agents.values() if a.api_key is not None and a.api_key == api_key),
                None,
            )

    def find_agent_by_name(self, name: str) -> AgentRecord | None:
        with self._lock:
            return next((a for a in self._agents.values() if a.name == name), None)

    # Sessions

    def add_session(self, session: SessionRecord) -> None:
        with self._lock:
            self._sessions[session.id] = session

    def get_session(self, session_id: str) -> SessionRecord | None:
        with self._lock:
            return self._sessions.get(session_id)

    def update_session(self, session_id: str, **updates: Any) -> None:
        """Apply field updates to a session; unknown ids are ignored."""
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return
            for key, value in updates.items():
                setattr(session, key, value)

    # Login challenges

    def put_challenge(self, challenge: PendingChallenge) -> None:
        """Store a challenge, replacing any earlier one for the same name.

        Expired challenges left behind by agents that never answered are
        dropped at the same time.
        """
        with self._lock:
            expired = [name for name, pending in self._challenges.items() if pending.is_expired()]
            for name in expired:
                del self._challenges[name]
            self._challenges[challenge.name] = challenge

    def pop_challenge(self, name: str) -> PendingChallenge | None:
        with self._lock:
            return self._challenges.pop(name, None)

    # Tokens

    def add_token(self, token: IssuedToken) -> None:
        with self._lock:
            self._tokens[token.token] = token

    def find_agent_by_token(self, token: str, now: float | None = None) -> AgentRecord | None:
        """Resolve an unexpired bearer token to its agent."""
        with self._lock:
            issued = self._tokens.get(token)
            if issued is None:
                return None
            if issued.expires_at <= (time.time() if now is None else now):
                del self._tokens[token]
                return None
            return self._agents.get(issued.agent_id)


# Global storage instance
_storage: Storage | None = None


def get_storage() -> Storage:
    """Get or create the global storage instance."""
    global _storage
    if _storage is None:
        _storage = Storage()
    return _storage
