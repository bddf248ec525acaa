"""Pytest configuration and fixtures for agent-first tests."""

import json

import httpx
import pytest
from fastapi.testclient import TestClient

import agentfirst.coordinator as coordinator_module
import agentfirst.storage as storage_module
from agentfirst.config import ResearcherSettings, SummarizerSettings
from agentfirst.coordinator import Coordinator
from agentfirst.server import app as api_app
from agentfirst.state import StateManager
from agentfirst.storage import Storage


class FakeClock:
    """Manually advanced clock for time-based state tests."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def state(clock) -> StateManager:
    return StateManager(clock=clock)


@pytest.fixture
def storage(monkeypatch) -> Storage:
    """Fresh global storage for the agent API."""
    fresh = Storage()
    monkeypatch.setattr(storage_module, "_storage", fresh)
    return fresh


@pytest.fixture
def api_client(storage) -> TestClient:
    return TestClient(api_app)


@pytest.fixture
def registered_agent(api_client) -> dict:
    """Register an agent and return its id, key and auth headers."""
    response = api_client.post("/api/auth/register", json={"name": "test-agent"})
    data = response.json()
    return {
        "id": data["agentId"],
        "api_key": data["apiKey"],
        "headers": {"Authorization": f"Bearer {data['apiKey']}"},
    }


@pytest.fixture
def researcher_settings() -> ResearcherSettings:
    return ResearcherSettings(require_auth=False, simulated_delay=0.0, heartbeat_interval=0)


@pytest.fixture
def summarizer_settings() -> SummarizerSettings:
    return SummarizerSettings(require_auth=False, simulated_delay=0.0, heartbeat_interval=0)


def sample_findings(query: str = "solar power") -> dict:
    return {
        "query": query,
        "sources": [
            {
                "title": f"Understanding {query}",
                "url": "https://example.com/article1",
                "summary": f"An overview of {query}. More detail follows.",
                "relevance": 0.95,
            },
            {
                "title": f"Latest Developments in {query}",
                "url": "https://example.com/article2",
                "summary": f"Recent advancements in {query}.",
                "relevance": 0.88,
            },
        ],
        "keyPoints": [f"{query} is evolving", "Costs are falling"],
        "confidence": 0.85,
        "timestamp": "2026-01-01T00:00:00+00:00",
    }


@pytest.fixture
def fake_worker_calls() -> list:
    """Records (url, body) of every request the fake workers receive."""
    return []


@pytest.fixture
def fake_workers(fake_worker_calls) -> httpx.MockTransport:
    """Transport answering like healthy researcher and summarizer workers."""

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        fake_worker_calls.append((str(request.url), body))
        task_id = body["taskId"]

        if request.url.host == "researcher.test":
            return httpx.Response(200, json={"success": True, "taskId": task_id, "findings": sample_findings()})

        if request.url.host == "summarizer.test":
            findings = body["subtask"]["previousResults"]["research"]["findings"]
            return httpx.Response(
                200,
                json={"success": True, "taskId": task_id, "summary": {"executive": f"About {findings['query']}"}},
            )

        return httpx.Response(404, json={"error": "Not found"})

    return httpx.MockTransport(handler)


@pytest.fixture
def coordinator(state, fake_workers) -> Coordinator:
    return Coordinator(state=state, task_timeout=5.0, transport=fake_workers)


@pytest.fixture
def coordinator_client(monkeypatch, coordinator) -> TestClient:
    """TestClient for the coordinator app backed by the test coordinator."""
    monkeypatch.setattr(coordinator_module, "_coordinator", coordinator)
    return TestClient(coordinator_module.app)


@pytest.fixture
def findings() -> dict:
    return sample_findings()


@pytest.fixture
def route_to_apps():
    """Build a transport dispatching ``localhost:<port>`` requests to ASGI apps."""

    def build(apps: dict) -> httpx.MockTransport:
        async def handler(request: httpx.Request) -> httpx.Response:
            app = apps.get(request.url.port)
            if app is None:
                raise httpx.ConnectError("connection refused", request=request)

            async with httpx.AsyncClient(
                transport=httpx.ASGITransport(app=app),
                base_url="http://testserver",
            ) as client:
                response = await client.request(
                    request.method,
                    request.url.raw_path.decode(),
                    content=request.content,
                    headers={"Content-Type": request.headers.get("content-type", "application/json")},
                )
            return httpx.Response(response.status_code, headers=response.headers, content=response.content)

        return httpx.MockTransport(handler)

    return build
