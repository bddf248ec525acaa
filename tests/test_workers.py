"""Tests for the researcher and summarizer workers."""

import asyncio
import json

import httpx
import pytest
from fastapi.testclient import TestClient
from pydantic import ValidationError

from agentfirst.schemas import ResearchFindings
from agentfirst.server import app as api_app
from agentfirst.workers import create_researcher, create_summarizer
from agentfirst.workers.researcher import build_findings, conduct_research, extract_query
from agentfirst.workers.summarizer import SummarizationError, extract_findings, generate_summary


def _summarize_subtask(findings):
    return {
        "type": "summarize",
        "description": "Summarize research findings",
        "capability": "summarize",
        "priority": 2,
        "dependsOn": ["research"],
        "previousResults": {"research": {"success": True, "taskId": "t1", "findings": findings}},
    }


class TestResearcher:
    """Test the researcher's query handling and findings."""

    def test_extract_query_prefers_explicit_query(self):
        assert extract_query({"query": "tides", "description": "Gather information about: waves"}) == "tides"

    def test_extract_query_strips_description_prefix(self):
        assert extract_query({"description": "Gather information about: tides"}) == "tides"

    def test_extract_query_without_prefix(self):
        assert extract_query({"description": "tides"}) == "tides"

    def test_build_findings(self):
        findings = build_findings("tides")

        assert findings.query == "tides"
        assert len(findings.sources) == 3
        assert [s.relevance for s in findings.sources] == [0.95, 0.88, 0.82]
        assert findings.sources[0].title == "Understanding tides"
        assert len(findings.key_points) == 3
        assert findings.confidence == 0.85

    def test_conduct_research(self):
        findings = asyncio.run(conduct_research("tides"))
        assert findings.query == "tides"


class TestSummarizer:
    """Test summary generation."""

    def test_generate_summary(self, findings):
        summary = generate_summary(ResearchFindings.model_validate(findings))

        assert summary.query == "solar power"
        assert summary.executive == (
            "Research on solar power reveals 2 key insights from 2 sources. "
            "The findings indicate solar power is evolving."
        )
        assert summary.concise == "solar power is evolving. Costs are falling."
        assert summary.detailed.key_findings == findings["keyPoints"]
        assert summary.detailed.confidence == 0.85
        assert len(summary.detailed.recommendations) == 3
        assert summary.word_count.concise == 7

    def test_source_analysis_uses_first_sentence(self, findings):
        summary = generate_summary(ResearchFindings.model_validate(findings))

        analysis = summary.detailed.source_analysis[0]
        assert analysis.title == "Understanding solar power"
        assert analysis.main_point == "An overview of solar power."
        assert analysis.relevance == 0.95

    def test_summary_without_key_points(self, findings):
        findings["keyPoints"] = []

        summary = generate_summary(ResearchFindings.model_validate(findings))

        assert "significant developments in this area" in summary.executive

    def test_summary_wire_format(self, findings):
        data = generate_summary(ResearchFindings.model_validate(findings)).model_dump(by_alias=True)

        assert set(data) == {"query", "executive", "detailed", "concise", "wordCount", "generatedAt"}
        assert "keyFindings" in data["detailed"]
        assert "mainPoint" in data["detailed"]["sourceAnalysis"][0]

    def test_extract_findings(self, findings):
        assert extract_findings(_summarize_subtask(findings)).query == "solar power"

    def test_extract_findings_missing(self):
        with pytest.raises(SummarizationError, match="No research findings provided"):
            extract_findings({"description": "Summarize research findings"})

    def test_extract_findings_without_sources(self, findings):
        findings["sources"] = []
        with pytest.raises(SummarizationError, match="No findings to summarize"):
            extract_findings(_summarize_subtask(findings))

    def test_extract_findings_wrong_shape(self):
        with pytest.raises(SummarizationError, match="No research findings provided"):
            extract_findings({"previousResults": {"research": "oops"}})
        with pytest.raises(SummarizationError, match="must be an object"):
            extract_findings({"previousResults": {"research": {"findings": "oops"}}})

    def test_extract_findings_malformed(self):
        with pytest.raises(ValidationError):
            extract_findings(_summarize_subtask({"query": "q", "sources": [{"title": "only a title"}]}))


class TestWorkerEndpoints:
    """Test the HTTP surface shared by all workers."""

    @pytest.fixture
    def researcher(self, researcher_settings):
        return create_researcher(researcher_settings)

    @pytest.fixture
    def client(self, researcher):
        return TestClient(researcher.app)

    def test_task_returns_findings(self, client):
        response = client.post(
            "/task",
            json={"taskId": "t1-0", "subtask": {"description": "Gather information about: tides"}},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["taskId"] == "t1-0"
        assert data["findings"]["query"] == "tides"
        assert len(data["findings"]["keyPoints"]) == 3

    def test_task_is_tracked(self, client):
        client.post("/task", json={"taskId": "t1-0", "subtask": {"description": "Gather information about: tides"}})

        response = client.get("/task/t1-0")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "completed"
        assert data["result"]["query"] == "tides"
        assert data["completedAt"] >= data["startedAt"]

    def test_unknown_task(self, client):
        response = client.get("/task/nope")

        assert response.status_code == 404
        assert response.json() == {"error": "Task not found"}

    @pytest.mark.parametrize(
        "body",
        [{}, {"taskId": "t1"}, {"subtask": {"description": "x"}}, {"taskId": "t1", "subtask": {}}],
    )
    def test_task_requires_fields(self, client, body):
        response = client.post("/task", json=body)

        assert response.status_code == 400
        assert response.json() == {"error": "taskId and subtask are required"}

    def test_capabilities(self, client):
        data = client.get("/capabilities").json()

        assert data == {
            "name": "ResearcherAgent",
            "capabilities": ["search", "validate", "extract"],
            "status": "unauthenticated",
            "activeTasks": 0,
        }

    def test_health(self, client):
        client.post("/task", json={"taskId": "t1-0", "subtask": {"description": "x"}})

        data = client.get("/health").json()

        assert data["status"] == "healthy"
        assert data["authenticated"] is False
        assert data["activeTasks"] == 1

    def test_summarizer_task(self, summarizer_settings, findings):
        client = TestClient(create_summarizer(summarizer_settings).app)

        response = client.post("/task", json={"taskId": "t1-1", "subtask": _summarize_subtask(findings)})

        assert response.status_code == 200
        data = response.json()
        assert data["summary"]["query"] == "solar power"
        assert data["summary"]["detailed"]["keyFindings"] == findings["keyPoints"]

    def test_summarizer_without_findings_fails(self, summarizer_settings):
        summarizer = create_summarizer(summarizer_settings)
        client = TestClient(summarizer.app)

        response = client.post("/task", json={"taskId": "t1-1", "subtask": {"description": "Summarize"}})

        assert response.status_code == 500
        assert response.json() == {
            "error": "Failed to process summarizer task",
            "message": "No research findings provided",
        }
        assert summarizer.current_tasks["t1-1"]["status"] == "failed"
        assert summarizer.current_tasks["t1-1"]["error"] == "No research findings provided"

    @pytest.mark.parametrize(
        "previous",
        [{"research": "oops"}, {"research": {"findings": "oops"}}, ["research"]],
    )
    def test_summarizer_malformed_previous_results(self, summarizer_settings, previous):
        summarizer = create_summarizer(summarizer_settings)
        client = TestClient(summarizer.app)

        response = client.post("/task", json={"taskId": "t1", "subtask": {"previousResults": previous}})

        assert response.status_code == 500
        assert response.json()["error"] == "Failed to process summarizer task"
        assert client.get("/task/t1").json()["status"] == "failed"

    def test_unexpected_handler_error_fails_task(self, researcher):
        async def broken(subtask):
            raise RuntimeError("disk on fire")

        researcher.handler = broken
        client = TestClient(researcher.app)

        response = client.post("/task", json={"taskId": "t1", "subtask": {"description": "x"}})

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to process researcher task", "message": "disk on fire"}
        record = client.get("/task/t1").json()
        assert record["status"] == "failed"
        assert record["error"] == "disk on fire"


class TestWorkerLifecycle:
    """Test coordinator registration and login on startup."""

    def test_startup_registers_with_coordinator(self, researcher_settings):
        calls = []

        def handler(request):
            calls.append((str(request.url), json.loads(request.content)))
            return httpx.Response(200, json={"success": True, "message": "ok"})

        worker = create_researcher(researcher_settings, transport=httpx.MockTransport(handler))

        with TestClient(worker.app):
            pass

        assert calls == [
            (
                "http://localhost:4000/agent/register",
                {
                    "name": "ResearcherAgent",
                    "url": "http://localhost:4001",
                    "capabilities": ["search", "validate", "extract"],
                },
            )
        ]

    def test_public_url_is_advertised(self, researcher_settings):
        calls = []

        def handler(request):
            calls.append(json.loads(request.content))
            return httpx.Response(200, json={"success": True, "message": "ok"})

        researcher_settings.public_url = "http://researcher.internal:9000"
        worker = create_researcher(researcher_settings, transport=httpx.MockTransport(handler))

        assert asyncio.run(worker.register_with_coordinator()) is True
        assert calls[0]["url"] == "http://researcher.internal:9000"

    def test_unreachable_coordinator_is_tolerated(self, researcher_settings):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        worker = create_researcher(researcher_settings, transport=httpx.MockTransport(handler))

        assert asyncio.run(worker.register_with_coordinator()) is False
        with TestClient(worker.app) as client:
            assert client.get("/health").status_code == 200

    def test_rejected_registration(self, researcher_settings):
        transport = httpx.MockTransport(lambda request: httpx.Response(400, json={"error": "bad"}))
        worker = create_researcher(researcher_settings, transport=transport)

        assert asyncio.run(worker.register_with_coordinator()) is False

    def test_startup_logs_in_when_required(self, storage, route_to_apps, researcher_settings):
        registrations = []

        def coordinator_app_stub(request):
            registrations.append(json.loads(request.content))
            return httpx.Response(200, json={"success": True, "message": "ok"})

        api_transport = route_to_apps({3000: api_app})

        async def handler(request):
            if request.url.port == 4000:
                return coordinator_app_stub(request)
            return await api_transport.handle_async_request(request)

        researcher_settings.require_auth = True
        researcher_settings.token_refresh_interval = 0
        worker = create_researcher(researcher_settings, transport=httpx.MockTransport(handler))

        with TestClient(worker.app) as client:
            assert worker.authenticated is True
            assert worker.auth.token.startswith("tok_")
            assert storage.find_agent_by_token(worker.auth.token).name == "ResearcherAgent"
            assert client.get("/capabilities").json()["status"] == "authenticated"

        assert registrations[0]["name"] == "ResearcherAgent"
        assert worker.auth.token is None
