"""Tests for environment-driven settings."""

from pathlib import Path

from agentfirst.config import (
    DEFAULT_SKILL_FILE,
    CoordinatorSettings,
    ResearcherSettings,
    ServerSettings,
    SummarizerSettings,
    get_coordinator_settings,
    get_server_settings,
)


class TestServerSettings:

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("AGENTFIRST_PORT", raising=False)
        settings = ServerSettings(_env_file=None)

        assert settings.port == 3000
        assert settings.skill_file == DEFAULT_SKILL_FILE
        assert settings.skill_cache_ttl == 60.0
        assert DEFAULT_SKILL_FILE.exists()

    def test_env_override(self, monkeypatch, tmp_path):
        monkeypatch.setenv("AGENTFIRST_PORT", "3100")
        monkeypatch.setenv("AGENTFIRST_SKILL_FILE", str(tmp_path / "skill.md"))

        settings = ServerSettings(_env_file=None)

        assert settings.port == 3100
        assert settings.skill_file == Path(tmp_path / "skill.md")


class TestCoordinatorSettings:

    def test_defaults(self):
        settings = CoordinatorSettings(_env_file=None)

        assert settings.port == 4000
        assert settings.task_timeout == 30.0
        assert settings.task_max_age == 3600.0

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("COORDINATOR_TASK_TIMEOUT", "5")
        assert CoordinatorSettings(_env_file=None).task_timeout == 5.0


class TestWorkerSettings:

    def test_researcher_defaults(self):
        settings = ResearcherSettings(_env_file=None)

        assert settings.agent_name == "ResearcherAgent"
        assert settings.capabilities == ["search", "validate", "extract"]
        assert settings.advertised_url == "http://localhost:4001"
        assert settings.require_auth is True

    def test_summarizer_defaults(self):
        settings = SummarizerSettings(_env_file=None)

        assert settings.agent_name == "SummarizerAgent"
        assert settings.capabilities == ["summarize", "condense", "format"]
        assert settings.port == 4002

    def test_prefixes_are_separate(self, monkeypatch):
        monkeypatch.setenv("RESEARCHER_PORT", "5001")

        assert ResearcherSettings(_env_file=None).port == 5001
        assert SummarizerSettings(_env_file=None).port == 4002

    def test_public_url_wins(self, monkeypatch):
        monkeypatch.setenv("SUMMARIZER_PUBLIC_URL", "http://summarizer.internal:80")
        assert SummarizerSettings(_env_file=None).advertised_url == "http://summarizer.internal:80"

    def test_capabilities_from_json_env(self, monkeypatch):
        monkeypatch.setenv("RESEARCHER_CAPABILITIES", '["search"]')
        assert ResearcherSettings(_env_file=None).capabilities == ["search"]


def test_settings_accessors_are_cached():
    assert get_server_settings() is get_server_settings()
    assert get_coordinator_settings() is get_coordinator_settings()
