"""Settings for the agent API, the coordinator and the workers."""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SKILL_FILE = Path(__file__).parent / "skill.md"


class ServerSettings(BaseSettings):
    """Agent API server settings (AGENTFIRST_*)."""

    model_config = SettingsConfigDict(env_prefix="AGENTFIRST_", env_file=".env", extra="ignore")

    host: str = "127.0.0.1"
    port: int = 3000
    public_base_url: str = "http://localhost:3000"
    skill_file: Path = DEFAULT_SKILL_FILE
    skill_cache_ttl: float = 60.0
    auth_token_ttl: int = 3600
    log_level: str = "INFO"


class CoordinatorSettings(BaseSettings):
    """Coordinator settings (COORDINATOR_*)."""

    model_config = SettingsConfigDict(env_prefix="COORDINATOR_", env_file=".env", extra="ignore")

    host: str = "127.0.0.1"
    port: int = 4000
    server_url: str = "http://localhost:3000"
    task_timeout: float = 30.0
    cleanup_interval: float = 300.0
    task_max_age: float = 3600.0
    log_level: str = "INFO"


class WorkerSettings(BaseSettings):
    """Settings shared by every specialist worker."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    agent_name: str = "WorkerAgent"
    capabilities: list[str] = []
    host: str = "127.0.0.1"
    port: int = 4100
    public_url: str | None = None
    server_url: str = "http://localhost:3000"
    coordinator_url: str = "http://localhost:4000"
    require_auth: bool = True
    token_refresh_interval: float = 600.0
    heartbeat_interval: float = 30.0
    simulated_delay: float = 0.0
    log_level: str = "INFO"

    @property
    def advertised_url(self) -> str:
        """URL the coordinator should use to reach this worker."""
        return self.public_url or f"http://localhost:{self.port}"


class ResearcherSettings(WorkerSettings):
    """Researcher worker settings (RESEARCHER_*)."""

    model_config = SettingsConfigDict(env_prefix="RESEARCHER_", env_file=".env", extra="ignore")

    agent_name: str = "ResearcherAgent"
    capabilities: list[str] = ["search", "validate", "extract"]
    port: int = 4001
    simulated_delay: float = 2.0


class SummarizerSettings(WorkerSettings):
    """Summarizer worker settings (SUMMARIZER_*)."""

    model_config = SettingsConfigDict(env_prefix="SUMMARIZER_", env_file=".env", extra="ignore")

    agent_name: str = "SummarizerAgent"
    capabilities: list[str] = ["summarize", "condense", "format"]
    port: int = 4002
    simulated_delay: float = 1.5


_server_settings: ServerSettings | None = None
_coordinator_settings: CoordinatorSettings | None = None


def get_server_settings() -> ServerSettings:
    """Get or create the process-wide agent API settings."""
    global _server_settings
    if _server_settings is None:
        _server_settings = ServerSettings()
    return _server_settings


def get_coordinator_settings() -> CoordinatorSettings:
    """Get or create the process-wide coordinator settings."""
    global _coordinator_settings
    if _coordinator_settings is None:
        _coordinator_settings = CoordinatorSettings()
    return _coordinator_settings
