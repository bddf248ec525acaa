"""Researcher worker: gathers (simulated) information for a query."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

from agentfirst.config import ResearcherSettings
from agentfirst.schemas import RESEARCH_PREFIX, ResearchFindings, Source
from agentfirst.workers.base import Worker

logger = logging.getLogger(__name__)


def extract_query(subtask: dict[str, Any]) -> str:
    """Use the subtask's explicit query, else strip the description prefix."""
    query = subtask.get("query")
    if query:
        return query
    return str(subtask.get("description", "")).replace(RESEARCH_PREFIX, "")


def build_findings(query: str) -> ResearchFindings:
    """Templated findings standing in for a real search backend."""
    return ResearchFindings(
        query=query,
        sources=[
            Source(
                title=f"Understanding {query}",
                url="https://example.com/article1",
                summary=f"This article provides an overview of {query}, covering key concepts and recent developments.",
                relevance=0.95,
            ),
            Source(
                title=f"Latest Developments in {query}",
                url="https://example.com/article2",
                summary=f"Recent advancements and breakthrough research in the field of {query}.",
                relevance=0.88,
            ),
            Source(
                title=f"{query}: A Comprehensive Guide",
                url="https://example.com/article3",
                summary=f"An in-depth guide covering all aspects of {query} with practical examples.",
                relevance=0.82,
            ),
        ],
        key_points=[
            f"{query} is an evolving field with significant recent progress",
            "Multiple approaches and methodologies are being explored",
            "Practical applications are expanding rapidly",
        ],
        confidence=0.85,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


async def conduct_research(query: str, delay: float = 0.0) -> ResearchFindings:
    logger.info(f"[Researcher] Conducting research on: {query}")
    if delay > 0:
        await asyncio.sleep(delay)
    return build_findings(query)


def create_researcher(settings: ResearcherSettings | None = None, **kwargs: Any) -> Worker:
    """Build a researcher worker; extra kwargs are passed to Worker."""
    settings = settings or ResearcherSettings()

    async def handle(subtask: dict[str, Any]) -> dict[str, Any]:
        findings = await conduct_research(extract_query(subtask), settings.simulated_delay)
        return findings.model_dump(by_alias=True)

    return Worker(settings, handle, result_key="findings", label="Researcher", **kwargs)


settings = ResearcherSettings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

worker = create_researcher(settings)
app = worker.app
