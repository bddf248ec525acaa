"""Summarizer worker: condenses research findings into summaries."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

from agentfirst.config import SummarizerSettings
from agentfirst.errors import AgentFirstError
from agentfirst.schemas import (
    DetailedSummary,
    ResearchFindings,
    ResearchSummary,
    SourceAnalysis,
    WordCount,
)
from agentfirst.workers.base import Worker

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.8

RECOMMENDATIONS = [
    "Further research is recommended to explore emerging trends",
    "Cross-reference findings with additional authoritative sources",
    "Monitor ongoing developments in this field",
]


class SummarizationError(AgentFirstError):
    """Raised when there is nothing usable to summarize."""

    pass


def _first_sentence(text: str) -> str:
    return text.split(".")[0] + "."


def _word_count(text: str) -> int:
    return len(text.split(" "))


def generate_summary(findings: ResearchFindings) -> ResearchSummary:
    """Build executive, detailed and concise summaries of ``findings``."""
    logger.info("[Summarizer] Generating summary...")

    query = findings.query or "the topic"
    key_points = findings.key_points
    lead = key_points[0] if key_points else "significant developments in this area"

    executive = (
        f"Research on {query} reveals {len(key_points)} key insights from {len(findings.sources)} sources. "
        f"The findings indicate {lead}."
    )
    concise = ". ".join(key_points) + "."

    return ResearchSummary(
        query=query,
        executive=executive,
        detailed=DetailedSummary(
            overview=executive,
            key_findings=key_points,
            source_analysis=[
                SourceAnalysis(
                    title=source.title,
                    main_point=_first_sentence(source.summary),
                    relevance=source.relevance,
                )
                for source in findings.sources
            ],
            confidence=findings.confidence or DEFAULT_CONFIDENCE,
            recommendations=list(RECOMMENDATIONS),
        ),
        concise=concise,
        word_count=WordCount(executive=_word_count(executive), concise=_word_count(concise)),
        generated_at=datetime.now(timezone.utc).isoformat(),
    )


def extract_findings(subtask: dict[str, Any]) -> ResearchFindings:
    """Pull the researcher's findings out of a subtask's previous results.

    Raises:
        SummarizationError: If no findings with sources were provided
        pydantic.ValidationError: If the findings are malformed
    """
    previous = subtask.get("previousResults") or {}
    research = previous.get("research") if isinstance(previous, dict) else None
    findings = research.get("findings") if isinstance(research, dict) else None
    if not findings:
        raise SummarizationError("No research findings provided")
    if not isinstance(findings, dict):
        raise SummarizationError("Research findings must be an object")
    if not findings.get("sources"):
        raise SummarizationError("No findings to summarize")
    return ResearchFindings.model_validate(findings)


def create_summarizer(settings: SummarizerSettings | None = None, **kwargs: Any) -> Worker:
    """Build a summarizer worker; extra kwargs are passed to Worker."""
    settings = settings or SummarizerSettings()

    async def handle(subtask: dict[str, Any]) -> dict[str, Any]:
        findings = extract_findings(subtask)
        if settings.simulated_delay > 0:
            await asyncio.sleep(settings.simulated_delay)
        return generate_summary(findings).model_dump(by_alias=True)

    return Worker(settings, handle, result_key="summary", label="Summarizer", **kwargs)


settings = SummarizerSettings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

worker = create_summarizer(settings)
app = worker.app
