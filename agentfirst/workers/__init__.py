"""Specialist worker agents for the research coordinator."""

from agentfirst.workers.base import Worker
from agentfirst.workers.researcher import create_researcher
from agentfirst.workers.summarizer import create_summarizer

__all__ = ["Worker", "create_researcher", "create_summarizer"]
