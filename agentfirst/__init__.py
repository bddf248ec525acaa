"""Agent-first HTTP services.

A template for APIs whose primary consumers are autonomous agents, plus a
multi-agent research example where a coordinator decomposes queries and
delegates subtasks to specialist workers over HTTP.
"""

__version__ = "1.0.0"
