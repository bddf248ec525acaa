"""CLI for agent-first: run the services and drive the research workflow."""

from __future__ import annotations

import json
import sys

import click
import httpx

from agentfirst import __version__

DEFAULT_COORDINATOR_URL = "http://localhost:4000"
DEFAULT_RESEARCHER_URL = "http://localhost:4001"
DEFAULT_SUMMARIZER_URL = "http://localhost:4002"
SMOKE_QUERY = "What are the latest developments in blockchain scalability?"


@click.group()
@click.version_option(version=__version__, prog_name="agentfirst")
def main() -> None:
    """Agent-first services - an API built for agents plus a multi-agent
    research coordinator with researcher and summarizer workers.
    """
    pass


def _run(app_path: str, host: str, port: int, reload: bool, label: str) -> None:
    import uvicorn

    click.echo(f"Starting {label} on {host}:{port}")
    uvicorn.run(app_path, host=host, port=port, reload=reload)


def _server_options(default_port: int):
    def decorator(func):
        func = click.option("--reload", is_flag=True, help="Enable auto-reload for development")(func)
        func = click.option("--host", default="127.0.0.1", help="Host to bind to")(func)
        func = click.option("--port", default=default_port, help="Port to listen on")(func)
        return func

    return decorator


@main.command()
@_server_options(3000)
def serve(port: int, host: str, reload: bool) -> None:
    """Start the agent API server."""
    _run("agentfirst.server:app", host, port, reload, "agent API")


@main.command()
@_server_options(4000)
def coordinator(port: int, host: str, reload: bool) -> None:
    """Start the research coordinator."""
    _run("agentfirst.coordinator:app", host, port, reload, "coordinator")


@main.command()
@_server_options(4001)
def researcher(port: int, host: str, reload: bool) -> None:
    """Start the researcher worker.

    Set RESEARCHER_PORT (or RESEARCHER_PUBLIC_URL) when changing --port so
    the worker advertises the right address to the coordinator.
    """
    _run("agentfirst.workers.researcher:app", host, port, reload, "researcher")


@main.command()
@_server_options(4002)
def summarizer(port: int, host: str, reload: bool) -> None:
    """Start the summarizer worker.

    Set SUMMARIZER_PORT (or SUMMARIZER_PUBLIC_URL) when changing --port so
    the worker advertises the right address to the coordinator.
    """
    _run("agentfirst.workers.summarizer:app", host, port, reload, "summarizer")


def _echo_report(report: dict) -> None:
    summary = report.get("summary") or {}
    findings = report.get("findings") or {}

    click.echo(f"\n{'=' * 60}")
    click.echo(f"Research: {report.get('query')}")
    click.echo(f"Task: {report.get('taskId')} | Depth: {report.get('depth')}")
    click.echo(f"{'=' * 60}\n")

    sources = findings.get("sources") or []
    if sources:
        click.echo(f"Sources ({len(sources)}):")
        for i, source in enumerate(sources, 1):
            click.echo(f"  {i}. {source.get('title')} ({source.get('url')})")
        click.echo()

    if summary:
        click.echo("Summary:")
        click.echo(summary.get("executive", ""))
        click.echo()

    key_points = (summary.get("detailed") or {}).get("keyFindings") or findings.get("keyPoints") or []
    if key_points:
        click.echo("Key findings:")
        for point in key_points:
            click.echo(f"  • {point}")


@main.command()
@click.argument("query")
@click.option(
    "--depth", "-d",
    type=click.Choice(["basic", "detailed", "comprehensive"]),
    default="basic",
    help="How far to decompose the query",
)
@click.option("--coordinator-url", default=DEFAULT_COORDINATOR_URL, help="Coordinator base URL")
@click.option("--timeout", default=120.0, help="Seconds to wait for the report")
@click.option("--raw", is_flag=True, help="Output raw JSON instead of formatted text")
def research(query: str, depth: str, coordinator_url: str, timeout: float, raw: bool) -> None:
    """Submit a research query to the coordinator.

    \b
    Example:
        agentfirst research "quantum error correction" --depth comprehensive
    """
    try:
        with httpx.Client(timeout=timeout) as client:
            response = client.post(f"{coordinator_url}/research", json={"query": query, "depth": depth})
    except httpx.HTTPError as e:
        raise click.ClickException(f"Could not reach coordinator: {e}") from e

    data = response.json()
    if response.status_code != 200:
        raise click.ClickException(f"Research failed: {data.get('error')} {data.get('message') or ''}".strip())

    if raw:
        click.echo(json.dumps(data, indent=2))
        return

    _echo_report(data["report"])


def _check_service(client: httpx.Client, url: str, name: str) -> bool:
    click.echo(f"Checking {name}... ", nl=False)
    try:
        ok = client.get(f"{url}/health").status_code == 200
    except httpx.HTTPError:
        ok = False
    click.echo("✓ Running" if ok else "✗ Not running")
    return ok


@main.command()
@click.option("--coordinator-url", default=DEFAULT_COORDINATOR_URL, help="Coordinator base URL")
@click.option("--researcher-url", default=DEFAULT_RESEARCHER_URL, help="Researcher base URL")
@click.option("--summarizer-url", default=DEFAULT_SUMMARIZER_URL, help="Summarizer base URL")
@click.option("--query", default=SMOKE_QUERY, help="Query to submit")
def check(coordinator_url: str, researcher_url: str, summarizer_url: str, query: str) -> None:
    """End-to-end smoke test of a running coordinator and workers."""
    with httpx.Client(timeout=120.0) as client:
        click.echo("Step 1: Checking services")
        services_ok = all([
            _check_service(client, coordinator_url, "Coordinator"),
            _check_service(client, researcher_url, "Researcher"),
            _check_service(client, summarizer_url, "Summarizer"),
        ])
        if not services_ok:
            click.echo("\nSome services are not running. Start them first:")
            click.echo("  agentfirst coordinator")
            click.echo("  agentfirst researcher")
            click.echo("  agentfirst summarizer")
            sys.exit(1)

        click.echo("\nStep 2: Checking agent registration")
        agents = client.get(f"{coordinator_url}/agents").json()
        click.echo(json.dumps(agents, indent=2))

        click.echo("\nStep 3: Submitting research query")
        click.echo(f"Query: {query}")
        response = client.post(
            f"{coordinator_url}/research",
            json={"query": query, "depth": "comprehensive"},
        ).json()
        task_id = response.get("taskId")
        if not task_id:
            click.echo(f"✗ Failed to create task: {response}")
            sys.exit(1)
        click.echo(f"✓ Task created: {task_id}")

        click.echo("\nStep 4: Checking task status")
        task = client.get(f"{coordinator_url}/task/{task_id}").json()
        status = task.get("status")
        if status != "completed":
            click.echo(f"✗ Task status: {status}")
            sys.exit(1)
        click.echo("✓ Task completed successfully")

        failed = [st["type"] for st in task.get("subtasks", []) if st.get("status") != "completed"]
        if failed:
            click.echo(f"✗ Subtasks not completed: {', '.join(failed)}")
            sys.exit(1)

        click.echo("\nStep 5: Verifying results")
        _echo_report(task.get("report") or {})

        click.echo("\nStep 6: System statistics")
        click.echo(json.dumps(client.get(f"{coordinator_url}/stats").json(), indent=2))

    click.echo("\nAll checks passed!")


if __name__ == "__main__":
    main()
