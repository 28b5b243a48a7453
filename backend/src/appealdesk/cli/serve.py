"""CLI command for running the HTTP service."""

import click
import uvicorn

from ..config import get_settings


@click.command(name="serve")
@click.option("--host", default=None, help="Bind address (defaults to API_HOST)")
@click.option("--port", type=int, default=None, help="Port (defaults to API_PORT)")
@click.option("--reload", is_flag=True, help="Reload on code changes (development)")
def serve(host: str | None, port: int | None, reload: bool) -> None:
    """Serve the report endpoints with uvicorn."""
    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    click.echo(f"Serving reports from {settings.reports_dir} on {host}:{port}")
    uvicorn.run(
        "appealdesk.main:app",
        host=host,
        port=port,
        reload=reload,
        log_config=None,
    )
