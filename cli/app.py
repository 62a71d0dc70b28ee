from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import typer
import uvicorn

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_config, render_series
from models.errors import ConfigError
from models.sensor_config import load_controller_config
from settings import get_settings


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Run the climate monitor and query its recorded history.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Service base URL (defaults to API_BASE_URL env or http://localhost:3000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="HTTP timeout in seconds.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("serve")
def serve_command(
    host: str = typer.Option("0.0.0.0", "--host", help="Interface to bind."),
    port: Optional[int] = typer.Option(
        None, "--port", "-p", help="Port to listen on (defaults to HTTP_PORT env or 3000)."
    ),
) -> None:
    """Start the poller and the HTTP chart server."""
    listen_port = port if port is not None else get_settings().http_port
    typer.echo(f"listening on http://127.0.0.1:{listen_port}/")
    uvicorn.run("app.main:app", host=host, port=listen_port)


@app.command("check-config")
def check_config_command(
    path: Optional[Path] = typer.Argument(
        None, dir_okay=False, help="Configuration file (defaults to CLIMATE_CONFIG_PATH)."
    ),
) -> None:
    """Validate a sensor configuration file and print what it defines."""
    config_path = path if path is not None else Path(get_settings().config_path)
    try:
        config = load_controller_config(config_path)
    except ConfigError as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc
    typer.secho(f"{config_path} is valid.", fg=typer.colors.GREEN)
    typer.echo()
    render_config(config)


@app.command("chart")
def chart_command(
    ctx: typer.Context,
    names: List[str] = typer.Argument(..., help="Series names, e.g. temp-inside."),
    title: str = typer.Option(..., "--title", "-t", help="Chart title."),
    xmin: Optional[float] = typer.Option(None, "--xmin", help="Lower value-axis bound."),
    xmax: Optional[float] = typer.Option(None, "--xmax", help="Upper value-axis bound."),
    output: Path = typer.Option(Path("chart.svg"), "--output", "-o", help="Where to write the SVG."),
) -> None:
    """Download a chart of one or more series from a running service."""
    state = _get_state(ctx)
    content = state.client.render_chart(names, title=title, xmin=xmin, xmax=xmax)
    output.write_bytes(content)
    typer.secho(f"Wrote {len(content)} bytes to {output}", fg=typer.colors.GREEN)


@app.command("series")
def series_command(ctx: typer.Context) -> None:
    """List the series recorded by a running service."""
    state = _get_state(ctx)
    render_series(state.client.list_series())
