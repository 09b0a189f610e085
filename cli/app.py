from __future__ import annotations

from dataclasses import dataclass
from itertools import islice
from pathlib import Path
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_readings


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for interacting with the BioGas monitoring service.",
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
        help="Monitoring API base URL (defaults to API_BASE_URL env or http://localhost:3000).",
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


@app.command("send")
def send_command(
    ctx: typer.Context,
    ph: Optional[float] = typer.Option(None, "--ph", help="Acidity (pH)."),
    pressure1: Optional[float] = typer.Option(None, "--pressure1"),
    pressure2: Optional[float] = typer.Option(None, "--pressure2"),
    pressure3: Optional[float] = typer.Option(None, "--pressure3"),
    temperature: Optional[float] = typer.Option(None, "--temperature"),
    timestamp: Optional[str] = typer.Option(
        None,
        "--timestamp",
        help="ISO-8601 measurement time; the server clock is used when omitted.",
    ),
) -> None:
    """Post one reading, as a sensor board would."""
    state = _get_state(ctx)
    candidate = {
        "ph": ph,
        "pressure1": pressure1,
        "pressure2": pressure2,
        "pressure3": pressure3,
        "temperature": temperature,
        "timestamp": timestamp,
    }
    reading = {key: value for key, value in candidate.items() if value is not None}
    if not reading:
        raise typer.BadParameter("Provide at least one measurement.")
    message = state.client.send_reading(reading)
    typer.secho(f"Reading accepted. {message}".rstrip(), fg=typer.colors.GREEN)


@app.command("recent")
def recent_command(
    ctx: typer.Context,
    limit: Optional[int] = typer.Option(
        None, "--limit", "-n", min=1, help="Show at most this many readings."
    ),
) -> None:
    """Show the most recent readings, newest first."""
    state = _get_state(ctx)
    readings = state.client.recent()
    if limit is not None:
        readings = list(islice(readings, limit))
    render_readings(readings)


@app.command("export")
def export_command(
    ctx: typer.Context,
    output_dir: Path = typer.Option(
        Path("."),
        "--output-dir",
        "-o",
        file_okay=False,
        help="Directory the workbook is written to.",
    ),
) -> None:
    """Export the trailing window to xlsx; the server purges it once delivered."""
    state = _get_state(ctx)
    download = state.client.export()
    if download.filename is None:
        typer.echo(download.message or "Nothing to export.")
        return

    output_dir.mkdir(parents=True, exist_ok=True)
    target = output_dir / Path(download.filename).name
    target.write_bytes(download.content)
    typer.secho(f"Saved {target}", fg=typer.colors.GREEN)
