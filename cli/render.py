from __future__ import annotations

from typing import Any, Iterable

import typer

from models.sensor_config import ControllerConfig


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_config(config: ControllerConfig) -> None:
    echo_heading("Polling")
    echo_key_values(
        [
            ("sensor_read_freq_secs", config.sensor_read_freq_secs),
            ("retry_read_secs", config.retry_read_secs),
        ]
    )

    typer.echo()
    echo_heading("Sensors")
    if not config.sensors:
        typer.echo("No sensors configured.")
        return
    for sensor in config.sensors:
        typer.echo(f"{sensor.name} (pin {sensor.pin})")
        if not sensor.actions:
            typer.echo("  no actions")
        for rule in sensor.actions:
            typer.echo(
                f"  - {rule.condition.value} {rule.threshold:g}: "
                f"{rule.effect.value} pin {rule.target_pin}"
            )


def render_series(names: Iterable[str]) -> None:
    echo_heading("Series")
    listed = list(names)
    if not listed:
        typer.echo("No readings recorded yet.")
        return
    for name in listed:
        typer.echo(f"  - {name}")
