"""Operator CLI for Fusion_Ingestor."""
import json
from typing import Any

import click
import uvicorn

from fusion_ingestor.connectors import list_pollers
from fusion_ingestor.exceptions import FusionIngestorError
from fusion_ingestor.services.learning_service import LearningStateService
from fusion_ingestor.tasks.polling import run_poll_cycle
from fusion_ingestor.utils.config import get_settings


def _emit(payload: Any, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps(payload, indent=2, default=str))
        return
    for key, value in payload.items():
        click.echo(f"  {key:<28} {value}")


@click.group()
def cli() -> None:
    """Fusion_Ingestor operations."""


@cli.command("providers")
def providers() -> None:
    """List registered pollers."""
    for name in sorted(list_pollers()):
        click.echo(name)


@cli.command("poll")
@click.argument("provider", type=click.Choice(sorted(list_pollers())))
@click.option("--json", "as_json", is_flag=True, help="Print the raw JSON summary.")
def poll(provider: str, as_json: bool) -> None:
    """Run one poll cycle for PROVIDER."""
    try:
        summary = run_poll_cycle(provider)
    except FusionIngestorError as exc:
        raise click.ClickException(str(exc)) from exc

    if as_json:
        _emit(summary, True)
        return

    click.echo(f"Poll cycle for {provider}: {summary['processed']}/{summary['total']} processed")
    for error in summary.get("errors", []):
        click.echo(f"  ! {error}", err=True)


@cli.command("learning-state")
@click.argument("user_id")
@click.option("--json", "as_json", is_flag=True, help="Print the raw JSON payload.")
def learning_state(user_id: str, as_json: bool) -> None:
    """Show the derived learning state for USER_ID."""
    try:
        payload = LearningStateService(get_settings()).learning_state(user_id)
    except FusionIngestorError as exc:
        raise click.ClickException(str(exc)) from exc

    if as_json:
        _emit(payload, True)
        return

    summary = payload["global_summary"]
    click.echo(summary["confidence_explanation"])
    for state in payload["learning_states"]:
        click.echo(f"\n{state['integration_name']}")
        _emit(
            {
                "maturity_stage": state["maturity_stage"],
                "confidence_current": state["confidence_current"],
                "snapshot_count": state["snapshot_count"],
                "variance_trend": state["variance_trend"],
                "learning_velocity": state["learning_velocity"],
            },
            False,
        )


@cli.command("serve")
@click.option("--host", default="0.0.0.0", show_default=True, help="Interface to bind.")
@click.option("--port", default=8000, show_default=True, type=int, help="Port to listen on.")
@click.option("--reload", is_flag=True, help="Restart the server when source files change.")
def serve(host: str, port: int, reload: bool) -> None:
    """Run the HTTP API under uvicorn."""
    uvicorn.run("fusion_ingestor.api.main:app", host=host, port=port, reload=reload)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
