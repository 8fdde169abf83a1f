"""``airbrx-deploy status [CONFIG]`` — read-only view of a deployment."""

from __future__ import annotations

from pathlib import Path

import typer
from botocore.exceptions import BotoCoreError, ClientError
from rich.console import Console

from airbrx_deploy.cli.selection import choose_config
from airbrx_deploy.config import settings
from airbrx_deploy.core.config_loader import PreconditionError, load_config
from airbrx_deploy.models.resources import ResourceNames
from airbrx_deploy.monitor.projection import StatusProjection
from airbrx_deploy.monitor.renderer import DeploymentRenderer
from airbrx_deploy.providers.session import CloudClients
from airbrx_deploy.validation.health import HealthChecker

console = Console()


def status_cmd(
    config_path: Path = typer.Argument(
        None,
        help="Configuration document; discovered in the generated directory if omitted.",
    ),
    health: bool = typer.Option(
        True,
        "--health/--no-health",
        help="Probe the public endpoints.",
    ),
    generated_dir: Path = typer.Option(
        None,
        "--generated-dir",
        "-g",
        help="Directory holding generated configuration documents.",
    ),
    profile: str = typer.Option(
        None,
        "--profile",
        help="AWS named profile; the default credential chain if omitted.",
    ),
) -> None:
    """Show every resource of a deployment and, optionally, endpoint health.

    Nothing is created or changed.
    """
    directory = generated_dir or settings.generated_dir
    try:
        config = load_config(choose_config(config_path, directory))
    except PreconditionError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        raise typer.Exit(code=1)

    clients = CloudClients.from_session(config.region, profile=profile)
    projection = StatusProjection(clients, ResourceNames(prefix=config.prefix), config.region)
    checker = HealthChecker(timeout=settings.health_timeout_seconds) if health else None
    try:
        report = projection.collect(health_checker=checker)
    except (ClientError, BotoCoreError) as e:
        console.print(f"[bold red]Could not read deployment state:[/bold red] {e}")
        raise typer.Exit(code=1)

    DeploymentRenderer(console=console).print_status(report)
