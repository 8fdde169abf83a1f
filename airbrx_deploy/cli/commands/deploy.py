"""``airbrx-deploy deploy [CONFIG]`` — provision or update a deployment.

Runs the nine phases against the account of the ambient credentials.
Every step reconciles, so re-running after a failure (or on a complete
deployment) is safe. ``--plan`` prints the validated step graph and
exits without touching the cloud.
"""

from __future__ import annotations

import shutil
import tempfile
from pathlib import Path

import typer
from botocore.exceptions import BotoCoreError, ClientError
from rich.console import Console
from rich.panel import Panel

from airbrx_deploy.cli.selection import choose_config
from airbrx_deploy.config import settings
from airbrx_deploy.core.artifact_registry import ArtifactRegistry
from airbrx_deploy.core.config_loader import PreconditionError, load_config
from airbrx_deploy.core.dependency_graph import DependencyError, DependencyGraph
from airbrx_deploy.core.hasher import config_fingerprint
from airbrx_deploy.core.orchestrator import Orchestrator, StepExecutionError
from airbrx_deploy.core.run_state import RunStateStore
from airbrx_deploy.monitor.renderer import DeploymentRenderer
from airbrx_deploy.pipeline.phases import SEEDED_KEYS, DeploymentContext, build_deployment_phases
from airbrx_deploy.pipeline.preflight import (
    check_node_version,
    check_tools,
    load_admin_token,
    resolve_account,
)
from airbrx_deploy.providers.session import CloudClients
from airbrx_deploy.validation.health import HealthChecker

console = Console()


def deploy_cmd(
    config_path: Path = typer.Argument(
        None,
        help="Configuration document; discovered in the generated directory if omitted.",
    ),
    plan: bool = typer.Option(
        False,
        "--plan",
        help="Validate and print the step graph without deploying.",
    ),
    keep_workdir: bool = typer.Option(
        False,
        "--keep-workdir",
        help="Keep cloned sources and built packages after the run.",
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
    """Deploy (or update) the Airbrx stack described by a configuration document."""
    renderer = DeploymentRenderer(console=console)
    directory = generated_dir or settings.generated_dir

    try:
        path = choose_config(config_path, directory)
        config = load_config(path)
        admin_token = load_admin_token(config, path.parent)
    except PreconditionError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        raise typer.Exit(code=1)

    if plan:
        ctx = DeploymentContext(config, None, admin_token, Path(tempfile.gettempdir()))
        try:
            graph = DependencyGraph(build_deployment_phases(ctx), seeded=SEEDED_KEYS)
        except DependencyError as e:
            console.print(f"[bold red]Invalid plan:[/bold red] {e}")
            raise typer.Exit(code=1)
        renderer.print_plan(graph)
        return

    try:
        check_tools()
        check_node_version(settings.min_node_major)
        clients = CloudClients.from_session(config.region, profile=profile)
        account = resolve_account(clients)
    except PreconditionError as e:
        console.print(f"[bold red]Precondition failed:[/bold red] {e}")
        raise typer.Exit(code=1)
    except (ClientError, BotoCoreError) as e:
        console.print(f"[bold red]AWS credentials not usable:[/bold red] {e}")
        raise typer.Exit(code=1)

    console.print(
        Panel(
            "\n".join([
                f"[bold]Deployment:[/bold]  {config.prefix}",
                f"[bold]Region:[/bold]      {config.region}",
                f"[bold]Account:[/bold]     {account}",
                f"[bold]Branch:[/bold]      {config.git_branch}",
            ]),
            title="[bold]Airbrx deploy[/bold]",
            border_style="cyan",
            padding=(1, 2),
        )
    )

    if settings.work_dir is not None:
        work_dir = settings.work_dir
        work_dir.mkdir(parents=True, exist_ok=True)
        owned = False
    else:
        work_dir = Path(tempfile.mkdtemp(prefix=f"airbrx-{config.prefix}-"))
        owned = True

    ctx = DeploymentContext(
        config,
        clients,
        admin_token,
        work_dir,
        health_checker=HealthChecker(timeout=settings.health_timeout_seconds),
    )
    orchestrator = Orchestrator(
        config.prefix,
        ArtifactRegistry({"account.id": account}),
        state_store=RunStateStore(settings.state_dir),
        config_fingerprint=config_fingerprint(config),
    )

    try:
        result = orchestrator.run(build_deployment_phases(ctx))
    except StepExecutionError as e:
        renderer.print_result(e.result)
        console.print(f"[bold red]Deployment failed at {e.step}:[/bold red] {e.cause}")
        console.print("[dim]Fix the cause and re-run; completed steps are reconciled, not repeated.[/dim]")
        raise typer.Exit(code=1)
    except DependencyError as e:
        console.print(f"[bold red]Dependency error:[/bold red] {e}")
        raise typer.Exit(code=1)
    finally:
        if owned and not keep_workdir:
            shutil.rmtree(work_dir, ignore_errors=True)
        elif owned:
            console.print(f"[dim]Work directory kept: {work_dir}[/dim]")

    renderer.print_result(result)
    if ctx.health_report is not None:
        console.print(renderer.render_health(ctx.health_report))
