"""``airbrx-deploy teardown [CONFIG]`` — delete every resource of a deployment.

Requires the deployment prefix typed back as confirmation. Resources
that fail to delete are reported and the rest are still attempted; run
the command again to finish a partial teardown.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel

from airbrx_deploy.cli.selection import choose_config
from airbrx_deploy.config import settings
from airbrx_deploy.core.config_loader import PreconditionError, load_config
from airbrx_deploy.core.run_state import RunStateStore
from airbrx_deploy.models.resources import DistributionRole, ResourceNames
from airbrx_deploy.monitor.renderer import DeploymentRenderer
from airbrx_deploy.providers.session import CloudClients
from airbrx_deploy.teardown.teardown import ConfirmationMismatchError, Teardown

console = Console()


def teardown_cmd(
    config_path: Path = typer.Argument(
        None,
        help="Configuration document; discovered in the generated directory if omitted.",
    ),
    confirm: str = typer.Option(
        None,
        "--confirm",
        help="Deployment prefix, typed back to confirm without a prompt.",
    ),
    keep_files: bool = typer.Option(
        False,
        "--keep-files",
        help="Keep the generated configuration, token and policy files.",
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
    """Permanently delete a deployment's distributions, functions, buckets and roles."""
    directory = generated_dir or settings.generated_dir
    try:
        path = choose_config(config_path, directory)
        config = load_config(path)
    except PreconditionError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        raise typer.Exit(code=1)

    names = ResourceNames(prefix=config.prefix)
    console.print(
        Panel(
            "\n".join([
                f"[bold red]This permanently deletes deployment {config.prefix} ({config.region}):[/bold red]",
                "",
                *(f"  distribution  {names.distribution_comment(role)}" for role in DistributionRole),
                f"  access ctrl   {names.app_origin_access_control}",
                *(f"  function      {name}" for name in names.functions),
                *(f"  bucket        {name} [dim](all object versions)[/dim]" for name in names.buckets),
                *(f"  role          {name}" for name in names.roles),
            ]),
            title="[bold]Airbrx teardown[/bold]",
            border_style="red",
            padding=(1, 2),
        )
    )

    confirmation = confirm
    if confirmation is None:
        confirmation = typer.prompt(f"Type the deployment name ({config.prefix}) to confirm")

    clients = CloudClients.from_session(config.region, profile=profile)
    teardown = Teardown(clients, config.prefix, generated_dir=path.parent)
    try:
        result = teardown.run(confirmation.strip(), remove_files=not keep_files)
    except ConfirmationMismatchError as e:
        console.print(f"[yellow]Aborted:[/yellow] {e}")
        raise typer.Exit(code=1)

    RunStateStore(settings.state_dir).remove(config.prefix)
    DeploymentRenderer(console=console).print_teardown(result)
    if not result.ok:
        console.print("[bold red]Some resources could not be deleted; re-run teardown to retry.[/bold red]")
        raise typer.Exit(code=1)
    if result.warnings and not keep_files:
        console.print(
            f"[yellow]Generated files kept; re-run teardown once the remaining resources are gone:[/yellow] {path}"
        )
