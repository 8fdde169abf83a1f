"""Main Typer application — imports and registers all CLI commands.

Entry point: ``airbrx-deploy`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import logging

import typer
from rich.logging import RichHandler

from airbrx_deploy.cli.commands.deploy import deploy_cmd
from airbrx_deploy.cli.commands.setup_cmd import setup_cmd
from airbrx_deploy.cli.commands.status import status_cmd
from airbrx_deploy.cli.commands.teardown_cmd import teardown_cmd
from airbrx_deploy.config import settings

app = typer.Typer(
    name="airbrx-deploy",
    help="Provision, inspect and tear down Airbrx data gateway deployments on AWS.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def configure_logging(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level."),
) -> None:
    """Provision, inspect and tear down Airbrx data gateway deployments on AWS."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(show_path=False, rich_tracebacks=False)],
    )
    # botocore is chatty at DEBUG
    logging.getLogger("botocore").setLevel(logging.WARNING)


# Register subcommands
app.command(name="setup", help="Generate configuration, admin token and IAM policies.")(setup_cmd)
app.command(name="deploy", help="Deploy or update a deployment.")(deploy_cmd)
app.command(name="status", help="Show a deployment's resources and health.")(status_cmd)
app.command(name="teardown", help="Delete every resource of a deployment.")(teardown_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
