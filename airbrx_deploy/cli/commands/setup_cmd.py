"""``airbrx-deploy setup`` — gather inputs and write a deployment's files.

Every answer can be given as an option; anything missing is prompted
for. The generated configuration document is what ``deploy``,
``status`` and ``teardown`` read afterwards.
"""

from __future__ import annotations

import logging
from pathlib import Path

import boto3
import typer
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel

from airbrx_deploy.config import settings
from airbrx_deploy.models.resources import FunctionRole, ResourceNames
from airbrx_deploy.providers.identity import AccountClient
from airbrx_deploy.setup.generator import (
    COMPANY_PATTERN,
    ENVIRONMENT_PATTERN,
    ENVIRONMENTS,
    REGIONS,
    SetupGenerator,
    SetupRequest,
    is_generic_name,
    search_regions,
)

console = Console()
logger = logging.getLogger(__name__)


def _detect_account() -> str | None:
    """Account id of the ambient credentials, or None when there are none."""
    try:
        return AccountClient(boto3.client("sts")).get_account_id()
    except (ClientError, BotoCoreError) as e:
        logger.debug("Account detection failed: %s", e)
        return None


def _ask_company() -> str:
    console.print(
        "[dim]Used in every resource name, e.g. {company}-{env}-airbrx-admin-storage. "
        "Bucket names are global across AWS, so prefer your real organization name.[/dim]"
    )
    while True:
        company = typer.prompt("Company/organization name").strip().lower()
        if not COMPANY_PATTERN.match(company):
            console.print("[red]Use lowercase letters, numbers and hyphens only.[/red]")
            continue
        if is_generic_name(company) and not typer.confirm(
            f"'{company}' is very generic and may collide with existing buckets. Use it anyway?",
            default=False,
        ):
            continue
        return company


def _ask_environment() -> str:
    choices = ", ".join(ENVIRONMENTS)
    while True:
        env = typer.prompt(f"Environment ({choices}, or a custom tag)", default="dev").strip().lower()
        if ENVIRONMENT_PATTERN.match(env):
            return env
        console.print("[red]Use lowercase letters and numbers only.[/red]")


def _ask_region() -> str:
    while True:
        query = typer.prompt("AWS region (code or city)", default="us-east-1").strip().lower()
        if query in REGIONS:
            return query
        matches = search_regions(query)
        if len(matches) == 1:
            console.print(f"[green]Selected {matches[0]} ({REGIONS[matches[0]]})[/green]")
            return matches[0]
        if matches:
            for code in matches:
                console.print(f"  [cyan]{code:<16}[/cyan] {REGIONS[code]}")
        else:
            console.print(f"[red]No region matches {query!r}.[/red]")


def _ask_account() -> str | None:
    detected = _detect_account()
    if detected:
        console.print(f"[dim]Detected from AWS credentials: {detected}[/dim]")
    answer = typer.prompt(
        "AWS account id (12 digits, Enter to skip)",
        default=detected or "",
        show_default=bool(detected),
    )
    return answer.strip() or None


def setup_cmd(
    company: str = typer.Option(None, "--company", "-c", help="Company or organization name."),
    environment: str = typer.Option(None, "--env", "-e", help="Environment tag (dev, stage, prod, ...)."),
    region: str = typer.Option(None, "--region", "-r", help="AWS region code."),
    account_id: str = typer.Option(None, "--account-id", help="12-digit AWS account id."),
    git_pat: str = typer.Option(
        None, "--git-pat", envvar="AIRBRX_GIT_PAT", help="Git access token for cloning sources."
    ),
    git_branch: str = typer.Option("main", "--git-branch", help="Branch to deploy."),
    descope_project_id: str = typer.Option(None, "--descope-project-id", help="Descope project id."),
    anthropic_api_key: str = typer.Option(
        None, "--anthropic-api-key", envvar="AIRBRX_ANTHROPIC_API_KEY", help="Anthropic API key."
    ),
    slack_webhook: str = typer.Option(None, "--slack-webhook", help="Slack webhook URL."),
    output_dir: Path = typer.Option(None, "--output-dir", "-o", help="Where to write the generated files."),
    interactive: bool = typer.Option(
        True, "--interactive/--no-interactive", help="Prompt for optional values not given."
    ),
) -> None:
    """Generate the configuration document, admin token and IAM policies."""
    directory = output_dir or settings.generated_dir

    company = company or _ask_company()
    environment = environment or _ask_environment()
    region = region or _ask_region()
    if account_id is None and interactive:
        account_id = _ask_account()
    if not git_pat:
        git_pat = typer.prompt("Git personal access token", hide_input=True)
    if interactive:
        if descope_project_id is None:
            descope_project_id = typer.prompt(
                "Descope project id (Enter to skip)", default="", show_default=False
            )
        if anthropic_api_key is None:
            anthropic_api_key = typer.prompt(
                "Anthropic API key (Enter to skip)", default="", show_default=False, hide_input=True
            )
        if slack_webhook is None:
            slack_webhook = typer.prompt(
                "Slack webhook URL (Enter to skip)", default="", show_default=False
            )

    try:
        request = SetupRequest(
            company=company,
            environment=environment,
            region=region,
            account_id=account_id or None,
            git_pat=git_pat,
            git_branch=git_branch,
            descope_project_id=descope_project_id or "",
            anthropic_api_key=anthropic_api_key or "",
            slack_webhook=slack_webhook or "",
        )
    except ValidationError as e:
        console.print(f"[bold red]Invalid setup input:[/bold red]\n{e}")
        raise typer.Exit(code=1)

    result = SetupGenerator(directory).generate(request)
    names = ResourceNames(prefix=result.prefix)

    lines = [
        f"[bold green]Setup complete for {result.prefix}[/bold green]",
        "",
        "[bold]IAM policies[/bold] (share with your AWS administrator):",
        *(f"  {path}" for path in result.policy_paths),
        "",
        f"[bold]Admin token[/bold] ({result.token_id}, uploaded during deploy):",
        f"  {result.token_path}",
        "",
        "[bold]Deployment configuration[/bold] (keep secure):",
        f"  {result.config_path}",
        "",
        "[bold]Execution roles[/bold] (created by deploy, or by an administrator):",
        *(f"  {names.role(role)}" for role in FunctionRole),
    ]
    if result.account_placeholder:
        lines += ["", "[yellow]Policies contain <ACCOUNT_ID>; substitute the 12-digit account id.[/yellow]"]
    lines += ["", f"[dim]Next: airbrx-deploy deploy {result.config_path}[/dim]"]

    console.print()
    console.print(
        Panel(
            "\n".join(lines),
            title="[bold]Airbrx setup[/bold]",
            border_style="green",
            padding=(1, 2),
        )
    )
