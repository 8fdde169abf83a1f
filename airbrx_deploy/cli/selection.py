"""Pick the configuration document a command should act on."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from airbrx_deploy.core.config_loader import resolve_config_path

console = Console()


def choose_config(config_path: Path | None, directory: Path) -> Path:
    """Resolve *config_path*, prompting when several documents qualify.

    Raises ConfigurationError when nothing is found.
    """
    resolved = resolve_config_path(config_path, directory)
    if isinstance(resolved, Path):
        return resolved

    console.print("[bold]Several deployments found:[/bold]")
    for i, candidate in enumerate(resolved, start=1):
        console.print(f"  [cyan]{i}[/cyan]  {candidate.name}")
    while True:
        choice = typer.prompt("Select a configuration", type=int)
        if 1 <= choice <= len(resolved):
            return resolved[choice - 1]
        console.print(f"[red]Enter a number between 1 and {len(resolved)}.[/red]")
