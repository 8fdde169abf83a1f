"""Rich terminal rendering for deploy, status and teardown output.

Color scheme
------------
- green     : PASSED / healthy / deleted
- yellow    : WARNED / degraded / warning
- red       : FAILED
- dim       : SKIPPED / NOT_STARTED / absent
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console, Group
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from airbrx_deploy.models.pipeline import RunStatus, StepState
from airbrx_deploy.models.reports import HealthStatus, TeardownOutcome

if TYPE_CHECKING:
    from airbrx_deploy.core.dependency_graph import DependencyGraph
    from airbrx_deploy.models.pipeline import DeploymentResult
    from airbrx_deploy.models.reports import HealthReport, StatusReport, TeardownResult


# ---------------------------------------------------------------------------
# State -> Rich markup
# ---------------------------------------------------------------------------

_STEP_LABELS: dict[StepState, str] = {
    StepState.PASSED: "[green]PASSED[/green]",
    StepState.FAILED: "[bold red]FAILED[/bold red]",
    StepState.WARNED: "[yellow]WARNED[/yellow]",
    StepState.RUNNING: "[yellow]RUNNING[/yellow]",
    StepState.SKIPPED: "[dim]SKIPPED[/dim]",
    StepState.NOT_STARTED: "[dim]NOT STARTED[/dim]",
}

_HEALTH_LABELS: dict[HealthStatus, str] = {
    HealthStatus.HEALTHY: "[green]healthy[/green]",
    HealthStatus.DEGRADED: "[yellow]degraded[/yellow]",
    HealthStatus.FAILED: "[bold red]failed[/bold red]",
}

_TEARDOWN_LABELS: dict[TeardownOutcome, str] = {
    TeardownOutcome.DELETED: "[green]deleted[/green]",
    TeardownOutcome.ABSENT: "[dim]not found[/dim]",
    TeardownOutcome.WARNING: "[yellow]warning[/yellow]",
    TeardownOutcome.FAILED: "[bold red]failed[/bold red]",
}

_RUN_BORDERS: dict[RunStatus, str] = {
    RunStatus.SUCCEEDED: "green",
    RunStatus.SUCCEEDED_WITH_WARNINGS: "yellow",
    RunStatus.FAILED: "red",
    RunStatus.RUNNING: "blue",
}

# Artifacts worth showing the operator at the end of a run.
ENDPOINT_KEYS: tuple[tuple[str, str], ...] = (
    ("Admin API", "api.cdnDomain"),
    ("Gateway", "gateway.cdnDomain"),
    ("App", "app.cdnDomain"),
    ("Tenant", "tenant.id"),
    ("Admin token", "seed.adminToken"),
)


class DeploymentRenderer:
    """Renders deployer models as Rich renderables.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    # ------------------------------------------------------------------
    # Plan
    # ------------------------------------------------------------------

    def render_plan(self, graph: DependencyGraph) -> Table:
        """Every step in execution order with its phase and upstream steps."""
        table = Table(title="Deployment plan", header_style="bold cyan", expand=True)
        table.add_column("#", style="dim", justify="right", width=4)
        table.add_column("Phase", style="cyan")
        table.add_column("Step")
        table.add_column("Requires", style="dim")
        table.add_column("Produces")

        for i, step in enumerate(graph.steps, start=1):
            name = step.name
            if step.patch_of:
                name += f" [dim](patches {step.patch_of})[/dim]"
            if not step.fatal:
                name += " [dim](non-fatal)[/dim]"
            table.add_row(
                str(i),
                graph.phase_of(step.name),
                name,
                ", ".join(graph.get_prerequisites(step.name)) or "-",
                ", ".join(step.produces),
            )
        return table

    # ------------------------------------------------------------------
    # Deploy
    # ------------------------------------------------------------------

    def render_result(self, result: DeploymentResult) -> Panel:
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("Phase", style="cyan", min_width=14)
        table.add_column("Step", min_width=20)
        table.add_column("State", justify="center", min_width=10)
        table.add_column("Details")

        for phase in result.phases:
            label = f"{phase.ordinal} {phase.name}"
            for step in phase.steps:
                details = escape(step.error or ", ".join(sorted(step.produced)))
                if step.state is StepState.PASSED and step.duration_ms:
                    details = f"{details} [dim]{step.duration_ms} ms[/dim]".strip()
                table.add_row(
                    label,
                    step.step,
                    _STEP_LABELS.get(step.state, step.state.value),
                    details if step.state is not StepState.FAILED else f"[red]{details}[/red]",
                )
                label = ""

        summary = [
            f"[bold]Run:[/bold] {result.run_id}",
            f"[bold]Status:[/bold] {result.status.value}",
        ]
        for title, key in ENDPOINT_KEYS:
            if key in result.artifacts:
                summary.append(f"[bold]{title}:[/bold] {result.artifacts[key]}")
        if result.patched_steps:
            summary.append(f"[bold]Re-configured:[/bold] {', '.join(result.patched_steps)}")

        parts: list[object] = [table, Text(""), Text.from_markup("\n".join(summary))]
        if result.warnings:
            parts += [Text(""), Text.from_markup("[yellow][bold]Warnings[/bold][/yellow]")]
            parts += [Text(f"  - {warning}") for warning in result.warnings]

        return Panel(
            Group(*parts),
            title=f"[bold]Airbrx deployment - {result.prefix}[/bold]",
            border_style=_RUN_BORDERS.get(result.status, "blue"),
            padding=(1, 2),
        )

    # ------------------------------------------------------------------
    # Status and health
    # ------------------------------------------------------------------

    def render_health(self, report: HealthReport) -> Table:
        table = Table(title="Health", header_style="bold cyan")
        table.add_column("Endpoint", style="cyan")
        table.add_column("URL")
        table.add_column("HTTP", justify="right")
        table.add_column("Status", justify="center")
        table.add_column("Details", style="dim")
        for check in report.checks:
            table.add_row(
                check.name,
                check.url or "-",
                str(check.status_code) if check.status_code is not None else "-",
                _HEALTH_LABELS[check.status],
                escape(check.detail),
            )
        return table

    def render_status(self, report: StatusReport) -> Panel:
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("Kind", style="cyan")
        table.add_column("Name")
        table.add_column("Present", justify="center")
        table.add_column("Details")
        for resource in report.resources:
            present = "[green]yes[/green]" if resource.present else "[red]no[/red]"
            details = "  ".join(f"{k}={escape(v)}" for k, v in resource.details.items())
            table.add_row(resource.kind, resource.name, present, details or "[dim]-[/dim]")

        parts: list[object] = [table]
        if report.health is not None:
            parts += [Text(""), self.render_health(report.health)]
        overall = "[green]complete[/green]" if report.complete else "[yellow]incomplete[/yellow]"
        parts += [Text(""), Text.from_markup(f"[bold]Deployment:[/bold] {overall}")]

        return Panel(
            Group(*parts),
            title=f"[bold]Airbrx status - {report.prefix} ({report.region})[/bold]",
            subtitle=f"As of {report.generated_at.strftime('%Y-%m-%d %H:%M:%S UTC')}",
            border_style="blue" if report.complete else "yellow",
            padding=(1, 2),
        )

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def render_teardown(self, result: TeardownResult) -> Panel:
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("Kind", style="cyan")
        table.add_column("Name")
        table.add_column("Outcome", justify="center")
        table.add_column("Details", style="dim")
        for item in result.items:
            table.add_row(item.kind, item.name, _TEARDOWN_LABELS[item.outcome], escape(item.detail))

        parts: list[object] = [table]
        if result.removed_files:
            parts += [Text(""), Text.from_markup("[bold]Removed files[/bold]")]
            parts += [Text(f"  - {name}") for name in result.removed_files]
        if result.manual_followups:
            parts += [Text(""), Text.from_markup("[bold]Left for manual cleanup[/bold]")]
            parts += [Text(f"  {command}") for command in result.manual_followups]

        if result.failures:
            border = "red"
        elif result.warnings:
            border = "yellow"
        else:
            border = "green"
        return Panel(
            Group(*parts),
            title=f"[bold]Airbrx teardown - {result.prefix}[/bold]",
            border_style=border,
            padding=(1, 2),
        )

    # ------------------------------------------------------------------
    # Standalone print
    # ------------------------------------------------------------------

    def print_plan(self, graph: DependencyGraph) -> None:
        self.console.print(self.render_plan(graph))

    def print_result(self, result: DeploymentResult) -> None:
        self.console.print(self.render_result(result))

    def print_status(self, report: StatusReport) -> None:
        self.console.print(self.render_status(report))

    def print_teardown(self, result: TeardownResult) -> None:
        self.console.print(self.render_teardown(result))
