"""Unit tests for the status projection and the Rich renderer."""

from __future__ import annotations

from datetime import datetime, timezone
from io import StringIO

from fakes import FakeCloud, FakeHealthChecker, client_error
from rich.console import Console

from airbrx_deploy.core.dependency_graph import DependencyGraph
from airbrx_deploy.models.reports import (
    EndpointCheck,
    HealthReport,
    HealthStatus,
    ResourceStatus,
    StatusReport,
    TeardownItem,
    TeardownOutcome,
    TeardownResult,
)
from airbrx_deploy.monitor.projection import StatusProjection
from airbrx_deploy.monitor.renderer import DeploymentRenderer
from airbrx_deploy.pipeline.phases import SEEDED_KEYS, build_deployment_phases


def _renderer() -> tuple[DeploymentRenderer, StringIO]:
    buffer = StringIO()
    console = Console(file=buffer, width=400, color_system=None, force_terminal=False)
    return DeploymentRenderer(console=console), buffer


# ---------------------------------------------------------------------------
# Projection
# ---------------------------------------------------------------------------


class TestStatusProjection:
    """The projection reads what the provider reports, nothing else."""

    def test_empty_account(self, names):
        report = StatusProjection(FakeCloud(), names, "us-west-2").collect()

        assert len(report.resources) == 12
        assert not report.complete
        assert report.health is None
        assert {r.kind for r in report.resources} == {"bucket", "role", "function", "distribution"}

    def test_deployed(self, run_deployment, cloud, names):
        run_deployment()
        checker = FakeHealthChecker()

        report = StatusProjection(cloud, names, "us-west-2").collect(health_checker=checker)

        assert report.complete
        api = next(r for r in report.by_kind("function") if r.name == "acme-dev-airbrx-api")
        assert api.details["state"] == "Active"
        assert api.details["memory"] == "512 MB"
        assert api.details["url"].endswith(".lambda-url.us-west-2.on.aws/")
        log_summary = next(r for r in report.by_kind("function") if r.name.endswith("log-summary"))
        assert "url" not in log_summary.details
        app = next(r for r in report.by_kind("distribution") if r.name == "Airbrx App - acme-dev")
        assert app.details["enabled"] == "yes"
        assert report.health.status is HealthStatus.HEALTHY
        (request,) = checker.requests
        assert request["app_domain"] == app.details["domain"]
        assert request["app_distribution_status"] == "Deployed"

    def test_object_count_unavailable(self, run_deployment, cloud, names, monkeypatch):
        run_deployment()

        def denied(bucket):
            raise client_error("AccessDenied")

        monkeypatch.setattr(cloud.storage, "count_objects", denied)
        report = StatusProjection(cloud, names, "us-west-2").collect()
        assert {r.details["objects"] for r in report.by_kind("bucket")} == {"?"}

    def test_read_only(self, run_deployment, cloud, names):
        run_deployment()
        before = len(cloud.create_calls())
        StatusProjection(cloud, names, "us-west-2").collect(health_checker=FakeHealthChecker())
        assert len(cloud.create_calls()) == before


# ---------------------------------------------------------------------------
# Renderer
# ---------------------------------------------------------------------------


class TestDeploymentRenderer:
    def test_plan(self, make_context):
        renderer, buffer = _renderer()
        graph = DependencyGraph(build_deployment_phases(make_context(clients=None)), seeded=SEEDED_KEYS)

        renderer.print_plan(graph)
        text = buffer.getvalue()

        assert "Deployment plan" in text
        assert "compute.apiPatch" in text
        assert "(patches compute.api)" in text
        assert "(non-fatal)" in text

    def test_result(self, run_deployment):
        result, _ = run_deployment()
        renderer, buffer = _renderer()

        renderer.print_result(result)
        text = buffer.getvalue()

        assert "Airbrx deployment - acme-dev" in text
        assert "succeeded" in text
        assert result.artifacts["api.cdnDomain"] in text
        assert "Re-configured: compute.apiPatch" in text

    def test_result_with_warnings(self, run_deployment):
        result, _ = run_deployment(health_checker=FakeHealthChecker(HealthStatus.DEGRADED))
        renderer, buffer = _renderer()

        renderer.print_result(result)
        text = buffer.getvalue()

        assert "WARNED" in text
        assert "Warnings" in text
        assert "HTTP 503" in text

    def test_status_escapes_markup(self):
        report = StatusReport(
            prefix="acme-dev",
            region="us-west-2",
            resources=[
                ResourceStatus(kind="bucket", name="b", present=True, details={"objects": "[bold]3"}),
                ResourceStatus(kind="role", name="r", present=False),
            ],
            health=HealthReport(
                checks=[EndpointCheck(name="api", url="https://d/health", status=HealthStatus.HEALTHY, status_code=200)]
            ),
            generated_at=datetime(2025, 3, 14, 9, 26, 53, tzinfo=timezone.utc),
        )
        renderer, buffer = _renderer()

        renderer.print_status(report)
        text = buffer.getvalue()

        assert "objects=[bold]3" in text
        assert "incomplete" in text
        assert "Health" in text
        assert "2025-03-14 09:26:53 UTC" in text

    def test_teardown(self):
        result = TeardownResult(
            prefix="acme-dev",
            items=[
                TeardownItem(kind="bucket", name="acme-dev-airbrx-app", outcome=TeardownOutcome.DELETED),
                TeardownItem(kind="role", name="r", outcome=TeardownOutcome.FAILED, detail="AccessDenied"),
            ],
            manual_followups=["aws logs delete-log-group --log-group-name /aws/lambda/acme-dev-airbrx-api"],
            removed_files=["acme-dev-config.env"],
        )
        renderer, buffer = _renderer()

        renderer.print_teardown(result)
        text = buffer.getvalue()

        assert "deleted" in text
        assert "AccessDenied" in text
        assert "Removed files" in text
        assert "aws logs delete-log-group" in text
