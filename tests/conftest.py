"""Shared test fixtures for the Airbrx deployer."""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest
from fakes import ACCOUNT_ID, FakeBuilder, FakeCloud, FakeFetcher, FakeHealthChecker

from airbrx_deploy.config import DeployerSettings
from airbrx_deploy.core.artifact_registry import ArtifactRegistry
from airbrx_deploy.core.config_loader import config_path_for
from airbrx_deploy.core.orchestrator import Orchestrator
from airbrx_deploy.models.config import DeploymentConfig
from airbrx_deploy.models.resources import ResourceNames
from airbrx_deploy.models.tokens import AdminToken
from airbrx_deploy.pipeline.phases import DeploymentContext, build_deployment_phases
from airbrx_deploy.pipeline.preflight import token_path
from airbrx_deploy.setup.generator import config_file_body

FIXED_NOW = datetime(2025, 3, 14, 9, 26, 53, 589000, tzinfo=timezone.utc)


@pytest.fixture
def admin_token() -> AdminToken:
    """A deterministic admin token record."""
    return AdminToken(
        id="pat_0123456789abcdef",
        token="airbrx_pat_" + "ab" * 32,
        created_at="2025-03-14T09:26:53.589Z",
    )


@pytest.fixture
def config(admin_token: AdminToken) -> DeploymentConfig:
    """The ``acme-dev`` deployment in us-west-2 with optional integrations off."""
    return DeploymentConfig(
        prefix="acme-dev",
        region="us-west-2",
        git_pat="ghp_testtoken",
        git_branch="main",
        god_pat=admin_token.token,
        jwt_secret="f" * 64,
    )


@pytest.fixture
def names(config: DeploymentConfig) -> ResourceNames:
    return ResourceNames(prefix=config.prefix)


@pytest.fixture
def cloud(config: DeploymentConfig) -> FakeCloud:
    """An empty in-memory account in the deployment's region."""
    return FakeCloud(region=config.region)


@pytest.fixture
def registry() -> ArtifactRegistry:
    """A registry seeded with the account id, as the CLI seeds it."""
    return ArtifactRegistry({"account.id": ACCOUNT_ID})


@pytest.fixture
def settings() -> DeployerSettings:
    return DeployerSettings(_env_file=None, iam_propagation_seconds=10.0)


@pytest.fixture
def make_context(
    config: DeploymentConfig,
    cloud: FakeCloud,
    admin_token: AdminToken,
    settings: DeployerSettings,
    tmp_path: Path,
) -> Callable[..., DeploymentContext]:
    """Factory fixture: a DeploymentContext wired to fakes.

    Every context built by one test shares the same work directory and
    the same fake cloud, so a second context behaves like a re-run.
    """

    def _factory(
        *, config: DeploymentConfig = config, clients: Any = cloud, **overrides: Any
    ) -> DeploymentContext:
        kwargs: dict[str, Any] = {
            "fetcher": FakeFetcher(),
            "builder": FakeBuilder(),
            "health_checker": FakeHealthChecker(),
            "settings": settings,
            "sleep": lambda seconds: None,
            "clock": lambda: FIXED_NOW,
        }
        kwargs.update(overrides)
        return DeploymentContext(config, clients, admin_token, tmp_path / "work", **kwargs)

    return _factory


@pytest.fixture
def generated_dir(tmp_path: Path, config: DeploymentConfig, admin_token: AdminToken) -> Path:
    """A generated directory holding the config document and token record."""
    directory = tmp_path / "generated"
    directory.mkdir()
    path = config_path_for(config.prefix, directory)
    path.write_text(config_file_body(config, FIXED_NOW), encoding="utf-8")
    path.chmod(0o600)
    token_path(config.prefix, directory).write_text(
        json.dumps(admin_token.to_record(), indent=4), encoding="utf-8"
    )
    return directory


@pytest.fixture
def run_deployment(make_context: Callable[..., DeploymentContext]) -> Callable[..., tuple[Any, DeploymentContext]]:
    """Factory fixture: run the deployment phases once against the fake cloud.

    Returns ``(result, context)``. ``phases`` slices the phase list, e.g.
    ``run_deployment(phases=slice(0, 4))`` stops after compute.
    """

    def _run(*, phases: slice = slice(None), **overrides: Any) -> tuple[Any, DeploymentContext]:
        ctx = make_context(**overrides)
        orchestrator = Orchestrator(
            ctx.config.prefix, ArtifactRegistry({"account.id": ACCOUNT_ID}), run_id="ad-test"
        )
        return orchestrator.run(build_deployment_phases(ctx)[phases]), ctx

    return _run
