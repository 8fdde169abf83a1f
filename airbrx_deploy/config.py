"""Deployer settings — env-driven, independent of any one deployment.

Tool-level knobs (log level, output directories, waiter pacing, probe
timeouts) live here. Per-deployment values such as the prefix and the
secrets come from the generated ``<prefix>-config.env`` document instead,
see :mod:`airbrx_deploy.core.config_loader`.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class DeployerSettings(BaseSettings):
    """Deployer configuration with environment variable overrides.

    All settings can be overridden via AIRBRX_DEPLOY_* environment variables
    or a .env file in the working directory.

    Examples
    --------
    Override via environment::

        export AIRBRX_DEPLOY_LOG_LEVEL=DEBUG
        export AIRBRX_DEPLOY_GENERATED_DIR=/secure/generated
        export AIRBRX_DEPLOY_IAM_PROPAGATION_SECONDS=20
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="AIRBRX_DEPLOY_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "INFO"

    # Output paths
    generated_dir: Path = Path("generated")
    state_dir: Path = Path(".airbrx-deploy/runs")
    work_dir: Path | None = None  # None -> fresh temporary directory per run

    # Source control
    git_host: str = "github.com"
    git_org: str = "airbrx"

    # Compute
    lambda_runtime: str = "nodejs20.x"
    min_node_major: int = 20

    # Pacing
    iam_propagation_seconds: float = 10.0
    waiter_delay_seconds: int = 5
    waiter_max_attempts: int = 60
    distribution_waiter_delay_seconds: int = 30
    distribution_waiter_max_attempts: int = 40

    # Validation
    health_timeout_seconds: float = 10.0


# Module-level singleton; import as `from airbrx_deploy.config import settings`
settings = DeployerSettings()
