"""Function environment documents.

``build_environment`` turns ordered (name, value) pairs into the variable
set a function is configured with. Pairs whose value is empty or one of
the "not configured" sentinels are dropped, so optional integrations are
simply absent from the function's environment.

The admin API's environment is built twice per deployment: a partial
document at creation (before any CDN domain exists) and the full document
once the edge phase has recorded the CDN domains.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict

from airbrx_deploy.models.config import (
    ANTHROPIC_NOT_CONFIGURED,
    DESCOPE_NOT_CONFIGURED,
    DeploymentConfig,
)
from airbrx_deploy.models.resources import ResourceNames

NOT_CONFIGURED_SENTINELS: frozenset[str] = frozenset(
    {DESCOPE_NOT_CONFIGURED, ANTHROPIC_NOT_CONFIGURED}
)


class EnvironmentDocument(BaseModel):
    """An immutable, ordered set of environment variables."""

    model_config = ConfigDict(frozen=True)

    variables: dict[str, str] = {}

    def to_aws(self) -> dict[str, Any]:
        """Structured form for the compute API; the SDK does the encoding."""
        return {"Variables": dict(self.variables)}

    def __contains__(self, name: object) -> bool:
        return name in self.variables

    def __getitem__(self, name: str) -> str:
        return self.variables[name]

    def keys(self) -> set[str]:
        return set(self.variables)


def is_configured(value: str | None) -> bool:
    return bool(value) and value not in NOT_CONFIGURED_SENTINELS


def build_environment(
    pairs: Iterable[tuple[str, str | None]] | Mapping[str, str | None],
) -> EnvironmentDocument:
    """Build an environment document, dropping unset and sentinel values."""
    items = pairs.items() if isinstance(pairs, Mapping) else pairs
    return EnvironmentDocument(
        variables={name: value for name, value in items if is_configured(value)}
    )


# ---------------------------------------------------------------------------
# Per-function environments
# ---------------------------------------------------------------------------


def api_environment(
    config: DeploymentConfig,
    names: ResourceNames,
    *,
    api_function_url: str | None = None,
    api_cdn_domain: str | None = None,
    app_cdn_domain: str | None = None,
) -> EnvironmentDocument:
    """Admin API environment; partial until the CDN domains are passed in."""
    pairs: list[tuple[str, str | None]] = [
        ("NODE_ENV", "production"),
        ("AIRBRX_ENV", config.environment),
        ("AIRBRX_LOG_DISK", "false"),
        ("AIRBRX_S3_BUCKET", names.gateway_bucket),
        ("AWS_ADMIN_BUCKET", names.admin_bucket),
        ("AWS_ADMIN_REGION", config.region),
        ("AIRBRX_CONFIG_STORAGE_TYPE", "s3"),
        ("LOG_SUMMARY_LAMBDA_ARN", names.log_summary_function),
        ("AIRBRX_JWT_SECRET", config.jwt_secret),
        ("AIRBRX_JWT_EXPIRY", "7d"),
        ("AIRBRX_JWT_ISSUER", "airbrx.com"),
        ("DESCOPE_PROJECT_ID", config.descope_project_id),
        ("ANTHROPIC_API_KEY", config.anthropic_api_key),
        ("SLACK_WEBHOOK", config.slack_webhook),
    ]
    if api_function_url and api_cdn_domain and app_cdn_domain:
        pairs += [
            ("DESCOPE_REDIRECT_URI", f"{_with_slash(api_function_url)}auth/callback"),
            ("DASHBOARD_URL", f"https://{app_cdn_domain}"),
            ("ALLOWED_REDIRECT_DOMAINS", f"{api_cdn_domain},{app_cdn_domain}"),
        ]
    return build_environment(pairs)


def gateway_environment(
    config: DeploymentConfig, names: ResourceNames, *, api_function_url: str
) -> EnvironmentDocument:
    return build_environment(
        [
            ("AWS_S3_BUCKET", names.gateway_bucket),
            ("AIRBRX_CONFIG_STORAGE_TYPE", "s3"),
            ("AIRBRX_CONFIG_API_URL", api_function_url),
            ("AIRBRX_CONFIG_API_TOKEN", config.god_pat),
            ("AIRBRX_LOG_LEVEL", "info"),
        ]
    )


def log_summary_environment(
    config: DeploymentConfig, names: ResourceNames, *, api_function_url: str
) -> EnvironmentDocument:
    return build_environment(
        [
            ("AIRBRX_API_BASE", api_function_url),
            ("AIRBRX_S3_BUCKET", names.gateway_bucket),
            ("ANTHROPIC_API_KEY", config.anthropic_api_key),
        ]
    )


def _with_slash(url: str) -> str:
    return url if url.endswith("/") else url + "/"
