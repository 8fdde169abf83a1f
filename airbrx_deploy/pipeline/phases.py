"""The concrete deployment: nine phases over the artifact registry.

Phase order and the artifact keys each step requires/produces::

    1 storage      bucket.{admin,gateway,app}
    2 identity     {api,gateway,logSummary}.roleArn, identity.ready
    3 artifacts    source.*, {api,gateway,logSummary}.package
    4 compute      api.functionUrl -> gateway (token + api URL) -> logSummary
    5 edge         {api,gateway,app}.cdnDomain, app.oacId, app.distributionArn
    6 compute-2    admin API patched with redirect/dashboard/allowed domains
    7 static-site  frontend configured, synced, bucket policy, invalidation
    8 seeding      admin token record, tenant configuration, caching rules
    9 validation   endpoint health (never fatal)

The static app's distribution is created in phase 5 rather than 7: the
phase-6 patch needs its domain for ``DASHBOARD_URL``, and creating it
needs only the bucket and the origin-access control.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict

from airbrx_deploy.config import DeployerSettings, settings as default_settings
from airbrx_deploy.core.artifact_registry import ArtifactRegistry
from airbrx_deploy.core.environment import (
    EnvironmentDocument,
    api_environment,
    gateway_environment,
    log_summary_environment,
)
from airbrx_deploy.core.policies import app_bucket_policy, execution_policy, lambda_trust_policy
from airbrx_deploy.models.config import DeploymentConfig
from airbrx_deploy.models.pipeline import Phase, Step
from airbrx_deploy.models.reports import HealthReport, HealthStatus
from airbrx_deploy.models.resources import (
    BucketDescriptor,
    DistributionDescriptor,
    DistributionRole,
    FunctionDescriptor,
    FunctionRole,
    OriginAccessControlDescriptor,
    ReconcileAction,
    ResourceNames,
    RoleDescriptor,
)
from airbrx_deploy.models.tenants import CachingRules, TenantConfiguration
from airbrx_deploy.models.tokens import AdminToken
from airbrx_deploy.pipeline.sources import GitSourceFetcher, NpmPackageBuilder, configure_frontend
from airbrx_deploy.reconcile.reconciler import Reconciler

logger = logging.getLogger(__name__)

# Keys known before the first step runs.
SEEDED_KEYS: tuple[str, ...] = ("account.id",)

FRONTEND_REPO = "app-airbrx-com"


class FunctionSpec(BaseModel):
    """Fixed compute settings and source location of one function."""

    model_config = ConfigDict(frozen=True)

    key: str  # artifact key prefix
    handler: str
    memory_mb: int
    timeout_seconds: int
    public_url: bool
    repo: str
    subdir: str


FUNCTION_SPECS: dict[FunctionRole, FunctionSpec] = {
    FunctionRole.API: FunctionSpec(
        key="api",
        handler="reportingapi.handler",
        memory_mb=512,
        timeout_seconds=30,
        public_url=True,
        repo="airbrx-api",
        subdir="api",
    ),
    FunctionRole.GATEWAY: FunctionSpec(
        key="gateway",
        handler="data-proxy.handler",
        memory_mb=1024,
        timeout_seconds=60,
        public_url=True,
        repo="data-proxy",
        subdir="airbrx-proxy",
    ),
    FunctionRole.LOG_SUMMARY: FunctionSpec(
        key="logSummary",
        handler="lambda-handler.handler",
        memory_mb=1536,
        timeout_seconds=900,
        public_url=False,
        repo="airbrx-api",
        subdir="log-summary-v2",
    ),
}


def url_host(url: str) -> str:
    """``https://abc.lambda-url.us-east-1.on.aws/`` -> ``abc.lambda-url.us-east-1.on.aws``."""
    host = url.strip()
    for scheme in ("https://", "http://"):
        if host.startswith(scheme):
            host = host[len(scheme):]
    return host.rstrip("/")


class HealthCheckWarning(RuntimeError):
    """Raised by the validation step when an endpoint is not healthy."""


class DeploymentContext:
    """Everything the deployment steps close over.

    Parameters
    ----------
    config:
        The deployment configuration document.
    clients:
        Resource clients (``storage``, ``identity``, ``compute``, ``cdn``).
    admin_token:
        The persisted admin token record, uploaded during seeding.
    work_dir:
        Scratch directory for checkouts and packages.
    fetcher, builder:
        Source fetch and package build collaborators.
    health_checker:
        Object with ``check_deployment(...) -> HealthReport``; validation
        is skipped with a warning if None.
    sleep:
        Used for the IAM propagation pause.
    """

    def __init__(
        self,
        config: DeploymentConfig,
        clients: Any,
        admin_token: AdminToken,
        work_dir: Path,
        *,
        fetcher: Any | None = None,
        builder: Any | None = None,
        health_checker: Any | None = None,
        settings: DeployerSettings | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.config = config
        self.clients = clients
        self.admin_token = admin_token
        self.work_dir = Path(work_dir)
        self.settings = settings or default_settings
        self.names = ResourceNames(prefix=config.prefix)
        self.reconciler = Reconciler(clients)
        self.fetcher = fetcher or GitSourceFetcher(
            config.git_pat,
            config.git_branch,
            host=self.settings.git_host,
            org=self.settings.git_org,
        )
        self.builder = builder or NpmPackageBuilder()
        self.health_checker = health_checker
        self.sleep = sleep
        self.clock = clock
        self.created_roles: list[str] = []
        self.health_report: HealthReport | None = None
        self.api_environments: list[EnvironmentDocument] = []


def build_deployment_phases(ctx: DeploymentContext) -> list[Phase]:
    """The nine deployment phases, bound to *ctx*."""
    return [
        Phase(ordinal=1, name="storage", steps=_storage_steps(ctx)),
        Phase(ordinal=2, name="identity", steps=_identity_steps(ctx)),
        Phase(ordinal=3, name="artifacts", steps=_artifact_steps(ctx)),
        Phase(ordinal=4, name="compute", steps=_compute_steps(ctx)),
        Phase(ordinal=5, name="edge", steps=_edge_steps(ctx)),
        Phase(ordinal=6, name="compute-patch", steps=_patch_steps(ctx)),
        Phase(ordinal=7, name="static-site", steps=_static_site_steps(ctx)),
        Phase(ordinal=8, name="seeding", steps=_seeding_steps(ctx)),
        Phase(ordinal=9, name="validation", steps=_validation_steps(ctx)),
    ]


# ---------------------------------------------------------------------------
# Phase 1: storage
# ---------------------------------------------------------------------------


def _storage_steps(ctx: DeploymentContext) -> list[Step]:
    names = ctx.names
    buckets = [
        ("admin", names.admin_bucket, False),
        ("gateway", names.gateway_bucket, False),
        ("app", names.app_bucket, True),
    ]

    def _ensure(name: str, key: str, static_site: bool) -> Callable[[ArtifactRegistry], dict[str, str]]:
        def execute(registry: ArtifactRegistry) -> dict[str, str]:
            ctx.reconciler.ensure(
                BucketDescriptor(name=name, region=ctx.config.region, static_site=static_site)
            )
            return {key: name}

        return execute

    return [
        Step(
            name=f"storage.{label}",
            description=f"Bucket {name}",
            produces=[f"bucket.{label}"],
            execute=_ensure(name, f"bucket.{label}", static_site),
        )
        for label, name, static_site in buckets
    ]


# ---------------------------------------------------------------------------
# Phase 2: identity
# ---------------------------------------------------------------------------


def _identity_steps(ctx: DeploymentContext) -> list[Step]:
    names = ctx.names
    steps = []

    for role, spec in FUNCTION_SPECS.items():

        def execute(registry: ArtifactRegistry, role: FunctionRole = role, key: str = spec.key) -> dict[str, str]:
            descriptor = RoleDescriptor(
                name=names.role(role),
                trust_policy=lambda_trust_policy(),
                policy_name=names.role_policy(role),
                policy_document=execution_policy(
                    names, role, ctx.config.region, registry["account.id"]
                ),
            )
            handle = ctx.reconciler.ensure(descriptor)
            if handle.action is ReconcileAction.CREATED:
                ctx.created_roles.append(handle.name)
            return {f"{key}.roleArn": handle.identifier}

        steps.append(
            Step(
                name=f"identity.{spec.key}",
                description=f"Role {names.role(role)}",
                requires=["account.id"],
                produces=[f"{spec.key}.roleArn"],
                execute=execute,
            )
        )

    def propagate(registry: ArtifactRegistry) -> dict[str, str]:
        if ctx.created_roles:
            delay = ctx.settings.iam_propagation_seconds
            logger.info("Waiting %.0fs for new roles to propagate", delay)
            ctx.sleep(delay)
        else:
            logger.info("No new roles; skipping propagation pause")
        return {"identity.ready": "ready"}

    steps.append(
        Step(
            name="identity.propagation",
            description="Role propagation",
            requires=[f"{spec.key}.roleArn" for spec in FUNCTION_SPECS.values()],
            produces=["identity.ready"],
            execute=propagate,
        )
    )
    return steps


# ---------------------------------------------------------------------------
# Phase 3: artifacts
# ---------------------------------------------------------------------------


def _artifact_steps(ctx: DeploymentContext) -> list[Step]:
    sources = ctx.work_dir / "sources"
    packages = ctx.work_dir / "packages"
    repos = sorted({spec.repo for spec in FUNCTION_SPECS.values()} | {FRONTEND_REPO})

    def _clone(repo: str) -> Callable[[ArtifactRegistry], dict[str, str]]:
        def execute(registry: ArtifactRegistry) -> dict[str, str]:
            path = ctx.fetcher.fetch(repo, sources / repo)
            return {f"source.{repo}": str(path)}

        return execute

    def _build(spec: FunctionSpec) -> Callable[[ArtifactRegistry], dict[str, str]]:
        def execute(registry: ArtifactRegistry) -> dict[str, str]:
            checkout = Path(registry[f"source.{spec.repo}"])
            archive = ctx.builder.build(checkout / spec.subdir, packages / f"{spec.key}.zip")
            return {f"{spec.key}.package": str(archive)}

        return execute

    steps = [
        Step(
            name=f"source.{repo}",
            description=f"Clone {repo}",
            produces=[f"source.{repo}"],
            execute=_clone(repo),
        )
        for repo in repos
    ]
    steps += [
        Step(
            name=f"package.{spec.key}",
            description=f"Package {spec.repo}/{spec.subdir}",
            requires=[f"source.{spec.repo}"],
            produces=[f"{spec.key}.package"],
            execute=_build(spec),
        )
        for spec in FUNCTION_SPECS.values()
    ]
    return steps


# ---------------------------------------------------------------------------
# Phase 4: compute, first pass
# ---------------------------------------------------------------------------


def _function_descriptor(
    ctx: DeploymentContext,
    role: FunctionRole,
    registry: ArtifactRegistry,
    environment: EnvironmentDocument,
) -> FunctionDescriptor:
    spec = FUNCTION_SPECS[role]
    return FunctionDescriptor(
        name=ctx.names.function(role),
        role_arn=registry[f"{spec.key}.roleArn"],
        handler=spec.handler,
        runtime=ctx.settings.lambda_runtime,
        memory_mb=spec.memory_mb,
        timeout_seconds=spec.timeout_seconds,
        environment=environment.variables,
        package_path=Path(registry[f"{spec.key}.package"]),
        public_url=spec.public_url,
    )


def _compute_steps(ctx: DeploymentContext) -> list[Step]:
    config, names = ctx.config, ctx.names

    def deploy_api(registry: ArtifactRegistry) -> dict[str, str]:
        env = api_environment(config, names)
        ctx.api_environments.append(env)
        handle = ctx.reconciler.ensure(_function_descriptor(ctx, FunctionRole.API, registry, env))
        return {"api.functionArn": handle.identifier, "api.functionUrl": handle.attributes["url"]}

    def deploy_gateway(registry: ArtifactRegistry) -> dict[str, str]:
        env = gateway_environment(config, names, api_function_url=registry["api.functionUrl"])
        handle = ctx.reconciler.ensure(
            _function_descriptor(ctx, FunctionRole.GATEWAY, registry, env)
        )
        url = handle.attributes["url"]
        return {
            "gateway.functionArn": handle.identifier,
            "gateway.functionUrl": url,
            "gateway.fqdn": url_host(url),
        }

    def deploy_log_summary(registry: ArtifactRegistry) -> dict[str, str]:
        env = log_summary_environment(config, names, api_function_url=registry["api.functionUrl"])
        handle = ctx.reconciler.ensure(
            _function_descriptor(ctx, FunctionRole.LOG_SUMMARY, registry, env)
        )
        return {"logSummary.functionArn": handle.identifier}

    return [
        Step(
            name="compute.api",
            description=f"Function {names.api_function} (partial environment)",
            requires=["api.roleArn", "api.package", "identity.ready"],
            produces=["api.functionArn", "api.functionUrl"],
            execute=deploy_api,
        ),
        Step(
            name="compute.gateway",
            description=f"Function {names.gateway_function}",
            requires=["gateway.roleArn", "gateway.package", "identity.ready", "api.functionUrl"],
            produces=["gateway.functionArn", "gateway.functionUrl", "gateway.fqdn"],
            execute=deploy_gateway,
        ),
        Step(
            name="compute.logSummary",
            description=f"Function {names.log_summary_function}",
            requires=["logSummary.roleArn", "logSummary.package", "identity.ready", "api.functionUrl"],
            produces=["logSummary.functionArn"],
            execute=deploy_log_summary,
        ),
    ]


# ---------------------------------------------------------------------------
# Phase 5: edge
# ---------------------------------------------------------------------------


def _edge_steps(ctx: DeploymentContext) -> list[Step]:
    names, prefix = ctx.names, ctx.config.prefix

    def _function_edge(role: DistributionRole) -> Callable[[ArtifactRegistry], dict[str, str]]:
        key = role.value

        def execute(registry: ArtifactRegistry) -> dict[str, str]:
            handle = ctx.reconciler.ensure(
                DistributionDescriptor(
                    deployment=prefix,
                    role=role,
                    origin_domain=url_host(registry[f"{key}.functionUrl"]),
                    comment=names.distribution_comment(role),
                )
            )
            return {
                f"{key}.distributionId": handle.identifier,
                f"{key}.cdnDomain": handle.attributes["domain"],
            }

        return execute

    def app_oac(registry: ArtifactRegistry) -> dict[str, str]:
        handle = ctx.reconciler.ensure(
            OriginAccessControlDescriptor(
                name=names.app_origin_access_control,
                description=f"Airbrx app bucket access - {prefix}",
            )
        )
        return {"app.oacId": handle.identifier}

    def app_distribution(registry: ArtifactRegistry) -> dict[str, str]:
        bucket = registry["bucket.app"]
        handle = ctx.reconciler.ensure(
            DistributionDescriptor(
                deployment=prefix,
                role=DistributionRole.APP,
                origin_domain=f"{bucket}.s3.{ctx.config.region}.amazonaws.com",
                comment=names.distribution_comment(DistributionRole.APP),
                origin_access_control_id=registry["app.oacId"],
            )
        )
        return {
            "app.distributionId": handle.identifier,
            "app.distributionArn": handle.attributes["arn"],
            "app.cdnDomain": handle.attributes["domain"],
        }

    return [
        Step(
            name="edge.api",
            description="Distribution for the admin API",
            requires=["api.functionUrl"],
            produces=["api.distributionId", "api.cdnDomain"],
            execute=_function_edge(DistributionRole.API),
        ),
        Step(
            name="edge.gateway",
            description="Distribution for the gateway",
            requires=["gateway.functionUrl"],
            produces=["gateway.distributionId", "gateway.cdnDomain"],
            execute=_function_edge(DistributionRole.GATEWAY),
        ),
        Step(
            name="edge.appOac",
            description=f"Origin access control {names.app_origin_access_control}",
            requires=["bucket.app"],
            produces=["app.oacId"],
            execute=app_oac,
        ),
        Step(
            name="edge.app",
            description="Distribution for the static app",
            requires=["bucket.app", "app.oacId"],
            produces=["app.distributionId", "app.distributionArn", "app.cdnDomain"],
            execute=app_distribution,
        ),
    ]


# ---------------------------------------------------------------------------
# Phase 6: compute, second pass
# ---------------------------------------------------------------------------


def _patch_steps(ctx: DeploymentContext) -> list[Step]:
    def patch_api(registry: ArtifactRegistry) -> dict[str, str]:
        env = api_environment(
            ctx.config,
            ctx.names,
            api_function_url=registry["api.functionUrl"],
            api_cdn_domain=registry["api.cdnDomain"],
            app_cdn_domain=registry["app.cdnDomain"],
        )
        ctx.api_environments.append(env)
        ctx.reconciler.configure_function(
            _function_descriptor(ctx, FunctionRole.API, registry, env)
        )
        return {"api.dashboardUrl": env["DASHBOARD_URL"]}

    return [
        Step(
            name="compute.apiPatch",
            description=f"Function {ctx.names.api_function} (full environment)",
            requires=["api.functionUrl", "api.cdnDomain", "app.cdnDomain", "api.roleArn", "api.package"],
            produces=["api.dashboardUrl"],
            execute=patch_api,
            patch_of="compute.api",
        )
    ]


# ---------------------------------------------------------------------------
# Phase 7: static site
# ---------------------------------------------------------------------------


def _static_site_steps(ctx: DeploymentContext) -> list[Step]:
    def configure(registry: ArtifactRegistry) -> dict[str, str]:
        api_url = f"https://{registry['api.cdnDomain']}"
        configure_frontend(Path(registry[f"source.{FRONTEND_REPO}"]), api_url)
        return {"frontend.apiUrl": api_url}

    def sync(registry: ArtifactRegistry) -> dict[str, str]:
        summary = ctx.clients.storage.sync_directory(
            Path(registry[f"source.{FRONTEND_REPO}"]), registry["bucket.app"]
        )
        return {"app.syncedObjects": str(summary.uploaded + summary.unchanged)}

    def bucket_policy(registry: ArtifactRegistry) -> dict[str, str]:
        ctx.clients.storage.put_bucket_policy(
            registry["bucket.app"],
            app_bucket_policy(registry["bucket.app"], registry["app.distributionArn"]),
        )
        return {"app.bucketPolicy": registry["app.distributionArn"]}

    def invalidate(registry: ArtifactRegistry) -> dict[str, str]:
        invalidation = ctx.clients.cdn.create_invalidation(registry["app.distributionId"], ["/*"])
        return {"app.invalidationId": invalidation}

    return [
        Step(
            name="site.configure",
            description="Point the frontend at the admin API",
            requires=[f"source.{FRONTEND_REPO}", "api.cdnDomain"],
            produces=["frontend.apiUrl"],
            execute=configure,
        ),
        Step(
            name="site.sync",
            description="Sync the frontend to the app bucket",
            requires=["frontend.apiUrl", "bucket.app"],
            produces=["app.syncedObjects"],
            execute=sync,
        ),
        Step(
            name="site.bucketPolicy",
            description="Scope app bucket reads to its distribution",
            requires=["bucket.app", "app.distributionArn"],
            produces=["app.bucketPolicy"],
            execute=bucket_policy,
        ),
        Step(
            name="site.invalidate",
            description="Invalidate the app distribution",
            requires=["app.distributionId", "app.syncedObjects"],
            produces=["app.invalidationId"],
            execute=invalidate,
        ),
    ]


# ---------------------------------------------------------------------------
# Phase 8: seeding
# ---------------------------------------------------------------------------


def _seeding_steps(ctx: DeploymentContext) -> list[Step]:
    def seed_token(registry: ArtifactRegistry) -> dict[str, str]:
        token = ctx.admin_token
        ctx.clients.storage.put_json(registry["bucket.admin"], token.object_key, token.to_record())
        logger.info("Uploaded admin token %s", token.id)
        return {"seed.adminToken": token.id}

    def seed_tenant(registry: ArtifactRegistry) -> dict[str, str]:
        tenant = TenantConfiguration.initial(
            tenant_id=registry["gateway.fqdn"],
            tenant_name=ctx.config.prefix,
            bucket=registry["bucket.gateway"],
            region=ctx.config.region,
        )
        _put_if_absent(ctx.clients.storage, registry["bucket.admin"], tenant.object_key, tenant.to_record())
        return {"tenant.id": tenant.tenant_id}

    def seed_rules(registry: ArtifactRegistry) -> dict[str, str]:
        stamp = ctx.clock().strftime("%Y-%m-%dT%H:%M:%S.000Z")
        rules = CachingRules.initial(registry["tenant.id"], stamp)
        _put_if_absent(ctx.clients.storage, registry["bucket.admin"], rules.object_key, rules.to_record())
        return {"tenant.rulesKey": rules.object_key}

    return [
        Step(
            name="seed.adminToken",
            description="Upload the admin token record",
            requires=["bucket.admin"],
            produces=["seed.adminToken"],
            execute=seed_token,
        ),
        Step(
            name="seed.tenant",
            description="Initial tenant configuration",
            requires=["bucket.admin", "bucket.gateway", "gateway.fqdn", "gateway.cdnDomain"],
            produces=["tenant.id"],
            execute=seed_tenant,
        ),
        Step(
            name="seed.cachingRules",
            description="Initial caching rules",
            requires=["bucket.admin", "tenant.id"],
            produces=["tenant.rulesKey"],
            execute=seed_rules,
        ),
    ]


def _put_if_absent(storage: Any, bucket: str, key: str, document: dict[str, Any]) -> bool:
    if storage.object_exists(bucket, key):
        logger.info("s3://%s/%s exists; leaving it untouched", bucket, key)
        return False
    storage.put_json(bucket, key, document)
    return True


# ---------------------------------------------------------------------------
# Phase 9: validation
# ---------------------------------------------------------------------------


def _validation_steps(ctx: DeploymentContext) -> list[Step]:
    def validate(registry: ArtifactRegistry) -> dict[str, str]:
        if ctx.health_checker is None:
            raise HealthCheckWarning("no health checker configured; endpoints not probed")
        info = ctx.clients.cdn.get_distribution(registry["app.distributionId"])
        report = ctx.health_checker.check_deployment(
            api_domain=registry["api.cdnDomain"],
            gateway_domain=registry["gateway.cdnDomain"],
            app_domain=registry["app.cdnDomain"],
            app_distribution_status=info.status if info is not None else None,
        )
        ctx.health_report = report
        if report.status is not HealthStatus.HEALTHY:
            raise HealthCheckWarning("; ".join(report.warnings))
        return {"health.status": report.status.value}

    return [
        Step(
            name="validate.health",
            description="Probe public endpoints",
            requires=["api.cdnDomain", "gateway.cdnDomain", "app.cdnDomain", "app.distributionId"],
            produces=["health.status"],
            execute=validate,
            fatal=False,
        )
    ]
