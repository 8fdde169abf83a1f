"""Airbrx deployer data models — all Pydantic v2, all frozen (immutable)."""

from airbrx_deploy.models.config import (
    ANTHROPIC_NOT_CONFIGURED,
    CONFIG_KEYS,
    DESCOPE_NOT_CONFIGURED,
    REQUIRED_CONFIG_KEYS,
    DeploymentConfig,
)
from airbrx_deploy.models.pipeline import (
    VALID_TRANSITIONS,
    DeploymentResult,
    Phase,
    PhaseResult,
    RunState,
    RunStatus,
    Step,
    StepResult,
    StepState,
)
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
from airbrx_deploy.models.resources import (
    BucketDescriptor,
    DistributionDescriptor,
    DistributionRole,
    FunctionDescriptor,
    FunctionRole,
    OriginAccessControlDescriptor,
    ReconcileAction,
    ResourceHandle,
    ResourceNames,
    RoleDescriptor,
)
from airbrx_deploy.models.tenants import CachingRules, TenantConfiguration
from airbrx_deploy.models.tokens import AdminToken

__all__ = [
    # config
    "ANTHROPIC_NOT_CONFIGURED",
    "CONFIG_KEYS",
    "DESCOPE_NOT_CONFIGURED",
    "REQUIRED_CONFIG_KEYS",
    "DeploymentConfig",
    # pipeline
    "VALID_TRANSITIONS",
    "DeploymentResult",
    "Phase",
    "PhaseResult",
    "RunState",
    "RunStatus",
    "Step",
    "StepResult",
    "StepState",
    # reports
    "EndpointCheck",
    "HealthReport",
    "HealthStatus",
    "ResourceStatus",
    "StatusReport",
    "TeardownItem",
    "TeardownOutcome",
    "TeardownResult",
    # resources
    "BucketDescriptor",
    "DistributionDescriptor",
    "DistributionRole",
    "FunctionDescriptor",
    "FunctionRole",
    "OriginAccessControlDescriptor",
    "ReconcileAction",
    "ResourceHandle",
    "ResourceNames",
    "RoleDescriptor",
    # seeding
    "AdminToken",
    "CachingRules",
    "TenantConfiguration",
]
