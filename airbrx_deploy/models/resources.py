"""Resource naming and desired-state descriptors.

Every physical name is a pure function of the deployment prefix, so the
same prefix always addresses the same resources. Descriptors are frozen:
when a later phase knows more (e.g. CDN domains for the admin API's
environment) a new descriptor is derived instead of mutating the old one.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict


class FunctionRole(str, Enum):
    """The three compute functions of a deployment."""

    API = "api"
    GATEWAY = "gateway"
    LOG_SUMMARY = "log-summary"


class DistributionRole(str, Enum):
    """The three edge distributions, also used as the ``airbrx:role`` tag."""

    API = "api"
    GATEWAY = "gateway"
    APP = "app"


class ReconcileAction(str, Enum):
    """What the reconciler had to do to reach the desired state."""

    CREATED = "created"
    UPDATED = "updated"
    EXISTING = "existing"


DEPLOYMENT_TAG = "airbrx:deployment"
ROLE_TAG = "airbrx:role"


class ResourceNames(BaseModel):
    """Physical names derived from a deployment prefix."""

    model_config = ConfigDict(frozen=True)

    prefix: str

    # -- storage ---------------------------------------------------------

    @property
    def admin_bucket(self) -> str:
        return f"{self.prefix}-airbrx-admin-storage"

    @property
    def gateway_bucket(self) -> str:
        return f"{self.prefix}-airbrx-gateway-storage"

    @property
    def app_bucket(self) -> str:
        return f"{self.prefix}-airbrx-app"

    @property
    def buckets(self) -> list[str]:
        return [self.admin_bucket, self.gateway_bucket, self.app_bucket]

    # -- compute ---------------------------------------------------------

    def function(self, role: FunctionRole) -> str:
        return f"{self.prefix}-airbrx-{role.value}"

    @property
    def api_function(self) -> str:
        return self.function(FunctionRole.API)

    @property
    def gateway_function(self) -> str:
        return self.function(FunctionRole.GATEWAY)

    @property
    def log_summary_function(self) -> str:
        return self.function(FunctionRole.LOG_SUMMARY)

    @property
    def functions(self) -> list[str]:
        return [self.function(role) for role in FunctionRole]

    def log_group(self, role: FunctionRole) -> str:
        return f"/aws/lambda/{self.function(role)}"

    # -- identity --------------------------------------------------------

    def role(self, role: FunctionRole) -> str:
        return f"{self.function(role)}-role"

    def role_policy(self, role: FunctionRole) -> str:
        return f"{self.role(role)}-policy"

    @property
    def roles(self) -> list[str]:
        return [self.role(role) for role in FunctionRole]

    # -- edge ------------------------------------------------------------

    @property
    def app_origin_access_control(self) -> str:
        return f"{self.prefix}-airbrx-app-oac"

    def distribution_comment(self, role: DistributionRole) -> str:
        label = "App" if role is DistributionRole.APP else role.value
        return f"Airbrx {label} - {self.prefix}"

    def distribution_tags(self, role: DistributionRole) -> dict[str, str]:
        return {DEPLOYMENT_TAG: self.prefix, ROLE_TAG: role.value}


# ---------------------------------------------------------------------------
# Descriptors
# ---------------------------------------------------------------------------


class BucketDescriptor(BaseModel):
    """Desired state of one storage bucket."""

    model_config = ConfigDict(frozen=True)

    name: str
    region: str
    static_site: bool = False  # relaxed public-access block for CDN policy


class RoleDescriptor(BaseModel):
    """Desired state of one execution role and its single inline policy."""

    model_config = ConfigDict(frozen=True)

    name: str
    trust_policy: dict[str, Any]
    policy_name: str
    policy_document: dict[str, Any]


class FunctionDescriptor(BaseModel):
    """Desired state of one compute function."""

    model_config = ConfigDict(frozen=True)

    name: str
    role_arn: str
    handler: str
    runtime: str
    memory_mb: int
    timeout_seconds: int
    environment: dict[str, str] = {}
    package_path: Path
    public_url: bool = False


class OriginAccessControlDescriptor(BaseModel):
    """Desired state of the static app's origin-access control."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""


class DistributionDescriptor(BaseModel):
    """Desired state of one CDN distribution.

    ``origin_domain`` is a bare host name: a function URL host for the
    api/gateway distributions, the regional bucket endpoint for the app.
    """

    model_config = ConfigDict(frozen=True)

    deployment: str
    role: DistributionRole
    origin_domain: str
    comment: str
    origin_access_control_id: str | None = None

    @property
    def tags(self) -> dict[str, str]:
        return {DEPLOYMENT_TAG: self.deployment, ROLE_TAG: self.role.value}

    @property
    def is_static_site(self) -> bool:
        return self.role is DistributionRole.APP


class ResourceHandle(BaseModel):
    """Outcome of reconciling one descriptor."""

    model_config = ConfigDict(frozen=True)

    kind: str
    name: str
    action: ReconcileAction
    identifier: str = ""
    attributes: dict[str, str] = {}
