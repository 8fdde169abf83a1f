"""StatusProjection — read-only view of one deployment's resources.

Every call re-reads the cloud. Nothing is created, changed or cached, and
the projection never consults the local run-state snapshot: what the
provider reports is the truth.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from airbrx_deploy.models.reports import ResourceStatus, StatusReport
from airbrx_deploy.models.resources import DistributionRole, FunctionRole, ResourceNames

logger = logging.getLogger(__name__)


class StatusProjection:
    """Collects a :class:`StatusReport` for one deployment.

    Parameters
    ----------
    clients:
        Resource clients (``storage``, ``identity``, ``compute``, ``cdn``).
    names:
        Physical names of the deployment.
    region:
        Region shown in the report header.
    """

    def __init__(self, clients: Any, names: ResourceNames, region: str) -> None:
        self._clients = clients
        self.names = names
        self.region = region

    def collect(self, health_checker: Any | None = None) -> StatusReport:
        resources: list[ResourceStatus] = []
        resources += [self._bucket(name) for name in self.names.buckets]
        resources += [self._role(name) for name in self.names.roles]
        resources += [self._function(role) for role in FunctionRole]
        distributions = {role: self._distribution(role) for role in DistributionRole}
        resources += list(distributions.values())

        health = None
        if health_checker is not None:
            app = distributions[DistributionRole.APP]
            health = health_checker.check_deployment(
                api_domain=distributions[DistributionRole.API].details.get("domain"),
                gateway_domain=distributions[DistributionRole.GATEWAY].details.get("domain"),
                app_domain=app.details.get("domain"),
                app_distribution_status=app.details.get("status"),
            )

        return StatusReport(
            prefix=self.names.prefix,
            region=self.region,
            resources=resources,
            health=health,
            generated_at=datetime.now(timezone.utc),
        )

    # ------------------------------------------------------------------
    # Per-kind lookups
    # ------------------------------------------------------------------

    def _bucket(self, name: str) -> ResourceStatus:
        storage = self._clients.storage
        if not storage.bucket_exists(name):
            return ResourceStatus(kind="bucket", name=name, present=False)
        details = {}
        try:
            details["objects"] = str(storage.count_objects(name))
        except (ClientError, BotoCoreError) as e:
            logger.warning("Could not list %s: %s", name, e)
            details["objects"] = "?"
        return ResourceStatus(kind="bucket", name=name, present=True, details=details)

    def _role(self, name: str) -> ResourceStatus:
        arn = self._clients.identity.get_role_arn(name)
        if arn is None:
            return ResourceStatus(kind="role", name=name, present=False)
        return ResourceStatus(kind="role", name=name, present=True, details={"arn": arn})

    def _function(self, role: FunctionRole) -> ResourceStatus:
        compute = self._clients.compute
        name = self.names.function(role)
        info = compute.get_function(name)
        if info is None:
            return ResourceStatus(kind="function", name=name, present=False)
        details = {
            "state": info.state,
            "runtime": info.runtime,
            "memory": f"{info.memory_mb} MB",
        }
        url = compute.get_function_url(name)
        if url:
            details["url"] = url
        return ResourceStatus(kind="function", name=name, present=True, details=details)

    def _distribution(self, role: DistributionRole) -> ResourceStatus:
        label = self.names.distribution_comment(role)
        info = self._clients.cdn.find_distribution(self.names.prefix, role.value)
        if info is None:
            return ResourceStatus(kind="distribution", name=label, present=False)
        return ResourceStatus(
            kind="distribution",
            name=label,
            present=True,
            details={
                "id": info.id,
                "status": info.status,
                "enabled": "yes" if info.enabled else "no",
                "domain": info.domain,
            },
        )
