"""Reconciler — bring one resource to its desired state, idempotently.

Each ``ensure_*`` reads current state, creates what is missing, and
re-applies the settings that are cheap and safe to re-apply. Running the
same descriptor twice yields the same identifiers and no second create.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

from airbrx_deploy.models.resources import (
    BucketDescriptor,
    DistributionDescriptor,
    FunctionDescriptor,
    OriginAccessControlDescriptor,
    ReconcileAction,
    ResourceHandle,
    RoleDescriptor,
)
from airbrx_deploy.providers.cdn import distribution_config

logger = logging.getLogger(__name__)

Descriptor = (
    BucketDescriptor
    | RoleDescriptor
    | FunctionDescriptor
    | OriginAccessControlDescriptor
    | DistributionDescriptor
)


class Reconciler:
    """Per-resource ensure operations over a bundle of resource clients.

    Parameters
    ----------
    clients:
        Object exposing ``storage``, ``identity``, ``compute`` and ``cdn``
        clients (normally :class:`~airbrx_deploy.providers.CloudClients`).
    clock:
        Seconds-since-epoch source for distribution caller references.
    """

    def __init__(self, clients: Any, *, clock: Callable[[], float] = time.time) -> None:
        self._clients = clients
        self._clock = clock

    def ensure(self, descriptor: Descriptor) -> ResourceHandle:
        """Dispatch on descriptor type."""
        if isinstance(descriptor, BucketDescriptor):
            return self.ensure_bucket(descriptor)
        if isinstance(descriptor, RoleDescriptor):
            return self.ensure_role(descriptor)
        if isinstance(descriptor, FunctionDescriptor):
            return self.ensure_function(descriptor)
        if isinstance(descriptor, OriginAccessControlDescriptor):
            return self.ensure_origin_access_control(descriptor)
        if isinstance(descriptor, DistributionDescriptor):
            return self.ensure_distribution(descriptor)
        raise TypeError(f"No reconciler for {type(descriptor).__name__}")

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    def ensure_bucket(self, d: BucketDescriptor) -> ResourceHandle:
        storage = self._clients.storage
        if storage.bucket_exists(d.name):
            action = ReconcileAction.EXISTING
            logger.info("Bucket %s exists", d.name)
        else:
            storage.create_bucket(d.name, d.region)
            action = ReconcileAction.CREATED
        storage.put_public_access_block(d.name, static_site=d.static_site)
        storage.enable_versioning(d.name)
        return ResourceHandle(
            kind="bucket",
            name=d.name,
            action=action,
            identifier=d.name,
            attributes={"region": d.region},
        )

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def ensure_role(self, d: RoleDescriptor) -> ResourceHandle:
        identity = self._clients.identity
        arn = identity.get_role_arn(d.name)
        if arn is None:
            arn = identity.create_role(d.name, d.trust_policy)
            action = ReconcileAction.CREATED
        else:
            action = ReconcileAction.EXISTING
            logger.info("Role %s exists", d.name)
        identity.put_role_policy(d.name, d.policy_name, d.policy_document)
        return ResourceHandle(kind="role", name=d.name, action=action, identifier=arn)

    # ------------------------------------------------------------------
    # Compute
    # ------------------------------------------------------------------

    def ensure_function(self, d: FunctionDescriptor) -> ResourceHandle:
        """Create or fully update a function, then ensure its URL if public."""
        compute = self._clients.compute
        package = d.package_path.read_bytes()
        existing = compute.get_function(d.name)

        if existing is not None:
            logger.info("Updating function %s", d.name)
            compute.update_function_code(d.name, package)
            compute.wait_updated(d.name)
            arn = compute.update_function_configuration(d.name, **self._settings(d))
            compute.wait_updated(d.name)
            action = ReconcileAction.UPDATED
        else:
            arn = compute.create_function(d.name, package=package, **self._settings(d))
            action = ReconcileAction.CREATED
        compute.wait_active(d.name)

        attributes = {}
        if d.public_url:
            attributes["url"] = self.ensure_function_url(d.name)
        return ResourceHandle(
            kind="function", name=d.name, action=action, identifier=arn, attributes=attributes
        )

    def configure_function(self, d: FunctionDescriptor) -> ResourceHandle:
        """Configuration-only update of an existing function (second pass)."""
        compute = self._clients.compute
        arn = compute.update_function_configuration(d.name, **self._settings(d))
        compute.wait_updated(d.name)
        return ResourceHandle(
            kind="function", name=d.name, action=ReconcileAction.UPDATED, identifier=arn
        )

    def ensure_function_url(self, name: str) -> str:
        """Public URL for *name*; created (with its public grant) only if absent."""
        compute = self._clients.compute
        url = compute.get_function_url(name)
        if url is not None:
            return url
        url = compute.create_function_url(name)
        if not compute.allow_public_url_invoke(name):
            logger.info("Public invoke permission already present on %s", name)
        return url

    @staticmethod
    def _settings(d: FunctionDescriptor) -> dict[str, Any]:
        return {
            "role_arn": d.role_arn,
            "handler": d.handler,
            "runtime": d.runtime,
            "memory_mb": d.memory_mb,
            "timeout_seconds": d.timeout_seconds,
            "environment": dict(d.environment),
        }

    # ------------------------------------------------------------------
    # Edge
    # ------------------------------------------------------------------

    def ensure_origin_access_control(self, d: OriginAccessControlDescriptor) -> ResourceHandle:
        cdn = self._clients.cdn
        oac_id = cdn.find_origin_access_control(d.name)
        if oac_id is None:
            oac_id = cdn.create_origin_access_control(d.name, d.description)
            action = ReconcileAction.CREATED
        else:
            action = ReconcileAction.EXISTING
        return ResourceHandle(
            kind="origin-access-control", name=d.name, action=action, identifier=oac_id
        )

    def ensure_distribution(self, d: DistributionDescriptor) -> ResourceHandle:
        """Find by tag or create. An existing distribution is left as is."""
        cdn = self._clients.cdn
        info = cdn.find_distribution(d.deployment, d.role.value)
        if info is not None:
            logger.info("Distribution for %s exists (%s)", d.role.value, info.id)
            action = ReconcileAction.EXISTING
        else:
            caller_reference = f"{d.deployment}-{d.role.value}-{int(self._clock())}"
            info = cdn.create_distribution(distribution_config(d, caller_reference), d.tags)
            action = ReconcileAction.CREATED
        return ResourceHandle(
            kind="distribution",
            name=d.comment,
            action=action,
            identifier=info.id,
            attributes={"arn": info.arn, "domain": info.domain},
        )
