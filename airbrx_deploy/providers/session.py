"""Bundle of resource clients built from one boto3 session."""

from __future__ import annotations

from typing import Any

import boto3

from airbrx_deploy.config import DeployerSettings, settings as default_settings
from airbrx_deploy.providers.cdn import CdnClient
from airbrx_deploy.providers.compute import ComputeClient
from airbrx_deploy.providers.identity import AccountClient, IdentityClient
from airbrx_deploy.providers.storage import StorageClient


class CloudClients:
    """The four resource clients plus caller identity, for one region."""

    def __init__(
        self,
        storage: Any,
        identity: Any,
        compute: Any,
        cdn: Any,
        account: Any,
        region: str,
    ) -> None:
        self.storage = storage
        self.identity = identity
        self.compute = compute
        self.cdn = cdn
        self.account = account
        self.region = region

    @classmethod
    def from_session(
        cls,
        region: str,
        *,
        profile: str | None = None,
        settings: DeployerSettings | None = None,
    ) -> CloudClients:
        """Build clients on the ambient credential chain."""
        cfg = settings or default_settings
        session = boto3.Session(profile_name=profile, region_name=region)
        return cls(
            storage=StorageClient(session.client("s3")),
            identity=IdentityClient(session.client("iam")),
            compute=ComputeClient(
                session.client("lambda"),
                waiter_delay=cfg.waiter_delay_seconds,
                waiter_max_attempts=cfg.waiter_max_attempts,
            ),
            # CloudFront is a global service homed in us-east-1.
            cdn=CdnClient(
                session.client("cloudfront", region_name="us-east-1"),
                waiter_delay=cfg.distribution_waiter_delay_seconds,
                waiter_max_attempts=cfg.distribution_waiter_max_attempts,
            ),
            account=AccountClient(session.client("sts")),
            region=region,
        )
