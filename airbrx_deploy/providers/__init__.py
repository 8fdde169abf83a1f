"""Resource clients — thin wrappers over the AWS service APIs."""

from airbrx_deploy.providers.cdn import CdnClient, DistributionInfo
from airbrx_deploy.providers.compute import ComputeClient, FunctionInfo
from airbrx_deploy.providers.identity import AccountClient, IdentityClient
from airbrx_deploy.providers.session import CloudClients
from airbrx_deploy.providers.storage import StorageClient, SyncSummary

__all__ = [
    "AccountClient",
    "CdnClient",
    "CloudClients",
    "ComputeClient",
    "DistributionInfo",
    "FunctionInfo",
    "IdentityClient",
    "StorageClient",
    "SyncSummary",
]
