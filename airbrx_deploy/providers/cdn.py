"""CDN client — wrapper over the CloudFront API, plus distribution configs.

Distributions are found by an exact tag match (``airbrx:deployment`` and
``airbrx:role``), never by comment text. The comment is still set, for
humans browsing the console.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from botocore.exceptions import ClientError
from pydantic import BaseModel, ConfigDict

from airbrx_deploy.models.resources import DEPLOYMENT_TAG, ROLE_TAG, DistributionDescriptor
from airbrx_deploy.providers.errors import is_not_found

logger = logging.getLogger(__name__)

# Managed policy ids
CACHING_DISABLED_POLICY = "4135ea2d-6df8-44a3-9df3-4b5a84be39ad"
ALL_VIEWER_EXCEPT_HOST_POLICY = "b689b0a8-53d0-40ab-baf2-68738e2966ac"
CACHING_OPTIMIZED_POLICY = "658327ea-f89d-4fab-a63d-7e88639e58f6"
CORS_S3_ORIGIN_POLICY = "88a5eaf4-2fd4-4709-b370-b4c650ea3fcf"

ALL_METHODS = ["GET", "HEAD", "OPTIONS", "PUT", "POST", "PATCH", "DELETE"]
READ_METHODS = ["GET", "HEAD"]
PRICE_CLASS = "PriceClass_100"


class DistributionInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    arn: str
    domain: str
    status: str = ""
    enabled: bool = True
    comment: str = ""


def _listing(items: list[str]) -> dict[str, Any]:
    return {"Quantity": len(items), "Items": list(items)}


# ---------------------------------------------------------------------------
# Distribution configs
# ---------------------------------------------------------------------------


def function_url_distribution_config(
    descriptor: DistributionDescriptor, caller_reference: str
) -> dict[str, Any]:
    """Pass-through distribution in front of a public function URL."""
    origin_id = f"lambda-{descriptor.role.value}"
    return {
        "CallerReference": caller_reference,
        "Comment": descriptor.comment,
        "Origins": {
            "Quantity": 1,
            "Items": [
                {
                    "Id": origin_id,
                    "DomainName": descriptor.origin_domain,
                    "CustomOriginConfig": {
                        "HTTPPort": 80,
                        "HTTPSPort": 443,
                        "OriginProtocolPolicy": "https-only",
                        "OriginSslProtocols": _listing(["TLSv1.2"]),
                    },
                }
            ],
        },
        "DefaultCacheBehavior": {
            "TargetOriginId": origin_id,
            "ViewerProtocolPolicy": "redirect-to-https",
            "AllowedMethods": {
                **_listing(ALL_METHODS),
                "CachedMethods": _listing(READ_METHODS),
            },
            "CachePolicyId": CACHING_DISABLED_POLICY,
            "OriginRequestPolicyId": ALL_VIEWER_EXCEPT_HOST_POLICY,
            "Compress": True,
        },
        "Enabled": True,
        "PriceClass": PRICE_CLASS,
    }


def static_site_distribution_config(
    descriptor: DistributionDescriptor, caller_reference: str
) -> dict[str, Any]:
    """Distribution serving a private bucket through an origin-access control.

    403s from the bucket (unknown paths) are answered with ``/index.html``
    so client-side routes resolve.
    """
    bucket = descriptor.origin_domain.split(".s3.", 1)[0]
    origin_id = f"S3-{bucket}"
    return {
        "CallerReference": caller_reference,
        "Comment": descriptor.comment,
        "DefaultRootObject": "index.html",
        "Origins": {
            "Quantity": 1,
            "Items": [
                {
                    "Id": origin_id,
                    "DomainName": descriptor.origin_domain,
                    "S3OriginConfig": {"OriginAccessIdentity": ""},
                    "OriginAccessControlId": descriptor.origin_access_control_id or "",
                }
            ],
        },
        "DefaultCacheBehavior": {
            "TargetOriginId": origin_id,
            "ViewerProtocolPolicy": "redirect-to-https",
            "AllowedMethods": {
                **_listing(READ_METHODS),
                "CachedMethods": _listing(READ_METHODS),
            },
            "Compress": True,
            "CachePolicyId": CACHING_OPTIMIZED_POLICY,
            "OriginRequestPolicyId": CORS_S3_ORIGIN_POLICY,
        },
        "CustomErrorResponses": {
            "Quantity": 1,
            "Items": [
                {
                    "ErrorCode": 403,
                    "ResponsePagePath": "/index.html",
                    "ResponseCode": "200",
                    "ErrorCachingMinTTL": 10,
                }
            ],
        },
        "Enabled": True,
        "PriceClass": PRICE_CLASS,
    }


def distribution_config(descriptor: DistributionDescriptor, caller_reference: str) -> dict[str, Any]:
    if descriptor.is_static_site:
        return static_site_distribution_config(descriptor, caller_reference)
    return function_url_distribution_config(descriptor, caller_reference)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class CdnClient:
    """Distribution, origin-access-control and invalidation operations.

    Parameters
    ----------
    cloudfront:
        A boto3 ``cloudfront`` client.
    waiter_delay, waiter_max_attempts:
        Pacing for the ``distribution_deployed`` waiter.
    """

    def __init__(self, cloudfront: Any, *, waiter_delay: int = 30, waiter_max_attempts: int = 40) -> None:
        self._cf = cloudfront
        self._waiter_config = {"Delay": waiter_delay, "MaxAttempts": waiter_max_attempts}

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def find_distribution(self, deployment: str, role: str) -> DistributionInfo | None:
        """The distribution tagged exactly ``deployment``/``role``, if any."""
        paginator = self._cf.get_paginator("list_distributions")
        for page in paginator.paginate():
            for item in page.get("DistributionList", {}).get("Items", []):
                tags = self._tags(item["ARN"])
                if tags.get(DEPLOYMENT_TAG) == deployment and tags.get(ROLE_TAG) == role:
                    return self._summary(item)
        return None

    def _tags(self, arn: str) -> dict[str, str]:
        response = self._cf.list_tags_for_resource(Resource=arn)
        return {t["Key"]: t["Value"] for t in response.get("Tags", {}).get("Items", [])}

    @staticmethod
    def _summary(item: dict[str, Any]) -> DistributionInfo:
        return DistributionInfo(
            id=item["Id"],
            arn=item["ARN"],
            domain=item["DomainName"],
            status=item.get("Status", ""),
            enabled=item.get("Enabled", item.get("DistributionConfig", {}).get("Enabled", True)),
            comment=item.get("Comment", item.get("DistributionConfig", {}).get("Comment", "")),
        )

    def get_distribution(self, distribution_id: str) -> DistributionInfo | None:
        try:
            response = self._cf.get_distribution(Id=distribution_id)
        except ClientError as e:
            if is_not_found(e):
                return None
            raise
        return self._summary(response["Distribution"])

    # ------------------------------------------------------------------
    # Create / delete
    # ------------------------------------------------------------------

    def create_distribution(self, config: dict[str, Any], tags: dict[str, str]) -> DistributionInfo:
        response = self._cf.create_distribution_with_tags(
            DistributionConfigWithTags={
                "DistributionConfig": config,
                "Tags": {"Items": [{"Key": k, "Value": v} for k, v in tags.items()]},
            }
        )
        info = self._summary(response["Distribution"])
        logger.info("Created distribution %s (%s)", info.id, info.domain)
        return info

    def disable_distribution(self, distribution_id: str) -> bool:
        """Disable if enabled; returns False when it was already disabled."""
        response = self._cf.get_distribution_config(Id=distribution_id)
        config = response["DistributionConfig"]
        if not config.get("Enabled", False):
            return False
        config["Enabled"] = False
        self._cf.update_distribution(
            Id=distribution_id, IfMatch=response["ETag"], DistributionConfig=config
        )
        logger.info("Disabled distribution %s", distribution_id)
        return True

    def wait_deployed(self, distribution_id: str) -> None:
        self._cf.get_waiter("distribution_deployed").wait(
            Id=distribution_id, WaiterConfig=self._waiter_config
        )

    def delete_distribution(self, distribution_id: str) -> None:
        etag = self._cf.get_distribution_config(Id=distribution_id)["ETag"]
        self._cf.delete_distribution(Id=distribution_id, IfMatch=etag)
        logger.info("Deleted distribution %s", distribution_id)

    def create_invalidation(self, distribution_id: str, paths: list[str]) -> str:
        response = self._cf.create_invalidation(
            DistributionId=distribution_id,
            InvalidationBatch={
                "Paths": _listing(paths),
                "CallerReference": f"airbrx-{int(time.time() * 1000)}",
            },
        )
        return response["Invalidation"]["Id"]

    # ------------------------------------------------------------------
    # Origin access control
    # ------------------------------------------------------------------

    def find_origin_access_control(self, name: str) -> str | None:
        marker = ""
        while True:
            kwargs = {"Marker": marker} if marker else {}
            response = self._cf.list_origin_access_controls(**kwargs)
            listing = response.get("OriginAccessControlList", {})
            for item in listing.get("Items", []):
                if item["Name"] == name:
                    return item["Id"]
            marker = listing.get("NextMarker", "")
            if not listing.get("IsTruncated") or not marker:
                return None

    def create_origin_access_control(self, name: str, description: str = "") -> str:
        response = self._cf.create_origin_access_control(
            OriginAccessControlConfig={
                "Name": name,
                "Description": description,
                "SigningProtocol": "sigv4",
                "SigningBehavior": "always",
                "OriginAccessControlOriginType": "s3",
            }
        )
        oac_id = response["OriginAccessControl"]["Id"]
        logger.info("Created origin access control %s (%s)", name, oac_id)
        return oac_id

    def delete_origin_access_control(self, oac_id: str) -> None:
        etag = self._cf.get_origin_access_control(Id=oac_id)["ETag"]
        self._cf.delete_origin_access_control(Id=oac_id, IfMatch=etag)
