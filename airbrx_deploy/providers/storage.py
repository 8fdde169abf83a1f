"""Object storage client — thin wrapper over the S3 API."""

from __future__ import annotations

import hashlib
import json
import logging
import mimetypes
from pathlib import Path
from typing import Any

from botocore.exceptions import ClientError
from pydantic import BaseModel, ConfigDict

from airbrx_deploy.providers.errors import is_already_exists, is_not_found

logger = logging.getLogger(__name__)

DELETE_BATCH = 1000


class SyncSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    uploaded: int
    unchanged: int
    deleted: int


class StorageClient:
    """Bucket and object operations used by deploy, status and teardown.

    Parameters
    ----------
    s3:
        A boto3 ``s3`` client.
    """

    def __init__(self, s3: Any) -> None:
        self._s3 = s3

    # ------------------------------------------------------------------
    # Buckets
    # ------------------------------------------------------------------

    def bucket_exists(self, name: str) -> bool:
        try:
            self._s3.head_bucket(Bucket=name)
        except ClientError as e:
            if is_not_found(e):
                return False
            raise
        return True

    def create_bucket(self, name: str, region: str) -> None:
        kwargs: dict[str, Any] = {"Bucket": name}
        # us-east-1 rejects an explicit LocationConstraint.
        if region != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": region}
        try:
            self._s3.create_bucket(**kwargs)
        except ClientError as e:
            if not is_already_exists(e):
                raise
            logger.info("Bucket %s already owned by this account", name)
            return
        logger.info("Created bucket %s in %s", name, region)

    def put_public_access_block(self, name: str, *, static_site: bool = False) -> None:
        """Block all public access; static sites keep policy-based access open."""
        self._s3.put_public_access_block(
            Bucket=name,
            PublicAccessBlockConfiguration={
                "BlockPublicAcls": True,
                "IgnorePublicAcls": True,
                "BlockPublicPolicy": not static_site,
                "RestrictPublicBuckets": not static_site,
            },
        )

    def enable_versioning(self, name: str) -> None:
        self._s3.put_bucket_versioning(
            Bucket=name, VersioningConfiguration={"Status": "Enabled"}
        )

    def put_bucket_policy(self, name: str, policy: dict[str, Any]) -> None:
        self._s3.put_bucket_policy(Bucket=name, Policy=json.dumps(policy))

    def delete_bucket(self, name: str) -> None:
        self._s3.delete_bucket(Bucket=name)

    # ------------------------------------------------------------------
    # Objects
    # ------------------------------------------------------------------

    def put_object(
        self, bucket: str, key: str, body: bytes, content_type: str = "application/json"
    ) -> None:
        self._s3.put_object(Bucket=bucket, Key=key, Body=body, ContentType=content_type)

    def put_json(self, bucket: str, key: str, document: Any) -> None:
        self.put_object(bucket, key, json.dumps(document, indent=2).encode("utf-8"))

    def object_exists(self, bucket: str, key: str) -> bool:
        try:
            self._s3.head_object(Bucket=bucket, Key=key)
        except ClientError as e:
            if is_not_found(e):
                return False
            raise
        return True

    def list_objects(self, bucket: str) -> dict[str, str]:
        """Map of key -> ETag (quotes stripped) for every current object."""
        objects: dict[str, str] = {}
        paginator = self._s3.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=bucket):
            for item in page.get("Contents", []):
                objects[item["Key"]] = item.get("ETag", "").strip('"')
        return objects

    def count_objects(self, bucket: str) -> int:
        return len(self.list_objects(bucket))

    def list_object_versions(self, bucket: str) -> list[dict[str, str]]:
        """Every object version and delete marker, as ``{Key, VersionId}``."""
        entries: list[dict[str, str]] = []
        paginator = self._s3.get_paginator("list_object_versions")
        for page in paginator.paginate(Bucket=bucket):
            for item in page.get("Versions", []) + page.get("DeleteMarkers", []):
                entries.append({"Key": item["Key"], "VersionId": item["VersionId"]})
        return entries

    def delete_object_versions(self, bucket: str, entries: list[dict[str, str]]) -> int:
        deleted = 0
        for start in range(0, len(entries), DELETE_BATCH):
            batch = entries[start:start + DELETE_BATCH]
            response = self._s3.delete_objects(
                Bucket=bucket, Delete={"Objects": batch, "Quiet": True}
            )
            errors = response.get("Errors", [])
            if errors:
                first = errors[0]
                raise RuntimeError(
                    f"Failed to delete {len(errors)} object versions from {bucket}: "
                    f"{first.get('Key')}: {first.get('Message')}"
                )
            deleted += len(batch)
        return deleted

    def delete_objects(self, bucket: str, keys: list[str]) -> int:
        return self.delete_object_versions(bucket, [{"Key": key} for key in keys])

    def empty_bucket(self, bucket: str) -> int:
        """Delete every version and delete marker; returns how many."""
        return self.delete_object_versions(bucket, self.list_object_versions(bucket))

    def sync_directory(
        self, source: Path, bucket: str, exclude: tuple[str, ...] = (".git",)
    ) -> SyncSummary:
        """Mirror *source* into *bucket*, deleting keys with no local file."""
        local: dict[str, Path] = {}
        for path in sorted(source.rglob("*")):
            if not path.is_file():
                continue
            relative = path.relative_to(source)
            if any(part in exclude for part in relative.parts):
                continue
            local[relative.as_posix()] = path

        remote = self.list_objects(bucket)
        uploaded = unchanged = 0
        for key, path in local.items():
            body = path.read_bytes()
            if remote.get(key) == hashlib.md5(body, usedforsecurity=False).hexdigest():
                unchanged += 1
                continue
            content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
            self.put_object(bucket, key, body, content_type=content_type)
            uploaded += 1

        stale = sorted(set(remote) - set(local))
        if stale:
            self.delete_objects(bucket, stale)
        logger.info(
            "Synced %s -> s3://%s: %d uploaded, %d unchanged, %d deleted",
            source, bucket, uploaded, unchanged, len(stale),
        )
        return SyncSummary(uploaded=uploaded, unchanged=unchanged, deleted=len(stale))
