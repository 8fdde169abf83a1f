"""Role store and caller identity — wrappers over IAM and STS."""

from __future__ import annotations

import json
import logging
from typing import Any

from botocore.exceptions import ClientError

from airbrx_deploy.providers.errors import is_not_found

logger = logging.getLogger(__name__)


class IdentityClient:
    """IAM role operations.

    Parameters
    ----------
    iam:
        A boto3 ``iam`` client.
    """

    def __init__(self, iam: Any) -> None:
        self._iam = iam

    def get_role_arn(self, name: str) -> str | None:
        try:
            response = self._iam.get_role(RoleName=name)
        except ClientError as e:
            if is_not_found(e):
                return None
            raise
        return response["Role"]["Arn"]

    def create_role(self, name: str, trust_policy: dict[str, Any], description: str = "") -> str:
        response = self._iam.create_role(
            RoleName=name,
            AssumeRolePolicyDocument=json.dumps(trust_policy),
            Description=description or f"Execution role for {name.removesuffix('-role')}",
        )
        logger.info("Created role %s", name)
        return response["Role"]["Arn"]

    def put_role_policy(self, role: str, policy_name: str, document: dict[str, Any]) -> None:
        """Replace the inline policy wholesale."""
        self._iam.put_role_policy(
            RoleName=role, PolicyName=policy_name, PolicyDocument=json.dumps(document)
        )

    def list_role_policies(self, role: str) -> list[str]:
        names: list[str] = []
        paginator = self._iam.get_paginator("list_role_policies")
        for page in paginator.paginate(RoleName=role):
            names.extend(page.get("PolicyNames", []))
        return names

    def delete_role_policy(self, role: str, policy_name: str) -> None:
        self._iam.delete_role_policy(RoleName=role, PolicyName=policy_name)

    def list_attached_policies(self, role: str) -> list[str]:
        arns: list[str] = []
        paginator = self._iam.get_paginator("list_attached_role_policies")
        for page in paginator.paginate(RoleName=role):
            arns.extend(p["PolicyArn"] for p in page.get("AttachedPolicies", []))
        return arns

    def detach_role_policy(self, role: str, policy_arn: str) -> None:
        self._iam.detach_role_policy(RoleName=role, PolicyArn=policy_arn)

    def delete_role(self, name: str) -> None:
        self._iam.delete_role(RoleName=name)


class AccountClient:
    """Caller identity via STS."""

    def __init__(self, sts: Any) -> None:
        self._sts = sts

    def get_account_id(self) -> str:
        return self._sts.get_caller_identity()["Account"]
