"""IAM policy documents — trust, per-function execution, deployer, bucket."""

from __future__ import annotations

from typing import Any

from airbrx_deploy.models.resources import FunctionRole, ResourceNames

POLICY_VERSION = "2012-10-17"
ACCOUNT_PLACEHOLDER = "<ACCOUNT_ID>"

_LOG_ACTIONS = ["logs:CreateLogGroup", "logs:CreateLogStream", "logs:PutLogEvents"]
_OBJECT_ACTIONS = ["s3:GetObject", "s3:PutObject", "s3:DeleteObject", "s3:ListBucket"]


def _document(*statements: dict[str, Any]) -> dict[str, Any]:
    return {"Version": POLICY_VERSION, "Statement": list(statements)}


def _bucket_resources(*buckets: str) -> list[str]:
    resources = []
    for bucket in buckets:
        resources += [f"arn:aws:s3:::{bucket}", f"arn:aws:s3:::{bucket}/*"]
    return resources


def lambda_trust_policy() -> dict[str, Any]:
    """Shared trust policy letting the compute service assume a role."""
    return _document(
        {
            "Effect": "Allow",
            "Principal": {"Service": "lambda.amazonaws.com"},
            "Action": "sts:AssumeRole",
        }
    )


def _logs_statement(names: ResourceNames, role: FunctionRole, region: str, account: str) -> dict[str, Any]:
    return {
        "Sid": "CloudWatchLogs",
        "Effect": "Allow",
        "Action": list(_LOG_ACTIONS),
        "Resource": f"arn:aws:logs:{region}:{account}:log-group:{names.log_group(role)}:*",
    }


def _gateway_storage_statement(names: ResourceNames) -> dict[str, Any]:
    return {
        "Sid": "S3GatewayAccess",
        "Effect": "Allow",
        "Action": list(_OBJECT_ACTIONS),
        "Resource": _bucket_resources(names.gateway_bucket),
    }


def execution_policy(
    names: ResourceNames,
    role: FunctionRole,
    region: str,
    account: str = ACCOUNT_PLACEHOLDER,
) -> dict[str, Any]:
    """Least-privilege inline policy for one function's role.

    Every function may write its own log group and use the gateway bucket.
    The admin API additionally reads/writes admin storage and may invoke
    the log summarizer.
    """
    statements = [_logs_statement(names, role, region, account)]
    if role is FunctionRole.API:
        statements.append(
            {
                "Sid": "S3AdminAccess",
                "Effect": "Allow",
                "Action": list(_OBJECT_ACTIONS),
                "Resource": _bucket_resources(names.admin_bucket),
            }
        )
    statements.append(_gateway_storage_statement(names))
    if role is FunctionRole.API:
        statements.append(
            {
                "Sid": "LambdaInvoke",
                "Effect": "Allow",
                "Action": "lambda:InvokeFunction",
                "Resource": (
                    f"arn:aws:lambda:{region}:{account}:function:"
                    f"{names.log_summary_function}"
                ),
            }
        )
    return _document(*statements)


def deployer_policy(
    names: ResourceNames, region: str, account: str = ACCOUNT_PLACEHOLDER
) -> dict[str, Any]:
    """Minimum permissions for whoever runs deploy, status and teardown."""
    role_arns = [f"arn:aws:iam::{account}:role/{name}" for name in names.roles]
    return _document(
        {
            "Sid": "S3BucketManagement",
            "Effect": "Allow",
            "Action": [
                "s3:CreateBucket",
                "s3:DeleteBucket",
                "s3:PutBucketVersioning",
                "s3:PutBucketPublicAccessBlock",
                "s3:GetBucketLocation",
                "s3:ListBucket",
                "s3:ListBucketVersions",
                "s3:PutObject",
                "s3:GetObject",
                "s3:DeleteObject",
                "s3:DeleteObjectVersion",
            ],
            "Resource": _bucket_resources(names.admin_bucket, names.gateway_bucket),
        },
        {
            "Sid": "S3AppBucketManagement",
            "Effect": "Allow",
            "Action": [
                "s3:CreateBucket",
                "s3:DeleteBucket",
                "s3:PutBucketVersioning",
                "s3:PutBucketPublicAccessBlock",
                "s3:PutBucketPolicy",
                "s3:GetBucketPolicy",
                "s3:DeleteBucketPolicy",
                "s3:GetBucketLocation",
                "s3:ListBucket",
                "s3:ListBucketVersions",
                "s3:PutObject",
                "s3:GetObject",
                "s3:DeleteObject",
                "s3:DeleteObjectVersion",
            ],
            "Resource": _bucket_resources(names.app_bucket),
        },
        {
            "Sid": "CloudFrontManagement",
            "Effect": "Allow",
            "Action": [
                "cloudfront:CreateDistribution",
                "cloudfront:CreateDistributionWithTags",
                "cloudfront:UpdateDistribution",
                "cloudfront:DeleteDistribution",
                "cloudfront:GetDistribution",
                "cloudfront:GetDistributionConfig",
                "cloudfront:ListDistributions",
                "cloudfront:ListTagsForResource",
                "cloudfront:TagResource",
                "cloudfront:CreateInvalidation",
                "cloudfront:GetInvalidation",
                "cloudfront:CreateOriginAccessControl",
                "cloudfront:GetOriginAccessControl",
                "cloudfront:DeleteOriginAccessControl",
                "cloudfront:ListOriginAccessControls",
            ],
            "Resource": "*",
        },
        {
            "Sid": "LambdaManagement",
            "Effect": "Allow",
            "Action": [
                "lambda:CreateFunction",
                "lambda:DeleteFunction",
                "lambda:UpdateFunctionCode",
                "lambda:UpdateFunctionConfiguration",
                "lambda:GetFunction",
                "lambda:GetFunctionConfiguration",
                "lambda:CreateFunctionUrlConfig",
                "lambda:DeleteFunctionUrlConfig",
                "lambda:GetFunctionUrlConfig",
                "lambda:AddPermission",
                "lambda:GetPolicy",
            ],
            "Resource": f"arn:aws:lambda:{region}:{account}:function:{names.prefix}-airbrx-*",
        },
        {
            "Sid": "IAMPassRole",
            "Effect": "Allow",
            "Action": "iam:PassRole",
            "Resource": role_arns,
        },
        {
            "Sid": "IAMRoleManagement",
            "Effect": "Allow",
            "Action": [
                "iam:CreateRole",
                "iam:GetRole",
                "iam:DeleteRole",
                "iam:PutRolePolicy",
                "iam:DeleteRolePolicy",
                "iam:ListRolePolicies",
                "iam:ListAttachedRolePolicies",
                "iam:DetachRolePolicy",
            ],
            "Resource": role_arns,
        },
        {
            "Sid": "IdentityCheck",
            "Effect": "Allow",
            "Action": "sts:GetCallerIdentity",
            "Resource": "*",
        },
    )


def app_bucket_policy(bucket: str, distribution_arn: str) -> dict[str, Any]:
    """Read access for the CDN service, scoped to exactly one distribution."""
    return _document(
        {
            "Sid": "AllowCloudFrontServicePrincipal",
            "Effect": "Allow",
            "Principal": {"Service": "cloudfront.amazonaws.com"},
            "Action": "s3:GetObject",
            "Resource": f"arn:aws:s3:::{bucket}/*",
            "Condition": {"StringEquals": {"AWS:SourceArn": distribution_arn}},
        }
    )
