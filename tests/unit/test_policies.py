"""Unit tests for IAM policy documents."""

from __future__ import annotations

from airbrx_deploy.core.policies import (
    ACCOUNT_PLACEHOLDER,
    app_bucket_policy,
    deployer_policy,
    execution_policy,
    lambda_trust_policy,
)
from airbrx_deploy.models.resources import FunctionRole

ACCOUNT = "123456789012"


def _sids(document):
    return [statement["Sid"] for statement in document["Statement"]]


class TestExecutionPolicy:
    """Each function gets only what it needs."""

    def test_api_policy(self, names):
        doc = execution_policy(names, FunctionRole.API, "us-west-2", ACCOUNT)
        assert _sids(doc) == ["CloudWatchLogs", "S3AdminAccess", "S3GatewayAccess", "LambdaInvoke"]
        invoke = doc["Statement"][-1]
        assert invoke["Resource"] == (
            "arn:aws:lambda:us-west-2:123456789012:function:acme-dev-airbrx-log-summary"
        )

    def test_gateway_policy_has_no_admin_access(self, names):
        doc = execution_policy(names, FunctionRole.GATEWAY, "us-west-2", ACCOUNT)
        assert _sids(doc) == ["CloudWatchLogs", "S3GatewayAccess"]
        assert doc["Statement"][1]["Resource"] == [
            "arn:aws:s3:::acme-dev-airbrx-gateway-storage",
            "arn:aws:s3:::acme-dev-airbrx-gateway-storage/*",
        ]

    def test_log_group_scoped_to_function(self, names):
        doc = execution_policy(names, FunctionRole.LOG_SUMMARY, "eu-west-1", ACCOUNT)
        assert doc["Statement"][0]["Resource"] == (
            "arn:aws:logs:eu-west-1:123456789012:log-group:/aws/lambda/acme-dev-airbrx-log-summary:*"
        )

    def test_placeholder_account(self, names):
        doc = execution_policy(names, FunctionRole.API, "us-west-2")
        assert ACCOUNT_PLACEHOLDER in doc["Statement"][0]["Resource"]


class TestOtherPolicies:
    def test_trust_policy(self):
        doc = lambda_trust_policy()
        assert doc["Version"] == "2012-10-17"
        assert doc["Statement"][0]["Principal"] == {"Service": "lambda.amazonaws.com"}

    def test_deployer_policy_scopes_roles(self, names):
        doc = deployer_policy(names, "us-west-2", ACCOUNT)
        assert "IdentityCheck" in _sids(doc)
        pass_role = next(s for s in doc["Statement"] if s["Sid"] == "IAMPassRole")
        assert pass_role["Resource"] == [
            "arn:aws:iam::123456789012:role/acme-dev-airbrx-api-role",
            "arn:aws:iam::123456789012:role/acme-dev-airbrx-gateway-role",
            "arn:aws:iam::123456789012:role/acme-dev-airbrx-log-summary-role",
        ]

    def test_app_bucket_policy_scoped_to_one_distribution(self):
        arn = f"arn:aws:cloudfront::{ACCOUNT}:distribution/EDFDVBD000001"
        doc = app_bucket_policy("acme-dev-airbrx-app", arn)
        statement = doc["Statement"][0]

        assert statement["Sid"] == "AllowCloudFrontServicePrincipal"
        assert statement["Resource"] == "arn:aws:s3:::acme-dev-airbrx-app/*"
        assert statement["Condition"] == {"StringEquals": {"AWS:SourceArn": arn}}
        assert arn == "arn:aws:cloudfront::123456789012:distribution/EDFDVBD000001"
