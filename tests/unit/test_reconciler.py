"""Unit tests for the Reconciler — create-or-adopt for every resource kind."""

from __future__ import annotations

from pathlib import Path

import pytest
from fakes import FakeCloud

from airbrx_deploy.core.policies import lambda_trust_policy
from airbrx_deploy.models.resources import (
    BucketDescriptor,
    DistributionDescriptor,
    DistributionRole,
    FunctionDescriptor,
    OriginAccessControlDescriptor,
    ReconcileAction,
    RoleDescriptor,
)
from airbrx_deploy.reconcile.reconciler import Reconciler


@pytest.fixture
def fake_cloud():
    return FakeCloud(region="us-west-2")


@pytest.fixture
def reconciler(fake_cloud):
    return Reconciler(fake_cloud, clock=lambda: 1700000000.0)


def _function(tmp_path: Path, environment=None, public_url=True) -> FunctionDescriptor:
    package = tmp_path / "api.zip"
    package.write_bytes(b"PK\x05\x06" + b"\x00" * 18)
    return FunctionDescriptor(
        name="acme-dev-airbrx-api",
        role_arn="arn:aws:iam::123456789012:role/acme-dev-airbrx-api-role",
        handler="reportingapi.handler",
        runtime="nodejs20.x",
        memory_mb=512,
        timeout_seconds=30,
        environment=environment or {"NODE_ENV": "production"},
        package_path=package,
        public_url=public_url,
    )


class TestBuckets:
    def test_create_then_adopt(self, reconciler, fake_cloud):
        descriptor = BucketDescriptor(name="acme-dev-airbrx-app", region="us-west-2", static_site=True)

        first = reconciler.ensure(descriptor)
        second = reconciler.ensure(descriptor)

        assert first.action is ReconcileAction.CREATED
        assert second.action is ReconcileAction.EXISTING
        assert fake_cloud.storage.count("create_bucket") == 1
        assert fake_cloud.storage.count("enable_versioning") == 2
        assert fake_cloud.storage.buckets["acme-dev-airbrx-app"]["static_site"] is True


class TestRoles:
    def test_policy_reapplied_on_existing_role(self, reconciler, fake_cloud):
        descriptor = RoleDescriptor(
            name="acme-dev-airbrx-api-role",
            trust_policy=lambda_trust_policy(),
            policy_name="acme-dev-airbrx-api-role-policy",
            policy_document={"Version": "2012-10-17", "Statement": []},
        )
        first = reconciler.ensure(descriptor)
        second = reconciler.ensure(descriptor)

        assert first.identifier == second.identifier == (
            "arn:aws:iam::123456789012:role/acme-dev-airbrx-api-role"
        )
        assert second.action is ReconcileAction.EXISTING
        assert fake_cloud.identity.count("create_role") == 1
        assert fake_cloud.identity.count("put_role_policy") == 2


class TestFunctions:
    def test_create_with_url(self, reconciler, fake_cloud, tmp_path):
        handle = reconciler.ensure(_function(tmp_path))

        assert handle.action is ReconcileAction.CREATED
        assert handle.attributes["url"].startswith("https://")
        assert handle.attributes["url"].endswith(".lambda-url.us-west-2.on.aws/")
        assert fake_cloud.compute.count("allow_public_url_invoke") == 1

    def test_existing_function_updates_code_then_configuration(self, reconciler, fake_cloud, tmp_path):
        reconciler.ensure(_function(tmp_path))
        handle = reconciler.ensure(_function(tmp_path, environment={"NODE_ENV": "staging"}))

        assert handle.action is ReconcileAction.UPDATED
        assert fake_cloud.compute.count("create_function") == 1
        assert fake_cloud.compute.count("create_function_url") == 1
        methods = [name for name, _ in fake_cloud.compute.calls]
        code_at = methods.index("update_function_code")
        assert methods[code_at + 1] == "wait_updated"
        assert methods[code_at + 2] == "update_function_configuration"
        assert fake_cloud.compute.functions["acme-dev-airbrx-api"]["environment"] == {"NODE_ENV": "staging"}

    def test_private_function_has_no_url(self, reconciler, fake_cloud, tmp_path):
        handle = reconciler.ensure(_function(tmp_path, public_url=False))
        assert "url" not in handle.attributes
        assert fake_cloud.compute.count("create_function_url") == 0

    def test_configure_only_leaves_code_alone(self, reconciler, fake_cloud, tmp_path):
        reconciler.ensure(_function(tmp_path))
        reconciler.configure_function(_function(tmp_path, environment={"DASHBOARD_URL": "https://d"}))

        assert fake_cloud.compute.count("update_function_code") == 0
        assert fake_cloud.compute.calls_to("update_function_configuration")[-1] == (
            "acme-dev-airbrx-api",
            {"DASHBOARD_URL": "https://d"},
        )


class TestEdge:
    def test_distribution_found_by_tags(self, reconciler, fake_cloud):
        descriptor = DistributionDescriptor(
            deployment="acme-dev",
            role=DistributionRole.API,
            origin_domain="abc.lambda-url.us-west-2.on.aws",
            comment="Airbrx api - acme-dev",
        )
        first = reconciler.ensure(descriptor)
        second = reconciler.ensure(descriptor)

        assert first.action is ReconcileAction.CREATED
        assert second.action is ReconcileAction.EXISTING
        assert first.identifier == second.identifier
        assert first.attributes["domain"] == second.attributes["domain"]
        (dist_id, tags), = fake_cloud.cdn.calls_to("create_distribution")
        assert tags == {"airbrx:deployment": "acme-dev", "airbrx:role": "api"}
        config = fake_cloud.cdn.distributions[dist_id]["config"]
        assert config["CallerReference"] == "acme-dev-api-1700000000"

    def test_other_deployment_is_not_adopted(self, reconciler, fake_cloud):
        for deployment in ("acme-dev", "acme-devx"):
            reconciler.ensure(
                DistributionDescriptor(
                    deployment=deployment,
                    role=DistributionRole.GATEWAY,
                    origin_domain="gw.lambda-url.us-west-2.on.aws",
                    comment=f"Airbrx gateway - {deployment}",
                )
            )
        assert fake_cloud.cdn.count("create_distribution") == 2

    def test_origin_access_control_by_name(self, reconciler, fake_cloud):
        descriptor = OriginAccessControlDescriptor(name="acme-dev-airbrx-app-oac")
        assert reconciler.ensure(descriptor).identifier == reconciler.ensure(descriptor).identifier
        assert fake_cloud.cdn.count("create_origin_access_control") == 1

    def test_unknown_descriptor(self, reconciler):
        with pytest.raises(TypeError):
            reconciler.ensure(object())  # type: ignore[arg-type]
