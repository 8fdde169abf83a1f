"""Teardown — best-effort removal of every resource of one deployment.

Order: distributions, origin-access control, functions, buckets, roles.
Not-found counts as success. Any other failure is recorded against that
resource and teardown moves on, so a re-run can finish what is left.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from airbrx_deploy.models.reports import TeardownItem, TeardownOutcome, TeardownResult
from airbrx_deploy.models.resources import DistributionRole, FunctionRole, ResourceNames
from airbrx_deploy.providers.errors import is_not_found, is_still_propagating

logger = logging.getLogger(__name__)

# Deleted in this order.
DISTRIBUTION_ORDER: tuple[DistributionRole, ...] = (
    DistributionRole.APP,
    DistributionRole.API,
    DistributionRole.GATEWAY,
)


class ConfirmationMismatchError(ValueError):
    """Raised when the typed confirmation is not exactly the deployment prefix."""


class Teardown:
    """Deletes one deployment's resources.

    Parameters
    ----------
    clients:
        Resource clients (``storage``, ``identity``, ``compute``, ``cdn``).
    prefix:
        The deployment prefix; also the required confirmation text.
    generated_dir:
        Where the setup command wrote this deployment's files.
    """

    def __init__(self, clients: Any, prefix: str, *, generated_dir: Path | None = None) -> None:
        self._clients = clients
        self.prefix = prefix
        self.names = ResourceNames(prefix=prefix)
        self._generated_dir = generated_dir
        self._items: list[TeardownItem] = []

    def run(self, confirmation: str, *, remove_files: bool = False) -> TeardownResult:
        if confirmation != self.prefix:
            raise ConfirmationMismatchError(
                f"Confirmation {confirmation!r} does not match deployment {self.prefix!r}"
            )
        logger.warning("Tearing down %s", self.prefix)
        self._items = []

        for role in DISTRIBUTION_ORDER:
            self._delete_distribution(role)
        self._delete_origin_access_control()
        for function in self.names.functions:
            self._delete_function(function)
        for bucket in self.names.buckets:
            self._delete_bucket(bucket)
        for role_name in self.names.roles:
            self._delete_role(role_name)

        result = TeardownResult(
            prefix=self.prefix,
            items=list(self._items),
            manual_followups=self.manual_followups(),
        )
        if not remove_files or self._generated_dir is None:
            return result
        # The config document is needed to re-run teardown on what is left.
        if result.failures or result.warnings:
            logger.warning("Keeping generated files for %s until teardown completes", self.prefix)
            return result
        removed = remove_generated_files(self.prefix, self._generated_dir)
        return result.model_copy(update={"removed_files": removed})

    def manual_followups(self) -> list[str]:
        """Log groups outlive their functions and are left for the operator."""
        return [
            f"aws logs delete-log-group --log-group-name {self.names.log_group(role)}"
            for role in FunctionRole
        ]

    # ------------------------------------------------------------------
    # Per-resource deletion
    # ------------------------------------------------------------------

    def _record(self, kind: str, name: str, outcome: TeardownOutcome, detail: str = "") -> None:
        self._items.append(TeardownItem(kind=kind, name=name, outcome=outcome, detail=detail))
        log = logger.warning if outcome in (TeardownOutcome.WARNING, TeardownOutcome.FAILED) else logger.info
        log("%s %s: %s%s", kind, name, outcome.value, f" ({detail})" if detail else "")

    def _attempt(
        self, kind: str, name: str, action: Callable[[], tuple[TeardownOutcome, str]]
    ) -> None:
        try:
            outcome, detail = action()
        except ClientError as e:
            if is_not_found(e):
                self._record(kind, name, TeardownOutcome.ABSENT)
            else:
                self._record(kind, name, TeardownOutcome.FAILED, str(e))
        except (BotoCoreError, RuntimeError) as e:
            self._record(kind, name, TeardownOutcome.FAILED, str(e))
        else:
            self._record(kind, name, outcome, detail)

    def _delete_distribution(self, role: DistributionRole) -> None:
        cdn = self._clients.cdn
        name = self.names.distribution_comment(role)

        def action() -> tuple[TeardownOutcome, str]:
            info = cdn.find_distribution(self.prefix, role.value)
            if info is None:
                return TeardownOutcome.ABSENT, ""
            if cdn.disable_distribution(info.id):
                logger.info("Waiting for %s to finish disabling", info.id)
            try:
                cdn.wait_deployed(info.id)
                cdn.delete_distribution(info.id)
            except BotoCoreError as e:
                return TeardownOutcome.WARNING, f"still disabling: {e}"
            except ClientError as e:
                if is_still_propagating(e):
                    return TeardownOutcome.WARNING, "still disabling; re-run teardown later"
                raise
            return TeardownOutcome.DELETED, ""

        self._attempt("distribution", name, action)

    def _delete_origin_access_control(self) -> None:
        cdn = self._clients.cdn
        name = self.names.app_origin_access_control

        def action() -> tuple[TeardownOutcome, str]:
            oac_id = cdn.find_origin_access_control(name)
            if oac_id is None:
                return TeardownOutcome.ABSENT, ""
            cdn.delete_origin_access_control(oac_id)
            return TeardownOutcome.DELETED, ""

        self._attempt("origin-access-control", name, action)

    def _delete_function(self, name: str) -> None:
        compute = self._clients.compute

        def action() -> tuple[TeardownOutcome, str]:
            if compute.get_function(name) is None:
                return TeardownOutcome.ABSENT, ""
            compute.delete_function_url(name)
            compute.delete_function(name)
            return TeardownOutcome.DELETED, ""

        self._attempt("function", name, action)

    def _delete_bucket(self, name: str) -> None:
        storage = self._clients.storage

        def action() -> tuple[TeardownOutcome, str]:
            if not storage.bucket_exists(name):
                return TeardownOutcome.ABSENT, ""
            removed = storage.empty_bucket(name)
            logger.info("Removed %d object versions from %s", removed, name)
            storage.delete_bucket(name)
            return TeardownOutcome.DELETED, ""

        self._attempt("bucket", name, action)

    def _delete_role(self, name: str) -> None:
        identity = self._clients.identity

        def action() -> tuple[TeardownOutcome, str]:
            if identity.get_role_arn(name) is None:
                return TeardownOutcome.ABSENT, ""
            for policy in identity.list_role_policies(name):
                identity.delete_role_policy(name, policy)
            for policy_arn in identity.list_attached_policies(name):
                identity.detach_role_policy(name, policy_arn)
            identity.delete_role(name)
            return TeardownOutcome.DELETED, ""

        self._attempt("role", name, action)


def generated_files(prefix: str, directory: Path) -> list[Path]:
    """The setup outputs of *prefix* that exist in *directory*."""
    names = ResourceNames(prefix=prefix)
    candidates = [
        f"{prefix}-config.env",
        f"{prefix}-god-pat.json",
        f"{prefix}-lambda-trust-policy.json",
        *(f"{names.function(role)}-policy.json" for role in FunctionRole),
        f"{prefix}-deployer-policy.json",
    ]
    return [directory / name for name in candidates if (directory / name).is_file()]


def remove_generated_files(prefix: str, directory: Path) -> list[str]:
    """Delete every generated file of *prefix*; drop the directory if emptied."""
    removed = []
    for path in generated_files(prefix, directory):
        path.unlink()
        removed.append(path.name)
    if directory.is_dir() and not any(directory.iterdir()):
        directory.rmdir()
    return removed
