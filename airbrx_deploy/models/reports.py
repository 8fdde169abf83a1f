"""Report models — health, teardown and status."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"  # reachable but not fully ready (e.g. CDN still deploying)
    FAILED = "failed"


class EndpointCheck(BaseModel):
    """One probe against a public endpoint."""

    model_config = ConfigDict(frozen=True)

    name: str
    url: str
    status: HealthStatus
    status_code: int | None = None
    detail: str = ""


class HealthReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    checks: list[EndpointCheck]
    distribution_status: str | None = None

    @property
    def status(self) -> HealthStatus:
        states = {check.status for check in self.checks}
        if not states or states == {HealthStatus.HEALTHY}:
            return HealthStatus.HEALTHY
        if HealthStatus.FAILED in states and HealthStatus.HEALTHY not in states:
            return HealthStatus.FAILED
        return HealthStatus.DEGRADED

    @property
    def warnings(self) -> list[str]:
        return [
            f"{check.name}: {check.detail or check.status.value}"
            for check in self.checks
            if check.status is not HealthStatus.HEALTHY
        ]


class TeardownOutcome(str, Enum):
    DELETED = "deleted"
    ABSENT = "absent"  # nothing to delete
    WARNING = "warning"  # left behind, expected to resolve on a re-run
    FAILED = "failed"


class TeardownItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: str
    name: str
    outcome: TeardownOutcome
    detail: str = ""


class TeardownResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    prefix: str
    items: list[TeardownItem]
    manual_followups: list[str] = []
    removed_files: list[str] = []

    @property
    def failures(self) -> list[TeardownItem]:
        return [item for item in self.items if item.outcome is TeardownOutcome.FAILED]

    @property
    def warnings(self) -> list[TeardownItem]:
        return [item for item in self.items if item.outcome is TeardownOutcome.WARNING]

    @property
    def ok(self) -> bool:
        return not self.failures


class ResourceStatus(BaseModel):
    """Read-only view of one deployed resource."""

    model_config = ConfigDict(frozen=True)

    kind: str
    name: str
    present: bool
    details: dict[str, str] = {}


class StatusReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    prefix: str
    region: str
    resources: list[ResourceStatus]
    health: HealthReport | None = None
    generated_at: datetime

    def by_kind(self, kind: str) -> list[ResourceStatus]:
        return [r for r in self.resources if r.kind == kind]

    @property
    def complete(self) -> bool:
        return all(r.present for r in self.resources)
