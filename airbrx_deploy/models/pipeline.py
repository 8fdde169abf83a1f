"""Phase/step models for the deployment state machine."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict


class StepState(str, Enum):
    """Strict state model for each provisioning step."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    WARNED = "warned"  # non-fatal step raised; run continued
    SKIPPED = "skipped"  # never ran because something upstream failed


# Valid state transitions, enforced by StepMachine.
# A run is a single pass: every outcome state is terminal.
VALID_TRANSITIONS: dict[StepState, set[StepState]] = {
    StepState.NOT_STARTED: {StepState.RUNNING, StepState.SKIPPED},
    StepState.RUNNING: {StepState.PASSED, StepState.FAILED, StepState.WARNED},
    StepState.PASSED: set(),
    StepState.FAILED: set(),
    StepState.WARNED: set(),
    StepState.SKIPPED: set(),
}


class RunStatus(str, Enum):
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    SUCCEEDED_WITH_WARNINGS = "succeeded_with_warnings"
    FAILED = "failed"


class Step(BaseModel):
    """One idempotent provisioning step.

    ``execute`` receives the artifact registry and returns a mapping of
    exactly the keys named in ``produces``. ``patch_of`` names an earlier
    step whose resource this step re-configures (a second pass).
    """

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    requires: list[str] = []
    produces: list[str] = []
    execute: Callable[..., dict[str, str]]
    fatal: bool = True
    patch_of: str | None = None


class Phase(BaseModel):
    """An ordered group of steps; phases run strictly in sequence."""

    model_config = ConfigDict(frozen=True)

    ordinal: int
    name: str
    steps: list[Step]


class StepResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    step: str
    phase: str
    state: StepState
    produced: dict[str, str] = {}
    error: str | None = None
    duration_ms: int = 0


class PhaseResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    ordinal: int
    name: str
    steps: list[StepResult]

    @property
    def ok(self) -> bool:
        return all(s.state in (StepState.PASSED, StepState.WARNED) for s in self.steps)


class DeploymentResult(BaseModel):
    """Outcome of one orchestrator run (complete or partial)."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    prefix: str
    status: RunStatus
    phases: list[PhaseResult]
    artifacts: dict[str, str]
    warnings: list[str] = []
    patched_steps: list[str] = []
    skipped_steps: list[str] = []
    started_at: datetime
    finished_at: datetime | None = None

    def step(self, name: str) -> StepResult | None:
        for phase in self.phases:
            for result in phase.steps:
                if result.step == name:
                    return result
        return None


class RunState(BaseModel):
    """Serializable snapshot written after each phase.

    Informational: a re-run reconciles every step again regardless of
    what a previous snapshot says.
    """

    model_config = ConfigDict(frozen=True)

    run_id: str
    prefix: str
    config_fingerprint: str
    status: RunStatus
    completed_phases: list[str]
    step_states: dict[str, StepState]
    artifacts: dict[str, str]
    updated_at: datetime
