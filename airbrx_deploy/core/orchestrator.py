"""Dependency-ordered orchestrator — runs phases of idempotent steps.

The Orchestrator wires the ArtifactRegistry, DependencyGraph and
StepMachine together. Phases run strictly in sequence and steps run in
declaration order. Re-run safety comes from each step reconciling its
resource, never from skipping work a previous run recorded.
"""

from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime, timezone

from airbrx_deploy.core.artifact_registry import ArtifactRegistry
from airbrx_deploy.core.dependency_graph import DependencyError, DependencyGraph
from airbrx_deploy.core.run_state import RunStateStore
from airbrx_deploy.core.step_machine import StepMachine
from airbrx_deploy.models.pipeline import (
    DeploymentResult,
    Phase,
    PhaseResult,
    RunState,
    RunStatus,
    Step,
    StepResult,
    StepState,
)

logger = logging.getLogger(__name__)


class StepExecutionError(RuntimeError):
    """Raised when a fatal step fails; carries the partial result."""

    def __init__(self, step: str, cause: BaseException, result: DeploymentResult) -> None:
        super().__init__(f"Step {step!r} failed: {cause}")
        self.step = step
        self.cause = cause
        self.result = result


class Orchestrator:
    """Runs a list of phases against a shared artifact registry.

    Parameters
    ----------
    prefix:
        Deployment prefix, recorded in results and snapshots.
    registry:
        Registry to run against; a fresh one if not provided. Pass a
        seeded registry for values known up front (e.g. ``account.id``).
    state_store:
        Optional snapshot sink, written after every phase and on failure.
    config_fingerprint:
        Non-secret configuration fingerprint for the snapshots.
    run_id:
        Explicit run id; generated if None.
    """

    def __init__(
        self,
        prefix: str,
        registry: ArtifactRegistry | None = None,
        *,
        state_store: RunStateStore | None = None,
        config_fingerprint: str = "",
        run_id: str | None = None,
    ) -> None:
        self.prefix = prefix
        self.registry = registry if registry is not None else ArtifactRegistry()
        self._state_store = state_store
        self._fingerprint = config_fingerprint
        ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
        self.run_id = run_id or f"ad-{ts}-{uuid.uuid4().hex[:4]}"

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def plan(self, phases: list[Phase]) -> DependencyGraph:
        """Statically validate *phases*; raises DependencyError, touches nothing."""
        return DependencyGraph(phases, seeded=self.registry.keys())

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def run(self, phases: list[Phase]) -> DeploymentResult:
        """Execute every phase in order.

        Raises
        ------
        DependencyError
            A required artifact is missing, or a step's output does not
            match its declared ``produces``.
        StepExecutionError
            A fatal step raised. ``error.result`` holds the partial result.
        """
        graph = self.plan(phases)
        machine = StepMachine(graph)
        started_at = datetime.now(timezone.utc)
        completed: list[PhaseResult] = []
        warnings: list[str] = []
        patched: list[str] = []

        def _result(status: RunStatus, current: PhaseResult | None = None) -> DeploymentResult:
            phase_results = completed + ([current] if current is not None else [])
            return DeploymentResult(
                run_id=self.run_id,
                prefix=self.prefix,
                status=status,
                phases=phase_results,
                artifacts=self.registry.snapshot(),
                warnings=list(warnings),
                patched_steps=list(patched),
                skipped_steps=machine.steps_in(StepState.SKIPPED),
                started_at=started_at,
                finished_at=datetime.now(timezone.utc),
            )

        logger.info("Run %s for %s: %d phases", self.run_id, self.prefix, len(phases))

        for phase in phases:
            logger.info("Phase %d: %s", phase.ordinal, phase.name)
            step_results: list[StepResult] = []

            for step in phase.steps:
                missing = [key for key in step.requires if key not in self.registry]
                if missing:
                    machine.transition(step.name, StepState.SKIPPED)
                    step_results.append(
                        StepResult(
                            step=step.name,
                            phase=phase.name,
                            state=StepState.SKIPPED,
                            error=f"missing artifacts: {', '.join(missing)}",
                        )
                    )
                    partial = _result(
                        RunStatus.FAILED,
                        PhaseResult(ordinal=phase.ordinal, name=phase.name, steps=step_results),
                    )
                    self._snapshot(partial, machine)
                    raise DependencyError(
                        f"Step {step.name!r} requires missing artifacts: {', '.join(missing)}"
                    )

                outcome, cause = self._run_step(step, phase, machine)
                step_results.append(outcome)

                if outcome.state == StepState.WARNED:
                    warnings.append(f"{step.name}: {outcome.error}")
                elif outcome.state == StepState.FAILED:
                    partial = _result(
                        RunStatus.FAILED,
                        PhaseResult(ordinal=phase.ordinal, name=phase.name, steps=step_results),
                    )
                    self._snapshot(partial, machine)
                    if isinstance(cause, DependencyError):
                        raise cause
                    raise StepExecutionError(step.name, cause, partial) from cause
                elif step.patch_of is not None:
                    patched.append(step.name)

            completed.append(
                PhaseResult(ordinal=phase.ordinal, name=phase.name, steps=step_results)
            )
            self._snapshot(_result(RunStatus.RUNNING), machine)

        status = RunStatus.SUCCEEDED_WITH_WARNINGS if warnings else RunStatus.SUCCEEDED
        result = _result(status)
        self._snapshot(result, machine)
        logger.info("Run %s finished: %s", self.run_id, status.value)
        return result

    def _run_step(
        self, step: Step, phase: Phase, machine: StepMachine
    ) -> tuple[StepResult, Exception | None]:
        machine.transition(step.name, StepState.RUNNING)
        logger.info("  %s", step.description or step.name)
        t0 = time.monotonic()
        try:
            produced = step.execute(self.registry)
            self._check_produces(step, produced)
            self.registry.record_many({k: produced[k] for k in step.produces}, producer=step.name)
        except Exception as exc:
            elapsed = int((time.monotonic() - t0) * 1000)
            if not step.fatal and not isinstance(exc, DependencyError):
                machine.transition(step.name, StepState.WARNED)
                logger.warning("Step %s failed (non-fatal): %s", step.name, exc)
                warned = StepResult(
                    step=step.name,
                    phase=phase.name,
                    state=StepState.WARNED,
                    error=str(exc),
                    duration_ms=elapsed,
                )
                return warned, None
            machine.transition(step.name, StepState.FAILED)
            logger.error("Step %s failed: %s", step.name, exc)
            failed = StepResult(
                step=step.name,
                phase=phase.name,
                state=StepState.FAILED,
                error=str(exc),
                duration_ms=elapsed,
            )
            return failed, exc

        machine.transition(step.name, StepState.PASSED)
        passed = StepResult(
            step=step.name,
            phase=phase.name,
            state=StepState.PASSED,
            produced={k: produced[k] for k in step.produces},
            duration_ms=int((time.monotonic() - t0) * 1000),
        )
        return passed, None

    @staticmethod
    def _check_produces(step: Step, produced: dict[str, str]) -> None:
        declared = set(step.produces)
        returned = set(produced)
        if returned - declared:
            raise DependencyError(
                f"Step {step.name!r} returned undeclared artifacts: "
                f"{sorted(returned - declared)}"
            )
        if declared - returned:
            raise DependencyError(
                f"Step {step.name!r} did not produce: {sorted(declared - returned)}"
            )

    def _snapshot(self, result: DeploymentResult, machine: StepMachine) -> None:
        if self._state_store is None:
            return
        state = RunState(
            run_id=self.run_id,
            prefix=self.prefix,
            config_fingerprint=self._fingerprint,
            status=result.status,
            completed_phases=[p.name for p in result.phases if p.ok],
            step_states=machine.get_all_states(),
            artifacts=result.artifacts,
            updated_at=datetime.now(timezone.utc),
        )
        self._state_store.save(state)
