"""Unit tests for the Orchestrator — phase sequencing, failures and snapshots."""

from __future__ import annotations

import pytest

from airbrx_deploy.core.artifact_registry import ArtifactRegistry
from airbrx_deploy.core.dependency_graph import DependencyError
from airbrx_deploy.core.orchestrator import Orchestrator, StepExecutionError
from airbrx_deploy.core.run_state import RunStateStore
from airbrx_deploy.models.pipeline import Phase, RunStatus, Step, StepState


def _const(**values):
    return lambda registry: dict(values)


def _boom(registry):
    raise RuntimeError("service unavailable")


class TestOrchestratorRun:
    """Phases run in order and artifacts flow between steps."""

    def test_artifacts_flow_to_later_steps(self):
        seen = {}

        def consume(registry):
            seen["url"] = registry["api.functionUrl"]
            return {}

        phases = [
            Phase(ordinal=1, name="compute", steps=[
                Step(name="compute.api", produces=["api.functionUrl"], execute=_const(**{"api.functionUrl": "https://x/"})),
            ]),
            Phase(ordinal=2, name="edge", steps=[
                Step(name="edge.api", requires=["api.functionUrl"], execute=consume),
            ]),
        ]
        result = Orchestrator("acme-dev", run_id="ad-test").run(phases)

        assert result.status == RunStatus.SUCCEEDED
        assert seen["url"] == "https://x/"
        assert result.artifacts == {"api.functionUrl": "https://x/"}
        assert [p.name for p in result.phases] == ["compute", "edge"]
        assert result.run_id == "ad-test"

    def test_seeded_registry_satisfies_requirements(self):
        registry = ArtifactRegistry({"account.id": "123456789012"})
        phases = [Phase(ordinal=1, name="p", steps=[
            Step(name="s", requires=["account.id"], execute=_const()),
        ])]
        result = Orchestrator("acme-dev", registry).run(phases)
        assert result.step("s").state == StepState.PASSED

    def test_non_fatal_failure_becomes_warning(self):
        phases = [Phase(ordinal=9, name="validation", steps=[
            Step(name="validate.health", execute=_boom, fatal=False),
        ])]
        result = Orchestrator("acme-dev").run(phases)

        assert result.status == RunStatus.SUCCEEDED_WITH_WARNINGS
        assert result.step("validate.health").state == StepState.WARNED
        assert result.warnings == ["validate.health: service unavailable"]

    def test_patch_steps_are_reported(self):
        phases = [
            Phase(ordinal=4, name="compute", steps=[Step(name="compute.api", execute=_const())]),
            Phase(ordinal=6, name="compute-patch", steps=[
                Step(name="compute.apiPatch", execute=_const(), patch_of="compute.api"),
            ]),
        ]
        result = Orchestrator("acme-dev").run(phases)
        assert result.patched_steps == ["compute.apiPatch"]


class TestOrchestratorFailures:
    """A fatal failure stops the run and carries the partial result."""

    def test_fatal_failure_stops_run(self):
        ran = []

        def later(registry):
            ran.append("later")
            return {}

        phases = [
            Phase(ordinal=1, name="storage", steps=[
                Step(name="storage.admin", produces=["bucket.admin"], execute=_boom),
                Step(name="storage.app", execute=later),
            ]),
            Phase(ordinal=2, name="identity", steps=[
                Step(name="identity.api", requires=["bucket.admin"], execute=later),
            ]),
        ]
        with pytest.raises(StepExecutionError) as excinfo:
            Orchestrator("acme-dev").run(phases)

        error = excinfo.value
        assert error.step == "storage.admin"
        assert isinstance(error.cause, RuntimeError)
        assert error.result.status == RunStatus.FAILED
        assert error.result.step("storage.admin").state == StepState.FAILED
        assert error.result.skipped_steps == ["identity.api"]
        assert ran == []

    def test_undeclared_output_is_a_dependency_error(self):
        phases = [Phase(ordinal=1, name="p", steps=[
            Step(name="s", produces=["a"], execute=_const(a="1", b="2")),
        ])]
        with pytest.raises(DependencyError, match="undeclared"):
            Orchestrator("acme-dev").run(phases)

    def test_missing_output_is_a_dependency_error(self):
        phases = [Phase(ordinal=1, name="p", steps=[
            Step(name="s", produces=["a", "b"], execute=_const(a="1")),
        ])]
        with pytest.raises(DependencyError, match="did not produce"):
            Orchestrator("acme-dev").run(phases)

    def test_plan_rejects_unknown_requirement(self):
        phases = [Phase(ordinal=1, name="p", steps=[Step(name="s", requires=["nope"], execute=_const())])]
        with pytest.raises(DependencyError):
            Orchestrator("acme-dev").plan(phases)


class TestOrchestratorSnapshots:
    """Run state is written after each phase and on failure."""

    def test_snapshot_after_success(self, tmp_path):
        store = RunStateStore(tmp_path / "state")
        phases = [Phase(ordinal=1, name="storage", steps=[
            Step(name="storage.admin", produces=["bucket.admin"], execute=_const(**{"bucket.admin": "b"})),
        ])]
        Orchestrator("acme-dev", state_store=store, config_fingerprint="abc").run(phases)

        state = store.load("acme-dev")
        assert state.status == RunStatus.SUCCEEDED
        assert state.completed_phases == ["storage"]
        assert state.config_fingerprint == "abc"
        assert state.artifacts == {"bucket.admin": "b"}

    def test_snapshot_on_failure(self, tmp_path):
        store = RunStateStore(tmp_path / "state")
        phases = [Phase(ordinal=1, name="storage", steps=[Step(name="storage.admin", execute=_boom)])]
        with pytest.raises(StepExecutionError):
            Orchestrator("acme-dev", state_store=store).run(phases)

        state = store.load("acme-dev")
        assert state.status == RunStatus.FAILED
        assert state.step_states["storage.admin"] == StepState.FAILED
        assert store.remove("acme-dev") is True
        assert store.load("acme-dev") is None
