"""Step state machine for one deployment run.

Enforces:
- Valid state transitions only (VALID_TRANSITIONS table)
- Cascade skipping of transitive dependents when a step fails
"""

from __future__ import annotations

import logging

from airbrx_deploy.core.dependency_graph import DependencyGraph
from airbrx_deploy.models.pipeline import VALID_TRANSITIONS, StepState

logger = logging.getLogger(__name__)


class InvalidTransitionError(RuntimeError):
    """Raised when a requested state transition is not valid."""


class StepMachine:
    """Tracks and validates the state of every step in a run.

    Parameters
    ----------
    graph:
        The dependency graph of the run, used for cascade skipping.
    """

    def __init__(self, graph: DependencyGraph) -> None:
        self._graph = graph
        self._states: dict[str, StepState] = {
            step.name: StepState.NOT_STARTED for step in graph.steps
        }

    def get_state(self, step_name: str) -> StepState:
        return self._states[step_name]

    def get_all_states(self) -> dict[str, StepState]:
        return dict(self._states)

    def transition(self, step_name: str, target_state: StepState) -> None:
        current = self._states[step_name]
        allowed = VALID_TRANSITIONS.get(current, set())
        if target_state not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition {step_name} from {current.value} to {target_state.value}. "
                f"Allowed: {[s.value for s in allowed]}"
            )
        self._states[step_name] = target_state
        logger.debug("Step %s: %s -> %s", step_name, current.value, target_state.value)

        if target_state == StepState.FAILED:
            self.cascade_skip(step_name)

    def cascade_skip(self, failed_step: str) -> list[str]:
        """Mark every not-yet-started dependent of *failed_step* as SKIPPED."""
        skipped = []
        for dependent in self._graph.get_dependents(failed_step):
            if self._states[dependent] == StepState.NOT_STARTED:
                self._states[dependent] = StepState.SKIPPED
                skipped.append(dependent)
        return skipped

    def steps_in(self, state: StepState) -> list[str]:
        return [name for name, current in self._states.items() if current == state]
