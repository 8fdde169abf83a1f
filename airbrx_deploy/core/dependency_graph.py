"""Static artifact-dependency graph over the steps of a run.

An edge runs from the step that produces an artifact key to every step
that requires it. The graph is checked before anything executes:

- every required key is seeded or produced by an *earlier* step,
- no key has two producers,
- a patch step only patches a step that runs before it,
- the graph is acyclic.

When a fatal step fails, its transitive dependents are what get marked
SKIPPED.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable

from airbrx_deploy.models.pipeline import Phase, Step


class DependencyError(RuntimeError):
    """Raised when a required artifact is unavailable or the graph is malformed."""


class DependencyGraph:
    """Directed acyclic graph of steps linked by artifact keys.

    Parameters
    ----------
    phases:
        The phases of the run, in execution order.
    seeded:
        Artifact keys available before the first step runs.
    """

    def __init__(self, phases: list[Phase], seeded: Iterable[str] = ()) -> None:
        self._order: list[Step] = [step for phase in phases for step in phase.steps]
        self._phase_of: dict[str, str] = {
            step.name: phase.name for phase in phases for step in phase.steps
        }
        self._seeded: set[str] = set(seeded)
        self._position: dict[str, int] = {}
        self._producer: dict[str, str] = {}
        # Forward edges: step -> steps it depends on
        self._prerequisites: dict[str, set[str]] = {}
        # Reverse edges: step -> steps that depend on it
        self._dependents: dict[str, set[str]] = {}

        self._index_steps()
        self._link_requirements()
        self._validate_no_cycles()

    def _index_steps(self) -> None:
        for index, step in enumerate(self._order):
            if step.name in self._position:
                raise DependencyError(f"Duplicate step name: {step.name!r}")
            self._position[step.name] = index
            self._prerequisites[step.name] = set()
            self._dependents[step.name] = set()
            for key in step.produces:
                if key in self._seeded:
                    raise DependencyError(
                        f"Step {step.name!r} produces seeded artifact {key!r}"
                    )
                if key in self._producer:
                    raise DependencyError(
                        f"Artifact {key!r} has two producers: "
                        f"{self._producer[key]!r} and {step.name!r}"
                    )
                self._producer[key] = step.name

    def _link_requirements(self) -> None:
        for step in self._order:
            position = self._position[step.name]
            for key in step.requires:
                if key in self._seeded:
                    continue
                producer = self._producer.get(key)
                if producer is None:
                    raise DependencyError(
                        f"Step {step.name!r} requires {key!r}, which no step produces"
                    )
                if self._position[producer] >= position:
                    raise DependencyError(
                        f"Step {step.name!r} requires {key!r}, but its producer "
                        f"{producer!r} runs later"
                    )
                self._prerequisites[step.name].add(producer)
                self._dependents[producer].add(step.name)
            if step.patch_of is not None:
                target = self._position.get(step.patch_of)
                if target is None or target >= position:
                    raise DependencyError(
                        f"Step {step.name!r} patches {step.patch_of!r}, "
                        "which must be an earlier step"
                    )
                self._prerequisites[step.name].add(step.patch_of)
                self._dependents[step.patch_of].add(step.name)

    def _validate_no_cycles(self) -> None:
        """Verify the graph is a DAG using topological sort (Kahn's algorithm)."""
        in_degree = {name: len(prereqs) for name, prereqs in self._prerequisites.items()}
        queue = deque(name for name, degree in in_degree.items() if degree == 0)
        visited = 0

        while queue:
            node = queue.popleft()
            visited += 1
            for dep in self._dependents.get(node, ()):
                in_degree[dep] -= 1
                if in_degree[dep] == 0:
                    queue.append(dep)

        if visited != len(self._order):
            raise DependencyError(
                f"Step graph has a cycle. Visited {visited}/{len(self._order)} steps."
            )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def steps(self) -> list[Step]:
        return list(self._order)

    def phase_of(self, step_name: str) -> str:
        return self._phase_of[step_name]

    def producer_of(self, key: str) -> str | None:
        return self._producer.get(key)

    def get_prerequisites(self, step_name: str) -> list[str]:
        """Direct upstream steps, in execution order."""
        return sorted(self._prerequisites[step_name], key=self._position.__getitem__)

    def get_dependents(self, step_name: str) -> list[str]:
        """All transitive downstream steps, in execution order."""
        seen: set[str] = set()
        queue = deque(self._dependents.get(step_name, ()))
        while queue:
            current = queue.popleft()
            if current in seen:
                continue
            seen.add(current)
            queue.extend(self._dependents.get(current, ()))
        return sorted(seen, key=self._position.__getitem__)

    def patches(self) -> dict[str, str]:
        """Map of patch step -> the step it re-configures."""
        return {step.name: step.patch_of for step in self._order if step.patch_of}
