"""JSON run-state snapshots, one file per deployment prefix."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from airbrx_deploy.models.pipeline import RunState

logger = logging.getLogger(__name__)


class RunStateStore:
    """Persists the latest :class:`RunState` of each deployment.

    Parameters
    ----------
    directory:
        Where snapshot files live; created on first write.
    """

    def __init__(self, directory: Path) -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, prefix: str) -> Path:
        return self._directory / f"{prefix}-run-state.json"

    def save(self, state: RunState) -> Path:
        """Atomically replace the snapshot for ``state.prefix``."""
        self._directory.mkdir(parents=True, exist_ok=True)
        target = self.path_for(state.prefix)
        tmp = target.with_suffix(".json.tmp")
        tmp.write_text(state.model_dump_json(indent=2), encoding="utf-8")
        os.replace(tmp, target)
        logger.debug("Saved run state for %s (%s)", state.prefix, state.status.value)
        return target

    def load(self, prefix: str) -> RunState | None:
        path = self.path_for(prefix)
        if not path.exists():
            return None
        return RunState.model_validate_json(path.read_text(encoding="utf-8"))

    def remove(self, prefix: str) -> bool:
        path = self.path_for(prefix)
        if path.exists():
            path.unlink()
            return True
        return False
