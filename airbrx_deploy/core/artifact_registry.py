"""Artifact registry — the explicit, append-only record of discovered values.

Every value a later step needs (role ARNs, function URLs, CDN domains)
is recorded here by the step that discovered it. Within one run a key is
written at most once: recording the same value again is a no-op,
recording a different value is an error.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping

logger = logging.getLogger(__name__)


class ArtifactOverwriteError(RuntimeError):
    """Raised when a key is re-recorded with a different value."""


class MissingArtifactError(KeyError):
    """Raised when a step reads a key nobody has recorded."""


class ArtifactRegistry(Mapping[str, str]):
    """Mapping of logical artifact key to discovered string value.

    Parameters
    ----------
    seed:
        Values known before any step runs (e.g. the account id from the
        preflight identity check).
    """

    def __init__(self, seed: Mapping[str, str] | None = None) -> None:
        self._values: dict[str, str] = {}
        self._producers: dict[str, str] = {}
        for key, value in (seed or {}).items():
            self.record(key, value, producer="seed")

    # ------------------------------------------------------------------
    # Mapping protocol
    # ------------------------------------------------------------------

    def __getitem__(self, key: str) -> str:
        try:
            return self._values[key]
        except KeyError:
            raise MissingArtifactError(key) from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record(self, key: str, value: str, producer: str = "") -> None:
        """Record *value* under *key*; idempotent for identical values."""
        if not isinstance(value, str):
            raise TypeError(f"Artifact {key!r} must be a string, got {type(value).__name__}")
        existing = self._values.get(key)
        if existing is not None:
            if existing == value:
                return
            raise ArtifactOverwriteError(
                f"Artifact {key!r} already recorded by {self._producers[key]!r} "
                f"with a different value"
            )
        self._values[key] = value
        self._producers[key] = producer
        logger.debug("Recorded artifact %s (from %s)", key, producer or "unknown")

    def record_many(self, values: Mapping[str, str], producer: str = "") -> None:
        for key, value in values.items():
            self.record(key, value, producer=producer)

    def producer_of(self, key: str) -> str | None:
        return self._producers.get(key)

    def snapshot(self) -> dict[str, str]:
        """Plain-dict copy, safe to serialize."""
        return dict(self._values)
