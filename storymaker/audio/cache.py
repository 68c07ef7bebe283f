"""Persistent narration cache.

Responsibilities:
- Store narration results under a settings-plus-text key in the artifact store.
- Treat unreadable entries and entries whose merged audio file disappeared as misses.
- Track basic cache telemetry (hits/misses).
"""

from __future__ import annotations

import json
from pathlib import Path

from ..io.storage import ArtifactStore
from ..models.datatypes import NarrationResult

CACHE_DIR = Path("cache") / "narration"


class NarrationCache:
    """Keyed narration cache with one atomically replaced JSON file per key.

    Concurrent writers for the same key resolve as last-writer-wins.
    """

    def __init__(self, store: ArtifactStore) -> None:
        self.store = store
        self.hits = 0
        self.misses = 0

    def _relative_path(self, cache_key: str) -> Path:
        return CACHE_DIR / f"{cache_key}.json"

    def get(self, cache_key: str) -> NarrationResult | None:
        """Return a cached narration, or `None` when missing, unreadable, or stale.

        An unreadable entry stays on disk; the next `set` for the key replaces it.
        """

        relative = self._relative_path(cache_key)
        if not self.store.exists(relative):
            self.misses += 1
            return None
        try:
            payload = self.store.load_json(relative)
            result = NarrationResult.from_payload(payload["narration"])
        except (json.JSONDecodeError, KeyError, ValueError, TypeError, AttributeError):
            self.misses += 1
            return None
        merged = payload.get("merged_path")
        if merged is not None and not self.store.exists(Path(str(merged))):
            self.misses += 1
            return None
        self.hits += 1
        return result

    def set(self, cache_key: str, result: NarrationResult, merged_path: Path | None) -> None:
        """Store a narration result and the store-relative path of its merged audio."""

        self.store.save_json(
            self._relative_path(cache_key),
            {
                "narration": result.as_payload(),
                "merged_path": str(merged_path) if merged_path is not None else None,
            },
        )
