"""Narration assembly from ordered chunk artifacts.

Responsibilities:
- Enforce the gap-free ascending chunk-index precondition.
- Sum per-chunk durations exactly into one `NarrationResult`.
- Delegate WAV byte concatenation to `AudioMerger`.
"""

from __future__ import annotations

import math
from pathlib import Path
from typing import Sequence

from ..errors import IncompleteSequenceError
from ..models.datatypes import AudioArtifact, NarrationResult
from .merger import AudioMerger


class Assembler:
    """Combine per-chunk artifacts into one narration result."""

    def __init__(self, merger: AudioMerger | None = None) -> None:
        self.merger = merger if merger is not None else AudioMerger()

    def assemble(
        self,
        artifacts: Sequence[AudioArtifact],
        *,
        settings_hash: str = "",
        provider_id: str | None = None,
    ) -> NarrationResult:
        """Validate ordering and aggregate durations.

        Raises:
            IncompleteSequenceError: If indices do not run 0, 1, 2, ... without
                gaps or duplicates.
        """

        for expected_index, artifact in enumerate(artifacts):
            if artifact.chunk_index != expected_index:
                raise IncompleteSequenceError(expected_index, artifact.chunk_index)

        return NarrationResult(
            ordered_artifacts=tuple(artifacts),
            total_duration_seconds=math.fsum(
                artifact.duration_seconds for artifact in artifacts
            ),
            settings_hash=settings_hash,
            provider_id=provider_id,
        )

    def write_merged(self, result: NarrationResult, output_path: Path) -> Path:
        """Write the concatenated narration audio for an assembled result."""

        return self.merger.merge(result.ordered_artifacts, output_path)
