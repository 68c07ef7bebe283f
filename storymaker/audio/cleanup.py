"""Generated audio housekeeping.

Responsibilities:
- List generated narration files with sizes.
- Delete generated narration files, and their chunk parts, older than an age limit.
"""

from __future__ import annotations

from dataclasses import dataclass
import shutil
import time
from typing import Callable

from ..io.storage import AUDIO_DIR, CHUNKS_DIR, ArtifactStore

DEFAULT_MAX_AGE_HOURS = 24.0


@dataclass(frozen=True, slots=True)
class AudioFileInfo:
    """One generated audio file."""

    filename: str
    size_bytes: int
    modified_at: float

    @property
    def url(self) -> str:
        return f"/api/audio/{self.filename}"

    @property
    def size_megabytes(self) -> float:
        return round(self.size_bytes / (1024 * 1024), 2)


def list_audio_files(store: ArtifactStore) -> list[AudioFileInfo]:
    """Return generated WAV files sorted by filename."""

    files: list[AudioFileInfo] = []
    for path in store.list_files(AUDIO_DIR, ".wav"):
        stat = path.stat()
        files.append(AudioFileInfo(path.name, stat.st_size, stat.st_mtime))
    return files


def cleanup_audio_files(
    store: ArtifactStore,
    max_age_hours: float = DEFAULT_MAX_AGE_HOURS,
    clock: Callable[[], float] = time.time,
) -> list[str]:
    """Delete generated WAV files older than `max_age_hours` and return their names."""

    if max_age_hours < 0:
        raise ValueError("`max_age_hours` must not be negative.")
    cutoff = clock() - max_age_hours * 3600.0
    deleted: list[str] = []
    for info in list_audio_files(store):
        if info.modified_at < cutoff:
            store.path_for(AUDIO_DIR / info.filename).unlink(missing_ok=True)
            chunk_dir = store.path_for(CHUNKS_DIR / info.filename.removesuffix(".wav"))
            if chunk_dir.is_dir():
                shutil.rmtree(chunk_dir)
            deleted.append(info.filename)
    return deleted
