"""Story narration stage.

Responsibilities:
- Clean and chunk story text, then synthesize every chunk through a speech provider chain.
- Dispatch chunk synthesis concurrently and re-join results in chunk order.
- Abandon a narration on deadline or caller cancellation without persisting anything.
- Persist chunk and merged WAV artifacts and cache the result under a settings-plus-text key.

Key types:
- `ChunkSetSynthesizer`: chain candidate synthesizing a whole chunk set with one adapter.
- `NarrationPipeline`: end-to-end narration orchestration.
"""

from __future__ import annotations

from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path
import shutil
import tempfile
import threading
import time
from typing import Callable, Sequence

from ..audio.assembler import Assembler
from ..audio.cache import NarrationCache
from ..audio.cache_keys import derive_settings_key, narration_cache_key
from ..errors import ErrorKind, NarrationCancelledError, PipelineStageError
from ..io.storage import AUDIO_DIR, CHUNKS_DIR, ArtifactStore
from ..models.datatypes import (
    AudioArtifact,
    NarrationResult,
    ProviderResult,
    SpeechRequest,
    StoryRecord,
    TextChunk,
    VoiceSettings,
)
from ..providers.base import SpeechAdapter
from ..telemetry.logger import RunLogger
from ..text.chunking import Chunker
from ..text.cleaners import NarrationCleaner
from .fallback import FallbackChain

_POLL_INTERVAL_SECONDS = 0.1


@dataclass(frozen=True, slots=True)
class ChunkSetRequest:
    """Every chunk of one narration plus the shared voice settings."""

    chunks: tuple[TextChunk, ...]
    voice_settings: VoiceSettings


@dataclass(frozen=True, slots=True)
class NarrationDeadline:
    """Absolute monotonic deadline plus an optional caller cancel signal."""

    expires_at: float
    cancel_event: threading.Event | None = None
    clock: Callable[[], float] = time.monotonic

    def remaining(self) -> float:
        """Return seconds left, raising when the narration must be abandoned."""

        if self.cancel_event is not None and self.cancel_event.is_set():
            raise NarrationCancelledError("cancelled by caller")
        remaining = self.expires_at - self.clock()
        if remaining <= 0.0:
            raise NarrationCancelledError("deadline exceeded")
        return remaining


class ChunkSetSynthesizer:
    """Synthesize a full chunk set with one speech adapter.

    The candidate succeeds only when every chunk succeeds. The first failed
    chunk cancels queued chunk calls and fails the candidate with that
    chunk's error kind.

    HTTP requests already in flight cannot be interrupted and may still be
    billed by the provider. Each chunk call therefore starts with an HTTP
    timeout no longer than the time left before the narration deadline, so
    abandoned requests end by the deadline at the latest.
    """

    def __init__(
        self,
        adapter: SpeechAdapter,
        *,
        staging_root: Path,
        deadline: NarrationDeadline,
        max_workers: int = 4,
    ) -> None:
        self.adapter = adapter
        self.provider_id = adapter.provider_id
        self.staging_root = staging_root
        self.deadline = deadline
        self.max_workers = max(1, max_workers)

    def call(self, request: ChunkSetRequest) -> ProviderResult:
        """Synthesize every chunk concurrently and stage the WAV parts on success."""

        self.deadline.remaining()
        pool = ThreadPoolExecutor(
            max_workers=min(self.max_workers, max(1, len(request.chunks))),
            thread_name_prefix=f"narrate-{self.provider_id}",
        )
        futures: dict[Future[ProviderResult], int] = {
            pool.submit(self._synthesize_chunk, chunk, request.voice_settings): chunk.index
            for chunk in request.chunks
        }
        results: dict[int, ProviderResult] = {}
        pending = set(futures)
        try:
            while pending:
                timeout = min(self.deadline.remaining(), _POLL_INTERVAL_SECONDS)
                done, pending = wait(pending, timeout=timeout, return_when=FIRST_COMPLETED)
                for future in done:
                    chunk_index = futures[future]
                    result = self._future_result(future)
                    if not result.success:
                        return ProviderResult.failure(
                            self.provider_id,
                            result.error_kind or ErrorKind.UNAVAILABLE,
                            f"chunk {chunk_index}: {result.detail}",
                            retry_after_seconds=result.retry_after_seconds,
                        )
                    results[chunk_index] = result
        finally:
            for future in pending:
                future.cancel()
            pool.shutdown(wait=False, cancel_futures=True)

        return ProviderResult(
            provider_id=self.provider_id,
            success=True,
            artifacts=self._stage(results),
        )

    def _synthesize_chunk(self, chunk: TextChunk, voice_settings: VoiceSettings) -> ProviderResult:
        return self.adapter.call(
            SpeechRequest(
                text=chunk.content,
                voice_settings=voice_settings,
                chunk_index=chunk.index,
                timeout_seconds=self.deadline.remaining(),
            )
        )

    def _future_result(self, future: Future[ProviderResult]) -> ProviderResult:
        """Return a chunk result, mapping unexpected worker exceptions to failures."""

        try:
            return future.result()
        except Exception as exc:
            return ProviderResult.failure(
                self.provider_id,
                ErrorKind.UNAVAILABLE,
                f"{self.provider_id} raised {type(exc).__name__}.",
            )

    def _stage(self, results: dict[int, ProviderResult]) -> tuple[AudioArtifact, ...]:
        """Write chunk WAV parts into a fresh staging directory in index order."""

        self.staging_root.mkdir(parents=True, exist_ok=True)
        staging_dir = Path(tempfile.mkdtemp(prefix=".staging-", dir=self.staging_root))
        artifacts: list[AudioArtifact] = []
        for chunk_index in sorted(results):
            result = results[chunk_index]
            path = staging_dir / f"{chunk_index:03d}.wav"
            path.write_bytes(result.audio_bytes or b"")
            artifacts.append(
                AudioArtifact(
                    chunk_index=chunk_index,
                    audio_ref=path,
                    duration_seconds=float(result.duration_seconds or 0.0),
                )
            )
        return tuple(artifacts)


class NarrationPipeline:
    """Narrate text through a prioritized speech provider chain."""

    def __init__(
        self,
        speech_adapters: Sequence[SpeechAdapter],
        store: ArtifactStore,
        *,
        max_chunk_chars: int = 500,
        max_workers: int = 4,
        timeout_seconds: float = 300.0,
        run_logger: RunLogger | None = None,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] | None = None,
        cleaner: NarrationCleaner | None = None,
        chunker: Chunker | None = None,
        assembler: Assembler | None = None,
        cache: NarrationCache | None = None,
    ) -> None:
        self.speech_adapters = tuple(speech_adapters)
        self.store = store
        self.max_chunk_chars = max_chunk_chars
        self.max_workers = max_workers
        self.timeout_seconds = timeout_seconds
        self.run_logger = run_logger
        self.clock = clock
        self.now = now if now is not None else (lambda: datetime.now(timezone.utc))
        self.cleaner = cleaner if cleaner is not None else NarrationCleaner()
        self.chunker = chunker if chunker is not None else Chunker()
        self.assembler = assembler if assembler is not None else Assembler()
        self.cache = cache if cache is not None else NarrationCache(store)

    @property
    def provider_key(self) -> str:
        """Return the joined speech provider priority used in settings hashes."""

        return ",".join(adapter.provider_id for adapter in self.speech_adapters)

    def settings_hash(self, voice_settings: VoiceSettings) -> str:
        """Return the cache settings hash for voice settings on this provider chain."""

        return derive_settings_key(voice_settings, provider=self.provider_key)

    def narrate(
        self,
        text: str,
        voice_settings: VoiceSettings,
        cancel_event: threading.Event | None = None,
    ) -> NarrationResult:
        """Narrate text, reusing a cached narration for identical text and settings.

        Raises:
            PipelineStageError: If the text has nothing to narrate.
            AllProvidersFailedError: If every speech provider failed.
            NarrationCancelledError: On deadline expiry or caller cancellation.
        """

        settings_hash = self.settings_hash(voice_settings)
        cleaned = self.cleaner.clean(text)
        cache_key = narration_cache_key(settings_hash, cleaned)
        cached = self.cache.get(cache_key)
        if self.run_logger is not None:
            self.run_logger.log_cache("narrate", cached is not None, cache_key)
        if cached is not None:
            return cached

        chunks = self.chunker.split(cleaned, self.max_chunk_chars)
        if not chunks:
            raise PipelineStageError(
                stage="chunk",
                detail="Story has no narratable text.",
                hint="Generate or provide a story with content before narrating it.",
            )
        if self.run_logger is not None:
            self.run_logger.log_stage_start("narrate", chunks=len(chunks), provider=self.provider_key)

        deadline = NarrationDeadline(
            expires_at=self.clock() + self.timeout_seconds,
            cancel_event=cancel_event,
            clock=self.clock,
        )
        staging_root = self.store.path_for(CHUNKS_DIR)
        chain = FallbackChain(
            [
                ChunkSetSynthesizer(
                    adapter,
                    staging_root=staging_root,
                    deadline=deadline,
                    max_workers=self.max_workers,
                )
                for adapter in self.speech_adapters
            ],
            run_logger=self.run_logger,
            stage="narrate",
        )
        result = chain.generate(ChunkSetRequest(tuple(chunks), voice_settings))

        name = f"{int(self.now().timestamp() * 1000)}_{settings_hash[:16]}"
        artifacts = self._promote(result.artifacts, CHUNKS_DIR / name)
        narration = self.assembler.assemble(
            artifacts, settings_hash=settings_hash, provider_id=result.provider_id
        )
        merged_relative = AUDIO_DIR / f"{name}.wav"
        self.assembler.write_merged(narration, self.store.path_for(merged_relative))
        narration = replace(narration, audio_url=f"/api/audio/{merged_relative.name}")
        self.cache.set(cache_key, narration, merged_relative)

        if self.run_logger is not None:
            self.run_logger.log_stage_complete(
                "narrate",
                provider=result.provider_id,
                chunks=len(artifacts),
                duration=f"{narration.total_duration_seconds:.2f}",
            )
        return narration

    def narrate_story(
        self,
        story: StoryRecord,
        voice_settings: VoiceSettings,
        cancel_event: threading.Event | None = None,
    ) -> tuple[StoryRecord, NarrationResult]:
        """Narrate a story and persist the record with its narration reference."""

        narration = self.narrate(story.content, voice_settings, cancel_event=cancel_event)
        updated = story.with_narration(narration)
        self.store.save_story(updated)
        return updated, narration

    def _promote(
        self, staged: tuple[AudioArtifact, ...], relative_dir: Path
    ) -> tuple[AudioArtifact, ...]:
        """Move staged chunk parts into their final directory."""

        if not staged:
            return staged
        staging_dir = staged[0].audio_ref.parent
        final_dir = self.store.path_for(relative_dir)
        if final_dir.exists():
            shutil.rmtree(final_dir)
        staging_dir.rename(final_dir)
        return tuple(
            replace(artifact, audio_ref=final_dir / artifact.audio_ref.name) for artifact in staged
        )
