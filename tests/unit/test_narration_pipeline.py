"""Unit tests for concurrent narration, speech fallback, cancellation and caching."""

from __future__ import annotations

from datetime import datetime, timezone
import io
import itertools
from pathlib import Path
import threading
import time
import wave

import pytest

from storymaker.audio.cache_keys import derive_settings_key, narration_cache_key
from storymaker.audio.wav import pcm_to_wav
from storymaker.errors import AllProvidersFailedError, ErrorKind, NarrationCancelledError, PipelineStageError
from storymaker.io.storage import ArtifactStore
from storymaker.models.datatypes import (
    Genre,
    ProviderResult,
    SpeechRequest,
    StoryLength,
    StoryRecord,
    VoiceSettings,
)
from storymaker.pipeline.narration import NarrationPipeline
from storymaker.telemetry.logger import RunLogger

FIXED_NOW = datetime(2026, 3, 14, 15, 9, 26, tzinfo=timezone.utc)
THREE_SENTENCES = "First sentence here. Second sentence here. Third sentence here."


class _SpeechStub:
    """Speech adapter double producing `0.5 * (index + 1)` seconds of audio per chunk."""

    def __init__(
        self,
        provider_id: str,
        *,
        fail_on_index: int | None = None,
        reverse_completion: bool = False,
    ) -> None:
        self.provider_id = provider_id
        self.fail_on_index = fail_on_index
        self.reverse_completion = reverse_completion
        self.requests: list[SpeechRequest] = []
        self._lock = threading.Lock()

    def call(self, request: SpeechRequest) -> ProviderResult:
        with self._lock:
            self.requests.append(request)
        if self.reverse_completion:
            time.sleep(0.03 * (3 - request.chunk_index))
        if request.chunk_index == self.fail_on_index:
            return ProviderResult.failure(self.provider_id, ErrorKind.RATE_LIMITED, "quota", 7.0)
        seconds = 0.5 * (request.chunk_index + 1)
        audio = pcm_to_wav(b"\x10\x00" * int(seconds * 24000))
        return ProviderResult.ok_audio(self.provider_id, audio, seconds)


def _pipeline(
    tmp_path: Path, *adapters: _SpeechStub, run_logger: RunLogger | None = None, **kwargs: object
) -> NarrationPipeline:
    return NarrationPipeline(
        list(adapters),
        ArtifactStore(tmp_path / "out"),
        max_chunk_chars=25,
        max_workers=3,
        run_logger=run_logger,
        now=lambda: FIXED_NOW,
        **kwargs,  # type: ignore[arg-type]
    )


def _wav_seconds(path: Path) -> float:
    with wave.open(str(path), "rb") as wav_file:
        return wav_file.getnframes() / float(wav_file.getframerate())


def test_narrate_reassembles_concurrent_chunks_in_order(tmp_path: Path) -> None:
    """Chunks finishing out of order should still be merged by ascending index."""

    adapter = _SpeechStub("openai", reverse_completion=True)
    pipeline = _pipeline(tmp_path, adapter)
    settings = VoiceSettings(voice_id="male")

    narration = pipeline.narrate(THREE_SENTENCES, settings)

    assert sorted(request.text for request in adapter.requests) == [
        "First sentence here.",
        "Second sentence here.",
        "Third sentence here.",
    ]
    assert [artifact.chunk_index for artifact in narration.ordered_artifacts] == [0, 1, 2]
    assert [artifact.duration_seconds for artifact in narration.ordered_artifacts] == [0.5, 1.0, 1.5]
    assert narration.total_duration_seconds == pytest.approx(3.0)
    assert narration.provider_id == "openai"
    assert narration.settings_hash == derive_settings_key(settings, provider="openai")


def test_narrate_persists_merged_audio_and_chunk_parts(tmp_path: Path) -> None:
    """The merged file and promoted chunk parts should live under the audio directory."""

    pipeline = _pipeline(tmp_path, _SpeechStub("openai"))
    settings = VoiceSettings()

    narration = pipeline.narrate(THREE_SENTENCES, settings)

    name = f"{int(FIXED_NOW.timestamp() * 1000)}_{narration.settings_hash[:16]}"
    merged = tmp_path / "out" / "audio" / f"{name}.wav"
    assert narration.audio_url == f"/api/audio/{name}.wav"
    assert merged.is_file()
    assert _wav_seconds(merged) == pytest.approx(3.0)
    assert [artifact.audio_ref for artifact in narration.ordered_artifacts] == [
        tmp_path / "out" / "audio" / "chunks" / name / f"{index:03d}.wav" for index in range(3)
    ]
    chunk_root = tmp_path / "out" / "audio" / "chunks"
    assert [path.name for path in chunk_root.iterdir()] == [name]


def test_narrate_falls_back_to_next_provider_when_a_chunk_fails(tmp_path: Path) -> None:
    """One failed chunk should fail the whole provider and hand over every chunk."""

    sink = io.StringIO()
    first = _SpeechStub("openai", fail_on_index=1)
    second = _SpeechStub("elevenlabs")
    pipeline = _pipeline(tmp_path, first, second, run_logger=RunLogger(sink=sink))

    narration = pipeline.narrate(THREE_SENTENCES, VoiceSettings())

    assert narration.provider_id == "elevenlabs"
    assert len(second.requests) == 3
    assert "stage=narrate event=provider_failure error_kind=rate_limited provider=openai" in sink.getvalue()
    assert "stage=narrate event=provider_success provider=elevenlabs" in sink.getvalue()


def test_narrate_reports_every_provider_failure(tmp_path: Path) -> None:
    """When every provider fails the typed failures and retry hint should surface."""

    pipeline = _pipeline(
        tmp_path, _SpeechStub("openai", fail_on_index=0), _SpeechStub("google", fail_on_index=2)
    )

    with pytest.raises(AllProvidersFailedError) as exc_info:
        pipeline.narrate(THREE_SENTENCES, VoiceSettings())

    assert exc_info.value.failure_pairs() == [
        ("openai", ErrorKind.RATE_LIMITED),
        ("google", ErrorKind.RATE_LIMITED),
    ]
    assert exc_info.value.retry_after_seconds == 7.0
    assert not (tmp_path / "out" / "audio").exists()


def test_narrate_honors_caller_cancellation_without_persisting(tmp_path: Path) -> None:
    """A set cancel event should abandon narration before any artifact is written."""

    adapter = _SpeechStub("openai")
    cancel_event = threading.Event()
    cancel_event.set()

    with pytest.raises(NarrationCancelledError, match="cancelled by caller"):
        _pipeline(tmp_path, adapter).narrate(THREE_SENTENCES, VoiceSettings(), cancel_event=cancel_event)

    assert adapter.requests == []
    assert not (tmp_path / "out").exists()


def test_narrate_abandons_work_past_the_deadline(tmp_path: Path) -> None:
    """An expired deadline should stop the chain instead of trying later providers."""

    ticks = itertools.chain([0.0], itertools.repeat(10.0))
    second = _SpeechStub("google")
    pipeline = _pipeline(
        tmp_path,
        _SpeechStub("openai"),
        second,
        timeout_seconds=5.0,
        clock=lambda: next(ticks),
    )

    with pytest.raises(NarrationCancelledError, match="deadline exceeded"):
        pipeline.narrate(THREE_SENTENCES, VoiceSettings())

    assert second.requests == []
    assert not (tmp_path / "out" / "cache").exists()


def test_narrate_reuses_cached_result_for_identical_text_and_settings(tmp_path: Path) -> None:
    """A second request for the same text and voice should not call any provider."""

    sink = io.StringIO()
    adapter = _SpeechStub("openai")
    pipeline = _pipeline(tmp_path, adapter, run_logger=RunLogger(sink=sink))
    settings = VoiceSettings(voice_id="child", speed_multiplier=1.5)

    first = pipeline.narrate(THREE_SENTENCES, settings)
    second = pipeline.narrate("  First sentence here.\nSecond sentence here.  Third sentence here. ", settings)

    assert second == first
    assert len(adapter.requests) == 3
    assert "event=cache_hit" in sink.getvalue()


def test_narrate_misses_cache_for_different_voice_settings(tmp_path: Path) -> None:
    """Changed voice settings should produce a fresh narration."""

    adapter = _SpeechStub("openai")
    pipeline = _pipeline(tmp_path, adapter)

    first = pipeline.narrate(THREE_SENTENCES, VoiceSettings(volume=1.0))
    second = pipeline.narrate(THREE_SENTENCES, VoiceSettings(volume=0.5))

    assert first.settings_hash != second.settings_hash
    assert len(adapter.requests) == 6


def test_narrate_rejects_text_without_content(tmp_path: Path) -> None:
    """Blank stories should fail at the chunk stage."""

    with pytest.raises(PipelineStageError) as exc_info:
        _pipeline(tmp_path, _SpeechStub("openai")).narrate("   \n  ", VoiceSettings())

    assert exc_info.value.stage == "chunk"


def test_narrate_story_persists_record_with_audio_reference(tmp_path: Path) -> None:
    """Narrating a story should save the record with its audio metadata."""

    pipeline = _pipeline(tmp_path, _SpeechStub("openai"))
    story = StoryRecord(
        id="1700000000000",
        title="Brave Journey",
        content=THREE_SENTENCES,
        genre=Genre.ADVENTURE,
        length=StoryLength.SHORT,
        prompt="a brave journey",
        created_at=FIXED_NOW.isoformat(),
        word_count=9,
        estimated_reading_minutes=1,
    )

    updated, narration = pipeline.narrate_story(story, VoiceSettings())

    reloaded = pipeline.store.load_story(story.id)
    assert reloaded == updated
    assert updated.has_audio is True
    assert updated.audio_url == narration.audio_url
    assert updated.audio_duration_seconds == pytest.approx(3.0)
    assert updated.audio_settings_hash == narration.settings_hash


def test_narrate_regenerates_when_cache_entry_is_corrupt(tmp_path: Path) -> None:
    """A truncated cache file should not block narration of the same text."""

    adapter = _SpeechStub("openai")
    pipeline = _pipeline(tmp_path, adapter)
    settings = VoiceSettings()
    pipeline.narrate(THREE_SENTENCES, settings)
    (entry_path,) = (tmp_path / "out" / "cache" / "narration").glob("*.json")
    entry_path.write_text("{trunc", encoding="utf-8")

    narration = pipeline.narrate(THREE_SENTENCES, settings)

    assert len(adapter.requests) == 6
    assert narration.total_duration_seconds == pytest.approx(3.0)
    cache_key = narration_cache_key(narration.settings_hash, pipeline.cleaner.clean(THREE_SENTENCES))
    assert pipeline.cache.get(cache_key) == narration


def test_narrate_bounds_each_chunk_call_by_the_remaining_deadline(tmp_path: Path) -> None:
    """Chunk calls should carry the time left before the deadline as their HTTP timeout."""

    ticks = itertools.chain([100.0], itertools.repeat(102.5))
    adapter = _SpeechStub("openai")
    pipeline = _pipeline(tmp_path, adapter, timeout_seconds=5.0, clock=lambda: next(ticks))

    pipeline.narrate(THREE_SENTENCES, VoiceSettings())

    assert len(adapter.requests) == 3
    assert [request.timeout_seconds for request in adapter.requests] == [2.5, 2.5, 2.5]
