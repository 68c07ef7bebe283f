"""Unit tests for settings hashing, narration cache keys, and the narration cache."""

from __future__ import annotations

from pathlib import Path

import pytest

from storymaker.audio.cache import NarrationCache
from storymaker.audio.cache_keys import derive_settings_key, narration_cache_key, text_identity
from storymaker.io.storage import ArtifactStore
from storymaker.models.datatypes import AudioArtifact, NarrationResult, VoiceSettings


def test_settings_key_ignores_field_order() -> None:
    """Equal settings with permuted keys should hash identically."""

    key_one = derive_settings_key({"voice_id": "male", "pitch_percent": 0, "speed_multiplier": 1.0})
    key_two = derive_settings_key({"speed_multiplier": 1.0, "voice_id": "male", "pitch_percent": 0})

    assert key_one == key_two
    assert len(key_one) == 64


def test_settings_key_treats_integral_numbers_like_floats() -> None:
    """`1` and `1.0` should be the same setting value."""

    assert derive_settings_key({"speed_multiplier": 1}) == derive_settings_key(
        {"speed_multiplier": 1.0}
    )


def test_settings_key_matches_for_dataclass_and_mapping_input() -> None:
    """VoiceSettings and its mapping form should hash identically."""

    settings = VoiceSettings(voice_id="child", pitch_percent=10, speed_multiplier=1.2, volume=0.8)

    assert derive_settings_key(settings) == derive_settings_key(settings.as_dict())


def test_settings_key_changes_with_any_setting_or_provider() -> None:
    """Distinct settings and distinct provider priorities should give distinct keys."""

    base = VoiceSettings()
    keys = {
        derive_settings_key(base),
        derive_settings_key(VoiceSettings(voice_id="male")),
        derive_settings_key(VoiceSettings(speed_multiplier=1.5)),
        derive_settings_key(base, provider="openai"),
        derive_settings_key(base, provider="elevenlabs,openai"),
    }

    assert len(keys) == 5


def test_narration_cache_key_normalizes_text_whitespace() -> None:
    """Whitespace-only differences in source text should not change the cache key."""

    settings_hash = derive_settings_key(VoiceSettings())

    assert text_identity("Once  upon\na time.") == text_identity("Once upon a time.")
    assert narration_cache_key(settings_hash, "Once  upon\na time.") == narration_cache_key(
        settings_hash, "Once upon a time."
    )
    assert narration_cache_key(settings_hash, "Once upon a time.") != narration_cache_key(
        settings_hash, "Twice upon a time."
    )


def _narration(tmp_path: Path) -> NarrationResult:
    return NarrationResult(
        ordered_artifacts=(AudioArtifact(0, tmp_path / "audio" / "chunks" / "x" / "000.wav", 1.5),),
        total_duration_seconds=1.5,
        settings_hash="abc",
        provider_id="openai",
        audio_url="/api/audio/x.wav",
    )


def _write_merged_audio(root: Path) -> None:
    path = root / "audio" / "x.wav"
    path.parent.mkdir(parents=True)
    path.write_bytes(b"RIFF")


def test_narration_cache_roundtrip_and_counters(tmp_path: Path) -> None:
    """Stored narrations should be returned while their merged file exists."""

    store = ArtifactStore(tmp_path)
    _write_merged_audio(tmp_path)
    cache = NarrationCache(store)

    assert cache.get("key-1") is None
    cache.set("key-1", _narration(tmp_path), Path("audio") / "x.wav")
    cached = cache.get("key-1")

    assert cached == _narration(tmp_path)
    assert (cache.hits, cache.misses) == (1, 1)


def test_narration_cache_treats_missing_merged_audio_as_miss(tmp_path: Path) -> None:
    """Entries whose merged audio was cleaned up should not be served."""

    store = ArtifactStore(tmp_path)
    cache = NarrationCache(store)
    cache.set("key-2", _narration(tmp_path), Path("audio") / "gone.wav")

    assert cache.get("key-2") is None
    assert cache.misses == 1


def test_narration_cache_last_writer_wins(tmp_path: Path) -> None:
    """A second write for the same key should replace the first."""

    store = ArtifactStore(tmp_path)
    _write_merged_audio(tmp_path)
    cache = NarrationCache(store)
    first = _narration(tmp_path)
    second = NarrationResult((), 0.0, "def", provider_id="google", audio_url="/api/audio/x.wav")

    cache.set("key-3", first, Path("audio") / "x.wav")
    cache.set("key-3", second, Path("audio") / "x.wav")

    assert cache.get("key-3") == second
    assert not list((tmp_path / "cache" / "narration").glob(".*.tmp"))


@pytest.mark.parametrize(
    "entry_text",
    [
        "{trunc",
        "[]",
        '{"merged_path": null}',
        '{"narration": {"total_duration_seconds": "long", "settings_hash": "abc"}}',
        '{"narration": ["not", "a", "mapping"]}',
    ],
)
def test_narration_cache_treats_unreadable_entry_as_replaceable_miss(
    tmp_path: Path, entry_text: str
) -> None:
    """Corrupt or hand-edited entries should miss and be overwritten by the next write."""

    store = ArtifactStore(tmp_path)
    _write_merged_audio(tmp_path)
    cache = NarrationCache(store)
    entry_path = tmp_path / "cache" / "narration" / "key-4.json"
    entry_path.parent.mkdir(parents=True)
    entry_path.write_text(entry_text, encoding="utf-8")

    assert cache.get("key-4") is None
    assert (cache.hits, cache.misses) == (0, 1)

    cache.set("key-4", _narration(tmp_path), Path("audio") / "x.wav")

    assert cache.get("key-4") == _narration(tmp_path)
