"""Unit tests for speech-synthesis provider adapters."""

from __future__ import annotations

import base64
import json

import pytest
import requests

from storymaker.audio.wav import wav_duration_seconds
from storymaker.errors import ErrorKind
from storymaker.models.datatypes import SpeechRequest, VoiceSettings
from storymaker.providers.http_client import ProviderHttpClient
from storymaker.providers.speech import (
    ElevenLabsSpeechAdapter,
    GoogleSpeechAdapter,
    OpenAISpeechAdapter,
    resolve_voice,
    OPENAI_VOICES,
)


class _MockRequestsResponse:
    """Minimal requests response mock returning raw bytes."""

    def __init__(self, content: bytes, status_code: int = 200) -> None:
        self.content = content
        self.status_code = status_code
        self.headers: dict[str, str] = {}

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}", response=self)


def _install_post(monkeypatch: pytest.MonkeyPatch, content: bytes) -> dict[str, object]:
    captured: dict[str, object] = {}

    def _mock_post(url: str, **kwargs: object) -> _MockRequestsResponse:
        captured["url"] = url
        captured.update(kwargs)
        return _MockRequestsResponse(content)

    monkeypatch.setattr(requests, "post", _mock_post)
    return captured


def test_resolve_voice_maps_types_and_passes_native_ids_through() -> None:
    """Voice types map to provider voices; unknown ids are provider-native."""

    assert resolve_voice("Male", OPENAI_VOICES) == "onyx"
    assert resolve_voice("shimmer", OPENAI_VOICES) == "shimmer"
    assert resolve_voice("   ", OPENAI_VOICES) == "alloy"


def test_openai_speech_adapter_returns_wav_with_duration(
    monkeypatch: pytest.MonkeyPatch, valid_api_keys: dict[str, str], wav_factory
) -> None:  # type: ignore[no-untyped-def]
    """OpenAI speech should request WAV output with a mapped voice and clamped speed."""

    captured = _install_post(monkeypatch, wav_factory(1.25))
    adapter = OpenAISpeechAdapter(
        api_key=valid_api_keys["openai"],
        http_client=ProviderHttpClient(provider_label="OpenAI speech"),
    )

    result = adapter.call(
        SpeechRequest(text="Hello there.", voice_settings=VoiceSettings(voice_id="child", speed_multiplier=2.0))
    )

    assert result.success is True
    assert result.duration_seconds == pytest.approx(1.25)
    assert captured["url"] == "https://api.openai.com/v1/audio/speech"
    assert captured["json"] == {  # type: ignore[comparison-overlap]
        "model": "tts-1",
        "voice": "nova",
        "input": "Hello there.",
        "response_format": "wav",
        "speed": 2.0,
    }


def test_openai_speech_applies_volume_as_pcm_gain(
    monkeypatch: pytest.MonkeyPatch, valid_api_keys: dict[str, str], wav_factory
) -> None:  # type: ignore[no-untyped-def]
    """Volume below one should scale returned samples while keeping the duration."""

    _install_post(monkeypatch, wav_factory(0.5, amplitude=1000))
    adapter = OpenAISpeechAdapter(
        api_key=valid_api_keys["openai"],
        http_client=ProviderHttpClient(provider_label="OpenAI speech"),
    )

    result = adapter.call(SpeechRequest(text="Quiet.", voice_settings=VoiceSettings(volume=0.25)))

    assert result.audio_bytes is not None
    assert result.audio_bytes[-2:] == (250).to_bytes(2, "little", signed=True)
    assert result.duration_seconds == pytest.approx(0.5)


def test_elevenlabs_adapter_wraps_pcm_and_clamps_speed(
    monkeypatch: pytest.MonkeyPatch, valid_api_keys: dict[str, str]
) -> None:
    """ElevenLabs raw PCM should be wrapped as 24 kHz WAV."""

    captured = _install_post(monkeypatch, b"\x10\x00" * 48000)
    adapter = ElevenLabsSpeechAdapter(
        api_key=valid_api_keys["elevenlabs"],
        http_client=ProviderHttpClient(provider_label="ElevenLabs speech"),
    )

    result = adapter.call(
        SpeechRequest(text="Hello.", voice_settings=VoiceSettings(voice_id="elderly", speed_multiplier=0.5))
    )

    assert result.success is True
    assert result.duration_seconds == pytest.approx(2.0)
    assert str(captured["url"]).endswith("/text-to-speech/AZnzlk1XvdvUeBnXmlld")
    assert captured["params"] == {"output_format": "pcm_24000"}
    assert captured["headers"]["xi-api-key"] == valid_api_keys["elevenlabs"]  # type: ignore[index]
    assert captured["json"]["voice_settings"]["speed"] == 0.7  # type: ignore[index]


def test_google_speech_adapter_sends_pitch_and_volume_gain(
    monkeypatch: pytest.MonkeyPatch, valid_api_keys: dict[str, str], wav_factory
) -> None:  # type: ignore[no-untyped-def]
    """Google TTS should receive semitone pitch and decibel gain and return decoded audio."""

    encoded = base64.b64encode(wav_factory(0.75)).decode("ascii")
    captured = _install_post(monkeypatch, json.dumps({"audioContent": encoded}).encode("utf-8"))
    adapter = GoogleSpeechAdapter(
        api_key=valid_api_keys["google_tts"],
        http_client=ProviderHttpClient(provider_label="Google speech"),
    )

    result = adapter.call(
        SpeechRequest(
            text="Hello.",
            voice_settings=VoiceSettings(voice_id="male", pitch_percent=25, volume=0.1),
        )
    )

    assert result.success is True
    assert result.audio_bytes is not None
    assert wav_duration_seconds(result.audio_bytes) == pytest.approx(0.75)
    audio_config = captured["json"]["audioConfig"]  # type: ignore[index]
    assert audio_config["pitch"] == 10.0
    assert audio_config["volumeGainDb"] == -20.0
    assert captured["json"]["voice"]["name"] == "en-US-Neural2-D"  # type: ignore[index]


def test_google_volume_mapping_floors_silence() -> None:
    """Zero volume should map onto the provider's minimum gain."""

    assert GoogleSpeechAdapter.volume_gain_db(0.0) == -96.0
    assert GoogleSpeechAdapter.volume_gain_db(1.0) == 0.0
    assert GoogleSpeechAdapter.pitch_semitones(-50) == -20.0


def test_non_wav_audio_is_malformed(
    monkeypatch: pytest.MonkeyPatch, valid_api_keys: dict[str, str]
) -> None:
    """Payloads that are not WAV containers should be rejected."""

    _install_post(monkeypatch, b"ID3\x03\x00 mp3 frames")
    adapter = OpenAISpeechAdapter(
        api_key=valid_api_keys["openai"],
        http_client=ProviderHttpClient(provider_label="OpenAI speech"),
    )

    result = adapter.call(SpeechRequest(text="Hello.", voice_settings=VoiceSettings()))

    assert result.error_kind is ErrorKind.MALFORMED_RESPONSE


def test_zero_length_audio_is_malformed(
    monkeypatch: pytest.MonkeyPatch, valid_api_keys: dict[str, str], wav_factory
) -> None:  # type: ignore[no-untyped-def]
    """A WAV without frames should not count as synthesized speech."""

    _install_post(monkeypatch, wav_factory(0.0))
    adapter = OpenAISpeechAdapter(
        api_key=valid_api_keys["openai"],
        http_client=ProviderHttpClient(provider_label="OpenAI speech"),
    )

    result = adapter.call(SpeechRequest(text="Hello.", voice_settings=VoiceSettings()))

    assert result.error_kind is ErrorKind.MALFORMED_RESPONSE
    assert "zero-length" in result.detail
