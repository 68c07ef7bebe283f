"""Speech-synthesis provider adapters.

Responsibilities:
- Map abstract voice types to provider-native voices.
- Build provider-specific synthesis payloads within each provider's parameter ranges.
- Normalize every response into a WAV payload with a positive duration.
"""

from __future__ import annotations

import base64
import binascii
import math
from typing import Any

from ..audio.wav import WavPayloadError, apply_gain, pcm_to_wav, wav_duration_seconds
from ..models.datatypes import ProviderResult, SpeechRequest, VoiceSettings
from .base import HttpProviderAdapter, ProviderKind
from .http_client import ProviderHttpClient

OPENAI_SPEECH_URL = "https://api.openai.com/v1/audio/speech"
ELEVENLABS_SPEECH_URL = "https://api.elevenlabs.io/v1/text-to-speech/{voice_id}"
GOOGLE_TTS_URL = "https://texttospeech.googleapis.com/v1/text:synthesize"

OPENAI_VOICES = {"male": "onyx", "female": "alloy", "child": "nova", "elderly": "echo"}
OPENAI_NATIVE_VOICES = frozenset(
    {"alloy", "ash", "coral", "echo", "fable", "nova", "onyx", "sage", "shimmer"}
)
ELEVENLABS_VOICES = {
    "male": "21m00Tcm4TlvDq8ikWAM",
    "female": "21m00Tcm4TlvDq8ikWAM",
    "child": "pNInz6obpgDQGcFmaJgB",
    "elderly": "AZnzlk1XvdvUeBnXmlld",
}
GOOGLE_VOICES = {
    "male": "en-US-Neural2-D",
    "female": "en-US-Neural2-F",
    "child": "en-US-Neural2-G",
    "elderly": "en-US-Neural2-J",
}
ELEVENLABS_SAMPLE_RATE = 24000


def _clamp(value: float, minimum: float, maximum: float) -> float:
    return max(minimum, min(maximum, value))


def resolve_voice(voice_id: str, voice_map: dict[str, str], default_type: str = "female") -> str:
    """Resolve a voice type to a provider voice, passing provider-native ids through."""

    token = voice_id.strip()
    mapped = voice_map.get(token.lower())
    if mapped is not None:
        return mapped
    return token or voice_map[default_type]


class _SpeechAdapterBase(HttpProviderAdapter[SpeechRequest]):
    """Shared WAV validation for HTTP speech adapters."""

    apply_volume_gain = True

    def _invoke(self, request: SpeechRequest) -> ProviderResult:
        if not request.text.strip():
            raise self.malformed("cannot synthesize empty text.")
        audio_bytes = self._synthesize(
            request.text, request.voice_settings, timeout_seconds=request.timeout_seconds
        )
        if self.apply_volume_gain:
            try:
                audio_bytes = apply_gain(audio_bytes, request.voice_settings.volume)
            except WavPayloadError as exc:
                raise self.malformed(str(exc)) from exc
        try:
            duration = wav_duration_seconds(audio_bytes)
        except WavPayloadError as exc:
            raise self.malformed(str(exc)) from exc
        if duration <= 0.0:
            raise self.malformed("returned zero-length audio.")
        return ProviderResult.ok_audio(self.provider_id, audio_bytes, duration)

    def _synthesize(
        self, text: str, settings: VoiceSettings, *, timeout_seconds: float | None = None
    ) -> bytes:
        raise NotImplementedError


class OpenAISpeechAdapter(_SpeechAdapterBase):
    """OpenAI audio-speech adapter returning WAV payloads."""

    def __init__(
        self,
        *,
        api_key: str | None,
        http_client: ProviderHttpClient,
        model: str = "tts-1",
    ) -> None:
        super().__init__(provider_id=ProviderKind.OPENAI.value, api_key=api_key, http_client=http_client)
        self.model = model

    def _synthesize(
        self, text: str, settings: VoiceSettings, *, timeout_seconds: float | None = None
    ) -> bytes:
        voice = resolve_voice(settings.voice_id, OPENAI_VOICES)
        if voice not in OPENAI_NATIVE_VOICES:
            voice = OPENAI_VOICES["female"]
        return self.http_client.post_json(
            OPENAI_SPEECH_URL,
            payload={
                "model": self.model,
                "voice": voice,
                "input": text,
                "response_format": "wav",
                "speed": _clamp(settings.speed_multiplier, 0.25, 4.0),
            },
            headers={"Authorization": f"Bearer {self.api_key}"},
            timeout_seconds=timeout_seconds,
        )


class ElevenLabsSpeechAdapter(_SpeechAdapterBase):
    """ElevenLabs text-to-speech adapter requesting raw PCM and wrapping it as WAV."""

    def __init__(
        self,
        *,
        api_key: str | None,
        http_client: ProviderHttpClient,
        model: str = "eleven_monolingual_v1",
    ) -> None:
        super().__init__(
            provider_id=ProviderKind.ELEVENLABS.value, api_key=api_key, http_client=http_client
        )
        self.model = model

    def _synthesize(
        self, text: str, settings: VoiceSettings, *, timeout_seconds: float | None = None
    ) -> bytes:
        voice_id = resolve_voice(settings.voice_id, ELEVENLABS_VOICES)
        pcm = self.http_client.post_json(
            ELEVENLABS_SPEECH_URL.format(voice_id=voice_id),
            payload={
                "text": text,
                "model_id": self.model,
                "voice_settings": {
                    "stability": 0.5,
                    "similarity_boost": 0.75,
                    "style": 0.0,
                    "use_speaker_boost": True,
                    "speed": _clamp(settings.speed_multiplier, 0.7, 1.2),
                },
            },
            headers={"xi-api-key": self.api_key, "Accept": "audio/pcm"},
            params={"output_format": f"pcm_{ELEVENLABS_SAMPLE_RATE}"},
            timeout_seconds=timeout_seconds,
        )
        if not pcm:
            raise self.malformed("returned empty audio.")
        return pcm_to_wav(pcm, sample_rate=ELEVENLABS_SAMPLE_RATE)


class GoogleSpeechAdapter(_SpeechAdapterBase):
    """Google Cloud Text-to-Speech adapter requesting LINEAR16 WAV output.

    Pitch and volume are applied by the provider, so no local gain is needed.
    """

    apply_volume_gain = False

    def __init__(
        self,
        *,
        api_key: str | None,
        http_client: ProviderHttpClient,
        language_code: str = "en-US",
    ) -> None:
        super().__init__(provider_id=ProviderKind.GOOGLE.value, api_key=api_key, http_client=http_client)
        self.language_code = language_code

    def _synthesize(
        self, text: str, settings: VoiceSettings, *, timeout_seconds: float | None = None
    ) -> bytes:
        response = self.http_client.post_json_payload(
            GOOGLE_TTS_URL,
            payload={
                "input": {"text": text},
                "voice": {
                    "languageCode": self.language_code,
                    "name": resolve_voice(settings.voice_id, GOOGLE_VOICES),
                },
                "audioConfig": {
                    "audioEncoding": "LINEAR16",
                    "sampleRateHertz": 24000,
                    "speakingRate": _clamp(settings.speed_multiplier, 0.25, 4.0),
                    "pitch": self.pitch_semitones(settings.pitch_percent),
                    "volumeGainDb": self.volume_gain_db(settings.volume),
                },
            },
            params={"key": self.api_key},
            timeout_seconds=timeout_seconds,
        )
        return self._decode_audio_content(response)

    @staticmethod
    def pitch_semitones(pitch_percent: float) -> float:
        """Map a `[-50, 50]` percent pitch shift onto Google's `[-20, 20]` semitones."""

        return round(pitch_percent * 20.0 / 50.0, 2)

    @staticmethod
    def volume_gain_db(volume: float) -> float:
        """Map a `[0, 1]` volume onto Google's `[-96, 0]` gain in decibels."""

        if volume <= 0.0:
            return -96.0
        return round(max(-96.0, 20.0 * math.log10(volume)), 2)

    def _decode_audio_content(self, response: Any) -> bytes:
        encoded = response.get("audioContent") if isinstance(response, dict) else None
        if not isinstance(encoded, str) or not encoded:
            raise self.malformed("response is missing `audioContent`.")
        try:
            return base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise self.malformed("returned undecodable `audioContent`.") from exc
