"""Shared pytest fixtures for the full Storymaker test suite."""

from __future__ import annotations

import io
from typing import Callable
import wave

import pytest

VALID_API_KEYS = {
    "openai": "sk-" + "a1B2c3D4e5" * 4 + "f6G7h8J9",
    "huggingface": "hf_" + "q" * 34,
    "google": "AIza" + "S" * 35,
    "google_tts": "AIza" + "T" * 35,
    "elevenlabs": "0123456789abcdef" * 2,
}


def build_wav(seconds: float, *, sample_rate: int = 24000, amplitude: int = 1000) -> bytes:
    """Return a mono 16-bit WAV payload of the requested duration."""

    frame_count = int(round(seconds * sample_rate))
    sample = amplitude.to_bytes(2, "little", signed=True)
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav_file:
        wav_file.setnchannels(1)
        wav_file.setsampwidth(2)
        wav_file.setframerate(sample_rate)
        wav_file.writeframes(sample * frame_count)
    return buffer.getvalue()


@pytest.fixture
def wav_factory() -> Callable[..., bytes]:
    """Provide a deterministic WAV payload builder."""

    return build_wav


@pytest.fixture
def valid_api_keys() -> dict[str, str]:
    """Provide well-formed API keys for every provider slot."""

    return dict(VALID_API_KEYS)
