"""WAV codec helpers for synthesized speech payloads.

Responsibilities:
- Measure WAV payload durations without transcoding.
- Wrap raw PCM responses into WAV containers.
- Apply volume as a clamped PCM gain.
"""

from __future__ import annotations

import io
import wave

DEFAULT_SAMPLE_RATE = 24000


class WavPayloadError(ValueError):
    """Raised when a payload is not a readable WAV container."""


def wav_duration_seconds(audio_bytes: bytes) -> float:
    """Compute WAV duration in seconds from raw payload bytes."""

    try:
        with wave.open(io.BytesIO(audio_bytes), "rb") as wav_file:
            frame_count = wav_file.getnframes()
            sample_rate = wav_file.getframerate()
    except (wave.Error, EOFError) as exc:
        raise WavPayloadError("Speech response is not a readable WAV payload.") from exc
    if sample_rate <= 0:
        raise WavPayloadError("Speech response has invalid WAV sample rate.")
    return frame_count / float(sample_rate)


def pcm_to_wav(
    pcm_bytes: bytes,
    *,
    sample_rate: int = DEFAULT_SAMPLE_RATE,
    channels: int = 1,
    sample_width: int = 2,
) -> bytes:
    """Wrap signed little-endian PCM frames into a WAV container."""

    frame_width = channels * sample_width
    usable = len(pcm_bytes) - (len(pcm_bytes) % frame_width)
    with io.BytesIO() as buffer:
        with wave.open(buffer, "wb") as wav_file:
            wav_file.setnchannels(channels)
            wav_file.setsampwidth(sample_width)
            wav_file.setframerate(sample_rate)
            wav_file.writeframes(pcm_bytes[:usable])
        return buffer.getvalue()


def apply_gain(audio_bytes: bytes, gain: float) -> bytes:
    """Scale WAV sample amplitudes by `gain`, returning a new WAV payload.

    A gain of 1.0 returns the input unchanged.
    """

    if gain == 1.0:
        return audio_bytes
    try:
        with wave.open(io.BytesIO(audio_bytes), "rb") as wav_file:
            params = wav_file.getparams()
            frames = wav_file.readframes(params.nframes)
    except (wave.Error, EOFError) as exc:
        raise WavPayloadError("Speech response is not a readable WAV payload.") from exc

    scaled = _scale_pcm(frames, params.sampwidth, gain)
    with io.BytesIO() as buffer:
        with wave.open(buffer, "wb") as wav_file:
            wav_file.setnchannels(params.nchannels)
            wav_file.setsampwidth(params.sampwidth)
            wav_file.setframerate(params.framerate)
            wav_file.writeframes(scaled)
        return buffer.getvalue()


def _scale_pcm(frames: bytes, sample_width: int, gain: float) -> bytes:
    """Scale PCM payload with clamping and return scaled bytes."""

    if sample_width not in (1, 2, 3, 4) or not frames:
        return frames

    if sample_width == 1:
        min_value, max_value = -128, 127
    else:
        min_value = -(1 << (sample_width * 8 - 1))
        max_value = (1 << (sample_width * 8 - 1)) - 1

    scaled_chunks: list[bytes] = []
    for offset in range(0, len(frames) - sample_width + 1, sample_width):
        chunk = frames[offset : offset + sample_width]
        if sample_width == 1:
            sample = chunk[0] - 128
        else:
            sample = int.from_bytes(chunk, "little", signed=True)
        clamped = min(max_value, max(min_value, int(round(sample * gain))))
        if sample_width == 1:
            scaled_chunks.append(bytes([clamped + 128]))
        else:
            scaled_chunks.append(clamped.to_bytes(sample_width, "little", signed=True))
    return b"".join(scaled_chunks)
