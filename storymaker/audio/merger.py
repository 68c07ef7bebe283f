"""Audio merge stage.

Responsibilities:
- Concatenate ordered chunk WAV artifacts into one narration file.
- Reject chunks whose WAV format differs from the first chunk.
- Publish the merged file only once it is complete.
"""

from __future__ import annotations

import os
from pathlib import Path
import tempfile
import wave

from ..models.datatypes import AudioArtifact
from .wav import DEFAULT_SAMPLE_RATE

_SILENT_FORMAT = (1, 2, DEFAULT_SAMPLE_RATE)


def _wav_format(wav_file: wave.Wave_read) -> tuple[int, int, int]:
    return (wav_file.getnchannels(), wav_file.getsampwidth(), wav_file.getframerate())


class AudioMerger:
    """Merge WAV chunk artifacts into one narration WAV."""

    def merge(self, artifacts: tuple[AudioArtifact, ...], output_path: Path) -> Path:
        """Write the artifacts' frames back to back, in the order given.

        An empty artifact tuple yields a silent mono 24 kHz file.

        Raises:
            ValueError: If a chunk's channel count, sample width, or rate
                differs from the first chunk.
        """

        output_path.parent.mkdir(parents=True, exist_ok=True)
        if artifacts:
            with wave.open(str(artifacts[0].audio_ref), "rb") as first:
                expected = _wav_format(first)
        else:
            expected = _SILENT_FORMAT

        file_descriptor, temp_name = tempfile.mkstemp(
            prefix=f".{output_path.stem}.", suffix=".wav.tmp", dir=output_path.parent
        )
        os.close(file_descriptor)
        try:
            with wave.open(temp_name, "wb") as merged:
                merged.setnchannels(expected[0])
                merged.setsampwidth(expected[1])
                merged.setframerate(expected[2])
                for artifact in artifacts:
                    with wave.open(str(artifact.audio_ref), "rb") as part:
                        if _wav_format(part) != expected:
                            raise ValueError(
                                f"Incompatible WAV parameters for chunk {artifact.chunk_index}: "
                                f"{artifact.audio_ref}"
                            )
                        merged.writeframes(part.readframes(part.getnframes()))
            os.replace(temp_name, output_path)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise
        return output_path
