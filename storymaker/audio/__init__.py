"""Audio assembly, caching, and housekeeping components.

This package measures and merges WAV chunk parts, derives narration cache
keys, and manages generated audio files on disk.
"""

from .assembler import Assembler
from .cache import NarrationCache
from .cache_keys import derive_settings_key, narration_cache_key
from .cleanup import AudioFileInfo, cleanup_audio_files, list_audio_files
from .merger import AudioMerger

__all__ = [
    "Assembler",
    "AudioFileInfo",
    "AudioMerger",
    "NarrationCache",
    "cleanup_audio_files",
    "derive_settings_key",
    "list_audio_files",
    "narration_cache_key",
]
