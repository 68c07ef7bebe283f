"""Text preparation components.

This package provides narration cleanup, sentence-aware chunking, scene
splitting, and the deterministic template story generator.
"""

from .chunking import Chunker
from .cleaners import (
    CollapseWhitespace,
    ExpandHonorifics,
    NarrationCleaner,
    NormalizeQuotes,
    StripMarkdown,
)
from .scenes import split_scenes

__all__ = [
    "Chunker",
    "CollapseWhitespace",
    "ExpandHonorifics",
    "NarrationCleaner",
    "NormalizeQuotes",
    "StripMarkdown",
    "split_scenes",
]
