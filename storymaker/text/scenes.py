"""Story-to-scene segmentation for storybooks.

Responsibilities:
- Split story text into a bounded number of scenes.
- Derive short scene descriptions and per-scene reading times.
- Compose the storybook narration script.
"""

from __future__ import annotations

import math
import re

from .chunking import Chunker

MAX_SCENES = 15
DEFAULT_SCENES = 8
WORDS_PER_MINUTE = 200

_MIN_PARAGRAPH_CHARS = 20
_MIN_SENTENCE_CHARS = 10
_SETTING_KEYWORDS = (
    ("forest", "in a mystical forest"),
    ("castle", "at a grand castle"),
    ("village", "in a charming village"),
    ("mountain", "in mountainous terrain"),
    ("ocean", "by the vast ocean"),
    ("garden", "in a magical garden"),
    ("library", "in an ancient library"),
)
_YOUNG_KEYWORDS = ("young", "child", "boy", "girl")
_MAGIC_KEYWORDS = ("magic", "spell", "enchanted")


def split_scenes(text: str, scene_count: int = DEFAULT_SCENES) -> list[str]:
    """Split a story into at most `scene_count` scenes.

    Paragraphs become scenes, merged into even groups when there are more
    paragraphs than scenes; unparagraphed text is grouped by sentences.

    Raises:
        ValueError: If `scene_count` is outside `1..15` or no usable text exists.
    """

    if not 1 <= scene_count <= MAX_SCENES:
        raise ValueError(f"`scene_count` must be between 1 and {MAX_SCENES}.")

    paragraphs = [
        " ".join(paragraph.split())
        for paragraph in re.split(r"\n\s*\n", text)
        if len(paragraph.strip()) > _MIN_PARAGRAPH_CHARS
    ]
    if len(paragraphs) >= 2:
        return _group(paragraphs, scene_count, separator="\n\n")

    sentences = [
        sentence
        for sentence in Chunker().sentences(text)
        if len(sentence) > _MIN_SENTENCE_CHARS
    ]
    if not sentences:
        if paragraphs:
            return paragraphs
        raise ValueError("Unable to split story content into scenes.")
    return _group(sentences, scene_count, separator=" ")


def _group(items: list[str], scene_count: int, separator: str) -> list[str]:
    if len(items) <= scene_count:
        return list(items)
    per_scene = math.ceil(len(items) / scene_count)
    return [
        separator.join(items[start : start + per_scene])
        for start in range(0, len(items), per_scene)
    ][:scene_count]


def scene_description(content: str) -> str:
    """Describe a scene from its first sentence plus setting and character cues."""

    first_sentence = re.split(r"[.!?]+", content, maxsplit=1)[0].strip() or content[:100]
    description = first_sentence
    lowered = content.lower()
    for keyword, phrase in _SETTING_KEYWORDS:
        if keyword in lowered:
            description += f" {phrase}"
            break
    if any(keyword in lowered for keyword in _YOUNG_KEYWORDS):
        description += ", featuring a young protagonist"
    if any(keyword in lowered for keyword in _MAGIC_KEYWORDS):
        description += ", with magical elements"
    return description


def reading_seconds(content: str) -> int:
    """Estimate page reading time, rounded up to whole minutes, in seconds."""

    return math.ceil(len(content.split()) / WORDS_PER_MINUTE) * 60


def narration_script(scenes: list[str]) -> str:
    """Compose the page-by-page narration script."""

    parts = ["Welcome to this interactive storybook."]
    for index, scene in enumerate(scenes):
        parts.append(f"Page {index + 1}. {scene}")
        if index < len(scenes) - 1:
            parts.append("Let's turn the page and continue our adventure.")
    parts.append("The End. Thank you for joining us on this magical journey!")
    return " ".join(parts)
