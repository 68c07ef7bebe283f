"""Storybook assembly stage.

Responsibilities:
- Split a story into paged scenes with descriptions and reading times.
- Compose the storybook narration script and optionally narrate it.
"""

from __future__ import annotations

import threading

from ..models.datatypes import StoryRecord, Storybook, StorybookPage, VoiceSettings
from ..text.scenes import (
    DEFAULT_SCENES,
    narration_script,
    reading_seconds,
    scene_description,
    split_scenes,
)
from .narration import NarrationPipeline


class StorybookBuilder:
    """Build paged storybooks from story records."""

    def __init__(self, narration: NarrationPipeline | None = None) -> None:
        self.narration = narration

    def build(
        self,
        story: StoryRecord,
        scene_count: int = DEFAULT_SCENES,
        voice_settings: VoiceSettings | None = None,
        cancel_event: threading.Event | None = None,
    ) -> Storybook:
        """Build a storybook, narrating its script when voice settings are given.

        Without narration the total duration is the sum of page reading times;
        with narration it is the narrated audio duration.
        """

        scenes = split_scenes(story.content, scene_count)
        pages = tuple(
            StorybookPage(
                page_number=index + 1,
                content=scene,
                scene_description=scene_description(scene),
                estimated_reading_seconds=reading_seconds(scene),
            )
            for index, scene in enumerate(scenes)
        )
        script = narration_script(scenes)
        total_duration = float(sum(page.estimated_reading_seconds for page in pages))
        audio_url: str | None = None

        if voice_settings is not None:
            if self.narration is None:
                raise ValueError("Storybook narration requires a narration pipeline.")
            narrated = self.narration.narrate(script, voice_settings, cancel_event=cancel_event)
            total_duration = narrated.total_duration_seconds
            audio_url = narrated.audio_url

        return Storybook(
            story_id=story.id,
            title=f"{story.title} - Storybook",
            pages=pages,
            narration_script=script,
            total_duration_seconds=total_duration,
            audio_url=audio_url,
        )
