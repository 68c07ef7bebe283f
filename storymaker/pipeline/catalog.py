"""Persisted story management.

Responsibilities:
- List persisted stories filtered by creator and genre, newest or oldest first.
- Edit a story's title or content, keeping derived reading metrics current.
- Delete stories together with their storybooks.

An edit that changes the content also drops the story's narration reference
and its storybook.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
import math

from ..io.storage import ArtifactStore
from ..models.datatypes import Genre, StoryRecord
from ..telemetry.logger import RunLogger
from ..text.templates import word_count
from .story import WORDS_PER_MINUTE

MAX_TITLE_CHARS = 200


class StorySort(str, Enum):
    """Story listing order by creation time."""

    NEWEST = "newest"
    OLDEST = "oldest"

    @classmethod
    def parse(cls, value: str) -> StorySort:
        normalized = value.strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        choices = ", ".join(member.value for member in cls)
        raise ValueError(f"Unsupported sort order `{value}`. Expected one of: {choices}.")


@dataclass(frozen=True, slots=True)
class StoryQuery:
    """Filters and ordering for a story listing."""

    creator_id: str | None = None
    genre: Genre | None = None
    sort: StorySort = StorySort.NEWEST
    limit: int | None = None


class StoryOwnershipError(PermissionError):
    """Raised when a caller edits or deletes another creator's story."""


class StoryCatalog:
    """Query and maintain the stories persisted in an `ArtifactStore`."""

    def __init__(self, store: ArtifactStore, *, run_logger: RunLogger | None = None) -> None:
        self.store = store
        self.run_logger = run_logger

    def find(self, query: StoryQuery | None = None) -> list[StoryRecord]:
        """Return the stories matching `query`, ordered by creation time.

        Ties on `created_at` fall back to the id, so listings are stable.
        """

        query = query or StoryQuery()
        stories = [
            story
            for story in self.store.list_stories()
            if (query.creator_id is None or story.creator_id == query.creator_id)
            and (query.genre is None or story.genre is query.genre)
        ]
        stories.sort(
            key=lambda story: (story.created_at, story.id),
            reverse=query.sort is StorySort.NEWEST,
        )
        if query.limit is not None:
            stories = stories[: max(0, query.limit)]
        return stories

    def get(self, story_id: str) -> StoryRecord:
        return self.store.load_story(story_id)

    def update(
        self,
        story_id: str,
        *,
        title: str | None = None,
        content: str | None = None,
        creator_id: str | None = None,
    ) -> StoryRecord:
        """Apply a title and/or content edit and persist the result.

        Raises:
            FileNotFoundError: If the story does not exist.
            StoryOwnershipError: If `creator_id` is given and does not own the story.
            ValueError: If nothing changes or an edited field is invalid.
        """

        story = self._owned_story(story_id, creator_id)
        if title is None and content is None:
            raise ValueError("Nothing to update; pass a new title or content.")

        updated = story
        if title is not None:
            cleaned_title = title.strip()
            if not cleaned_title:
                raise ValueError("Story title must not be empty.")
            if len(cleaned_title) > MAX_TITLE_CHARS:
                raise ValueError(f"Story title must be at most {MAX_TITLE_CHARS} characters.")
            updated = replace(updated, title=cleaned_title)

        content_changed = False
        if content is not None:
            if not content.strip():
                raise ValueError("Story content must not be empty.")
            content_changed = content != story.content
            if content_changed:
                words = word_count(content)
                updated = replace(
                    updated,
                    content=content,
                    word_count=words,
                    estimated_reading_minutes=math.ceil(words / WORDS_PER_MINUTE),
                    has_audio=False,
                    audio_url=None,
                    audio_duration_seconds=None,
                    audio_settings_hash=None,
                )

        self.store.save_story(updated)
        if content_changed:
            self.store.delete_storybook(story_id)
        if self.run_logger is not None:
            self.run_logger.log_stage_complete(
                "update_story", story=story_id, content_changed=content_changed
            )
        return updated

    def delete(self, story_id: str, *, creator_id: str | None = None) -> None:
        """Delete a story and its storybook.

        Raises:
            FileNotFoundError: If the story does not exist.
            StoryOwnershipError: If `creator_id` is given and does not own the story.
        """

        self._owned_story(story_id, creator_id)
        self.store.delete_story(story_id)
        if self.run_logger is not None:
            self.run_logger.log_stage_complete("delete_story", story=story_id)

    def _owned_story(self, story_id: str, creator_id: str | None) -> StoryRecord:
        story = self.store.load_story(story_id)
        if creator_id is not None and story.creator_id != creator_id:
            raise StoryOwnershipError(f"Story `{story_id}` belongs to another creator.")
        return story
