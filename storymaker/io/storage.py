"""Artifact storage abstraction.

Responsibilities:
- Provide deterministic filesystem storage for JSON and audio artifacts.
- Replace JSON artifacts atomically so concurrent writers never expose partial files.
- Persist, list, and delete story records by id without overwriting an existing id.
- Persist and load storybooks next to the stories they were built from.
"""

from __future__ import annotations

from dataclasses import replace
import json
import os
from pathlib import Path
import tempfile
from typing import Any

from ..models.datatypes import StoryRecord, Storybook

AUDIO_DIR = Path("audio")
CHUNKS_DIR = AUDIO_DIR / "chunks"
STORIES_DIR = Path("stories")
STORYBOOKS_DIR = Path("storybooks")


class ArtifactStore:
    """Filesystem-backed artifact store rooted at the configured output directory."""

    def __init__(self, root: Path) -> None:
        """Initialize the store with a root output directory."""

        self.root = root

    def path_for(self, relative_path: Path) -> Path:
        """Return the absolute path of an artifact."""

        return self.root / relative_path

    def save_json(self, relative_path: Path, payload: dict[str, Any]) -> Path:
        """Atomically save a JSON-serializable payload and return the final path."""

        path = self.root / relative_path
        temp_path = self._write_temp(path, payload)
        try:
            os.replace(temp_path, path)
        except BaseException:
            temp_path.unlink(missing_ok=True)
            raise
        return path

    def create_json(self, relative_path: Path, payload: dict[str, Any]) -> Path:
        """Atomically publish a JSON payload only if nothing exists at the path yet.

        Raises:
            FileExistsError: If the artifact already exists.
        """

        path = self.root / relative_path
        temp_path = self._write_temp(path, payload)
        try:
            os.link(temp_path, path)
        finally:
            temp_path.unlink(missing_ok=True)
        return path

    def _write_temp(self, path: Path, payload: dict[str, Any]) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        serialized = json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True)
        file_descriptor, temp_name = tempfile.mkstemp(
            prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
        )
        try:
            with os.fdopen(file_descriptor, "w", encoding="utf-8") as handle:
                handle.write(serialized)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise
        return Path(temp_name)

    def load_json(self, relative_path: Path) -> dict[str, Any]:
        """Load a JSON object artifact."""

        path = self.root / relative_path
        payload = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(payload, dict):
            raise ValueError(f"Artifact `{relative_path}` must contain a JSON object.")
        return payload

    def exists(self, relative_path: Path) -> bool:
        """Return whether the given artifact exists."""

        return (self.root / relative_path).exists()

    def list_files(self, relative_dir: Path, suffix: str) -> list[Path]:
        """List files with `suffix` directly under a directory, sorted by name."""

        directory = self.root / relative_dir
        if not directory.is_dir():
            return []
        return sorted(
            path for path in directory.iterdir() if path.is_file() and path.suffix == suffix
        )

    def save_story(self, story: StoryRecord) -> Path:
        """Persist a story record under `stories/<id>.json`."""

        return self.save_json(STORIES_DIR / f"{story.id}.json", story.as_payload())

    def load_story(self, story_id: str) -> StoryRecord:
        """Load a persisted story record by id."""

        relative = STORIES_DIR / f"{story_id}.json"
        if not self.exists(relative):
            raise FileNotFoundError(f"Story `{story_id}` was not found in {self.root / STORIES_DIR}.")
        return StoryRecord.from_payload(self.load_json(relative))

    def save_new_story(self, story: StoryRecord) -> StoryRecord:
        """Persist a freshly generated story without replacing an existing one.

        When `stories/<id>.json` is already taken, the id gains a `-1`, `-2`, ...
        suffix until a free one is found. Returns the record as saved.
        """

        candidate = story
        suffix = 0
        while True:
            try:
                self.create_json(STORIES_DIR / f"{candidate.id}.json", candidate.as_payload())
            except FileExistsError:
                suffix += 1
                candidate = replace(story, id=f"{story.id}-{suffix}")
                continue
            return candidate

    def list_stories(self) -> list[StoryRecord]:
        """Load every persisted story, ordered by file name."""

        return [
            StoryRecord.from_payload(self.load_json(STORIES_DIR / path.name))
            for path in self.list_files(STORIES_DIR, ".json")
        ]

    def delete_story(self, story_id: str) -> bool:
        """Delete a story and its storybook; return whether the story existed."""

        self.delete_storybook(story_id)
        story_path = self.root / STORIES_DIR / f"{story_id}.json"
        if not story_path.exists():
            return False
        story_path.unlink(missing_ok=True)
        return True

    def save_storybook(self, storybook: Storybook) -> Path:
        """Persist a storybook under `storybooks/<story id>.json`."""

        return self.save_json(
            STORYBOOKS_DIR / f"{storybook.story_id}.json", storybook.as_payload()
        )

    def load_storybook(self, story_id: str) -> Storybook:
        """Load the persisted storybook of a story."""

        relative = STORYBOOKS_DIR / f"{story_id}.json"
        if not self.exists(relative):
            raise FileNotFoundError(
                f"No storybook for story `{story_id}` in {self.root / STORYBOOKS_DIR}."
            )
        return Storybook.from_payload(self.load_json(relative))

    def delete_storybook(self, story_id: str) -> bool:
        """Delete a persisted storybook; return whether one existed."""

        path = self.root / STORYBOOKS_DIR / f"{story_id}.json"
        if not path.exists():
            return False
        path.unlink(missing_ok=True)
        return True
