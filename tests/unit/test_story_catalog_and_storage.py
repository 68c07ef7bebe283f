"""Unit tests for persisted story storage, storybook storage, and story management."""

from __future__ import annotations

import io
import json
from pathlib import Path

import pytest

from storymaker.io.storage import ArtifactStore
from storymaker.models.datatypes import Genre, StoryLength, StoryRecord, Storybook, StorybookPage
from storymaker.pipeline.catalog import StoryCatalog, StoryOwnershipError, StoryQuery, StorySort
from storymaker.telemetry.logger import RunLogger


def _story(story_id: str, **overrides: object) -> StoryRecord:
    values: dict[str, object] = {
        "id": story_id,
        "title": f"Story {story_id}",
        "content": "The fox crossed the river at dawn.",
        "genre": Genre.ADVENTURE,
        "length": StoryLength.SHORT,
        "prompt": "a fox",
        "created_at": "2026-03-14T15:09:26+00:00",
        "word_count": 7,
        "estimated_reading_minutes": 1,
    }
    values.update(overrides)
    return StoryRecord(**values)  # type: ignore[arg-type]


def _storybook(story_id: str) -> Storybook:
    return Storybook(
        story_id=story_id,
        title="Fox - Storybook",
        pages=(StorybookPage(1, "The fox crossed the river.", "A river at dawn", 6),),
        narration_script="Welcome to this interactive storybook. Page 1. The fox crossed the river.",
        total_duration_seconds=6.0,
    )


def test_save_new_story_never_replaces_a_story_with_the_same_id(tmp_path: Path) -> None:
    """Stories generated in the same millisecond should get distinct ids."""

    store = ArtifactStore(tmp_path)
    first = store.save_new_story(_story("1700000000000", title="First"))
    second = store.save_new_story(_story("1700000000000", title="Second"))
    third = store.save_new_story(_story("1700000000000", title="Third"))

    assert first.id == "1700000000000"
    assert second.id == "1700000000000-1"
    assert third.id == "1700000000000-2"
    assert store.load_story("1700000000000").title == "First"
    assert store.load_story("1700000000000-1").title == "Second"
    assert sorted(path.name for path in (tmp_path / "stories").iterdir()) == [
        "1700000000000-1.json",
        "1700000000000-2.json",
        "1700000000000.json",
    ]


def test_storybook_is_saved_loaded_and_deleted_with_its_story(tmp_path: Path) -> None:
    """Deleting a story should remove its storybook as well."""

    store = ArtifactStore(tmp_path)
    store.save_story(_story("42"))
    store.save_storybook(_storybook("42"))

    assert store.load_storybook("42") == _storybook("42")
    assert store.delete_story("42") is True
    assert store.delete_story("42") is False
    assert not (tmp_path / "storybooks" / "42.json").exists()
    with pytest.raises(FileNotFoundError, match="No storybook for story `42`"):
        store.load_storybook("42")


def test_find_filters_by_creator_and_genre_and_orders_by_creation_time(tmp_path: Path) -> None:
    store = ArtifactStore(tmp_path)
    store.save_story(_story("a", creator_id="u1", created_at="2026-01-01T00:00:00+00:00"))
    store.save_story(_story("b", creator_id="u1", created_at="2026-01-03T00:00:00+00:00"))
    store.save_story(
        _story("c", creator_id="u1", genre=Genre.MYSTERY, created_at="2026-01-02T00:00:00+00:00")
    )
    store.save_story(_story("d", creator_id="u2", created_at="2026-01-04T00:00:00+00:00"))
    catalog = StoryCatalog(store)

    assert [story.id for story in catalog.find()] == ["d", "b", "c", "a"]
    assert [story.id for story in catalog.find(StoryQuery(creator_id="u1"))] == ["b", "c", "a"]
    assert [
        story.id for story in catalog.find(StoryQuery(creator_id="u1", sort=StorySort.OLDEST))
    ] == ["a", "c", "b"]
    assert [story.id for story in catalog.find(StoryQuery(genre=Genre.MYSTERY))] == ["c"]
    assert [story.id for story in catalog.find(StoryQuery(limit=2))] == ["d", "b"]
    assert catalog.find(StoryQuery(creator_id="nobody")) == []


def test_find_on_empty_output_directory_returns_no_stories(tmp_path: Path) -> None:
    assert StoryCatalog(ArtifactStore(tmp_path / "missing")).find() == []


def test_sort_order_parsing_rejects_unknown_values() -> None:
    assert StorySort.parse(" Oldest ") is StorySort.OLDEST
    with pytest.raises(ValueError, match="Unsupported sort order `popular`"):
        StorySort.parse("popular")


def test_content_edit_recomputes_metrics_and_drops_derived_audio(tmp_path: Path) -> None:
    """New text should invalidate the narration reference and the storybook."""

    sink = io.StringIO()
    store = ArtifactStore(tmp_path)
    store.save_story(
        _story(
            "7",
            has_audio=True,
            audio_url="/audio/old.wav",
            audio_duration_seconds=4.0,
            audio_settings_hash="abc",
        )
    )
    store.save_storybook(_storybook("7"))
    catalog = StoryCatalog(store, run_logger=RunLogger(sink=sink))

    updated = catalog.update("7", content="word " * 401)

    assert updated.word_count == 401
    assert updated.estimated_reading_minutes == 3
    assert updated.has_audio is False
    assert updated.audio_url is None
    assert updated.audio_settings_hash is None
    assert store.load_story("7") == updated
    assert not store.exists(Path("storybooks") / "7.json")
    assert "stage=update_story event=complete content_changed=True story=7" in sink.getvalue()


def test_title_edit_keeps_audio_and_storybook(tmp_path: Path) -> None:
    store = ArtifactStore(tmp_path)
    store.save_story(_story("7", has_audio=True, audio_url="/audio/old.wav"))
    store.save_storybook(_storybook("7"))

    updated = StoryCatalog(store).update("7", title="  The River Fox  ")

    assert updated.title == "The River Fox"
    assert updated.has_audio is True
    assert updated.audio_url == "/audio/old.wav"
    assert store.exists(Path("storybooks") / "7.json")
    payload = json.loads((tmp_path / "stories" / "7.json").read_text(encoding="utf-8"))
    assert payload["title"] == "The River Fox"


@pytest.mark.parametrize(
    ("edits", "message"),
    [
        ({}, "Nothing to update"),
        ({"title": "   "}, "title must not be empty"),
        ({"title": "x" * 201}, "at most 200 characters"),
        ({"content": " \n "}, "content must not be empty"),
    ],
)
def test_invalid_edits_leave_the_story_unchanged(
    tmp_path: Path, edits: dict[str, str], message: str
) -> None:
    store = ArtifactStore(tmp_path)
    original = _story("9")
    store.save_story(original)

    with pytest.raises(ValueError, match=message):
        StoryCatalog(store).update("9", **edits)

    assert store.load_story("9") == original


def test_edits_and_deletes_are_refused_for_other_creators(tmp_path: Path) -> None:
    """A creator id that does not own the story should block edits and deletes."""

    store = ArtifactStore(tmp_path)
    store.save_story(_story("5", creator_id="owner"))
    catalog = StoryCatalog(store)

    with pytest.raises(StoryOwnershipError, match="belongs to another creator"):
        catalog.update("5", title="Stolen", creator_id="intruder")
    with pytest.raises(StoryOwnershipError):
        catalog.delete("5", creator_id="intruder")

    catalog.delete("5", creator_id="owner")
    assert not store.exists(Path("stories") / "5.json")


def test_deleting_a_missing_story_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError, match="Story `404` was not found"):
        StoryCatalog(ArtifactStore(tmp_path)).delete("404")
