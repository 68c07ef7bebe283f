"""Core datatypes shared across Storymaker modules.

Responsibilities:
- Represent immutable records exchanged between generation stages.
- Provide explicit typing for reproducibility and JSON serialization.

Key types:
- `GenerationRequest`, `VoiceSettings`, `SpeechRequest`, `ProviderResult`,
  `TextChunk`, `AudioArtifact`, `NarrationResult`, `StoryRecord`,
  `StorybookPage`, and `Storybook`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

from ..errors import ErrorKind
from ..parsing import normalize_optional_string, parse_float_in_range


class Genre(str, Enum):
    """Supported story genres."""

    FANTASY = "fantasy"
    ADVENTURE = "adventure"
    MYSTERY = "mystery"
    ROMANCE = "romance"
    SCI_FI = "sci-fi"
    HORROR = "horror"
    COMEDY = "comedy"
    DRAMA = "drama"
    THRILLER = "thriller"

    @classmethod
    def parse(cls, value: object) -> Genre:
        """Parse a genre token case-insensitively."""

        normalized = normalize_optional_string(value)
        if normalized is not None:
            token = normalized.lower().replace("_", "-")
            if token == "scifi":
                token = "sci-fi"
            for member in cls:
                if member.value == token:
                    return member
        supported = ", ".join(member.value for member in cls)
        raise ValueError(f"Unsupported genre `{value}`; supported: {supported}.")


class StoryLength(str, Enum):
    """Supported story lengths with their target word counts."""

    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"
    VERY_LONG = "very-long"

    @property
    def target_words(self) -> int:
        """Return the approximate word count requested from providers."""

        return _TARGET_WORDS[self]

    @property
    def label(self) -> str:
        """Return the human-readable length label used in prompts."""

        return self.value.replace("-", " ")

    @classmethod
    def parse(cls, value: object) -> StoryLength:
        """Parse a length token, accepting `very long` and `very_long` spellings."""

        normalized = normalize_optional_string(value)
        if normalized is not None:
            token = "-".join(normalized.lower().replace("_", " ").split())
            for member in cls:
                if member.value == token:
                    return member
        supported = ", ".join(member.value for member in cls)
        raise ValueError(f"Unsupported length `{value}`; supported: {supported}.")


_TARGET_WORDS = {
    StoryLength.SHORT: 800,
    StoryLength.MEDIUM: 1800,
    StoryLength.LONG: 3500,
    StoryLength.VERY_LONG: 5500,
}


@dataclass(frozen=True, slots=True)
class VoiceSettings:
    """Narration voice settings.

    Attributes:
        voice_id: Voice type (`male`, `female`, `child`, `elderly`) or a
            provider-native voice identifier.
        pitch_percent: Relative pitch shift in percent, within `[-50, 50]`.
        speed_multiplier: Speaking-rate multiplier, within `[0.5, 2.0]`.
        volume: Output volume, within `[0, 1]`.
    """

    voice_id: str = "female"
    pitch_percent: float = 0.0
    speed_multiplier: float = 1.0
    volume: float = 1.0

    def __post_init__(self) -> None:
        voice_id = normalize_optional_string(self.voice_id)
        if voice_id is None:
            raise ValueError("`voice_id` must be a non-empty string.")
        object.__setattr__(self, "voice_id", voice_id)
        object.__setattr__(
            self,
            "pitch_percent",
            parse_float_in_range(self.pitch_percent, "pitch_percent", minimum=-50.0, maximum=50.0),
        )
        object.__setattr__(
            self,
            "speed_multiplier",
            parse_float_in_range(
                self.speed_multiplier, "speed_multiplier", minimum=0.5, maximum=2.0
            ),
        )
        object.__setattr__(
            self,
            "volume",
            parse_float_in_range(self.volume, "volume", minimum=0.0, maximum=1.0),
        )

    def as_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable mapping of the settings."""

        return {
            "voice_id": self.voice_id,
            "pitch_percent": self.pitch_percent,
            "speed_multiplier": self.speed_multiplier,
            "volume": self.volume,
        }

    @classmethod
    def from_mapping(
        cls, payload: Mapping[str, Any], defaults: VoiceSettings | None = None
    ) -> VoiceSettings:
        """Build settings from a mapping, filling missing keys from `defaults`.

        The camelCase keys used by the web client (`voice`, `pitch`, `speed`)
        are accepted alongside the canonical field names.
        """

        base = defaults if defaults is not None else cls()
        aliases = {
            "voice_id": ("voice_id", "voiceId", "voice"),
            "pitch_percent": ("pitch_percent", "pitchPercent", "pitch"),
            "speed_multiplier": ("speed_multiplier", "speedMultiplier", "speed"),
            "volume": ("volume",),
        }
        values: dict[str, Any] = {}
        for field_name, keys in aliases.items():
            for key in keys:
                if key in payload and payload[key] is not None:
                    values[field_name] = payload[key]
                    break
        return replace(base, **values)


@dataclass(frozen=True, slots=True)
class GenerationRequest:
    """Immutable story generation request."""

    subject_text: str
    genre: Genre = Genre.FANTASY
    length: StoryLength = StoryLength.MEDIUM
    voice_settings: VoiceSettings = field(default_factory=VoiceSettings)

    def __post_init__(self) -> None:
        subject = normalize_optional_string(self.subject_text)
        if subject is None:
            raise ValueError("`subject_text` must be a non-empty prompt.")
        object.__setattr__(self, "subject_text", subject)


@dataclass(frozen=True, slots=True)
class SpeechRequest:
    """One speech-synthesis call for a single text chunk.

    `timeout_seconds`, when set, caps the provider HTTP timeout for this call.
    """

    text: str
    voice_settings: VoiceSettings
    chunk_index: int = 0
    timeout_seconds: float | None = None


class PromptPurpose(str, Enum):
    """What a text-provider call is asked to produce."""

    STORY = "story"
    ENHANCE = "enhance"


@dataclass(frozen=True, slots=True)
class TextPrompt:
    """One text-generation call derived from a generation request.

    Attributes:
        generation: Originating request; template providers render from it directly.
        purpose: Story body or prompt enhancement.
        user_prompt: Provider-facing instruction text.
        system_prompt: Role instruction for chat-style providers.
        max_tokens: Output budget requested from the provider.
        temperature: Sampling temperature.
        min_chars: Shortest response accepted as a usable result.
    """

    generation: GenerationRequest
    purpose: PromptPurpose
    user_prompt: str
    system_prompt: str
    max_tokens: int
    temperature: float = 0.8
    min_chars: int = 1


@dataclass(frozen=True, slots=True)
class TextChunk:
    """A bounded text segment prepared for a single synthesis call.

    Attributes:
        index: 0-based position in the chunk sequence.
        content: Whitespace-normalized chunk text.
    """

    index: int
    content: str

    @property
    def char_length(self) -> int:
        """Return the chunk length in characters."""

        return len(self.content)


@dataclass(frozen=True, slots=True)
class AudioArtifact:
    """Metadata for one synthesized chunk of audio."""

    chunk_index: int
    audio_ref: Path
    duration_seconds: float


@dataclass(frozen=True, slots=True)
class ProviderResult:
    """Outcome of exactly one provider adapter invocation."""

    provider_id: str
    success: bool
    text: str | None = None
    audio_bytes: bytes | None = None
    duration_seconds: float | None = None
    artifacts: tuple[AudioArtifact, ...] = ()
    error_kind: ErrorKind | None = None
    detail: str = ""
    retry_after_seconds: float | None = None

    @classmethod
    def ok_text(cls, provider_id: str, text: str) -> ProviderResult:
        """Build a successful text-generation result."""

        return cls(provider_id=provider_id, success=True, text=text)

    @classmethod
    def ok_audio(
        cls, provider_id: str, audio_bytes: bytes, duration_seconds: float
    ) -> ProviderResult:
        """Build a successful speech-synthesis result."""

        return cls(
            provider_id=provider_id,
            success=True,
            audio_bytes=audio_bytes,
            duration_seconds=duration_seconds,
        )

    @classmethod
    def failure(
        cls,
        provider_id: str,
        error_kind: ErrorKind,
        detail: str = "",
        retry_after_seconds: float | None = None,
    ) -> ProviderResult:
        """Build a typed failure result."""

        return cls(
            provider_id=provider_id,
            success=False,
            error_kind=error_kind,
            detail=detail,
            retry_after_seconds=retry_after_seconds,
        )


@dataclass(frozen=True, slots=True)
class NarrationResult:
    """Ordered narration artifacts with aggregated duration metadata.

    Attributes:
        ordered_artifacts: Chunk artifacts sorted by ascending chunk index.
        total_duration_seconds: Exact sum of artifact durations.
        settings_hash: Cache key derived from the voice settings.
        provider_id: Speech provider that produced every artifact.
        audio_url: Public URL of the merged narration file, when persisted.
    """

    ordered_artifacts: tuple[AudioArtifact, ...]
    total_duration_seconds: float
    settings_hash: str
    provider_id: str | None = None
    audio_url: str | None = None

    def as_payload(self) -> dict[str, Any]:
        """Return a JSON-serializable payload for cache persistence."""

        return {
            "ordered_artifacts": [
                {
                    "chunk_index": artifact.chunk_index,
                    "audio_ref": str(artifact.audio_ref),
                    "duration_seconds": artifact.duration_seconds,
                }
                for artifact in self.ordered_artifacts
            ],
            "total_duration_seconds": self.total_duration_seconds,
            "settings_hash": self.settings_hash,
            "provider_id": self.provider_id,
            "audio_url": self.audio_url,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> NarrationResult:
        """Rebuild a narration result from `as_payload` output."""

        artifacts = tuple(
            AudioArtifact(
                chunk_index=int(item["chunk_index"]),
                audio_ref=Path(str(item["audio_ref"])),
                duration_seconds=float(item["duration_seconds"]),
            )
            for item in payload.get("ordered_artifacts", [])
        )
        return cls(
            ordered_artifacts=artifacts,
            total_duration_seconds=float(payload["total_duration_seconds"]),
            settings_hash=str(payload["settings_hash"]),
            provider_id=normalize_optional_string(payload.get("provider_id")),
            audio_url=normalize_optional_string(payload.get("audio_url")),
        )


@dataclass(frozen=True, slots=True)
class StoryRecord:
    """Persisted story record.

    The orchestration layer treats this as an opaque record: it reads the
    generation settings and writes back narration artifact references.
    """

    id: str
    title: str
    content: str
    genre: Genre
    length: StoryLength
    prompt: str
    created_at: str
    word_count: int
    estimated_reading_minutes: int
    creator_id: str | None = None
    provider_id: str | None = None
    used_fallback: bool = False
    has_audio: bool = False
    audio_url: str | None = None
    audio_duration_seconds: float | None = None
    audio_settings_hash: str | None = None

    def with_narration(self, narration: NarrationResult) -> StoryRecord:
        """Return a copy referencing the given narration artifact."""

        return replace(
            self,
            has_audio=narration.audio_url is not None,
            audio_url=narration.audio_url,
            audio_duration_seconds=narration.total_duration_seconds,
            audio_settings_hash=narration.settings_hash,
        )

    def as_payload(self) -> dict[str, Any]:
        """Return a JSON-serializable payload using the web client's field names."""

        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "genre": self.genre.value,
            "length": self.length.value,
            "prompt": self.prompt,
            "createdAt": self.created_at,
            "wordCount": self.word_count,
            "estimatedReadingTime": self.estimated_reading_minutes,
            "creatorId": self.creator_id,
            "provider": self.provider_id,
            "usedFallback": self.used_fallback,
            "hasAudio": self.has_audio,
            "audioUrl": self.audio_url,
            "audioDuration": self.audio_duration_seconds,
            "audioSettingsHash": self.audio_settings_hash,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> StoryRecord:
        """Rebuild a story record from `as_payload` output."""

        duration = payload.get("audioDuration")
        return cls(
            id=str(payload["id"]),
            title=str(payload["title"]),
            content=str(payload["content"]),
            genre=Genre.parse(payload["genre"]),
            length=StoryLength.parse(payload["length"]),
            prompt=str(payload.get("prompt", "")),
            created_at=str(payload.get("createdAt", "")),
            word_count=int(payload.get("wordCount", 0)),
            estimated_reading_minutes=int(payload.get("estimatedReadingTime", 0)),
            creator_id=normalize_optional_string(payload.get("creatorId")),
            provider_id=normalize_optional_string(payload.get("provider")),
            used_fallback=bool(payload.get("usedFallback", False)),
            has_audio=bool(payload.get("hasAudio", False)),
            audio_url=normalize_optional_string(payload.get("audioUrl")),
            audio_duration_seconds=float(duration) if duration is not None else None,
            audio_settings_hash=normalize_optional_string(payload.get("audioSettingsHash")),
        )


@dataclass(frozen=True, slots=True)
class StorybookPage:
    """One storybook page derived from a story scene."""

    page_number: int
    content: str
    scene_description: str
    estimated_reading_seconds: int


@dataclass(frozen=True, slots=True)
class Storybook:
    """Paged storybook derived from a story."""

    story_id: str
    title: str
    pages: tuple[StorybookPage, ...]
    narration_script: str
    total_duration_seconds: float
    audio_url: str | None = None

    def as_payload(self) -> dict[str, Any]:
        """Return a JSON-serializable payload using the web client's field names."""

        return {
            "storyId": self.story_id,
            "title": self.title,
            "totalPages": len(self.pages),
            "totalDuration": self.total_duration_seconds,
            "hasAudio": self.audio_url is not None,
            "audioUrl": self.audio_url,
            "narrationScript": self.narration_script,
            "pages": [
                {
                    "id": f"page-{page.page_number}",
                    "pageNumber": page.page_number,
                    "content": page.content,
                    "sceneDescription": page.scene_description,
                    "estimatedReadingTime": page.estimated_reading_seconds,
                }
                for page in self.pages
            ],
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> Storybook:
        """Rebuild a storybook from `as_payload` output."""

        return cls(
            story_id=str(payload["storyId"]),
            title=str(payload["title"]),
            pages=tuple(
                StorybookPage(
                    page_number=int(page["pageNumber"]),
                    content=str(page["content"]),
                    scene_description=str(page.get("sceneDescription", "")),
                    estimated_reading_seconds=int(page.get("estimatedReadingTime", 0)),
                )
                for page in payload.get("pages", [])
            ),
            narration_script=str(payload.get("narrationScript", "")),
            total_duration_seconds=float(payload.get("totalDuration", 0.0)),
            audio_url=normalize_optional_string(payload.get("audioUrl")),
        )
