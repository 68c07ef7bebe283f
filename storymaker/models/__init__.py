"""Shared typed data models for Storymaker.

This package contains dataclasses used across modules to avoid cross-module
coupling and circular imports.
"""

from .datatypes import (
    AudioArtifact,
    GenerationRequest,
    Genre,
    NarrationResult,
    PromptPurpose,
    ProviderResult,
    SpeechRequest,
    Storybook,
    StorybookPage,
    StoryLength,
    StoryRecord,
    TextChunk,
    TextPrompt,
    VoiceSettings,
)

__all__ = [
    "AudioArtifact",
    "GenerationRequest",
    "Genre",
    "NarrationResult",
    "PromptPurpose",
    "ProviderResult",
    "SpeechRequest",
    "StoryLength",
    "StoryRecord",
    "Storybook",
    "StorybookPage",
    "TextChunk",
    "TextPrompt",
    "VoiceSettings",
]
