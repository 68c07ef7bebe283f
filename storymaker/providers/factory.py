"""Provider factory helpers for text and speech stages.

Responsibilities:
- Resolve provider identifiers to concrete adapter implementations.
- Keep orchestration independent from concrete adapter construction.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Mapping

from .base import ProviderKind, SpeechAdapter, TextAdapter
from .http_client import ProviderHttpClient
from .rate_limiter import RateLimiter
from .speech import ElevenLabsSpeechAdapter, GoogleSpeechAdapter, OpenAISpeechAdapter
from .text import GoogleTextAdapter, HuggingFaceTextAdapter, OpenAITextAdapter, TemplateTextAdapter

if TYPE_CHECKING:
    from ..config import StorymakerConfig

_PROVIDER_LABELS = {
    ProviderKind.OPENAI: "OpenAI",
    ProviderKind.GOOGLE: "Google",
    ProviderKind.HUGGINGFACE: "HuggingFace",
    ProviderKind.ELEVENLABS: "ElevenLabs",
}


class ProviderFactory:
    """Factory for provider adapters configured from one `StorymakerConfig`."""

    def __init__(
        self,
        config: StorymakerConfig,
        api_keys: Mapping[str, str | None] | None = None,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        self.config = config
        self.api_keys = dict(api_keys) if api_keys is not None else config.resolved_api_keys()
        self.rate_limiter = (
            rate_limiter
            if rate_limiter is not None
            else RateLimiter(min_interval_seconds=config.provider_min_interval_seconds)
        )

    def http_client(self, kind: ProviderKind, stage: str) -> ProviderHttpClient:
        """Create a transport for one provider and stage."""

        return ProviderHttpClient(
            provider_label=f"{_PROVIDER_LABELS[kind]} {stage}",
            timeout_seconds=self.config.provider_timeout_seconds,
            max_retries=self.config.max_retries,
            rate_limiter=self.rate_limiter,
        )

    def create_text_adapter(self, provider_id: str) -> TextAdapter:
        """Create a text adapter for a configured provider identifier."""

        kind = ProviderKind.parse(provider_id)
        if kind is ProviderKind.TEMPLATE:
            return TemplateTextAdapter()
        if kind is ProviderKind.OPENAI:
            return OpenAITextAdapter(
                api_key=self.api_keys.get("openai"),
                http_client=self.http_client(kind, "text"),
                model=self.config.openai_text_model,
            )
        if kind is ProviderKind.GOOGLE:
            return GoogleTextAdapter(
                api_key=self.api_keys.get("google"),
                http_client=self.http_client(kind, "text"),
                model=self.config.google_text_model,
            )
        if kind is ProviderKind.HUGGINGFACE:
            return HuggingFaceTextAdapter(
                api_key=self.api_keys.get("huggingface"),
                http_client=self.http_client(kind, "text"),
                model=self.config.huggingface_model,
            )
        raise ValueError(f"Unsupported text provider `{provider_id}`.")

    def create_speech_adapter(self, provider_id: str) -> SpeechAdapter:
        """Create a speech adapter for a configured provider identifier."""

        kind = ProviderKind.parse(provider_id)
        if kind is ProviderKind.OPENAI:
            return OpenAISpeechAdapter(
                api_key=self.api_keys.get("openai"),
                http_client=self.http_client(kind, "speech"),
                model=self.config.openai_tts_model,
            )
        if kind is ProviderKind.ELEVENLABS:
            return ElevenLabsSpeechAdapter(
                api_key=self.api_keys.get("elevenlabs"),
                http_client=self.http_client(kind, "speech"),
                model=self.config.elevenlabs_model,
            )
        if kind is ProviderKind.GOOGLE:
            return GoogleSpeechAdapter(
                api_key=self.api_keys.get("google_tts") or self.api_keys.get("google"),
                http_client=self.http_client(kind, "speech"),
            )
        raise ValueError(f"Unsupported speech provider `{provider_id}`.")

    def text_adapters(self) -> list[TextAdapter]:
        """Create text adapters in configured priority order."""

        return [self.create_text_adapter(provider_id) for provider_id in self.config.text_providers]

    def speech_adapters(self) -> list[SpeechAdapter]:
        """Create speech adapters in configured priority order."""

        return [
            self.create_speech_adapter(provider_id) for provider_id in self.config.speech_providers
        ]
