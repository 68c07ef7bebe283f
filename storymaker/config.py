"""Configuration model and loaders for Storymaker.

Responsibilities:
- Define runtime configuration as a typed dataclass.
- Provide deterministic precedence resolution for provider API keys.
- Provide loader entry points for file- and environment-based configuration.

Key types:
- `StorymakerConfig`: normalized runtime settings.
- `RuntimeConfigSources`: optional value sources for precedence resolution.
- `ConfigLoader`: static construction helpers for `StorymakerConfig`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from .models.datatypes import VoiceSettings
from .parsing import normalize_optional_string, parse_float_in_range, parse_identifier_list
from .providers.base import SPEECH_PROVIDER_KINDS, TEXT_PROVIDER_KINDS


_DEFAULT_TEXT_PROVIDERS = ("openai", "google", "huggingface", "template")
_DEFAULT_SPEECH_PROVIDERS = ("openai", "elevenlabs", "google")

API_KEY_SLOTS = ("openai", "huggingface", "google", "google_tts", "elevenlabs")
API_KEY_ENV_VARS: dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "huggingface": "HUGGINGFACE_API_KEY",
    "google": "GOOGLE_AI_API_KEY",
    "google_tts": "GOOGLE_TTS_API_KEY",
    "elevenlabs": "ELEVENLABS_API_KEY",
}


@dataclass(frozen=True, slots=True)
class RuntimeConfigSources:
    """Source mappings used for deterministic runtime value precedence.

    Attributes:
        cli: API keys explicitly provided by CLI arguments, keyed by slot.
        secure: API keys loaded from secure local credential storage, keyed by slot.
        env: Values loaded from environment variables, keyed by variable name.
    """

    cli: Mapping[str, str] = field(default_factory=dict)
    secure: Mapping[str, str] = field(default_factory=dict)
    env: Mapping[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class StorymakerConfig:
    """Runtime configuration for story generation and narration.

    Attributes:
        output_dir: Artifact store root for stories and audio.
        text_providers: Ordered text-generation provider priority.
        speech_providers: Ordered speech-synthesis provider priority.
        openai_text_model: OpenAI chat model identifier.
        openai_tts_model: OpenAI speech model identifier.
        huggingface_model: HuggingFace inference model path.
        google_text_model: Google Generative Language model identifier.
        elevenlabs_model: ElevenLabs speech model identifier.
        provider_timeout_seconds: Per-call HTTP timeout.
        max_retries: Adapter-level retries for timeouts and unavailable providers.
        provider_min_interval_seconds: Minimum spacing between requests to one provider.
        max_chunk_chars: Narration chunk size cap in characters.
        min_story_chars: Shortest provider story accepted as usable.
        narration_workers: Concurrent chunk synthesis calls per narration.
        narration_timeout_seconds: Overall narration deadline.
        default_voice: Voice settings used when a request omits them.
        api_keys: Per-slot API keys from the config file (never persisted elsewhere).
        runtime_sources: Optional runtime source overrides injected by CLI.
        extra: Additional metadata for future extensions.
    """

    output_dir: Path = Path("out")
    text_providers: tuple[str, ...] = _DEFAULT_TEXT_PROVIDERS
    speech_providers: tuple[str, ...] = _DEFAULT_SPEECH_PROVIDERS
    openai_text_model: str = "gpt-3.5-turbo"
    openai_tts_model: str = "tts-1"
    huggingface_model: str = "microsoft/DialoGPT-large"
    google_text_model: str = "gemini-1.5-flash"
    elevenlabs_model: str = "eleven_monolingual_v1"
    provider_timeout_seconds: float = 30.0
    max_retries: int = 0
    provider_min_interval_seconds: float = 0.0
    max_chunk_chars: int = 500
    min_story_chars: int = 100
    narration_workers: int = 4
    narration_timeout_seconds: float = 300.0
    default_voice: VoiceSettings = field(default_factory=VoiceSettings)
    api_keys: dict[str, str] = field(default_factory=dict)
    runtime_sources: RuntimeConfigSources = field(default_factory=RuntimeConfigSources)
    extra: dict[str, str] = field(default_factory=dict)

    def validate(self) -> None:
        """Validate runtime configuration values before pipeline execution."""

        self._validate_provider_list(
            self.text_providers, "text_providers", {kind.value for kind in TEXT_PROVIDER_KINDS}
        )
        self._validate_provider_list(
            self.speech_providers,
            "speech_providers",
            {kind.value for kind in SPEECH_PROVIDER_KINDS},
        )
        for field_name in (
            "openai_text_model",
            "openai_tts_model",
            "huggingface_model",
            "google_text_model",
            "elevenlabs_model",
        ):
            value = getattr(self, field_name)
            if not isinstance(value, str) or not value.strip():
                raise ValueError(f"`{field_name}` must be a non-empty string.")
        for field_name in ("max_chunk_chars", "min_story_chars", "narration_workers"):
            if getattr(self, field_name) <= 0:
                raise ValueError(f"`{field_name}` must be a positive integer.")
        if self.max_retries < 0:
            raise ValueError("`max_retries` must be zero or a positive integer.")
        if not self.provider_min_interval_seconds >= 0:
            raise ValueError("`provider_min_interval_seconds` must be zero or positive.")
        if self.provider_timeout_seconds <= 0:
            raise ValueError("`provider_timeout_seconds` must be positive.")
        if self.narration_timeout_seconds <= 0:
            raise ValueError("`narration_timeout_seconds` must be positive.")
        unknown_slots = sorted(set(self.api_keys).difference(API_KEY_SLOTS))
        if unknown_slots:
            raise ValueError(f"`api_keys` includes unsupported provider(s): {', '.join(unknown_slots)}.")

    def resolved_api_keys(
        self, sources: RuntimeConfigSources | None = None
    ) -> dict[str, str | None]:
        """Resolve every API key slot with deterministic source precedence.

        Precedence for each slot is:
        `cli` > `secure` > `env` > config file value.
        """

        resolved_sources = sources if sources is not None else self.runtime_sources
        return {
            slot: self._resolve_api_key(slot, resolved_sources) for slot in API_KEY_SLOTS
        }

    def _resolve_api_key(self, slot: str, sources: RuntimeConfigSources) -> str | None:
        """Resolve one API key slot from sources in deterministic order."""

        for value in (
            self._normalized_lookup(sources.cli, slot),
            self._normalized_lookup(sources.secure, slot),
            self._normalized_lookup(sources.env, API_KEY_ENV_VARS[slot]),
        ):
            if value is not None:
                return value
        return normalize_optional_string(self.api_keys.get(slot))

    @staticmethod
    def _normalized_lookup(mapping: Mapping[str, str], key: str) -> str | None:
        """Return a stripped mapping value for a key or `None` when missing/blank."""

        if key not in mapping:
            return None
        return normalize_optional_string(mapping.get(key))

    @staticmethod
    def _validate_provider_list(
        providers: tuple[str, ...], field_name: str, supported: set[str]
    ) -> None:
        """Validate provider identifiers against the supported set for a stage."""

        if not providers:
            raise ValueError(f"`{field_name}` must name at least one provider.")
        for provider_id in providers:
            if provider_id not in supported:
                supported_text = ", ".join(sorted(supported))
                raise ValueError(
                    f"Unsupported `{field_name}` value `{provider_id}`; supported: {supported_text}."
                )


class ConfigLoader:
    """Factory methods for creating `StorymakerConfig` from external sources."""

    _SUPPORTED_YAML_KEYS = frozenset(
        {
            "output_dir",
            "text_providers",
            "speech_providers",
            "openai_text_model",
            "openai_tts_model",
            "huggingface_model",
            "google_text_model",
            "elevenlabs_model",
            "provider_timeout_seconds",
            "max_retries",
            "provider_min_interval_seconds",
            "max_chunk_chars",
            "min_story_chars",
            "narration_workers",
            "narration_timeout_seconds",
            "default_voice",
            "api_keys",
            "extra",
        }
    )
    _STRING_FIELDS = (
        "openai_text_model",
        "openai_tts_model",
        "huggingface_model",
        "google_text_model",
        "elevenlabs_model",
    )
    _POSITIVE_INT_FIELDS = (
        "max_chunk_chars",
        "min_story_chars",
        "narration_workers",
    )
    _POSITIVE_FLOAT_FIELDS = ("provider_timeout_seconds", "narration_timeout_seconds")

    @staticmethod
    def from_yaml(path: Path) -> StorymakerConfig:
        """Create a validated config from a YAML file."""

        path_text = path.read_text(encoding="utf-8")
        payload = ConfigLoader._parse_yaml_payload(path_text, path)
        return ConfigLoader._build_config_from_mapping(payload, source_label=f"YAML `{path}`")

    @staticmethod
    def from_env(env: Mapping[str, str] | None = None) -> StorymakerConfig:
        """Create a validated config from environment variables."""

        env_map: Mapping[str, str] = os.environ if env is None else env
        label = "Environment"
        payload: dict[str, Any] = {}

        for field_name in (
            "output_dir",
            "text_providers",
            "speech_providers",
            *ConfigLoader._STRING_FIELDS,
            *ConfigLoader._POSITIVE_INT_FIELDS,
            *ConfigLoader._POSITIVE_FLOAT_FIELDS,
            "max_retries",
            "provider_min_interval_seconds",
        ):
            value = normalize_optional_string(env_map.get(f"STORYMAKER_{field_name.upper()}"))
            if value is not None:
                payload[field_name] = value

        voice_payload = {
            key: env_map[env_key]
            for key, env_key in (
                ("voice_id", "STORYMAKER_VOICE"),
                ("pitch_percent", "STORYMAKER_VOICE_PITCH"),
                ("speed_multiplier", "STORYMAKER_VOICE_SPEED"),
                ("volume", "STORYMAKER_VOICE_VOLUME"),
            )
            if normalize_optional_string(env_map.get(env_key)) is not None
        }
        if voice_payload:
            payload["default_voice"] = voice_payload

        runtime_env = {
            env_key: str(env_map[env_key]).strip()
            for env_key in API_KEY_ENV_VARS.values()
            if normalize_optional_string(env_map.get(env_key)) is not None
        }

        config = ConfigLoader._build_config_from_mapping(payload, source_label=label)
        config.runtime_sources = RuntimeConfigSources(env=runtime_env)
        return config

    @staticmethod
    def _parse_yaml_payload(raw_text: str, path: Path) -> Mapping[str, Any]:
        """Parse YAML text and enforce a mapping root payload."""

        try:
            payload = yaml.safe_load(raw_text)
        except yaml.YAMLError as exc:
            raise ValueError(f"YAML config `{path}` is not valid YAML: {exc}") from exc
        if payload is None:
            payload = {}
        if not isinstance(payload, Mapping):
            raise ValueError(f"YAML config `{path}` must contain a top-level mapping/object.")
        return payload

    @staticmethod
    def _build_config_from_mapping(payload: Mapping[str, Any], source_label: str) -> StorymakerConfig:
        """Build a validated config from a normalized mapping payload."""

        unknown = sorted(set(payload).difference(ConfigLoader._SUPPORTED_YAML_KEYS))
        if unknown:
            raise ValueError(f"{source_label} includes unsupported key(s): {', '.join(unknown)}.")

        values: dict[str, Any] = {}
        output_dir = normalize_optional_string(payload.get("output_dir"))
        if output_dir is not None:
            values["output_dir"] = Path(output_dir)
        for key in ("text_providers", "speech_providers"):
            if key in payload:
                try:
                    values[key] = parse_identifier_list(payload[key])
                except ValueError as exc:
                    raise ValueError(f"{source_label} field `{key}`: {exc}") from exc
        for key in ConfigLoader._STRING_FIELDS:
            value = normalize_optional_string(payload.get(key))
            if value is not None:
                values[key] = value
        for key in ConfigLoader._POSITIVE_INT_FIELDS:
            if key in payload:
                values[key] = ConfigLoader._int_field(payload[key], key, source_label, minimum=1)
        if "max_retries" in payload:
            values["max_retries"] = ConfigLoader._int_field(
                payload["max_retries"], "max_retries", source_label, minimum=0
            )
        if "provider_min_interval_seconds" in payload:
            try:
                values["provider_min_interval_seconds"] = parse_float_in_range(
                    payload["provider_min_interval_seconds"],
                    "provider_min_interval_seconds",
                    minimum=0.0,
                    maximum=60.0,
                )
            except ValueError as exc:
                raise ValueError(f"{source_label} field: {exc}") from exc
        for key in ConfigLoader._POSITIVE_FLOAT_FIELDS:
            if key in payload:
                values[key] = ConfigLoader._positive_float_field(payload[key], key, source_label)
        if "default_voice" in payload:
            voice_payload = payload["default_voice"]
            if not isinstance(voice_payload, Mapping):
                raise ValueError(f"{source_label} field `default_voice` must be a mapping/object.")
            try:
                values["default_voice"] = VoiceSettings.from_mapping(voice_payload)
            except ValueError as exc:
                raise ValueError(f"{source_label} field `default_voice`: {exc}") from exc
        values["api_keys"] = ConfigLoader._optional_string_map(payload, "api_keys", source_label)
        values["extra"] = ConfigLoader._optional_string_map(payload, "extra", source_label)

        config = StorymakerConfig(**values)
        config.validate()
        return config

    @staticmethod
    def _int_field(raw_value: object, key: str, source_label: str, *, minimum: int) -> int:
        """Parse an integer field bounded below by `minimum`."""

        qualifier = "a positive integer" if minimum > 0 else "a non-negative integer"
        if isinstance(raw_value, bool):
            raise ValueError(f"{source_label} field `{key}` must be {qualifier}.")
        try:
            parsed = int(str(raw_value).strip())
        except ValueError as exc:
            raise ValueError(f"{source_label} field `{key}` must be {qualifier}.") from exc
        if parsed < minimum:
            raise ValueError(f"{source_label} field `{key}` must be {qualifier}.")
        return parsed

    @staticmethod
    def _positive_float_field(raw_value: object, key: str, source_label: str) -> float:
        """Parse a strictly positive float field."""

        if isinstance(raw_value, bool):
            raise ValueError(f"{source_label} field `{key}` must be a positive number.")
        try:
            parsed = float(str(raw_value).strip())
        except ValueError as exc:
            raise ValueError(f"{source_label} field `{key}` must be a positive number.") from exc
        if not parsed > 0:
            raise ValueError(f"{source_label} field `{key}` must be a positive number.")
        return parsed

    @staticmethod
    def _optional_string_map(
        payload: Mapping[str, Any], key: str, source_label: str
    ) -> dict[str, str]:
        """Read an optional string-to-string mapping field."""

        if key not in payload or payload[key] is None:
            return {}
        raw_value = payload[key]
        if not isinstance(raw_value, Mapping):
            raise ValueError(f"{source_label} field `{key}` must be a mapping/object.")
        normalized: dict[str, str] = {}
        for raw_key, raw_item in raw_value.items():
            map_key = normalize_optional_string(raw_key)
            if map_key is None:
                raise ValueError(f"{source_label} field `{key}` contains a blank key.")
            if not isinstance(raw_item, str | int | float) or isinstance(raw_item, bool):
                raise ValueError(
                    f"{source_label} field `{key}` value for `{map_key}` must be a scalar string."
                )
            normalized[map_key] = str(raw_item)
        return normalized
