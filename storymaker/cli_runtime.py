"""CLI runtime resolution helpers.

This module isolates config loading, runtime API-key source assembly, secure
API-key persistence, and pipeline construction from the command wiring layer.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
import os
from pathlib import Path
from typing import Callable, Mapping, Protocol

import typer

from .config import API_KEY_SLOTS, ConfigLoader, RuntimeConfigSources, StorymakerConfig
from .credentials import create_credential_store
from .errors import PipelineStageError
from .io.storage import ArtifactStore
from .models.datatypes import StoryRecord, VoiceSettings
from .parsing import normalize_optional_string
from .pipeline import (
    FallbackChain,
    NarrationPipeline,
    StoryCatalog,
    StorybookBuilder,
    StoryGenerator,
)
from .providers.factory import ProviderFactory
from .telemetry.logger import RunLogger


class CredentialStoreProtocol(Protocol):
    """Protocol for secure credential store operations used by CLI runtime resolution."""

    def load_all(self) -> dict[str, str]:
        """Return every stored API key keyed by provider slot."""

    def set_api_key(self, provider: str, api_key: str) -> None:
        """Persist one provider API key in secure storage."""


def parse_api_key_overrides(values: list[str] | None) -> dict[str, str]:
    """Parse repeated `provider=key` CLI values into a slot mapping."""

    overrides: dict[str, str] = {}
    for raw_value in values or []:
        provider, separator, api_key = raw_value.partition("=")
        slot = provider.strip().lower()
        if not separator or slot not in API_KEY_SLOTS:
            raise PipelineStageError(
                stage="config",
                detail=f"Invalid `--api-key` value for `{provider.strip() or raw_value}`.",
                hint=f"Use `--api-key <provider>=<key>` with provider one of: {', '.join(API_KEY_SLOTS)}.",
            )
        normalized = normalize_optional_string(api_key)
        if normalized is not None:
            overrides[slot] = normalized
    return overrides


def resolve_runtime_sources(
    api_keys: list[str] | None,
    store_api_key: bool,
    credential_store_factory: Callable[[], CredentialStoreProtocol] = create_credential_store,
) -> tuple[dict[str, str], dict[str, str]]:
    """Resolve CLI and secure runtime API-key mappings.

    CLI-provided keys are persisted in secure storage when `store_api_key` is set.
    """

    runtime_cli_values = parse_api_key_overrides(api_keys)
    credential_store = credential_store_factory()
    runtime_secure_values = dict(credential_store.load_all())

    if runtime_cli_values and store_api_key:
        for slot, api_key in runtime_cli_values.items():
            try:
                credential_store.set_api_key(slot, api_key)
            except Exception as exc:
                raise PipelineStageError(
                    stage="credentials",
                    detail=f"Failed to store `{slot}` API key securely: {exc}",
                    hint=(
                        "Install and configure a keyring backend, or rerun with "
                        "`--no-store-api-key` for one-off usage."
                    ),
                ) from exc
        typer.echo("Stored API key(s) in secure credential storage.", err=True)

    return runtime_cli_values, runtime_secure_values


def load_command_config(
    config_file: Path | None,
    out: Path | None,
    runtime_cli_values: Mapping[str, str],
    runtime_secure_values: Mapping[str, str],
    env: Mapping[str, str] | None = None,
) -> StorymakerConfig:
    """Load YAML or environment config, apply CLI overrides, and attach runtime sources."""

    env_map: Mapping[str, str] = os.environ if env is None else env
    if config_file is None:
        try:
            config = ConfigLoader.from_env(env_map)
        except ValueError as exc:
            raise PipelineStageError(
                stage="config",
                detail=f"Invalid environment configuration: {exc}",
                hint="Fix `STORYMAKER_*` environment variables and rerun.",
            ) from exc
    else:
        config = _load_yaml_config(config_file)

    if out is not None:
        config = replace(config, output_dir=out)
    return replace(
        config,
        runtime_sources=RuntimeConfigSources(
            cli=dict(runtime_cli_values),
            secure=dict(runtime_secure_values),
            env=env_map,
        ),
    )


def _load_yaml_config(config_path: Path) -> StorymakerConfig:
    """Load a YAML config file and map failures to stage errors."""

    try:
        return ConfigLoader.from_yaml(config_path)
    except FileNotFoundError as exc:
        raise PipelineStageError(
            stage="config",
            detail=f"Config file not found: `{config_path}`.",
            hint="Provide an existing path via `--config <path.yaml>`.",
        ) from exc
    except ValueError as exc:
        raise PipelineStageError(
            stage="config",
            detail=f"Invalid config file `{config_path}`: {exc}",
            hint="Fix config schema/values and rerun.",
        ) from exc
    except OSError as exc:
        raise PipelineStageError(
            stage="config",
            detail=f"Failed to load config file `{config_path}`: {exc}",
            hint="Verify file permissions.",
        ) from exc


def resolve_voice_settings(
    config: StorymakerConfig,
    voice: str | None,
    pitch: float | None,
    speed: float | None,
    volume: float | None,
) -> VoiceSettings:
    """Merge explicit CLI voice options over the configured default voice."""

    try:
        return VoiceSettings.from_mapping(
            {
                "voice_id": voice,
                "pitch_percent": pitch,
                "speed_multiplier": speed,
                "volume": volume,
            },
            defaults=config.default_voice,
        )
    except ValueError as exc:
        raise PipelineStageError(
            stage="config",
            detail=f"Invalid voice settings: {exc}",
            hint="Use pitch in [-50, 50], speed in [0.5, 2.0] and volume in [0, 1].",
        ) from exc


@dataclass(slots=True)
class CommandRuntime:
    """Explicitly constructed collaborators for one CLI command invocation."""

    config: StorymakerConfig
    run_logger: RunLogger
    store: ArtifactStore
    factory: ProviderFactory

    @classmethod
    def from_config(cls, config: StorymakerConfig, run_logger: RunLogger | None = None) -> CommandRuntime:
        """Build a runtime with adapters, store, and logger for a resolved config."""

        return cls(
            config=config,
            run_logger=run_logger if run_logger is not None else RunLogger(),
            store=ArtifactStore(config.output_dir),
            factory=ProviderFactory(config),
        )

    def story_generator(self) -> StoryGenerator:
        """Create the story generator over the configured text provider chain."""

        chain = FallbackChain(
            self.factory.text_adapters(), run_logger=self.run_logger, stage="generate_story"
        )
        return StoryGenerator(
            chain, min_story_chars=self.config.min_story_chars, run_logger=self.run_logger
        )

    def narration_pipeline(self) -> NarrationPipeline:
        """Create the narration pipeline over the configured speech provider chain."""

        return NarrationPipeline(
            self.factory.speech_adapters(),
            self.store,
            max_chunk_chars=self.config.max_chunk_chars,
            max_workers=self.config.narration_workers,
            timeout_seconds=self.config.narration_timeout_seconds,
            run_logger=self.run_logger,
        )

    def story_catalog(self) -> StoryCatalog:
        return StoryCatalog(self.store, run_logger=self.run_logger)

    def storybook_builder(self, narrate: bool) -> StorybookBuilder:
        """Create a storybook builder, with narration when requested."""

        return StorybookBuilder(self.narration_pipeline() if narrate else None)

    def load_story(self, story_id: str) -> StoryRecord:
        """Load a persisted story or raise a CLI-facing stage error."""

        try:
            return self.store.load_story(story_id)
        except FileNotFoundError as exc:
            raise PipelineStageError(
                stage="load",
                detail=str(exc),
                hint="Generate a story first with `storymaker generate-story` or check `--out`.",
            ) from exc
