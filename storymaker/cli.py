"""Command-line interface for Storymaker.

Responsibilities:
- Expose user-facing commands for story generation, narration, and storybooks.
- Expose provider status, credential management, and audio housekeeping commands.
- Expose `stories` and `storybooks` command groups for persisted artifacts.
- Convert CLI arguments into `StorymakerConfig` and run the pipelines.

Key public functions:
- `app`: Typer application instance.
- `main`: invoke the Typer application.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from .audio.cleanup import DEFAULT_MAX_AGE_HOURS, cleanup_audio_files, list_audio_files
from .cli_rendering import (
    echo_audio_files,
    echo_json,
    echo_provider_status,
    echo_stories,
    exit_with_command_error,
)
from .cli_runtime import (
    CommandRuntime,
    load_command_config,
    resolve_runtime_sources,
    resolve_voice_settings,
)
from .config import API_KEY_SLOTS
from .credentials import create_credential_store
from .errors import PipelineStageError
from .io.storage import ArtifactStore
from .models.datatypes import GenerationRequest, Genre, StoryLength
from .parsing import normalize_optional_string
from .pipeline.catalog import StoryQuery, StorySort
from .providers.keys import mask_api_key
from .providers.status import provider_status
from .text.scenes import DEFAULT_SCENES, MAX_SCENES

app = typer.Typer(
    name="storymaker",
    no_args_is_help=True,
    help="Storymaker CLI.",
)
stories_app = typer.Typer(no_args_is_help=True, help="List, show, edit, and delete stories.")
storybooks_app = typer.Typer(no_args_is_help=True, help="Show persisted storybooks.")
app.add_typer(stories_app, name="stories")
app.add_typer(storybooks_app, name="storybooks")

ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", help="Path to YAML config file with command defaults."),
]
OutOption = Annotated[
    Path | None,
    typer.Option("--out", help="Output directory (overrides config value)."),
]
ApiKeyOption = Annotated[
    list[str] | None,
    typer.Option(
        "--api-key",
        help="Provider API key override as `<provider>=<key>`; repeatable.",
    ),
]
StoreApiKeyOption = Annotated[
    bool,
    typer.Option(
        "--store-api-key/--no-store-api-key",
        help="Persist CLI-entered API keys to secure credential storage.",
    ),
]
VoiceOption = Annotated[
    str | None,
    typer.Option("--voice", help="Voice type (male, female, child, elderly) or provider voice id."),
]
PitchOption = Annotated[
    float | None, typer.Option("--pitch", help="Pitch shift in percent, -50 to 50.")
]
SpeedOption = Annotated[
    float | None, typer.Option("--speed", help="Speaking-rate multiplier, 0.5 to 2.0.")
]
VolumeOption = Annotated[float | None, typer.Option("--volume", help="Volume, 0 to 1.")]


def _command_runtime(
    config_file: Path | None,
    out: Path | None,
    api_key: list[str] | None,
    store_api_key: bool,
) -> CommandRuntime:
    """Resolve config and runtime sources, then build command collaborators."""

    runtime_cli_values, runtime_secure_values = resolve_runtime_sources(
        api_keys=api_key,
        store_api_key=store_api_key,
        credential_store_factory=create_credential_store,
    )
    config = load_command_config(
        config_file=config_file,
        out=out,
        runtime_cli_values=runtime_cli_values,
        runtime_secure_values=runtime_secure_values,
    )
    return CommandRuntime.from_config(config)


def _generation_request(prompt: str, genre: str, length: str) -> GenerationRequest:
    """Build a validated generation request from raw CLI values."""

    try:
        return GenerationRequest(
            subject_text=prompt,
            genre=Genre.parse(genre),
            length=StoryLength.parse(length),
        )
    except ValueError as exc:
        raise PipelineStageError(
            stage="request",
            detail=str(exc),
            hint="Provide a non-empty prompt and a supported genre and length.",
        ) from exc


@app.command("generate-story")
def generate_story_command(
    prompt: Annotated[str, typer.Argument(help="Story prompt or subject.")],
    genre: Annotated[str, typer.Option("--genre", help="Story genre.")] = Genre.FANTASY.value,
    length: Annotated[
        str, typer.Option("--length", help="Story length: short, medium, long, very-long.")
    ] = StoryLength.MEDIUM.value,
    creator_id: Annotated[
        str | None, typer.Option("--creator-id", help="Opaque creator identifier.")
    ] = None,
    narrate: Annotated[
        bool, typer.Option("--narrate", help="Narrate the story right after generating it.")
    ] = False,
    voice: VoiceOption = None,
    pitch: PitchOption = None,
    speed: SpeedOption = None,
    volume: VolumeOption = None,
    config_file: ConfigOption = None,
    out: OutOption = None,
    api_key: ApiKeyOption = None,
    store_api_key: StoreApiKeyOption = True,
) -> None:
    """Generate a story, persist it, and print the story record as JSON."""

    try:
        runtime = _command_runtime(config_file, out, api_key, store_api_key)
        request = _generation_request(prompt, genre, length)
        story = runtime.story_generator().generate(
            request, creator_id=normalize_optional_string(creator_id)
        )
        story = runtime.store.save_new_story(story)
        if narrate:
            voice_settings = resolve_voice_settings(runtime.config, voice, pitch, speed, volume)
            story, _ = runtime.narration_pipeline().narrate_story(story, voice_settings)
    except Exception as exc:
        exit_with_command_error("generate-story", exc)

    echo_json(story.as_payload())


@app.command("enhance-prompt")
def enhance_prompt_command(
    prompt: Annotated[str, typer.Argument(help="Story prompt to enhance.")],
    genre: Annotated[str, typer.Option("--genre", help="Story genre.")] = Genre.FANTASY.value,
    length: Annotated[
        str, typer.Option("--length", help="Story length: short, medium, long, very-long.")
    ] = StoryLength.MEDIUM.value,
    config_file: ConfigOption = None,
    out: OutOption = None,
    api_key: ApiKeyOption = None,
    store_api_key: StoreApiKeyOption = True,
) -> None:
    """Enhance a story prompt with more vivid detail."""

    try:
        runtime = _command_runtime(config_file, out, api_key, store_api_key)
        request = _generation_request(prompt, genre, length)
        enhanced, provider_id = runtime.story_generator().enhance_prompt(request)
    except Exception as exc:
        exit_with_command_error("enhance-prompt", exc)

    echo_json(
        {
            "originalPrompt": prompt,
            "enhancedPrompt": enhanced,
            "provider": provider_id,
            "usedFallback": provider_id == "template",
        }
    )


@app.command("narrate")
def narrate_command(
    story_id: Annotated[str, typer.Argument(help="Identifier of a persisted story.")],
    voice: VoiceOption = None,
    pitch: PitchOption = None,
    speed: SpeedOption = None,
    volume: VolumeOption = None,
    config_file: ConfigOption = None,
    out: OutOption = None,
    api_key: ApiKeyOption = None,
    store_api_key: StoreApiKeyOption = True,
) -> None:
    """Narrate a persisted story and print the audio reference as JSON."""

    try:
        runtime = _command_runtime(config_file, out, api_key, store_api_key)
        story = runtime.load_story(story_id)
        voice_settings = resolve_voice_settings(runtime.config, voice, pitch, speed, volume)
        story, narration = runtime.narration_pipeline().narrate_story(story, voice_settings)
    except Exception as exc:
        exit_with_command_error("narrate", exc)

    echo_json(
        {
            "storyId": story.id,
            "audioUrl": narration.audio_url,
            "totalDuration": narration.total_duration_seconds,
            "provider": narration.provider_id,
            "settingsHash": narration.settings_hash,
            "chunks": len(narration.ordered_artifacts),
            "audioSettings": voice_settings.as_dict(),
        }
    )


@app.command("storybook")
def storybook_command(
    story_id: Annotated[str, typer.Argument(help="Identifier of a persisted story.")],
    scenes: Annotated[
        int,
        typer.Option("--scenes", min=1, max=MAX_SCENES, help="Maximum number of pages."),
    ] = DEFAULT_SCENES,
    narrate: Annotated[
        bool, typer.Option("--narrate", help="Narrate the storybook script.")
    ] = False,
    voice: VoiceOption = None,
    pitch: PitchOption = None,
    speed: SpeedOption = None,
    volume: VolumeOption = None,
    config_file: ConfigOption = None,
    out: OutOption = None,
    api_key: ApiKeyOption = None,
    store_api_key: StoreApiKeyOption = True,
) -> None:
    """Build a paged storybook from a persisted story and save it next to the story."""

    try:
        runtime = _command_runtime(config_file, out, api_key, store_api_key)
        story = runtime.load_story(story_id)
        voice_settings = (
            resolve_voice_settings(runtime.config, voice, pitch, speed, volume)
            if narrate
            else None
        )
        storybook = runtime.storybook_builder(narrate).build(
            story, scene_count=scenes, voice_settings=voice_settings
        )
        runtime.store.save_storybook(storybook)
    except Exception as exc:
        exit_with_command_error("storybook", exc)

    echo_json(storybook.as_payload())


@app.command("providers")
def providers_command(
    config_file: ConfigOption = None,
    api_key: ApiKeyOption = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print status as JSON.")] = False,
) -> None:
    """Show configuration status of every provider in priority order."""

    try:
        runtime_cli_values, runtime_secure_values = resolve_runtime_sources(
            api_keys=api_key,
            store_api_key=False,
            credential_store_factory=create_credential_store,
        )
        config = load_command_config(
            config_file=config_file,
            out=None,
            runtime_cli_values=runtime_cli_values,
            runtime_secure_values=runtime_secure_values,
        )
        statuses = provider_status(config)
    except Exception as exc:
        exit_with_command_error("providers", exc)

    if as_json:
        echo_json([status.as_payload() for status in statuses])
    else:
        echo_provider_status(statuses)


@app.command("credentials")
def credentials_command(
    provider: Annotated[
        str | None,
        typer.Argument(help=f"Provider key slot: {', '.join(API_KEY_SLOTS)}. Omit for status."),
    ] = None,
    set_api_key: Annotated[
        bool,
        typer.Option(
            "--set-api-key",
            help="Prompt for API key with hidden input and store it securely.",
        ),
    ] = False,
    clear_api_key: Annotated[
        bool,
        typer.Option(
            "--clear-api-key",
            help="Clear stored API key from secure credential storage.",
        ),
    ] = False,
) -> None:
    """Manage securely stored provider API keys."""

    if set_api_key and clear_api_key:
        exit_with_command_error(
            "credentials",
            PipelineStageError(
                stage="credentials",
                detail="`--set-api-key` and `--clear-api-key` cannot be used together.",
                hint="Run one credentials action per command invocation.",
            ),
        )
    if (set_api_key or clear_api_key) and provider is None:
        exit_with_command_error(
            "credentials",
            PipelineStageError(
                stage="credentials",
                detail="A provider is required with `--set-api-key` or `--clear-api-key`.",
                hint=f"Pass one of: {', '.join(API_KEY_SLOTS)}.",
            ),
        )
    slot = provider.strip().lower() if provider is not None else None
    if slot is not None and slot not in API_KEY_SLOTS:
        exit_with_command_error(
            "credentials",
            PipelineStageError(
                stage="credentials",
                detail=f"Unsupported provider `{provider}`.",
                hint=f"Pass one of: {', '.join(API_KEY_SLOTS)}.",
            ),
        )

    credential_store = create_credential_store()
    if set_api_key and slot is not None:
        prompted_api_key = normalize_optional_string(
            typer.prompt(
                f"{slot} API key (hidden input)",
                default="",
                hide_input=True,
                show_default=False,
            )
        )
        if prompted_api_key is None:
            exit_with_command_error(
                "credentials",
                PipelineStageError(
                    stage="credentials",
                    detail="No API key entered.",
                    hint="Provide a non-empty API key when using `--set-api-key`.",
                ),
            )
        try:
            credential_store.set_api_key(slot, prompted_api_key)
        except Exception as exc:
            exit_with_command_error(
                "credentials",
                PipelineStageError(
                    stage="credentials",
                    detail=f"Failed to store API key securely: {exc}",
                    hint="Install and configure a keyring backend and retry.",
                ),
            )
        typer.echo(f"{slot} API key stored in secure credential storage.")
        return

    if clear_api_key and slot is not None:
        if credential_store.clear_api_key(slot):
            typer.echo(f"Stored {slot} API key cleared from secure credential storage.")
        else:
            typer.echo(f"No stored {slot} API key found in secure credential storage.")
        return

    availability = "available" if credential_store.is_available() else "unavailable"
    typer.echo(f"Secure credential storage: {availability}")
    for listed_slot in (slot,) if slot is not None else API_KEY_SLOTS:
        stored = credential_store.get_api_key(listed_slot)
        status = mask_api_key(stored) if stored is not None else "not set"
        typer.echo(f"Stored {listed_slot} API key: {status}")


@app.command("audio-files")
def audio_files_command(
    config_file: ConfigOption = None,
    out: OutOption = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print the listing as JSON.")] = False,
) -> None:
    """List generated narration audio files."""

    try:
        config = load_command_config(config_file, out, {}, {})
        files = list_audio_files(ArtifactStore(config.output_dir))
    except Exception as exc:
        exit_with_command_error("audio-files", exc)

    if as_json:
        echo_json(
            [
                {
                    "filename": info.filename,
                    "url": info.url,
                    "sizeBytes": info.size_bytes,
                    "sizeMB": info.size_megabytes,
                    "modifiedAt": info.modified_at,
                }
                for info in files
            ]
        )
    else:
        echo_audio_files(files)


@app.command("cleanup-audio")
def cleanup_audio_command(
    max_age_hours: Annotated[
        float,
        typer.Option("--max-age-hours", min=0.0, help="Delete files older than this many hours."),
    ] = DEFAULT_MAX_AGE_HOURS,
    config_file: ConfigOption = None,
    out: OutOption = None,
) -> None:
    """Delete generated narration audio older than the age limit."""

    try:
        config = load_command_config(config_file, out, {}, {})
        deleted = cleanup_audio_files(
            ArtifactStore(config.output_dir), max_age_hours=max_age_hours
        )
    except Exception as exc:
        exit_with_command_error("cleanup-audio", exc)

    typer.echo(f"Deleted {len(deleted)} audio file(s) older than {max_age_hours:g} hour(s).")
    for filename in deleted:
        typer.echo(f"- {filename}")


def _story_catalog_runtime(config_file: Path | None, out: Path | None) -> CommandRuntime:
    """Build a runtime for commands that only touch persisted artifacts."""

    return CommandRuntime.from_config(load_command_config(config_file, out, {}, {}))


@stories_app.command("list")
def stories_list_command(
    creator_id: Annotated[
        str | None, typer.Option("--creator-id", help="Only stories by this creator.")
    ] = None,
    genre: Annotated[
        str | None, typer.Option("--genre", help="Only stories of this genre.")
    ] = None,
    sort: Annotated[str, typer.Option("--sort", help="Order: newest or oldest.")] = "newest",
    limit: Annotated[
        int | None, typer.Option("--limit", min=1, help="Show at most this many stories.")
    ] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print the listing as JSON.")] = False,
    config_file: ConfigOption = None,
    out: OutOption = None,
) -> None:
    """List persisted stories."""

    try:
        runtime = _story_catalog_runtime(config_file, out)
        try:
            query = StoryQuery(
                creator_id=normalize_optional_string(creator_id),
                genre=Genre.parse(genre) if genre is not None else None,
                sort=StorySort.parse(sort),
                limit=limit,
            )
        except ValueError as exc:
            raise PipelineStageError(
                stage="request",
                detail=str(exc),
                hint="Use a supported genre and `--sort newest` or `--sort oldest`.",
            ) from exc
        stories = runtime.story_catalog().find(query)
    except Exception as exc:
        exit_with_command_error("stories list", exc)

    if as_json:
        echo_json({"stories": [story.as_payload() for story in stories], "total": len(stories)})
    else:
        echo_stories(stories)


@stories_app.command("show")
def stories_show_command(
    story_id: Annotated[str, typer.Argument(help="Identifier of a persisted story.")],
    config_file: ConfigOption = None,
    out: OutOption = None,
) -> None:
    """Print a persisted story record as JSON."""

    try:
        story = _story_catalog_runtime(config_file, out).load_story(story_id)
    except Exception as exc:
        exit_with_command_error("stories show", exc)

    echo_json(story.as_payload())


@stories_app.command("update")
def stories_update_command(
    story_id: Annotated[str, typer.Argument(help="Identifier of a persisted story.")],
    title: Annotated[str | None, typer.Option("--title", help="New story title.")] = None,
    content: Annotated[str | None, typer.Option("--content", help="New story text.")] = None,
    creator_id: Annotated[
        str | None,
        typer.Option("--creator-id", help="Refuse the edit unless this creator owns the story."),
    ] = None,
    config_file: ConfigOption = None,
    out: OutOption = None,
) -> None:
    """Edit a story's title or content and print the updated record as JSON."""

    try:
        runtime = _story_catalog_runtime(config_file, out)
        runtime.load_story(story_id)
        story = runtime.story_catalog().update(
            story_id,
            title=title,
            content=content,
            creator_id=normalize_optional_string(creator_id),
        )
    except Exception as exc:
        exit_with_command_error("stories update", exc)

    echo_json(story.as_payload())


@stories_app.command("delete")
def stories_delete_command(
    story_id: Annotated[str, typer.Argument(help="Identifier of a persisted story.")],
    creator_id: Annotated[
        str | None,
        typer.Option("--creator-id", help="Refuse to delete unless this creator owns the story."),
    ] = None,
    config_file: ConfigOption = None,
    out: OutOption = None,
) -> None:
    """Delete a persisted story and its storybook."""

    try:
        runtime = _story_catalog_runtime(config_file, out)
        runtime.load_story(story_id)
        runtime.story_catalog().delete(story_id, creator_id=normalize_optional_string(creator_id))
    except Exception as exc:
        exit_with_command_error("stories delete", exc)

    typer.echo(f"Deleted story `{story_id}`.")


@storybooks_app.command("show")
def storybooks_show_command(
    story_id: Annotated[str, typer.Argument(help="Identifier of the storybook's story.")],
    config_file: ConfigOption = None,
    out: OutOption = None,
) -> None:
    """Print a persisted storybook as JSON."""

    try:
        runtime = _story_catalog_runtime(config_file, out)
        try:
            storybook = runtime.store.load_storybook(story_id)
        except FileNotFoundError as exc:
            raise PipelineStageError(
                stage="load",
                detail=str(exc),
                hint=f"Build one first with `storymaker storybook {story_id}`.",
            ) from exc
    except Exception as exc:
        exit_with_command_error("storybooks show", exc)

    echo_json(storybook.as_payload())


def main() -> None:
    """CLI entrypoint for console scripts."""
    app()


if __name__ == "__main__":
    main()
