"""CLI output and error rendering helpers.

This module centralizes user-facing CLI presentation for command diagnostics,
JSON payload output, provider status rows, story listings, and audio file
listings.
"""

from __future__ import annotations

import json
from typing import Any, NoReturn

import typer

from .audio.cleanup import AudioFileInfo
from .errors import AllProvidersFailedError, NarrationCancelledError, PipelineStageError
from .models.datatypes import StoryRecord
from .providers.status import ProviderStatus


def exit_with_command_error(command_name: str, exc: Exception) -> NoReturn:
    """Print concise diagnostics for command failures and exit with code 1."""

    if isinstance(exc, PipelineStageError):
        typer.secho(
            f"{command_name} failed at stage `{exc.stage}`: {exc.detail}",
            fg=typer.colors.RED,
            err=True,
        )
        if exc.hint:
            typer.secho(f"Hint: {exc.hint}", fg=typer.colors.YELLOW, err=True)
    elif isinstance(exc, AllProvidersFailedError):
        typer.secho(f"{command_name} failed: {exc}", fg=typer.colors.RED, err=True)
        retry_after = exc.retry_after_seconds
        if retry_after is not None:
            typer.secho(
                f"Hint: rate limited; retry after {retry_after:g} seconds.",
                fg=typer.colors.YELLOW,
                err=True,
            )
        else:
            typer.secho(
                "Hint: check provider API keys with `storymaker providers`.",
                fg=typer.colors.YELLOW,
                err=True,
            )
    elif isinstance(exc, NarrationCancelledError):
        typer.secho(f"{command_name} failed: {exc}", fg=typer.colors.RED, err=True)
        typer.secho(
            "Hint: raise `narration_timeout_seconds` or shorten the story.",
            fg=typer.colors.YELLOW,
            err=True,
        )
    else:
        typer.secho(f"{command_name} failed: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1) from exc


def echo_json(payload: Any) -> None:
    """Print a payload as indented JSON with stable key order."""

    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


def echo_provider_status(statuses: list[ProviderStatus]) -> None:
    """Print one row per provider in stage and priority order."""

    for status in statuses:
        masked = f" key={status.masked_key}" if status.masked_key else ""
        typer.echo(
            f"{status.stage}:{status.priority}. {status.provider_id} "
            f"[{status.status}] {status.message}{masked}"
        )


def echo_audio_files(files: list[AudioFileInfo]) -> None:
    """Print generated audio files with sizes and a total."""

    if not files:
        typer.echo("No generated audio files.")
        return
    for info in files:
        typer.echo(f"{info.filename}  {info.size_megabytes:.2f} MB  {info.url}")
    total_mb = round(sum(info.size_bytes for info in files) / (1024 * 1024), 2)
    typer.echo(f"Total: {len(files)} file(s), {total_mb:.2f} MB")


def echo_stories(stories: list[StoryRecord]) -> None:
    """Print one row per story: id, genre, length, words, audio flag, and title."""

    if not stories:
        typer.echo("No stories.")
        return
    for story in stories:
        audio = " [audio]" if story.has_audio else ""
        typer.echo(
            f"{story.id}  {story.genre.value}/{story.length.value}  "
            f"{story.word_count} words{audio}  {story.title}"
        )
    typer.echo(f"Total stories: {len(stories)}")
