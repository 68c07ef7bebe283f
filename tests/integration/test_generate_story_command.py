"""Integration tests for the `generate-story` and `enhance-prompt` commands."""

from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from storymaker.cli import app

GOOGLE_STORY = "Once upon a time, a lighthouse keeper found a map in a bottle. " * 4


def _google_text_payload(text: str) -> dict[str, object]:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def test_generate_story_falls_back_from_rate_limited_openai_to_google(
    tmp_path: Path, provider_http, credential_store, valid_api_keys, read_json
) -> None:  # type: ignore[no-untyped-def]
    """A rate-limited first provider should hand over to the next configured provider."""

    provider_http.route(
        "/v1/chat/completions",
        json_payload={"error": {"message": "Rate limit reached", "code": "rate_limit_exceeded"}},
        status_code=429,
        headers={"Retry-After": "20"},
    )
    provider_http.route("generativelanguage.googleapis.com", json_payload=_google_text_payload(GOOGLE_STORY))
    out_dir = tmp_path / "out"

    result = CliRunner().invoke(
        app,
        [
            "generate-story",
            "a lighthouse keeper",
            "--genre",
            "mystery",
            "--length",
            "short",
            "--creator-id",
            "user-1",
            "--out",
            str(out_dir),
            "--api-key",
            f"openai={valid_api_keys['openai']}",
            "--api-key",
            f"google={valid_api_keys['google']}",
        ],
    )

    assert result.exit_code == 0, result.output
    payload = read_json(result.output)
    assert payload["content"] == GOOGLE_STORY.strip()
    assert payload["provider"] == "google"
    assert payload["usedFallback"] is False
    assert payload["genre"] == "mystery"
    assert payload["length"] == "short"
    assert payload["creatorId"] == "user-1"
    assert payload["hasAudio"] is False
    assert payload["wordCount"] == len(GOOGLE_STORY.split())
    stored = json.loads((out_dir / "stories" / f"{payload['id']}.json").read_text(encoding="utf-8"))
    assert stored["content"] == payload["content"]
    assert credential_store.keys == {
        "openai": valid_api_keys["openai"],
        "google": valid_api_keys["google"],
    }
    assert "Stored API key(s) in secure credential storage." in result.output
    assert (
        "[phase] level=WARNING stage=generate_story event=provider_failure "
        "error_kind=rate_limited provider=openai"
    ) in result.output
    assert "[phase] level=INFO stage=generate_story event=provider_success provider=google" in (
        result.output
    )
    assert valid_api_keys["openai"] not in result.output


def test_generate_story_uses_template_when_no_provider_is_configured(
    tmp_path: Path, provider_http, read_json
) -> None:  # type: ignore[no-untyped-def]
    """Without any API keys the offline template story should be returned."""

    result = CliRunner().invoke(
        app,
        ["generate-story", "a brave squirrel", "--length", "short", "--out", str(tmp_path)],
    )

    assert result.exit_code == 0, result.output
    payload = read_json(result.output)
    assert payload["provider"] == "template"
    assert payload["usedFallback"] is True
    assert payload["content"].startswith("Once upon a time, in a world not far from our own, a brave squirrel")
    assert payload["wordCount"] >= 800
    assert provider_http.calls == []
    assert "event=provider_failure error_kind=auth_error provider=openai" in result.output


def test_generate_story_uses_stored_keys_without_cli_overrides(
    tmp_path: Path, provider_http, credential_store, valid_api_keys, read_json
) -> None:  # type: ignore[no-untyped-def]
    """Keys in secure storage should be used when no CLI key is given."""

    credential_store.keys["openai"] = valid_api_keys["openai"]
    provider_http.route(
        "/v1/chat/completions",
        json_payload={"choices": [{"message": {"content": GOOGLE_STORY}}]},
    )

    result = CliRunner().invoke(app, ["generate-story", "a lighthouse", "--out", str(tmp_path)])

    assert result.exit_code == 0, result.output
    assert read_json(result.output)["provider"] == "openai"
    sent = provider_http.calls_to("/v1/chat/completions")[0]
    assert sent["headers"]["Authorization"] == f"Bearer {valid_api_keys['openai']}"
    assert sent["json"]["model"] == "gpt-3.5-turbo"


def test_generate_story_with_narrate_attaches_audio(
    tmp_path: Path, provider_http, valid_api_keys, wav_factory, read_json
) -> None:  # type: ignore[no-untyped-def]
    """`--narrate` should persist the story with a narration reference."""

    provider_http.route("/v1/audio/speech", content=wav_factory(1.5))

    result = CliRunner().invoke(
        app,
        [
            "generate-story",
            "a sleepy owl",
            "--length",
            "short",
            "--narrate",
            "--voice",
            "elderly",
            "--out",
            str(tmp_path),
            "--api-key",
            f"openai={valid_api_keys['openai']}",
            "--no-store-api-key",
        ],
    )

    assert result.exit_code == 0, result.output
    payload = read_json(result.output)
    assert payload["provider"] == "template"
    assert payload["hasAudio"] is True
    assert payload["audioUrl"].startswith("/api/audio/")
    assert (tmp_path / "audio" / payload["audioUrl"].rsplit("/", 1)[1]).is_file()
    speech_calls = provider_http.calls_to("/v1/audio/speech")
    assert speech_calls
    assert {call["json"]["voice"] for call in speech_calls} == {"echo"}
    assert payload["audioDuration"] == 1.5 * len(speech_calls)


def test_enhance_prompt_returns_provider_enhancement(
    tmp_path: Path, provider_http, valid_api_keys, read_json
) -> None:  # type: ignore[no-untyped-def]
    """Sufficiently longer provider output should be returned as the enhanced prompt."""

    enhanced = "A dragon who fears heights must cross the Sky Bridge to save her village. " * 2
    provider_http.route("generativelanguage.googleapis.com", json_payload=_google_text_payload(enhanced))

    result = CliRunner().invoke(
        app,
        [
            "enhance-prompt",
            "a dragon who fears heights",
            "--out",
            str(tmp_path),
            "--api-key",
            f"google={valid_api_keys['google']}",
            "--no-store-api-key",
        ],
    )

    assert result.exit_code == 0, result.output
    assert read_json(result.output) == {
        "originalPrompt": "a dragon who fears heights",
        "enhancedPrompt": enhanced.strip(),
        "provider": "google",
        "usedFallback": False,
    }
    assert "safetySettings" not in provider_http.calls_to("generativelanguage")[0]["json"]


def test_enhance_prompt_rejects_short_provider_output(
    tmp_path: Path, provider_http, valid_api_keys, read_json
) -> None:  # type: ignore[no-untyped-def]
    """Enhancements that barely grow the prompt should fall back to the template."""

    provider_http.route(
        "generativelanguage.googleapis.com", json_payload=_google_text_payload("a scared dragon")
    )

    result = CliRunner().invoke(
        app,
        [
            "enhance-prompt",
            "a dragon who fears heights",
            "--genre",
            "horror",
            "--out",
            str(tmp_path),
            "--api-key",
            f"google={valid_api_keys['google']}",
            "--no-store-api-key",
        ],
    )

    assert result.exit_code == 0, result.output
    payload = read_json(result.output)
    assert payload["provider"] == "template"
    assert payload["usedFallback"] is True
    assert payload["enhancedPrompt"].startswith("a dragon who fears heights\n\nEnhanced narrative direction:")
    assert "error_kind=malformed_response provider=google" in result.output
