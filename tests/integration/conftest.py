"""Integration-test fixtures for deterministic provider and credential behavior."""

from __future__ import annotations

import json
import os
from typing import Any

import pytest
import requests

import storymaker.cli

API_KEY_ENV_VARS = (
    "OPENAI_API_KEY",
    "HUGGINGFACE_API_KEY",
    "GOOGLE_AI_API_KEY",
    "GOOGLE_TTS_API_KEY",
    "ELEVENLABS_API_KEY",
)


class InMemoryCredentialStore:
    """Simple in-memory credential store used for CLI tests."""

    def __init__(self) -> None:
        """Initialize empty per-slot storage."""

        self.keys: dict[str, str] = {}

    def is_available(self) -> bool:
        """Return availability flag expected by the CLI status command."""

        return True

    def get_api_key(self, provider: str) -> str | None:
        """Return the stored key for a slot."""

        return self.keys.get(provider)

    def set_api_key(self, provider: str, api_key: str) -> None:
        """Persist a normalized API key value."""

        self.keys[provider] = api_key.strip()

    def clear_api_key(self, provider: str) -> bool:
        """Clear a slot and return whether a key existed."""

        return self.keys.pop(provider, None) is not None

    def load_all(self) -> dict[str, str]:
        """Return every stored key."""

        return dict(self.keys)


class MockHttpResponse:
    """Minimal `requests` response double."""

    def __init__(
        self, content: bytes, status_code: int = 200, headers: dict[str, str] | None = None
    ) -> None:
        self.content = content
        self.status_code = status_code
        self.headers = headers or {}

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}", response=self)


class ProviderHttpRouter:
    """Route mocked `requests.post` calls to canned responses by URL fragment."""

    def __init__(self) -> None:
        self.routes: list[tuple[str, MockHttpResponse]] = []
        self.calls: list[dict[str, Any]] = []

    def route(
        self,
        url_fragment: str,
        *,
        json_payload: Any = None,
        content: bytes | None = None,
        status_code: int = 200,
        headers: dict[str, str] | None = None,
    ) -> None:
        """Register the response returned for URLs containing `url_fragment`."""

        body = content if content is not None else json.dumps(json_payload).encode("utf-8")
        self.routes.append((url_fragment, MockHttpResponse(body, status_code, headers)))

    def calls_to(self, url_fragment: str) -> list[dict[str, Any]]:
        """Return recorded calls whose URL contains `url_fragment`."""

        return [call for call in self.calls if url_fragment in call["url"]]

    def post(self, url: str, **kwargs: Any) -> MockHttpResponse:
        self.calls.append({"url": url, **kwargs})
        for url_fragment, response in self.routes:
            if url_fragment in url:
                return response
        raise requests.ConnectionError(f"No mocked route for {url}")


@pytest.fixture(autouse=True)
def credential_store(monkeypatch: pytest.MonkeyPatch) -> InMemoryCredentialStore:
    """Replace the keyring store and clear provider environment variables."""

    for env_key in API_KEY_ENV_VARS:
        monkeypatch.delenv(env_key, raising=False)
    for env_key in list(os.environ):
        if env_key.startswith("STORYMAKER_"):
            monkeypatch.delenv(env_key, raising=False)

    store = InMemoryCredentialStore()
    monkeypatch.setattr(storymaker.cli, "create_credential_store", lambda: store)
    return store


@pytest.fixture(autouse=True)
def provider_http(monkeypatch: pytest.MonkeyPatch) -> ProviderHttpRouter:
    """Mock every outbound provider request; unrouted URLs fail as unavailable."""

    router = ProviderHttpRouter()
    monkeypatch.setattr(requests, "post", router.post)
    return router


def json_from_output(output: str) -> Any:
    """Decode the JSON document printed after any log lines."""

    lines = output.splitlines()
    for index, line in enumerate(lines):
        if line in ("{", "[", "[]"):
            payload, _ = json.JSONDecoder().raw_decode("\n".join(lines[index:]))
            return payload
    raise AssertionError(f"No JSON document in output:\n{output}")


@pytest.fixture
def read_json():
    """Provide the CLI JSON output decoder."""

    return json_from_output
