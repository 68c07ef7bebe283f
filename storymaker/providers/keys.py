"""API key format validation helpers.

Responsibilities:
- Reject missing, placeholder, and malformed provider API keys before any call.
- Mask keys for diagnostics so secrets never reach logs or CLI output.
"""

from __future__ import annotations

from dataclasses import dataclass
import re


API_KEY_PATTERNS: dict[str, re.Pattern[str]] = {
    "openai": re.compile(r"^sk-[a-zA-Z0-9]{48}$"),
    "huggingface": re.compile(r"^hf_[a-zA-Z0-9]{32,}$"),
    "google": re.compile(r"^AIza[0-9A-Za-z_-]{35}$"),
    "elevenlabs": re.compile(r"^[0-9a-f]{32}$"),
}

_PLACEHOLDER_TOKENS = (
    "your_openai_api_key",
    "your_huggingface_api_key",
    "your_google_ai_api_key",
    "your_google_api_key",
    "your_elevenlabs_api_key",
    "your_ai_api_key",
    "your_api_key",
    "api_key",
    "change-me",
    "replace-me",
    "placeholder",
    "demo",
)

_MIN_KEY_LENGTH = 10


@dataclass(frozen=True, slots=True)
class KeyValidation:
    """Result of one API key validation."""

    is_valid: bool
    error: str | None = None


def clean_api_key(api_key: str | None) -> str:
    """Strip whitespace and wrapping quotes copied from `.env` files."""

    if api_key is None:
        return ""
    return api_key.strip().strip("\"'").strip()


def validate_api_key(api_key: object, provider: str) -> KeyValidation:
    """Validate that a key is present, not a placeholder, and matches its provider pattern."""

    if not api_key:
        return KeyValidation(False, "API key is required")
    if not isinstance(api_key, str):
        return KeyValidation(False, "API key must be a string")

    lowered = api_key.lower()
    if any(token in lowered for token in _PLACEHOLDER_TOKENS):
        return KeyValidation(False, "API key appears to be a placeholder value")
    if len(api_key) < _MIN_KEY_LENGTH:
        return KeyValidation(False, "API key is too short to be valid")

    pattern = API_KEY_PATTERNS.get(provider.lower())
    if pattern is not None and not pattern.match(api_key):
        return KeyValidation(
            False, f"API key format doesn't match expected pattern for {provider}"
        )
    return KeyValidation(True)


def mask_api_key(api_key: str | None) -> str:
    """Return the key with only its first and last four characters visible."""

    if not api_key or len(api_key) < 8:
        return "***"
    middle = "*" * min(len(api_key) - 8, 20)
    return f"{api_key[:4]}{middle}{api_key[-4:]}"
