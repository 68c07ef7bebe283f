"""Deterministic cache keys for narration artifacts.

Responsibilities:
- Hash voice settings into an order-independent settings key.
- Combine the settings key with the source-text identity into a narration cache key.
"""

from __future__ import annotations

from hashlib import sha256
import json
from typing import Any, Mapping

from ..models.datatypes import VoiceSettings


def _canonicalize(value: Any) -> Any:
    """Normalize settings values so equivalent inputs serialize identically."""

    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, int | float):
        number = float(value)
        return 0.0 if number == 0.0 else number
    if isinstance(value, str):
        return " ".join(value.split())
    if isinstance(value, Mapping):
        return {str(key): _canonicalize(value[key]) for key in sorted(value, key=str)}
    if isinstance(value, list | tuple):
        return [_canonicalize(item) for item in value]
    return str(value)


def derive_settings_key(
    settings: VoiceSettings | Mapping[str, Any], *, provider: str | None = None
) -> str:
    """Return the SHA-256 hex digest of canonical settings JSON.

    Field order is irrelevant and integral numbers hash like their float
    equivalents. `provider` joins the hash when given, so the same voice on a
    different provider priority yields a different key.
    """

    payload = dict(settings.as_dict() if isinstance(settings, VoiceSettings) else settings)
    if provider is not None:
        payload["provider"] = provider
    canonical = json.dumps(
        _canonicalize(payload),
        sort_keys=True,
        ensure_ascii=True,
        separators=(",", ":"),
    )
    return sha256(canonical.encode("utf-8")).hexdigest()


def text_identity(text: str) -> str:
    """Return the SHA-256 hex digest of whitespace-normalized text."""

    return sha256(" ".join(text.split()).encode("utf-8")).hexdigest()


def narration_cache_key(settings_hash: str, text: str) -> str:
    """Combine a settings hash with the source-text identity."""

    return sha256(f"{settings_hash}:{text_identity(text)}".encode("ascii")).hexdigest()
