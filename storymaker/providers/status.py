"""Provider configuration status reporting.

Responsibilities:
- Report, per configured provider, whether its API key is present and well formed.
- Expose only masked keys.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Mapping

from .base import ProviderKind
from .keys import clean_api_key, mask_api_key, validate_api_key

if TYPE_CHECKING:
    from ..config import StorymakerConfig


@dataclass(frozen=True, slots=True)
class ProviderStatus:
    """Configuration status of one provider in one stage."""

    provider_id: str
    stage: str
    priority: int
    is_configured: bool
    message: str
    masked_key: str | None = None

    @property
    def status(self) -> str:
        return "healthy" if self.is_configured else "unhealthy"

    def as_payload(self) -> dict[str, Any]:
        """Return a JSON-serializable status payload."""

        return {
            "provider": self.provider_id,
            "stage": self.stage,
            "priority": self.priority,
            "isConfigured": self.is_configured,
            "status": self.status,
            "message": self.message,
            "maskedKey": self.masked_key,
        }


def _key_slot(provider_id: str, stage: str) -> str:
    if stage == "speech" and provider_id == ProviderKind.GOOGLE.value:
        return "google_tts"
    return provider_id


def provider_status(
    config: StorymakerConfig,
    api_keys: Mapping[str, str | None] | None = None,
) -> list[ProviderStatus]:
    """Report configuration status for every configured provider in priority order.

    `api_keys` defaults to the keys resolved from the config runtime sources.
    """

    keys = api_keys if api_keys is not None else config.resolved_api_keys()
    statuses: list[ProviderStatus] = []
    for stage, providers in (("text", config.text_providers), ("speech", config.speech_providers)):
        for priority, provider_id in enumerate(providers, start=1):
            if provider_id == ProviderKind.TEMPLATE.value:
                statuses.append(
                    ProviderStatus(provider_id, stage, priority, True, "Ready (offline template)")
                )
                continue
            raw_key = keys.get(_key_slot(provider_id, stage))
            if raw_key is None and stage == "speech" and provider_id == ProviderKind.GOOGLE.value:
                raw_key = keys.get("google")
            api_key = clean_api_key(raw_key)
            validation = validate_api_key(api_key, provider_id)
            statuses.append(
                ProviderStatus(
                    provider_id=provider_id,
                    stage=stage,
                    priority=priority,
                    is_configured=validation.is_valid,
                    message="Ready" if validation.is_valid else str(validation.error),
                    masked_key=mask_api_key(api_key) if validation.is_valid else None,
                )
            )
    return statuses
