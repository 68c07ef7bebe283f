"""Provider adapter interfaces.

Responsibilities:
- Define the closed set of provider kinds.
- Define the uniform `call(request) -> ProviderResult` adapter protocol.
- Convert transport errors and unexpected exceptions into typed failures at
  the adapter boundary.
"""

from __future__ import annotations

from enum import Enum
from typing import Generic, Protocol, TypeVar

from ..errors import ErrorKind
from ..models.datatypes import ProviderResult, SpeechRequest, TextPrompt
from .http_client import ProviderCallError, ProviderHttpClient
from .keys import clean_api_key, validate_api_key


class ProviderKind(str, Enum):
    """Closed set of supported provider identifiers."""

    OPENAI = "openai"
    GOOGLE = "google"
    HUGGINGFACE = "huggingface"
    ELEVENLABS = "elevenlabs"
    TEMPLATE = "template"

    @classmethod
    def parse(cls, value: str) -> ProviderKind:
        """Parse a provider identifier case-insensitively."""

        token = value.strip().lower()
        for member in cls:
            if member.value == token:
                return member
        supported = ", ".join(member.value for member in cls)
        raise ValueError(f"Unsupported provider `{value}`; supported: {supported}.")


TEXT_PROVIDER_KINDS = (
    ProviderKind.OPENAI,
    ProviderKind.GOOGLE,
    ProviderKind.HUGGINGFACE,
    ProviderKind.TEMPLATE,
)
SPEECH_PROVIDER_KINDS = (ProviderKind.OPENAI, ProviderKind.ELEVENLABS, ProviderKind.GOOGLE)

RequestT = TypeVar("RequestT", contravariant=True)


class ProviderAdapter(Protocol[RequestT]):
    """Protocol shared by every text and speech provider adapter."""

    provider_id: str

    def call(self, request: RequestT) -> ProviderResult:
        """Invoke the provider once and return a success or typed failure."""


TextAdapter = ProviderAdapter[TextPrompt]
SpeechAdapter = ProviderAdapter[SpeechRequest]

_RequestT = TypeVar("_RequestT")


class HttpProviderAdapter(Generic[_RequestT]):
    """Base class for adapters backed by an authenticated HTTP API.

    Subclasses implement `_invoke`, raising `ProviderCallError` for expected
    provider failures.
    """

    def __init__(
        self,
        *,
        provider_id: str,
        api_key: str | None,
        http_client: ProviderHttpClient,
    ) -> None:
        self.provider_id = provider_id
        self.api_key = clean_api_key(api_key)
        self.http_client = http_client

    def call(self, request: _RequestT) -> ProviderResult:
        """Validate credentials, invoke the provider, and normalize failures."""

        validation = validate_api_key(self.api_key, self.provider_id)
        if not validation.is_valid:
            return ProviderResult.failure(
                self.provider_id,
                ErrorKind.AUTH_ERROR,
                f"Skipping {self.provider_id}: {validation.error}.",
            )
        try:
            return self._invoke(request)
        except ProviderCallError as exc:
            return ProviderResult.failure(
                self.provider_id,
                exc.error_kind,
                str(exc),
                retry_after_seconds=exc.retry_after_seconds,
            )
        except Exception as exc:
            return ProviderResult.failure(
                self.provider_id,
                ErrorKind.UNAVAILABLE,
                f"{self.provider_id} adapter failed unexpectedly: {type(exc).__name__}.",
            )

    def _invoke(self, request: _RequestT) -> ProviderResult:
        raise NotImplementedError

    def malformed(self, detail: str) -> ProviderCallError:
        """Build a malformed-response error for this provider."""

        return ProviderCallError(
            f"{self.http_client.provider_label} {detail}",
            error_kind=ErrorKind.MALFORMED_RESPONSE,
        )
