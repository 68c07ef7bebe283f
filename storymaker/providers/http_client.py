"""Shared HTTP transport for provider adapters.

Responsibilities:
- Send JSON POST requests to provider REST APIs through `requests`.
- Classify HTTP and transport failures into the normalized `ErrorKind` taxonomy.
- Redact credentials from provider error messages before they reach diagnostics.
- Retry transient failures within an adapter-owned retry budget.
"""

from __future__ import annotations

import json
import re
import socket
import time
from typing import Any, Callable, Mapping

import requests

from ..errors import ErrorKind
from .rate_limiter import RateLimiter


class ProviderCallError(RuntimeError):
    """Raised by the transport when a provider request fails or is malformed."""

    def __init__(
        self,
        message: str,
        *,
        error_kind: ErrorKind,
        status_code: int | None = None,
        provider_code: str | None = None,
        retry_after_seconds: float | None = None,
    ) -> None:
        """Initialize provider error metadata for chain-level diagnostics."""

        super().__init__(message)
        self.error_kind = error_kind
        self.status_code = status_code
        self.provider_code = provider_code
        self.retry_after_seconds = retry_after_seconds


class ProviderHttpClient:
    """Minimal requests-based JSON client shared by every provider adapter."""

    _MAX_PROVIDER_MESSAGE_CHARS = 180
    _RETRYABLE_KINDS = frozenset({ErrorKind.TIMEOUT, ErrorKind.UNAVAILABLE})

    def __init__(
        self,
        *,
        provider_label: str,
        timeout_seconds: float = 30.0,
        max_retries: int = 0,
        retry_backoff_base_seconds: float = 0.5,
        retry_backoff_max_seconds: float = 8.0,
        rate_limiter: RateLimiter | None = None,
        sleeper: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize transport settings for one provider."""

        self.provider_label = provider_label
        self.timeout_seconds = timeout_seconds
        self.max_retries = max(0, max_retries)
        self.retry_backoff_base_seconds = retry_backoff_base_seconds
        self.retry_backoff_max_seconds = retry_backoff_max_seconds
        self.rate_limiter = rate_limiter if rate_limiter is not None else RateLimiter()
        self.sleeper = sleeper
        self.retry_attempts = 0

    def post_json(
        self,
        url: str,
        *,
        payload: Mapping[str, Any],
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
        timeout_seconds: float | None = None,
    ) -> bytes:
        """POST a JSON payload and return the raw response body.

        Timeouts and unavailable-provider failures are retried up to
        `max_retries` times with exponential backoff; every other failure kind
        is raised immediately. `timeout_seconds` can only shorten the configured per-call timeout.
        """

        attempt = 0
        while True:
            try:
                return self._post_once(
                    url,
                    payload=payload,
                    headers=headers,
                    params=params,
                    timeout_seconds=self._effective_timeout(timeout_seconds),
                )
            except ProviderCallError as exc:
                if exc.error_kind not in self._RETRYABLE_KINDS or attempt >= self.max_retries:
                    raise
                delay = min(
                    self.retry_backoff_max_seconds,
                    self.retry_backoff_base_seconds * (2**attempt),
                )
                attempt += 1
                self.retry_attempts += 1
                self.sleeper(delay)

    def _effective_timeout(self, timeout_seconds: float | None) -> float:
        if timeout_seconds is None:
            return self.timeout_seconds
        return max(0.001, min(self.timeout_seconds, timeout_seconds))

    def post_json_payload(
        self,
        url: str,
        *,
        payload: Mapping[str, Any],
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
        timeout_seconds: float | None = None,
    ) -> Any:
        """POST a JSON payload and decode the JSON response body."""

        body = self.post_json(
            url, payload=payload, headers=headers, params=params, timeout_seconds=timeout_seconds
        )
        try:
            return json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ProviderCallError(
                f"{self.provider_label} returned invalid JSON payload.",
                error_kind=ErrorKind.MALFORMED_RESPONSE,
            ) from exc

    def _post_once(
        self,
        url: str,
        *,
        payload: Mapping[str, Any],
        headers: Mapping[str, str] | None,
        params: Mapping[str, str] | None,
        timeout_seconds: float,
    ) -> bytes:
        """Execute one POST request and map failures consistently."""

        self.rate_limiter.acquire(self.provider_label)
        request_headers = {"Content-Type": "application/json"}
        if headers:
            request_headers.update(headers)
        try:
            response = requests.post(
                url,
                headers=request_headers,
                params=dict(params) if params else None,
                json=dict(payload),
                timeout=timeout_seconds,
            )
            response.raise_for_status()
            return bytes(response.content)
        except requests.HTTPError as exc:
            raise self._http_error_to_provider_error(exc) from exc
        except requests.RequestException as exc:
            error_kind = self._classify_transport_failure(exc)
            if error_kind is ErrorKind.TIMEOUT:
                detail = f"{self.provider_label} request timed out."
            else:
                detail = (
                    f"{self.provider_label} request transport error: "
                    f"{self._short_message(self._redact_sensitive_tokens(str(exc)))}"
                )
            raise ProviderCallError(detail, error_kind=error_kind) from exc
        except TimeoutError as exc:
            raise ProviderCallError(
                f"{self.provider_label} request timed out.",
                error_kind=ErrorKind.TIMEOUT,
            ) from exc

    @staticmethod
    def _decode_error_body(exc: requests.HTTPError) -> str:
        """Decode an HTTP error body into a best-effort UTF-8 payload string."""

        response = exc.response
        if response is None:
            return ""
        return bytes(response.content or b"").decode("utf-8", errors="replace").strip()

    @classmethod
    def _redact_sensitive_tokens(cls, text: str) -> str:
        """Redact API-key-like tokens from provider error content."""

        redacted = re.sub(r"\bsk-[A-Za-z0-9_-]{8,}\b", "[redacted-key]", text)
        redacted = re.sub(r"\bhf_[A-Za-z0-9]{8,}\b", "[redacted-key]", redacted)
        redacted = re.sub(r"\bAIza[0-9A-Za-z_-]{8,}", "[redacted-key]", redacted)
        redacted = re.sub(r"(?i)([?&]key=)[^&\s]+", r"\1[redacted-key]", redacted)
        redacted = re.sub(
            r"(?i)bearer\s+[A-Za-z0-9._-]{12,}",
            "Bearer [redacted-token]",
            redacted,
        )
        return redacted

    @classmethod
    def _short_message(cls, text: str) -> str:
        """Normalize and cap user-facing provider message length."""

        compact = " ".join(text.split())
        if len(compact) <= cls._MAX_PROVIDER_MESSAGE_CHARS:
            return compact
        return f"{compact[: cls._MAX_PROVIDER_MESSAGE_CHARS - 1]}..."

    @classmethod
    def _extract_provider_message(cls, body: str) -> tuple[str, str | None]:
        """Extract a concise provider-facing message and optional provider error code.

        Handles the OpenAI/Google `{"error": {"message", "code"|"status"}}`
        shape, the HuggingFace `{"error": "..."}` shape, and the ElevenLabs
        `{"detail": {"message", "status"}}` shape.
        """

        if not body:
            return "", None

        try:
            payload = json.loads(body)
        except json.JSONDecodeError:
            return cls._short_message(cls._redact_sensitive_tokens(body)), None

        provider_code: str | None = None
        message: str | None = None
        if isinstance(payload, dict):
            error_payload = payload.get("error", payload.get("detail"))
            if isinstance(error_payload, str) and error_payload.strip():
                message = error_payload.strip()
            elif isinstance(error_payload, dict):
                for code_key in ("code", "status"):
                    code_value = error_payload.get(code_key)
                    if isinstance(code_value, str) and code_value.strip():
                        provider_code = code_value.strip()
                        break
                message_value = error_payload.get("message")
                if isinstance(message_value, str) and message_value.strip():
                    message = message_value.strip()

        if message is None:
            message = body

        return cls._short_message(cls._redact_sensitive_tokens(message)), provider_code

    @staticmethod
    def _classify_http_failure(
        status_code: int,
        provider_message: str,
        provider_code: str | None,
    ) -> ErrorKind:
        """Classify HTTP errors into the normalized error taxonomy."""

        message_lower = provider_message.lower()
        normalized_code = provider_code.lower() if provider_code is not None else ""

        if status_code in {401, 403} or normalized_code in {
            "invalid_api_key",
            "unauthenticated",
            "permission_denied",
        }:
            return ErrorKind.AUTH_ERROR
        if status_code == 429 or normalized_code in {
            "insufficient_quota",
            "resource_exhausted",
            "rate_limit_exceeded",
        }:
            return ErrorKind.RATE_LIMITED
        if status_code in {408, 504} or "timeout" in message_lower or "timed out" in message_lower:
            return ErrorKind.TIMEOUT
        return ErrorKind.UNAVAILABLE

    @staticmethod
    def _classify_transport_failure(reason: object) -> ErrorKind:
        """Classify network-layer failures into normalized error kinds."""

        if isinstance(reason, TimeoutError | socket.timeout | requests.Timeout):
            return ErrorKind.TIMEOUT
        return ErrorKind.UNAVAILABLE

    @staticmethod
    def _parse_retry_after(exc: requests.HTTPError) -> float | None:
        """Parse a numeric `Retry-After` header into seconds."""

        response = exc.response
        if response is None:
            return None
        headers = getattr(response, "headers", None) or {}
        raw_value = headers.get("Retry-After")
        if raw_value is None:
            return None
        try:
            return max(0.0, float(raw_value))
        except (TypeError, ValueError):
            return None

    def _http_error_to_provider_error(self, exc: requests.HTTPError) -> ProviderCallError:
        """Convert HTTP errors into normalized provider exceptions with metadata."""

        status_code = exc.response.status_code if exc.response is not None else 0
        body = self._decode_error_body(exc)
        provider_message, provider_code = self._extract_provider_message(body)
        error_kind = self._classify_http_failure(status_code, provider_message, provider_code)

        headline = {
            ErrorKind.AUTH_ERROR: "authentication failed",
            ErrorKind.RATE_LIMITED: "rate limit or quota exceeded",
            ErrorKind.TIMEOUT: "request timed out",
        }.get(error_kind, "request failed")

        if provider_message:
            detail = f"{self.provider_label} {headline} (HTTP {status_code}): {provider_message}"
        else:
            detail = f"{self.provider_label} {headline} (HTTP {status_code})."

        return ProviderCallError(
            detail,
            error_kind=error_kind,
            status_code=status_code,
            provider_code=provider_code,
            retry_after_seconds=(
                self._parse_retry_after(exc) if error_kind is ErrorKind.RATE_LIMITED else None
            ),
        )
