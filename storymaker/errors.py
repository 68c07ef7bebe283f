"""Domain exceptions for generation pipelines and CLI diagnostics.

Key types:
- `ErrorKind`: normalized provider failure taxonomy.
- `PipelineStageError`: stage-scoped failure rendered by the CLI.
- `AllProvidersFailedError`: terminal fallback-chain failure.
- `IncompleteSequenceError`: assembler ordering precondition violation.
- `NarrationCancelledError`: narration abandoned by deadline or caller cancel.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    """Normalized failure kinds produced at the provider adapter boundary."""

    AUTH_ERROR = "auth_error"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    MALFORMED_RESPONSE = "malformed_response"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True, slots=True)
class ProviderFailure:
    """One failed provider attempt recorded by the fallback chain."""

    provider_id: str
    error_kind: ErrorKind
    detail: str = ""
    retry_after_seconds: float | None = None


class PipelineStageError(RuntimeError):
    """Raised when a specific pipeline stage fails."""

    def __init__(
        self,
        *,
        stage: str,
        detail: str,
        hint: str | None = None,
    ) -> None:
        """Initialize a stage-scoped pipeline error."""

        super().__init__(detail)
        self.stage = stage
        self.detail = detail
        self.hint = hint


class AllProvidersFailedError(RuntimeError):
    """Raised when every candidate in a fallback chain failed."""

    def __init__(self, failures: list[ProviderFailure]) -> None:
        self.failures = list(failures)
        if self.failures:
            summary = ", ".join(
                f"{failure.provider_id}={failure.error_kind.value}" for failure in self.failures
            )
            message = f"All providers failed: {summary}."
        else:
            message = "No providers are configured for this operation."
        super().__init__(message)

    @property
    def retry_after_seconds(self) -> float | None:
        """Return the largest rate-limit backoff hint reported by any provider."""

        hints = [
            failure.retry_after_seconds
            for failure in self.failures
            if failure.error_kind is ErrorKind.RATE_LIMITED
            and failure.retry_after_seconds is not None
        ]
        return max(hints) if hints else None

    def failure_pairs(self) -> list[tuple[str, ErrorKind]]:
        """Return `(provider_id, error_kind)` pairs in attempt order."""

        return [(failure.provider_id, failure.error_kind) for failure in self.failures]


class IncompleteSequenceError(RuntimeError):
    """Raised when audio artifacts are not a gap-free ascending chunk sequence."""

    def __init__(self, expected_index: int, actual_index: int) -> None:
        super().__init__(
            f"Audio artifact sequence is incomplete: expected chunk {expected_index}, "
            f"got chunk {actual_index}."
        )
        self.expected_index = expected_index
        self.actual_index = actual_index


class NarrationCancelledError(RuntimeError):
    """Raised when a narration request is cancelled or exceeds its deadline."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Narration abandoned: {reason}.")
        self.reason = reason
