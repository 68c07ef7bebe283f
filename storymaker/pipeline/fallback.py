"""Ordered provider fallback.

Responsibilities:
- Try provider candidates in priority order, one attempt each.
- Record typed failures and return the first success tagged with its provider.
- Raise `AllProvidersFailedError` when every candidate failed.
"""

from __future__ import annotations

from typing import Generic, Sequence, TypeVar

from ..errors import AllProvidersFailedError, ErrorKind, NarrationCancelledError, ProviderFailure
from ..models.datatypes import ProviderResult
from ..providers.base import ProviderAdapter
from ..telemetry.logger import RunLogger

RequestT = TypeVar("RequestT")


class FallbackChain(Generic[RequestT]):
    """Priority-ordered chain of provider adapters sharing one request type."""

    def __init__(
        self,
        adapters: Sequence[ProviderAdapter[RequestT]],
        run_logger: RunLogger | None = None,
        stage: str = "generate",
    ) -> None:
        self.adapters = tuple(adapters)
        self.run_logger = run_logger
        self.stage = stage

    @property
    def provider_ids(self) -> tuple[str, ...]:
        return tuple(adapter.provider_id for adapter in self.adapters)

    def generate(self, request: RequestT) -> ProviderResult:
        """Return the first successful provider result.

        Raises:
            AllProvidersFailedError: With the ordered failure list when no
                candidate succeeded.
            NarrationCancelledError: Propagated unchanged from a candidate.
        """

        failures: list[ProviderFailure] = []
        for adapter in self.adapters:
            if self.run_logger is not None:
                self.run_logger.log_provider_attempt(self.stage, adapter.provider_id)
            try:
                result = adapter.call(request)
            except NarrationCancelledError:
                raise
            except Exception as exc:
                result = ProviderResult.failure(
                    adapter.provider_id,
                    ErrorKind.UNAVAILABLE,
                    f"{adapter.provider_id} raised {type(exc).__name__}.",
                )

            if result.success:
                if self.run_logger is not None:
                    self.run_logger.log_provider_success(self.stage, adapter.provider_id)
                return result

            error_kind = result.error_kind if result.error_kind is not None else ErrorKind.UNAVAILABLE
            failures.append(
                ProviderFailure(
                    provider_id=adapter.provider_id,
                    error_kind=error_kind,
                    detail=result.detail,
                    retry_after_seconds=result.retry_after_seconds,
                )
            )
            if self.run_logger is not None:
                self.run_logger.log_provider_failure(
                    self.stage, adapter.provider_id, error_kind.value
                )

        raise AllProvidersFailedError(failures)
