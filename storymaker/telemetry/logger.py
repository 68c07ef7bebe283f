"""Structured run logging utilities.

Responsibilities:
- Emit concise, deterministic stage- and provider-level runtime logs.
- Route all lines through `loguru` with a plain message format.

Lines look like `[phase] level=INFO stage=narrate event=cache_hit key=...`, with
context keys sorted so the same activity always renders the same line.
"""

from __future__ import annotations

import sys
from typing import TextIO

from loguru import logger as _loguru_logger

_SAFE_PUNCTUATION = frozenset("-_.:/")


def _token(value: object) -> str:
    """Render a context value as one whitespace-free token."""

    text = str(value).strip()
    if not text:
        return "none"
    return "".join(ch if ch.isalnum() or ch in _SAFE_PUNCTUATION else "_" for ch in text)


def format_event_line(level: str, stage: str, event: str, context: dict[str, object]) -> str:
    """Build one run-log line with context pairs in key order."""

    pairs = "".join(f" {key}={_token(context[key])}" for key in sorted(context))
    return f"[phase] level={level} stage={stage} event={event}{pairs}"


class RunLogger:
    """Emit deterministic logs for CLI-observable generation activity."""

    def __init__(self, sink: TextIO | None = None, level: str = "INFO") -> None:
        """Attach a message-only `loguru` sink, stderr by default."""

        self._sink = sink or sys.stderr
        _loguru_logger.remove()
        _loguru_logger.add(self._sink, format="{message}", level=level, colorize=False)

    def _emit(self, level: str, event: str, stage: str, **context: object) -> None:
        _loguru_logger.log(level, format_event_line(level, stage, event, context))

    def log_stage_start(self, stage: str, **context: object) -> None:
        self._emit("INFO", "start", stage, **context)

    def log_stage_complete(self, stage: str, **context: object) -> None:
        self._emit("INFO", "complete", stage, **context)

    def log_stage_failure(self, stage: str, error_type: str) -> None:
        """Record that a stage gave up; only the error type is logged."""

        self._emit("ERROR", "failure", stage, error_type=error_type)

    def log_provider_attempt(self, stage: str, provider_id: str) -> None:
        self._emit("INFO", "provider_attempt", stage, provider=provider_id)

    def log_provider_success(self, stage: str, provider_id: str) -> None:
        self._emit("INFO", "provider_success", stage, provider=provider_id)

    def log_provider_failure(self, stage: str, provider_id: str, error_kind: str) -> None:
        """Record a failed candidate with its normalized error kind, never the detail."""

        self._emit("WARNING", "provider_failure", stage, provider=provider_id, error_kind=error_kind)

    def log_cache(self, stage: str, hit: bool, key: str) -> None:
        """Record a cache lookup with the key truncated to 16 characters."""

        self._emit("INFO", "cache_hit" if hit else "cache_miss", stage, key=key[:16])
