"""Request pacing shared by every provider transport.

Responsibilities:
- Space consecutive requests to the same provider by a configured interval.
- Hand out request slots safely to chunk-synthesis worker threads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import threading
from time import monotonic, sleep
from typing import Callable


@dataclass(slots=True)
class RateLimiter:
    """Per-provider request spacing.

    `acquire` books the next free slot for a provider label under the lock and
    sleeps outside it, so concurrent callers queue up one interval apart.
    A zero interval disables pacing.
    """

    min_interval_seconds: float = 0.0
    clock: Callable[[], float] = monotonic
    sleeper: Callable[[float], None] = sleep
    _booked_until: dict[str, float] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def acquire(self, provider_label: str) -> None:
        """Wait for this provider's next request slot."""

        if self.min_interval_seconds <= 0.0:
            return
        with self._lock:
            requested_at = self.clock()
            slot_at = max(requested_at, self._booked_until.get(provider_label, requested_at))
            self._booked_until[provider_label] = slot_at + self.min_interval_seconds
        delay = slot_at - requested_at
        if delay > 0.0:
            self.sleeper(delay)
