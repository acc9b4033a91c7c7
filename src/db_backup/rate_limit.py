"""Per-operator cooldowns for rate-limited backup operations.

State lives in process memory: a restart resets every cooldown (fail-open).
The limiter is constructed once per process and passed into the service;
the clock is injectable so tests can move time deterministically.

Usage:
    from db_backup.rate_limit import RateLimiter

    limiter = RateLimiter({"create_backup": 30, "download": 10})
    limiter.acquire("user-1", "create_backup")   # raises RateLimitedError in cooldown
"""

import math
import threading
import time
from typing import Callable

from db_backup.errors import RateLimitedError

Clock = Callable[[], float]

CREATE_BACKUP = "create_backup"
DOWNLOAD = "download"

DEFAULT_COOLDOWNS: dict[str, float] = {
    CREATE_BACKUP: 30.0,
    DOWNLOAD: 10.0,
}


class RateLimiter:
    """Tracks last-performed timestamps per ``(operator, kind)``.

    Kinds without a configured cooldown are never limited.  All access to
    the timestamp map is serialized by a lock since concurrent admin
    requests may race on the same key.

    Args:
        cooldowns: Cooldown in seconds per operation kind.
        clock: Monotonic seconds source (default ``time.monotonic``).
    """

    def __init__(
        self,
        cooldowns: dict[str, float] | None = None,
        clock: Clock = time.monotonic,
    ) -> None:
        self._cooldowns = dict(DEFAULT_COOLDOWNS if cooldowns is None else cooldowns)
        self._clock = clock
        self._last: dict[tuple[str, str], float] = {}
        self._lock = threading.Lock()

    def cooldown(self, kind: str) -> float:
        return self._cooldowns.get(kind, 0.0)

    def _remaining(self, operator: str, kind: str) -> float:
        last = self._last.get((operator, kind))
        if last is None:
            return 0.0
        return max(0.0, self.cooldown(kind) - (self._clock() - last))

    def can_perform(self, operator: str, kind: str) -> bool:
        """Return ``True`` if ``operator`` is outside the cooldown for ``kind``."""
        with self._lock:
            return self._remaining(operator, kind) <= 0.0

    def remaining_cooldown(self, operator: str, kind: str) -> int:
        """Seconds left before ``operator`` may perform ``kind`` again (rounded up)."""
        with self._lock:
            return math.ceil(self._remaining(operator, kind))

    def record_performed(self, operator: str, kind: str) -> None:
        with self._lock:
            self._last[(operator, kind)] = self._clock()

    def acquire(self, operator: str, kind: str) -> None:
        """Check and record in one step.

        Raises:
            RateLimitedError: If ``operator`` is inside the cooldown for
                ``kind``.  ``retry_after`` holds the remaining seconds.
        """
        with self._lock:
            remaining = self._remaining(operator, kind)
            if remaining > 0.0:
                raise RateLimitedError(kind, retry_after=math.ceil(remaining))
            self._last[(operator, kind)] = self._clock()

    def reset(self) -> None:
        with self._lock:
            self._last.clear()
