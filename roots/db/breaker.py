import logging
import time
from typing import Callable

from roots.db.errors import DatabaseUnavailable, UNAVAILABLE

logger = logging.getLogger(__name__)


class CircuitBreaker:
    """Closed -> Open(until) -> Closed.

    While open every ``guard()`` call fails fast with ``DatabaseUnavailable``;
    once ``until`` has passed the breaker counts as closed again and the next
    attempt goes through to the database.
    """

    def __init__(self, cooldown_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.cooldown_seconds = cooldown_seconds
        self.clock = clock
        self._open_until: float | None = None
        self._code = UNAVAILABLE

    @property
    def is_open(self) -> bool:
        return self._open_until is not None and self.clock() < self._open_until

    def retry_after(self) -> float:
        if self._open_until is None:
            return 0.0
        return max(0.0, self._open_until - self.clock())

    def guard(self) -> None:
        if self.is_open:
            raise DatabaseUnavailable(self._code, retry_after=self.retry_after())

    def trip(self, code: str = UNAVAILABLE, cooldown: float | None = None) -> None:
        seconds = self.cooldown_seconds if cooldown is None else cooldown
        self._open_until = self.clock() + seconds
        self._code = code
        logger.warning("Database marked unavailable (%s) for %.1fs", code, seconds)

    def reset(self) -> None:
        if self._open_until is not None:
            logger.info("Database available again")
        self._open_until = None
        self._code = UNAVAILABLE
