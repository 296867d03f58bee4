import time
import logging
from typing import Optional


class ThrottledLogger:
    """Collapses a burst of identical per-frame messages into one line per interval.

    The first call always emits; later calls within `interval_sec` are only
    counted and the count is prefixed to the next emitted line.
    """

    def __init__(self, logger: logging.Logger, interval_sec: float = 5.0) -> None:
        self._logger = logger
        self._interval = interval_sec
        self._last_log_time: Optional[float] = None
        self._counter = 0

    @property
    def pending(self) -> int:
        return self._counter

    def log(self, level: int, message: str, *args, **kwargs) -> None:
        self._counter += 1
        now = time.monotonic()

        if self._last_log_time is None or now - self._last_log_time >= self._interval:
            self._logger.log(level, "[%d] " + message, self._counter, *args, **kwargs)
            self._last_log_time = now
            self._counter = 0

    def debug(self, message: str, *args, **kwargs) -> None:
        self.log(logging.DEBUG, message, *args, **kwargs)

    def warning(self, message: str, *args, **kwargs) -> None:
        self.log(logging.WARNING, message, *args, **kwargs)
