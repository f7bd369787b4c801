import time
import logging

class ThrottledLogger:
    """Emits at most one warning per interval, prefixed with how many were seen."""

    def __init__(self, logger: logging.Logger, interval_sec: float = 5.0) -> None:
        self._logger = logger
        self._interval = interval_sec
        self._last_log_time = float("-inf")
        self._counter = 0

    @property
    def pending(self) -> int:
        """Occurrences counted since the last emitted warning."""
        return self._counter

    def warning(self, message: str, *args) -> bool:
        self._counter += 1
        now = time.monotonic()

        if now - self._last_log_time >= self._interval:
            self._logger.warning("[%d] " + message, self._counter, *args)
            self._last_log_time = now
            self._counter = 0
            return True
        return False
