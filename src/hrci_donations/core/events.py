import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)

ErrorListener = Callable[[Exception, str, str], None]


class HttpErrorBus:
    """
    Process-wide broadcast channel for failed HTTP calls.
    Listeners receive ``(error, path, method)``.
    """

    def __init__(self):
        self._listeners: list[ErrorListener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: ErrorListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def emit(self, error: Exception, path: str, method: str) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(error, path, method)
            except Exception as e:
                # A broken listener must not mask the original request error
                logger.error(f"HTTP error listener failed: {e}")

    @property
    def listener_count(self) -> int:
        return len(self._listeners)


http_errors = HttpErrorBus()
