import logging
from typing import Callable

from hrci_donations.core.events import HttpErrorBus, http_errors
from hrci_donations.core.exceptions import HttpError

logger = logging.getLogger(__name__)

# Bootstrap lookups that fall back silently when the member has no profile yet
SILENT_404_PATHS = {"/memberships/me", "/memberships/me/profile", "/profiles/me"}


def map_error_message(error: Exception, path: str | None = None, method: str | None = None) -> str | None:
    """Turn a failed request into toast copy, or None to suppress it."""
    status = getattr(error, "status", None)
    body_msg = error.body_message if isinstance(error, HttpError) else None
    err_msg = getattr(error, "message", None) or str(error)
    raw = (body_msg or err_msg or "").lower()

    if status == 400:
        if raw.startswith("http 400"):
            return None
        if "validation" in raw or "invalid" in raw:
            return None
        return body_msg or err_msg or "Request error"

    if status == 404 and path in SILENT_404_PATHS:
        return None
    if status in (401, 403):
        return "Session expired. Please sign in again."
    if status == 404:
        return body_msg or "Resource not found."
    if status == 429:
        return body_msg or "Too many requests. Slow down a bit."
    if status is not None and status >= 500:
        return body_msg or "Server error. Please try again shortly."
    return body_msg or err_msg or "Network error"


class ToastPresenter:
    """
    Listens on the HTTP error bus while mounted and forwards mapped messages
    to ``show``. Explicit messages can be pushed with ``show`` directly.
    """

    def __init__(self, show: Callable[[str], None], bus: HttpErrorBus = http_errors):
        self._show = show
        self.bus = bus
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def mounted(self) -> bool:
        return self._unsubscribe is not None

    def mount(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self.bus.subscribe(self._on_error)

    def unmount(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def show(self, message: str) -> None:
        if message:
            self._show(message)

    def _on_error(self, error: Exception, path: str, method: str) -> None:
        mapped = map_error_message(error, path, method)
        if mapped is None:
            logger.debug(f"Suppressed toast for {method} {path}")
            return
        self.show(mapped)
