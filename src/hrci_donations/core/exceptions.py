from typing import Any


class DonationError(Exception):
    """Base error for the donation flow.

    Every error carries a short ``title`` and a user-facing ``message`` so the
    caller can put it straight into an alert.
    """

    default_title = "Error"

    def __init__(self, message: str, title: str | None = None):
        super().__init__(message)
        self.message = message
        self.title = title or self.default_title


class ValidationError(DonationError):
    """Intent rejected locally or by the server. Never reaches checkout."""

    default_title = "Invalid Details"

    def __init__(self, message: str, title: str | None = None, field: str | None = None):
        super().__init__(message, title)
        self.field = field


class ConfigurationError(DonationError):
    """Missing provider key or unsupported platform. Fatal to the attempt."""

    default_title = "Payment Unavailable"


class NetworkError(DonationError):
    default_title = "Network Error"


class ServerError(DonationError):
    default_title = "Server Error"

    def __init__(self, message: str, status: int | None = None, body: Any = None, title: str | None = None):
        super().__init__(message, title)
        self.status = status
        self.body = body


class HttpError(Exception):
    """Raised by the transport for any non-2xx response."""

    def __init__(self, status: int, body: Any = None, message: str | None = None):
        super().__init__(message or f"HTTP {status}")
        self.status = status
        self.body = body

    @property
    def message(self) -> str:
        return str(self)

    @property
    def body_message(self) -> str | None:
        if isinstance(self.body, dict):
            msg = self.body.get("message") or self.body.get("error")
            return str(msg) if msg else None
        return None
