import logging
import time
from typing import Any, Callable

import requests
from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_exponential

from hrci_donations.core.events import HttpErrorBus, http_errors
from hrci_donations.core.exceptions import HttpError, NetworkError, ServerError

logger = logging.getLogger(__name__)


def is_transient(error: BaseException) -> bool:
    """Network failures and 5xx responses are worth another attempt."""
    if isinstance(error, NetworkError):
        return True
    return isinstance(error, HttpError) and 500 <= error.status < 600


class ApiClient:
    """
    Thin JSON-over-HTTP gateway used by every service client.

    Final failures are broadcast on the HTTP error bus before being raised.
    """

    def __init__(
        self,
        base_url: str,
        session: requests.Session | None = None,
        timeout: float = 30.0,
        max_retries: int = 2,
        backoff: float = 0.3,
        token_provider: Callable[[], str | None] | None = None,
        error_bus: HttpErrorBus = http_errors,
        debug: bool = False,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff = backoff
        self.token_provider = token_provider
        self.error_bus = error_bus
        self.debug = debug

    def _headers(self, no_auth: bool) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if not no_auth and self.token_provider:
            token = self.token_provider()
            if token:
                headers["Authorization"] = f"Bearer {token}"
        return headers

    def _send_once(self, method: str, path: str, body: Any, params: dict | None,
                   headers: dict[str, str], timeout: float) -> Any:
        url = f"{self.base_url}{path}"
        started = time.monotonic()
        if self.debug:
            logger.debug(f"HTTP -> {method} {url}")

        try:
            resp = self.session.request(
                method,
                url,
                json=body,
                params=params,
                headers=headers,
                timeout=timeout,
            )
        except requests.Timeout as e:
            raise NetworkError("Request timed out") from e
        except requests.RequestException as e:
            raise NetworkError(f"Network error: {e}") from e

        content_type = resp.headers.get("content-type", "")
        text = resp.text or ""
        data: Any = None
        if text:
            looks_json = "application/json" in content_type or text.strip()[:1] in ("{", "[")
            if looks_json:
                try:
                    data = resp.json()
                except ValueError:
                    data = text
            else:
                data = text

        if self.debug:
            elapsed_ms = int((time.monotonic() - started) * 1000)
            logger.debug(f"HTTP <- {method} {url} {resp.status_code} {elapsed_ms}ms")

        if not resp.ok:
            if isinstance(data, str):
                message = data[:200]
            elif isinstance(data, dict) and data.get("message"):
                message = str(data["message"])
            else:
                message = f"HTTP {resp.status_code}"
            raise HttpError(resp.status_code, data, message)

        if isinstance(data, str):
            raise ServerError("Expected JSON response but received text", status=resp.status_code, body=data)
        return data

    def request(
        self,
        path: str,
        method: str = "GET",
        body: Any = None,
        params: dict | None = None,
        no_auth: bool = False,
        retry: bool | int = True,
        timeout: float | None = None,
    ) -> Any:
        """
        Perform one logical request. ``retry`` is True for the configured
        retry count, False for a single attempt, or an explicit count.
        """
        if retry is True:
            max_retries = self.max_retries
        elif retry is False:
            max_retries = 0
        else:
            max_retries = int(retry)

        headers = self._headers(no_auth)
        retrying = Retrying(
            stop=stop_after_attempt(max_retries + 1),
            wait=wait_exponential(multiplier=self.backoff, min=self.backoff, max=max(self.backoff * 8, 0)),
            retry=retry_if_exception(is_transient),
            reraise=True,
        )

        try:
            return retrying(
                self._send_once,
                method,
                path,
                body,
                params,
                headers,
                timeout if timeout is not None else self.timeout,
            )
        except (HttpError, NetworkError, ServerError) as e:
            logger.warning(f"HTTP {method} {path} failed: {e}")
            self.error_bus.emit(e, path, method)
            raise

    def get(self, path: str, **kwargs) -> Any:
        return self.request(path, method="GET", **kwargs)

    def post(self, path: str, body: Any = None, **kwargs) -> Any:
        return self.request(path, method="POST", body=body, **kwargs)
