import logging
from urllib.parse import quote
from pydantic import ValidationError as ModelValidationError

from hrci_donations.core.exceptions import HttpError, ServerError
from hrci_donations.data_access.api_client import ApiClient
from hrci_donations.models.donation import OrderStatus, Receipt

logger = logging.getLogger(__name__)

# Receipt rendering on the server is flaky; these failures are expected noise
KNOWN_RENDER_ISSUES = ("chrome", "puppeteer", "browser", "render")


class ReceiptService:
    """
    Order status and receipt lookups.

    Every call is a single attempt. Polling again is the user's decision
    (a "refresh status" tap), never a background loop.
    """

    def __init__(self, api: ApiClient):
        self.api = api

    def get_status(self, provider_order_id: str) -> OrderStatus:
        path = f"/donations/orders/{quote(provider_order_id, safe='')}/status"
        try:
            res = self.api.get(path, no_auth=True, retry=False)
        except HttpError as e:
            logger.error(f"Error fetching status for order {provider_order_id}: {e}")
            raise ServerError(e.body_message or e.message, status=e.status, body=e.body) from e

        data = res.get("data") if isinstance(res, dict) and isinstance(res.get("data"), dict) else res
        if not isinstance(data, dict):
            data = {}

        try:
            return OrderStatus(
                provider_order_id=data.get("providerOrderId") or provider_order_id,
                status=str(data.get("status") or "PENDING"),
                paid=bool(data.get("paid")),
                payment_id=data.get("paymentId"),
                receipt=Receipt(
                    html_url=data.get("receiptHtmlUrl"),
                    pdf_url=data.get("receiptPdfUrl"),
                ),
            )
        except ModelValidationError as e:
            logger.error(f"Malformed status response for order {provider_order_id}: {e}")
            raise ServerError("Unexpected order status response", body=res) from e

    def get_receipt_url(self, donation_id: str) -> str | None:
        """Presigned 80G receipt URL for a donation, if the server can produce one."""
        if not donation_id:
            return None
        path = f"/donations/receipt/{quote(donation_id, safe='')}/url"
        try:
            res = self.api.get(path, retry=False)
        except HttpError as e:
            if any(token in e.message.lower() for token in KNOWN_RENDER_ISSUES):
                logger.info("Receipt generation temporarily unavailable due to server configuration")
            else:
                logger.error(f"Error fetching receipt url for donation {donation_id}: {e}")
            raise ServerError(e.body_message or e.message, status=e.status, body=e.body) from e

        if not isinstance(res, dict):
            return None
        data = res.get("data") if isinstance(res.get("data"), dict) else {}
        url = res.get("url") or data.get("url")
        return url if isinstance(url, str) else None

    def search_receipts(
        self,
        donation_id: str | None = None,
        mobile: str | None = None,
        pan: str | None = None,
        name: str | None = None,
        date_from: str | None = None,
        date_to: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> dict:
        params = {
            "donationId": donation_id,
            "mobile": mobile,
            "pan": pan,
            "name": name,
            "from": date_from,
            "to": date_to,
        }
        params = {k: v for k, v in params.items() if v}
        params["limit"] = limit
        params["offset"] = offset

        res = self.api.get("/donations/receipts/search", params=params, no_auth=True)
        if not isinstance(res, dict):
            return {"data": []}
        res.setdefault("data", [])
        return res
