import logging
from urllib.parse import quote
from pydantic import ValidationError as ModelValidationError

from hrci_donations.core.exceptions import HttpError, ServerError, ValidationError
from hrci_donations.data_access.api_client import ApiClient
from hrci_donations.models.donation import DonationIntent, PaymentLink
from hrci_donations.services.order_service import translate_http_error, unwrap

logger = logging.getLogger(__name__)

LINKS_PATH = "/donations/members/payment-links"
NOTIFY_CHANNELS = ("sms", "email", "whatsapp")

# Server answers with these while the donor-profile migration is pending
MISSING_TABLE_MARKERS = ("donationdonorprofile", "relation", "42p01")
SETUP_REQUIRED_MESSAGE = (
    "Payment link service is temporarily unavailable on the server (missing database table). "
    "Please contact admin to run the latest migrations."
)


def _missing_table(error: HttpError) -> bool:
    text = f"{error.message} {error.body_message or ''}".lower()
    return any(marker in text for marker in MISSING_TABLE_MARKERS)


def _link_path(link_id: str) -> str:
    return f"{LINKS_PATH}/{quote(str(link_id), safe='')}"


class PaymentLinkService:
    """
    Member-side donations: a signed-in member issues a payment link that the
    donor completes outside the app. Authenticated, unlike the checkout pipeline.
    """

    def __init__(self, api: ApiClient):
        self.api = api

    def create_link(self, intent: DonationIntent, enhanced_tier: bool = False) -> PaymentLink:
        """Issue one link for this intent. Not retried, a repeat would issue a second link."""
        payload = intent.to_order_payload(enhanced_tier=enhanced_tier)
        try:
            res = self.api.post(LINKS_PATH, body=payload, retry=False)
        except HttpError as e:
            logger.error(f"Error creating donation payment link: {e}")
            if _missing_table(e):
                raise ServerError(
                    SETUP_REQUIRED_MESSAGE, status=e.status, body=e.body, title="Donations Setup Required"
                ) from e
            raise translate_http_error(e, "Failed to create payment link") from e

        raw = res.get("data") if isinstance(res, dict) else None
        try:
            link = PaymentLink.model_validate(raw)
        except ModelValidationError as e:
            logger.error(f"Malformed payment link response: {e}")
            raise ServerError("Failed to create payment link", body=res) from e

        logger.info(
            "Created donation payment link",
            extra={"context": {"donation_id": link.donation_id, "link_id": link.link_id}},
        )
        return link

    def get_link(self, link_id: str) -> dict:
        try:
            res = self.api.get(_link_path(link_id))
        except HttpError as e:
            logger.error(f"Error fetching payment link {link_id}: {e}")
            raise ServerError(e.body_message or e.message, status=e.status, body=e.body) from e
        data = unwrap(res, "data")
        return data if isinstance(data, dict) else {}

    def notify(self, link_id: str, via: str = "sms") -> bool:
        """Ask the server to resend the link to the donor. True when the server says it did."""
        if via not in NOTIFY_CHANNELS:
            raise ValidationError(f"Unsupported notification channel: {via}", field="via")
        try:
            res = self.api.post(f"{_link_path(link_id)}/notify", body={"via": via}, retry=False)
        except HttpError as e:
            logger.error(f"Error sending payment link {link_id} via {via}: {e}")
            raise ServerError(e.body_message or e.message, status=e.status, body=e.body) from e

        if not isinstance(res, dict):
            return False
        data = res.get("data") if isinstance(res.get("data"), dict) else {}
        sent = data.get("success")
        return bool(res.get("success") if sent is None else sent)

    def list_links(
        self,
        date_from: str | None = None,
        date_to: str | None = None,
        status: str | None = None,
        event_id: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> dict:
        params = {"from": date_from, "to": date_to, "status": status, "eventId": event_id}
        params = {k: v for k, v in params.items() if v}
        params["limit"] = limit
        params["offset"] = offset

        try:
            res = self.api.get(LINKS_PATH, params=params)
        except HttpError as e:
            if _missing_table(e):
                logger.warning("Server missing table DonationDonorProfile; returning empty list")
                return {"success": False, "count": 0, "total": 0, "totals": {}, "data": [], "reconciled": 0}
            raise

        if not isinstance(res, dict):
            res = {}
        items = res.get("data") if isinstance(res.get("data"), list) else []
        return {
            "success": res.get("success"),
            "count": res.get("count", len(items)),
            "total": res.get("total"),
            "totals": res.get("totals") or {},
            "data": items,
            "reconciled": res.get("reconciled"),
        }
