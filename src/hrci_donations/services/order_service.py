import logging
from pydantic import ValidationError as ModelValidationError

from hrci_donations.core.exceptions import (
    ConfigurationError,
    HttpError,
    ServerError,
    ValidationError,
)
from hrci_donations.data_access.api_client import ApiClient
from hrci_donations.models.donation import DonationIntent, PaymentOrder

logger = logging.getLogger(__name__)

ORDERS_PATH = "/donations/orders"
REJECTION_STATUSES = (400, 409, 422)


def unwrap(res, key: str):
    """Backends answer with ``{data: {key: ...}}``, ``{key: ...}`` or the bare object."""
    if isinstance(res, dict):
        data = res.get("data")
        if isinstance(data, dict) and isinstance(data.get(key), dict):
            return data[key]
        if isinstance(res.get(key), dict):
            return res[key]
    return res


def translate_http_error(error: HttpError, fallback: str) -> Exception:
    message = error.body_message or error.message or fallback
    if error.status in REJECTION_STATUSES:
        return ValidationError(message, title="Invalid Details")
    return ServerError(message, status=error.status, body=error.body)


def resolve_key_id(order: PaymentOrder, fallback_key: str | None) -> str:
    key_id = (order.provider_key_id or fallback_key or "").strip()
    if not key_id:
        raise ConfigurationError("Razorpay key is not configured.", title="Payment Unavailable")
    return key_id


class OrderService:
    def __init__(self, api: ApiClient):
        self.api = api

    def create_order(self, intent: DonationIntent, enhanced_tier: bool = False) -> PaymentOrder:
        """
        Create exactly one server-side order for this intent. Never retried:
        a duplicate call would create a second order.
        """
        payload = intent.to_order_payload(enhanced_tier=enhanced_tier)
        try:
            res = self.api.post(ORDERS_PATH, body=payload, no_auth=True, retry=False)
        except HttpError as e:
            logger.error(f"Error creating donation order: {e}")
            raise translate_http_error(e, "Failed to create donation order") from e

        raw = unwrap(res, "order")
        if not isinstance(raw, dict) or not raw.get("orderId"):
            raise ServerError("Failed to create donation order", body=res)

        raw.setdefault("amount", intent.amount)
        try:
            order = PaymentOrder.model_validate(raw)
        except ModelValidationError as e:
            logger.error(f"Malformed donation order response: {e}")
            raise ServerError("Failed to create donation order", body=res) from e

        logger.info(
            "Created donation order",
            extra={"context": {"order_id": order.order_id, "provider_order_id": order.provider_order_id}},
        )
        return order
