import logging
from typing import Any, Protocol

from hrci_donations.models.donation import (
    CheckoutCancelled,
    CheckoutCompleted,
    CheckoutFailed,
    CheckoutResult,
    PaymentOrder,
)

logger = logging.getLogger(__name__)

UNSUPPORTED_PLATFORM = "UNSUPPORTED_PLATFORM"
STALE_ORDER = "STALE_ORDER"
MISSING_KEY = "MISSING_KEY"

# Native SDK code for a sheet closed by the user
CANCEL_CODE = "0"


class NativeCheckout(Protocol):
    """The platform's Razorpay module. Raises on cancel or failure."""

    def open(self, options: dict[str, Any]) -> dict[str, Any]:
        ...


class CheckoutAdapter(Protocol):
    def open(self, order: PaymentOrder, prefill: dict[str, str], theme: dict[str, str]) -> CheckoutResult:
        ...


def _error_fields(error: Exception) -> tuple[Any, str]:
    """Pull ``code`` and ``description`` out of whatever the native SDK raised."""
    code = getattr(error, "code", None)
    description = getattr(error, "description", None)
    first = error.args[0] if error.args else None
    if isinstance(first, dict):
        code = first.get("code", code)
        description = first.get("description", description)
    elif description is None and isinstance(first, str):
        description = first
    return code, str(description or "")


def is_cancellation(code: Any, message: str) -> bool:
    if code is not None and not isinstance(code, bool) and str(code) == CANCEL_CODE:
        return True
    return "cancel" in (message or "").lower()


def build_options(
    order: PaymentOrder,
    key_id: str,
    prefill: dict[str, str],
    theme: dict[str, str],
    org_name: str = "HRCI",
) -> dict[str, Any]:
    return {
        "key": key_id,
        "order_id": order.provider_order_id,
        "currency": order.currency or "INR",
        "amount": order.amount_minor,
        "name": org_name,
        "description": "Donation",
        "prefill": {
            "name": prefill.get("name") or None,
            "contact": prefill.get("contact") or None,
            "email": prefill.get("email") or None,
        },
        "theme": {"color": theme.get("color")},
        "retry": {"enabled": True, "max_count": 1},
    }


class RazorpayCheckoutAdapter:
    """
    Opens the Razorpay payment sheet and folds its outcomes into a
    CheckoutResult. Never raises for provider outcomes.
    """

    def __init__(self, native_module: NativeCheckout | None, org_name: str = "HRCI"):
        self.native_module = native_module
        self.org_name = org_name

    def open(self, order: PaymentOrder, prefill: dict[str, str], theme: dict[str, str]) -> CheckoutResult:
        if self.native_module is None:
            logger.error("Razorpay native module unavailable on this platform")
            return CheckoutFailed(
                reason="Payments are not supported on this platform.",
                code=UNSUPPORTED_PLATFORM,
            )
        if order.stale:
            return CheckoutFailed(reason="This order has already been closed.", code=STALE_ORDER)
        if not order.provider_key_id:
            return CheckoutFailed(reason="Razorpay key is not configured.", code=MISSING_KEY)

        options = build_options(order, order.provider_key_id, prefill, theme, self.org_name)
        try:
            result = self.native_module.open(options)
        except Exception as e:
            code, message = _error_fields(e)
            if is_cancellation(code, message):
                logger.info(f"Checkout cancelled for order {order.order_id}")
                return CheckoutCancelled(reason=message or None)
            logger.warning(f"Checkout failed for order {order.order_id}: {message or e}")
            return CheckoutFailed(
                reason=message or "Could not start payment.",
                code=str(code) if code is not None else None,
            )

        if not isinstance(result, dict):
            result = {}
        payment_id = result.get("razorpay_payment_id")
        provider_order_id = result.get("razorpay_order_id") or order.provider_order_id
        signature = result.get("razorpay_signature")
        if not (payment_id and provider_order_id and signature):
            logger.warning(f"Checkout returned without payment proof for order {order.order_id}")
            return CheckoutFailed(
                reason="Could not confirm payment. If you were charged, the receipt will be sent shortly."
            )
        return CheckoutCompleted(
            provider_payment_id=payment_id,
            provider_order_id=provider_order_id,
            signature=signature,
        )


class CheckoutError(Exception):
    """Shape of the error the native SDK throws: ``{code, description}``."""

    def __init__(self, code: Any = None, description: str = ""):
        super().__init__(description)
        self.code = code
        self.description = description


class ScriptedCheckout:
    """
    Deterministic stand-in for the native module. Each ``open`` pops the next
    scripted response: a dict is returned, an exception is raised.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    def open(self, options: dict[str, Any]) -> dict[str, Any]:
        self.calls.append(options)
        if not self.responses:
            raise CheckoutError(code="NO_SCRIPT", description="No scripted checkout response left")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response
