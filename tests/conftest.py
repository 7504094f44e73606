import json
import pytest
from unittest.mock import MagicMock

from hrci_donations.core.events import HttpErrorBus
from hrci_donations.data_access.api_client import ApiClient
from hrci_donations.data_access.order_journal import InMemoryOrderJournal
from hrci_donations.models.donation import ConfirmationResult, OrderStatus, PaymentOrder, Receipt
from hrci_donations.services.checkout import RazorpayCheckoutAdapter, ScriptedCheckout
from hrci_donations.services.confirmation_service import ConfirmationService
from hrci_donations.services.donation_workflow import DonationWorkflow
from hrci_donations.services.order_service import OrderService
from hrci_donations.services.receipt_service import ReceiptService


def make_response(status=200, body=None, content_type="application/json"):
    """Build a stand-in for requests.Response."""
    resp = MagicMock()
    resp.status_code = status
    resp.ok = 200 <= status < 400
    resp.headers = {"content-type": content_type}
    if body is None:
        resp.text = ""
    elif isinstance(body, str):
        resp.text = body
    else:
        resp.text = json.dumps(body)
    resp.json.side_effect = lambda: json.loads(resp.text)
    return resp


@pytest.fixture
def error_bus():
    return HttpErrorBus()


@pytest.fixture
def session():
    """A requests.Session double; set ``session.request.return_value`` per test."""
    return MagicMock()


@pytest.fixture
def api(session, error_bus):
    return ApiClient(
        base_url="https://api.example.org",
        session=session,
        timeout=5,
        max_retries=2,
        backoff=0,
        error_bus=error_bus,
    )


@pytest.fixture
def sample_order():
    return PaymentOrder(
        order_id="ord_1",
        provider_order_id="order_RZP1",
        provider_key_id="rzp_test_key",
        amount=2000,
        currency="INR",
        provider="razorpay",
    )


@pytest.fixture
def order_service(sample_order):
    service = MagicMock(spec=OrderService)
    service.create_order.side_effect = lambda intent, enhanced_tier=False: sample_order.model_copy()
    return service


@pytest.fixture
def confirmation_service():
    service = MagicMock(spec=ConfirmationService)
    service.confirm.return_value = ConfirmationResult(
        status="SUCCESS",
        donation_id="don_1",
        receipt=Receipt(html_url="https://receipts.example.org/r/1", donation_id="don_1"),
    )
    return service


@pytest.fixture
def receipt_service():
    service = MagicMock(spec=ReceiptService)
    service.get_status.return_value = OrderStatus(provider_order_id="order_RZP1", status="PENDING")
    return service


@pytest.fixture
def journal():
    return InMemoryOrderJournal()


@pytest.fixture
def native():
    return ScriptedCheckout()


@pytest.fixture
def make_workflow(order_service, confirmation_service, receipt_service, journal, native):
    def _make(threshold=10000, native_module=native, key_fallback=""):
        return DonationWorkflow(
            order_service=order_service,
            checkout=RazorpayCheckoutAdapter(native_module),
            confirmation_service=confirmation_service,
            receipt_service=receipt_service,
            threshold=threshold,
            journal=journal,
            key_fallback=key_fallback,
        )
    return _make
