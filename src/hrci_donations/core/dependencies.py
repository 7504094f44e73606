import boto3
from functools import lru_cache

from hrci_donations.core.config import get_settings
from hrci_donations.core.events import http_errors
from hrci_donations.data_access.api_client import ApiClient
from hrci_donations.data_access.order_journal import DynamoOrderJournal, InMemoryOrderJournal, OrderJournal
from hrci_donations.services.checkout import NativeCheckout, RazorpayCheckoutAdapter
from hrci_donations.services.confirmation_service import ConfirmationService
from hrci_donations.services.donation_workflow import DonationWorkflow
from hrci_donations.services.order_service import OrderService
from hrci_donations.services.payment_link_service import PaymentLinkService
from hrci_donations.services.receipt_service import ReceiptService


@lru_cache()
def get_api_client() -> ApiClient:
    settings = get_settings()
    return ApiClient(
        base_url=settings.API_BASE_URL,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
        max_retries=settings.HTTP_MAX_RETRIES,
        error_bus=http_errors,
        debug=settings.HTTP_DEBUG,
    )

@lru_cache()
def get_boto_session() -> boto3.Session:
    return boto3.Session(region_name=get_settings().AWS_REGION)

@lru_cache()
def get_order_journal() -> OrderJournal:
    settings = get_settings()
    if not settings.ORDER_JOURNAL_TABLE_NAME:
        return InMemoryOrderJournal()
    dynamo_resource = get_boto_session().resource('dynamodb')
    table = dynamo_resource.Table(settings.ORDER_JOURNAL_TABLE_NAME)
    return DynamoOrderJournal(table=table)

@lru_cache()
def get_order_service() -> OrderService:
    return OrderService(api=get_api_client())

@lru_cache()
def get_confirmation_service() -> ConfirmationService:
    return ConfirmationService(api=get_api_client())

@lru_cache()
def get_receipt_service() -> ReceiptService:
    return ReceiptService(api=get_api_client())

@lru_cache()
def get_payment_link_service() -> PaymentLinkService:
    return PaymentLinkService(api=get_api_client())


def build_workflow(native_module: NativeCheckout | None, threshold: float) -> DonationWorkflow:
    """A fresh workflow per screen mount; services are shared."""
    settings = get_settings()
    return DonationWorkflow(
        order_service=get_order_service(),
        checkout=RazorpayCheckoutAdapter(native_module, org_name=settings.ORG_NAME),
        confirmation_service=get_confirmation_service(),
        receipt_service=get_receipt_service(),
        threshold=threshold,
        journal=get_order_journal(),
        key_fallback=settings.RAZORPAY_KEY_ID,
        theme_color=settings.THEME_COLOR,
    )

def public_checkout_workflow(native_module: NativeCheckout | None) -> DonationWorkflow:
    return build_workflow(native_module, get_settings().PUBLIC_CHECKOUT_THRESHOLD)

def quick_donate_workflow(native_module: NativeCheckout | None) -> DonationWorkflow:
    return build_workflow(native_module, get_settings().PUBLIC_CHECKOUT_THRESHOLD)

def create_donation_workflow(native_module: NativeCheckout | None) -> DonationWorkflow:
    return build_workflow(native_module, get_settings().CREATE_DONATION_THRESHOLD)
