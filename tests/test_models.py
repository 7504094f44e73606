import pytest
from pydantic import ValidationError as ModelValidationError

from hrci_donations.models.donation import (
    ConfirmationRecord,
    DonationIntent,
    PaymentOrder,
    Receipt,
    sanitize_text,
)


def test_anonymous_payload_omits_identity():
    intent = DonationIntent(
        amount=500,
        donor_name="A Kumar",
        donor_mobile="9876543210",
        is_anonymous=True,
        event_id="evt_1",
    )

    assert intent.to_order_payload() == {"amount": 500, "isAnonymous": True, "eventId": "evt_1"}


def test_enhanced_tier_never_sends_anonymous():
    intent = DonationIntent(amount=15000, donor_name="A Kumar", donor_mobile="9876543210", is_anonymous=True)

    payload = intent.to_order_payload(enhanced_tier=True)

    assert payload["isAnonymous"] is False
    assert payload["donorName"] == "A Kumar"


def test_payload_drops_empty_and_cleans_values():
    intent = DonationIntent(
        amount=2000,
        donor_name="  O'Brien; ",
        donor_mobile="+91 98765 43210",
        donor_email="not-an-email",
        donor_address="",
        donor_pan=" abcde1234f",
        share_code="  ",
    )

    payload = intent.to_order_payload()

    assert payload == {
        "amount": 2000,
        "isAnonymous": False,
        "donorName": "OBrien",
        "donorMobile": "9198765432",
        "donorPan": "ABCDE1234F",
    }


def test_sanitize_text_strips_control_characters():
    assert sanitize_text("Ram\x00 \"Lal\"\n") == "Ram Lal"
    assert sanitize_text(None) == ""


def test_prefill_is_empty_for_anonymous():
    assert DonationIntent(amount=10, is_anonymous=True, donor_name="X").prefill() == {}
    assert DonationIntent(amount=10, donor_name="X", donor_mobile="98765 43210").prefill() == {
        "name": "X",
        "contact": "9876543210",
    }


def test_order_parses_wire_names_and_minor_units():
    order = PaymentOrder.model_validate(
        {"orderId": "o1", "providerOrderId": "order_1", "amount": 199.99, "currency": "INR", "provider": "razorpay"}
    )

    assert order.order_id == "o1"
    assert order.amount_minor == 19999
    assert order.stale is False
    order.mark_stale()
    assert order.stale is True


class TestConfirmationRecord:
    def test_success_payload_uses_provider_wire_names(self):
        record = ConfirmationRecord(
            order_id="o1",
            status="SUCCESS",
            provider_order_id="order_1",
            provider_payment_id="pay_1",
            signature="sig",
        )

        assert record.to_payload() == {
            "orderId": "o1",
            "status": "SUCCESS",
            "provider": "razorpay",
            "providerRef": "razorpay",
            "razorpay_order_id": "order_1",
            "razorpay_payment_id": "pay_1",
            "razorpay_signature": "sig",
        }

    def test_success_without_payment_id_is_illegal(self):
        with pytest.raises(ModelValidationError):
            ConfirmationRecord(order_id="o1", status="SUCCESS", provider_order_id="order_1")

    def test_success_without_signature_is_illegal(self):
        with pytest.raises(ModelValidationError):
            ConfirmationRecord(
                order_id="o1", status="SUCCESS", provider_order_id="order_1", provider_payment_id="pay_1"
            )

    def test_signature_only_with_success(self):
        with pytest.raises(ModelValidationError):
            ConfirmationRecord(order_id="o1", status="FAILED", signature="sig")

    def test_cancelled_record_without_proof(self):
        record = ConfirmationRecord(order_id="o1", status="CANCELLED", provider_order_id="order_1")
        assert "razorpay_signature" not in record.to_payload()


def test_receipt_pending_and_preferred_url():
    assert Receipt().is_pending
    receipt = Receipt(html_url="https://x/h", pdf_url="https://x/p")
    assert not receipt.is_pending
    assert receipt.preferred_url == "https://x/p"
