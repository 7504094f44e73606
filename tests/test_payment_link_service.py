import pytest

from conftest import make_response
from hrci_donations.core.exceptions import ServerError, ValidationError
from hrci_donations.models.donation import DonationIntent
from hrci_donations.services.payment_link_service import PaymentLinkService


LINK_BODY = {
    "success": True,
    "data": {
        "donationId": "don_9",
        "intentId": "int_9",
        "linkId": "plink_9",
        "shortUrl": "https://rzp.io/i/abc",
        "status": "created",
        "statusUrl": "/donations/members/payment-links/plink_9",
    },
}

MISSING_TABLE = {"message": 'relation "DonationDonorProfile" does not exist'}


def test_create_link_posts_sanitised_intent_once(api, session):
    session.request.return_value = make_response(200, LINK_BODY)
    intent = DonationIntent(amount=1500, donor_name="A Kumar", donor_mobile="+91 98765-43210", donor_pan="abcde1234f")

    link = PaymentLinkService(api).create_link(intent, enhanced_tier=True)

    assert link.link_id == "plink_9"
    assert link.short_url == "https://rzp.io/i/abc"
    assert session.request.call_count == 1
    method, url = session.request.call_args.args
    assert (method, url) == ("POST", "https://api.example.org/donations/members/payment-links")
    body = session.request.call_args.kwargs["json"]
    assert body["donorPan"] == "ABCDE1234F"
    assert body["isAnonymous"] is False


def test_create_link_accepts_numeric_donation_id(api, session):
    session.request.return_value = make_response(200, {"data": {"donationId": 77, "linkId": "plink_1"}})

    link = PaymentLinkService(api).create_link(DonationIntent(amount=100, is_anonymous=True))

    assert link.donation_id == "77"
    assert link.status == "PENDING"


def test_create_link_without_donation_id_is_server_error(api, session):
    session.request.return_value = make_response(200, {"success": True})
    with pytest.raises(ServerError):
        PaymentLinkService(api).create_link(DonationIntent(amount=100, is_anonymous=True))


def test_create_link_missing_table_asks_for_setup(api, session):
    session.request.return_value = make_response(500, MISSING_TABLE)

    with pytest.raises(ServerError) as exc:
        PaymentLinkService(api).create_link(DonationIntent(amount=100, is_anonymous=True))

    assert exc.value.title == "Donations Setup Required"
    assert session.request.call_count == 1


def test_create_link_rejection_is_validation_error(api, session):
    session.request.return_value = make_response(422, {"message": "PAN required"})
    with pytest.raises(ValidationError) as exc:
        PaymentLinkService(api).create_link(DonationIntent(amount=100, is_anonymous=True))
    assert exc.value.message == "PAN required"


def test_get_link_quotes_id_and_unwraps(api, session):
    session.request.return_value = make_response(200, {"data": {"id": "don_9", "status": "SUCCESS"}})

    link = PaymentLinkService(api).get_link("plink/9")

    assert link == {"id": "don_9", "status": "SUCCESS"}
    _, url = session.request.call_args.args
    assert url == "https://api.example.org/donations/members/payment-links/plink%2F9"


@pytest.mark.parametrize("body, expected", [
    ({"data": {"success": True}}, True),
    ({"success": True}, True),
    ({"success": True, "data": {"success": False}}, False),
    ({}, False),
])
def test_notify_reports_server_answer(api, session, body, expected):
    session.request.return_value = make_response(200, body)

    assert PaymentLinkService(api).notify("plink_9", via="whatsapp") is expected
    assert session.request.call_args.kwargs["json"] == {"via": "whatsapp"}
    _, url = session.request.call_args.args
    assert url.endswith("/donations/members/payment-links/plink_9/notify")


def test_notify_rejects_unknown_channel(api, session):
    with pytest.raises(ValidationError):
        PaymentLinkService(api).notify("plink_9", via="fax")
    session.request.assert_not_called()


def test_list_links_sends_filters_and_defaults(api, session):
    session.request.return_value = make_response(200, {"success": True, "data": [{"id": "don_1"}], "total": 1})

    res = PaymentLinkService(api).list_links(status="SUCCESS,PENDING")

    assert res["count"] == 1
    assert res["data"] == [{"id": "don_1"}]
    assert res["totals"] == {}
    assert session.request.call_args.kwargs["params"] == {"status": "SUCCESS,PENDING", "limit": 50, "offset": 0}


def test_list_links_missing_table_is_empty(api, session):
    session.request.return_value = make_response(500, MISSING_TABLE)

    res = PaymentLinkService(api).list_links()

    assert res["data"] == []
    assert res["success"] is False
