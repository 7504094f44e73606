import logging
from pydantic import ValidationError as ModelValidationError

from hrci_donations.core.exceptions import HttpError, ServerError
from hrci_donations.data_access.api_client import ApiClient
from hrci_donations.models.donation import ConfirmationRecord, ConfirmationResult, Receipt

logger = logging.getLogger(__name__)

CONFIRM_PATH = "/donations/confirm"


def parse_receipt(raw) -> Receipt | None:
    if not isinstance(raw, dict):
        return None
    verify = raw.get("verify") if isinstance(raw.get("verify"), dict) else {}
    receipt = Receipt(
        html_url=verify.get("htmlUrl") or raw.get("htmlUrl"),
        pdf_url=verify.get("pdfUrl") or raw.get("pdfUrl"),
        receipt_no=raw.get("receiptNo"),
        donation_id=raw.get("donationId"),
    )
    return receipt


class ConfirmationService:
    def __init__(self, api: ApiClient):
        self.api = api

    def confirm(self, record: ConfirmationRecord) -> ConfirmationResult:
        """Report the checkout outcome. One attempt; the caller decides what a failure means."""
        try:
            res = self.api.post(CONFIRM_PATH, body=record.to_payload(), no_auth=True, retry=False)
        except HttpError as e:
            logger.error(f"Error confirming donation order {record.order_id}: {e}")
            raise ServerError(e.body_message or e.message, status=e.status, body=e.body) from e

        data = res.get("data") if isinstance(res, dict) else None
        if not isinstance(data, dict):
            data = {}

        try:
            receipt = parse_receipt(data.get("receipt"))
            if receipt and not receipt.donation_id and data.get("donationId") is not None:
                receipt.donation_id = str(data["donationId"])
            result = ConfirmationResult(
                status=data.get("status"),
                donation_id=data.get("donationId"),
                receipt=receipt,
            )
        except ModelValidationError as e:
            logger.error(f"Malformed confirmation response for order {record.order_id}: {e}")
            raise ServerError("Unexpected confirmation response", body=res) from e

        logger.info(
            f"Confirmed donation order {record.order_id} as {record.status}",
            extra={"context": {"order_id": record.order_id, "status": record.status}},
        )
        return result
