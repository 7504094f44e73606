from unittest.mock import MagicMock, patch

from hrci_donations.core.exceptions import NetworkError
from hrci_donations.data_access.order_journal import InMemoryOrderJournal
from hrci_donations.models.donation import OrderStatus, PaymentOrder, Receipt
from hrci_donations.services.receipt_service import ReceiptService
from hrci_donations.workers import reconcile_worker


def journal_with(*ids):
    journal = InMemoryOrderJournal()
    for i in ids:
        journal.record(PaymentOrder(order_id=i, provider_order_id=f"order_{i}", amount=100))
    return journal


def test_reconcile_clears_resolved_orders():
    journal = journal_with("paid", "waiting", "broken")
    receipt_service = MagicMock(spec=ReceiptService)

    def status(provider_order_id):
        if provider_order_id == "order_paid":
            return OrderStatus(provider_order_id=provider_order_id, status="SUCCESS", receipt=Receipt(pdf_url="https://r"))
        if provider_order_id == "order_broken":
            raise NetworkError("down")
        return OrderStatus(provider_order_id=provider_order_id, status="PENDING")

    receipt_service.get_status.side_effect = status

    reconciled = reconcile_worker.reconcile_pending(journal, receipt_service)

    assert reconciled == 1
    assert sorted(e["order_id"] for e in journal.pending()) == ["broken", "waiting"]
    assert receipt_service.get_status.call_count == 3


def test_failed_status_is_terminal():
    journal = journal_with("declined")
    receipt_service = MagicMock(spec=ReceiptService)
    receipt_service.get_status.return_value = OrderStatus(provider_order_id="order_declined", status="FAILED")

    assert reconcile_worker.reconcile_pending(journal, receipt_service) == 1
    assert journal.pending() == []


def test_lambda_handler_uses_shared_dependencies():
    journal = journal_with("paid")
    receipt_service = MagicMock(spec=ReceiptService)
    receipt_service.get_status.return_value = OrderStatus(provider_order_id="order_paid", status="SUCCESS")

    with patch.object(reconcile_worker, "get_order_journal", return_value=journal), \
         patch.object(reconcile_worker, "get_receipt_service", return_value=receipt_service):
        result = reconcile_worker.lambda_handler({}, None)

    assert result == {"statusCode": 200, "reconciled": 1}
