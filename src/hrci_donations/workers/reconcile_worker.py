import logging

from hrci_donations.core.config import get_settings
from hrci_donations.core.dependencies import get_order_journal, get_receipt_service
from hrci_donations.core.exceptions import DonationError
from hrci_donations.data_access.order_journal import OrderJournal
from hrci_donations.services.receipt_service import ReceiptService

# We need to configure logging here since workers are entry points
from hrci_donations.core.logging_config import configure_logging
configure_logging(get_settings().LOG_LEVEL)

logger = logging.getLogger(__name__)


def reconcile_pending(journal: OrderJournal, receipt_service: ReceiptService) -> int:
    """
    One status check per journaled order. Entries with a receipt or a
    terminal status are cleared; the rest wait for the next scheduled run.
    """
    entries = journal.pending()
    logger.info(f"Reconciling {len(entries)} journaled donation orders.")

    reconciled = 0
    for entry in entries:
        order_id = entry.get("order_id")
        provider_order_id = entry.get("provider_order_id")
        if not provider_order_id:
            logger.warning(f"Journaled order {order_id} has no provider order id; skipping")
            continue

        try:
            status = receipt_service.get_status(provider_order_id)
        except DonationError as e:
            logger.error(f"Error reconciling order {order_id}: {e}")
            continue

        if status.is_terminal or not status.receipt.is_pending:
            journal.resolve(order_id)
            reconciled += 1
            logger.info(f"Reconciled order {order_id} with status {status.status}.")
        else:
            logger.info(f"Order {order_id} still {status.status}.")

    return reconciled


def lambda_handler(event, context):
    reconciled = reconcile_pending(get_order_journal(), get_receipt_service())
    return {'statusCode': 200, 'reconciled': reconciled}
