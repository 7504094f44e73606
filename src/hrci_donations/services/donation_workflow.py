import logging
import threading

from hrci_donations.core.exceptions import ConfigurationError, DonationError, ValidationError
from hrci_donations.data_access.order_journal import OrderJournal
from hrci_donations.models.donation import (
    CheckoutCancelled,
    CheckoutCompleted,
    CheckoutResult,
    ConfirmationRecord,
    DonationIntent,
    PaymentOrder,
    Receipt,
)
from hrci_donations.models.workflow import WorkflowOutcome, WorkflowState
from hrci_donations.services.checkout import MISSING_KEY, UNSUPPORTED_PLATFORM, CheckoutAdapter
from hrci_donations.services.confirmation_service import ConfirmationService
from hrci_donations.services.order_service import OrderService, resolve_key_id
from hrci_donations.services.receipt_service import ReceiptService
from hrci_donations.services.validation import validate_intent

logger = logging.getLogger(__name__)

RECEIPT_PENDING_MESSAGE = "If you were charged, your receipt will be available shortly."


class DonationWorkflow:
    """
    Drives one donation from intent to receipt:
    validate -> create order -> checkout -> confirm -> resolve receipt.

    ``submitting`` stands in for the disabled submit control; ``mounted`` is
    cleared when the screen goes away so late responses are dropped.
    """

    def __init__(
        self,
        order_service: OrderService,
        checkout: CheckoutAdapter,
        confirmation_service: ConfirmationService,
        receipt_service: ReceiptService,
        threshold: float,
        journal: OrderJournal | None = None,
        key_fallback: str = "",
        theme_color: str = "#1D0DA1",
    ):
        self.order_service = order_service
        self.checkout = checkout
        self.confirmation_service = confirmation_service
        self.receipt_service = receipt_service
        self.threshold = threshold
        self.journal = journal
        self.key_fallback = key_fallback
        self.theme_color = theme_color

        self.state = WorkflowState.IDLE
        self.history: list[WorkflowState] = [WorkflowState.IDLE]
        self.order: PaymentOrder | None = None
        self.provider_order_id: str | None = None
        self.receipt: Receipt | None = None

        self._lock = threading.Lock()
        self._submitting = False
        self._mounted = True

    @property
    def submitting(self) -> bool:
        return self._submitting

    @property
    def mounted(self) -> bool:
        return self._mounted

    def unmount(self) -> None:
        self._mounted = False

    def _transition(self, state: WorkflowState) -> None:
        logger.info(
            f"Donation workflow {self.state.value} -> {state.value}",
            extra={"context": {"order_id": self.order.order_id if self.order else None}},
        )
        self.state = state
        self.history.append(state)

    def _detached(self) -> WorkflowOutcome:
        logger.info("Dropping donation workflow response after unmount")
        return WorkflowOutcome(state=WorkflowState.DETACHED, order=self.order)

    def _resolve(self, state: WorkflowState, **fields) -> WorkflowOutcome:
        self._transition(state)
        return WorkflowOutcome(state=state, order=self.order, **fields)

    def _begin(self) -> None:
        self.state = WorkflowState.IDLE
        self.history = [WorkflowState.IDLE]
        self.order = None
        self.provider_order_id = None
        self.receipt = None

    def submit(self, intent: DonationIntent) -> WorkflowOutcome:
        with self._lock:
            if self._submitting:
                logger.warning("Ignoring donation submit while a payment is in progress")
                return WorkflowOutcome(
                    state=self.state,
                    order=self.order,
                    message="Payment is already in progress.",
                )
            self._submitting = True

        try:
            return self._run(intent)
        finally:
            self._submitting = False

    def _run(self, intent: DonationIntent) -> WorkflowOutcome:
        self._begin()
        self._transition(WorkflowState.VALIDATING)
        try:
            tier = validate_intent(intent, self.threshold)
        except ValidationError as e:
            self._transition(WorkflowState.BLOCKED)
            return WorkflowOutcome(
                state=WorkflowState.BLOCKED,
                title=e.title,
                message=e.message,
                error=e.field,
                show_error=True,
            )

        self._transition(WorkflowState.CREATING_ORDER)
        try:
            order = self.order_service.create_order(intent, enhanced_tier=tier.requires_details)
            if not self._mounted:
                return self._detached()
            self.order = order
            self.provider_order_id = order.provider_order_id
            order.provider_key_id = resolve_key_id(order, self.key_fallback)
        except DonationError as e:
            logger.error(f"Donation order could not be prepared: {e}")
            if not self._mounted:
                return self._detached()
            return self._resolve(
                WorkflowState.RESOLVED_FAILED,
                title=e.title,
                message=e.message,
                error=type(e).__name__,
                show_error=True,
                offer_resubmit=not isinstance(e, ConfigurationError),
            )

        if self.journal is not None:
            try:
                self.journal.record(order)
            except Exception as e:
                logger.error(f"Could not journal order {order.order_id} before checkout: {e}")

        self._transition(WorkflowState.AWAITING_CHECKOUT)
        result = self.checkout.open(order, intent.prefill(), {"color": self.theme_color})
        # Confirmation is sent even after unmount; only the outcome is dropped
        if self._mounted:
            self._transition(WorkflowState.CONFIRMING)
        return self._confirm(order, result)

    def _confirm(self, order: PaymentOrder, result: CheckoutResult) -> WorkflowOutcome:
        if isinstance(result, CheckoutCompleted):
            if self._mounted:
                self.provider_order_id = result.provider_order_id
            return self._confirm_completed(order, result)

        status = "CANCELLED" if isinstance(result, CheckoutCancelled) else "FAILED"
        record = ConfirmationRecord(
            order_id=order.order_id,
            status=status,
            provider=order.provider,
            provider_ref=order.provider,
            provider_order_id=order.provider_order_id,
        )
        confirmed = False
        try:
            self.confirmation_service.confirm(record)
            confirmed = True
        except DonationError as e:
            logger.warning(f"Could not record {status} for order {order.order_id}: {e}")
        finally:
            order.mark_stale()

        if confirmed:
            self._forget(order)
        if not self._mounted:
            return self._detached()

        if isinstance(result, CheckoutCancelled):
            return self._resolve(
                WorkflowState.RESOLVED_CANCELLED,
                message="Payment cancelled.",
                offer_resubmit=True,
            )

        title = "Payment Failed"
        if result.code in (UNSUPPORTED_PLATFORM, MISSING_KEY):
            title = "Payment Unavailable"
        return self._resolve(
            WorkflowState.RESOLVED_FAILED,
            title=title,
            message=result.reason or "Could not start payment.",
            error=result.code,
            show_error=True,
            offer_resubmit=True,
        )

    def _confirm_completed(self, order: PaymentOrder, result: CheckoutCompleted) -> WorkflowOutcome:
        record = ConfirmationRecord(
            order_id=order.order_id,
            status="SUCCESS",
            provider=order.provider,
            provider_ref=order.provider,
            provider_order_id=result.provider_order_id,
            provider_payment_id=result.provider_payment_id,
            signature=result.signature,
        )
        try:
            confirmation = self.confirmation_service.confirm(record)
        except DonationError as e:
            # The charge may have gone through; never report this as a failure
            logger.error(f"Confirmation failed after completed checkout for order {order.order_id}: {e}")
            order.mark_stale()
            if not self._mounted:
                return self._detached()
            return self._resolve(
                WorkflowState.RESOLVED_AMBIGUOUS,
                title="Payment Successful",
                message=RECEIPT_PENDING_MESSAGE,
            )
        order.mark_stale()
        receipt = confirmation.receipt
        if not self._mounted:
            if receipt is not None and not receipt.is_pending:
                self._forget(order)
            return self._detached()

        if receipt is None or receipt.is_pending:
            receipt = self._fetch_receipt(result.provider_order_id)
            if not self._mounted:
                return self._detached()

        if receipt is not None and not receipt.is_pending:
            return self._succeed(order, receipt)

        return self._resolve(
            WorkflowState.RESOLVED_PENDING,
            title="Payment Successful",
            message=RECEIPT_PENDING_MESSAGE,
        )

    def _fetch_receipt(self, provider_order_id: str | None) -> Receipt | None:
        if not provider_order_id:
            return None
        try:
            return self.receipt_service.get_status(provider_order_id).receipt
        except DonationError as e:
            logger.warning(f"Status check failed for order {provider_order_id}: {e}")
            return None

    def _succeed(self, order: PaymentOrder, receipt: Receipt) -> WorkflowOutcome:
        self.receipt = receipt
        self._forget(order)
        return self._resolve(
            WorkflowState.RESOLVED_SUCCESS,
            title="Thank you",
            message="Your donation was received. Your receipt is ready.",
            receipt=receipt,
        )

    def _forget(self, order: PaymentOrder) -> None:
        if self.journal is None:
            return
        try:
            self.journal.resolve(order.order_id)
        except Exception as e:
            logger.error(f"Could not clear journaled order {order.order_id}: {e}")

    def refresh_status(self) -> WorkflowOutcome:
        """User-initiated status check. One request per tap."""
        if self._submitting:
            return WorkflowOutcome(state=self.state, order=self.order, message="Payment is already in progress.")
        if not self.provider_order_id:
            return WorkflowOutcome(
                state=self.state,
                order=self.order,
                title="Nothing to refresh",
                message="There is no payment to check yet.",
            )

        try:
            status = self.receipt_service.get_status(self.provider_order_id)
        except DonationError as e:
            logger.warning(f"Status refresh failed for order {self.provider_order_id}: {e}")
            if not self._mounted:
                return self._detached()
            return WorkflowOutcome(
                state=self.state,
                order=self.order,
                receipt=self.receipt,
                title="Status Unavailable",
                message="Could not check the payment status. Please try again.",
                error=type(e).__name__,
                show_error=True,
            )

        if not self._mounted:
            return self._detached()

        if not status.receipt.is_pending and self.order is not None:
            return self._succeed(self.order, status.receipt)

        return WorkflowOutcome(
            state=self.state,
            order=self.order,
            receipt=self.receipt,
            title="Payment Successful" if status.paid else "",
            message=RECEIPT_PENDING_MESSAGE if status.paid else f"Payment status: {status.status}",
        )
