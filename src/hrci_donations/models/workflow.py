from enum import Enum
from pydantic import BaseModel

from hrci_donations.models.donation import PaymentOrder, Receipt


class WorkflowState(str, Enum):
    IDLE = "IDLE"
    VALIDATING = "VALIDATING"
    BLOCKED = "BLOCKED"
    CREATING_ORDER = "CREATING_ORDER"
    AWAITING_CHECKOUT = "AWAITING_CHECKOUT"
    CONFIRMING = "CONFIRMING"
    RESOLVED_SUCCESS = "RESOLVED_SUCCESS"
    RESOLVED_PENDING = "RESOLVED_PENDING"
    RESOLVED_AMBIGUOUS = "RESOLVED_AMBIGUOUS"
    RESOLVED_CANCELLED = "RESOLVED_CANCELLED"
    RESOLVED_FAILED = "RESOLVED_FAILED"
    # Screen went away before the response arrived
    DETACHED = "DETACHED"

    @property
    def is_terminal(self) -> bool:
        return self.value.startswith("RESOLVED_")


class WorkflowOutcome(BaseModel):
    state: WorkflowState
    title: str = ""
    message: str = ""
    receipt: Receipt | None = None
    order: PaymentOrder | None = None
    error: str | None = None
    show_error: bool = False
    offer_resubmit: bool = False
