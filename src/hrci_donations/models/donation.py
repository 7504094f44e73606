import re
from typing import Annotated, Any, Literal, Union
from pydantic import BaseModel, ConfigDict, Field, model_validator


ConfirmationStatus = Literal["SUCCESS", "FAILED", "CANCELLED"]

PAN_PATTERN = re.compile(r"^[A-Z]{5}\d{4}[A-Z]$")
EMAIL_PATTERN = re.compile(r".+@.+\..+")
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]+")
_UNSAFE_CHARS = re.compile(r"[\"'`\\;]")


def sanitize_text(value: str | None) -> str:
    """Strip control characters and quoting characters the backend chokes on."""
    cleaned = _CONTROL_CHARS.sub("", str(value or ""))
    return _UNSAFE_CHARS.sub("", cleaned).strip()


def mobile_digits(value: str | None) -> str:
    return re.sub(r"\D", "", value or "")


def normalize_pan(value: str | None) -> str:
    return (value or "").strip().upper()


class DonationIntent(BaseModel):
    amount: float
    event_id: str | None = None
    donor_name: str | None = None
    donor_mobile: str | None = None
    donor_email: str | None = None
    donor_address: str | None = None
    donor_pan: str | None = None
    is_anonymous: bool = False
    share_code: str | None = None

    def to_order_payload(self, enhanced_tier: bool = False) -> dict[str, Any]:
        """
        Build the order request body. Only meaningful values are sent;
        empty strings are dropped because the backend treats them as invalid.
        """
        anonymous = self.is_anonymous and not enhanced_tier
        body: dict[str, Any] = {
            "amount": self.amount,
            "isAnonymous": anonymous,
        }

        if not anonymous:
            name = sanitize_text(self.donor_name)
            mobile = mobile_digits(self.donor_mobile)[:10]
            address = sanitize_text(self.donor_address)
            email = sanitize_text(self.donor_email)
            pan = normalize_pan(sanitize_text(self.donor_pan))

            if name:
                body["donorName"] = name
            if mobile:
                body["donorMobile"] = mobile
            if address:
                body["donorAddress"] = address
            if email and EMAIL_PATTERN.match(email):
                body["donorEmail"] = email
            if pan:
                body["donorPan"] = pan

        event_id = (self.event_id or "").strip()
        share_code = (self.share_code or "").strip()
        if event_id:
            body["eventId"] = event_id
        if share_code:
            body["shareCode"] = share_code
        return body

    def prefill(self) -> dict[str, str]:
        if self.is_anonymous:
            return {}
        prefill = {
            "name": (self.donor_name or "").strip(),
            "contact": mobile_digits(self.donor_mobile)[:10],
            "email": (self.donor_email or "").strip(),
        }
        return {k: v for k, v in prefill.items() if v}


class ValidationTier(BaseModel):
    model_config = ConfigDict(frozen=True)

    threshold: float
    requires_details: bool
    allow_anonymous: bool
    required_fields: frozenset[str] = frozenset()
    optional_fields: frozenset[str] = frozenset()
    forbidden_fields: frozenset[str] = frozenset()
    # Amount missing, non-finite or not positive
    blocking: bool = False
    # Anonymous donation requested in the enhanced-disclosure tier
    conflict: bool = False

    @property
    def can_submit(self) -> bool:
        return not (self.blocking or self.conflict)


class PaymentOrder(BaseModel):
    order_id: str = Field(alias="orderId")
    provider_order_id: str | None = Field(default=None, alias="providerOrderId")
    provider_key_id: str | None = Field(default=None, alias="providerKeyId")
    amount: float
    currency: str = "INR"
    provider: str = "razorpay"
    stale: bool = False

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @property
    def amount_minor(self) -> int:
        return int(round(float(self.amount) * 100))

    def mark_stale(self) -> None:
        self.stale = True


class PaymentLink(BaseModel):
    """A member-issued Razorpay payment link (``plink_*``) the donor pays on their own."""

    donation_id: str = Field(alias="donationId")
    link_id: str | None = Field(default=None, alias="linkId")
    intent_id: str | None = Field(default=None, alias="intentId")
    short_url: str | None = Field(default=None, alias="shortUrl")
    status: str = "PENDING"
    status_url: str | None = Field(default=None, alias="statusUrl")

    model_config = ConfigDict(populate_by_name=True, extra="ignore", coerce_numbers_to_str=True)


class CheckoutCompleted(BaseModel):
    kind: Literal["completed"] = "completed"
    provider_payment_id: str
    provider_order_id: str
    signature: str


class CheckoutCancelled(BaseModel):
    kind: Literal["cancelled"] = "cancelled"
    reason: str | None = None


class CheckoutFailed(BaseModel):
    kind: Literal["failed"] = "failed"
    reason: str
    code: str | None = None


CheckoutResult = Annotated[
    Union[CheckoutCompleted, CheckoutCancelled, CheckoutFailed],
    Field(discriminator="kind"),
]


class ConfirmationRecord(BaseModel):
    order_id: str = Field(serialization_alias="orderId")
    status: ConfirmationStatus
    provider: str = "razorpay"
    provider_ref: str = Field(default="razorpay", serialization_alias="providerRef")
    provider_order_id: str | None = Field(default=None, serialization_alias="razorpay_order_id")
    provider_payment_id: str | None = Field(default=None, serialization_alias="razorpay_payment_id")
    signature: str | None = Field(default=None, serialization_alias="razorpay_signature")

    @model_validator(mode="after")
    def check_proof_fields(self) -> "ConfirmationRecord":
        if self.signature and self.status != "SUCCESS":
            raise ValueError("signature is only sent with a SUCCESS confirmation")
        if self.status == "SUCCESS" and not (self.provider_payment_id and self.provider_order_id and self.signature):
            raise ValueError("SUCCESS confirmation requires provider payment id, order id and signature")
        return self

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Receipt(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    html_url: str | None = None
    pdf_url: str | None = None
    receipt_no: str | None = None
    donation_id: str | None = None

    @property
    def is_pending(self) -> bool:
        return not (self.html_url or self.pdf_url)

    @property
    def preferred_url(self) -> str | None:
        return self.pdf_url or self.html_url


class ConfirmationResult(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    status: str | None = None
    donation_id: str | None = None
    receipt: Receipt | None = None


class OrderStatus(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    provider_order_id: str
    status: str = "PENDING"
    paid: bool = False
    payment_id: str | None = None
    receipt: Receipt = Field(default_factory=Receipt)

    @property
    def is_terminal(self) -> bool:
        return self.status.upper() in ("SUCCESS", "FAILED")
