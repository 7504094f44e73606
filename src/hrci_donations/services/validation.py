import math

from hrci_donations.core.exceptions import ValidationError
from hrci_donations.models.donation import (
    PAN_PATTERN,
    DonationIntent,
    ValidationTier,
    mobile_digits,
    normalize_pan,
)

DONOR_FIELDS = frozenset({"name", "mobile", "email", "address", "pan"})
STANDARD_REQUIRED = frozenset({"name", "mobile"})
ENHANCED_REQUIRED = frozenset({"name", "mobile", "pan"})


def _format_threshold(threshold: float) -> str:
    if float(threshold).is_integer():
        return f"{int(threshold):,}"
    return f"{threshold:,.2f}"


def resolve_tier(amount, is_anonymous: bool, threshold: float) -> ValidationTier:
    """
    Map an amount and anonymity flag to the donor fields that are mandatory,
    optional or forbidden. Pure; safe to call on every keystroke.
    """
    try:
        value = float(amount)
    except (TypeError, ValueError):
        value = math.nan

    if not math.isfinite(value) or value <= 0:
        return ValidationTier(
            threshold=threshold,
            requires_details=False,
            allow_anonymous=False,
            required_fields=frozenset({"amount"}),
            forbidden_fields=DONOR_FIELDS,
            blocking=True,
        )

    if value > threshold:
        return ValidationTier(
            threshold=threshold,
            requires_details=True,
            allow_anonymous=False,
            required_fields=ENHANCED_REQUIRED,
            optional_fields=DONOR_FIELDS - ENHANCED_REQUIRED,
            conflict=bool(is_anonymous),
        )

    if is_anonymous:
        return ValidationTier(
            threshold=threshold,
            requires_details=False,
            allow_anonymous=True,
            forbidden_fields=DONOR_FIELDS,
        )

    return ValidationTier(
        threshold=threshold,
        requires_details=False,
        allow_anonymous=True,
        required_fields=STANDARD_REQUIRED,
        optional_fields=DONOR_FIELDS - STANDARD_REQUIRED,
    )


def validate_intent(intent: DonationIntent, threshold: float) -> ValidationTier:
    """Apply the tier to the intent's field values.

    Raises ValidationError with the alert copy for the first failing field.
    """
    tier = resolve_tier(intent.amount, intent.is_anonymous, threshold)

    if tier.blocking:
        raise ValidationError(
            "Please enter the donation amount first.",
            title="Enter amount",
            field="amount",
        )
    if tier.conflict:
        raise ValidationError(
            f"Donations above ₹{_format_threshold(threshold)} require your name, "
            "10-digit mobile number, and PAN. Anonymous donations are not allowed.",
            title="Details Required",
            field="is_anonymous",
        )

    if "name" in tier.required_fields and not (intent.donor_name or "").strip():
        raise ValidationError("Please enter your full name.", title="Enter Name", field="name")
    if "mobile" in tier.required_fields and len(mobile_digits(intent.donor_mobile)) != 10:
        raise ValidationError(
            "Please enter a valid 10-digit mobile number.",
            title="Invalid Mobile",
            field="mobile",
        )
    if "pan" in tier.required_fields and not PAN_PATTERN.match(normalize_pan(intent.donor_pan)):
        raise ValidationError(
            "Please enter a valid PAN (e.g., ABCDE1234F).",
            title="Invalid PAN",
            field="pan",
        )
    return tier


def check_anonymity_toggle(amount, value: bool, threshold: float) -> None:
    """Guard for the live anonymity switch; raises when the toggle must be refused."""
    if not value:
        return
    tier = resolve_tier(amount, value, threshold)
    if tier.blocking:
        raise ValidationError(
            "Please enter the donation amount first.",
            title="Enter amount",
            field="amount",
        )
    if tier.conflict:
        raise ValidationError(
            f"For donations above ₹{_format_threshold(threshold)}, donor details are required.",
            title="Not allowed",
            field="is_anonymous",
        )
