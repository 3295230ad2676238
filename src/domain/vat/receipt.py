"""
Receipt Value Object.

Audit-critical record of a successful VAT return submission, kept in
permanent domain storage independently of the short-lived request record.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


def build_receipt_id(submitted_at: datetime, form_bundle_number: str) -> str:
    """
    Build the receipt id "{iso timestamp}-{formBundleNumber}".

    Examples:
        >>> from datetime import timezone
        >>> build_receipt_id(datetime(2026, 1, 2, tzinfo=timezone.utc), "123")
        '2026-01-02T00:00:00+00:00-123'
    """
    return f"{submitted_at.isoformat()}-{form_bundle_number}"


class Receipt(BaseModel):
    """
    Receipt of an accepted VAT return.

    Attributes:
        receipt_id: "{iso timestamp}-{formBundleNumber}"
        request_id: Idempotency key of the submission that produced it
        vat_number: VAT registration number the return was filed for
        period_key: Period the return covers
        form_bundle_number: Reference assigned by the tax authority
        processing_date: Tax authority processing timestamp (optional)
        charge_ref_number: Payment reference, when a payment is due (optional)
        payment_indicator: "DD" or "BANK" (optional)
        submitted_at: ISO 8601 timestamp when the receipt was produced
        response: Full downstream response body
    """

    model_config = ConfigDict(populate_by_name=True)

    receipt_id: str = Field(alias="receiptId")
    request_id: str = Field(alias="requestId")
    vat_number: str = Field(alias="vatNumber")
    period_key: str = Field(alias="periodKey")
    form_bundle_number: str = Field(alias="formBundleNumber")
    processing_date: Optional[str] = Field(default=None, alias="processingDate")
    charge_ref_number: Optional[str] = Field(default=None, alias="chargeRefNumber")
    payment_indicator: Optional[str] = Field(default=None, alias="paymentIndicator")
    submitted_at: str = Field(alias="submittedAt")
    response: dict[str, Any] = Field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)
