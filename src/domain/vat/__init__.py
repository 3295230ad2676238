"""
VAT Subdomain

Rules for the tax authority VAT API: field formats, the 9-box return body,
obligation queries, fraud prevention headers, receipts and the downstream
error-code catalogue.
"""

from .error_messages import ErrorAdvice, extract_error_code, get_error_advice
from .fraud_headers import build_fraud_headers, first_public_ip
from .receipt import Receipt, build_receipt_id
from .validation import (
    OBLIGATION_STATUSES,
    build_vat_return_body,
    is_valid_date_range,
    is_valid_iso_date,
    is_valid_period_key,
    is_valid_vrn,
    parse_vat_due,
)

__all__ = [
    "ErrorAdvice",
    "OBLIGATION_STATUSES",
    "Receipt",
    "build_fraud_headers",
    "build_receipt_id",
    "build_vat_return_body",
    "extract_error_code",
    "first_public_ip",
    "get_error_advice",
    "is_valid_date_range",
    "is_valid_iso_date",
    "is_valid_period_key",
    "is_valid_vrn",
    "parse_vat_due",
]
