"""
Downstream Error Catalogue

Maps tax authority error codes to end-user messages and remediation advice.
Used when a downstream response is classified as terminal.
"""

from typing import Any, NamedTuple, Optional


class ErrorAdvice(NamedTuple):
    user_message: str
    action_advice: str


_CHECK_AND_RETRY = "Please check all values are correct and try again"
_TRY_LATER = "Please try again later"

ERROR_ADVICE: dict[str, ErrorAdvice] = {
    "INVALID_VRN": ErrorAdvice(
        "The VAT registration number (VRN) is not valid",
        "Please check the VRN and try again",
    ),
    "VRN_NOT_FOUND": ErrorAdvice(
        "The VAT registration number (VRN) was not found",
        "Please verify the VRN is correct and registered with HMRC",
    ),
    "INVALID_PERIODKEY": ErrorAdvice(
        "The period key is not valid",
        "Please check the period key format and try again",
    ),
    "PERIOD_KEY_INVALID": ErrorAdvice(
        "The period key is not valid",
        "Please check the period key format and try again",
    ),
    "NOT_FOUND": ErrorAdvice(
        "The requested resource was not found",
        "Please check the VRN and period key are correct",
    ),
    "DATE_RANGE_TOO_LARGE": ErrorAdvice(
        "The date range is too large",
        "Please reduce the date range to less than 365 days",
    ),
    "INSOLVENT_TRADER": ErrorAdvice(
        "This VAT registration is for an insolvent trader",
        "VAT returns cannot be submitted for insolvent traders. Please contact HMRC",
    ),
    "DUPLICATE_SUBMISSION": ErrorAdvice(
        "This VAT return has already been submitted",
        "You cannot submit the same return twice. "
        "If you need to make changes, please contact HMRC",
    ),
    "INVALID_SUBMISSION": ErrorAdvice(
        "The VAT return submission is not valid",
        _CHECK_AND_RETRY,
    ),
    "TAX_PERIOD_NOT_ENDED": ErrorAdvice(
        "The tax period has not ended yet",
        "You can only submit a return after the tax period has ended",
    ),
    "INVALID_ORIGINATOR_ID": ErrorAdvice(
        "The software vendor ID is not valid",
        "Please contact the software vendor for support",
    ),
    "INVALID_CREDENTIALS": ErrorAdvice(
        "The authentication credentials are not valid",
        "Please sign in again to refresh your credentials",
    ),
    "CLIENT_OR_AGENT_NOT_AUTHORISED": ErrorAdvice(
        "You are not authorized to access this VAT registration",
        "Please ensure you have the correct permissions and try again",
    ),
    "BUSINESS_ERROR": ErrorAdvice(
        "A business rule validation failed",
        _CHECK_AND_RETRY,
    ),
    "SERVER_ERROR": ErrorAdvice(
        "HMRC service is experiencing technical difficulties",
        _TRY_LATER,
    ),
    "SERVICE_UNAVAILABLE": ErrorAdvice(
        "HMRC service is temporarily unavailable",
        _TRY_LATER,
    ),
}

DEFAULT_ADVICE = ErrorAdvice(
    "An unexpected error occurred",
    "Please try again or contact support if the problem persists",
)


def get_error_advice(code: Optional[str]) -> ErrorAdvice:
    """
    Look up user message and advice for a downstream error code.

    Examples:
        >>> get_error_advice("INVALID_VRN").user_message
        'The VAT registration number (VRN) is not valid'
        >>> get_error_advice("SOMETHING_NEW") == DEFAULT_ADVICE
        True
    """
    if not code:
        return DEFAULT_ADVICE
    return ERROR_ADVICE.get(code, DEFAULT_ADVICE)


def extract_error_code(response_body: Any) -> Optional[str]:
    """
    Extract the error code from a downstream error body.

    Looks at the top-level "code" field first, then the first entry of an
    "errors" array.
    """
    if not isinstance(response_body, dict):
        return None
    if response_body.get("code"):
        return response_body["code"]
    errors = response_body.get("errors")
    if isinstance(errors, list) and errors and isinstance(errors[0], dict):
        return errors[0].get("code")
    return None
