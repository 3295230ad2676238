"""
VAT Return Field Validation

Format rules for VAT registration numbers, period keys and amounts, plus
the 9-box return body sent to the tax authority.

Business Rules:
    - VRN: exactly 9 digits
    - Period key: "18A1" style (2 digits, letter, digit) or "#001" style,
      compared case-insensitively
    - vatDue: numeric, at most 2 decimal places
    - Obligation query dates: YYYY-MM-DD calendar dates, from <= to
    - Obligation status: "O" (open) or "F" (fulfilled)
"""

import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Union

_VRN_PATTERN = re.compile(r"^\d{9}$")
_PERIOD_KEY_PATTERN = re.compile(r"^(\d{2}[A-Z]\d|#\d{3})$")
_ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

OBLIGATION_STATUSES = ("O", "F")


def is_valid_vrn(vrn: Any) -> bool:
    """
    Check VAT registration number format.

    Examples:
        >>> is_valid_vrn("123456789")
        True
        >>> is_valid_vrn("12345678")
        False
    """
    return bool(_VRN_PATTERN.match(str(vrn)))


def is_valid_period_key(period_key: Any) -> bool:
    """
    Check period key format (case-insensitive).

    Examples:
        >>> is_valid_period_key("24a1")
        True
        >>> is_valid_period_key("#001")
        True
        >>> is_valid_period_key("2024")
        False
    """
    return bool(_PERIOD_KEY_PATTERN.match(str(period_key).upper()))


def parse_vat_due(value: Union[str, int, float, Decimal]) -> Decimal:
    """
    Parse a VAT amount.

    Args:
        value: Amount as number or numeric string

    Returns:
        Decimal amount

    Raises:
        ValueError: If the value is not numeric or has more than 2 decimals
    """
    if isinstance(value, bool):
        raise ValueError("Invalid vatDue - must be a number")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation as e:
        raise ValueError("Invalid vatDue - must be a number") from e
    if not amount.is_finite():
        raise ValueError("Invalid vatDue - must be a number")
    if amount.as_tuple().exponent < -2:
        raise ValueError("Invalid vatDue - at most 2 decimal places allowed")
    return amount


def build_vat_return_body(period_key: str, vat_due: Decimal) -> dict[str, Any]:
    """
    Build the 9-box VAT return body for a simple return.

    Only output tax is declared; every other box is zero and the return is
    finalised.
    """
    amount = float(vat_due)
    return {
        "periodKey": period_key.upper(),
        "vatDueSales": amount,
        "vatDueAcquisitions": 0,
        "totalVatDue": amount,
        "vatReclaimedCurrPeriod": 0,
        "netVatDue": abs(amount),
        "totalValueSalesExVAT": 0,
        "totalValuePurchasesExVAT": 0,
        "totalValueGoodsSuppliedExVAT": 0,
        "totalAcquisitionsExVAT": 0,
        "finalised": True,
    }


def is_valid_iso_date(value: Any) -> bool:
    """
    Check a YYYY-MM-DD calendar date.

    Examples:
        >>> is_valid_iso_date("2024-02-29")
        True
        >>> is_valid_iso_date("2023-02-29")
        False
    """
    text = str(value)
    if not _ISO_DATE_PATTERN.match(text):
        return False
    try:
        date.fromisoformat(text)
    except ValueError:
        return False
    return True


def is_valid_date_range(from_date: str, to_date: str) -> bool:
    if not (is_valid_iso_date(from_date) and is_valid_iso_date(to_date)):
        return False
    return date.fromisoformat(from_date) <= date.fromisoformat(to_date)
