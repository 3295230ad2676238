"""
Bundle Qualifier Rules

Business rules a grant request must satisfy before it is accepted.

Business Rules:
    - requiresTransactionId: a transactionId must come from the request
      qualifiers or the caller's token claims
    - subscriptionTier: the tier from the request qualifiers or the token
      claims must equal the catalog tier
    - Request qualifier keys the catalog does not know are rejected
"""

import calendar
import logging
import re
from datetime import date
from typing import Any, Optional

from src.domain.bundles.catalog import CatalogBundle
from src.domain.shared.exceptions import QualifierError

logger = logging.getLogger(__name__)

_DURATION_PATTERN = re.compile(r"^P(?:(\d+)Y)?(?:(\d+)M)?(?:(\d+)D)?$")


def check_qualifiers(
    bundle: CatalogBundle,
    claims: Optional[dict[str, Any]] = None,
    request_qualifiers: Optional[dict[str, Any]] = None,
) -> None:
    """
    Validate request qualifiers against a catalog bundle.

    Args:
        bundle: Catalog definition being requested
        claims: Verified token claims of the caller
        request_qualifiers: Qualifiers sent in the request body

    Raises:
        QualifierError: error_code "qualifier_mismatch" when a rule is not met,
            "unknown_qualifier" when the request carries an unknown key
    """
    rules = bundle.qualifiers or {}
    claims = claims or {}
    request_qualifiers = request_qualifiers or {}

    if rules.get("requiresTransactionId"):
        transaction_id = (
            request_qualifiers.get("transactionId")
            or claims.get("transactionId")
            or claims.get("custom:transactionId")
        )
        if not transaction_id:
            logger.warning(f"Missing transactionId qualifier for bundle {bundle.id}")
            raise QualifierError(
                "Qualifier mismatch: transactionId is required",
                error_code="qualifier_mismatch",
            )

    if "subscriptionTier" in rules:
        tier = (
            request_qualifiers.get("subscriptionTier")
            or claims.get("subscriptionTier")
            or claims.get("custom:subscriptionTier")
        )
        if tier != rules["subscriptionTier"]:
            logger.warning(
                f"Subscription tier mismatch for bundle {bundle.id}: "
                f"expected={rules['subscriptionTier']}, received={tier}"
            )
            raise QualifierError(
                "Qualifier mismatch: subscription tier does not match",
                error_code="qualifier_mismatch",
            )

    known = set(rules)
    if rules.get("requiresTransactionId"):
        known.add("transactionId")
    for key in request_qualifiers:
        if key not in known:
            logger.warning(f"Unknown qualifier in bundle request: {key}")
            raise QualifierError(
                f"Unknown qualifier: {key}",
                error_code="unknown_qualifier",
                qualifier=key,
            )


def expiry_from_duration(start: date, duration: Optional[str]) -> Optional[date]:
    """
    Add an ISO 8601 duration (PnYnMnD subset) to a date.

    Month arithmetic clamps to the last day of the target month.

    Args:
        start: Grant date
        duration: Duration such as "P1D", "P1M", "P1Y2M"

    Returns:
        Expiry date, start itself for an unsupported duration, or None when
        no duration is configured

    Examples:
        >>> expiry_from_duration(date(2026, 1, 31), "P1M")
        datetime.date(2026, 2, 28)
    """
    if not duration:
        return None

    match = _DURATION_PATTERN.match(duration)
    if not match:
        logger.warning(f"Unsupported ISO duration format: {duration}")
        return start

    years, months, days = (int(part or 0) for part in match.groups())
    total_months = start.month - 1 + months
    year = start.year + years + total_months // 12
    month = total_months % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date.fromordinal(date(year, month, day).toordinal() + days)
