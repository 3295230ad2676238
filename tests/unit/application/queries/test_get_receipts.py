"""
Tests for GetReceiptsQueryHandler.

Covers:
- Listing receipts newest first
- Single receipt lookup
- ResourceNotFoundError for a missing receipt (404)
"""

import pytest

from src.application.queries import GetReceiptsQuery, GetReceiptsQueryHandler
from src.domain.shared.exceptions import ResourceNotFoundError
from src.domain.vat import Receipt

OWNER = "owner-1"


def _receipt(receipt_id: str, request_id: str, submitted_at: str) -> Receipt:
    return Receipt(
        receipt_id=receipt_id,
        request_id=request_id,
        vat_number="123456789",
        period_key="24A1",
        form_bundle_number=receipt_id.rsplit("-", 1)[-1],
        submitted_at=submitted_at,
    )


@pytest.fixture
def handler(receipt_repository) -> GetReceiptsQueryHandler:
    receipt_repository.save(OWNER, _receipt("r-old-1", "req-1", "2026-01-01T00:00:00+00:00"))
    receipt_repository.save(OWNER, _receipt("r-new-2", "req-2", "2026-02-01T00:00:00+00:00"))
    return GetReceiptsQueryHandler(receipt_repository)


@pytest.mark.asyncio
async def test_list_receipts_newest_first(handler):
    receipts = await handler.handle(GetReceiptsQuery(owner_id=OWNER))

    assert [receipt.receipt_id for receipt in receipts] == ["r-new-2", "r-old-1"]


@pytest.mark.asyncio
async def test_get_single_receipt(handler):
    receipts = await handler.handle(GetReceiptsQuery(owner_id=OWNER, receipt_id="r-old-1"))

    assert len(receipts) == 1
    assert receipts[0].request_id == "req-1"


@pytest.mark.asyncio
async def test_missing_receipt_raises_not_found(handler):
    """
    Test lookup of a receipt the owner does not have.

    Verifies:
    - ResourceNotFoundError (404) for unknown ids
    - Receipts of other owners are invisible
    """
    with pytest.raises(ResourceNotFoundError) as exc_info:
        await handler.handle(GetReceiptsQuery(owner_id=OWNER, receipt_id="r-none"))
    assert exc_info.value.status_code == 404

    with pytest.raises(ResourceNotFoundError):
        await handler.handle(GetReceiptsQuery(owner_id="owner-2", receipt_id="r-old-1"))
