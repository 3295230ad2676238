"""
GetReceiptsQuery - CQRS Read Query

Query object and handler reading VAT receipts from permanent storage.

Responsibility:
    - Query: Owner id plus optional receipt id
    - Handler: One receipt (404 when missing) or the owner's receipt list
"""

import logging
from typing import Optional

from pydantic import BaseModel, Field

from src.application.ports.receipt_repository import ReceiptRepositoryProtocol
from src.domain.shared.exceptions import ResourceNotFoundError
from src.domain.vat import Receipt

logger = logging.getLogger(__name__)


class GetReceiptsQuery(BaseModel):
    """
    Query for receipts.

    Attributes:
        owner_id: Hashed subject of the caller
        receipt_id: Single receipt to fetch (None lists all)
    """

    owner_id: str = Field(min_length=1)
    receipt_id: Optional[str] = None


class GetReceiptsQueryHandler:
    """
    Handler for receipt reads.

    Raises:
        ResourceNotFoundError: When a single receipt is requested and missing
    """

    def __init__(self, receipts: ReceiptRepositoryProtocol) -> None:
        self.receipts = receipts

    async def handle(self, query: GetReceiptsQuery) -> list[Receipt]:
        if query.receipt_id is None:
            receipts = self.receipts.list_receipts(query.owner_id)
            logger.debug(f"Listing {len(receipts)} receipts")
            return receipts

        receipt = self.receipts.get(query.owner_id, query.receipt_id)
        if receipt is None:
            logger.warning(f"Receipt not found: {query.receipt_id}")
            raise ResourceNotFoundError("Receipt not found")
        return [receipt]
