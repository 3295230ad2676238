"""
ReceiptRepository Interface

Permanent domain storage for VAT receipts (multi-year TTL), indexed both by
receipt id and by the request id that produced the receipt. The request-id
index is what makes a redelivered submission reuse the stored receipt
instead of filing the return twice.
"""

from typing import Optional, Protocol

from src.domain.vat import Receipt


class ReceiptRepositoryProtocol(Protocol):
    def save(self, owner_id: str, receipt: Receipt) -> Receipt:
        """
        Store receipt unless one already exists for its request_id.

        Returns:
            The receipt now stored for that request_id (the existing one wins)
        """
        ...

    def get(self, owner_id: str, receipt_id: str) -> Optional[Receipt]:
        ...

    def get_by_request_id(self, owner_id: str, request_id: str) -> Optional[Receipt]:
        ...

    def list_receipts(self, owner_id: str) -> list[Receipt]:
        ...
