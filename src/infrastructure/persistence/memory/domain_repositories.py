"""
In-Memory Domain Repositories

Bundle, receipt and dead-letter storage for STATE_STORE_BACKEND=memory.
Each class mirrors its Redis counterpart's semantics (conditional add,
first receipt per request wins, newest dead letter first).
"""

import threading
from collections import deque
from typing import Any, Optional

from src.application.models import QueueMessage
from src.domain.async_requests.request_record import utc_now_iso
from src.domain.bundles import Bundle
from src.domain.vat import Receipt


class InMemoryBundleRepository:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._bundles: dict[str, dict[str, Bundle]] = {}

    def list_bundles(self, owner_id: str) -> list[Bundle]:
        with self._lock:
            held = self._bundles.get(owner_id, {})
            return [held[bundle_id] for bundle_id in sorted(held)]

    def get_bundle(self, owner_id: str, bundle_id: str) -> Optional[Bundle]:
        with self._lock:
            return self._bundles.get(owner_id, {}).get(bundle_id)

    def add_bundle(self, owner_id: str, bundle: Bundle) -> bool:
        with self._lock:
            held = self._bundles.setdefault(owner_id, {})
            if bundle.bundle_id in held:
                return False
            held[bundle.bundle_id] = bundle
            return True

    def remove_bundle(self, owner_id: str, bundle_id: str) -> bool:
        with self._lock:
            return self._bundles.get(owner_id, {}).pop(bundle_id, None) is not None

    def remove_all(self, owner_id: str) -> int:
        with self._lock:
            return len(self._bundles.pop(owner_id, {}))


class InMemoryReceiptRepository:
    """Receipts per owner, indexed by receipt id and by request id."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._receipts: dict[str, dict[str, Receipt]] = {}
        self._by_request: dict[tuple[str, str], str] = {}

    def save(self, owner_id: str, receipt: Receipt) -> Receipt:
        with self._lock:
            existing = self.get_by_request_id(owner_id, receipt.request_id)
            if existing is not None:
                return existing
            self._receipts.setdefault(owner_id, {})[receipt.receipt_id] = receipt
            self._by_request[(owner_id, receipt.request_id)] = receipt.receipt_id
            return receipt

    def get(self, owner_id: str, receipt_id: str) -> Optional[Receipt]:
        with self._lock:
            return self._receipts.get(owner_id, {}).get(receipt_id)

    def get_by_request_id(self, owner_id: str, request_id: str) -> Optional[Receipt]:
        with self._lock:
            receipt_id = self._by_request.get((owner_id, request_id))
            return self.get(owner_id, receipt_id) if receipt_id else None

    def list_receipts(self, owner_id: str) -> list[Receipt]:
        with self._lock:
            receipts = list(self._receipts.get(owner_id, {}).values())
        return sorted(receipts, key=lambda r: r.submitted_at, reverse=True)


class InMemoryDeadLetterSink:
    def __init__(self, max_entries: int = 10_000) -> None:
        self._lock = threading.RLock()
        self._entries: deque[dict[str, Any]] = deque(maxlen=max_entries)

    def push(self, message: QueueMessage, error: str, attempts: int) -> None:
        payload = {k: v for k, v in message.payload.items() if k != "accessToken"}
        with self._lock:
            self._entries.appendleft(
                {
                    "message": {**message.model_dump(), "payload": payload},
                    "error": error,
                    "attempts": attempts,
                    "dead_lettered_at": utc_now_iso(),
                }
            )

    def list_entries(self, limit: int = 100) -> list[dict[str, Any]]:
        with self._lock:
            return list(self._entries)[:limit]

    def count(self) -> int:
        with self._lock:
            return len(self._entries)
