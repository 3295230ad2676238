"""
DeadLetterSink Interface

Destination for messages that exhausted their retries without reaching a
terminal state. Entries are kept for manual inspection.
"""

from typing import Any, Protocol

from src.application.models import QueueMessage


class DeadLetterSinkProtocol(Protocol):
    def push(self, message: QueueMessage, error: str, attempts: int) -> None:
        ...

    def list_entries(self, limit: int = 100) -> list[dict[str, Any]]:
        ...

    def count(self) -> int:
        ...
