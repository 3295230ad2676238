"""
WorkQueue Interface

Contract for the at-least-once broker carrying one message per accepted
request. Retry with backoff and dead-lettering are the consumer's concern
(see src.application.tasks).
"""

from typing import Protocol

from src.application.models import QueueMessage


class WorkQueueProtocol(Protocol):
    def enqueue(self, message: QueueMessage) -> None:
        """
        Publish one message.

        Raises:
            Exception: Broker errors propagate to the caller unchanged
        """
        ...
