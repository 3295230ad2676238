"""
Celery Work Queue

Publishes QueueMessage bodies to the process_async_request Celery task
(Redis broker, at-least-once with acks_late).

Architecture Notes:
    - Infrastructure Layer (external dependency on Celery)
    - Implements WorkQueueProtocol
    - The task object is injected, so this module never imports the task
      module (which itself builds services from the infrastructure layer)
    - Broker errors (kombu OperationalError, RedisError) propagate unchanged
"""

import logging

from celery import Task

from src.application.models import QueueMessage

logger = logging.getLogger(__name__)


class CeleryWorkQueue:
    def __init__(self, task: Task) -> None:
        self.task = task

    def enqueue(self, message: QueueMessage) -> None:
        result = self.task.apply_async(kwargs={"message": message.model_dump()})
        logger.info(
            f"Enqueued request {message.request_id} as task {result.id} "
            f"(operation={message.operation})"
        )
