"""
Celery Task for Async Request Processing

Consumer side of the work queue: one task execution per delivered message.

Responsibility:
    - Drop malformed messages (missing owner_id / request_id)
    - Run WorkerHandler.handle for the message
    - Retry with exponential backoff on transient downstream conditions and
      on any unclassified exception
    - Dead-letter the message and write FAILED once retries are exhausted
    - Log each step with memory usage

Architecture Notes:
    - Part of Application Layer (orchestration)
    - Thin orchestrator: the handler decides terminal outcomes, this task
      only decides retry timing and dead-lettering
    - Handler and dead-letter sink come from the service factory

Retry Policy:
    countdown = min(retry_backoff_base * 2**retries, retry_backoff_max)
    (2s, 4s, 8s, ... capped at 900s), at most task_max_retries retries

Eager Mode (STATE_STORE_BACKEND=memory):
    Celery runs eager retries immediately, ignoring countdown. Instead the
    task returns "retry_scheduled" and a daemon timer re-applies it after
    the same countdown, so the record stays non-terminal in between.
"""

import logging
import os
import threading
from datetime import datetime

import psutil
from celery import Task
from pydantic import ValidationError
from redis.exceptions import RedisError

from .celery_app import celery_app
from src.application.models import QueueMessage
from src.domain.shared.exceptions import DomainException
from src.infrastructure.service_factory import build_worker_handler, get_dead_letter_sink
from src.shared.config import AsyncRequestConfig, get_config

# Configure logger for this module
logger = logging.getLogger(__name__)


def compute_retry_countdown(retries: int, config: AsyncRequestConfig) -> int:
    """Seconds to wait before retry number `retries + 1`."""
    return min(config.retry_backoff_base * (2**retries), config.retry_backoff_max)


def failure_reason(exc: Exception) -> str:
    """Text stored with FAILED records and dead-letter entries."""
    # DomainException.__str__ already carries the class name
    if isinstance(exc, DomainException):
        return str(exc)
    return f"{type(exc).__name__}: {exc}"


def schedule_local_redelivery(
    message: dict, retries: int, countdown: int
) -> threading.Timer:
    """
    Re-apply process_async_request in this process after `countdown` seconds.

    Args:
        message: The original message dict
        retries: Retry number the redelivered run sees in self.request.retries
        countdown: Delay in seconds
    """
    timer = threading.Timer(
        countdown,
        process_async_request.apply,
        kwargs={"kwargs": {"message": message}, "retries": retries},
    )
    timer.daemon = True
    timer.start()
    return timer

@celery_app.task(
    bind=True,
    name="process_async_request",
    max_retries=get_config().task_max_retries,
    acks_late=True,
    reject_on_worker_lost=True,
    time_limit=300,  # 5 minutes hard limit
    soft_time_limit=270,  # Warning 30 seconds before timeout
)
def process_async_request(self: Task, message: dict) -> dict:
    """
    Process one async request message to a terminal state.

    Args:
        self: Celery task instance (bind=True gives self.request.retries)
        message: QueueMessage.model_dump() (owner_id, request_id, operation, payload)

    Returns:
        dict: {"status": "completed"|"failed"|"skipped"|"dropped"|"retry_scheduled",
              "request_id": ...}

    Raises:
        celery.exceptions.Retry: When the broker is to redeliver the message
        Exception: The last error once retries are exhausted (after dead-lettering)
    """
    process = psutil.Process(os.getpid())
    task_id = self.request.id

    def log_with_memory(stage: str, text: str) -> None:
        memory_mb = process.memory_info().rss / 1024 / 1024
        timestamp = datetime.now().isoformat()
        logger.info(f"{timestamp} | {memory_mb:.1f}MB | {stage} | {text}")

    message = message or {}
    request_id = message.get("request_id")
    if not message.get("owner_id") or not request_id:
        logger.error(f"Task {task_id}: dropping message without owner_id/request_id")
        return {"status": "dropped", "request_id": request_id}

    try:
        queue_message = QueueMessage.model_validate(message)
    except ValidationError as e:
        logger.error(f"Task {task_id}: dropping malformed message {request_id}: {e}")
        return {"status": "dropped", "request_id": request_id}

    config = get_config()
    retries = self.request.retries or 0
    log_with_memory(
        "START",
        f"Request {request_id} ({queue_message.operation}), attempt {retries + 1}",
    )

    handler = build_worker_handler()
    try:
        result = handler.handle(queue_message)
    except Exception as exc:
        reason = failure_reason(exc)
        if retries >= self.max_retries:
            log_with_memory(
                "DEAD_LETTER", f"Request {request_id} exhausted retries: {reason}"
            )
            get_dead_letter_sink().push(queue_message, reason, attempts=retries + 1)
            try:
                handler.fail_exhausted(queue_message, reason)
            except RedisError:
                logger.error(
                    f"Could not mark request {request_id} as failed", exc_info=True
                )
            raise

        countdown = compute_retry_countdown(retries, config)
        if self.request.is_eager:
            # Eager retries run at once and ignore countdown
            log_with_memory(
                "RETRY",
                f"Request {request_id} in-process redelivery {retries + 1}/"
                f"{self.max_retries} in {countdown}s: {reason}",
            )
            schedule_local_redelivery(message, retries + 1, countdown)
            return {"status": "retry_scheduled", "request_id": request_id}

        log_with_memory(
            "RETRY",
            f"Request {request_id} retry {retries + 1}/{self.max_retries} "
            f"in {countdown}s: {reason}",
        )
        raise self.retry(exc=exc, countdown=countdown)

    log_with_memory("DONE", f"Request {request_id} {result.value}")
    return {"status": result.value, "request_id": request_id}
