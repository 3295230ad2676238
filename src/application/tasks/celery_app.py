"""
Celery application for the async request work queue.

Redis broker, at-least-once delivery: messages are acked only after the task
returns and are redelivered when a worker dies mid-task.

Architecture Note:
- Part of Application Layer (orchestration)
- Settings come from AsyncRequestConfig (environment + .env)
- STATE_STORE_BACKEND=memory runs tasks eagerly in the calling process,
  since the in-memory stores are not shared with a separate worker
- Start a worker with: celery -A src.application.tasks.celery_app worker
"""

from celery import Celery

from src.shared.config import get_config

config = get_config()

celery_app = Celery(
    "vatsubmit",
    broker=config.celery_broker_url,
    backend=config.celery_result_backend,
    include=["src.application.tasks.async_request_tasks"],
)

celery_app.conf.update(
    task_track_started=True,
    result_expires=config.request_ttl_seconds,  # results never outlive the record
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,  # one slow downstream call per worker slot
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    task_always_eager=config.state_store_backend == "memory",
)
