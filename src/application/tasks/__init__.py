"""
Celery Tasks

Responsibility:
    Worker side of the async request work queue.

Contains:
    - celery_app.py - Celery configuration
    - async_request_tasks.py - process_async_request (retry, dead-letter)

Does NOT contain:
    - Business logic (delegates to WorkerHandler and its executors)
    - Synchronous operations (use Application services instead)
"""

from .celery_app import celery_app

__all__ = ["celery_app"]
