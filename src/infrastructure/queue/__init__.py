"""Work queue adapters."""

from src.infrastructure.queue.celery_work_queue import CeleryWorkQueue

__all__ = ["CeleryWorkQueue"]
