"""
Application Services

Responsibility:
    Orchestration of the async request lifecycle and the side effects run
    by the worker.

Contains:
    - ingest_handler: Front-door procedure (idempotency, enqueue, wait loop)
    - worker_handler: Consumer procedure (decode, dispatch, terminal write)
    - bundle_operations: Grant / remove executors
    - vat_return_operations: VAT submission executor
    - vat_obligation_operations: VAT obligations executor

Does NOT contain:
    - Domain business logic (use Domain services)
    - Direct infrastructure calls (use dependency injection)
"""
