"""
Application Layer - Use Cases and Orchestration

Responsibility:
    Coordinates the flow of data between API and Domain layers.
    Runs the async request lifecycle (ingest, queue, worker).

Contains:
    - Celery tasks (worker side of the work queue)
    - Commands (typed async operation variants)
    - Queries (synchronous reads: bundles, receipts)
    - Application services (ingest handler, worker handler, executors)
    - Ports (protocols implemented by Infrastructure)

Does NOT contain:
    - Domain business rules (belongs to Domain layer)
    - HTTP handling (belongs to API layer)
    - Infrastructure details (belongs to Infrastructure layer)
"""
