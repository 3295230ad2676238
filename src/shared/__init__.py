"""
Shared

Responsibility:
    Cross-cutting concerns used across all layers.

Contains:
    - config: AsyncRequestConfig and get_config()
    - poller: Client-side helper for the 202 polling contract

Does NOT contain:
    - Business logic
    - Infrastructure implementations
"""
