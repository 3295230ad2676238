"""
Persistence Infrastructure Module

Request state stores and domain repositories.

Submodules:
    - redis: Production backends (STATE_STORE_BACKEND=redis)
    - memory: Single-process backends (STATE_STORE_BACKEND=memory)
"""
