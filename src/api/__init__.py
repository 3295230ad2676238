"""
API Layer - FastAPI Presentation Layer

Responsibility:
    HTTP interface for the application. Authenticates callers, parses the
    async request headers, validates bodies into typed commands and hands
    them to the ingest handler. No business logic.

Contains:
    - FastAPI routers (bundles, VAT returns, receipts)
    - Async request header parsing and response rendering
    - Dependency injection setup
    - Middleware and exception handlers

Does NOT contain:
    - Business logic (belongs to Domain layer)
    - Request lifecycle orchestration (belongs to Application layer)
    - Storage operations (belongs to Infrastructure layer)
"""
