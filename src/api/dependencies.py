"""
API Dependency Providers

FastAPI Depends() providers shared by the routers. Each provider is a thin
async function over the service factory, so tests swap implementations with
app.dependency_overrides[provider] = ...

Architecture Notes:
    - Part of API Layer (Presentation)
    - Authentication runs before header and body validation, so a 401 never
      creates a record
"""

import json
from typing import Any, Optional

from fastapi import Depends, Header, Request

from src.api.async_headers import AsyncRequestHeaders, parse_async_headers
from src.application.ports import AuthenticatedPrincipal, AuthenticatorProtocol
from src.application.queries import GetReceiptsQueryHandler, ListBundlesQueryHandler
from src.application.services.ingest_handler import IngestHandler
from src.domain.bundles import BundleCatalog
from src.domain.shared.exceptions import InvalidRequestError
from src.domain.vat import build_fraud_headers
from src.infrastructure import service_factory
from src.shared.config import get_config


async def get_authenticator() -> AuthenticatorProtocol:
    return service_factory.get_authenticator()


async def get_ingest_handler() -> IngestHandler:
    return service_factory.build_ingest_handler()


async def get_bundle_catalog() -> BundleCatalog:
    return service_factory.get_bundle_catalog()


async def get_list_bundles_handler() -> ListBundlesQueryHandler:
    return service_factory.build_list_bundles_handler()


async def get_receipts_handler() -> GetReceiptsQueryHandler:
    return service_factory.build_receipts_handler()


async def get_principal(
    authorization: Optional[str] = Header(default=None),
    authenticator: AuthenticatorProtocol = Depends(get_authenticator),
) -> AuthenticatedPrincipal:
    """
    Verified caller from "Authorization: Bearer <jwt>".

    Raises:
        AuthenticationError: Missing or invalid token (401)
    """
    return authenticator.authenticate(authorization)


async def get_fraud_headers(
    request: Request,
    principal: AuthenticatedPrincipal = Depends(get_principal),
) -> dict[str, str]:
    """Gov-Client / Gov-Vendor headers for downstream tax authority calls."""
    config = get_config()
    return build_fraud_headers(
        request.headers,
        principal.owner_id,
        config.vendor_product_name,
        config.vendor_version,
        config.server_public_ip,
    )


async def get_async_headers(
    x_request_id: Optional[str] = Header(default=None),
    x_wait_time_ms: Optional[str] = Header(default=None),
    x_initial_request: Optional[str] = Header(default=None),
) -> AsyncRequestHeaders:
    """
    Parsed x-request-id / x-wait-time-ms / x-initial-request.

    Raises:
        InvalidRequestError: Malformed header (400)
    """
    return parse_async_headers(x_request_id, x_wait_time_ms, x_initial_request)


async def get_json_body(request: Request) -> Any:
    """
    Decoded JSON body (None when empty).

    Declared after get_principal in the routes, so auth is checked first.

    Raises:
        InvalidRequestError: Body is not valid JSON (400)
    """
    raw = await request.body()
    if not raw.strip():
        return None
    try:
        return json.loads(raw)
    except ValueError as e:
        raise InvalidRequestError(
            "Invalid request body", errors=["Request body must be valid JSON"]
        ) from e
