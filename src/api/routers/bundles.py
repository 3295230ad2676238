"""
API Router for Bundle Entitlements

Responsibility:
    HTTP interface for the bundles a caller holds: list (synchronous),
    grant and remove (async request contract).

Architecture Notes:
    - Part of API Layer (Presentation)
    - GET reads the bundle repository through ListBundlesQueryHandler
    - POST/DELETE validate synchronously (fields, catalog, qualifiers,
      ownership) and hand the typed command to the IngestHandler
    - POST/DELETE endpoints are sync functions: the ingest wait loop blocks
      a threadpool worker, never the event loop

Contains:
    - GET /bundle - List active bundles
    - POST /bundle - Grant a catalog bundle
    - DELETE /bundle - Remove one bundle or all bundles

Does NOT contain:
    - Cap enforcement or expiry computation (GrantBundleExecutor, in the worker)
    - Request record handling (IngestHandler)
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from pydantic import BaseModel, ConfigDict, Field

from src.api.async_headers import AsyncRequestHeaders, render_outcome
from src.api.dependencies import (
    get_async_headers,
    get_bundle_catalog,
    get_ingest_handler,
    get_json_body,
    get_list_bundles_handler,
    get_principal,
)
from src.api.schemas.common import AcceptedResponse, ErrorResponse
from src.application.commands.async_commands import (
    GrantBundleCommand,
    RemoveBundleCommand,
    parse_command,
)
from src.application.ports import AuthenticatedPrincipal
from src.application.queries import ListBundlesQuery, ListBundlesQueryHandler
from src.application.services.ingest_handler import IngestHandler
from src.domain.bundles import BundleCatalog, check_qualifiers
from src.domain.shared.exceptions import BundleNotFoundError

# Configure logger
logger = logging.getLogger(__name__)


class BundleResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    bundle_id: str = Field(alias="bundleId")
    expiry: Optional[str] = None


class BundleListResponse(BaseModel):
    """
    Response model for the bundle list.

    Attributes:
        bundles: Active bundles of the caller (expired ones are hidden)
    """

    bundles: list[BundleResponse] = Field(default_factory=list)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"bundles": [{"bundleId": "test", "expiry": "2026-10-19"}]}
        }
    )


# ============================================================================
# ROUTER CONFIGURATION
# ============================================================================


router = APIRouter(
    prefix="/bundle",
    tags=["bundles"],
    responses={
        400: {"model": ErrorResponse, "description": "Bad Request - Invalid fields or headers"},
        401: {"model": ErrorResponse, "description": "Unauthorized - Missing or invalid token"},
        500: {"model": ErrorResponse, "description": "Internal Server Error"},
    },
)


# ============================================================================
# ENDPOINTS
# ============================================================================


@router.get(
    "",
    status_code=status.HTTP_200_OK,
    response_model=BundleListResponse,
    response_model_by_alias=True,
    summary="List bundles held by the caller",
)
async def list_bundles(
    principal: AuthenticatedPrincipal = Depends(get_principal),
    handler: ListBundlesQueryHandler = Depends(get_list_bundles_handler),
) -> BundleListResponse:
    result = await handler.handle(ListBundlesQuery(owner_id=principal.owner_id))
    return BundleListResponse(
        bundles=[BundleResponse(**bundle.to_dict()) for bundle in result.bundles]
    )


@router.post(
    "",
    summary="Grant a bundle to the caller",
    description=(
        "Async request: answers with the stored outcome when it is reached "
        "within x-wait-time-ms, otherwise 202 with x-request-id. Re-poll the "
        "same endpoint with the same x-request-id."
    ),
    responses={
        201: {"description": "Granted (or already held)"},
        202: {"model": AcceptedResponse, "description": "Accepted - poll again"},
        403: {"model": ErrorResponse, "description": "Forbidden - bundle cap reached"},
        404: {"model": ErrorResponse, "description": "Not Found - unknown catalog bundle"},
    },
)
def grant_bundle(
    request: Request,
    principal: AuthenticatedPrincipal = Depends(get_principal),
    headers: AsyncRequestHeaders = Depends(get_async_headers),
    body: Any = Depends(get_json_body),
    catalog: BundleCatalog = Depends(get_bundle_catalog),
    ingest: IngestHandler = Depends(get_ingest_handler),
) -> Response:
    """
    Grant a catalog bundle.

    Process Flow:
        1. Validate body into GrantBundleCommand (400)
        2. Catalog lookup (404 bundle_not_found)
        3. Qualifier rules against body and token claims (400)
        4. Ingest: replay, or create + enqueue + wait
        5. Render stored outcome or 202
    """
    command = parse_command(GrantBundleCommand, body)

    catalog_bundle = catalog.get(command.bundle_id)
    if catalog_bundle is None:
        logger.warning(f"Grant requested for unknown bundle {command.bundle_id}")
        raise BundleNotFoundError(
            f"Bundle '{command.bundle_id}' not found in catalog",
            bundle_id=command.bundle_id,
        )
    check_qualifiers(catalog_bundle, principal.claims, command.qualifiers)

    outcome = ingest.ingest(
        principal.owner_id,
        command,
        request_id=headers.request_id,
        wait_time_ms=headers.wait_time_ms,
        initial_request=headers.initial_request,
    )
    return render_outcome(outcome, request.url.path)


@router.delete(
    "",
    summary="Remove one bundle, or all bundles, from the caller",
    description=(
        "Target from the body ({bundleId} or {removeAll: true}) or from the "
        "bundleId / removeAll query parameters. Async request contract as POST."
    ),
    responses={
        204: {"description": "Removed"},
        202: {"model": AcceptedResponse, "description": "Accepted - poll again"},
        404: {"model": ErrorResponse, "description": "Not Found - bundle not held"},
    },
)
def remove_bundle(
    request: Request,
    bundle_id: Optional[str] = Query(default=None, alias="bundleId"),
    remove_all: Optional[str] = Query(default=None, alias="removeAll"),
    principal: AuthenticatedPrincipal = Depends(get_principal),
    headers: AsyncRequestHeaders = Depends(get_async_headers),
    body: Any = Depends(get_json_body),
    bundles: ListBundlesQueryHandler = Depends(get_list_bundles_handler),
    ingest: IngestHandler = Depends(get_ingest_handler),
) -> Response:
    data = dict(body) if isinstance(body, dict) else {}
    if bundle_id is not None:
        data.setdefault("bundleId", bundle_id)
    if remove_all is not None:
        data.setdefault("removeAll", remove_all)
    command = parse_command(RemoveBundleCommand, data)

    def owner_holds_bundle() -> None:
        if command.remove_all:
            return
        if not bundles.owner_holds(principal.owner_id, command.bundle_id):
            logger.warning(f"Removal requested for bundle not held: {command.bundle_id}")
            raise BundleNotFoundError("Bundle not found", bundle_id=command.bundle_id)

    outcome = ingest.ingest(
        principal.owner_id,
        command,
        request_id=headers.request_id,
        wait_time_ms=headers.wait_time_ms,
        initial_request=headers.initial_request,
        precheck=owner_holds_bundle,
    )
    return render_outcome(outcome, request.url.path)
