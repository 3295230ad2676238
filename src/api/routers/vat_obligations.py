"""
API Router for VAT Obligations

Responsibility:
    HTTP interface for reading the caller's VAT obligations (return periods)
    from the tax authority through the async request contract.

Architecture Notes:
    - Part of API Layer (Presentation)
    - The tax authority token arrives in the x-hmrc-access-token header,
      since Authorization carries this service's own bearer token
    - Query validation (GetVatObligationsCommand) happens before any record
      is written; the downstream call happens in the worker
      (GetVatObligationsExecutor)

Contains:
    - GET /hmrc/vat/obligation - VAT obligations for a VRN and date window
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request, Response

from src.api.async_headers import AsyncRequestHeaders, render_outcome
from src.api.dependencies import (
    get_async_headers,
    get_fraud_headers,
    get_ingest_handler,
    get_principal,
)
from src.api.schemas.common import AcceptedResponse, ErrorResponse
from src.application.commands.async_commands import (
    GetVatObligationsCommand,
    parse_command,
)
from src.application.ports import AuthenticatedPrincipal
from src.application.services.ingest_handler import IngestHandler

logger = logging.getLogger(__name__)


router = APIRouter(
    prefix="/hmrc/vat",
    tags=["vat"],
    responses={
        400: {"model": ErrorResponse, "description": "Bad Request - Invalid query or headers"},
        401: {"model": ErrorResponse, "description": "Unauthorized - Missing or invalid token"},
        500: {"model": ErrorResponse, "description": "Internal Server Error"},
    },
)


@router.get(
    "/obligation",
    summary="Get VAT obligations",
    description=(
        "Query: vrn, from and to (YYYY-MM-DD, default 1 January of this year "
        "to today), status (O or F). Header x-hmrc-access-token carries the "
        "tax authority token. Answers 200 with {obligations}, the stored "
        "downstream error, or 202 with x-request-id."
    ),
    responses={
        200: {"description": "Obligations returned by the tax authority"},
        202: {"model": AcceptedResponse, "description": "Accepted - poll again"},
    },
)
def get_vat_obligations(
    request: Request,
    vrn: Optional[str] = Query(default=None),
    from_date: Optional[str] = Query(default=None, alias="from"),
    to_date: Optional[str] = Query(default=None, alias="to"),
    obligation_status: Optional[str] = Query(default=None, alias="status"),
    x_hmrc_access_token: Optional[str] = Header(default=None),
    principal: AuthenticatedPrincipal = Depends(get_principal),
    headers: AsyncRequestHeaders = Depends(get_async_headers),
    fraud_headers: dict[str, str] = Depends(get_fraud_headers),
    ingest: IngestHandler = Depends(get_ingest_handler),
) -> Response:
    command = parse_command(
        GetVatObligationsCommand,
        {
            "vrn": vrn,
            "from": from_date,
            "to": to_date,
            "status": obligation_status,
            "accessToken": x_hmrc_access_token,
            "govClientHeaders": fraud_headers,
        },
    )
    logger.info(
        f"VAT obligations request: vrn={command.vat_number}, "
        f"from={command.from_date}, to={command.to_date}, status={command.status}"
    )
    outcome = ingest.ingest(
        principal.owner_id,
        command,
        request_id=headers.request_id,
        wait_time_ms=headers.wait_time_ms,
        initial_request=headers.initial_request,
    )
    return render_outcome(outcome, request.url.path)
