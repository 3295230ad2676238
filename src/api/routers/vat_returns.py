"""
API Router for VAT Return Submission

Responsibility:
    HTTP interface for filing a VAT return with the tax authority through the
    async request contract.

Architecture Notes:
    - Part of API Layer (Presentation)
    - Fraud prevention headers are built here from the caller's request and
      travel with the command (a caller-supplied govClientHeaders is replaced)
    - Field validation happens here (SubmitVatReturnCommand), before any
      record is written
    - The downstream call, receipt storage and error advice mapping happen in
      the worker (SubmitVatReturnExecutor)

Contains:
    - POST /hmrc/vat/return - Submit a VAT return
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request, Response

from src.api.async_headers import AsyncRequestHeaders, render_outcome
from src.api.dependencies import (
    get_async_headers,
    get_fraud_headers,
    get_ingest_handler,
    get_json_body,
    get_principal,
)
from src.api.schemas.common import AcceptedResponse, ErrorResponse
from src.application.commands.async_commands import SubmitVatReturnCommand, parse_command
from src.application.ports import AuthenticatedPrincipal
from src.application.services.ingest_handler import IngestHandler

# Configure logger
logger = logging.getLogger(__name__)


router = APIRouter(
    prefix="/hmrc/vat",
    tags=["vat"],
    responses={
        400: {"model": ErrorResponse, "description": "Bad Request - Invalid fields or headers"},
        401: {"model": ErrorResponse, "description": "Unauthorized - Missing or invalid token"},
        500: {"model": ErrorResponse, "description": "Internal Server Error"},
    },
)


@router.post(
    "/return",
    summary="Submit a VAT return",
    description=(
        "Body: {vatNumber, periodKey, vatDue, accessToken}. Answers 201 with "
        "the stored receipt, the stored downstream error (with userMessage and "
        "actionAdvice), or 202 with x-request-id when x-wait-time-ms runs out."
    ),
    responses={
        201: {"description": "Accepted by the tax authority, receipt stored"},
        202: {"model": AcceptedResponse, "description": "Accepted - poll again"},
    },
)
def submit_vat_return(
    request: Request,
    principal: AuthenticatedPrincipal = Depends(get_principal),
    headers: AsyncRequestHeaders = Depends(get_async_headers),
    fraud_headers: dict[str, str] = Depends(get_fraud_headers),
    body: Any = Depends(get_json_body),
    ingest: IngestHandler = Depends(get_ingest_handler),
) -> Response:
    if isinstance(body, dict):
        body = {**body, "govClientHeaders": fraud_headers}
    command = parse_command(SubmitVatReturnCommand, body)
    logger.info(
        f"VAT return submission: vrn={command.vat_number}, periodKey={command.period_key}"
    )
    outcome = ingest.ingest(
        principal.owner_id,
        command,
        request_id=headers.request_id,
        wait_time_ms=headers.wait_time_ms,
        initial_request=headers.initial_request,
    )
    return render_outcome(outcome, request.url.path)
