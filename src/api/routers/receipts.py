"""
API Router for VAT Receipts

Responsibility:
    Read access to receipts kept in permanent storage after successful VAT
    return submissions.

Contains:
    - GET /hmrc/receipt - List the caller's receipts (newest first)
    - GET /hmrc/receipt/{receipt_id} - One receipt (404 when missing)
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Path, status
from pydantic import BaseModel, Field

from src.api.dependencies import get_principal, get_receipts_handler
from src.api.schemas.common import ErrorResponse
from src.application.ports import AuthenticatedPrincipal
from src.application.queries import GetReceiptsQuery, GetReceiptsQueryHandler

# Configure logger
logger = logging.getLogger(__name__)


class ReceiptListResponse(BaseModel):
    receipts: list[dict[str, Any]] = Field(default_factory=list)


class ReceiptResponse(BaseModel):
    receipt: dict[str, Any]


router = APIRouter(
    prefix="/hmrc/receipt",
    tags=["receipts"],
    responses={
        401: {"model": ErrorResponse, "description": "Unauthorized - Missing or invalid token"},
        500: {"model": ErrorResponse, "description": "Internal Server Error"},
    },
)


@router.get(
    "",
    status_code=status.HTTP_200_OK,
    response_model=ReceiptListResponse,
    summary="List stored VAT receipts",
)
async def list_receipts(
    principal: AuthenticatedPrincipal = Depends(get_principal),
    handler: GetReceiptsQueryHandler = Depends(get_receipts_handler),
) -> ReceiptListResponse:
    receipts = await handler.handle(GetReceiptsQuery(owner_id=principal.owner_id))
    return ReceiptListResponse(receipts=[receipt.to_dict() for receipt in receipts])


@router.get(
    "/{receipt_id}",
    status_code=status.HTTP_200_OK,
    response_model=ReceiptResponse,
    summary="Get one stored VAT receipt",
    responses={404: {"model": ErrorResponse, "description": "Not Found"}},
)
async def get_receipt(
    receipt_id: str = Path(..., min_length=1, description="Receipt id"),
    principal: AuthenticatedPrincipal = Depends(get_principal),
    handler: GetReceiptsQueryHandler = Depends(get_receipts_handler),
) -> ReceiptResponse:
    receipts = await handler.handle(
        GetReceiptsQuery(owner_id=principal.owner_id, receipt_id=receipt_id)
    )
    return ReceiptResponse(receipt=receipts[0].to_dict())
