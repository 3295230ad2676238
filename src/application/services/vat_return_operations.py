"""
VAT Return Submission Executor

Side effect for "vat.return.submit": file the return with the tax authority
and keep the receipt in permanent storage.

Responsibility:
    - Reuse a receipt already stored for this request_id (redelivery guard)
    - Call the downstream wrapper and act on its classification
    - Map terminal downstream errors to user message + remediation advice
    - Persist the receipt before reporting success

Architecture Notes:
    - Part of Application Layer (use case executed by WorkerHandler)
    - The downstream wrapper never raises for HTTP conditions; it returns a
      DownstreamResponse whose kind drives everything here
    - Receipt persistence is keyed by request_id, so a crash between the
      downstream success and the terminal write does not file twice

Error Mapping:
    - TRANSIENT (429/503/504, network) -> OperationOutcome.transient
    - TERMINAL -> FAILED with {error: downstream code, userMessage, actionAdvice},
      status = downstream status when 4xx/5xx, else 502
"""

import logging
from datetime import datetime, timezone
from typing import Callable

from src.application.commands.async_commands import AsyncCommand, SubmitVatReturnCommand
from src.application.models import OperationOutcome, OutcomeKind
from src.application.ports.receipt_repository import ReceiptRepositoryProtocol
from src.application.ports.vat_api import DownstreamResponse, VatApiProtocol
from src.domain.async_requests import ErrorDetail
from src.domain.vat import (
    Receipt,
    build_receipt_id,
    build_vat_return_body,
    extract_error_code,
    get_error_advice,
)

logger = logging.getLogger(__name__)


class SubmitVatReturnExecutor:
    """
    File a VAT return and store its receipt.

    Args:
        vat_api: Downstream wrapper
        receipts: Permanent receipt storage
        now: UTC timestamp provider (injectable for tests)
    """

    def __init__(
        self,
        vat_api: VatApiProtocol,
        receipts: ReceiptRepositoryProtocol,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.vat_api = vat_api
        self.receipts = receipts
        self._now = now

    def execute(
        self, owner_id: str, request_id: str, command: AsyncCommand
    ) -> OperationOutcome:
        if not isinstance(command, SubmitVatReturnCommand):
            raise TypeError(f"SubmitVatReturnExecutor cannot run {command.operation}")

        existing = self.receipts.get_by_request_id(owner_id, request_id)
        if existing is not None:
            logger.info(
                f"Receipt {existing.receipt_id} already stored for request {request_id}"
            )
            return self._success(existing)

        return_body = build_vat_return_body(command.period_key, command.vat_due)
        response = self.vat_api.submit_return(
            command.vat_number,
            return_body,
            command.access_token,
            command.fraud_headers,
        )

        if response.kind == OutcomeKind.TRANSIENT:
            return OperationOutcome.transient(response.reason)
        if response.kind == OutcomeKind.TERMINAL:
            return OperationOutcome.terminal(downstream_error_detail(response))

        submitted_at = self._now()
        form_bundle_number = str(
            response.body.get("formBundleNumber")
            or response.body.get("formBundle")
            or request_id
        )
        receipt = Receipt(
            receipt_id=build_receipt_id(submitted_at, form_bundle_number),
            request_id=request_id,
            vat_number=command.vat_number,
            period_key=command.period_key,
            form_bundle_number=form_bundle_number,
            processing_date=response.body.get("processingDate"),
            charge_ref_number=response.body.get("chargeRefNumber"),
            payment_indicator=response.body.get("paymentIndicator"),
            submitted_at=submitted_at.isoformat(),
            response=response.body,
        )
        stored = self.receipts.save(owner_id, receipt)
        logger.info(f"VAT return accepted, receipt {stored.receipt_id} stored")
        return self._success(stored)

    @staticmethod
    def _success(receipt: Receipt) -> OperationOutcome:
        return OperationOutcome.ok(
            201, {"receiptId": receipt.receipt_id, "receipt": receipt.to_dict()}
        )


def downstream_error_detail(response: DownstreamResponse) -> ErrorDetail:
    """
    FAILED detail for a terminal downstream response.

    Status is the downstream status when it is 4xx/5xx, else 502; the error
    code selects userMessage and actionAdvice from the catalogue.
    """
    code = extract_error_code(response.body)
    advice = get_error_advice(code)
    status_code = response.status_code or 502
    if not 400 <= status_code <= 599:
        status_code = 502
    message = response.body.get("message") or (
        f"VAT API returned HTTP {response.status_code}"
    )
    logger.warning(
        f"Terminal downstream error: status={response.status_code}, code={code}"
    )
    return ErrorDetail(
        status_code=status_code,
        error=code or "downstream_error",
        message=message,
        user_message=advice.user_message,
        action_advice=advice.action_advice,
    )
