"""
VAT Obligations Executor

Side effect for "vat.obligations.get": read the caller's VAT obligations
(return periods, open or fulfilled) from the tax authority.

Architecture Notes:
    - Part of Application Layer (use case executed by WorkerHandler)
    - Read-only downstream call; a redelivery simply asks again
    - Terminal downstream errors share the VAT return mapping
      (downstream_error_detail)
"""

import logging

from src.application.commands.async_commands import (
    AsyncCommand,
    GetVatObligationsCommand,
)
from src.application.models import OperationOutcome, OutcomeKind
from src.application.ports.vat_api import VatApiProtocol
from src.application.services.vat_return_operations import downstream_error_detail

logger = logging.getLogger(__name__)


class GetVatObligationsExecutor:
    def __init__(self, vat_api: VatApiProtocol) -> None:
        self.vat_api = vat_api

    def execute(
        self, owner_id: str, request_id: str, command: AsyncCommand
    ) -> OperationOutcome:
        if not isinstance(command, GetVatObligationsCommand):
            raise TypeError(f"GetVatObligationsExecutor cannot run {command.operation}")

        response = self.vat_api.get_obligations(
            command.vat_number,
            command.query_params(),
            command.access_token,
            command.fraud_headers,
        )

        if response.kind == OutcomeKind.TRANSIENT:
            return OperationOutcome.transient(response.reason)
        if response.kind == OutcomeKind.TERMINAL:
            return OperationOutcome.terminal(downstream_error_detail(response))

        obligations = response.body.get("obligations", [])
        logger.info(
            f"Request {request_id}: {len(obligations)} obligations for vrn "
            f"{command.vat_number}"
        )
        return OperationOutcome.ok(200, {"obligations": obligations})
