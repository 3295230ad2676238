"""
Bundle Operation Executors

Side effects for bundle grant and bundle removal, run by the worker.

Responsibility:
    - Grant: already-held check, catalog lookup, automatic allocation, cap
      enforcement, expiry computation, conditional insert
    - Remove: single bundle or all bundles of the owner

Architecture Notes:
    - Part of Application Layer (use cases executed by WorkerHandler)
    - Return OperationOutcome; never raise for business conditions
    - Idempotent per request_id: the granted bundle remembers the request
      that granted it, so a redelivered grant converges to the same
      "granted" body; removal of an absent bundle reports "removed"

Business Rules:
    - Already held (by another request) -> 201 already_granted, granted=false
    - Unknown catalog id -> FAILED 404 bundle_not_found
    - Automatic allocation -> 201 granted, nothing stored
    - Owner bundle count >= cap -> FAILED 403 cap_reached
    - Otherwise store bundle with expiry = today + catalog timeout
"""

import logging
from datetime import date
from typing import Callable

from src.application.commands.async_commands import (
    AsyncCommand,
    GrantBundleCommand,
    RemoveBundleCommand,
)
from src.application.models import OperationOutcome
from src.application.ports.bundle_repository import BundleRepositoryProtocol
from src.domain.async_requests import ErrorDetail
from src.domain.bundles import Bundle, BundleCatalog, expiry_from_duration

logger = logging.getLogger(__name__)


def _bundle_list(bundles: list[Bundle]) -> list[dict]:
    return [bundle.to_dict() for bundle in bundles]


class GrantBundleExecutor:
    """
    Grant a catalog bundle to an owner.

    Args:
        catalog: Bundle catalog
        repository: Owner bundle store
        today: Date provider (injectable for tests)
    """

    def __init__(
        self,
        catalog: BundleCatalog,
        repository: BundleRepositoryProtocol,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.catalog = catalog
        self.repository = repository
        self._today = today

    def execute(
        self, owner_id: str, request_id: str, command: AsyncCommand
    ) -> OperationOutcome:
        if not isinstance(command, GrantBundleCommand):
            raise TypeError(f"GrantBundleExecutor cannot run {command.operation}")

        bundle_id = command.bundle_id
        current = self.repository.list_bundles(owner_id)
        held = next((b for b in current if b.bundle_id == bundle_id), None)

        if held is not None:
            if held.request_id == request_id:
                logger.info(f"Bundle {bundle_id} was granted by this request already")
                return self._granted(held, current)
            logger.info(f"Owner already holds bundle {bundle_id}")
            return OperationOutcome.ok(
                201,
                {
                    "status": "already_granted",
                    "message": "Bundle already granted to user",
                    "granted": False,
                    "bundles": _bundle_list(current),
                },
            )

        catalog_bundle = self.catalog.get(bundle_id)
        if catalog_bundle is None:
            logger.error(f"Bundle {bundle_id} not found in catalog")
            return OperationOutcome.terminal(
                ErrorDetail(
                    status_code=404,
                    error="bundle_not_found",
                    message=f"Bundle '{bundle_id}' not found in catalog",
                )
            )

        if catalog_bundle.is_automatic:
            logger.info(f"Bundle {bundle_id} is automatic allocation, nothing to store")
            return OperationOutcome.ok(
                201,
                {
                    "status": "granted",
                    "granted": True,
                    "expiry": None,
                    "bundle": bundle_id,
                    "bundles": _bundle_list(current),
                },
            )

        if catalog_bundle.cap is not None and len(current) >= catalog_bundle.cap:
            logger.info(
                f"Bundle cap reached for {bundle_id}: "
                f"current={len(current)}, cap={catalog_bundle.cap}"
            )
            return OperationOutcome.terminal(
                ErrorDetail(
                    status_code=403,
                    error="cap_reached",
                    message="Bundle entitlement cap reached",
                )
            )

        expiry = expiry_from_duration(self._today(), catalog_bundle.timeout)
        bundle = Bundle(
            bundle_id=bundle_id,
            expiry=expiry.isoformat() if expiry else None,
            request_id=request_id,
        )
        if not self.repository.add_bundle(owner_id, bundle):
            # Lost a race with a concurrent grant; report what is stored
            stored = self.repository.get_bundle(owner_id, bundle_id) or bundle
            return self._granted(stored, self.repository.list_bundles(owner_id))

        logger.info(f"Bundle {bundle_id} granted, expiry={bundle.expiry}")
        return self._granted(bundle, self.repository.list_bundles(owner_id))

    @staticmethod
    def _granted(bundle: Bundle, bundles: list[Bundle]) -> OperationOutcome:
        return OperationOutcome.ok(
            201,
            {
                "status": "granted",
                "granted": True,
                "expiry": bundle.expiry,
                "bundle": bundle.bundle_id,
                "bundles": _bundle_list(bundles),
            },
        )


class RemoveBundleExecutor:
    """Remove one bundle, or all bundles, from an owner."""

    def __init__(self, repository: BundleRepositoryProtocol) -> None:
        self.repository = repository

    def execute(
        self, owner_id: str, request_id: str, command: AsyncCommand
    ) -> OperationOutcome:
        if not isinstance(command, RemoveBundleCommand):
            raise TypeError(f"RemoveBundleExecutor cannot run {command.operation}")

        if command.remove_all:
            removed = self.repository.remove_all(owner_id)
            logger.info(f"Removed all bundles ({removed}) for request {request_id}")
            return OperationOutcome.ok(
                204, {"status": "removed_all", "message": "All bundles removed"}
            )

        if not self.repository.remove_bundle(owner_id, command.bundle_id):
            # Pre-checked at ingest, so absence means a redelivery or a concurrent removal
            logger.info(f"Bundle {command.bundle_id} already absent")
        return OperationOutcome.ok(
            204,
            {
                "status": "removed",
                "message": "Bundle removed",
                "bundle": command.bundle_id,
            },
        )
