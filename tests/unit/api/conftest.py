"""
Common fixtures for API unit tests.

Provides shared test utilities:
- FastAPI TestClient with dependency overrides
- Stub authenticator (fixed owner, no JWT)
- In-memory stores and a recording work queue
"""

from dataclasses import dataclass
from typing import Optional

import pytest
from fastapi.testclient import TestClient

from src.api.dependencies import (
    get_authenticator,
    get_bundle_catalog,
    get_ingest_handler,
    get_list_bundles_handler,
    get_receipts_handler,
)
from src.api.main import app
from src.application.commands.async_commands import (
    GET_VAT_OBLIGATIONS,
    GRANT_BUNDLE,
    REMOVE_BUNDLE,
    SUBMIT_VAT_RETURN,
)
from src.application.ports import AuthenticatedPrincipal
from src.application.queries import GetReceiptsQueryHandler, ListBundlesQueryHandler
from src.application.services.bundle_operations import (
    GrantBundleExecutor,
    RemoveBundleExecutor,
)
from src.application.services.ingest_handler import IngestHandler
from src.application.services.vat_obligation_operations import GetVatObligationsExecutor
from src.application.services.vat_return_operations import SubmitVatReturnExecutor
from src.application.services.worker_handler import WorkerHandler
from src.domain.bundles import load_catalog
from src.domain.shared.exceptions import AuthenticationError

VALID_TOKEN = "good-token"
OWNER_ID = "owner-hash-1"


class StubAuthenticator:
    """Accepts only "Bearer good-token"; claims are configurable per test."""

    def __init__(self) -> None:
        self.claims: dict = {"sub": "user-1"}

    def authenticate(self, authorization_header: Optional[str]) -> AuthenticatedPrincipal:
        if not authorization_header:
            raise AuthenticationError("Missing Authorization header")
        if authorization_header != f"Bearer {VALID_TOKEN}":
            raise AuthenticationError("Invalid token")
        return AuthenticatedPrincipal(
            subject="user-1", owner_id=OWNER_ID, claims=dict(self.claims)
        )


@dataclass
class ApiContext:
    """Everything the overridden dependencies are built from."""

    authenticator: StubAuthenticator
    store: object
    queue: object
    bundles: object
    receipts: object
    worker: WorkerHandler
    vat_api: object
    owner_id: str = OWNER_ID

    def run_worker_inline(self) -> None:
        """Make enqueue process messages immediately (scenario A)."""
        self.queue.worker = self.worker


class FakeVatApi:
    """VatApi double returning a queued DownstreamResponse per call."""

    def __init__(self) -> None:
        self.responses: list = []
        self.calls: list[tuple] = []

    def submit_return(self, vat_number, return_body, access_token, fraud_headers=None):
        self.calls.append((vat_number, return_body, access_token, fraud_headers))
        return self.responses.pop(0)

    def get_obligations(self, vat_number, params, access_token, fraud_headers=None):
        self.calls.append((vat_number, params, access_token, fraud_headers))
        return self.responses.pop(0)


@pytest.fixture
def api_context(
    memory_store,
    recording_queue,
    bundle_repository,
    receipt_repository,
    async_config,
    fake_clock,
) -> ApiContext:
    catalog = load_catalog()
    vat_api = FakeVatApi()
    worker = WorkerHandler(
        memory_store,
        {
            GRANT_BUNDLE: GrantBundleExecutor(catalog, bundle_repository),
            REMOVE_BUNDLE: RemoveBundleExecutor(bundle_repository),
            SUBMIT_VAT_RETURN: SubmitVatReturnExecutor(vat_api, receipt_repository),
            GET_VAT_OBLIGATIONS: GetVatObligationsExecutor(vat_api),
        },
    )
    authenticator = StubAuthenticator()
    ingest = IngestHandler(
        memory_store,
        recording_queue,
        async_config,
        clock=fake_clock.monotonic,
        sleep=fake_clock.sleep,
    )

    app.dependency_overrides[get_authenticator] = lambda: authenticator
    app.dependency_overrides[get_ingest_handler] = lambda: ingest
    app.dependency_overrides[get_bundle_catalog] = lambda: catalog
    app.dependency_overrides[get_list_bundles_handler] = lambda: (
        ListBundlesQueryHandler(bundle_repository)
    )
    app.dependency_overrides[get_receipts_handler] = lambda: (
        GetReceiptsQueryHandler(receipt_repository)
    )

    yield ApiContext(
        authenticator=authenticator,
        store=memory_store,
        queue=recording_queue,
        bundles=bundle_repository,
        receipts=receipt_repository,
        worker=worker,
        vat_api=vat_api,
    )

    app.dependency_overrides.clear()


@pytest.fixture
def client(api_context):
    """
    FastAPI TestClient for testing endpoints.

    Returns TestClient configured with the FastAPI app and the overridden
    dependencies from api_context.
    """
    return TestClient(app)


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {VALID_TOKEN}"}
