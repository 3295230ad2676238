"""
Service Factory

Process-wide wiring of ports to their implementations, shared by the FastAPI
dependency providers and the Celery worker task.

Responsibility:
    - Pick the persistence backend from STATE_STORE_BACKEND
    - Build each adapter once per process (lru_cache)
    - Assemble IngestHandler and WorkerHandler with their collaborators

Architecture Notes:
    - Infrastructure Layer (composition root)
    - In "memory" mode every store lives in this process, so the Celery app
      runs tasks eagerly (see src.application.tasks.celery_app)
    - reset_services() clears every cache (tests, config reloads)
"""

import logging
from functools import lru_cache

from src.application.ports import (
    AuthenticatorProtocol,
    BundleRepositoryProtocol,
    DeadLetterSinkProtocol,
    ReceiptRepositoryProtocol,
    RequestStateStoreProtocol,
    VatApiProtocol,
    WorkQueueProtocol,
)
from src.application.commands.async_commands import (
    GET_VAT_OBLIGATIONS,
    GRANT_BUNDLE,
    REMOVE_BUNDLE,
    SUBMIT_VAT_RETURN,
)
from src.application.queries import GetReceiptsQueryHandler, ListBundlesQueryHandler
from src.application.services.bundle_operations import (
    GrantBundleExecutor,
    RemoveBundleExecutor,
)
from src.application.services.ingest_handler import IngestHandler
from src.application.services.vat_obligation_operations import GetVatObligationsExecutor
from src.application.services.vat_return_operations import SubmitVatReturnExecutor
from src.application.services.worker_handler import WorkerHandler
from src.domain.bundles import BundleCatalog, load_catalog
from src.infrastructure.auth import JwtAuthenticator, SubjectHasher
from src.infrastructure.downstream import HmrcVatApiClient
from src.infrastructure.persistence.memory import (
    InMemoryBundleRepository,
    InMemoryDeadLetterSink,
    InMemoryReceiptRepository,
    InMemoryRequestStateStore,
)
from src.infrastructure.persistence.redis import (
    RedisBundleRepository,
    RedisDeadLetterSink,
    RedisReceiptRepository,
    RedisRequestStateStore,
    get_redis_client,
)
from src.infrastructure.queue import CeleryWorkQueue
from src.shared.config import get_config

logger = logging.getLogger(__name__)


def _use_memory() -> bool:
    return get_config().state_store_backend == "memory"


# ============================================================================
# PERSISTENCE
# ============================================================================


@lru_cache(maxsize=1)
def get_request_state_store() -> RequestStateStoreProtocol:
    config = get_config()
    if _use_memory():
        logger.info("Using in-memory request state store")
        return InMemoryRequestStateStore(ttl_seconds=config.request_ttl_seconds)
    return RedisRequestStateStore(
        get_redis_client(config), ttl_seconds=config.request_ttl_seconds
    )


@lru_cache(maxsize=1)
def get_bundle_repository() -> BundleRepositoryProtocol:
    if _use_memory():
        return InMemoryBundleRepository()
    return RedisBundleRepository(get_redis_client(get_config()))


@lru_cache(maxsize=1)
def get_receipt_repository() -> ReceiptRepositoryProtocol:
    config = get_config()
    if _use_memory():
        return InMemoryReceiptRepository()
    return RedisReceiptRepository(
        get_redis_client(config), ttl_seconds=config.receipt_ttl_seconds
    )


@lru_cache(maxsize=1)
def get_dead_letter_sink() -> DeadLetterSinkProtocol:
    config = get_config()
    if _use_memory():
        return InMemoryDeadLetterSink()
    return RedisDeadLetterSink(get_redis_client(config), key=config.dead_letter_key)


# ============================================================================
# EXTERNAL COLLABORATORS
# ============================================================================


@lru_cache(maxsize=1)
def get_bundle_catalog() -> BundleCatalog:
    catalog = load_catalog(get_config().bundle_catalog_path)
    logger.info(f"Bundle catalog loaded: {len(catalog)} bundles")
    return catalog


@lru_cache(maxsize=1)
def get_vat_api() -> VatApiProtocol:
    config = get_config()
    return HmrcVatApiClient(
        config.hmrc_base_url, timeout_seconds=config.hmrc_timeout_seconds
    )


@lru_cache(maxsize=1)
def get_authenticator() -> AuthenticatorProtocol:
    config = get_config()
    return JwtAuthenticator(
        secret=config.jwt_secret,
        hasher=SubjectHasher(config.user_sub_hash_salt),
        algorithm=config.jwt_algorithm,
        audience=config.jwt_audience,
    )


@lru_cache(maxsize=1)
def get_work_queue() -> WorkQueueProtocol:
    # Imported here: the task module builds its handler from this factory
    from src.application.tasks.async_request_tasks import process_async_request

    return CeleryWorkQueue(process_async_request)


# ============================================================================
# HANDLERS
# ============================================================================


def build_ingest_handler() -> IngestHandler:
    return IngestHandler(get_request_state_store(), get_work_queue(), get_config())


def build_worker_handler() -> WorkerHandler:
    bundles = get_bundle_repository()
    executors = {
        GRANT_BUNDLE: GrantBundleExecutor(get_bundle_catalog(), bundles),
        REMOVE_BUNDLE: RemoveBundleExecutor(bundles),
        GET_VAT_OBLIGATIONS: GetVatObligationsExecutor(get_vat_api()),
        SUBMIT_VAT_RETURN: SubmitVatReturnExecutor(
            get_vat_api(), get_receipt_repository()
        ),
    }
    return WorkerHandler(get_request_state_store(), executors)


def build_list_bundles_handler() -> ListBundlesQueryHandler:
    return ListBundlesQueryHandler(get_bundle_repository())


def build_receipts_handler() -> GetReceiptsQueryHandler:
    return GetReceiptsQueryHandler(get_receipt_repository())


def reset_services() -> None:
    """Drop every cached adapter so the next call rebuilds from config."""
    for cached in (
        get_request_state_store,
        get_bundle_repository,
        get_receipt_repository,
        get_dead_letter_sink,
        get_bundle_catalog,
        get_vat_api,
        get_authenticator,
        get_work_queue,
    ):
        cached.cache_clear()
