"""
Application Layer Ports (Interfaces)

Contains Protocol definitions for dependency inversion.
Infrastructure Layer implements these protocols.
"""

from src.application.ports.authenticator import AuthenticatedPrincipal, AuthenticatorProtocol
from src.application.ports.bundle_repository import BundleRepositoryProtocol
from src.application.ports.dead_letter_sink import DeadLetterSinkProtocol
from src.application.ports.receipt_repository import ReceiptRepositoryProtocol
from src.application.ports.request_state_store import RequestStateStoreProtocol
from src.application.ports.vat_api import VatApiProtocol
from src.application.ports.work_queue import WorkQueueProtocol

__all__ = [
    "AuthenticatedPrincipal",
    "AuthenticatorProtocol",
    "BundleRepositoryProtocol",
    "DeadLetterSinkProtocol",
    "ReceiptRepositoryProtocol",
    "RequestStateStoreProtocol",
    "VatApiProtocol",
    "WorkQueueProtocol",
]
