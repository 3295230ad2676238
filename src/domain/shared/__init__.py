"""
Shared Domain Module

Domain exceptions used across all subdomains.
"""

from .exceptions import (
    AuthenticationError,
    BundleNotFoundError,
    DomainException,
    InvalidRequestError,
    PayloadDecodeError,
    QualifierError,
    ResourceNotFoundError,
    TransientDownstreamError,
)

__all__ = [
    "DomainException",
    "InvalidRequestError",
    "AuthenticationError",
    "ResourceNotFoundError",
    "BundleNotFoundError",
    "QualifierError",
    "TransientDownstreamError",
    "PayloadDecodeError",
]
