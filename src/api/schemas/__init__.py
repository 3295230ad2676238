"""
API Schemas Package

Contains shared Pydantic models for API Layer.
"""

from src.api.schemas.common import AcceptedResponse, ErrorResponse

__all__ = ["AcceptedResponse", "ErrorResponse"]
