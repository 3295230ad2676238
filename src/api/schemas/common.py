"""
Common API Schemas

Shared Pydantic models used across all API routers.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """
    Standard error response model for all API errors.

    Same shape for synchronous rejections (400/401/404) and for stored
    FAILED outcomes replayed from a request record.

    Attributes:
        error: Machine-readable error code (e.g. "invalid_request", "INVALID_VRN")
        message: Human-readable error message
        user_message: Optional message suitable for end users ("userMessage")
        action_advice: Optional remediation advice ("actionAdvice")
        errors: Individual validation messages (400 only)
    """

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "error": "INVALID_VRN",
                "message": "VAT API returned HTTP 400",
                "userMessage": "The VAT registration number (VRN) is not valid",
                "actionAdvice": "Please check your VRN is correct and try again",
            }
        },
    )

    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error message")
    user_message: Optional[str] = Field(default=None, alias="userMessage")
    action_advice: Optional[str] = Field(default=None, alias="actionAdvice")
    errors: Optional[list[str]] = Field(
        default=None, description="Individual validation problems"
    )

    def to_body(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class AcceptedResponse(BaseModel):
    """
    202 body returned when the wait budget ran out before a terminal state.

    The caller re-polls the same resource with the same x-request-id.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "message": "Request accepted for processing",
                "requestId": "3fa85f64-5717-4562-b3fc-2c963f66afa6",
            }
        },
    )

    message: str
    request_id: str = Field(alias="requestId")
