"""
Bundle Value Object.

A bundle held by one owner, as persisted by the bundle repository.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class Bundle(BaseModel):
    """
    Immutable bundle entitlement.

    Attributes:
        bundle_id: Catalog identifier (serialized as "bundleId")
        expiry: ISO date (YYYY-MM-DD) the bundle expires, or None for no expiry
        request_id: Request that granted the bundle (stored, never rendered)

    Examples:
        >>> Bundle(bundle_id="test", expiry="2026-01-02").to_dict()
        {'bundleId': 'test', 'expiry': '2026-01-02'}
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    bundle_id: str = Field(alias="bundleId", min_length=1)
    expiry: Optional[str] = None
    request_id: Optional[str] = Field(default=None, alias="requestId")

    def to_dict(self) -> dict[str, Any]:
        """Public rendering used in response bodies."""
        return self.model_dump(by_alias=True, exclude={"request_id"})

    def to_storage(self) -> str:
        """JSON form kept by the bundle repository."""
        return self.model_dump_json(by_alias=True)
