"""
Async Commands - CQRS Write Commands

Typed command variants for every operation handled asynchronously.
Request bodies are validated once at the ingest boundary into one of these
variants; the queue carries the serialized command and the worker decodes it
back into the same type.

Responsibility:
    - Data holders for bundle grant, bundle removal, VAT return submission
      and VAT obligation retrieval
    - Field validation (formats, required fields, mutually exclusive options)
    - Tagged-union decoding for queue payloads

Architecture Notes:
    - Part of Application Layer (orchestration)
    - Discriminated on the "operation" field (pydantic v2 tagged union)
    - Serialized with model_dump(mode="json", by_alias=True) for the queue;
      secret_fields (the caller's tax authority token) stay out of the
      stored request record
    - Does NOT check catalog membership or ownership (ingest pre-checks do)
"""

from datetime import date
from decimal import Decimal
from typing import Annotated, Any, ClassVar, Literal, Optional, Type, TypeVar, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)

from src.domain.shared.exceptions import InvalidRequestError, PayloadDecodeError
from src.domain.vat.validation import (
    OBLIGATION_STATUSES,
    is_valid_date_range,
    is_valid_iso_date,
    is_valid_period_key,
    is_valid_vrn,
    parse_vat_due,
)

GRANT_BUNDLE = "bundle.grant"
REMOVE_BUNDLE = "bundle.remove"
SUBMIT_VAT_RETURN = "vat.return.submit"
GET_VAT_OBLIGATIONS = "vat.obligations.get"


class _Command(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    # Carried by queue messages only, never written to the request record
    secret_fields: ClassVar[frozenset[str]] = frozenset()

    def to_payload(self) -> dict[str, Any]:
        """Serialize for the request record (secret fields left out)."""
        return self.model_dump(
            mode="json", by_alias=True, exclude=set(self.secret_fields)
        )

    def to_message_payload(self) -> dict[str, Any]:
        """Serialize for the queue, secret fields included."""
        return self.model_dump(mode="json", by_alias=True)

    def secret_payload(self) -> dict[str, Any]:
        if not self.secret_fields:
            return {}
        return self.model_dump(
            mode="json", by_alias=True, include=set(self.secret_fields)
        )


class GrantBundleCommand(_Command):
    """
    Grant a catalog bundle to the caller.

    Attributes:
        bundle_id: Catalog bundle id ("bundleId")
        qualifiers: Qualifier values supplied by the caller
    """

    operation: Literal["bundle.grant"] = GRANT_BUNDLE
    bundle_id: str = Field(alias="bundleId", min_length=1)
    qualifiers: dict[str, Any] = Field(default_factory=dict)


class RemoveBundleCommand(_Command):
    """
    Remove one bundle, or every bundle, from the caller.

    Validation:
        - Either bundle_id or remove_all=True is required
    """

    operation: Literal["bundle.remove"] = REMOVE_BUNDLE
    bundle_id: Optional[str] = Field(default=None, alias="bundleId")
    remove_all: bool = Field(default=False, alias="removeAll")

    @model_validator(mode="after")
    def _require_target(self) -> "RemoveBundleCommand":
        if not self.bundle_id and not self.remove_all:
            raise ValueError("Missing bundleId parameter (or removeAll=true)")
        return self


class SubmitVatReturnCommand(_Command):
    """
    Submit a VAT return to the tax authority.

    Attributes:
        vat_number: 9-digit VAT registration number ("vatNumber")
        period_key: Period key, normalized to upper case ("periodKey")
        vat_due: Amount due, at most 2 decimal places ("vatDue")
        access_token: Tax authority OAuth token of the caller ("accessToken")
        fraud_headers: Gov-Client / Gov-Vendor headers built at ingest
            ("govClientHeaders")
    """

    operation: Literal["vat.return.submit"] = SUBMIT_VAT_RETURN
    vat_number: str = Field(alias="vatNumber")
    period_key: str = Field(alias="periodKey")
    vat_due: Decimal = Field(alias="vatDue")
    access_token: str = Field(alias="accessToken", min_length=1, repr=False)
    fraud_headers: dict[str, str] = Field(default_factory=dict, alias="govClientHeaders")

    secret_fields: ClassVar[frozenset[str]] = frozenset({"access_token"})

    @field_validator("vat_number", mode="before")
    @classmethod
    def _validate_vrn(cls, value: Any) -> str:
        if value is None or str(value).strip() == "":
            raise ValueError("Missing vatNumber parameter from body")
        if not is_valid_vrn(value):
            raise ValueError("Invalid vatNumber format - must be 9 digits")
        return str(value)

    @field_validator("period_key", mode="before")
    @classmethod
    def _validate_period_key(cls, value: Any) -> str:
        if value is None or str(value).strip() == "":
            raise ValueError("Missing periodKey parameter from body")
        if not is_valid_period_key(value):
            raise ValueError("Invalid periodKey format")
        return str(value).upper()

    @field_validator("vat_due", mode="before")
    @classmethod
    def _validate_vat_due(cls, value: Any) -> Decimal:
        if value is None or value == "":
            raise ValueError("Missing vatDue parameter from body")
        return parse_vat_due(value)


class GetVatObligationsCommand(_Command):
    """
    Retrieve VAT obligations (return periods) from the tax authority.

    Attributes:
        vat_number: 9-digit VAT registration number ("vrn")
        from_date: Start of the query window, YYYY-MM-DD ("from"),
            default 1 January of the current year
        to_date: End of the query window, YYYY-MM-DD ("to"), default today
        status: "O" (open) or "F" (fulfilled); None returns both
        access_token: Tax authority OAuth token of the caller ("accessToken")
        fraud_headers: Gov-Client / Gov-Vendor headers built at ingest
            ("govClientHeaders")
    """

    operation: Literal["vat.obligations.get"] = GET_VAT_OBLIGATIONS
    vat_number: str = Field(alias="vrn")
    from_date: str = Field(alias="from")
    to_date: str = Field(alias="to")
    status: Optional[str] = None
    access_token: str = Field(alias="accessToken", min_length=1, repr=False)
    fraud_headers: dict[str, str] = Field(default_factory=dict, alias="govClientHeaders")

    secret_fields: ClassVar[frozenset[str]] = frozenset({"access_token"})

    @model_validator(mode="before")
    @classmethod
    def _default_window(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        today = date.today()
        data = dict(data)
        if not (data.get("from") or data.get("from_date")):
            data["from"] = f"{today.year}-01-01"
        if not (data.get("to") or data.get("to_date")):
            data["to"] = today.isoformat()
        return data

    @field_validator("vat_number", mode="before")
    @classmethod
    def _validate_vrn(cls, value: Any) -> str:
        if value is None or str(value).strip() == "":
            raise ValueError("Missing vrn parameter")
        if not is_valid_vrn(value):
            raise ValueError("Invalid vrn format - must be 9 digits")
        return str(value)

    @field_validator("from_date", "to_date", mode="before")
    @classmethod
    def _validate_date(cls, value: Any, info: ValidationInfo) -> str:
        name = "from" if info.field_name == "from_date" else "to"
        if not is_valid_iso_date(value):
            raise ValueError(f"Invalid {name} date format - must be YYYY-MM-DD")
        return str(value)

    @field_validator("access_token", mode="before")
    @classmethod
    def _require_token(cls, value: Any) -> Any:
        if value is None or str(value).strip() == "":
            raise ValueError("Missing HMRC access token")
        return value

    @field_validator("status", mode="before")
    @classmethod
    def _validate_status(cls, value: Any) -> Optional[str]:
        if value is None or value == "":
            return None
        if value not in OBLIGATION_STATUSES:
            raise ValueError("Invalid status - must be O (Open) or F (Fulfilled)")
        return value

    @model_validator(mode="after")
    def _check_window(self) -> "GetVatObligationsCommand":
        if not is_valid_date_range(self.from_date, self.to_date):
            raise ValueError("Invalid date range - from date cannot be after to date")
        return self

    def query_params(self) -> dict[str, str]:
        """Query string for the obligations endpoint."""
        params = {"from": self.from_date, "to": self.to_date}
        if self.status:
            params["status"] = self.status
        return params


AsyncCommand = Annotated[
    Union[
        GrantBundleCommand,
        RemoveBundleCommand,
        SubmitVatReturnCommand,
        GetVatObligationsCommand,
    ],
    Field(discriminator="operation"),
]

_command_adapter: TypeAdapter = TypeAdapter(AsyncCommand)

CommandT = TypeVar("CommandT", bound=_Command)


def _error_messages(error: ValidationError) -> list[str]:
    messages = []
    for item in error.errors():
        message = item["msg"].removeprefix("Value error, ")
        if item["type"] == "missing":
            field = item["loc"][-1] if item["loc"] else "field"
            message = f"Missing {field} parameter from body"
        messages.append(message)
    return messages


def parse_command(command_type: Type[CommandT], data: Any) -> CommandT:
    """
    Validate a request body into a typed command.

    Args:
        command_type: Command class to build
        data: Decoded JSON body

    Returns:
        Validated command

    Raises:
        InvalidRequestError: With one message per problem found
    """
    if not isinstance(data, dict):
        raise InvalidRequestError(
            "Invalid request body", errors=["Request body must be a JSON object"]
        )
    try:
        return command_type.model_validate(data)
    except ValidationError as e:
        errors = _error_messages(e)
        raise InvalidRequestError(f"Invalid request: {'; '.join(errors)}", errors)


def decode_command(operation: str, payload: dict[str, Any]) -> AsyncCommand:
    """
    Decode a queue payload back into its typed command.

    Raises:
        PayloadDecodeError: If the operation is unknown or the payload invalid
    """
    try:
        return _command_adapter.validate_python({**payload, "operation": operation})
    except ValidationError as e:
        raise PayloadDecodeError(
            f"Cannot decode payload for operation {operation!r}: "
            f"{'; '.join(_error_messages(e))}"
        ) from e
