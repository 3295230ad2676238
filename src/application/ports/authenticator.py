"""
Authenticator Interface

Verifies bearer credentials. Credential verification itself is an external
concern; the service only needs the verified subject and claims.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class AuthenticatedPrincipal:
    """
    Verified caller.

    Attributes:
        subject: Raw "sub" claim (never logged, never stored)
        owner_id: Salted hash of the subject, used as the storage owner key
        claims: All verified token claims
    """

    subject: str
    owner_id: str
    claims: dict[str, Any] = field(default_factory=dict)


class AuthenticatorProtocol(Protocol):
    def authenticate(self, authorization_header: str | None) -> AuthenticatedPrincipal:
        """
        Verify an Authorization header value.

        Raises:
            AuthenticationError: If the header is missing or the token invalid
        """
        ...
