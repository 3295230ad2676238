"""
JWT Authenticator

Verifies "Authorization: Bearer <jwt>" headers with PyJWT and derives the
storage owner id from the verified subject.

Architecture Notes:
    - Infrastructure Layer (external dependency on PyJWT)
    - Implements AuthenticatorProtocol
    - Failures raise AuthenticationError (rendered as 401, no record created)
"""

import logging
from typing import Optional

import jwt

from src.application.ports.authenticator import AuthenticatedPrincipal
from src.domain.shared.exceptions import AuthenticationError
from src.infrastructure.auth.subject_hasher import SubjectHasher

logger = logging.getLogger(__name__)


class JwtAuthenticator:
    """
    Bearer token verifier.

    Args:
        secret: Verification key (shared secret for HS*)
        hasher: Owner id derivation
        algorithm: Accepted signing algorithm
        audience: Expected "aud" claim, None to skip the check
    """

    def __init__(
        self,
        secret: str,
        hasher: SubjectHasher,
        algorithm: str = "HS256",
        audience: Optional[str] = None,
    ) -> None:
        self.secret = secret
        self.hasher = hasher
        self.algorithm = algorithm
        self.audience = audience

    def authenticate(self, authorization_header: Optional[str]) -> AuthenticatedPrincipal:
        token = self._extract_bearer(authorization_header)
        options = {"require": ["sub", "exp"], "verify_aud": self.audience is not None}
        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                audience=self.audience,
                options=options,
            )
        except jwt.ExpiredSignatureError as e:
            logger.info("Rejected expired bearer token")
            raise AuthenticationError("Token expired") from e
        except jwt.InvalidTokenError as e:
            logger.info(f"Rejected bearer token: {type(e).__name__}")
            raise AuthenticationError("Invalid token") from e

        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject:
            raise AuthenticationError("Token has no subject")
        return AuthenticatedPrincipal(
            subject=subject, owner_id=self.hasher.hash(subject), claims=claims
        )

    @staticmethod
    def _extract_bearer(authorization_header: Optional[str]) -> str:
        if not authorization_header:
            raise AuthenticationError("Missing Authorization header")
        scheme, _, token = authorization_header.strip().partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            raise AuthenticationError("Authorization header must be 'Bearer <token>'")
        return token.strip()
