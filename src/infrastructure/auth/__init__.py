"""Bearer token verification and owner id derivation."""

from src.infrastructure.auth.jwt_authenticator import JwtAuthenticator
from src.infrastructure.auth.subject_hasher import SubjectHasher

__all__ = ["JwtAuthenticator", "SubjectHasher"]
