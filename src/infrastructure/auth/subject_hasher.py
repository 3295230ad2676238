"""
Subject Hasher

Owner ids are HMAC-SHA256(salt, sub) hex digests, so raw identity-provider
subjects never reach storage or logs.
"""

import hashlib
import hmac


class SubjectHasher:
    def __init__(self, salt: str) -> None:
        if not salt:
            raise ValueError("USER_SUB_HASH_SALT must be set")
        self._salt = salt.encode("utf-8")

    def hash(self, subject: str) -> str:
        """
        Hash a token subject.

        Raises:
            ValueError: If subject is empty or not a string
        """
        if not subject or not isinstance(subject, str):
            raise ValueError("Invalid sub: must be a non-empty string")
        return hmac.new(self._salt, subject.encode("utf-8"), hashlib.sha256).hexdigest()
