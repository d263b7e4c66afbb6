# cubecart/security/passwords.py
from __future__ import annotations

import logging
from functools import lru_cache

import bcrypt

from ..errors import ValidationFailed
from ..settings import settings

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes
MAX_SECRET_BYTES = 72


class CredentialVault:
    """
    bcrypt hashing with a fixed work factor.

    The hash string embeds algorithm, cost and salt ("$2b$12$<salt><digest>"),
    so ``verify`` needs nothing but the secret and the stored hash.
    """

    def __init__(self, rounds: int = 12):
        self.rounds = rounds

    def hash(self, secret: str) -> str:
        raw = secret.encode("utf-8")
        if not raw:
            raise ValidationFailed("password must not be empty")
        if len(raw) > MAX_SECRET_BYTES:
            raise ValidationFailed(f"password must be at most {MAX_SECRET_BYTES} bytes")
        return bcrypt.hashpw(raw, bcrypt.gensalt(rounds=self.rounds)).decode("ascii")

    def verify(self, secret: str, hashed: str) -> bool:
        raw = secret.encode("utf-8")
        if not raw or len(raw) > MAX_SECRET_BYTES:
            return False
        try:
            # checkpw compares digests in constant time
            return bcrypt.checkpw(raw, hashed.encode("ascii"))
        except ValueError:
            logger.warning("stored password hash is not a valid bcrypt hash")
            return False


@lru_cache
def get_credential_vault() -> CredentialVault:
    return CredentialVault(rounds=settings.password_hash_rounds)
