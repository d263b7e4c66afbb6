# cubecart/security/tokens.py
"""Signed bearer tokens.

Wire format: ``v1.<payload>.<signature>`` where ``payload`` is the
base64url-encoded canonical JSON of the claims and ``signature`` is the
base64url-encoded HMAC-SHA256 of ``v1.<payload>`` under the process secret.
Verification is a pure function of (token, secret, current time).
"""
from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import time
from functools import lru_cache
from typing import Callable, Optional

from pydantic import ValidationError

from ..errors import TokenError
from ..models import Claims, Principal
from ..settings import settings

TOKEN_VERSION = "v1"
MIN_SECRET_LENGTH = 32


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(data: str) -> bytes:
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))


class TokenService:
    """Issues and verifies identity tokens with one secret for the process lifetime."""

    def __init__(
        self,
        secret: str,
        issuer: str = "cubecart",
        default_ttl: int = 7 * 24 * 3600,
        clock: Callable[[], float] = time.time,
    ):
        if not secret or len(secret) < MIN_SECRET_LENGTH:
            raise RuntimeError(
                f"token secret must be at least {MIN_SECRET_LENGTH} characters"
            )
        self._key = secret.encode("utf-8")
        self._issuer = issuer
        self._default_ttl = default_ttl
        self._clock = clock

    def _sign(self, signing_input: str) -> str:
        digest = hmac.new(self._key, signing_input.encode("ascii"), hashlib.sha256).digest()
        return _b64encode(digest)

    def issue(self, principal: Principal, ttl: Optional[int] = None) -> str:
        ttl = self._default_ttl if ttl is None else ttl
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        now = int(self._clock())
        payload = {
            "sub": principal.subject_id,
            "email": principal.email,
            "role": principal.role.value,
            "iat": now,
            "exp": now + ttl,
            "iss": self._issuer,
        }
        encoded = _b64encode(
            json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
        )
        signing_input = f"{TOKEN_VERSION}.{encoded}"
        return f"{signing_input}.{self._sign(signing_input)}"

    def verify(self, token: str) -> Claims:
        """Return the claims or raise ``TokenError`` (expired, malformed, bad_signature)."""
        token = token or ""
        # base64url and the version tag are ASCII; anything else cannot be ours
        if not token.isascii():
            raise TokenError(TokenError.MALFORMED)
        parts = token.split(".")
        if len(parts) != 3 or parts[0] != TOKEN_VERSION or not parts[1] or not parts[2]:
            raise TokenError(TokenError.MALFORMED)

        signing_input = f"{parts[0]}.{parts[1]}"
        if not hmac.compare_digest(self._sign(signing_input), parts[2]):
            raise TokenError(TokenError.BAD_SIGNATURE)

        try:
            payload = json.loads(_b64decode(parts[1]))
        except (binascii.Error, UnicodeDecodeError, ValueError):
            raise TokenError(TokenError.MALFORMED)
        if not isinstance(payload, dict) or payload.get("iss") != self._issuer:
            raise TokenError(TokenError.MALFORMED)

        try:
            claims = Claims(
                subject_id=payload["sub"],
                email=payload["email"],
                role=payload["role"],
                expires_at=payload["exp"],
            )
        except (KeyError, ValidationError):
            raise TokenError(TokenError.MALFORMED)

        if claims.expires_at <= int(self._clock()):
            raise TokenError(TokenError.EXPIRED, "token expired")
        return claims


@lru_cache
def get_token_service() -> TokenService:
    """Process-wide TokenService built once from settings."""
    if not settings.token_secret:
        raise RuntimeError("TOKEN_SECRET is not set in environment")
    return TokenService(
        settings.token_secret,
        issuer=settings.token_issuer,
        default_ttl=settings.token_ttl_seconds,
    )
