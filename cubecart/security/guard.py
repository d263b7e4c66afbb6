# cubecart/security/guard.py
"""Request identity and role/ownership policy.

Handlers receive ``Claims`` as a parameter (via the FastAPI dependencies at
the bottom of this module); nothing here keeps a "current user" around
between requests.
"""
from __future__ import annotations

from typing import Mapping, Optional

from fastapi import Depends, Request

from ..errors import Forbidden, TokenError, Unauthenticated
from ..models import Claims, Role
from .tokens import TokenService, get_token_service

BEARER_PREFIX = "bearer "


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token from an ``Authorization`` header value, or None if absent."""
    if authorization is None or not authorization.strip():
        return None
    value = authorization.strip()
    if not value.lower().startswith(BEARER_PREFIX):
        raise TokenError(TokenError.MALFORMED, "authorization header must use the Bearer scheme")
    token = value[len(BEARER_PREFIX):].strip()
    if not token:
        raise TokenError(TokenError.MALFORMED)
    return token


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    value = headers.get(name)
    if value is None:
        for key, candidate in headers.items():
            if key.lower() == name:
                return candidate
    return value


def identify(headers: Mapping[str, str], tokens: TokenService) -> Optional[Claims]:
    """
    Claims for the caller, or None when no token was sent (anonymous).

    A token that is present but fails verification raises ``TokenError``;
    it is never downgraded to anonymous.
    """
    token = extract_bearer_token(_header(headers, "authorization"))
    if token is None:
        return None
    return tokens.verify(token)


def require_authenticated(claims: Optional[Claims]) -> Claims:
    if claims is None:
        raise Unauthenticated("authentication required")
    return claims


def require_role(claims: Optional[Claims], role: Role) -> Claims:
    claims = require_authenticated(claims)
    if claims.role != role:
        raise Forbidden(f"requires role '{role.value}'")
    return claims


def require_owner_or_role(claims: Optional[Claims], resource_owner_id: str, role: Role) -> Claims:
    claims = require_authenticated(claims)
    if claims.subject_id == resource_owner_id or claims.role == role:
        return claims
    raise Forbidden("not allowed to access this resource")


# ---- FastAPI dependencies ----------------------------------------------------

def optional_claims(
    request: Request,
    tokens: TokenService = Depends(get_token_service),
) -> Optional[Claims]:
    return identify(request.headers, tokens)


def current_claims(claims: Optional[Claims] = Depends(optional_claims)) -> Claims:
    return require_authenticated(claims)


def admin_claims(claims: Optional[Claims] = Depends(optional_claims)) -> Claims:
    return require_role(claims, Role.ADMIN)
