# cubecart/services/users.py
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional, Tuple

from ..errors import NotFound, Unauthenticated, ValidationFailed
from ..models import Address, Claims, Role, User
from ..security.passwords import CredentialVault
from ..security.tokens import TokenService
from .ports import UserStore

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6

_BAD_CREDENTIALS = "invalid email or password"


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def _check_password_policy(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationFailed(f"password must be at least {MIN_PASSWORD_LENGTH} characters")


async def register(
    users: UserStore,
    vault: CredentialVault,
    tokens: TokenService,
    *,
    name: str,
    email: str,
    password: str,
    phone: Optional[str] = None,
) -> Tuple[User, str]:
    """Create a ``user``-role account and return it with a fresh token."""
    email = _normalize_email(email)
    _check_password_policy(password)
    user = User(
        id=uuid.uuid4().hex[:24],
        name=name.strip(),
        email=email,
        phone=phone,
        role=Role.USER,
        password_hash=vault.hash(password),
        created_at=datetime.now(timezone.utc),
    )
    # store raises Conflict on duplicate email
    user = await users.create(user)
    logger.info("registered new user", extra={"subject_id": user.id})
    return user, tokens.issue(user.principal())


async def authenticate(
    users: UserStore,
    vault: CredentialVault,
    tokens: TokenService,
    *,
    email: str,
    password: str,
) -> Tuple[User, str]:
    user = await users.get_by_email(_normalize_email(email))
    if user is None or not vault.verify(password, user.password_hash):
        raise Unauthenticated(_BAD_CREDENTIALS)
    return user, tokens.issue(user.principal())


async def change_password(
    users: UserStore,
    vault: CredentialVault,
    claims: Claims,
    *,
    current_password: str,
    new_password: str,
) -> None:
    """The only operation that replaces a stored password hash."""
    user = await users.get(claims.subject_id)
    if user is None:
        raise NotFound("user", claims.subject_id)
    if not vault.verify(current_password, user.password_hash):
        raise Unauthenticated("current password is incorrect")
    _check_password_policy(new_password)
    await users.update_password_hash(user.id, vault.hash(new_password))
    logger.info("password changed", extra={"subject_id": user.id})


async def update_profile(
    users: UserStore,
    claims: Claims,
    *,
    name: str,
    phone: Optional[str],
    address: Address,
) -> User:
    """Replace the caller's own name, phone and saved address. Email and role stay."""
    name = name.strip()
    if not name:
        raise ValidationFailed("name must not be blank")
    user = await users.update_profile(claims.subject_id, name=name, phone=phone, address=address)
    if user is None:
        raise NotFound("user", claims.subject_id)
    logger.info("profile updated", extra={"subject_id": user.id})
    return user
