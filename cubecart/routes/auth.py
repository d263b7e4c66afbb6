# cubecart/routes/auth.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from ..dependencies import get_user_store
from ..models import Claims
from ..schemas.auth import (
    AuthOut,
    ChangePasswordIn,
    LoginIn,
    MeOut,
    ProfileUpdateIn,
    RegisterIn,
    UserOut,
)
from ..security.guard import current_claims
from ..security.passwords import CredentialVault, get_credential_vault
from ..security.tokens import TokenService, get_token_service
from ..services.ports import UserStore
from ..services.users import authenticate, change_password, register, update_profile

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=AuthOut, status_code=status.HTTP_201_CREATED)
async def register_endpoint(
    body: RegisterIn,
    users: UserStore = Depends(get_user_store),
    vault: CredentialVault = Depends(get_credential_vault),
    tokens: TokenService = Depends(get_token_service),
):
    user, token = await register(
        users, vault, tokens,
        name=body.name, email=body.email, password=body.password, phone=body.phone,
    )
    return AuthOut(token=token, user=UserOut.from_user(user))


@router.post("/login", response_model=AuthOut)
async def login(
    body: LoginIn,
    users: UserStore = Depends(get_user_store),
    vault: CredentialVault = Depends(get_credential_vault),
    tokens: TokenService = Depends(get_token_service),
):
    user, token = await authenticate(users, vault, tokens, email=body.email, password=body.password)
    return AuthOut(token=token, user=UserOut.from_user(user))


@router.get("/me", response_model=MeOut)
def me(claims: Claims = Depends(current_claims)):
    return MeOut(
        subjectId=claims.subject_id,
        email=claims.email,
        role=claims.role,
        expiresAt=claims.expires_at,
    )


@router.post("/password", status_code=status.HTTP_204_NO_CONTENT)
async def change_password_endpoint(
    body: ChangePasswordIn,
    claims: Claims = Depends(current_claims),
    users: UserStore = Depends(get_user_store),
    vault: CredentialVault = Depends(get_credential_vault),
):
    await change_password(
        users, vault, claims,
        current_password=body.currentPassword, new_password=body.newPassword,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/profile", response_model=UserOut)
async def update_profile_endpoint(
    body: ProfileUpdateIn,
    claims: Claims = Depends(current_claims),
    users: UserStore = Depends(get_user_store),
):
    """Edit the caller's own profile; the target is always the token's subject."""
    user = await update_profile(
        users, claims, name=body.name, phone=body.phone, address=body.address(),
    )
    return UserOut.from_user(user)
