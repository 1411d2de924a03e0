"""Auth routes: login, refresh, current user.

Route overview:
  POST /login    — email + password login
  POST /refresh  — exchange a refresh token for new access + refresh tokens
  GET  /me       — return the current user profile + permissions
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.deps import get_current_user
from app.auth.jwt import create_access_token, create_refresh_token, decode_token
from app.auth.password import verify_password
from app.auth.permissions import can_edit_directly, resolve_permissions
from app.database import get_db
from app.models.public.user import User
from app.schemas.auth import LoginRequest, RefreshRequest, TokenResponse, UserOut

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Helpers ──────────────────────────────────────────────────

def _build_user_out(user: User, permissions: list[str]) -> UserOut:
    return UserOut(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        role=user.role.value,
        is_active=user.is_active,
        organization_id=user.organization_id,
        permissions=permissions,
        can_edit_directly=can_edit_directly(user.role.value),
    )


def _build_token_response(user: User, permissions: list[str]) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(
            user_id=user.id,
            role=user.role.value,
            permissions=permissions,
            organization_id=user.organization_id,
        ),
        refresh_token=create_refresh_token(
            user_id=user.id,
            role=user.role.value,
            organization_id=user.organization_id,
        ),
        user=_build_user_out(user, permissions),
    )


# ── POST /login ──────────────────────────────────────────────

@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Email + password login. Returns JWT with role, permissions, and organization."""
    result = await db.execute(select(User).where(User.email == body.email))
    user = result.scalar_one_or_none()
    if not user or not user.hashed_password:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not verify_password(body.password, user.hashed_password):
        logger.warning("Failed login for %s", body.email)
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account deactivated")

    permissions = resolve_permissions(user.role.value)
    return _build_token_response(user, permissions)


# ── POST /refresh ────────────────────────────────────────────

@router.post("/refresh", response_model=TokenResponse)
async def refresh(body: RefreshRequest, db: AsyncSession = Depends(get_db)):
    """Exchange a refresh token for a new access + refresh token pair."""
    payload = decode_token(body.refresh_token)
    if payload.get("type") != "refresh":
        raise HTTPException(status_code=401, detail="Invalid refresh token")

    user_id = payload.get("sub")
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found or inactive")
    if payload.get("organization_id") != user.organization_id:
        raise HTTPException(status_code=401, detail="Invalid refresh token")

    # Re-resolve permissions (role may have changed since last token)
    permissions = resolve_permissions(user.role.value)
    return _build_token_response(user, permissions)


# ── GET /me ──────────────────────────────────────────────────

@router.get("/me", response_model=UserOut)
async def me(user: User = Depends(get_current_user)):
    """Return the current authenticated user's profile and permissions."""
    return _build_user_out(user, resolve_permissions(user.role.value))
