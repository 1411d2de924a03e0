"""FastAPI dependencies for authentication and authorization.

Dependencies:
  get_current_user        → decode JWT, load user from DB, return User
  get_actor               → the caller as an explicit Actor (user + organization)
  require_role(...)       → restrict to specific roles
  require_permission(...) → restrict to specific granular permissions
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.context import Actor
from app.auth.jwt import decode_token
from app.auth.permissions import has_permission, resolve_permissions
from app.database import get_db
from app.models.public.user import User, UserRole

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


# ── Core user dependency ────────────────────────────────────

async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Decode the JWT, load the user, and return it.

    Also stashes the decoded payload on the user object as `_token_payload`
    so downstream deps can read claims (permissions) without re-decoding.
    """
    payload = decode_token(token)
    user_id: str | None = payload.get("sub")
    if not user_id or payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )
    # Tokens minted before a move to another organization are void
    if payload.get("organization_id") != user.organization_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token organization does not match user",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user._token_payload = payload  # type: ignore[attr-defined]
    return user


# ── Organization-scoped caller ──────────────────────────────

async def get_actor(user: User = Depends(get_current_user)) -> Actor:
    """Return the caller as an Actor.

    Raises 403 if the user doesn't belong to an organization.
    """
    if not user.organization_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No organization context — join an organization first",
        )
    return Actor.from_user(user)


# ── Role-based access control ───────────────────────────────

def require_role(*roles: UserRole):
    """Dependency factory — restrict to one or more roles.

    Usage:
        @router.post("/{id}/approve")
        async def approve(actor: Actor = Depends(require_role(UserRole.ADMIN, UserRole.SUPERVISOR))):
            ...
    """
    async def _check(actor: Actor = Depends(get_actor)) -> Actor:
        if actor.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires role: {', '.join(r.value for r in roles)}",
            )
        return actor

    return _check


# ── Permission-based access control ─────────────────────────

def require_permission(*perms: str):
    """Dependency factory — restrict to users who hold ALL listed permissions.

    Reads permissions from the JWT claims (embedded at login), falling back
    to the role defaults for tokens minted without a permissions claim.
    """
    async def _check(
        user: User = Depends(get_current_user),
        actor: Actor = Depends(get_actor),
    ) -> Actor:
        payload: dict = getattr(user, "_token_payload", {})
        user_perms: list[str] = payload.get("permissions") or resolve_permissions(user.role.value)

        missing = [p for p in perms if not has_permission(user_perms, p)]
        if missing:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permissions: {', '.join(missing)}",
            )
        return actor

    return _check
