"""Platform models (organizations and their users)."""

from app.models.public.organization import Organization
from app.models.public.user import User, UserRole

__all__ = ["Organization", "User", "UserRole"]
