"""Lightweight helper for recording activity log entries.

Usage:
    await log_activity(
        db, actor, action="edit_approved", entity_type="truck",
        entity_id=request.entity_id,
        summary="Approved edit request for Truck (ID: T1)",
    )

The row is added to the current session and committed with the
enclosing transaction — no extra flush is performed.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.context import Actor
from app.models.tenant.activity_log import ActivityLog


async def log_activity(
    db: AsyncSession,
    actor: Actor,
    *,
    action: str,
    entity_type: str,
    entity_id: str | None = None,
    summary: str | None = None,
    details: dict | None = None,
) -> None:
    """Append an activity log entry to the current DB session."""
    entry = ActivityLog(
        organization_id=actor.organization_id,
        user_id=actor.user_id,
        user_name=actor.name,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        summary=summary,
        details=details,
    )
    db.add(entry)
