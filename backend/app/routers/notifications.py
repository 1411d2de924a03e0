"""In-app notification inbox for the current user.

Endpoints:
    GET  /api/notifications/                 Latest notifications (not dismissed)
    GET  /api/notifications/unread-count     Badge count
    POST /api/notifications/{id}/read        Mark one as read
    POST /api/notifications/read-all         Mark all as read
    POST /api/notifications/{id}/dismiss     Hide from the inbox
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.context import Actor
from app.auth.deps import get_actor
from app.database import get_db
from app.schemas.notification import MarkAllReadOut, NotificationOut, UnreadCountOut
from app.services import notifications as service

router = APIRouter()


@router.get("/", response_model=list[NotificationOut])
async def list_notifications(
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    rows = await service.list_notifications(db, actor)
    return [NotificationOut.model_validate(n) for n in rows]


@router.get("/unread-count", response_model=UnreadCountOut)
async def unread_count(
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return UnreadCountOut(count=await service.unread_count(db, actor))


@router.post("/read-all", response_model=MarkAllReadOut)
async def mark_all_read(
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return MarkAllReadOut(updated=await service.mark_all_read(db, actor))


@router.post("/{notification_id}/read", response_model=NotificationOut)
async def mark_read(
    notification_id: str,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    notification = await service.mark_read(db, actor, notification_id)
    return NotificationOut.model_validate(notification)


@router.post("/{notification_id}/dismiss", response_model=NotificationOut)
async def dismiss(
    notification_id: str,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    notification = await service.dismiss(db, actor, notification_id)
    return NotificationOut.model_validate(notification)
