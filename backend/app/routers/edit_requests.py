"""Edit-request router.

Staff cannot change records directly; they file an edit request which an
admin or supervisor approves (the change is applied) or rejects.

Endpoints:
    POST /api/edit-requests/                 Propose a change (201)
    GET  /api/edit-requests/                 List requests (staff: own only)
    GET  /api/edit-requests/pending-count    Requests awaiting review
    GET  /api/edit-requests/{id}             Single request
    POST /api/edit-requests/{id}/approve     Apply the change
    POST /api/edit-requests/{id}/reject      Decline the change
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.context import Actor
from app.auth.deps import get_actor, require_permission, require_role
from app.database import get_db
from app.models.public.user import REVIEWER_ROLES
from app.models.tenant.edit_request import EditRequestStatus
from app.schemas.edit_request import (
    EditRequestApprove,
    EditRequestCreate,
    EditRequestListResponse,
    EditRequestOut,
    EditRequestReject,
    PendingCountOut,
)
from app.services import edit_requests as service
from app.services.notifications import NotificationDispatcher, dispatcher

router = APIRouter()

require_reviewer = require_role(*REVIEWER_ROLES)


def get_notifier() -> NotificationDispatcher:
    """Dispatcher used for post-commit notifications (overridable in tests)."""
    return dispatcher


# ── Create ───────────────────────────────────────────────────

@router.post("/", response_model=EditRequestOut, status_code=status.HTTP_201_CREATED)
async def create_edit_request(
    body: EditRequestCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_permission("edit_requests.create")),
    notifier: NotificationDispatcher = Depends(get_notifier),
):
    """Propose a change to a truck, driver, trip, expense, customer,
    invoice, employee or inventory item.

    `proposed_data` is validated against the entity's updatable fields;
    only the fields sent are stored and later applied.
    """
    request = await service.create_edit_request(
        db,
        actor,
        entity_type=body.entity_type,
        entity_id=body.entity_id,
        reason=body.reason,
        original_data=body.original_data,
        proposed_data=body.proposed_data.model_dump(mode="json", exclude_unset=True),
        notifier=notifier,
    )
    return EditRequestOut.model_validate(request)


# ── Read ─────────────────────────────────────────────────────

@router.get("/", response_model=EditRequestListResponse)
async def list_edit_requests(
    status_filter: EditRequestStatus | None = Query(None, alias="status"),
    entity_type: str | None = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    """List edit requests, newest first. Staff see only their own."""
    items, total = await service.list_edit_requests(
        db,
        actor,
        status=status_filter,
        entity_type=entity_type,
        limit=limit,
        offset=offset,
    )
    return EditRequestListResponse(
        items=[EditRequestOut.model_validate(r) for r in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/pending-count", response_model=PendingCountOut)
async def pending_count(
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_permission("edit_requests.review")),
):
    """Number of requests awaiting review (dashboard badge)."""
    return PendingCountOut(
        pending=await service.count_pending_edit_requests(db, actor.organization_id)
    )


@router.get("/{request_id}", response_model=EditRequestOut)
async def get_edit_request(
    request_id: str,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    request = await service.get_edit_request(db, actor, request_id)
    return EditRequestOut.model_validate(request)


# ── Review ───────────────────────────────────────────────────

@router.post("/{request_id}/approve", response_model=EditRequestOut)
async def approve_edit_request(
    request_id: str,
    body: EditRequestApprove | None = None,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_reviewer),
    notifier: NotificationDispatcher = Depends(get_notifier),
):
    """Apply the proposed change to its record and mark the request approved."""
    request = await service.approve_edit_request(
        db,
        actor,
        request_id,
        review_notes=body.review_notes if body else None,
        notifier=notifier,
    )
    return EditRequestOut.model_validate(request)


@router.post("/{request_id}/reject", response_model=EditRequestOut)
async def reject_edit_request(
    request_id: str,
    body: EditRequestReject | None = None,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_reviewer),
    notifier: NotificationDispatcher = Depends(get_notifier),
):
    """Decline the change; the record is left untouched."""
    request = await service.reject_edit_request(
        db,
        actor,
        request_id,
        rejection_reason=body.rejection_reason if body else None,
        notifier=notifier,
    )
    return EditRequestOut.model_validate(request)
