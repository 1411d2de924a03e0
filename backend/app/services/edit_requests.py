"""Edit-request service — propose, approve and reject changes to records.

State machine:

    pending ──approve──► approved   (proposed fields written to the entity)
       │
       └─────reject────► rejected   (entity untouched)

`approved` and `rejected` are terminal.  Every operation runs inside the
caller's unit of work: nothing is committed here, and any exception leaves
the session to be rolled back by its owner (app.database.get_db), so a
failed approval never leaves the entity half-updated or the request moved
out of `pending`.

The status change is a conditional write (`... WHERE status = 'pending'`),
so when two reviewers race on the same request exactly one of them wins;
the other gets EditRequestAlreadyReviewedError and its entity write is
rolled back with the rest of its transaction.

Notifications are queued on the session and only go out after commit.
"""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.context import Actor
from app.middleware.exceptions import (
    DuplicateEditRequestError,
    EditRequestAlreadyReviewedError,
    PermissionDeniedError,
    PersistenceError,
    ResourceNotFoundError,
    UnknownEntityTypeError,
)
from app.models.tenant.edit_request import EditRequest, EditRequestStatus
from app.services.entity_updates import apply_proposed_changes, get_handler, is_registered
from app.services.notifications import (
    EDIT_REQUEST_APPROVED,
    EDIT_REQUEST_CREATED,
    EDIT_REQUEST_REJECTED,
    NotificationDispatcher,
    NotificationEvent,
    queue_notification,
)
from app.utils.activity import log_activity

logger = logging.getLogger(__name__)


# ── Helpers ──────────────────────────────────────────────────

def _require_reviewer(actor: Actor) -> None:
    if not actor.is_reviewer:
        raise PermissionDeniedError("Only admins and supervisors can review edit requests")


def _target_name(entity_type: str, entity_id: str) -> str:
    if is_registered(entity_type):
        return get_handler(entity_type).describe(entity_id)
    return f"{entity_type} (ID: {entity_id})"


def _sensitive_fields(entity_type: str) -> frozenset[str]:
    if is_registered(entity_type):
        return get_handler(entity_type).sensitive_fields
    return frozenset()


def _event(kind: str, request: EditRequest, actor: Actor, details: dict) -> NotificationEvent:
    return NotificationEvent(
        kind=kind,
        request_id=request.id,
        entity_type=request.entity_type,
        entity_id=request.entity_id,
        entity_name=f"Edit request for {_target_name(request.entity_type, request.entity_id)}",
        organization_id=request.organization_id,
        performer=actor,
        details={
            "entity_type": request.entity_type,
            "entity_id": request.entity_id,
            **details,
        },
        changes=dict(request.proposed_data or {}),
        sensitive_fields=_sensitive_fields(request.entity_type),
    )


async def _load_request(db: AsyncSession, organization_id: str, request_id: str) -> EditRequest:
    result = await db.execute(
        select(EditRequest)
        .where(
            EditRequest.id == request_id,
            EditRequest.organization_id == organization_id,
        )
        .execution_options(populate_existing=True)
    )
    request = result.scalar_one_or_none()
    if request is None:
        raise ResourceNotFoundError("Edit request", request_id)
    return request


async def _load_pending(db: AsyncSession, actor: Actor, request_id: str) -> EditRequest:
    request = await _load_request(db, actor.organization_id, request_id)
    if request.status != EditRequestStatus.PENDING:
        raise EditRequestAlreadyReviewedError(request_id)
    return request


async def transition_pending(db: AsyncSession, request_id: str, values: dict[str, Any]) -> None:
    """Move a request out of `pending`, only if it is still pending.

    Raises EditRequestAlreadyReviewedError when another transaction has
    already reviewed the row.
    """
    result = await db.execute(
        update(EditRequest)
        .where(
            EditRequest.id == request_id,
            EditRequest.status == EditRequestStatus.PENDING,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise EditRequestAlreadyReviewedError(request_id)


async def _pending_for_target(
    db: AsyncSession, organization_id: str, entity_type: str, entity_id: str,
) -> str | None:
    result = await db.execute(
        select(EditRequest.id).where(
            EditRequest.organization_id == organization_id,
            EditRequest.entity_type == entity_type,
            EditRequest.entity_id == entity_id,
            EditRequest.status == EditRequestStatus.PENDING,
        )
    )
    return result.scalars().first()


# ── Create ───────────────────────────────────────────────────

async def create_edit_request(
    db: AsyncSession,
    actor: Actor,
    *,
    entity_type: str,
    entity_id: str,
    reason: str = "",
    original_data: dict | None = None,
    proposed_data: dict | None = None,
    notifier: NotificationDispatcher | None = None,
) -> EditRequest:
    """Record a proposed change as a `pending` edit request.

    The target entity is not looked up here; the proposed payload has
    already been validated against the entity's changes schema by the
    caller and is validated again on approval.
    """
    if not is_registered(entity_type):
        raise UnknownEntityTypeError(entity_type)

    try:
        if await _pending_for_target(db, actor.organization_id, entity_type, entity_id):
            raise DuplicateEditRequestError(entity_type, entity_id)

        request = EditRequest(
            organization_id=actor.organization_id,
            entity_type=entity_type,
            entity_id=entity_id,
            reason=reason or "",
            original_data=original_data or {},
            proposed_data=proposed_data or {},
            status=EditRequestStatus.PENDING,
            requested_by=actor.user_id,
            created_at=datetime.utcnow(),
        )
        db.add(request)
        try:
            await db.flush()
        except IntegrityError as exc:
            # Another request for the same target was filed after our check.
            # PostgreSQL names the index; SQLite names the columns.
            detail = str(exc.orig)
            if "uq_edit_requests_one_pending" in detail or "edit_requests.entity_id" in detail:
                raise DuplicateEditRequestError(entity_type, entity_id) from exc
            raise

        await log_activity(
            db, actor,
            action="edit_requested",
            entity_type=entity_type,
            entity_id=entity_id,
            summary=f"Requested edit for {_target_name(entity_type, entity_id)}",
            details={"edit_request_id": request.id, "fields": sorted(request.proposed_data)},
        )
    except SQLAlchemyError as exc:
        logger.exception("Failed to create edit request for %s %s", entity_type, entity_id)
        raise PersistenceError("Failed to create edit request") from exc

    logger.info(
        "Edit request %s created for %s %s by %s",
        request.id, entity_type, entity_id, actor.user_id,
    )
    queue_notification(
        db,
        _event(EDIT_REQUEST_CREATED, request, actor, {"reason": request.reason, "status": "Pending"}),
        notifier,
    )
    return request


# ── Approve / reject ─────────────────────────────────────────

async def approve_edit_request(
    db: AsyncSession,
    actor: Actor,
    request_id: str,
    review_notes: str | None = None,
    notifier: NotificationDispatcher | None = None,
) -> EditRequest:
    """Apply the proposed change to its entity and mark the request approved.

    Raises:
        PermissionDeniedError            — actor is not an admin/supervisor
        ResourceNotFoundError            — request or target entity missing
        EditRequestAlreadyReviewedError  — request is no longer pending
        UnknownEntityTypeError           — tag has no registered handler
        InvalidProposedDataError         — payload does not fit the entity
        PersistenceError                 — the store rejected a write
    """
    _require_reviewer(actor)

    try:
        request = await _load_pending(db, actor, request_id)
        await apply_proposed_changes(
            db,
            actor.organization_id,
            request.entity_type,
            request.entity_id,
            request.proposed_data,
        )
        await transition_pending(db, request.id, {
            "status": EditRequestStatus.APPROVED,
            "approved_by": actor.user_id,
            "approved_at": datetime.utcnow(),
            "review_notes": review_notes,
        })
        await db.refresh(request)

        await log_activity(
            db, actor,
            action="edit_approved",
            entity_type=request.entity_type,
            entity_id=request.entity_id,
            summary=f"Approved edit request for {_target_name(request.entity_type, request.entity_id)}",
            details={"edit_request_id": request.id, "changes": request.proposed_data},
        )
    except SQLAlchemyError as exc:
        logger.exception("Failed to approve edit request %s", request_id)
        raise PersistenceError("Failed to approve edit request") from exc

    logger.info("Edit request %s approved by %s", request.id, actor.user_id)
    queue_notification(
        db,
        _event(EDIT_REQUEST_APPROVED, request, actor, {
            "status": "Approved",
            "requested_by": request.requested_by,
            "review_notes": review_notes,
        }),
        notifier,
    )
    return request


async def reject_edit_request(
    db: AsyncSession,
    actor: Actor,
    request_id: str,
    rejection_reason: str | None = None,
    notifier: NotificationDispatcher | None = None,
) -> EditRequest:
    """Mark the request rejected; the target entity is never touched."""
    _require_reviewer(actor)

    try:
        request = await _load_pending(db, actor, request_id)
        await transition_pending(db, request.id, {
            "status": EditRequestStatus.REJECTED,
            "approved_by": actor.user_id,
            "approved_at": datetime.utcnow(),
            "rejection_reason": rejection_reason or "",
        })
        await db.refresh(request)

        await log_activity(
            db, actor,
            action="edit_rejected",
            entity_type=request.entity_type,
            entity_id=request.entity_id,
            summary=f"Rejected edit request for {_target_name(request.entity_type, request.entity_id)}",
            details={"edit_request_id": request.id, "rejection_reason": request.rejection_reason},
        )
    except SQLAlchemyError as exc:
        logger.exception("Failed to reject edit request %s", request_id)
        raise PersistenceError("Failed to reject edit request") from exc

    logger.info("Edit request %s rejected by %s", request.id, actor.user_id)
    queue_notification(
        db,
        _event(EDIT_REQUEST_REJECTED, request, actor, {
            "status": "Rejected",
            "requested_by": request.requested_by,
            "rejection_reason": request.rejection_reason,
        }),
        notifier,
    )
    return request


# ── Queries ──────────────────────────────────────────────────

async def list_edit_requests(
    db: AsyncSession,
    actor: Actor,
    *,
    status: EditRequestStatus | None = None,
    entity_type: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[EditRequest], int]:
    """Organization-scoped list, newest first.  Staff only see their own."""
    filters = [EditRequest.organization_id == actor.organization_id]
    if not actor.is_reviewer:
        filters.append(EditRequest.requested_by == actor.user_id)
    if status is not None:
        filters.append(EditRequest.status == status)
    if entity_type:
        filters.append(EditRequest.entity_type == entity_type)

    total = (
        await db.execute(select(func.count(EditRequest.id)).where(*filters))
    ).scalar() or 0
    result = await db.execute(
        select(EditRequest)
        .where(*filters)
        .order_by(EditRequest.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all()), total


async def get_edit_request(db: AsyncSession, actor: Actor, request_id: str) -> EditRequest:
    request = await _load_request(db, actor.organization_id, request_id)
    if not actor.is_reviewer and request.requested_by != actor.user_id:
        raise ResourceNotFoundError("Edit request", request_id)
    return request


async def count_pending_edit_requests(db: AsyncSession, organization_id: str) -> int:
    result = await db.execute(
        select(func.count(EditRequest.id)).where(
            EditRequest.organization_id == organization_id,
            EditRequest.status == EditRequestStatus.PENDING,
        )
    )
    return result.scalar() or 0
