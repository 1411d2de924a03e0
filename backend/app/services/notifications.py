"""Edit-request notifications: in-app inbox rows plus optional email.

Services never deliver notifications inline.  They call
`queue_notification(db, event, dispatcher)`, which parks the event on the
session; once the enclosing transaction commits, each parked event is
handed to `dispatcher.dispatch()`, which spawns a detached asyncio task.
A rollback discards the queue, so nobody hears about a change that never
happened.

Delivery (inside the detached task, on its own session):
  1. Recipients = active admins/supervisors of the organization, minus the
     user who performed the action.
  2. One UserNotification row per recipient.
  3. One email per recipient when SMTP is configured.  Supervisors never
     see the entity's sensitive money fields.

Any delivery failure is logged and swallowed; the edit-request operation
that triggered it has already returned.
"""

import asyncio
import logging
import smtplib
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any

from fastapi import FastAPI
from sqlalchemy import event as sa_event, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from app.auth.context import Actor
from app.config import settings
from app.database import async_session
from app.middleware.exceptions import ResourceNotFoundError
from app.models.public.organization import Organization
from app.models.public.user import REVIEWER_ROLES, User, UserRole
from app.models.tenant.user_notification import UserNotification

logger = logging.getLogger(__name__)

EDIT_REQUEST_CREATED = "edit_request.created"
EDIT_REQUEST_APPROVED = "edit_request.approved"
EDIT_REQUEST_REJECTED = "edit_request.rejected"

_TITLES = {
    EDIT_REQUEST_CREATED: "Edit Request Created",
    EDIT_REQUEST_APPROVED: "Edit Request Approved",
    EDIT_REQUEST_REJECTED: "Edit Request Rejected",
}

_VERBS = {
    EDIT_REQUEST_CREATED: "created",
    EDIT_REQUEST_APPROVED: "approved",
    EDIT_REQUEST_REJECTED: "rejected",
}

_CURRENCY_HINTS = (
    "amount", "total", "balance", "revenue", "cost", "price", "subtotal", "tax", "salary",
)

EDIT_REQUESTS_LINK = "/edit-requests"
INBOX_LIMIT = 50

_QUEUE_KEY = "pending_notifications"


@dataclass(frozen=True)
class NotificationEvent:
    kind: str
    request_id: str
    entity_type: str
    entity_id: str
    entity_name: str
    organization_id: str
    performer: Actor
    details: dict[str, Any] = field(default_factory=dict)
    changes: dict[str, Any] = field(default_factory=dict)
    sensitive_fields: frozenset[str] = frozenset()

    @property
    def title(self) -> str:
        return _TITLES.get(self.kind, "Edit Request")

    @property
    def message(self) -> str:
        verb = _VERBS.get(self.kind, "updated")
        return f"{self.entity_name} was {verb} by {self.performer.name}"


# ── Formatting ───────────────────────────────────────────────

def _display_key(key: str) -> str:
    return key.replace("_", " ").strip().capitalize()


def _display_value(key: str, value: Any) -> str:
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, (int, float)):
        if any(hint in key.lower() for hint in _CURRENCY_HINTS):
            return f"${value:,.2f}"
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.strftime("%B %d, %Y")
    return str(value)


def visible_changes(
    changes: dict[str, Any],
    sensitive_fields: frozenset[str] | set[str],
    hide_sensitive: bool,
) -> dict[str, Any]:
    if not hide_sensitive:
        return dict(changes)
    return {k: v for k, v in changes.items() if k not in sensitive_fields}


def format_details(
    details: dict[str, Any],
    sensitive_fields: frozenset[str] | set[str] = frozenset(),
    hide_sensitive: bool = False,
) -> str:
    """Render a details mapping as `Key: value` lines for an email body."""
    lines = []
    for key, value in details.items():
        if value is None:
            continue
        if hide_sensitive and key in sensitive_fields:
            continue
        lines.append(f"{_display_key(key)}: {_display_value(key, value)}")
    return "\n".join(lines)


def build_email_body(event: NotificationEvent, org_name: str, hide_sensitive: bool) -> str:
    parts = [
        event.message,
        "",
        format_details(event.details),
    ]
    changes = format_details(event.changes, event.sensitive_fields, hide_sensitive)
    if changes:
        parts += ["", "Proposed changes:", changes]
    parts += [
        "",
        f"Review it at {settings.app_url.rstrip('/')}{EDIT_REQUESTS_LINK}",
        "",
        org_name,
    ]
    return "\n".join(parts)


# ── Dispatcher ───────────────────────────────────────────────

@dataclass(frozen=True)
class _Recipient:
    user_id: str
    email: str
    full_name: str
    role: UserRole


class NotificationDispatcher:
    """Runs each delivery as a detached task on its own session."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or async_session
        self._tasks: set[asyncio.Task] = set()

    def dispatch(self, event: NotificationEvent) -> asyncio.Task | None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; dropping %s notification", event.kind)
            return None

        task = loop.create_task(self._deliver_safely(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for every in-flight delivery (shutdown, tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _deliver_safely(self, event: NotificationEvent) -> None:
        try:
            await self.deliver(event)
        except Exception:
            logger.exception(
                "Failed to deliver %s notification for edit request %s",
                event.kind,
                event.request_id,
            )

    async def deliver(self, event: NotificationEvent) -> int:
        """Write inbox rows and send emails; return the recipient count."""
        async with self._session_factory() as db:
            recipients = await _get_recipients(db, event.organization_id, event.performer.user_id)
            if not recipients:
                logger.info("No recipients for %s notification in %s", event.kind, event.organization_id)
                return 0

            for recipient in recipients:
                hide = recipient.role != UserRole.ADMIN
                db.add(UserNotification(
                    user_id=recipient.user_id,
                    organization_id=event.organization_id,
                    type=event.kind,
                    title=event.title,
                    message=event.message,
                    entity_type="edit_request",
                    entity_id=event.request_id,
                    link=EDIT_REQUESTS_LINK,
                    details={
                        **event.details,
                        "changes": visible_changes(event.changes, event.sensitive_fields, hide),
                    },
                ))

            org_name = (
                await db.execute(
                    select(Organization.name).where(Organization.id == event.organization_id)
                )
            ).scalar_one_or_none() or "WD Logistics"
            await db.commit()

        logger.info(
            "Created %d in-app notification(s) for %s %s",
            len(recipients),
            event.kind,
            event.request_id,
        )

        if settings.smtp_host and settings.notification_emails_enabled:
            await asyncio.to_thread(_send_emails, event, recipients, org_name)
        return len(recipients)


async def _get_recipients(
    db: AsyncSession, organization_id: str, exclude_user_id: str,
) -> list[_Recipient]:
    result = await db.execute(
        select(User).where(
            User.organization_id == organization_id,
            User.role.in_(REVIEWER_ROLES),
            User.is_active == True,  # noqa: E712
            User.id != exclude_user_id,
        )
    )
    return [
        _Recipient(user_id=u.id, email=u.email, full_name=u.full_name, role=u.role)
        for u in result.scalars().all()
    ]


def _send_emails(event: NotificationEvent, recipients: list[_Recipient], org_name: str) -> None:
    sender = settings.smtp_from or settings.smtp_user
    subject = f"[{org_name}] {event.title}: {event.entity_name}"

    with smtplib.SMTP(settings.smtp_host, settings.smtp_port) as server:
        server.starttls()
        if settings.smtp_user and settings.smtp_password:
            server.login(settings.smtp_user, settings.smtp_password)
        for recipient in recipients:
            hide = recipient.role != UserRole.ADMIN
            msg = MIMEMultipart("alternative")
            msg["Subject"] = subject
            msg["From"] = sender
            msg["To"] = recipient.email
            msg.attach(MIMEText(build_email_body(event, org_name, hide), "plain"))
            server.sendmail(sender, recipient.email, msg.as_string())

    logger.info("Sent %d notification email(s) for %s", len(recipients), event.kind)


# ── Post-commit queue ────────────────────────────────────────

def queue_notification(
    db: AsyncSession,
    event: NotificationEvent,
    dispatcher: NotificationDispatcher | None,
) -> None:
    """Deliver `event` once the session's current transaction commits."""
    if dispatcher is None:
        return
    db.info.setdefault(_QUEUE_KEY, []).append((dispatcher, event))


@sa_event.listens_for(Session, "after_commit")
def _dispatch_queued(session: Session) -> None:
    for dispatcher, queued in session.info.pop(_QUEUE_KEY, []):
        dispatcher.dispatch(queued)


@sa_event.listens_for(Session, "after_transaction_end")
def _discard_queued(session: Session, transaction) -> None:
    # Commit has already drained the queue; anything left was rolled back
    if transaction.parent is None and session.info.get(_QUEUE_KEY):
        dropped = session.info.pop(_QUEUE_KEY)
        logger.debug("Discarded %d notification(s) after rollback", len(dropped))


# ── Inbox ────────────────────────────────────────────────────

async def list_notifications(db: AsyncSession, actor: Actor) -> list[UserNotification]:
    result = await db.execute(
        select(UserNotification)
        .where(
            UserNotification.user_id == actor.user_id,
            UserNotification.organization_id == actor.organization_id,
            UserNotification.is_dismissed == False,  # noqa: E712
        )
        .order_by(UserNotification.created_at.desc())
        .limit(INBOX_LIMIT)
    )
    return list(result.scalars().all())


async def unread_count(db: AsyncSession, actor: Actor) -> int:
    result = await db.execute(
        select(func.count(UserNotification.id)).where(
            UserNotification.user_id == actor.user_id,
            UserNotification.organization_id == actor.organization_id,
            UserNotification.is_read == False,  # noqa: E712
            UserNotification.is_dismissed == False,  # noqa: E712
        )
    )
    return result.scalar() or 0


async def _get_own(db: AsyncSession, actor: Actor, notification_id: str) -> UserNotification:
    result = await db.execute(
        select(UserNotification).where(
            UserNotification.id == notification_id,
            UserNotification.user_id == actor.user_id,
        )
    )
    notification = result.scalar_one_or_none()
    if notification is None:
        raise ResourceNotFoundError("Notification", notification_id)
    return notification


async def mark_read(db: AsyncSession, actor: Actor, notification_id: str) -> UserNotification:
    notification = await _get_own(db, actor, notification_id)
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = datetime.utcnow()
    await db.flush()
    return notification


async def mark_all_read(db: AsyncSession, actor: Actor) -> int:
    result = await db.execute(
        update(UserNotification)
        .where(
            UserNotification.user_id == actor.user_id,
            UserNotification.organization_id == actor.organization_id,
            UserNotification.is_read == False,  # noqa: E712
        )
        .values(is_read=True, read_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


async def dismiss(db: AsyncSession, actor: Actor, notification_id: str) -> UserNotification:
    notification = await _get_own(db, actor, notification_id)
    notification.is_dismissed = True
    notification.dismissed_at = datetime.utcnow()
    await db.flush()
    return notification


# ── Process-wide dispatcher ──────────────────────────────────

dispatcher = NotificationDispatcher()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan: let in-flight deliveries finish on shutdown."""
    logger.info("Notification dispatcher started")
    try:
        yield
    finally:
        await dispatcher.drain()
        logger.info("Notification dispatcher stopped")
