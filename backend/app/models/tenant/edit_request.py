"""EditRequest — a proposed change to a business record awaiting review.

Staff propose a change; an admin or supervisor approves it (the proposed
fields are written to the target record) or rejects it (the record is left
untouched).

Lifecycle:  pending → approved | rejected   (both terminal)

`approved_by` / `approved_at` are null while pending and are set together
on either terminal transition.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum as SAEnum, Index, JSON, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import TenantBase


class EditRequestStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class EditRequest(TenantBase):
    __tablename__ = "edit_requests"
    __table_args__ = (
        Index("ix_edit_requests_target", "organization_id", "entity_type", "entity_id"),
        # At most one pending request per target record
        Index(
            "uq_edit_requests_one_pending",
            "organization_id", "entity_type", "entity_id",
            unique=True,
            postgresql_where=text("status = 'PENDING'"),
            sqlite_where=text("status = 'PENDING'"),
        ),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    organization_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    # ── Target ─────────────────────────────────────────────────
    # truck | driver | trip | expense | customer | invoice | employee | inventory
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(36), nullable=False)

    # ── Change ─────────────────────────────────────────────────
    reason: Mapped[str] = mapped_column(Text, default="")
    original_data: Mapped[dict] = mapped_column(JSON, default=dict)
    proposed_data: Mapped[dict] = mapped_column(JSON, default=dict)

    # ── Review ─────────────────────────────────────────────────
    status: Mapped[EditRequestStatus] = mapped_column(
        SAEnum(EditRequestStatus), default=EditRequestStatus.PENDING, index=True
    )
    requested_by: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    approved_by: Mapped[str | None] = mapped_column(String(36))
    approved_at: Mapped[datetime | None] = mapped_column(DateTime)
    rejection_reason: Mapped[str | None] = mapped_column(Text)
    review_notes: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False, index=True
    )
