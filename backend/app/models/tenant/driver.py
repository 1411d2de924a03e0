"""Driver — a truck driver, optionally assigned to one truck."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import TenantBase


class Driver(TenantBase):
    __tablename__ = "drivers"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    organization_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[str] = mapped_column(String(30), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255))
    whatsapp_number: Mapped[str | None] = mapped_column(String(30))
    license_number: Mapped[str] = mapped_column(String(50), nullable=False)
    passport_number: Mapped[str | None] = mapped_column(String(50))
    # active | on_leave | suspended | terminated
    status: Mapped[str] = mapped_column(String(30), default="active")

    assigned_truck_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("trucks.id")
    )

    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
