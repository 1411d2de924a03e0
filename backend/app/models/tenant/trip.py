"""Trip — one haul from origin to destination by a truck and driver.

Lifecycle:  scheduled → in_progress → completed | cancelled
"""

import uuid
from datetime import date, datetime

from sqlalchemy import Date, DateTime, Float, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import TenantBase


class Trip(TenantBase):
    __tablename__ = "trips"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    organization_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    # ── Route ────────────────────────────────────────────────
    origin_city: Mapped[str] = mapped_column(String(100), nullable=False)
    destination_city: Mapped[str] = mapped_column(String(100), nullable=False)

    # ── Load ─────────────────────────────────────────────────
    load_description: Mapped[str | None] = mapped_column(Text)
    load_weight: Mapped[float | None] = mapped_column(Float)

    # ── Mileage / money ──────────────────────────────────────
    estimated_mileage: Mapped[float] = mapped_column(Float, default=0)
    actual_mileage: Mapped[float | None] = mapped_column(Float)
    revenue: Mapped[float] = mapped_column(Float, default=0)

    # scheduled | in_progress | completed | cancelled
    status: Mapped[str] = mapped_column(String(30), default="scheduled", index=True)
    scheduled_date: Mapped[date] = mapped_column(Date, nullable=False)

    # ── Assignments ──────────────────────────────────────────
    truck_id: Mapped[str] = mapped_column(String(36), ForeignKey("trucks.id"), nullable=False)
    driver_id: Mapped[str] = mapped_column(String(36), ForeignKey("drivers.id"), nullable=False)
    customer_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("customers.id"))

    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
