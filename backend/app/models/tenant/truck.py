"""Truck — a fleet vehicle.

Lifecycle:  active ⇄ in_service ⇄ in_repair → inactive → decommissioned
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.database import TenantBase


class Truck(TenantBase):
    __tablename__ = "trucks"
    __table_args__ = (
        UniqueConstraint("organization_id", "registration_no", name="uq_trucks_org_registration"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    organization_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    registration_no: Mapped[str] = mapped_column(String(50), nullable=False)
    make: Mapped[str] = mapped_column(String(100), nullable=False)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    # active | in_service | in_repair | inactive | decommissioned
    status: Mapped[str] = mapped_column(String(30), default="active")
    current_mileage: Mapped[float] = mapped_column(Float, default=0)
    fuel_type: Mapped[str | None] = mapped_column(String(30))
    tank_capacity: Mapped[float | None] = mapped_column(Float)

    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
