"""Typed partial-update payloads, one per editable entity type.

Every field is optional: a payload carries only the fields the requester
wants changed, and only those are written on approval. Unknown fields are
rejected so a proposal can never touch columns outside this list
(ids, organization_id, timestamps).
"""

import datetime as dt
from datetime import date
from typing import ClassVar, Literal

from pydantic import BaseModel, Field, ValidationInfo, field_validator

TruckStatus = Literal["active", "in_service", "in_repair", "inactive", "decommissioned"]
PersonStatus = Literal["active", "on_leave", "suspended", "terminated"]
CustomerStatus = Literal["active", "inactive", "suspended"]
TripStatus = Literal["scheduled", "in_progress", "completed", "cancelled"]
InvoiceStatus = Literal["draft", "sent", "paid", "partial", "overdue", "cancelled"]


class _Changes(BaseModel):
    model_config = {"extra": "forbid"}

    # Columns that are NOT NULL on the entity table: omit them, never send null
    not_null_fields: ClassVar[frozenset[str]] = frozenset()

    @field_validator("*")
    @classmethod
    def reject_null(cls, value, info: ValidationInfo):
        if value is None and info.field_name in cls.not_null_fields:
            raise ValueError("may not be null")
        return value


class TruckChanges(_Changes):
    not_null_fields = frozenset({"registration_no", "make", "model", "year"})

    registration_no: str | None = Field(None, max_length=50)
    make: str | None = Field(None, max_length=100)
    model: str | None = Field(None, max_length=100)
    year: int | None = Field(None, ge=1950, le=2100)
    status: TruckStatus | None = None
    current_mileage: float | None = Field(None, ge=0)
    fuel_type: str | None = None
    tank_capacity: float | None = Field(None, ge=0)
    notes: str | None = None


class DriverChanges(_Changes):
    not_null_fields = frozenset({"first_name", "last_name", "phone", "license_number"})

    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    phone: str | None = Field(None, max_length=30)
    email: str | None = None
    whatsapp_number: str | None = Field(None, max_length=30)
    license_number: str | None = Field(None, max_length=50)
    passport_number: str | None = Field(None, max_length=50)
    status: PersonStatus | None = None
    assigned_truck_id: str | None = None
    notes: str | None = None


class TripChanges(_Changes):
    not_null_fields = frozenset({
        "origin_city", "destination_city", "scheduled_date", "truck_id", "driver_id",
    })

    origin_city: str | None = Field(None, max_length=100)
    destination_city: str | None = Field(None, max_length=100)
    load_description: str | None = None
    load_weight: float | None = Field(None, ge=0)
    estimated_mileage: float | None = Field(None, ge=0)
    actual_mileage: float | None = Field(None, ge=0)
    revenue: float | None = Field(None, ge=0)
    status: TripStatus | None = None
    scheduled_date: date | None = None
    truck_id: str | None = None
    driver_id: str | None = None
    customer_id: str | None = None
    notes: str | None = None


class ExpenseChanges(_Changes):
    not_null_fields = frozenset({"description", "amount", "date", "trip_id"})

    description: str | None = Field(None, max_length=255)
    amount: float | None = Field(None, ge=0)
    date: dt.date | None = None
    trip_id: str | None = None
    receipt_url: str | None = None
    notes: str | None = None


class CustomerChanges(_Changes):
    not_null_fields = frozenset({"name"})

    name: str | None = Field(None, max_length=255)
    email: str | None = None
    phone: str | None = Field(None, max_length=30)
    address: str | None = None
    contact_person: str | None = None
    status: CustomerStatus | None = None
    notes: str | None = None


class InvoiceChanges(_Changes):
    not_null_fields = frozenset({"invoice_number", "customer_id", "issue_date", "due_date"})

    invoice_number: str | None = Field(None, max_length=50)
    customer_id: str | None = None
    issue_date: date | None = None
    due_date: date | None = None
    subtotal: float | None = Field(None, ge=0)
    tax: float | None = Field(None, ge=0)
    total: float | None = Field(None, ge=0)
    amount_paid: float | None = Field(None, ge=0)
    balance: float | None = None
    status: InvoiceStatus | None = None
    notes: str | None = None


class EmployeeChanges(_Changes):
    not_null_fields = frozenset({"first_name", "last_name", "phone", "position", "start_date"})

    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    email: str | None = None
    phone: str | None = Field(None, max_length=30)
    position: str | None = Field(None, max_length=100)
    department: str | None = None
    status: PersonStatus | None = None
    start_date: date | None = None
    salary: float | None = Field(None, ge=0)
    notes: str | None = None


class InventoryItemChanges(_Changes):
    not_null_fields = frozenset({"name"})

    name: str | None = Field(None, max_length=255)
    sku: str | None = None
    category: str | None = None
    quantity: int | None = Field(None, ge=0)
    min_quantity: int | None = Field(None, ge=0)
    unit_cost: float | None = Field(None, ge=0)
    location: str | None = None
    supplier: str | None = None
    notes: str | None = None
