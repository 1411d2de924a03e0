"""Pydantic schemas for the edit-request workflow.

The create body is a tagged union keyed by `entity_type`: each variant
carries the typed changes payload of its entity, so a truck request can
only propose truck fields.
"""

from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field

from app.models.tenant.edit_request import EditRequestStatus
from app.schemas.entities import (
    CustomerChanges,
    DriverChanges,
    EmployeeChanges,
    ExpenseChanges,
    InventoryItemChanges,
    InvoiceChanges,
    TripChanges,
    TruckChanges,
)


# ── Create (tagged union) ───────────────────────────────────

class _EditRequestCreateBase(BaseModel):
    entity_id: str = Field(..., min_length=1, max_length=36)
    reason: str = ""
    original_data: dict[str, Any] = Field(default_factory=dict)


class TruckEditRequestCreate(_EditRequestCreateBase):
    entity_type: Literal["truck"]
    proposed_data: TruckChanges


class DriverEditRequestCreate(_EditRequestCreateBase):
    entity_type: Literal["driver"]
    proposed_data: DriverChanges


class TripEditRequestCreate(_EditRequestCreateBase):
    entity_type: Literal["trip"]
    proposed_data: TripChanges


class ExpenseEditRequestCreate(_EditRequestCreateBase):
    entity_type: Literal["expense"]
    proposed_data: ExpenseChanges


class CustomerEditRequestCreate(_EditRequestCreateBase):
    entity_type: Literal["customer"]
    proposed_data: CustomerChanges


class InvoiceEditRequestCreate(_EditRequestCreateBase):
    entity_type: Literal["invoice"]
    proposed_data: InvoiceChanges


class EmployeeEditRequestCreate(_EditRequestCreateBase):
    entity_type: Literal["employee"]
    proposed_data: EmployeeChanges


class InventoryEditRequestCreate(_EditRequestCreateBase):
    entity_type: Literal["inventory"]
    proposed_data: InventoryItemChanges


EditRequestCreate = Annotated[
    Union[
        TruckEditRequestCreate,
        DriverEditRequestCreate,
        TripEditRequestCreate,
        ExpenseEditRequestCreate,
        CustomerEditRequestCreate,
        InvoiceEditRequestCreate,
        EmployeeEditRequestCreate,
        InventoryEditRequestCreate,
    ],
    Field(discriminator="entity_type"),
]


# ── Review ───────────────────────────────────────────────────

class EditRequestApprove(BaseModel):
    review_notes: str | None = None


class EditRequestReject(BaseModel):
    rejection_reason: str | None = None


# ── Output ───────────────────────────────────────────────────

class EditRequestOut(BaseModel):
    id: str
    entity_type: str
    entity_id: str
    reason: str
    original_data: dict[str, Any]
    proposed_data: dict[str, Any]
    status: EditRequestStatus
    requested_by: str
    approved_by: str | None = None
    approved_at: datetime | None = None
    rejection_reason: str | None = None
    review_notes: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class EditRequestListResponse(BaseModel):
    items: list[EditRequestOut]
    total: int
    limit: int
    offset: int


class PendingCountOut(BaseModel):
    pending: int
