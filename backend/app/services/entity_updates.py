"""Entity update registry — typed partial-update functions per entity type.

Each editable entity type registers:
  - a pydantic changes schema (every field optional, unknown fields rejected)
  - an async update function  (db, organization_id, entity_id, changes) -> entity
  - a display label and the money fields hidden from supervisors

Approving an edit request looks up the handler by its `entity_type` tag,
validates the stored proposed data against the schema, and writes only the
fields present in the payload.  Adding an entity type means registering a
new handler here; the edit-request service never branches on the tag.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.middleware.exceptions import (
    InvalidProposedDataError,
    ResourceNotFoundError,
    UnknownEntityTypeError,
)
from app.models.tenant.customer import Customer
from app.models.tenant.driver import Driver
from app.models.tenant.employee import Employee
from app.models.tenant.expense import Expense
from app.models.tenant.inventory_item import InventoryItem
from app.models.tenant.invoice import Invoice
from app.models.tenant.trip import Trip
from app.models.tenant.truck import Truck
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

logger = logging.getLogger(__name__)

UpdateFn = Callable[[AsyncSession, str, str, Any], Awaitable[Any]]


@dataclass(frozen=True)
class EntityHandler:
    entity_type: str
    changes_schema: type[BaseModel]
    update: UpdateFn
    label: str
    sensitive_fields: frozenset[str] = frozenset()

    def parse(self, proposed_data: dict) -> BaseModel:
        """Validate a stored payload against the entity's updatable fields."""
        try:
            return self.changes_schema.model_validate(proposed_data or {})
        except ValidationError as exc:
            raise InvalidProposedDataError(self.entity_type, exc.errors()) from exc

    def describe(self, entity_id: str) -> str:
        return f"{self.label} (ID: {entity_id})"


_REGISTRY: dict[str, EntityHandler] = {}


def register_entity(
    entity_type: str,
    changes_schema: type[BaseModel],
    *,
    label: str,
    sensitive_fields: tuple[str, ...] = (),
):
    """Decorator — register `fn` as the partial-update function for a tag."""
    def decorator(fn: UpdateFn) -> UpdateFn:
        if entity_type in _REGISTRY:
            raise ValueError(f"Entity type already registered: {entity_type}")
        _REGISTRY[entity_type] = EntityHandler(
            entity_type=entity_type,
            changes_schema=changes_schema,
            update=fn,
            label=label,
            sensitive_fields=frozenset(sensitive_fields),
        )
        return fn

    return decorator


def get_handler(entity_type: str) -> EntityHandler:
    handler = _REGISTRY.get(entity_type)
    if handler is None:
        raise UnknownEntityTypeError(entity_type)
    return handler


def registered_entity_types() -> list[str]:
    return sorted(_REGISTRY)


def is_registered(entity_type: str) -> bool:
    return entity_type in _REGISTRY


async def apply_proposed_changes(
    db: AsyncSession,
    organization_id: str,
    entity_type: str,
    entity_id: str,
    proposed_data: dict,
) -> Any:
    """Validate `proposed_data` and write it onto the target entity.

    Raises:
        UnknownEntityTypeError   — tag not registered
        InvalidProposedDataError — payload has unknown or ill-typed fields
        ResourceNotFoundError    — entity missing in this organization
    """
    handler = get_handler(entity_type)
    changes = handler.parse(proposed_data)
    entity = await handler.update(db, organization_id, entity_id, changes)
    logger.info(
        "Applied %d field(s) to %s %s",
        len(changes.model_fields_set),
        entity_type,
        entity_id,
    )
    return entity


# ── Helpers ──────────────────────────────────────────────────

async def _load(db: AsyncSession, model, organization_id: str, entity_id: str):
    result = await db.execute(
        select(model).where(
            model.id == entity_id,
            model.organization_id == organization_id,
        )
    )
    entity = result.scalar_one_or_none()
    if entity is None:
        raise ResourceNotFoundError(model.__name__, entity_id)
    return entity


def _assign(entity, changes: BaseModel) -> dict:
    """Write only the fields the payload actually carries."""
    fields = changes.model_dump(exclude_unset=True)
    for field, value in fields.items():
        setattr(entity, field, value)
    return fields


# ── Registered entity types ──────────────────────────────────

@register_entity("truck", TruckChanges, label="Truck")
async def update_truck(
    db: AsyncSession, organization_id: str, entity_id: str, changes: TruckChanges,
) -> Truck:
    truck = await _load(db, Truck, organization_id, entity_id)
    _assign(truck, changes)
    return truck


@register_entity("driver", DriverChanges, label="Driver")
async def update_driver(
    db: AsyncSession, organization_id: str, entity_id: str, changes: DriverChanges,
) -> Driver:
    driver = await _load(db, Driver, organization_id, entity_id)
    _assign(driver, changes)
    return driver


@register_entity("trip", TripChanges, label="Trip", sensitive_fields=("revenue",))
async def update_trip(
    db: AsyncSession, organization_id: str, entity_id: str, changes: TripChanges,
) -> Trip:
    trip = await _load(db, Trip, organization_id, entity_id)
    _assign(trip, changes)
    return trip


@register_entity("expense", ExpenseChanges, label="Expense", sensitive_fields=("amount",))
async def update_expense(
    db: AsyncSession, organization_id: str, entity_id: str, changes: ExpenseChanges,
) -> Expense:
    expense = await _load(db, Expense, organization_id, entity_id)
    _assign(expense, changes)
    return expense


@register_entity("customer", CustomerChanges, label="Customer")
async def update_customer(
    db: AsyncSession, organization_id: str, entity_id: str, changes: CustomerChanges,
) -> Customer:
    customer = await _load(db, Customer, organization_id, entity_id)
    _assign(customer, changes)
    return customer


@register_entity(
    "invoice",
    InvoiceChanges,
    label="Invoice",
    sensitive_fields=("subtotal", "tax", "total", "amount_paid", "balance"),
)
async def update_invoice(
    db: AsyncSession, organization_id: str, entity_id: str, changes: InvoiceChanges,
) -> Invoice:
    invoice = await _load(db, Invoice, organization_id, entity_id)
    fields = _assign(invoice, changes)

    # Keep balance = total - amount_paid unless the request sets it explicitly
    if ("total" in fields or "amount_paid" in fields) and "balance" not in fields:
        invoice.balance = round((invoice.total or 0) - (invoice.amount_paid or 0), 2)
    return invoice


@register_entity("employee", EmployeeChanges, label="Employee", sensitive_fields=("salary",))
async def update_employee(
    db: AsyncSession, organization_id: str, entity_id: str, changes: EmployeeChanges,
) -> Employee:
    employee = await _load(db, Employee, organization_id, entity_id)
    _assign(employee, changes)
    return employee


@register_entity(
    "inventory", InventoryItemChanges, label="Inventory Item", sensitive_fields=("unit_cost",),
)
async def update_inventory_item(
    db: AsyncSession, organization_id: str, entity_id: str, changes: InventoryItemChanges,
) -> InventoryItem:
    item = await _load(db, InventoryItem, organization_id, entity_id)
    _assign(item, changes)
    return item
