"""Organization-scoped models.

These models use TenantBase; every row carries an `organization_id`.
"""

# ── Business records (edit-request targets) ──────────────────
from app.models.tenant.truck import Truck
from app.models.tenant.driver import Driver
from app.models.tenant.customer import Customer
from app.models.tenant.trip import Trip
from app.models.tenant.expense import Expense
from app.models.tenant.invoice import Invoice
from app.models.tenant.employee import Employee
from app.models.tenant.inventory_item import InventoryItem

# ── Workflow ─────────────────────────────────────────────────
from app.models.tenant.edit_request import EditRequest, EditRequestStatus

# ── Notifications / audit ────────────────────────────────────
from app.models.tenant.user_notification import UserNotification
from app.models.tenant.activity_log import ActivityLog

__all__ = [
    # Business records
    "Truck", "Driver", "Customer", "Trip", "Expense", "Invoice",
    "Employee", "InventoryItem",
    # Workflow
    "EditRequest", "EditRequestStatus",
    # Notifications / audit
    "UserNotification", "ActivityLog",
]
