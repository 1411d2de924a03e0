"""Aggregate model imports for Alembic auto-detection."""

# Public
from app.models.public.organization import Organization  # noqa: F401
from app.models.public.user import User, UserRole  # noqa: F401

# Tenant: business records
from app.models.tenant.truck import Truck  # noqa: F401
from app.models.tenant.driver import Driver  # noqa: F401
from app.models.tenant.customer import Customer  # noqa: F401
from app.models.tenant.trip import Trip  # noqa: F401
from app.models.tenant.expense import Expense  # noqa: F401
from app.models.tenant.invoice import Invoice  # noqa: F401
from app.models.tenant.employee import Employee  # noqa: F401
from app.models.tenant.inventory_item import InventoryItem  # noqa: F401

# Tenant: workflow, notifications, audit
from app.models.tenant.edit_request import EditRequest, EditRequestStatus  # noqa: F401
from app.models.tenant.user_notification import UserNotification  # noqa: F401
from app.models.tenant.activity_log import ActivityLog  # noqa: F401
