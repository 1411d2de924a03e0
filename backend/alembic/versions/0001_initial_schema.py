"""Initial schema — organizations, users, business records, edit requests.

Revision ID: 0001
Revises: (none)
Create Date: 2026-10-19

Run with:
    alembic upgrade head
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    ]


def _org_column() -> sa.Column:
    return sa.Column("organization_id", sa.String(36), nullable=False, index=True)


def upgrade() -> None:
    # ── Platform ─────────────────────────────────────────────

    op.create_table(
        "organizations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True, index=True),
        sa.Column("hashed_password", sa.String(255)),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column(
            "role",
            sa.Enum("ADMIN", "SUPERVISOR", "STAFF", name="userrole"),
            server_default="STAFF",
        ),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column(
            "organization_id", sa.String(36),
            sa.ForeignKey("organizations.id"), index=True,
        ),
        *_timestamps(),
    )

    # ── Business records ─────────────────────────────────────

    op.create_table(
        "trucks",
        sa.Column("id", sa.String(36), primary_key=True),
        _org_column(),
        sa.Column("registration_no", sa.String(50), nullable=False),
        sa.Column("make", sa.String(100), nullable=False),
        sa.Column("model", sa.String(100), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(30), server_default="active"),
        sa.Column("current_mileage", sa.Float(), server_default="0"),
        sa.Column("fuel_type", sa.String(30)),
        sa.Column("tank_capacity", sa.Float()),
        sa.Column("notes", sa.Text()),
        *_timestamps(),
        sa.UniqueConstraint("organization_id", "registration_no", name="uq_trucks_org_registration"),
    )

    op.create_table(
        "drivers",
        sa.Column("id", sa.String(36), primary_key=True),
        _org_column(),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("phone", sa.String(30), nullable=False),
        sa.Column("email", sa.String(255)),
        sa.Column("whatsapp_number", sa.String(30)),
        sa.Column("license_number", sa.String(50), nullable=False),
        sa.Column("passport_number", sa.String(50)),
        sa.Column("status", sa.String(30), server_default="active"),
        sa.Column("assigned_truck_id", sa.String(36), sa.ForeignKey("trucks.id")),
        sa.Column("notes", sa.Text()),
        *_timestamps(),
    )

    op.create_table(
        "customers",
        sa.Column("id", sa.String(36), primary_key=True),
        _org_column(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255)),
        sa.Column("phone", sa.String(30)),
        sa.Column("address", sa.Text()),
        sa.Column("contact_person", sa.String(255)),
        sa.Column("status", sa.String(30), server_default="active"),
        sa.Column("notes", sa.Text()),
        *_timestamps(),
    )

    op.create_table(
        "trips",
        sa.Column("id", sa.String(36), primary_key=True),
        _org_column(),
        sa.Column("origin_city", sa.String(100), nullable=False),
        sa.Column("destination_city", sa.String(100), nullable=False),
        sa.Column("load_description", sa.Text()),
        sa.Column("load_weight", sa.Float()),
        sa.Column("estimated_mileage", sa.Float(), server_default="0"),
        sa.Column("actual_mileage", sa.Float()),
        sa.Column("revenue", sa.Float(), server_default="0"),
        sa.Column("status", sa.String(30), server_default="scheduled", index=True),
        sa.Column("scheduled_date", sa.Date(), nullable=False),
        sa.Column("truck_id", sa.String(36), sa.ForeignKey("trucks.id"), nullable=False),
        sa.Column("driver_id", sa.String(36), sa.ForeignKey("drivers.id"), nullable=False),
        sa.Column("customer_id", sa.String(36), sa.ForeignKey("customers.id")),
        sa.Column("notes", sa.Text()),
        *_timestamps(),
    )

    op.create_table(
        "expenses",
        sa.Column("id", sa.String(36), primary_key=True),
        _org_column(),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("trip_id", sa.String(36), sa.ForeignKey("trips.id"), nullable=False),
        sa.Column("receipt_url", sa.String(500)),
        sa.Column("notes", sa.Text()),
        *_timestamps(),
    )

    op.create_table(
        "invoices",
        sa.Column("id", sa.String(36), primary_key=True),
        _org_column(),
        sa.Column("invoice_number", sa.String(50), nullable=False, index=True),
        sa.Column("customer_id", sa.String(36), sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("issue_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("subtotal", sa.Float(), server_default="0"),
        sa.Column("tax", sa.Float(), server_default="0"),
        sa.Column("total", sa.Float(), server_default="0"),
        sa.Column("amount_paid", sa.Float(), server_default="0"),
        sa.Column("balance", sa.Float(), server_default="0"),
        sa.Column("status", sa.String(30), server_default="draft", index=True),
        sa.Column("notes", sa.Text()),
        *_timestamps(),
        sa.UniqueConstraint("organization_id", "invoice_number", name="uq_invoices_org_number"),
    )

    op.create_table(
        "employees",
        sa.Column("id", sa.String(36), primary_key=True),
        _org_column(),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255)),
        sa.Column("phone", sa.String(30), nullable=False),
        sa.Column("position", sa.String(100), nullable=False),
        sa.Column("department", sa.String(100)),
        sa.Column("status", sa.String(30), server_default="active"),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("salary", sa.Float()),
        sa.Column("notes", sa.Text()),
        *_timestamps(),
    )

    op.create_table(
        "inventory_items",
        sa.Column("id", sa.String(36), primary_key=True),
        _org_column(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("sku", sa.String(100)),
        sa.Column("category", sa.String(100)),
        sa.Column("quantity", sa.Integer(), server_default="0"),
        sa.Column("min_quantity", sa.Integer(), server_default="0"),
        sa.Column("unit_cost", sa.Float()),
        sa.Column("location", sa.String(255)),
        sa.Column("supplier", sa.String(255)),
        sa.Column("notes", sa.Text()),
        *_timestamps(),
    )

    # ── Workflow ─────────────────────────────────────────────

    op.create_table(
        "edit_requests",
        sa.Column("id", sa.String(36), primary_key=True),
        _org_column(),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(36), nullable=False),
        sa.Column("reason", sa.Text(), server_default=""),
        sa.Column("original_data", sa.JSON(), server_default="{}"),
        sa.Column("proposed_data", sa.JSON(), server_default="{}"),
        sa.Column(
            "status",
            sa.Enum("PENDING", "APPROVED", "REJECTED", name="editrequeststatus"),
            server_default="PENDING",
            index=True,
        ),
        sa.Column("requested_by", sa.String(36), nullable=False, index=True),
        sa.Column("approved_by", sa.String(36)),
        sa.Column("approved_at", sa.DateTime()),
        sa.Column("rejection_reason", sa.Text()),
        sa.Column("review_notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False, index=True),
    )
    op.create_index(
        "ix_edit_requests_target",
        "edit_requests",
        ["organization_id", "entity_type", "entity_id"],
    )
    op.create_index(
        "uq_edit_requests_one_pending",
        "edit_requests",
        ["organization_id", "entity_type", "entity_id"],
        unique=True,
        postgresql_where=sa.text("status = 'PENDING'"),
    )

    # ── Notifications / audit ────────────────────────────────

    op.create_table(
        "user_notifications",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=False, index=True),
        _org_column(),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("entity_type", sa.String(50)),
        sa.Column("entity_id", sa.String(36)),
        sa.Column("link", sa.String(255)),
        sa.Column("details", sa.JSON()),
        sa.Column("is_read", sa.Boolean(), server_default=sa.false()),
        sa.Column("read_at", sa.DateTime()),
        sa.Column("is_dismissed", sa.Boolean(), server_default=sa.false()),
        sa.Column("dismissed_at", sa.DateTime()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False, index=True),
    )

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        _org_column(),
        sa.Column("user_id", sa.String(36), nullable=False, index=True),
        sa.Column("user_name", sa.String(200), nullable=False),
        sa.Column("action", sa.String(50), nullable=False, index=True),
        sa.Column("entity_type", sa.String(50), nullable=False, index=True),
        sa.Column("entity_id", sa.String(36)),
        sa.Column("summary", sa.Text()),
        sa.Column("details", sa.JSON()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False, index=True),
    )


def downgrade() -> None:
    op.drop_table("activity_logs")
    op.drop_table("user_notifications")
    op.drop_index("uq_edit_requests_one_pending", table_name="edit_requests")
    op.drop_index("ix_edit_requests_target", table_name="edit_requests")
    op.drop_table("edit_requests")
    op.drop_table("inventory_items")
    op.drop_table("employees")
    op.drop_table("invoices")
    op.drop_table("expenses")
    op.drop_table("trips")
    op.drop_table("customers")
    op.drop_table("drivers")
    op.drop_table("trucks")
    op.drop_table("users")
    op.drop_table("organizations")
    sa.Enum(name="editrequeststatus").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="userrole").drop(op.get_bind(), checkfirst=True)
