"""Pytest configuration and fixtures for WD Logistics tests.

Every test gets its own throwaway SQLite database (aiosqlite) with all
tables created, a seeded organization, and an httpx client bound to the
ASGI app with the database and notifier dependencies overridden.
"""

from dataclasses import dataclass
from datetime import date
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.auth.jwt import create_access_token
from app.auth.password import hash_password
from app.auth.permissions import resolve_permissions
from app.database import ALL_METADATA, get_db
from app.main import app
from app.models.public.organization import Organization
from app.models.public.user import User, UserRole
from app.models.tenant.customer import Customer
from app.models.tenant.invoice import Invoice
from app.models.tenant.truck import Truck
from app.routers.edit_requests import get_notifier
from app.services.notifications import NotificationDispatcher

TEST_PASSWORD = "testpassword123"
_PASSWORD_HASH = hash_password(TEST_PASSWORD)


# ── Test Database Setup ──────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Create a file-backed SQLite engine with every table."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        for metadata in ALL_METADATA:
            await conn.run_sync(metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for service-level tests (the test owns commit/rollback)."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def notifier(session_factory) -> AsyncGenerator[NotificationDispatcher, None]:
    """Dispatcher writing to the test database; drained on teardown."""
    dispatcher = NotificationDispatcher(session_factory)
    yield dispatcher
    await dispatcher.drain()


# ── Seed Data ────────────────────────────────────────────────────

@dataclass
class Seed:
    org: Organization
    other_org: Organization
    admin: User
    second_admin: User
    supervisor: User
    staff: User
    other_staff: User
    outsider: User
    truck: Truck
    other_org_truck: Truck
    customer: Customer
    invoice: Invoice


def _user(org: Organization, email: str, name: str, role: UserRole) -> User:
    return User(
        email=email,
        full_name=name,
        hashed_password=_PASSWORD_HASH,
        role=role,
        is_active=True,
        organization_id=org.id,
    )


@pytest_asyncio.fixture
async def seed(session_factory) -> Seed:
    """One organization with every role, a truck, a customer and an invoice,
    plus a second organization for scoping checks. Committed."""
    async with session_factory() as session:
        org = Organization(name="WD Logistics Test")
        other_org = Organization(name="Rival Haulage")
        session.add_all([org, other_org])
        await session.flush()

        admin = _user(org, "admin@wdlogistics.co.zw", "Alice Admin", UserRole.ADMIN)
        second_admin = _user(org, "admin2@wdlogistics.co.zw", "Andre Admin", UserRole.ADMIN)
        supervisor = _user(org, "super@wdlogistics.co.zw", "Sam Supervisor", UserRole.SUPERVISOR)
        staff = _user(org, "staff@wdlogistics.co.zw", "Tariro Staff", UserRole.STAFF)
        other_staff = _user(org, "staff2@wdlogistics.co.zw", "Kuda Staff", UserRole.STAFF)
        outsider = _user(other_org, "admin@rivalhaulage.co.zw", "Rita Rival", UserRole.ADMIN)

        truck = Truck(
            organization_id=org.id,
            registration_no="ABC-123",
            make="Volvo",
            model="FH16",
            year=2020,
            status="active",
            current_mileage=120000,
        )
        other_org_truck = Truck(
            organization_id=other_org.id,
            registration_no="XYZ-999",
            make="Scania",
            model="R500",
            year=2019,
        )
        customer = Customer(organization_id=org.id, name="Harare Freight Co")
        session.add_all([
            admin, second_admin, supervisor, staff, other_staff, outsider,
            truck, other_org_truck, customer,
        ])
        await session.flush()

        invoice = Invoice(
            organization_id=org.id,
            invoice_number="INV-0001",
            customer_id=customer.id,
            issue_date=date(2026, 1, 5),
            due_date=date(2026, 2, 4),
            subtotal=1000,
            tax=0,
            total=1000,
            amount_paid=0,
            balance=1000,
            status="sent",
        )
        session.add(invoice)
        await session.commit()

        return Seed(
            org=org,
            other_org=other_org,
            admin=admin,
            second_admin=second_admin,
            supervisor=supervisor,
            staff=staff,
            other_staff=other_staff,
            outsider=outsider,
            truck=truck,
            other_org_truck=other_org_truck,
            customer=customer,
            invoice=invoice,
        )


# ── HTTP Client ──────────────────────────────────────────────────

@pytest_asyncio.fixture
async def client(session_factory, notifier) -> AsyncGenerator[AsyncClient, None]:
    """Test client with the database and notifier dependencies overridden."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    """Build bearer headers for a user (permissions resolved from role)."""

    def _headers(user: User) -> dict:
        token = create_access_token(
            user_id=user.id,
            role=user.role.value,
            permissions=resolve_permissions(user.role.value),
            organization_id=user.organization_id,
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "auth: Authentication tests")
    config.addinivalue_line("markers", "notifications: Notification tests")
