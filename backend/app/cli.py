"""Management CLI for organization and workflow operations.

Usage:
    python -m app.cli create-tables                                  # Create every table
    python -m app.cli create-admin <org> <email> <name> <password>   # Bootstrap an admin
    python -m app.cli list-organizations                             # Show organizations
    python -m app.cli pending-requests                               # Pending edit requests per org
"""

import sys

from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session

from app.auth.password import hash_password
from app.config import settings
from app.database import ALL_METADATA
from app.models import EditRequest, EditRequestStatus, Organization, User, UserRole


def get_engine():
    return create_engine(settings.database_url_sync)


def create_tables():
    """Create all tables that don't exist yet (use Alembic for upgrades)."""
    engine = get_engine()
    for metadata in ALL_METADATA:
        metadata.create_all(engine, checkfirst=True)
    print("  Tables created.")


def create_admin(org_name: str, email: str, full_name: str, password: str):
    """Create (or reuse) an organization and add an admin user to it."""
    engine = get_engine()
    with Session(engine) as session:
        if session.execute(select(User).where(User.email == email)).scalar_one_or_none():
            print(f"  FAILED: {email} is already registered")
            return

        org = session.execute(
            select(Organization).where(Organization.name == org_name)
        ).scalar_one_or_none()
        if org is None:
            org = Organization(name=org_name)
            session.add(org)
            session.flush()

        session.add(User(
            email=email,
            hashed_password=hash_password(password),
            full_name=full_name,
            role=UserRole.ADMIN,
            organization_id=org.id,
        ))
        session.commit()
        print(f"  OK: {email} is admin of {org.name} ({org.id})")


def list_organizations():
    engine = get_engine()
    with Session(engine) as session:
        orgs = session.execute(select(Organization).order_by(Organization.name)).scalars().all()
        for o in orgs:
            status = "active" if o.is_active else "inactive"
            print(f"  {o.id}  {o.name}  ({status})")
    print(f"\n{len(orgs)} organization(s)")


def pending_requests():
    engine = get_engine()
    with Session(engine) as session:
        rows = session.execute(
            select(EditRequest.organization_id, func.count(EditRequest.id))
            .where(EditRequest.status == EditRequestStatus.PENDING)
            .group_by(EditRequest.organization_id)
        ).all()
    for org_id, count in rows:
        print(f"  {org_id}: {count}")
    print(f"\n{sum(c for _, c in rows)} pending edit request(s)")


if __name__ == "__main__":
    cmd = sys.argv[1] if len(sys.argv) > 1 else ""
    if cmd == "create-tables":
        create_tables()
    elif cmd == "create-admin" and len(sys.argv) == 6:
        create_admin(*sys.argv[2:6])
    elif cmd == "list-organizations":
        list_organizations()
    elif cmd == "pending-requests":
        pending_requests()
    else:
        print(
            "Usage: python -m app.cli "
            "[create-tables|create-admin <org> <email> <name> <password>"
            "|list-organizations|pending-requests]"
        )
