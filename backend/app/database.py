"""Database engine, session factory, and base classes.

Two separate DeclarativeBase classes:
  - PublicBase  → platform tables (organizations, users)
  - TenantBase  → organization-scoped tables (trucks, trips, edit requests, …);
                  every row carries an `organization_id` and every query
                  filters on it

One session dependency for FastAPI:
  - get_db()  → request-scoped unit of work: commit on success,
                rollback on any exception
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase

from app.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_size=20,
    max_overflow=10,
)

async_session = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


# ── Base classes ────────────────────────────────────────────

class PublicBase(DeclarativeBase):
    """Platform-level models shared by every organization."""
    pass


class TenantBase(DeclarativeBase):
    """Models whose rows belong to a single organization."""
    pass


ALL_METADATA = [PublicBase.metadata, TenantBase.metadata]


# ── Session dependency ──────────────────────────────────────

async def get_db() -> AsyncSession:
    """Yield a session that commits when the request handler succeeds."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
