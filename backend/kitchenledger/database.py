"""Database engine, session factory, and declarative base.

All ledger, catalog, and costing tables share a single DeclarativeBase.
The request-scoped `get_db()` dependency wraps one business event in one
transaction: it commits when the handler returns and rolls back on any
exception, so a failed RecordSale leaves no partial ledger rows behind.
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase

from kitchenledger.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_size=20,
    max_overflow=10,
)

async_session = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncSession:
    """Yield a session whose transaction spans the whole request."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
