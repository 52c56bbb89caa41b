"""Pytest configuration and fixtures for KitchenLedger tests.

Every test gets its own in-memory SQLite database (aiosqlite, one shared
connection through StaticPool) so the suite runs without PostgreSQL.
SQLite ignores SELECT ... FOR UPDATE; the locking paths still execute.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from kitchenledger.database import Base, get_db
from kitchenledger.deps import get_costing_policy
from kitchenledger.main import app
from kitchenledger.models import Ingredient, Menu, RecipeLine
from kitchenledger.services.costing import LatestPricePolicy, WeightedAveragePolicy
from kitchenledger.services.inventory import InventoryService


TODAY = date(2026, 10, 19)


# ── Test Database Setup ──────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine():
    """Fresh in-memory database with every table created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for service-level tests; rolled back afterwards."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose requests commit or roll back like production."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_costing_policy] = lambda: WeightedAveragePolicy(90)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ── Services ─────────────────────────────────────────────────────

@pytest.fixture
def service(db_session: AsyncSession) -> InventoryService:
    """Weighted-average service pinned to a fixed business date."""
    return InventoryService(db_session, WeightedAveragePolicy(90), as_of=TODAY)


@pytest.fixture
def latest_service(db_session: AsyncSession) -> InventoryService:
    return InventoryService(db_session, LatestPricePolicy(), as_of=TODAY)


# ── Test Data Fixtures ───────────────────────────────────────────

async def make_ingredient(
    db: AsyncSession,
    name: str,
    unit: str = "kg",
    min_stock: Decimal = Decimal("0"),
    **fields,
) -> Ingredient:
    fields.setdefault("current_stock", Decimal("0"))
    fields.setdefault("is_active", True)
    ingredient = Ingredient(name=name, unit=unit, min_stock=min_stock, **fields)
    db.add(ingredient)
    await db.flush()
    return ingredient


async def make_menu(
    db: AsyncSession,
    code: str,
    price: Decimal,
    recipe: dict | None = None,
) -> Menu:
    """Create a menu; `recipe` maps Ingredient -> quantity per serve."""
    menu = Menu(menu_code=code, name=f"Menu {code}", price=price, recipe_lines=[])
    for ingredient, qty in (recipe or {}).items():
        menu.recipe_lines.append(RecipeLine(
            ingredient_id=ingredient.id,
            quantity_per_serve=Decimal(qty),
            unit=ingredient.unit,
        ))
    db.add(menu)
    await db.flush()
    return menu


@pytest_asyncio.fixture
async def shrimp(db_session: AsyncSession) -> Ingredient:
    return await make_ingredient(db_session, "Shrimp", unit="kg", min_stock=Decimal("2"))


@pytest_asyncio.fixture
async def rice(db_session: AsyncSession) -> Ingredient:
    return await make_ingredient(db_session, "Jasmine rice", unit="kg", min_stock=Decimal("5"))


@pytest_asyncio.fixture
async def seeded(session_factory) -> dict:
    """Committed catalog for API tests: shrimp, rice and menu A1 (7 shrimp)."""
    async with session_factory() as session:
        shrimp = await make_ingredient(session, "Shrimp", unit="kg", min_stock=Decimal("2"))
        rice = await make_ingredient(session, "Jasmine rice", unit="kg", min_stock=Decimal("5"))
        menu = await make_menu(session, "A1", Decimal("120"), {shrimp: 7})
        await session.commit()
        return {"shrimp": shrimp.id, "rice": rice.id, "menu": menu.id}


def days_ago(n: int) -> date:
    return TODAY - timedelta(days=n)


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "costing: Costing policy tests")
