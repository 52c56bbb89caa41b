"""Recipe cost calculator tests: menu cost, profit, margin and refresh."""

from decimal import Decimal

import pytest
from sqlalchemy import select

from kitchenledger.middleware.exceptions import (
    InvalidQuantity,
    ResourceNotFoundError,
    StaleCostData,
    UnknownIngredient,
)
from kitchenledger.models import ActivityLog
from kitchenledger.services.recipe_cost import (
    compute_menu_cost,
    get_menu,
    margin_of,
    recompute_menu_cost,
    remove_recipe_line,
    set_menu_price,
    set_recipe_line,
)

from conftest import make_menu


async def buy(service, ingredient, quantity, price):
    await service.record_purchase(
        ingredient.id, Decimal(quantity), unit_price=Decimal(price), vendor="Makro", actor="tester",
    )


@pytest.mark.unit
@pytest.mark.asyncio
class TestMenuCost:

    async def test_cost_profit_margin(self, db_session, service, shrimp, rice):
        """7 shrimp @ 50 + 0.2 rice @ 30 against a price of 500."""
        await buy(service, shrimp, "10", "50")
        await buy(service, rice, "10", "30")
        menu = await make_menu(db_session, "A1", Decimal("500"), {shrimp: "7", rice: "0.2"})

        result = await compute_menu_cost(db_session, menu)

        assert result.cost == Decimal("356")
        assert result.profit == Decimal("144")
        assert result.margin == Decimal("0.2880")
        assert result.needs_review is False

    async def test_compute_is_idempotent(self, db_session, service, shrimp):
        await buy(service, shrimp, "10", "50")
        menu = await make_menu(db_session, "A1", Decimal("500"), {shrimp: "7"})

        first = await compute_menu_cost(db_session, menu)
        second = await compute_menu_cost(db_session, menu)

        assert first == second

    async def test_zero_price_has_zero_margin(self, db_session, service, shrimp):
        await buy(service, shrimp, "10", "50")
        menu = await make_menu(db_session, "STAFF", Decimal("0"), {shrimp: "1"})

        result = await compute_menu_cost(db_session, menu)

        assert result.profit == Decimal("-50")
        assert result.margin == Decimal("0")

    async def test_empty_recipe_costs_nothing(self, db_session):
        menu = await make_menu(db_session, "W1", Decimal("20"))

        result = await compute_menu_cost(db_session, menu)

        assert result.cost == Decimal("0")
        assert result.margin == Decimal("1.0000")

    async def test_missing_cost_raises(self, db_session, service, shrimp, rice):
        """An unpriced ingredient makes the whole menu cost unavailable."""
        await buy(service, shrimp, "10", "50")
        menu = await make_menu(db_session, "A1", Decimal("500"), {shrimp: "7", rice: "0.2"})

        with pytest.raises(StaleCostData) as exc_info:
            await compute_menu_cost(db_session, menu)
        assert exc_info.value.ingredient_ids == [rice.id]

    async def test_recompute_clears_unavailable_cost(self, db_session, rice):
        menu = await make_menu(db_session, "A1", Decimal("500"), {rice: "0.2"})
        menu.cost_price = Decimal("99")

        assert await recompute_menu_cost(db_session, menu) is None
        assert menu.cost_price is None
        assert menu.profit_margin is None

    async def test_needs_review_propagates(self, db_session, service, shrimp):
        await buy(service, shrimp, "10", "50")
        shrimp.cost_needs_review = True
        menu = await make_menu(db_session, "A1", Decimal("500"), {shrimp: "7"})

        result = await compute_menu_cost(db_session, menu)

        assert result.needs_review is True
        assert result.cost == Decimal("350")


@pytest.mark.unit
def test_margin_rounding():
    assert margin_of(Decimal("3"), Decimal("1")) == Decimal("0.3333")
    assert margin_of(Decimal("0"), Decimal("-5")) == Decimal("0")


@pytest.mark.unit
@pytest.mark.asyncio
class TestStoredMenuCost:
    """Stored cost fields follow purchases, recipe edits and price changes."""

    async def test_purchase_refreshes_menu(self, db_session, service, shrimp):
        menu = await make_menu(db_session, "A1", Decimal("500"), {shrimp: "7"})
        assert menu.cost_price is None

        await buy(service, shrimp, "10", "50")

        menu = await get_menu(db_session, menu.id)
        assert menu.cost_price == Decimal("350")
        assert menu.profit == Decimal("150")
        assert menu.profit_margin == Decimal("0.3000")

    async def test_set_recipe_line_adds_and_replaces(self, db_session, service, shrimp):
        await buy(service, shrimp, "10", "50")
        menu = await make_menu(db_session, "A1", Decimal("500"))

        await set_recipe_line(db_session, menu.id, shrimp.id, Decimal("7"), "chef")
        line = await set_recipe_line(db_session, menu.id, shrimp.id, Decimal("5"), "chef", notes="smaller")

        menu = await get_menu(db_session, menu.id)
        assert len(menu.recipe_lines) == 1
        assert line.unit == "kg"
        assert menu.cost_price == Decimal("250")

        actions = (
            await db_session.execute(
                select(ActivityLog.action).where(ActivityLog.entity_id == menu.id)
            )
        ).scalars().all()
        assert sorted(actions) == ["recipe_line_added", "recipe_line_updated"]

    async def test_set_recipe_line_validation(self, db_session, shrimp):
        menu = await make_menu(db_session, "A1", Decimal("500"))

        with pytest.raises(InvalidQuantity):
            await set_recipe_line(db_session, menu.id, shrimp.id, Decimal("0"), "chef")
        with pytest.raises(UnknownIngredient):
            await set_recipe_line(db_session, menu.id, "nope", Decimal("1"), "chef")
        with pytest.raises(ResourceNotFoundError):
            await set_recipe_line(db_session, "nope", shrimp.id, Decimal("1"), "chef")

    async def test_remove_recipe_line(self, db_session, service, shrimp, rice):
        await buy(service, shrimp, "10", "50")
        menu = await make_menu(db_session, "A1", Decimal("500"), {shrimp: "7", rice: "0.2"})
        assert await recompute_menu_cost(db_session, menu) is None

        await remove_recipe_line(db_session, menu.id, rice.id, "chef")

        menu = await get_menu(db_session, menu.id)
        assert [line.ingredient_id for line in menu.recipe_lines] == [shrimp.id]
        assert menu.cost_price == Decimal("350")

        with pytest.raises(ResourceNotFoundError):
            await remove_recipe_line(db_session, menu.id, rice.id, "chef")

    async def test_price_change_recomputes_margin(self, db_session, service, shrimp):
        await buy(service, shrimp, "10", "50")
        menu = await make_menu(db_session, "A1", Decimal("500"), {shrimp: "7"})

        await set_menu_price(db_session, menu.id, Decimal("700"), "owner")

        menu = await get_menu(db_session, menu.id)
        assert menu.profit == Decimal("350")
        assert menu.profit_margin == Decimal("0.5000")

    async def test_negative_price_rejected(self, db_session):
        menu = await make_menu(db_session, "A1", Decimal("500"))

        with pytest.raises(InvalidQuantity):
            await set_menu_price(db_session, menu.id, Decimal("-1"), "owner")
