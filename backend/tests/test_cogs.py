"""Batch totals and COGS aggregation tests."""

from decimal import Decimal

import pytest

from kitchenledger.middleware.exceptions import (
    BusinessLogicError,
    InvalidQuantity,
    ResourceNotFoundError,
    Undefined,
)
from kitchenledger.services.cogs import (
    add_cost_line,
    cogs_for_period,
    cogs_for_sale,
    create_batch,
    get_batch,
    recompute_batch_total,
    remove_cost_line,
    update_cost_line,
)

from conftest import TODAY, days_ago, make_menu


async def line(db, batch, cost_type, quantity, unit_cost, name="item"):
    return await add_cost_line(
        db, batch.id,
        cost_type=cost_type,
        item_name=name,
        quantity=Decimal(quantity),
        unit_cost=Decimal(unit_cost),
    )


@pytest.mark.unit
@pytest.mark.asyncio
class TestBatchTotals:

    async def test_totals_from_lines(self, db_session):
        """total = Σ line totals; per unit = total / quantity."""
        batch = await create_batch(db_session, quantity=10, actor="chef", production_date=TODAY)
        await line(db_session, batch, "ingredient", "5", "10", "Shrimp")
        await line(db_session, batch, "labor", "2", "25", "Prep hours")

        totals = await recompute_batch_total(db_session, await get_batch(db_session, batch.id))

        assert totals.total_cost == Decimal("100.00")
        assert totals.cost_per_unit == Decimal("10.0000")
        assert totals.unit_cost() == Decimal("10.0000")
        assert batch.batch_number == f"BAT-{TODAY:%Y%m%d}-001"

    async def test_empty_batch_cost_per_unit_undefined(self, db_session):
        batch = await create_batch(db_session, quantity=0, actor="chef")
        await line(db_session, batch, "overhead", "1", "40")

        totals = await recompute_batch_total(db_session, await get_batch(db_session, batch.id))

        assert totals.total_cost == Decimal("40.00")
        assert totals.cost_per_unit is None
        with pytest.raises(Undefined):
            totals.unit_cost()

    async def test_negative_quantity_rejected(self, db_session):
        with pytest.raises(InvalidQuantity):
            await create_batch(db_session, quantity=-1, actor="chef")

    async def test_unknown_menu_rejected(self, db_session):
        with pytest.raises(ResourceNotFoundError):
            await create_batch(db_session, quantity=5, actor="chef", menu_id="nope")

    async def test_line_validation(self, db_session):
        batch = await create_batch(db_session, quantity=5, actor="chef")

        with pytest.raises(BusinessLogicError):
            await line(db_session, batch, "marketing", "1", "10")
        with pytest.raises(InvalidQuantity):
            await line(db_session, batch, "packaging", "0", "10")
        with pytest.raises(InvalidQuantity):
            await line(db_session, batch, "packaging", "1", "-10")

    async def test_update_line_recomputes(self, db_session):
        batch = await create_batch(db_session, quantity=4, actor="chef")
        cost_line = await line(db_session, batch, "packaging", "4", "2.5", "Boxes")

        updated = await update_cost_line(db_session, batch.id, cost_line.id, quantity=Decimal("8"))

        batch = await get_batch(db_session, batch.id)
        assert updated.total_cost == Decimal("20.00")
        assert batch.total_cost == Decimal("20.00")
        assert batch.cost_per_unit == Decimal("5.0000")

    async def test_rejected_update_leaves_line(self, db_session):
        batch = await create_batch(db_session, quantity=4, actor="chef")
        cost_line = await line(db_session, batch, "packaging", "4", "2.5", "Boxes")

        with pytest.raises(InvalidQuantity):
            await update_cost_line(db_session, batch.id, cost_line.id, unit_cost=Decimal("-1"))
        with pytest.raises(BusinessLogicError):
            await update_cost_line(db_session, batch.id, cost_line.id, total_cost=Decimal("1"))
        with pytest.raises(BusinessLogicError):
            await update_cost_line(db_session, batch.id, cost_line.id, quantity=None)

        assert cost_line.unit_cost == Decimal("2.5")
        assert cost_line.total_cost == Decimal("10.00")

    async def test_update_clears_unit_and_notes(self, db_session):
        batch = await create_batch(db_session, quantity=4, actor="chef")
        cost_line = await add_cost_line(
            db_session, batch.id,
            cost_type="packaging",
            item_name="Boxes",
            quantity=Decimal("4"),
            unit_cost=Decimal("2.5"),
            unit="box",
            notes="Supplier sample",
        )

        updated = await update_cost_line(db_session, batch.id, cost_line.id, unit=None, notes=None)

        assert updated.unit is None
        assert updated.notes is None
        assert updated.total_cost == Decimal("10.00")

    async def test_remove_line(self, db_session):
        batch = await create_batch(db_session, quantity=2, actor="chef")
        keep = await line(db_session, batch, "ingredient", "1", "30")
        drop = await line(db_session, batch, "labor", "1", "10")

        batch = await remove_cost_line(db_session, batch.id, drop.id)

        assert [cost_line.id for cost_line in batch.cost_lines] == [keep.id]
        assert batch.total_cost == Decimal("30.00")
        assert batch.cost_per_unit == Decimal("15.0000")


@pytest.mark.unit
@pytest.mark.asyncio
class TestSaleCogs:

    async def test_sale_cogs_components(self, db_session, service, shrimp):
        await service.record_purchase(
            shrimp.id, Decimal("10"), unit_price=Decimal("50"), vendor="Makro", actor="tester",
        )
        menu = await make_menu(db_session, "A1", Decimal("500"), {shrimp: "3.5"})

        sale, _entries = await service.post_sale(
            menu.id, 2, actor="cashier",
            packaging_cost=Decimal("10"), labor_cost=Decimal("20"),
        )
        record = await cogs_for_sale(db_session, sale.id)

        assert record.ingredient_cost == Decimal("350.00")
        assert record.packaging_cost == Decimal("10.00")
        assert record.overhead_cost == Decimal("0.00")
        assert record.total_cogs == Decimal("380.00")
        assert record.quantity == 2
        assert record.sale_date == TODAY

    async def test_unpriced_sale_has_no_total(self, db_session, service, rice):
        """No cost data means NULL COGS, not zero."""
        await service.record_adjustment(rice.id, Decimal("10"), "Opening count", actor="tester")
        menu = await make_menu(db_session, "R1", Decimal("40"), {rice: "0.25"})

        sale, _entries = await service.post_sale(menu.id, 1, actor="cashier", labor_cost=Decimal("5"))
        record = await cogs_for_sale(db_session, sale.id)

        assert record.ingredient_cost is None
        assert record.total_cogs is None
        assert record.labor_cost == Decimal("5.00")

    async def test_missing_sale(self, db_session):
        with pytest.raises(ResourceNotFoundError):
            await cogs_for_sale(db_session, 404)


@pytest.mark.unit
@pytest.mark.asyncio
class TestCogsPeriod:

    async def test_period_breakdown(self, db_session, service, shrimp, rice):
        await service.record_purchase(
            shrimp.id, Decimal("20"), unit_price=Decimal("50"), vendor="Makro",
            purchase_date=days_ago(30), actor="tester",
        )
        await service.record_adjustment(rice.id, Decimal("10"), "Opening count", actor="tester")
        shrimp_menu = await make_menu(db_session, "A1", Decimal("500"), {shrimp: "1"})
        rice_menu = await make_menu(db_session, "R1", Decimal("40"), {rice: "0.5"})

        await service.post_sale(shrimp_menu.id, 2, order_date=days_ago(3), actor="cashier")
        await service.post_sale(shrimp_menu.id, 1, order_date=days_ago(1), actor="cashier",
                                packaging_cost=Decimal("5"))
        await service.post_sale(rice_menu.id, 1, order_date=days_ago(2), actor="cashier",
                                labor_cost=Decimal("4"))
        # outside the period
        await service.post_sale(shrimp_menu.id, 1, order_date=days_ago(20), actor="cashier")

        period = await cogs_for_period(db_session, days_ago(7), TODAY)

        assert period.sales_count == 3
        assert period.units_sold == 4
        assert period.ingredient_cost == Decimal("150.00")
        assert period.total_cogs == Decimal("159.00")
        assert period.unpriced_sales == 1
        assert [m.menu_code for m in period.menus] == ["A1", "R1"]

        a1, r1 = period.menus
        assert a1.units_sold == 3
        assert a1.total_cogs == Decimal("155.00")
        assert a1.avg_cogs_per_unit == Decimal("51.6667")
        assert r1.unpriced_sales == 1
        assert r1.avg_cogs_per_unit is None

    async def test_inverted_period(self, db_session):
        with pytest.raises(BusinessLogicError):
            await cogs_for_period(db_session, TODAY, days_ago(1))
