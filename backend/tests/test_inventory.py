"""InventoryService tests: the four business events and the read views."""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from kitchenledger.middleware.exceptions import (
    BusinessLogicError,
    InsufficientStock,
    InvalidQuantity,
    ResourceNotFoundError,
    UnknownIngredient,
)
from kitchenledger.models import LedgerEntry, Purchase, Sale, StockAdjustment, WasteRecord
from kitchenledger.services.costing import WeightedAveragePolicy
from kitchenledger.services.inventory import InventoryService

from conftest import TODAY, days_ago, make_menu


async def count(db, model) -> int:
    return await db.scalar(select(func.count()).select_from(model))


async def stock_up(service, ingredient, quantity, price="50"):
    return await service.record_purchase(
        ingredient.id, Decimal(quantity), unit_price=Decimal(price), vendor="Makro", actor="tester",
    )


@pytest.mark.unit
@pytest.mark.asyncio
class TestRecordPurchase:

    async def test_purchase_entry(self, db_session, service, shrimp):
        entry = await service.record_purchase(
            shrimp.id, Decimal("7"), unit_price=Decimal("50"), vendor=" Makro ",
            vendor_invoice="INV-1", actor="buyer",
        )

        purchase = (await db_session.execute(select(Purchase))).scalar_one()
        assert entry.transaction_type == "purchase"
        assert entry.quantity_change == Decimal("7")
        assert entry.unit == "kg"
        assert entry.reference_type == "purchase"
        assert entry.reference_id == str(purchase.id)
        assert purchase.vendor == "Makro"
        assert purchase.total_amount == Decimal("350.00")
        assert purchase.purchase_date == TODAY
        assert shrimp.current_stock == Decimal("7")

    @pytest.mark.parametrize("quantity", ["0", "-1"])
    async def test_non_positive_quantity(self, db_session, service, shrimp, quantity):
        with pytest.raises(InvalidQuantity):
            await service.record_purchase(
                shrimp.id, Decimal(quantity), unit_price=Decimal("5"), vendor="Makro", actor="buyer",
            )
        assert await count(db_session, Purchase) == 0

    async def test_other_validation(self, service, shrimp):
        with pytest.raises(InvalidQuantity):
            await service.record_purchase(
                shrimp.id, Decimal("1"), unit_price=Decimal("-5"), vendor="Makro", actor="buyer",
            )
        with pytest.raises(BusinessLogicError):
            await service.record_purchase(
                shrimp.id, Decimal("1"), unit_price=Decimal("5"), vendor=" ", actor="buyer",
            )
        with pytest.raises(BusinessLogicError):
            await service.record_purchase(
                shrimp.id, Decimal("1"), unit_price=Decimal("5"), vendor="Makro",
                purchase_date=TODAY, expiry_date=days_ago(1), actor="buyer",
            )
        with pytest.raises(InvalidQuantity):
            await service.record_purchase(
                shrimp.id, Decimal("1"), unit=" ", unit_price=Decimal("5"), vendor="Makro", actor="buyer",
            )

    async def test_unknown_ingredient(self, service):
        with pytest.raises(UnknownIngredient):
            await service.record_purchase(
                "nope", Decimal("1"), unit_price=Decimal("5"), vendor="Makro", actor="buyer",
            )


@pytest.mark.unit
@pytest.mark.asyncio
class TestRecordSale:

    async def test_one_entry_per_recipe_ingredient(self, db_session, service, shrimp, rice):
        await stock_up(service, shrimp, "10")
        await stock_up(service, rice, "10", "30")
        menu = await make_menu(db_session, "A1", Decimal("500"), {shrimp: "0.5", rice: "0.2"})

        entries = await service.record_sale(menu.id, 4, actor="cashier")

        sale = (await db_session.execute(select(Sale))).scalar_one()
        assert len(entries) == 2
        assert [e.ingredient_id for e in entries] == sorted([shrimp.id, rice.id])
        assert {e.transaction_type for e in entries} == {"sale"}
        assert {e.reference_id for e in entries} == {str(sale.id)}
        changes = {e.ingredient_id: e.quantity_change for e in entries}
        assert changes[shrimp.id] == Decimal("-2")
        assert changes[rice.id] == Decimal("-0.8")
        assert shrimp.current_stock == Decimal("8")
        assert rice.current_stock == Decimal("9.2")
        assert sale.total_amount == Decimal("2000.00")

    async def test_insufficient_ingredient_blocks_whole_sale(self, db_session, service, shrimp, rice):
        """One short ingredient rejects the sale with no partial writes."""
        await stock_up(service, shrimp, "10")
        await stock_up(service, rice, "1", "30")
        menu = await make_menu(db_session, "A1", Decimal("500"), {shrimp: "1", rice: "2"})
        entries_before = await count(db_session, LedgerEntry)

        with pytest.raises(InsufficientStock) as exc_info:
            await service.record_sale(menu.id, 1, actor="cashier")

        assert exc_info.value.ingredient_id == rice.id
        assert exc_info.value.requested == Decimal("2")
        assert await count(db_session, LedgerEntry) == entries_before
        assert await count(db_session, Sale) == 0
        assert shrimp.current_stock == Decimal("10")

    @pytest.mark.parametrize("quantity", [0, -2, 1.5, True])
    async def test_quantity_must_be_positive_whole(self, db_session, service, shrimp, quantity):
        menu = await make_menu(db_session, "A1", Decimal("500"), {shrimp: "1"})

        with pytest.raises(InvalidQuantity):
            await service.record_sale(menu.id, quantity, actor="cashier")

    async def test_inactive_menu(self, db_session, service, shrimp):
        menu = await make_menu(db_session, "A1", Decimal("500"), {shrimp: "1"})
        menu.is_active = False
        await db_session.flush()

        with pytest.raises(BusinessLogicError):
            await service.record_sale(menu.id, 1, actor="cashier")

    async def test_unknown_menu(self, service):
        with pytest.raises(ResourceNotFoundError):
            await service.record_sale("nope", 1, actor="cashier")

    async def test_price_override(self, db_session, service, shrimp):
        await stock_up(service, shrimp, "10")
        menu = await make_menu(db_session, "A1", Decimal("500"), {shrimp: "1"})

        sale, _entries = await service.post_sale(menu.id, 2, Decimal("450"), actor="cashier")

        assert sale.unit_price == Decimal("450")
        assert sale.total_amount == Decimal("900.00")


@pytest.mark.unit
@pytest.mark.asyncio
class TestRecordAdjustment:

    async def test_adjust_to_counted_value(self, db_session, service, shrimp):
        await stock_up(service, shrimp, "10")

        entry = await service.record_adjustment(shrimp.id, Decimal("8.5"), "Monthly count", actor="manager")

        adjustment = (await db_session.execute(select(StockAdjustment))).scalar_one()
        assert entry.transaction_type == "adjustment"
        assert entry.quantity_change == Decimal("-1.5")
        assert adjustment.previous_stock == Decimal("10")
        assert adjustment.new_stock == Decimal("8.5")
        assert shrimp.current_stock == Decimal("8.5")

    async def test_no_change_rejected(self, service, shrimp):
        await stock_up(service, shrimp, "10")

        with pytest.raises(InvalidQuantity):
            await service.record_adjustment(shrimp.id, Decimal("10"), "Recount", actor="manager")

    async def test_reason_required(self, service, shrimp):
        with pytest.raises(BusinessLogicError):
            await service.record_adjustment(shrimp.id, Decimal("3"), "", actor="manager")

    async def test_negative_count_rejected(self, service, shrimp):
        with pytest.raises(InvalidQuantity):
            await service.record_adjustment(shrimp.id, Decimal("-1"), "Recount", actor="manager")


@pytest.mark.unit
@pytest.mark.asyncio
class TestRecordWaste:

    async def test_waste_entry_and_cost(self, db_session, service, shrimp):
        await stock_up(service, shrimp, "10")

        entry = await service.record_waste(
            shrimp.id, Decimal("3"), "Left out overnight", actor="chef", waste_type="spoiled",
        )

        waste = (await db_session.execute(select(WasteRecord))).scalar_one()
        assert entry.quantity_change == Decimal("-3")
        assert entry.reference_id == str(waste.id)
        assert waste.estimated_cost == Decimal("150.00")
        assert waste.waste_type == "spoiled"
        assert shrimp.current_stock == Decimal("7")

    async def test_waste_beyond_stock(self, db_session, service, shrimp):
        await stock_up(service, shrimp, "2")

        with pytest.raises(InsufficientStock):
            await service.record_waste(shrimp.id, Decimal("3"), "Dropped", actor="chef")
        assert await count(db_session, WasteRecord) == 0

    async def test_negative_stock_when_allowed(self, db_session, shrimp):
        """With negative stock enabled, consumption may run ahead of receipts."""
        service = InventoryService(
            db_session, WeightedAveragePolicy(), allow_negative_stock=True, as_of=TODAY,
        )

        await service.record_waste(shrimp.id, Decimal("5"), "Dropped", actor="chef")

        waste = (await db_session.execute(select(WasteRecord))).scalar_one()
        assert shrimp.current_stock == Decimal("-5")
        assert waste.estimated_cost is None


@pytest.mark.unit
@pytest.mark.asyncio
class TestViews:

    async def test_current_stock(self, service, shrimp):
        await stock_up(service, shrimp, "4")

        assert await service.current_stock(shrimp.id) == Decimal("4")
        with pytest.raises(UnknownIngredient):
            await service.current_stock("nope")

    async def test_low_stock_sorted_by_shortage(self, service, shrimp, rice):
        items = await service.low_stock_list()
        assert [item.name for item in items] == ["Jasmine rice", "Shrimp"]

        await stock_up(service, rice, "10", "30")
        items = await service.low_stock_list()

        assert [item.name for item in items] == ["Shrimp"]
        assert items[0].shortage == Decimal("2")
        assert items[0].reorder_value is None

    async def test_low_stock_reorder_value(self, service, shrimp):
        await stock_up(service, shrimp, "1.5", "40")

        [item] = await service.low_stock_list()

        assert item.shortage == Decimal("0.5")
        assert item.reorder_value == Decimal("20")

    async def test_menu_cost_view(self, db_session, service, shrimp):
        await stock_up(service, shrimp, "10")
        menu = await make_menu(db_session, "A1", Decimal("500"), {shrimp: "7"})

        result = await service.menu_cost(menu.id)

        assert result.cost == Decimal("350")
        assert result.margin == Decimal("0.3000")
