"""InventoryService — the four business events and the read views.

One service instance serves one request: it holds the request's session,
the deployment's costing policy and the negative-stock rule.  Each record_*
method is a single business event.  It validates everything it can before
writing, then writes the event row, its ledger entries, lot draws, cost
refreshes and COGS inside the caller's transaction.  Any exception leaves
the transaction to be rolled back by the session owner (get_db or the CLI).

    record_purchase    +stock, lot (FIFO), cost refresh, menu refresh
    record_sale        −stock per recipe line, lot draws (FIFO), COGS row
    record_adjustment  stock set to a counted value
    record_waste       −stock, lot draws (FIFO or a named lot)

Availability is judged against current_stock, which is the ledger fold.
Lots price what they hold; stock that never came through a lot (e.g. a
positive adjustment) is priced at the ingredient's current cost.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kitchenledger.middleware.exceptions import (
    BusinessLogicError,
    InsufficientStock,
    InvalidQuantity,
    UnknownIngredient,
)
from kitchenledger.models.events import Purchase, Sale, StockAdjustment, WasteRecord
from kitchenledger.models.ingredient import Ingredient
from kitchenledger.models.ledger import LedgerEntry
from kitchenledger.services import cogs as cogs_service
from kitchenledger.services import lots as lot_service
from kitchenledger.services.costing import CostingPolicy, recompute_ingredient_cost
from kitchenledger.services.ledger import append_entry, get_entry, post_correction
from kitchenledger.services.projector import lock_ingredient, lock_ingredients
from kitchenledger.services.recipe_cost import (
    MenuCost,
    compute_menu_cost,
    get_menu,
    recompute_menus_for_ingredient,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass
class LowStockItem:
    ingredient_id: str
    name: str
    unit: str
    current_stock: Decimal
    min_stock: Decimal
    shortage: Decimal
    cost_per_unit: Decimal | None
    reorder_value: Decimal | None
    supplier: str | None


class InventoryService:
    def __init__(
        self,
        db: AsyncSession,
        policy: CostingPolicy,
        *,
        allow_negative_stock: bool = False,
        as_of: date | None = None,
    ):
        self.db = db
        self.policy = policy
        self.allow_negative_stock = allow_negative_stock
        self._as_of = as_of

    @property
    def today(self) -> date:
        return self._as_of or date.today()

    # ── Internals ───────────────────────────────────────────

    async def _reprice(self, ingredient: Ingredient, on_date: date | None = None) -> None:
        as_of = max(self.today, on_date) if on_date else self.today
        update = await recompute_ingredient_cost(self.db, ingredient, self.policy, as_of)
        if update.changed:
            await recompute_menus_for_ingredient(self.db, ingredient.id)

    def _check_available(self, ingredient: Ingredient, required: Decimal) -> None:
        if self.allow_negative_stock:
            return
        available = ingredient.current_stock or ZERO
        if required > available:
            raise InsufficientStock(ingredient.id, required, available)

    async def _consume(
        self,
        ingredient: Ingredient,
        quantity: Decimal,
        lot_id: int | None = None,
    ) -> Decimal | None:
        """Draw lots for a consumption and return its cost (None if unknown)."""
        draws = []
        if lot_id is not None:
            draws = [await lot_service.consume_lot(self.db, lot_id, ingredient.id, quantity)]
        elif self.policy.tracks_lots:
            in_lots = await lot_service.available_quantity(self.db, ingredient.id)
            from_lots = min(quantity, in_lots)
            if from_lots > 0:
                draws = await lot_service.consume_fifo(self.db, ingredient.id, from_lots)

        cost = ZERO
        unpriced = quantity
        for draw in draws:
            if draw.cost is not None:
                cost += draw.cost
                unpriced -= draw.quantity

        if unpriced > 0:
            if ingredient.cost_per_unit is None:
                return None
            cost += unpriced * ingredient.cost_per_unit
        return cost

    # ── Business events ─────────────────────────────────────

    async def record_purchase(
        self,
        ingredient_id: str,
        quantity: Decimal,
        unit: str | None = None,
        unit_price: Decimal | None = None,
        vendor: str = "",
        purchase_date: date | None = None,
        *,
        actor: str,
        vendor_invoice: str | None = None,
        expiry_date: date | None = None,
        notes: str | None = None,
    ) -> LedgerEntry:
        quantity = Decimal(quantity)
        if quantity <= 0:
            raise InvalidQuantity("Purchase quantity must be positive")
        if unit_price is not None and unit_price < 0:
            raise InvalidQuantity("Purchase unit price must not be negative")
        if not vendor or not vendor.strip():
            raise BusinessLogicError("A purchase requires a vendor")
        purchase_date = purchase_date or self.today
        if expiry_date is not None and expiry_date < purchase_date:
            raise BusinessLogicError("Expiry date is before the purchase date")

        ingredient = await lock_ingredient(self.db, ingredient_id)
        unit = ingredient.unit if unit is None else unit.strip()
        if not unit:
            raise InvalidQuantity("Purchase unit must not be empty")

        purchase = Purchase(
            ingredient_id=ingredient.id,
            quantity=quantity,
            unit=unit,
            unit_price=unit_price,
            total_amount=cogs_service.money(quantity * unit_price) if unit_price is not None else None,
            vendor=vendor.strip(),
            vendor_invoice=vendor_invoice,
            purchase_date=purchase_date,
            notes=notes,
            recorded_by=actor,
        )
        self.db.add(purchase)
        await self.db.flush()

        entry = await append_entry(
            self.db,
            ingredient.id,
            transaction_type="purchase",
            quantity_change=quantity,
            unit=unit,
            created_by=actor,
            reference_type="purchase",
            reference_id=str(purchase.id),
            reason=f"Purchase from {purchase.vendor}",
        )
        if self.policy.tracks_lots:
            await lot_service.create_lot(self.db, purchase, expiry_date=expiry_date, notes=notes)

        await self._reprice(ingredient, purchase_date)
        logger.info(
            "Purchase #%s: %s %s %s @ %s from %s",
            purchase.id, quantity, unit, ingredient.name, unit_price, purchase.vendor,
        )
        return entry

    async def record_sale(
        self,
        menu_id: str,
        quantity: int,
        unit_price: Decimal | None = None,
        order_date: date | None = None,
        *,
        actor: str,
        packaging_cost: Decimal = ZERO,
        labor_cost: Decimal = ZERO,
        overhead_cost: Decimal = ZERO,
        notes: str | None = None,
    ) -> list[LedgerEntry]:
        """Post a sale and return its ledger entries."""
        _sale, entries = await self.post_sale(
            menu_id, quantity, unit_price, order_date,
            actor=actor,
            packaging_cost=packaging_cost,
            labor_cost=labor_cost,
            overhead_cost=overhead_cost,
            notes=notes,
        )
        return entries

    async def post_sale(
        self,
        menu_id: str,
        quantity: int,
        unit_price: Decimal | None = None,
        order_date: date | None = None,
        *,
        actor: str,
        packaging_cost: Decimal = ZERO,
        labor_cost: Decimal = ZERO,
        overhead_cost: Decimal = ZERO,
        notes: str | None = None,
    ) -> tuple[Sale, list[LedgerEntry]]:
        """Post a sale: one negative entry per recipe ingredient plus COGS."""
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise InvalidQuantity("Sale quantity must be a positive whole number")
        if unit_price is not None and unit_price < 0:
            raise InvalidQuantity("Sale unit price must not be negative")

        menu = await get_menu(self.db, menu_id)
        if not menu.is_active:
            raise BusinessLogicError(f"Menu {menu.menu_code} is not on sale")

        required = {
            line.ingredient_id: line.quantity_per_serve * quantity
            for line in menu.recipe_lines
        }
        ingredients = await lock_ingredients(self.db, required)
        for ingredient_id in sorted(required):
            self._check_available(ingredients[ingredient_id], required[ingredient_id])

        unit_price = menu.price if unit_price is None else unit_price
        sale = Sale(
            menu_id=menu.id,
            quantity=quantity,
            unit_price=unit_price,
            total_amount=cogs_service.money(unit_price * quantity),
            order_date=order_date or self.today,
            notes=notes,
            recorded_by=actor,
        )
        self.db.add(sale)
        await self.db.flush()

        entries = []
        ingredient_cost: Decimal | None = ZERO
        for ingredient_id in sorted(required):
            ingredient = ingredients[ingredient_id]
            cost = await self._consume(ingredient, required[ingredient_id])
            entries.append(await append_entry(
                self.db,
                ingredient_id,
                transaction_type="sale",
                quantity_change=-required[ingredient_id],
                unit=ingredient.unit,
                created_by=actor,
                reference_type="sale",
                reference_id=str(sale.id),
                reason=f"Sale of {quantity} x {menu.menu_code}",
            ))
            if cost is None or ingredient_cost is None:
                ingredient_cost = None
            else:
                ingredient_cost += cost

        if self.policy.tracks_lots:
            for ingredient_id in sorted(required):
                await self._reprice(ingredients[ingredient_id])

        await cogs_service.record_sale_cogs(
            self.db, sale,
            ingredient_cost=ingredient_cost,
            packaging_cost=packaging_cost,
            labor_cost=labor_cost,
            overhead_cost=overhead_cost,
        )
        logger.info(
            "Sale #%s: %d x %s, %d ledger entries", sale.id, quantity, menu.menu_code, len(entries),
        )
        return sale, entries

    async def record_adjustment(
        self,
        ingredient_id: str,
        new_stock: Decimal,
        reason: str,
        *,
        actor: str,
    ) -> LedgerEntry:
        """Set stock to a counted value by appending the difference."""
        new_stock = Decimal(new_stock)
        if not reason or not reason.strip():
            raise BusinessLogicError("A stock adjustment requires a reason")
        if new_stock < 0 and not self.allow_negative_stock:
            raise InvalidQuantity("Adjusted stock must not be negative")

        ingredient = await lock_ingredient(self.db, ingredient_id)
        previous = ingredient.current_stock or ZERO
        change = new_stock - previous
        if change == 0:
            raise InvalidQuantity(f"Stock of {ingredient.name} is already {previous}")

        adjustment = StockAdjustment(
            ingredient_id=ingredient.id,
            previous_stock=previous,
            new_stock=new_stock,
            quantity_change=change,
            unit=ingredient.unit,
            reason=reason.strip(),
            recorded_by=actor,
        )
        self.db.add(adjustment)
        await self.db.flush()

        entry = await append_entry(
            self.db,
            ingredient.id,
            transaction_type="adjustment",
            quantity_change=change,
            unit=ingredient.unit,
            created_by=actor,
            reference_type="adjustment",
            reference_id=str(adjustment.id),
            reason=adjustment.reason,
        )
        logger.info(
            "Adjustment #%s: %s %s -> %s (%s)",
            adjustment.id, ingredient.name, previous, new_stock, adjustment.reason,
        )
        return entry

    async def record_waste(
        self,
        ingredient_id: str,
        quantity: Decimal,
        reason: str,
        *,
        actor: str,
        waste_type: str = "other",
        waste_date: date | None = None,
        lot_id: int | None = None,
    ) -> LedgerEntry:
        """Write off stock, optionally from one named lot."""
        quantity = Decimal(quantity)
        if quantity <= 0:
            raise InvalidQuantity("Waste quantity must be positive")
        if not reason or not reason.strip():
            raise BusinessLogicError("A waste record requires a reason")

        ingredient = await lock_ingredient(self.db, ingredient_id)
        self._check_available(ingredient, quantity)
        cost = await self._consume(ingredient, quantity, lot_id=lot_id)

        waste = WasteRecord(
            ingredient_id=ingredient.id,
            quantity=quantity,
            unit=ingredient.unit,
            waste_type=waste_type or "other",
            reason=reason.strip(),
            estimated_cost=cogs_service.money(cost) if cost is not None else None,
            waste_date=waste_date or self.today,
            recorded_by=actor,
        )
        self.db.add(waste)
        await self.db.flush()

        entry = await append_entry(
            self.db,
            ingredient.id,
            transaction_type="waste",
            quantity_change=-quantity,
            unit=ingredient.unit,
            created_by=actor,
            reference_type="waste",
            reference_id=str(waste.id),
            reason=waste.reason,
        )
        if self.policy.tracks_lots or lot_id is not None:
            await self._reprice(ingredient)

        logger.info(
            "Waste #%s: %s %s %s (%s)", waste.id, quantity, ingredient.unit, ingredient.name, waste.waste_type,
        )
        return entry

    async def correct_entry(self, entry_id: int, reason: str, *, actor: str) -> LedgerEntry:
        """Reverse a ledger entry; a reversed purchase stops counting toward cost."""
        correction = await post_correction(self.db, entry_id, reason, actor)
        original = await get_entry(self.db, entry_id)
        if original.transaction_type == "purchase":
            if original.reference_type == "purchase" and original.reference_id:
                await lot_service.void_purchase_lot(
                    self.db, int(original.reference_id), original.quantity_change,
                )
            ingredient = await lock_ingredient(self.db, correction.ingredient_id)
            await self._reprice(ingredient)
        return correction

    # ── Views ───────────────────────────────────────────────

    async def current_stock(self, ingredient_id: str) -> Decimal:
        ingredient = await self.db.get(Ingredient, ingredient_id)
        if ingredient is None:
            raise UnknownIngredient(ingredient_id)
        return ingredient.current_stock

    async def menu_cost(self, menu_id: str) -> MenuCost:
        menu = await get_menu(self.db, menu_id)
        return await compute_menu_cost(self.db, menu)

    async def low_stock_list(self) -> list[LowStockItem]:
        """Active ingredients at or below minimum, largest shortage first."""
        ingredients = (
            await self.db.execute(
                select(Ingredient).where(
                    Ingredient.is_active == True,  # noqa: E712
                    Ingredient.current_stock <= Ingredient.min_stock,
                )
            )
        ).scalars().all()

        items = []
        for ingredient in ingredients:
            shortage = ingredient.min_stock - ingredient.current_stock
            items.append(LowStockItem(
                ingredient_id=ingredient.id,
                name=ingredient.name,
                unit=ingredient.unit,
                current_stock=ingredient.current_stock,
                min_stock=ingredient.min_stock,
                shortage=shortage,
                cost_per_unit=ingredient.cost_per_unit,
                reorder_value=(
                    shortage * ingredient.cost_per_unit
                    if ingredient.cost_per_unit is not None else None
                ),
                supplier=ingredient.supplier,
            ))
        items.sort(key=lambda item: (-item.shortage, item.name))
        return items

    async def expired_lots(self, as_of: date | None = None) -> list[lot_service.ExpiredLot]:
        return await lot_service.expired_lots(self.db, as_of or self.today)

    async def cogs_for_sale(self, sale_id: int):
        return await cogs_service.cogs_for_sale(self.db, sale_id)

    async def cogs_for_period(self, start: date, end: date) -> cogs_service.CogsPeriod:
        return await cogs_service.cogs_for_period(self.db, start, end)
