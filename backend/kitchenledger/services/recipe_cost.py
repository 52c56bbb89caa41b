"""Recipe cost calculator — menu cost, profit and margin.

    cost   = Σ quantity_per_serve × ingredient.cost_per_unit
    profit = price − cost
    margin = profit / price   (0 when the price is 0)

A menu whose recipe uses an ingredient without cost data has no cost:
compute_menu_cost raises StaleCostData and recompute_menu_cost clears the
stored figures rather than pricing the missing ingredient at zero.

The stored cost is refreshed whenever a recipe line is set or removed,
the menu price changes, or an ingredient the menu uses changes cost.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from kitchenledger.middleware.exceptions import (
    InvalidQuantity,
    ResourceNotFoundError,
    StaleCostData,
)
from kitchenledger.models.menu import Menu, RecipeLine
from kitchenledger.services.projector import lock_ingredient
from kitchenledger.utils.activity import log_activity

logger = logging.getLogger(__name__)

MARGIN_QUANT = Decimal("0.0001")


@dataclass(frozen=True)
class MenuCost:
    cost: Decimal
    profit: Decimal
    margin: Decimal
    # an ingredient's cost is being kept from an older calculation
    needs_review: bool = False


def margin_of(price: Decimal, profit: Decimal) -> Decimal:
    if not price:
        return Decimal("0")
    return (profit / price).quantize(MARGIN_QUANT, rounding=ROUND_HALF_UP)


async def get_menu(db: AsyncSession, menu_id: str) -> Menu:
    menu = (
        await db.execute(
            select(Menu)
            .where(Menu.id == menu_id)
            .options(selectinload(Menu.recipe_lines).selectinload(RecipeLine.ingredient))
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if menu is None:
        raise ResourceNotFoundError("Menu", menu_id)
    return menu


async def _recipe_lines(db: AsyncSession, menu_id: str) -> list[RecipeLine]:
    result = await db.execute(
        select(RecipeLine)
        .where(RecipeLine.menu_id == menu_id)
        .options(selectinload(RecipeLine.ingredient))
        .order_by(RecipeLine.created_at, RecipeLine.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def compute_menu_cost(db: AsyncSession, menu: Menu) -> MenuCost:
    """Price a menu from its recipe lines without writing anything.

    Raises:
        StaleCostData: some recipe ingredient has no cost_per_unit.
    """
    lines = await _recipe_lines(db, menu.id)

    missing = [
        line.ingredient_id for line in lines if line.ingredient.cost_per_unit is None
    ]
    if missing:
        raise StaleCostData(
            f"Menu {menu.menu_code} uses ingredients without cost data",
            ingredient_ids=missing,
        )

    cost = sum(
        (line.quantity_per_serve * line.ingredient.cost_per_unit for line in lines),
        Decimal("0"),
    )
    price = menu.price or Decimal("0")
    profit = price - cost
    return MenuCost(
        cost=cost,
        profit=profit,
        margin=margin_of(price, profit),
        needs_review=any(line.ingredient.cost_needs_review for line in lines),
    )


async def recompute_menu_cost(db: AsyncSession, menu: Menu) -> MenuCost | None:
    """Persist the derived cost fields.  Returns None when cost is unavailable."""
    try:
        result = await compute_menu_cost(db, menu)
    except StaleCostData as exc:
        menu.cost_price = None
        menu.profit = None
        menu.profit_margin = None
        menu.cost_updated_at = datetime.utcnow()
        logger.warning("Menu %s cost unavailable: %s", menu.menu_code, exc.message)
        return None

    menu.cost_price = result.cost
    menu.profit = result.profit
    menu.profit_margin = result.margin
    menu.cost_updated_at = datetime.utcnow()
    return result


async def recompute_menus_for_ingredient(db: AsyncSession, ingredient_id: str) -> int:
    """Refresh every menu whose recipe uses the ingredient."""
    menus = (
        await db.execute(
            select(Menu)
            .join(RecipeLine, RecipeLine.menu_id == Menu.id)
            .where(RecipeLine.ingredient_id == ingredient_id)
            .order_by(Menu.menu_code)
        )
    ).scalars().unique().all()

    for menu in menus:
        await recompute_menu_cost(db, menu)
    if menus:
        logger.debug("Recomputed %d menus using ingredient %s", len(menus), ingredient_id)
    return len(menus)


# ── Recipe and price edits ──────────────────────────────────


async def set_recipe_line(
    db: AsyncSession,
    menu_id: str,
    ingredient_id: str,
    quantity_per_serve: Decimal,
    actor: str,
    *,
    unit: str | None = None,
    is_optional: bool = False,
    notes: str | None = None,
) -> RecipeLine:
    """Create or replace the (menu, ingredient) recipe line."""
    if quantity_per_serve is None or quantity_per_serve <= 0:
        raise InvalidQuantity("Recipe quantity per serve must be positive")

    menu = await get_menu(db, menu_id)
    ingredient = await lock_ingredient(db, ingredient_id)

    line = next((r for r in menu.recipe_lines if r.ingredient_id == ingredient_id), None)
    action = "recipe_line_updated" if line else "recipe_line_added"
    if line is None:
        line = RecipeLine(menu_id=menu.id, ingredient_id=ingredient.id)
        menu.recipe_lines.append(line)

    line.quantity_per_serve = quantity_per_serve
    line.unit = unit or ingredient.unit
    line.is_optional = is_optional
    line.notes = notes
    line.ingredient = ingredient
    await db.flush()

    await recompute_menu_cost(db, menu)
    await log_activity(
        db, actor,
        action=action,
        entity_type="menu",
        entity_id=menu.id,
        entity_code=menu.menu_code,
        summary=f"{ingredient.name}: {quantity_per_serve} {line.unit} per serve",
    )
    return line


async def remove_recipe_line(
    db: AsyncSession,
    menu_id: str,
    ingredient_id: str,
    actor: str,
) -> Menu:
    menu = await get_menu(db, menu_id)
    line = next((r for r in menu.recipe_lines if r.ingredient_id == ingredient_id), None)
    if line is None:
        raise ResourceNotFoundError("Recipe line", f"{menu.menu_code}/{ingredient_id}")

    menu.recipe_lines.remove(line)
    await db.flush()

    await recompute_menu_cost(db, menu)
    await log_activity(
        db, actor,
        action="recipe_line_removed",
        entity_type="menu",
        entity_id=menu.id,
        entity_code=menu.menu_code,
        summary=f"Removed ingredient {ingredient_id}",
    )
    return menu


async def set_menu_price(
    db: AsyncSession,
    menu_id: str,
    price: Decimal,
    actor: str,
) -> Menu:
    if price is None or price < 0:
        raise InvalidQuantity("Menu price must not be negative")

    menu = await get_menu(db, menu_id)
    old_price = menu.price
    menu.price = price
    await recompute_menu_cost(db, menu)

    await log_activity(
        db, actor,
        action="menu_price_changed",
        entity_type="menu",
        entity_id=menu.id,
        entity_code=menu.menu_code,
        summary=f"Price {old_price} -> {price}",
        details={"old_price": str(old_price), "new_price": str(price)},
    )
    return menu
